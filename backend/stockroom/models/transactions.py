from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z, utcnow


TRANSACTION_TYPES = ("purchase", "sale", "inbound", "outbound", "transfer")
TRANSACTION_STATUSES = ("draft", "pending", "approved", "rejected", "cancelled")

# Line fields hidden from non-admin callers (margin data)
REDACTED_LINE_FIELDS = ("costPriceAtTransaction", "sellingPrice")


class Transaction(db.Model):
    """
    Inventory-affecting business transaction.

    Stock is only touched when a transaction is approved (or when an
    approved purchase is cancelled and its received inbound reversed).
    type is fixed at creation; po_number exists only for purchases.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_status_type", "status", "type"),
        db.Index("ix_transactions_requested_created", "requested_by_user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(db.String(16), nullable=False, index=True)

    # NULL for every non-purchase row; unique among purchases
    po_number = db.Column(db.String(16), nullable=True, unique=True)

    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    from_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    to_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)

    # An inbound spawned by a purchase points back at that purchase
    linked_transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True
    )

    requested_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    approved_at = db.Column(db.DateTime, nullable=True)
    rejected_at = db.Column(db.DateTime, nullable=True)
    cancelled_at = db.Column(db.DateTime, nullable=True)

    deliver_to = db.Column(db.String(255), nullable=False, default="")
    delivery_date = db.Column(db.DateTime, nullable=True)
    note = db.Column(db.Text, nullable=False, default="")

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    company = db.relationship("Company")
    from_location = db.relationship("Location", foreign_keys=[from_location_id])
    to_location = db.relationship("Location", foreign_keys=[to_location_id])
    requested_by = db.relationship("User", foreign_keys=[requested_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])
    linked_transaction = db.relationship("Transaction", remote_side=[id])

    lines = db.relationship(
        "TransactionLine",
        back_populates="transaction",
        order_by="TransactionLine.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} status={self.status} po={self.po_number!r}>"

    def to_dict(self, *, redact: bool = False) -> dict:
        linked = self.linked_transaction
        return {
            "id": self.id,
            "type": self.type,
            "poNumber": self.po_number,
            "status": self.status,
            "company": self.company.to_dict() if self.company else None,
            "fromLocation": self.from_location.to_dict() if self.from_location else None,
            "toLocation": self.to_location.to_dict() if self.to_location else None,
            "linkedTransaction": (
                {
                    "id": linked.id,
                    "type": linked.type,
                    "status": linked.status,
                    "poNumber": linked.po_number,
                }
                if linked
                else None
            ),
            "products": [line.to_dict(redact=redact) for line in self.lines],
            "requestedBy": self.requested_by_user_id,
            "approvedBy": self.approved_by_user_id,
            "approvedAt": to_utc_z(self.approved_at),
            "rejectedAt": to_utc_z(self.rejected_at),
            "cancelledAt": to_utc_z(self.cancelled_at),
            "deliverTo": self.deliver_to,
            "deliveryDate": to_utc_z(self.delivery_date),
            "note": self.note,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class TransactionLine(db.Model):
    """
    One product/quantity/price entry of a transaction.

    Prices are snapshots taken when the line was built; catalog edits
    never rewrite them.
    """
    __tablename__ = "transaction_lines"
    __table_args__ = (
        db.Index("ix_transaction_lines_txn_position", "transaction_id", "position"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), nullable=False
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    # Inbound only
    expected_quantity = db.Column(db.Integer, nullable=True)
    received_quantity = db.Column(db.Integer, nullable=True)

    cost_price_at_transaction = db.Column(db.Float, nullable=False, default=0)
    selling_price = db.Column(db.Float, nullable=False, default=0)
    unit_price = db.Column(db.Float, nullable=False, default=0)
    transaction_selling_price = db.Column(db.Float, nullable=False, default=0)
    discount_percent = db.Column(db.Float, nullable=False, default=0)
    discounted_price = db.Column(db.Float, nullable=False, default=0)

    transaction = db.relationship("Transaction", back_populates="lines")
    product = db.relationship("Product")

    @property
    def effective_received_quantity(self) -> int:
        """Quantity an inbound line adds to stock: received if recorded, else ordered."""
        if self.received_quantity is not None:
            return int(self.received_quantity)
        return int(self.quantity or 0)

    def to_dict(self, *, redact: bool = False) -> dict:
        data = {
            "id": self.id,
            "product": self.product_id,
            "itemCode": self.product.item_code if self.product else None,
            "productName": self.product.name if self.product else None,
            "quantity": self.quantity,
            "expectedQuantity": self.expected_quantity,
            "receivedQuantity": self.received_quantity,
            "costPriceAtTransaction": self.cost_price_at_transaction,
            "sellingPrice": self.selling_price,
            "unitPrice": self.unit_price,
            "transactionSellingPrice": self.transaction_selling_price,
            "discountPercent": self.discount_percent,
            "discountedPrice": self.discounted_price,
        }
        if redact:
            for key in REDACTED_LINE_FIELDS:
                data.pop(key, None)
        return data

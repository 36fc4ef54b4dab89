# Overview: Per-type stock effects of approving a transaction, dispatched by transaction type.

"""
Each handler implements apply(transaction, principal) -> list[StockDelta].

Handlers run inside the approval unit of work after the status guard has
passed. They raise on the first problem (InsufficientStockError,
NotFoundError) and the caller's rollback discards everything, so no
handler needs to undo its own partial work.

    sale / outbound  decrease stock at fromLocation
    purchase         no stock change; synthesize the linked inbound once
    inbound          increase stock at toLocation by the received quantity,
                     then approve the originating purchase if still pending
    transfer         decrease at fromLocation, increase at toLocation
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..extensions import db
from ..models import Transaction, TransactionLine
from ..validation import InvalidInputError
from stockroom.time_utils import utcnow
from . import stock_service
from .stock_service import StockDelta

if TYPE_CHECKING:
    from .session_service import Principal

logger = logging.getLogger(__name__)


class ApprovalHandler:
    """Stock rules for one transaction type."""
    transaction_type: str = ""

    def apply(self, transaction: Transaction, principal: "Principal") -> list[StockDelta]:
        raise NotImplementedError


class OutgoingStockHandler(ApprovalHandler):
    """Sale and outbound: goods leave fromLocation."""

    def __init__(self, transaction_type: str):
        self.transaction_type = transaction_type

    def apply(self, transaction, principal):
        deltas = []
        for line in transaction.lines:
            deltas.append(
                stock_service.decrease_stock_at_location(
                    line.product, transaction.from_location_id, line.quantity
                )
            )
        return deltas


class PurchaseHandler(ApprovalHandler):
    transaction_type = "purchase"

    def apply(self, transaction, principal):
        existing = find_linked_inbound(transaction.id)
        if existing is not None:
            logger.info(
                "Purchase %s already has inbound %s; not creating another",
                transaction.id, existing.id,
            )
            return []
        create_linked_inbound(transaction)
        return []


class InboundHandler(ApprovalHandler):
    transaction_type = "inbound"

    def apply(self, transaction, principal):
        deltas = []
        for line in transaction.lines:
            received = line.effective_received_quantity
            if received > 0:
                deltas.append(
                    stock_service.increase_stock_at_location(
                        line.product, transaction.to_location_id, received
                    )
                )

        if transaction.linked_transaction_id:
            purchase = db.session.get(Transaction, transaction.linked_transaction_id)
            if purchase is not None and purchase.status == "pending":
                purchase.status = "approved"
                purchase.approved_by_user_id = principal.id
                purchase.approved_at = utcnow()
                logger.info(
                    "Purchase %s approved through its inbound %s",
                    purchase.id, transaction.id,
                )
        return deltas


class TransferHandler(ApprovalHandler):
    transaction_type = "transfer"

    def apply(self, transaction, principal):
        deltas = []
        for line in transaction.lines:
            out_delta = stock_service.decrease_stock_at_location(
                line.product, transaction.from_location_id, line.quantity
            )
            deltas.append(out_delta)
            deltas.append(
                stock_service.increase_stock_at_location(
                    line.product, transaction.to_location_id, line.quantity
                )
            )
        return deltas


HANDLERS: dict[str, ApprovalHandler] = {
    "sale": OutgoingStockHandler("sale"),
    "outbound": OutgoingStockHandler("outbound"),
    "purchase": PurchaseHandler(),
    "inbound": InboundHandler(),
    "transfer": TransferHandler(),
}


def handler_for(transaction_type: str) -> ApprovalHandler:
    try:
        return HANDLERS[transaction_type]
    except KeyError:
        raise InvalidInputError(f"Invalid transaction type: {transaction_type}")


def find_linked_inbound(purchase_id: int) -> Transaction | None:
    return (
        db.session.query(Transaction)
        .filter_by(linked_transaction_id=purchase_id, type="inbound")
        .first()
    )


def create_linked_inbound(purchase: Transaction) -> Transaction:
    """
    Pending inbound mirroring the purchase's lines.

    Lines point at the destination-location product rows (provisioned with
    stock 0 when missing), expect the ordered quantity and have received
    nothing yet. The inbound never gets a PO number.
    """
    lines = []
    for position, line in enumerate(purchase.lines):
        target = stock_service.ensure_product_at_location(line.product, purchase.to_location_id)
        lines.append(
            TransactionLine(
                position=position,
                product_id=target.id,
                quantity=line.quantity,
                expected_quantity=line.quantity,
                received_quantity=0,
                cost_price_at_transaction=line.cost_price_at_transaction,
                selling_price=line.selling_price,
                unit_price=line.unit_price,
                transaction_selling_price=line.transaction_selling_price,
                discount_percent=line.discount_percent,
                discounted_price=line.discounted_price,
            )
        )

    inbound = Transaction(
        type="inbound",
        po_number=None,
        to_location_id=purchase.to_location_id,
        linked_transaction_id=purchase.id,
        requested_by_user_id=purchase.requested_by_user_id,
        deliver_to=purchase.deliver_to or "",
        delivery_date=purchase.delivery_date,
        status="pending",
        lines=lines,
    )
    db.session.add(inbound)
    db.session.flush()
    logger.info("Created inbound %s for purchase %s", inbound.id, purchase.id)
    return inbound


def reverse_inbound(inbound: Transaction) -> list[StockDelta]:
    """Exact inverse of InboundHandler's stock additions."""
    deltas = []
    for line in inbound.lines:
        received = line.effective_received_quantity
        if received > 0:
            deltas.append(
                stock_service.decrease_stock_at_location(
                    line.product, inbound.to_location_id, received
                )
            )
    return deltas

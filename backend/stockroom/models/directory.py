from __future__ import annotations

from ..extensions import db
from stockroom.time_utils import to_utc_z, utcnow


class Location(db.Model):
    """
    Stock-holding site (warehouse, shop floor, HQ).

    is_headquarters replaces matching the location by the literal name "HQ".
    """
    __tablename__ = "locations"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    is_headquarters = db.Column(db.Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<Location id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "locationName": self.name,
            "locationDescription": self.description,
            "isHeadquarters": self.is_headquarters,
        }


class Company(db.Model):
    """Supplier (purchases) or customer (sales)."""
    __tablename__ = "companies"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    address = db.Column(db.Text, nullable=True)
    contact_name = db.Column(db.String(255), nullable=True)
    contact_number = db.Column(db.String(64), nullable=True)
    terms = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "companyName": self.name,
            "companyEmail": self.email,
            "companyAddress": self.address,
            "companyContactName": self.contact_name,
            "companyContactNumber": self.contact_number,
            "terms": self.terms,
        }


class Category(db.Model):
    __tablename__ = "categories"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)


class User(db.Model):
    __tablename__ = "users"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    # "admin" sees margins and may approve; "user" may only request
    role = db.Column(db.String(16), nullable=False, default="user")
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    location = db.relationship("Location")

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"


class Product(db.Model):
    """
    Product at a single location.

    The same catalog item stocked at two locations is two rows sharing an
    item_code. Cross-location identity is always (item_code, location_id),
    never the row id.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("item_code", "location_id", name="uq_products_item_code_location"),
        db.Index("ix_products_location_item_code", "location_id", "item_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_code = db.Column(db.String(64), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    cost_price = db.Column(db.Float, nullable=False, default=0)
    selling_price = db.Column(db.Float, nullable=False, default=0)

    # Mutable on-hand quantity; only the stock service writes it
    stock = db.Column(db.Integer, nullable=False, default=0)

    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    location = db.relationship("Location")
    category = db.relationship("Category")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<Product id={self.id} item_code={self.item_code!r} "
            f"location_id={self.location_id} stock={self.stock}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "itemCode": self.item_code,
            "productName": self.name,
            "productDescription": self.description,
            "costPrice": self.cost_price,
            "sellingPrice": self.selling_price,
            "stock": self.stock,
            "locationId": self.location_id,
            "categoryId": self.category_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

# Overview: Lookups against the product/location/company directory consumed by the transaction engine.

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Product, Location, Company, Transaction
from ..validation import NotFoundError, ConflictError
from .concurrency import lock_for_update

logger = logging.getLogger(__name__)


def find_product(product_id: int, *, lock: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product not found: {product_id}")
    return product


def find_product_by_item_code_and_location(
    item_code: str, location_id: int, *, lock: bool = False
) -> Product | None:
    """Indexed (location_id, item_code) lookup; None when the item is not stocked there."""
    query = db.session.query(Product).filter_by(location_id=location_id, item_code=item_code)
    if lock:
        query = lock_for_update(query)
    return query.first()


def create_product(
    *,
    item_code: str,
    name: str,
    location_id: int,
    description: str | None = None,
    cost_price: float = 0,
    selling_price: float = 0,
    stock: int = 0,
    category_id: int | None = None,
) -> Product:
    """Insert a product row. A second row with the same item code at the same location is a Conflict."""
    product = Product(
        item_code=item_code,
        name=name,
        description=description,
        cost_price=cost_price,
        selling_price=selling_price,
        stock=stock,
        location_id=location_id,
        category_id=category_id,
    )
    try:
        db.session.add(product)
        db.session.flush()
    except IntegrityError as exc:
        raise ConflictError(
            f"Product {item_code!r} already exists at location {location_id}"
        ) from exc
    return product


def update_product_stock(product_id: int, new_stock: int) -> None:
    product = find_product(product_id, lock=True)
    product.stock = new_stock
    db.session.flush()


def find_location(location_id: int) -> Location:
    location = db.session.get(Location, location_id)
    if location is None:
        raise NotFoundError(f"Location not found: {location_id}")
    return location


def find_company(company_id: int) -> Company:
    company = db.session.get(Company, company_id)
    if company is None:
        raise NotFoundError(f"Company not found: {company_id}")
    return company


def find_transaction(transaction_id: int, *, lock: bool = False) -> Transaction:
    query = db.session.query(Transaction).filter_by(id=transaction_id)
    if lock:
        query = lock_for_update(query)
    transaction = query.first()
    if transaction is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")
    return transaction

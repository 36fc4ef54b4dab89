# Overview: Stock ledger primitives; every Product.stock change goes through here.

"""
Stock mutation rules:
- Every read-modify-write locks the product row and happens inside the
  caller's unit of work (see concurrency.run_in_transaction).
- decrease_stock refuses to go below zero and raises InsufficientStockError
  naming the product; nothing is written in that case.
- A destination row is located by (item_code, location_id). When the item
  is not stocked at the destination yet, a copy of the source product is
  created there with stock 0 before any quantity is added.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..models import Product
from ..validation import InsufficientStockError, InvalidInputError
from . import directory_service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockDelta:
    """Change applied to one product row by one approval or reversal."""
    product_id: int
    location_id: int
    item_code: str
    delta: int
    stock_after: int


def decrease_stock(product_id: int, quantity: int) -> StockDelta:
    if quantity < 0:
        raise InvalidInputError("quantity must not be negative")
    product = directory_service.find_product(product_id, lock=True)
    if product.stock < quantity:
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=product.stock,
            requested=quantity,
        )
    directory_service.update_product_stock(product.id, product.stock - quantity)
    return StockDelta(product.id, product.location_id, product.item_code, -quantity, product.stock)


def increase_stock(product_id: int, quantity: int) -> StockDelta:
    if quantity < 0:
        raise InvalidInputError("quantity must not be negative")
    product = directory_service.find_product(product_id, lock=True)
    directory_service.update_product_stock(product.id, product.stock + quantity)
    return StockDelta(product.id, product.location_id, product.item_code, quantity, product.stock)


def ensure_product_at_location(source: Product, location_id: int) -> Product:
    """
    Return the row for source's item code at location_id, creating it with
    stock 0 when absent. Never moves stock.
    """
    if source.location_id == location_id:
        return source

    existing = directory_service.find_product_by_item_code_and_location(
        source.item_code, location_id, lock=True
    )
    if existing is not None:
        return existing

    created = directory_service.create_product(
        item_code=source.item_code,
        name=source.name,
        description=source.description,
        cost_price=source.cost_price,
        selling_price=source.selling_price,
        stock=0,
        location_id=location_id,
        category_id=source.category_id,
    )
    logger.info(
        "Provisioned product %s (%s) at location %s as row %s",
        source.item_code, source.name, location_id, created.id,
    )
    return created


def increase_stock_at_location(source: Product, location_id: int, quantity: int) -> StockDelta:
    """Add quantity to the item's row at location_id, provisioning the row if needed."""
    target = ensure_product_at_location(source, location_id)
    return increase_stock(target.id, quantity)


def decrease_stock_at_location(source: Product, location_id: int, quantity: int) -> StockDelta:
    target = directory_service.find_product_by_item_code_and_location(source.item_code, location_id)
    if target is None:
        raise InsufficientStockError(
            product_id=source.id,
            product_name=source.name,
            available=0,
            requested=quantity,
        )
    return decrease_stock(target.id, quantity)

# Overview: Builds the immutable price/quantity snapshot stored on each transaction line.

from __future__ import annotations

from typing import Any, Mapping

from ..models import Product, TransactionLine
from ..validation import (
    InvalidInputError,
    coerce_discount_percent,
    coerce_id,
    coerce_number,
    coerce_quantity,
)
from . import directory_service


def discounted_price(unit_price: float, discount_percent: float) -> float:
    """unit_price x (1 - discount/100). Always computed server-side."""
    return unit_price * (1 - discount_percent / 100)


def build_line(
    transaction_type: str,
    payload: Mapping[str, Any],
    *,
    position: int = 0,
) -> TransactionLine:
    """
    Resolve the line's product and capture prices as they are right now.

    Purchases price at the supplied unitPrice or the product's cost price;
    sales at the supplied customPrice or the selling price. Other types only
    carry quantity (inbound lines may also carry receivedQuantity).
    """
    if not isinstance(payload, Mapping):
        raise InvalidInputError("Each product line must be an object")

    product_id = coerce_id(payload.get("productId"), "productId")
    product = directory_service.find_product(product_id)
    quantity = coerce_quantity(payload.get("quantity"))

    line = TransactionLine(
        position=position,
        product_id=product.id,
        quantity=quantity,
        cost_price_at_transaction=float(product.cost_price or 0),
        selling_price=float(product.selling_price or 0),
        unit_price=0.0,
        transaction_selling_price=0.0,
        discount_percent=0.0,
        discounted_price=0.0,
    )
    line.product = product

    if transaction_type == "purchase":
        _apply_purchase_pricing(line, product, payload)
    elif transaction_type == "sale":
        _apply_sale_pricing(line, product, payload)
    elif transaction_type == "inbound":
        line.expected_quantity = quantity
        received = payload.get("receivedQuantity")
        if received is not None and received != "":
            line.received_quantity = coerce_quantity(received, "receivedQuantity", allow_zero=True)

    return line


def _apply_purchase_pricing(line: TransactionLine, product: Product, payload: Mapping[str, Any]) -> None:
    unit_price = coerce_number(payload.get("unitPrice"), "unitPrice")
    if not unit_price:
        unit_price = float(product.cost_price or 0)
    discount = coerce_discount_percent(payload.get("discountPercent"))
    line.unit_price = unit_price
    line.discount_percent = discount
    line.discounted_price = discounted_price(unit_price, discount)


def _apply_sale_pricing(line: TransactionLine, product: Product, payload: Mapping[str, Any]) -> None:
    actual = coerce_number(payload.get("customPrice"), "customPrice")
    if actual is None:
        actual = float(product.selling_price or 0)
    discount = coerce_discount_percent(payload.get("discountPercent"))
    line.transaction_selling_price = actual
    line.unit_price = actual
    line.discount_percent = discount
    line.discounted_price = discounted_price(actual, discount)


def build_lines(transaction_type: str, products: Any) -> list[TransactionLine]:
    if not isinstance(products, list) or not products:
        raise InvalidInputError("products must be a non-empty list")
    return [build_line(transaction_type, p, position=i) for i, p in enumerate(products)]


def reprice_line(line: TransactionLine, *, quantity=None, unit_price=None, discount_percent=None) -> None:
    """Field-level purchase line edit; discountedPrice is recomputed, never taken from the client."""
    if quantity is not None:
        line.quantity = coerce_quantity(quantity)
    if unit_price is not None:
        line.unit_price = coerce_number(unit_price, "unitPrice", default=0.0)
    if discount_percent is not None:
        line.discount_percent = coerce_discount_percent(discount_percent)
    line.discounted_price = discounted_price(line.unit_price or 0, line.discount_percent or 0)

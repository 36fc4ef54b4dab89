from __future__ import annotations

import math
from typing import Any


class TransactionError(Exception):
    """Base class for domain errors surfaced to callers."""
    status_code = 500


class InvalidInputError(TransactionError, ValueError):
    """400-level input problem (unknown type, malformed field)."""
    status_code = 400


class MissingFieldError(InvalidInputError):
    """A field required for this transaction type was not supplied."""


class NotFoundError(TransactionError, LookupError):
    """Referenced product/location/company/transaction does not exist."""
    status_code = 404


class InvalidTransitionError(TransactionError):
    """Requested action is not valid for the transaction's current status."""
    status_code = 400


class AlreadyProcessedError(InvalidTransitionError):
    """Approve/reject attempted on a transaction that is no longer pending."""


class InsufficientStockError(TransactionError):
    """Applying the transaction would drive a product's stock negative."""
    status_code = 400

    def __init__(self, product_id: int, product_name: str, available: int, requested: int):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.requested = requested
        super().__init__(
            f"Not enough stock for {product_name}. "
            f"On-hand: {available}, requested: {requested}"
        )


class ConflictError(TransactionError):
    """409-level unique constraint conflict (e.g., duplicate PO number)."""
    status_code = 409


def coerce_id(value: Any, field: str) -> int:
    """Record ids are positive integers; JSON clients sometimes send them as strings."""
    if value is None or value == "":
        raise MissingFieldError(f"{field} is required")
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer id")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str) and value.strip().isdigit():
        result = int(value.strip())
    else:
        raise InvalidInputError(f"{field} must be an integer id")
    if result <= 0:
        raise InvalidInputError(f"{field} must be an integer id")
    return result


def coerce_optional_id(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_id(value, field)


def coerce_quantity(value: Any, field: str = "quantity", *, allow_zero: bool = False) -> int:
    """
    Quantities are whole units.

    Integral floats (10.0) are accepted; fractional values, booleans and
    scientific-notation strings are rejected.
    """
    if value is None or value == "":
        raise MissingFieldError(f"{field} is required")
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be an integer")

    if isinstance(value, int):
        result = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise InvalidInputError(f"{field} must be a whole number")
        result = int(value)
    elif isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            result = int(stripped)
        else:
            raise InvalidInputError(f"{field} must be an integer")
    else:
        raise InvalidInputError(f"{field} must be an integer")

    if result < 0 or (result == 0 and not allow_zero):
        raise InvalidInputError(f"{field} must be positive")
    return result


def coerce_number(value: Any, field: str, *, default: float | None = None) -> float | None:
    """Prices and percentages. Missing values fall back to ``default``."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise InvalidInputError(f"{field} must be a number")
    if not isinstance(value, (int, float, str)):
        raise InvalidInputError(f"{field} must be a number")
    try:
        result = float(value.strip() if isinstance(value, str) else value)
    except (ValueError, OverflowError):
        raise InvalidInputError(f"{field} must be a number")
    if not math.isfinite(result) or result < 0:
        raise InvalidInputError(f"{field} must be a non-negative number")
    return result


def coerce_discount_percent(value: Any) -> float:
    discount = coerce_number(value, "discountPercent", default=0.0)
    if discount > 100:
        raise InvalidInputError("discountPercent cannot exceed 100")
    return discount


def parse_status_override(value: Any) -> str:
    """Creation accepts only 'draft' or 'pending'; anything else means pending."""
    if value in ("draft", "pending"):
        return value
    return "pending"

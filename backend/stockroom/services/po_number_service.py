# Overview: Purchase-order number allocation ("YYYY-NNNNN", sequential per calendar year).

from __future__ import annotations

import logging
import re

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Transaction
from ..validation import ConflictError
from stockroom.time_utils import current_year

logger = logging.getLogger(__name__)

PO_NUMBER_PATTERN = re.compile(r"^\d{4}-\d{5}$")
SEQUENCE_PAD = 5


def format_po_number(year: int, sequence: int) -> str:
    return f"{year:04d}-{sequence:0{SEQUENCE_PAD}d}"


def _parse_sequence(po_number: str | None) -> int | None:
    if not po_number or "-" not in po_number:
        return None
    suffix = po_number.split("-", 1)[1]
    if not suffix.isdigit():
        return None
    return int(suffix)


def next_po_number(year: int | None = None) -> str:
    """
    Number following the most recently created purchase of the year.

    Falls back to sequence 1 when there is no purchase this year or its
    suffix does not parse.
    """
    year = year or current_year()
    last = (
        db.session.query(Transaction.po_number)
        .filter(
            Transaction.type == "purchase",
            Transaction.po_number.like(f"{year:04d}-%"),
        )
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .first()
    )
    last_seq = _parse_sequence(last[0]) if last else None
    return format_po_number(year, (last_seq or 0) + 1)


def assign_po_number(transaction: Transaction, *, attempts: int = 3) -> str | None:
    """
    Give a new purchase its PO number and flush it. Other types never carry one.

    The unique index on po_number is the final arbiter: a collision with
    a concurrently created purchase rolls back to a savepoint and the
    number is regenerated, up to ``attempts`` times.
    """
    if transaction.type != "purchase":
        transaction.po_number = None
        db.session.flush()
        return None
    if transaction.po_number:
        db.session.flush()
        return transaction.po_number

    # row must exist before the savepoint so only the number is retried
    db.session.flush()
    for attempt in range(attempts):
        candidate = next_po_number()
        savepoint = db.session.begin_nested()
        transaction.po_number = candidate
        try:
            db.session.flush()
            savepoint.commit()
            return candidate
        except IntegrityError:
            savepoint.rollback()
            logger.warning("PO number %s already taken (attempt %d)", candidate, attempt + 1)
            transaction.po_number = None

    raise ConflictError("Could not allocate a unique PO number, please retry")

# Overview: Filtered, paginated transaction reads with role-based redaction.

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping

from flask import current_app
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Transaction, TransactionLine, TRANSACTION_STATUSES, TRANSACTION_TYPES
from ..validation import InvalidInputError, NotFoundError
from stockroom.time_utils import parse_iso_datetime
from .session_service import Principal


@dataclass
class TransactionFilters:
    status: str | None = None
    type: str | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    page: int = 1
    page_size: int = 50


@dataclass
class TransactionPage:
    items: list[dict] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 50

    def to_dict(self) -> dict:
        return {
            "data": self.items,
            "total": self.total,
            "page": self.page,
            "pageSize": self.page_size,
        }


def _positive_int(value: Any, name: str, default: int) -> int:
    if value in (None, ""):
        return default
    try:
        result = int(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be an integer")
    if result < 1:
        raise InvalidInputError(f"{name} must be at least 1")
    return result


def parse_filters(args: Mapping[str, Any]) -> TransactionFilters:
    """Build filters from query-string style args (status, type, fromDate, toDate, page, pageSize)."""
    default_size = current_app.config.get("DEFAULT_PAGE_SIZE", 50)
    max_size = current_app.config.get("MAX_PAGE_SIZE", 200)

    status = args.get("status") or None
    if status is not None and status not in TRANSACTION_STATUSES:
        raise InvalidInputError(f"Invalid status filter: {status}")
    txn_type = args.get("type") or None
    if txn_type is not None and txn_type not in TRANSACTION_TYPES:
        raise InvalidInputError(f"Invalid type filter: {txn_type}")

    try:
        from_date = parse_iso_datetime(args.get("fromDate"))
        to_date = parse_iso_datetime(args.get("toDate"))
    except (TypeError, ValueError):
        raise InvalidInputError("fromDate/toDate must be ISO-8601 dates")

    return TransactionFilters(
        status=status,
        type=txn_type,
        from_date=from_date,
        to_date=to_date,
        page=_positive_int(args.get("page"), "page", 1),
        page_size=min(_positive_int(args.get("pageSize"), "pageSize", default_size), max_size),
    )


def serialize(transaction: Transaction, principal: Principal) -> dict:
    """Cost and selling prices are admin-only."""
    return transaction.to_dict(redact=not principal.is_admin)


def list_transactions(principal: Principal, filters: TransactionFilters | None = None) -> TransactionPage:
    """
    Newest first. Non-admins only see what they requested. The date range
    applies to createdAt, inclusive, and only when both ends are given.
    """
    filters = filters or TransactionFilters()

    query = db.session.query(Transaction)
    if not principal.is_admin:
        query = query.filter(Transaction.requested_by_user_id == principal.id)
    if filters.status:
        query = query.filter(Transaction.status == filters.status)
    if filters.type:
        query = query.filter(Transaction.type == filters.type)
    if filters.from_date is not None and filters.to_date is not None:
        query = query.filter(
            Transaction.created_at >= filters.from_date,
            Transaction.created_at <= filters.to_date,
        )

    total = query.count()
    rows = (
        query.options(selectinload(Transaction.lines).selectinload(TransactionLine.product))
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset((filters.page - 1) * filters.page_size)
        .limit(filters.page_size)
        .all()
    )
    return TransactionPage(
        items=[serialize(t, principal) for t in rows],
        total=total,
        page=filters.page,
        page_size=filters.page_size,
    )


def get_transaction(transaction_id: int, principal: Principal) -> dict:
    transaction = db.session.get(Transaction, transaction_id)
    if transaction is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")
    if not principal.is_admin and transaction.requested_by_user_id != principal.id:
        raise NotFoundError(f"Transaction not found: {transaction_id}")
    return serialize(transaction, principal)

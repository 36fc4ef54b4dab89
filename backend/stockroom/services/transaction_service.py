# Overview: Transaction lifecycle engine; validates, records, links and applies inventory transactions.

"""
Transaction Lifecycle Engine

Every mutating operation runs as one unit of work (run_in_transaction):
the row is re-read under lock, its status checked, and every stock
change, linked-transaction write and status flip commits together or
not at all. Callers pass the acting Principal explicitly.

TYPE RULES:
    type      company   fromLocation   toLocation
    sale      required  required       -
    purchase  required  -              required
    inbound   -         -              required
    outbound  -         required       -
    transfer  -         required       required
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from flask import current_app

from ..extensions import db
from ..models import Transaction, TRANSACTION_TYPES
from ..validation import (
    ConflictError,
    InvalidInputError,
    MissingFieldError,
    NotFoundError,
    coerce_id,
    coerce_optional_id,
    coerce_quantity,
    parse_status_override,
)
from stockroom.time_utils import parse_iso_datetime, utcnow
from . import approval_handlers, directory_service, lifecycle_service, pricing_service, stock_service
from .concurrency import run_in_transaction
from .po_number_service import assign_po_number
from .session_service import Principal

logger = logging.getLogger(__name__)


COMPANY_TYPES = {"sale", "purchase"}
FROM_LOCATION_TYPES = {"sale", "outbound", "transfer"}
TO_LOCATION_TYPES = {"inbound", "transfer", "purchase"}


def _parse_delivery_date(value):
    try:
        return parse_iso_datetime(value)
    except (TypeError, ValueError):
        raise InvalidInputError("deliveryDate must be an ISO-8601 date")


def _resolve_company(transaction_type: str, company_id: Any) -> int | None:
    if transaction_type not in COMPANY_TYPES:
        return None
    if company_id in (None, ""):
        raise MissingFieldError("Company is required")
    return directory_service.find_company(coerce_id(company_id, "companyId")).id


def _resolve_location(transaction_type: str, location_id: Any, allowed: set[str], field: str) -> int | None:
    if transaction_type not in allowed:
        return None
    if location_id in (None, ""):
        raise MissingFieldError(f"{field} required")
    return directory_service.find_location(coerce_id(location_id, field)).id


def _po_attempts() -> int:
    return int(current_app.config.get("PO_NUMBER_ATTEMPTS", 3))


def _check_inbound_link(transaction_type: str, linked_id: int) -> None:
    """Only an inbound may link, only to a purchase, and a purchase gets at most one inbound."""
    if transaction_type != "inbound":
        raise InvalidInputError("linkedTransactionId is only accepted on inbound transactions")
    purchase = directory_service.find_transaction(linked_id, lock=True)
    if purchase.type != "purchase":
        raise InvalidInputError("An inbound can only be linked to a purchase")
    existing = approval_handlers.find_linked_inbound(purchase.id)
    if existing is not None:
        raise ConflictError(
            f"Purchase {purchase.id} already has inbound {existing.id}"
        )


def _require_owner_or_admin(transaction: Transaction, principal: Principal) -> None:
    """Non-admins may only touch transactions they requested; others look absent."""
    if not principal.is_admin and transaction.requested_by_user_id != principal.id:
        raise NotFoundError(f"Transaction not found: {transaction.id}")


# =============================================================================
# Creation
# =============================================================================

def create_transaction(principal: Principal, data: Mapping[str, Any]) -> Transaction:
    """
    Validate and persist a draft or pending transaction.

    Fails fast with InvalidInputError / MissingFieldError / NotFoundError
    before anything is written. Transfers provision a zero-stock row for
    each item at the destination; purchases get a PO number. No stock
    moves and no inbound is created until approval.
    """
    if not isinstance(data, Mapping):
        raise InvalidInputError("Request body must be an object")

    transaction_type = data.get("type")
    if transaction_type not in TRANSACTION_TYPES:
        raise InvalidInputError("Invalid transaction type")

    def _op():
        company_id = _resolve_company(transaction_type, data.get("companyId"))
        from_location_id = _resolve_location(
            transaction_type, data.get("fromLocationId"), FROM_LOCATION_TYPES, "fromLocation"
        )
        to_location_id = _resolve_location(
            transaction_type, data.get("toLocationId"), TO_LOCATION_TYPES, "toLocation"
        )
        if transaction_type == "transfer" and from_location_id == to_location_id:
            raise InvalidInputError("Cannot transfer to the same location")

        linked_id = coerce_optional_id(data.get("linkedTransactionId"), "linkedTransactionId")
        if linked_id is not None:
            _check_inbound_link(transaction_type, linked_id)

        lines = pricing_service.build_lines(transaction_type, data.get("products"))
        delivery_date = _parse_delivery_date(data.get("deliveryDate"))
        status = parse_status_override(data.get("status"))

        if transaction_type == "transfer":
            for line in lines:
                stock_service.ensure_product_at_location(line.product, to_location_id)

        transaction = Transaction(
            type=transaction_type,
            company_id=company_id,
            from_location_id=from_location_id,
            to_location_id=to_location_id,
            linked_transaction_id=linked_id,
            requested_by_user_id=principal.id,
            status=status,
            deliver_to=data.get("deliverTo") or "",
            delivery_date=delivery_date,
            note=data.get("note") or "",
            lines=lines,
        )
        db.session.add(transaction)
        assign_po_number(transaction, attempts=_po_attempts())

        logger.info(
            "Created %s transaction %s (status=%s, po=%s) for user %s",
            transaction.type, transaction.id, transaction.status,
            transaction.po_number, principal.id,
        )
        return transaction

    return run_in_transaction(_op)


# =============================================================================
# Approval / rejection
# =============================================================================

def approve_transaction(transaction_id: int, principal: Principal) -> Transaction:
    """
    pending -> approved, applying the type's stock effect exactly once.

    The pending check is made on the locked row inside the same unit of
    work as the stock changes; a second approval of the same id fails with
    AlreadyProcessedError and changes nothing. Insufficient stock on any
    line aborts the whole approval.
    """
    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        lifecycle_service.require_transition(transaction, "approve")

        deltas = approval_handlers.handler_for(transaction.type).apply(transaction, principal)

        transaction.status = "approved"
        transaction.approved_by_user_id = principal.id
        transaction.approved_at = utcnow()
        db.session.flush()

        logger.info(
            "Approved %s transaction %s by user %s (%d stock changes)",
            transaction.type, transaction.id, principal.id, len(deltas),
        )
        return transaction

    return run_in_transaction(_op)


def reject_transaction(transaction_id: int, principal: Principal) -> Transaction:
    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        lifecycle_service.require_transition(transaction, "reject")

        transaction.status = "rejected"
        # approved_by doubles as "processed by" for rejections
        transaction.approved_by_user_id = principal.id
        transaction.rejected_at = utcnow()
        db.session.flush()

        logger.info("Rejected transaction %s by user %s", transaction.id, principal.id)
        return transaction

    return run_in_transaction(_op)


# =============================================================================
# Cancellation (purchase only)
# =============================================================================

def cancel_transaction(transaction_id: int, principal: Principal) -> Transaction:
    """
    approved purchase -> cancelled.

    A linked inbound that was approved has its received quantities taken
    back out of stock; the inbound is then deleted whatever its status.
    """
    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        lifecycle_service.require_transition(transaction, "cancel")

        inbound = approval_handlers.find_linked_inbound(transaction.id)
        if inbound is not None:
            if inbound.status == "approved":
                deltas = approval_handlers.reverse_inbound(inbound)
                logger.info(
                    "Reversed %d stock changes of inbound %s for purchase %s",
                    len(deltas), inbound.id, transaction.id,
                )
            logger.info("Deleting inbound %s (status=%s)", inbound.id, inbound.status)
            db.session.delete(inbound)
            db.session.flush()

        logger.info(
            "Cancelling purchase %s (approved by user %s) by user %s",
            transaction.id, transaction.approved_by_user_id, principal.id,
        )
        transaction.status = "cancelled"
        transaction.cancelled_at = utcnow()
        transaction.approved_by_user_id = None
        transaction.approved_at = None
        db.session.flush()
        return transaction

    return run_in_transaction(_op)


# =============================================================================
# Draft / resubmission
# =============================================================================

def _simple_transition(transaction_id: int, principal: Principal, action: str) -> Transaction:
    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        _require_owner_or_admin(transaction, principal)
        new_status = lifecycle_service.require_transition(transaction, action)

        transaction.status = new_status
        if action in ("move_to_draft", "resubmit"):
            # back into the workflow; stamps of the previous round no longer apply
            transaction.cancelled_at = None
            transaction.rejected_at = None
        db.session.flush()

        logger.info("Transaction %s: %s -> %s by user %s", transaction.id, action, new_status, principal.id)
        return transaction

    return run_in_transaction(_op)


def submit_draft(transaction_id: int, principal: Principal) -> Transaction:
    return _simple_transition(transaction_id, principal, "submit")


def move_to_draft(transaction_id: int, principal: Principal) -> Transaction:
    return _simple_transition(transaction_id, principal, "move_to_draft")


def resubmit_transaction(transaction_id: int, principal: Principal) -> Transaction:
    return _simple_transition(transaction_id, principal, "resubmit")


def delete_draft(transaction_id: int, principal: Principal) -> None:
    """Hard-delete a draft. A draft purchase takes its linked inbound with it."""
    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        _require_owner_or_admin(transaction, principal)
        lifecycle_service.require_transition(transaction, "delete")

        if transaction.type == "purchase":
            inbound = approval_handlers.find_linked_inbound(transaction.id)
            if inbound is not None:
                db.session.delete(inbound)
                db.session.flush()

        db.session.delete(transaction)
        db.session.flush()
        logger.info("Deleted draft transaction %s by user %s", transaction_id, principal.id)

    run_in_transaction(_op)


# =============================================================================
# Line-item editing
# =============================================================================

def update_inbound(transaction_id: int, principal: Principal, data: Mapping[str, Any]) -> Transaction:
    """
    Record received quantities (per product) and the note of an inbound.

    Body: {"products": [{"productId": 1, "receivedQuantity": 8}], "note": "..."}
    """
    if not isinstance(data, Mapping):
        raise InvalidInputError("Request body must be an object")

    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        _require_owner_or_admin(transaction, principal)
        if transaction.type != "inbound":
            raise InvalidInputError("Not an inbound transaction")
        lifecycle_service.require_editable(transaction)

        updates = data.get("products")
        if updates is not None:
            if not isinstance(updates, list):
                raise InvalidInputError("products must be a list")
            by_product = {line.product_id: line for line in transaction.lines}
            for update in updates:
                if not isinstance(update, Mapping):
                    raise InvalidInputError("Each product update must be an object")
                product_id = coerce_id(update.get("productId"), "productId")
                line = by_product.get(product_id)
                if line is None:
                    raise InvalidInputError(f"Product {product_id} is not on this inbound")
                line.received_quantity = coerce_quantity(
                    update.get("receivedQuantity", 0), "receivedQuantity", allow_zero=True
                )

        note = data.get("note")
        if isinstance(note, str):
            transaction.note = note

        db.session.flush()
        return transaction

    return run_in_transaction(_op)


def update_purchase(transaction_id: int, principal: Principal, data: Mapping[str, Any]) -> Transaction:
    """
    Edit a draft or pending purchase.

    "products" replaces every line (snapshots rebuilt from the catalog);
    "lineUpdates" edits quantity / unitPrice / discountPercent of existing
    lines by id. toLocationId and companyId are re-validated as on create.
    """
    if not isinstance(data, Mapping):
        raise InvalidInputError("Request body must be an object")

    def _op():
        transaction = directory_service.find_transaction(transaction_id, lock=True)
        _require_owner_or_admin(transaction, principal)
        if transaction.type != "purchase":
            raise InvalidInputError("Not a purchase transaction")
        lifecycle_service.require_editable(transaction)

        if "products" in data:
            transaction.lines = pricing_service.build_lines("purchase", data["products"])

        line_updates = data.get("lineUpdates")
        if line_updates is not None:
            if not isinstance(line_updates, list):
                raise InvalidInputError("lineUpdates must be a list")
            by_id = {line.id: line for line in transaction.lines}
            for update in line_updates:
                if not isinstance(update, Mapping):
                    raise InvalidInputError("Each line update must be an object")
                line_id = coerce_id(update.get("lineId"), "lineId")
                line = by_id.get(line_id)
                if line is None:
                    raise NotFoundError(f"Line {line_id} is not on this purchase")
                pricing_service.reprice_line(
                    line,
                    quantity=update.get("quantity"),
                    unit_price=update.get("unitPrice"),
                    discount_percent=update.get("discountPercent"),
                )

        if data.get("toLocationId") not in (None, ""):
            location = directory_service.find_location(coerce_id(data["toLocationId"], "toLocationId"))
            transaction.to_location_id = location.id

        if data.get("companyId") not in (None, ""):
            company = directory_service.find_company(coerce_id(data["companyId"], "companyId"))
            transaction.company_id = company.id

        if "deliverTo" in data:
            transaction.deliver_to = data.get("deliverTo") or ""
        if "deliveryDate" in data:
            transaction.delivery_date = _parse_delivery_date(data.get("deliveryDate"))
        if isinstance(data.get("note"), str):
            transaction.note = data["note"]

        db.session.flush()
        logger.info("Updated purchase %s by user %s", transaction.id, principal.id)
        return transaction

    return run_in_transaction(_op)

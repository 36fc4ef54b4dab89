# backend/stockroom/routes/transactions.py
"""
Transaction API routes.

Services own the unit of work (commit or rollback); routes translate
domain errors into status codes:
    400 invalid input / invalid state / insufficient stock
    404 missing transaction or reference
    409 unique constraint conflict
    500 anything unexpected (already rolled back)
"""
from flask import Blueprint, request, jsonify, g, current_app
from stockroom.extensions import db
from stockroom.decorators import require_auth, require_admin
from stockroom.services import transaction_service, query_service
from stockroom.validation import TransactionError, InsufficientStockError


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _error_response(exc: TransactionError):
    db.session.rollback()
    body = {"error": str(exc)}
    if isinstance(exc, InsufficientStockError):
        body["productId"] = exc.product_id
        body["available"] = exc.available
        body["requested"] = exc.requested
    return jsonify(body), exc.status_code


def _unexpected(message: str):
    db.session.rollback()
    current_app.logger.exception(message)
    return jsonify({"error": "Internal server error"}), 500


@transactions_bp.route("", methods=["POST"])
@require_auth
def create_transaction():
    """
    Create a draft or pending transaction.

    Request body:
    {
        "type": "purchase" | "sale" | "inbound" | "outbound" | "transfer",
        "companyId": int (sale, purchase),
        "fromLocationId": int (sale, outbound, transfer),
        "toLocationId": int (inbound, transfer, purchase),
        "products": [{"productId": int, "quantity": int,
                      "unitPrice": num, "customPrice": num, "discountPercent": num}],
        "linkedTransactionId": int (optional),
        "deliverTo": str, "deliveryDate": ISO date, "note": str,
        "status": "draft" | "pending" (default pending)
    }

    Returns:
        201: Transaction created
        400: Invalid request
        404: Referenced record not found
    """
    data = request.get_json(silent=True) or {}

    try:
        transaction = transaction_service.create_transaction(g.principal, data)
        return jsonify(query_service.serialize(transaction, g.principal)), 201

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to create transaction")


@transactions_bp.route("", methods=["GET"])
@require_auth
def list_transactions():
    """
    List transactions, newest first.

    Query parameters:
        status, type: exact filters
        fromDate, toDate: createdAt range (both required to apply)
        page, pageSize: pagination

    Non-admins only see their own transactions, without cost/selling prices.
    """
    try:
        filters = query_service.parse_filters(request.args)
        page = query_service.list_transactions(g.principal, filters)
        return jsonify(page.to_dict()), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to list transactions")


@transactions_bp.route("/<int:transaction_id>", methods=["GET"])
@require_auth
def get_transaction(transaction_id: int):
    try:
        return jsonify(query_service.get_transaction(transaction_id, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to load transaction")


@transactions_bp.route("/<int:transaction_id>/inbound", methods=["PUT"])
@require_auth
def update_inbound(transaction_id: int):
    """
    Record received quantities on a pending/draft inbound.

    Request body:
    {
        "products": [{"productId": int, "receivedQuantity": int}],
        "note": str (optional)
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        transaction = transaction_service.update_inbound(transaction_id, g.principal, data)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to update inbound transaction")


@transactions_bp.route("/<int:transaction_id>/purchase", methods=["PUT"])
@require_auth
def update_purchase(transaction_id: int):
    """
    Edit a pending/draft purchase.

    Request body (all optional):
    {
        "products": [...] (replaces every line),
        "lineUpdates": [{"lineId": int, "quantity": int, "unitPrice": num, "discountPercent": num}],
        "toLocationId": int, "companyId": int,
        "deliverTo": str, "deliveryDate": ISO date, "note": str
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        transaction = transaction_service.update_purchase(transaction_id, g.principal, data)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to update purchase transaction")


@transactions_bp.route("/<int:transaction_id>/approve", methods=["PUT"])
@require_auth
@require_admin
def approve_transaction(transaction_id: int):
    """
    Approve a pending transaction and apply its stock effect.

    Returns:
        200: Approved
        400: Not pending / insufficient stock
        403: Not an admin
        404: Transaction not found
    """
    try:
        transaction = transaction_service.approve_transaction(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to approve transaction")


@transactions_bp.route("/<int:transaction_id>/reject", methods=["PUT"])
@require_auth
@require_admin
def reject_transaction(transaction_id: int):
    try:
        transaction = transaction_service.reject_transaction(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to reject transaction")


@transactions_bp.route("/<int:transaction_id>/cancel", methods=["PUT"])
@require_auth
@require_admin
def cancel_transaction(transaction_id: int):
    """
    Cancel an approved purchase, reversing and deleting its linked inbound.
    """
    try:
        transaction = transaction_service.cancel_transaction(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to cancel transaction")


@transactions_bp.route("/<int:transaction_id>/draft", methods=["DELETE"])
@require_auth
def delete_draft(transaction_id: int):
    try:
        transaction_service.delete_draft(transaction_id, g.principal)
        return jsonify({"deleted": transaction_id}), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to delete draft transaction")


@transactions_bp.route("/<int:transaction_id>/submit", methods=["PUT"])
@require_auth
def submit_draft(transaction_id: int):
    try:
        transaction = transaction_service.submit_draft(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to submit draft transaction")


@transactions_bp.route("/<int:transaction_id>/move-to-draft", methods=["PUT"])
@require_auth
def move_to_draft(transaction_id: int):
    try:
        transaction = transaction_service.move_to_draft(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to move transaction to draft")


@transactions_bp.route("/<int:transaction_id>/resubmit", methods=["PUT"])
@require_auth
def resubmit_transaction(transaction_id: int):
    try:
        transaction = transaction_service.resubmit_transaction(transaction_id, g.principal)
        return jsonify(query_service.serialize(transaction, g.principal)), 200

    except TransactionError as e:
        return _error_response(e)
    except Exception:
        return _unexpected("Failed to resubmit transaction")

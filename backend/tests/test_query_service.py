"""
Transaction reads: visibility, redaction, filters and pagination.
"""

from datetime import timedelta

import pytest

from stockroom.models import Transaction
from stockroom.services import query_service, transaction_service
from stockroom.services.query_service import TransactionFilters
from stockroom.validation import InvalidInputError, NotFoundError


def _outbound(principal, location, product, qty=1):
    return transaction_service.create_transaction(principal, {
        "type": "outbound",
        "fromLocationId": location.id,
        "products": [{"productId": product.id, "quantity": qty}],
    })


def _purchase(principal, supplier, location, product):
    return transaction_service.create_transaction(principal, {
        "type": "purchase",
        "companyId": supplier.id,
        "toLocationId": location.id,
        "products": [{"productId": product.id, "quantity": 2, "unitPrice": 4}],
    })


class TestRedaction:

    def test_admin_sees_prices(self, db_session, admin, supplier, hq, widget):
        txn = _purchase(admin, supplier, hq, widget)
        body = query_service.get_transaction(txn.id, admin)
        line = body["products"][0]
        assert line["costPriceAtTransaction"] == 5.0
        assert line["sellingPrice"] == 8.0
        assert line["unitPrice"] == 4.0

    def test_non_admin_never_sees_cost_or_selling_price(self, db_session, requester, supplier, hq, widget):
        txn = _purchase(requester, supplier, hq, widget)
        body = query_service.get_transaction(txn.id, requester)
        line = body["products"][0]
        assert "costPriceAtTransaction" not in line
        assert "sellingPrice" not in line
        assert line["quantity"] == 2
        assert line["unitPrice"] == 4.0

    def test_list_is_redacted_too(self, db_session, requester, hq, widget):
        _outbound(requester, hq, widget)
        page = query_service.list_transactions(requester, TransactionFilters())
        for item in page.items:
            for line in item["products"]:
                assert "costPriceAtTransaction" not in line
                assert "sellingPrice" not in line


class TestVisibility:

    def test_non_admin_only_sees_own(self, db_session, admin, requester, hq, widget):
        _outbound(admin, hq, widget)
        mine = _outbound(requester, hq, widget)
        page = query_service.list_transactions(requester, TransactionFilters())
        assert page.total == 1
        assert [t["id"] for t in page.items] == [mine.id]

    def test_admin_sees_everything(self, db_session, admin, requester, hq, widget):
        _outbound(admin, hq, widget)
        _outbound(requester, hq, widget)
        assert query_service.list_transactions(admin, TransactionFilters()).total == 2

    def test_other_users_transaction_is_not_found(self, db_session, admin, requester, hq, widget):
        theirs = _outbound(admin, hq, widget)
        with pytest.raises(NotFoundError):
            query_service.get_transaction(theirs.id, requester)

    def test_missing_transaction(self, db_session, admin):
        with pytest.raises(NotFoundError):
            query_service.get_transaction(4040, admin)


class TestFilters:

    def test_status_and_type(self, db_session, admin, supplier, hq, widget):
        approved = _outbound(admin, hq, widget)
        transaction_service.approve_transaction(approved.id, admin)
        _outbound(admin, hq, widget)
        _purchase(admin, supplier, hq, widget)

        page = query_service.list_transactions(admin, TransactionFilters(status="approved"))
        assert [t["id"] for t in page.items] == [approved.id]

        page = query_service.list_transactions(admin, TransactionFilters(type="purchase"))
        assert page.total == 1
        assert page.items[0]["type"] == "purchase"

    def test_date_range_needs_both_ends(self, db_session, admin, hq, widget):
        old = _outbound(admin, hq, widget)
        old.created_at = old.created_at - timedelta(days=30)
        db_session.commit()
        recent = _outbound(admin, hq, widget)

        start = recent.created_at - timedelta(days=1)
        end = recent.created_at + timedelta(days=1)
        page = query_service.list_transactions(admin, TransactionFilters(from_date=start, to_date=end))
        assert [t["id"] for t in page.items] == [recent.id]

        page = query_service.list_transactions(admin, TransactionFilters(from_date=start))
        assert page.total == 2

    def test_newest_first_and_paginated(self, db_session, admin, hq, widget):
        ids = [_outbound(admin, hq, widget).id for _ in range(5)]
        page = query_service.list_transactions(admin, TransactionFilters(page=1, page_size=2))
        assert page.total == 5
        assert [t["id"] for t in page.items] == [ids[4], ids[3]]

        page = query_service.list_transactions(admin, TransactionFilters(page=3, page_size=2))
        assert [t["id"] for t in page.items] == [ids[0]]
        assert page.to_dict()["pageSize"] == 2


class TestParseFilters:

    def test_defaults(self, app):
        filters = query_service.parse_filters({})
        assert filters.page == 1
        assert filters.page_size == app.config["DEFAULT_PAGE_SIZE"]
        assert filters.status is None

    def test_page_size_is_capped(self, app):
        filters = query_service.parse_filters({"pageSize": "100000"})
        assert filters.page_size == app.config["MAX_PAGE_SIZE"]

    def test_dates(self, app):
        filters = query_service.parse_filters({"fromDate": "2024-01-01", "toDate": "2024-01-31T23:59:59Z"})
        assert filters.from_date.day == 1
        assert filters.to_date.hour == 23

    @pytest.mark.parametrize("args", [
        {"status": "done"},
        {"type": "gift"},
        {"fromDate": "yesterday"},
        {"page": "0"},
        {"pageSize": "many"},
    ])
    def test_invalid(self, app, args):
        with pytest.raises(InvalidInputError):
            query_service.parse_filters(args)


class TestSerialization:

    def test_wire_shape(self, db_session, admin, supplier, hq, widget):
        purchase = _purchase(admin, supplier, hq, widget)
        transaction_service.approve_transaction(purchase.id, admin)
        inbound = db_session.query(Transaction).filter_by(linked_transaction_id=purchase.id).one()

        body = query_service.get_transaction(inbound.id, admin)
        assert body["type"] == "inbound"
        assert body["poNumber"] is None
        assert body["linkedTransaction"]["id"] == purchase.id
        assert body["linkedTransaction"]["poNumber"] == purchase.po_number
        assert body["createdAt"].endswith("Z")
        assert body["products"][0]["expectedQuantity"] == 2
        assert body["products"][0]["receivedQuantity"] == 0
        assert body["products"][0]["itemCode"] == "WID-001"

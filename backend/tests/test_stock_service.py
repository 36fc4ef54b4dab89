"""
Stock ledger primitives: decrements never go negative, destination rows
are provisioned by item code.
"""

import pytest

from stockroom.models import Product
from stockroom.services import directory_service, stock_service
from stockroom.validation import InsufficientStockError, InvalidInputError


class TestDecreaseStock:

    def test_decrements_on_hand(self, db_session, widget):
        delta = stock_service.decrease_stock(widget.id, 7)
        assert delta.delta == -7
        assert delta.stock_after == 13
        assert widget.stock == 13

    def test_refuses_to_go_negative(self, db_session, gadget):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.decrease_stock(gadget.id, 6)
        assert exc_info.value.product_id == gadget.id
        assert exc_info.value.available == 5
        assert exc_info.value.requested == 6
        assert "Gadget" in str(exc_info.value)
        assert gadget.stock == 5

    def test_can_empty_a_row(self, db_session, gadget):
        stock_service.decrease_stock(gadget.id, 5)
        assert gadget.stock == 0

    def test_rejects_negative_quantity(self, db_session, widget):
        with pytest.raises(InvalidInputError):
            stock_service.decrease_stock(widget.id, -1)


def test_update_product_stock_sets_on_hand(db_session, widget):
    directory_service.update_product_stock(widget.id, 42)
    db_session.commit()
    assert widget.stock == 42
    assert widget.version_id == 2


def test_increase_writes_through_directory(db_session, widget, monkeypatch):
    writes = []
    real_update = directory_service.update_product_stock

    def recording_update(product_id, new_stock):
        writes.append((product_id, new_stock))
        real_update(product_id, new_stock)

    monkeypatch.setattr(directory_service, "update_product_stock", recording_update)
    stock_service.increase_stock(widget.id, 5)
    assert writes == [(widget.id, 25)]
    assert widget.stock == 25


class TestEnsureProductAtLocation:

    def test_creates_zero_stock_copy(self, db_session, widget, warehouse):
        created = stock_service.ensure_product_at_location(widget, warehouse.id)
        assert created.id != widget.id
        assert created.location_id == warehouse.id
        assert created.item_code == widget.item_code
        assert created.name == widget.name
        assert created.cost_price == widget.cost_price
        assert created.category_id == widget.category_id
        assert created.stock == 0

    def test_reuses_existing_row(self, db_session, widget, warehouse):
        first = stock_service.ensure_product_at_location(widget, warehouse.id)
        second = stock_service.ensure_product_at_location(widget, warehouse.id)
        assert first.id == second.id
        count = db_session.query(Product).filter_by(item_code="WID-001").count()
        assert count == 2

    def test_same_location_returns_source(self, db_session, widget, hq):
        assert stock_service.ensure_product_at_location(widget, hq.id) is widget


class TestLocationScopedMoves:

    def test_increase_provisions_destination(self, db_session, widget, warehouse):
        delta = stock_service.increase_stock_at_location(widget, warehouse.id, 4)
        target = db_session.query(Product).filter_by(item_code="WID-001", location_id=warehouse.id).one()
        assert target.stock == 4
        assert delta.product_id == target.id
        assert widget.stock == 20

    def test_decrease_where_item_not_stocked(self, db_session, widget, warehouse):
        with pytest.raises(InsufficientStockError) as exc_info:
            stock_service.decrease_stock_at_location(widget, warehouse.id, 1)
        assert exc_info.value.available == 0

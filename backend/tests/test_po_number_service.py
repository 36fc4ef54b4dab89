"""PO number format and per-year sequencing."""

import re

import pytest

from stockroom.models import Transaction
from stockroom.services import po_number_service
from stockroom.time_utils import current_year
from stockroom.validation import ConflictError


def _purchase(session, user, po_number):
    txn = Transaction(type="purchase", po_number=po_number, requested_by_user_id=user.id, status="pending")
    session.add(txn)
    session.commit()
    return txn


class TestNextPoNumber:

    def test_first_of_year(self, db_session):
        assert po_number_service.next_po_number(2031) == "2031-00001"

    def test_increments_latest(self, db_session, admin_user):
        _purchase(db_session, admin_user, "2031-00041")
        assert po_number_service.next_po_number(2031) == "2031-00042"

    def test_other_years_do_not_count(self, db_session, admin_user):
        _purchase(db_session, admin_user, "2030-00900")
        assert po_number_service.next_po_number(2031) == "2031-00001"

    def test_unparseable_suffix_restarts(self, db_session, admin_user):
        _purchase(db_session, admin_user, "2031-legacy")
        assert po_number_service.next_po_number(2031) == "2031-00001"

    def test_defaults_to_current_year(self, db_session):
        number = po_number_service.next_po_number()
        assert number.startswith(f"{current_year()}-")
        assert re.match(r"^\d{4}-\d{5}$", number)


class TestAssignPoNumber:

    def test_purchase_gets_number(self, db_session, admin_user):
        txn = Transaction(type="purchase", requested_by_user_id=admin_user.id)
        db_session.add(txn)
        number = po_number_service.assign_po_number(txn)
        assert po_number_service.PO_NUMBER_PATTERN.match(number)
        assert txn.po_number == number

    def test_non_purchase_never_gets_one(self, db_session, admin_user):
        txn = Transaction(type="inbound", po_number="2031-00001", requested_by_user_id=admin_user.id)
        db_session.add(txn)
        assert po_number_service.assign_po_number(txn) is None
        assert txn.po_number is None

    def test_sequential_purchases_are_unique(self, db_session, admin_user):
        numbers = []
        for _ in range(3):
            txn = Transaction(type="purchase", requested_by_user_id=admin_user.id)
            db_session.add(txn)
            numbers.append(po_number_service.assign_po_number(txn))
            db_session.commit()
        assert len(set(numbers)) == 3
        sequences = [int(n.split("-")[1]) for n in numbers]
        assert sequences == [sequences[0], sequences[0] + 1, sequences[0] + 2]

    def test_collision_takes_the_next_free_number(self, db_session, admin_user, monkeypatch):
        taken = _purchase(db_session, admin_user, f"{current_year()}-00007").po_number
        real_next = po_number_service.next_po_number
        calls = []

        def colliding_next(year=None):
            calls.append(year)
            return taken if len(calls) == 1 else real_next(year)

        monkeypatch.setattr(po_number_service, "next_po_number", colliding_next)

        txn = Transaction(type="purchase", requested_by_user_id=admin_user.id)
        db_session.add(txn)
        number = po_number_service.assign_po_number(txn)
        db_session.commit()

        assert len(calls) == 2
        assert number == f"{current_year()}-00008"
        assert txn.po_number == number
        assert db_session.query(Transaction).filter_by(po_number=taken).count() == 1

    def test_gives_up_after_attempts(self, db_session, admin_user, monkeypatch):
        taken = _purchase(db_session, admin_user, f"{current_year()}-00003").po_number
        monkeypatch.setattr(po_number_service, "next_po_number", lambda year=None: taken)

        txn = Transaction(type="purchase", requested_by_user_id=admin_user.id)
        db_session.add(txn)
        with pytest.raises(ConflictError):
            po_number_service.assign_po_number(txn, attempts=2)

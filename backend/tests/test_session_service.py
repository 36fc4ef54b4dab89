"""
Bearer session tokens and principal resolution.
"""

from datetime import timedelta

import pytest

from stockroom.models import SessionToken
from stockroom.services import session_service
from stockroom.validation import NotFoundError


def test_token_resolves_to_principal(db_session, admin_user):
    _, token = session_service.create_session(admin_user.id)
    db_session.commit()

    principal = session_service.validate_session(token)
    assert principal.id == admin_user.id
    assert principal.is_admin


def test_only_hash_is_stored(db_session, plain_user):
    record, token = session_service.create_session(plain_user.id)
    db_session.commit()
    assert record.token_hash == session_service.hash_token(token)
    assert db_session.query(SessionToken).filter_by(token_hash=token).first() is None


def test_expired_token(db_session, plain_user):
    _, token = session_service.create_session(plain_user.id, ttl=timedelta(seconds=-1))
    db_session.commit()
    assert session_service.validate_session(token) is None


def test_revoked_token(db_session, plain_user):
    _, token = session_service.create_session(plain_user.id)
    db_session.commit()
    assert session_service.revoke_session(token) is True
    db_session.commit()
    assert session_service.validate_session(token) is None
    assert session_service.revoke_session(token) is False


def test_inactive_user_cannot_authenticate(db_session, plain_user):
    _, token = session_service.create_session(plain_user.id)
    plain_user.is_active = False
    db_session.commit()
    assert session_service.validate_session(token) is None
    with pytest.raises(NotFoundError):
        session_service.create_session(plain_user.id)


def test_unknown_token(db_session):
    assert session_service.validate_session("") is None
    assert session_service.validate_session("nope") is None

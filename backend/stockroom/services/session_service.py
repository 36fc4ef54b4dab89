# Overview: Bearer session tokens resolving to the acting principal.

"""
Session Token Service

Tokens are random 32-byte hex strings handed to the client once; only
their SHA-256 hash is stored. validate_session turns a presented token
into a Principal that is passed explicitly into every engine operation.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from ..validation import NotFoundError
from stockroom.time_utils import utcnow


ROLE_ADMIN = "admin"
ROLE_USER = "user"


@dataclass(frozen=True)
class Principal:
    """Authenticated caller: who is acting, and whether they may see margins and approve."""
    id: int
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @classmethod
    def for_user(cls, user: User) -> "Principal":
        return cls(id=user.id, role=user.role)


def generate_token() -> str:
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_session(user_id: int, *, ttl: timedelta | None = None) -> tuple[SessionToken, str]:
    """
    Create a session for an active user.

    Returns (session_record, plaintext_token). Caller commits.
    """
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise NotFoundError(f"User not found: {user_id}")

    if ttl is None:
        ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", 24))

    plaintext = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(plaintext),
        created_at=now,
        expires_at=now + ttl,
    )
    db.session.add(session)
    db.session.flush()
    return session, plaintext


def validate_session(token: str) -> Principal | None:
    if not token:
        return None
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return None
    if session.expires_at <= utcnow():
        return None
    user = session.user
    if user is None or not user.is_active:
        return None
    return Principal.for_user(user)


def revoke_session(token: str) -> bool:
    session = db.session.query(SessionToken).filter_by(token_hash=hash_token(token)).first()
    if session is None or session.is_revoked:
        return False
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.flush()
    return True

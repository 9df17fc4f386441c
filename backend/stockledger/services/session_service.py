# Overview: Bearer token sessions; issue, resolve and revoke.

"""
Session Tokens

- The client holds a random 64-hex-char token; the database holds only
  its SHA-256 hash.
- Sessions expire SESSION_TTL_HOURS after login (absolute, no sliding).
- Logout and account deactivation revoke the session.
"""

import hashlib
import secrets
from dataclasses import dataclass, field
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from . import permission_service
from stockledger.time_utils import normalize_utc, utcnow


DEFAULT_SESSION_TTL_HOURS = 24
TOKEN_BYTES = 32


@dataclass
class SessionContext:
    """Who is calling, through which session, with which permission names."""
    user: User
    session: SessionToken
    permissions: set[str] = field(default_factory=set)


def generate_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy, so a fast hash is enough here
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _active_session(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter_by(token_hash=hash_token(token), is_revoked=False)
        .first()
    )


def _revoke(session: SessionToken) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    db.session.commit()


def create_session(user_id: int) -> tuple[SessionToken, str]:
    """
    Open a session for an active user.

    Returns (session_row, plaintext_token); the plaintext is never stored.
    """
    user = db.session.get(User, user_id)
    if user is None:
        raise ValueError("User not found")
    if not user.is_active:
        raise ValueError("User account is deactivated")

    token = generate_token()
    issued_at = utcnow()
    ttl = timedelta(hours=current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS))

    session = SessionToken(
        user_id=user.id,
        token_hash=hash_token(token),
        created_at=issued_at,
        expires_at=issued_at + ttl,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to a SessionContext, or None when the token is
    unknown, revoked or expired. A session whose user has been deactivated
    is revoked on sight.
    """
    session = _active_session(token)
    if session is None:
        return None

    if normalize_utc(session.expires_at) < utcnow():
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session)
        return None

    return SessionContext(
        user=user,
        session=session,
        permissions=permission_service.get_user_permissions(user.id),
    )


def revoke_session(token: str) -> bool:
    """Logout. False when there was no live session for the token."""
    session = _active_session(token)
    if session is None:
        return False
    _revoke(session)
    return True

# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

WHY: Secure session management with automatic timeout and revocation.
Tokens are cryptographically secure, hashed in database, and time-limited.

SECURITY FEATURES:
- Cryptographically secure random tokens (32 bytes)
- Tokens hashed with SHA-256 before storage (fast, one-way)
- Absolute timeout from SESSION_TTL_HOURS
- Revocable on logout
"""

import secrets
import hashlib
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from bizzflow.time_utils import utcnow


DEFAULT_SESSION_TTL_HOURS = 24


def generate_token() -> str:
    """
    Generate cryptographically secure random token.

    Returns 64-character hex string (32 bytes of entropy).
    This is the plaintext token sent to client (never stored).
    """
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Hash token for database storage using SHA-256."""
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def _session_ttl() -> timedelta:
    hours = current_app.config.get("SESSION_TTL_HOURS", DEFAULT_SESSION_TTL_HOURS)
    return timedelta(hours=hours)


def create_session(
    user_id: int,
    user_agent: str | None = None,
    ip_address: str | None = None
) -> tuple[SessionToken, str]:
    """
    Create new session token for user.

    Returns (session_record, plaintext_token).
    Client receives plaintext_token, database stores only the hash.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _session_ttl(),
        user_agent=user_agent,
        ip_address=ip_address,
        is_revoked=False
    )

    db.session.add(session)
    db.session.commit()

    return session, plaintext_token


def validate_session(token: str) -> User | None:
    """
    Validate session token and return its User if valid.

    Returns None if the token is unknown, expired or revoked, or if the
    user account is deactivated (the session is revoked in that case).
    Updates last_used_at on successful validation.
    """
    now = utcnow()

    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return None

    if session.expires_at < now:
        return None

    user = session.user
    if not user or not user.is_active:
        session.is_revoked = True
        session.revoked_at = now
        session.revoked_reason = "User account deactivated"
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return user


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """
    Revoke session token.

    Returns True if session was revoked, False if not found.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False
    ).first()

    if not session:
        return False

    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason

    db.session.commit()
    return True

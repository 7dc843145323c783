# Overview: Service-layer operations for session; encapsulates business logic and database work.

"""
Session Token Management Service

Tokens are cryptographically secure, hashed in the database and
time-limited.

MULTI-TENANT: Sessions capture supermarket_id at creation time. This
establishes the tenant context for every authenticated request without
repeated lookups, and it cannot change for the session lifetime.

SECURITY FEATURES:
- 32 bytes of randomness per token, only the SHA-256 is stored
- 24-hour absolute timeout (SESSION_ABSOLUTE_TIMEOUT)
- 2-hour idle timeout (SESSION_IDLE_TIMEOUT)
- Revocable on logout, shift close or operator deletion
"""

import logging
import secrets
import hashlib
from dataclasses import dataclass
from datetime import timedelta

from ..extensions import db
from ..models import SessionToken, User, Role
from mercado.time_utils import utcnow

logger = logging.getLogger(__name__)

SESSION_ABSOLUTE_TIMEOUT = timedelta(hours=24)
SESSION_IDLE_TIMEOUT = timedelta(hours=2)


@dataclass
class SessionContext:
    """
    Session context returned by validate_session.

    Role is read from the user row; tenant context from the session row.
    """
    user: User
    session: SessionToken
    supermarket_id: int

    @property
    def role(self) -> Role:
        return self.user.role


def generate_token() -> str:
    """64-character hex string, the plaintext sent to the client (never stored)."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode('utf-8')).hexdigest()


def create_session(
    user: User,
    user_agent: str | None = None,
    ip_address: str | None = None,
    commit: bool = True,
) -> tuple[SessionToken, str]:
    """
    Create a new session token for an active user.

    Returns (session_record, plaintext_token). Raises ValueError when the
    user is inactive or has no supermarket.
    """
    if not user.is_active:
        raise ValueError("User is not active")
    if not user.supermarket_id:
        raise ValueError("User must belong to a supermarket")

    plaintext_token = generate_token()
    now = utcnow()

    session = SessionToken(
        user_id=user.id,
        supermarket_id=user.supermarket_id,
        token_hash=hash_token(plaintext_token),
        created_at=now,
        last_used_at=now,
        expires_at=now + SESSION_ABSOLUTE_TIMEOUT,
        user_agent=user_agent[:255] if user_agent else None,
        ip_address=ip_address,
        is_revoked=False,
    )

    db.session.add(session)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return session, plaintext_token


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def validate_session(token: str) -> SessionContext | None:
    """
    Validate a bearer token and return its SessionContext.

    Returns None if the token is unknown, revoked, expired or idle, or if the
    user was deactivated. Idle and deactivated sessions are revoked on the
    spot. Updates last_used_at on success.
    """
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return None

    now = utcnow()

    if session.expires_at < now:
        return None

    if now - session.last_used_at > SESSION_IDLE_TIMEOUT:
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if not user or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()

    return SessionContext(
        user=user,
        session=session,
        supermarket_id=session.supermarket_id,
    )


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one session. Returns False if it was not found or already revoked."""
    session = db.session.query(SessionToken).filter_by(
        token_hash=hash_token(token),
        is_revoked=False,
    ).first()

    if not session:
        return False

    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: int, reason: str = "Revoke all sessions", commit: bool = True) -> int:
    """Revoke every active session of a user. Returns the count revoked."""
    sessions = db.session.query(SessionToken).filter_by(
        user_id=user_id,
        is_revoked=False,
    ).all()

    for session in sessions:
        _revoke(session, reason)

    if commit:
        db.session.commit()
    if sessions:
        logger.info("Revoked %d session(s) for user %s: %s", len(sessions), user_id, reason)
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete expired or revoked sessions older than 30 days."""
    cutoff = utcnow() - timedelta(days=30)

    deleted = db.session.query(SessionToken).filter(
        db.or_(
            SessionToken.expires_at < utcnow(),
            SessionToken.is_revoked.is_(True),
        ),
        SessionToken.created_at < cutoff,
    ).delete(synchronize_session=False)

    db.session.commit()
    return deleted

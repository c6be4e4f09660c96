# Overview: Bearer-token sessions for staff: issue, validate, revoke.

"""
Staff Sessions

WHY: The counter app keeps one login open for a whole shift, but a till left
unattended should lock itself. Every token therefore has a hard lifetime
(SESSION_LIFETIME_HOURS) and an inactivity limit (SESSION_IDLE_MINUTES),
both read from app config.

Only the SHA-256 digest of a token is stored. The plaintext goes to the
client once, at login.
"""

import hashlib
import secrets
from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import SessionToken, User
from duka.time_utils import utcnow

DEFAULT_LIFETIME = timedelta(hours=24)
DEFAULT_IDLE_LIMIT = timedelta(hours=2)

# Revoked or expired rows are kept this long for the audit trail
STALE_SESSION_RETENTION = timedelta(days=30)


@dataclass
class SessionContext:
    user: User
    session: SessionToken


def _lifetime() -> timedelta:
    hours = current_app.config.get("SESSION_LIFETIME_HOURS")
    return timedelta(hours=hours) if hours else DEFAULT_LIFETIME


def _idle_limit() -> timedelta:
    minutes = current_app.config.get("SESSION_IDLE_MINUTES")
    return timedelta(minutes=minutes) if minutes else DEFAULT_IDLE_LIMIT


def generate_token() -> str:
    """64 hex chars from the OS CSPRNG; never persisted."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    # Tokens carry 256 bits of entropy, so a fast digest is enough here
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _find_active(token: str) -> SessionToken | None:
    return (
        db.session.query(SessionToken)
        .filter(SessionToken.token_hash == hash_token(token), SessionToken.is_revoked.is_(False))
        .first()
    )


def _revoke(session: SessionToken, reason: str) -> None:
    session.is_revoked = True
    session.revoked_at = utcnow()
    session.revoked_reason = reason


def create_session(
    user_id: str,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> tuple[SessionToken, str]:
    """
    Open a session for a user.

    Returns (session row, plaintext token). The caller hands the token to
    the client; it cannot be recovered later.
    """
    if db.session.get(User, user_id) is None:
        raise ValueError("User not found")

    token = generate_token()
    now = utcnow()
    session = SessionToken(
        user_id=user_id,
        token_hash=hash_token(token),
        created_at=now,
        last_used_at=now,
        expires_at=now + _lifetime(),
        user_agent=(user_agent or "")[:500] or None,
        ip_address=ip_address,
        is_revoked=False,
    )
    db.session.add(session)
    db.session.commit()
    return session, token


def validate_session(token: str) -> SessionContext | None:
    """
    Resolve a bearer token to its user, or None.

    A token idle past the limit, or one whose user has been deactivated, is
    revoked on the spot. A valid token has last_used_at bumped.
    """
    session = _find_active(token)
    if session is None:
        return None

    now = utcnow()
    if session.expires_at < now:
        return None

    if now - session.last_used_at > _idle_limit():
        _revoke(session, "Idle timeout")
        db.session.commit()
        return None

    user = session.user
    if user is None or not user.is_active:
        _revoke(session, "User account deactivated")
        db.session.commit()
        return None

    session.last_used_at = now
    db.session.commit()
    return SessionContext(user=user, session=session)


def revoke_session(token: str, reason: str = "User logout") -> bool:
    """Revoke one token. False if it was unknown or already revoked."""
    session = _find_active(token)
    if session is None:
        return False
    _revoke(session, reason)
    db.session.commit()
    return True


def revoke_all_user_sessions(user_id: str, reason: str = "Revoke all sessions") -> int:
    sessions = (
        db.session.query(SessionToken)
        .filter(SessionToken.user_id == user_id, SessionToken.is_revoked.is_(False))
        .all()
    )
    for session in sessions:
        _revoke(session, reason)
    db.session.commit()
    return len(sessions)


def cleanup_expired_sessions() -> int:
    """Delete dead sessions (expired or revoked) older than the retention window."""
    now = utcnow()
    deleted = (
        db.session.query(SessionToken)
        .filter(
            db.or_(SessionToken.expires_at < now, SessionToken.is_revoked.is_(True)),
            SessionToken.created_at < now - STALE_SESSION_RETENTION,
        )
        .delete(synchronize_session=False)
    )
    db.session.commit()
    current_app.logger.info("Removed %s stale session(s)", deleted)
    return deleted

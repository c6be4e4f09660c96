# Overview: Password hashing, login and staff account management.

"""
Authentication Service

WHY: Every sale, payment and expense records who made it, so each member of
staff has their own account. Passwords are bcrypt-hashed (cost from
BCRYPT_LOG_ROUNDS) and must pass the strength rules below before hashing.
Session tokens live in session_service.
"""

import re

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User
from ..models.auth import ROLES
from duka.errors import NotFoundError
from duka.time_utils import utcnow
from duka.validation import ValidationError

MIN_PASSWORD_LENGTH = 8

# (pattern, what is missing)
PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "an uppercase letter"),
    (re.compile(r"[a-z]"), "a lowercase letter"),
    (re.compile(r"\d"), "a digit"),
    (re.compile(r"[^A-Za-z0-9]"), "a special character"),
)


class PasswordValidationError(ValidationError):
    """Password too weak to store."""


def validate_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    for pattern, missing in PASSWORD_RULES:
        if not pattern.search(password):
            raise PasswordValidationError(f"Password must contain {missing}")


def hash_password(password: str) -> str:
    """Strength-check then bcrypt-hash; returns the hash as text for the DB column."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=current_app.config.get("BCRYPT_LOG_ROUNDS", 12))
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in the database
        return False


def _validate_role(role: str) -> str:
    role = (role or "").strip().lower()
    if role not in ROLES:
        raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
    return role


def create_user(username: str, email: str, password: str, role: str = "cashier") -> User:
    """
    Add a staff account. Email is stored lowercased.

    Raises:
        ValidationError: missing or duplicate username/email, unknown role
        PasswordValidationError: weak password
    """
    username = (username or "").strip()
    email = (email or "").strip().lower()
    if not username or not email:
        raise ValidationError("username and email are required")
    role = _validate_role(role)

    existing = db.session.query(User).filter(
        db.or_(User.username == username, User.email == email)
    ).first()
    if existing:
        raise ValidationError("Username or email already exists")

    user = User(
        username=username,
        email=email,
        password_hash=hash_password(password),
        role=role,
    )

    db.session.add(user)
    db.session.commit()
    current_app.logger.info("User created id=%s username=%s role=%s", user.id, user.username, user.role)
    return user


def update_user(user_id: str, *, role: str | None = None, is_active: bool | None = None,
                email: str | None = None, password: str | None = None) -> User:
    """
    Change role, active flag, email or password.

    Everything is checked before anything is written. Deactivating an account
    or resetting its password logs it out everywhere.
    """
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", details={"user_id": user_id})

    new_role = _validate_role(role) if role is not None else None
    if email is not None:
        email = email.strip().lower()
        if not email:
            raise ValidationError("email cannot be blank")
        clash = db.session.query(User.id).filter(User.email == email, User.id != user.id).first()
        if clash:
            raise ValidationError("Username or email already exists")
    new_hash = hash_password(password) if password is not None else None

    if new_role is not None:
        user.role = new_role
    if is_active is not None:
        user.is_active = bool(is_active)
    if email is not None:
        user.email = email
    if new_hash is not None:
        user.password_hash = new_hash
    db.session.commit()
    current_app.logger.info("User updated id=%s role=%s active=%s", user.id, user.role, user.is_active)

    if is_active is False or password is not None:
        from .session_service import revoke_all_user_sessions
        revoke_all_user_sessions(user.id, reason="Account updated")
    return user


def list_users() -> list[User]:
    return db.session.query(User).order_by(User.username.asc()).all()


def authenticate(username: str, password: str) -> User | None:
    """
    Check a login. The identifier may be the username or the email.

    Inactive accounts never authenticate. Stamps last_login_at on success.
    """
    user = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username.lower()),
        User.is_active.is_(True),
    ).first()

    if not user:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None

# Overview: Service-layer operations for auth; encapsulates business logic and database work.

"""
Authentication Service

Every action must be attributable. Uses bcrypt for password hashing.

MULTI-TENANT: Users belong to exactly one supermarket. Email is unique
system-wide (login is by email alone) and compared lower-cased.

FLOWS:
- register: creates Supermarket + OWNER in one transaction
- login: verifies credentials, creates a session token; an OPERATOR login
  also opens a fresh shift seeded with the opening cash
- logout: revokes the session only
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import bcrypt
from flask import current_app

from ..extensions import db
from ..models import User, Role, Supermarket, Shift, THEMES
from ..validation import ValidationError, ConflictError
from mercado.time_utils import utcnow
from . import session_service, shift_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS = "Email ou senha inválidos."


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


class AuthenticationError(Exception):
    """Raised on failed login. The message never says which part mismatched."""
    pass


@dataclass
class LoginResult:
    user: User
    token: str
    shift: Shift | None = None

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "user": self.user.to_dict(),
            "supermarket": self.user.supermarket.to_dict(),
            "shift": self.shift.to_dict() if self.shift else None,
        }


def normalize_email(email) -> str:
    if not isinstance(email, str) or not email.strip():
        raise ValidationError("email is required")
    email = email.strip().lower()
    if "@" not in email or len(email) > 255:
        raise ValidationError("email is invalid")
    return email


def validate_password_strength(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise PasswordValidationError(
            f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt with cost factor 12.

    Password is validated for strength before hashing.
    """
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=12)
    hashed = bcrypt.hashpw(password.encode('utf-8'), salt)
    return hashed.decode('utf-8')


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt check. Malformed hashes never match."""
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode('utf-8'), password_hash.encode('utf-8'))
    except ValueError:
        return False


def _require_name(value, field: str, max_length: int) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value


def email_taken(email: str) -> bool:
    return db.session.query(User.id).filter(User.email == email).first() is not None


def create_user(
    supermarket_id: int,
    name: str,
    email: str,
    password: str,
    role: Role,
    commit: bool = True,
) -> User:
    """
    Create a user with a bcrypt password hash.

    Raises:
        ValidationError: blank name or malformed email
        ConflictError: email already registered (any tenant)
        PasswordValidationError: password shorter than the minimum
    """
    name = _require_name(name, "name", 128)
    email = normalize_email(email)
    if not isinstance(role, Role):
        raise ValidationError("role is invalid")

    if email_taken(email):
        raise ConflictError("Email já cadastrado.")

    user = User(
        supermarket_id=supermarket_id,
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=True,
    )
    db.session.add(user)
    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return user


def register(owner_profile: dict, tenant_profile: dict) -> User:
    """
    Create a Supermarket and its OWNER atomically.

    owner_profile: {"name", "email", "password"}
    tenant_profile: {"name", optional "theme", "cnpj", "ie", "address", "phone", "logo"}

    Nothing is persisted when any check fails.
    """
    owner_profile = owner_profile or {}
    tenant_profile = tenant_profile or {}

    supermarket_name = _require_name(tenant_profile.get("name"), "supermarket name", 255)
    theme = tenant_profile.get("theme") or "light"
    if theme not in THEMES:
        raise ValidationError(f"theme must be one of: {', '.join(THEMES)}")

    # All input checks run before any row is written
    email = normalize_email(owner_profile.get("email"))
    validate_password_strength(owner_profile.get("password"))
    if email_taken(email):
        raise ConflictError("Email já cadastrado.")

    try:
        supermarket = Supermarket(
            name=supermarket_name,
            theme=theme,
            logo=tenant_profile.get("logo"),
            cnpj=tenant_profile.get("cnpj"),
            ie=tenant_profile.get("ie"),
            address=tenant_profile.get("address"),
            phone=tenant_profile.get("phone"),
        )
        db.session.add(supermarket)
        db.session.flush()

        owner = create_user(
            supermarket.id,
            owner_profile.get("name"),
            email,
            owner_profile.get("password"),
            Role.OWNER,
            commit=False,
        )
        supermarket.owner_id = owner.id
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Registered supermarket %s (owner user %s)", supermarket.id, owner.id)
    return owner


def authenticate(email, password) -> User:
    """
    Return the active user matching the credentials.

    Raises AuthenticationError with the same message for unknown email,
    wrong password and inactive account.
    """
    try:
        email = normalize_email(email)
    except ValidationError:
        raise AuthenticationError(INVALID_CREDENTIALS)

    user = db.session.query(User).filter(User.email == email).first()
    if user is None or not user.is_active or not verify_password(password, user.password_hash):
        raise AuthenticationError(INVALID_CREDENTIALS)
    return user


def login(
    email,
    password,
    user_agent: str | None = None,
    ip_address: str | None = None,
) -> LoginResult:
    """
    Authenticate and open a session.

    OWNER: session only.
    OPERATOR: session plus a fresh OPEN shift seeded with OPENING_CASH_CENTS;
    any shift still open at the register is superseded.
    """
    user = authenticate(email, password)

    try:
        user.last_login_at = utcnow()
        _, token = session_service.create_session(
            user, user_agent=user_agent, ip_address=ip_address, commit=False
        )

        shift = None
        if user.role is Role.OPERATOR:
            shift = shift_service.open_shift(
                user.supermarket_id,
                user.id,
                current_app.config["OPENING_CASH_CENTS"],
                commit=False,
            )
        elif user.role is Role.OWNER:
            shift = None
        else:
            raise ValidationError(f"Unsupported role: {user.role}")

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("User %s logged in (%s)", user.id, user.role.value)
    return LoginResult(user=user, token=token, shift=shift)


def logout(token: str) -> bool:
    """Revoke the caller's session. Tenant data and shifts are untouched."""
    return session_service.revoke_session(token, reason="User logout")


def change_password(user: User, new_password: str, commit: bool = True) -> None:
    """Replace a password and revoke every session of the user."""
    user.password_hash = hash_password(new_password)
    session_service.revoke_all_user_sessions(user.id, reason="Password changed", commit=False)
    if commit:
        db.session.commit()

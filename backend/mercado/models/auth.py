from __future__ import annotations

import enum

from ..extensions import db
from mercado.time_utils import to_utc_z


class Role(str, enum.Enum):
    """Closed set of roles. Every role decision handles both members."""
    OWNER = "owner"
    OPERATOR = "operator"


class User(db.Model):
    """
    User accounts for authentication and attribution.

    MULTI-TENANT: Users belong to exactly one supermarket. Email is unique
    across the whole system because login is by email alone.

    One OWNER per supermarket (created at registration); any number of
    OPERATORs created by the owner.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.Index("ix_users_supermarket_role", "supermarket_id", "role"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)

    name = db.Column(db.String(128), nullable=False)

    # Stored lower-cased
    email = db.Column(db.String(255), nullable=False, unique=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    role = db.Column(
        db.Enum(Role, name="user_role", values_callable=lambda roles: [r.value for r in roles]),
        nullable=False,
        default=Role.OPERATOR,
    )

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    supermarket = db.relationship(
        "Supermarket",
        foreign_keys=[supermarket_id],
        backref=db.backref("users", lazy=True),
    )

    @property
    def is_owner(self) -> bool:
        return self.role is Role.OWNER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class SessionToken(db.Model):
    """
    Bearer session. Only the SHA-256 of the token is stored.

    Tenant context (supermarket_id) and role are captured at creation and
    are immutable for the session lifetime.
    """
    __tablename__ = "session_tokens"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)

    token_hash = db.Column(db.String(64), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(64), nullable=True)

    user_agent = db.Column(db.String(255), nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)

    user = db.relationship("User", backref=db.backref("sessions", lazy=True, cascade="all, delete-orphan"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "supermarket_id": self.supermarket_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
        }

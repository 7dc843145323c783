from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z

THEMES = ("light", "dark", "green")


class Supermarket(db.Model):
    """
    Multi-tenant root: every tenant is one Supermarket.

    All users, products, customers, sales, cash-flow entries and daily
    reports carry supermarket_id. No data may cross supermarket boundaries.

    Created once at owner registration, edited from the settings page,
    never deleted.
    """
    __tablename__ = "supermarkets"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Set right after the owner row exists (users.supermarket_id points back here)
    owner_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", use_alter=True, name="fk_supermarkets_owner_id"),
        nullable=True,
    )

    name = db.Column(db.String(255), nullable=False)

    # Base64 data URL or remote URL
    logo = db.Column(db.Text, nullable=True)
    theme = db.Column(db.String(16), nullable=False, default="light")

    # Fiscal identification printed on receipts
    cnpj = db.Column(db.String(32), nullable=True)
    ie = db.Column(db.String(32), nullable=True)

    address = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(32), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Supermarket id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "logo": self.logo,
            "theme": self.theme,
            "cnpj": self.cnpj,
            "ie": self.ie,
            "address": self.address,
            "phone": self.phone,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z


class Customer(db.Model):
    """
    Loyalty-program customer.

    MULTI-TENANT: Customers are scoped to a supermarket; the CPF
    (national_id) is unique within a supermarket only.

    Points only ever increase (no redemption flow); they are awarded when a
    sale with this customer attached is committed.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.UniqueConstraint("supermarket_id", "national_id", name="uq_customers_supermarket_national_id"),
        db.CheckConstraint("points >= 0", name="ck_customers_points_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)

    # CPF, digits only
    national_id = db.Column(db.String(32), nullable=False)

    points = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    supermarket = db.relationship("Supermarket", backref=db.backref("customers", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "name": self.name,
            "national_id": self.national_id,
            "points": self.points,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

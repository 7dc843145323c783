from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z, utcnow
from mercado.validation import money_str


class Sale(db.Model):
    """
    Completed checkout.

    Items are stored by value (product snapshot + quantity) so later price or
    name changes never rewrite history. Immutable once created.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_supermarket_timestamp", "supermarket_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    # [{"id", "name", "price_cents", "image_url", "quantity"}, ...]
    items = db.Column(db.JSON, nullable=False, default=list)

    total_cents = db.Column(db.Integer, nullable=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    operator = db.relationship("User", foreign_keys=[operator_id])
    customer = db.relationship("Customer", foreign_keys=[customer_id])
    shift = db.relationship("Shift", backref=db.backref("sales", lazy=True, order_by="Sale.id"))

    @property
    def item_count(self) -> int:
        return sum(int(item["quantity"]) for item in self.items or [])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "shift_id": self.shift_id,
            "operator_id": self.operator_id,
            "customer_id": self.customer_id,
            "items": list(self.items or []),
            "item_count": self.item_count,
            "total_cents": self.total_cents,
            "total": money_str(self.total_cents),
            "points_awarded": self.points_awarded,
            "timestamp": to_utc_z(self.timestamp),
        }

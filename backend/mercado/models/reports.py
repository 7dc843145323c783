from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z, utcnow
from mercado.validation import money_str


class DailyReport(db.Model):
    """
    Shift closing report.

    Created exactly once when a shift is closed. Holds copies of the shift's
    sales and cash flow so the report stays readable after the live rows
    change or grow. Immutable.
    """
    __tablename__ = "daily_reports"
    __table_args__ = (
        db.Index("ix_daily_reports_supermarket_created", "supermarket_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, unique=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Business date, dd/mm/yyyy
    date = db.Column(db.String(10), nullable=False)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    initial_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    # Absolute value of all withdrawals
    total_sangria_cents = db.Column(db.Integer, nullable=False, default=0)
    final_cash_cents = db.Column(db.Integer, nullable=False, default=0)

    sales = db.Column(db.JSON, nullable=False, default=list)
    cash_flow = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    operator = db.relationship("User", foreign_keys=[operator_id])

    def to_dict(self, include_details: bool = True) -> dict:
        out = {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "shift_id": self.shift_id,
            "operator_id": self.operator_id,
            "date": self.date,
            "total_sales_cents": self.total_sales_cents,
            "total_sales": money_str(self.total_sales_cents),
            "initial_cash_cents": self.initial_cash_cents,
            "initial_cash": money_str(self.initial_cash_cents),
            "total_sangria_cents": self.total_sangria_cents,
            "total_sangria": money_str(self.total_sangria_cents),
            "final_cash_cents": self.final_cash_cents,
            "final_cash": money_str(self.final_cash_cents),
            "sales_count": len(self.sales or []),
            "created_at": to_utc_z(self.created_at),
        }
        if include_details:
            out["sales"] = list(self.sales or [])
            out["cash_flow"] = list(self.cash_flow or [])
        return out

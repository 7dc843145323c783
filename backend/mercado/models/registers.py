from __future__ import annotations

from ..extensions import db
from mercado.time_utils import to_utc_z, utcnow
from mercado.validation import money_str

SHIFT_OPEN = "OPEN"
SHIFT_CLOSED = "CLOSED"
SHIFT_SUPERSEDED = "SUPERSEDED"

CASH_FLOW_TYPES = ("initial", "sale", "sangria")


class Shift(db.Model):
    """
    One operator's session at the (single) register of a supermarket.

    LIFECYCLE:
    - OPEN: created by operator login, accepts sales and withdrawals
    - CLOSED: closed by the operator; a DailyReport was produced
    - SUPERSEDED: another operator login opened a newer shift

    No transition leads back to OPEN.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index("ix_shifts_supermarket_status", "supermarket_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_OPEN)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    daily_report_id = db.Column(
        db.Integer,
        db.ForeignKey("daily_reports.id", use_alter=True, name="fk_shifts_daily_report_id"),
        nullable=True,
    )

    operator = db.relationship("User", foreign_keys=[operator_id])

    @property
    def is_open(self) -> bool:
        return self.status == SHIFT_OPEN

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "operator_id": self.operator_id,
            "status": self.status,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "daily_report_id": self.daily_report_id,
        }


class CashFlowEntry(db.Model):
    """
    Append-only cash drawer ledger.

    Amounts are signed: initial and sale entries are positive, sangria
    (cash withdrawal) entries are negative. Entries are never updated.
    """
    __tablename__ = "cash_flow_entries"
    __table_args__ = (
        db.Index("ix_cash_flow_shift_timestamp", "shift_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    supermarket_id = db.Column(db.Integer, db.ForeignKey("supermarkets.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=False, index=True)
    operator_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    type = db.Column(db.String(16), nullable=False)  # initial, sale, sangria
    amount_cents = db.Column(db.Integer, nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    description = db.Column(db.String(255), nullable=True)

    shift = db.relationship("Shift", backref=db.backref("cash_flow", lazy=True, order_by="CashFlowEntry.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "supermarket_id": self.supermarket_id,
            "shift_id": self.shift_id,
            "operator_id": self.operator_id,
            "type": self.type,
            "amount_cents": self.amount_cents,
            "amount": money_str(self.amount_cents),
            "sale_id": self.sale_id,
            "timestamp": to_utc_z(self.timestamp),
            "description": self.description,
        }

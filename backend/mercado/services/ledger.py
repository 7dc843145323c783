"""
Ledger / report engine (pure functions, no database access).

Money is integer cents throughout. The persisted flow built on top of
these functions lives in shift_service.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Mapping


CASH_FLOW_INITIAL = "initial"
CASH_FLOW_SALE = "sale"
CASH_FLOW_SANGRIA = "sangria"

SANGRIA_DESCRIPTION = "Sangria do caixa"
INITIAL_DESCRIPTION = "Troco inicial"


def _get(record, key):
    if isinstance(record, Mapping):
        return record[key]
    return getattr(record, key)


def line_total(item) -> int:
    """price_cents * quantity for one cart line (dict or object)."""
    return int(_get(item, "price_cents")) * int(_get(item, "quantity"))


def cart_total(items: Iterable) -> int:
    return sum(line_total(item) for item in items)


def loyalty_points(total_cents: int, divisor: int) -> int:
    """
    Points earned for a sale: floor(total / divisor), divisor in currency
    units. A divisor of 1 gives one point per whole real.
    """
    if divisor <= 0:
        raise ValueError("loyalty points divisor must be positive")
    if total_cents <= 0:
        return 0
    return total_cents // (divisor * 100)


def decrement_stock(stock: int, quantity: int) -> int:
    """Stock after selling `quantity`; oversell clamps at zero."""
    return max(0, int(stock) - int(quantity))


@dataclass(frozen=True)
class ShiftTotals:
    initial_cash_cents: int
    total_sales_cents: int
    total_sangria_cents: int
    final_cash_cents: int

    def to_dict(self) -> dict:
        return {
            "initial_cash_cents": self.initial_cash_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_sangria_cents": self.total_sangria_cents,
            "final_cash_cents": self.final_cash_cents,
        }


def compute_shift_totals(sales: Iterable, cash_flow: Iterable) -> ShiftTotals:
    """
    Aggregate a shift.

    - initial cash: amount of the first `initial` entry (0 when absent)
    - total sales: sum of sale totals
    - total sangria: absolute value of the summed withdrawals
    - final cash: initial + sales + (signed) withdrawals
    """
    entries = list(cash_flow)

    initial = next(
        (int(_get(e, "amount_cents")) for e in entries if _get(e, "type") == CASH_FLOW_INITIAL),
        0,
    )
    total_sales = sum(int(_get(s, "total_cents")) for s in sales)
    sangria_sum = sum(int(_get(e, "amount_cents")) for e in entries if _get(e, "type") == CASH_FLOW_SANGRIA)

    return ShiftTotals(
        initial_cash_cents=initial,
        total_sales_cents=total_sales,
        total_sangria_cents=abs(sangria_sum),
        final_cash_cents=initial + total_sales + sangria_sum,
    )

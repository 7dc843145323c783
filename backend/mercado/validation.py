from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: R$ 9.999.999,99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

CENT = Decimal("0.01")

# Largest magnitude accepted from client numeric input (money, percents, stock)
MAX_NUMERIC_INPUT = Decimal("1e12")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate email or CPF)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def to_decimal(value: Any, field: str) -> Decimal:
    """Strict numeric parsing shared by money and bulk-update inputs."""
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, str):
        value = value.strip().replace(",", ".")
        if not value:
            raise ValidationError(f"{field} must be a number")
    try:
        dec = Decimal(str(value))
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(dec) > MAX_NUMERIC_INPUT:
        raise ValidationError(f"{field} is out of range")
    return dec


def parse_money_cents(value: Any, field: str = "amount") -> int:
    """Currency amount ("12.5", 12.50, "12,50") -> integer cents, half-up."""
    dec = to_decimal(value, field)
    return int((dec * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def money_str(cents: int | None) -> str | None:
    if cents is None:
        return None
    return str((Decimal(cents) / 100).quantize(CENT))


def normalize_money_fields(payload: dict, mapping: dict[str, str]) -> dict:
    """
    Accept currency-unit keys (e.g. "price") as aliases of the cents columns.

    The cents key wins when both are present.
    """
    out = dict(payload)
    for money_key, cents_key in mapping.items():
        if money_key in out:
            raw = out.pop(money_key)
            if cents_key not in out:
                out[cents_key] = None if raw is None else parse_money_cents(raw, money_key)
    return out


def _coerce_int(key: str, value: Any) -> int:
    # Strict: reject floats with a fraction and scientific notation
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        number = _coerce_int(col.key, value)
        if abs(number) > MAX_NUMERIC_INPUT:
            raise ValidationError(f"{col.key} is out of range")
        return number

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Unknown keys (e.g. "id" echoed back by a client) are dropped rather
    than rejected, so full records can be PUT back unchanged.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            continue
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    """
    if patch.get("price_cents") is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price cannot exceed R$ {money_str(MAX_PRICE_CENTS)}")

    if patch.get("stock") is not None and patch["stock"] < 0:
        raise ValidationError("stock must be >= 0")

    if patch.get("low_stock_threshold") is not None and patch["low_stock_threshold"] < 0:
        raise ValidationError("low_stock_threshold must be >= 0")


def enforce_rules_customer(patch: dict) -> None:
    if "national_id" in patch and patch["national_id"] is not None:
        digits = "".join(ch for ch in patch["national_id"] if ch.isdigit())
        if not digits:
            raise ValidationError("national_id must contain digits")
        patch["national_id"] = digits

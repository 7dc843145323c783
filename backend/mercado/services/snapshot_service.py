"""
Local key-value snapshot store.

A single JSON file holding one list (or object) per collection key. There is
no versioning: save() replaces the collection. Used by `flask data export`
and `flask data import` to move one supermarket between the relational
store and a file.

Import always creates a new supermarket and remaps every id, so a snapshot
can be loaded into a database that already has data.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any

from ..extensions import db
from ..models import (
    Supermarket,
    User,
    Role,
    Product,
    Customer,
    Shift,
    Sale,
    CashFlowEntry,
    DailyReport,
)
from ..validation import ConflictError, ValidationError
from mercado.time_utils import parse_iso_datetime, to_utc_z

logger = logging.getLogger(__name__)

SNAPSHOT_KEYS = (
    "supermarket",
    "users",
    "products",
    "customers",
    "shifts",
    "sales",
    "cash_flow",
    "daily_reports",
)


class JsonSnapshotStore:
    def __init__(self, path: str):
        self.path = path

    def _read(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValidationError(f"{self.path} is not a snapshot file")
        return data

    def _check_key(self, key: str) -> None:
        if key not in SNAPSHOT_KEYS:
            raise KeyError(f"Unknown snapshot key: {key}")

    def load(self, key: str, default: Any = None) -> Any:
        self._check_key(key)
        return self._read().get(key, default)

    def save(self, key: str, records: Any) -> None:
        """Replace one collection. The file is rewritten atomically."""
        self._check_key(key)
        data = self._read()
        data[key] = records

        directory = os.path.dirname(os.path.abspath(self.path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise


# =============================================================================
# EXPORT
# =============================================================================

def _dt(value):
    return to_utc_z(value) if value else None


def _export_users(supermarket_id: int) -> list[dict]:
    return [
        {
            "id": u.id,
            "name": u.name,
            "email": u.email,
            "password_hash": u.password_hash,
            "role": u.role.value,
            "is_active": u.is_active,
            "created_at": _dt(u.created_at),
            "last_login_at": _dt(u.last_login_at),
        }
        for u in db.session.query(User).filter(User.supermarket_id == supermarket_id).order_by(User.id)
    ]


def _rows(model, supermarket_id: int) -> list:
    return (
        db.session.query(model)
        .filter(model.supermarket_id == supermarket_id)
        .order_by(model.id)
        .all()
    )


def export_supermarket(store: JsonSnapshotStore, supermarket_id: int) -> dict:
    """Write every collection of one supermarket. Returns per-key counts."""
    supermarket = db.session.get(Supermarket, supermarket_id)
    if supermarket is None:
        raise ValidationError(f"Supermarket {supermarket_id} not found")

    collections = {
        "supermarket": supermarket.to_dict(),
        "users": _export_users(supermarket_id),
        "products": [p.to_dict() for p in _rows(Product, supermarket_id)],
        "customers": [c.to_dict() for c in _rows(Customer, supermarket_id)],
        "shifts": [s.to_dict() for s in _rows(Shift, supermarket_id)],
        "sales": [s.to_dict() for s in _rows(Sale, supermarket_id)],
        "cash_flow": [e.to_dict() for e in _rows(CashFlowEntry, supermarket_id)],
        "daily_reports": [r.to_dict() for r in _rows(DailyReport, supermarket_id)],
    }

    for key in SNAPSHOT_KEYS:
        store.save(key, collections[key])

    counts = {k: (1 if k == "supermarket" else len(v)) for k, v in collections.items()}
    logger.info("Exported supermarket %s to %s: %s", supermarket_id, store.path, counts)
    return counts


# =============================================================================
# IMPORT
# =============================================================================

def _remap(mapping: dict, old_id, field: str):
    if old_id is None:
        return None
    if old_id not in mapping:
        raise ValidationError(f"Snapshot references unknown {field} {old_id}")
    return mapping[old_id]


def import_supermarket(store: JsonSnapshotStore) -> Supermarket:
    """
    Create a new supermarket from a snapshot file in one transaction.

    Emails must be free system-wide (ConflictError otherwise). Sale and report
    snapshots keep their embedded copies; product ids inside sale items are
    remapped when the product was imported.
    """
    market = store.load("supermarket")
    if not isinstance(market, dict) or not market.get("name"):
        raise ValidationError("Snapshot has no supermarket")

    users = store.load("users", [])
    emails = [u["email"].lower() for u in users]
    taken = db.session.query(User.email).filter(User.email.in_(emails)).all()
    if taken:
        raise ConflictError(f"Email já cadastrado: {', '.join(sorted(e for (e,) in taken))}")

    try:
        supermarket = Supermarket(
            name=market["name"],
            logo=market.get("logo"),
            theme=market.get("theme") or "light",
            cnpj=market.get("cnpj"),
            ie=market.get("ie"),
            address=market.get("address"),
            phone=market.get("phone"),
        )
        db.session.add(supermarket)
        db.session.flush()
        sid = supermarket.id

        user_ids: dict = {}
        for row in users:
            user = User(
                supermarket_id=sid,
                name=row["name"],
                email=row["email"].lower(),
                password_hash=row["password_hash"],
                role=Role(row["role"]),
                is_active=row.get("is_active", True),
                last_login_at=parse_iso_datetime(row.get("last_login_at")),
            )
            db.session.add(user)
            db.session.flush()
            user_ids[row["id"]] = user.id
        supermarket.owner_id = user_ids.get(market.get("owner_id"))

        product_ids: dict = {}
        for row in store.load("products", []):
            product = Product(
                supermarket_id=sid,
                name=row["name"],
                price_cents=row["price_cents"],
                stock=row["stock"],
                image_url=row.get("image_url"),
                low_stock_threshold=row.get("low_stock_threshold", 10),
                barcode=row.get("barcode"),
            )
            db.session.add(product)
            db.session.flush()
            product_ids[row["id"]] = product.id

        customer_ids: dict = {}
        for row in store.load("customers", []):
            customer = Customer(
                supermarket_id=sid,
                name=row["name"],
                national_id=row["national_id"],
                points=row.get("points", 0),
            )
            db.session.add(customer)
            db.session.flush()
            customer_ids[row["id"]] = customer.id

        shift_ids: dict = {}
        shift_rows: dict = {}
        for row in store.load("shifts", []):
            shift = Shift(
                supermarket_id=sid,
                operator_id=_remap(user_ids, row["operator_id"], "user"),
                status=row["status"],
                opened_at=parse_iso_datetime(row["opened_at"]),
                closed_at=parse_iso_datetime(row.get("closed_at")),
            )
            db.session.add(shift)
            db.session.flush()
            shift_ids[row["id"]] = shift.id
            shift_rows[row["id"]] = (shift, row.get("daily_report_id"))

        sale_ids: dict = {}
        for row in store.load("sales", []):
            items = [
                dict(item, id=product_ids.get(item["id"], item["id"]))
                for item in row.get("items") or []
            ]
            sale = Sale(
                supermarket_id=sid,
                shift_id=_remap(shift_ids, row["shift_id"], "shift"),
                operator_id=_remap(user_ids, row["operator_id"], "user"),
                customer_id=_remap(customer_ids, row.get("customer_id"), "customer"),
                items=items,
                total_cents=row["total_cents"],
                points_awarded=row.get("points_awarded", 0),
                timestamp=parse_iso_datetime(row["timestamp"]),
            )
            db.session.add(sale)
            db.session.flush()
            sale_ids[row["id"]] = sale.id

        for row in store.load("cash_flow", []):
            db.session.add(CashFlowEntry(
                supermarket_id=sid,
                shift_id=_remap(shift_ids, row["shift_id"], "shift"),
                operator_id=_remap(user_ids, row["operator_id"], "user"),
                type=row["type"],
                amount_cents=row["amount_cents"],
                sale_id=_remap(sale_ids, row.get("sale_id"), "sale"),
                timestamp=parse_iso_datetime(row["timestamp"]),
                description=row.get("description"),
            ))

        report_ids: dict = {}
        for row in store.load("daily_reports", []):
            report = DailyReport(
                supermarket_id=sid,
                shift_id=_remap(shift_ids, row["shift_id"], "shift"),
                operator_id=_remap(user_ids, row["operator_id"], "user"),
                date=row["date"],
                total_sales_cents=row["total_sales_cents"],
                initial_cash_cents=row["initial_cash_cents"],
                total_sangria_cents=row["total_sangria_cents"],
                final_cash_cents=row["final_cash_cents"],
                sales=row.get("sales") or [],
                cash_flow=row.get("cash_flow") or [],
                created_at=parse_iso_datetime(row["created_at"]),
            )
            db.session.add(report)
            db.session.flush()
            report_ids[row["id"]] = report.id

        for shift, old_report_id in shift_rows.values():
            shift.daily_report_id = report_ids.get(old_report_id)

        db.session.commit()
    except (KeyError, TypeError, ValueError) as exc:
        db.session.rollback()
        if isinstance(exc, ValidationError):
            raise
        raise ValidationError(f"Malformed snapshot: {exc}") from exc
    except Exception:
        db.session.rollback()
        raise

    logger.info("Imported snapshot %s as supermarket %s", store.path, supermarket.id)
    return supermarket

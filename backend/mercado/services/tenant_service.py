"""
Multi-Tenant Service: Tenant Validation, Scoping Helpers and Supermarket Settings

Every request is scoped to one supermarket and cross-tenant access is
denied as if the record did not exist.

SECURITY INVARIANTS:
1. Every authenticated request has g.supermarket_id set
2. IDs from client input are resolved with require_in_tenant
3. Records of another tenant produce the same error as missing records

USAGE:
    from mercado.services.tenant_service import require_in_tenant

    product = require_in_tenant(Product, product_id, g.supermarket_id)
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import Supermarket, THEMES
from ..validation import ValidationError

logger = logging.getLogger(__name__)

SETTINGS_FIELDS = ("name", "logo", "theme", "cnpj", "ie", "address", "phone")

_MAX_LENGTHS = {"name": 255, "cnpj": 32, "ie": 32, "address": 255, "phone": 32}


class TenantAccessError(Exception):
    """Raised when a record is missing or belongs to another supermarket."""
    pass


def require_in_tenant(model, record_id: int, supermarket_id: int, label: str | None = None):
    """
    Load a tenant-owned record by id.

    Raises TenantAccessError ("<Label> not found") both when the row does
    not exist and when it belongs to a different supermarket.
    """
    label = label or model.__name__
    record = db.session.get(model, record_id)
    if record is None:
        raise TenantAccessError(f"{label} not found")
    if record.supermarket_id != supermarket_id:
        logger.warning(
            "Cross-tenant access attempt: %s %s belongs to supermarket %s, not %s",
            model.__name__, record_id, record.supermarket_id, supermarket_id,
        )
        raise TenantAccessError(f"{label} not found")
    return record


def get_supermarket(supermarket_id: int) -> Supermarket:
    supermarket = db.session.get(Supermarket, supermarket_id)
    if supermarket is None:
        raise TenantAccessError("Supermarket not found")
    return supermarket


def _clean_setting(field: str, value):
    if value is None:
        if field in ("name", "theme"):
            raise ValidationError(f"{field} cannot be null")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if field == "name" and not value:
        raise ValidationError("name cannot be blank")
    if field == "theme" and value not in THEMES:
        raise ValidationError(f"theme must be one of: {', '.join(THEMES)}")
    limit = _MAX_LENGTHS.get(field)
    if limit and len(value) > limit:
        raise ValidationError(f"{field} exceeds max length {limit}")
    if field != "name" and value == "":
        return None
    return value


def update_settings(supermarket_id: int, payload: dict) -> Supermarket:
    """
    Update the supermarket profile (name, logo, theme, fiscal fields,
    address, phone). Unknown keys are ignored.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    supermarket = get_supermarket(supermarket_id)
    patch = {
        field: _clean_setting(field, payload[field])
        for field in SETTINGS_FIELDS
        if field in payload
    }

    for field, value in patch.items():
        setattr(supermarket, field, value)

    db.session.commit()
    return supermarket

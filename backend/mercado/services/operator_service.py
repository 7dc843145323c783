"""
Operator management (Owner only).

Operators are User rows with role OPERATOR inside the owner's supermarket.
The owner account itself can never be edited or deleted through here.

delete_operator is the store procedure that removes an operator:
- no sales, shifts or cash-flow rows -> the user row is deleted
- otherwise the account is deactivated so history keeps its attribution
Either way every session of the operator is revoked and an open shift of
the operator is marked SUPERSEDED.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import User, Role, Sale, Shift, CashFlowEntry, DailyReport, SHIFT_OPEN, SHIFT_SUPERSEDED
from ..validation import ValidationError
from .auth_service import create_user, change_password
from .concurrency import lock_for_update
from .session_service import revoke_all_user_sessions
from .tenant_service import TenantAccessError

logger = logging.getLogger(__name__)


class OperatorError(Exception):
    """Raised when an operation targets the owner or another non-operator."""
    pass


def list_operators(supermarket_id: int, include_inactive: bool = False) -> list[User]:
    query = db.session.query(User).filter(
        User.supermarket_id == supermarket_id,
        User.role == Role.OPERATOR,
    )
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    return query.order_by(User.name.asc(), User.id.asc()).all()


def get_operator(supermarket_id: int, operator_id: int, lock: bool = False) -> User:
    query = db.session.query(User).filter(User.id == operator_id)
    if lock:
        query = lock_for_update(query)
    user = query.first()
    if user is None or user.supermarket_id != supermarket_id:
        raise TenantAccessError("Operator not found")
    if user.role is Role.OWNER:
        raise OperatorError("The owner account cannot be managed as an operator")
    if user.role is not Role.OPERATOR:
        raise OperatorError("Unsupported role")
    return user


def create_operator(supermarket_id: int, name: str, email: str, password: str) -> User:
    user = create_user(supermarket_id, name, email, password, Role.OPERATOR)
    logger.info("Created operator %s in supermarket %s", user.id, supermarket_id)
    return user


def update_operator(supermarket_id: int, operator_id: int, payload: dict) -> User:
    """
    Rename and/or reset the password of an operator.

    A password reset revokes the operator's sessions.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    user = get_operator(supermarket_id, operator_id)

    if "name" in payload:
        name = payload["name"]
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name cannot be blank")
        if len(name.strip()) > 128:
            raise ValidationError("name exceeds max length 128")
        user.name = name.strip()

    if payload.get("password"):
        change_password(user, payload["password"], commit=False)

    db.session.commit()
    return user


def _has_history(user_id: int) -> bool:
    for model, column in (
        (Sale, Sale.operator_id),
        (Shift, Shift.operator_id),
        (CashFlowEntry, CashFlowEntry.operator_id),
        (DailyReport, DailyReport.operator_id),
    ):
        if db.session.query(model.id).filter(column == user_id).first() is not None:
            return True
    return False


def delete_operator(supermarket_id: int, operator_id: int) -> str:
    """
    Remove an operator. Returns "deleted" or "deactivated".

    Raises TenantAccessError for users of another supermarket and
    OperatorError for the owner.
    """
    user = get_operator(supermarket_id, operator_id, lock=True)

    try:
        revoke_all_user_sessions(user.id, reason="Operator removed", commit=False)
        if _has_history(user.id):
            db.session.query(Shift).filter(
                Shift.operator_id == user.id,
                Shift.status == SHIFT_OPEN,
            ).update({"status": SHIFT_SUPERSEDED})
            user.is_active = False
            outcome = "deactivated"
        else:
            db.session.delete(user)
            outcome = "deleted"
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    logger.info("Operator %s %s by supermarket %s", operator_id, outcome, supermarket_id)
    return outcome

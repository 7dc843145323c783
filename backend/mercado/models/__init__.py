from .tenancy import Supermarket, THEMES
from .auth import User, Role, SessionToken
from .inventory import Product
from .customers import Customer
from .registers import Shift, CashFlowEntry, SHIFT_OPEN, SHIFT_CLOSED, SHIFT_SUPERSEDED
from .sales import Sale
from .reports import DailyReport

__all__ = [
    'Supermarket', 'THEMES',
    'User', 'Role', 'SessionToken',
    'Product',
    'Customer',
    'Shift', 'CashFlowEntry', 'SHIFT_OPEN', 'SHIFT_CLOSED', 'SHIFT_SUPERSEDED',
    'Sale',
    'DailyReport',
]

from .inventory import Product
from .sales import Sale
from .debts import Debt, DebtPayment
from .expenses import Expense
from .auth import User, SessionToken

__all__ = [
    'Product',
    'Sale',
    'Debt', 'DebtPayment',
    'Expense',
    'User', 'SessionToken',
]

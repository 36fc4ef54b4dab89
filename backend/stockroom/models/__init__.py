from .directory import Location, Company, Category, User, Product
from .auth import SessionToken
from .transactions import (
    Transaction,
    TransactionLine,
    TRANSACTION_TYPES,
    TRANSACTION_STATUSES,
    REDACTED_LINE_FIELDS,
)

__all__ = [
    'Location', 'Company', 'Category', 'User', 'Product',
    'SessionToken',
    'Transaction', 'TransactionLine',
    'TRANSACTION_TYPES', 'TRANSACTION_STATUSES', 'REDACTED_LINE_FIELDS',
]

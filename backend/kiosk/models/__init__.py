from .catalog import Category, Product, ProductVariant
from .customers import Customer, CUSTOMER_ROLES
from .transactions import Transaction, TransactionItem, GUEST_CUSTOMER_ID
from .requests import ProductRequest

__all__ = [
    'Category', 'Product', 'ProductVariant',
    'Customer', 'CUSTOMER_ROLES',
    'Transaction', 'TransactionItem', 'GUEST_CUSTOMER_ID',
    'ProductRequest',
]

from .tenancy import Organization
from .auth import User, Role, UserRole, Permission, RolePermission, SessionToken
from .security import SecurityEvent
from .catalog import Product, ProductVariant
from .customers import Customer
from .sales import Sale, SaleItem
from .cashflow import CashFlowRecord
from .pricing import ExchangeRate

__all__ = [
    'Organization',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission', 'SessionToken',
    'SecurityEvent',
    'Product', 'ProductVariant',
    'Customer',
    'Sale', 'SaleItem',
    'CashFlowRecord',
    'ExchangeRate',
]

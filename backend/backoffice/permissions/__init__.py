# Overview: Permission system package.
# Re-exports all public APIs so callers can import from one place.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    CATALOG_PERMISSIONS,
    CUSTOMER_PERMISSIONS,
    SALES_PERMISSIONS,
    FINANCE_PERMISSIONS,
    PRICING_PERMISSIONS,
    USER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import (
    DEFAULT_ROLES,
    DEFAULT_ROLE_PERMISSIONS,
    ROLE_ADMIN,
    ROLE_EMPLOYEE,
    ROLE_INVESTOR,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "CATALOG_PERMISSIONS",
    "CUSTOMER_PERMISSIONS",
    "SALES_PERMISSIONS",
    "FINANCE_PERMISSIONS",
    "PRICING_PERMISSIONS",
    "USER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLES",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_ADMIN",
    "ROLE_EMPLOYEE",
    "ROLE_INVESTOR",
]

# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- CATALOG --

CATALOG_PERMISSIONS = [
    (
        "VIEW_PRODUCTS",
        "View Products",
        "View products and variants at investor prices",
        PermissionCategory.CATALOG,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create and edit products, variants and stock levels",
        PermissionCategory.CATALOG,
    ),
]


# -- CUSTOMERS --

CUSTOMER_PERMISSIONS = [
    (
        "VIEW_CUSTOMERS",
        "View Customers",
        "View customer list and tiers",
        PermissionCategory.CUSTOMERS,
    ),
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create and edit customers and their pricing tier",
        PermissionCategory.CUSTOMERS,
    ),
]


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_SALES",
        "View Sales",
        "View sale orders (company-funded only unless VIEW_PERSONAL_SALES)",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_PERSONAL_SALES",
        "View Personal Sales",
        "View sale orders funded from personal capital",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_SALE",
        "Create Sale",
        "Create sale orders and edit draft line items",
        PermissionCategory.SALES,
    ),
    (
        "CONFIRM_SALE",
        "Confirm Sale",
        "Confirm draft or preorder sales (reserves stock)",
        PermissionCategory.SALES,
    ),
    (
        "SHIP_SALE",
        "Ship Sale",
        "Mark sales shipped, delivered or paid",
        PermissionCategory.SALES,
    ),
    (
        "CANCEL_SALE",
        "Cancel Sale",
        "Cancel unshipped sales (releases reserved stock)",
        PermissionCategory.SALES,
    ),
    (
        "DELETE_SALE",
        "Delete Sale",
        "Delete draft, preorder or cancelled sales",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_ACTUAL_PRICES",
        "View Actual Prices",
        "See actual selling prices and commission",
        PermissionCategory.SALES,
    ),
    (
        "EDIT_ACTUAL_PRICES",
        "Edit Actual Prices",
        "Adjust the actual unit price charged to the customer",
        PermissionCategory.SALES,
    ),
]


# -- FINANCE --

FINANCE_PERMISSIONS = [
    (
        "VIEW_CASHFLOW",
        "View Cashflow",
        "View income/expense records and totals",
        PermissionCategory.FINANCE,
    ),
    (
        "MANAGE_CASHFLOW",
        "Manage Cashflow",
        "Record manual income/expense and re-sync sale cashflow",
        PermissionCategory.FINANCE,
    ),
    (
        "MANAGE_ALL_CASHFLOW",
        "Manage All Cashflow",
        "Edit cashflow records created by other users",
        PermissionCategory.FINANCE,
    ),
]


# -- PRICING --

PRICING_PERMISSIONS = [
    (
        "USE_CALCULATOR",
        "Use Calculator",
        "Run import tax, cost and pricing calculations",
        PermissionCategory.PRICING,
    ),
    (
        "MANAGE_EXCHANGE_RATES",
        "Manage Exchange Rates",
        "Store declaration exchange rates for the organization",
        PermissionCategory.PRICING,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "VIEW_USERS",
        "View Users",
        "View user list and roles",
        PermissionCategory.USERS,
    ),
    (
        "CREATE_USER",
        "Create User",
        "Create new user accounts",
        PermissionCategory.USERS,
    ),
    (
        "EDIT_USER",
        "Edit User",
        "Deactivate and reactivate user accounts",
        PermissionCategory.USERS,
    ),
    (
        "MANAGE_ROLES",
        "Manage Roles",
        "Change the role assigned to a user",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "SYSTEM_ADMIN",
        "System Administration",
        "Full system access",
        PermissionCategory.SYSTEM,
    ),
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "View security events for the organization",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    CATALOG_PERMISSIONS
    + CUSTOMER_PERMISSIONS
    + SALES_PERMISSIONS
    + FINANCE_PERMISSIONS
    + PRICING_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)

# Overview: Default role -> permission mappings seeded for every organization.

from .definitions import PERMISSION_DEFINITIONS

ROLE_ADMIN = "admin"
ROLE_EMPLOYEE = "employee"
ROLE_INVESTOR = "investor"

DEFAULT_ROLES = [
    (ROLE_ADMIN, "Full back-office access including user administration"),
    (ROLE_EMPLOYEE, "Day-to-day operations: catalog, sales, cashflow, pricing"),
    (ROLE_INVESTOR, "Read-only view of company-funded business at investor prices"),
]

_ALL_CODES = [perm[0] for perm in PERMISSION_DEFINITIONS]

DEFAULT_ROLE_PERMISSIONS = {
    ROLE_ADMIN: list(_ALL_CODES),
    ROLE_EMPLOYEE: [
        "VIEW_PRODUCTS",
        "MANAGE_PRODUCTS",
        "VIEW_CUSTOMERS",
        "MANAGE_CUSTOMERS",
        "VIEW_SALES",
        "CREATE_SALE",
        "CONFIRM_SALE",
        "SHIP_SALE",
        "CANCEL_SALE",
        "DELETE_SALE",
        "VIEW_PERSONAL_SALES",
        "VIEW_ACTUAL_PRICES",
        "EDIT_ACTUAL_PRICES",
        "VIEW_CASHFLOW",
        "MANAGE_CASHFLOW",
        "USE_CALCULATOR",
        "MANAGE_EXCHANGE_RATES",
    ],
    # Investors never see actual prices, commission, or personal-funded sales
    ROLE_INVESTOR: [
        "VIEW_PRODUCTS",
        "VIEW_SALES",
        "USE_CALCULATOR",
    ],
}

# Overview: Permission category constants used for grouping in the admin UI.


class PermissionCategory:
    """Permission categories for organization."""
    CATALOG = "CATALOG"
    CUSTOMERS = "CUSTOMERS"
    SALES = "SALES"
    FINANCE = "FINANCE"
    PRICING = "PRICING"
    USERS = "USERS"
    SYSTEM = "SYSTEM"

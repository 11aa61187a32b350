"""
Multi-Tenant Service: Tenant Validation and Scoping Helpers

WHY: Every request is scoped to an organization and cross-tenant access must
be explicitly denied.

SECURITY INVARIANTS:
1. Every authenticated request has g.org_id set
2. IDs from client input are resolved only within g.org_id
3. Cross-tenant access attempts are logged as security events
4. A row owned by another tenant is reported as "not found"
"""

from flask import g, has_request_context, request

from ..extensions import db
from .permission_service import log_security_event


class TenantAccessError(Exception):
    """Raised when cross-tenant access is attempted."""
    pass


def get_current_org_id() -> int:
    if getattr(g, "org_id", None) is None:
        raise TenantAccessError("Tenant context not established")
    return g.org_id


def scoped_query(model, org_id: int | None = None):
    """
    Base query for an org-owned model, filtered to the tenant.

    Usage:
        products = scoped_query(Product).filter_by(is_active=True).all()
    """
    if org_id is None:
        org_id = get_current_org_id()
    return db.session.query(model).filter(model.org_id == org_id)


def require_in_org(model, row_id: int, org_id: int, label: str | None = None):
    """
    Load a row by id and verify it belongs to the organization.

    Raises TenantAccessError (reported as not found) when the row is missing
    or owned by another organization.
    """
    label = label or model.__name__
    row = db.session.get(model, row_id)

    if row is None:
        raise TenantAccessError(f"{label} not found")

    if row.org_id != org_id:
        _log_cross_tenant_attempt(
            f"{label} {row_id} belongs to org {row.org_id}, not {org_id}",
            org_id=org_id,
        )
        raise TenantAccessError(f"{label} not found")

    return row


def _log_cross_tenant_attempt(reason: str, org_id: int | None = None) -> None:
    in_request = has_request_context()
    user = getattr(g, "current_user", None) if in_request else None

    log_security_event(
        user_id=user.id if user is not None else None,
        event_type="CROSS_TENANT_ACCESS_DENIED",
        success=False,
        resource=request.path if in_request else None,
        action=request.method if in_request else None,
        reason=reason,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent") if in_request else None,
        org_id=org_id,
    )

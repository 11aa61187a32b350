"""Customers Service: org-scoped customer master data and pricing tiers."""

from __future__ import annotations

from ..extensions import db
from ..models import Customer
from ..models.customers import CUSTOMER_TIERS
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from .tenant_service import require_in_org, scoped_query


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "tier", "contact_person", "phone", "email", "address", "notes", "is_active"},
    required_on_create={"name"},
)


def _check_tier(patch: dict) -> None:
    if "tier" in patch:
        patch["tier"] = patch["tier"].upper()
        if patch["tier"] not in CUSTOMER_TIERS:
            raise ValidationError(f"tier must be one of {', '.join(CUSTOMER_TIERS)}")


def list_customers(
    org_id: int,
    search: str | None = None,
    tier: str | None = None,
    active_only: bool = True,
) -> list[Customer]:
    query = scoped_query(Customer, org_id)

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(
            Customer.name.ilike(pattern),
            Customer.contact_person.ilike(pattern),
            Customer.phone.ilike(pattern),
        ))
    if tier:
        query = query.filter(Customer.tier == tier.upper())
    if active_only:
        query = query.filter(Customer.is_active.is_(True))

    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(org_id: int, customer_id: int) -> Customer:
    return require_in_org(Customer, customer_id, org_id, "Customer")


def create_customer(org_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    _check_tier(patch)

    customer = Customer(org_id=org_id, **patch)
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(org_id: int, customer_id: int, payload: dict) -> Customer:
    customer = get_customer(org_id, customer_id)

    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    _check_tier(patch)

    for key, value in patch.items():
        setattr(customer, key, value)

    db.session.commit()
    return customer

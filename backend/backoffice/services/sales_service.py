"""
Sales Service: sale order lifecycle with derived cashflow

WHY: A sale is a document with a lifecycle. Status and price changes decide
which cashflow rows the sale owns, so every write here re-runs
sync_sale_cashflow inside the same transaction before committing.

LIFECYCLE:
    DRAFT / PREORDER -> CONFIRMED   reserves variant stock
    CONFIRMED        -> SHIPPED     consumes the reservation
    SHIPPED          -> DELIVERED
    SHIPPED/DELIVERED -> PAID
    DRAFT / PREORDER / CONFIRMED -> CANCELLED   releases any reservation

CONCURRENCY: every write locks the sale row, bumps its version and runs under
run_with_retry, so two writers for the same sale serialize or one retries.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Customer, Product, ProductVariant, Sale, SaleItem
from ..time_utils import compact_date, utcnow
from ..validation import ModelValidationPolicy, enforce_rules_sale_item, validate_payload
from .cashflow_service import compute_sale_totals, remove_sale_cashflow, sync_sale_cashflow, touch_sale
from .concurrency import lock_for_update, run_with_retry
from .tenant_service import TenantAccessError


EDITABLE_STATUSES = frozenset({"DRAFT", "PREORDER"})
DELETABLE_STATUSES = frozenset({"DRAFT", "PREORDER", "CANCELLED"})

ALLOWED_TRANSITIONS = {
    "CONFIRMED": frozenset({"DRAFT", "PREORDER"}),
    "SHIPPED": frozenset({"CONFIRMED"}),
    "DELIVERED": frozenset({"SHIPPED"}),
    "PAID": frozenset({"SHIPPED", "DELIVERED"}),
    "CANCELLED": frozenset({"DRAFT", "PREORDER", "CONFIRMED"}),
}

SALE_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_id",
        "funding_source",
        "payment_terms",
        "notes",
        "is_preorder",
        "expected_arrival_date",
    },
    required_on_create={"customer_id"},
)

SALE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id",
        "variant_id",
        "quantity",
        "unit_price_cents",
        "actual_unit_price_cents",
    },
    required_on_create={"product_id", "quantity"},
)


class SaleError(Exception):
    """Raised for sale operation errors."""
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


def next_sale_number(org_id: int, when=None) -> str:
    """SA<YYYYMMDD><seq>, sequence restarting each day per organization."""
    prefix = f"SA{compact_date(when or utcnow())}"
    numbers = (
        db.session.query(Sale.sale_number)
        .filter(Sale.org_id == org_id, Sale.sale_number.like(f"{prefix}%"))
        .all()
    )

    last_seq = 0
    for (number,) in numbers:
        suffix = number[len(prefix):]
        if suffix.isdigit():
            last_seq = max(last_seq, int(suffix))

    return f"{prefix}{last_seq + 1:03d}"


def _check_funding_source(patch: dict) -> None:
    if "funding_source" in patch and patch["funding_source"] not in ("COMPANY", "PERSONAL"):
        raise SaleError("funding_source must be COMPANY or PERSONAL")


def _load_customer(org_id: int, customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id, org_id=org_id).first()
    if not customer:
        raise SaleError("Customer not found", {"customer_id": customer_id})
    return customer


def build_items(org_id: int, items_payload) -> list[SaleItem]:
    """
    Validate item payloads and resolve products/variants within the organization.

    unit_price_cents defaults to the variant's investor price.
    """
    if not isinstance(items_payload, list) or not items_payload:
        raise SaleError("At least one item is required")

    items = []
    for index, raw in enumerate(items_payload):
        patch = validate_payload(model=SaleItem, payload=raw, policy=SALE_ITEM_POLICY, partial=False)
        enforce_rules_sale_item(patch)

        product = db.session.query(Product).filter_by(id=patch["product_id"], org_id=org_id).first()
        if not product:
            raise SaleError("Product not found", {"item": index, "product_id": patch["product_id"]})

        variant = None
        if patch.get("variant_id") is not None:
            variant = db.session.query(ProductVariant).filter_by(
                id=patch["variant_id"],
                product_id=product.id,
                org_id=org_id,
            ).first()
            if not variant:
                raise SaleError("Variant not found for product", {"item": index, "variant_id": patch["variant_id"]})

        unit_price = patch.get("unit_price_cents")
        if unit_price is None:
            if variant is None:
                raise SaleError("unit_price_cents is required when no variant is given", {"item": index})
            unit_price = variant.investor_price_cents

        items.append(SaleItem(
            product_id=product.id,
            variant_id=variant.id if variant else None,
            quantity=patch["quantity"],
            unit_price_cents=unit_price,
            actual_unit_price_cents=patch.get("actual_unit_price_cents"),
        ))

    return items


def recompute_totals(sale: Sale) -> None:
    totals = compute_sale_totals(sale.items)
    sale.total_amount_cents = totals.investor_total_cents
    sale.actual_amount_cents = totals.actual_total_cents
    sale.commission_cents = totals.commission_cents


def _lock_sale(org_id: int, sale_id: int) -> Sale:
    sale = lock_for_update(
        db.session.query(Sale).filter_by(id=sale_id, org_id=org_id)
    ).first()
    if not sale:
        raise TenantAccessError("Sale not found")
    return sale


def _finish_write(sale: Sale) -> Sale:
    """Bump the version, re-derive cashflow and commit the caller's transaction."""
    touch_sale(sale)
    sync_sale_cashflow(db.session, sale)
    db.session.commit()
    return sale


def create_sale(org_id: int, user_id: int, payload: dict) -> Sale:
    payload = dict(payload or {})
    items_payload = payload.pop("items", None)

    patch = validate_payload(model=Sale, payload=payload, policy=SALE_HEADER_POLICY, partial=False)
    _check_funding_source(patch)

    is_preorder = bool(patch.get("is_preorder", False))
    if is_preorder and not patch.get("expected_arrival_date"):
        raise SaleError("expected_arrival_date is required for preorders")

    def _op():
        _load_customer(org_id, patch["customer_id"])
        items = build_items(org_id, items_payload)

        now = utcnow()
        sale = Sale(
            org_id=org_id,
            sale_number=next_sale_number(org_id, now),
            customer_id=patch["customer_id"],
            status="PREORDER" if is_preorder else "DRAFT",
            funding_source=patch.get("funding_source") or "COMPANY",
            payment_terms=patch.get("payment_terms"),
            notes=patch.get("notes"),
            is_preorder=is_preorder,
            expected_arrival_date=patch.get("expected_arrival_date"),
            created_by_user_id=user_id,
            created_at=now,
            items=items,
        )
        recompute_totals(sale)

        db.session.add(sale)
        sync_sale_cashflow(db.session, sale)
        db.session.commit()
        return sale

    # Same-day creates race for the next sale number; a loser renumbers and retries
    sale = run_with_retry(_op, retry_on=(IntegrityError,))

    current_app.logger.info("Sale %s created by user %s (%s)", sale.sale_number, user_id, sale.status)
    return sale


def update_sale(org_id: int, sale_id: int, payload: dict) -> Sale:
    """
    Edit sale header fields. Customer, funding source and preorder flag are
    only editable while the sale is DRAFT/PREORDER.
    """
    def _op():
        sale = _lock_sale(org_id, sale_id)
        if sale.status == "CANCELLED":
            raise SaleError("Cannot edit a cancelled sale")

        patch = validate_payload(model=Sale, payload=payload, policy=SALE_HEADER_POLICY, partial=True)
        _check_funding_source(patch)

        locked_fields = {"customer_id", "funding_source", "is_preorder"} & patch.keys()
        if locked_fields and sale.status not in EDITABLE_STATUSES:
            raise SaleError(
                f"Cannot change {', '.join(sorted(locked_fields))} once a sale is {sale.status}",
                {"status": sale.status},
            )

        if "customer_id" in patch:
            _load_customer(org_id, patch["customer_id"])

        if "is_preorder" in patch:
            sale.is_preorder = bool(patch.pop("is_preorder"))
            sale.status = "PREORDER" if sale.is_preorder else "DRAFT"

        for key, value in patch.items():
            setattr(sale, key, value)

        if sale.status == "PREORDER" and not sale.expected_arrival_date:
            raise SaleError("expected_arrival_date is required for preorders")

        return _finish_write(sale)

    return run_with_retry(_op)


def replace_items(org_id: int, sale_id: int, items_payload) -> Sale:
    def _op():
        sale = _lock_sale(org_id, sale_id)
        if sale.status not in EDITABLE_STATUSES:
            raise SaleError(f"Cannot edit items of a {sale.status} sale", {"status": sale.status})

        sale.items = build_items(org_id, items_payload)
        recompute_totals(sale)
        return _finish_write(sale)

    return run_with_retry(_op)


def adjust_actual_price(org_id: int, sale_id: int, item_id: int, actual_unit_price_cents: int | None) -> Sale:
    """Set (or clear with None) what the customer is actually charged per unit."""
    patch = validate_payload(
        model=SaleItem,
        payload={"actual_unit_price_cents": actual_unit_price_cents},
        policy=SALE_ITEM_POLICY,
        partial=True,
    )
    enforce_rules_sale_item(patch, partial=True)

    def _op():
        sale = _lock_sale(org_id, sale_id)
        if sale.status == "CANCELLED":
            raise SaleError("Cannot adjust prices of a cancelled sale")

        item = next((i for i in sale.items if i.id == item_id), None)
        if item is None:
            raise SaleError("Sale item not found", {"item_id": item_id})

        item.actual_unit_price_cents = patch["actual_unit_price_cents"]
        recompute_totals(sale)
        return _finish_write(sale)

    return run_with_retry(_op)


def _variant_quantities(sale: Sale) -> dict[int, int]:
    quantities: dict[int, int] = {}
    for item in sale.items:
        if item.variant_id is not None:
            quantities[item.variant_id] = quantities.get(item.variant_id, 0) + item.quantity
    return quantities


def _lock_variants(variant_ids) -> dict[int, ProductVariant]:
    if not variant_ids:
        return {}
    variants = lock_for_update(
        db.session.query(ProductVariant).filter(ProductVariant.id.in_(list(variant_ids)))
    ).all()
    return {v.id: v for v in variants}


def _reserve_stock(sale: Sale) -> None:
    quantities = _variant_quantities(sale)
    variants = _lock_variants(quantities.keys())

    insufficient = []
    for variant_id, qty in quantities.items():
        variant = variants[variant_id]
        if variant.available_stock < qty:
            insufficient.append({
                "variant_id": variant_id,
                "variant_code": variant.variant_code,
                "requested_quantity": qty,
                "available_stock": variant.available_stock,
            })
    if insufficient:
        raise SaleError("Insufficient stock to confirm sale", {"items": insufficient})

    for variant_id, qty in quantities.items():
        variants[variant_id].available_stock -= qty
        variants[variant_id].reserved_stock += qty


def _consume_reservation(sale: Sale) -> None:
    quantities = _variant_quantities(sale)
    variants = _lock_variants(quantities.keys())
    for variant_id, qty in quantities.items():
        variant = variants[variant_id]
        variant.reserved_stock = max(variant.reserved_stock - qty, 0)


def _release_reservation(sale: Sale) -> None:
    quantities = _variant_quantities(sale)
    variants = _lock_variants(quantities.keys())
    for variant_id, qty in quantities.items():
        variant = variants[variant_id]
        variant.reserved_stock = max(variant.reserved_stock - qty, 0)
        variant.available_stock += qty


def transition_sale(
    org_id: int,
    sale_id: int,
    target: str,
    user_id: int | None = None,
    reason: str | None = None,
) -> Sale:
    """Move a sale to target status, applying stock effects and re-deriving cashflow."""
    if target not in ALLOWED_TRANSITIONS:
        raise SaleError(f"Unknown target status: {target}")

    def _op():
        sale = _lock_sale(org_id, sale_id)
        previous = sale.status

        if previous not in ALLOWED_TRANSITIONS[target]:
            raise SaleError(
                f"Cannot move sale from {previous} to {target}",
                {"status": previous, "target": target},
            )

        now = utcnow()

        if target == "CONFIRMED":
            if not sale.items:
                raise SaleError("Cannot confirm a sale with no items")
            _reserve_stock(sale)
            sale.confirmed_at = now
        elif target == "SHIPPED":
            _consume_reservation(sale)
            sale.shipped_at = now
        elif target == "DELIVERED":
            sale.delivered_at = now
        elif target == "PAID":
            sale.paid_at = now
        elif target == "CANCELLED":
            if previous == "CONFIRMED":
                _release_reservation(sale)
            sale.cancelled_at = now
            sale.cancelled_by_user_id = user_id
            sale.cancel_reason = reason

        sale.status = target
        _finish_write(sale)

        current_app.logger.info(
            "Sale %s moved %s -> %s by user %s", sale.sale_number, previous, target, user_id
        )
        return sale

    return run_with_retry(_op)


def confirm_sale(org_id: int, sale_id: int, user_id: int | None = None) -> Sale:
    return transition_sale(org_id, sale_id, "CONFIRMED", user_id)


def ship_sale(org_id: int, sale_id: int, user_id: int | None = None) -> Sale:
    return transition_sale(org_id, sale_id, "SHIPPED", user_id)


def deliver_sale(org_id: int, sale_id: int, user_id: int | None = None) -> Sale:
    return transition_sale(org_id, sale_id, "DELIVERED", user_id)


def mark_sale_paid(org_id: int, sale_id: int, user_id: int | None = None) -> Sale:
    return transition_sale(org_id, sale_id, "PAID", user_id)


def cancel_sale(org_id: int, sale_id: int, user_id: int | None = None, reason: str | None = None) -> Sale:
    return transition_sale(org_id, sale_id, "CANCELLED", user_id, reason=reason)


def delete_sale(org_id: int, sale_id: int) -> None:
    """Delete an unconfirmed or cancelled sale together with its cashflow rows."""
    def _op():
        sale = _lock_sale(org_id, sale_id)
        if sale.status not in DELETABLE_STATUSES:
            raise SaleError(f"Cannot delete a {sale.status} sale", {"status": sale.status})

        remove_sale_cashflow(db.session, sale)
        db.session.delete(sale)
        db.session.commit()

    run_with_retry(_op)


def get_sale(org_id: int, sale_id: int, include_personal: bool = True) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, org_id=org_id).first()
    if not sale:
        raise TenantAccessError("Sale not found")
    if not include_personal and sale.funding_source == "PERSONAL":
        raise TenantAccessError("Sale not found")
    return sale


def list_sales(
    org_id: int,
    filters: dict,
    include_personal: bool = True,
    page: int = 1,
    per_page: int = 20,
) -> dict:
    """
    Sales for an organization, newest first, with a summary over the filtered set.
    include_personal=False restricts the listing to COMPANY-funded sales.
    """
    query = db.session.query(Sale).filter(Sale.org_id == org_id)

    if not include_personal:
        query = query.filter(Sale.funding_source == "COMPANY")
    elif filters.get("funding_source") in ("COMPANY", "PERSONAL"):
        query = query.filter(Sale.funding_source == filters["funding_source"])

    if filters.get("status"):
        query = query.filter(Sale.status == filters["status"])
    if filters.get("customer_id") is not None:
        query = query.filter(Sale.customer_id == filters["customer_id"])
    if filters.get("is_preorder") is not None:
        query = query.filter(Sale.is_preorder.is_(filters["is_preorder"]))
    if filters.get("date_from") is not None:
        query = query.filter(Sale.created_at >= filters["date_from"])
    if filters.get("date_to") is not None:
        query = query.filter(Sale.created_at <= filters["date_to"])

    summary_row = query.with_entities(
        db.func.count(Sale.id),
        db.func.coalesce(db.func.sum(Sale.total_amount_cents), 0),
        db.func.coalesce(db.func.sum(Sale.actual_amount_cents), 0),
        db.func.coalesce(db.func.sum(Sale.commission_cents), 0),
    ).one()

    page = max(page, 1)
    per_page = min(max(per_page, 1), 100)
    sales = (
        query.order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
        .all()
    )

    total = int(summary_row[0])
    return {
        "sales": sales,
        "summary": {
            "count": total,
            "total_amount_cents": int(summary_row[1]),
            "actual_amount_cents": int(summary_row[2]),
            "commission_cents": int(summary_row[3]),
        },
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "has_next": page * per_page < total,
        },
    }

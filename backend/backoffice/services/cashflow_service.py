# Overview: Derives cashflow ledger rows from sale state and manages manual ledger entries.

"""
Cashflow Ledger

SALE SYNC: A sale in a settled status (CONFIRMED, SHIPPED, DELIVERED, PAID)
owns exactly one set of ledger rows keyed by reference "sale:<id>":
1. INCOME  actual total (what the customer pays)
2. EXPENSE investor total (what is settled with the capital source)
3. INCOME or EXPENSE |commission|, only when actual != investor

Any other status owns no rows. Rows are rebuilt by delete-then-insert on
every sale write.

TRANSACTIONS: sync_sale_cashflow only flushes. The caller owns the
transaction, commits on success and rolls back on error. Callers also lock
the sale row and bump its version so two writers for one sale serialize.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import CashFlowRecord, Sale
from ..models.cashflow import SOURCE_MANUAL, SOURCE_SALE_SYNC
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_cashflow, validate_payload
from .concurrency import lock_for_update, run_with_retry


SETTLED_STATUSES = frozenset({"CONFIRMED", "SHIPPED", "DELIVERED", "PAID"})

CATEGORY_SALES = "SALES"
CATEGORY_SETTLEMENT = "SETTLEMENT"
CATEGORY_COMMISSION = "COMMISSION"

DEFAULT_CATEGORIES = {
    "INCOME": "SALES_INCOME",
    "EXPENSE": "OPERATING_EXPENSE",
}

MANUAL_RECORD_POLICY = ModelValidationPolicy(
    writable_fields={
        "type",
        "amount_cents",
        "description",
        "category",
        "funding_source",
        "transaction_date",
        "reference",
        "notes",
    },
    required_on_create={"type", "amount_cents", "description", "funding_source"},
)


class CashflowError(Exception):
    """Raised when a ledger operation violates a business rule."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class CashflowPermissionError(CashflowError):
    """Raised when a user edits a ledger row they do not own."""


class CashflowReadOnlyError(CashflowError):
    """Raised when a sale-derived ledger row is edited by hand."""


@dataclass(frozen=True)
class SaleTotals:
    investor_total_cents: int
    actual_total_cents: int

    @property
    def commission_cents(self) -> int:
        return self.actual_total_cents - self.investor_total_cents


def sale_reference(sale_id: int) -> str:
    return f"sale:{sale_id}"


def compute_sale_totals(items) -> SaleTotals:
    """Investor total from unit prices; actual total falls back to unit price per item."""
    investor = 0
    actual = 0
    for item in items:
        investor += item.unit_price_cents * item.quantity
        actual += item.effective_unit_price_cents * item.quantity
    return SaleTotals(investor_total_cents=investor, actual_total_cents=actual)


def _format_cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


def build_sale_cashflow_rows(sale: Sale, totals: SaleTotals) -> list[CashFlowRecord]:
    """Ledger rows a settled sale should own. Pure: nothing is added to the session."""
    reference = sale_reference(sale.id)
    commission = totals.commission_cents

    common = dict(
        org_id=sale.org_id,
        transaction_date=sale.created_at,
        reference=reference,
        source=SOURCE_SALE_SYNC,
        created_by_user_id=sale.created_by_user_id,
    )

    rows = [
        CashFlowRecord(
            type="INCOME",
            amount_cents=totals.actual_total_cents,
            description=f"Sale income - {sale.sale_number}",
            category=CATEGORY_SALES,
            funding_source="PERSONAL" if sale.funding_source == "PERSONAL" else "INVESTOR",
            notes=f"Commission {_format_cents(commission)}" if commission != 0 else None,
            **common,
        ),
        CashFlowRecord(
            type="EXPENSE",
            amount_cents=totals.investor_total_cents,
            description=f"Investor settlement - {sale.sale_number}",
            category=CATEGORY_SETTLEMENT,
            funding_source="INVESTOR",
            notes="Total at investor prices",
            **common,
        ),
    ]

    if commission != 0:
        rows.append(CashFlowRecord(
            type="INCOME" if commission > 0 else "EXPENSE",
            amount_cents=abs(commission),
            description=f"Sale commission - {sale.sale_number}",
            category=CATEGORY_COMMISSION,
            funding_source="PERSONAL",
            notes="Difference between actual and investor prices",
            **common,
        ))

    return rows


def _delete_reference(session, org_id: int, reference: str) -> int:
    # Manual rows may quote a sale reference; only derived rows belong to the sale
    return session.query(CashFlowRecord).filter(
        CashFlowRecord.org_id == org_id,
        CashFlowRecord.reference == reference,
        CashFlowRecord.source == SOURCE_SALE_SYNC,
    ).delete(synchronize_session="fetch")


def sync_sale_cashflow(session, sale: Sale) -> list[CashFlowRecord]:
    """
    Make the ledger rows for sale match its current status and items.

    Flushes but never commits. Errors propagate to the caller's transaction.
    Returns the rows now owned by the sale (empty for non-settled sales).
    """
    if sale.id is None:
        session.flush()

    reference = sale_reference(sale.id)

    if sale.status not in SETTLED_STATUSES:
        removed = _delete_reference(session, sale.org_id, reference)
        session.flush()
        current_app.logger.info(
            "Cashflow sync: sale %s status %s, removed %d rows",
            sale.sale_number, sale.status, removed,
        )
        return []

    totals = compute_sale_totals(sale.items)

    current_app.logger.info(
        "Cashflow sync: sale %s investor=%d actual=%d commission=%d",
        sale.sale_number,
        totals.investor_total_cents,
        totals.actual_total_cents,
        totals.commission_cents,
    )

    _delete_reference(session, sale.org_id, reference)

    rows = build_sale_cashflow_rows(sale, totals)
    session.add_all(rows)
    session.flush()

    return rows


def remove_sale_cashflow(session, sale: Sale) -> int:
    """Delete every ledger row owned by sale (used before deleting the sale)."""
    removed = _delete_reference(session, sale.org_id, sale_reference(sale.id))
    session.flush()
    return removed


def touch_sale(sale: Sale) -> None:
    """Force an UPDATE on the sale row so its optimistic version is checked and bumped."""
    sale.updated_at = utcnow()


def resync_sale(org_id: int, sale_id: int) -> list[CashFlowRecord]:
    """Re-derive one sale's rows under a row lock and commit."""
    def _op():
        sale = lock_for_update(
            db.session.query(Sale).filter_by(id=sale_id, org_id=org_id)
        ).first()
        if sale is None:
            raise CashflowError("Sale not found", {"sale_id": sale_id})

        touch_sale(sale)
        rows = sync_sale_cashflow(db.session, sale)
        db.session.commit()
        return rows

    return run_with_retry(_op)


def resync_org_cashflow(org_id: int, sale_id: int | None = None) -> dict:
    """
    Repair tool: re-derive ledger rows for every sale of an organization
    (or for one sale). Returns counts.
    """
    query = db.session.query(Sale.id).filter(Sale.org_id == org_id)
    if sale_id is not None:
        query = query.filter(Sale.id == sale_id)
    sale_ids = [sid for (sid,) in query.order_by(Sale.id).all()]

    rows_written = 0
    for sid in sale_ids:
        rows_written += len(resync_sale(org_id, sid))

    return {"sales": len(sale_ids), "rows": rows_written}


# -- Manual ledger entries --


def _filtered_query(org_id: int, filters: dict):
    query = db.session.query(CashFlowRecord).filter(CashFlowRecord.org_id == org_id)

    if filters.get("type") in ("INCOME", "EXPENSE"):
        query = query.filter(CashFlowRecord.type == filters["type"])

    if filters.get("funding_source") in ("INVESTOR", "PERSONAL"):
        query = query.filter(CashFlowRecord.funding_source == filters["funding_source"])

    if filters.get("category"):
        query = query.filter(CashFlowRecord.category == filters["category"])

    if filters.get("date_from") is not None:
        query = query.filter(CashFlowRecord.transaction_date >= filters["date_from"])

    if filters.get("date_to") is not None:
        query = query.filter(CashFlowRecord.transaction_date <= filters["date_to"])

    search = (filters.get("search") or "").strip()
    if search:
        pattern = f"%{search}%"
        query = query.filter(db.or_(
            CashFlowRecord.description.ilike(pattern),
            CashFlowRecord.category.ilike(pattern),
            CashFlowRecord.reference.ilike(pattern),
        ))

    return query


def calculate_stats(query) -> dict:
    """Income/expense totals overall and per funding source for a filtered query."""
    rows = (
        query.with_entities(
            CashFlowRecord.funding_source,
            CashFlowRecord.type,
            func.coalesce(func.sum(CashFlowRecord.amount_cents), 0),
        )
        .group_by(CashFlowRecord.funding_source, CashFlowRecord.type)
        .all()
    )

    by_source = {
        source: {"income_cents": 0, "expense_cents": 0, "net_cents": 0}
        for source in ("INVESTOR", "PERSONAL")
    }
    for source, record_type, amount in rows:
        bucket = by_source.setdefault(source, {"income_cents": 0, "expense_cents": 0, "net_cents": 0})
        key = "income_cents" if record_type == "INCOME" else "expense_cents"
        bucket[key] += int(amount)

    for bucket in by_source.values():
        bucket["net_cents"] = bucket["income_cents"] - bucket["expense_cents"]

    total_income = sum(b["income_cents"] for b in by_source.values())
    total_expense = sum(b["expense_cents"] for b in by_source.values())

    return {
        "total_income_cents": total_income,
        "total_expense_cents": total_expense,
        "net_cents": total_income - total_expense,
        "by_funding_source": by_source,
    }


def list_records(org_id: int, filters: dict, page: int = 1, limit: int = 20) -> dict:
    page = max(page, 1)
    limit = min(max(limit, 1), 200)

    query = _filtered_query(org_id, filters)
    total = query.count()
    records = (
        query.order_by(CashFlowRecord.transaction_date.desc(), CashFlowRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "records": [r.to_dict() for r in records],
        "total": total,
        "page": page,
        "limit": limit,
        "has_more": page * limit < total,
        "stats": calculate_stats(_filtered_query(org_id, filters)),
    }


def create_manual_record(org_id: int, user_id: int, payload: dict) -> CashFlowRecord:
    patch = validate_payload(
        model=CashFlowRecord,
        payload=payload,
        policy=MANUAL_RECORD_POLICY,
        partial=False,
    )
    enforce_rules_cashflow(patch)

    record = CashFlowRecord(
        org_id=org_id,
        type=patch["type"],
        amount_cents=patch["amount_cents"],
        description=patch["description"],
        category=patch.get("category") or DEFAULT_CATEGORIES[patch["type"]],
        funding_source=patch["funding_source"],
        transaction_date=patch.get("transaction_date") or utcnow(),
        reference=patch.get("reference") or None,
        notes=patch.get("notes") or None,
        source=SOURCE_MANUAL,
        created_by_user_id=user_id,
    )

    db.session.add(record)
    db.session.commit()

    current_app.logger.info(
        "Cashflow %s recorded by user %s: %s %d (%s)",
        record.type, user_id, record.description, record.amount_cents, record.funding_source,
    )
    return record


def update_record(
    org_id: int,
    record_id: int,
    user_id: int,
    payload: dict,
    can_manage_all: bool = False,
) -> CashFlowRecord:
    """
    Edit a manual ledger row. Only its creator, or a user allowed to manage
    all cashflow, may edit it; rows derived from sales are never editable.
    """
    record = db.session.query(CashFlowRecord).filter_by(id=record_id, org_id=org_id).first()
    if record is None:
        raise CashflowError("Cashflow record not found", {"record_id": record_id})

    if record.source == SOURCE_SALE_SYNC:
        raise CashflowReadOnlyError(
            "Sale-derived cashflow records are maintained automatically",
            {"reference": record.reference},
        )

    if record.created_by_user_id != user_id and not can_manage_all:
        raise CashflowPermissionError("Only the creator may edit this record")

    patch = validate_payload(
        model=CashFlowRecord,
        payload=payload,
        policy=MANUAL_RECORD_POLICY,
        partial=True,
    )
    enforce_rules_cashflow(patch)

    for key, value in patch.items():
        setattr(record, key, value)
    record.updated_at = utcnow()

    db.session.commit()
    return record

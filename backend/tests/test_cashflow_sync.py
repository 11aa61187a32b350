# Overview: Pytest coverage for deriving cashflow rows from sale state.

"""
Cashflow sync tests.

A settled sale owns exactly one INCOME row for the actual total, one EXPENSE
row for the investor total and, when the two differ, one commission row.
Every other status owns nothing.
"""

import pytest

from backoffice.models import CashFlowRecord, ProductVariant, Sale
from backoffice.services import cashflow_service, sales_service
from backoffice.services.cashflow_service import compute_sale_totals, sale_reference


@pytest.fixture
def two_item_sale(employee_a, customer_a, product_a, variant_a, variant_a_gift):
    """Investor total 20.00, actual total 22.00."""
    return sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [
            {
                "product_id": product_a.id,
                "variant_id": variant_a.id,
                "quantity": 1,
                "actual_unit_price_cents": 1200,
            },
            {
                "product_id": product_a.id,
                "variant_id": variant_a_gift.id,
                "quantity": 2,
            },
        ],
    })


def _rows(db_session, sale):
    return (
        db_session.query(CashFlowRecord)
        .filter_by(org_id=sale.org_id, reference=sale_reference(sale.id))
        .order_by(CashFlowRecord.id)
        .all()
    )


def _summary(rows):
    return sorted((r.type, r.category, r.amount_cents, r.funding_source) for r in rows)


def test_draft_sale_owns_no_rows(db_session, two_item_sale):
    assert two_item_sale.status == "DRAFT"
    assert _rows(db_session, two_item_sale) == []


def test_totals_stored_on_sale(db_session, two_item_sale):
    assert two_item_sale.total_amount_cents == 2000
    assert two_item_sale.actual_amount_cents == 2200
    assert two_item_sale.commission_cents == 200


def test_confirm_creates_three_rows(db_session, two_item_sale):
    sale = sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)

    rows = _rows(db_session, sale)
    assert _summary(rows) == [
        ("EXPENSE", "SETTLEMENT", 2000, "INVESTOR"),
        ("INCOME", "COMMISSION", 200, "PERSONAL"),
        ("INCOME", "SALES", 2200, "INVESTOR"),
    ]
    assert all(r.source == "SALE_SYNC" for r in rows)
    assert all(r.transaction_date == sale.created_at for r in rows)

    descriptions = {r.category: r.description for r in rows}
    assert descriptions["SALES"] == f"Sale income - {sale.sale_number}"
    assert descriptions["SETTLEMENT"] == f"Investor settlement - {sale.sale_number}"
    assert descriptions["COMMISSION"] == f"Sale commission - {sale.sale_number}"


def test_resync_is_idempotent(db_session, two_item_sale):
    sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)

    cashflow_service.resync_sale(two_item_sale.org_id, two_item_sale.id)
    cashflow_service.resync_sale(two_item_sale.org_id, two_item_sale.id)

    assert len(_rows(db_session, two_item_sale)) == 3


def test_rows_follow_status_through_lifecycle(db_session, two_item_sale):
    org_id, sale_id = two_item_sale.org_id, two_item_sale.id

    for step in (sales_service.confirm_sale, sales_service.ship_sale,
                 sales_service.deliver_sale, sales_service.mark_sale_paid):
        sale = step(org_id, sale_id)
        assert len(_rows(db_session, sale)) == 3


def test_cancel_after_confirm_removes_rows(db_session, two_item_sale):
    sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)
    sale = sales_service.cancel_sale(two_item_sale.org_id, two_item_sale.id, reason="Customer withdrew")

    assert sale.status == "CANCELLED"
    assert _rows(db_session, sale) == []


def test_no_commission_row_when_prices_match(db_session, employee_a, customer_a, product_a, variant_a):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 3}],
    })
    sales_service.confirm_sale(sale.org_id, sale.id)

    assert _summary(_rows(db_session, sale)) == [
        ("EXPENSE", "SETTLEMENT", 3000, "INVESTOR"),
        ("INCOME", "SALES", 3000, "INVESTOR"),
    ]


def test_negative_commission_is_an_expense(db_session, employee_a, customer_a, product_a, variant_a):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [{
            "product_id": product_a.id,
            "variant_id": variant_a.id,
            "quantity": 2,
            "actual_unit_price_cents": 900,
        }],
    })
    sales_service.confirm_sale(sale.org_id, sale.id)

    commission = [r for r in _rows(db_session, sale) if r.category == "COMMISSION"]
    assert len(commission) == 1
    assert commission[0].type == "EXPENSE"
    assert commission[0].amount_cents == 200


def test_personal_sale_income_is_personal(db_session, employee_a, customer_a, product_a, variant_a):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "funding_source": "PERSONAL",
        "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 1}],
    })
    sales_service.confirm_sale(sale.org_id, sale.id)

    funding = {r.category: r.funding_source for r in _rows(db_session, sale)}
    assert funding == {"SALES": "PERSONAL", "SETTLEMENT": "INVESTOR"}


def test_actual_price_adjustment_rebuilds_rows(db_session, two_item_sale):
    sale = sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)
    gift_item = sale.items[1]

    sale = sales_service.adjust_actual_price(sale.org_id, sale.id, gift_item.id, 650)

    assert sale.actual_amount_cents == 2500
    assert _summary(_rows(db_session, sale)) == [
        ("EXPENSE", "SETTLEMENT", 2000, "INVESTOR"),
        ("INCOME", "COMMISSION", 500, "PERSONAL"),
        ("INCOME", "SALES", 2500, "INVESTOR"),
    ]


def test_clearing_actual_price_drops_commission(db_session, two_item_sale):
    sale = sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)

    sale = sales_service.adjust_actual_price(sale.org_id, sale.id, sale.items[0].id, None)

    assert sale.commission_cents == 0
    assert [r.category for r in _rows(db_session, sale) if r.category == "COMMISSION"] == []


def test_delete_removes_rows(db_session, two_item_sale):
    org_id, sale_id = two_item_sale.org_id, two_item_sale.id
    sales_service.confirm_sale(org_id, sale_id)
    sales_service.cancel_sale(org_id, sale_id)

    sales_service.delete_sale(org_id, sale_id)

    assert db_session.get(Sale, sale_id) is None
    assert db_session.query(CashFlowRecord).filter_by(reference=f"sale:{sale_id}").count() == 0


def test_writes_bump_sale_version(db_session, two_item_sale):
    before = two_item_sale.version_id
    sale = sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)

    assert sale.version_id > before


def test_stock_reserved_and_released(db_session, two_item_sale, variant_a):
    org_id, sale_id = two_item_sale.org_id, two_item_sale.id

    sales_service.confirm_sale(org_id, sale_id)
    variant = db_session.get(ProductVariant, variant_a.id)
    assert (variant.available_stock, variant.reserved_stock) == (9, 1)

    sales_service.cancel_sale(org_id, sale_id)
    assert (variant.available_stock, variant.reserved_stock) == (10, 0)


def test_resync_org_repairs_missing_rows(db_session, two_item_sale):
    sales_service.confirm_sale(two_item_sale.org_id, two_item_sale.id)
    db_session.query(CashFlowRecord).delete()
    db_session.commit()

    counts = cashflow_service.resync_org_cashflow(two_item_sale.org_id)

    assert counts == {"sales": 1, "rows": 3}
    assert len(_rows(db_session, two_item_sale)) == 3


def test_compute_totals_falls_back_to_unit_price(two_item_sale):
    totals = compute_sale_totals(two_item_sale.items)

    assert totals.investor_total_cents == 2000
    assert totals.actual_total_cents == 2200
    assert totals.commission_cents == 200

# Overview: Pytest coverage for the cashflow ledger API.

import pytest

from backoffice.models import CashFlowRecord
from backoffice.services import sales_service


def _manual(client, headers, **overrides):
    payload = {
        "type": "EXPENSE",
        "amount_cents": 45000,
        "description": "Customs broker fee",
        "funding_source": "INVESTOR",
        "transaction_date": "2026-03-01T18:30:00Z",
    }
    payload.update(overrides)
    return client.post("/api/cashflow", json=payload, headers=headers)


@pytest.fixture
def confirmed_sale(employee_a, customer_a, product_a, variant_a):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [{
            "product_id": product_a.id,
            "variant_id": variant_a.id,
            "quantity": 1,
            "actual_unit_price_cents": 1200,
        }],
    })
    return sales_service.confirm_sale(sale.org_id, sale.id)


def test_create_manual_record(client, employee_headers):
    response = _manual(client, employee_headers)

    assert response.status_code == 201
    record = response.get_json()["record"]
    assert record["source"] == "MANUAL"
    assert record["category"] == "OPERATING_EXPENSE"
    assert record["created_by"] == "employee_a"
    assert record["transaction_date"] == "2026-03-01T18:30:00Z"


@pytest.mark.parametrize("overrides", [
    {"type": "TRANSFER"},
    {"amount_cents": 0},
    {"funding_source": "COMPANY"},
    {"description": ""},
])
def test_create_rejects_invalid(client, employee_headers, overrides):
    assert _manual(client, employee_headers, **overrides).status_code == 400


def test_investor_cannot_view_cashflow(client, investor_headers):
    assert client.get("/api/cashflow", headers=investor_headers).status_code == 403


def test_list_with_stats(client, employee_headers, confirmed_sale):
    _manual(client, employee_headers)
    _manual(client, employee_headers, type="INCOME", amount_cents=10000,
            funding_source="PERSONAL", description="Tasting event tickets")

    data = client.get("/api/cashflow", headers=employee_headers).get_json()

    assert data["total"] == 5
    stats = data["stats"]
    assert stats["total_income_cents"] == 1200 + 200 + 10000
    assert stats["total_expense_cents"] == 1000 + 45000
    assert stats["by_funding_source"]["PERSONAL"]["income_cents"] == 200 + 10000
    assert stats["by_funding_source"]["INVESTOR"]["net_cents"] == 1200 - 1000 - 45000


def test_list_filters(client, employee_headers, confirmed_sale):
    _manual(client, employee_headers)

    data = client.get("/api/cashflow?type=EXPENSE", headers=employee_headers).get_json()
    assert data["total"] == 2

    data = client.get("/api/cashflow?category=COMMISSION", headers=employee_headers).get_json()
    assert [r["amount_cents"] for r in data["records"]] == [200]

    data = client.get("/api/cashflow?search=broker", headers=employee_headers).get_json()
    assert data["total"] == 1


def test_date_to_includes_whole_day(client, employee_headers):
    _manual(client, employee_headers)

    data = client.get(
        "/api/cashflow?date_from=2026-03-01&date_to=2026-03-01", headers=employee_headers
    ).get_json()
    assert data["total"] == 1

    data = client.get("/api/cashflow?date_to=2026-02-28", headers=employee_headers).get_json()
    assert data["total"] == 0


def test_pagination(client, employee_headers):
    for n in range(3):
        _manual(client, employee_headers, description=f"Storage fee {n}")

    data = client.get("/api/cashflow?limit=2", headers=employee_headers).get_json()

    assert len(data["records"]) == 2
    assert data["has_more"] is True
    # Stats cover the whole filtered set, not the page
    assert data["stats"]["total_expense_cents"] == 3 * 45000


def test_creator_can_edit(client, employee_headers):
    record_id = _manual(client, employee_headers).get_json()["record"]["id"]

    response = client.put(f"/api/cashflow/{record_id}", json={"amount_cents": 47000}, headers=employee_headers)

    assert response.status_code == 200
    assert response.get_json()["record"]["amount_cents"] == 47000


def test_other_employee_cannot_edit(client, employee_headers, org_a, make_user, login_headers):
    record_id = _manual(client, employee_headers).get_json()["record"]["id"]
    colleague = make_user(org_a, "employee_a2", "employee")

    response = client.put(
        f"/api/cashflow/{record_id}",
        json={"amount_cents": 1},
        headers=login_headers(colleague),
    )

    assert response.status_code == 403


def test_admin_can_edit_any_record(client, employee_headers, admin_headers):
    record_id = _manual(client, employee_headers).get_json()["record"]["id"]

    response = client.put(f"/api/cashflow/{record_id}", json={"notes": "Checked"}, headers=admin_headers)

    assert response.status_code == 200


def test_sale_rows_are_read_only(client, admin_headers, confirmed_sale, db_session):
    record = db_session.query(CashFlowRecord).filter_by(reference=f"sale:{confirmed_sale.id}").first()

    response = client.put(f"/api/cashflow/{record.id}", json={"amount_cents": 1}, headers=admin_headers)

    assert response.status_code == 409
    assert response.get_json()["details"] == {"reference": f"sale:{confirmed_sale.id}"}


def test_manual_row_quoting_sale_reference_survives_sync(
    client, employee_headers, employee_a, customer_a, product_a, variant_a, db_session
):
    sale = sales_service.create_sale(employee_a.org_id, employee_a.id, {
        "customer_id": customer_a.id,
        "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 1}],
    })
    reference = f"sale:{sale.id}"
    manual_id = _manual(client, employee_headers, reference=reference).get_json()["record"]["id"]

    sales_service.confirm_sale(sale.org_id, sale.id)
    sales_service.cancel_sale(sale.org_id, sale.id, reason="Customer withdrew")
    db_session.expire_all()

    manual = db_session.get(CashFlowRecord, manual_id)
    assert manual is not None
    assert manual.source == "MANUAL"
    assert db_session.query(CashFlowRecord).filter_by(reference=reference).count() == 1


def test_edit_unknown_record(client, employee_headers):
    assert client.put("/api/cashflow/9999", json={"notes": "x"}, headers=employee_headers).status_code == 404


def test_sync_endpoint(client, employee_headers, confirmed_sale, db_session):
    db_session.query(CashFlowRecord).delete()
    db_session.commit()

    response = client.post(f"/api/cashflow/sync/{confirmed_sale.id}", headers=employee_headers)

    assert response.status_code == 200
    data = response.get_json()
    assert data["count"] == 3
    assert {r["category"] for r in data["records"]} == {"SALES", "SETTLEMENT", "COMMISSION"}


def test_sync_unknown_sale(client, employee_headers):
    assert client.post("/api/cashflow/sync/9999", headers=employee_headers).status_code == 404

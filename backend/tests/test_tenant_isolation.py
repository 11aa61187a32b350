"""
Tenant isolation tests.

Rows of another organization must look exactly like missing rows, and
every attempt to reach one by id is recorded as a security event.
"""

from backoffice.models import CashFlowRecord, SecurityEvent
from backoffice.services import sales_service


def _cross_tenant_events(db_session):
    return db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").all()


def test_product_of_other_org_is_not_found(client, admin_headers, product_b, db_session):
    response = client.get(f"/api/products/{product_b.id}", headers=admin_headers)

    assert response.status_code == 404
    assert response.get_json()["error"] == "Product not found"
    assert len(_cross_tenant_events(db_session)) == 1


def test_cannot_update_other_org_product(client, admin_headers, product_b):
    response = client.put(f"/api/products/{product_b.id}", json={"name": "Hijacked"}, headers=admin_headers)

    assert response.status_code == 404


def test_product_listing_is_scoped(client, admin_headers, product_a, product_b):
    codes = [p["product_code"] for p in client.get("/api/products", headers=admin_headers).get_json()["products"]]

    assert codes == ["YAM-12"]


def test_customer_of_other_org_is_not_found(client, admin_headers, customer_b, db_session):
    assert client.get(f"/api/customers/{customer_b.id}", headers=admin_headers).status_code == 404
    assert len(_cross_tenant_events(db_session)) == 1


def test_sale_of_other_org_is_not_found(client, admin_headers, admin_b, customer_b, product_b, variant_b):
    sale = sales_service.create_sale(admin_b.org_id, admin_b.id, {
        "customer_id": customer_b.id,
        "items": [{"product_id": product_b.id, "variant_id": variant_b.id, "quantity": 1}],
    })

    assert client.get(f"/api/sales/{sale.id}", headers=admin_headers).status_code == 404
    assert client.post(f"/api/sales/{sale.id}/confirm", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/sales/{sale.id}", headers=admin_headers).status_code == 404


def test_sale_cannot_use_other_org_catalog(client, admin_headers, customer_a, product_b, variant_b):
    response = client.post(
        "/api/sales",
        json={
            "customer_id": customer_a.id,
            "items": [{"product_id": product_b.id, "variant_id": variant_b.id, "quantity": 1}],
        },
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.get_json()["error"] == "Product not found"


def test_sale_cannot_use_other_org_customer(client, admin_headers, customer_b, product_a, variant_a):
    response = client.post(
        "/api/sales",
        json={
            "customer_id": customer_b.id,
            "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 1}],
        },
        headers=admin_headers,
    )

    assert response.status_code == 400


def test_cashflow_is_scoped(client, admin_headers, admin_b_headers, db_session):
    client.post(
        "/api/cashflow",
        json={"type": "INCOME", "amount_cents": 500, "description": "Refund", "funding_source": "PERSONAL"},
        headers=admin_headers,
    )
    record = db_session.query(CashFlowRecord).one()

    assert client.get("/api/cashflow", headers=admin_b_headers).get_json()["total"] == 0
    response = client.put(f"/api/cashflow/{record.id}", json={"notes": "x"}, headers=admin_b_headers)
    assert response.status_code == 404


def test_admin_cannot_see_other_org_users(client, admin_headers, admin_b):
    usernames = [u["username"] for u in client.get("/api/admin/users", headers=admin_headers).get_json()["users"]]

    assert "admin_b" not in usernames
    assert client.post(f"/api/admin/users/{admin_b.id}/deactivate", headers=admin_headers).status_code == 404

# Overview: Pytest coverage for product, variant and customer endpoints.

import pytest

from backoffice.services import sales_service


class TestProducts:

    def test_create_classifies_category_from_name(self, client, employee_headers):
        response = client.post(
            "/api/products",
            json={"product_code": "DASSAI-23", "name": "Dassai 23 Junmai Daiginjo Sake", "alcohol_percentage": 16},
            headers=employee_headers,
        )

        assert response.status_code == 201
        product = response.get_json()["product"]
        # GIN in DAIGINJO matches before SAKE
        assert product["category"] == "gin"
        assert product["volume_ml"] == 750

    def test_explicit_category_is_normalized(self, client, employee_headers):
        response = client.post(
            "/api/products",
            json={"product_code": "DASSAI-45", "name": "Dassai 45", "category": "SAKE"},
            headers=employee_headers,
        )

        assert response.get_json()["product"]["category"] == "sake"

    def test_unknown_category(self, client, employee_headers):
        response = client.post(
            "/api/products",
            json={"product_code": "X-1", "name": "Mystery", "category": "cider"},
            headers=employee_headers,
        )

        assert response.status_code == 400

    def test_duplicate_code_conflicts(self, client, employee_headers, product_a):
        response = client.post(
            "/api/products",
            json={"product_code": "YAM-12", "name": "Another Yamazaki"},
            headers=employee_headers,
        )

        assert response.status_code == 409

    @pytest.mark.parametrize("payload", [{"alcohol_percentage": 120}, {"volume_ml": 0}])
    def test_update_rejects_bad_values(self, client, employee_headers, product_a, payload):
        response = client.put(f"/api/products/{product_a.id}", json=payload, headers=employee_headers)

        assert response.status_code == 400

    def test_search_and_filter(self, client, employee_headers, product_a):
        client.post(
            "/api/products",
            json={"product_code": "ASAHI-SD", "name": "Asahi Super Dry Beer", "alcohol_percentage": 5, "volume_ml": 330},
            headers=employee_headers,
        )

        data = client.get("/api/products?category=beer", headers=employee_headers).get_json()
        assert [p["product_code"] for p in data["products"]] == ["ASAHI-SD"]

        data = client.get("/api/products?search=yam&include_variants=false", headers=employee_headers).get_json()
        assert [p["product_code"] for p in data["products"]] == ["YAM-12"]
        assert "variants" not in data["products"][0]
        assert data["pagination"]["total"] == 1

    def test_delete_unused_product(self, client, employee_headers, variant_a, product_a):
        response = client.delete(f"/api/products/{product_a.id}", headers=employee_headers)

        assert response.status_code == 200
        assert client.get(f"/api/products/{product_a.id}", headers=employee_headers).status_code == 404

    def test_cannot_delete_product_on_sale(self, client, employee_headers, employee_a, customer_a, product_a, variant_a):
        sales_service.create_sale(employee_a.org_id, employee_a.id, {
            "customer_id": customer_a.id,
            "items": [{"product_id": product_a.id, "variant_id": variant_a.id, "quantity": 1}],
        })

        response = client.delete(f"/api/products/{product_a.id}", headers=employee_headers)

        assert response.status_code == 409


class TestVariants:

    def test_create_variant(self, client, employee_headers, product_a):
        response = client.post(
            f"/api/products/{product_a.id}/variants",
            json={"variant_code": "YAM-12-MINI", "investor_price_cents": 300, "available_stock": 24},
            headers=employee_headers,
        )

        assert response.status_code == 201
        variant = response.get_json()["variant"]
        assert variant["available_stock"] == 24
        assert variant["reserved_stock"] == 0

    def test_duplicate_variant_code(self, client, employee_headers, product_a, variant_a):
        response = client.post(
            f"/api/products/{product_a.id}/variants",
            json={"variant_code": "YAM-12-700"},
            headers=employee_headers,
        )

        assert response.status_code == 409

    @pytest.mark.parametrize("payload", [
        {"investor_price_cents": -1},
        {"available_stock": -3},
        {"actual_price_cents": 12.5},
        {"reserved_stock": 2},
    ])
    def test_update_rejects_invalid(self, client, employee_headers, product_a, variant_a, payload):
        response = client.put(
            f"/api/products/{product_a.id}/variants/{variant_a.id}",
            json=payload,
            headers=employee_headers,
        )

        assert response.status_code == 400

    def test_variant_must_belong_to_product(self, client, employee_headers, variant_a, db_session, org_a):
        other = client.post(
            "/api/products",
            json={"product_code": "HIBIKI", "name": "Hibiki Harmony Whisky"},
            headers=employee_headers,
        ).get_json()["product"]

        response = client.put(
            f"/api/products/{other['id']}/variants/{variant_a.id}",
            json={"available_stock": 1},
            headers=employee_headers,
        )

        assert response.status_code == 404

    def test_landed_cost(self, client, investor_headers, product_a, variant_a):
        response = client.post(
            f"/api/products/{product_a.id}/variants/{variant_a.id}/landed-cost",
            json={"amount": 10000, "currency": "JPY", "custom_exchange_rate": 0.2},
            headers=investor_headers,
        )

        assert response.status_code == 200
        data = response.get_json()
        assert data["result"]["taxes"]["category"] == "whisky"
        assert data["result"]["input"]["volume_ml"] == 700
        assert "cost_price_cents" not in data["variant"]

    def test_landed_cost_normalizes_codes(self, client, employee_headers, product_a, variant_a):
        response = client.post(
            f"/api/products/{product_a.id}/variants/{variant_a.id}/landed-cost",
            json={"amount": 10000, "currency": " jpy ", "customer_tier": "vip"},
            headers=employee_headers,
        )

        assert response.status_code == 200
        result = response.get_json()["result"]
        assert result["input"]["currency"] == "JPY"
        assert result["input"]["customer_tier"] == "VIP"

    def test_landed_cost_requires_amount(self, client, employee_headers, product_a, variant_a):
        response = client.post(
            f"/api/products/{product_a.id}/variants/{variant_a.id}/landed-cost",
            json={"currency": "JPY"},
            headers=employee_headers,
        )

        assert response.status_code == 400


class TestCustomers:

    def test_create_normalizes_tier(self, client, employee_headers):
        response = client.post(
            "/api/customers",
            json={"name": "Shinjuku Liquor", "tier": "premium", "phone": "03-1234-5678"},
            headers=employee_headers,
        )

        assert response.status_code == 201
        assert response.get_json()["customer"]["tier"] == "PREMIUM"

    def test_default_tier(self, client, employee_headers):
        response = client.post("/api/customers", json={"name": "Walk-in"}, headers=employee_headers)

        assert response.get_json()["customer"]["tier"] == "REGULAR"

    def test_unknown_tier(self, client, employee_headers):
        response = client.post("/api/customers", json={"name": "X", "tier": "GOLD"}, headers=employee_headers)

        assert response.status_code == 400

    def test_inactive_hidden_by_default(self, client, employee_headers, customer_a):
        client.put(f"/api/customers/{customer_a.id}", json={"is_active": False}, headers=employee_headers)

        assert client.get("/api/customers", headers=employee_headers).get_json()["count"] == 0
        data = client.get("/api/customers?include_inactive=true", headers=employee_headers).get_json()
        assert data["count"] == 1

    def test_search_and_tier_filter(self, client, employee_headers, customer_a):
        client.post("/api/customers", json={"name": "Ginza Club", "tier": "NEW"}, headers=employee_headers)

        data = client.get("/api/customers?search=kuro", headers=employee_headers).get_json()
        assert [c["name"] for c in data["customers"]] == ["Bar Kurosawa"]

        data = client.get("/api/customers?tier=new", headers=employee_headers).get_json()
        assert [c["name"] for c in data["customers"]] == ["Ginza Club"]

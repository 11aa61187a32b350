# Overview: Pytest coverage for the calculator, exchange rate and LINE bot endpoints.

import pytest

from backoffice.services import currency_service


YAMAZAKI = {
    "amount": 80000,
    "currency": "JPY",
    "product_type": "whisky",
    "custom_exchange_rate": 0.21,
    "alcohol_percentage": 40,
    "volume_ml": 750,
}


def test_complete_cost(client, investor_headers):
    response = client.post("/api/calculator/cost", json=YAMAZAKI, headers=investor_headers)

    assert response.status_code == 200
    result = response.get_json()["result"]
    assert result["currency"]["twd_amount"] == 16800
    assert result["taxes"]["category"] == "whisky"
    assert result["final_pricing"]["total_cost_twd"] == pytest.approx(19192.35)
    assert result["final_pricing"]["total_cost_original"] == pytest.approx(91392.14)
    assert result["profit_analysis"]["roi"] == pytest.approx(23.5)


def test_cost_requires_auth(client, db_session):
    assert client.post("/api/calculator/cost", json=YAMAZAKI).status_code == 401


def test_invalid_input_lists_details(client, employee_headers):
    response = client.post(
        "/api/calculator/cost",
        json={"amount": -1, "currency": "XYZ"},
        headers=employee_headers,
    )

    assert response.status_code == 400
    assert len(response.get_json()["details"]) == 2


def test_taxes(client, employee_headers):
    response = client.post(
        "/api/calculator/taxes",
        json={"base_amount": 16800, "product_type": "whisky", "alcohol_percentage": 40, "volume_ml": 750},
        headers=employee_headers,
    )

    costs = response.get_json()["result"]["costs"]
    assert costs["business_tax"] == pytest.approx(843.75)
    assert costs["total_costs"] == pytest.approx(2392.35)


def test_taxes_requires_base_amount(client, employee_headers):
    response = client.post("/api/calculator/taxes", json={"product_type": "beer"}, headers=employee_headers)

    assert response.status_code == 400


@pytest.mark.parametrize("field, value", [
    ("customer_tier", 3),
    ("product_type", 7),
    ("include_shipping", "sometimes"),
])
def test_wrong_types_are_bad_requests(client, employee_headers, field, value):
    response = client.post(
        "/api/calculator/cost",
        json=dict(YAMAZAKI, **{field: value}),
        headers=employee_headers,
    )

    assert response.status_code == 400
    assert response.get_json()["details"]


def test_taxes_accept_string_flags(client, employee_headers):
    response = client.post(
        "/api/calculator/taxes",
        json={"base_amount": 16800, "customer_tier": "premium", "include_shipping": "false"},
        headers=employee_headers,
    )

    assert response.status_code == 200
    result = response.get_json()["result"]
    assert result["input"]["customer_tier"] == "PREMIUM"
    assert result["costs"]["shipping_fee"] == 0


def test_tier_pricing(client, employee_headers):
    tiers = client.post("/api/calculator/tier-pricing", json=YAMAZAKI, headers=employee_headers).get_json()["tiers"]

    assert tiers["VIP"] < tiers["PREMIUM"] < tiers["REGULAR"] < tiers["NEW"]


def test_quantity_breakdown_defaults(client, employee_headers):
    rows = client.post(
        "/api/calculator/quantity-breakdown", json=YAMAZAKI, headers=employee_headers
    ).get_json()["breakdown"]

    assert [r["quantity"] for r in rows] == [1, 6, 12, 24]


@pytest.mark.parametrize("quantities", [[0], [1, "6"], "12"])
def test_quantity_breakdown_rejects_bad_quantities(client, employee_headers, quantities):
    response = client.post(
        "/api/calculator/quantity-breakdown",
        json=dict(YAMAZAKI, quantities=quantities),
        headers=employee_headers,
    )

    assert response.status_code == 400


def test_rates_overview(client, investor_headers):
    data = client.get("/api/calculator/rates", headers=investor_headers).get_json()

    assert data["tiers"] == ["NEW", "REGULAR", "PREMIUM", "VIP"]
    assert "TWD" in data["currencies"]
    assert data["taxes"]["processing_fee"] == 500


def test_stored_rates_roundtrip(client, employee_headers):
    response = client.put(
        "/api/calculator/exchange-rates",
        json={"rates": {"JPY": 0.21, "USD": 32.1}},
        headers=employee_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["stored"] == {"JPY": 0.21, "USD": 32.1}

    data = client.get("/api/calculator/exchange-rates", headers=employee_headers).get_json()
    jpy = next(r for r in data["rates"] if r["currency"] == "JPY")
    assert jpy["source"] == "stored"
    assert data["defaults"]["JPY"] == 0.2

    payload = dict(YAMAZAKI, custom_exchange_rate=None)
    result = client.post("/api/calculator/cost", json=payload, headers=employee_headers).get_json()["result"]
    assert result["currency"]["rate_source"] == "stored"
    assert result["currency"]["twd_amount"] == 16800


def test_null_rate_removes_stored_rate(client, employee_headers, org_a):
    currency_service.set_stored_rate(org_a.id, "EUR", 35.0)

    response = client.put(
        "/api/calculator/exchange-rates",
        json={"rates": {"EUR": None}},
        headers=employee_headers,
    )

    assert response.get_json()["stored"] == {}


def test_stored_rates_are_tenant_scoped(client, employee_headers, admin_b_headers):
    client.put("/api/calculator/exchange-rates", json={"rates": {"GBP": 41.0}}, headers=employee_headers)

    data = client.get("/api/calculator/exchange-rates", headers=admin_b_headers).get_json()

    assert data["stored"] == {}


@pytest.mark.parametrize("rates", [{"TWD": 1.2}, {"JPY": -0.2}, {"CNY": 4.3}])
def test_invalid_stored_rates(client, employee_headers, rates):
    response = client.put("/api/calculator/exchange-rates", json={"rates": rates}, headers=employee_headers)

    assert response.status_code == 400


def test_investor_cannot_set_rates(client, investor_headers):
    response = client.put(
        "/api/calculator/exchange-rates",
        json={"rates": {"JPY": 0.25}},
        headers=investor_headers,
    )

    assert response.status_code == 403


class TestLineBot:

    def test_calculate_without_auth(self, client, db_session):
        response = client.post("/api/linebot/calculator", json=YAMAZAKI)

        assert response.status_code == 200
        data = response.get_json()
        assert data["success"] is True
        assert data["data"]["final_pricing"]["total_cost_twd"] == pytest.approx(19192.35)
        assert data["metadata"]["exchange_rate_updated"] == currency_service.DEFAULT_RATES_UPDATED_AT

    def test_ignores_stored_rates(self, client, db_session, org_a):
        currency_service.set_stored_rate(org_a.id, "JPY", 0.3)

        data = client.post(
            "/api/linebot/calculator", json=dict(YAMAZAKI, custom_exchange_rate=None)
        ).get_json()

        assert data["data"]["currency"]["rate_source"] == "default"
        assert data["data"]["currency"]["twd_amount"] == 16000

    def test_invalid_input(self, client, db_session):
        response = client.post("/api/linebot/calculator", json={"amount": 0})

        assert response.status_code == 400
        assert response.get_json()["success"] is False

    @pytest.mark.parametrize("info_type,key", [
        ("info", "service"),
        ("rates", "exchange_rates"),
        ("currencies", "supported_currencies"),
        ("example", "example"),
    ])
    def test_info(self, client, db_session, info_type, key):
        response = client.get(f"/api/linebot/calculator?type={info_type}")

        assert response.status_code == 200
        assert key in response.get_json()

    def test_example_uses_reference_rate(self, client, db_session):
        example = client.get("/api/linebot/calculator?type=example").get_json()["example"]

        assert example["request"]["amount"] == 1000000
        assert example["result"]["currency"]["twd_amount"] == 200000

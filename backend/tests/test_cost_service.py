# Overview: Pytest coverage for the landed cost calculator.

import pytest

from backoffice.services.cost_service import (
    CostInput,
    calculate_complete_cost,
    calculate_quantity_breakdown,
    calculate_tier_pricing,
    cost_input_from_payload,
    estimate_variant_landed_cost,
    quick_import_cost,
    quick_suggested_price,
)
from backoffice.services.currency_service import CalculationError


def yamazaki(**overrides):
    values = dict(
        amount=80000,
        currency="JPY",
        product_type="whisky",
        custom_exchange_rate=0.21,
        alcohol_percentage=40,
        volume_ml=750,
    )
    values.update(overrides)
    return CostInput(**values)


def test_complete_cost_with_declaration_rate():
    result = calculate_complete_cost(yamazaki())

    assert result.currency.twd_amount == 16800
    assert result.currency.rate_source == "custom"
    assert result.final_pricing.total_cost_twd == pytest.approx(19192.35)
    assert result.final_pricing.final_price_twd == pytest.approx(23702.55225)
    assert result.final_pricing.total_cost_original == 91392.14
    assert result.final_pricing.suggested_price_original == 118809.79
    assert result.final_pricing.final_price_original == 112869.3
    assert result.profit_analysis.markup_rate == pytest.approx(30)
    assert result.breakdown.customer_discount == pytest.approx(1247.50275)


def test_stored_rate_used_without_declaration_rate():
    result = calculate_complete_cost(yamazaki(custom_exchange_rate=None), stored_rates={"JPY": 0.21})

    assert result.currency.rate_source == "stored"
    assert result.currency.twd_amount == 16800


def test_default_rate_fallback():
    result = calculate_complete_cost(yamazaki(custom_exchange_rate=None))

    assert result.currency.rate_source == "default"
    assert result.currency.twd_amount == 16000


def test_twd_purchase_needs_no_back_conversion():
    result = calculate_complete_cost(yamazaki(amount=16800, currency="TWD", custom_exchange_rate=None))

    assert result.final_pricing.total_cost_original == result.final_pricing.total_cost_twd


def test_invalid_input_lists_all_errors():
    with pytest.raises(CalculationError) as exc_info:
        calculate_complete_cost(CostInput(amount=-5, currency="CNY", quantity=0))

    assert len(exc_info.value.errors) == 3


def test_tier_pricing_orders_by_discount():
    tiers = calculate_tier_pricing(yamazaki())

    assert list(tiers) == ["NEW", "REGULAR", "PREMIUM", "VIP"]
    assert tiers["NEW"] > tiers["REGULAR"] > tiers["PREMIUM"] > tiers["VIP"]
    assert tiers["REGULAR"] == pytest.approx(23702.55225)


def test_quantity_breakdown():
    rows = calculate_quantity_breakdown(yamazaki(), [1, 6, 12])

    assert [row["quantity"] for row in rows] == [1, 6, 12]
    assert rows[0]["savings"] == 0
    assert rows[0]["total_cost"] == 19192
    assert rows[1]["unit_cost"] < rows[0]["unit_cost"]
    assert rows[2]["savings"] > rows[1]["savings"] > 0


def test_quantity_breakdown_requires_quantities():
    with pytest.raises(CalculationError):
        calculate_quantity_breakdown(yamazaki(), [])


def test_quick_import_cost():
    assert quick_import_cost(16800, "TWD", "whisky") == pytest.approx(19192.35)


def test_quick_suggested_price_applies_tier():
    regular = quick_suggested_price(16800, "TWD", "whisky")

    assert regular == pytest.approx(23702.55225)
    assert quick_suggested_price(16800, "TWD", "whisky", "VIP") < regular


def test_payload_normalization():
    cost_input = cost_input_from_payload({
        "amount": 80000,
        "currency": " jpy ",
        "customer_tier": "vip",
        "custom_exchange_rate": 0,
    }, default_markup_rate=0.25)

    assert cost_input.currency == "JPY"
    assert cost_input.customer_tier == "VIP"
    assert cost_input.custom_exchange_rate is None
    assert cost_input.markup_rate == 0.25
    assert cost_input.product_type == "default"


def test_variant_landed_cost_uses_product_attributes(db_session, variant_a):
    result = estimate_variant_landed_cost(variant_a, 10000, "JPY", custom_exchange_rate=0.2)

    assert result.taxes.category == "whisky"
    assert result.input.alcohol_percentage == 43
    assert result.input.volume_ml == 700
    assert result.currency.twd_amount == 2000


@pytest.mark.parametrize("raw, expected", [
    (None, True),
    (False, False),
    ("false", False),
    ("No", False),
    ("true", True),
    ("1", True),
])
def test_payload_flags(raw, expected):
    cost_input = cost_input_from_payload({"amount": 80000, "currency": "JPY", "include_shipping": raw})

    assert cost_input.include_shipping is expected


def test_payload_string_false_skips_shipping():
    with_shipping = calculate_complete_cost(cost_input_from_payload({"amount": 16800, "currency": "TWD"}))
    without = calculate_complete_cost(cost_input_from_payload({
        "amount": 16800,
        "currency": "TWD",
        "include_shipping": "false",
    }))

    assert without.taxes.costs.shipping_fee == 0
    assert without.final_pricing.total_cost_twd < with_shipping.final_pricing.total_cost_twd


@pytest.mark.parametrize("payload, message", [
    ({"customer_tier": 3}, "customer_tier must be one of VIP, PREMIUM, REGULAR, NEW"),
    ({"customer_tier": ["VIP"]}, "customer_tier must be one of VIP, PREMIUM, REGULAR, NEW"),
    ({"product_type": 7}, "product_type must be a string"),
    ({"include_tax": "maybe"}, "include_tax must be true or false"),
])
def test_payload_with_wrong_types_is_rejected(payload, message):
    cost_input = cost_input_from_payload(dict({"amount": 16800, "currency": "TWD"}, **payload))

    with pytest.raises(CalculationError) as exc_info:
        calculate_complete_cost(cost_input)

    assert message in exc_info.value.errors

# Overview: Unauthenticated cost calculator endpoint for the LINE bot; reference rates only.

"""
LINE bot calculator

Answers the chat bot's cost questions with the same calculator the
back office uses, but never with an organization's stored rates: callers
are not authenticated, so only reference rates (or a rate they supply) apply.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import cost_service, currency_service, tax_service
from ..services.currency_service import CalculationError
from ..time_utils import to_utc_z, utcnow

linebot_bp = Blueprint("linebot", __name__, url_prefix="/api/linebot")

SERVICE_VERSION = "1.0.0"

EXAMPLE_REQUEST = {
    "amount": 1000000,
    "currency": "JPY",
    "product_type": "whisky",
    "quantity": 1,
    "customer_tier": "REGULAR",
}


def _metadata() -> dict:
    return {
        "calculated_at": to_utc_z(utcnow()),
        "exchange_rate_updated": currency_service.DEFAULT_RATES_UPDATED_AT,
    }


@linebot_bp.post("/calculator")
def calculate_route():
    data = request.get_json(silent=True) or {}
    try:
        cost_input = cost_service.cost_input_from_payload(data, current_app.config["DEFAULT_MARKUP_RATE"])
        result = cost_service.calculate_complete_cost(cost_input)
        return jsonify({"success": True, "data": result.to_dict(), "metadata": _metadata()})
    except CalculationError as e:
        return jsonify({"success": False, "error": str(e), "details": e.errors}), 400
    except Exception:
        current_app.logger.exception("LINE bot cost calculation failed")
        return jsonify({"success": False, "error": "Internal server error"}), 500


@linebot_bp.get("/calculator")
def info_route():
    """?type=info (default) | rates | currencies | example"""
    info_type = request.args.get("type", "info")

    if info_type == "rates":
        return jsonify({
            "exchange_rates": currency_service.get_all_exchange_rates(),
            "exchange_rate_updated": currency_service.DEFAULT_RATES_UPDATED_AT,
            "taxes": tax_service.get_rate_tables(),
        })

    if info_type == "currencies":
        return jsonify({
            "supported_currencies": list(currency_service.SUPPORTED_CURRENCIES),
            "default_currency": "JPY",
            "primary_conversion": "TWD",
        })

    if info_type == "example":
        result = cost_service.calculate_complete_cost(cost_service.cost_input_from_payload(EXAMPLE_REQUEST))
        return jsonify({"example": {"request": EXAMPLE_REQUEST, "result": result.to_dict()}})

    return jsonify({
        "service": "Cost Calculator API",
        "version": SERVICE_VERSION,
        "features": [
            "multi_currency_conversion",
            "alcohol_category_tax_rules",
            "customer_tier_pricing",
            "profit_margin_calculation",
        ],
        "supported_currencies": list(currency_service.SUPPORTED_CURRENCIES),
        "last_updated": to_utc_z(utcnow()),
    })

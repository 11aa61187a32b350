# Overview: Flask API routes for the import cost calculator; parses input and returns JSON responses.

"""
Calculator API

All calculations are pure functions of the request body plus the
organization's stored exchange rates. Invalid input answers 400 with the list
of problems in "details".
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_any_permission, require_auth, require_permission
from ..extensions import db
from ..services import cost_service, currency_service, tax_service
from ..services.currency_service import CalculationError

calculator_bp = Blueprint("calculator", __name__, url_prefix="/api/calculator")


def _cost_input():
    data = request.get_json(silent=True) or {}
    return data, cost_service.cost_input_from_payload(data, current_app.config["DEFAULT_MARKUP_RATE"])


def _calculation_error(e: CalculationError):
    return jsonify({"error": str(e), "details": e.errors}), 400


@calculator_bp.post("/cost")
@require_auth
@require_permission("USE_CALCULATOR")
def complete_cost_route():
    """
    Complete landed cost of a purchase.

    Body: amount, currency (required); product_type, quantity, customer_tier,
    include_shipping, include_tax, custom_exchange_rate, alcohol_percentage,
    volume_ml, markup_rate. Without a custom rate the organization's stored
    rate applies, else the reference rate.
    """
    try:
        _, cost_input = _cost_input()
        result = cost_service.calculate_complete_cost(cost_input, currency_service.get_stored_rates(g.org_id))
        return jsonify({"result": result.to_dict()})
    except CalculationError as e:
        return _calculation_error(e)
    except Exception:
        current_app.logger.exception("Cost calculation failed")
        return jsonify({"error": "Internal server error"}), 500


@calculator_bp.post("/taxes")
@require_auth
@require_permission("USE_CALCULATOR")
def taxes_route():
    """Tax breakdown of a TWD base amount. Body: base_amount plus optional TaxInput fields."""
    data = request.get_json(silent=True) or {}
    try:
        tax_input = tax_service.TaxInput(
            base_amount=data.get("base_amount"),
            product_type=data.get("product_type") or "default",
            quantity=data.get("quantity", 1),
            customer_tier=cost_service.normalize_code(data.get("customer_tier") or "REGULAR"),
            include_shipping=cost_service.parse_flag(data.get("include_shipping")),
            include_tax=cost_service.parse_flag(data.get("include_tax")),
            alcohol_percentage=data.get("alcohol_percentage", tax_service.DEFAULT_ALCOHOL_PERCENTAGE),
            volume_ml=data.get("volume_ml", tax_service.DEFAULT_VOLUME_ML),
            markup_rate=data.get("markup_rate", current_app.config["DEFAULT_MARKUP_RATE"]),
        )
        return jsonify({"result": tax_service.calculate_taxes(tax_input).to_dict()})
    except CalculationError as e:
        return _calculation_error(e)
    except Exception:
        current_app.logger.exception("Tax calculation failed")
        return jsonify({"error": "Internal server error"}), 500


@calculator_bp.post("/tier-pricing")
@require_auth
@require_permission("USE_CALCULATOR")
def tier_pricing_route():
    try:
        _, cost_input = _cost_input()
        prices = cost_service.calculate_tier_pricing(cost_input, currency_service.get_stored_rates(g.org_id))
        return jsonify({"tiers": prices})
    except CalculationError as e:
        return _calculation_error(e)
    except Exception:
        current_app.logger.exception("Tier pricing failed")
        return jsonify({"error": "Internal server error"}), 500


@calculator_bp.post("/quantity-breakdown")
@require_auth
@require_permission("USE_CALCULATOR")
def quantity_breakdown_route():
    """Body: cost fields plus quantities (default [1, 6, 12, 24])."""
    try:
        data, cost_input = _cost_input()
        quantities = data.get("quantities") or [1, 6, 12, 24]
        if not isinstance(quantities, list) or not all(
            isinstance(q, int) and not isinstance(q, bool) and q > 0 for q in quantities
        ):
            raise CalculationError("quantities must be a list of positive integers")

        rows = cost_service.calculate_quantity_breakdown(
            cost_input, quantities, currency_service.get_stored_rates(g.org_id)
        )
        return jsonify({"breakdown": rows})
    except CalculationError as e:
        return _calculation_error(e)
    except Exception:
        current_app.logger.exception("Quantity breakdown failed")
        return jsonify({"error": "Internal server error"}), 500


@calculator_bp.get("/rates")
@require_auth
@require_permission("USE_CALCULATOR")
def rates_route():
    """Tax constants, alcohol rules, tier discounts and effective exchange rates."""
    return jsonify({
        "taxes": tax_service.get_rate_tables(),
        "tiers": list(cost_service.TIER_ORDER),
        "currencies": list(currency_service.SUPPORTED_CURRENCIES),
        "exchange_rates": currency_service.get_all_exchange_rates(currency_service.get_stored_rates(g.org_id)),
    })


@calculator_bp.get("/exchange-rates")
@require_auth
@require_any_permission("USE_CALCULATOR", "MANAGE_EXCHANGE_RATES")
def list_exchange_rates_route():
    """Effective, stored and reference rates. Open to calculator users and rate keepers."""
    stored = currency_service.get_stored_rates(g.org_id)
    return jsonify({
        "rates": currency_service.get_all_exchange_rates(stored),
        "stored": stored,
        "defaults": dict(currency_service.DEFAULT_EXCHANGE_RATES),
        "defaults_updated_at": currency_service.DEFAULT_RATES_UPDATED_AT,
    })


@calculator_bp.put("/exchange-rates")
@require_auth
@require_permission("MANAGE_EXCHANGE_RATES")
def set_exchange_rates_route():
    """
    Store declaration rates. Body: {"rates": {"JPY": 0.21, ...}}.
    A null rate removes the stored rate so the reference rate applies.
    """
    data = request.get_json(silent=True) or {}
    rates = data.get("rates")
    if not isinstance(rates, dict) or not rates:
        return jsonify({"error": "rates object required"}), 400

    try:
        for currency, rate in rates.items():
            if rate is None:
                currency_service.delete_stored_rate(g.org_id, currency)
            else:
                currency_service.set_stored_rate(g.org_id, currency, rate, g.current_user.id)

        current_app.logger.info("Exchange rates updated by user %s: %s", g.current_user.id, rates)

        stored = currency_service.get_stored_rates(g.org_id)
        return jsonify({"rates": currency_service.get_all_exchange_rates(stored), "stored": stored})
    except CalculationError as e:
        db.session.rollback()
        return _calculation_error(e)
    except Exception:
        current_app.logger.exception("Failed to update exchange rates")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

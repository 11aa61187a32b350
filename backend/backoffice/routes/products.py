# Overview: Flask API routes for products and variants; parses input and returns JSON responses.

"""
Catalog API routes

Cost and actual prices are masked for users without VIEW_ACTUAL_PRICES;
investors see variants at investor prices only.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..services import cost_service, currency_service, products_service
from ..services.currency_service import CalculationError
from ..services.tenant_service import TenantAccessError
from ..services.visibility import get_visibility
from ..validation import ConflictError, ValidationError

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _show_actual_prices() -> bool:
    return get_visibility(g.current_user.id).show_actual_prices


@products_bp.get("")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_products():
    """
    Query params: search, category, active_only (default false),
    include_variants (default true), page, per_page.
    """
    result = products_service.list_products(
        g.org_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
        active_only=request.args.get("active_only", "false").lower() == "true",
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 50, type=int),
    )
    include_variants = request.args.get("include_variants", "true").lower() == "true"
    show_actual = _show_actual_prices()

    return jsonify({
        "products": [
            p.to_dict(include_variants=include_variants, show_actual_prices=show_actual)
            for p in result["products"]
        ],
        "pagination": result["pagination"],
    })


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("VIEW_PRODUCTS")
def get_product(product_id: int):
    try:
        product = products_service.get_product(g.org_id, product_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"product": product.to_dict(include_variants=True, show_actual_prices=_show_actual_prices())})


@products_bp.post("")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product():
    """
    Body: product_code, name (required); category (defaults from the name),
    alcohol_percentage, volume_ml, is_active.
    """
    try:
        product = products_service.create_product(g.org_id, request.get_json(silent=True) or {})
        return jsonify({"product": product.to_dict(include_variants=True)}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product(product_id: int):
    try:
        product = products_service.update_product(g.org_id, product_id, request.get_json(silent=True) or {})
        return jsonify({"product": product.to_dict(include_variants=True)})

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product(product_id: int):
    try:
        products_service.delete_product(g.org_id, product_id)
        return jsonify({"message": "Product deleted"})

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to delete product")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# VARIANTS
# =============================================================================

@products_bp.post("/<int:product_id>/variants")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_variant(product_id: int):
    """
    Body: variant_code (required), description, cost_price_cents,
    investor_price_cents, actual_price_cents, available_stock.
    """
    try:
        variant = products_service.create_variant(g.org_id, product_id, request.get_json(silent=True) or {})
        return jsonify({"variant": variant.to_dict()}), 201

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create variant")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<int:product_id>/variants/<int:variant_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_variant(product_id: int, variant_id: int):
    try:
        variant = products_service.update_variant(
            g.org_id, product_id, variant_id, request.get_json(silent=True) or {}
        )
        return jsonify({"variant": variant.to_dict()})

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update variant")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/variants/<int:variant_id>/landed-cost")
@require_auth
@require_permission("USE_CALCULATOR")
def variant_landed_cost(product_id: int, variant_id: int):
    """
    Estimate the complete import cost of a variant from a purchase price.

    Body: amount, currency (required); quantity, customer_tier,
    custom_exchange_rate, markup_rate (optional). The product's category,
    ABV and volume drive the alcohol tax.
    """
    data = request.get_json(silent=True) or {}
    try:
        variant = products_service.get_variant(g.org_id, product_id, variant_id)
        result = cost_service.estimate_variant_landed_cost(
            variant,
            amount=data.get("amount"),
            currency=data.get("currency"),
            quantity=data.get("quantity", 1),
            customer_tier=data.get("customer_tier") or "REGULAR",
            custom_exchange_rate=data.get("custom_exchange_rate") or None,
            markup_rate=data.get("markup_rate", current_app.config["DEFAULT_MARKUP_RATE"]),
            stored_rates=currency_service.get_stored_rates(g.org_id),
        )
        return jsonify({
            "variant": variant.to_dict(show_actual_prices=_show_actual_prices()),
            "result": result.to_dict(),
        })

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except CalculationError as e:
        return jsonify({"error": str(e), "details": e.errors}), 400
    except Exception:
        current_app.logger.exception("Failed to estimate landed cost")
        return jsonify({"error": "Internal server error"}), 500

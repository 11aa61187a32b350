# Overview: Flask API routes for customers; parses input and returns JSON responses.

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..services import customers_service
from ..services.tenant_service import TenantAccessError
from ..validation import ValidationError

customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def list_customers():
    """Query params: search, tier, include_inactive (default false)."""
    customers = customers_service.list_customers(
        g.org_id,
        search=request.args.get("search"),
        tier=request.args.get("tier"),
        active_only=request.args.get("include_inactive", "false").lower() != "true",
    )
    return jsonify({"customers": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_permission("VIEW_CUSTOMERS")
def get_customer(customer_id: int):
    try:
        customer = customers_service.get_customer(g.org_id, customer_id)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    return jsonify({"customer": customer.to_dict()})


@customers_bp.post("")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer():
    try:
        customer = customers_service.create_customer(g.org_id, request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create customer")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer(customer_id: int):
    try:
        customer = customers_service.update_customer(g.org_id, customer_id, request.get_json(silent=True) or {})
        return jsonify({"customer": customer.to_dict()})

    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

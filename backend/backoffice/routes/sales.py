# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

"""
Sales API routes with permission enforcement

VISIBILITY: users without VIEW_PERSONAL_SALES only see COMPANY-funded sales
(personal sales answer 404); users without VIEW_ACTUAL_PRICES never receive
actual prices, actual totals or commission.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..services import sales_service
from ..services.sales_service import SaleError
from ..services.tenant_service import TenantAccessError
from ..services.visibility import get_visibility, mask_sales_summary
from ..time_utils import parse_date_bound
from ..validation import ValidationError

sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_response(sale, status: int = 200):
    visibility = get_visibility(g.current_user.id)
    return jsonify({"sale": sale.to_dict(show_actual_prices=visibility.show_actual_prices)}), status


def _parse_bool(value):
    if value is None:
        return None
    return value.lower() in ("1", "true", "yes")


@sales_bp.get("")
@require_auth
@require_permission("VIEW_SALES")
def list_sales_route():
    """
    List sales, newest first.

    Query params: status, funding_source, customer_id, is_preorder,
    date_from, date_to (a bare date covers the whole day), page, per_page.
    """
    try:
        filters = {
            "status": request.args.get("status"),
            "funding_source": request.args.get("funding_source"),
            "customer_id": request.args.get("customer_id", type=int),
            "is_preorder": _parse_bool(request.args.get("is_preorder")),
            "date_from": parse_date_bound(request.args.get("date_from")),
            "date_to": parse_date_bound(request.args.get("date_to"), inclusive_end=True),
        }
    except ValueError:
        return jsonify({"error": "Invalid date filter"}), 400

    visibility = get_visibility(g.current_user.id)
    result = sales_service.list_sales(
        g.org_id,
        filters,
        include_personal=visibility.show_personal_sales,
        page=request.args.get("page", 1, type=int),
        per_page=request.args.get("per_page", 20, type=int),
    )

    return jsonify({
        "sales": [
            s.to_dict(show_actual_prices=visibility.show_actual_prices, include_items=False)
            for s in result["sales"]
        ],
        "summary": mask_sales_summary(result["summary"], visibility),
        "pagination": result["pagination"],
    })


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_permission("VIEW_SALES")
def get_sale_route(sale_id: int):
    visibility = get_visibility(g.current_user.id)
    try:
        sale = sales_service.get_sale(g.org_id, sale_id, include_personal=visibility.show_personal_sales)
    except TenantAccessError as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"sale": sale.to_dict(show_actual_prices=visibility.show_actual_prices)})


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Create a DRAFT sale (PREORDER when is_preorder is set).

    Body: customer_id, items[] (product_id, variant_id, quantity,
    unit_price_cents, actual_unit_price_cents), funding_source,
    payment_terms, notes, is_preorder, expected_arrival_date.
    """
    try:
        sale = sales_service.create_sale(g.org_id, g.current_user.id, request.get_json(silent=True) or {})
        return _sale_response(sale, 201)

    except (SaleError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except Exception:
        current_app.logger.exception("Failed to create sale")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>")
@require_auth
@require_permission("CREATE_SALE")
def update_sale_route(sale_id: int):
    try:
        sale = sales_service.update_sale(g.org_id, sale_id, request.get_json(silent=True) or {})
        return _sale_response(sale)

    except TenantAccessError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except (SaleError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except Exception:
        current_app.logger.exception("Failed to update sale")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/items")
@require_auth
@require_permission("CREATE_SALE")
def replace_items_route(sale_id: int):
    """Replace all items of a DRAFT/PREORDER sale. Body: {"items": [...]}."""
    data = request.get_json(silent=True) or {}
    try:
        sale = sales_service.replace_items(g.org_id, sale_id, data.get("items"))
        return _sale_response(sale)

    except TenantAccessError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except (SaleError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except Exception:
        current_app.logger.exception("Failed to replace sale items")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.put("/<int:sale_id>/items/<int:item_id>/actual-price")
@require_auth
@require_permission("EDIT_ACTUAL_PRICES")
def adjust_actual_price_route(sale_id: int, item_id: int):
    """
    Set what the customer is actually charged per unit.

    Body: {"actual_unit_price_cents": int | null}; null resets to the unit price.
    """
    data = request.get_json(silent=True) or {}
    if "actual_unit_price_cents" not in data:
        return jsonify({"error": "actual_unit_price_cents required"}), 400

    try:
        sale = sales_service.adjust_actual_price(g.org_id, sale_id, item_id, data["actual_unit_price_cents"])
        return _sale_response(sale)

    except TenantAccessError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except (SaleError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": getattr(e, "details", {})}), 400
    except Exception:
        current_app.logger.exception("Failed to adjust actual price")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


def _transition(sale_id: int, target: str, reason: str | None = None):
    try:
        sale = sales_service.transition_sale(g.org_id, sale_id, target, g.current_user.id, reason=reason)
        return _sale_response(sale)

    except TenantAccessError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to move sale %s to %s", sale_id, target)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.post("/<int:sale_id>/confirm")
@require_auth
@require_permission("CONFIRM_SALE")
def confirm_sale_route(sale_id: int):
    """Confirm a DRAFT/PREORDER sale: reserves stock and books its cashflow."""
    return _transition(sale_id, "CONFIRMED")


@sales_bp.post("/<int:sale_id>/ship")
@require_auth
@require_permission("SHIP_SALE")
def ship_sale_route(sale_id: int):
    return _transition(sale_id, "SHIPPED")


@sales_bp.post("/<int:sale_id>/deliver")
@require_auth
@require_permission("SHIP_SALE")
def deliver_sale_route(sale_id: int):
    return _transition(sale_id, "DELIVERED")


@sales_bp.post("/<int:sale_id>/pay")
@require_auth
@require_permission("SHIP_SALE")
def pay_sale_route(sale_id: int):
    return _transition(sale_id, "PAID")


@sales_bp.post("/<int:sale_id>/cancel")
@require_auth
@require_permission("CANCEL_SALE")
def cancel_sale_route(sale_id: int):
    """Cancel a sale: releases reserved stock and removes its cashflow. Body: {"reason": str}."""
    data = request.get_json(silent=True) or {}
    return _transition(sale_id, "CANCELLED", reason=data.get("reason"))


@sales_bp.delete("/<int:sale_id>")
@require_auth
@require_permission("DELETE_SALE")
def delete_sale_route(sale_id: int):
    try:
        sales_service.delete_sale(g.org_id, sale_id)
        return jsonify({"message": "Sale deleted"})

    except TenantAccessError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 404
    except SaleError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 400
    except Exception:
        current_app.logger.exception("Failed to delete sale")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

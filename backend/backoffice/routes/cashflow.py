# Overview: Flask API routes for the cashflow ledger; parses input and returns JSON responses.

"""
Cashflow ledger API

Sale-derived rows (source SALE_SYNC) are maintained by the sale handlers and
are read-only here. Manual rows may be edited by their creator, or by users
holding MANAGE_ALL_CASHFLOW.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..services import cashflow_service, permission_service
from ..services.cashflow_service import CashflowError, CashflowPermissionError, CashflowReadOnlyError
from ..time_utils import parse_date_bound
from ..validation import ValidationError

cashflow_bp = Blueprint("cashflow", __name__, url_prefix="/api/cashflow")


@cashflow_bp.get("")
@require_auth
@require_permission("VIEW_CASHFLOW")
def list_cashflow_route():
    """
    Query params: type, funding_source, category, search, date_from,
    date_to (a bare date includes the whole day), page, limit.
    Returns records with totals over the whole filtered set.
    """
    try:
        filters = {
            "type": request.args.get("type"),
            "funding_source": request.args.get("funding_source"),
            "category": request.args.get("category"),
            "search": request.args.get("search"),
            "date_from": parse_date_bound(request.args.get("date_from")),
            "date_to": parse_date_bound(request.args.get("date_to"), inclusive_end=True),
        }
    except ValueError:
        return jsonify({"error": "Invalid date filter"}), 400

    result = cashflow_service.list_records(
        g.org_id,
        filters,
        page=request.args.get("page", 1, type=int),
        limit=request.args.get("limit", 20, type=int),
    )
    return jsonify(result)


@cashflow_bp.post("")
@require_auth
@require_permission("MANAGE_CASHFLOW")
def create_cashflow_route():
    """
    Record a manual income or expense.

    Body: type (INCOME|EXPENSE), amount_cents (> 0), description,
    funding_source (INVESTOR|PERSONAL) required; category, transaction_date,
    reference, notes optional.
    """
    try:
        record = cashflow_service.create_manual_record(
            g.org_id, g.current_user.id, request.get_json(silent=True) or {}
        )
        return jsonify({"record": record.to_dict()}), 201

    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create cashflow record")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@cashflow_bp.put("/<int:record_id>")
@require_auth
@require_permission("MANAGE_CASHFLOW")
def update_cashflow_route(record_id: int):
    can_manage_all = permission_service.user_has_permission(g.current_user.id, "MANAGE_ALL_CASHFLOW")
    try:
        record = cashflow_service.update_record(
            g.org_id,
            record_id,
            g.current_user.id,
            request.get_json(silent=True) or {},
            can_manage_all=can_manage_all,
        )
        return jsonify({"record": record.to_dict()})

    except CashflowReadOnlyError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 409
    except CashflowPermissionError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 403
    except CashflowError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 404
    except ValidationError as e:
        db.session.rollback()
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update cashflow record")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@cashflow_bp.post("/sync/<int:sale_id>")
@require_auth
@require_permission("MANAGE_CASHFLOW")
def sync_sale_route(sale_id: int):
    """Re-derive the ledger rows of one sale from its current state."""
    try:
        rows = cashflow_service.resync_sale(g.org_id, sale_id)
        return jsonify({
            "sale_id": sale_id,
            "records": [r.to_dict() for r in rows],
            "count": len(rows),
        })

    except CashflowError as e:
        db.session.rollback()
        return jsonify({"error": str(e), "details": e.details}), 404
    except Exception:
        current_app.logger.exception("Failed to sync cashflow for sale %s", sale_id)
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500

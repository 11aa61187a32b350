# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

"""
Authentication API routes

SECURITY:
- Accounts are created by administrators only (no self-registration)
- Token sessions; only the SHA-256 hash of a token is stored
- Logins, failed logins and logouts are recorded as security events
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth
from ..extensions import db
from ..models import Organization
from ..services import auth_service, permission_service, session_service

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Body: username (or email), password, optional org_code when the same
    username exists in several organizations.
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username") or data.get("email")
        password = data.get("password")

        if not all([username, password]):
            return jsonify({"error": "username/email and password required"}), 400

        org_id = None
        if data.get("org_code"):
            org = db.session.query(Organization).filter_by(code=data["org_code"]).first()
            if not org:
                return jsonify({"error": "Invalid credentials"}), 401
            org_id = org.id

        user_agent = request.headers.get("User-Agent")
        ip_address = request.remote_addr

        user = auth_service.authenticate(username, password, org_id=org_id)
        if not user:
            permission_service.log_security_event(
                user_id=None,
                event_type="LOGIN_FAILED",
                success=False,
                reason=f"Invalid credentials for {username}",
                ip_address=ip_address,
                user_agent=user_agent,
                org_id=org_id,
            )
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        permission_service.log_security_event(
            user_id=user.id,
            event_type="LOGIN_SUCCESS",
            success=True,
            ip_address=ip_address,
            user_agent=user_agent,
            org_id=user.org_id,
        )

        return jsonify({
            "user": user.to_dict(),
            "roles": permission_service.get_user_role_names(user.id),
            "permissions": sorted(permission_service.get_user_permissions(user.id)),
            "token": token,
            "session": session.to_dict(),
            "org_id": session.org_id,
            "message": "Login successful",
        }), 200

    except ValueError as e:
        return jsonify({"error": str(e)}), 401
    except Exception:
        current_app.logger.exception("Failed to login user")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
@require_auth
def logout_route():
    token = request.headers["Authorization"].split(" ", 1)[1]
    session_service.revoke_session(token)
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type="LOGOUT",
        success=True,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )
    return jsonify({"message": "Logged out"}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    """Current user with roles, effective permissions and organization."""
    user = g.current_user
    return jsonify({
        "user": user.to_dict(),
        "roles": permission_service.get_user_role_names(user.id),
        "permissions": sorted(permission_service.get_user_permissions(user.id)),
        "organization": user.organization.to_dict() if user.organization else None,
    }), 200

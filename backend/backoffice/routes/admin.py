# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

"""
Admin routes for user and role management.

Provides endpoints for:
- User management (list, create, deactivate, reactivate)
- Role assignment (one role per user)

MULTI-TENANT: admins only ever see and edit users of their own organization.
Users cannot change their own role or deactivate themselves.
"""

from flask import Blueprint, current_app, g, jsonify, request

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..models import Role, User
from ..permissions import DEFAULT_ROLE_PERMISSIONS
from ..services import auth_service, permission_service, session_service
from ..services.auth_service import PasswordValidationError

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


def _get_user_in_current_org(user_id: int) -> User | None:
    return db.session.query(User).filter_by(id=user_id, org_id=g.org_id).first()


def _user_with_roles(user: User) -> dict:
    user_dict = user.to_dict()
    user_dict["roles"] = permission_service.get_user_role_names(user.id)
    return user_dict


def _audit(event_type: str, action: str, reason: str | None = None) -> None:
    permission_service.log_security_event(
        user_id=g.current_user.id,
        event_type=event_type,
        success=True,
        resource=request.path,
        action=action,
        reason=reason,
        ip_address=request.remote_addr,
        user_agent=request.headers.get("User-Agent"),
        org_id=g.org_id,
    )


# =============================================================================
# USER MANAGEMENT
# =============================================================================

@admin_bp.get("/users")
@require_auth
@require_permission("VIEW_USERS")
def list_users():
    """
    List users of the organization with their roles.

    Query params:
    - include_inactive: bool (default false)
    """
    include_inactive = request.args.get("include_inactive", "false").lower() == "true"

    query = db.session.query(User).filter(User.org_id == g.org_id)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))

    users = [_user_with_roles(u) for u in query.order_by(User.username).all()]
    return jsonify({"users": users, "count": len(users)})


@admin_bp.post("/users")
@require_auth
@require_permission("CREATE_USER")
def create_user():
    """
    Create a user in the admin's organization.

    Request body:
    - username, email, password: str (required)
    - display_name: str (optional)
    - role: admin | employee | investor (optional, default employee)
    """
    try:
        data = request.get_json(silent=True) or {}
        username = data.get("username")
        email = data.get("email")
        password = data.get("password")
        role_name = data.get("role") or "employee"

        if not all([username, email, password]):
            return jsonify({"error": "username, email, and password required"}), 400

        if role_name not in DEFAULT_ROLE_PERMISSIONS:
            return jsonify({"error": f"Unknown role: {role_name}"}), 400

        user = auth_service.create_user(
            username,
            email,
            password,
            org_id=g.org_id,
            display_name=data.get("display_name"),
        )
        auth_service.assign_role(user.id, role_name)

        _audit("USER_CREATED", f"Created user: {username} ({role_name})")

        return jsonify({"user": _user_with_roles(user), "message": "User created successfully"}), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValueError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create user")
        db.session.rollback()
        return jsonify({"error": "Internal server error"}), 500


@admin_bp.put("/users/<int:user_id>/role")
@require_auth
@require_permission("MANAGE_ROLES")
def set_user_role(user_id: int):
    """Replace the user's role. Body: {"role": "admin" | "employee" | "investor"}."""
    user = _get_user_in_current_org(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    if user.id == g.current_user.id:
        return jsonify({"error": "Cannot change your own role"}), 400

    data = request.get_json(silent=True) or {}
    role_name = data.get("role")
    if not role_name:
        return jsonify({"error": "role required"}), 400

    try:
        auth_service.set_user_role(user.id, role_name)
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    # Permissions changed: force a fresh login
    session_service.revoke_all_user_sessions(user.id, reason="Role changed")

    _audit("ROLE_CHANGED", f"Set role of {user.username} to {role_name}")

    return jsonify({"user": _user_with_roles(user), "message": "Role updated"})


@admin_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_permission("EDIT_USER")
def deactivate_user(user_id: int):
    """
    Deactivate a user account and revoke all of its sessions.

    The user is logged out immediately and cannot log back in.
    """
    user = _get_user_in_current_org(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    if user.id == g.current_user.id:
        return jsonify({"error": "Cannot deactivate your own account"}), 400

    if not user.is_active:
        return jsonify({"error": "User is already deactivated"}), 400

    user.is_active = False
    db.session.commit()

    revoked_count = session_service.revoke_all_user_sessions(
        user_id=user.id,
        reason="Account deactivated by admin",
    )

    _audit("USER_DEACTIVATED", f"Deactivated user: {user.username}", f"Revoked {revoked_count} sessions")

    return jsonify({
        "user": _user_with_roles(user),
        "message": "User deactivated",
        "sessions_revoked": revoked_count,
    })


@admin_bp.post("/users/<int:user_id>/reactivate")
@require_auth
@require_permission("EDIT_USER")
def reactivate_user(user_id: int):
    user = _get_user_in_current_org(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    if user.is_active:
        return jsonify({"error": "User is already active"}), 400

    user.is_active = True
    db.session.commit()

    _audit("USER_REACTIVATED", f"Reactivated user: {user.username}")

    return jsonify({"user": _user_with_roles(user), "message": "User reactivated"})


# =============================================================================
# ROLES
# =============================================================================

@admin_bp.get("/roles")
@require_auth
@require_permission("VIEW_USERS")
def list_roles():
    """Organization roles with their permission codes."""
    roles = db.session.query(Role).filter_by(org_id=g.org_id).order_by(Role.name).all()

    result = [role.to_dict(include_permissions=True) for role in roles]
    return jsonify({"roles": result, "count": len(result)})

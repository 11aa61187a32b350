# Overview: Password hashing, user creation, authentication and role assignment.

"""
Authentication Service

MULTI-TENANT: Users belong to exactly one organization (org_id).
Username/email uniqueness is tenant-scoped.

SECURITY NOTES:
- Passwords hashed with bcrypt (cost factor 12)
- Minimum 8 characters with upper, lower, digit and special char
- Session tokens managed separately (see session_service.py)
"""

import re

import bcrypt

from ..extensions import db
from ..models import Organization, Role, User, UserRole
from ..permissions import DEFAULT_ROLES
from ..time_utils import utcnow


class PasswordValidationError(Exception):
    """Raised when password doesn't meet strength requirements."""
    pass


def validate_password_strength(password: str) -> None:
    if len(password) < 8:
        raise PasswordValidationError("Password must be at least 8 characters long")

    if not re.search(r"[A-Z]", password):
        raise PasswordValidationError("Password must contain at least one uppercase letter")

    if not re.search(r"[a-z]", password):
        raise PasswordValidationError("Password must contain at least one lowercase letter")

    if not re.search(r"\d", password):
        raise PasswordValidationError("Password must contain at least one digit")

    if not re.search(r"[!@#$%^&*(),.'\":{}|<>]", password):
        raise PasswordValidationError("Password must contain at least one special character")


def hash_password(password: str, rounds: int = 12) -> str:
    """Validate strength, then hash with bcrypt."""
    validate_password_strength(password)
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Timing-safe bcrypt comparison. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def create_user(
    username: str,
    email: str,
    password: str,
    org_id: int,
    display_name: str | None = None,
    rounds: int = 12,
) -> User:
    """
    Create new user with bcrypt password hashing.

    Raises:
        ValueError: organization missing/inactive, or username/email taken in the org
        PasswordValidationError: password doesn't meet requirements
    """
    org = db.session.get(Organization, org_id)
    if not org:
        raise ValueError("Organization not found")
    if not org.is_active:
        raise ValueError("Organization is not active")

    existing = db.session.query(User).filter(
        User.org_id == org_id,
        db.or_(User.username == username, User.email == email),
    ).first()
    if existing:
        raise ValueError("Username or email already exists in this organization")

    user = User(
        org_id=org_id,
        username=username,
        email=email,
        display_name=display_name,
        password_hash=hash_password(password, rounds=rounds),
    )

    db.session.add(user)
    db.session.commit()
    return user


def authenticate(username: str, password: str, org_id: int | None = None) -> User | None:
    """
    Authenticate by username or email. Scoped to org_id when given.

    Returns the User and stamps last_login_at, or None.
    """
    query = db.session.query(User).filter(
        db.or_(User.username == username, User.email == username),
        User.is_active.is_(True),
    )
    if org_id is not None:
        query = query.filter(User.org_id == org_id)

    user = query.first()
    if not user:
        return None

    org = db.session.get(Organization, user.org_id)
    if not org or not org.is_active:
        return None

    if verify_password(password, user.password_hash):
        user.last_login_at = utcnow()
        db.session.commit()
        return user

    return None


def assign_role(user_id: int, role_name: str) -> UserRole:
    """Assign one of the user's organization roles to the user."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    role = db.session.query(Role).filter_by(org_id=user.org_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    existing = db.session.query(UserRole).filter_by(user_id=user_id, role_id=role.id).first()
    if existing:
        return existing

    user_role = UserRole(user_id=user_id, role_id=role.id)
    db.session.add(user_role)
    db.session.commit()
    return user_role


def set_user_role(user_id: int, role_name: str) -> UserRole:
    """Replace all of the user's roles with a single role."""
    user = db.session.get(User, user_id)
    if not user:
        raise ValueError("User not found")

    role = db.session.query(Role).filter_by(org_id=user.org_id, name=role_name).first()
    if not role:
        raise ValueError(f"Role {role_name} not found")

    db.session.query(UserRole).filter(
        UserRole.user_id == user_id,
        UserRole.role_id != role.id,
    ).delete(synchronize_session=False)
    db.session.commit()

    return assign_role(user_id, role_name)


def create_default_roles(org_id: int) -> None:
    """Create the standard roles for an organization if they don't exist."""
    for name, desc in DEFAULT_ROLES:
        existing = db.session.query(Role).filter_by(org_id=org_id, name=name).first()
        if not existing:
            db.session.add(Role(org_id=org_id, name=name, description=desc))

    db.session.commit()

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# Commands Legend (run from the backend directory, FLASK_APP=wsgi.py):
#
# System bootstrap:
# - flask system init [--org "Org Name"] [--org-code CODE]
#   Idempotent bootstrap: organization, roles, permissions and default users.
#
# Organization management (MULTI-TENANT):
# - flask orgs list
# - flask orgs create --name "Acme Imports" --code ACME
#   Creates the organization with its roles and role permissions.
#
# Users:
# - flask users list [--org-id 1]
# - flask users create --org-id 1 --username alice --email alice@example.com --role employee
#
# Permissions:
# - flask perms list [--role investor --org-id 1] [--category SALES]
#
# Cashflow repair:
# - flask cashflow resync --org-id 1 [--sale-id 42]
#   Re-derives sale cashflow rows from current sale state.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Permission, Role, RolePermission, User
from .permissions import DEFAULT_ROLE_PERMISSIONS
from .services import cashflow_service, permission_service
from .services.auth_service import PasswordValidationError, assign_role, create_default_roles, create_user


def _bootstrap_org(org: Organization) -> int:
    """Roles and role permissions for one organization. Returns new assignments."""
    create_default_roles(org.id)
    permission_service.initialize_permissions()
    return permission_service.assign_default_role_permissions(org.id)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@with_appcontext
def init_system(org_name, org_code):
    """
    Initialize the back office: organization, roles, permissions, default users.

    Creates admin/employee/investor users with password "Password123!".

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing back office...")

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(name=org_name, code=org_code, is_active=True)
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    perm_count = permission_service.initialize_permissions()
    assignment_count = _bootstrap_org(org)
    click.echo(f"PASS Created {perm_count} permissions, {assignment_count} role assignments")

    default_password = "Password123!"
    for role_name in DEFAULT_ROLE_PERMISSIONS:
        existing = db.session.query(User).filter_by(org_id=org.id, username=role_name).first()
        if existing:
            click.echo(f"WARN  User '{role_name}' already exists in org, skipping...")
            continue
        try:
            user = create_user(
                username=role_name,
                email=f"{role_name}@backoffice.local",
                password=default_password,
                org_id=org.id,
            )
            assign_role(user.id, role_name)
            click.echo(f"PASS Created user: {role_name} with role '{role_name}'")
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{role_name}': {e}")

    click.echo("\nDONE Back office initialized")
    click.echo(f"Organization: {org.name} (ID: {org.id})")
    click.echo("Default credentials (CHANGE IN PRODUCTION!): admin / employee / investor, password Password123!")


# =============================================================================
# ORGANIZATION MANAGEMENT COMMANDS (MULTI-TENANT)
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    orgs = db.session.query(Organization).order_by(Organization.id).all()
    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'Users'}")
    for org in orgs:
        user_count = db.session.query(User).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {user_count}")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@with_appcontext
def create_org_cli(name, code):
    """Create a new organization (tenant) with its default roles."""
    if db.session.query(Organization).filter_by(code=code).first():
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(name=name, code=code, is_active=True)
    db.session.add(org)
    db.session.commit()
    _bootstrap_org(org)

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# USER MANAGEMENT COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('list')
@click.option('--org-id', type=int, help='Only users of this organization')
@with_appcontext
def list_users_cli(org_id):
    query = db.session.query(User)
    if org_id:
        query = query.filter_by(org_id=org_id)

    users = query.order_by(User.org_id, User.username).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo(f"{'ID':<5} {'Org':<5} {'Username':<20} {'Email':<35} {'Active':<8} {'Roles'}")
    for user in users:
        roles = ", ".join(permission_service.get_user_role_names(user.id)) or "-"
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.org_id:<5} {user.username:<20} {user.email:<35} {active_str:<8} {roles}")


@users_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(DEFAULT_ROLE_PERMISSIONS)), prompt=True, help='Role')
@with_appcontext
def create_user_cli(org_id, username, email, password, role):
    """
    Create a user within an organization.

    Password must have 8+ characters with upper and lower case letters,
    a digit and a special character.
    """
    try:
        user = create_user(username=username, email=email, password=password, org_id=org_id)
        assign_role(user.id, role)
        click.echo(f"PASS Created user: {username} ({email}) with role '{role}' in org {org_id}")
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
    except ValueError as e:
        click.echo(f"FAIL Failed to create user: {e}")


# =============================================================================
# PERMISSION COMMANDS
# =============================================================================

@click.group('perms')
def perms_group():
    """Permission inspection commands."""


@perms_group.command('list')
@click.option('--role', help='Filter by role name (requires --org-id)')
@click.option('--org-id', type=int, help='Organization of the role')
@click.option('--category', help='Filter by category')
@with_appcontext
def list_permissions_cli(role, org_id, category):
    query = db.session.query(Permission)

    if role:
        role_obj = db.session.query(Role).filter_by(name=role, org_id=org_id).first()
        if not role_obj:
            click.echo(f"FAIL Role '{role}' not found in org {org_id}")
            return
        query = query.join(RolePermission, RolePermission.permission_id == Permission.id).filter(
            RolePermission.role_id == role_obj.id
        )

    if category:
        query = query.filter(Permission.category == category.upper())

    perms = query.order_by(Permission.category, Permission.code).all()
    click.echo(f"{'Code':<25} {'Name':<30} {'Category'}")
    for perm in perms:
        click.echo(f"{perm.code:<25} {perm.name:<30} {perm.category}")
    click.echo(f"\n Total: {len(perms)} permissions")


# =============================================================================
# CASHFLOW COMMANDS
# =============================================================================

@click.group('cashflow')
def cashflow_group():
    """Cashflow ledger maintenance."""


@cashflow_group.command('resync')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--sale-id', type=int, help='Only this sale')
@with_appcontext
def resync_cashflow_cli(org_id, sale_id):
    """Rebuild sale-derived cashflow rows from current sale state."""
    result = cashflow_service.resync_org_cashflow(org_id, sale_id=sale_id)
    click.echo(f"PASS Re-synced {result['sales']} sales, {result['rows']} cashflow rows written")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)
    app.cli.add_command(users_group)
    app.cli.add_command(perms_group)
    app.cli.add_command(cashflow_group)

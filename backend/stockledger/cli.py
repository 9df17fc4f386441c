# Overview: Flask CLI command groups for bootstrap, catalog seeding, and ledger maintenance.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: permissions, roles (Admin, Manager, Viewer, Buyer) and default users.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users create --username alice --email alice@example.com --password "Password123!" --role Manager
# - python -m flask users check alice create_transaction
#   Check whether a user has a permission.
#
# Catalog:
# - python -m flask items create --sku SKU-001 --name "Widget" --unit-price-cents 500 --sale-price-cents 900 --initial-stock 10 --user admin
#
# Ledger:
# - python -m flask ledger backfill-digests [--limit 500]
#   Attach digests to committed transactions that are missing one.
# - python -m flask ledger verify 42
#   Recompute and compare the digest of one transaction.

import click
from flask.cli import with_appcontext

from .extensions import db
from .errors import LedgerError
from .models import User
from .models.transactions import INITIAL_STOCK
from .services.auth_service import create_user, PasswordValidationError
from .services import item_service
from .services import permission_service
from .services.ledger_service import build_ledger_service
from .validation import ConflictError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize permissions, roles and default users.

    Users: admin, manager, viewer, buyer; all passwords default to "Password123!".

    SECURITY: Change passwords immediately in production!
    """
    click.echo("START Initializing stock ledger...")

    perm_count = permission_service.initialize_permissions()
    grant_count = permission_service.create_default_roles()
    click.echo(f"PASS Created {perm_count} permissions, {grant_count} role grants")

    default_password = "Password123!"
    default_users = [
        ("admin", "admin@stockledger.local", "Admin"),
        ("manager", "manager@stockledger.local", "Manager"),
        ("viewer", "viewer@stockledger.local", "Viewer"),
        ("buyer", "buyer@stockledger.local", "Buyer"),
    ]

    for username, email, role_name in default_users:
        if db.session.query(User).filter_by(username=username).first():
            click.echo(f"WARN  User '{username}' already exists, skipping...")
            continue
        try:
            create_user(username=username, email=email, password=default_password, role_name=role_name)
        except (PasswordValidationError, ValueError) as e:
            click.echo(f"FAIL Failed to create user '{username}': {e}")
            continue
        click.echo(f"PASS Created user: {username} ({email}) with role '{role_name}'")

    click.echo("DONE Stock ledger initialized.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()
    click.echo("BUILD  Creating all tables...")
    db.create_all()
    click.echo("PASS Database reset complete. Run: python -m flask system init")


# =============================================================================
# USER COMMANDS
# =============================================================================

@click.group('users')
def users_group():
    """User management commands."""


@users_group.command('create')
@click.option('--username', prompt=True)
@click.option('--email', prompt=True)
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--role', 'role_name', prompt=True, type=click.Choice(["Admin", "Manager", "Viewer", "Buyer"]))
@with_appcontext
def create_user_cli(username, email, password, role_name):
    """Create a user with one role."""
    try:
        user = create_user(username=username, email=email, password=password, role_name=role_name)
    except (PasswordValidationError, ValueError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created user {user.username} (ID: {user.id}) with role '{role_name}'")


@users_group.command('check')
@click.argument('username')
@click.argument('permission_name')
@with_appcontext
def check_permission_cli(username, permission_name):
    """Check whether a user holds a permission."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        raise click.ClickException(f"User '{username}' not found")

    if permission_service.user_has_permission(user.id, permission_name):
        click.echo(f"PASS {username} has {permission_name}")
    else:
        click.echo(f"DENY {username} lacks {permission_name}")


# =============================================================================
# CATALOG COMMANDS
# =============================================================================

@click.group('items')
def items_group():
    """Catalog commands."""


@items_group.command('create')
@click.option('--sku', required=True)
@click.option('--name', required=True)
@click.option('--description', default=None)
@click.option('--unit-price-cents', type=int, default=0, show_default=True)
@click.option('--sale-price-cents', type=int, default=0, show_default=True)
@click.option('--reorder-point', type=int, default=None)
@click.option('--initial-stock', type=int, default=0, show_default=True,
              help='Recorded as an initial_stock transaction')
@click.option('--user', 'username', default='admin', show_default=True,
              help='User the opening stock is attributed to')
@with_appcontext
def create_item_cli(sku, name, description, unit_price_cents, sale_price_cents, reorder_point,
                    initial_stock, username):
    """Create a catalog item, optionally with opening stock."""
    user = None
    if initial_stock:
        user = db.session.query(User).filter_by(username=username).first()
        if not user:
            raise click.ClickException(f"User '{username}' not found")

    try:
        item = item_service.create_item(patch={
            "sku": sku,
            "name": name,
            "description": description,
            "unit_price_cents": unit_price_cents,
            "sale_price_cents": sale_price_cents,
            "reorder_point": reorder_point,
        })
    except ConflictError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Created item {item.sku} (ID: {item.id})")

    if initial_stock:
        try:
            result = build_ledger_service().record_adjustment(
                item_id=item.id,
                transaction_type=INITIAL_STOCK,
                quantity=initial_stock,
                acting_user_id=user.id,
                notes="Initial stock",
            )
        except LedgerError as e:
            raise click.ClickException(e.message)
        click.echo(f"PASS Opening stock {initial_stock} recorded (transaction {result.transaction.id})")


# =============================================================================
# LEDGER COMMANDS
# =============================================================================

@click.group('ledger')
def ledger_group():
    """Ledger maintenance commands."""


@ledger_group.command('backfill-digests')
@click.option('--limit', type=int, default=500, show_default=True, help='Max transactions per run')
@with_appcontext
def backfill_digests_cli(limit):
    """Attach digests to committed transactions that are missing one."""
    summary = build_ledger_service().backfill_digests(limit=limit)
    click.echo(
        f"PASS Scanned {summary['scanned']}, attached {summary['attached']}, failed {summary['failed']}"
    )
    if summary["failed"]:
        raise click.exceptions.Exit(1)


@ledger_group.command('verify')
@click.argument('transaction_id', type=int)
@with_appcontext
def verify_transaction_cli(transaction_id):
    """Recompute one transaction's digest and compare it with the stored one."""
    try:
        outcome = build_ledger_service().verify_transaction(transaction_id)
    except LedgerError as e:
        raise click.ClickException(e.message)

    status = "VALID" if outcome["is_valid"] else "INVALID"
    click.echo(f"{status} transaction {outcome['transaction_id']} digest {outcome['digest']}")
    if outcome["explorer_url"]:
        click.echo(f"      {outcome['explorer_url']}")
    if not outcome["is_valid"]:
        raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(items_group)
    app.cli.add_command(ledger_group)

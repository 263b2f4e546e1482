# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/realty_crm/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (development; use `flask db upgrade` with migrations in production).
# - python -m flask system create-admin --name "Owner" --email owner@example.com --password "Password123!"
#   Create the first admin account.
#
# Users:
# - python -m flask users list
# - python -m flask users create --name "Jane" --email jane@example.com --password "Password123!" --role salesperson
#
# Inventory:
# - python -m flask inventory migrate-legacy
#   One-time: create plots for units that were stored without them.
#
# Ledger:
# - python -m flask ledger rebuild-balances
#   Recompute every investor's cached balance from the payment ledger.

import click
from flask.cli import with_appcontext

from .errors import DomainError
from .extensions import db
from .models import User
from .models.auth import ROLE_ADMIN, VALID_ROLES
from .services import funding_service, inventory_service
from .services.auth_service import create_user


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('create-admin')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin(name, email, password):
    """Create an admin account."""
    try:
        user = create_user(name=name, email=email, password=password, role=ROLE_ADMIN)
        click.echo(f"PASS Created admin: {user.name} ({user.email})")
    except DomainError as e:
        click.echo(f"FAIL {e.message}")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES)), default='salesperson', show_default=True)
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a user.

    Password must have 8+ chars with uppercase, lowercase, digit and special char.
    """
    try:
        user = create_user(name=name, email=email, password=password, role=role)
        click.echo(f"PASS Created user: {user.name} ({user.email}) with role '{user.role}'")
    except DomainError as e:
        click.echo(f"FAIL {e.message}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<20} {'Email':<30} {'Role':<12} {'Active'}")
    click.echo("="*80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name[:19]:<20} {user.email[:29]:<30} {user.role:<12} {active_str}")
    click.echo("")


@click.group('inventory')
def inventory_group():
    """Inventory maintenance commands."""


@inventory_group.command('migrate-legacy')
@with_appcontext
def migrate_legacy():
    """Create plots for every inventory unit stored without them."""
    report = inventory_service.migrate_legacy_units()
    if not report:
        click.echo("PASS Nothing to migrate: every inventory unit already has plots")
        return

    for row in report:
        assigned = f", assigned to user {row['assigned_to']}" if row["assigned_to"] else ""
        click.echo(f"PASS Inventory {row['inventory_unit_id']}: {row['plots_created']} plot(s){assigned}")
    click.echo(f"DONE Migrated {len(report)} inventory unit(s)")


@click.group('ledger')
def ledger_group():
    """Funding ledger maintenance commands."""


@ledger_group.command('rebuild-balances')
@with_appcontext
def rebuild_balances():
    """Recompute investor balance caches from the payment ledger."""
    drifted = funding_service.rebuild_investor_balances()
    if not drifted:
        click.echo("PASS All investor balances match the ledger")
        return

    for row in drifted:
        click.echo(
            f"FIXED Investor {row['investor_id']} ({row['name']}): "
            f"remaining {row['old_remaining_balance_cents']} -> {row['remaining_balance_cents']}"
        )
    click.echo(f"DONE Corrected {len(drifted)} investor(s)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(ledger_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/buygroup/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables and seed the default warehouses (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Profile inspection/bootstrap:
# - python -m flask users list [--role ADMIN]
#   List profiles with role and membership.
# - python -m flask users create --email admin@example.com --first-name Ada --last-name Admin --role ADMIN
#   Create a profile (prompts for the email if omitted).
# - python -m flask users promote U-00001 ADMIN
#   Change a profile's role (by email or vendor id).
# - python -m flask users issue-token U-00001 [--ttl-hours 24]
#   Issue a bearer token and print it once.
#
# Warehouses:
# - python -m flask warehouses seed
#   Create or refresh the default warehouses.
#
# Deals:
# - python -m flask deals expire-overdue
#   Move ACTIVE deals past their deadline to EXPIRED.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models.accounts import VALID_ROLES
from .services import deal_service, profile_service, session_service, warehouse_service
from .validation import DomainError


def _fail(exc: DomainError):
    raise click.ClickException(str(exc))


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create tables (if missing) and seed default warehouses."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    warehouses = warehouse_service.seed_default_warehouses()
    click.echo(f"PASS Database ready ({len(warehouses)} warehouses seeded).")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init-db' to seed warehouses.")


@click.group('users')
def users_group():
    """Profile management commands."""


@users_group.command('list')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES), case_sensitive=False), help='Filter by role')
@with_appcontext
def list_users(role):
    """List all profiles with their roles."""
    profiles = profile_service.list_profiles(role=role)

    if not profiles:
        click.echo("No profiles found.")
        return

    click.echo("\n" + "="*90)
    click.echo(f"{'Vendor':<10} {'Email':<35} {'Role':<8} {'Active':<8} {'VIP'}")
    click.echo("="*90)

    for profile in profiles:
        active_str = "Yes" if profile.is_active else "No"
        vip_str = "Yes" if profile.is_exclusive_member else "No"
        click.echo(f"{profile.vendor_id:<10} {profile.email:<35} {profile.role:<8} {active_str:<8} {vip_str}")

    click.echo("="*90 + "\n")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--first-name', default='', help='First name')
@click.option('--last-name', default='', help='Last name')
@click.option('--role', type=click.Choice(sorted(VALID_ROLES), case_sensitive=False), default='SELLER', help='Role')
@click.option('--discord-id', default=None, help='Discord user id for membership checks')
@with_appcontext
def create_user(email, first_name, last_name, role, discord_id):
    """Create a new profile."""
    try:
        profile = profile_service.create_profile(
            email=email,
            first_name=first_name,
            last_name=last_name,
            role=role,
            discord_id=discord_id,
        )
    except DomainError as exc:
        _fail(exc)
    click.echo(f"PASS Created {profile.vendor_id} ({profile.email}) with role {profile.role}")


@users_group.command('promote')
@click.argument('identifier')
@click.argument('role', type=click.Choice(sorted(VALID_ROLES), case_sensitive=False))
@with_appcontext
def promote_user(identifier, role):
    """Set the role of a profile (email or vendor id)."""
    try:
        profile = profile_service.set_role(profile_service.find_profile(identifier), role)
    except DomainError as exc:
        _fail(exc)
    click.echo(f"PASS {profile.vendor_id} is now {profile.role}")


@users_group.command('issue-token')
@click.argument('identifier')
@click.option('--ttl-hours', type=int, default=None, help='Token lifetime (defaults to SESSION_TTL_HOURS)')
@with_appcontext
def issue_token(identifier, ttl_hours):
    """Issue a bearer token. The plaintext is shown once and never stored."""
    try:
        profile = profile_service.find_profile(identifier)
        session, token = session_service.issue_token(profile.id, ttl_hours=ttl_hours)
    except DomainError as exc:
        _fail(exc)
    click.echo(f"PASS Token for {profile.vendor_id} (expires {session.expires_at.isoformat()}):")
    click.echo(token)


@click.group('warehouses')
def warehouses_group():
    """Warehouse commands."""


@warehouses_group.command('seed')
@with_appcontext
def seed_warehouses():
    """Create or refresh the default warehouses."""
    for warehouse in warehouse_service.seed_default_warehouses():
        modes = []
        if warehouse.allow_drop_off:
            modes.append("drop-off")
        if warehouse.allow_shipping:
            modes.append("shipping")
        click.echo(f"PASS {warehouse.code:<4} {warehouse.name:<20} {', '.join(modes)}")


@click.group('deals')
def deals_group():
    """Deal maintenance commands."""


@deals_group.command('expire-overdue')
@with_appcontext
def expire_overdue():
    """Expire ACTIVE deals whose deadline has passed."""
    expired = deal_service.expire_overdue_deals()
    for deal in expired:
        click.echo(f"EXPIRED {deal.deal_id} {deal.title}")
    click.echo(f"PASS {len(expired)} deal(s) expired.")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(warehouses_group)
    app.cli.add_command(deals_group)

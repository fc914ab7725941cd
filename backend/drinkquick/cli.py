# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/drinkquick/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates missing tables and the default admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --username alice --email alice@example.com --password "Password123!" --role Manager
# - python -m flask users set-role alice Administrator
#
# Catalog:
# - python -m flask drinks seed-defaults --username alice
#   Add one drink per category at the default price (skips names that exist).

import click
from flask.cli import with_appcontext

from .enums import DEFAULT_PRICES, Role
from .errors import DrinkQuickError
from .extensions import db
from .models import Drink, User
from .services.auth_service import create_user, set_role


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-username', default='admin', help='Username of the bootstrap administrator')
@click.option('--admin-email', default='admin@drinkquick.local', help='Email of the bootstrap administrator')
@click.option('--admin-password', default='Password123!', help='Password of the bootstrap administrator')
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Create missing tables and a default Administrator.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing DrinkQuick...")
    db.create_all()
    click.echo("PASS Tables ready")

    existing = db.session.query(User).filter_by(username=admin_username).first()
    if existing:
        click.echo(f"WARN  User '{admin_username}' already exists, skipping...")
        return

    try:
        user = create_user(admin_username, admin_email, admin_password, role=Role.ADMIN.value)
    except DrinkQuickError as e:
        click.echo(f"FAIL Failed to create '{admin_username}': {e.message}")
        return

    click.echo(f"PASS Created administrator: {user.username} ({user.email})")
    click.echo("\nSECURITY Change the default password immediately in production!")


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

    click.echo("PASS Database reset complete. Run 'python -m flask system init' to initialize.")


@click.group('users')
def users_group():
    """User inspection and bootstrap commands."""


@users_group.command('create')
@click.option('--username', prompt=True, help='Username')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(Role.values()), default=Role.STAFF.value, show_default=True, help='Role')
@with_appcontext
def create_user_cli(username, email, password, role):
    """
    Create a new user.

    Password must have 8+ characters with an uppercase letter, a lowercase
    letter, a digit and a special character.
    """
    try:
        user = create_user(username, email, password, role=role)
    except DrinkQuickError as e:
        click.echo(f"FAIL {e.message}")
        for err in getattr(e, "errors", []):
            click.echo(f"     {err['field']}: {err['message']}")
        return
    click.echo(f"PASS Created user: {user.username} ({user.email}) with role '{user.role}'")


@users_group.command('set-role')
@click.argument('username')
@click.argument('role', type=click.Choice(Role.values()))
@with_appcontext
def set_role_cli(username, role):
    """Change a user's role."""
    user = db.session.query(User).filter_by(username=username).first()
    if not user:
        click.echo(f"FAIL User '{username}' not found")
        return
    set_role(user.id, role)
    click.echo(f"PASS {username} is now {role}")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users with their roles."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Username':<20} {'Email':<30} {'Active':<8} {'Role'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.username:<20} {user.email:<30} {active_str:<8} {user.role}")

    click.echo("="*80 + "\n")


@click.group('drinks')
def drinks_group():
    """Catalog bootstrap commands."""


@drinks_group.command('seed-defaults')
@click.option('--username', required=True, help='Owner of the seeded drinks')
@with_appcontext
def seed_default_drinks(username):
    """Create one drink per category at its default price."""
    owner = db.session.query(User).filter_by(username=username).first()
    if not owner:
        click.echo(f"FAIL User '{username}' not found")
        return

    created = 0
    for category, price in DEFAULT_PRICES.items():
        name = category.value
        exists = db.session.query(Drink).filter_by(owner_id=owner.id, name=name).first()
        if exists:
            click.echo(f"WARN  '{name}' already exists, skipping...")
            continue
        db.session.add(Drink(
            owner_id=owner.id,
            name=name,
            price=price,
            category=category.value,
            is_custom=False,
        ))
        created += 1

    db.session.commit()
    click.echo(f"PASS Seeded {created} drinks for {username}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(drinks_group)

# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/bizzflow/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@bizzflow.local --admin-password "Password123!"]
#   Idempotent bootstrap: creates missing tables and the purchaseOrder counter,
#   optionally an admin user.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# User inspection/bootstrap:
# - python -m flask users list
# - python -m flask users create --name "Admin" --email admin@bizzflow.local --password "Password123!" --role admin
#
# Sequences:
# - python -m flask sequences show [name]
#   Show the last allocated value of one or all counters.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.auth import USER_ROLES
from .errors import DomainError
from .services import sequence_service
from .services.auth_service import create_user, PasswordValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-name', default='Administrator', help='Admin display name')
@click.option('--admin-email', default=None, help='Create an admin user with this email')
@click.option('--admin-password', default=None, help='Password for the admin user')
@with_appcontext
def init_system(admin_name, admin_email, admin_password):
    """
    Initialize BizzFlow: tables, purchase order counter and (optionally) an admin user.

    Safe to run repeatedly.
    """
    click.echo("START Initializing BizzFlow...")

    db.create_all()
    click.echo("PASS Tables present")

    counter = sequence_service.ensure_counter(sequence_service.PURCHASE_ORDER_COUNTER)
    click.echo(f"PASS Counter '{counter.name}' at {counter.seq}")

    if admin_email:
        existing = db.session.query(User).filter_by(email=admin_email.strip().lower()).first()
        if existing:
            click.echo(f"PASS Using existing admin: {existing.email}")
        elif not admin_password:
            click.echo("FAIL --admin-password is required to create the admin user")
            return
        else:
            try:
                user = create_user(admin_name, admin_email, admin_password, role="admin")
            except (DomainError, PasswordValidationError) as e:
                click.echo(f"FAIL {e}")
                return
            click.echo(f"PASS Created admin: {user.email} (ID: {user.id})")

    click.echo("DONE Initialization complete")


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
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--role', type=click.Choice(list(USER_ROLES)), default='employee', show_default=True, help='Role')
@with_appcontext
def create_user_cli(name, email, password, role):
    """
    Create a new user.

    Password must meet strength requirements:
    - Minimum 8 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one digit
    - At least one special character
    """
    try:
        user = create_user(name, email, password, role=role)
    except (DomainError, PasswordValidationError) as e:
        click.echo(f"FAIL {e}")
        return
    click.echo(f"PASS Created user {user.email} (ID: {user.id}, role: {user.role})")


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.id.asc()).all()

    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<25} {'Email':<30} {'Role':<10} {'Active'}")
    click.echo("="*80)

    for user in users:
        active_str = "Yes" if user.is_active else "No"
        click.echo(f"{user.id:<5} {user.name:<25} {user.email:<30} {user.role:<10} {active_str}")

    click.echo("="*80 + "\n")


@click.group('sequences')
def sequences_group():
    """Counter inspection commands."""


@sequences_group.command('show')
@click.argument('name', required=False)
@with_appcontext
def show_sequences(name):
    """Show the last allocated value of a counter (or all counters)."""
    if name:
        click.echo(f"{name}: {sequence_service.current_value(name)}")
        return

    counters = sequence_service.list_counters()
    if not counters:
        click.echo("No counters found.")
        return
    for counter in counters:
        click.echo(f"{counter.name}: {counter.seq}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(sequences_group)

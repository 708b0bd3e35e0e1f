# Overview: Flask CLI command groups for bootstrap, inspection, and TOIL maintenance.

# backend/employee_space/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--admin-email admin@employee.local]
#   Create missing tables and a first admin account (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Users:
# - python -m flask users list
# - python -m flask users create --email jo@example.com --password "Password123!" [--admin]
#
# TOIL:
# - python -m flask toil recompute-balances [--user-email jo@example.com]
#   Re-derive stored balances from approved entries.
# - python -m flask toil settings jo@example.com --capacity 40:00 --streak-hours 16:00 --streak-days 2

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .services import toil_service
from .services.auth_service import AccountError, PasswordValidationError, create_user, get_user_by_email
from .services.toil_service import ToilError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--admin-email', default='admin@employee.local', help='Email of the first admin')
@click.option('--admin-password', default='Password123!', help='Password of the first admin')
@with_appcontext
def init_system(admin_email, admin_password):
    """
    Create tables if missing and a first admin account.

    SECURITY: Change the default password immediately in production!
    """
    click.echo("START Initializing employee space...")
    db.create_all()
    click.echo("PASS Tables ready")

    if db.session.query(User).filter_by(is_admin=True).first():
        click.echo("PASS Admin account already exists")
        return

    try:
        user = create_user(admin_email, admin_password, first_name="System", last_name="Admin", is_admin=True)
    except (PasswordValidationError, AccountError) as e:
        click.echo(f"FAIL Could not create admin: {e}")
        return
    click.echo(f"PASS Created admin: {user.email}")


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


@users_group.command('list')
@with_appcontext
def list_users():
    """List all users."""
    users = db.session.query(User).order_by(User.email).all()
    if not users:
        click.echo("No users found.")
        return

    click.echo("\n" + "=" * 80)
    click.echo(f"{'ID':<5} {'Email':<35} {'Name':<25} {'Active':<8} {'Admin'}")
    click.echo("=" * 80)
    for user in users:
        active_str = "Yes" if user.is_active else "No"
        admin_str = "Yes" if user.is_admin else "No"
        click.echo(f"{user.id:<5} {user.email:<35} {user.full_name:<25} {active_str:<8} {admin_str}")


@users_group.command('create')
@click.option('--email', prompt=True, help='Email address (login identity)')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@click.option('--first-name', default='', help='First name')
@click.option('--last-name', default='', help='Last name')
@click.option('--admin', is_flag=True, help='Grant administrator access')
@with_appcontext
def create_user_cli(email, password, first_name, last_name, admin):
    """Create an employee account."""
    try:
        user = create_user(email, password, first_name=first_name, last_name=last_name, is_admin=admin)
    except PasswordValidationError as e:
        click.echo(f"FAIL Password validation failed: {e}")
        click.echo("Requirements: 8+ chars, uppercase, lowercase, digit, special char")
        return
    except AccountError as e:
        click.echo(f"FAIL Failed to create user: {e}")
        return

    click.echo(f"PASS Created user: {user.email}{' (admin)' if user.is_admin else ''}")


@click.group('toil')
def toil_group():
    """TOIL maintenance commands."""


@toil_group.command('recompute-balances')
@click.option('--user-email', default=None, help='Only this user')
@with_appcontext
def recompute_balances(user_email):
    """Re-derive stored TOIL balances from approved entries."""
    user_ids = None
    if user_email:
        user = get_user_by_email(user_email)
        if not user:
            click.echo(f"FAIL User not found: {user_email}")
            return
        user_ids = [user.id]

    count = toil_service.recompute_all_balances(user_ids)
    click.echo(f"PASS Recomputed {count} balance(s)")


@toil_group.command('settings')
@click.argument('email')
@click.option('--capacity', default=None, help='Max accumulated balance (HH:MM)')
@click.option('--streak-hours', default=None, help='Max TOIL used within the streak window (HH:MM)')
@click.option('--streak-days', type=int, default=None, help='Streak window width in days')
@with_appcontext
def toil_settings(email, capacity, streak_hours, streak_days):
    """Show or change a user's TOIL limits."""
    user = get_user_by_email(email)
    if not user:
        click.echo(f"FAIL User not found: {email}")
        return

    try:
        if capacity is None and streak_hours is None and streak_days is None:
            settings = toil_service.get_settings(user.id)
        else:
            settings = toil_service.update_settings(
                user.id,
                max_capacity=capacity,
                max_streak_hours=streak_hours,
                max_streak_days=streak_days,
            )
    except ToilError as e:
        click.echo(f"FAIL {e}")
        return

    data = settings.to_dict()
    click.echo(
        f"PASS {user.email}: capacity {data['max_capacity']}, "
        f"streak {data['max_streak_hours']} over {data['max_streak_days']} day(s)"
    )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(toil_group)

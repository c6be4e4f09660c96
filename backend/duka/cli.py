# Overview: Flask CLI command groups for setting up and maintaining a store database.

# backend/duka/cli.py
# Run from the backend directory with FLASK_APP=wsgi.py:
#
#   flask system init                 create tables and the first admin (safe to re-run)
#   flask system reset-db --yes       drop and recreate every table (dev only)
#   flask system cleanup-sessions     purge dead login sessions
#   flask users create                add a staff account (prompts for missing options)
#   flask users list                  show staff accounts

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, User
from .models.auth import ROLE_ADMIN, ROLES
from .services.auth_service import PasswordValidationError, create_user
from .services.session_service import cleanup_expired_sessions
from .validation import ValidationError


@click.group("system")
def system_group():
    """Database setup and housekeeping."""


@system_group.command("init")
@click.option("--admin-username", default="admin", show_default=True)
@click.option("--admin-email", default="admin@duka.local", show_default=True)
@click.option("--admin-password", default="Password123!", show_default=True)
@with_appcontext
def init_system(admin_username, admin_email, admin_password):
    """
    Prepare an empty database for the shop.

    Creates any missing tables, then an admin account unless one exists.
    Change the default password before the first shift.
    """
    db.create_all()
    click.echo("PASS Tables ready")

    admin = db.session.query(User).filter_by(role=ROLE_ADMIN).first()
    if admin is not None:
        click.echo(f"PASS Admin already present: {admin.username}")
        return

    try:
        admin = create_user(admin_username, admin_email, admin_password, role=ROLE_ADMIN)
    except ValidationError as e:
        raise click.ClickException(f"Could not create admin: {e}")

    click.echo(f"PASS Created admin {admin.username} <{admin.email}>")
    click.echo("WARN Default password in use; change it now")


@system_group.command("reset-db")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation")
@with_appcontext
def reset_db(yes):
    """Drop and recreate every table. All products, sales and debts are lost."""
    if not yes:
        click.confirm("This deletes ALL store data. Continue?", abort=True)

    db.drop_all()
    db.create_all()
    click.echo("PASS Empty schema recreated; run 'flask system init' next")


@system_group.command("cleanup-sessions")
@with_appcontext
def cleanup_sessions():
    """Delete expired or revoked logins past the retention window."""
    click.echo(f"PASS Removed {cleanup_expired_sessions()} stale session(s)")


@click.group("users")
def users_group():
    """Staff accounts."""


@users_group.command("create")
@click.option("--username", prompt=True)
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
@click.option("--role", type=click.Choice(list(ROLES)), default="cashier", prompt=True, show_default=True)
@with_appcontext
def create_user_cli(username, email, password, role):
    """Add a staff account (admin, manager or cashier)."""
    try:
        user = create_user(username=username, email=email, password=password, role=role)
    except PasswordValidationError as e:
        raise click.ClickException(f"{e} (need 8+ chars with upper, lower, digit and symbol)")
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {user.role} account '{user.username}' created")


@users_group.command("list")
@with_appcontext
def list_users():
    """Print staff accounts, admins first."""
    users = db.session.query(User).order_by(User.role.asc(), User.username.asc()).all()
    if not users:
        click.echo("No users yet; run 'flask system init'.")
        return

    click.echo(f"{'USERNAME':<20} {'ROLE':<8} {'ACTIVE':<6} LAST LOGIN")
    for user in users:
        last_login = user.last_login_at.strftime("%Y-%m-%d %H:%M") if user.last_login_at else "-"
        click.echo(f"{user.username:<20} {user.role:<8} {'yes' if user.is_active else 'no':<6} {last_login}")

    products = db.session.query(Product).count()
    click.echo(f"\n{len(users)} user(s); {products} product(s) in the catalogue")


def register_commands(app):
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)

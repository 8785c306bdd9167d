# Overview: Flask CLI command groups for bootstrap and admin accounts.

# backend/autocare/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create any missing tables and the invoice counter row (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Admin accounts:
# - python -m flask admin create --email owner@shop.local --password "changeme123"
#   Create an admin (prompts if options are omitted).
# - python -m flask admin set-password --email owner@shop.local
#   Replace an admin's password and revoke their open sessions.
# - python -m flask admin list

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Admin
from .services import auth_service
from .services.sequence_service import ensure_counter
from .validation import ValidationError, ConflictError, NotFoundError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables and the invoice counter row. Existing data is left alone."""
    db.create_all()
    next_number = ensure_counter()
    db.session.commit()
    click.echo(f"PASS Database ready. Next invoice sequence: {next_number}")


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

    click.echo("PASS Database reset complete. Run 'python -m flask admin create' to add an admin.")


@click.group('admin')
def admin_group():
    """Admin account management."""


@admin_group.command('create')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def create_admin_cli(email, password):
    try:
        admin = auth_service.create_admin(email, password)
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Created admin {admin.email} (id={admin.id})")


@admin_group.command('set-password')
@click.option('--email', prompt=True, help='Email address')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='New password')
@with_appcontext
def set_password_cli(email, password):
    try:
        admin = auth_service.set_password(email, password)
    except (ValidationError, NotFoundError) as e:
        raise click.ClickException(str(e))
    click.echo(f"PASS Password updated for {admin.email}; open sessions revoked")


@admin_group.command('list')
@with_appcontext
def list_admins():
    admins = db.session.query(Admin).order_by(Admin.id.asc()).all()
    if not admins:
        click.echo("No admins. Run 'python -m flask admin create'.")
        return
    for admin in admins:
        status = "active" if admin.is_active else "inactive"
        last_login = admin.last_login_at.isoformat() if admin.last_login_at else "never"
        click.echo(f"{admin.id:>4}  {admin.email:<40} {status:<8} last login: {last_login}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(admin_group)

# Overview: Flask CLI command group for bootstrap and maintenance.

# backend/shopdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Set DATABASE_URL and SECRET_KEY.
# - Use: python -m flask shop <command> [options]
#
# Bootstrap:
# - python -m flask shop init-db
#   Create all tables and ticket counters (idempotent).
# - python -m flask shop reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask shop init-admin --username admin --password "..."
#   Create the admin account on a fresh install (same as the setup screen).
# - python -m flask shop add-operator --username maria --password "..."
#   Add an active operator account.
# - python -m flask shop seed-demo
#   Load a handful of demo products and clients.
#
# Maintenance:
# - python -m flask shop cleanup-sessions
#   Delete expired and revoked sessions older than 30 days.
# - python -m flask shop clear-orders --yes
#   Delete the whole order history (stock is not restored).

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, Client
from .services import auth_service, settings_service, session_service, orders_service
from .services.auth_service import PasswordValidationError, SetupError
from .services.products_service import upsert_product
from .services.clients_service import upsert_client
from .services.sequence_service import ensure_ticket_sequences
from .validation import ValidationError, ConflictError


DEMO_PRODUCTS = [
    {"name": "Smart Shirt", "color": "Blue", "stock": 25, "cost_cents": 12000, "sale_price_cents": 21000},
    {"name": "Smart Shirt", "color": "White", "stock": 18, "cost_cents": 12000, "sale_price_cents": 21000},
    {"name": "Denim Jacket", "color": "Black", "stock": 4, "cost_cents": 25000, "sale_price_cents": 42000},
    {"name": "Cotton Polo", "color": "Red", "stock": 40, "cost_cents": 6000, "sale_price_cents": 9500},
    {"name": "Linen Pants", "color": "Beige", "stock": 2, "cost_cents": 15000, "sale_price_cents": 26000},
]

DEMO_CLIENTS = [
    {"name": "Maria Fernanda Lopez", "document_id": "7896543 LP", "phone": "+591 765-43210", "address": "Av. Busch #234, La Paz"},
    {"name": "Juan Carlos Rojas", "document_id": "4567123 SC", "phone": "70012345", "address": "Calle Sucre 12, Santa Cruz"},
    {"name": "Ana Gutierrez", "document_id": "3345123 CB", "phone": "+591 722-11223", "address": "Av. America 890, Cochabamba"},
]


@click.group('shop')
def shop_group():
    """Bootstrap and maintenance commands."""


@shop_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables and ticket counters (safe to re-run)."""
    click.echo("BUILD  Creating tables...")
    db.create_all()
    ensure_ticket_sequences()
    click.echo("PASS Database ready.")
    if auth_service.is_initial_setup_required():
        click.echo("NEXT Create the admin account: python -m flask shop init-admin")


@shop_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including users and settings!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()
    ensure_ticket_sequences()

    click.echo("PASS Database reset complete. Run 'python -m flask shop init-admin' to create the admin.")


@shop_group.command('init-admin')
@click.option('--username', prompt=True, help='Admin username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def init_admin(username, password):
    """Create the admin account on a fresh install."""
    try:
        user = auth_service.complete_initial_setup(username, password)
    except (SetupError, PasswordValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Admin '{user.username}' created.")


@shop_group.command('add-operator')
@click.option('--username', prompt=True, help='Operator username')
@click.option('--password', prompt=True, hide_input=True, confirmation_prompt=True, help='Password')
@with_appcontext
def add_operator(username, password):
    """Add an active operator (the admin must exist)."""
    current = settings_service.get_users_config()
    payload = {
        "admin": {"username": current["admin"].get("username", "")},
        "operators": [
            {"id": op["id"], "username": op["username"], "active": op.get("active", True)}
            for op in current["operators"]
        ] + [{"username": username, "password": password, "active": True}],
    }

    try:
        cfg = settings_service.build_users_config(payload, current)
        settings_service.save_users_config(cfg)
    except (ValidationError, ConflictError, PasswordValidationError) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS Operator '{username.strip()}' added.")


@shop_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Load demo products and clients (skipped when data already exists)."""
    if db.session.query(Product).count() or db.session.query(Client).count():
        click.echo("WARN  Products or clients already exist, skipping demo data.")
        return

    for payload in DEMO_PRODUCTS:
        product = upsert_product(payload=dict(payload))
        click.echo(f"PASS Product: {product.name} ({product.color}) stock={product.stock}")

    for payload in DEMO_CLIENTS:
        client = upsert_client(payload=dict(payload))
        click.echo(f"PASS Client: {client.name}")


@shop_group.command('cleanup-sessions')
@with_appcontext
def cleanup_sessions():
    """Delete expired and revoked sessions older than 30 days."""
    deleted = session_service.cleanup_expired_sessions()
    click.echo(f"PASS Deleted {deleted} session(s).")


@shop_group.command('clear-orders')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def clear_orders(yes):
    """Delete the whole order history (stock is not restored)."""
    if not yes:
        click.confirm("WARN This will DELETE ALL ORDERS. Are you sure?", abort=True)

    deleted = orders_service.clear_orders()
    click.echo(f"PASS Deleted {deleted} order(s).")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(shop_group)

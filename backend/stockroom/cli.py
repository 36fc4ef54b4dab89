# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/stockroom/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to the factory (PowerShell: $env:FLASK_APP="stockroom:create_app").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system seed
#   Create the HQ location, a second warehouse, a supplier, a category,
#   admin@stockroom.local (admin) and user@stockroom.local (user), and demo products.
#
# Users:
# - python -m flask users create --name "Jo" --email jo@stockroom.local --role user
# - python -m flask users issue-token --email admin@stockroom.local
#   Print a Bearer token for API calls.
#
# Transactions:
# - python -m flask transactions list --status pending --limit 20

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Category, Company, Location, Product, Transaction, User
from .services import session_service
from .services.session_service import ROLE_ADMIN, ROLE_USER


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('seed')
@with_appcontext
def seed():
    """
    Seed demo directory data. Safe to run twice: existing rows are reused.
    """
    db.create_all()

    hq = db.session.query(Location).filter_by(is_headquarters=True).first()
    if not hq:
        hq = Location(name="HQ", description="Head office stockroom", is_headquarters=True)
        db.session.add(hq)
    warehouse = db.session.query(Location).filter_by(name="Warehouse").first()
    if not warehouse:
        warehouse = Location(name="Warehouse", description="Main warehouse")
        db.session.add(warehouse)

    category = db.session.query(Category).filter_by(name="General").first()
    if not category:
        category = Category(name="General")
        db.session.add(category)

    supplier = db.session.query(Company).filter_by(name="Acme Supplies").first()
    if not supplier:
        supplier = Company(name="Acme Supplies", email="orders@acme.example", terms="Net 30")
        db.session.add(supplier)
    db.session.flush()

    for name, email, role in (
        ("Admin", "admin@stockroom.local", ROLE_ADMIN),
        ("Requester", "user@stockroom.local", ROLE_USER),
    ):
        if not db.session.query(User).filter_by(email=email).first():
            db.session.add(User(name=name, email=email, role=role, location_id=hq.id))

    demo_products = (
        ("ITEM-001", "Packing tape", 2.5, 4.0, 100),
        ("ITEM-002", "Cardboard box", 1.2, 2.0, 250),
    )
    for item_code, name, cost, price, stock in demo_products:
        exists = db.session.query(Product).filter_by(item_code=item_code, location_id=hq.id).first()
        if not exists:
            db.session.add(Product(
                item_code=item_code,
                name=name,
                cost_price=cost,
                selling_price=price,
                stock=stock,
                location_id=hq.id,
                category_id=category.id,
            ))

    db.session.commit()
    click.echo(f"PASS Seeded locations: {hq.name} (HQ), {warehouse.name}")
    click.echo("   admin -> admin@stockroom.local")
    click.echo("   user  -> user@stockroom.local")


@click.group('users')
def users_group():
    """User commands."""


@users_group.command('create')
@click.option('--name', prompt=True, help='Display name')
@click.option('--email', prompt=True, help='Email address')
@click.option('--role', type=click.Choice([ROLE_ADMIN, ROLE_USER]), default=ROLE_USER, help='Role')
@with_appcontext
def create_user_cli(name, email, role):
    if db.session.query(User).filter_by(email=email).first():
        click.echo(f"FAIL User {email} already exists")
        return
    user = User(name=name, email=email, role=role)
    db.session.add(user)
    db.session.commit()
    click.echo(f"PASS Created user {email} (ID: {user.id}) with role '{role}'")


@users_group.command('issue-token')
@click.option('--email', required=True, help='Email of the user to authenticate')
@with_appcontext
def issue_token(email):
    """Print a new Bearer token for a user."""
    user = db.session.query(User).filter_by(email=email).first()
    if not user:
        click.echo(f"FAIL User {email} not found")
        return
    session, token = session_service.create_session(user.id)
    db.session.commit()
    click.echo(token)
    click.echo(f"   expires {session.expires_at.isoformat()}Z", err=True)


@click.group('transactions')
def transactions_group():
    """Transaction inspection commands."""


@transactions_group.command('list')
@click.option('--status', default=None, help='Filter by status')
@click.option('--type', 'txn_type', default=None, help='Filter by type')
@click.option('--limit', default=20, show_default=True, help='Max rows')
@with_appcontext
def list_transactions_cli(status, txn_type, limit):
    query = db.session.query(Transaction)
    if status:
        query = query.filter_by(status=status)
    if txn_type:
        query = query.filter_by(type=txn_type)
    rows = query.order_by(Transaction.created_at.desc()).limit(limit).all()
    if not rows:
        click.echo("No transactions")
        return
    for t in rows:
        click.echo(
            f"{t.id:>6}  {t.type:<9} {t.status:<9} {t.po_number or '-':<11} "
            f"lines={len(t.lines)} requested_by={t.requested_by_user_id}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(users_group)
    app.cli.add_command(transactions_group)

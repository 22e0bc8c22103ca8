# Overview: Flask CLI command group for bootstrap and inspection.

# backend/papeleria/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask commerce <command> [options]
#
# - python -m flask commerce init-db
#   Create all tables (development; use `flask db upgrade` for migrations).
# - python -m flask commerce seed-demo
#   Idempotent demo data: a cashier, a customer, a supplier, products and a service.
# - python -m flask commerce low-stock
#   List active physical products at or below their minimum stock.
# - python -m flask commerce register-status
#   List open cash register sessions with their live expected cash.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import User
from .models.catalog import PRODUCT_TYPE_SERVICE
from .services import directory_service, register_service, stock_service


DEMO_PRODUCTS = [
    # name, price_cents, cost_cents, stock, min_stock
    ("Cuaderno cuadriculado 100 hojas", 450000, 300000, 40, 10),
    ("Lapicero negro", 150000, 80000, 120, 20),
    ("Resma carta 500 hojas", 2200000, 1700000, 6, 8),
    ("Borrador de nata", 80000, 40000, 3, 10),
]


def _format_cents(cents) -> str:
    if cents is None:
        return "-"
    return f"{cents / 100:,.2f}"


@click.group('commerce')
def commerce_group():
    """Point-of-sale back-office commands."""


@commerce_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables for the configured database."""
    db.create_all()
    click.echo(f"PASS Tables created on {db.engine.url.render_as_string(hide_password=True)}")


@commerce_group.command('seed-demo')
@with_appcontext
def seed_demo():
    """Create demo collaborators and catalog (skips if already seeded)."""
    if db.session.query(User).filter_by(username="cajero").first():
        click.echo("WARN  Demo data already present, skipping...")
        return

    user = directory_service.create_user("cajero", "Caja", "Principal")
    click.echo(f"PASS Created user: {user.username} (ID: {user.id})")

    customer = directory_service.create_customer("Cliente", "Mostrador", "222222222")
    click.echo(f"PASS Created customer: {customer.first_name} {customer.last_name} (ID: {customer.id})")

    supplier = directory_service.create_supplier("Distribuidora Central", "900123456-7")
    click.echo(f"PASS Created supplier: {supplier.name} (ID: {supplier.id})")

    for name, price, cost, stock, min_stock in DEMO_PRODUCTS:
        product = directory_service.create_product(
            name, price, stock=stock, min_stock=min_stock, cost_cents=cost,
        )
        click.echo(f"PASS Created product: {product.name} (ID: {product.id}, stock: {product.stock})")

    printing = directory_service.create_product(
        "Impresion a color", 100000, product_type=PRODUCT_TYPE_SERVICE,
    )
    click.echo(f"PASS Created service-type product: {printing.name} (ID: {printing.id})")

    service = directory_service.create_service("Fotocopia", 20000, "Fotocopia blanco y negro")
    click.echo(f"PASS Created service: {service.name} (ID: {service.id})")

    click.echo("\nDONE Demo data seeded")


@commerce_group.command('low-stock')
@with_appcontext
def low_stock():
    """List products at or below their minimum stock."""
    products = stock_service.low_stock_products()
    if not products:
        click.echo("PASS No products below minimum stock")
        return

    click.echo(f"WARN  {len(products)} product(s) at or below minimum stock:")
    for product in products:
        click.echo(f"  [{product.id}] {product.name}: stock={product.stock} min={product.min_stock}")


@commerce_group.command('register-status')
@with_appcontext
def register_status():
    """List open cash register sessions."""
    registers = register_service.list_open_registers()
    if not registers:
        click.echo("PASS No open cash registers")
        return

    click.echo(f"LIST {len(registers)} open cash register(s):")
    for register in registers:
        expected = register_service.compute_expected_amount(register)
        click.echo(
            f"  [{register.id}] user={register.user_id} opened={register.opened_at:%Y-%m-%d %H:%M} "
            f"opening={_format_cents(register.opening_amount_cents)} expected={_format_cents(expected)}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(commerce_group)

# Overview: Flask CLI command groups for database bootstrap and demo data.

# backend/stockpos/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create any missing tables. Safe to run repeatedly.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Demo data:
# - python -m flask seed demo [--with-sales]
#   Insert a small demo catalog, optionally with a few checkouts.
#
# Catalog inspection:
# - python -m flask catalog low-stock
#   List active products at or below their minimum stock level.

import click
from flask.cli import with_appcontext

from .errors import StockPosError
from .extensions import db
from .models import Product
from .services import catalog_service, checkout_service
from .validation import Cart, CartLine


DEMO_PRODUCTS = [
    {"name": "Arroz 5kg", "price_cents": 2790, "cost_price_cents": 2100, "stock_quantity": 40, "category": "Mercearia"},
    {"name": "Feijao Carioca 1kg", "price_cents": 899, "cost_price_cents": 610, "stock_quantity": 60, "category": "Mercearia"},
    {"name": "Cafe 500g", "price_cents": 1550, "cost_price_cents": 1120, "stock_quantity": 10, "category": "Bebidas"},
    {"name": "Leite Integral 1L", "price_cents": 549, "cost_price_cents": 390, "stock_quantity": 4, "category": "Laticinios"},
    {"name": "Sabao em Po 1kg", "price_cents": 1290, "cost_price_cents": 870, "stock_quantity": 2, "category": "Limpeza"},
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Create the schema if it does not exist yet.

    Production databases should be managed with `flask db upgrade`;
    this is the quick path for local installs.
    """
    click.echo("START Creating tables...")
    db.create_all()
    count = db.session.query(Product).count()
    click.echo(f"PASS Schema ready ({count} products in catalog)")


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

    click.echo("PASS Database reset complete. Run 'python -m flask seed demo' for sample data.")


@click.group('seed')
def seed_group():
    """Demo data commands."""


@seed_group.command('demo')
@click.option('--with-sales', is_flag=True, help='Also check out a few demo carts')
@with_appcontext
def seed_demo(with_sales):
    """Insert the demo catalog. Products that already exist by name are skipped."""
    created = []
    for data in DEMO_PRODUCTS:
        exists = db.session.query(Product).filter(Product.name == data["name"]).first()
        if exists:
            click.echo(f"SKIP {data['name']} (ID: {exists.id})")
            continue
        p = catalog_service.create_product(patch=dict(data), actor_id="seed")
        created.append(p)
        click.echo(f"PASS Created {p.name} (ID: {p.id}, stock {p.stock_quantity})")

    if with_sales and len(created) >= 3:
        carts = [
            Cart(lines=(CartLine(created[0].id, 1), CartLine(created[1].id, 2)), payment_method="money"),
            Cart(lines=(CartLine(created[2].id, 1),), payment_method="pix"),
        ]
        for cart in carts:
            try:
                sale = checkout_service.checkout(cart, actor_id="seed")
            except StockPosError as exc:
                click.echo(f"FAIL Demo checkout rejected: {exc.message}")
                continue
            click.echo(f"PASS Sale {sale.document_number} total {sale.to_dict(include_lines=False)['total_amount']}")

    click.echo(f"\nDONE {len(created)} products created")


@click.group('catalog')
def catalog_group():
    """Catalog inspection commands."""


@catalog_group.command('low-stock')
@with_appcontext
def low_stock_cli():
    """List active products at or below their minimum stock level."""
    products = catalog_service.low_stock_products()
    if not products:
        click.echo("No low-stock products.")
        return

    click.echo(f"{'ID':<6} {'Name':<30} {'Stock':>6} {'Min':>6}")
    click.echo("-" * 52)
    for p in products:
        click.echo(f"{p.id:<6} {p.name[:30]:<30} {p.stock_quantity:>6} {p.min_stock_level:>6}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(seed_group)
    app.cli.add_command(catalog_group)

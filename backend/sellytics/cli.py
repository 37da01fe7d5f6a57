# Overview: Flask CLI command groups for bootstrap and inspection.

# backend/sellytics/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database:
# - python -m flask db upgrade
#   Apply migrations (Flask-Migrate).
#
# Stores:
# - python -m flask stores create --name "Main Store" [--owner-email owner@example.com]
# - python -m flask stores list
#
# Products and inventory:
# - python -m flask products add --store-id 1 --name "Phone X" --purchase-price-cents 100000 --purchase-qty 10 --selling-price-cents 15000
# - python -m flask inventory restock --store-id 1 --product-id 1 --qty 5 [--purchase-price-cents 50000]
# - python -m flask inventory low-stock --store-id 1 [--threshold 5]
# - python -m flask inventory seed --store-id 1
#   Create missing inventory rows from each product's purchase_qty.
#
# Debts:
# - python -m flask debts outstanding --store-id 1 [--all]

import click
from flask.cli import with_appcontext

from .errors import LedgerError
from .extensions import datastore
from .services import debt_service, inventory_service, products_service
from .services.context import StoreContext


def _fail(exc: LedgerError):
    raise click.ClickException(f"{exc.message} {exc.details}" if exc.details else exc.message)


@click.group('stores')
def stores_group():
    """Store bootstrap commands."""


@stores_group.command('create')
@click.option('--name', required=True, help='Store name')
@click.option('--owner-email', default=None, help='Owner email')
@with_appcontext
def create_store(name, owner_email):
    store = datastore.insert("stores", [{"name": name, "owner_email": owner_email}])[0]
    click.echo(f"PASS Created store: {store.name} (ID: {store.id})")


@stores_group.command('list')
@with_appcontext
def list_stores():
    stores = datastore.select("stores", order_by=["id"])
    if not stores:
        click.echo("No stores found.")
        return
    for store in stores:
        click.echo(f"{store.id:>4}  {store.name}  {store.owner_email or '-'}")


@click.group('products')
def products_group():
    """Product commands."""


@products_group.command('add')
@click.option('--store-id', type=int, required=True)
@click.option('--name', required=True)
@click.option('--purchase-price-cents', type=int, default=0, help='Total paid for the batch')
@click.option('--purchase-qty', type=int, default=0, help='Batch size; becomes opening stock')
@click.option('--selling-price-cents', type=int, default=None)
@click.option('--supplier', 'supplier_name', default=None)
@with_appcontext
def add_product(store_id, name, purchase_price_cents, purchase_qty, selling_price_cents, supplier_name):
    try:
        product = products_service.create_product(
            StoreContext(store_id=store_id),
            name,
            purchase_price_cents=purchase_price_cents,
            purchase_qty=purchase_qty,
            selling_price_cents=selling_price_cents,
            supplier_name=supplier_name,
        )
    except LedgerError as e:
        _fail(e)
    click.echo(f"PASS Created product: {product.name} (ID: {product.id}, opening stock {product.purchase_qty})")


@click.group('inventory')
def inventory_group():
    """Inventory inspection and maintenance."""


@inventory_group.command('restock')
@click.option('--store-id', type=int, required=True)
@click.option('--product-id', type=int, required=True)
@click.option('--qty', type=int, required=True, help='Units added (> 0)')
@click.option('--purchase-price-cents', type=int, default=None, help='Total paid for the batch')
@with_appcontext
def restock(store_id, product_id, qty, purchase_price_cents):
    try:
        record = inventory_service.restock(
            StoreContext(store_id=store_id),
            product_id,
            qty,
            purchase_price_cents=purchase_price_cents,
        )
    except LedgerError as e:
        _fail(e)
    click.echo(f"PASS Product {product_id}: available {record.available_qty}, sold {record.quantity_sold}")


@inventory_group.command('low-stock')
@click.option('--store-id', type=int, required=True)
@click.option('--threshold', type=int, default=None, help='Defaults to LOW_STOCK_THRESHOLD')
@with_appcontext
def low_stock(store_id, threshold):
    records = inventory_service.list_low_stock(StoreContext(store_id=store_id), threshold)
    if not records:
        click.echo("No products are low on stock.")
        return
    for record in records:
        name = record.product.name if record.product else f"product {record.product_id}"
        click.echo(f"WARN  {name}: {record.available_qty} left")


@inventory_group.command('seed')
@click.option('--store-id', type=int, required=True)
@with_appcontext
def seed(store_id):
    created = inventory_service.seed_inventory(StoreContext(store_id=store_id))
    click.echo(f"PASS Seeded {len(created)} product(s) into inventory")


@click.group('debts')
def debts_group():
    """Debt inspection."""


@debts_group.command('outstanding')
@click.option('--store-id', type=int, required=True)
@click.option('--all', 'include_settled', is_flag=True, help='Include settled debts')
@with_appcontext
def outstanding(store_id, include_settled):
    balances = debt_service.list_outstanding(StoreContext(store_id=store_id), include_settled=include_settled)
    if not balances:
        click.echo("No outstanding debts.")
        return
    for b in balances:
        customer = b.debt.customer.full_name if b.debt.customer else f"customer {b.debt.customer_id}"
        click.echo(
            f"{b.debt.id:>4}  {customer}  owed {b.debt.amount_owed_cents}  "
            f"paid {b.amount_paid_cents}  remaining {b.remaining_cents}  [{b.status}]"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(inventory_group)
    app.cli.add_command(debts_group)

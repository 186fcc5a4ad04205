# Overview: Flask CLI command groups for bootstrap, event dispatch, and the nightly job.

# backend/storeops/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to storeops (PowerShell: $env:FLASK_APP="storeops").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables that do not exist yet (dev/test; production uses `flask db upgrade`).
#
# Tenant setup:
# - python -m flask stores create --id accra-1 --name "Accra Central" --timezone Africa/Accra
#   Register a store (tenant) with the timezone its days are bucketed in.
# - python -m flask stores list
#   List stores with their timezones.
# - python -m flask products create --id p-100 --store-id accra-1 --name "Rice 5kg" --price 120 --stock 40
#   Register a product with opening stock.
#
# Events:
# - python -m flask events dispatch [--limit 100] [--store-id accra-1]
#   Deliver pending outbox events to the daily summary aggregator.
#
# Nightly:
# - python -m flask nightly run [--as-of 2026-03-02T01:00:00Z]
#   Recompute every store's previous-day summary and repair the activity feed.
#   Schedule once a day (cron) in a low-traffic window.

import click
from flask.cli import with_appcontext

from .errors import StoreOpsError
from .extensions import db
from .repositories import default_repositories
from .services import store_service
from .services.event_service import dispatch_pending_events
from .services.reconciliation_service import run_nightly_reconciliation
from .time_utils import FixedClock, current_clock, parse_iso_datetime


def _fail(message: str) -> None:
    click.echo(f"FAIL {message}")
    raise click.exceptions.Exit(1)


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables (idempotent)."""
    db.create_all()
    click.echo("PASS Database tables created.")


@click.group('stores')
def stores_group():
    """Store (tenant) management."""


@stores_group.command('create')
@click.option('--id', 'store_id', required=True, help='Store ID')
@click.option('--name', required=True, help='Store name')
@click.option('--timezone', default='UTC', show_default=True, help='IANA timezone, e.g. Africa/Accra')
@with_appcontext
def create_store_cli(store_id, name, timezone):
    """
    Register a store.

    Example:
        flask stores create --id accra-1 --name "Accra Central" --timezone Africa/Accra
    """
    try:
        store = store_service.create_store(store_id=store_id, name=name, timezone=timezone)
    except StoreOpsError as e:
        _fail(e.message)
    click.echo(f"PASS Created store: {store.id} - {store.name} ({store.timezone})")


@stores_group.command('list')
@with_appcontext
def list_stores_cli():
    """List all stores."""
    stores = default_repositories().stores.list_all()
    if not stores:
        click.echo("No stores found.")
        return
    for store in stores:
        click.echo(f"{store.id:<20} {store.name:<30} {store.timezone or 'UTC'}")


@click.group('products')
def products_group():
    """Product management."""


@products_group.command('create')
@click.option('--id', 'product_id', required=True, help='Product ID')
@click.option('--store-id', required=True, help='Owning store ID')
@click.option('--name', required=True, help='Product name')
@click.option('--price', type=float, help='Unit price')
@click.option('--stock', type=int, default=0, show_default=True, help='Opening stock count')
@click.option('--reorder-threshold', type=int, help='Low stock threshold')
@with_appcontext
def create_product_cli(product_id, store_id, name, price, stock, reorder_threshold):
    """
    Register a product with opening stock.

    Example:
        flask products create --id p-100 --store-id accra-1 --name "Rice 5kg" --price 120 --stock 40
    """
    try:
        product = store_service.create_product(
            product_id=product_id,
            store_id=store_id,
            name=name,
            price=price,
            stock_count=stock,
            reorder_threshold=reorder_threshold,
        )
    except StoreOpsError as e:
        _fail(e.message)
    click.echo(f"PASS Created product: {product.id} - {product.name} (stock {product.stock_count})")


@click.group('events')
def events_group():
    """Outbox event delivery."""


@events_group.command('dispatch')
@click.option('--limit', type=int, help='Maximum events to deliver (default EVENTS_DISPATCH_BATCH_SIZE)')
@click.option('--store-id', help='Only deliver events for this store')
@with_appcontext
def dispatch_events_cli(limit, store_id):
    """Deliver pending events to the daily summary aggregator."""
    result = dispatch_pending_events(limit=limit, store_id=store_id)
    click.echo(f"PASS Delivered {result['delivered']} events ({result['failed']} failed).")


@click.group('nightly')
def nightly_group():
    """Scheduled jobs."""


@nightly_group.command('run')
@click.option('--as-of', 'as_of', help='Run as if now were this ISO-8601 instant')
@with_appcontext
def nightly_run_cli(as_of):
    """
    Recompute previous-day summaries for every store.

    Safe to re-run: unchanged summaries are not rewritten.
    """
    clock = current_clock()
    if as_of:
        try:
            parsed = parse_iso_datetime(as_of)
        except ValueError:
            parsed = None
        if parsed is None:
            _fail(f"Invalid --as-of value: {as_of}")
        clock = FixedClock(parsed)

    report = run_nightly_reconciliation(clock=clock)

    click.echo(f"PASS Reconciled {report['stores']} stores, wrote {report['summaries_written']} summaries.")
    click.echo(f"   Events delivered: {report['events_delivered']}")
    click.echo(f"   Activities deleted: {report['activities_deleted']}")
    click.echo(f"   Activities backfilled: {report['activities_backfilled']}")
    if report['failed_stores']:
        click.echo(f"WARN Failed stores: {', '.join(report['failed_stores'])}")
        raise click.exceptions.Exit(1)


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(stores_group)
    app.cli.add_command(products_group)
    app.cli.add_command(events_group)
    app.cli.add_command(nightly_group)

# Overview: Flask CLI command groups for bootstrap, rates and ledger inspection.

# backend/gemstrack/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to gemstrack (PowerShell: $env:FLASK_APP="gemstrack").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Idempotent bootstrap: creates tables, default categories, rate rows and sequence counters.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Rates:
# - python -m flask rates list
#   Show the live rate table.
# - python -m flask rates set gold 200 --tier 21k
#   Set one unit price per gram (each gold tier is set on its own).
#
# Ledger:
# - python -m flask ledger balance customer 3
#   Cash and material balance for one entity (positive = owes the shop).
# - python -m flask ledger summaries
#   Every entity with an open balance.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import document_service, inventory_service, ledger_service, settings_service
from .services.pricing_service import parse_rate_key, rate_key
from .validation import GemsTrackError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize GemsTrack: schema, categories, rate rows and counters.

    Safe to run repeatedly; existing rows are left alone.
    """
    click.echo("START Initializing GemsTrack...")

    db.create_all()
    click.echo("PASS Schema ready")

    created = inventory_service.ensure_default_categories()
    click.echo(f"PASS Categories: {created} created")

    created = settings_service.ensure_default_rates()
    click.echo(f"PASS Rate rows: {created} created")

    created = document_service.ensure_sequences()
    click.echo(f"PASS Sequence counters: {created} created")

    click.echo("\nDONE GemsTrack initialized. Set today's rates with 'python -m flask rates set'.")


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


@click.group('rates')
def rates_group():
    """Rate table commands."""


@rates_group.command('list')
@with_appcontext
def list_rates():
    """Show unit prices per gram."""
    rows = settings_service.list_rates()
    if not rows:
        click.echo("No rates configured. Run 'python -m flask system init'.")
        return
    for row in rows:
        click.echo(f"{rate_key(row.material, row.purity_tier):<12} {row.unit_price_per_gram}")


@rates_group.command('set')
@click.argument('material')
@click.argument('price')
@click.option('--tier', default=None, help='Purity tier for gold (18k, 21k, 22k, 24k)')
@with_appcontext
def set_rate(material, price, tier):
    """Set the unit price per gram for MATERIAL."""
    key = f"{material}:{tier}" if tier else material
    try:
        table = settings_service.set_rates({key: price})
    except GemsTrackError as e:
        raise click.ClickException(e.message)
    parsed = parse_rate_key(key)
    click.echo(f"PASS {rate_key(*parsed)} = {table.rate_for(*parsed)}")


@click.group('ledger')
def ledger_group():
    """Ledger inspection commands."""


@ledger_group.command('balance')
@click.argument('kind', type=click.Choice(['customer', 'artisan']))
@click.argument('entity_id')
@with_appcontext
def show_balance(kind, entity_id):
    """Cash and material balance for one entity."""
    balance = ledger_service.get_balance(entity_id, kind)
    click.echo(f"{kind} {entity_id}: cash {balance.cash}, material {balance.material} g")


@ledger_group.command('summaries')
@with_appcontext
def show_summaries():
    """Every entity with an open balance, by name."""
    summaries = ledger_service.account_summaries()
    if not summaries:
        click.echo("All accounts settled.")
        return
    for s in summaries:
        click.echo(
            f"{s['entity_kind']:<9} {s['entity_id']:<10} {s['entity_name']:<30} "
            f"cash {s['cash_balance']:>14}  material {s['material_balance']:>10} g"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(rates_group)
    app.cli.add_command(ledger_group)

# Overview: Flask CLI command groups for bootstrap and loyalty maintenance.

# backend/shopsync/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init
#   Create tables and seed the default loyalty configuration (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Loyalty maintenance:
# - python -m flask loyalty sweep [--force]
#   Daily point expiry + tier recompute. Safe to schedule from cron; a
#   second run on the same day is a no-op unless --force is given.
# - python -m flask loyalty recompute-tiers
#   Re-evaluate every customer's tier now.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import loyalty_service, settings_service, tier_service


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the ShopSync database.

    Creates:
    - All tables (when not managed by migrations yet)
    - Default earning rule: 1 point per 100 spent, open-ended
    - Default redemption rule: 1 point = 1 currency unit
    - Expiry settings (disabled)
    - Rank-0 base tier
    """
    click.echo("START Initializing ShopSync...")
    db.create_all()
    settings_service.ensure_loyalty_defaults()

    rules = settings_service.list_earning_rules()
    tiers = settings_service.list_tiers()
    click.echo(f"PASS Earning rules: {len(rules)}")
    click.echo(f"PASS Tiers: {', '.join(t.name for t in tiers)}")
    click.echo("PASS Initialization complete.")


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


@click.group('loyalty')
def loyalty_group():
    """Loyalty maintenance commands."""


@loyalty_group.command('sweep')
@click.option('--force', is_flag=True, help='Run even if today\'s pass already happened')
@with_appcontext
def sweep(force):
    """Expire lapsed points and recompute every tier (once per day)."""
    summary = loyalty_service.run_daily_maintenance(force=force)
    if summary is None:
        click.echo("SKIP Maintenance already ran today. Use --force to run again.")
        return

    if summary["expiry_enabled"]:
        click.echo(
            f"PASS Expiry: {summary['points_removed']} point(s) removed "
            f"({summary['inactive_customers']} inactive, {summary['expired_customers']} lapsed)"
        )
    else:
        click.echo("INFO Expiry disabled; no points removed")
    click.echo(f"PASS Tiers: {summary['tiers_changed']} customer(s) changed tier")


@loyalty_group.command('recompute-tiers')
@with_appcontext
def recompute_tiers():
    """Re-evaluate every customer's tier."""
    changed = tier_service.recompute_all_tiers()
    click.echo(f"PASS {changed} customer(s) changed tier")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(loyalty_group)

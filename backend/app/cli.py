# Overview: Flask CLI command groups for bootstrap, seeding and fiscal period maintenance.

# backend/app/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init [--org "Org Name"] [--vat-rate-bps 1500]
#   Idempotent bootstrap: default org, branch + safe, store, bank and an
#   open fiscal year for the current calendar year.
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Organization management (MULTI-TENANT):
# - python -m flask orgs list
# - python -m flask orgs create --name "Acme Corp" --code "ACME" [--vat-rate-bps 1500]
#
# Fiscal years:
# - python -m flask fiscal-years list --org-id 1
# - python -m flask fiscal-years create --org-id 1 --name FY2025 --start 2025-01-01 --end 2025-12-31
# - python -m flask fiscal-years close --org-id 1 --id 3
#
# Stock:
# - python -m flask stock receive --org-id 1 --item-id 5 --quantity 20 [--store-id 1]
#   Put opening/received stock on hand outside of any document.

import click
from datetime import date
from flask.cli import with_appcontext

from .extensions import db
from .models import Organization, Branch, Store, Safe, Bank
from .services import fiscal_service, stock_ledger_service
from .services.errors import PostingError
from .time_utils import today


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init')
@click.option('--org', 'org_name', default='Default Organization', help='Organization name')
@click.option('--org-code', default='DEFAULT', help='Organization code')
@click.option('--vat-rate-bps', type=int, default=0, show_default=True, help='VAT rate in basis points (0 disables VAT)')
@with_appcontext
def init_system(org_name, org_code, vat_rate_bps):
    """
    Initialize a usable tenant.

    Creates (each only if missing):
    - Default organization
    - Main branch with its safe
    - Main store in that branch
    - Main bank account
    - Open fiscal year covering the current calendar year
    """
    click.echo("START Initializing system...")

    org = db.session.query(Organization).filter_by(code=org_code).first()
    if not org:
        org = Organization(
            name=org_name,
            code=org_code,
            is_active=True,
            is_vat_enabled=vat_rate_bps > 0,
            vat_rate_bps=vat_rate_bps,
        )
        db.session.add(org)
        db.session.commit()
        click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")
    else:
        click.echo(f"PASS Using existing organization: {org.name} (ID: {org.id})")

    branch = db.session.query(Branch).filter_by(org_id=org.id).first()
    if not branch:
        branch = Branch(org_id=org.id, name="Main Branch", code="MAIN")
        db.session.add(branch)
        db.session.flush()
        db.session.add(Safe(org_id=org.id, branch_id=branch.id, name="Main Safe", current_balance_cents=0))
        db.session.commit()
        click.echo(f"PASS Created branch and safe: {branch.name} (ID: {branch.id})")
    else:
        click.echo(f"PASS Using existing branch: {branch.name} (ID: {branch.id})")

    store = db.session.query(Store).filter_by(org_id=org.id).first()
    if not store:
        store = Store(org_id=org.id, branch_id=branch.id, name="Main Store", code="MAIN")
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    bank = db.session.query(Bank).filter_by(org_id=org.id).first()
    if not bank:
        bank = Bank(org_id=org.id, name="Main Bank", current_balance_cents=0)
        db.session.add(bank)
        db.session.commit()
        click.echo(f"PASS Created bank: {bank.name} (ID: {bank.id})")

    current = today()
    if fiscal_service.get_period_for_date(org.id, current) is None:
        fiscal_year = fiscal_service.create_fiscal_year(
            org.id,
            f"FY{current.year}",
            date(current.year, 1, 1),
            date(current.year, 12, 31),
        )
        click.echo(f"PASS Opened fiscal year: {fiscal_year.name} (ID: {fiscal_year.id})")
    else:
        click.echo("PASS Fiscal period for today already exists")

    click.echo("DONE System initialized.")


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


# =============================================================================
# ORGANIZATION COMMANDS
# =============================================================================

@click.group('orgs')
def orgs_group():
    """Organization (tenant) management commands."""


@orgs_group.command('list')
@with_appcontext
def list_orgs():
    """List all organizations."""
    orgs = db.session.query(Organization).all()

    if not orgs:
        click.echo("No organizations found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'Code':<15} {'Active':<8} {'VAT bps':<8} {'Stores'}")
    click.echo("="*80)

    for org in orgs:
        store_count = db.session.query(Store).filter_by(org_id=org.id).count()
        active_str = "Yes" if org.is_active else "No"
        vat = org.vat_rate_bps if org.is_vat_enabled else 0

        click.echo(f"{org.id:<5} {org.name:<30} {org.code or '-':<15} {active_str:<8} {vat:<8} {store_count}")

    click.echo("="*80 + "\n")


@orgs_group.command('create')
@click.option('--name', required=True, help='Organization name')
@click.option('--code', required=True, help='Short code (unique)')
@click.option('--vat-rate-bps', type=int, default=0, show_default=True, help='VAT rate in basis points (0 disables VAT)')
@with_appcontext
def create_org_cli(name, code, vat_rate_bps):
    """Create a new organization (tenant)."""
    existing = db.session.query(Organization).filter_by(code=code).first()
    if existing:
        click.echo(f"FAIL Organization with code '{code}' already exists")
        return

    org = Organization(
        name=name,
        code=code,
        is_active=True,
        is_vat_enabled=vat_rate_bps > 0,
        vat_rate_bps=vat_rate_bps,
    )
    db.session.add(org)
    db.session.commit()

    click.echo(f"PASS Created organization: {org.name} (ID: {org.id}, Code: {org.code})")


# =============================================================================
# FISCAL YEAR COMMANDS
# =============================================================================

@click.group('fiscal-years')
def fiscal_years_group():
    """Fiscal period commands."""


@fiscal_years_group.command('list')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@with_appcontext
def list_fiscal_years_cli(org_id):
    """List fiscal years, newest first."""
    years = fiscal_service.list_fiscal_years(org_id)
    if not years:
        click.echo("No fiscal years found.")
        return

    for fy in years:
        click.echo(f"{fy.id:<5} {fy.name:<20} {fy.start_date.isoformat()} .. {fy.end_date.isoformat()}  {fy.status}")


@fiscal_years_group.command('create')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--name', required=True, help='Fiscal year name')
@click.option('--start', 'start_date', required=True, help='Start date (YYYY-MM-DD)')
@click.option('--end', 'end_date', required=True, help='End date (YYYY-MM-DD)')
@with_appcontext
def create_fiscal_year_cli(org_id, name, start_date, end_date):
    """Open a new fiscal year."""
    try:
        fy = fiscal_service.create_fiscal_year(org_id, name, start_date, end_date)
    except PostingError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Created fiscal year: {fy.name} (ID: {fy.id})")


@fiscal_years_group.command('close')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--id', 'fiscal_year_id', type=int, required=True, help='Fiscal year ID')
@with_appcontext
def close_fiscal_year_cli(org_id, fiscal_year_id):
    """Close a fiscal year; its dates become read-only for postings."""
    try:
        fy = fiscal_service.close_fiscal_year(org_id, fiscal_year_id)
    except PostingError as e:
        click.echo(f"FAIL {e.message}")
        return
    click.echo(f"PASS Closed fiscal year: {fy.name} (ID: {fy.id})")


# =============================================================================
# STOCK COMMANDS
# =============================================================================

@click.group('stock')
def stock_group():
    """Stock seeding commands."""


@stock_group.command('receive')
@click.option('--org-id', type=int, required=True, help='Organization ID')
@click.option('--item-id', type=int, required=True, help='Item ID')
@click.option('--quantity', type=int, required=True, help='Quantity to put on hand')
@click.option('--store-id', type=int, help='Store ID (omit for store-less stock)')
@click.option('--opening', is_flag=True, help='Record as an opening balance')
@with_appcontext
def receive_stock_cli(org_id, item_id, quantity, store_id, opening):
    """Receive stock outside of any document."""
    try:
        stock_ledger_service.receive_stock(
            org_id=org_id,
            store_id=store_id,
            item_id=item_id,
            quantity=quantity,
            movement_type="OPENING" if opening else "RECEIPT",
        )
    except PostingError as e:
        click.echo(f"FAIL {e.message}")
        return
    on_hand = stock_ledger_service.balance(store_id, item_id, org_id=org_id)
    click.echo(f"PASS Item {item_id} on hand: {on_hand}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orgs_group)  # Multi-tenant organization management
    app.cli.add_command(fiscal_years_group)
    app.cli.add_command(stock_group)

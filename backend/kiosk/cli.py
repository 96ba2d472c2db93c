# Overview: Flask CLI command groups for database bootstrap and balance administration.

# backend/kiosk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# Database bootstrap:
# - python -m flask kiosk init-db
#   Create all tables that do not exist yet (idempotent).
# - python -m flask kiosk reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask kiosk seed
#   Add a demo category, products and customer to an empty database.
#
# Balances:
# - python -m flask balances show
#   List customers with outstanding and pending-invoice balances.
# - python -m flask balances invoice <customer_id> [--no-notify]
#   Mark the customer's unpaid transactions as invoiced and send the invoice.
# - python -m flask balances mark-paid <customer_id> [--no-notify]
#   Settle the customer's pending invoice.
# - python -m flask balances mark-all-paid --yes
#   Settle every pending invoice of every customer.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .formatting import format_currency
from .models import Category, Customer, Product, ProductVariant
from .services import balance_service
from .services.balance_service import BalanceError, BalanceSummary


def _money(amount: float) -> str:
    return format_currency(amount, current_app.config.get("CURRENCY", "USD"))


@click.group('kiosk')
def kiosk_group():
    """Database bootstrap commands."""


@kiosk_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("PASS Database tables created.")


@kiosk_group.command('reset-db')
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

    click.echo("PASS Database reset complete. Run 'python -m flask kiosk seed' for demo data.")


@kiosk_group.command('seed')
@with_appcontext
def seed():
    """Demo catalog for a fresh install. Skipped when products already exist."""
    if db.session.query(Product).count():
        click.echo("WARN  Products already exist, skipping seed.")
        return

    drinks = Category(title="Drinks", icon="cup-soda")
    snacks = Category(title="Snacks", icon="cookie")
    db.session.add_all([drinks, snacks])
    db.session.flush()

    coffee = Product(name="Coffee", price=15.0, stock=0, purchase_price=0.0, category_id=drinks.id)
    coffee.variants.extend([
        ProductVariant(name="Small", price=15.0, stock=40, purchase_price=8.0),
        ProductVariant(name="Large", price=25.0, stock=30, purchase_price=14.0),
    ])
    db.session.add_all([
        coffee,
        Product(name="Sparkling water", price=12.0, stock=24, purchase_price=7.5, category_id=drinks.id),
        Product(name="Chocolate bar", price=18.0, stock=50, purchase_price=10.0, category_id=snacks.id),
    ])
    db.session.add(Customer(name="Demo Customer", email=None, role="USER"))
    db.session.commit()

    click.echo("PASS Seeded 2 categories, 3 products and 1 customer.")


@click.group('balances')
def balances_group():
    """Customer balance inspection and invoicing."""


@balances_group.command('show')
@click.option('--all', 'show_all', is_flag=True, help='Include customers without a balance')
@with_appcontext
def show_balances(show_all):
    customers = db.session.query(Customer).order_by(Customer.name.asc()).all()
    balances = balance_service.customer_balances()

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<34} {'Name':<24} {'Outstanding':>10} {'Invoiced':>10}")
    click.echo("="*80)

    for customer in customers:
        summary = balances.get(customer.id, BalanceSummary())
        if not show_all and not (summary.outstanding or summary.pending_invoice):
            continue
        click.echo(
            f"{customer.id:<34} {customer.name[:24]:<24} "
            f"{_money(summary.outstanding):>10} {_money(summary.pending_invoice):>10}"
        )

    click.echo("="*80 + "\n")


@balances_group.command('invoice')
@click.argument('customer_id')
@click.option('--no-notify', is_flag=True, help='Only mark transactions, send nothing')
@with_appcontext
def invoice_customer(customer_id, no_notify):
    try:
        if no_notify:
            change, notified = balance_service.mark_invoice_sent(customer_id), False
        else:
            change, notified = balance_service.send_invoice(customer_id)
    except BalanceError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Invoiced {change.transactions_affected} transactions, "
        f"amount {_money(change.amount)} (notified: {'yes' if notified else 'no'})"
    )


@balances_group.command('mark-paid')
@click.argument('customer_id')
@click.option('--no-notify', is_flag=True, help='Only mark transactions, send nothing')
@with_appcontext
def mark_paid(customer_id, no_notify):
    try:
        if no_notify:
            change, notified = balance_service.mark_customer_paid(customer_id), False
        else:
            change, notified = balance_service.settle_customer(customer_id)
    except BalanceError as e:
        raise click.ClickException(str(e))

    click.echo(
        f"PASS Settled {change.transactions_affected} transactions, "
        f"amount {_money(change.amount)} (notified: {'yes' if notified else 'no'})"
    )


@balances_group.command('mark-all-paid')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def mark_all_paid(yes):
    if not yes:
        click.confirm("WARN Mark EVERY pending invoice as paid?", abort=True)

    change = balance_service.mark_all_paid()
    click.echo(f"PASS Settled {change.transactions_affected} transactions, amount {_money(change.amount)}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(kiosk_group)
    app.cli.add_command(balances_group)

# Overview: Flask CLI command group for ledger bootstrap, inspection and reversals.

# backend/stockledger/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to "stockledger:create_app".
# - Use: python -m flask ledger <command> [options]
#
# - python -m flask ledger init-db
#   Create any missing tables (use `flask db upgrade` for managed schemas).
# - python -m flask ledger seed
#   Idempotent: default chart of accounts and posting rules.
# - python -m flask ledger accounts [--active-only]
#   Accounts with effective balances (synthetic accounts rolled up).
# - python -m flask ledger rules [--active-only]
#   Posting rules by transaction type.
# - python -m flask ledger verify
#   Stored balances vs. posting log replay, and per-entry debit/credit check.
# - python -m flask ledger reverse JE-20260101-000001 --reason "Wrong product" --by ops
#   Post a reversal of a journal entry.

import click
from flask.cli import with_appcontext

from .extensions import db
from .services import chart_service, posting_service, rule_service, seed_service
from .services.exceptions import LedgerError


@click.group('ledger')
def ledger_group():
    """Ledger bootstrap, inspection and correction commands."""


@ledger_group.command('init-db')
@with_appcontext
def init_db():
    """Create missing tables without touching existing data."""
    db.create_all()
    click.echo("PASS Tables created")


@ledger_group.command('seed')
@with_appcontext
def seed():
    """Create the default chart of accounts and posting rules."""
    try:
        accounts, rules = seed_service.seed_defaults()
    except LedgerError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"PASS Created {accounts} accounts, {rules} rules")


@ledger_group.command('accounts')
@click.option('--active-only', is_flag=True, help='Hide inactive accounts')
@with_appcontext
def list_accounts(active_only):
    """List accounts with their effective balances."""
    accounts = chart_service.list_accounts(active_only=active_only)
    if not accounts:
        click.echo("No accounts found. Run `flask ledger seed` first.")
        return

    for account in accounts:
        try:
            balance = chart_service.resolve_balance(account.id)
        except LedgerError as e:
            raise click.ClickException(str(e)) from e
        kind = "A" if account.is_analytic else "S"
        status = "" if account.is_active else " (inactive)"
        click.echo(f"{account.code:<14} {kind} {account.account_type:<9} {balance:>16} {account.name}{status}")


@ledger_group.command('rules')
@click.option('--active-only', is_flag=True, help='Hide inactive rules')
@with_appcontext
def list_rules(active_only):
    """List posting rules."""
    rules = rule_service.list_rules(active_only=active_only)
    if not rules:
        click.echo("No rules found.")
        return

    for rule in rules:
        condition = f" when {rule.condition}" if rule.condition else ""
        status = "" if rule.is_active else " (inactive)"
        click.echo(
            f"{rule.transaction_type:<20} {rule.rule_code:<22} "
            f"D {rule.debit_account_code} / C {rule.credit_account_code}{condition}{status}"
        )


@ledger_group.command('verify')
@click.option('--page-size', default=500, show_default=True, help='Entries checked per batch')
@with_appcontext
def verify(page_size):
    """Check stored balances against the posting log and every entry for balance."""
    problems = 0

    for account in chart_service.list_accounts():
        if not account.is_analytic:
            continue
        replayed = chart_service.replay_balance(account.id)
        if replayed != account.balance:
            problems += 1
            click.echo(f"FAIL {account.code}: stored {account.balance} != replayed {replayed}")

    checked = 0
    offset = 0
    while True:
        entries = posting_service.list_journal_entries(limit=page_size, offset=offset)
        if not entries:
            break
        for entry in entries:
            checked += 1
            if not posting_service.is_balanced(entry.id):
                problems += 1
                click.echo(f"FAIL {entry.entry_number}: debits != credits")
        offset += len(entries)

    if problems:
        raise click.ClickException(f"{problems} problem(s) found")
    click.echo(f"PASS Balances match the posting log; {checked} entries balanced")


@ledger_group.command('reverse')
@click.argument('entry_number')
@click.option('--reason', required=True, help='Why the entry is being reversed')
@click.option('--by', 'created_by', required=True, help='Operator identifier')
@with_appcontext
def reverse(entry_number, reason, created_by):
    """Post a reversal of ENTRY_NUMBER."""
    try:
        original = posting_service.get_by_entry_number(entry_number)
        reversal = posting_service.reverse_journal_entry(original.id, reason, created_by)
    except LedgerError as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"PASS Reversed {entry_number} with {reversal.entry_number}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(ledger_group)

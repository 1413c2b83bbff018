# Overview: Chart of Accounts registry; hierarchy lookups, balance rollup and the only balance mutator.

from __future__ import annotations

import re
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Account, AccountPosting, JournalEntry
from ..models.accounts import ACCOUNT_TYPES
from ..models.journal import DEBIT, ENTRY_TYPES
from ..money import ZERO, to_money
from .exceptions import (
    AccountStateError,
    CyclicHierarchyError,
    NotFoundError,
    ValidationError,
)

"""
Chart of Accounts invariants (authoritative)

- Codes are dot-segmented digits ("1.1.03.001") and unique.
- Only analytic, active accounts accept postings (ensure_postable).
- A synthetic account's balance is never stored; it is the sum of its
  descendants' balances, computed on demand with a depth guard.
- apply_delta() is the only code that changes Account.balance. It runs inside
  the posting transaction and appends an AccountPosting row for every delta.
"""

ACCOUNT_CODE_RE = re.compile(r"^\d+(\.\d+)*$")


def lookup_by_code(code: str) -> Account:
    account = db.session.query(Account).filter_by(code=(code or "").strip()).first()
    if account is None:
        raise NotFoundError(f"Account {code!r} not found")
    return account


def get_account(account_id: int) -> Account:
    account = db.session.get(Account, account_id)
    if account is None:
        raise NotFoundError(f"Account id={account_id} not found")
    return account


def list_children(account_id: int) -> list[Account]:
    return (
        db.session.query(Account)
        .filter(Account.parent_id == account_id)
        .order_by(Account.code)
        .all()
    )


def list_accounts(*, active_only: bool = False) -> list[Account]:
    q = db.session.query(Account)
    if active_only:
        q = q.filter(Account.is_active.is_(True))
    return q.order_by(Account.code).all()


def ensure_postable(account: Account) -> Account:
    """Single capability check: can this account receive a new posting?"""
    if not account.is_analytic:
        raise AccountStateError(f"Account {account.code} is synthetic and cannot receive postings")
    if not account.is_active:
        raise AccountStateError(f"Account {account.code} is inactive")
    return account


def resolve_balance(account_id: int) -> Decimal:
    """
    Effective balance of an account.

    Analytic -> stored balance. Synthetic -> sum over descendants, children
    fetched by parent_id. Exceeding LEDGER_MAX_HIERARCHY_DEPTH or meeting an
    account twice on the same path raises CyclicHierarchyError.
    """
    max_depth = int(current_app.config.get("LEDGER_MAX_HIERARCHY_DEPTH", 16))
    account = get_account(account_id)
    return _rollup(account, depth=0, max_depth=max_depth, path=set())


def _rollup(account: Account, *, depth: int, max_depth: int, path: set[int]) -> Decimal:
    if account.is_analytic:
        return account.balance

    if depth >= max_depth:
        raise CyclicHierarchyError(
            f"Account hierarchy under {account.code} exceeds depth {max_depth}"
        )
    if account.id in path:
        raise CyclicHierarchyError(f"Account {account.code} appears in its own parent chain")

    path = path | {account.id}
    total = ZERO
    for child in list_children(account.id):
        total += _rollup(child, depth=depth + 1, max_depth=max_depth, path=path)
    return total


def signed_delta(account: Account, entry_type: str, amount: Decimal) -> Decimal:
    """
    Sign convention:
    - ASSET/EXPENSE: debit increases, credit decreases
    - LIABILITY/EQUITY/REVENUE: credit increases, debit decreases
    """
    increases = (entry_type == DEBIT) == account.is_debit_normal
    return amount if increases else -amount


def apply_delta(
    account_id: int,
    entry_type: str,
    amount,
    *,
    journal_entry_id: int,
    accounting_entry_id: int,
) -> AccountPosting:
    """
    Apply one leg to an analytic account's balance and log it.

    Must run under the posting transaction: nothing is committed here, and the
    version_id bump on Account makes a concurrent writer fail at flush.
    """
    if entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Invalid entry_type {entry_type!r}")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError("Posting amount must be > 0")

    account = ensure_postable(get_account(account_id))

    delta = signed_delta(account, entry_type, amount)
    account.balance = account.balance + delta

    posting = AccountPosting(
        account_id=account.id,
        journal_entry_id=journal_entry_id,
        accounting_entry_id=accounting_entry_id,
        entry_type=entry_type,
        amount=amount,
        balance_delta=delta,
        balance_after=account.balance,
    )
    db.session.add(posting)
    return posting


def replay_balance(account_id: int) -> Decimal:
    """Rebuild an analytic balance from the posting log alone."""
    deltas = (
        db.session.query(AccountPosting.balance_delta)
        .filter(AccountPosting.account_id == account_id)
        .all()
    )
    return sum((row.balance_delta for row in deltas), ZERO)


def list_postings(account_id: int, start=None, end=None) -> list[AccountPosting]:
    """Posting log rows for one account, filtered on the entry date (inclusive)."""
    get_account(account_id)
    q = (
        db.session.query(AccountPosting)
        .join(JournalEntry, JournalEntry.id == AccountPosting.journal_entry_id)
        .filter(AccountPosting.account_id == account_id)
    )
    if start is not None:
        q = q.filter(JournalEntry.entry_date >= start)
    if end is not None:
        q = q.filter(JournalEntry.entry_date <= end)
    return q.order_by(AccountPosting.id).all()


def create_account(
    *,
    code: str,
    name: str,
    account_type: str,
    parent_code: str | None = None,
    is_analytic: bool = True,
    is_active: bool = True,
    description: str | None = None,
) -> Account:
    """Administrative helper; flushes but does not commit."""
    code = (code or "").strip()
    name = (name or "").strip()
    account_type = (account_type or "").strip().upper()

    if not ACCOUNT_CODE_RE.match(code):
        raise ValidationError(f"Invalid account code {code!r}")
    if not name:
        raise ValidationError("Account name is required")
    if account_type not in ACCOUNT_TYPES:
        raise ValidationError(f"Invalid account type {account_type!r}")
    if db.session.query(Account.id).filter_by(code=code).first() is not None:
        raise ValidationError(f"Account code {code} already exists")

    parent_id = None
    if parent_code:
        parent = lookup_by_code(parent_code)
        if parent.is_analytic:
            raise ValidationError(f"Parent account {parent.code} is analytic; only synthetic accounts have children")
        parent_id = parent.id

    account = Account(
        code=code,
        name=name,
        description=description,
        account_type=account_type,
        parent_id=parent_id,
        is_analytic=is_analytic,
        is_active=is_active,
        balance=ZERO,
    )
    db.session.add(account)
    db.session.flush()
    return account

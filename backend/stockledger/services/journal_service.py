# Overview: Journal entry composition; builds balanced drafts without writing to the database.

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from ..models.journal import CREDIT, DEBIT, ENTRY_TYPES
from ..money import ZERO, to_money
from ..time_utils import normalize_datetime
from .exceptions import ImbalanceError, ValidationError
from .rule_service import resolve_rule

"""
COMPOSER RULES

- Pure construction: resolves the rule (read-only) and returns a frozen draft.
- Every leg amount is an exact Decimal > 0; direction lives in entry_type.
- A draft is only returned when sum(debits) == sum(credits).
- Each draft carries a fresh draft_key; posting the same draft twice is
  detected by that key.
"""


@dataclass(frozen=True)
class EntryLinks:
    order_id: str | None = None
    product_id: str | None = None
    inventory_transaction_id: int | None = None
    reversal_of_id: int | None = None


@dataclass(frozen=True)
class DraftLeg:
    account_code: str
    entry_type: str
    amount: Decimal
    description: str | None = None
    cost_center: str | None = None


@dataclass(frozen=True)
class DraftJournalEntry:
    entry_date: datetime
    document_type: str
    document_number: str | None
    history: str
    created_by: str
    legs: tuple[DraftLeg, ...]
    links: EntryLinks = field(default_factory=EntryLinks)
    draft_key: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def total_debits(self) -> Decimal:
        return sum((leg.amount for leg in self.legs if leg.entry_type == DEBIT), ZERO)

    @property
    def total_credits(self) -> Decimal:
        return sum((leg.amount for leg in self.legs if leg.entry_type == CREDIT), ZERO)

    @property
    def total_amount(self) -> Decimal:
        return self.total_debits


def check_balanced(legs) -> Decimal:
    """Exact debit/credit check; returns the entry total."""
    debits = sum((leg.amount for leg in legs if leg.entry_type == DEBIT), ZERO)
    credits = sum((leg.amount for leg in legs if leg.entry_type == CREDIT), ZERO)
    if debits != credits:
        raise ImbalanceError(debits, credits)
    return debits


def normalize_leg(leg: DraftLeg) -> DraftLeg:
    """Validate one leg; returns a copy with a trimmed code and exact amount."""
    code = (leg.account_code or "").strip()
    if not code:
        raise ValidationError("Leg account_code is required")
    if leg.entry_type not in ENTRY_TYPES:
        raise ValidationError(f"Invalid entry_type {leg.entry_type!r}")
    amount = to_money(leg.amount)
    if amount <= 0:
        raise ValidationError(f"Leg amount must be > 0, got {amount}")
    return DraftLeg(
        account_code=code,
        entry_type=leg.entry_type,
        amount=amount,
        description=leg.description,
        cost_center=leg.cost_center,
    )


def require_both_sides(legs) -> None:
    if not any(leg.entry_type == DEBIT for leg in legs):
        raise ValidationError("Journal entry needs at least one debit leg")
    if not any(leg.entry_type == CREDIT for leg in legs):
        raise ValidationError("Journal entry needs at least one credit leg")


def compose_from_legs(
    legs,
    *,
    document_type: str,
    history: str,
    created_by: str,
    entry_date=None,
    document_number: str | None = None,
    links: EntryLinks | None = None,
) -> DraftJournalEntry:
    """General n-leg composition. Fails unless the legs balance exactly."""
    normalized = tuple(normalize_leg(leg) for leg in legs)
    require_both_sides(normalized)
    check_balanced(normalized)

    document_type = (document_type or "").strip()
    history = (history or "").strip()
    created_by = str(created_by or "").strip()
    if not document_type:
        raise ValidationError("document_type is required")
    if not history:
        raise ValidationError("history is required")
    if not created_by:
        raise ValidationError("created_by is required")

    try:
        entry_dt = normalize_datetime(entry_date)
    except ValueError as exc:
        raise ValidationError("invalid entry_date") from exc

    return DraftJournalEntry(
        entry_date=entry_dt,
        document_type=document_type,
        document_number=document_number,
        history=history,
        created_by=created_by,
        legs=normalized,
        links=links or EntryLinks(),
    )


def compose_journal_entry(
    *,
    transaction_type: str,
    amount,
    history: str,
    created_by: str,
    entry_date=None,
    document_type: str | None = None,
    document_number: str | None = None,
    links: EntryLinks | None = None,
    context: dict | None = None,
    debit_description: str | None = None,
    credit_description: str | None = None,
    cost_center: str | None = None,
) -> DraftJournalEntry:
    """
    Two-leg entry for a business event.

    The rule resolved for (transaction_type, context) picks the accounts; both
    legs carry the same amount. document_type defaults to the rule code.
    """
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationError(f"amount must be > 0, got {amount}")

    ctx = {"amount": amount}
    ctx.update(context or {})
    rule = resolve_rule(transaction_type, ctx)

    legs = (
        DraftLeg(
            account_code=rule.debit_code,
            entry_type=DEBIT,
            amount=amount,
            description=debit_description,
            cost_center=cost_center,
        ),
        DraftLeg(
            account_code=rule.credit_code,
            entry_type=CREDIT,
            amount=amount,
            description=credit_description,
            cost_center=cost_center,
        ),
    )

    return compose_from_legs(
        legs,
        document_type=document_type or rule.rule_code,
        history=history,
        created_by=created_by,
        entry_date=entry_date,
        document_number=document_number,
        links=links,
    )

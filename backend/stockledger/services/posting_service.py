# Overview: Ledger posting engine; validates drafts and commits entries, legs and balance deltas atomically.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Account, AccountingEntry, JournalEntry
from ..models.journal import CREDIT, DEBIT, REVERSAL_DOCUMENT_TYPE
from ..time_utils import utcnow
from . import chart_service
from .concurrency import CONFLICT_ERRORS, is_conflict_error, lock_for_update, run_with_retry
from .document_service import next_document_number
from .exceptions import (
    AlreadyPostedError,
    ConcurrencyConflictError,
    NotFoundError,
    ValidationError,
)
from .journal_service import (
    DraftJournalEntry,
    DraftLeg,
    EntryLinks,
    check_balanced,
    compose_from_legs,
    normalize_leg,
    require_both_sides,
)

"""
Posting invariants (authoritative)

- One posting = one DB transaction: header insert, leg inserts, balance
  deltas (+ posting log), is_posted flip, commit. Any failure rolls all of
  it back; there is no partially posted entry.
- Accounts are locked in ascending id order, the same order for every poster,
  so two entries sharing accounts cannot deadlock each other.
- Version conflicts, lock timeouts and sequence races become
  ConcurrencyConflictError. The boundary retries the whole unit from the
  draft LEDGER_POST_RETRY_ATTEMPTS times; nothing is written before commit,
  so retries are safe.
- A draft posts at most once (unique draft_key); an entry is reversed at
  most once (unique reversal_of_id).
"""

JOURNAL_SEQUENCE = "JOURNAL_ENTRY"
JOURNAL_PREFIX = "JE"

_FLIP = {DEBIT: CREDIT, CREDIT: DEBIT}


def _integrity_to_domain(exc: IntegrityError):
    message = str(exc.orig).lower()
    if "draft_key" in message:
        return AlreadyPostedError("Journal entry draft has already been posted")
    if "reversal_of_id" in message:
        return AlreadyPostedError("Journal entry has already been reversed")
    if "unique" in message or "duplicate" in message:
        return ConcurrencyConflictError("Concurrent writer allocated the same sequence row")
    return None


def posting_transaction(work, *, label: str = "posting"):
    """
    Run work() as one atomic, retryable posting unit and commit it.

    work() must do all of its writes through db.session and must not commit.
    """
    config = current_app.config

    def _op():
        try:
            result = work()
            db.session.commit()
            return result
        except IntegrityError as exc:
            db.session.rollback()
            domain_exc = _integrity_to_domain(exc)
            if domain_exc is None:
                raise
            raise domain_exc from exc
        except CONFLICT_ERRORS as exc:
            db.session.rollback()
            if not is_conflict_error(exc):
                raise
            raise ConcurrencyConflictError(f"{label} conflicted with a concurrent writer") from exc
        except BaseException:
            db.session.rollback()
            raise

    def _log_retry(attempt: int, exc: ConcurrencyConflictError):
        current_app.logger.warning(
            "%s: concurrency conflict, retrying (attempt %d): %s",
            label,
            attempt,
            exc.__cause__ or exc,
        )

    return run_with_retry(
        _op,
        attempts=config.get("LEDGER_POST_RETRY_ATTEMPTS", 3),
        backoff_base=config.get("LEDGER_POST_RETRY_BACKOFF", 0.05),
        max_backoff=config.get("LEDGER_POST_RETRY_MAX_BACKOFF", 1.0),
        on_retry=_log_retry,
    )


def _lock_accounts(codes: set[str]) -> dict[str, Account]:
    rows = db.session.query(Account.id, Account.code).filter(Account.code.in_(codes)).all()
    missing = codes - {row.code for row in rows}
    if missing:
        raise NotFoundError(f"Accounts not found: {', '.join(sorted(missing))}")

    ids = sorted(row.id for row in rows)
    accounts = (
        lock_for_update(db.session.query(Account).filter(Account.id.in_(ids)))
        .order_by(Account.id)
        .populate_existing()
        .all()
    )
    for account in accounts:
        chart_service.ensure_postable(account)
    return {account.code: account for account in accounts}


def post_within_transaction(draft: DraftJournalEntry) -> JournalEntry:
    """
    Post a draft inside the caller's posting_transaction(); does not commit.
    """
    if not isinstance(draft, DraftJournalEntry):
        raise ValidationError("post requires a DraftJournalEntry")

    if db.session.query(JournalEntry.id).filter_by(draft_key=draft.draft_key).first() is not None:
        raise AlreadyPostedError(f"Draft {draft.draft_key} has already been posted")

    # Drafts can be built by hand; the composer's checks are repeated here
    draft_legs = tuple(normalize_leg(leg) for leg in draft.legs)
    require_both_sides(draft_legs)
    total = check_balanced(draft_legs)

    accounts = _lock_accounts({leg.account_code for leg in draft_legs})

    links = draft.links
    entry = JournalEntry(
        entry_number=next_document_number(document_type=JOURNAL_SEQUENCE, prefix=JOURNAL_PREFIX),
        draft_key=draft.draft_key,
        entry_date=draft.entry_date,
        document_type=draft.document_type,
        document_number=draft.document_number,
        history=draft.history,
        total_amount=total,
        is_posted=False,
        order_id=links.order_id,
        product_id=links.product_id,
        inventory_transaction_id=links.inventory_transaction_id,
        reversal_of_id=links.reversal_of_id,
        created_by=draft.created_by,
    )
    db.session.add(entry)
    db.session.flush()

    legs = []
    for leg in draft_legs:
        row = AccountingEntry(
            journal_entry_id=entry.id,
            account_id=accounts[leg.account_code].id,
            entry_type=leg.entry_type,
            amount=leg.amount,
            description=leg.description,
            cost_center=leg.cost_center,
        )
        db.session.add(row)
        legs.append(row)
    db.session.flush()

    for row in sorted(legs, key=lambda r: (r.account_id, r.id)):
        chart_service.apply_delta(
            row.account_id,
            row.entry_type,
            row.amount,
            journal_entry_id=entry.id,
            accounting_entry_id=row.id,
        )

    entry.is_posted = True
    entry.posted_at = utcnow()
    db.session.flush()
    return entry


def post_journal_entry(draft: DraftJournalEntry) -> JournalEntry:
    """Validate and atomically post a draft journal entry."""
    label = f"post {getattr(draft, 'document_type', '?')}"
    entry = posting_transaction(lambda: post_within_transaction(draft), label=label)
    current_app.logger.info(
        "Posted journal entry %s (%s) total=%s",
        entry.entry_number,
        entry.document_type,
        entry.total_amount,
    )
    return entry


def reverse_journal_entry(entry_id: int, reason: str, created_by: str) -> JournalEntry:
    """
    Post a Reversal: same accounts and amounts, every leg flipped.

    The original entry is never touched; the reversal links back to it via
    reversal_of_id.
    """
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A reversal reason is required")

    def _work() -> JournalEntry:
        original = get_journal_entry(entry_id)
        if not original.is_posted:
            raise ValidationError(f"Journal entry {original.entry_number} is not posted")
        already = db.session.query(JournalEntry.id).filter_by(reversal_of_id=original.id).first()
        if already is not None:
            raise AlreadyPostedError(f"Journal entry {original.entry_number} has already been reversed")

        legs = get_legs(original.id)
        codes = dict(
            db.session.query(Account.id, Account.code)
            .filter(Account.id.in_({leg.account_id for leg in legs}))
            .all()
        )
        draft = compose_from_legs(
            [
                DraftLeg(
                    account_code=codes[leg.account_id],
                    entry_type=_FLIP[leg.entry_type],
                    amount=leg.amount,
                    description=f"Reversal - {leg.description}" if leg.description else "Reversal",
                    cost_center=leg.cost_center,
                )
                for leg in legs
            ],
            document_type=REVERSAL_DOCUMENT_TYPE,
            document_number=original.entry_number,
            history=f"Reversal of {original.entry_number}: {reason}",
            created_by=created_by,
            links=EntryLinks(
                order_id=original.order_id,
                product_id=original.product_id,
                inventory_transaction_id=original.inventory_transaction_id,
                reversal_of_id=original.id,
            ),
        )
        return post_within_transaction(draft)

    reversal = posting_transaction(_work, label=f"reverse entry {entry_id}")
    current_app.logger.info(
        "Reversed journal entry id=%s with %s: %s",
        entry_id,
        reversal.entry_number,
        reason,
    )
    return reversal


# =============================================================================
# Reads
# =============================================================================

def get_journal_entry(entry_id: int) -> JournalEntry:
    entry = db.session.get(JournalEntry, entry_id)
    if entry is None:
        raise NotFoundError(f"Journal entry id={entry_id} not found")
    return entry


def get_by_entry_number(entry_number: str) -> JournalEntry:
    entry = db.session.query(JournalEntry).filter_by(entry_number=(entry_number or "").strip()).first()
    if entry is None:
        raise NotFoundError(f"Journal entry {entry_number!r} not found")
    return entry


def get_legs(entry_id: int) -> list[AccountingEntry]:
    return (
        db.session.query(AccountingEntry)
        .filter(AccountingEntry.journal_entry_id == entry_id)
        .order_by(AccountingEntry.id)
        .all()
    )


def list_journal_entries(
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[JournalEntry]:
    """Posted entries ordered by entry_date (then id); start/end are inclusive."""
    limit = max(1, min(int(limit), 500))
    q = db.session.query(JournalEntry).filter(JournalEntry.is_posted.is_(True))
    if start is not None:
        q = q.filter(JournalEntry.entry_date >= start)
    if end is not None:
        q = q.filter(JournalEntry.entry_date <= end)
    return q.order_by(JournalEntry.entry_date, JournalEntry.id).offset(max(0, int(offset))).limit(limit).all()


def list_product_journal_entries(product_id: str) -> list[JournalEntry]:
    return (
        db.session.query(JournalEntry)
        .filter(
            JournalEntry.product_id == product_id,
            JournalEntry.is_posted.is_(True),
        )
        .order_by(JournalEntry.entry_date, JournalEntry.id)
        .all()
    )


def is_balanced(entry_id: int) -> bool:
    legs = get_legs(entry_id)
    debits = sum((leg.amount for leg in legs if leg.entry_type == DEBIT), 0)
    credits = sum((leg.amount for leg in legs if leg.entry_type == CREDIT), 0)
    return bool(legs) and debits == credits

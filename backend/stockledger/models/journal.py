from __future__ import annotations

from sqlalchemy import event, select

from ..extensions import db
from ..time_utils import to_utc_z
from ..services.exceptions import AlreadyPostedError
from .types import Money

DEBIT = "DEBIT"
CREDIT = "CREDIT"
ENTRY_TYPES = (DEBIT, CREDIT)

REVERSAL_DOCUMENT_TYPE = "Reversal"

"""
Journal invariants (authoritative)

- A JournalEntry row is inserted as a draft (is_posted=False) and flipped to
  posted once, inside the same transaction that inserts its legs and applies
  the balance deltas. Nobody outside that transaction ever sees the draft.
- Once posted, the header is immutable; legs and posting-log rows are
  insert-only from the start.
- Corrections are new Reversal entries (reversal_of_id), never edits.
"""


class JournalEntry(db.Model):
    __tablename__ = "journal_entries"
    __table_args__ = (
        db.UniqueConstraint("draft_key", name="uq_journal_entries_draft_key"),
        db.UniqueConstraint("reversal_of_id", name="uq_journal_entries_reversal_of_id"),
        db.CheckConstraint("total_amount > 0", name="ck_journal_entries_total_positive"),
        db.Index("ix_journal_entries_entry_date", "entry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entry_number = db.Column(db.String(32), nullable=False, unique=True)
    draft_key = db.Column(db.String(32), nullable=False)

    entry_date = db.Column(db.DateTime(timezone=True), nullable=False)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    document_number = db.Column(db.String(64), nullable=True)
    history = db.Column(db.Text, nullable=False)

    total_amount = db.Column(Money(2), nullable=False)

    is_posted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    posted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Links to upstream records (opaque external ids) and sibling entries
    order_id = db.Column(db.String(64), nullable=True, index=True)
    product_id = db.Column(db.String(64), nullable=True, index=True)
    inventory_transaction_id = db.Column(db.Integer, nullable=True, index=True)
    reversal_of_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True)

    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<JournalEntry {self.entry_number} {self.document_type} total={self.total_amount} posted={self.is_posted}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entry_number": self.entry_number,
            "entry_date": to_utc_z(self.entry_date),
            "document_type": self.document_type,
            "document_number": self.document_number,
            "history": self.history,
            "total_amount": str(self.total_amount),
            "is_posted": self.is_posted,
            "posted_at": to_utc_z(self.posted_at),
            "order_id": self.order_id,
            "product_id": self.product_id,
            "inventory_transaction_id": self.inventory_transaction_id,
            "reversal_of_id": self.reversal_of_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class AccountingEntry(db.Model):
    """
    One debit or credit leg. Amount is always positive; direction is entry_type.

    Owned by exactly one JournalEntry (journal_entry_id); account_id is a
    reference only.
    """
    __tablename__ = "accounting_entries"
    __table_args__ = (
        db.CheckConstraint("amount > 0", name="ck_accounting_entries_amount_positive"),
        db.CheckConstraint("entry_type IN ('DEBIT', 'CREDIT')", name="ck_accounting_entries_entry_type"),
        db.Index("ix_accounting_entries_journal_type", "journal_entry_id", "entry_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)

    entry_type = db.Column(db.String(6), nullable=False)
    amount = db.Column(Money(2), nullable=False)

    description = db.Column(db.String(255), nullable=True)
    cost_center = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<AccountingEntry {self.entry_type} {self.amount} account_id={self.account_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "account_id": self.account_id,
            "entry_type": self.entry_type,
            "amount": str(self.amount),
            "description": self.description,
            "cost_center": self.cost_center,
        }


class AccountPosting(db.Model):
    """
    Append-only posting log: one row per balance delta ever applied.

    Written in the same transaction as the Account.balance update, so
    SUM(balance_delta) for an account always equals its stored balance.
    """
    __tablename__ = "account_postings"
    __table_args__ = (
        db.Index("ix_account_postings_account_id_id", "account_id", "id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    accounting_entry_id = db.Column(db.Integer, db.ForeignKey("accounting_entries.id"), nullable=False)

    entry_type = db.Column(db.String(6), nullable=False)
    amount = db.Column(Money(2), nullable=False)
    balance_delta = db.Column(Money(2), nullable=False)
    balance_after = db.Column(Money(2), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<AccountPosting account_id={self.account_id} delta={self.balance_delta}>"


@event.listens_for(JournalEntry, "before_update")
def _guard_posted_entry_update(mapper, connection, target):
    table = JournalEntry.__table__
    was_posted = connection.execute(
        select(table.c.is_posted).where(table.c.id == target.id)
    ).scalar()
    if was_posted:
        raise AlreadyPostedError(f"Journal entry {target.entry_number} is posted and immutable")


@event.listens_for(JournalEntry, "before_delete")
def _guard_posted_entry_delete(mapper, connection, target):
    table = JournalEntry.__table__
    was_posted = connection.execute(
        select(table.c.is_posted).where(table.c.id == target.id)
    ).scalar()
    if was_posted:
        raise AlreadyPostedError(f"Journal entry {target.entry_number} is posted and cannot be deleted")


@event.listens_for(AccountingEntry, "before_update")
@event.listens_for(AccountingEntry, "before_delete")
@event.listens_for(AccountPosting, "before_update")
@event.listens_for(AccountPosting, "before_delete")
def _guard_insert_only(mapper, connection, target):
    raise AlreadyPostedError(f"{type(target).__name__} records are immutable once written")

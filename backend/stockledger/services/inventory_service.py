# Overview: Inventory movement recorder; stores each movement and posts its journal entry in one transaction.

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import InventoryTransaction
from ..money import round_cents, to_money
from ..time_utils import normalize_datetime, utcnow
from .document_service import next_document_number
from .exceptions import LedgerError, NotFoundError, ValidationError
from .journal_service import EntryLinks, compose_journal_entry
from .posting_service import post_within_transaction, posting_transaction
from .rule_service import normalize_type_name

"""
Inventory recorder invariants (authoritative)

- Inbound types need quantity > 0, outbound types quantity < 0; ADJUSTMENT
  takes either sign but never 0.
- total_cost = |quantity| x unit_cost, rounded half-up to cents.
- The rule is resolved and the draft composed before anything is written.
- The movement row, its number, the journal entry, legs and balance deltas
  commit together or not at all. No movement row exists without its posted
  entry, except for ledger-neutral types (LEDGER_NEUTRAL_TRANSACTION_TYPES),
  which never touch the ledger.
"""

INBOUND = "IN"
OUTBOUND = "OUT"
EITHER = "EITHER"


@dataclass(frozen=True)
class TransactionTypeInfo:
    prefix: str
    direction: str
    label: str


TRANSACTION_TYPES = {
    "PURCHASE": TransactionTypeInfo("PURCH", INBOUND, "Purchase of goods"),
    "SALE": TransactionTypeInfo("SALE", OUTBOUND, "Inventory withdrawal - Sale"),
    "SALE_RETURN": TransactionTypeInfo("SALERET", INBOUND, "Sales return"),
    "PURCHASE_RETURN": TransactionTypeInfo("PURRET", OUTBOUND, "Purchase return"),
    "ADJUSTMENT": TransactionTypeInfo("ADJ", EITHER, "Inventory adjustment"),
    "TRANSFER": TransactionTypeInfo("TRAN", EITHER, "Stock transfer"),
    "LOSS": TransactionTypeInfo("LOSS", OUTBOUND, "Inventory loss/shrinkage"),
    "RESERVATION": TransactionTypeInfo("RES", EITHER, "Stock reservation"),
    "RESERVATION_RELEASE": TransactionTypeInfo("REL", EITHER, "Reservation release"),
    "FULFILLMENT": TransactionTypeInfo("FULL", OUTBOUND, "Inventory withdrawal - Fulfillment"),
    "STOCK_ENTRY": TransactionTypeInfo("STOCK", INBOUND, "Stock entry"),
}


def normalize_transaction_type(value: str) -> str:
    """Accept "STOCK_ENTRY", "stock_entry" or "StockEntry"."""
    name = normalize_type_name(value)
    if not name:
        raise ValidationError("transaction_type is required")
    if name not in TRANSACTION_TYPES:
        raise ValidationError(f"Unknown transaction_type {value!r}")
    return name


def _validate_quantity(transaction_type: str, quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise ValidationError("quantity must be an integer")
    if quantity == 0:
        raise ValidationError("quantity must be non-zero")

    direction = TRANSACTION_TYPES[transaction_type].direction
    if direction == INBOUND and quantity < 0:
        raise ValidationError(f"{transaction_type} requires a positive quantity")
    if direction == OUTBOUND and quantity > 0:
        raise ValidationError(f"{transaction_type} requires a negative quantity")
    return quantity


def _required(value, field: str) -> str:
    text = str(value or "").strip()
    if not text:
        raise ValidationError(f"{field} is required")
    return text


def _optional(value) -> str | None:
    text = str(value or "").strip()
    return text or None


def is_ledger_neutral(transaction_type: str) -> bool:
    return transaction_type in current_app.config.get("LEDGER_NEUTRAL_TRANSACTION_TYPES", frozenset())


def record_transaction(
    *,
    transaction_type: str,
    product_id: str,
    product_sku: str,
    product_name: str,
    quantity: int,
    unit_cost,
    to_location: str,
    created_by: str,
    from_location: str | None = None,
    order_id: str | None = None,
    document_number: str | None = None,
    notes: str | None = None,
    transaction_date=None,
) -> InventoryTransaction:
    """
    Record one inventory movement and post its journal entry atomically.

    Raises ValidationError before any write on bad input, NoMatchingRuleError
    when no active rule covers the movement, and whatever the poster raises
    (account state, concurrency) after rolling everything back.
    """
    tx_type = normalize_transaction_type(transaction_type)
    info = TRANSACTION_TYPES[tx_type]

    quantity = _validate_quantity(tx_type, quantity)
    unit_cost = to_money(unit_cost, scale=4, field="unit_cost")
    if unit_cost < 0:
        raise ValidationError("unit_cost must be >= 0")

    product_id = _required(product_id, "product_id")
    product_sku = _required(product_sku, "product_sku")
    product_name = _required(product_name, "product_name")
    to_location = _required(to_location, "to_location")
    created_by = _required(created_by, "created_by")
    from_location = _optional(from_location)
    order_id = _optional(order_id)
    document_number = _optional(document_number)
    notes = _optional(notes)
    if notes is not None and len(notes) > 500:
        raise ValidationError("notes must be at most 500 characters")

    if tx_type == "TRANSFER":
        if from_location is None:
            raise ValidationError("TRANSFER requires from_location")
        if from_location == to_location:
            raise ValidationError("TRANSFER from_location and to_location must differ")

    try:
        occurred_at = normalize_datetime(transaction_date)
    except ValueError as exc:
        raise ValidationError("invalid transaction_date") from exc

    total_cost = round_cents(abs(quantity) * unit_cost)

    draft = None
    if not is_ledger_neutral(tx_type):
        cost_center = from_location if info.direction == OUTBOUND and from_location else to_location
        draft = compose_journal_entry(
            transaction_type=tx_type,
            amount=total_cost,
            history=f"{info.label} - {product_name} ({product_sku})",
            created_by=created_by,
            entry_date=occurred_at,
            document_number=document_number,
            links=EntryLinks(order_id=order_id, product_id=product_id),
            context={"quantity": quantity, "unit_cost": unit_cost},
            debit_description=f"{abs(quantity)} x {product_sku} @ {unit_cost}",
            credit_description=f"{info.label} - {product_sku}",
            cost_center=cost_center,
        )

    def _work() -> InventoryTransaction:
        tx = InventoryTransaction(
            transaction_number=next_document_number(
                document_type=f"INVENTORY_{tx_type}",
                prefix=info.prefix,
            ),
            transaction_date=occurred_at,
            transaction_type=tx_type,
            product_id=product_id,
            product_sku=product_sku,
            product_name=product_name,
            from_location=from_location,
            to_location=to_location,
            quantity=quantity,
            unit_cost=unit_cost,
            total_cost=total_cost,
            order_id=order_id,
            document_number=document_number,
            notes=notes,
            created_by=created_by,
        )
        db.session.add(tx)
        db.session.flush()

        if draft is not None:
            linked = dataclasses.replace(
                draft,
                document_number=draft.document_number or tx.transaction_number,
                links=dataclasses.replace(draft.links, inventory_transaction_id=tx.id),
            )
            entry = post_within_transaction(linked)
            tx.journal_entry_id = entry.id
            db.session.flush()
        return tx

    try:
        tx = posting_transaction(_work, label=f"record {tx_type}")
    except LedgerError as exc:
        current_app.logger.exception(
            "Inventory %s for product %s aborted: %s", tx_type, product_id, exc
        )
        raise

    current_app.logger.info(
        "Recorded %s %s qty=%s total=%s journal_entry_id=%s",
        tx.transaction_number,
        tx_type,
        quantity,
        total_cost,
        tx.journal_entry_id,
    )
    return tx


# =============================================================================
# Reads
# =============================================================================

def get_transaction(transaction_id: int) -> InventoryTransaction:
    tx = db.session.get(InventoryTransaction, transaction_id)
    if tx is None:
        raise NotFoundError(f"Inventory transaction id={transaction_id} not found")
    return tx


def list_product_transactions(product_id: str) -> list[InventoryTransaction]:
    """Newest first."""
    return (
        db.session.query(InventoryTransaction)
        .filter(InventoryTransaction.product_id == product_id)
        .order_by(InventoryTransaction.transaction_date.desc(), InventoryTransaction.id.desc())
        .all()
    )


def list_transactions_by_period(start: datetime, end: datetime | None = None) -> list[InventoryTransaction]:
    """Movements with start <= transaction_date <= end (end defaults to now), newest first."""
    try:
        start_dt = normalize_datetime(start)
        end_dt = normalize_datetime(end) if end is not None else utcnow()
    except ValueError as exc:
        raise ValidationError("invalid period bounds") from exc
    if start_dt > end_dt:
        raise ValidationError("period start must not be after its end")

    return (
        db.session.query(InventoryTransaction)
        .filter(
            InventoryTransaction.transaction_date >= start_dt,
            InventoryTransaction.transaction_date <= end_dt,
        )
        .order_by(InventoryTransaction.transaction_date.desc(), InventoryTransaction.id.desc())
        .all()
    )


def list_order_transactions(order_id: str) -> list[InventoryTransaction]:
    """Newest first."""
    return (
        db.session.query(InventoryTransaction)
        .filter(InventoryTransaction.order_id == order_id)
        .order_by(InventoryTransaction.transaction_date.desc(), InventoryTransaction.id.desc())
        .all()
    )


def get_by_journal_entry(journal_entry_id: int) -> InventoryTransaction:
    tx = (
        db.session.query(InventoryTransaction)
        .filter(InventoryTransaction.journal_entry_id == journal_entry_id)
        .one_or_none()
    )
    if tx is None:
        raise NotFoundError(f"No inventory transaction for journal entry {journal_entry_id}")
    return tx

"""
Inventory recorder tests.

Verifies:
- A movement and its journal entry commit together
- Any failure (no rule, bad account) leaves neither behind
- Direction, location and cost validation
- Ledger-neutral movement types never touch the ledger
- Lookups by product, order, period and journal entry
"""

import re
from datetime import datetime
from decimal import Decimal

import pytest

from stockledger.extensions import db
from stockledger.models import AccountingEntry, InventoryTransaction, JournalEntry
from stockledger.services import inventory_service, posting_service, rule_service
from stockledger.services.exceptions import AccountStateError, NoMatchingRuleError, NotFoundError, ValidationError


def _record(**overrides):
    kwargs = dict(
        transaction_type="STOCK_ENTRY",
        product_id="P-100",
        product_sku="WID-100",
        product_name="Widget",
        quantity=100,
        unit_cost=Decimal("25.99"),
        to_location="WH-MAIN",
        created_by="receiver",
    )
    kwargs.update(overrides)
    return inventory_service.record_transaction(**kwargs)


def _counts():
    return (
        db.session.query(InventoryTransaction).count(),
        db.session.query(JournalEntry).count(),
        db.session.query(AccountingEntry).count(),
    )


class TestRecordWithPosting:
    def test_stock_entry_posts_inventory_against_payables(self, seeded, account):
        tx = _record(order_id="PO-1", notes="Dock 3")

        assert tx.total_cost == Decimal("2599.00")
        assert tx.unit_cost == Decimal("25.9900")
        assert re.match(r"^STOCK-\d{8}-000001$", tx.transaction_number)
        assert tx.journal_entry_id is not None

        entry = posting_service.get_journal_entry(tx.journal_entry_id)
        assert entry.total_amount == Decimal("2599.00")
        assert entry.inventory_transaction_id == tx.id
        assert entry.product_id == "P-100"
        assert entry.order_id == "PO-1"
        assert entry.document_number == tx.transaction_number
        assert entry.document_type == "STOCK_ENTRY"
        assert posting_service.is_balanced(entry.id)

        assert account("1.1.03.001").balance == Decimal("2599.00")
        assert account("2.1.01.001").balance == Decimal("2599.00")

    def test_sale_relieves_inventory_into_cogs(self, seeded, account):
        _record()
        tx = _record(transaction_type="SALE", quantity=-10, from_location="WH-MAIN")

        assert tx.total_cost == Decimal("259.90")
        assert tx.transaction_number.startswith("SALE-")
        assert account("1.1.03.001").balance == Decimal("2339.10")
        assert account("3.1.01.001").balance == Decimal("259.90")

        legs = posting_service.get_legs(tx.journal_entry_id)
        assert {l.cost_center for l in legs} == {"WH-MAIN"}

    def test_adjustment_sign_picks_rule(self, seeded, account):
        _record(transaction_type="ADJUSTMENT", quantity=2, unit_cost="5.00")
        _record(transaction_type="ADJUSTMENT", quantity=-3, unit_cost="5.00")

        assert account("4.2.01.001").balance == Decimal("10.00")
        assert account("3.2.01.002").balance == Decimal("15.00")
        assert account("1.1.03.001").balance == Decimal("-5.00")

    def test_total_cost_rounds_half_up(self, seeded):
        assert _record(quantity=3, unit_cost="0.3333").total_cost == Decimal("1.00")
        assert _record(quantity=1, unit_cost="0.005").total_cost == Decimal("0.01")

    def test_document_number_is_kept(self, seeded):
        tx = _record(document_number="NF-123")
        entry = posting_service.get_journal_entry(tx.journal_entry_id)
        assert entry.document_number == "NF-123"

    @pytest.mark.parametrize("name", ["StockEntry", "stock_entry"])
    def test_type_spellings(self, seeded, name):
        assert _record(transaction_type=name).transaction_type == "STOCK_ENTRY"


class TestAtomicity:
    def test_no_rule_leaves_nothing(self, seeded):
        rule = next(r for r in rule_service.list_rules() if r.rule_code == "PURCHASE")
        rule.is_active = False
        db.session.commit()

        with pytest.raises(NoMatchingRuleError):
            _record(transaction_type="PURCHASE")
        assert _counts() == (0, 0, 0)

    def test_posting_failure_removes_inventory_row(self, seeded, account):
        inventory = account("1.1.03.001")
        inventory.is_active = False
        db.session.commit()

        with pytest.raises(AccountStateError):
            _record()
        assert _counts() == (0, 0, 0)

    def test_zero_cost_movement_cannot_post(self, seeded):
        with pytest.raises(ValidationError):
            _record(unit_cost="0")
        assert _counts() == (0, 0, 0)


class TestValidation:
    @pytest.mark.parametrize("tx_type,quantity", [
        ("STOCK_ENTRY", -1),
        ("PURCHASE", -5),
        ("SALE_RETURN", -1),
        ("SALE", 5),
        ("LOSS", 1),
        ("FULFILLMENT", 2),
        ("PURCHASE_RETURN", 1),
        ("ADJUSTMENT", 0),
    ])
    def test_direction(self, seeded, tx_type, quantity):
        with pytest.raises(ValidationError):
            _record(transaction_type=tx_type, quantity=quantity, from_location="WH-MAIN")

    @pytest.mark.parametrize("field,value", [
        ("to_location", ""),
        ("product_sku", None),
        ("product_name", "  "),
        ("created_by", ""),
        ("unit_cost", 25.99),
        ("unit_cost", "-1.00"),
        ("unit_cost", "0.00001"),
        ("quantity", 1.5),
        ("transaction_type", "TELEPORT"),
        ("notes", "x" * 501),
    ])
    def test_bad_input(self, seeded, field, value):
        with pytest.raises(ValidationError):
            _record(**{field: value})
        assert _counts() == (0, 0, 0)

    def test_transfer_requires_distinct_origin(self, seeded):
        with pytest.raises(ValidationError):
            _record(transaction_type="TRANSFER", quantity=5)
        with pytest.raises(ValidationError):
            _record(transaction_type="TRANSFER", quantity=5, from_location="WH-MAIN")


class TestLedgerNeutral:
    def test_transfer_is_recorded_without_entry(self, seeded, account):
        tx = _record(transaction_type="StockTransfer", quantity=5, from_location="WH-A", to_location="WH-B")

        assert tx.transaction_type == "TRANSFER"
        assert tx.transaction_number.startswith("TRAN-")
        assert tx.journal_entry_id is None
        assert _counts() == (1, 0, 0)
        assert account("1.1.03.001").balance == Decimal("0.00")

    def test_reservation_is_recorded_without_entry(self, seeded):
        tx = _record(transaction_type="RESERVATION", quantity=-2, order_id="SO-9")
        assert tx.transaction_number.startswith("RES-")
        assert tx.journal_entry_id is None

    def test_neutral_types_are_configurable(self, seeded, app, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_NEUTRAL_TRANSACTION_TYPES", frozenset())
        with pytest.raises(NoMatchingRuleError):
            _record(transaction_type="TRANSFER", quantity=5, from_location="WH-A")
        assert _counts() == (0, 0, 0)


class TestReads:
    def test_product_history_newest_first(self, seeded):
        older = _record(transaction_date=datetime(2026, 1, 5))
        newer = _record(transaction_type="SALE", quantity=-1, transaction_date=datetime(2026, 1, 6))
        _record(product_id="P-OTHER", transaction_date=datetime(2026, 1, 7))

        history = inventory_service.list_product_transactions("P-100")
        assert [t.id for t in history] == [newer.id, older.id]

    def test_period_is_inclusive(self, seeded):
        _record(transaction_date=datetime(2026, 1, 1))
        jan = _record(transaction_date=datetime(2026, 1, 31))
        _record(transaction_date=datetime(2026, 2, 1, 0, 0, 1))

        found = inventory_service.list_transactions_by_period(datetime(2026, 1, 2), datetime(2026, 2, 1))
        assert [t.id for t in found] == [jan.id]

        with pytest.raises(ValidationError):
            inventory_service.list_transactions_by_period(datetime(2026, 2, 1), datetime(2026, 1, 1))

    def test_get_transaction(self, seeded):
        tx = _record()
        assert inventory_service.get_transaction(tx.id).transaction_number == tx.transaction_number

    def test_order_history_newest_first(self, seeded):
        received = _record(order_id="PO-5", transaction_date=datetime(2026, 1, 5))
        returned = _record(
            transaction_type="PURCHASE_RETURN",
            quantity=-4,
            from_location="WH-MAIN",
            order_id="PO-5",
            transaction_date=datetime(2026, 1, 9),
        )
        _record(order_id="PO-6", transaction_date=datetime(2026, 1, 7))

        history = inventory_service.list_order_transactions("PO-5")
        assert [t.id for t in history] == [returned.id, received.id]
        assert inventory_service.list_order_transactions("PO-404") == []

    def test_lookup_by_journal_entry(self, seeded):
        tx = _record()
        assert inventory_service.get_by_journal_entry(tx.journal_entry_id).id == tx.id

        with pytest.raises(NotFoundError):
            inventory_service.get_by_journal_entry(9999)

from datetime import datetime
from decimal import Decimal

import pytest

from stockledger.extensions import db
from stockledger.models import JournalEntry
from stockledger.models.journal import CREDIT, DEBIT
from stockledger.services.exceptions import ImbalanceError, NoMatchingRuleError, ValidationError
from stockledger.services.journal_service import (
    DraftLeg,
    EntryLinks,
    compose_from_legs,
    compose_journal_entry,
)


def _compose(**overrides):
    kwargs = dict(
        transaction_type="PURCHASE",
        amount="150.00",
        history="Purchase of goods - Widget (W-1)",
        created_by="buyer",
        context={"quantity": 10},
    )
    kwargs.update(overrides)
    return compose_journal_entry(**kwargs)


class TestComposeJournalEntry:
    def test_two_balanced_legs_from_rule(self, seeded):
        draft = _compose(links=EntryLinks(order_id="ORD-1", product_id="P-1"))

        assert [(l.account_code, l.entry_type, l.amount) for l in draft.legs] == [
            ("1.1.03.001", DEBIT, Decimal("150.00")),
            ("2.1.01.001", CREDIT, Decimal("150.00")),
        ]
        assert draft.total_debits == draft.total_credits == draft.total_amount == Decimal("150.00")
        assert draft.document_type == "PURCHASE"
        assert draft.links.order_id == "ORD-1"

    def test_explicit_document_type_and_date(self, seeded):
        draft = _compose(document_type="Invoice", entry_date="2026-03-01T12:00:00Z", document_number="INV-9")
        assert draft.document_type == "Invoice"
        assert draft.document_number == "INV-9"
        assert draft.entry_date == datetime(2026, 3, 1, 12, 0, 0)

    def test_camel_case_type(self, seeded):
        draft = _compose(transaction_type="StockEntry")
        assert draft.document_type == "STOCK_ENTRY"
        assert [l.account_code for l in draft.legs] == ["1.1.03.001", "2.1.01.001"]

    def test_composition_writes_nothing(self, seeded):
        _compose()
        assert db.session.query(JournalEntry).count() == 0

    def test_each_draft_has_its_own_key(self, seeded):
        assert _compose().draft_key != _compose().draft_key

    @pytest.mark.parametrize("amount", ["0", "-5.00", 12.5, "1.001"])
    def test_invalid_amounts(self, seeded, amount):
        with pytest.raises(ValidationError):
            _compose(amount=amount)

    def test_blank_history_rejected(self, seeded):
        with pytest.raises(ValidationError):
            _compose(history="   ")

    def test_no_rule(self, seeded):
        with pytest.raises(NoMatchingRuleError):
            _compose(transaction_type="RESERVATION")


class TestComposeFromLegs:
    def test_multi_leg_balanced(self, seeded):
        draft = compose_from_legs(
            [
                DraftLeg("3.2.01.001", DEBIT, Decimal("60.00")),
                DraftLeg("3.2.01.002", DEBIT, Decimal("40.00")),
                DraftLeg("1.1.03.001", CREDIT, Decimal("100.00")),
            ],
            document_type="Manual",
            history="Write-off split",
            created_by="controller",
        )
        assert len(draft.legs) == 3
        assert draft.total_amount == Decimal("100.00")

    def test_imbalance_rejected(self, seeded):
        with pytest.raises(ImbalanceError) as exc_info:
            compose_from_legs(
                [
                    DraftLeg("1.1.03.001", DEBIT, Decimal("100.00")),
                    DraftLeg("2.1.01.001", CREDIT, Decimal("99.99")),
                ],
                document_type="Manual",
                history="Off by a cent",
                created_by="controller",
            )
        assert exc_info.value.debits == Decimal("100.00")
        assert exc_info.value.credits == Decimal("99.99")

    def test_needs_both_sides(self, seeded):
        with pytest.raises(ValidationError):
            compose_from_legs(
                [DraftLeg("1.1.03.001", DEBIT, Decimal("1.00"))],
                document_type="Manual",
                history="One-sided",
                created_by="controller",
            )

    def test_bad_entry_type(self, seeded):
        with pytest.raises(ValidationError):
            compose_from_legs(
                [
                    DraftLeg("1.1.03.001", "DR", Decimal("1.00")),
                    DraftLeg("2.1.01.001", CREDIT, Decimal("1.00")),
                ],
                document_type="Manual",
                history="Typo",
                created_by="controller",
            )

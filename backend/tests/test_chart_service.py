"""
Chart of Accounts tests.

Verifies:
- Account administration rules (code format, parent must be synthetic)
- Sign convention for debit-normal and credit-normal accounts
- Only analytic, active accounts accept postings
- Synthetic balances roll up from descendants; malformed chains are detected
"""

from datetime import datetime
from decimal import Decimal

import pytest

from stockledger.extensions import db
from stockledger.models import AccountPosting
from stockledger.models.journal import CREDIT, DEBIT
from stockledger.services import chart_service
from stockledger.services.exceptions import (
    AccountStateError,
    CyclicHierarchyError,
    NotFoundError,
    ValidationError,
)
from stockledger.services.journal_service import DraftLeg, compose_from_legs
from stockledger.services.posting_service import post_journal_entry


def _post(debit_code, credit_code, amount, entry_date=None):
    draft = compose_from_legs(
        [
            DraftLeg(account_code=debit_code, entry_type=DEBIT, amount=Decimal(amount)),
            DraftLeg(account_code=credit_code, entry_type=CREDIT, amount=Decimal(amount)),
        ],
        document_type="TEST",
        history="chart test",
        created_by="tester",
        entry_date=entry_date,
    )
    return post_journal_entry(draft)


class TestAccountAdministration:
    def test_lookup_unknown_code(self, seeded):
        with pytest.raises(NotFoundError):
            chart_service.lookup_by_code("9.9.99")

    @pytest.mark.parametrize("code", ["", "1.", "A.1", "1..2", "1 .1"])
    def test_rejects_malformed_codes(self, db_session, code):
        with pytest.raises(ValidationError):
            chart_service.create_account(code=code, name="Bad", account_type="ASSET")

    def test_rejects_unknown_type_and_duplicates(self, seeded):
        with pytest.raises(ValidationError):
            chart_service.create_account(code="5", name="Odd", account_type="MEMO")
        with pytest.raises(ValidationError):
            chart_service.create_account(code="1.1.03.001", name="Dup", account_type="ASSET")

    def test_parent_must_be_synthetic(self, seeded):
        with pytest.raises(ValidationError):
            chart_service.create_account(
                code="1.1.03.001.1",
                name="Under a leaf",
                account_type="ASSET",
                parent_code="1.1.03.001",
            )

    def test_children_listed_by_code(self, seeded):
        parent = chart_service.lookup_by_code("3.2.01")
        codes = [a.code for a in chart_service.list_children(parent.id)]
        assert codes == ["3.2.01.001", "3.2.01.002"]


class TestPostingTargets:
    def test_synthetic_account_rejects_postings(self, seeded):
        with pytest.raises(AccountStateError):
            _post("1.1.03", "2.1.01.001", "10.00")

    def test_inactive_account_rejects_postings(self, seeded, account):
        inventory = account("1.1.03.001")
        inventory.is_active = False
        db.session.commit()

        with pytest.raises(AccountStateError):
            _post("1.1.03.001", "2.1.01.001", "10.00")
        assert db.session.query(AccountPosting).count() == 0

    def test_ensure_postable_passes_leaf(self, seeded, account):
        leaf = account("1.1.01.001")
        assert chart_service.ensure_postable(leaf) is leaf
        assert leaf.accepts_postings


class TestBalances:
    def test_sign_convention(self, seeded, account):
        # Debit asset, credit liability: both increase
        _post("1.1.03.001", "2.1.01.001", "100.00")
        # Debit expense, credit asset: expense up, asset down
        _post("3.2.01.001", "1.1.03.001", "30.00")
        # Debit liability: decreases
        _post("2.1.01.001", "1.1.01.001", "40.00")

        assert account("1.1.03.001").balance == Decimal("70.00")
        assert account("2.1.01.001").balance == Decimal("60.00")
        assert account("3.2.01.001").balance == Decimal("30.00")
        assert account("1.1.01.001").balance == Decimal("-40.00")

    def test_balance_matches_posting_log(self, seeded, account):
        _post("1.1.03.001", "2.1.01.001", "19.99")
        _post("3.1.01.001", "1.1.03.001", "5.01")

        for code in ("1.1.03.001", "2.1.01.001", "3.1.01.001"):
            acct = account(code)
            assert chart_service.replay_balance(acct.id) == acct.balance

    def test_posting_log_records_running_balance(self, seeded, account):
        _post("1.1.03.001", "2.1.01.001", "10.00")
        _post("1.1.03.001", "2.1.01.001", "2.50")

        inventory = account("1.1.03.001")
        rows = (
            db.session.query(AccountPosting)
            .filter_by(account_id=inventory.id)
            .order_by(AccountPosting.id)
            .all()
        )
        assert [r.balance_after for r in rows] == [Decimal("10.00"), Decimal("12.50")]
        assert all(r.entry_type == DEBIT for r in rows)

    def test_list_postings_by_entry_date(self, seeded, account):
        _post("1.1.03.001", "2.1.01.001", "10.00", entry_date=datetime(2026, 3, 1, 8, 0))
        march_2 = _post("1.1.03.001", "2.1.01.001", "2.50", entry_date=datetime(2026, 3, 2, 8, 0))
        _post("3.1.01.001", "1.1.03.001", "4.00", entry_date=datetime(2026, 3, 3, 8, 0))

        inventory = account("1.1.03.001")
        rows = chart_service.list_postings(inventory.id)
        assert [r.balance_delta for r in rows] == [Decimal("10.00"), Decimal("2.50"), Decimal("-4.00")]

        window = chart_service.list_postings(
            inventory.id, start=datetime(2026, 3, 2), end=datetime(2026, 3, 2, 23, 59)
        )
        assert [r.journal_entry_id for r in window] == [march_2.id]
        assert chart_service.list_postings(account("2.1.01.001").id, start=datetime(2026, 3, 3)) == []

    def test_list_postings_unknown_account(self, seeded):
        with pytest.raises(NotFoundError):
            chart_service.list_postings(9999)

    def test_synthetic_rollup_sums_descendants(self, seeded, account):
        _post("3.2.01.001", "1.1.03.001", "12.00")
        _post("3.2.01.002", "1.1.03.001", "8.00")
        _post("3.1.01.001", "1.1.03.001", "5.00")

        assert chart_service.resolve_balance(account("3.2.01").id) == Decimal("20.00")
        assert chart_service.resolve_balance(account("3").id) == Decimal("25.00")
        assert chart_service.resolve_balance(account("1.1.03.001").id) == Decimal("-25.00")

    def test_cycle_in_parent_chain_is_detected(self, db_session):
        a = chart_service.create_account(code="7", name="A", account_type="ASSET", is_analytic=False)
        b = chart_service.create_account(code="7.1", name="B", account_type="ASSET", parent_code="7", is_analytic=False)
        a.parent_id = b.id
        db.session.commit()

        with pytest.raises(CyclicHierarchyError):
            chart_service.resolve_balance(a.id)

    def test_depth_guard(self, seeded, account, app, monkeypatch):
        monkeypatch.setitem(app.config, "LEDGER_MAX_HIERARCHY_DEPTH", 2)
        with pytest.raises(CyclicHierarchyError):
            chart_service.resolve_balance(account("1").id)

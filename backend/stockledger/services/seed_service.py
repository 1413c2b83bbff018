# Overview: Default chart of accounts and posting rules for a fresh ledger.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import Account, AccountingRule
from ..models.accounts import ASSET, EXPENSE, LIABILITY, REVENUE
from .chart_service import create_account
from .rule_service import create_rule

# (code, name, type, parent_code, is_analytic)
DEFAULT_ACCOUNTS = [
    ("1", "Assets", ASSET, None, False),
    ("1.1", "Current Assets", ASSET, "1", False),
    ("1.1.01", "Cash", ASSET, "1.1", False),
    ("1.1.01.001", "Cash and Cash Equivalents", ASSET, "1.1.01", True),
    ("1.1.03", "Inventories", ASSET, "1.1", False),
    ("1.1.03.001", "Inventory", ASSET, "1.1.03", True),
    ("2", "Liabilities", LIABILITY, None, False),
    ("2.1", "Current Liabilities", LIABILITY, "2", False),
    ("2.1.01", "Suppliers", LIABILITY, "2.1", False),
    ("2.1.01.001", "Accounts Payable - Suppliers", LIABILITY, "2.1.01", True),
    ("3", "Costs and Expenses", EXPENSE, None, False),
    ("3.1", "Cost of Sales", EXPENSE, "3", False),
    ("3.1.01", "Cost of Goods", EXPENSE, "3.1", False),
    ("3.1.01.001", "Cost of Goods Sold", EXPENSE, "3.1.01", True),
    ("3.2", "Operating Expenses", EXPENSE, "3", False),
    ("3.2.01", "Inventory Expenses", EXPENSE, "3.2", False),
    ("3.2.01.001", "Inventory Loss", EXPENSE, "3.2.01", True),
    ("3.2.01.002", "Other Operating Expenses", EXPENSE, "3.2.01", True),
    ("4", "Revenue", REVENUE, None, False),
    ("4.2", "Other Revenue", REVENUE, "4", False),
    ("4.2.01", "Operating Income", REVENUE, "4.2", False),
    ("4.2.01.001", "Other Operating Income", REVENUE, "4.2.01", True),
]

INVENTORY = "1.1.03.001"
ACCOUNTS_PAYABLE = "2.1.01.001"
COGS = "3.1.01.001"
INVENTORY_LOSS = "3.2.01.001"
OTHER_EXPENSES = "3.2.01.002"
OTHER_INCOME = "4.2.01.001"

# (rule_code, transaction_type, debit, credit, condition, description)
DEFAULT_RULES = [
    ("PURCHASE", "PURCHASE", INVENTORY, ACCOUNTS_PAYABLE, None, "Inventory purchase"),
    ("STOCK_ENTRY", "STOCK_ENTRY", INVENTORY, ACCOUNTS_PAYABLE, None, "Stock entry from supplier"),
    ("SALE", "SALE", COGS, INVENTORY, None, "Cost of goods sold"),
    ("FULFILLMENT", "FULFILLMENT", COGS, INVENTORY, None, "Order fulfillment cost"),
    ("SALE_RETURN", "SALE_RETURN", INVENTORY, COGS, None, "Sales return"),
    ("PURCHASE_RETURN", "PURCHASE_RETURN", ACCOUNTS_PAYABLE, INVENTORY, None, "Return to supplier"),
    ("ADJUSTMENT_POSITIVE", "ADJUSTMENT", INVENTORY, OTHER_INCOME, "Quantity > 0", "Positive inventory adjustment"),
    ("ADJUSTMENT_NEGATIVE", "ADJUSTMENT", OTHER_EXPENSES, INVENTORY, "Quantity < 0", "Negative inventory adjustment"),
    ("LOSS", "LOSS", INVENTORY_LOSS, INVENTORY, None, "Inventory loss/shrinkage"),
]


def seed_chart_of_accounts() -> int:
    """Create missing default accounts. Returns how many were created."""
    existing = {code for (code,) in db.session.query(Account.code).all()}
    created = 0
    for code, name, account_type, parent_code, is_analytic in DEFAULT_ACCOUNTS:
        if code in existing:
            continue
        create_account(
            code=code,
            name=name,
            account_type=account_type,
            parent_code=parent_code,
            is_analytic=is_analytic,
        )
        created += 1
    return created


def seed_rules() -> int:
    """Create missing default rules. Returns how many were created."""
    existing = {code for (code,) in db.session.query(AccountingRule.rule_code).all()}
    created = 0
    for rule_code, tx_type, debit, credit, condition, description in DEFAULT_RULES:
        if rule_code in existing:
            continue
        create_rule(
            transaction_type=tx_type,
            rule_code=rule_code,
            debit_account_code=debit,
            credit_account_code=credit,
            condition=condition,
            description=description,
        )
        created += 1
    return created


def seed_defaults() -> tuple[int, int]:
    """Idempotent: safe to run against a ledger that is already seeded."""
    try:
        accounts = seed_chart_of_accounts()
        rules = seed_rules()
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.info("Seeded %d accounts and %d rules", accounts, rules)
    return accounts, rules

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..time_utils import to_utc_z
from .types import Money

ASSET = "ASSET"
LIABILITY = "LIABILITY"
EQUITY = "EQUITY"
REVENUE = "REVENUE"
EXPENSE = "EXPENSE"

ACCOUNT_TYPES = (ASSET, LIABILITY, EQUITY, REVENUE, EXPENSE)

# Debit increases these; credit increases the rest
DEBIT_NORMAL_TYPES = frozenset({ASSET, EXPENSE})


class Account(db.Model):
    """
    Chart of Accounts node.

    HIERARCHY:
    - parent_id is a plain foreign key; children are found by querying
      parent_id, never through a loaded collection.
    - Analytic accounts are leaves and receive postings directly.
    - Synthetic accounts are rollup-only; their stored balance is never used,
      the effective balance is derived from descendants on demand.

    CONCURRENCY:
    - version_id is the optimistic lock. Two posters updating the same balance
      from the same version cannot both commit (StaleDataError for the loser).
    """
    __tablename__ = "accounts"
    __table_args__ = (
        db.CheckConstraint("code <> ''", name="ck_accounts_code_not_blank"),
        db.Index("ix_accounts_type_active", "account_type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    name = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text, nullable=True)

    account_type = db.Column(db.String(16), nullable=False)
    parent_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True, index=True)

    is_analytic = db.Column(db.Boolean, nullable=False, default=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    # Meaningful for analytic accounts only
    balance = db.Column(Money(2), nullable=False, default=Decimal("0.00"))

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_debit_normal(self) -> bool:
        return self.account_type in DEBIT_NORMAL_TYPES

    @property
    def accepts_postings(self) -> bool:
        return bool(self.is_active and self.is_analytic)

    def __repr__(self) -> str:
        return f"<Account id={self.id} code={self.code!r} type={self.account_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "description": self.description,
            "account_type": self.account_type,
            "parent_id": self.parent_id,
            "is_analytic": self.is_analytic,
            "is_active": self.is_active,
            "balance": str(self.balance) if self.is_analytic else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class AccountingRule(db.Model):
    """
    Maps a transaction type (+ optional condition) to a debit/credit code pair.

    condition is a small predicate such as "Quantity > 0"; NULL means the rule
    always applies to its transaction type.
    """
    __tablename__ = "accounting_rules"
    __table_args__ = (
        db.Index("ix_accounting_rules_type_active", "transaction_type", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)
    rule_code = db.Column(db.String(64), nullable=False, unique=True)
    description = db.Column(db.String(255), nullable=True)

    debit_account_code = db.Column(db.String(32), nullable=False)
    credit_account_code = db.Column(db.String(32), nullable=False)

    condition = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<AccountingRule {self.rule_code} {self.transaction_type} cond={self.condition!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_type": self.transaction_type,
            "rule_code": self.rule_code,
            "description": self.description,
            "debit_account_code": self.debit_account_code,
            "credit_account_code": self.credit_account_code,
            "condition": self.condition,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

# Overview: Accounting rule resolution; maps a transaction type and context to a debit/credit pair.

from __future__ import annotations

import operator
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from flask import current_app

from ..extensions import db
from ..models import AccountingRule
from .exceptions import NoMatchingRuleError, ValidationError

"""
Rule resolution (authoritative)

- Only active rules for the transaction type are candidates.
- Precedence is configuration (LEDGER_RULE_PRECEDENCE):
    conditioned_first   (default) specific rules win, unconditioned rules are
                        the fallback
    unconditioned_first legacy order; an unconditioned rule shadows every
                        conditioned rule of the same type
  Ties are broken by creation order (id).
- Conditions are "<Field> <op> <number>" clauses joined by "and".
- Resolution is read-only.
"""

CONDITIONED_FIRST = "conditioned_first"
UNCONDITIONED_FIRST = "unconditioned_first"
PRECEDENCE_POLICIES = (CONDITIONED_FIRST, UNCONDITIONED_FIRST)

# Condition field -> context key
CONDITION_FIELDS = {
    "quantity": "quantity",
    "amount": "amount",
    "unitcost": "unit_cost",
    "unit_cost": "unit_cost",
}

_OPERATORS = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}

_CLAUSE_RE = re.compile(r"^\s*([A-Za-z_]+)\s*(>=|<=|==|!=|>|<)\s*(-?\d+(?:\.\d+)?)\s*$")
_AND_RE = re.compile(r"\s+and\s+", re.IGNORECASE)
_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

TYPE_ALIASES = {
    "STOCK_TRANSFER": "TRANSFER",
}


@dataclass(frozen=True)
class Clause:
    field: str
    op: str
    value: Decimal

    def matches(self, context: dict) -> bool:
        raw = context.get(self.field)
        if raw is None:
            return False
        try:
            actual = Decimal(str(raw))
        except InvalidOperation:
            return False
        return _OPERATORS[self.op](actual, self.value)


@dataclass(frozen=True)
class ResolvedRule:
    rule_code: str
    transaction_type: str
    debit_code: str
    credit_code: str


def normalize_type_name(value: str | None) -> str:
    """Canonical transaction type: "StockEntry" and "stock_entry" become "STOCK_ENTRY"."""
    raw = (value or "").strip()
    if any(ch.islower() for ch in raw) and "_" not in raw:
        raw = _CAMEL_RE.sub("_", raw)
    name = raw.upper()
    return TYPE_ALIASES.get(name, name)


def parse_condition(condition: str | None) -> tuple[Clause, ...]:
    """Parse a rule condition; an empty condition parses to no clauses."""
    if condition is None or not condition.strip():
        return ()

    clauses = []
    for part in _AND_RE.split(condition.strip()):
        m = _CLAUSE_RE.match(part)
        if not m:
            raise ValidationError(f"Invalid rule condition clause {part!r}")
        name, op, number = m.groups()
        field = CONDITION_FIELDS.get(name.lower())
        if field is None:
            raise ValidationError(f"Unknown rule condition field {name!r}")
        clauses.append(Clause(field=field, op=op, value=Decimal(number)))
    return tuple(clauses)


def condition_matches(condition: str | None, context: dict) -> bool:
    return all(clause.matches(context) for clause in parse_condition(condition))


def _precedence() -> str:
    policy = current_app.config.get("LEDGER_RULE_PRECEDENCE", CONDITIONED_FIRST)
    if policy not in PRECEDENCE_POLICIES:
        raise ValidationError(f"Unknown LEDGER_RULE_PRECEDENCE {policy!r}")
    return policy


def _ordered(rules: list[AccountingRule], policy: str) -> list[AccountingRule]:
    def has_condition(rule: AccountingRule) -> bool:
        return bool(rule.condition and rule.condition.strip())

    if policy == CONDITIONED_FIRST:
        return sorted(rules, key=lambda r: (0 if has_condition(r) else 1, r.id))
    return sorted(rules, key=lambda r: (1 if has_condition(r) else 0, r.id))


def candidate_rules(transaction_type: str) -> list[AccountingRule]:
    rules = (
        db.session.query(AccountingRule)
        .filter(
            AccountingRule.transaction_type == transaction_type,
            AccountingRule.is_active.is_(True),
        )
        .all()
    )
    return _ordered(rules, _precedence())


def resolve_rule(transaction_type: str, context: dict | None = None) -> ResolvedRule:
    """Return the first active rule for the type whose condition matches context."""
    transaction_type = normalize_type_name(transaction_type)
    context = dict(context or {})

    for rule in candidate_rules(transaction_type):
        if condition_matches(rule.condition, context):
            return ResolvedRule(
                rule_code=rule.rule_code,
                transaction_type=rule.transaction_type,
                debit_code=rule.debit_account_code,
                credit_code=rule.credit_account_code,
            )

    raise NoMatchingRuleError(transaction_type, context)


def create_rule(
    *,
    transaction_type: str,
    rule_code: str,
    debit_account_code: str,
    credit_account_code: str,
    condition: str | None = None,
    description: str | None = None,
    is_active: bool = True,
) -> AccountingRule:
    """Administrative helper; validates the condition up front. Flushes, no commit."""
    transaction_type = normalize_type_name(transaction_type)
    rule_code = (rule_code or "").strip().upper()
    debit_account_code = (debit_account_code or "").strip()
    credit_account_code = (credit_account_code or "").strip()

    if not transaction_type:
        raise ValidationError("transaction_type is required")
    if not rule_code:
        raise ValidationError("rule_code is required")
    if not debit_account_code or not credit_account_code:
        raise ValidationError("debit and credit account codes are required")
    if debit_account_code == credit_account_code:
        raise ValidationError("debit and credit accounts must differ")
    if db.session.query(AccountingRule.id).filter_by(rule_code=rule_code).first() is not None:
        raise ValidationError(f"Rule code {rule_code} already exists")

    parse_condition(condition)

    rule = AccountingRule(
        transaction_type=transaction_type,
        rule_code=rule_code,
        description=description,
        debit_account_code=debit_account_code,
        credit_account_code=credit_account_code,
        condition=(condition or "").strip() or None,
        is_active=is_active,
    )
    db.session.add(rule)
    db.session.flush()
    return rule


def list_rules(*, active_only: bool = False) -> list[AccountingRule]:
    q = db.session.query(AccountingRule)
    if active_only:
        q = q.filter(AccountingRule.is_active.is_(True))
    return q.order_by(AccountingRule.transaction_type, AccountingRule.rule_code).all()

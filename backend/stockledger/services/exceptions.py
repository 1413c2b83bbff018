# backend/stockledger/services/exceptions.py

"""
LEDGER SERVICE ERRORS

Centralized domain errors for the posting engine.

Only ConcurrencyConflictError is retryable; every other error is terminal for
the request and reaches the caller unchanged.
"""


class LedgerError(Exception):
    """Base exception for all ledger service failures."""


class ValidationError(LedgerError, ValueError):
    """Malformed input (zero amount, missing location, bad condition...)."""


class NotFoundError(LedgerError, LookupError):
    """A referenced account, rule or entry does not exist."""


class NoMatchingRuleError(LedgerError):
    """No active accounting rule resolves for the transaction type/context."""

    def __init__(self, transaction_type: str, context: dict | None = None):
        self.transaction_type = transaction_type
        self.context = dict(context or {})
        super().__init__(f"No active accounting rule for transaction type {transaction_type!r}")


class ImbalanceError(LedgerError):
    """Total debits differ from total credits."""

    def __init__(self, debits, credits):
        self.debits = debits
        self.credits = credits
        super().__init__(f"Journal entry not balanced: debits={debits} credits={credits}")


class AccountStateError(LedgerError):
    """Target account is inactive or synthetic."""


class ConcurrencyConflictError(LedgerError):
    """Lock wait or optimistic version conflict while posting; safe to retry."""


class AlreadyPostedError(LedgerError):
    """Attempt to re-post, re-reverse or mutate a posted entry."""


class CyclicHierarchyError(LedgerError):
    """Malformed account parent chain found during rollup."""

# backend/stockledger/config.py
from __future__ import annotations
import os


def _csv(value: str) -> frozenset[str]:
    return frozenset(part.strip().upper() for part in value.split(",") if part.strip())


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///stockledger.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Posting boundary: attempts on optimistic/lock conflicts, then ConcurrencyConflictError
    LEDGER_POST_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_POST_RETRY_ATTEMPTS", "3"))
    LEDGER_POST_RETRY_BACKOFF = float(os.environ.get("LEDGER_POST_RETRY_BACKOFF", "0.05"))
    LEDGER_POST_RETRY_MAX_BACKOFF = float(os.environ.get("LEDGER_POST_RETRY_MAX_BACKOFF", "1.0"))

    # Rollup guard for malformed parent chains
    LEDGER_MAX_HIERARCHY_DEPTH = int(os.environ.get("LEDGER_MAX_HIERARCHY_DEPTH", "16"))

    # "conditioned_first" (specific rules win) or "unconditioned_first" (legacy order)
    LEDGER_RULE_PRECEDENCE = os.environ.get("LEDGER_RULE_PRECEDENCE", "conditioned_first")

    # Inventory movements recorded without a journal entry
    LEDGER_NEUTRAL_TRANSACTION_TYPES = _csv(
        os.environ.get(
            "LEDGER_NEUTRAL_TRANSACTION_TYPES",
            "TRANSFER,RESERVATION,RESERVATION_RELEASE",
        )
    )

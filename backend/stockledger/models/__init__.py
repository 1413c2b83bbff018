from .accounts import Account, AccountingRule
from .journal import JournalEntry, AccountingEntry, AccountPosting
from .inventory import InventoryTransaction
from .documents import DocumentSequence

__all__ = [
    'Account', 'AccountingRule',
    'JournalEntry', 'AccountingEntry', 'AccountPosting',
    'InventoryTransaction',
    'DocumentSequence',
]

"""initial ledger schema

Revision ID: sl001_initial_ledger
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the posting engine schema:
- accounts / accounting_rules: chart of accounts and posting rules
- journal_entries / accounting_entries: headers and debit/credit legs
- account_postings: append-only balance delta log
- inventory_transactions: inventory movements linked to their entries
- document_sequences: per-type number allocation

Money columns hold integer minor units (cents; unit_cost in 1/10000).
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'sl001_initial_ledger'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(with_updated=True):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if with_updated:
        cols.append(
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                      server_default=sa.text('CURRENT_TIMESTAMP'))
        )
    return cols


def upgrade():
    # ============================================================================
    # accounts: Chart of Accounts (analytic leaves, synthetic rollups)
    # ============================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=150), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('account_type', sa.String(length=16), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('is_analytic', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.Column('balance', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['parent_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint("code <> ''", name='ck_accounts_code_not_blank'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounts_code', 'accounts', ['code'], unique=True)
    op.create_index('ix_accounts_parent_id', 'accounts', ['parent_id'])
    op.create_index('ix_accounts_type_active', 'accounts', ['account_type', 'is_active'])

    # ============================================================================
    # accounting_rules: transaction type (+ condition) -> debit/credit codes
    # ============================================================================
    op.create_table(
        'accounting_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('rule_code', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('debit_account_code', sa.String(length=32), nullable=False),
        sa.Column('credit_account_code', sa.String(length=32), nullable=False),
        sa.Column('condition', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('rule_code'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounting_rules_transaction_type', 'accounting_rules', ['transaction_type'])
    op.create_index('ix_accounting_rules_type_active', 'accounting_rules', ['transaction_type', 'is_active'])

    # ============================================================================
    # journal_entries: headers; immutable once is_posted
    # ============================================================================
    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('entry_number', sa.String(length=32), nullable=False),
        sa.Column('draft_key', sa.String(length=32), nullable=False),
        sa.Column('entry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('document_number', sa.String(length=64), nullable=True),
        sa.Column('history', sa.Text(), nullable=False),
        sa.Column('total_amount', sa.BigInteger(), nullable=False),
        sa.Column('is_posted', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('posted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('order_id', sa.String(length=64), nullable=True),
        sa.Column('product_id', sa.String(length=64), nullable=True),
        sa.Column('inventory_transaction_id', sa.Integer(), nullable=True),
        sa.Column('reversal_of_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['reversal_of_id'], ['journal_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('entry_number'),
        sa.UniqueConstraint('draft_key', name='uq_journal_entries_draft_key'),
        sa.UniqueConstraint('reversal_of_id', name='uq_journal_entries_reversal_of_id'),
        sa.CheckConstraint('total_amount > 0', name='ck_journal_entries_total_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_journal_entries_entry_date', 'journal_entries', ['entry_date'])
    op.create_index('ix_journal_entries_document_type', 'journal_entries', ['document_type'])
    op.create_index('ix_journal_entries_is_posted', 'journal_entries', ['is_posted'])
    op.create_index('ix_journal_entries_order_id', 'journal_entries', ['order_id'])
    op.create_index('ix_journal_entries_product_id', 'journal_entries', ['product_id'])
    op.create_index('ix_journal_entries_inventory_transaction_id', 'journal_entries', ['inventory_transaction_id'])

    # ============================================================================
    # accounting_entries: debit/credit legs (insert-only)
    # ============================================================================
    op.create_table(
        'accounting_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('journal_entry_id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=6), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('cost_center', sa.String(length=64), nullable=True),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_accounting_entries_amount_positive'),
        sa.CheckConstraint("entry_type IN ('DEBIT', 'CREDIT')", name='ck_accounting_entries_entry_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_accounting_entries_journal_entry_id', 'accounting_entries', ['journal_entry_id'])
    op.create_index('ix_accounting_entries_account_id', 'accounting_entries', ['account_id'])
    op.create_index('ix_accounting_entries_journal_type', 'accounting_entries', ['journal_entry_id', 'entry_type'])

    # ============================================================================
    # account_postings: append-only balance delta log
    # ============================================================================
    op.create_table(
        'account_postings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), nullable=False),
        sa.Column('journal_entry_id', sa.Integer(), nullable=False),
        sa.Column('accounting_entry_id', sa.Integer(), nullable=False),
        sa.Column('entry_type', sa.String(length=6), nullable=False),
        sa.Column('amount', sa.BigInteger(), nullable=False),
        sa.Column('balance_delta', sa.BigInteger(), nullable=False),
        sa.Column('balance_after', sa.BigInteger(), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], ),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ),
        sa.ForeignKeyConstraint(['accounting_entry_id'], ['accounting_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_account_postings_account_id', 'account_postings', ['account_id'])
    op.create_index('ix_account_postings_journal_entry_id', 'account_postings', ['journal_entry_id'])
    op.create_index('ix_account_postings_account_id_id', 'account_postings', ['account_id', 'id'])

    # ============================================================================
    # inventory_transactions: movements with their accounting linkage
    # ============================================================================
    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('transaction_number', sa.String(length=32), nullable=False),
        sa.Column('transaction_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('transaction_type', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=64), nullable=False),
        sa.Column('product_sku', sa.String(length=64), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('from_location', sa.String(length=64), nullable=True),
        sa.Column('to_location', sa.String(length=64), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_cost', sa.BigInteger(), nullable=False),
        sa.Column('total_cost', sa.BigInteger(), nullable=False),
        sa.Column('order_id', sa.String(length=64), nullable=True),
        sa.Column('document_number', sa.String(length=64), nullable=True),
        sa.Column('notes', sa.String(length=500), nullable=True),
        sa.Column('journal_entry_id', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.String(length=64), nullable=False),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['journal_entry_id'], ['journal_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('transaction_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_transactions_transaction_date', 'inventory_transactions', ['transaction_date'])
    op.create_index('ix_inventory_transactions_transaction_type', 'inventory_transactions', ['transaction_type'])
    op.create_index('ix_inventory_transactions_order_id', 'inventory_transactions', ['order_id'])
    op.create_index('ix_inventory_transactions_journal_entry_id', 'inventory_transactions', ['journal_entry_id'])
    op.create_index('ix_inventory_transactions_product_date', 'inventory_transactions', ['product_id', 'transaction_date'])

    # ============================================================================
    # document_sequences: per-type counters
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', name='uq_doc_sequences_type'),
        sqlite_autoincrement=True
    )


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('document_sequences')
    op.drop_table('inventory_transactions')
    op.drop_table('account_postings')
    op.drop_table('accounting_entries')
    op.drop_table('journal_entries')
    op.drop_table('accounting_rules')
    op.drop_table('accounts')

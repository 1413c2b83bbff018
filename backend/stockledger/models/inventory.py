from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z
from .types import Money


class InventoryTransaction(db.Model):
    """
    One inventory movement with its accounting linkage.

    Product fields are snapshotted at record time; product_id, order_id and
    created_by are opaque identifiers owned by upstream services.

    A row only ever commits together with its posted journal entry
    (journal_entry_id), except for ledger-neutral movement types.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.Index("ix_inventory_transactions_product_date", "product_id", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(32), nullable=False, unique=True)
    transaction_date = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    transaction_type = db.Column(db.String(32), nullable=False, index=True)

    product_id = db.Column(db.String(64), nullable=False)
    product_sku = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    from_location = db.Column(db.String(64), nullable=True)
    to_location = db.Column(db.String(64), nullable=False)

    # Positive for inbound, negative for outbound
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost = db.Column(Money(4), nullable=False)
    total_cost = db.Column(Money(2), nullable=False)

    order_id = db.Column(db.String(64), nullable=True, index=True)
    document_number = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=True, index=True)

    created_by = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<InventoryTransaction {self.transaction_number} {self.transaction_type} qty={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "transaction_date": to_utc_z(self.transaction_date),
            "transaction_type": self.transaction_type,
            "product_id": self.product_id,
            "product_sku": self.product_sku,
            "product_name": self.product_name,
            "from_location": self.from_location,
            "to_location": self.to_location,
            "quantity": self.quantity,
            "unit_cost": str(self.unit_cost),
            "total_cost": str(self.total_cost),
            "order_id": self.order_id,
            "document_number": self.document_number,
            "notes": self.notes,
            "journal_entry_id": self.journal_entry_id,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }

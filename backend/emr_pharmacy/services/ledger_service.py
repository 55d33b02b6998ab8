# Overview: Append-only inventory transaction ledger.

from __future__ import annotations

from sqlalchemy import func

from ..errors import ValidationError
from ..models import InventoryTransaction, TRANSACTION_TYPES
"""
Ledger invariants (authoritative)

- One row per stock-affecting operation, written inside the same DB
  transaction as the quantity change it records.
- Append-only: this module exposes no update or delete.
- SUM(quantity) for an item equals quantity_on_hand minus the quantity the
  item held before its first ledger row (zero for items created through the
  inventory service, which logs initial stock as a purchase).
"""


class TransactionLedger:
    def __init__(self, session):
        self.session = session

    def append(
        self,
        *,
        inventory_id: int,
        transaction_type: str,
        quantity: int,
        reference_type: str | None = None,
        reference_id: int | None = None,
        notes: str | None = None,
        performed_by: int | None = None,
    ) -> InventoryTransaction:
        """Add one ledger row to the current unit of work (flush, no commit)."""
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(
                f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}"
            )
        if quantity == 0:
            raise ValidationError("ledger quantity must be non-zero")

        tx = InventoryTransaction(
            inventory_id=inventory_id,
            transaction_type=transaction_type,
            quantity=quantity,
            reference_type=reference_type,
            reference_id=reference_id,
            notes=notes,
            performed_by=performed_by,
        )
        self.session.add(tx)
        self.session.flush()  # ensures tx.id is assigned without committing
        return tx

    def history(self, inventory_id: int, *, limit: int | None = None) -> list[InventoryTransaction]:
        q = self.session.query(InventoryTransaction).filter(
            InventoryTransaction.inventory_id == inventory_id
        ).order_by(
            InventoryTransaction.created_at.desc(),
            InventoryTransaction.id.desc(),
        )
        if limit is not None:
            q = q.limit(limit)
        return q.all()

    def net_change(self, inventory_id: int) -> int:
        total = self.session.query(
            func.coalesce(func.sum(InventoryTransaction.quantity), 0)
        ).filter(
            InventoryTransaction.inventory_id == inventory_id
        ).scalar()
        return int(total or 0)

    def count(self, inventory_id: int) -> int:
        return self.session.query(InventoryTransaction).filter(
            InventoryTransaction.inventory_id == inventory_id
        ).count()

# Overview: Stock adjustment and dispensing; validates, mutates stock and appends the ledger atomically.

from __future__ import annotations

from ..errors import (
    ConflictError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from ..models import InventoryItem, PharmacyOrder, DISPENSABLE_STATUSES
from ..schemas import AdjustStockRequest, DispenseRequest, DispenseResult
from ..time_utils import utcnow
from .concurrency import atomic, lock_for_update
from .ledger_service import TransactionLedger
"""
Stock engine invariants (authoritative)

- quantity_on_hand >= 0 at all times. A change that would go negative is
  rejected before anything is written.
- Every change to quantity_on_hand writes exactly one ledger row with the
  same signed quantity, in the same DB transaction. A rejected operation
  writes nothing.
- The item row is read with SELECT ... FOR UPDATE so two writers on the same
  item serialize; the sufficiency check never runs against a stale quantity.
"""


class StockService:
    def __init__(self, session, ledger: TransactionLedger | None = None):
        self.session = session
        self.ledger = ledger or TransactionLedger(session)

    def _lock_item(self, inventory_id: int) -> InventoryItem | None:
        query = self.session.query(InventoryItem).filter(InventoryItem.id == inventory_id)
        return lock_for_update(query).first()

    def adjust_stock(self, request: AdjustStockRequest) -> InventoryItem:
        """
        Apply a signed delta to an item's stock and log it.

        Raises NotFoundError, InsufficientStockError; returns the updated item.
        """
        with atomic(self.session):
            item = self._lock_item(request.inventory_id)
            if item is None:
                raise NotFoundError("Inventory item not found")

            current = item.quantity_on_hand
            new_quantity = current + request.adjustment
            if new_quantity < 0:
                raise InsufficientStockError(
                    available=current,
                    requested=-request.adjustment,
                    message="Insufficient stock for this adjustment",
                )

            item.quantity_on_hand = new_quantity
            self.ledger.append(
                inventory_id=item.id,
                transaction_type=request.transaction_type,
                quantity=request.adjustment,
                reference_type=request.reference_type,
                reference_id=request.reference_id,
                notes=request.notes,
                performed_by=request.performed_by,
            )

        return item

    def dispense(self, request: DispenseRequest) -> DispenseResult:
        """
        Dispense medication, optionally against a pharmacy order.

        Inactive items cannot be dispensed (reported as not found). When an
        order is referenced it must exist, be open, and belong to patient_id
        if one is given; it is marked dispensed in the same unit of work.
        """
        with atomic(self.session):
            item = self._lock_item(request.inventory_id)
            if item is None or not item.is_active:
                raise NotFoundError("Medication not found in inventory")

            order = None
            if request.pharmacy_order_id is not None:
                order = lock_for_update(
                    self.session.query(PharmacyOrder).filter(
                        PharmacyOrder.id == request.pharmacy_order_id
                    )
                ).first()
                if order is None:
                    raise NotFoundError("Pharmacy order not found")
                if request.patient_id is not None and order.patient_id != request.patient_id:
                    raise ValidationError("pharmacy order does not belong to this patient")
                if order.status not in DISPENSABLE_STATUSES:
                    raise ConflictError(f"pharmacy order is already {order.status}")

            available = item.quantity_on_hand
            if available < request.quantity:
                raise InsufficientStockError(available=available, requested=request.quantity)

            item.quantity_on_hand = available - request.quantity
            tx = self.ledger.append(
                inventory_id=item.id,
                transaction_type="dispense",
                quantity=-request.quantity,
                reference_type="pharmacy_order",
                reference_id=request.pharmacy_order_id,
                notes=request.notes,
                performed_by=request.performed_by,
            )

            if order is not None:
                order.status = "dispensed"
                order.dispensed_date = utcnow()

            result = DispenseResult(
                inventory_id=item.id,
                medication=item.medication_name,
                quantity=request.quantity,
                remaining_stock=available - request.quantity,
                transaction_id=tx.id,
                pharmacy_order_id=request.pharmacy_order_id,
            )

        return result

# Overview: Service-layer operations for the pharmacy inventory store; item records and read-only alert views.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import case, func, or_

from ..errors import NotFoundError, ValidationError
from ..models import InventoryItem, InventoryTransaction
from ..money import quantize_cents
from ..time_utils import today
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_inventory_item,
)
from .concurrency import atomic
from .ledger_service import TransactionLedger
"""
Inventory store semantics (authoritative)

Predicates (all evaluated against the calendar date `as_of`, default today):
- low stock:       quantity_on_hand <= reorder_level   (inclusive)
- expiring soon:   expiry_date <= as_of + N days       (N defaults to 90)
- expired:         expiry_date < as_of
Items without an expiry_date are never expiring or expired.

Stock levels are not writable through this service. New items may carry an
opening quantity, which is logged as a 'purchase' ledger row in the same
transaction; every later change goes through StockService.
"""


INVENTORY_CREATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "medication_name",
        "generic_name",
        "category",
        "unit",
        "quantity_on_hand",
        "reorder_level",
        "unit_cost",
        "selling_price",
        "expiry_date",
        "supplier",
        "location",
        "requires_prescription",
    },
    required_on_create={"medication_name", "unit"},
)

INVENTORY_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={
        "medication_name",
        "generic_name",
        "category",
        "unit",
        "reorder_level",
        "unit_cost",
        "selling_price",
        "expiry_date",
        "supplier",
        "location",
        "requires_prescription",
        "is_active",
    },
)


def low_stock_predicate():
    return InventoryItem.quantity_on_hand <= InventoryItem.reorder_level


def expiring_predicate(as_of: date, days: int):
    return InventoryItem.expiry_date <= as_of + timedelta(days=days)


def expired_predicate(as_of: date):
    return InventoryItem.expiry_date < as_of


def is_low_stock(item: InventoryItem) -> bool:
    return item.quantity_on_hand <= item.reorder_level


def is_expiring_soon(item: InventoryItem, as_of: date, days: int) -> bool:
    return item.expiry_date is not None and item.expiry_date <= as_of + timedelta(days=days)


def _validate_days(days) -> int:
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValidationError("days must be an integer")
    if days < 0:
        raise ValidationError("days must be >= 0")
    return days


@dataclass(frozen=True)
class InventoryFilter:
    """
    Listing filters, compiled to a list of SQLAlchemy predicates.

    Every value is bound as a parameter; nothing is concatenated into SQL.
    """
    category: str | None = None
    search: str | None = None
    low_stock: bool = False
    expiring_soon: bool = False
    include_inactive: bool = False

    def predicates(self, *, as_of: date, expiry_days: int) -> list:
        filters = []
        if not self.include_inactive:
            filters.append(InventoryItem.is_active.is_(True))
        if self.category:
            filters.append(InventoryItem.category == self.category)
        if self.low_stock:
            filters.append(low_stock_predicate())
        if self.expiring_soon:
            filters.append(expiring_predicate(as_of, expiry_days))
        if self.search:
            pattern = f"%{self.search}%"
            filters.append(or_(
                InventoryItem.medication_name.ilike(pattern),
                InventoryItem.generic_name.ilike(pattern),
            ))
        return filters


class InventoryService:
    def __init__(
        self,
        session,
        *,
        expiry_warning_days: int = 90,
        default_reorder_level: int = 10,
        default_location: str | None = "Main Pharmacy",
        ledger: TransactionLedger | None = None,
    ):
        self.session = session
        self.expiry_warning_days = expiry_warning_days
        self.default_reorder_level = default_reorder_level
        self.default_location = default_location
        self.ledger = ledger or TransactionLedger(session)

    def get_item(self, inventory_id: int) -> InventoryItem:
        item = self.session.get(InventoryItem, inventory_id)
        if item is None:
            raise NotFoundError("Inventory item not found")
        return item

    def get_item_with_history(self, inventory_id: int, *, limit: int = 50) -> tuple[InventoryItem, list[InventoryTransaction]]:
        item = self.get_item(inventory_id)
        return item, self.ledger.history(item.id, limit=limit)

    def ledger_summary(self, inventory_id: int) -> dict:
        """
        Ledger totals beside the stored stock level.

        For items created through this service net_change equals quantity_on_hand;
        a difference means stock was written outside the ledger.
        """
        item = self.get_item(inventory_id)
        net_change = self.ledger.net_change(item.id)
        return {
            "net_change": net_change,
            "transaction_count": self.ledger.count(item.id),
            "in_balance": net_change == item.quantity_on_hand,
        }

    def list_transactions(self, inventory_id: int, *, limit: int = 200) -> list[InventoryTransaction]:
        item = self.get_item(inventory_id)
        return self.ledger.history(item.id, limit=limit)

    def list_items(self, filters: InventoryFilter | None = None, *, as_of: date | None = None) -> list[dict]:
        """Matching items sorted by name, each annotated with its alert flags."""
        filters = filters or InventoryFilter()
        as_of = as_of or today()

        rows = self.session.query(InventoryItem).filter(
            *filters.predicates(as_of=as_of, expiry_days=self.expiry_warning_days)
        ).order_by(
            InventoryItem.medication_name.asc(),
            InventoryItem.id.asc(),
        ).all()

        result = []
        for item in rows:
            data = item.to_dict()
            data["is_low_stock"] = is_low_stock(item)
            data["is_expiring_soon"] = is_expiring_soon(item, as_of, self.expiry_warning_days)
            result.append(data)
        return result

    def stats(self, *, as_of: date | None = None) -> dict:
        as_of = as_of or today()
        row = self.session.query(
            func.count(InventoryItem.id).label("total_items"),
            func.coalesce(func.sum(case((low_stock_predicate(), 1), else_=0)), 0).label("low_stock"),
            func.coalesce(
                func.sum(case((expiring_predicate(as_of, self.expiry_warning_days), 1), else_=0)), 0
            ).label("expiring_soon"),
            func.coalesce(func.sum(case((expired_predicate(as_of), 1), else_=0)), 0).label("expired"),
            func.coalesce(func.sum(InventoryItem.quantity_on_hand * InventoryItem.unit_cost), 0).label("value"),
        ).filter(
            InventoryItem.is_active.is_(True),
        ).one()

        return {
            "total_items": int(row.total_items or 0),
            "low_stock_count": int(row.low_stock or 0),
            "expiring_soon_count": int(row.expiring_soon or 0),
            "expired_count": int(row.expired or 0),
            "total_stock_value": str(quantize_cents(row.value or 0)),
        }

    def categories(self) -> list[dict]:
        rows = self.session.query(
            InventoryItem.category,
            func.count(InventoryItem.id),
        ).filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.category.isnot(None),
        ).group_by(
            InventoryItem.category,
        ).order_by(
            InventoryItem.category.asc(),
        ).all()
        return [{"category": category, "count": int(count)} for category, count in rows]

    def low_stock_alerts(self) -> list[InventoryItem]:
        return self.session.query(InventoryItem).filter(
            InventoryItem.is_active.is_(True),
            low_stock_predicate(),
        ).order_by(
            InventoryItem.quantity_on_hand.asc(),
            InventoryItem.id.asc(),
        ).all()

    def expiring(self, *, days: int | None = None, as_of: date | None = None) -> list[dict]:
        days = self.expiry_warning_days if days is None else _validate_days(days)
        as_of = as_of or today()

        rows = self.session.query(InventoryItem).filter(
            InventoryItem.is_active.is_(True),
            InventoryItem.expiry_date.isnot(None),
            expiring_predicate(as_of, days),
        ).order_by(
            InventoryItem.expiry_date.asc(),
            InventoryItem.id.asc(),
        ).all()

        result = []
        for item in rows:
            data = item.to_dict()
            data["days_until_expiry"] = (item.expiry_date - as_of).days
            result.append(data)
        return result

    def create_item(self, payload: dict, *, performed_by: int | None = None) -> InventoryItem:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_CREATE_POLICY,
            partial=False,
        )
        enforce_rules_inventory_item(patch)

        if patch.get("reorder_level") is None:
            patch["reorder_level"] = self.default_reorder_level
        if patch.get("location") is None:
            patch["location"] = self.default_location
        opening_quantity = patch.get("quantity_on_hand") or 0
        patch["quantity_on_hand"] = opening_quantity

        with atomic(self.session):
            item = InventoryItem(**patch)
            self.session.add(item)
            self.session.flush()

            if opening_quantity > 0:
                self.ledger.append(
                    inventory_id=item.id,
                    transaction_type="purchase",
                    quantity=opening_quantity,
                    notes="Initial stock entry",
                    performed_by=performed_by,
                )

        return item

    def update_item(self, inventory_id: int, payload: dict) -> InventoryItem:
        patch = validate_payload(
            model=InventoryItem,
            payload=payload,
            policy=INVENTORY_UPDATE_POLICY,
            partial=True,
        )
        enforce_rules_inventory_item(patch)

        with atomic(self.session):
            item = self.get_item(inventory_id)
            for key, value in patch.items():
                setattr(item, key, value)

        return item

    def deactivate_item(self, inventory_id: int) -> InventoryItem:
        with atomic(self.session):
            item = self.get_item(inventory_id)
            item.is_active = False
        return item

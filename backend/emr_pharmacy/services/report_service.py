# Overview: Read-only pharmacy reporting; order totals, top medications and dispensing revenue.

from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from sqlalchemy import and_, case, func

from ..errors import ValidationError
from ..models import InventoryItem, InventoryTransaction, PharmacyOrder, DISPENSABLE_STATUSES
from ..money import ZERO, format_money
from ..time_utils import to_iso_date
"""
Revenue summary semantics

- The window is [start_date 00:00, end_date + 1 day 00:00), both bounds optional.
- Orders fall in the window by their dispensed_date, or by ordered_date while
  still undispensed, so pending orders still count under a date filter.
- Revenue is rebuilt from 'dispense' ledger rows: units dispensed times the
  item's current selling_price. The ledger stores no sale price.
"""

TOP_MEDICATIONS_LIMIT = 10
DAILY_REVENUE_DAYS = 30


def _window_filters(column, start: datetime | None, end: datetime | None) -> list:
    filters = []
    if start is not None:
        filters.append(column >= start)
    if end is not None:
        filters.append(column < end)
    return filters


def _day_key(value) -> str:
    # SQLite returns DATE() as text, PostgreSQL as a date
    return value if isinstance(value, str) else value.isoformat()


class ReportService:
    def __init__(self, session):
        self.session = session

    def revenue_summary(self, *, start_date: date | None = None, end_date: date | None = None) -> dict:
        if start_date is not None and end_date is not None and start_date > end_date:
            raise ValidationError("start_date must be on or before end_date")

        start = datetime.combine(start_date, time.min) if start_date else None
        end = datetime.combine(end_date + timedelta(days=1), time.min) if end_date else None

        daily_revenue, total_revenue = self._daily_revenue(start, end)
        return {
            "start_date": to_iso_date(start_date),
            "end_date": to_iso_date(end_date),
            "totals": self._order_totals(start, end),
            "top_medications": self._top_medications(start, end),
            "daily_revenue": daily_revenue,
            "total_revenue": format_money(total_revenue),
        }

    def _order_totals(self, start, end) -> dict:
        activity_date = func.coalesce(PharmacyOrder.dispensed_date, PharmacyOrder.ordered_date)
        row = self.session.query(
            func.count(PharmacyOrder.id).label("total_orders"),
            func.coalesce(func.sum(case((PharmacyOrder.status == "dispensed", 1), else_=0)), 0).label("dispensed"),
            func.coalesce(
                func.sum(case((PharmacyOrder.status.in_(DISPENSABLE_STATUSES), 1), else_=0)), 0
            ).label("pending"),
            func.count(func.distinct(PharmacyOrder.patient_id)).label("unique_patients"),
        ).filter(
            *_window_filters(activity_date, start, end)
        ).one()

        return {
            "total_orders": int(row.total_orders or 0),
            "dispensed_orders": int(row.dispensed or 0),
            "pending_orders": int(row.pending or 0),
            "unique_patients": int(row.unique_patients or 0),
        }

    def _dispensed_per_order(self):
        return self.session.query(
            InventoryTransaction.reference_id.label("order_id"),
            func.sum(-InventoryTransaction.quantity).label("quantity"),
        ).filter(
            InventoryTransaction.transaction_type == "dispense",
            InventoryTransaction.reference_type == "pharmacy_order",
            InventoryTransaction.reference_id.isnot(None),
        ).group_by(
            InventoryTransaction.reference_id,
        ).subquery()

    def _top_medications(self, start, end) -> list[dict]:
        dispensed = self._dispensed_per_order()
        order_count = func.count(PharmacyOrder.id)

        rows = self.session.query(
            PharmacyOrder.medication_name,
            order_count.label("order_count"),
            func.coalesce(func.sum(dispensed.c.quantity), 0).label("total_quantity"),
        ).outerjoin(
            dispensed, dispensed.c.order_id == PharmacyOrder.id,
        ).filter(
            PharmacyOrder.status == "dispensed",
            *_window_filters(PharmacyOrder.dispensed_date, start, end),
        ).group_by(
            PharmacyOrder.medication_name,
        ).order_by(
            order_count.desc(),
            PharmacyOrder.medication_name.asc(),
        ).limit(TOP_MEDICATIONS_LIMIT).all()

        return [
            {
                "medication_name": row.medication_name,
                "order_count": int(row.order_count),
                "total_quantity": int(row.total_quantity or 0),
            }
            for row in rows
        ]

    def _daily_revenue(self, start, end) -> tuple[list[dict], Decimal]:
        day = func.date(InventoryTransaction.created_at)
        dispense_rows = [
            InventoryTransaction.transaction_type == "dispense",
            *_window_filters(InventoryTransaction.created_at, start, end),
        ]

        # units per (day, price); Decimal math stays in Python
        revenue_by_day: dict[str, Decimal] = {}
        priced = self.session.query(
            day.label("day"),
            InventoryItem.selling_price,
            func.sum(-InventoryTransaction.quantity).label("units"),
        ).join(
            InventoryItem, InventoryItem.id == InventoryTransaction.inventory_id,
        ).filter(
            *dispense_rows
        ).group_by(
            day,
            InventoryItem.selling_price,
        ).all()
        for row in priced:
            key = _day_key(row.day)
            revenue_by_day[key] = revenue_by_day.get(key, ZERO) + (row.selling_price or ZERO) * int(row.units)

        activity = self.session.query(
            day.label("day"),
            func.count(InventoryTransaction.id).label("dispense_count"),
            func.sum(-InventoryTransaction.quantity).label("units"),
            func.count(func.distinct(PharmacyOrder.id)).label("orders_count"),
            func.count(func.distinct(PharmacyOrder.patient_id)).label("unique_patients"),
        ).outerjoin(
            PharmacyOrder,
            and_(
                InventoryTransaction.reference_type == "pharmacy_order",
                InventoryTransaction.reference_id == PharmacyOrder.id,
            ),
        ).filter(
            *dispense_rows
        ).group_by(
            day,
        ).order_by(
            day.desc(),
        ).limit(DAILY_REVENUE_DAYS).all()

        daily = []
        for row in activity:
            key = _day_key(row.day)
            daily.append({
                "date": key,
                "dispense_count": int(row.dispense_count),
                "units_dispensed": int(row.units or 0),
                "orders_count": int(row.orders_count or 0),
                "unique_patients": int(row.unique_patients or 0),
                "revenue": format_money(revenue_by_day.get(key, ZERO)),
            })

        return daily, sum(revenue_by_day.values(), ZERO)

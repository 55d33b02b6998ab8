"""
Inventory store tests.

Verifies:
- Item creation logs opening stock as a purchase
- quantity_on_hand is not writable through item edits
- Listing filters, alert flags and stats
- Low-stock and expiry predicates (inclusive boundaries)
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from emr_pharmacy.errors import NotFoundError, ValidationError
from emr_pharmacy.models import InventoryTransaction
from emr_pharmacy.services.inventory_service import InventoryFilter, InventoryService
from emr_pharmacy.services.ledger_service import TransactionLedger

from conftest import make_item


AS_OF = date(2026, 1, 1)


@pytest.fixture
def service(db_session):
    return InventoryService(db_session, expiry_warning_days=90)


class TestCreateAndEdit:
    def test_create_logs_opening_stock_as_purchase(self, db_session, service):
        item = service.create_item({
            "medication_name": "Cetirizine 10mg",
            "unit": "tablet",
            "category": "Antihistamine",
            "quantity_on_hand": 400,
            "unit_cost": "0.20",
            "selling_price": "0.50",
            "expiry_date": "2027-03-31",
        }, performed_by=2)

        assert item.quantity_on_hand == 400
        assert item.selling_price == Decimal("0.50")
        assert item.expiry_date == date(2027, 3, 31)

        rows = TransactionLedger(db_session).history(item.id)
        assert len(rows) == 1
        assert rows[0].transaction_type == "purchase"
        assert rows[0].quantity == 400
        assert rows[0].notes == "Initial stock entry"
        assert rows[0].performed_by == 2

    def test_create_without_stock_writes_no_ledger_row(self, db_session, service):
        item = service.create_item({"medication_name": "Multivitamin", "unit": "tablet"})
        assert item.quantity_on_hand == 0
        assert item.reorder_level == 10
        assert item.location == "Main Pharmacy"
        assert db_session.query(InventoryTransaction).count() == 0

    def test_create_requires_name_and_unit(self, service):
        with pytest.raises(ValidationError, match="medication_name"):
            service.create_item({"unit": "tablet"})

    @pytest.mark.parametrize(
        "payload",
        [
            {"medication_name": "X", "unit": "tablet", "quantity_on_hand": -1},
            {"medication_name": "X", "unit": "tablet", "selling_price": "-0.01"},
            {"medication_name": "X", "unit": "tablet", "unit_cost": "1.005"},
            {"medication_name": "X", "unit": "tablet", "reorder_level": "1e3"},
            {"medication_name": "X", "unit": "tablet", "expiry_date": "31/12/2026"},
            {"medication_name": "X", "unit": "tablet", "is_active": False},
        ],
    )
    def test_create_rejects_invalid_fields(self, service, payload):
        with pytest.raises(ValidationError):
            service.create_item(payload)

    def test_update_cannot_touch_stock(self, item, service):
        with pytest.raises(ValidationError, match="quantity_on_hand"):
            service.update_item(item.id, {"quantity_on_hand": 5})

    def test_update_changes_attributes(self, item, service):
        updated = service.update_item(item.id, {"selling_price": "12.40", "supplier": "MedSupply Ltd"})
        assert updated.selling_price == Decimal("12.40")
        assert updated.supplier == "MedSupply Ltd"
        assert updated.quantity_on_hand == 100

    def test_deactivate_is_soft(self, db_session, item, service):
        service.deactivate_item(item.id)
        assert service.get_item(item.id).is_active is False
        assert service.list_items() == []
        assert len(service.list_items(InventoryFilter(include_inactive=True))) == 1

    def test_missing_item_is_not_found(self, db_session, service):
        with pytest.raises(NotFoundError):
            service.get_item(424242)
        with pytest.raises(NotFoundError):
            service.update_item(424242, {"supplier": "x"})


class TestListing:
    def test_filters_compose(self, db_session, service):
        make_item(db_session, medication_name="Amoxicillin 500mg", generic_name="Amoxicillin", category="Antibiotic",
                  quantity_on_hand=5, reorder_level=20)
        make_item(db_session, medication_name="Azithromycin 500mg", generic_name="Azithromycin", category="Antibiotic",
                  quantity_on_hand=100, reorder_level=10)
        make_item(db_session, medication_name="Cetirizine 10mg", generic_name="Cetirizine", category="Antihistamine",
                  quantity_on_hand=1, reorder_level=40)

        names = lambda rows: [r["medication_name"] for r in rows]  # noqa: E731

        assert names(service.list_items(InventoryFilter(category="Antibiotic"), as_of=AS_OF)) == [
            "Amoxicillin 500mg", "Azithromycin 500mg",
        ]
        assert names(service.list_items(InventoryFilter(low_stock=True), as_of=AS_OF)) == [
            "Amoxicillin 500mg", "Cetirizine 10mg",
        ]
        assert names(service.list_items(InventoryFilter(category="Antibiotic", low_stock=True), as_of=AS_OF)) == [
            "Amoxicillin 500mg",
        ]

    def test_search_matches_generic_name_case_insensitively(self, db_session, service):
        make_item(db_session, medication_name="Paracetamol 500mg", generic_name="Acetaminophen")
        make_item(db_session, medication_name="Ibuprofen 400mg", generic_name="Ibuprofen")

        rows = service.list_items(InventoryFilter(search="acetamin"), as_of=AS_OF)
        assert [r["medication_name"] for r in rows] == ["Paracetamol 500mg"]

    def test_search_treats_input_as_data(self, db_session, service):
        make_item(db_session, medication_name="Paracetamol 500mg")
        assert service.list_items(InventoryFilter(search="' OR 1=1 --"), as_of=AS_OF) == []

    def test_rows_carry_alert_flags(self, db_session, service):
        make_item(db_session, quantity_on_hand=10, reorder_level=10, expiry_date=AS_OF + timedelta(days=90))

        row = service.list_items(as_of=AS_OF)[0]
        assert row["is_low_stock"] is True
        assert row["is_expiring_soon"] is True
        assert row["selling_price"] == "10.00"

    def test_stats(self, db_session, service):
        make_item(db_session, medication_name="A", quantity_on_hand=5, reorder_level=10,
                  unit_cost=Decimal("2.00"), expiry_date=AS_OF - timedelta(days=1))
        make_item(db_session, medication_name="B", quantity_on_hand=50, reorder_level=10,
                  unit_cost=Decimal("1.25"), expiry_date=AS_OF + timedelta(days=30))
        make_item(db_session, medication_name="C", quantity_on_hand=20, reorder_level=10,
                  unit_cost=Decimal("3.00"), expiry_date=None)
        make_item(db_session, medication_name="Inactive", quantity_on_hand=0, is_active=False)

        stats = service.stats(as_of=AS_OF)
        assert stats == {
            "total_items": 3,
            "low_stock_count": 1,
            "expiring_soon_count": 2,
            "expired_count": 1,
            "total_stock_value": "132.50",
        }

    def test_categories(self, db_session, service):
        make_item(db_session, medication_name="A", category="Antibiotic")
        make_item(db_session, medication_name="B", category="Antibiotic")
        make_item(db_session, medication_name="C", category="Vitamin")
        make_item(db_session, medication_name="D", category=None)

        assert service.categories() == [
            {"category": "Antibiotic", "count": 2},
            {"category": "Vitamin", "count": 1},
        ]


class TestAlerts:
    def test_low_stock_is_inclusive_and_sorted(self, db_session, service):
        at_level = make_item(db_session, medication_name="At level", quantity_on_hand=10, reorder_level=10)
        below = make_item(db_session, medication_name="Below", quantity_on_hand=2, reorder_level=10)
        make_item(db_session, medication_name="Above", quantity_on_hand=11, reorder_level=10)
        make_item(db_session, medication_name="Inactive", quantity_on_hand=0, is_active=False)

        assert [i.id for i in service.low_stock_alerts()] == [below.id, at_level.id]

    def test_expiring_window_is_inclusive(self, db_session, service):
        expired = make_item(db_session, medication_name="Expired", expiry_date=AS_OF - timedelta(days=3))
        edge = make_item(db_session, medication_name="Edge", expiry_date=AS_OF + timedelta(days=90))
        make_item(db_session, medication_name="Later", expiry_date=AS_OF + timedelta(days=91))
        make_item(db_session, medication_name="No expiry", expiry_date=None)

        rows = service.expiring(as_of=AS_OF)
        assert [r["id"] for r in rows] == [expired.id, edge.id]
        assert rows[0]["days_until_expiry"] == -3
        assert rows[1]["days_until_expiry"] == 90

    def test_expiring_custom_window(self, db_session, service):
        soon = make_item(db_session, medication_name="Soon", expiry_date=AS_OF + timedelta(days=7))
        make_item(db_session, medication_name="Month", expiry_date=AS_OF + timedelta(days=30))

        assert [r["id"] for r in service.expiring(days=7, as_of=AS_OF)] == [soon.id]

    def test_expiring_rejects_negative_window(self, service):
        with pytest.raises(ValidationError):
            service.expiring(days=-1)

import os
import shutil
import tempfile
import unittest
from decimal import Decimal

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from emr_pharmacy import create_app
from emr_pharmacy.errors import (
    ConflictError,
    InsufficientStockError,
    InternalFailure,
    NotFoundError,
    ValidationError,
)
from emr_pharmacy.extensions import db
from emr_pharmacy.models import InventoryItem, InventoryTransaction, PharmacyOrder
from emr_pharmacy.schemas import AdjustStockRequest, DispenseRequest
from emr_pharmacy.services.ledger_service import TransactionLedger
from emr_pharmacy.services.stock_service import StockService


class FailingLedger(TransactionLedger):
    """Ledger double whose write fails after the stock row was already changed."""

    def append(self, **kwargs):
        raise OperationalError("INSERT INTO inventory_transactions", {}, Exception("disk I/O error"))


class StockServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": True,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(InventoryTransaction).delete()
        db.session.query(PharmacyOrder).delete()
        db.session.query(InventoryItem).delete()
        db.session.commit()

        self.item = self._item(quantity_on_hand=100)
        self.service = StockService(db.session)
        self.ledger = TransactionLedger(db.session)

    def _item(self, **overrides):
        values = dict(
            medication_name="Ibuprofen 400mg",
            category="NSAID",
            unit="tablet",
            quantity_on_hand=100,
            reorder_level=30,
            unit_cost=Decimal("0.80"),
            selling_price=Decimal("1.50"),
        )
        values.update(overrides)
        item = InventoryItem(**values)
        db.session.add(item)
        db.session.commit()
        return item

    def _order(self, patient_id=7, status="ordered"):
        order = PharmacyOrder(patient_id=patient_id, medication_name="Ibuprofen 400mg", quantity="10", status=status)
        db.session.add(order)
        db.session.commit()
        return order

    def _on_hand(self, item_id):
        return db.session.get(InventoryItem, item_id).quantity_on_hand

    # -- adjust --

    def test_adjust_increases_stock_and_logs_once(self):
        item = self.service.adjust_stock(AdjustStockRequest(
            inventory_id=self.item.id,
            adjustment=50,
            transaction_type="purchase",
            notes="Supplier delivery",
            performed_by=11,
        ))
        self.assertEqual(item.quantity_on_hand, 150)

        rows = self.ledger.history(self.item.id)
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].transaction_type, "purchase")
        self.assertEqual(rows[0].quantity, 50)
        self.assertEqual(rows[0].notes, "Supplier delivery")
        self.assertEqual(rows[0].performed_by, 11)

    def test_adjust_below_zero_rejected_and_stock_unchanged(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            self.service.adjust_stock(AdjustStockRequest(inventory_id=self.item.id, adjustment=-150))

        self.assertEqual(ctx.exception.available, 100)
        self.assertEqual(ctx.exception.requested, 150)
        self.assertEqual(self._on_hand(self.item.id), 100)
        self.assertEqual(self.ledger.count(self.item.id), 0)

    def test_adjust_to_exactly_zero_allowed(self):
        item = self.service.adjust_stock(AdjustStockRequest(
            inventory_id=self.item.id, adjustment=-100, transaction_type="expired",
        ))
        self.assertEqual(item.quantity_on_hand, 0)

    def test_zero_adjustment_rejected(self):
        with self.assertRaises(ValidationError):
            AdjustStockRequest(inventory_id=self.item.id, adjustment=0)

    def test_sign_must_match_transaction_type(self):
        with self.assertRaises(ValidationError):
            AdjustStockRequest(inventory_id=self.item.id, adjustment=-5, transaction_type="purchase")
        with self.assertRaises(ValidationError):
            AdjustStockRequest(inventory_id=self.item.id, adjustment=5, transaction_type="expired")

    def test_unknown_transaction_type_rejected(self):
        with self.assertRaises(ValidationError):
            AdjustStockRequest(inventory_id=self.item.id, adjustment=5, transaction_type="gift")

    def test_adjust_payload_rejects_fractional_quantity(self):
        with self.assertRaises(ValidationError):
            AdjustStockRequest.from_payload({"adjustment": "2.5"}, inventory_id=self.item.id)
        with self.assertRaises(ValidationError):
            AdjustStockRequest.from_payload({"adjustment": True}, inventory_id=self.item.id)
        with self.assertRaises(ValidationError):
            AdjustStockRequest.from_payload({}, inventory_id=self.item.id)

    def test_adjust_missing_item_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.adjust_stock(AdjustStockRequest(inventory_id=987654, adjustment=5))

    # -- dispense --

    def test_dispense_exact_quantity_leaves_zero(self):
        result = self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=100))
        self.assertEqual(result.remaining_stock, 0)
        self.assertEqual(result.medication, "Ibuprofen 400mg")
        self.assertEqual(self._on_hand(self.item.id), 0)

    def test_dispense_one_more_than_available_fails(self):
        with self.assertRaises(InsufficientStockError) as ctx:
            self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=101))

        self.assertEqual(ctx.exception.available, 100)
        self.assertEqual(ctx.exception.requested, 101)
        self.assertEqual(self._on_hand(self.item.id), 100)
        self.assertEqual(self.ledger.count(self.item.id), 0)

    def test_insufficient_stock_error_body(self):
        low = self._item(medication_name="Diazepam 5mg", quantity_on_hand=5)
        with self.assertRaises(InsufficientStockError) as ctx:
            self.service.dispense(DispenseRequest(inventory_id=low.id, quantity=10))

        body = ctx.exception.to_dict()
        self.assertEqual(body["code"], "insufficient_stock")
        self.assertEqual(body["available"], 5)
        self.assertEqual(body["requested"], 10)

    def test_dispense_writes_negative_ledger_row_with_reference(self):
        order = self._order()
        result = self.service.dispense(DispenseRequest(
            inventory_id=self.item.id,
            quantity=10,
            pharmacy_order_id=order.id,
            patient_id=7,
            performed_by=3,
        ))

        tx = db.session.get(InventoryTransaction, result.transaction_id)
        self.assertEqual(tx.transaction_type, "dispense")
        self.assertEqual(tx.quantity, -10)
        self.assertEqual(tx.reference_type, "pharmacy_order")
        self.assertEqual(tx.reference_id, order.id)
        self.assertEqual(tx.performed_by, 3)

    def test_dispense_marks_order_dispensed(self):
        order = self._order(status="approved")
        self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=10, pharmacy_order_id=order.id))

        order = db.session.get(PharmacyOrder, order.id)
        self.assertEqual(order.status, "dispensed")
        self.assertIsNotNone(order.dispensed_date)

    def test_dispense_against_closed_order_conflicts(self):
        order = self._order(status="dispensed")
        with self.assertRaises(ConflictError):
            self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=10, pharmacy_order_id=order.id))
        self.assertEqual(self._on_hand(self.item.id), 100)

    def test_dispense_against_missing_order_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=10, pharmacy_order_id=31337))
        self.assertEqual(self.ledger.count(self.item.id), 0)

    def test_dispense_for_wrong_patient_rejected(self):
        order = self._order(patient_id=7)
        with self.assertRaises(ValidationError):
            self.service.dispense(DispenseRequest(
                inventory_id=self.item.id, quantity=10, pharmacy_order_id=order.id, patient_id=8,
            ))
        self.assertEqual(db.session.get(PharmacyOrder, order.id).status, "ordered")

    def test_dispense_inactive_item_is_not_found(self):
        self.item.is_active = False
        db.session.commit()
        with self.assertRaises(NotFoundError):
            self.service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=1))

    def test_dispense_requires_positive_quantity(self):
        with self.assertRaises(ValidationError):
            DispenseRequest(inventory_id=self.item.id, quantity=0)
        with self.assertRaises(ValidationError):
            DispenseRequest(inventory_id=self.item.id, quantity=-3)
        with self.assertRaises(ValidationError):
            DispenseRequest.from_payload({"inventory_id": self.item.id})

    # -- invariants --

    def test_ledger_sum_tracks_stock_over_mixed_sequence(self):
        initial = self._on_hand(self.item.id)
        operations = [
            AdjustStockRequest(inventory_id=self.item.id, adjustment=40, transaction_type="purchase"),
            DispenseRequest(inventory_id=self.item.id, quantity=25),
            AdjustStockRequest(inventory_id=self.item.id, adjustment=-500),  # rejected
            AdjustStockRequest(inventory_id=self.item.id, adjustment=-3, transaction_type="expired"),
            DispenseRequest(inventory_id=self.item.id, quantity=1000),  # rejected
            AdjustStockRequest(inventory_id=self.item.id, adjustment=2, transaction_type="return"),
            DispenseRequest(inventory_id=self.item.id, quantity=14),
        ]

        successes = 0
        for op in operations:
            try:
                if isinstance(op, DispenseRequest):
                    self.service.dispense(op)
                else:
                    self.service.adjust_stock(op)
                successes += 1
            except InsufficientStockError:
                pass
            self.assertGreaterEqual(self._on_hand(self.item.id), 0)

        on_hand = self._on_hand(self.item.id)
        self.assertEqual(on_hand, 100)
        self.assertEqual(self.ledger.net_change(self.item.id), on_hand - initial)
        self.assertEqual(self.ledger.count(self.item.id), successes)

    def test_persistence_failure_rolls_back_stock_change(self):
        service = StockService(db.session, ledger=FailingLedger(db.session))

        with self.assertRaises(InternalFailure):
            service.adjust_stock(AdjustStockRequest(inventory_id=self.item.id, adjustment=-10))
        with self.assertRaises(InternalFailure):
            service.dispense(DispenseRequest(inventory_id=self.item.id, quantity=10))

        self.assertEqual(self._on_hand(self.item.id), 100)
        self.assertEqual(self.ledger.count(self.item.id), 0)


class ConcurrentWriterTests(unittest.TestCase):
    """
    Two sessions on a file-backed database, each holding its own copy of the
    item, race to dispense the whole stock. SQLite ignores FOR UPDATE, so the
    version_id check is what stops the second write.
    """

    @classmethod
    def setUpClass(cls):
        cls.tmpdir = tempfile.mkdtemp(prefix="emr-pharmacy-")
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///" + os.path.join(cls.tmpdir, "pharmacy.db"),
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": True,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        db.engine.dispose()
        cls.ctx.pop()
        shutil.rmtree(cls.tmpdir, ignore_errors=True)

    def setUp(self):
        db.session.query(InventoryTransaction).delete()
        db.session.query(InventoryItem).delete()
        db.session.commit()

        item = InventoryItem(
            medication_name="Metformin 500mg",
            category="Antidiabetic",
            unit="tablet",
            quantity_on_hand=5,
            reorder_level=10,
            selling_price=Decimal("0.40"),
        )
        db.session.add(item)
        db.session.commit()
        self.item_id = item.id

        make_session = sessionmaker(bind=db.engine)
        self.first = make_session()
        self.second = make_session()

    def tearDown(self):
        self.first.close()
        self.second.close()

    def test_second_writer_on_stale_copy_conflicts(self):
        self.assertEqual(self.first.get(InventoryItem, self.item_id).quantity_on_hand, 5)
        self.assertEqual(self.second.get(InventoryItem, self.item_id).quantity_on_hand, 5)

        result = StockService(self.first).dispense(DispenseRequest(inventory_id=self.item_id, quantity=5))
        self.assertEqual(result.remaining_stock, 0)

        with self.assertRaises(ConflictError):
            StockService(self.second).dispense(DispenseRequest(inventory_id=self.item_id, quantity=5))

        db.session.expire_all()
        self.assertEqual(db.session.get(InventoryItem, self.item_id).quantity_on_hand, 0)
        self.assertEqual(TransactionLedger(db.session).count(self.item_id), 1)

    def test_loser_can_retry_with_fresh_read(self):
        self.second.get(InventoryItem, self.item_id)
        StockService(self.first).dispense(DispenseRequest(inventory_id=self.item_id, quantity=2))

        with self.assertRaises(ConflictError):
            StockService(self.second).dispense(DispenseRequest(inventory_id=self.item_id, quantity=2))

        # rollback expired the stale copy; the retry sees the committed stock
        retry = StockService(self.second).dispense(DispenseRequest(inventory_id=self.item_id, quantity=2))
        self.assertEqual(retry.remaining_stock, 1)
        self.assertEqual(TransactionLedger(self.second).net_change(self.item_id), -4)


if __name__ == "__main__":
    unittest.main()

from __future__ import annotations

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z, to_iso_date


# Mirrors the CHECK constraint on inventory_transactions.transaction_type
TRANSACTION_TYPES = ("purchase", "dispense", "adjustment", "return", "expired", "transfer")


class InventoryItem(db.Model):
    """
    Pharmacy stock record.

    quantity_on_hand is a stored counter, but it only ever moves through the
    stock engine, which writes exactly one InventoryTransaction per change in
    the same DB transaction. Administrative edits never touch it.

    Items are never deleted; is_active=False is the soft delete.
    """
    __tablename__ = "pharmacy_inventory"
    __table_args__ = (
        db.CheckConstraint("quantity_on_hand >= 0", name="ck_pharmacy_inventory_qoh_non_negative"),
        db.CheckConstraint("unit_cost >= 0", name="ck_pharmacy_inventory_unit_cost_non_negative"),
        db.CheckConstraint("selling_price >= 0", name="ck_pharmacy_inventory_selling_price_non_negative"),
        db.Index("ix_pharmacy_inventory_medication_name", "medication_name"),
        db.Index("ix_pharmacy_inventory_category", "category"),
        db.Index("ix_pharmacy_inventory_expiry", "expiry_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    medication_name = db.Column(db.String(255), nullable=False)
    generic_name = db.Column(db.String(255), nullable=True)
    category = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(50), nullable=False, default="unit")

    quantity_on_hand = db.Column(db.Integer, nullable=False, default=0)
    reorder_level = db.Column(db.Integer, nullable=False, default=10)

    unit_cost = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    selling_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    expiry_date = db.Column(db.Date, nullable=True)
    supplier = db.Column(db.String(255), nullable=True)
    location = db.Column(db.String(100), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    requires_prescription = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryItem id={self.id} medication_name={self.medication_name!r} "
            f"quantity_on_hand={self.quantity_on_hand}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "medication_name": self.medication_name,
            "generic_name": self.generic_name,
            "category": self.category,
            "unit": self.unit,
            "quantity_on_hand": self.quantity_on_hand,
            "reorder_level": self.reorder_level,
            "unit_cost": format_money(self.unit_cost),
            "selling_price": format_money(self.selling_price),
            "expiry_date": to_iso_date(self.expiry_date),
            "supplier": self.supplier,
            "location": self.location,
            "is_active": self.is_active,
            "requires_prescription": self.requires_prescription,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """
    Append-only stock movement ledger.

    quantity is signed: positive for stock in, negative for stock out.
    Rows are written by the ledger service only and are never updated or deleted.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "transaction_type IN ('purchase', 'dispense', 'adjustment', 'return', 'expired', 'transfer')",
            name="ck_inventory_transactions_type",
        ),
        db.CheckConstraint("quantity <> 0", name="ck_inventory_transactions_quantity_non_zero"),
        db.Index("ix_invtx_inventory_created", "inventory_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    inventory_id = db.Column(db.Integer, db.ForeignKey("pharmacy_inventory.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(50), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    reference_type = db.Column(db.String(50), nullable=True)
    reference_id = db.Column(db.Integer, nullable=True)

    notes = db.Column(db.Text, nullable=True)
    performed_by = db.Column(db.Integer, nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "transaction_type": self.transaction_type,
            "quantity": self.quantity,
            "reference_type": self.reference_type,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "performed_by": self.performed_by,
            "created_at": to_utc_z(self.created_at),
        }

from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


ORDER_STATUSES = ("ordered", "approved", "dispensed", "completed", "cancelled")

# An order can only be filled from these states
DISPENSABLE_STATUSES = ("ordered", "approved")


class PharmacyOrder(db.Model):
    """Medication order placed by a provider and filled by the pharmacy."""
    __tablename__ = "pharmacy_orders"
    __table_args__ = (
        db.CheckConstraint(
            "status IN ('ordered', 'approved', 'dispensed', 'completed', 'cancelled')",
            name="ck_pharmacy_orders_status",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    patient_id = db.Column(db.Integer, nullable=False, index=True)
    medication_name = db.Column(db.String(200), nullable=False)
    quantity = db.Column(db.String(50), nullable=True)
    status = db.Column(db.String(20), nullable=False, default="ordered", index=True)

    ordered_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    dispensed_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "patient_id": self.patient_id,
            "medication_name": self.medication_name,
            "quantity": self.quantity,
            "status": self.status,
            "ordered_date": to_utc_z(self.ordered_date),
            "dispensed_date": to_utc_z(self.dispensed_date),
            "notes": self.notes,
        }

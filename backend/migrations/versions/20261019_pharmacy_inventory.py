"""Pharmacy inventory, transaction ledger, payer pricing rules and orders

Revision ID: 20261019_pharmacy_inventory
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_pharmacy_inventory"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "pharmacy_inventory",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("medication_name", sa.String(255), nullable=False),
        sa.Column("generic_name", sa.String(255), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("unit", sa.String(50), nullable=False, server_default="unit"),
        sa.Column("quantity_on_hand", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("unit_cost", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("selling_price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("supplier", sa.String(255), nullable=True),
        sa.Column("location", sa.String(100), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("requires_prescription", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity_on_hand >= 0", name="ck_pharmacy_inventory_qoh_non_negative"),
        sa.CheckConstraint("unit_cost >= 0", name="ck_pharmacy_inventory_unit_cost_non_negative"),
        sa.CheckConstraint("selling_price >= 0", name="ck_pharmacy_inventory_selling_price_non_negative"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("pharmacy_inventory", schema=None) as batch_op:
        batch_op.create_index("ix_pharmacy_inventory_medication_name", ["medication_name"], unique=False)
        batch_op.create_index("ix_pharmacy_inventory_category", ["category"], unique=False)
        batch_op.create_index("ix_pharmacy_inventory_expiry", ["expiry_date"], unique=False)

    op.create_table(
        "inventory_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("inventory_id", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(50), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reference_type", sa.String(50), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint(
            "transaction_type IN ('purchase', 'dispense', 'adjustment', 'return', 'expired', 'transfer')",
            name="ck_inventory_transactions_type",
        ),
        sa.CheckConstraint("quantity <> 0", name="ck_inventory_transactions_quantity_non_zero"),
        sa.ForeignKeyConstraint(["inventory_id"], ["pharmacy_inventory.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_transactions_inventory_id", ["inventory_id"], unique=False)
        batch_op.create_index("ix_inventory_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_invtx_inventory_created", ["inventory_id", "created_at"], unique=False)

    op.create_table(
        "payer_pricing_rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("payer_type", sa.String(20), nullable=False),
        sa.Column("payer_id", sa.Integer(), nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("markup_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint(
            "payer_type IN ('self_pay', 'corporate', 'insurance')",
            name="ck_payer_pricing_rules_payer_type",
        ),
        sa.CheckConstraint(
            "markup_percentage >= 0",
            name="ck_payer_pricing_rules_markup_nonnegative",
        ),
        sa.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_payer_pricing_rules_discount_range",
        ),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("payer_pricing_rules", schema=None) as batch_op:
        batch_op.create_index("ix_payer_pricing_rules_type", ["payer_type"], unique=False)

    op.create_table(
        "pharmacy_orders",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("patient_id", sa.Integer(), nullable=False),
        sa.Column("medication_name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="ordered"),
        sa.Column("ordered_date", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("dispensed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint(
            "status IN ('ordered', 'approved', 'dispensed', 'completed', 'cancelled')",
            name="ck_pharmacy_orders_status",
        ),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("pharmacy_orders", schema=None) as batch_op:
        batch_op.create_index("ix_pharmacy_orders_patient_id", ["patient_id"], unique=False)
        batch_op.create_index("ix_pharmacy_orders_status", ["status"], unique=False)


def downgrade():
    with op.batch_alter_table("pharmacy_orders", schema=None) as batch_op:
        batch_op.drop_index("ix_pharmacy_orders_status")
        batch_op.drop_index("ix_pharmacy_orders_patient_id")
    op.drop_table("pharmacy_orders")

    with op.batch_alter_table("payer_pricing_rules", schema=None) as batch_op:
        batch_op.drop_index("ix_payer_pricing_rules_type")
    op.drop_table("payer_pricing_rules")

    with op.batch_alter_table("inventory_transactions", schema=None) as batch_op:
        batch_op.drop_index("ix_invtx_inventory_created")
        batch_op.drop_index("ix_inventory_transactions_transaction_type")
        batch_op.drop_index("ix_inventory_transactions_inventory_id")
    op.drop_table("inventory_transactions")

    with op.batch_alter_table("pharmacy_inventory", schema=None) as batch_op:
        batch_op.drop_index("ix_pharmacy_inventory_expiry")
        batch_op.drop_index("ix_pharmacy_inventory_category")
        batch_op.drop_index("ix_pharmacy_inventory_medication_name")
    op.drop_table("pharmacy_inventory")

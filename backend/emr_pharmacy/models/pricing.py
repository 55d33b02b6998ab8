from __future__ import annotations

from ..extensions import db
from ..money import format_money
from ..time_utils import to_utc_z


PAYER_TYPES = ("self_pay", "corporate", "insurance")


class PayerPricingRule(db.Model):
    """
    Markup/discount percentages for a payer.

    payer_id NULL is the default rule for the payer type; a non-null payer_id
    scopes the rule to one corporate client or insurance provider.
    category NULL applies to every medication category.

    At most one ACTIVE rule may exist per (payer_type, payer_id, category).
    NULLs never collide in a SQL unique index, so the pricing service enforces
    this when rules are created or edited.
    """
    __tablename__ = "payer_pricing_rules"
    __table_args__ = (
        db.CheckConstraint(
            "payer_type IN ('self_pay', 'corporate', 'insurance')",
            name="ck_payer_pricing_rules_payer_type",
        ),
        db.CheckConstraint(
            "markup_percentage >= 0",
            name="ck_payer_pricing_rules_markup_nonnegative",
        ),
        db.CheckConstraint(
            "discount_percentage >= 0 AND discount_percentage <= 100",
            name="ck_payer_pricing_rules_discount_range",
        ),
        db.Index("ix_payer_pricing_rules_type", "payer_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    payer_type = db.Column(db.String(20), nullable=False)
    payer_id = db.Column(db.Integer, nullable=True)
    category = db.Column(db.String(100), nullable=True)

    markup_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)
    discount_percentage = db.Column(db.Numeric(5, 2), nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return (
            f"<PayerPricingRule id={self.id} payer_type={self.payer_type!r} "
            f"payer_id={self.payer_id} category={self.category!r}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "payer_type": self.payer_type,
            "payer_id": self.payer_id,
            "category": self.category,
            "markup_percentage": format_money(self.markup_percentage),
            "discount_percentage": format_money(self.discount_percentage),
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

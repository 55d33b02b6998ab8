# Overview: Payer pricing rule set and the price calculator built on it.

from __future__ import annotations

from sqlalchemy import case, or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models import InventoryItem, PayerPricingRule, PAYER_TYPES
from ..money import HUNDRED, ZERO, quantize_cents
from ..schemas import PriceQuote, PriceRequest
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_pricing_rule,
)
from .concurrency import atomic
"""
Pricing semantics (authoritative)

Rule resolution for (payer_type, payer_id, item category):
- candidates: active rules for payer_type whose payer_id is NULL or equals
  payer_id, and whose category is NULL or equals the item's category
- precedence: specific payer_id before the payer-type default (payer_id DESC
  NULLS LAST), then category-scoped before category-wide, then lowest id
- no candidate, or no payer_type at all: markup 0, discount 0

Computation (Decimal, each amount rounded to cents half-up):
    subtotal        = base_price * quantity
    markup_amount   = subtotal * markup_percentage / 100
    discount_amount = subtotal * discount_percentage / 100
    final_price     = subtotal + markup_amount - discount_amount
"""


PRICING_RULE_POLICY = ModelValidationPolicy(
    writable_fields={"payer_type", "payer_id", "category", "markup_percentage", "discount_percentage", "is_active"},
    required_on_create={"payer_type"},
)


class PricingService:
    def __init__(self, session):
        self.session = session

    # -- rule set --

    def get_rule(self, rule_id: int) -> PayerPricingRule:
        rule = self.session.get(PayerPricingRule, rule_id)
        if rule is None:
            raise NotFoundError("Pricing rule not found")
        return rule

    def list_rules(self, *, payer_type: str | None = None, include_inactive: bool = False) -> list[PayerPricingRule]:
        filters = []
        if not include_inactive:
            filters.append(PayerPricingRule.is_active.is_(True))
        if payer_type is not None:
            if payer_type not in PAYER_TYPES:
                raise ValidationError(f"payer_type must be one of: {', '.join(PAYER_TYPES)}")
            filters.append(PayerPricingRule.payer_type == payer_type)

        return self.session.query(PayerPricingRule).filter(*filters).order_by(
            PayerPricingRule.payer_type.asc(),
            PayerPricingRule.category.asc(),
            PayerPricingRule.payer_id.asc(),
            PayerPricingRule.id.asc(),
        ).all()

    def _ensure_unique_active(self, rule: PayerPricingRule) -> None:
        if not rule.is_active:
            return
        q = self.session.query(PayerPricingRule).filter(
            PayerPricingRule.is_active.is_(True),
            PayerPricingRule.payer_type == rule.payer_type,
            PayerPricingRule.payer_id.is_(None) if rule.payer_id is None else PayerPricingRule.payer_id == rule.payer_id,
            PayerPricingRule.category.is_(None) if rule.category is None else PayerPricingRule.category == rule.category,
        )
        if rule.id is not None:
            q = q.filter(PayerPricingRule.id != rule.id)
        if q.first() is not None:
            raise ConflictError("an active pricing rule already exists for this payer and category")

    def create_rule(self, payload: dict) -> PayerPricingRule:
        patch = validate_payload(
            model=PayerPricingRule,
            payload=payload,
            policy=PRICING_RULE_POLICY,
            partial=False,
        )
        enforce_rules_pricing_rule(patch)
        patch.setdefault("is_active", True)

        with atomic(self.session):
            rule = PayerPricingRule(**patch)
            self._ensure_unique_active(rule)
            self.session.add(rule)
            self.session.flush()
        return rule

    def update_rule(self, rule_id: int, payload: dict) -> PayerPricingRule:
        patch = validate_payload(
            model=PayerPricingRule,
            payload=payload,
            policy=PRICING_RULE_POLICY,
            partial=True,
        )

        with atomic(self.session):
            rule = self.get_rule(rule_id)
            merged = {
                "payer_type": rule.payer_type,
                "payer_id": rule.payer_id,
                "category": rule.category,
                "markup_percentage": rule.markup_percentage,
                "discount_percentage": rule.discount_percentage,
            }
            merged.update(patch)
            enforce_rules_pricing_rule(merged)

            for key, value in patch.items():
                setattr(rule, key, value)
            self._ensure_unique_active(rule)
        return rule

    def deactivate_rule(self, rule_id: int) -> PayerPricingRule:
        with atomic(self.session):
            rule = self.get_rule(rule_id)
            rule.is_active = False
        return rule

    def resolve_rule(
        self,
        payer_type: str | None,
        payer_id: int | None = None,
        category: str | None = None,
    ) -> PayerPricingRule | None:
        if not payer_type:
            return None

        payer_match = PayerPricingRule.payer_id.is_(None)
        if payer_id is not None:
            payer_match = or_(payer_match, PayerPricingRule.payer_id == payer_id)

        category_match = PayerPricingRule.category.is_(None)
        if category is not None:
            category_match = or_(category_match, PayerPricingRule.category == category)

        return self.session.query(PayerPricingRule).filter(
            PayerPricingRule.payer_type == payer_type,
            PayerPricingRule.is_active.is_(True),
            payer_match,
            category_match,
        ).order_by(
            PayerPricingRule.payer_id.desc().nulls_last(),
            case((PayerPricingRule.category.is_(None), 1), else_=0).asc(),
            PayerPricingRule.id.asc(),
        ).first()

    # -- calculator --

    def calculate_price(self, request: PriceRequest) -> PriceQuote:
        item = self.session.get(InventoryItem, request.inventory_id)
        if item is None or not item.is_active:
            raise NotFoundError("Item not found")

        rule = self.resolve_rule(request.payer_type, request.payer_id, item.category)
        markup = rule.markup_percentage if rule is not None else ZERO
        discount = rule.discount_percentage if rule is not None else ZERO

        base_price = quantize_cents(item.selling_price)
        subtotal = quantize_cents(base_price * request.quantity)
        markup_amount = quantize_cents(subtotal * markup / HUNDRED)
        discount_amount = quantize_cents(subtotal * discount / HUNDRED)
        final_price = subtotal + markup_amount - discount_amount

        return PriceQuote(
            base_price=base_price,
            quantity=request.quantity,
            subtotal=subtotal,
            markup_percentage=quantize_cents(markup),
            markup_amount=markup_amount,
            discount_percentage=quantize_cents(discount),
            discount_amount=discount_amount,
            final_price=final_price,
            pricing_rule_id=rule.id if rule is not None else None,
        )

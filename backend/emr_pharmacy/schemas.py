# Overview: Typed request and result structures for the stock engine and pricing calculator.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from .errors import ValidationError
from .models import PAYER_TYPES, TRANSACTION_TYPES
from .money import format_money


# Transaction types whose sign is fixed by their meaning
POSITIVE_ONLY_TYPES = {"purchase"}
NEGATIVE_ONLY_TYPES = {"dispense", "expired"}


def coerce_int(value: Any, field: str, *, required: bool = True) -> Optional[int]:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings; rejects bools, floats, decimals and
    scientific notation so "2.5" tablets never silently become 2.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def _coerce_text(value: Any, field: str, *, max_length: int | None = None) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    text = value.strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def _require_mapping(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


@dataclass(frozen=True)
class AdjustStockRequest:
    inventory_id: int
    adjustment: int
    transaction_type: str = "adjustment"
    notes: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[int] = None
    performed_by: Optional[int] = None

    def __post_init__(self):
        if self.adjustment == 0:
            raise ValidationError("Adjustment quantity is required and must be non-zero")
        if self.transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(
                f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}"
            )
        if self.transaction_type in POSITIVE_ONLY_TYPES and self.adjustment < 0:
            raise ValidationError(f"{self.transaction_type} adjustments must be positive")
        if self.transaction_type in NEGATIVE_ONLY_TYPES and self.adjustment > 0:
            raise ValidationError(f"{self.transaction_type} adjustments must be negative")

    @classmethod
    def from_payload(
        cls,
        payload: Any,
        *,
        inventory_id: int | None = None,
        performed_by: int | None = None,
    ) -> "AdjustStockRequest":
        data = _require_mapping(payload)
        if inventory_id is None:
            inventory_id = coerce_int(data.get("inventory_id"), "inventory_id")
        return cls(
            inventory_id=inventory_id,
            adjustment=coerce_int(data.get("adjustment"), "adjustment"),
            transaction_type=_coerce_text(data.get("transaction_type"), "transaction_type") or "adjustment",
            notes=_coerce_text(data.get("notes"), "notes"),
            reference_type=_coerce_text(data.get("reference_type"), "reference_type", max_length=50),
            reference_id=coerce_int(data.get("reference_id"), "reference_id", required=False),
            performed_by=performed_by,
        )


@dataclass(frozen=True)
class DispenseRequest:
    inventory_id: int
    quantity: int
    pharmacy_order_id: Optional[int] = None
    patient_id: Optional[int] = None
    notes: Optional[str] = None
    performed_by: Optional[int] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValidationError("quantity must be greater than zero")

    @classmethod
    def from_payload(cls, payload: Any, *, performed_by: int | None = None) -> "DispenseRequest":
        data = _require_mapping(payload)
        if data.get("inventory_id") is None or data.get("quantity") is None:
            raise ValidationError("Inventory ID and quantity are required")
        return cls(
            inventory_id=coerce_int(data.get("inventory_id"), "inventory_id"),
            quantity=coerce_int(data.get("quantity"), "quantity"),
            pharmacy_order_id=coerce_int(data.get("pharmacy_order_id"), "pharmacy_order_id", required=False),
            patient_id=coerce_int(data.get("patient_id"), "patient_id", required=False),
            notes=_coerce_text(data.get("notes"), "notes"),
            performed_by=performed_by,
        )


@dataclass(frozen=True)
class PriceRequest:
    inventory_id: int
    quantity: int = 1
    payer_type: Optional[str] = None
    payer_id: Optional[int] = None

    def __post_init__(self):
        if self.quantity <= 0:
            raise ValidationError("quantity must be greater than zero")
        if self.payer_type is not None and self.payer_type not in PAYER_TYPES:
            raise ValidationError(f"payer_type must be one of: {', '.join(PAYER_TYPES)}")

    @classmethod
    def from_payload(cls, payload: Any) -> "PriceRequest":
        data = _require_mapping(payload)
        quantity = coerce_int(data.get("quantity"), "quantity", required=False)
        payer_type = _coerce_text(data.get("payer_type"), "payer_type")
        payer_id = coerce_int(data.get("payer_id"), "payer_id", required=False)
        # payer_id only identifies corporate clients and insurance providers
        if payer_type in (None, "self_pay"):
            payer_id = None
        return cls(
            inventory_id=coerce_int(data.get("inventory_id"), "inventory_id"),
            quantity=1 if quantity is None else quantity,
            payer_type=payer_type,
            payer_id=payer_id,
        )


@dataclass(frozen=True)
class PriceQuote:
    base_price: Decimal
    quantity: int
    subtotal: Decimal
    markup_percentage: Decimal
    markup_amount: Decimal
    discount_percentage: Decimal
    discount_amount: Decimal
    final_price: Decimal
    pricing_rule_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "base_price": format_money(self.base_price),
            "quantity": self.quantity,
            "subtotal": format_money(self.subtotal),
            "markup_percentage": format_money(self.markup_percentage),
            "markup_amount": format_money(self.markup_amount),
            "discount_percentage": format_money(self.discount_percentage),
            "discount_amount": format_money(self.discount_amount),
            "final_price": format_money(self.final_price),
            "pricing_rule_id": self.pricing_rule_id,
        }


@dataclass(frozen=True)
class DispenseResult:
    inventory_id: int
    medication: str
    quantity: int
    remaining_stock: int
    transaction_id: int
    pharmacy_order_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "inventory_id": self.inventory_id,
            "medication": self.medication,
            "quantity": self.quantity,
            "remaining_stock": self.remaining_stock,
            "transaction_id": self.transaction_id,
            "pharmacy_order_id": self.pharmacy_order_id,
        }

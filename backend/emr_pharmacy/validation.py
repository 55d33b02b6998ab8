from __future__ import annotations
from datetime import date, datetime

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Date, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .schemas import coerce_int
from .models import PAYER_TYPES
from .money import HUNDRED, ZERO, to_decimal
from .time_utils import parse_iso_date


# Maximum price: 99,999,999.99 fits Numeric(10, 2)
MAX_PRICE = Decimal("99999999.99")

# Maximum markup: 999.99 fits Numeric(5, 2)
MAX_MARKUP = Decimal("999.99")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict: no bools, floats, decimals or scientific notation
    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # Money and percentages never pass through binary float
    if isinstance(coltype, Numeric):
        number = to_decimal(value, field=col.key)
        scale = coltype.scale if coltype.scale is not None else 2
        if -number.as_tuple().exponent > scale:
            raise ValidationError(f"{col.key} allows at most {scale} decimal places")
        return number

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Dates (accept YYYY-MM-DD)
    if isinstance(coltype, Date):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                parsed = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            if parsed is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date (YYYY-MM-DD)")
            return parsed
        raise ValidationError(f"{col.key} must be a date")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Blank optional strings are stored as NULL
        if isinstance(col.type, (String, Text)) and col.nullable and val == "":
            val = None

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_money(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        if patch[field] < ZERO:
            raise ValidationError(f"{field} must be >= 0")
        if patch[field] > MAX_PRICE:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE}")


def enforce_rules_inventory_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_money(patch, "unit_cost")
    _check_money(patch, "selling_price")

    if "quantity_on_hand" in patch and patch["quantity_on_hand"] is not None:
        if patch["quantity_on_hand"] < 0:
            raise ValidationError("quantity_on_hand must be >= 0")

    if "reorder_level" in patch and patch["reorder_level"] is not None:
        if patch["reorder_level"] < 0:
            raise ValidationError("reorder_level must be >= 0")


def enforce_rules_pricing_rule(patch: dict) -> None:
    # self_pay has no payer entity; payer_id only names a corporate client or insurer
    payer_type = patch.get("payer_type")
    if payer_type is not None:
        if payer_type not in PAYER_TYPES:
            raise ValidationError(f"payer_type must be one of: {', '.join(PAYER_TYPES)}")
        if payer_type == "self_pay" and patch.get("payer_id") is not None:
            raise ValidationError("payer_id must be omitted for self_pay rules")

    if patch.get("payer_id") is not None and patch["payer_id"] <= 0:
        raise ValidationError("payer_id must be a positive integer")

    markup = patch.get("markup_percentage")
    if markup is not None and (markup < ZERO or markup > MAX_MARKUP):
        raise ValidationError(f"markup_percentage must be between 0 and {MAX_MARKUP}")

    # discount above 100 would drive final_price negative
    discount = patch.get("discount_percentage")
    if discount is not None and (discount < ZERO or discount > HUNDRED):
        raise ValidationError("discount_percentage must be between 0 and 100")

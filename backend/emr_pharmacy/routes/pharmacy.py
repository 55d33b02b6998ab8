# backend/emr_pharmacy/routes/pharmacy.py
"""
Pharmacy inventory, dispensing and payer pricing routes.

SECURITY: All routes require authentication.
- View operations require VIEW_INVENTORY permission
- Item create/update/deactivate require MANAGE_INVENTORY permission
- Stock adjustments require ADJUST_INVENTORY permission
- Dispensing requires DISPENSE_MEDICATION permission
- Reports require VIEW_INVENTORY permission
- Price quotes and rule listing require VIEW_PRICING permission
- Rule changes require MANAGE_PRICING permission

Error semantics:
- Every service error carries its own status and stable code:
  400 invalid_argument, 404 not_found, 409 insufficient_stock / conflict,
  500 internal_failure. Bodies are {"error": ..., "code": ...}.
- Money and percentages are rendered as 2-decimal strings.
"""
from flask import Blueprint, current_app, g, request

from ..errors import InternalFailure, PharmacyError, ValidationError
from ..extensions import db
from ..schemas import AdjustStockRequest, DispenseRequest, PriceRequest
from ..services.inventory_service import InventoryFilter, InventoryService
from ..services.pricing_service import PricingService
from ..services.report_service import ReportService
from ..services.stock_service import StockService
from ..decorators import require_auth, require_permission
from ..time_utils import parse_iso_date


pharmacy_bp = Blueprint("pharmacy", __name__, url_prefix="/api/pharmacy")


def _inventory_service() -> InventoryService:
    return InventoryService(
        db.session,
        expiry_warning_days=current_app.config["EXPIRY_WARNING_DAYS"],
        default_reorder_level=current_app.config["DEFAULT_REORDER_LEVEL"],
        default_location=current_app.config["DEFAULT_LOCATION"],
    )


def _error_response(e: PharmacyError):
    if isinstance(e, InternalFailure):
        current_app.logger.exception("Pharmacy request failed: %s %s", request.method, request.path)
    return e.to_dict(), e.status_code


def _flag(name: str) -> bool:
    return (request.args.get(name) or "").strip().lower() == "true"


def _int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _date_arg(name: str):
    try:
        return parse_iso_date(request.args.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be a date (YYYY-MM-DD)")


def _current_user_id() -> int:
    return g.current_user.user_id


# -- inventory store --

@pharmacy_bp.get("/inventory")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_inventory_route():
    """
    List inventory items with alert flags plus store-wide stats.

    Query params: category, search, low_stock=true, expiring_soon=true,
    include_inactive=true.
    """
    filters = InventoryFilter(
        category=(request.args.get("category") or "").strip() or None,
        search=(request.args.get("search") or "").strip() or None,
        low_stock=_flag("low_stock"),
        expiring_soon=_flag("expiring_soon"),
        include_inactive=_flag("include_inactive"),
    )

    service = _inventory_service()
    try:
        items = service.list_items(filters)
        stats = service.stats()
    except PharmacyError as e:
        return _error_response(e)

    return {"inventory": items, "stats": stats}, 200


@pharmacy_bp.post("/inventory")
@require_auth
@require_permission("MANAGE_INVENTORY")
def create_inventory_item_route():
    """
    Create an inventory item.

    An opening quantity_on_hand is recorded as a 'purchase' ledger row.
    """
    payload = request.get_json(silent=True) or {}

    try:
        item = _inventory_service().create_item(payload, performed_by=_current_user_id())
    except PharmacyError as e:
        return _error_response(e)

    current_app.logger.info(
        "Inventory item created: id=%s name=%s opening_quantity=%s user=%s",
        item.id, item.medication_name, item.quantity_on_hand, _current_user_id(),
    )
    return {"item": item.to_dict()}, 201


@pharmacy_bp.get("/inventory/categories")
@require_auth
@require_permission("VIEW_INVENTORY")
def inventory_categories_route():
    try:
        categories = _inventory_service().categories()
    except PharmacyError as e:
        return _error_response(e)
    return {"categories": categories}, 200


@pharmacy_bp.get("/inventory/<int:inventory_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_inventory_item_route(inventory_id: int):
    """Item detail with its most recent ledger rows and ledger totals."""
    try:
        service = _inventory_service()
        item, history = service.get_item_with_history(
            inventory_id,
            limit=current_app.config["TRANSACTION_HISTORY_LIMIT"],
        )
        ledger = service.ledger_summary(item.id)
    except PharmacyError as e:
        return _error_response(e)

    return {
        "item": item.to_dict(),
        "transactions": [tx.to_dict() for tx in history],
        "ledger": ledger,
    }, 200


@pharmacy_bp.patch("/inventory/<int:inventory_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_inventory_item_route(inventory_id: int):
    """
    Update item attributes.

    quantity_on_hand is not writable here; use /adjust or /dispense.
    """
    payload = request.get_json(silent=True) or {}

    try:
        item = _inventory_service().update_item(inventory_id, payload)
    except PharmacyError as e:
        return _error_response(e)

    return {"item": item.to_dict()}, 200


@pharmacy_bp.delete("/inventory/<int:inventory_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def deactivate_inventory_item_route(inventory_id: int):
    """Soft delete: the item and its ledger stay on record."""
    try:
        item = _inventory_service().deactivate_item(inventory_id)
    except PharmacyError as e:
        return _error_response(e)

    return {"message": "Inventory item deactivated", "item": item.to_dict()}, 200


@pharmacy_bp.get("/inventory/<int:inventory_id>/transactions")
@require_auth
@require_permission("VIEW_INVENTORY")
def inventory_transactions_route(inventory_id: int):
    try:
        limit = _int_arg("limit")
        if limit is not None and limit <= 0:
            raise ValidationError("limit must be greater than zero")
        rows = _inventory_service().list_transactions(inventory_id, limit=limit or 200)
    except PharmacyError as e:
        return _error_response(e)

    return {"transactions": [tx.to_dict() for tx in rows]}, 200


# -- stock engine --

@pharmacy_bp.post("/inventory/<int:inventory_id>/adjust")
@require_auth
@require_permission("ADJUST_INVENTORY")
def adjust_stock_route(inventory_id: int):
    """
    Apply a signed stock adjustment.

    Body: {"adjustment": int != 0, "transaction_type"?: str, "notes"?: str,
           "reference_type"?: str, "reference_id"?: int}
    """
    payload = request.get_json(silent=True) or {}

    try:
        adjust_request = AdjustStockRequest.from_payload(
            payload,
            inventory_id=inventory_id,
            performed_by=_current_user_id(),
        )
        item = StockService(db.session).adjust_stock(adjust_request)
    except PharmacyError as e:
        return _error_response(e)

    current_app.logger.info(
        "Stock adjusted: inventory_id=%s type=%s delta=%s on_hand=%s user=%s",
        inventory_id, adjust_request.transaction_type, adjust_request.adjustment,
        item.quantity_on_hand, adjust_request.performed_by,
    )
    return {"item": item.to_dict()}, 200


@pharmacy_bp.post("/dispense")
@require_auth
@require_permission("DISPENSE_MEDICATION")
def dispense_route():
    """
    Dispense medication, optionally against a pharmacy order.

    Body: {"inventory_id": int, "quantity": int > 0, "pharmacy_order_id"?: int,
           "patient_id"?: int, "notes"?: str}
    """
    payload = request.get_json(silent=True) or {}

    try:
        dispense_request = DispenseRequest.from_payload(payload, performed_by=_current_user_id())
        result = StockService(db.session).dispense(dispense_request)
    except PharmacyError as e:
        return _error_response(e)

    current_app.logger.info(
        "Medication dispensed: inventory_id=%s quantity=%s remaining=%s order=%s user=%s",
        result.inventory_id, result.quantity, result.remaining_stock,
        result.pharmacy_order_id, dispense_request.performed_by,
    )
    return {"message": "Medication dispensed successfully", "dispensed": result.to_dict()}, 200


# -- alerts --

@pharmacy_bp.get("/alerts/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_alerts_route():
    try:
        items = _inventory_service().low_stock_alerts()
    except PharmacyError as e:
        return _error_response(e)
    return {"alerts": [item.to_dict() for item in items]}, 200


@pharmacy_bp.get("/alerts/expiring")
@require_auth
@require_permission("VIEW_INVENTORY")
def expiring_alerts_route():
    """Items expiring within ?days= (default EXPIRY_WARNING_DAYS), soonest first."""
    try:
        days = _int_arg("days")
        if days is None:
            days = current_app.config["EXPIRY_WARNING_DAYS"]
        items = _inventory_service().expiring(days=days)
    except PharmacyError as e:
        return _error_response(e)
    return {"expiring": items, "days": days}, 200


# -- payer pricing --

@pharmacy_bp.get("/pricing/rules")
@require_auth
@require_permission("VIEW_PRICING")
def list_pricing_rules_route():
    payer_type = (request.args.get("payer_type") or "").strip() or None

    try:
        rules = PricingService(db.session).list_rules(
            payer_type=payer_type,
            include_inactive=_flag("include_inactive"),
        )
    except PharmacyError as e:
        return _error_response(e)
    return {"rules": [rule.to_dict() for rule in rules]}, 200


@pharmacy_bp.post("/pricing/rules")
@require_auth
@require_permission("MANAGE_PRICING")
def create_pricing_rule_route():
    payload = request.get_json(silent=True) or {}

    try:
        rule = PricingService(db.session).create_rule(payload)
    except PharmacyError as e:
        return _error_response(e)

    current_app.logger.info(
        "Pricing rule created: id=%s payer_type=%s payer_id=%s category=%s user=%s",
        rule.id, rule.payer_type, rule.payer_id, rule.category, _current_user_id(),
    )
    return {"rule": rule.to_dict()}, 201


@pharmacy_bp.patch("/pricing/rules/<int:rule_id>")
@require_auth
@require_permission("MANAGE_PRICING")
def update_pricing_rule_route(rule_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        rule = PricingService(db.session).update_rule(rule_id, payload)
    except PharmacyError as e:
        return _error_response(e)
    return {"rule": rule.to_dict()}, 200


@pharmacy_bp.delete("/pricing/rules/<int:rule_id>")
@require_auth
@require_permission("MANAGE_PRICING")
def deactivate_pricing_rule_route(rule_id: int):
    try:
        rule = PricingService(db.session).deactivate_rule(rule_id)
    except PharmacyError as e:
        return _error_response(e)
    return {"message": "Pricing rule deactivated", "rule": rule.to_dict()}, 200


@pharmacy_bp.post("/pricing/calculate")
@require_auth
@require_permission("VIEW_PRICING")
def calculate_price_route():
    """
    Quote a price for an item under a payer's pricing rule.

    Body: {"inventory_id": int, "quantity"?: int (default 1),
           "payer_type"?: "self_pay" | "corporate" | "insurance", "payer_id"?: int}
    """
    payload = request.get_json(silent=True) or {}

    try:
        quote = PricingService(db.session).calculate_price(PriceRequest.from_payload(payload))
    except PharmacyError as e:
        return _error_response(e)
    return quote.to_dict(), 200


# -- reports --

@pharmacy_bp.get("/reports/summary")
@require_auth
@require_permission("VIEW_INVENTORY")
def revenue_summary_route():
    """
    Order totals, top dispensed medications and daily dispensing revenue.

    Query params: start_date, end_date (YYYY-MM-DD, inclusive, both optional).
    """
    try:
        summary = ReportService(db.session).revenue_summary(
            start_date=_date_arg("start_date"),
            end_date=_date_arg("end_date"),
        )
    except PharmacyError as e:
        return _error_response(e)
    return summary, 200

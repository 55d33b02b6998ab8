# Overview: Flask CLI command groups for bootstrap, seeding and inspection.

# backend/emr_pharmacy/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Use: python -m flask --app emr_pharmacy <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask --app emr_pharmacy system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Pharmacy bootstrap/inspection:
# - python -m flask --app emr_pharmacy pharmacy seed
#   Idempotent: load the starter formulary (opening stock logged as purchases)
#   and the default payer rules (self_pay 0/0, corporate 10% off, insurance 15% off).
# - python -m flask --app emr_pharmacy pharmacy create-order --patient-id 7 --medication "Amoxicillin 500mg" --quantity 20
#   Create a pharmacy order so dispensing can be exercised end to end.
# - python -m flask --app emr_pharmacy pharmacy alerts
#   Print low-stock and expiring items.
#
# Auth helpers:
# - python -m flask --app emr_pharmacy auth issue-token --user-id 1 --role pharmacist
#   Print a signed bearer token for API testing.
# - python -m flask --app emr_pharmacy auth perms --role pharmacy_tech
#   List permissions grouped by category (optionally for a single role).
# - python -m flask --app emr_pharmacy auth check --role nurse --code DISPENSE_MEDICATION
#   Show whether a role is granted one permission.

import click
from flask import current_app
from flask.cli import with_appcontext

from .errors import PharmacyError
from .extensions import db
from .models import InventoryItem, PayerPricingRule, PharmacyOrder
from .permissions import (
    DEFAULT_ROLE_PERMISSIONS,
    PermissionCategory,
    get_permission_definition,
    get_permissions_by_category,
    get_role_permissions,
    role_has_permission,
)
from .services.auth_service import issue_token
from .services.inventory_service import InventoryService
from .services.pricing_service import PricingService


# (medication_name, generic_name, category, unit, opening stock, reorder_level, unit_cost, selling_price, expiry_date)
STARTER_FORMULARY = [
    ("Paracetamol 500mg", "Acetaminophen", "Analgesic", "tablet", 500, 50, "0.50", "1.00", "2026-12-31"),
    ("Ibuprofen 400mg", "Ibuprofen", "NSAID", "tablet", 300, 30, "0.80", "1.50", "2026-06-30"),
    ("Amoxicillin 500mg", "Amoxicillin", "Antibiotic", "capsule", 200, 20, "1.50", "3.00", "2025-12-31"),
    ("Ciprofloxacin 500mg", "Ciprofloxacin", "Antibiotic", "tablet", 150, 15, "2.00", "4.00", "2026-03-31"),
    ("Metformin 500mg", "Metformin", "Antidiabetic", "tablet", 400, 40, "0.40", "0.80", "2026-09-30"),
    ("Omeprazole 20mg", "Omeprazole", "PPI", "capsule", 250, 25, "1.00", "2.00", "2026-08-31"),
    ("Amlodipine 5mg", "Amlodipine", "Antihypertensive", "tablet", 300, 30, "0.60", "1.20", "2026-11-30"),
    ("Lisinopril 10mg", "Lisinopril", "ACE Inhibitor", "tablet", 200, 20, "0.70", "1.40", "2026-07-31"),
    ("Atorvastatin 20mg", "Atorvastatin", "Statin", "tablet", 250, 25, "1.20", "2.40", "2026-10-31"),
    ("Losartan 50mg", "Losartan", "ARB", "tablet", 180, 18, "0.90", "1.80", "2026-05-31"),
    ("Metronidazole 400mg", "Metronidazole", "Antibiotic", "tablet", 200, 20, "0.80", "1.60", "2026-04-30"),
    ("Azithromycin 500mg", "Azithromycin", "Antibiotic", "tablet", 100, 10, "3.00", "6.00", "2025-09-30"),
    ("Salbutamol Inhaler", "Salbutamol", "Bronchodilator", "inhaler", 50, 5, "8.00", "15.00", "2026-02-28"),
    ("Prednisolone 5mg", "Prednisolone", "Corticosteroid", "tablet", 300, 30, "0.30", "0.60", "2026-12-31"),
    ("Diazepam 5mg", "Diazepam", "Benzodiazepine", "tablet", 100, 10, "0.50", "1.00", "2026-01-31"),
    ("Tramadol 50mg", "Tramadol", "Analgesic", "capsule", 150, 15, "1.00", "2.00", "2026-06-30"),
    ("Cetirizine 10mg", "Cetirizine", "Antihistamine", "tablet", 400, 40, "0.20", "0.50", "2027-03-31"),
    ("Loratadine 10mg", "Loratadine", "Antihistamine", "tablet", 350, 35, "0.25", "0.60", "2027-01-31"),
    ("Vitamin C 500mg", "Ascorbic Acid", "Vitamin", "tablet", 500, 50, "0.10", "0.30", "2027-06-30"),
    ("Multivitamin", "Multivitamin Complex", "Vitamin", "tablet", 400, 40, "0.15", "0.40", "2027-04-30"),
    ("ORS Sachet", "Oral Rehydration Salts", "Electrolyte", "sachet", 300, 30, "0.30", "0.80", "2026-12-31"),
    ("Antacid Suspension", "Aluminium/Magnesium Hydroxide", "Antacid", "bottle", 100, 10, "3.00", "6.00", "2026-08-31"),
    ("Cough Syrup", "Dextromethorphan", "Antitussive", "bottle", 80, 8, "4.00", "8.00", "2026-05-31"),
    ("Eye Drops (Artificial Tears)", "Carboxymethylcellulose", "Ophthalmic", "bottle", 60, 6, "5.00", "10.00", "2026-03-31"),
    ("Hydrocortisone Cream 1%", "Hydrocortisone", "Topical Steroid", "tube", 75, 8, "3.50", "7.00", "2026-09-30"),
]

# (payer_type, markup_percentage, discount_percentage); payer-type defaults only
DEFAULT_PRICING_RULES = [
    ("self_pay", "0", "0"),
    ("corporate", "0", "10"),
    ("insurance", "0", "15"),
]


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask --app emr_pharmacy pharmacy seed' to load data.")


@click.group('pharmacy')
def pharmacy_group():
    """Pharmacy inventory and pricing commands."""


def seed_formulary(service: InventoryService) -> int:
    created = 0
    for name, generic, category, unit, qty, reorder, cost, price, expiry in STARTER_FORMULARY:
        exists = db.session.query(InventoryItem.id).filter(
            InventoryItem.medication_name == name
        ).first()
        if exists:
            continue
        service.create_item({
            "medication_name": name,
            "generic_name": generic,
            "category": category,
            "unit": unit,
            "quantity_on_hand": qty,
            "reorder_level": reorder,
            "unit_cost": cost,
            "selling_price": price,
            "expiry_date": expiry,
        })
        created += 1
    return created


def seed_pricing_rules(service: PricingService) -> int:
    created = 0
    for payer_type, markup, discount in DEFAULT_PRICING_RULES:
        exists = db.session.query(PayerPricingRule.id).filter(
            PayerPricingRule.payer_type == payer_type,
            PayerPricingRule.payer_id.is_(None),
            PayerPricingRule.category.is_(None),
            PayerPricingRule.is_active.is_(True),
        ).first()
        if exists:
            continue
        service.create_rule({
            "payer_type": payer_type,
            "markup_percentage": markup,
            "discount_percentage": discount,
        })
        created += 1
    return created


@pharmacy_group.command('seed')
@with_appcontext
def seed_cli():
    """Load the starter formulary and default payer pricing rules (idempotent)."""
    click.echo("START Seeding pharmacy data...")

    inventory = InventoryService(
        db.session,
        expiry_warning_days=current_app.config["EXPIRY_WARNING_DAYS"],
        default_reorder_level=current_app.config["DEFAULT_REORDER_LEVEL"],
        default_location=current_app.config["DEFAULT_LOCATION"],
    )
    try:
        item_count = seed_formulary(inventory)
        rule_count = seed_pricing_rules(PricingService(db.session))
    except PharmacyError as e:
        click.echo(f"FAIL Seeding stopped: {e}")
        raise SystemExit(1)

    click.echo(f"PASS Created {item_count} inventory items ({len(STARTER_FORMULARY) - item_count} already present)")
    click.echo(f"PASS Created {rule_count} pricing rules ({len(DEFAULT_PRICING_RULES) - rule_count} already present)")


@pharmacy_group.command('create-order')
@click.option('--patient-id', type=int, required=True)
@click.option('--medication', required=True, help='Medication name as prescribed')
@click.option('--quantity', default=None, help='Prescribed quantity (free text)')
@click.option('--status', type=click.Choice(["ordered", "approved"]), default="ordered")
@with_appcontext
def create_order_cli(patient_id, medication, quantity, status):
    """Create a pharmacy order (DEV/TEST helper; orders normally come from the EMR)."""
    order = PharmacyOrder(
        patient_id=patient_id,
        medication_name=medication,
        quantity=quantity,
        status=status,
    )
    db.session.add(order)
    db.session.commit()
    click.echo(f"PASS Created pharmacy order {order.id} for patient {patient_id}: {medication} ({status})")


@pharmacy_group.command('alerts')
@click.option('--days', type=int, default=None, help='Expiry look-ahead window in days')
@with_appcontext
def alerts_cli(days):
    """Print low-stock and expiring items."""
    service = InventoryService(
        db.session,
        expiry_warning_days=current_app.config["EXPIRY_WARNING_DAYS"],
    )

    low_stock = service.low_stock_alerts()
    click.echo(f"\n{'='*80}")
    click.echo("Low stock")
    click.echo(f"{'='*80}\n")
    click.echo(f"{'ID':<6} {'Medication':<35} {'On hand':>8} {'Reorder':>8}")
    click.echo("-"*80)
    for item in low_stock:
        click.echo(f"{item.id:<6} {item.medication_name:<35} {item.quantity_on_hand:>8} {item.reorder_level:>8}")
    click.echo(f"\n Total: {len(low_stock)} items\n")

    try:
        expiring = service.expiring(days=days)
    except PharmacyError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"{'='*80}")
    click.echo("Expiring")
    click.echo(f"{'='*80}\n")
    click.echo(f"{'ID':<6} {'Medication':<35} {'Expiry':<12} {'Days':>6}")
    click.echo("-"*80)
    for row in expiring:
        click.echo(f"{row['id']:<6} {row['medication_name']:<35} {row['expiry_date']:<12} {row['days_until_expiry']:>6}")
    click.echo(f"\n Total: {len(expiring)} items\n")


@click.group('auth')
def auth_group():
    """Bearer token and permission helpers."""


@auth_group.command('issue-token')
@click.option('--user-id', type=int, required=True)
@click.option('--role', type=click.Choice(sorted(DEFAULT_ROLE_PERMISSIONS)), required=True)
@with_appcontext
def issue_token_cli(user_id, role):
    """Print a signed bearer token for the given user and role."""
    token = issue_token(current_app.config["SECRET_KEY"], user_id=user_id, role=role)
    click.echo(token)


@auth_group.command('perms')
@click.option('--role', help='Filter by role name')
def list_permissions_cli(role):
    """List permissions grouped by category, optionally only those granted to a role."""
    granted = get_role_permissions(role) if role else None

    click.echo(f"\n{'='*80}")
    click.echo(f"Permissions for role: {role.upper()}" if role else "All permissions")
    click.echo(f"{'='*80}")

    shown = 0
    for category in PermissionCategory.ALL:
        perms = [
            perm for perm in get_permissions_by_category(category)
            if granted is None or perm[0] in granted
        ]
        if not perms:
            continue

        click.echo(f"\n[{category}]")
        click.echo("-"*80)
        for code, name, description, _category in perms:
            click.echo(f"{code:<30} {name:<25} {description}")
        shown += len(perms)

    click.echo(f"\n Total: {shown} permissions\n")


@auth_group.command('check')
@click.option('--role', type=click.Choice(sorted(DEFAULT_ROLE_PERMISSIONS)), required=True)
@click.option('--code', 'permission_code', required=True, help='Permission code, e.g. DISPENSE_MEDICATION')
def check_permission_cli(role, permission_code):
    """Show whether a role is granted a permission."""
    definition = get_permission_definition(permission_code.upper())
    if definition is None:
        raise click.BadParameter(f"unknown permission code: {permission_code}", param_hint="--code")

    status = "GRANTED" if role_has_permission(role, definition["code"]) else "DENIED"
    click.echo(f"{status} {role} -> {definition['code']} ({definition['name']}): {definition['description']}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(pharmacy_group)
    app.cli.add_command(auth_group)

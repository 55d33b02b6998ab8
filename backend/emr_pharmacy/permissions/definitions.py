# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View stock levels, ledger history, low-stock and expiry alerts",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Create, edit and deactivate inventory items",
        PermissionCategory.INVENTORY,
    ),
    (
        "ADJUST_INVENTORY",
        "Adjust Inventory",
        "Post stock adjustments (purchases, corrections, write-offs)",
        PermissionCategory.INVENTORY,
    ),
]


# -- DISPENSING --

DISPENSING_PERMISSIONS = [
    (
        "DISPENSE_MEDICATION",
        "Dispense Medication",
        "Dispense stock against pharmacy orders",
        PermissionCategory.DISPENSING,
    ),
]


# -- PRICING --

PRICING_PERMISSIONS = [
    (
        "VIEW_PRICING",
        "View Pricing",
        "View payer pricing rules and calculate payer prices",
        PermissionCategory.PRICING,
    ),
    (
        "MANAGE_PRICING",
        "Manage Pricing",
        "Create, edit and deactivate payer pricing rules",
        PermissionCategory.PRICING,
    ),
]


PERMISSION_DEFINITIONS = (
    INVENTORY_PERMISSIONS
    + DISPENSING_PERMISSIONS
    + PRICING_PERMISSIONS
)

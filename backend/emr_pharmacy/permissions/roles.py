# Overview: Default permission grants per staff role.

DEFAULT_ROLE_PERMISSIONS = {
    "admin": [
        # Admin gets ALL permissions
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "ADJUST_INVENTORY",
        "DISPENSE_MEDICATION",
        "VIEW_PRICING",
        "MANAGE_PRICING",
    ],
    "pharmacist": [
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "ADJUST_INVENTORY",
        "DISPENSE_MEDICATION",
        "VIEW_PRICING",
    ],
    "pharmacy": [
        "VIEW_INVENTORY",
        "MANAGE_INVENTORY",
        "ADJUST_INVENTORY",
        "DISPENSE_MEDICATION",
        "VIEW_PRICING",
    ],
    "pharmacy_tech": [
        "VIEW_INVENTORY",
        "DISPENSE_MEDICATION",
        "VIEW_PRICING",
    ],
    "doctor": [
        "VIEW_INVENTORY",
        "VIEW_PRICING",
    ],
    "nurse": [
        "VIEW_INVENTORY",
    ],
    "receptionist": [
        "VIEW_PRICING",
    ],
}

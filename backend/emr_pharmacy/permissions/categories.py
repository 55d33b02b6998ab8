# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and display."""
    INVENTORY = "INVENTORY"
    DISPENSING = "DISPENSING"
    PRICING = "PRICING"

    # display order
    ALL = (INVENTORY, DISPENSING, PRICING)

from .inventory import InventoryItem, InventoryTransaction, TRANSACTION_TYPES
from .pricing import PayerPricingRule, PAYER_TYPES
from .orders import PharmacyOrder, ORDER_STATUSES, DISPENSABLE_STATUSES

__all__ = [
    'InventoryItem', 'InventoryTransaction', 'TRANSACTION_TYPES',
    'PayerPricingRule', 'PAYER_TYPES',
    'PharmacyOrder', 'ORDER_STATUSES', 'DISPENSABLE_STATUSES',
]

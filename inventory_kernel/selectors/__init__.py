"""Read-only selectors for the inventory kernel."""

from inventory_kernel.selectors.expiry_selector import ExpirySelector
from inventory_kernel.selectors.inventory_log_selector import InventoryLogSelector
from inventory_kernel.selectors.record_selector import RecordSelector
from inventory_kernel.selectors.stock_selector import StockSelector

__all__ = [
    "ExpirySelector",
    "InventoryLogSelector",
    "RecordSelector",
    "StockSelector",
]

"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.catalog_service import (
    CatalogService,
    ChangeReasonInfo,
    StandardItemInfo,
)
from inventory_kernel.services.conflict_retry import retry_on_conflict
from inventory_kernel.services.inventory_log_service import InventoryLogService
from inventory_kernel.services.party_service import (
    DonorInfo,
    DonorService,
    RecipientUnitInfo,
    RecipientUnitService,
)
from inventory_kernel.services.serial_allocator import SerialNumberAllocator
from inventory_kernel.services.stock_service import StockService
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator

__all__ = [
    "CatalogService",
    "ChangeReasonInfo",
    "DonorInfo",
    "DonorService",
    "InventoryLogService",
    "RecipientUnitInfo",
    "RecipientUnitService",
    "SerialNumberAllocator",
    "StandardItemInfo",
    "StockService",
    "TransactionCoordinator",
    "retry_on_conflict",
]

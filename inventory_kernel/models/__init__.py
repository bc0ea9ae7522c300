"""ORM models for the inventory kernel."""

from inventory_kernel.models.catalog import InventoryChangeReason, StandardItem
from inventory_kernel.models.disbursement import DisbursementBatch, DisbursementLineItem
from inventory_kernel.models.donation import DonationBatch, DonationLineItem
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.party import Donor, RecipientUnit
from inventory_kernel.models.serial_counter import SerialCounter
from inventory_kernel.models.stock import StockRecord

__all__ = [
    "DisbursementBatch",
    "DisbursementLineItem",
    "DonationBatch",
    "DonationLineItem",
    "Donor",
    "InventoryChangeReason",
    "InventoryLogEntry",
    "RecipientUnit",
    "SerialCounter",
    "StandardItem",
    "StockRecord",
]

"""
DTOs -- Immutable data transfer objects for the kernel's read and write surfaces.

Responsibility:
    Inputs accepted by the TransactionCoordinator (LineItemInput,
    RecipientInput, AdjustmentUpdate) and the results returned by services
    and selectors.  Callers never receive ORM entities.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model`` converters exist as
    boundary helpers and are only invoked from the service/selector layer.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import TYPE_CHECKING, Any, Mapping
from uuid import UUID

from inventory_kernel.domain.values import (
    ChangeType,
    ExpiryStatus,
    ItemKey,
    StockStatus,
)
from inventory_kernel.exceptions import ValidationError

if TYPE_CHECKING:
    from inventory_kernel.models.inventory_log import InventoryLogEntry
    from inventory_kernel.models.stock import StockRecord


# ---------------------------------------------------------------------------
# Write-side inputs
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItemInput:
    """
    One requested line of a donation or disbursement, before normalization.

    ``quantity`` is deliberately loose (int, float, numeric string); the
    coordinator floors and validates it.  ``from_mapping`` accepts both
    snake_case and the camelCase keys older clients send.
    """

    item_name: Any
    item_category: Any
    quantity: Any
    item_unit: str | None = None
    expiry_date: date | None = None
    is_standard: bool | None = None
    notes: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> LineItemInput:
        def pick(*keys: str) -> Any:
            for key in keys:
                if key in data and data[key] is not None:
                    return data[key]
            return None

        expiry = pick("expiry_date", "expiryDate")
        if isinstance(expiry, datetime):
            expiry = expiry.date()
        elif isinstance(expiry, str) and expiry.strip():
            try:
                expiry = date.fromisoformat(expiry.strip()[:10])
            except ValueError:
                raise ValidationError(f"Invalid expiry date: {expiry!r}") from None
        elif not isinstance(expiry, date):
            expiry = None

        return cls(
            item_name=pick("item_name", "itemName"),
            item_category=pick("item_category", "itemCategory"),
            quantity=pick("quantity", "requested_quantity", "requestedQuantity"),
            item_unit=pick("item_unit", "itemUnit"),
            expiry_date=expiry,
            is_standard=pick("is_standard", "isStandard"),
            notes=pick("notes"),
        )


@dataclass(frozen=True)
class NormalizedLineItem:
    """A line item after trimming, unit defaulting and quantity coercion."""

    key: ItemKey
    item_unit: str
    quantity: int
    expiry_date: date | None = None
    is_standard: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class RecipientInput:
    """Who a disbursement goes to. ``unit_id`` wins over ``name`` when given."""

    unit_id: UUID | None = None
    name: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass(frozen=True)
class AdjustmentUpdate:
    """One row of a batch count adjustment."""

    stock_id: UUID
    new_quantity: Any


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockRecordInfo:
    id: UUID
    item_name: str
    item_category: str
    item_unit: str
    total_stock: int
    safety_stock: int
    is_standard: bool
    status: StockStatus

    @property
    def key(self) -> ItemKey:
        return ItemKey(self.item_name, self.item_category)

    @classmethod
    def from_model(cls, record: StockRecord) -> StockRecordInfo:
        return cls(
            id=record.id,
            item_name=record.item_name,
            item_category=record.item_category,
            item_unit=record.item_unit,
            total_stock=record.total_stock,
            safety_stock=record.safety_stock,
            is_standard=record.is_standard,
            status=StockStatus.classify(record.total_stock, record.safety_stock),
        )


@dataclass(frozen=True)
class InventoryLogEntryInfo:
    id: UUID
    stock_record_id: UUID
    change_type: ChangeType
    change_amount: int
    previous_quantity: int
    new_quantity: int
    reason: str
    actor_id: str
    created_at: datetime | None
    batch_serial_number: str | None = None
    reverts_entry_id: UUID | None = None
    seq: int | None = None
    item_name: str | None = None
    item_category: str | None = None

    @property
    def delta(self) -> int:
        return self.change_type.signed(self.change_amount)

    @classmethod
    def from_model(
        cls,
        entry: InventoryLogEntry,
        record: StockRecord | None = None,
    ) -> InventoryLogEntryInfo:
        return cls(
            id=entry.id,
            stock_record_id=entry.stock_record_id,
            change_type=ChangeType(entry.change_type),
            change_amount=entry.change_amount,
            previous_quantity=entry.previous_quantity,
            new_quantity=entry.new_quantity,
            reason=entry.reason,
            actor_id=entry.actor_id,
            created_at=entry.created_at,
            batch_serial_number=entry.batch_serial_number,
            reverts_entry_id=entry.reverts_entry_id,
            seq=entry.seq,
            item_name=record.item_name if record is not None else None,
            item_category=record.item_category if record is not None else None,
        )


@dataclass(frozen=True)
class LineItemInfo:
    id: UUID
    item_name: str
    item_category: str
    item_unit: str
    quantity: int
    expiry_date: date | None = None
    is_handled: bool = False
    is_standard: bool = False
    notes: str | None = None


@dataclass(frozen=True)
class DisbursementBatchInfo:
    id: UUID
    serial_number: str
    recipient_unit_id: UUID | None
    recipient_name: str
    recipient_phone: str | None
    recipient_address: str | None
    created_at: datetime | None
    created_by_id: str
    items: tuple[LineItemInfo, ...]
    log_entries: tuple[InventoryLogEntryInfo, ...] = ()

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(frozen=True)
class DonationBatchInfo:
    id: UUID
    serial_number: str
    donor_id: UUID | None
    donor_name: str | None
    created_at: datetime | None
    created_by_id: str
    items: tuple[LineItemInfo, ...]
    log_entries: tuple[InventoryLogEntryInfo, ...] = ()

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


@dataclass(frozen=True)
class StockMovement:
    """One stock row touched by a compound operation."""

    stock_record_id: UUID
    item_name: str
    item_category: str
    quantity: int
    previous_quantity: int
    new_quantity: int


@dataclass(frozen=True)
class StockRestoreResult:
    """Outcome of deleting a donation or disbursement batch."""

    batch_id: UUID
    serial_number: str
    movements: tuple[StockMovement, ...]
    log_entries: tuple[InventoryLogEntryInfo, ...]


@dataclass(frozen=True)
class BatchAdjustmentResult:
    success_count: int
    skipped_count: int
    entries: tuple[InventoryLogEntryInfo, ...]


# ---------------------------------------------------------------------------
# Read-side filters and reports
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StockFilter:
    category: str | None = None
    status: StockStatus | None = None
    active_only: bool = True
    search: str | None = None


@dataclass(frozen=True)
class StockSummary:
    total: int = 0
    sufficient: int = 0
    insufficient: int = 0
    out_of_stock: int = 0


@dataclass(frozen=True)
class StockReport:
    items: tuple[StockRecordInfo, ...]
    summary: StockSummary


@dataclass(frozen=True)
class ExpiryDonationRecord:
    donation_id: UUID
    serial_number: str
    line_item_id: UUID
    quantity: int
    expiry_date: date
    is_handled: bool


@dataclass(frozen=True)
class ExpiryItemDetail:
    stock_record_id: UUID
    item_name: str
    item_category: str
    item_unit: str
    total_stock: int
    soonest_expiry: date
    days_until_expiry: int
    status: ExpiryStatus
    donation_records: tuple[ExpiryDonationRecord, ...] = ()

    @property
    def has_unhandled(self) -> bool:
        return any(not r.is_handled for r in self.donation_records)


@dataclass(frozen=True)
class ExpiryReport:
    """
    Expiry status as of ``today``.

    In summary mode ``expired`` and ``expiring`` are empty and only the
    counts are populated.  The ``*_unhandled_count`` fields count items
    with at least one soonest-date donation line not yet marked handled.
    """

    today: date
    warning_days: int
    expired_count: int
    expiring_count: int
    expired_unhandled_count: int = 0
    expiring_unhandled_count: int = 0
    expired: tuple[ExpiryItemDetail, ...] = ()
    expiring: tuple[ExpiryItemDetail, ...] = ()


@dataclass(frozen=True)
class LogFilter:
    stock_record_id: UUID | None = None
    change_type: ChangeType | None = None
    item_category: str | None = None
    search: str | None = None
    batch_serial_number: str | None = None
    start: datetime | None = None
    end: datetime | None = None


@dataclass(frozen=True)
class Page:
    """One page of a listing."""

    items: tuple[Any, ...]
    total: int
    page: int
    page_size: int
    summary: Mapping[str, Any] = field(default_factory=dict)

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size


@dataclass(frozen=True)
class RecordFilter:
    """Filters shared by the donation and disbursement listings."""

    search: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    party_id: UUID | None = None
    item_category: str | None = None
    item_name: str | None = None
    sort_descending: bool = True


@dataclass(frozen=True)
class MonthlyStatistics:
    month_start: date
    donation_count: int
    disbursement_count: int
    donated_quantity: int
    disbursed_quantity: int

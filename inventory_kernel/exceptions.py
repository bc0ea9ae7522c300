"""
Typed exception hierarchy for the inventory kernel.

Every error the kernel raises is a subclass of ``InventoryKernelError``
and carries:

  - ``code``: a machine-readable identifier (class attribute, API-safe)
  - ``kind``: one of the five ``ErrorKind`` categories callers map to a
    transport response
  - structured attributes describing the failure (never parse messages)

Hierarchy:

    InventoryKernelError (base)
    |
    +-- ValidationError                       kind=VALIDATION
    |   +-- InvalidQuantityError
    |   |   +-- QuantityLimitExceededError
    |   +-- InvalidChangeTypeError
    |   +-- NegativeStockError
    |   +-- EmptyItemListError
    |   +-- InvalidUnitError
    |   +-- BatchTooLargeError
    |
    +-- NotFoundError                         kind=NOT_FOUND
    |   +-- StockRecordNotFoundError
    |   +-- BatchNotFoundError
    |   +-- RecipientUnitNotFoundError
    |   +-- DonorNotFoundError
    |   +-- InventoryLogNotFoundError
    |   +-- DonationLineItemNotFoundError
    |   +-- StandardItemNotFoundError
    |
    +-- InsufficientStockError                kind=INSUFFICIENT_STOCK
    |
    +-- ConflictError                         kind=CONFLICT
    |   +-- SerialNumberConflictError         (retryable)
    |   +-- DuplicateNameError
    |   +-- EntryAlreadyRevertedError
    |
    +-- InternalError                         kind=INTERNAL
        +-- ImmutabilityViolationError

Handling pattern:

    try:
        coordinator.create_disbursement(recipient, items, actor)
    except InsufficientStockError as e:
        respond(HTTP_STATUS_BY_KIND[e.kind], item=e.item_name,
                requested=e.requested, available=e.available)
    except InventoryKernelError as e:
        respond(HTTP_STATUS_BY_KIND[e.kind], code=e.code)

Only ``ConflictError`` instances with ``retryable=True`` may be retried,
and only through ``services.conflict_retry.retry_on_conflict``.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error categories exposed to callers."""

    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    INSUFFICIENT_STOCK = "insufficient_stock"
    CONFLICT = "conflict"
    INTERNAL = "internal"


# Transport hint only; the kernel never emits responses itself.
HTTP_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INSUFFICIENT_STOCK: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.INTERNAL: 500,
}


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must define ``code`` and ``kind`` class attributes.
    """

    code: str = "INVENTORY_KERNEL_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL
    retryable: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict[str, Any]:
        """Serializable view for callers that need to ship the error."""
        data: dict[str, Any] = {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
        }
        for key, value in vars(self).items():
            if not key.startswith("_"):
                data.setdefault(key, value)
        return data


# Validation errors


class ValidationError(InventoryKernelError):
    """Missing or malformed input."""

    code: str = "VALIDATION_ERROR"
    kind: ErrorKind = ErrorKind.VALIDATION


class InvalidQuantityError(ValidationError):
    """Quantity is missing, non-numeric, or not strictly positive."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: Any, message: str | None = None):
        self.field = field
        self.value = value
        super().__init__(message or f"{field} must be a positive integer, got {value!r}")


class QuantityLimitExceededError(InvalidQuantityError):
    """Quantity is larger than the stock tables can hold."""

    code: str = "QUANTITY_LIMIT_EXCEEDED"

    def __init__(self, field: str, value: Any, maximum: int):
        self.maximum = maximum
        super().__init__(field, value, f"{field} must be at most {maximum}, got {value!r}")


class InvalidChangeTypeError(ValidationError):
    """Change type is not INCREASE or DECREASE."""

    code: str = "INVALID_CHANGE_TYPE"

    def __init__(self, value: Any):
        self.value = value
        super().__init__(f"Invalid change type: {value!r}")


class NegativeStockError(ValidationError):
    """An adjustment would leave a stock record below zero."""

    code: str = "NEGATIVE_STOCK"

    def __init__(self, stock_record_id: str, previous: int, delta: int):
        self.stock_record_id = stock_record_id
        self.previous = previous
        self.delta = delta
        super().__init__(
            f"Quantity cannot be negative: stock {stock_record_id} "
            f"has {previous}, change {delta:+d}"
        )


class EmptyItemListError(ValidationError):
    """No valid line items remained after normalization."""

    code: str = "EMPTY_ITEM_LIST"

    def __init__(self, batch_type: str):
        self.batch_type = batch_type
        super().__init__(f"At least one valid item is required for the {batch_type}")


class InvalidUnitError(ValidationError):
    """Unit list is empty or its default is not one of the labels."""

    code: str = "INVALID_UNIT"

    def __init__(self, unit: str, allowed: tuple[str, ...]):
        self.unit = unit
        self.allowed = allowed
        super().__init__(f"Unit {unit!r} is not one of {list(allowed)}")


class BatchTooLargeError(ValidationError):
    """Batch adjustment exceeds the configured maximum size."""

    code: str = "BATCH_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"Batch of {size} updates exceeds the limit of {limit}")


# Not-found errors


class NotFoundError(InventoryKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"
    kind: ErrorKind = ErrorKind.NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class StockRecordNotFoundError(NotFoundError):
    code: str = "STOCK_RECORD_NOT_FOUND"

    def __init__(self, stock_record_id: str):
        super().__init__("Stock record", stock_record_id)


class BatchNotFoundError(NotFoundError):
    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_type: str, batch_id: str):
        self.batch_type = batch_type
        super().__init__(f"{batch_type.capitalize()} batch", batch_id)


class RecipientUnitNotFoundError(NotFoundError):
    code: str = "RECIPIENT_UNIT_NOT_FOUND"

    def __init__(self, unit_id: str):
        super().__init__("Recipient unit", unit_id)


class DonorNotFoundError(NotFoundError):
    code: str = "DONOR_NOT_FOUND"

    def __init__(self, donor_id: str):
        super().__init__("Donor", donor_id)


class InventoryLogNotFoundError(NotFoundError):
    code: str = "INVENTORY_LOG_NOT_FOUND"

    def __init__(self, entry_id: str):
        super().__init__("Inventory log entry", entry_id)


class DonationLineItemNotFoundError(NotFoundError):
    code: str = "DONATION_LINE_ITEM_NOT_FOUND"

    def __init__(self, line_item_id: str):
        super().__init__("Donation line item", line_item_id)


class StandardItemNotFoundError(NotFoundError):
    code: str = "STANDARD_ITEM_NOT_FOUND"

    def __init__(self, item: str):
        super().__init__("Standard item", item)


# Stock sufficiency


class InsufficientStockError(InventoryKernelError):
    """Requested decrement exceeds the available stock."""

    code: str = "INSUFFICIENT_STOCK"
    kind: ErrorKind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, item_name: str, item_category: str, requested: int, available: int):
        self.item_name = item_name
        self.item_category = item_category
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for {item_name} ({item_category}): "
            f"have {available}, need {requested}"
        )


# Conflicts


class ConflictError(InventoryKernelError):
    """Unique-constraint style conflict."""

    code: str = "CONFLICT"
    kind: ErrorKind = ErrorKind.CONFLICT


class SerialNumberConflictError(ConflictError):
    """An allocated serial number collided with an existing batch."""

    code: str = "SERIAL_NUMBER_CONFLICT"
    retryable: bool = True

    def __init__(self, serial_type: str, serial_number: str):
        self.serial_type = serial_type
        self.serial_number = serial_number
        super().__init__(
            f"Serial number {serial_number} for {serial_type} is already in use"
        )


class DuplicateNameError(ConflictError):
    """A donor, recipient unit or catalog entry with the same name exists."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, name: str):
        self.entity_type = entity_type
        self.name = name
        super().__init__(f"{entity_type} with name {name!r} already exists")


class EntryAlreadyRevertedError(ConflictError):
    """An inventory log entry already has a compensating entry."""

    code: str = "ENTRY_ALREADY_REVERTED"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Inventory log entry {entry_id} has already been reverted")


# Internal errors


class InternalError(InventoryKernelError):
    """Unexpected persistence failure."""

    code: str = "INTERNAL_ERROR"
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"{operation} failed: {detail}")


class ImmutabilityViolationError(InternalError):
    """Attempt to modify or delete an append-only record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"modify {entity_type} {entity_id}", reason)

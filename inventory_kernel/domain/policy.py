"""
Policy -- Kernel-side knobs, supplied from configuration.

The kernel never imports ``inventory_config``; ``inventory_config.bridges``
builds these frozen objects from YAML and callers pass them in.  Every field
has a default, so the kernel runs without any configuration at all.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from inventory_kernel.domain.values import (
    DEFAULT_SERIAL_PREFIXES,
    MAX_QUANTITY,
    MAX_REASON_LENGTH,
    SerialType,
)


def _default_prefixes() -> Mapping[SerialType, str]:
    return MappingProxyType(dict(DEFAULT_SERIAL_PREFIXES))


_REASON_FIELDS = (
    "donation_reason",
    "donation_deleted_reason",
    "disbursement_reason",
    "disbursement_deleted_reason",
    "batch_adjustment_reason",
    "revert_reason_prefix",
)


@dataclass(frozen=True)
class StockPolicy:
    """
    Labels, limits and serial formatting used by the write and read paths.

    Contract:
        ``serial_prefixes`` covers every SerialType; ``serial_width`` >= 1;
        ``max_batch_adjustments`` >= 1; ``expiry_warning_days`` >= 0;
        ``1 <= default_page_size <= max_page_size``;
        ``1 <= max_quantity <= MAX_QUANTITY``; every reason label fits the
        log's reason column.
    """

    default_unit: str = "pcs"
    default_recipient_name: str = "Walk-in pickup"

    serial_prefixes: Mapping[SerialType, str] = field(default_factory=_default_prefixes)
    serial_width: int = 5

    max_quantity: int = MAX_QUANTITY
    max_batch_adjustments: int = 500
    expiry_warning_days: int = 30

    default_page_size: int = 25
    max_page_size: int = 100

    donation_reason: str = "Donation received"
    donation_deleted_reason: str = "Donation deleted"
    disbursement_reason: str = "Disbursement"
    disbursement_deleted_reason: str = "Disbursement deleted"
    batch_adjustment_reason: str = "Inventory count adjustment"
    revert_reason_prefix: str = "Revert"

    def __post_init__(self) -> None:
        missing = [t.value for t in SerialType if t not in self.serial_prefixes]
        if missing:
            raise ValueError(f"serial_prefixes missing types: {missing}")
        if self.serial_width < 1:
            raise ValueError("serial_width must be >= 1")
        if self.max_batch_adjustments < 1:
            raise ValueError("max_batch_adjustments must be >= 1")
        if self.expiry_warning_days < 0:
            raise ValueError("expiry_warning_days must be >= 0")
        if not 1 <= self.default_page_size <= self.max_page_size:
            raise ValueError("default_page_size must be between 1 and max_page_size")
        if not 1 <= self.max_quantity <= MAX_QUANTITY:
            raise ValueError(f"max_quantity must be between 1 and {MAX_QUANTITY}")
        for name in _REASON_FIELDS:
            if len(getattr(self, name)) > MAX_REASON_LENGTH:
                raise ValueError(f"{name} is longer than {MAX_REASON_LENGTH} characters")

    def prefix_for(self, serial_type: SerialType) -> str:
        return self.serial_prefixes[serial_type]

    def clamp_page_size(self, page_size: int | None) -> int:
        if page_size is None or page_size < 1:
            return self.default_page_size
        return min(page_size, self.max_page_size)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for retryable conflicts."""

    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    multiplier: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must be >= 0")

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        delay = self.base_delay_seconds * (self.multiplier ** (attempt - 1))
        return min(delay, self.max_delay_seconds)


DEFAULT_STOCK_POLICY = StockPolicy()
DEFAULT_RETRY_POLICY = RetryPolicy()

"""Pure domain layer: value objects, DTOs, policies and the clock."""

from inventory_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from inventory_kernel.domain.policy import RetryPolicy, StockPolicy
from inventory_kernel.domain.values import (
    Actor,
    ChangeType,
    ExpiryStatus,
    ItemKey,
    SerialType,
    StockStatus,
    UnitList,
)

__all__ = [
    "Actor",
    "ChangeType",
    "Clock",
    "DeterministicClock",
    "ExpiryStatus",
    "ItemKey",
    "RetryPolicy",
    "SerialType",
    "StockPolicy",
    "StockStatus",
    "SystemClock",
    "UnitList",
]

"""
Values -- Immutable, self-validating domain value objects.

Responsibility:
    Provides the small value types every other layer shares: ItemKey (the
    natural key of a stock item), UnitList, Actor, and the ChangeType,
    SerialType, StockStatus and ExpiryStatus enums, plus quantity coercion
    and serial number formatting.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - ItemKey parts are trimmed and never blank.
    - Quantities are integers; coercion floors fractional input and rejects
      booleans, NaN and infinities.
    - Quantities fit the 32-bit integer columns that store them.
    - A UnitList's default label is always one of its labels.

Failure modes:
    - ValidationError subclasses on construction with invalid input.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import ROUND_FLOOR, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from inventory_kernel.exceptions import (
    InvalidChangeTypeError,
    InvalidQuantityError,
    InvalidUnitError,
    QuantityLimitExceededError,
    ValidationError,
)


class ChangeType(str, Enum):
    """Direction of a stock movement."""

    INCREASE = "INCREASE"
    DECREASE = "DECREASE"

    @classmethod
    def parse(cls, value: Any) -> ChangeType:
        """Accept the enum itself or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise InvalidChangeTypeError(value)

    def signed(self, amount: int) -> int:
        return amount if self is ChangeType.INCREASE else -amount

    @property
    def opposite(self) -> ChangeType:
        if self is ChangeType.INCREASE:
            return ChangeType.DECREASE
        return ChangeType.INCREASE


class SerialType(str, Enum):
    """Kinds of batch that carry a serial number."""

    DONATION = "DONATION"
    DISBURSEMENT = "DISBURSEMENT"


DEFAULT_SERIAL_PREFIXES: dict[SerialType, str] = {
    SerialType.DONATION: "A",
    SerialType.DISBURSEMENT: "B",
}


class StockStatus(str, Enum):
    SUFFICIENT = "sufficient"
    INSUFFICIENT = "insufficient"
    OUT_OF_STOCK = "out_of_stock"

    @classmethod
    def classify(cls, quantity: int, safety_stock: int) -> StockStatus:
        """Reporting status; safety stock never blocks a mutation."""
        if quantity == 0:
            return cls.OUT_OF_STOCK
        if quantity < safety_stock:
            return cls.INSUFFICIENT
        return cls.SUFFICIENT


class ExpiryStatus(str, Enum):
    EXPIRED = "expired"
    EXPIRING = "expiring"


@dataclass(frozen=True, slots=True)
class ItemKey:
    """
    Natural key of a stock item: (name, category).

    Contract:
        Both parts are whitespace-trimmed on construction and must be
        non-blank.  Two keys are equal when their trimmed parts are equal.

    Guarantees:
        - Immutable and hashable.
        - ``lock_order`` gives the ordering used whenever several stock rows
          are locked together (category first, then name).
    """

    name: str
    category: str

    def __post_init__(self) -> None:
        name = self.name.strip() if isinstance(self.name, str) else ""
        category = self.category.strip() if isinstance(self.category, str) else ""
        if not name:
            raise ValidationError("Item name is required")
        if not category:
            raise ValidationError("Item category is required")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "category", category)

    @property
    def lock_order(self) -> tuple[str, str]:
        return (self.category, self.name)

    def __str__(self) -> str:
        return f"{self.name} ({self.category})"


@dataclass(frozen=True, slots=True)
class UnitList:
    """
    Ordered unit labels with an explicit default.

    Contract:
        ``labels`` is a non-empty sequence of distinct, non-blank labels;
        ``default`` is one of them.  When ``default`` is omitted the first
        label is used.
    """

    labels: tuple[str, ...]
    default: str = ""

    def __post_init__(self) -> None:
        labels = tuple(
            label.strip() for label in self.labels
            if isinstance(label, str) and label.strip()
        )
        if not labels:
            raise InvalidUnitError(self.default, ())
        if len(set(labels)) != len(labels):
            raise ValidationError(f"Duplicate unit labels: {list(labels)}")
        default = self.default.strip() if self.default else labels[0]
        if default not in labels:
            raise InvalidUnitError(default, labels)
        object.__setattr__(self, "labels", labels)
        object.__setattr__(self, "default", default)

    def __contains__(self, label: object) -> bool:
        return label in self.labels


@dataclass(frozen=True, slots=True)
class Actor:
    """Pre-authenticated caller identity. The kernel does no authorization."""

    actor_id: str
    role: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.actor_id, str) or not self.actor_id.strip():
            raise ValidationError("Actor id is required")
        object.__setattr__(self, "actor_id", self.actor_id.strip())


# Largest value the integer quantity columns hold on every backend
MAX_QUANTITY = 2_147_483_647

# Length of the reason columns on the log and the reason catalog
MAX_REASON_LENGTH = 255


def coerce_quantity(
    value: Any,
    field: str = "quantity",
    *,
    allow_zero: bool = False,
    maximum: int = MAX_QUANTITY,
) -> int:
    """
    Coerce caller input to an integer quantity.

    Integers pass through, floats and Decimals are floored, numeric strings
    are parsed the same way.  Booleans, NaN and infinities are rejected.
    The result must be > 0 (or >= 0 with ``allow_zero``) and no larger
    than ``maximum``.

    Raises:
        QuantityLimitExceededError: If the result is above ``maximum``.
        InvalidQuantityError: On anything else.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidQuantityError(field, value)

    if isinstance(value, int):
        result = value
    else:
        if isinstance(value, str):
            try:
                value = Decimal(value.strip())
            except InvalidOperation:
                raise InvalidQuantityError(field, value) from None
        if isinstance(value, Decimal):
            if not value.is_finite() or value < 0:
                raise InvalidQuantityError(field, value)
            if value > maximum:
                raise QuantityLimitExceededError(field, value, maximum)
            result = int(value.to_integral_value(rounding=ROUND_FLOOR))
        elif isinstance(value, float):
            if not math.isfinite(value):
                raise InvalidQuantityError(field, value)
            result = math.floor(value)
        else:
            raise InvalidQuantityError(field, value)

    if result < 0 or (result == 0 and not allow_zero):
        raise InvalidQuantityError(field, value)
    if result > maximum:
        raise QuantityLimitExceededError(field, value, maximum)
    return result


_TRAILING_DIGITS = re.compile(r"(\d+)$")


def format_serial(prefix: str, value: int, width: int = 5) -> str:
    """Format a counter value as a serial, e.g. ("B", 1) -> "B00001"."""
    return f"{prefix}{value:0{width}d}"


def parse_serial(serial: str | None) -> int | None:
    """Return the trailing integer of a serial, or None when unparsable."""
    if not serial:
        return None
    match = _TRAILING_DIGITS.search(serial.strip())
    if match is None:
        return None
    return int(match.group(1))

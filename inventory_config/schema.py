"""
InventoryConfiguration schema.

The typed, frozen form of the YAML configuration.  The loader parses
``defaults.yaml`` (plus any override file) into these types; the bridges
turn them into kernel inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///inventory.db"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


@dataclass(frozen=True)
class SerialsConfig:
    donation_prefix: str = "A"
    disbursement_prefix: str = "B"
    width: int = 5


@dataclass(frozen=True)
class StockConfig:
    default_unit: str = "pcs"
    default_recipient_name: str = "Walk-in pickup"
    # Upper bound for any single quantity or stock total
    max_quantity: int = 2_147_483_647
    max_batch_adjustments: int = 500


@dataclass(frozen=True)
class ExpiryConfig:
    warning_days: int = 30


@dataclass(frozen=True)
class PagingConfig:
    default_page_size: int = 25
    max_page_size: int = 100


@dataclass(frozen=True)
class ReasonsConfig:
    """Fixed audit-log reason labels and the canned adjustment reasons."""

    donation: str = "Donation received"
    donation_deleted: str = "Donation deleted"
    disbursement: str = "Disbursement"
    disbursement_deleted: str = "Disbursement deleted"
    batch_adjustment: str = "Inventory count adjustment"
    revert_prefix: str = "Revert"
    increase: tuple[str, ...] = ()
    decrease: tuple[str, ...] = ()


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_seconds: float = 0.05
    max_delay_seconds: float = 1.0
    multiplier: float = 2.0


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InventoryConfiguration:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    serials: SerialsConfig = field(default_factory=SerialsConfig)
    stock: StockConfig = field(default_factory=StockConfig)
    expiry: ExpiryConfig = field(default_factory=ExpiryConfig)
    paging: PagingConfig = field(default_factory=PagingConfig)
    reasons: ReasonsConfig = field(default_factory=ReasonsConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    source_files: tuple[str, ...] = ()
    checksum: str = ""

"""
Config -> Kernel Bridges.

Functions that convert an ``InventoryConfiguration`` into kernel inputs.
They live here because the kernel never imports ``inventory_config``.

Usage:
    from inventory_config import get_active_config
    from inventory_config.bridges import build_stock_policy, init_database

    config = get_active_config()
    init_database(config)
    policy = build_stock_policy(config)
"""

from __future__ import annotations

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from inventory_config.schema import InventoryConfiguration
from inventory_kernel.db.engine import create_tables, init_engine_from_url
from inventory_kernel.db.immutability import register_immutability_listeners
from inventory_kernel.domain.policy import RetryPolicy, StockPolicy
from inventory_kernel.domain.values import Actor, ChangeType, SerialType
from inventory_kernel.services.catalog_service import CatalogService


def build_stock_policy(config: InventoryConfiguration) -> StockPolicy:
    """Build the kernel StockPolicy from the serials/stock/expiry/paging/reasons sections."""
    return StockPolicy(
        default_unit=config.stock.default_unit,
        default_recipient_name=config.stock.default_recipient_name,
        serial_prefixes={
            SerialType.DONATION: config.serials.donation_prefix,
            SerialType.DISBURSEMENT: config.serials.disbursement_prefix,
        },
        serial_width=config.serials.width,
        max_quantity=config.stock.max_quantity,
        max_batch_adjustments=config.stock.max_batch_adjustments,
        expiry_warning_days=config.expiry.warning_days,
        default_page_size=config.paging.default_page_size,
        max_page_size=config.paging.max_page_size,
        donation_reason=config.reasons.donation,
        donation_deleted_reason=config.reasons.donation_deleted,
        disbursement_reason=config.reasons.disbursement,
        disbursement_deleted_reason=config.reasons.disbursement_deleted,
        batch_adjustment_reason=config.reasons.batch_adjustment,
        revert_reason_prefix=config.reasons.revert_prefix,
    )


def build_retry_policy(config: InventoryConfiguration) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=config.retry.max_attempts,
        base_delay_seconds=config.retry.base_delay_seconds,
        max_delay_seconds=config.retry.max_delay_seconds,
        multiplier=config.retry.multiplier,
    )


def init_database(config: InventoryConfiguration, create: bool = False) -> Engine:
    """
    Initialize the kernel engine from the database section.

    Also registers the append-only listeners, which every process that
    writes stock must have installed.  With ``create`` the tables are
    created as well (local development and tests).
    """
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    register_immutability_listeners()
    if create:
        create_tables()
    return engine


def seed_change_reasons(
    session: Session,
    config: InventoryConfiguration,
    actor: Actor,
) -> int:
    """Insert the configured canned adjustment reasons that are missing. Flushes only."""
    return CatalogService(session).seed_reasons(
        {
            ChangeType.INCREASE: config.reasons.increase,
            ChangeType.DECREASE: config.reasons.decrease,
        },
        actor,
    )

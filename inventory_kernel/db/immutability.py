"""
ORM-level append-only enforcement.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners registered here intercept those events and raise
ImmutabilityViolationError, aborting the flush:

    session.flush()
         |
         v
    [before_update] --> _check_*_immutability() --> ImmutabilityViolationError
         |
         v
    [before_delete] --> _check_*_delete() --------> ImmutabilityViolationError

Protected entities:

Entity               | Rule
---------------------|-------------------------------------------------------
InventoryLogEntry    | Never updated, never deleted.  Corrections are new
                     | compensating entries (reverts_entry_id).
StockRecord          | Never deleted.  Quantity updates are allowed; they go
                     | through the TransactionCoordinator with a log entry.

Bulk ``session.execute(update(...))`` statements bypass mapper events; the
kernel never issues them against protected tables.

Usage:
    from inventory_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _blocked(entity_type: str, target, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "db_operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_log_entry_immutability(mapper, connection, target):
    """Inventory log entries are append-only."""
    _blocked(
        "InventoryLogEntry",
        target,
        "UPDATE",
        "Inventory log entries are immutable; append a compensating entry instead",
    )


def _check_log_entry_delete(mapper, connection, target):
    _blocked(
        "InventoryLogEntry",
        target,
        "DELETE",
        "Inventory log entries cannot be deleted; append a compensating entry instead",
    )


def _check_stock_record_delete(mapper, connection, target):
    _blocked(
        "StockRecord",
        target,
        "DELETE",
        "Stock records are never deleted; their history lives in the inventory log",
    )


def register_immutability_listeners():
    """
    Register all append-only enforcement listeners.

    Idempotent: listeners already present are not added twice.
    """
    from inventory_kernel.models.inventory_log import InventoryLogEntry
    from inventory_kernel.models.stock import StockRecord

    for target, event_name, fn in (
        (InventoryLogEntry, "before_update", _check_log_entry_immutability),
        (InventoryLogEntry, "before_delete", _check_log_entry_delete),
        (StockRecord, "before_delete", _check_stock_record_delete),
    ):
        if not event.contains(target, event_name, fn):
            event.listen(target, event_name, fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove the append-only listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    from inventory_kernel.models.inventory_log import InventoryLogEntry
    from inventory_kernel.models.stock import StockRecord

    _safe_remove_listener(InventoryLogEntry, "before_update", _check_log_entry_immutability)
    _safe_remove_listener(InventoryLogEntry, "before_delete", _check_log_entry_delete)
    _safe_remove_listener(StockRecord, "before_delete", _check_stock_record_delete)

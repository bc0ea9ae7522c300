"""
SerialNumberAllocator -- gapless batch serials via locked counter rows.

Responsibility:
    Hands out strictly increasing serial numbers per batch type
    (A00001, A00002, ... for donations; B00001, ... for disbursements).

Architecture position:
    Kernel > Services.  Called by the TransactionCoordinator as the FIRST
    lock of every batch-creating operation.

Invariants enforced:
    - The locked SerialCounter row is the sole source of truth.  Scanning
      the batch tables for the latest serial is never part of allocation.
    - Transactional: the increment is visible only after the caller
      commits.  A rollback returns the number, so committed serials have
      no gaps.

Failure modes:
    - IntegrityError: two transactions race to create the first counter
      row.  Handled by rolling back the savepoint and re-reading under lock.
    - ValidationError for an unknown serial type.

Audit relevance:
    Allocation is logged at DEBUG with serial_type and value.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.policy import DEFAULT_STOCK_POLICY, StockPolicy
from inventory_kernel.domain.values import SerialType, format_serial, parse_serial
from inventory_kernel.exceptions import ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.disbursement import DisbursementBatch
from inventory_kernel.models.donation import DonationBatch
from inventory_kernel.models.serial_counter import SerialCounter
from inventory_kernel.services.base import BaseService

logger = get_logger("services.serial_allocator")

# Counter row that orders inventory log entries
LOG_SEQUENCE_KEY = "INVENTORY_LOG"

_BATCH_MODELS = {
    SerialType.DONATION: DonationBatch,
    SerialType.DISBURSEMENT: DisbursementBatch,
}


def _coerce_type(serial_type: SerialType | str) -> SerialType:
    if isinstance(serial_type, SerialType):
        return serial_type
    try:
        return SerialType(str(serial_type).strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown serial type: {serial_type!r}") from None


class SerialNumberAllocator(BaseService[SerialCounter]):
    """
    Allocates batch serial numbers.

    Contract:
        ``allocate(type)`` returns ``{prefix}{value:0{width}d}`` where value
        is one more than the last value handed out for that type.

    Guarantees:
        - Concurrency safety: ``SELECT ... FOR UPDATE`` serializes
          allocations of the same type (BEGIN IMMEDIATE on SQLite).
        - Gapless under rollback.

    Non-goals:
        - Does NOT commit; the caller controls the transaction.

    Usage:
        with session_scope() as session:
            serial = SerialNumberAllocator(session).allocate(SerialType.DISBURSEMENT)
    """

    def __init__(self, session: Session, policy: StockPolicy = DEFAULT_STOCK_POLICY):
        super().__init__(session)
        self._policy = policy

    parse_serial = staticmethod(parse_serial)

    def _lock_counter(self, counter_key: str) -> SerialCounter | None:
        return self.session.execute(
            select(SerialCounter)
            .where(SerialCounter.serial_type == counter_key)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_or_create_counter(self, counter_key: str, prefix: str) -> SerialCounter:
        counter = self._lock_counter(counter_key)
        if counter is not None:
            return counter

        # First use of this type.  A savepoint keeps a lost creation race
        # from rolling back the caller's work.
        savepoint = self.session.begin_nested()
        try:
            counter = SerialCounter(
                serial_type=counter_key,
                prefix=prefix,
                current_value=0,
            )
            self.session.add(counter)
            self.session.flush()
            savepoint.commit()
            return counter
        except IntegrityError:
            logger.debug(
                "serial_counter_race_retry",
                extra={"serial_type": counter_key},
            )
            savepoint.rollback()
            counter = self._lock_counter(counter_key)
            if counter is None:
                raise
            return counter

    def next_value(self, serial_type: SerialType | str) -> int:
        """
        Lock the counter, increment it and return the new value.

        Postconditions:
            - Returns an integer > 0 strictly greater than any value
              previously returned for this type.
            - The counter row stays locked until the transaction ends.
        """
        stype = _coerce_type(serial_type)
        counter = self._lock_or_create_counter(stype.value, self._policy.prefix_for(stype))
        counter.current_value += 1
        self.session.flush()
        logger.debug(
            "serial_allocated",
            extra={"serial_type": stype.value, "value": counter.current_value},
        )
        return counter.current_value

    def next_log_sequence(self) -> int:
        """
        Next position in the inventory log.

        Shares the counter table with batch serials under its own key.
        Callers take this lock last, after every stock row they touch.
        """
        counter = self._lock_or_create_counter(LOG_SEQUENCE_KEY, "")
        counter.current_value += 1
        self.session.flush()
        return counter.current_value

    def allocate(self, serial_type: SerialType | str) -> str:
        """Allocate and format the next serial number for a batch type."""
        stype = _coerce_type(serial_type)
        value = self.next_value(stype)
        return format_serial(
            self._policy.prefix_for(stype), value, self._policy.serial_width
        )

    def current_value(self, serial_type: SerialType | str) -> int:
        """Last value handed out for a type, 0 if none. Takes no lock."""
        stype = _coerce_type(serial_type)
        value = self.session.execute(
            select(SerialCounter.current_value).where(
                SerialCounter.serial_type == stype.value
            )
        ).scalar_one_or_none()
        return value or 0

    def reconcile(self, serial_type: SerialType | str) -> int:
        """
        Raise the counter to the highest serial already stored.

        Maintenance operation for batches imported from a system that
        derived serials by scanning.  Runs under the counter lock and never
        lowers the counter.

        Returns:
            The counter value after reconciliation.
        """
        stype = _coerce_type(serial_type)
        counter = self._lock_or_create_counter(stype.value, self._policy.prefix_for(stype))
        model = _BATCH_MODELS[stype]
        prefix = self._policy.prefix_for(stype)

        serials = self.session.execute(
            select(model.serial_number).where(model.serial_number.like(f"{prefix}%"))
        ).scalars()
        highest = max(
            (v for v in (parse_serial(s) for s in serials) if v is not None),
            default=0,
        )

        if highest > counter.current_value:
            logger.info(
                "serial_counter_reconciled",
                extra={
                    "serial_type": stype.value,
                    "previous_value": counter.current_value,
                    "new_value": highest,
                },
            )
            counter.current_value = highest
            self.session.flush()
        return counter.current_value

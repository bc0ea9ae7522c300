"""
StockService -- locked access to stock counters and logged quantity changes.

Responsibility:
    Locks StockRecord rows in the global lock order, creates records lazily
    for new item keys, and applies quantity changes paired with an
    inventory log entry.

Architecture position:
    Kernel > Services.  Called by the TransactionCoordinator; never
    commits.

Invariants enforced:
    - Lock order: whenever several stock rows are locked together they are
      locked in one ``SELECT ... ORDER BY item_category, item_name
      FOR UPDATE`` statement.
    - total_stock never goes negative: ``apply_change`` refuses before
      writing (the ck_stock_total_non_negative constraint backs it up).
    - total_stock never exceeds ``max_quantity``.
    - Every quantity change appends exactly one InventoryLogEntry.

Failure modes:
    - StockRecordNotFoundError for an unknown id.
    - NegativeStockError when a change would go below zero.
    - QuantityLimitExceededError when a change would go above max_quantity.
    - InvalidQuantityError for a bad safety stock value.
"""

from __future__ import annotations

from typing import Iterable
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import StockRecordInfo
from inventory_kernel.domain.values import (
    MAX_QUANTITY,
    Actor,
    ChangeType,
    ItemKey,
    coerce_quantity,
)
from inventory_kernel.exceptions import (
    NegativeStockError,
    QuantityLimitExceededError,
    StockRecordNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.inventory_log_service import InventoryLogService

logger = get_logger("services.stock")


def _key_of(record: StockRecord) -> ItemKey:
    return ItemKey(record.item_name, record.item_category)


class StockService(BaseService[StockRecord]):
    """
    Stock counter operations.

    Contract:
        Callers lock before they mutate: ``apply_change`` expects a record
        returned by one of the ``lock_*`` methods in the same transaction.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        log_service: InventoryLogService | None = None,
        max_quantity: int = MAX_QUANTITY,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._log = log_service or InventoryLogService(session, self._clock)
        self._max_quantity = max_quantity

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_by_id(self, stock_id: UUID) -> StockRecord:
        record = self.session.execute(
            select(StockRecord)
            .where(StockRecord.id == stock_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if record is None:
            raise StockRecordNotFoundError(str(stock_id))
        return record

    def lock_by_ids(self, stock_ids: Iterable[UUID]) -> dict[UUID, StockRecord]:
        """
        Lock every listed record in lock order.

        Raises:
            StockRecordNotFoundError: naming the first missing id, before
                anything has been written.
        """
        wanted = list(dict.fromkeys(stock_ids))
        if not wanted:
            return {}
        records = self.session.execute(
            select(StockRecord)
            .where(StockRecord.id.in_(wanted))
            .order_by(StockRecord.item_category, StockRecord.item_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        by_id = {record.id: record for record in records}
        for stock_id in wanted:
            if stock_id not in by_id:
                raise StockRecordNotFoundError(str(stock_id))
        return by_id

    def lock_by_keys(self, keys: Iterable[ItemKey]) -> dict[ItemKey, StockRecord]:
        """Lock the records for the given keys; absent keys are simply missing."""
        wanted = sorted(set(keys), key=lambda k: k.lock_order)
        if not wanted:
            return {}
        records = self.session.execute(
            select(StockRecord)
            .where(
                or_(
                    *(
                        and_(
                            StockRecord.item_name == key.name,
                            StockRecord.item_category == key.category,
                        )
                        for key in wanted
                    )
                )
            )
            .order_by(StockRecord.item_category, StockRecord.item_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
        return {_key_of(record): record for record in records}

    def lock_or_create(
        self,
        key: ItemKey,
        item_unit: str,
        actor: Actor,
        is_standard: bool = False,
    ) -> StockRecord:
        """
        Lock the record for ``key``, creating it with zero stock if absent.

        A concurrent creation of the same key loses on the unique
        constraint; the savepoint is rolled back and the winner's row is
        locked instead.
        """
        record = self.lock_by_keys([key]).get(key)
        if record is not None:
            return record

        savepoint = self.session.begin_nested()
        try:
            record = StockRecord(
                item_name=key.name,
                item_category=key.category,
                item_unit=item_unit,
                total_stock=0,
                safety_stock=0,
                is_standard=is_standard,
                created_by_id=actor.actor_id,
            )
            self.session.add(record)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            logger.debug("stock_record_race_retry", extra={"item": str(key)})
            savepoint.rollback()
            record = self.lock_by_keys([key]).get(key)
            if record is None:
                raise
            return record

        logger.info(
            "stock_record_created",
            extra={
                "stock_record_id": str(record.id),
                "item_name": key.name,
                "item_category": key.category,
                "item_unit": item_unit,
            },
        )
        return record

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def apply_change(
        self,
        record: StockRecord,
        delta: int,
        reason: str,
        actor: Actor,
        batch_serial_number: str | None = None,
        reverts_entry_id: UUID | None = None,
    ) -> InventoryLogEntry:
        """
        Add ``delta`` (non-zero, signed) to a locked record and log it.

        Raises:
            NegativeStockError: If the result would be below zero.
            QuantityLimitExceededError: If it would be above max_quantity.
            Nothing is written in either case.
        """
        previous = record.total_stock
        new = previous + delta
        if new < 0:
            raise NegativeStockError(str(record.id), previous, delta)
        if new > self._max_quantity:
            raise QuantityLimitExceededError("total_stock", new, self._max_quantity)

        record.total_stock = new
        record.updated_by_id = actor.actor_id
        change_type = ChangeType.INCREASE if delta > 0 else ChangeType.DECREASE
        return self._log.append(
            record,
            change_type=change_type,
            change_amount=abs(delta),
            previous_quantity=previous,
            new_quantity=new,
            reason=reason,
            actor=actor,
            batch_serial_number=batch_serial_number,
            reverts_entry_id=reverts_entry_id,
        )

    def set_safety_stock(self, stock_id: UUID, value: int, actor: Actor) -> StockRecordInfo:
        """Set the reporting threshold. Does not touch total_stock or the log."""
        safety = coerce_quantity(
            value, "safety_stock", allow_zero=True, maximum=self._max_quantity
        )
        record = self.lock_by_id(stock_id)
        previous = record.safety_stock
        record.safety_stock = safety
        record.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info(
            "safety_stock_updated",
            extra={
                "stock_record_id": str(stock_id),
                "previous_safety_stock": previous,
                "safety_stock": safety,
            },
        )
        return StockRecordInfo.from_model(record)

    def get(self, stock_id: UUID) -> StockRecordInfo:
        record = self.session.get(StockRecord, stock_id)
        if record is None:
            raise StockRecordNotFoundError(str(stock_id))
        return StockRecordInfo.from_model(record)

"""
InventoryLogService -- append-only stock change log.

Responsibility:
    Writes one InventoryLogEntry per stock movement and looks entries up
    for reversal.  Never edits or deletes an entry.

Architecture position:
    Kernel > Services.  Called by StockService for every quantity change,
    always inside the TransactionCoordinator's atomic unit.

Invariants enforced:
    - Append-only (ORM listeners in db/immutability.py back this up).
    - ``new_quantity == previous_quantity + signed(change_amount)`` and
      ``change_amount > 0`` for every entry written.
    - At most one compensating entry per original (unique
      reverts_entry_id).
    - Entries are numbered from a locked counter (seq), so log order is
      write order even when timestamps tie.

Failure modes:
    - InventoryLogNotFoundError for an unknown entry id.
    - ValidationError when the movement is inconsistent (zero amount or
      before/after mismatch).  Indicates a caller bug.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.values import Actor, ChangeType
from inventory_kernel.exceptions import InventoryLogNotFoundError, ValidationError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.services.base import BaseService
from inventory_kernel.services.serial_allocator import SerialNumberAllocator

logger = get_logger("services.inventory_log")


class InventoryLogService(BaseService[InventoryLogEntry]):
    """
    Appends stock movement entries.

    Contract:
        ``append`` persists (flushes) a single entry describing a change the
        caller has already applied to ``record``.

    Non-goals:
        - Does NOT change stock; StockService does that and calls in here.
        - Does NOT provide paged listings (see InventoryLogSelector).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._sequence = SerialNumberAllocator(session)

    def append(
        self,
        record: StockRecord,
        change_type: ChangeType,
        change_amount: int,
        previous_quantity: int,
        new_quantity: int,
        reason: str,
        actor: Actor,
        batch_serial_number: str | None = None,
        reverts_entry_id: UUID | None = None,
    ) -> InventoryLogEntry:
        """
        Record one stock movement.

        Preconditions:
            - ``record.total_stock`` already equals ``new_quantity``.
            - ``change_amount > 0`` and the before/after pair matches it.
        """
        if change_amount <= 0:
            raise ValidationError("change_amount must be positive")
        if previous_quantity + change_type.signed(change_amount) != new_quantity:
            raise ValidationError(
                f"Inconsistent movement: {previous_quantity} "
                f"{change_type.value} {change_amount} != {new_quantity}"
            )

        entry = InventoryLogEntry(
            seq=self._sequence.next_log_sequence(),
            stock_record_id=record.id,
            change_type=change_type.value,
            change_amount=change_amount,
            previous_quantity=previous_quantity,
            new_quantity=new_quantity,
            reason=reason,
            actor_id=actor.actor_id,
            created_at=self._clock.now(),
            batch_serial_number=batch_serial_number,
            reverts_entry_id=reverts_entry_id,
        )
        self.session.add(entry)
        self.session.flush()

        logger.debug(
            "inventory_log_appended",
            extra={
                "entry_id": str(entry.id),
                "seq": entry.seq,
                "stock_record_id": str(record.id),
                "change_type": change_type.value,
                "change_amount": change_amount,
                "previous_quantity": previous_quantity,
                "new_quantity": new_quantity,
                "batch_serial_number": batch_serial_number,
            },
        )
        return entry

    def get_entry(self, entry_id: UUID) -> InventoryLogEntry:
        entry = self.session.get(InventoryLogEntry, entry_id)
        if entry is None:
            raise InventoryLogNotFoundError(str(entry_id))
        return entry

    def find_reversal(self, entry_id: UUID) -> InventoryLogEntry | None:
        """The compensating entry for ``entry_id``, if one exists."""
        return self.session.execute(
            select(InventoryLogEntry).where(
                InventoryLogEntry.reverts_entry_id == entry_id
            )
        ).scalar_one_or_none()

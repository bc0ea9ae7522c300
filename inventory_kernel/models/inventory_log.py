"""
Module: inventory_kernel.models.inventory_log
Responsibility: ORM persistence for the append-only stock change log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: ORM listeners reject UPDATE and DELETE
      (db/immutability.py).
    - new_quantity = previous_quantity +/- change_amount, change_amount > 0
      (ck_log_* checks).
    - An entry is reverted at most once (uq_log_reverts_entry).
    - seq gives every entry a unique position in write order.

Audit relevance:
    The log is the only record of who changed stock, by how much and why.
    Corrections never edit an entry; they append a compensating entry whose
    reverts_entry_id points at the original.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base, UUIDString


class InventoryLogEntry(Base):
    """One stock movement: direction, amount, before/after, actor, reason."""

    __tablename__ = "inventory_log_entries"

    __table_args__ = (
        CheckConstraint("change_amount > 0", name="ck_log_amount_positive"),
        CheckConstraint("previous_quantity >= 0", name="ck_log_previous_non_negative"),
        CheckConstraint("new_quantity >= 0", name="ck_log_new_non_negative"),
        CheckConstraint(
            "change_type IN ('INCREASE', 'DECREASE')",
            name="ck_log_change_type",
        ),
        UniqueConstraint("reverts_entry_id", name="uq_log_reverts_entry"),
        Index("idx_log_stock_created", "stock_record_id", "created_at"),
        Index("idx_log_created", "created_at"),
        Index("idx_log_batch_serial", "batch_serial_number"),
        Index("idx_log_seq", "seq"),
    )

    # Monotonic sequence for ordering
    seq: Mapped[int] = mapped_column(BigInteger, nullable=False, unique=True)

    stock_record_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stock_records.id"),
        nullable=False,
    )

    change_type: Mapped[str] = mapped_column(String(10), nullable=False)

    change_amount: Mapped[int] = mapped_column(nullable=False)

    previous_quantity: Mapped[int] = mapped_column(nullable=False)

    new_quantity: Mapped[int] = mapped_column(nullable=False)

    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    # Donation or disbursement serial that caused the movement, if any
    batch_serial_number: Mapped[str | None] = mapped_column(String(20), nullable=True)

    # Set on compensating entries only
    reverts_entry_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("inventory_log_entries.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryLogEntry {self.change_type} {self.change_amount} "
            f"{self.previous_quantity}->{self.new_quantity}>"
        )

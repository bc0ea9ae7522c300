"""
Module: inventory_kernel.models.serial_counter
Responsibility: ORM persistence for per-type serial number counters and
    the inventory log sequence.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per serial type (uq_serial_counter_type).
    - current_value only grows, and only inside the transaction that uses
      the number, so a rollback hands the number back.

Failure modes:
    - IntegrityError when two transactions race to create the first row;
      SerialNumberAllocator retries the read under lock.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import Base


class SerialCounter(Base):
    """Source of truth for the next batch serial of one type."""

    __tablename__ = "serial_counters"

    __table_args__ = (
        UniqueConstraint("serial_type", name="uq_serial_counter_type"),
        CheckConstraint("current_value >= 0", name="ck_serial_counter_non_negative"),
    )

    serial_type: Mapped[str] = mapped_column(String(20), nullable=False)

    prefix: Mapped[str] = mapped_column(String(5), nullable=False)

    # Last value handed out; 0 means none yet
    current_value: Mapped[int] = mapped_column(nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SerialCounter {self.serial_type}={self.prefix}{self.current_value}>"

"""
Module: inventory_kernel.models.stock
Responsibility: ORM persistence for per-item stock counters.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One StockRecord per (item_name, item_category) (uq_stock_item_key).
    - total_stock and safety_stock are never negative (ck_stock_* checks);
      the TransactionCoordinator checks first, the database backs it up.
    - StockRecords are never deleted (db/immutability.py).

Failure modes:
    - IntegrityError on duplicate item key or a negative quantity reaching
      the database.

Audit relevance:
    Every change to total_stock is paired with an InventoryLogEntry written
    in the same transaction.  The record is created lazily the first time a
    donation references its item key.
"""

from sqlalchemy import Boolean, CheckConstraint, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class StockRecord(TrackedBase):
    """
    Running stock counter for one item.

    Contract:
        Mutated only through the TransactionCoordinator, under a row lock,
        with one InventoryLogEntry per change.

    Non-goals:
        - safety_stock never blocks a mutation; it only drives the
          reporting status.
    """

    __tablename__ = "stock_records"

    __table_args__ = (
        UniqueConstraint("item_name", "item_category", name="uq_stock_item_key"),
        CheckConstraint("total_stock >= 0", name="ck_stock_total_non_negative"),
        CheckConstraint("safety_stock >= 0", name="ck_stock_safety_non_negative"),
        Index("idx_stock_category_name", "item_category", "item_name"),
    )

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)

    item_category: Mapped[str] = mapped_column(String(100), nullable=False)

    item_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    total_stock: Mapped[int] = mapped_column(nullable=False, default=0)

    # Reporting threshold only
    safety_stock: Mapped[int] = mapped_column(nullable=False, default=0)

    is_standard: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return (
            f"<StockRecord {self.item_name} ({self.item_category}): "
            f"{self.total_stock} {self.item_unit}>"
        )

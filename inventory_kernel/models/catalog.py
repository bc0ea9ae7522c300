"""
Module: inventory_kernel.models.catalog
Responsibility: ORM persistence for the standard item catalog and the
    canned reasons offered for manual stock adjustments.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One StandardItem per (name, category) (uq_standard_item_key).
    - default_unit is one of units (checked by CatalogService via UnitList).
"""

from sqlalchemy import JSON, Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class StandardItem(TrackedBase):
    """Catalog entry for an item the charity routinely handles."""

    __tablename__ = "standard_items"

    __table_args__ = (
        UniqueConstraint("name", "category", name="uq_standard_item_key"),
        Index("idx_standard_item_category_order", "category", "sort_order"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    category: Mapped[str] = mapped_column(String(100), nullable=False)

    # Ordered list of unit labels
    units: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    default_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<StandardItem {self.name} ({self.category})>"


class InventoryChangeReason(TrackedBase):
    """Canned reason text offered for one adjustment direction."""

    __tablename__ = "inventory_change_reasons"

    __table_args__ = (
        UniqueConstraint("change_type", "reason", name="uq_change_reason"),
        Index("idx_change_reason_type_order", "change_type", "sort_order"),
    )

    change_type: Mapped[str] = mapped_column(String(10), nullable=False)

    reason: Mapped[str] = mapped_column(String(255), nullable=False)

    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<InventoryChangeReason {self.change_type}: {self.reason}>"

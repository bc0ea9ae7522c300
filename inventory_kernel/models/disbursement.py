"""
Module: inventory_kernel.models.disbursement
Responsibility: ORM persistence for disbursement batches and their line items.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - serial_number is unique (uq_disbursement_serial) and carries the
      disbursement prefix.
    - recipient_name is always set, even when no RecipientUnit is referenced.
    - Every line item has quantity > 0 (ck_disbursement_line_quantity).
"""

from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.models.party import RecipientUnit


class DisbursementBatch(TrackedBase):
    """One outflow event, numbered B00001, B00002, ..."""

    __tablename__ = "disbursement_batches"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_disbursement_serial"),
        Index("idx_disbursement_created", "created_at"),
        Index("idx_disbursement_recipient", "recipient_unit_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(20), nullable=False)

    recipient_unit_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("recipient_units.id"),
        nullable=True,
    )

    # Free text; copied from the unit when one was resolved
    recipient_name: Mapped[str] = mapped_column(String(200), nullable=False)

    recipient_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    recipient_address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    recipient_unit: Mapped[RecipientUnit | None] = relationship()

    items: Mapped[list["DisbursementLineItem"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="DisbursementLineItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<DisbursementBatch {self.serial_number} -> {self.recipient_name}>"


class DisbursementLineItem(Base):
    """One item line of a disbursement batch."""

    __tablename__ = "disbursement_line_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_disbursement_line_quantity"),
        Index("idx_disbursement_line_item_key", "item_category", "item_name"),
        Index("idx_disbursement_line_batch", "disbursement_id"),
    )

    disbursement_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("disbursement_batches.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(nullable=False, default=0)

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)

    item_category: Mapped[str] = mapped_column(String(100), nullable=False)

    item_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    batch: Mapped[DisbursementBatch] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<DisbursementLineItem {self.item_name} x{self.quantity}>"

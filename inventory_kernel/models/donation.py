"""
Module: inventory_kernel.models.donation
Responsibility: ORM persistence for donation batches and their line items.
Architecture position: Kernel > Models.  May import from db/base.py and
    sibling models only.

Invariants enforced:
    - serial_number is unique (uq_donation_serial) and carries the donation
      prefix.
    - Every line item has quantity > 0 (ck_donation_line_quantity).
    - Line items belong to exactly one batch and are deleted with it.

Audit relevance:
    Line item expiry dates feed the expiry report; the batch serial is
    stamped on every inventory log entry the donation produced.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from inventory_kernel.db.base import Base, TrackedBase, UUIDString
from inventory_kernel.models.party import Donor


class DonationBatch(TrackedBase):
    """One intake event, numbered A00001, A00002, ..."""

    __tablename__ = "donation_batches"

    __table_args__ = (
        UniqueConstraint("serial_number", name="uq_donation_serial"),
        Index("idx_donation_created", "created_at"),
        Index("idx_donation_donor", "donor_id"),
    )

    serial_number: Mapped[str] = mapped_column(String(20), nullable=False)

    donor_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("donors.id"),
        nullable=True,
    )

    donor: Mapped[Donor | None] = relationship()

    items: Mapped[list["DonationLineItem"]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="DonationLineItem.line_number",
    )

    def __repr__(self) -> str:
        return f"<DonationBatch {self.serial_number}>"


class DonationLineItem(Base):
    """One item line of a donation batch."""

    __tablename__ = "donation_line_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_donation_line_quantity"),
        Index("idx_donation_line_item_key", "item_category", "item_name"),
        Index("idx_donation_line_expiry", "expiry_date"),
        Index("idx_donation_line_batch", "donation_id"),
    )

    donation_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("donation_batches.id", ondelete="CASCADE"),
        nullable=False,
    )

    line_number: Mapped[int] = mapped_column(nullable=False, default=0)

    item_name: Mapped[str] = mapped_column(String(200), nullable=False)

    item_category: Mapped[str] = mapped_column(String(100), nullable=False)

    item_unit: Mapped[str] = mapped_column(String(20), nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)

    # Calendar day, compared against the clock's UTC date
    expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Staff marked the expiring goods as dealt with
    is_handled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    is_standard: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    batch: Mapped[DonationBatch] = relationship(back_populates="items")

    def __repr__(self) -> str:
        return f"<DonationLineItem {self.item_name} x{self.quantity}>"

"""
Module: inventory_kernel.models.party
Responsibility: ORM persistence for donors and recipient units, the two
    kinds of outside party a batch can reference.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Names are unique per party kind (uq_donor_name, uq_recipient_unit_name).
    - Parties are soft-deleted (is_active=False) so historical batches keep
      their reference.
"""

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TrackedBase


class Donor(TrackedBase):
    """Person or organization that donates goods."""

    __tablename__ = "donors"

    __table_args__ = (
        UniqueConstraint("name", name="uq_donor_name"),
        Index("idx_donor_active", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Tax id printed on donation receipts
    tax_id: Mapped[str | None] = mapped_column(String(50), nullable=True)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<Donor {self.name}>"


class RecipientUnit(TrackedBase):
    """Organization that receives disbursements."""

    __tablename__ = "recipient_units"

    __table_args__ = (
        UniqueConstraint("name", name="uq_recipient_unit_name"),
        Index("idx_recipient_unit_active_order", "is_active", "sort_order"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    address: Mapped[str | None] = mapped_column(String(500), nullable=True)

    contact_person: Mapped[str | None] = mapped_column(String(100), nullable=True)

    sort_order: Mapped[int] = mapped_column(nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def __repr__(self) -> str:
        return f"<RecipientUnit {self.name}>"

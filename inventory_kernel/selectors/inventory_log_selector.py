"""
Module: inventory_kernel.selectors.inventory_log_selector
Responsibility: Paged, filtered read access to the inventory log, plus
    history replay for a single stock record.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.dtos import InventoryLogEntryInfo, LogFilter, Page
from inventory_kernel.domain.policy import DEFAULT_STOCK_POLICY, StockPolicy
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.selectors.base import BaseSelector, page_bounds


class InventoryLogSelector(BaseSelector[InventoryLogEntry]):
    """Read side of the append-only log. Newest entries first."""

    def __init__(self, session: Session, policy: StockPolicy = DEFAULT_STOCK_POLICY):
        super().__init__(session)
        self._policy = policy

    def _filtered(self, stmt, f: LogFilter):
        if f.stock_record_id is not None:
            stmt = stmt.where(InventoryLogEntry.stock_record_id == f.stock_record_id)
        if f.change_type is not None:
            stmt = stmt.where(InventoryLogEntry.change_type == f.change_type.value)
        if f.item_category:
            stmt = stmt.where(StockRecord.item_category == f.item_category.strip())
        if f.batch_serial_number:
            stmt = stmt.where(InventoryLogEntry.batch_serial_number == f.batch_serial_number.strip())
        if f.search and f.search.strip():
            pattern = f"%{f.search.strip()}%"
            stmt = stmt.where(
                or_(
                    StockRecord.item_name.ilike(pattern),
                    InventoryLogEntry.reason.ilike(pattern),
                )
            )
        if f.start is not None:
            stmt = stmt.where(InventoryLogEntry.created_at >= f.start)
        if f.end is not None:
            stmt = stmt.where(InventoryLogEntry.created_at <= f.end)
        return stmt

    def get_logs(
        self,
        page: int = 1,
        page_size: int | None = None,
        filters: LogFilter | None = None,
    ) -> Page:
        """
        One page of log entries with item names attached.

        ``page_size`` defaults to and is capped by the stock policy.
        """
        f = filters or LogFilter()
        page, page_size, offset = page_bounds(
            page, page_size, self._policy.default_page_size, self._policy.max_page_size
        )

        base = select(InventoryLogEntry, StockRecord).join(
            StockRecord, InventoryLogEntry.stock_record_id == StockRecord.id
        )
        base = self._filtered(base, f)

        total = self.session.execute(
            select(func.count()).select_from(base.order_by(None).subquery())
        ).scalar_one()

        rows = self.session.execute(
            base.order_by(InventoryLogEntry.seq.desc())
            .limit(page_size)
            .offset(offset)
        ).all()

        return Page(
            items=tuple(InventoryLogEntryInfo.from_model(entry, record) for entry, record in rows),
            total=total,
            page=page,
            page_size=page_size,
        )

    def get_history(self, stock_record_id: UUID) -> list[InventoryLogEntryInfo]:
        """Every entry for one stock record, oldest first."""
        rows = self.session.execute(
            select(InventoryLogEntry, StockRecord)
            .join(StockRecord, InventoryLogEntry.stock_record_id == StockRecord.id)
            .where(InventoryLogEntry.stock_record_id == stock_record_id)
            .order_by(InventoryLogEntry.seq)
        ).all()
        return [InventoryLogEntryInfo.from_model(entry, record) for entry, record in rows]

    def net_change(self, stock_record_id: UUID) -> int:
        """Sum of signed movements ever logged for one stock record."""
        increases = self.session.execute(
            select(func.coalesce(func.sum(InventoryLogEntry.change_amount), 0)).where(
                InventoryLogEntry.stock_record_id == stock_record_id,
                InventoryLogEntry.change_type == "INCREASE",
            )
        ).scalar_one()
        decreases = self.session.execute(
            select(func.coalesce(func.sum(InventoryLogEntry.change_amount), 0)).where(
                InventoryLogEntry.stock_record_id == stock_record_id,
                InventoryLogEntry.change_type == "DECREASE",
            )
        ).scalar_one()
        return int(increases) - int(decreases)

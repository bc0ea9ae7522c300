"""
Module: inventory_kernel.selectors.stock_selector
Responsibility: Read-only stock report with per-item status and summary.
Architecture position: Kernel > Selectors.

The summary counts are computed over the category/search/active filters
but BEFORE the status filter, so the totals shown alongside a filtered
list always describe the whole inventory view.
"""

from __future__ import annotations

from sqlalchemy import select

from inventory_kernel.domain.dtos import (
    StockFilter,
    StockRecordInfo,
    StockReport,
    StockSummary,
)
from inventory_kernel.domain.values import ItemKey, StockStatus
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.selectors.base import BaseSelector


class StockSelector(BaseSelector[StockRecord]):
    """Stock levels as the caller's transaction sees them. Takes no locks."""

    def get_stock(self, stock_filter: StockFilter | None = None) -> StockReport:
        """
        List stock records ordered by category, then name.

        Args:
            stock_filter: category (exact), status, active_only (hide
                records with zero stock, default True), search (substring
                of the item name, case-insensitive).
        """
        f = stock_filter or StockFilter()
        stmt = select(StockRecord)
        if f.category and f.category.strip():
            stmt = stmt.where(StockRecord.item_category == f.category.strip())
        if f.search and f.search.strip():
            stmt = stmt.where(StockRecord.item_name.ilike(f"%{f.search.strip()}%"))
        if f.active_only:
            stmt = stmt.where(StockRecord.total_stock > 0)
        stmt = stmt.order_by(StockRecord.item_category, StockRecord.item_name)

        items = [StockRecordInfo.from_model(r) for r in self.session.execute(stmt).scalars().all()]

        summary = StockSummary(
            total=len(items),
            sufficient=sum(1 for i in items if i.status is StockStatus.SUFFICIENT),
            insufficient=sum(1 for i in items if i.status is StockStatus.INSUFFICIENT),
            out_of_stock=sum(1 for i in items if i.status is StockStatus.OUT_OF_STOCK),
        )

        if f.status is not None:
            wanted = StockStatus(f.status)
            items = [i for i in items if i.status is wanted]

        return StockReport(items=tuple(items), summary=summary)

    def get_by_key(self, key: ItemKey) -> StockRecordInfo | None:
        record = self.session.execute(
            select(StockRecord).where(
                StockRecord.item_name == key.name,
                StockRecord.item_category == key.category,
            )
        ).scalar_one_or_none()
        return StockRecordInfo.from_model(record) if record else None

    def categories(self) -> list[str]:
        return list(
            self.session.execute(
                select(StockRecord.item_category)
                .distinct()
                .order_by(StockRecord.item_category)
            ).scalars()
        )

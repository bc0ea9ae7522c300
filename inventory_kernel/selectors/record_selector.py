"""
Module: inventory_kernel.selectors.record_selector
Responsibility: Paged listings of donation and disbursement batches and the
    monthly activity counts shown on the dashboard.
Architecture position: Kernel > Selectors.

Listing filters:
    search          serial number, party name, or any line item name
    start / end     batch creation time window (inclusive)
    party_id        donor (donations) or recipient unit (disbursements)
    item_category   batches with at least one line in the category
    item_name       batches with at least one line for the item

``Page.summary["total_quantity"]`` sums the matching lines of ALL matching
batches, not only the current page.
"""

from __future__ import annotations

from datetime import datetime, time, timezone

from sqlalchemy import exists, func, or_, select
from sqlalchemy.orm import Session, selectinload

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    DisbursementBatchInfo,
    DonationBatchInfo,
    LineItemInfo,
    MonthlyStatistics,
    Page,
    RecordFilter,
)
from inventory_kernel.domain.policy import DEFAULT_STOCK_POLICY, StockPolicy
from inventory_kernel.models.disbursement import DisbursementBatch, DisbursementLineItem
from inventory_kernel.models.donation import DonationBatch, DonationLineItem
from inventory_kernel.models.party import Donor
from inventory_kernel.selectors.base import BaseSelector, page_bounds


def _line_info(line) -> LineItemInfo:
    return LineItemInfo(
        id=line.id,
        item_name=line.item_name,
        item_category=line.item_category,
        item_unit=line.item_unit,
        quantity=line.quantity,
        expiry_date=getattr(line, "expiry_date", None),
        is_handled=getattr(line, "is_handled", False),
        is_standard=getattr(line, "is_standard", False),
        notes=getattr(line, "notes", None),
    )


class RecordSelector(BaseSelector[DonationBatch]):
    """Batch listings and statistics."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._policy = policy

    def _line_conditions(self, line_model, f: RecordFilter) -> list:
        conditions = []
        if f.item_category and f.item_category.strip():
            conditions.append(line_model.item_category == f.item_category.strip())
        if f.item_name and f.item_name.strip():
            conditions.append(line_model.item_name == f.item_name.strip())
        return conditions

    def _paged(self, batch_model, line_model, fk, conditions, line_conditions, f, page, page_size):
        page, page_size, offset = page_bounds(
            page, page_size, self._policy.default_page_size, self._policy.max_page_size
        )

        if line_conditions:
            conditions = conditions + [
                exists().where(fk == batch_model.id, *line_conditions)
            ]

        ids = select(batch_model.id).where(*conditions)
        total = self.session.execute(
            select(func.count()).select_from(ids.subquery())
        ).scalar_one()
        total_quantity = self.session.execute(
            select(func.coalesce(func.sum(line_model.quantity), 0)).where(
                fk.in_(ids), *line_conditions
            )
        ).scalar_one()

        order = batch_model.created_at.desc() if f.sort_descending else batch_model.created_at
        batches = self.session.execute(
            select(batch_model)
            .where(*conditions)
            .options(selectinload(batch_model.items))
            .order_by(order, batch_model.serial_number.desc() if f.sort_descending else batch_model.serial_number)
            .limit(page_size)
            .offset(offset)
        ).scalars().all()

        return batches, total, int(total_quantity), page, page_size

    @staticmethod
    def _window(model, f: RecordFilter) -> list:
        conditions = []
        if f.start is not None:
            conditions.append(model.created_at >= f.start)
        if f.end is not None:
            conditions.append(model.created_at <= f.end)
        return conditions

    def list_donations(
        self,
        page: int = 1,
        page_size: int | None = None,
        filters: RecordFilter | None = None,
    ) -> Page:
        f = filters or RecordFilter()
        conditions = self._window(DonationBatch, f)
        if f.party_id is not None:
            conditions.append(DonationBatch.donor_id == f.party_id)
        if f.search and f.search.strip():
            pattern = f"%{f.search.strip()}%"
            conditions.append(
                or_(
                    DonationBatch.serial_number.ilike(pattern),
                    DonationBatch.donor_id.in_(select(Donor.id).where(Donor.name.ilike(pattern))),
                    exists().where(
                        DonationLineItem.donation_id == DonationBatch.id,
                        DonationLineItem.item_name.ilike(pattern),
                    ),
                )
            )

        batches, total, total_quantity, page, page_size = self._paged(
            DonationBatch,
            DonationLineItem,
            DonationLineItem.donation_id,
            conditions,
            self._line_conditions(DonationLineItem, f),
            f,
            page,
            page_size,
        )
        items = tuple(
            DonationBatchInfo(
                id=b.id,
                serial_number=b.serial_number,
                donor_id=b.donor_id,
                donor_name=b.donor.name if b.donor is not None else None,
                created_at=b.created_at,
                created_by_id=b.created_by_id,
                items=tuple(_line_info(line) for line in b.items),
            )
            for b in batches
        )
        return Page(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            summary={"total_quantity": total_quantity},
        )

    def list_disbursements(
        self,
        page: int = 1,
        page_size: int | None = None,
        filters: RecordFilter | None = None,
    ) -> Page:
        f = filters or RecordFilter()
        conditions = self._window(DisbursementBatch, f)
        if f.party_id is not None:
            conditions.append(DisbursementBatch.recipient_unit_id == f.party_id)
        if f.search and f.search.strip():
            pattern = f"%{f.search.strip()}%"
            conditions.append(
                or_(
                    DisbursementBatch.serial_number.ilike(pattern),
                    DisbursementBatch.recipient_name.ilike(pattern),
                    exists().where(
                        DisbursementLineItem.disbursement_id == DisbursementBatch.id,
                        DisbursementLineItem.item_name.ilike(pattern),
                    ),
                )
            )

        batches, total, total_quantity, page, page_size = self._paged(
            DisbursementBatch,
            DisbursementLineItem,
            DisbursementLineItem.disbursement_id,
            conditions,
            self._line_conditions(DisbursementLineItem, f),
            f,
            page,
            page_size,
        )
        items = tuple(
            DisbursementBatchInfo(
                id=b.id,
                serial_number=b.serial_number,
                recipient_unit_id=b.recipient_unit_id,
                recipient_name=b.recipient_name,
                recipient_phone=b.recipient_phone,
                recipient_address=b.recipient_address,
                created_at=b.created_at,
                created_by_id=b.created_by_id,
                items=tuple(_line_info(line) for line in b.items),
            )
            for b in batches
        )
        return Page(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            summary={"total_quantity": total_quantity},
        )

    def monthly_statistics(self) -> MonthlyStatistics:
        """Batch counts and quantities since the first of the current UTC month."""
        month_start = self._clock.today().replace(day=1)
        since = datetime.combine(month_start, time.min, tzinfo=timezone.utc)

        donation_count = self.session.execute(
            select(func.count(DonationBatch.id)).where(DonationBatch.created_at >= since)
        ).scalar_one()
        disbursement_count = self.session.execute(
            select(func.count(DisbursementBatch.id)).where(DisbursementBatch.created_at >= since)
        ).scalar_one()
        donated = self.session.execute(
            select(func.coalesce(func.sum(DonationLineItem.quantity), 0))
            .join(DonationBatch, DonationLineItem.donation_id == DonationBatch.id)
            .where(DonationBatch.created_at >= since)
        ).scalar_one()
        disbursed = self.session.execute(
            select(func.coalesce(func.sum(DisbursementLineItem.quantity), 0))
            .join(DisbursementBatch, DisbursementLineItem.disbursement_id == DisbursementBatch.id)
            .where(DisbursementBatch.created_at >= since)
        ).scalar_one()

        return MonthlyStatistics(
            month_start=month_start,
            donation_count=donation_count,
            disbursement_count=disbursement_count,
            donated_quantity=int(donated),
            disbursed_quantity=int(disbursed),
        )

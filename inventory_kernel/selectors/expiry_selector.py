"""
Module: inventory_kernel.selectors.expiry_selector
Responsibility: Derive expired / expiring alerts from donation line items.
Architecture position: Kernel > Selectors.  Independent read path; never
    mutates and takes no locks.

Algorithm:
    1. Group donation line items with an expiry date by item key and take
       the soonest date per key.
    2. Keep only keys whose stock record still holds stock (> 0).
    3. soonest < today                       -> expired
       today <= soonest <= today + warning   -> expiring
       anything later                        -> not reported
    4. Attach the donation lines carrying that soonest date.  An item is
       unhandled while any of those lines is not marked handled.
    5. Summary mode returns the counts only; detail mode also the items.

Dates are calendar days; "today" is the injected clock's UTC date.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import date, timedelta

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    ExpiryDonationRecord,
    ExpiryItemDetail,
    ExpiryReport,
)
from inventory_kernel.domain.policy import DEFAULT_STOCK_POLICY, StockPolicy
from inventory_kernel.domain.values import ExpiryStatus, ItemKey
from inventory_kernel.models.donation import DonationBatch, DonationLineItem
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.selectors.base import BaseSelector


class ExpirySelector(BaseSelector[DonationLineItem]):
    """
    Expiry report.

    Guarantees:
        - Items with zero stock never appear.
        - Each list is sorted by soonest expiry, ties by category then name.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
    ):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._warning_days = policy.expiry_warning_days

    def get_expiry_status(self, detail: bool = False) -> ExpiryReport:
        today = self._clock.today()
        horizon = today + timedelta(days=self._warning_days)

        soonest = (
            select(
                DonationLineItem.item_name.label("item_name"),
                DonationLineItem.item_category.label("item_category"),
                func.min(DonationLineItem.expiry_date).label("soonest"),
            )
            .where(DonationLineItem.expiry_date.is_not(None))
            .group_by(DonationLineItem.item_name, DonationLineItem.item_category)
            .subquery()
        )
        rows = self.session.execute(
            select(StockRecord, soonest.c.soonest)
            .join(
                soonest,
                and_(
                    StockRecord.item_name == soonest.c.item_name,
                    StockRecord.item_category == soonest.c.item_category,
                ),
            )
            .where(StockRecord.total_stock > 0)
            .where(soonest.c.soonest <= horizon)
        ).all()

        classified: list[tuple[StockRecord, date, ExpiryStatus]] = []
        for record, soonest_date in rows:
            status = ExpiryStatus.EXPIRED if soonest_date < today else ExpiryStatus.EXPIRING
            classified.append((record, soonest_date, status))

        records_by_key = self._donation_records(
            {ItemKey(r.item_name, r.item_category): d for r, d, _ in classified}
        )

        details = [
            ExpiryItemDetail(
                stock_record_id=record.id,
                item_name=record.item_name,
                item_category=record.item_category,
                item_unit=record.item_unit,
                total_stock=record.total_stock,
                soonest_expiry=soonest_date,
                days_until_expiry=(soonest_date - today).days,
                status=status,
                donation_records=tuple(
                    records_by_key.get(ItemKey(record.item_name, record.item_category), ())
                ),
            )
            for record, soonest_date, status in classified
        ]
        details.sort(key=lambda d: (d.soonest_expiry, d.item_category, d.item_name))
        expired = tuple(d for d in details if d.status is ExpiryStatus.EXPIRED)
        expiring = tuple(d for d in details if d.status is ExpiryStatus.EXPIRING)

        return ExpiryReport(
            today=today,
            warning_days=self._warning_days,
            expired_count=len(expired),
            expiring_count=len(expiring),
            expired_unhandled_count=sum(1 for d in expired if d.has_unhandled),
            expiring_unhandled_count=sum(1 for d in expiring if d.has_unhandled),
            expired=expired if detail else (),
            expiring=expiring if detail else (),
        )

    def _donation_records(self, soonest_by_key: dict[ItemKey, date]) -> dict[ItemKey, list[ExpiryDonationRecord]]:
        """Donation lines whose expiry date equals their key's soonest date."""
        if not soonest_by_key:
            return {}
        stmt = (
            select(DonationLineItem, DonationBatch.serial_number)
            .join(DonationBatch, DonationLineItem.donation_id == DonationBatch.id)
            .where(
                or_(
                    *(
                        and_(
                            DonationLineItem.item_name == key.name,
                            DonationLineItem.item_category == key.category,
                            DonationLineItem.expiry_date == soonest_date,
                        )
                        for key, soonest_date in soonest_by_key.items()
                    )
                )
            )
            .order_by(DonationBatch.serial_number, DonationLineItem.line_number)
        )
        grouped: dict[ItemKey, list[ExpiryDonationRecord]] = defaultdict(list)
        for line, serial in self.session.execute(stmt).all():
            grouped[ItemKey(line.item_name, line.item_category)].append(
                ExpiryDonationRecord(
                    donation_id=line.donation_id,
                    serial_number=serial,
                    line_item_id=line.id,
                    quantity=line.quantity,
                    expiry_date=line.expiry_date,
                    is_handled=line.is_handled,
                )
            )
        return grouped

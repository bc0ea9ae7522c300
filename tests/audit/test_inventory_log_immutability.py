"""
Append-only enforcement for the inventory log and stock records.

Log entries are never updated or deleted; stock records are never deleted.
Quantity updates on stock records stay allowed.
"""

import pytest
from sqlalchemy import select

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.models.inventory_log import InventoryLogEntry


def _first_entry(session, record):
    return session.execute(
        select(InventoryLogEntry).where(InventoryLogEntry.stock_record_id == record.id)
    ).scalars().first()


class TestInventoryLogImmutability:

    def test_update_blocked(self, session, stock_in):
        rice = stock_in("Rice", "Food", 10)
        entry = _first_entry(session, rice)

        entry.change_amount = 99
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_reason_update_blocked(self, session, stock_in):
        rice = stock_in("Rice", "Food", 10)
        entry = _first_entry(session, rice)

        entry.reason = "Edited"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_blocked(self, session, stock_in, captured_logs):
        rice = stock_in("Rice", "Food", 10)
        entry = _first_entry(session, rice)

        session.delete(entry)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        blocked = [r for r in captured_logs() if r["message"] == "immutability_violation_blocked"]
        assert blocked[0]["entity_type"] == "InventoryLogEntry"
        assert blocked[0]["db_operation"] == "DELETE"


class TestStockRecordProtection:

    def test_delete_blocked(self, session, stock_in):
        rice = stock_in("Rice", "Food", 10)

        session.delete(rice)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_zero_stock_record_survives(self, session, coordinator, stock_in, actor):
        rice = stock_in("Rice", "Food", 2)
        coordinator.record_adjustment(rice.id, "DECREASE", 2, "Expired and discarded", actor)

        session.refresh(rice)
        assert rice.total_stock == 0
        assert _first_entry(session, rice) is not None

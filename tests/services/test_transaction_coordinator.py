"""
Tests for TransactionCoordinator: disbursements, donations and their
deletion.

Covers:
- The rice scenario end to end (serial, insufficient stock, restore)
- Line item normalization and recipient resolution
- All-or-nothing behaviour on failure
- One inventory log entry per line item moved
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from inventory_kernel.domain.dtos import LineItemInput, RecipientInput
from inventory_kernel.domain.policy import StockPolicy
from inventory_kernel.domain.values import ItemKey, UnitList
from inventory_kernel.exceptions import (
    BatchNotFoundError,
    DonationLineItemNotFoundError,
    DonorNotFoundError,
    EmptyItemListError,
    InsufficientStockError,
    QuantityLimitExceededError,
    RecipientUnitNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext
from inventory_kernel.models.disbursement import DisbursementBatch, DisbursementLineItem
from inventory_kernel.models.donation import DonationBatch, DonationLineItem
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.services.transaction_coordinator import TransactionCoordinator


def _stock(session, name, category):
    return session.execute(
        select(StockRecord)
        .where(StockRecord.item_name == name, StockRecord.item_category == category)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _log_count(session):
    return session.execute(select(func.count(InventoryLogEntry.id))).scalar_one()


class TestRiceScenario:
    """Stock 10 rice; take 7; a request for 5 fails; deleting the first restores 10."""

    def test_full_scenario(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 10)

        first = coordinator.create_disbursement(
            RecipientInput(name="Eastside Shelter"),
            [LineItemInput("Rice", "Food", 7)],
            actor,
        )
        assert first.serial_number == "B00001"
        assert _stock(session, "Rice", "Food").total_stock == 3

        with pytest.raises(InsufficientStockError) as exc_info:
            coordinator.create_disbursement(
                RecipientInput(name="Eastside Shelter"),
                [LineItemInput("Rice", "Food", 5)],
                actor,
            )
        assert "have 3, need 5" in str(exc_info.value)
        assert exc_info.value.requested == 5
        assert exc_info.value.available == 3
        assert _stock(session, "Rice", "Food").total_stock == 3

        restored = coordinator.delete_disbursement(first.id, actor)
        assert restored.serial_number == "B00001"
        assert restored.movements[0].new_quantity == 10
        assert _stock(session, "Rice", "Food").total_stock == 10

    def test_failed_disbursement_returns_its_serial(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 2)
        with pytest.raises(InsufficientStockError):
            coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 5)], actor)
        batch = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert batch.serial_number == "B00001"


class TestCreateDisbursement:

    def test_decrements_and_logs_per_line(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 10)
        stock_in("Soap", "Hygiene", 4)
        logs_before = _log_count(session)

        batch = coordinator.create_disbursement(
            None,
            [
                LineItemInput("Rice", "Food", 2),
                LineItemInput("Soap", "Hygiene", 1),
                LineItemInput("Rice", "Food", 3),
            ],
            actor,
        )

        assert _stock(session, "Rice", "Food").total_stock == 5
        assert _stock(session, "Soap", "Hygiene").total_stock == 3
        assert len(batch.items) == 3
        assert batch.total_quantity == 6
        assert len(batch.log_entries) == 3
        assert _log_count(session) == logs_before + 3
        assert all(e.batch_serial_number == batch.serial_number for e in batch.log_entries)
        assert all(e.reason == "Disbursement" for e in batch.log_entries)

    def test_repeated_key_is_checked_on_the_sum(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 4)
        with pytest.raises(InsufficientStockError) as exc_info:
            coordinator.create_disbursement(
                None,
                [LineItemInput("Rice", "Food", 3), LineItemInput("Rice", "Food", 2)],
                actor,
            )
        assert exc_info.value.requested == 5
        assert _stock(session, "Rice", "Food").total_stock == 4

    def test_no_partial_decrement(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 10)
        stock_in("Soap", "Hygiene", 1)
        logs_before = _log_count(session)

        with pytest.raises(InsufficientStockError):
            coordinator.create_disbursement(
                None,
                [LineItemInput("Rice", "Food", 5), LineItemInput("Soap", "Hygiene", 2)],
                actor,
            )

        assert _stock(session, "Rice", "Food").total_stock == 10
        assert _stock(session, "Soap", "Hygiene").total_stock == 1
        assert _log_count(session) == logs_before
        assert session.execute(select(func.count(DisbursementBatch.id))).scalar_one() == 0

    def test_unknown_item_is_insufficient(self, coordinator, actor):
        with pytest.raises(InsufficientStockError) as exc_info:
            coordinator.create_disbursement(None, [LineItemInput("Tea", "Food", 1)], actor)
        assert exc_info.value.available == 0

    def test_malformed_lines_are_dropped(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            None,
            [
                {"item_name": " Rice ", "item_category": "Food", "quantity": "2.7"},
                {"item_name": "", "item_category": "Food", "quantity": 1},
                {"item_name": "Rice", "item_category": "Food", "quantity": 0},
                {"item_name": "Rice", "item_category": "Food", "quantity": True},
                {"itemName": "Rice", "itemCategory": "Food", "quantity": 1},
            ],
            actor,
        )
        assert [i.quantity for i in batch.items] == [2, 1]
        assert batch.items[0].item_name == "Rice"

    def test_no_valid_lines(self, coordinator, actor):
        with pytest.raises(EmptyItemListError):
            coordinator.create_disbursement(
                None, [{"item_name": "Rice", "item_category": "Food", "quantity": -1}], actor
            )
        with pytest.raises(EmptyItemListError):
            coordinator.create_disbursement(None, [], actor)

    def test_default_unit_from_policy(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert batch.items[0].item_unit == "pcs"

    def test_default_unit_from_catalog(self, coordinator, session, catalog_service, stock_in, actor):
        catalog_service.register_item(ItemKey("Rice", "Food"), UnitList(("bag", "kg"), "kg"), actor)
        session.commit()
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert batch.items[0].item_unit == "kg"

    def test_default_recipient_name(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            RecipientInput(name="   "), [LineItemInput("Rice", "Food", 1)], actor
        )
        assert batch.recipient_name == "Walk-in pickup"
        assert batch.recipient_unit_id is None

    def test_free_text_recipient(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            {"name": "Mrs. Lee", "phone": "555-0123"}, [LineItemInput("Rice", "Food", 1)], actor
        )
        assert batch.recipient_name == "Mrs. Lee"
        assert batch.recipient_phone == "555-0123"
        assert batch.recipient_unit_id is None


class TestRecipientResolution:

    def test_unit_by_id_fills_contact(self, coordinator, stock_in, recipient_unit, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            RecipientInput(unit_id=recipient_unit.id), [LineItemInput("Rice", "Food", 1)], actor
        )
        assert batch.recipient_unit_id == recipient_unit.id
        assert batch.recipient_name == "Eastside Shelter"
        assert batch.recipient_phone == "555-0199"
        assert batch.recipient_address == "12 Dock Road"

    def test_unit_by_name(self, coordinator, stock_in, recipient_unit, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            RecipientInput(name="Eastside Shelter", phone="555-9999"),
            [LineItemInput("Rice", "Food", 1)],
            actor,
        )
        assert batch.recipient_unit_id == recipient_unit.id
        assert batch.recipient_phone == "555-9999"
        assert batch.recipient_address == "12 Dock Road"

    def test_unknown_unit_id(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 10)
        with pytest.raises(RecipientUnitNotFoundError):
            coordinator.create_disbursement(
                RecipientInput(unit_id=uuid4()), [LineItemInput("Rice", "Food", 1)], actor
            )
        assert _stock(session, "Rice", "Food").total_stock == 10

    def test_inactive_unit_not_linked_by_name(
        self, coordinator, session, recipient_unit_service, stock_in, recipient_unit, actor
    ):
        recipient_unit_service.deactivate_unit(recipient_unit.id, actor)
        session.commit()
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            RecipientInput(name="Eastside Shelter"), [LineItemInput("Rice", "Food", 1)], actor
        )
        assert batch.recipient_unit_id is None


class TestDeleteDisbursement:

    def test_restores_and_logs(self, coordinator, session, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(
            None, [LineItemInput("Rice", "Food", 4), LineItemInput("Rice", "Food", 2)], actor
        )
        result = coordinator.delete_disbursement(batch.id, actor)

        assert _stock(session, "Rice", "Food").total_stock == 10
        assert len(result.log_entries) == 2
        assert all(e.reason == "Disbursement deleted" for e in result.log_entries)
        assert session.get(DisbursementBatch, batch.id) is None
        assert session.execute(select(func.count(DisbursementLineItem.id))).scalar_one() == 0

    def test_missing_batch(self, coordinator, actor):
        with pytest.raises(BatchNotFoundError):
            coordinator.delete_disbursement(uuid4(), actor)

    def test_double_delete(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        batch = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 4)], actor)
        coordinator.delete_disbursement(batch.id, actor)
        with pytest.raises(BatchNotFoundError):
            coordinator.delete_disbursement(batch.id, actor)

    def test_serials_are_not_reused_after_delete(self, coordinator, stock_in, actor):
        stock_in("Rice", "Food", 10)
        first = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        coordinator.delete_disbursement(first.id, actor)
        second = coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert second.serial_number == "B00002"


class TestDonations:

    def test_creates_stock_lazily(self, coordinator, session, actor):
        batch = coordinator.create_donation(
            None,
            [LineItemInput("Rice", "Food", 5, item_unit="bag", expiry_date=date(2024, 3, 1))],
            actor,
        )
        assert batch.serial_number == "A00001"
        record = _stock(session, "Rice", "Food")
        assert record.total_stock == 5
        assert record.item_unit == "bag"
        assert batch.items[0].expiry_date == date(2024, 3, 1)
        assert batch.log_entries[0].previous_quantity == 0
        assert batch.log_entries[0].reason == "Donation received"

    def test_record_unit_kept_as_first_recorded(self, coordinator, session, actor):
        coordinator.create_donation(None, [LineItemInput("Rice", "Food", 5, item_unit="bag")], actor)
        coordinator.create_donation(None, [LineItemInput("Rice", "Food", 5, item_unit="kg")], actor)
        record = _stock(session, "Rice", "Food")
        assert record.item_unit == "bag"
        assert record.total_stock == 10

    def test_with_donor(self, coordinator, donor, actor):
        batch = coordinator.create_donation(donor.id, [LineItemInput("Rice", "Food", 1)], actor)
        assert batch.donor_id == donor.id
        assert batch.donor_name == "Harbor Bakery"

    def test_unknown_donor(self, coordinator, session, actor):
        with pytest.raises(DonorNotFoundError):
            coordinator.create_donation(uuid4(), [LineItemInput("Rice", "Food", 1)], actor)
        assert _stock(session, "Rice", "Food") is None

    def test_oversized_quantity_rejects_whole_donation(self, coordinator, session, actor):
        with pytest.raises(QuantityLimitExceededError):
            coordinator.create_donation(
                None,
                [LineItemInput("Rice", "Food", 5), LineItemInput("Beans", "Food", 10**20)],
                actor,
            )
        assert _stock(session, "Rice", "Food") is None
        assert session.execute(select(func.count(DonationBatch.id))).scalar_one() == 0

    def test_donation_past_stock_limit_rejected(self, session, deterministic_clock, actor):
        coordinator = TransactionCoordinator(
            session, clock=deterministic_clock, policy=StockPolicy(max_quantity=100)
        )
        coordinator.create_donation(None, [LineItemInput("Rice", "Food", 60)], actor)
        with pytest.raises(QuantityLimitExceededError):
            coordinator.create_donation(None, [LineItemInput("Rice", "Food", 50)], actor)
        assert _stock(session, "Rice", "Food").total_stock == 60

    def test_standard_flag_marks_record(self, coordinator, session, actor):
        coordinator.create_donation(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert _stock(session, "Rice", "Food").is_standard is False
        coordinator.create_donation(
            None, [LineItemInput("Rice", "Food", 1, is_standard=True)], actor
        )
        assert _stock(session, "Rice", "Food").is_standard is True

    def test_catalog_item_is_standard(self, coordinator, session, catalog_service, actor):
        catalog_service.register_item(ItemKey("Rice", "Food"), ["bag"], actor)
        session.commit()
        batch = coordinator.create_donation(None, [LineItemInput("Rice", "Food", 1)], actor)
        assert batch.items[0].is_standard is True
        assert batch.items[0].item_unit == "bag"

    def test_delete_takes_goods_back(self, coordinator, session, actor):
        batch = coordinator.create_donation(None, [LineItemInput("Rice", "Food", 5)], actor)
        result = coordinator.delete_donation(batch.id, actor)
        assert _stock(session, "Rice", "Food").total_stock == 0
        assert result.movements[0].previous_quantity == 5
        assert session.get(DonationBatch, batch.id) is None

    def test_delete_after_disbursement_fails(self, coordinator, session, actor):
        batch = coordinator.create_donation(None, [LineItemInput("Rice", "Food", 5)], actor)
        coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 3)], actor)
        with pytest.raises(InsufficientStockError):
            coordinator.delete_donation(batch.id, actor)
        assert _stock(session, "Rice", "Food").total_stock == 2
        assert session.get(DonationBatch, batch.id) is not None

    def test_set_line_item_handled(self, coordinator, actor):
        batch = coordinator.create_donation(
            None, [LineItemInput("Milk", "Food", 2, expiry_date=date(2024, 1, 5))], actor
        )
        line = coordinator.set_line_item_handled(batch.items[0].id, True, actor)
        assert line.is_handled is True

    def test_set_line_item_handled_missing(self, coordinator, actor):
        with pytest.raises(DonationLineItemNotFoundError):
            coordinator.set_line_item_handled(uuid4(), True, actor)

    @pytest.mark.parametrize("flag", ["false", 0, 1, None])
    def test_set_line_item_handled_requires_bool(self, coordinator, session, actor, flag):
        batch = coordinator.create_donation(
            None, [LineItemInput("Milk", "Food", 2, expiry_date=date(2024, 1, 5))], actor
        )
        with pytest.raises(ValidationError):
            coordinator.set_line_item_handled(batch.items[0].id, flag, actor)
        line = session.get(DonationLineItem, batch.items[0].id)
        assert line.is_handled is False


class TestObservability:

    def test_operation_logged_with_context(self, coordinator, stock_in, actor, captured_logs):
        stock_in("Rice", "Food", 10)
        coordinator.create_disbursement(None, [LineItemInput("Rice", "Food", 1)], actor)
        created = [r for r in captured_logs() if r["message"] == "disbursement_created"]
        assert len(created) == 1
        assert created[0]["serial_number"] == "B00001"
        assert created[0]["operation"] == "create_disbursement"
        assert created[0]["actor_id"] == actor.actor_id
        assert created[0]["batch_serial"] == "B00001"
        assert LogContext.get_all() == {}

    def test_rejection_logged(self, coordinator, actor, captured_logs):
        with pytest.raises(InsufficientStockError):
            coordinator.create_disbursement(None, [LineItemInput("Tea", "Food", 1)], actor)
        rejected = [r for r in captured_logs() if r["message"] == "operation_rejected"]
        assert rejected[0]["error_code"] == "INSUFFICIENT_STOCK"


class TestCallerOwnedTransaction:

    def test_auto_commit_off_leaves_outer_transaction_to_caller(
        self, session, deterministic_clock, actor
    ):
        from inventory_kernel.services.transaction_coordinator import TransactionCoordinator

        coordinator = TransactionCoordinator(session, clock=deterministic_clock, auto_commit=False)
        coordinator.create_donation(None, [LineItemInput("Rice", "Food", 5)], actor)
        savepoint_result = _stock(session, "Rice", "Food")
        assert savepoint_result.total_stock == 5
        session.rollback()
        assert _stock(session, "Rice", "Food") is None

"""
Tests for ExpirySelector.

The deterministic clock reads 2024-01-01, warning window 30 days.
"""

from datetime import date

from inventory_kernel.domain.dtos import LineItemInput
from inventory_kernel.domain.policy import StockPolicy
from inventory_kernel.domain.values import ExpiryStatus
from inventory_kernel.selectors.expiry_selector import ExpirySelector


class TestExpiryClassification:

    def test_expired_expiring_and_later(self, expiry_selector, stock_in):
        stock_in("Milk", "Food", 5, expiry_date=date(2023, 12, 25))
        stock_in("Bread", "Food", 3, expiry_date=date(2024, 1, 20))
        stock_in("Rice", "Food", 9, expiry_date=date(2024, 3, 1))

        report = expiry_selector.get_expiry_status(detail=True)

        assert report.today == date(2024, 1, 1)
        assert report.warning_days == 30
        assert report.expired_count == 1
        assert report.expiring_count == 1
        assert [d.item_name for d in report.expired] == ["Milk"]
        assert [d.item_name for d in report.expiring] == ["Bread"]
        assert report.expired[0].days_until_expiry == -7
        assert report.expiring[0].days_until_expiry == 19
        assert report.expiring[0].status is ExpiryStatus.EXPIRING

    def test_window_edges_inclusive(self, expiry_selector, stock_in):
        stock_in("Eggs", "Food", 1, expiry_date=date(2024, 1, 1))
        stock_in("Cheese", "Food", 1, expiry_date=date(2024, 1, 31))
        stock_in("Butter", "Food", 1, expiry_date=date(2024, 2, 1))

        report = expiry_selector.get_expiry_status(detail=True)

        assert report.expired_count == 0
        assert [d.item_name for d in report.expiring] == ["Eggs", "Cheese"]

    def test_summary_mode_has_no_details(self, expiry_selector, stock_in):
        stock_in("Milk", "Food", 5, expiry_date=date(2023, 12, 25))

        report = expiry_selector.get_expiry_status()

        assert report.expired_count == 1
        assert report.expired == ()
        assert report.expiring == ()

    def test_zero_stock_not_reported(self, coordinator, expiry_selector, stock_in, actor):
        stock_in("Milk", "Food", 2, expiry_date=date(2023, 12, 25))
        coordinator.create_disbursement(None, [LineItemInput("Milk", "Food", 2)], actor)

        report = expiry_selector.get_expiry_status(detail=True)

        assert report.expired_count == 0
        assert report.expired == ()

    def test_items_without_expiry_ignored(self, expiry_selector, stock_in):
        stock_in("Soap", "Hygiene", 4)
        assert expiry_selector.get_expiry_status().expiring_count == 0

    def test_warning_days_from_policy(self, session, deterministic_clock, stock_in):
        stock_in("Bread", "Food", 3, expiry_date=date(2024, 1, 20))
        selector = ExpirySelector(
            session, clock=deterministic_clock, policy=StockPolicy(expiry_warning_days=7)
        )
        assert selector.get_expiry_status().expiring_count == 0


class TestExpiryDetail:

    def test_soonest_date_wins_and_records_attached(self, expiry_selector, stock_in):
        stock_in("Milk", "Food", 5, expiry_date=date(2024, 1, 15))
        stock_in("Milk", "Food", 4, expiry_date=date(2024, 1, 10))
        stock_in("Milk", "Food", 2, expiry_date=date(2024, 1, 10))

        report = expiry_selector.get_expiry_status(detail=True)

        (milk,) = report.expiring
        assert milk.soonest_expiry == date(2024, 1, 10)
        assert milk.total_stock == 11
        assert [(r.serial_number, r.quantity) for r in milk.donation_records] == [
            ("A00002", 4),
            ("A00003", 2),
        ]
        assert all(r.is_handled is False for r in milk.donation_records)

    def test_sorted_by_soonest_then_category_then_name(self, expiry_selector, stock_in):
        stock_in("Yogurt", "Food", 1, expiry_date=date(2024, 1, 5))
        stock_in("Wipes", "Baby", 1, expiry_date=date(2024, 1, 5))
        stock_in("Apples", "Food", 1, expiry_date=date(2024, 1, 3))

        report = expiry_selector.get_expiry_status(detail=True)

        assert [d.item_name for d in report.expiring] == ["Apples", "Wipes", "Yogurt"]

    def test_handled_flag_visible(self, coordinator, expiry_selector, stock_in, actor):
        stock_in("Milk", "Food", 5, expiry_date=date(2023, 12, 30))
        record = expiry_selector.get_expiry_status(detail=True).expired[0].donation_records[0]

        coordinator.set_line_item_handled(record.line_item_id, True, actor)

        again = expiry_selector.get_expiry_status(detail=True).expired[0].donation_records[0]
        assert again.is_handled is True


class TestUnhandledCounts:

    def test_marking_lines_handled_lowers_unhandled_count(self, coordinator, expiry_selector, actor):
        milk = coordinator.create_donation(
            None,
            [
                LineItemInput("Milk", "Food", 5, expiry_date=date(2023, 12, 30)),
                LineItemInput("Eggs", "Food", 6, expiry_date=date(2023, 12, 31)),
                LineItemInput("Bread", "Food", 2, expiry_date=date(2024, 1, 10)),
            ],
            actor,
        )

        before = expiry_selector.get_expiry_status()
        assert (before.expired_count, before.expired_unhandled_count) == (2, 2)
        assert (before.expiring_count, before.expiring_unhandled_count) == (1, 1)

        coordinator.set_line_item_handled(milk.items[0].id, True, actor)
        coordinator.set_line_item_handled(milk.items[2].id, True, actor)

        after = expiry_selector.get_expiry_status()
        assert (after.expired_count, after.expired_unhandled_count) == (2, 1)
        assert (after.expiring_count, after.expiring_unhandled_count) == (1, 0)

    def test_item_stays_unhandled_while_any_soonest_line_is_open(self, coordinator, expiry_selector, stock_in, actor):
        stock_in("Milk", "Food", 4, expiry_date=date(2024, 1, 10))
        stock_in("Milk", "Food", 2, expiry_date=date(2024, 1, 10))
        first, second = expiry_selector.get_expiry_status(detail=True).expiring[0].donation_records

        coordinator.set_line_item_handled(first.line_item_id, True, actor)
        report = expiry_selector.get_expiry_status(detail=True)
        assert report.expiring_unhandled_count == 1
        assert report.expiring[0].has_unhandled is True

        coordinator.set_line_item_handled(second.line_item_id, True, actor)
        assert expiry_selector.get_expiry_status().expiring_unhandled_count == 0

"""
Tests for DonorService and RecipientUnitService.

Covers:
- Creation, duplicate names, updates
- Soft deletion (deactivate) and list filtering
- Recipient unit ordering
"""

from uuid import uuid4

import pytest

from inventory_kernel.exceptions import (
    DonorNotFoundError,
    DuplicateNameError,
    RecipientUnitNotFoundError,
    ValidationError,
)


class TestDonorService:

    def test_create_trims_fields(self, donor_service, actor):
        donor = donor_service.create_donor("  Harbor Bakery ", actor, phone=" 555-0100 ", tax_id="")
        assert donor.name == "Harbor Bakery"
        assert donor.phone == "555-0100"
        assert donor.tax_id is None
        assert donor.is_active is True

    def test_blank_name_rejected(self, donor_service, actor):
        with pytest.raises(ValidationError):
            donor_service.create_donor("  ", actor)

    def test_duplicate_name(self, donor_service, actor):
        donor_service.create_donor("Harbor Bakery", actor)
        with pytest.raises(DuplicateNameError):
            donor_service.create_donor("Harbor Bakery", actor)

    def test_update(self, donor_service, donor, actor):
        updated = donor_service.update_donor(donor.id, actor, address="3 Pier St")
        assert updated.address == "3 Pier St"
        assert updated.phone == "555-0100"

    def test_rename_to_taken_name(self, donor_service, donor, actor):
        other = donor_service.create_donor("Corner Grocer", actor)
        with pytest.raises(DuplicateNameError):
            donor_service.update_donor(other.id, actor, name="Harbor Bakery")

    def test_deactivate_hides_from_list(self, donor_service, donor, actor):
        donor_service.create_donor("Corner Grocer", actor)
        donor_service.deactivate_donor(donor.id, actor)
        assert [d.name for d in donor_service.list_donors()] == ["Corner Grocer"]
        assert len(donor_service.list_donors(active_only=False)) == 2

    def test_search(self, donor_service, donor, actor):
        donor_service.create_donor("Corner Grocer", actor, tax_id="TX-991")
        assert [d.name for d in donor_service.list_donors(search="tx-99")] == ["Corner Grocer"]
        assert [d.name for d in donor_service.list_donors(search="0100")] == ["Harbor Bakery"]

    def test_find_by_name(self, donor_service, donor):
        assert donor_service.find_by_name(" Harbor Bakery").id == donor.id
        assert donor_service.find_by_name("Nobody") is None

    def test_get_missing(self, donor_service):
        with pytest.raises(DonorNotFoundError):
            donor_service.get_by_id(uuid4())


class TestRecipientUnitService:

    def test_sort_order_appends(self, recipient_unit_service, actor):
        first = recipient_unit_service.create_unit("Eastside Shelter", actor)
        second = recipient_unit_service.create_unit("Westside Pantry", actor)
        assert second.sort_order == first.sort_order + 1

    def test_list_in_sort_order(self, recipient_unit_service, actor):
        recipient_unit_service.create_unit("Zeta House", actor, sort_order=1)
        recipient_unit_service.create_unit("Alpha House", actor, sort_order=2)
        assert [u.name for u in recipient_unit_service.list_units()] == ["Zeta House", "Alpha House"]

    def test_duplicate_name(self, recipient_unit_service, recipient_unit, actor):
        with pytest.raises(DuplicateNameError):
            recipient_unit_service.create_unit("Eastside Shelter", actor)

    def test_deactivated_unit_not_found_by_name(self, recipient_unit_service, recipient_unit, actor):
        assert recipient_unit_service.find_active_by_name("Eastside Shelter") is not None
        recipient_unit_service.deactivate_unit(recipient_unit.id, actor)
        assert recipient_unit_service.find_active_by_name("Eastside Shelter") is None
        assert recipient_unit_service.list_units() == []

    def test_update(self, recipient_unit_service, recipient_unit, actor):
        updated = recipient_unit_service.update_unit(
            recipient_unit.id, actor, contact_person="Dana", sort_order=9
        )
        assert updated.contact_person == "Dana"
        assert updated.sort_order == 9

    def test_get_missing(self, recipient_unit_service):
        with pytest.raises(RecipientUnitNotFoundError):
            recipient_unit_service.get_by_id(uuid4())

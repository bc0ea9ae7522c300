"""
Service layer for donors and recipient units.

Donors are referenced by donation batches, recipient units by disbursement
batches.  Both are soft-deleted so history keeps its references.

Returns DonorInfo / RecipientUnitInfo DTOs instead of ORM entities.
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.values import Actor
from inventory_kernel.exceptions import (
    DonorNotFoundError,
    DuplicateNameError,
    RecipientUnitNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.party import Donor, RecipientUnit
from inventory_kernel.services.base import BaseService

logger = get_logger("services.party")


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def _required_name(name: str | None) -> str:
    cleaned = _clean(name)
    if cleaned is None:
        raise ValidationError("Name is required")
    return cleaned


@dataclass(frozen=True)
class DonorInfo:
    """Immutable DTO for donor data."""

    id: UUID
    name: str
    phone: str | None
    address: str | None
    tax_id: str | None
    notes: str | None
    is_active: bool


@dataclass(frozen=True)
class RecipientUnitInfo:
    """Immutable DTO for recipient unit data."""

    id: UUID
    name: str
    phone: str | None
    address: str | None
    contact_person: str | None
    sort_order: int
    is_active: bool


class DonorService(BaseService[Donor]):
    """
    Service for managing donors.

    Duplicate names are rejected with DuplicateNameError, whether found up
    front or raised by the unique constraint at flush.
    """

    def _to_dto(self, donor: Donor) -> DonorInfo:
        return DonorInfo(
            id=donor.id,
            name=donor.name,
            phone=donor.phone,
            address=donor.address,
            tax_id=donor.tax_id,
            notes=donor.notes,
            is_active=donor.is_active,
        )

    def _get_by_id(self, donor_id: UUID) -> Donor:
        donor = self.session.get(Donor, donor_id)
        if donor is None:
            raise DonorNotFoundError(str(donor_id))
        return donor

    def _check_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        stmt = select(Donor.id).where(Donor.name == name)
        if exclude_id is not None:
            stmt = stmt.where(Donor.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateNameError("Donor", name)

    def _flush_unique(self, name: str) -> None:
        savepoint = self.session.begin_nested()
        try:
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateNameError("Donor", name) from None

    def get_by_id(self, donor_id: UUID) -> DonorInfo:
        """
        Raises:
            DonorNotFoundError: If the donor doesn't exist.
        """
        return self._to_dto(self._get_by_id(donor_id))

    def find_by_name(self, name: str) -> DonorInfo | None:
        donor = self.session.execute(
            select(Donor).where(Donor.name == name.strip())
        ).scalar_one_or_none()
        return self._to_dto(donor) if donor else None

    def list_donors(self, search: str | None = None, active_only: bool = True) -> list[DonorInfo]:
        """List donors by name; ``search`` matches name, phone or tax id."""
        stmt = select(Donor)
        if active_only:
            stmt = stmt.where(Donor.is_active == True)  # noqa: E712
        term = _clean(search)
        if term:
            pattern = f"%{term}%"
            stmt = stmt.where(
                or_(
                    Donor.name.ilike(pattern),
                    Donor.phone.ilike(pattern),
                    Donor.tax_id.ilike(pattern),
                )
            )
        donors = self.session.execute(stmt.order_by(Donor.name)).scalars().all()
        return [self._to_dto(d) for d in donors]

    def create_donor(
        self,
        name: str,
        actor: Actor,
        phone: str | None = None,
        address: str | None = None,
        tax_id: str | None = None,
        notes: str | None = None,
    ) -> DonorInfo:
        """
        Create a donor.

        Raises:
            ValidationError: If the name is blank.
            DuplicateNameError: If a donor with the name already exists.
        """
        clean_name = _required_name(name)
        self._check_name_free(clean_name)
        donor = Donor(
            name=clean_name,
            phone=_clean(phone),
            address=_clean(address),
            tax_id=_clean(tax_id),
            notes=_clean(notes),
            is_active=True,
            created_by_id=actor.actor_id,
        )
        self.session.add(donor)
        self._flush_unique(clean_name)
        logger.info("donor_created", extra={"donor_id": str(donor.id), "party_name": clean_name})
        return self._to_dto(donor)

    def update_donor(
        self,
        donor_id: UUID,
        actor: Actor,
        name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        tax_id: str | None = None,
        notes: str | None = None,
    ) -> DonorInfo:
        """Update the fields that are provided; name stays unique."""
        donor = self._get_by_id(donor_id)
        if name is not None:
            clean_name = _required_name(name)
            self._check_name_free(clean_name, exclude_id=donor.id)
            donor.name = clean_name
        if phone is not None:
            donor.phone = _clean(phone)
        if address is not None:
            donor.address = _clean(address)
        if tax_id is not None:
            donor.tax_id = _clean(tax_id)
        if notes is not None:
            donor.notes = _clean(notes)
        donor.updated_by_id = actor.actor_id
        self._flush_unique(donor.name)
        return self._to_dto(donor)

    def deactivate_donor(self, donor_id: UUID, actor: Actor) -> DonorInfo:
        """
        Soft-delete a donor.

        Deactivated donors are hidden from lists but stay attached to their
        historical donations.
        """
        donor = self._get_by_id(donor_id)
        donor.is_active = False
        donor.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info("donor_deactivated", extra={"donor_id": str(donor_id)})
        return self._to_dto(donor)


class RecipientUnitService(BaseService[RecipientUnit]):
    """Service for managing recipient units."""

    def _to_dto(self, unit: RecipientUnit) -> RecipientUnitInfo:
        return RecipientUnitInfo(
            id=unit.id,
            name=unit.name,
            phone=unit.phone,
            address=unit.address,
            contact_person=unit.contact_person,
            sort_order=unit.sort_order,
            is_active=unit.is_active,
        )

    def _get_by_id(self, unit_id: UUID) -> RecipientUnit:
        unit = self.session.get(RecipientUnit, unit_id)
        if unit is None:
            raise RecipientUnitNotFoundError(str(unit_id))
        return unit

    def _check_name_free(self, name: str, exclude_id: UUID | None = None) -> None:
        stmt = select(RecipientUnit.id).where(RecipientUnit.name == name)
        if exclude_id is not None:
            stmt = stmt.where(RecipientUnit.id != exclude_id)
        if self.session.execute(stmt).first() is not None:
            raise DuplicateNameError("Recipient unit", name)

    def _flush_unique(self, name: str) -> None:
        savepoint = self.session.begin_nested()
        try:
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateNameError("Recipient unit", name) from None

    def get_by_id(self, unit_id: UUID) -> RecipientUnitInfo:
        return self._to_dto(self._get_by_id(unit_id))

    def find_active_by_name(self, name: str) -> RecipientUnitInfo | None:
        """Active unit with exactly this (trimmed) name, or None."""
        unit = self.session.execute(
            select(RecipientUnit).where(
                RecipientUnit.name == name.strip(),
                RecipientUnit.is_active == True,  # noqa: E712
            )
        ).scalar_one_or_none()
        return self._to_dto(unit) if unit else None

    def list_units(self, active_only: bool = True) -> list[RecipientUnitInfo]:
        stmt = select(RecipientUnit)
        if active_only:
            stmt = stmt.where(RecipientUnit.is_active == True)  # noqa: E712
        stmt = stmt.order_by(RecipientUnit.sort_order, RecipientUnit.name)
        return [self._to_dto(u) for u in self.session.execute(stmt).scalars().all()]

    def create_unit(
        self,
        name: str,
        actor: Actor,
        phone: str | None = None,
        address: str | None = None,
        contact_person: str | None = None,
        sort_order: int | None = None,
    ) -> RecipientUnitInfo:
        """
        Create a recipient unit.

        Without an explicit ``sort_order`` the unit goes after the current
        last one.

        Raises:
            DuplicateNameError: If a unit with the name already exists.
        """
        clean_name = _required_name(name)
        self._check_name_free(clean_name)
        if sort_order is None:
            last = self.session.execute(
                select(func.max(RecipientUnit.sort_order))
            ).scalar_one_or_none()
            sort_order = (last or 0) + 1
        unit = RecipientUnit(
            name=clean_name,
            phone=_clean(phone),
            address=_clean(address),
            contact_person=_clean(contact_person),
            sort_order=sort_order,
            is_active=True,
            created_by_id=actor.actor_id,
        )
        self.session.add(unit)
        self._flush_unique(clean_name)
        logger.info(
            "recipient_unit_created",
            extra={"recipient_unit_id": str(unit.id), "party_name": clean_name},
        )
        return self._to_dto(unit)

    def update_unit(
        self,
        unit_id: UUID,
        actor: Actor,
        name: str | None = None,
        phone: str | None = None,
        address: str | None = None,
        contact_person: str | None = None,
        sort_order: int | None = None,
    ) -> RecipientUnitInfo:
        unit = self._get_by_id(unit_id)
        if name is not None:
            clean_name = _required_name(name)
            self._check_name_free(clean_name, exclude_id=unit.id)
            unit.name = clean_name
        if phone is not None:
            unit.phone = _clean(phone)
        if address is not None:
            unit.address = _clean(address)
        if contact_person is not None:
            unit.contact_person = _clean(contact_person)
        if sort_order is not None:
            unit.sort_order = sort_order
        unit.updated_by_id = actor.actor_id
        self._flush_unique(unit.name)
        return self._to_dto(unit)

    def deactivate_unit(self, unit_id: UUID, actor: Actor) -> RecipientUnitInfo:
        """Soft-delete: the unit disappears from name lookup and lists."""
        unit = self._get_by_id(unit_id)
        unit.is_active = False
        unit.updated_by_id = actor.actor_id
        self.session.flush()
        logger.info("recipient_unit_deactivated", extra={"recipient_unit_id": str(unit_id)})
        return self._to_dto(unit)

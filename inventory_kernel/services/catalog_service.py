"""
CatalogService -- standard items and canned adjustment reasons.

Responsibility:
    Maintains the catalog of standard items (each with an ordered unit list
    and an explicit default unit) and the reason texts offered for manual
    adjustments.  Resolves the default unit for an item key when a line
    item arrives without one.

Architecture position:
    Kernel > Services.  Read by the TransactionCoordinator during line
    item normalization.

Invariants enforced:
    - A standard item's default unit is one of its units (UnitList).
    - (name, category) is unique among standard items.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.values import (
    MAX_REASON_LENGTH,
    Actor,
    ChangeType,
    ItemKey,
    UnitList,
)
from inventory_kernel.exceptions import (
    DuplicateNameError,
    NotFoundError,
    StandardItemNotFoundError,
    ValidationError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import InventoryChangeReason, StandardItem
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")


@dataclass(frozen=True)
class StandardItemInfo:
    id: UUID
    name: str
    category: str
    units: UnitList
    sort_order: int
    is_active: bool

    @property
    def key(self) -> ItemKey:
        return ItemKey(self.name, self.category)

    @property
    def default_unit(self) -> str:
        return self.units.default


@dataclass(frozen=True)
class ChangeReasonInfo:
    id: UUID
    change_type: ChangeType
    reason: str
    sort_order: int
    is_active: bool


class CatalogService(BaseService[StandardItem]):
    """
    Service for the standard item catalog and adjustment reasons.

    Non-goals:
        - Catalog membership never restricts what can be donated; unknown
          items are simply non-standard.
    """

    def _to_dto(self, item: StandardItem) -> StandardItemInfo:
        return StandardItemInfo(
            id=item.id,
            name=item.name,
            category=item.category,
            units=UnitList(tuple(item.units), item.default_unit),
            sort_order=item.sort_order,
            is_active=item.is_active,
        )

    def _reason_to_dto(self, reason: InventoryChangeReason) -> ChangeReasonInfo:
        return ChangeReasonInfo(
            id=reason.id,
            change_type=ChangeType(reason.change_type),
            reason=reason.reason,
            sort_order=reason.sort_order,
            is_active=reason.is_active,
        )

    def _find(self, key: ItemKey) -> StandardItem | None:
        return self.session.execute(
            select(StandardItem).where(
                StandardItem.name == key.name,
                StandardItem.category == key.category,
            )
        ).scalar_one_or_none()

    # ------------------------------------------------------------------
    # Standard items
    # ------------------------------------------------------------------

    def register_item(
        self,
        key: ItemKey,
        units: UnitList | Sequence[str],
        actor: Actor,
        sort_order: int | None = None,
    ) -> StandardItemInfo:
        """
        Add a standard item to the catalog.

        Raises:
            DuplicateNameError: If the key is already registered.
            InvalidUnitError: If the unit list is empty or inconsistent.
        """
        unit_list = units if isinstance(units, UnitList) else UnitList(tuple(units))
        if self._find(key) is not None:
            raise DuplicateNameError("Standard item", str(key))
        if sort_order is None:
            last = self.session.execute(
                select(func.max(StandardItem.sort_order)).where(
                    StandardItem.category == key.category
                )
            ).scalar_one_or_none()
            sort_order = (last or 0) + 1

        item = StandardItem(
            name=key.name,
            category=key.category,
            units=list(unit_list.labels),
            default_unit=unit_list.default,
            sort_order=sort_order,
            is_active=True,
            created_by_id=actor.actor_id,
        )
        self.session.add(item)
        savepoint = self.session.begin_nested()
        try:
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateNameError("Standard item", str(key)) from None

        logger.info(
            "standard_item_registered",
            extra={
                "item_name": key.name,
                "item_category": key.category,
                "units": list(unit_list.labels),
                "default_unit": unit_list.default,
            },
        )
        return self._to_dto(item)

    def set_units(self, key: ItemKey, units: UnitList, actor: Actor) -> StandardItemInfo:
        item = self._find(key)
        if item is None:
            raise StandardItemNotFoundError(str(key))
        item.units = list(units.labels)
        item.default_unit = units.default
        item.updated_by_id = actor.actor_id
        self.session.flush()
        return self._to_dto(item)

    def set_item_active(self, key: ItemKey, is_active: bool, actor: Actor) -> StandardItemInfo:
        item = self._find(key)
        if item is None:
            raise StandardItemNotFoundError(str(key))
        item.is_active = is_active
        item.updated_by_id = actor.actor_id
        self.session.flush()
        return self._to_dto(item)

    def list_items(self, category: str | None = None, active_only: bool = True) -> list[StandardItemInfo]:
        stmt = select(StandardItem)
        if category:
            stmt = stmt.where(StandardItem.category == category.strip())
        if active_only:
            stmt = stmt.where(StandardItem.is_active == True)  # noqa: E712
        stmt = stmt.order_by(StandardItem.category, StandardItem.sort_order, StandardItem.name)
        return [self._to_dto(i) for i in self.session.execute(stmt).scalars().all()]

    def get_item(self, key: ItemKey) -> StandardItemInfo | None:
        item = self._find(key)
        return self._to_dto(item) if item else None

    def default_unit_for(self, key: ItemKey, fallback: str) -> str:
        """Catalog default unit for an active standard item, else ``fallback``."""
        item = self._find(key)
        if item is None or not item.is_active:
            return fallback
        return item.default_unit

    def is_standard(self, key: ItemKey) -> bool:
        item = self._find(key)
        return item is not None and item.is_active

    # ------------------------------------------------------------------
    # Adjustment reasons
    # ------------------------------------------------------------------

    def add_reason(
        self,
        change_type: ChangeType | str,
        reason: str,
        actor: Actor,
        sort_order: int | None = None,
    ) -> ChangeReasonInfo:
        ctype = ChangeType.parse(change_type)
        text = reason.strip() if isinstance(reason, str) else ""
        if not text:
            raise ValidationError("Reason text is required")
        if len(text) > MAX_REASON_LENGTH:
            raise ValidationError(f"Reason text is longer than {MAX_REASON_LENGTH} characters")
        exists = self.session.execute(
            select(InventoryChangeReason.id).where(
                InventoryChangeReason.change_type == ctype.value,
                InventoryChangeReason.reason == text,
            )
        ).first()
        if exists is not None:
            raise DuplicateNameError("Inventory change reason", text)
        if sort_order is None:
            last = self.session.execute(
                select(func.max(InventoryChangeReason.sort_order)).where(
                    InventoryChangeReason.change_type == ctype.value
                )
            ).scalar_one_or_none()
            sort_order = (last or 0) + 1
        row = InventoryChangeReason(
            change_type=ctype.value,
            reason=text,
            sort_order=sort_order,
            is_active=True,
            created_by_id=actor.actor_id,
        )
        self.session.add(row)
        self.session.flush()
        return self._reason_to_dto(row)

    def list_reasons(self, change_type: ChangeType | str | None = None) -> list[ChangeReasonInfo]:
        """Active reasons, optionally for one direction, in sort order."""
        stmt = select(InventoryChangeReason).where(
            InventoryChangeReason.is_active == True  # noqa: E712
        )
        if change_type is not None:
            stmt = stmt.where(
                InventoryChangeReason.change_type == ChangeType.parse(change_type).value
            )
        stmt = stmt.order_by(InventoryChangeReason.sort_order, InventoryChangeReason.reason)
        return [self._reason_to_dto(r) for r in self.session.execute(stmt).scalars().all()]

    def deactivate_reason(self, reason_id: UUID, actor: Actor) -> ChangeReasonInfo:
        row = self.session.get(InventoryChangeReason, reason_id)
        if row is None:
            raise NotFoundError("Inventory change reason", str(reason_id))
        row.is_active = False
        row.updated_by_id = actor.actor_id
        self.session.flush()
        return self._reason_to_dto(row)

    def seed_reasons(self, reasons: dict[ChangeType, Sequence[str]], actor: Actor) -> int:
        """Add any configured reasons not yet present. Returns how many were added."""
        added = 0
        for ctype, texts in reasons.items():
            existing = set(
                self.session.execute(
                    select(InventoryChangeReason.reason).where(
                        InventoryChangeReason.change_type == ctype.value
                    )
                ).scalars()
            )
            for text in texts:
                if text.strip() and text.strip() not in existing:
                    self.add_reason(ctype, text, actor)
                    existing.add(text.strip())
                    added += 1
        return added

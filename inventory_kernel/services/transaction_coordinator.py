"""
TransactionCoordinator -- atomic compound stock mutations.

Responsibility:
    The single write entry point for anything that moves stock: donations,
    disbursements, manual adjustments, batch count adjustments and their
    reversals.  Each public operation allocates serials, locks stock rows,
    checks sufficiency, writes batch rows, changes stock and appends the
    inventory log as ONE atomic unit.

Architecture position:
    Kernel > Services.  Composes SerialNumberAllocator, StockService,
    InventoryLogService and CatalogService.  Callers (HTTP handlers, jobs,
    tests) invoke it with an open session and a pre-authenticated Actor.

Invariants enforced:
    - Atomicity: every operation runs inside a SAVEPOINT; any failure rolls
      the whole operation back and leaves the caller's transaction clean.
    - Lock order: serial counter row first, then the batch row being
      deleted (if any), then stock rows ordered by (item_category,
      item_name) in a single statement, then the inventory log sequence
      counter.  No operation takes locks in any other order, so concurrent
      operations cannot deadlock each other.
    - No partial decrements: sufficiency is checked for every line under
      lock before the first write.
    - One inventory log entry per line item moved or per adjustment.

Failure modes:
    - ValidationError family: malformed input, nothing written.
    - NotFoundError family: missing batch, stock record, unit or donor.
    - InsufficientStockError: a decrement exceeds the locked stock.
    - SerialNumberConflictError (retryable): an allocated serial collided
      with an existing batch; retry with ``retry_on_conflict``.
    - InternalError: unexpected persistence failure, after rollback.

Audit relevance:
    Every stock change carries actor, reason and the causing batch serial
    in the inventory log.  Corrections append compensating entries.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, Mapping
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import (
    AdjustmentUpdate,
    BatchAdjustmentResult,
    DisbursementBatchInfo,
    DonationBatchInfo,
    InventoryLogEntryInfo,
    LineItemInfo,
    LineItemInput,
    NormalizedLineItem,
    RecipientInput,
    StockMovement,
    StockRestoreResult,
)
from inventory_kernel.domain.policy import DEFAULT_STOCK_POLICY, StockPolicy
from inventory_kernel.domain.values import (
    MAX_REASON_LENGTH,
    Actor,
    ChangeType,
    ItemKey,
    SerialType,
    coerce_quantity,
)
from inventory_kernel.exceptions import (
    BatchNotFoundError,
    BatchTooLargeError,
    DonationLineItemNotFoundError,
    DonorNotFoundError,
    EmptyItemListError,
    EntryAlreadyRevertedError,
    InsufficientStockError,
    InternalError,
    InventoryKernelError,
    QuantityLimitExceededError,
    RecipientUnitNotFoundError,
    SerialNumberConflictError,
    ValidationError,
)
from inventory_kernel.logging_config import LogContext, get_logger
from inventory_kernel.models.disbursement import DisbursementBatch, DisbursementLineItem
from inventory_kernel.models.donation import DonationBatch, DonationLineItem
from inventory_kernel.models.inventory_log import InventoryLogEntry
from inventory_kernel.models.party import Donor, RecipientUnit
from inventory_kernel.models.stock import StockRecord
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.inventory_log_service import InventoryLogService
from inventory_kernel.services.serial_allocator import SerialNumberAllocator
from inventory_kernel.services.stock_service import StockService

logger = get_logger("services.transaction_coordinator")


def _clean(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_uuid(value: Any, field: str) -> UUID:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError):
        raise ValidationError(f"{field} is not a valid id: {value!r}") from None


def _line_info(line: DonationLineItem | DisbursementLineItem) -> LineItemInfo:
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


def _totals(lines: Iterable[NormalizedLineItem | DonationLineItem | DisbursementLineItem]) -> dict[ItemKey, int]:
    """Quantity per item key; repeated keys are summed."""
    totals: dict[ItemKey, int] = {}
    for line in lines:
        key = line.key if isinstance(line, NormalizedLineItem) else ItemKey(
            line.item_name, line.item_category
        )
        totals[key] = totals.get(key, 0) + line.quantity
    return totals


class TransactionCoordinator:
    """
    Orchestrates the stock-moving operations.

    Contract:
        Every public method is atomic.  With ``auto_commit=True`` (default)
        the coordinator also commits the session on success and rolls it
        back on failure; with ``auto_commit=False`` the caller owns the
        outer transaction and only the operation's savepoint is resolved.

    Guarantees:
        - Stock never goes negative.
        - Committed serial numbers are gapless per batch type.
        - Results are DTOs; no ORM entity escapes.

    Non-goals:
        - No authorization: the Actor is trusted.
        - No retry: wrap calls in ``retry_on_conflict`` where wanted.

    Usage:
        coordinator = TransactionCoordinator(session, clock=clock)
        batch = coordinator.create_disbursement(
            RecipientInput(name="Harbor Shelter"),
            [{"item_name": "Rice", "item_category": "Food", "quantity": 3}],
            Actor("staff-7"),
        )
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        policy: StockPolicy = DEFAULT_STOCK_POLICY,
        auto_commit: bool = True,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._policy = policy
        self._auto_commit = auto_commit

        self._log = InventoryLogService(session, self._clock)
        self._stock = StockService(session, self._clock, self._log, policy.max_quantity)
        self._serials = SerialNumberAllocator(session, policy)
        self._catalog = CatalogService(session)

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    @contextmanager
    def _atomic(self, operation: str, actor: Actor) -> Iterator[None]:
        with LogContext.bind(
            correlation_id=str(uuid4()),
            actor_id=actor.actor_id,
            actor_role=actor.role,
            operation=operation,
        ):
            t0 = time.monotonic()
            try:
                with self.session.begin_nested():
                    yield
                if self._auto_commit:
                    self.session.commit()
            except InventoryKernelError as exc:
                if self._auto_commit:
                    self.session.rollback()
                logger.warning(
                    "operation_rejected",
                    extra={
                        "error_code": exc.code,
                        "error_kind": exc.kind.value,
                        "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                    },
                )
                raise
            except SQLAlchemyError as exc:
                if self._auto_commit:
                    self.session.rollback()
                logger.error(
                    "operation_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise InternalError(operation, str(exc.__class__.__name__)) from exc
            except Exception:
                if self._auto_commit:
                    self.session.rollback()
                logger.error(
                    "operation_failed",
                    extra={"duration_ms": round((time.monotonic() - t0) * 1000, 2)},
                    exc_info=True,
                )
                raise

    def _insert_batch(self, batch: DonationBatch | DisbursementBatch, serial_type: SerialType) -> None:
        """Flush a new batch; a serial unique-constraint hit becomes a retryable conflict."""
        self.session.add(batch)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise SerialNumberConflictError(serial_type.value, batch.serial_number) from exc

    # ------------------------------------------------------------------
    # Normalization
    # ------------------------------------------------------------------

    def _normalize_items(
        self,
        items: Iterable[LineItemInput | Mapping[str, Any]],
        batch_type: str,
        keep_donation_fields: bool,
    ) -> list[NormalizedLineItem]:
        """
        Trim, default and coerce requested lines.

        Malformed lines (blank name or category, non-positive or
        non-numeric quantity) are dropped.  A quantity above the policy
        maximum rejects the whole request.

        Raises:
            EmptyItemListError: If no line survives.
            QuantityLimitExceededError: If a quantity is too large.
        """
        normalized: list[NormalizedLineItem] = []
        for index, raw in enumerate(items or ()):
            try:
                if isinstance(raw, Mapping):
                    raw = LineItemInput.from_mapping(raw)
                if not isinstance(raw, LineItemInput):
                    raise ValidationError(f"Unsupported line item type {type(raw).__name__}")
                key = ItemKey(raw.item_name, raw.item_category)
                quantity = coerce_quantity(raw.quantity, maximum=self._policy.max_quantity)
            except QuantityLimitExceededError:
                raise
            except ValidationError as exc:
                logger.debug(
                    "line_item_dropped",
                    extra={"line_index": index, "error_code": exc.code},
                )
                continue

            unit = _clean(raw.item_unit) or self._catalog.default_unit_for(
                key, self._policy.default_unit
            )
            if raw.is_standard is None:
                is_standard = self._catalog.is_standard(key)
            else:
                is_standard = bool(raw.is_standard)

            normalized.append(
                NormalizedLineItem(
                    key=key,
                    item_unit=unit,
                    quantity=quantity,
                    expiry_date=raw.expiry_date if keep_donation_fields else None,
                    is_standard=is_standard,
                    notes=_clean(raw.notes) if keep_donation_fields else None,
                )
            )

        if not normalized:
            raise EmptyItemListError(batch_type)
        return normalized

    def _resolve_recipient(
        self, recipient: RecipientInput | Mapping[str, Any] | None
    ) -> tuple[RecipientUnit | None, str, str | None, str | None]:
        """
        Resolve the recipient to (unit, name, phone, address).

        An explicit unit id must exist.  Otherwise an active unit with the
        given name is linked when there is one.  Missing phone and address
        are filled from the unit.
        """
        if recipient is None:
            recipient = RecipientInput()
        elif isinstance(recipient, Mapping):
            recipient = RecipientInput(
                unit_id=recipient.get("unit_id") or recipient.get("unitId"),
                name=recipient.get("name") or recipient.get("unitName"),
                phone=recipient.get("phone"),
                address=recipient.get("address"),
            )

        name = _clean(recipient.name)
        phone = _clean(recipient.phone)
        address = _clean(recipient.address)

        unit: RecipientUnit | None = None
        unit_id = _clean(recipient.unit_id)
        if unit_id is not None:
            unit = self.session.get(RecipientUnit, _as_uuid(unit_id, "unit_id"))
            if unit is None:
                raise RecipientUnitNotFoundError(unit_id)
            name = name or unit.name
        elif name is not None:
            unit = self.session.execute(
                select(RecipientUnit).where(
                    RecipientUnit.name == name,
                    RecipientUnit.is_active == True,  # noqa: E712
                )
            ).scalar_one_or_none()

        if unit is not None:
            phone = phone or unit.phone
            address = address or unit.address

        return unit, name or self._policy.default_recipient_name, phone, address

    def _lock_batch(self, model: type[DonationBatch] | type[DisbursementBatch], batch_id: Any, batch_type: str):
        batch = self.session.execute(
            select(model)
            .where(model.id == _as_uuid(batch_id, "batch_id"))
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if batch is None:
            raise BatchNotFoundError(batch_type, str(batch_id))
        return batch

    def _check_sufficient(self, totals: dict[ItemKey, int], records: dict[ItemKey, StockRecord]) -> None:
        for key in sorted(totals, key=lambda k: k.lock_order):
            record = records.get(key)
            available = record.total_stock if record is not None else 0
            if available < totals[key]:
                raise InsufficientStockError(key.name, key.category, totals[key], available)

    # ------------------------------------------------------------------
    # Disbursements
    # ------------------------------------------------------------------

    def create_disbursement(
        self,
        recipient: RecipientInput | Mapping[str, Any] | None,
        items: Iterable[LineItemInput | Mapping[str, Any]],
        actor: Actor,
    ) -> DisbursementBatchInfo:
        """
        Give goods out to a recipient.

        Preconditions:
            - At least one well-formed line item.
        Postconditions:
            - A new B-serial batch exists, every touched stock record was
              decremented by the summed quantity of its lines, and one log
              entry per line item was appended.  Or nothing changed.

        Raises:
            EmptyItemListError, RecipientUnitNotFoundError,
            InsufficientStockError, SerialNumberConflictError.
        """
        with self._atomic("create_disbursement", actor):
            lines = self._normalize_items(items, "disbursement", keep_donation_fields=False)
            unit, name, phone, address = self._resolve_recipient(recipient)

            serial = self._serials.allocate(SerialType.DISBURSEMENT)
            LogContext.set(batch_serial=serial)
            totals = _totals(lines)
            records = self._stock.lock_by_keys(totals)
            self._check_sufficient(totals, records)

            batch = DisbursementBatch(
                serial_number=serial,
                recipient_unit_id=unit.id if unit is not None else None,
                recipient_name=name,
                recipient_phone=phone,
                recipient_address=address,
                created_at=self._clock.now(),
                created_by_id=actor.actor_id,
            )
            batch.items = [
                DisbursementLineItem(
                    line_number=number,
                    item_name=line.key.name,
                    item_category=line.key.category,
                    item_unit=line.item_unit,
                    quantity=line.quantity,
                )
                for number, line in enumerate(lines, start=1)
            ]
            self._insert_batch(batch, SerialType.DISBURSEMENT)

            entries = [
                self._stock.apply_change(
                    records[line.key],
                    -line.quantity,
                    self._policy.disbursement_reason,
                    actor,
                    batch_serial_number=serial,
                )
                for line in lines
            ]

            logger.info(
                "disbursement_created",
                extra={
                    "batch_id": str(batch.id),
                    "serial_number": serial,
                    "recipient_name": name,
                    "recipient_unit_id": str(unit.id) if unit is not None else None,
                    "line_count": len(lines),
                    "total_quantity": sum(totals.values()),
                },
            )
            result = DisbursementBatchInfo(
                id=batch.id,
                serial_number=serial,
                recipient_unit_id=batch.recipient_unit_id,
                recipient_name=name,
                recipient_phone=phone,
                recipient_address=address,
                created_at=batch.created_at,
                created_by_id=actor.actor_id,
                items=tuple(_line_info(line) for line in batch.items),
                log_entries=tuple(
                    InventoryLogEntryInfo.from_model(entry, records[line.key])
                    for entry, line in zip(entries, lines)
                ),
            )
        return result

    def delete_disbursement(self, batch_id: UUID, actor: Actor) -> StockRestoreResult:
        """
        Delete a disbursement and put its goods back.

        Stock records that no longer exist are recreated with the line's
        unit before the compensating increment.

        Raises:
            BatchNotFoundError: If the batch does not exist.
        """
        with self._atomic("delete_disbursement", actor):
            batch = self._lock_batch(DisbursementBatch, batch_id, "disbursement")
            serial = batch.serial_number
            LogContext.set(batch_serial=serial)
            lines = list(batch.items)

            records = self._stock.lock_by_keys(_totals(lines))
            for line in lines:
                key = ItemKey(line.item_name, line.item_category)
                if key not in records:
                    records[key] = self._stock.lock_or_create(key, line.item_unit, actor)

            movements, entries = self._restore(
                lines, records, +1, self._policy.disbursement_deleted_reason, actor, serial
            )

            self.session.delete(batch)
            self.session.flush()

            logger.info(
                "disbursement_deleted",
                extra={
                    "batch_id": str(batch_id),
                    "serial_number": serial,
                    "line_count": len(lines),
                },
            )
            result = StockRestoreResult(
                batch_id=batch.id,
                serial_number=serial,
                movements=tuple(movements),
                log_entries=tuple(entries),
            )
        return result

    def _restore(
        self,
        lines: list[DonationLineItem] | list[DisbursementLineItem],
        records: dict[ItemKey, StockRecord],
        sign: int,
        reason: str,
        actor: Actor,
        serial: str,
    ) -> tuple[list[StockMovement], list[InventoryLogEntryInfo]]:
        movements: list[StockMovement] = []
        entries: list[InventoryLogEntryInfo] = []
        for line in lines:
            record = records[ItemKey(line.item_name, line.item_category)]
            entry = self._stock.apply_change(
                record, sign * line.quantity, reason, actor, batch_serial_number=serial
            )
            movements.append(
                StockMovement(
                    stock_record_id=record.id,
                    item_name=record.item_name,
                    item_category=record.item_category,
                    quantity=line.quantity,
                    previous_quantity=entry.previous_quantity,
                    new_quantity=entry.new_quantity,
                )
            )
            entries.append(InventoryLogEntryInfo.from_model(entry, record))
        return movements, entries

    # ------------------------------------------------------------------
    # Donations
    # ------------------------------------------------------------------

    def create_donation(
        self,
        donor_id: UUID | None,
        items: Iterable[LineItemInput | Mapping[str, Any]],
        actor: Actor,
    ) -> DonationBatchInfo:
        """
        Take goods in.

        Stock records are created on first reference to an item key.  A
        line marked standard also marks its stock record standard; the
        record's unit is kept as first recorded.

        Raises:
            EmptyItemListError, DonorNotFoundError, SerialNumberConflictError.
        """
        with self._atomic("create_donation", actor):
            lines = self._normalize_items(items, "donation", keep_donation_fields=True)

            donor: Donor | None = None
            if donor_id is not None:
                donor = self.session.get(Donor, _as_uuid(donor_id, "donor_id"))
                if donor is None:
                    raise DonorNotFoundError(str(donor_id))

            serial = self._serials.allocate(SerialType.DONATION)
            LogContext.set(batch_serial=serial)
            totals = _totals(lines)
            records = self._stock.lock_by_keys(totals)
            first_line = {}
            for line in lines:
                first_line.setdefault(line.key, line)
            for key in sorted(totals, key=lambda k: k.lock_order):
                if key not in records:
                    line = first_line[key]
                    records[key] = self._stock.lock_or_create(
                        key, line.item_unit, actor, is_standard=line.is_standard
                    )

            batch = DonationBatch(
                serial_number=serial,
                donor_id=donor.id if donor is not None else None,
                created_at=self._clock.now(),
                created_by_id=actor.actor_id,
            )
            batch.items = [
                DonationLineItem(
                    line_number=number,
                    item_name=line.key.name,
                    item_category=line.key.category,
                    item_unit=line.item_unit,
                    quantity=line.quantity,
                    expiry_date=line.expiry_date,
                    is_handled=False,
                    is_standard=line.is_standard,
                    notes=line.notes,
                )
                for number, line in enumerate(lines, start=1)
            ]
            self._insert_batch(batch, SerialType.DONATION)

            entries = []
            for line in lines:
                record = records[line.key]
                if line.is_standard and not record.is_standard:
                    record.is_standard = True
                entries.append(
                    self._stock.apply_change(
                        record,
                        line.quantity,
                        self._policy.donation_reason,
                        actor,
                        batch_serial_number=serial,
                    )
                )

            logger.info(
                "donation_created",
                extra={
                    "batch_id": str(batch.id),
                    "serial_number": serial,
                    "donor_id": str(donor.id) if donor is not None else None,
                    "line_count": len(lines),
                    "total_quantity": sum(totals.values()),
                },
            )
            result = DonationBatchInfo(
                id=batch.id,
                serial_number=serial,
                donor_id=batch.donor_id,
                donor_name=donor.name if donor is not None else None,
                created_at=batch.created_at,
                created_by_id=actor.actor_id,
                items=tuple(_line_info(line) for line in batch.items),
                log_entries=tuple(
                    InventoryLogEntryInfo.from_model(entry, records[line.key])
                    for entry, line in zip(entries, lines)
                ),
            )
        return result

    def delete_donation(self, batch_id: UUID, actor: Actor) -> StockRestoreResult:
        """
        Delete a donation and take its goods back out of stock.

        Raises:
            BatchNotFoundError: If the batch does not exist.
            InsufficientStockError: If some of the donated goods were
                already disbursed.  Nothing is changed in that case.
        """
        with self._atomic("delete_donation", actor):
            batch = self._lock_batch(DonationBatch, batch_id, "donation")
            serial = batch.serial_number
            LogContext.set(batch_serial=serial)
            lines = list(batch.items)

            totals = _totals(lines)
            records = self._stock.lock_by_keys(totals)
            self._check_sufficient(totals, records)

            movements, entries = self._restore(
                lines, records, -1, self._policy.donation_deleted_reason, actor, serial
            )

            self.session.delete(batch)
            self.session.flush()

            logger.info(
                "donation_deleted",
                extra={
                    "batch_id": str(batch_id),
                    "serial_number": serial,
                    "line_count": len(lines),
                },
            )
            result = StockRestoreResult(
                batch_id=batch.id,
                serial_number=serial,
                movements=tuple(movements),
                log_entries=tuple(entries),
            )
        return result

    def set_line_item_handled(self, line_item_id: UUID, is_handled: bool, actor: Actor) -> LineItemInfo:
        """Mark expiring goods on a donation line as dealt with (or not)."""
        with self._atomic("set_line_item_handled", actor):
            if not isinstance(is_handled, bool):
                raise ValidationError(f"is_handled must be a boolean, got {is_handled!r}")
            line = self.session.get(DonationLineItem, _as_uuid(line_item_id, "line_item_id"))
            if line is None:
                raise DonationLineItemNotFoundError(str(line_item_id))
            line.is_handled = is_handled
            self.session.flush()
            logger.info(
                "line_item_handled_set",
                extra={"line_item_id": str(line.id), "is_handled": line.is_handled},
            )
            result = _line_info(line)
        return result

    # ------------------------------------------------------------------
    # Adjustments
    # ------------------------------------------------------------------

    def record_adjustment(
        self,
        stock_id: UUID,
        change_type: ChangeType | str,
        change_amount: Any,
        reason: str,
        actor: Actor,
    ) -> InventoryLogEntryInfo:
        """
        Manually raise or lower one stock record.

        Raises:
            InvalidChangeTypeError, InvalidQuantityError, ValidationError
            (blank reason), StockRecordNotFoundError, NegativeStockError.
        """
        with self._atomic("record_adjustment", actor):
            ctype = ChangeType.parse(change_type)
            amount = coerce_quantity(
                change_amount, "change_amount", maximum=self._policy.max_quantity
            )
            text = _clean(reason)
            if text is None:
                raise ValidationError("A reason is required for a stock adjustment")
            if len(text) > MAX_REASON_LENGTH:
                raise ValidationError(
                    f"Adjustment reason is longer than {MAX_REASON_LENGTH} characters"
                )

            record = self._stock.lock_by_id(_as_uuid(stock_id, "stock_id"))
            entry = self._stock.apply_change(record, ctype.signed(amount), text, actor)

            logger.info(
                "stock_adjusted",
                extra={
                    "stock_record_id": str(record.id),
                    "change_type": ctype.value,
                    "change_amount": amount,
                    "new_quantity": entry.new_quantity,
                },
            )
            result = InventoryLogEntryInfo.from_model(entry, record)
        return result

    def _parse_updates(self, updates: Iterable[AdjustmentUpdate | Mapping[str, Any]]) -> list[tuple[UUID, int]]:
        parsed: list[tuple[UUID, int]] = []
        for raw in updates or ():
            if isinstance(raw, Mapping):
                stock_id = raw.get("stock_id") or raw.get("itemStockId") or raw.get("id")
                new_quantity = raw.get("new_quantity", raw.get("newQuantity"))
            elif isinstance(raw, AdjustmentUpdate):
                stock_id, new_quantity = raw.stock_id, raw.new_quantity
            else:
                raise ValidationError(f"Unsupported adjustment type {type(raw).__name__}")
            parsed.append(
                (
                    _as_uuid(stock_id, "stock_id"),
                    coerce_quantity(
                        new_quantity,
                        "new_quantity",
                        allow_zero=True,
                        maximum=self._policy.max_quantity,
                    ),
                )
            )
        return parsed

    def record_batch_adjustment(
        self,
        updates: Iterable[AdjustmentUpdate | Mapping[str, Any]],
        actor: Actor,
    ) -> BatchAdjustmentResult:
        """
        Apply a stock count: set each listed record to a counted quantity.

        All-or-nothing.  Every referenced record is locked before anything
        is written, so a missing id fails the whole batch untouched.
        Updates whose quantity already matches are skipped.

        Raises:
            ValidationError, BatchTooLargeError, StockRecordNotFoundError.
        """
        with self._atomic("record_batch_adjustment", actor):
            parsed = self._parse_updates(updates)
            if not parsed:
                raise ValidationError("At least one stock count update is required")
            if len(parsed) > self._policy.max_batch_adjustments:
                raise BatchTooLargeError(len(parsed), self._policy.max_batch_adjustments)

            records = self._stock.lock_by_ids(stock_id for stock_id, _ in parsed)

            entries: list[InventoryLogEntryInfo] = []
            skipped = 0
            for stock_id, new_quantity in parsed:
                record = records[stock_id]
                diff = new_quantity - record.total_stock
                if diff == 0:
                    skipped += 1
                    continue
                entry = self._stock.apply_change(
                    record, diff, self._policy.batch_adjustment_reason, actor
                )
                entries.append(InventoryLogEntryInfo.from_model(entry, record))

            logger.info(
                "batch_adjustment_recorded",
                extra={
                    "update_count": len(parsed),
                    "success_count": len(entries),
                    "skipped_count": skipped,
                },
            )
            result = BatchAdjustmentResult(
                success_count=len(entries),
                skipped_count=skipped,
                entries=tuple(entries),
            )
        return result

    def revert_adjustment(self, entry_id: UUID, actor: Actor) -> InventoryLogEntryInfo:
        """
        Undo a manual adjustment by appending the opposite movement.

        The original entry is left untouched; the compensating entry points
        at it through ``reverts_entry_id``.  Movements caused by a batch
        are undone by deleting the batch instead.

        Raises:
            InventoryLogNotFoundError, ValidationError (batch movement),
            EntryAlreadyRevertedError, NegativeStockError.
        """
        with self._atomic("revert_adjustment", actor):
            original = self._log.get_entry(_as_uuid(entry_id, "entry_id"))
            if original.batch_serial_number is not None:
                raise ValidationError(
                    f"Entry {original.id} belongs to batch {original.batch_serial_number}; "
                    "delete the batch instead"
                )

            record = self._stock.lock_by_id(original.stock_record_id)
            # Checked under the stock lock so concurrent reverts serialize.
            if self._log.find_reversal(original.id) is not None:
                raise EntryAlreadyRevertedError(str(original.id))

            ctype = ChangeType(original.change_type)
            reason = f"{self._policy.revert_reason_prefix}: {original.reason}"
            entry: InventoryLogEntry = self._stock.apply_change(
                record,
                -ctype.signed(original.change_amount),
                reason[:MAX_REASON_LENGTH],
                actor,
                reverts_entry_id=original.id,
            )

            logger.info(
                "adjustment_reverted",
                extra={
                    "stock_record_id": str(record.id),
                    "reverted_entry_id": str(original.id),
                    "entry_id": str(entry.id),
                },
            )
            result = InventoryLogEntryInfo.from_model(entry, record)
        return result

"""
Slot Store

Durable storage and queries for slots. Rows are converted to ``Slot``
snapshots on the way out. State changes happen only through
``transition()``, a single conditional UPDATE guarded by the expected
prior state.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError  # type: ignore
from django.db import transaction  # type: ignore

from apps.slots.domain.entities import Slot, SlotState
from apps.slots.domain.schedule import DaySchedule, Placement
from apps.slots.models import Slot as SlotModel, SlotDay
from apps.users.identity import Party, party_from_user
from shared.domain.exceptions import Conflict, NotFound, ValidationError
from shared.domain.value_objects import Money, TimeRange

logger = logging.getLogger(__name__)


class SlotStore:
    """Django ORM backed store for slots."""

    model = SlotModel

    def _queryset(self):
        return self.model.objects.select_related("reserving_party")

    def to_entity(self, row: SlotModel) -> Slot:
        party: Party | None = None
        if row.reserving_party_id is not None:
            party = party_from_user(row.reserving_party)
        return Slot(
            id=row.id,
            created_at=row.created_at,
            time_range=TimeRange(row.date, row.start_time, row.end_time),
            price=Money(row.price, row.currency),
            external_price_ref=row.external_price_ref,
            state=SlotState(row.state),
            reserving_party=party,
            reserved_at=row.reserved_at,
            confirmed_at=row.confirmed_at,
            updated_at=row.updated_at,
        )

    def _to_entities(self, rows: Iterable[SlotModel]) -> List[Slot]:
        return [self.to_entity(row) for row in rows]

    @staticmethod
    def _coerce_id(slot_id) -> UUID:
        if isinstance(slot_id, UUID):
            return slot_id
        try:
            return UUID(str(slot_id))
        except (TypeError, ValueError):
            raise ValidationError("Invalid slot id.", slot_id=str(slot_id))

    # ===== Writes =====

    def create(self, time_range: TimeRange, price: Money, external_price_ref: str) -> Slot:
        """
        Persist a new AVAILABLE slot with no reserving party

        Callers must have passed the DaySchedule overlap check for the
        same date inside the current transaction.
        """
        try:
            row = self.model.objects.create(
                date=time_range.day,
                start_time=time_range.start,
                end_time=time_range.end,
                price=price.amount,
                currency=price.currency,
                external_price_ref=external_price_ref,
            )
        except DjangoValidationError as exc:
            raise ValidationError("; ".join(exc.messages))
        logger.info(f"Created slot {row.id} for {time_range}")
        return self.to_entity(row)

    def transition(
        self,
        slot_id,
        expected: SlotState,
        changes: dict,
        *,
        reserving_party_id=None,
        reserved_at: datetime | None = None,
        reserved_before: datetime | None = None,
    ) -> int:
        """
        Compare-and-swap on the slot state

        Updates the row only if it is still in ``expected`` and, when
        given, still held by ``reserving_party_id``, reserved exactly at
        ``reserved_at`` and reserved before ``reserved_before``. Returns
        the number of rows changed: 1 when the transition won, 0 when the
        guard did not match.
        """
        qs = self.model.objects.filter(pk=self._coerce_id(slot_id), state=expected.value)
        if reserving_party_id is not None:
            qs = qs.filter(reserving_party_id=reserving_party_id)
        if reserved_at is not None:
            qs = qs.filter(reserved_at=reserved_at)
        if reserved_before is not None:
            qs = qs.filter(reserved_at__lt=reserved_before)
        return qs.update(**changes)

    def delete(self, slot_id) -> Slot:
        """
        Remove an AVAILABLE slot

        The delete itself is guarded by state, so a slot reserved between
        the read and the delete is never removed.
        """
        pk = self._coerce_id(slot_id)
        slot = self.get(pk)
        deleted, _ = self.model.objects.filter(pk=pk, state=SlotState.AVAILABLE.value).delete()
        if not deleted:
            current = self.find(pk)
            if current is None:
                raise NotFound("Slot not found.", slot_id=str(pk))
            raise Conflict(
                f"Cannot delete a {current.state.value} slot.",
                slot_id=str(pk),
                state=current.state.value,
            )
        logger.info(f"Deleted slot {pk}")
        return slot

    def purge_available_before(self, day: date) -> int:
        """Delete AVAILABLE slots dated before ``day``. Reserved history is kept."""
        deleted, _ = self.model.objects.filter(
            state=SlotState.AVAILABLE.value,
            date__lt=day,
        ).delete()
        return deleted

    # ===== Reads =====

    def find(self, slot_id) -> Slot | None:
        row = self._queryset().filter(pk=self._coerce_id(slot_id)).first()
        return self.to_entity(row) if row is not None else None

    def get(self, slot_id) -> Slot:
        slot = self.find(slot_id)
        if slot is None:
            raise NotFound("Slot not found.", slot_id=str(slot_id))
        return slot

    def list_all(self, queryset=None) -> List[Slot]:
        """All slots in every state, ordered by date and start time"""
        qs = self._queryset() if queryset is None else queryset.select_related("reserving_party")
        return self._to_entities(qs.order_by("date", "start_time"))

    def list_by_reserving_party(self, party_id) -> List[Slot]:
        return self._to_entities(
            self._queryset().filter(reserving_party_id=party_id).order_by("date", "start_time")
        )

    def list_confirmed(self) -> List[Slot]:
        return self._to_entities(
            self._queryset()
            .filter(state=SlotState.CONFIRMED.value)
            .order_by("date", "start_time")
        )

    def list_stale_pending(self, cutoff: datetime) -> List[Slot]:
        """PENDING slots reserved strictly before ``cutoff``"""
        return self._to_entities(
            self._queryset()
            .filter(state=SlotState.PENDING.value, reserved_at__lt=cutoff)
            .order_by("reserved_at")
        )

    def schedule_for(self, day: date, lock: bool = False) -> DaySchedule:
        """
        Load the DaySchedule for ``day``

        With ``lock=True`` the date row is taken with SELECT FOR UPDATE,
        so concurrent creations on the same date run one after another.
        Must be called inside a transaction when locking.
        """
        if lock:
            if not transaction.get_connection().in_atomic_block:
                raise RuntimeError("schedule_for(lock=True) requires an open transaction")
            SlotDay.objects.select_for_update().get_or_create(date=day)
        rows = self.model.objects.filter(date=day).only("id", "date", "start_time", "end_time")
        return DaySchedule(
            day=day,
            placements=[
                Placement(slot_id=row.id, time_range=TimeRange(row.date, row.start_time, row.end_time))
                for row in rows
            ],
        )

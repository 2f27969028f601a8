"""
Reservation Engine

The slot state machine. Every transition is a single guarded UPDATE
("state X -> Y where state = X") executed inside a unit of work; when
the guard does not match, the slot is re-read to decide whether the
request was a harmless repeat (NOOP) or must be refused (REJECTED).

Expected failures are returned inside a TransitionResult, never raised.
"""

from datetime import datetime, timedelta
from typing import Callable
import logging

from django.conf import settings
from django.utils import timezone

from apps.slots.domain.entities import Slot, SlotState
from apps.slots.domain.events import SlotConfirmed, SlotReleased, SlotReserved
from apps.slots.domain.transitions import (
    TRANSITIONS,
    Outcome,
    Transition,
    TransitionResult,
)
from apps.slots.repository import SlotStore
from apps.users.identity import CallerIdentity
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import Conflict, NotFound, Unauthorized, ValidationError

logger = logging.getLogger(__name__)


def reservation_timeout() -> timedelta:
    return timedelta(minutes=int(getattr(settings, 'SLOT_RESERVATION_TIMEOUT', 30)))


class ReservationEngine:
    """
    Applies named transitions to slots

    Usage:
        engine = ReservationEngine()
        result = engine.reserve(slot_id, caller)
        if not result.ok:
            return error_response(result.error)
        price_ref = result.slot.external_price_ref
    """

    def __init__(self, store: SlotStore | None = None, clock: Callable[[], datetime] = timezone.now):
        self.store = store or SlotStore()
        self.clock = clock

    # ===== Transitions =====

    def reserve(self, slot_id, caller: CallerIdentity | None) -> TransitionResult:
        """
        AVAILABLE -> PENDING

        Of two concurrent reservations of the same slot exactly one
        updates the row; the other sees zero rows and gets Conflict.
        The winning result carries the slot's external_price_ref.
        """
        if caller is None:
            return TransitionResult.rejected(Transition.RESERVE, Unauthorized("Authentication required."))
        return self._apply(Transition.RESERVE, slot_id, caller=caller)

    def cancel(self, slot_id, caller: CallerIdentity | None) -> TransitionResult:
        """
        PENDING -> AVAILABLE, owner only

        Someone else's reservation is Forbidden; a slot that is not
        pending is a Conflict naming its state.
        """
        if caller is None:
            return TransitionResult.rejected(Transition.CANCEL, Unauthorized("Authentication required."))
        return self._apply(Transition.CANCEL, slot_id, caller=caller, reason='cancelled')

    def confirm(
        self,
        slot_id,
        *,
        holder_id=None,
        reserved_at: datetime | None = None,
    ) -> TransitionResult:
        """
        PENDING -> CONFIRMED, driven by payment settlement

        Already CONFIRMED is a NOOP. AVAILABLE (released before the
        payment arrived) is rejected as "already processed" and is never
        turned back into a confirmed booking.

        ``holder_id`` and ``reserved_at`` pin the reservation the payment
        was made for; a slot re-reserved since then is left alone.
        """
        return self._apply(Transition.CONFIRM, slot_id, holder_id=holder_id, reserved_at=reserved_at)

    def force_release(
        self,
        slot_id,
        *,
        reserved_before: datetime | None = None,
        holder_id=None,
        reserved_at: datetime | None = None,
        reason: str = 'timeout',
    ) -> TransitionResult:
        """
        PENDING -> AVAILABLE without an ownership check

        With ``reserved_before`` the release only happens if the
        reservation is older than that instant. ``holder_id`` and
        ``reserved_at`` restrict it to one particular reservation. A
        CONFIRMED slot is never released.
        """
        return self._apply(
            Transition.FORCE_RELEASE,
            slot_id,
            holder_id=holder_id,
            reserved_at=reserved_at,
            reserved_before=reserved_before,
            reason=reason,
        )

    # ===== Reads =====

    def fetch(self, slot_id, caller: CallerIdentity | None = None) -> Slot:
        """Slot as ``caller`` may see it; other parties' identities are redacted"""
        return self.store.get(slot_id).redacted_for(caller)

    # ===== Internals =====

    def _apply(
        self,
        transition: Transition,
        slot_id,
        *,
        caller: CallerIdentity | None = None,
        holder_id=None,
        reserved_at: datetime | None = None,
        reserved_before: datetime | None = None,
        reason: str = '',
    ) -> TransitionResult:
        rule = TRANSITIONS[transition]
        now = self.clock()
        party_id = caller.id if caller is not None else None
        if rule.requires_owner:
            holder_id = party_id

        try:
            with DjangoUnitOfWork() as uow:
                rows = self.store.transition(
                    slot_id,
                    rule.source,
                    rule.changes(now, party_id=party_id),
                    reserving_party_id=holder_id,
                    reserved_at=reserved_at,
                    reserved_before=reserved_before,
                )
                if rows:
                    slot = self.store.get(slot_id)
                    uow.add_event(self._event_for(transition, slot, party_id or holder_id, reason))
        except ValidationError as exc:
            return TransitionResult.rejected(transition, exc)

        if rows:
            logger.info(
                f"Slot {slot_id}: {transition.value} applied "
                f"({rule.source.value} -> {rule.target.value})"
            )
            return TransitionResult(transition, Outcome.APPLIED, slot)

        return self._explain_miss(transition, slot_id, caller, reserved_before)

    def _explain_miss(self, transition, slot_id, caller, reserved_before) -> TransitionResult:
        rule = TRANSITIONS[transition]
        current = self.store.find(slot_id)

        if current is None:
            return TransitionResult.rejected(transition, NotFound("Slot not found.", slot_id=str(slot_id)))

        if current.state in rule.idempotent_in:
            logger.info(f"Slot {slot_id}: {transition.value} is a no-op, already {current.state.value}")
            return TransitionResult(transition, Outcome.NOOP, current)

        if transition is Transition.RESERVE:
            error = Conflict("Slot no longer available.", slot_id=str(slot_id), state=current.state.value)
        elif transition is Transition.CANCEL:
            error = current.rejection_for(caller, 'cancel')
        elif current.state is SlotState.PENDING and reserved_before is not None:
            error = Conflict("Reservation has not expired yet.", slot_id=str(slot_id), state=current.state.value)
        else:
            error = Conflict("Already processed.", slot_id=str(slot_id), state=current.state.value)

        logger.info(f"Slot {slot_id}: {transition.value} rejected: {error.message}")
        return TransitionResult.rejected(transition, error, current)

    @staticmethod
    def _event_for(transition: Transition, slot: Slot, party_id, reason: str):
        if transition is Transition.RESERVE:
            return SlotReserved(
                aggregate_id=slot.id,
                slot_id=slot.id,
                party=slot.reserving_party,
                external_price_ref=slot.external_price_ref,
            )
        if transition is Transition.CONFIRM:
            return SlotConfirmed(
                aggregate_id=slot.id,
                slot_id=slot.id,
                party=slot.reserving_party,
                time_range=slot.time_range,
                price=slot.price,
            )
        return SlotReleased(
            aggregate_id=slot.id,
            slot_id=slot.id,
            party_id=party_id,
            reason=reason,
        )

"""
Payment Settlement Handler

Turns provider events into slot transitions:
- payment completed -> ReservationEngine.confirm
- payment expired / cancelled -> ReservationEngine.force_release

Deliveries are at-least-once and unordered, so every event re-checks
the slot's current state through the engine's guarded transitions. A
confirmed slot is never released, and a released slot is never
confirmed by a late completion event. Events that carry the
reservation token (``partyId`` and ``reservedAt``) only settle that
exact reservation, so a stale session cannot touch a later one.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from apps.payments.gateway import PaymentEvent
from apps.slots.application.engine import ReservationEngine
from apps.slots.domain.transitions import Outcome, TransitionResult
from shared.domain.exceptions import Conflict

logger = logging.getLogger(__name__)

PAYMENT_COMPLETED_EVENTS = frozenset({"checkout.session.completed"})
PAYMENT_RELEASE_EVENTS = frozenset({"checkout.session.expired", "checkout.session.cancelled"})


class SettlementOutcome(Enum):
    CONFIRMED = "confirmed"
    RELEASED = "released"
    ALREADY_PROCESSED = "already_processed"
    UNRESOLVED = "unresolved"
    REJECTED = "rejected"
    IGNORED = "ignored"
    FAILED = "failed"


@dataclass(frozen=True)
class SettlementResult:
    outcome: SettlementOutcome
    slot_id: str | None = None
    message: str = ""
    transition: TransitionResult | None = None

    @property
    def acknowledged(self) -> bool:
        """Whether the provider should consider the delivery handled."""
        return self.outcome not in (SettlementOutcome.REJECTED, SettlementOutcome.FAILED)


class SettlementHandler:
    """Maps provider events onto engine transitions."""

    def __init__(self, engine: ReservationEngine | None = None):
        self.engine = engine or ReservationEngine()

    def on_payment_completed(self, external_reference, *, party_id=None, reserved_at=None) -> SettlementResult:
        """Confirm the reservation the payment was made for."""
        return self._settle(
            external_reference,
            lambda slot_id: self.engine.confirm(slot_id, holder_id=party_id, reserved_at=reserved_at),
            SettlementOutcome.CONFIRMED,
        )

    def on_payment_expired_or_cancelled(
        self, external_reference, *, party_id=None, reserved_at=None
    ) -> SettlementResult:
        """Release the reservation the lapsed session was opened for."""
        return self._settle(
            external_reference,
            lambda slot_id: self.engine.force_release(
                slot_id,
                holder_id=party_id,
                reserved_at=reserved_at,
                reason="payment_expired",
            ),
            SettlementOutcome.RELEASED,
        )

    def handle_event(self, event: PaymentEvent) -> SettlementResult:
        """Dispatch one verified event; unknown event types are acknowledged and ignored."""
        if event.type in PAYMENT_COMPLETED_EVENTS:
            settle = self.on_payment_completed
        elif event.type in PAYMENT_RELEASE_EVENTS:
            settle = self.on_payment_expired_or_cancelled
        else:
            logger.info(f"Ignoring payment event {event.event_id} of type {event.type}")
            return SettlementResult(SettlementOutcome.IGNORED, message=f"Unhandled event type {event.type}")

        if not event.slot_id:
            logger.warning(f"Payment event {event.event_id} ({event.type}) has no slotId metadata")
            return SettlementResult(SettlementOutcome.REJECTED, message="slotId metadata is required")

        return settle(event.slot_id, party_id=event.party_id, reserved_at=event.reserved_at)

    def _settle(self, external_reference, transition, success: SettlementOutcome) -> SettlementResult:
        slot_id = str(external_reference) if external_reference else None
        if not slot_id:
            return SettlementResult(SettlementOutcome.UNRESOLVED, message="No slot reference")

        try:
            result = transition(slot_id)
        except Exception as e:
            logger.error(f"Error settling payment for slot {slot_id}: {e}", exc_info=True)
            return SettlementResult(SettlementOutcome.FAILED, slot_id, "Internal error")

        if result.outcome is Outcome.APPLIED:
            return SettlementResult(success, slot_id, transition=result)

        if result.outcome is Outcome.NOOP or isinstance(result.error, Conflict):
            state = result.slot.state.value if result.slot else "unknown"
            logger.warning(f"Payment event for slot {slot_id} already processed (slot is {state})")
            return SettlementResult(
                SettlementOutcome.ALREADY_PROCESSED,
                slot_id,
                "Already processed",
                transition=result,
            )

        logger.warning(f"Could not resolve payment event to a slot ({slot_id}): {result.error.message}")
        return SettlementResult(SettlementOutcome.UNRESOLVED, slot_id, result.error.message, transition=result)

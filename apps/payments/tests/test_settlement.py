"""Tests for turning payment events into slot transitions."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch
from uuid import uuid4

from django.test import TestCase

from apps.payments.gateway import PaymentEvent
from apps.payments.settlement import SettlementHandler, SettlementOutcome
from apps.slots.application.engine import ReservationEngine
from apps.slots.models import Slot as SlotModel
from apps.slots.tests.factories import make_caller, make_slot


class SettlementHandlerTests(TestCase):
    def setUp(self) -> None:
        self.engine = ReservationEngine()
        self.handler = SettlementHandler(self.engine)
        _, self.u1 = make_caller("u1")
        self.slot = make_slot(store=self.engine.store)
        self.reservation = self.engine.reserve(self.slot.id, self.u1).slot
        self.ref = str(self.slot.id)

    def _state(self) -> str:
        return SlotModel.objects.get(pk=self.slot.id).state

    def test_completed_then_expired_stays_confirmed(self) -> None:
        completed = self.handler.on_payment_completed(self.ref)
        expired = self.handler.on_payment_expired_or_cancelled(self.ref)

        self.assertEqual(completed.outcome, SettlementOutcome.CONFIRMED)
        self.assertEqual(expired.outcome, SettlementOutcome.ALREADY_PROCESSED)
        self.assertTrue(expired.acknowledged)
        self.assertEqual(self._state(), "confirmed")

    def test_expired_then_completed_stays_available(self) -> None:
        expired = self.handler.on_payment_expired_or_cancelled(self.ref)
        completed = self.handler.on_payment_completed(self.ref)

        self.assertEqual(expired.outcome, SettlementOutcome.RELEASED)
        self.assertEqual(completed.outcome, SettlementOutcome.ALREADY_PROCESSED)
        row = SlotModel.objects.get(pk=self.slot.id)
        self.assertEqual(row.state, "available")
        self.assertIsNone(row.reserving_party_id)
        self.assertIsNone(row.confirmed_at)

    def test_duplicate_completed_delivery_is_harmless(self) -> None:
        first = self.handler.on_payment_completed(self.ref)
        confirmed_at = SlotModel.objects.get(pk=self.slot.id).confirmed_at
        second = self.handler.on_payment_completed(self.ref)

        self.assertEqual(first.outcome, SettlementOutcome.CONFIRMED)
        self.assertEqual(second.outcome, SettlementOutcome.ALREADY_PROCESSED)
        self.assertEqual(SlotModel.objects.get(pk=self.slot.id).confirmed_at, confirmed_at)

    def test_unknown_slot_is_unresolved_and_later_events_still_work(self) -> None:
        unknown = self.handler.on_payment_completed(str(uuid4()))
        garbage = self.handler.on_payment_completed("not-a-slot")
        empty = self.handler.on_payment_completed("")
        real = self.handler.on_payment_completed(self.ref)

        self.assertEqual(unknown.outcome, SettlementOutcome.UNRESOLVED)
        self.assertEqual(garbage.outcome, SettlementOutcome.UNRESOLVED)
        self.assertEqual(empty.outcome, SettlementOutcome.UNRESOLVED)
        self.assertEqual(real.outcome, SettlementOutcome.CONFIRMED)

    def test_unexpected_error_is_reported_not_raised(self) -> None:
        with patch.object(self.engine, "confirm", side_effect=RuntimeError("db down")):
            result = self.handler.on_payment_completed(self.ref)

        self.assertEqual(result.outcome, SettlementOutcome.FAILED)
        self.assertFalse(result.acknowledged)
        self.assertEqual(self._state(), "pending")

    def test_handle_event_dispatches_by_type(self) -> None:
        def event(kind, slot_id=self.ref):
            return PaymentEvent(event_id="evt_1", type=kind, slot_id=slot_id)

        ignored = self.handler.handle_event(event("invoice.paid"))
        rejected = self.handler.handle_event(event("checkout.session.completed", slot_id=None))
        cancelled = self.handler.handle_event(event("checkout.session.cancelled"))

        self.assertEqual(ignored.outcome, SettlementOutcome.IGNORED)
        self.assertEqual(rejected.outcome, SettlementOutcome.REJECTED)
        self.assertEqual(cancelled.outcome, SettlementOutcome.RELEASED)
        self.assertEqual(self._state(), "available")

    # ===== Reservation token =====

    def _old_session_event(self, kind: str) -> PaymentEvent:
        return PaymentEvent(
            event_id="evt_old_session",
            type=kind,
            slot_id=self.ref,
            party_id=self.u1.id,
            reserved_at=self.reservation.reserved_at,
        )

    def _hand_over_to_u2(self):
        self.engine.cancel(self.slot.id, self.u1)
        _, u2 = make_caller("u2")
        self.engine.reserve(self.slot.id, u2)
        return u2

    def test_old_session_expiry_leaves_next_reservation_pending(self) -> None:
        u2 = self._hand_over_to_u2()

        result = self.handler.handle_event(self._old_session_event("checkout.session.expired"))

        self.assertEqual(result.outcome, SettlementOutcome.ALREADY_PROCESSED)
        self.assertTrue(result.acknowledged)
        row = SlotModel.objects.get(pk=self.slot.id)
        self.assertEqual(row.state, "pending")
        self.assertEqual(row.reserving_party_id, u2.id)

    def test_old_session_payment_does_not_confirm_next_reservation(self) -> None:
        u2 = self._hand_over_to_u2()

        result = self.handler.handle_event(self._old_session_event("checkout.session.completed"))

        self.assertEqual(result.outcome, SettlementOutcome.ALREADY_PROCESSED)
        row = SlotModel.objects.get(pk=self.slot.id)
        self.assertEqual(row.state, "pending")
        self.assertEqual(row.reserving_party_id, u2.id)
        self.assertIsNone(row.confirmed_at)

    def test_same_party_rereservation_is_told_apart_by_time(self) -> None:
        self.engine.cancel(self.slot.id, self.u1)
        later = self.reservation.reserved_at + timedelta(minutes=1)
        again = ReservationEngine(clock=lambda: later).reserve(self.slot.id, self.u1).slot

        stale = self.handler.handle_event(self._old_session_event("checkout.session.expired"))
        current = self.handler.handle_event(
            PaymentEvent(
                event_id="evt_new_session",
                type="checkout.session.completed",
                slot_id=self.ref,
                party_id=self.u1.id,
                reserved_at=again.reserved_at,
            )
        )

        self.assertEqual(stale.outcome, SettlementOutcome.ALREADY_PROCESSED)
        self.assertEqual(current.outcome, SettlementOutcome.CONFIRMED)
        self.assertEqual(self._state(), "confirmed")

    def test_matching_token_settles_the_reservation(self) -> None:
        result = self.handler.handle_event(self._old_session_event("checkout.session.completed"))

        self.assertEqual(result.outcome, SettlementOutcome.CONFIRMED)
        self.assertEqual(self._state(), "confirmed")

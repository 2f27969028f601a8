"""Tests for the reservation state machine."""

from __future__ import annotations

import threading
from datetime import timedelta
from uuid import uuid4

from django.db import connections
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from apps.slots.application.engine import ReservationEngine
from apps.slots.domain.entities import REDACTED_PARTY, SlotState
from apps.slots.domain.transitions import Outcome, TRANSITIONS, Transition
from apps.slots.models import Slot as SlotModel
from apps.slots.tests.factories import make_caller, make_slot
from shared.domain.exceptions import Conflict, Forbidden, NotFound, Unauthorized, ValidationError


class ReservationEngineTests(TestCase):
    def setUp(self) -> None:
        self.now = timezone.now().replace(microsecond=0)
        self.engine = ReservationEngine(clock=lambda: self.now)
        self.u1_user, self.u1 = make_caller("u1")
        self.u2_user, self.u2 = make_caller("u2")
        self.slot = make_slot(store=self.engine.store)

    def _row(self):
        return SlotModel.objects.get(pk=self.slot.id)

    # ===== Reserve =====

    def test_reserve_moves_available_slot_to_pending(self) -> None:
        result = self.engine.reserve(self.slot.id, self.u1)

        self.assertEqual(result.outcome, Outcome.APPLIED)
        self.assertEqual(result.slot.state, SlotState.PENDING)
        self.assertEqual(result.slot.reserving_party.id, self.u1.id)
        self.assertEqual(result.slot.reserved_at, self.now)
        self.assertEqual(result.slot.external_price_ref, "price_test_50")

    def test_only_one_of_two_reservations_succeeds(self) -> None:
        first = self.engine.reserve(self.slot.id, self.u1)
        second = self.engine.reserve(self.slot.id, self.u2)

        self.assertTrue(first.ok)
        self.assertFalse(second.ok)
        self.assertIsInstance(second.error, Conflict)
        self.assertEqual(second.error.message, "Slot no longer available.")
        row = self._row()
        self.assertEqual(row.state, "pending")
        self.assertEqual(row.reserving_party_id, self.u1.id)

    def test_stale_read_cannot_double_book(self) -> None:
        # Both callers saw the slot as available before either wrote
        rule = TRANSITIONS[Transition.RESERVE]
        seen_by_u1 = self.engine.store.get(self.slot.id)
        seen_by_u2 = self.engine.store.get(self.slot.id)
        self.assertEqual(seen_by_u1.state, seen_by_u2.state)

        won = self.engine.store.transition(self.slot.id, rule.source, rule.changes(self.now, party_id=self.u1.id))
        lost = self.engine.store.transition(self.slot.id, rule.source, rule.changes(self.now, party_id=self.u2.id))

        self.assertEqual((won, lost), (1, 0))
        self.assertEqual(self._row().reserving_party_id, self.u1.id)

    def test_reserve_without_caller_is_unauthorized(self) -> None:
        result = self.engine.reserve(self.slot.id, None)

        self.assertIsInstance(result.error, Unauthorized)
        self.assertEqual(self._row().state, "available")

    def test_reserve_missing_or_malformed_slot(self) -> None:
        self.assertIsInstance(self.engine.reserve(uuid4(), self.u1).error, NotFound)
        self.assertIsInstance(self.engine.reserve("nope", self.u1).error, ValidationError)

    # ===== Cancel =====

    def test_owner_can_cancel_pending_reservation(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)

        result = self.engine.cancel(self.slot.id, self.u1)

        self.assertEqual(result.outcome, Outcome.APPLIED)
        row = self._row()
        self.assertEqual(row.state, "available")
        self.assertIsNone(row.reserving_party_id)
        self.assertIsNone(row.reserved_at)

    def test_cancel_by_other_party_is_forbidden_and_changes_nothing(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)

        result = self.engine.cancel(self.slot.id, self.u2)

        self.assertIsInstance(result.error, Forbidden)
        self.assertEqual(result.error.message, "Not your booking.")
        row = self._row()
        self.assertEqual(row.state, "pending")
        self.assertEqual(row.reserving_party_id, self.u1.id)

    def test_cancel_confirmed_or_available_is_conflict(self) -> None:
        available = self.engine.cancel(self.slot.id, self.u1)
        self.assertIsInstance(available.error, Conflict)
        self.assertEqual(available.error.message, "Cannot cancel an available booking.")

        self.engine.reserve(self.slot.id, self.u1)
        self.engine.confirm(self.slot.id)
        confirmed = self.engine.cancel(self.slot.id, self.u1)

        self.assertIsInstance(confirmed.error, Conflict)
        self.assertEqual(confirmed.error.message, "Cannot cancel a confirmed booking.")
        self.assertEqual(self._row().state, "confirmed")

    def test_ownership_is_checked_before_state(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)
        self.engine.confirm(self.slot.id)

        result = self.engine.cancel(self.slot.id, self.u2)

        self.assertIsInstance(result.error, Forbidden)

    # ===== Confirm =====

    def test_confirm_is_idempotent(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)

        first = self.engine.confirm(self.slot.id)
        confirmed_at = self._row().confirmed_at
        self.now += timedelta(minutes=1)
        second = self.engine.confirm(self.slot.id)

        self.assertEqual(first.outcome, Outcome.APPLIED)
        self.assertEqual(first.slot.state, SlotState.CONFIRMED)
        self.assertEqual(second.outcome, Outcome.NOOP)
        self.assertTrue(second.ok)
        row = self._row()
        self.assertEqual(row.state, "confirmed")
        self.assertEqual(row.confirmed_at, confirmed_at)
        self.assertIsNone(row.reserved_at)
        self.assertEqual(row.reserving_party_id, self.u1.id)

    def test_confirm_released_slot_is_already_processed(self) -> None:
        result = self.engine.confirm(self.slot.id)

        self.assertFalse(result.ok)
        self.assertIsInstance(result.error, Conflict)
        self.assertEqual(result.error.message, "Already processed.")
        self.assertEqual(self._row().state, "available")

    # ===== Force release =====

    def test_force_release_ignores_ownership(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)

        result = self.engine.force_release(self.slot.id)

        self.assertEqual(result.outcome, Outcome.APPLIED)
        self.assertEqual(self._row().state, "available")

    def test_force_release_never_downgrades_confirmed(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)
        self.engine.confirm(self.slot.id)

        result = self.engine.force_release(self.slot.id)

        self.assertIsInstance(result.error, Conflict)
        self.assertEqual(self._row().state, "confirmed")

    def test_force_release_respects_reservation_age(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)

        result = self.engine.force_release(self.slot.id, reserved_before=self.now - timedelta(minutes=5))

        self.assertIsInstance(result.error, Conflict)
        self.assertEqual(result.error.message, "Reservation has not expired yet.")
        self.assertEqual(self._row().state, "pending")

    # ===== Fetch =====

    def test_fetch_redacts_other_parties(self) -> None:
        self.engine.reserve(self.slot.id, self.u1)
        _, admin = make_caller("admin", admin=True)

        as_owner = self.engine.fetch(self.slot.id, self.u1)
        as_other = self.engine.fetch(self.slot.id, self.u2)
        as_anonymous = self.engine.fetch(self.slot.id)
        as_admin = self.engine.fetch(self.slot.id, admin)

        self.assertEqual(as_owner.reserving_party.id, self.u1.id)
        self.assertEqual(as_admin.reserving_party.id, self.u1.id)
        self.assertEqual(as_other.reserving_party, REDACTED_PARTY)
        self.assertEqual(as_anonymous.reserving_party, REDACTED_PARTY)
        self.assertEqual(as_other.state, SlotState.PENDING)
        self.assertEqual(as_other.price, as_owner.price)


class ConcurrentReservationTests(TransactionTestCase):
    """Reservations racing on separate database connections."""

    def test_only_one_of_two_concurrent_reservations_wins(self) -> None:
        slot = make_slot()
        callers = [make_caller(f"racer{i}")[1] for i in range(2)]
        barrier = threading.Barrier(len(callers))
        results, errors = [], []

        def reserve(caller) -> None:
            try:
                barrier.wait(timeout=10)
                results.append(ReservationEngine().reserve(slot.id, caller))
            except Exception as exc:
                errors.append(exc)
            finally:
                connections.close_all()

        threads = [threading.Thread(target=reserve, args=(caller,)) for caller in callers]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(len(results), 2)
        winners = [result for result in results if result.outcome is Outcome.APPLIED]
        losers = [result for result in results if result.outcome is Outcome.REJECTED]
        self.assertEqual(len(winners), 1)
        self.assertEqual(len(losers), 1)
        self.assertIsInstance(losers[0].error, Conflict)

        row = SlotModel.objects.get(pk=slot.id)
        self.assertEqual(row.state, "pending")
        self.assertEqual(row.reserving_party_id, winners[0].slot.reserving_party.id)

"""Integration tests for slot API endpoints."""

from __future__ import annotations

from datetime import date
from unittest.mock import patch
from uuid import uuid4

from django.test import override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from apps.payments.gateway import PaymentGatewayError
from apps.slots.application.engine import ReservationEngine
from apps.slots.models import Slot as SlotModel
from apps.slots.tests.factories import make_caller, make_slot


@override_settings(PAYMENT_PRICE_REFS={"50": "price_test_50"})
class SlotAPITests(APITestCase):
    """Covers the calendar, admin inventory, reservations and receipts."""

    def setUp(self) -> None:
        self.admin_user, self.admin = make_caller("admin", admin=True)
        self.guest_user, self.guest = make_caller("guest")
        self.other_user, self.other = make_caller("other")
        self.list_url = reverse("slot-list")

    def _payload(self, **overrides) -> dict[str, str]:
        payload = {"date": "2025-07-01", "start_time": "09:00", "end_time": "10:00", "price": "50"}
        payload.update(overrides)
        return payload

    # ===== Admin inventory =====

    def test_admin_can_create_slot(self) -> None:
        self.client.force_authenticate(self.admin_user)

        response = self.client.post(self.list_url, self._payload(), format="json")

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["state"], "available")
        self.assertEqual(response.data["start_time"], "09:00")
        self.assertEqual(response.data["external_price_ref"], "price_test_50")
        self.assertEqual(SlotModel.objects.count(), 1)

    def test_overlapping_slot_is_conflict_and_touching_slot_is_allowed(self) -> None:
        self.client.force_authenticate(self.admin_user)
        self.client.post(self.list_url, self._payload(), format="json")

        overlap = self.client.post(self.list_url, self._payload(start_time="09:30", end_time="10:30"), format="json")
        touching = self.client.post(self.list_url, self._payload(start_time="10:00", end_time="11:00"), format="json")

        self.assertEqual(overlap.status_code, status.HTTP_409_CONFLICT, overlap.data)
        self.assertEqual(overlap.data["code"], "conflict")
        self.assertEqual(touching.status_code, status.HTTP_201_CREATED, touching.data)

    def test_invalid_slot_input_is_bad_request(self) -> None:
        self.client.force_authenticate(self.admin_user)

        bad_date = self.client.post(self.list_url, self._payload(date="2025/07/01"), format="json")
        missing = self.client.post(self.list_url, {"date": "2025-07-01"}, format="json")

        self.assertEqual(bad_date.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(bad_date.data["detail"], "Invalid date format. Use YYYY-MM-DD.")
        self.assertEqual(missing.status_code, status.HTTP_400_BAD_REQUEST)

    def test_oversized_price_is_bad_request(self) -> None:
        self.client.force_authenticate(self.admin_user)

        response = self.client.post(self.list_url, self._payload(price="1e30"), format="json")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST, response.data)
        self.assertEqual(response.data["code"], "validation_error")
        self.assertEqual(SlotModel.objects.count(), 0)

    def test_non_admin_cannot_create_or_delete(self) -> None:
        slot = make_slot()
        self.client.force_authenticate(self.guest_user)

        create = self.client.post(self.list_url, self._payload(), format="json")
        delete = self.client.delete(reverse("slot-detail", args=[slot.id]))

        self.assertEqual(create.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(delete.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_deletes_only_available_slots(self) -> None:
        free = make_slot(start="09:00", end="10:00")
        held = make_slot(start="10:00", end="11:00")
        ReservationEngine().reserve(held.id, self.guest)
        self.client.force_authenticate(self.admin_user)

        ok = self.client.delete(reverse("slot-detail", args=[free.id]))
        refused = self.client.delete(reverse("slot-detail", args=[held.id]))

        self.assertEqual(ok.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(refused.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(SlotModel.objects.filter(pk=held.id).exists())

    # ===== Public calendar =====

    def test_anonymous_listing_shows_every_state_without_identities(self) -> None:
        make_slot(start="09:00", end="10:00")
        held = make_slot(start="10:00", end="11:00")
        ReservationEngine().reserve(held.id, self.guest)

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s["state"] for s in response.data], ["available", "pending"])
        self.assertEqual([s["is_booked"] for s in response.data], [False, True])
        self.assertTrue(all(s["reserving_party"] is None for s in response.data))

    def test_listing_filters_by_date_and_state(self) -> None:
        make_slot(day=date(2025, 7, 1))
        make_slot(day=date(2025, 7, 2))
        held = make_slot(day=date(2025, 7, 3))
        ReservationEngine().reserve(held.id, self.guest)

        by_date = self.client.get(self.list_url, {"date": "2025-07-02"})
        by_range = self.client.get(self.list_url, {"date_after": "2025-07-02", "date_before": "2025-07-03"})
        by_state = self.client.get(self.list_url, {"state": "pending"})

        self.assertEqual([s["date"] for s in by_date.data], ["2025-07-02"])
        self.assertEqual([s["date"] for s in by_range.data], ["2025-07-02", "2025-07-03"])
        self.assertEqual([s["id"] for s in by_state.data], [str(held.id)])

    def test_retrieve_redacts_reserving_party_for_others(self) -> None:
        slot = make_slot()
        ReservationEngine().reserve(slot.id, self.guest)
        url = reverse("slot-detail", args=[slot.id])

        self.client.force_authenticate(self.other_user)
        as_other = self.client.get(url)
        self.client.force_authenticate(self.guest_user)
        as_owner = self.client.get(url)

        self.assertEqual(as_other.data["state"], "pending")
        self.assertIsNone(as_other.data["reserving_party"])
        self.assertEqual(as_owner.data["reserving_party"]["email"], "guest@example.com")

    def test_unknown_and_malformed_ids(self) -> None:
        missing = self.client.get(reverse("slot-detail", args=[uuid4()]))
        malformed = self.client.get(reverse("slot-detail", args=["nope"]))

        self.assertEqual(missing.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(missing.data["code"], "not_found")
        self.assertEqual(malformed.status_code, status.HTTP_400_BAD_REQUEST)

    # ===== Reservations =====

    def test_reserve_returns_payment_handle(self) -> None:
        slot = make_slot()
        self.client.force_authenticate(self.guest_user)

        response = self.client.post(reverse("slot-reserve", args=[slot.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK, response.data)
        self.assertEqual(response.data["external_price_ref"], "price_test_50")
        self.assertTrue(response.data["checkout_url"])
        self.assertEqual(response.data["slot"]["state"], "pending")
        self.assertEqual(SlotModel.objects.get(pk=slot.id).reserving_party, self.guest_user)

    def test_second_reservation_is_conflict(self) -> None:
        slot = make_slot()
        self.client.force_authenticate(self.guest_user)
        self.client.post(reverse("slot-reserve", args=[slot.id]))
        self.client.force_authenticate(self.other_user)

        response = self.client.post(reverse("slot-reserve", args=[slot.id]))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data["detail"], "Slot no longer available.")

    def test_reserve_requires_authentication(self) -> None:
        slot = make_slot()

        response = self.client.post(reverse("slot-reserve", args=[slot.id]))

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(SlotModel.objects.get(pk=slot.id).state, "available")

    def test_gateway_failure_keeps_reservation(self) -> None:
        slot = make_slot()
        self.client.force_authenticate(self.guest_user)

        with patch("apps.slots.views.gateway.create_checkout", side_effect=PaymentGatewayError("down")):
            response = self.client.post(reverse("slot-reserve", args=[slot.id]))
            retry = self.client.post(reverse("slot-checkout", args=[slot.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data["checkout_url"])
        self.assertEqual(retry.status_code, status.HTTP_502_BAD_GATEWAY)
        self.assertEqual(SlotModel.objects.get(pk=slot.id).state, "pending")

    def test_checkout_is_owner_only(self) -> None:
        slot = make_slot()
        ReservationEngine().reserve(slot.id, self.guest)

        self.client.force_authenticate(self.other_user)
        forbidden = self.client.post(reverse("slot-checkout", args=[slot.id]))
        self.client.force_authenticate(self.guest_user)
        allowed = self.client.post(reverse("slot-checkout", args=[slot.id]))

        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(allowed.status_code, status.HTTP_200_OK)
        self.assertIn("checkout_url", allowed.data)

    def test_cancel_by_owner_and_by_others(self) -> None:
        slot = make_slot()
        ReservationEngine().reserve(slot.id, self.guest)
        url = reverse("slot-cancel", args=[slot.id])

        self.client.force_authenticate(self.other_user)
        forbidden = self.client.post(url)
        self.client.force_authenticate(self.guest_user)
        cancelled = self.client.post(url)
        again = self.client.post(url)

        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(forbidden.data["detail"], "Not your booking.")
        self.assertEqual(cancelled.status_code, status.HTTP_200_OK)
        self.assertEqual(cancelled.data["state"], "available")
        self.assertEqual(again.status_code, status.HTTP_409_CONFLICT)

    def test_mine_lists_callers_reservations(self) -> None:
        own = make_slot(start="09:00", end="10:00")
        foreign = make_slot(start="10:00", end="11:00")
        ReservationEngine().reserve(own.id, self.guest)
        ReservationEngine().reserve(foreign.id, self.other)
        self.client.force_authenticate(self.guest_user)

        response = self.client.get(reverse("slot-mine"))

        self.assertEqual([s["id"] for s in response.data], [str(own.id)])

    def test_confirmed_listing_is_admin_only(self) -> None:
        slot = make_slot()
        engine = ReservationEngine()
        engine.reserve(slot.id, self.guest)
        engine.confirm(slot.id)

        self.client.force_authenticate(self.guest_user)
        forbidden = self.client.get(reverse("slot-confirmed"))
        self.client.force_authenticate(self.admin_user)
        listed = self.client.get(reverse("slot-confirmed"))

        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(listed.status_code, status.HTTP_200_OK)
        self.assertEqual(listed.data[0]["reserving_party"]["email"], "guest@example.com")

    # ===== Receipts =====

    def test_receipt_for_confirmed_slot_owner(self) -> None:
        slot = make_slot()
        engine = ReservationEngine()
        engine.reserve(slot.id, self.guest)
        url = reverse("slot-receipt", args=[slot.id])

        self.client.force_authenticate(self.guest_user)
        pending = self.client.get(url)
        engine.confirm(slot.id)
        ok = self.client.get(url)
        self.client.force_authenticate(self.other_user)
        forbidden = self.client.get(url)

        self.assertEqual(pending.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(ok.status_code, status.HTTP_200_OK)
        self.assertEqual(ok["Content-Type"], "application/pdf")
        self.assertTrue(ok.content.startswith(b"%PDF"))
        self.assertIn(f"receipt-{slot.id}.pdf", ok["Content-Disposition"])
        self.assertEqual(forbidden.status_code, status.HTTP_403_FORBIDDEN)

"""Serializers for the slots domain.

Read serializers render ``Slot`` domain snapshots, not model instances.
"""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.slots.domain.entities import REDACTED_PARTY


class PartySerializer(serializers.Serializer):
    id = serializers.IntegerField()
    display_name = serializers.CharField()
    email = serializers.EmailField()


class SlotSerializer(serializers.Serializer):
    """Public view of a slot; the reserving party is null unless visible to the caller."""

    id = serializers.UUIDField()
    date = serializers.DateField(source="time_range.day")
    start_time = serializers.TimeField(source="time_range.start", format="%H:%M")
    end_time = serializers.TimeField(source="time_range.end", format="%H:%M")
    price = serializers.DecimalField(source="price.amount", max_digits=10, decimal_places=2)
    currency = serializers.CharField(source="price.currency")
    state = serializers.CharField(source="state.value")
    is_booked = serializers.SerializerMethodField()
    reserving_party = serializers.SerializerMethodField()
    created_at = serializers.DateTimeField()
    reserved_at = serializers.DateTimeField(allow_null=True)
    confirmed_at = serializers.DateTimeField(allow_null=True)

    def get_is_booked(self, slot) -> bool:  # type: ignore
        return slot.state.is_reserved

    def get_reserving_party(self, slot):  # type: ignore
        party = slot.reserving_party
        if party is None or party == REDACTED_PARTY:
            return None
        return PartySerializer(party).data


class AdminSlotSerializer(SlotSerializer):
    external_price_ref = serializers.CharField()


class SlotCreateSerializer(serializers.Serializer):
    """Raw creation input; parsing and range checks happen in CreateSlotHandler."""

    date = serializers.CharField(help_text="YYYY-MM-DD")
    start_time = serializers.CharField(help_text="HH:MM")
    end_time = serializers.CharField(help_text="HH:MM")
    price = serializers.CharField(help_text="Non-negative decimal amount")


class ReservationSerializer(serializers.Serializer):
    """Response of a successful reservation: the slot plus the payment handle."""

    slot = SlotSerializer()
    external_price_ref = serializers.CharField()
    checkout_url = serializers.URLField(allow_null=True)
    expires_at = serializers.DateTimeField()

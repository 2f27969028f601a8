"""Admin registration for slots."""

from __future__ import annotations

from django.contrib import admin

from .models import Slot


@admin.register(Slot)
class SlotAdmin(admin.ModelAdmin):
    list_display = (
        "date",
        "start_time",
        "end_time",
        "price",
        "currency",
        "state",
        "reserving_party",
        "reserved_at",
        "confirmed_at",
    )
    list_filter = ("state", "date")
    search_fields = ("reserving_party__email", "reserving_party__username", "external_price_ref")
    date_hierarchy = "date"
    # State changes go through the reservation engine only
    readonly_fields = (
        "external_price_ref",
        "state",
        "reserving_party",
        "reserved_at",
        "confirmed_at",
        "created_at",
        "updated_at",
    )

    def has_delete_permission(self, request, obj=None):  # type: ignore
        if obj is not None and obj.state != Slot.State.AVAILABLE:
            return False
        return super().has_delete_permission(request, obj)

    def has_add_permission(self, request):  # type: ignore
        # New slots need the overlap check and a price reference; use the API
        return False

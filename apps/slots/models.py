"""Slot persistence models."""

from __future__ import annotations

import uuid

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Slot(models.Model):
    """A bookable time range on one date."""

    class State(models.TextChoices):
        AVAILABLE = "available", _("Available")
        PENDING = "pending", _("Awaiting payment")
        CONFIRMED = "confirmed", _("Confirmed")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    price = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default="EUR")
    external_price_ref = models.CharField(
        max_length=255,
        editable=False,
        help_text=_("Payment provider price identifier, fixed at creation."),
    )
    state = models.CharField(
        max_length=16,
        choices=State.choices,
        default=State.AVAILABLE,
        db_index=True,
    )
    reserving_party = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="reserved_slots",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    reserved_at = models.DateTimeField(null=True, blank=True)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    # Written explicitly: queryset.update() bypasses auto_now
    updated_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = _("Slot")
        verbose_name_plural = _("Slots")
        ordering = ["date", "start_time"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_time__gt=models.F("start_time")),
                name="slot_valid_time_range",
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(state="available", reserving_party__isnull=True)
                    | (~models.Q(state="available") & models.Q(reserving_party__isnull=False))
                ),
                name="slot_party_matches_state",
            ),
        ]
        indexes = [
            models.Index(fields=["date", "start_time"], name="slot_date_start_idx"),
            models.Index(fields=["state", "reserved_at"], name="slot_state_reserved_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.date} {self.start_time:%H:%M}-{self.end_time:%H:%M} ({self.state})"


class SlotDay(models.Model):
    """Lock row serialising slot creation for one date."""

    date = models.DateField(unique=True)

    class Meta:
        verbose_name = _("Slot day")
        verbose_name_plural = _("Slot days")

    def __str__(self) -> str:
        return str(self.date)

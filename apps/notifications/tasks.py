"""Celery tasks for notification delivery."""

from __future__ import annotations

from celery import shared_task  # type: ignore

from .services import send_slot_confirmation_email


@shared_task(name="notifications.send_slot_confirmation")
def send_slot_confirmation(**kwargs) -> bool:
    """Deliver the booking confirmation e-mail."""
    return send_slot_confirmation_email(**kwargs)

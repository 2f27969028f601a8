"""Notification services for booking e-mails."""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.utils.html import strip_tags  # type: ignore

logger = logging.getLogger(__name__)


# ============================================================================
# EMAIL NOTIFICATIONS
# ============================================================================

def send_email_notification(
    recipient_email: str,
    subject: str,
    message: str,
    *,
    html_message: str | None = None,
) -> bool:
    """
    Send one e-mail.

    Returns:
        bool: True if the message was handed to the mail backend
    """
    if not recipient_email:
        logger.warning(f"Skipping e-mail without recipient: {subject}")
        return False

    try:
        send_mail(
            subject=subject,
            message=strip_tags(html_message) if html_message else message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            html_message=html_message,
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


def send_slot_confirmation_email(
    recipient_email: str,
    recipient_name: str,
    slot_date: str,
    start_time: str,
    end_time: str,
    price: str,
    reference: str,
) -> bool:
    """Tell the reserving party their booking is paid and confirmed."""
    subject = f"Booking {reference} confirmed"
    client_url = getattr(settings, "CLIENT_URL", "").rstrip("/")
    message = (
        f"Hello {recipient_name or recipient_email},\n\n"
        f"your booking is confirmed.\n\n"
        f"Date: {slot_date}\n"
        f"Time: {start_time} - {end_time}\n"
        f"Price: {price}\n"
        f"Reference: {reference}\n\n"
        f"You can download your receipt from {client_url}/dashboard.\n"
    )
    return send_email_notification(recipient_email, subject, message)


# ============================================================================
# EVENT HANDLERS (registered in NotificationsConfig.ready)
# ============================================================================

def on_slot_confirmed(event) -> None:
    """
    Queue the confirmation e-mail for a confirmed slot.

    Runs after the confirming transaction committed; a failure here is
    logged and the booking stays confirmed.
    """
    from apps.slots.receipts import receipt_reference

    from .tasks import send_slot_confirmation

    party = event.party
    if party is None or not party.email:
        logger.warning(f"Slot {event.slot_id} confirmed without a reachable party, no e-mail sent")
        return

    time_range = event.time_range
    try:
        send_slot_confirmation.delay(
            recipient_email=party.email,
            recipient_name=party.display_name,
            slot_date=time_range.day.isoformat(),
            start_time=f"{time_range.start:%H:%M}",
            end_time=f"{time_range.end:%H:%M}",
            price=str(event.price),
            reference=receipt_reference(event.slot_id),
        )
    except Exception as e:
        logger.error(f"Could not queue confirmation e-mail for slot {event.slot_id}: {e}", exc_info=True)
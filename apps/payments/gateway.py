"""
Payment gateway integration

- create_checkout(): open a hosted checkout session for a pending slot
- sign_payload() / verify_signature(): HMAC-SHA256 webhook signatures
- parse_event(): decode a verified webhook body into a PaymentEvent
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

import requests
from django.conf import settings

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Payment-Signature"


class PaymentGatewayError(Exception):
    """The provider could not create a checkout session."""


class SignatureVerificationError(Exception):
    """Webhook signature missing, malformed, stale or wrong."""


class MalformedEvent(Exception):
    """Webhook body is not a usable event."""


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    checkout_url: str
    expires_at: datetime


@dataclass(frozen=True)
class PaymentEvent:
    """A verified provider event reduced to what settlement needs."""

    event_id: str
    type: str
    slot_id: str | None
    session_id: str | None = None
    party_id: int | None = None
    reserved_at: datetime | None = None
    raw: dict = field(default_factory=dict, compare=False, repr=False)


def _api_base_url() -> str:
    base = getattr(settings, "PAYMENT_API_BASE_URL", "")
    return base if base.endswith("/") else f"{base}/"


def reservation_metadata(slot, party) -> dict[str, str]:
    """
    Checkout metadata identifying the reservation being paid for

    ``partyId`` and ``reservedAt`` come back on settlement events so a
    late event from an old session cannot settle a newer reservation of
    the same slot.
    """
    metadata = {"slotId": str(slot.id), "partyId": str(party.id)}
    if slot.reserved_at is not None:
        metadata["reservedAt"] = slot.reserved_at.isoformat()
    return metadata


def create_checkout(slot, party, expires_at: datetime) -> CheckoutSession:
    """
    Open a checkout session for ``slot`` on behalf of ``party``

    The slot id is sent in the session metadata so that settlement
    events can be resolved back to the slot. The session expires at
    ``expires_at``, the end of the reservation window.

    Raises:
        PaymentGatewayError: provider unreachable or refused the request
    """
    logger.info(f"Creating checkout for slot {slot.id}, price ref {slot.external_price_ref}")

    client_url = getattr(settings, "CLIENT_URL", "").rstrip("/")
    success_url = f"{client_url}/booking/success?slot={slot.id}"
    cancel_url = f"{client_url}/booking/cancel?slot={slot.id}"

    # Development: emulate the provider
    if settings.DEBUG or not getattr(settings, "PAYMENT_API_KEY", ""):
        logger.warning("Using emulated payment gateway (DEBUG mode or no API key)")
        session_id = f"cs_test_{uuid.uuid4().hex[:16]}"
        return CheckoutSession(
            session_id=session_id,
            checkout_url=f"{_api_base_url()}checkout/{session_id}",
            expires_at=expires_at,
        )

    payload = {
        "mode": "payment",
        "line_items": [{"price": slot.external_price_ref, "quantity": 1}],
        "customer_email": party.email or None,
        "success_url": success_url,
        "cancel_url": cancel_url,
        "expires_at": int(expires_at.timestamp()),
        "metadata": reservation_metadata(slot, party),
    }
    headers = {
        "Authorization": f"Bearer {settings.PAYMENT_API_KEY}",
        "Content-Type": "application/json",
        "Accept": "application/json",
        "Idempotency-Key": f"checkout-{slot.id}-{int(slot.reserved_at.timestamp()) if slot.reserved_at else 0}",
    }

    try:
        response = requests.post(
            f"{_api_base_url()}checkout/sessions",
            json=payload,
            headers=headers,
            timeout=30,
        )
        response.raise_for_status()
        result = response.json()
    except requests.exceptions.RequestException as e:
        logger.error(f"Network error while creating checkout for slot {slot.id}: {e}")
        raise PaymentGatewayError(f"Payment provider unavailable: {e}")
    except ValueError as e:
        logger.error(f"Payment provider returned invalid JSON for slot {slot.id}: {e}")
        raise PaymentGatewayError("Payment provider returned an invalid response")

    if not result.get("id") or not result.get("url"):
        error_msg = (result.get("error") or {}).get("message", "Unknown error")
        logger.error(f"Payment provider refused checkout for slot {slot.id}: {error_msg}")
        raise PaymentGatewayError(f"Payment provider error: {error_msg}")

    logger.info(f"Checkout session {result['id']} created for slot {slot.id}")
    return CheckoutSession(session_id=result["id"], checkout_url=result["url"], expires_at=expires_at)


def compute_signature(body: bytes, timestamp: int, secret: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def sign_payload(body: bytes, secret: str | None = None, timestamp: int | None = None) -> str:
    """Build a signature header value ``t=<unix>,v1=<hex>`` for ``body``."""
    secret = secret if secret is not None else settings.PAYMENT_WEBHOOK_SECRET
    timestamp = int(time.time()) if timestamp is None else timestamp
    return f"t={timestamp},v1={compute_signature(body, timestamp, secret)}"


def verify_signature(
    body: bytes,
    header: str | None,
    *,
    secret: str | None = None,
    tolerance: int | None = None,
    now: int | None = None,
) -> None:
    """
    Check an ``X-Payment-Signature`` header against the raw body

    The header is ``t=<unix>,v1=<hex>``, where the digest is
    HMAC-SHA256 over ``"<t>.<body>"``. Timestamps outside the tolerance
    window are refused to stop replays.

    Raises:
        SignatureVerificationError
    """
    secret = secret if secret is not None else getattr(settings, "PAYMENT_WEBHOOK_SECRET", "")
    if not secret:
        raise SignatureVerificationError("Webhook secret is not configured")
    if not header:
        raise SignatureVerificationError("Missing signature header")

    parts: dict[str, list[str]] = {}
    for item in header.split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts.setdefault(key, []).append(value)

    try:
        timestamp = int(parts["t"][0])
    except (KeyError, IndexError, ValueError):
        raise SignatureVerificationError("Malformed signature header")

    candidates = parts.get("v1") or []
    if not candidates:
        raise SignatureVerificationError("No v1 signature in header")

    tolerance = tolerance if tolerance is not None else int(getattr(settings, "PAYMENT_WEBHOOK_TOLERANCE", 300))
    now = int(time.time()) if now is None else now
    if tolerance and abs(now - timestamp) > tolerance:
        raise SignatureVerificationError("Signature timestamp outside tolerance")

    expected = compute_signature(body, timestamp, secret)
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise SignatureVerificationError("Signature mismatch")


def parse_event(body: bytes) -> PaymentEvent:
    """
    Decode a webhook body

    Expected shape::

        {"id": "evt_...", "type": "checkout.session.completed",
         "data": {"object": {"id": "cs_...", "metadata": {
             "slotId": "...", "partyId": "...", "reservedAt": "<ISO 8601>"}}}}

    ``partyId`` and ``reservedAt`` are optional; when present they pin
    the reservation the session was opened for.

    Raises:
        MalformedEvent: invalid JSON, missing ``type`` or unreadable
            reservation metadata
    """
    try:
        data = json.loads(body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        raise MalformedEvent("Invalid JSON")

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise MalformedEvent("Event type is required")

    payload = data.get("data") or {}
    obj = (payload.get("object") if isinstance(payload, dict) else None) or {}
    if not isinstance(obj, dict):
        raise MalformedEvent("Event data.object must be an object")
    metadata = obj.get("metadata") or {}
    if not isinstance(metadata, dict):
        metadata = {}
    slot_id = metadata.get("slotId")

    try:
        party_id = int(metadata["partyId"]) if metadata.get("partyId") else None
        reserved_at = datetime.fromisoformat(metadata["reservedAt"]) if metadata.get("reservedAt") else None
    except (TypeError, ValueError):
        raise MalformedEvent("Invalid reservation metadata")
    if reserved_at is not None and reserved_at.tzinfo is None:
        raise MalformedEvent("reservedAt must carry a UTC offset")

    return PaymentEvent(
        event_id=str(data.get("id", "")),
        type=data["type"],
        slot_id=str(slot_id) if slot_id else None,
        session_id=obj.get("id"),
        party_id=party_id,
        reserved_at=reserved_at,
        raw=data,
    )

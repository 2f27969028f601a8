"""Payment provider webhook."""

from __future__ import annotations

import structlog
from django.http import JsonResponse  # type: ignore
from django.views.decorators.csrf import csrf_exempt  # type: ignore
from django.views.decorators.http import require_POST  # type: ignore

from . import gateway
from .settlement import SettlementHandler, SettlementOutcome

logger = structlog.get_logger(__name__)

_STATUS_BY_OUTCOME = {
    SettlementOutcome.REJECTED: 400,
    SettlementOutcome.FAILED: 500,
}


@csrf_exempt
@require_POST
def payment_webhook(request):
    """
    Receive a settlement event from the payment provider.

    The signature is checked against the raw body before anything is
    parsed; nothing touches slot state unless it passes.
    """
    body = request.body
    try:
        gateway.verify_signature(body, request.headers.get(gateway.SIGNATURE_HEADER))
    except gateway.SignatureVerificationError as exc:
        logger.warning("payment_webhook.invalid_signature", error=str(exc))
        return JsonResponse({"status": "error", "message": "Invalid signature"}, status=403)

    try:
        event = gateway.parse_event(body)
    except gateway.MalformedEvent as exc:
        logger.warning("payment_webhook.malformed", error=str(exc))
        return JsonResponse({"status": "error", "message": str(exc)}, status=400)

    result = SettlementHandler().handle_event(event)
    logger.info(
        "payment_webhook.processed",
        event_id=event.event_id,
        event_type=event.type,
        slot_id=result.slot_id,
        outcome=result.outcome.value,
    )

    payload = {"status": "success" if result.acknowledged else "error", "outcome": result.outcome.value}
    if result.message:
        payload["message"] = result.message
    return JsonResponse(payload, status=_STATUS_BY_OUTCOME.get(result.outcome, 200))

"""DRF exception handler for domain errors.

Views may raise any ``DomainError``; it is rendered as
``{"detail", "code", ...details}`` with the error's HTTP status. All
other exceptions fall through to DRF's default handler.
"""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from shared.domain.exceptions import DomainError

logger = logging.getLogger(__name__)


def domain_error_payload(exc: DomainError) -> dict:
    payload = {"detail": exc.message, "code": exc.code}
    if exc.details:
        payload.update(exc.details)
    return payload


def domain_error_response(exc: DomainError) -> Response:
    return Response(domain_error_payload(exc), status=exc.status_code)


def exception_handler(exc, context):  # type: ignore
    if isinstance(exc, DomainError):
        view = context.get("view")
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'view'}: {exc.message}"
        )
        return domain_error_response(exc)
    return drf_exception_handler(exc, context)

"""URL routing for payment provider callbacks."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import payment_webhook

urlpatterns = [
    path("webhook/", payment_webhook, name="payment-webhook"),
]

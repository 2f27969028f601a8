"""URL routing for the slots domain."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import SlotViewSet

router = DefaultRouter()
router.register(r"", SlotViewSet, basename="slot")

urlpatterns = [
    path("", include(router.urls)),
]

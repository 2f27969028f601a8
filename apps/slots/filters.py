"""FilterSet for the public slot listing."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Slot


class SlotFilterSet(django_filters.FilterSet):
    date = django_filters.DateFilter(field_name="date", lookup_expr="exact")
    date_after = django_filters.DateFilter(field_name="date", lookup_expr="gte")
    date_before = django_filters.DateFilter(field_name="date", lookup_expr="lte")
    state = django_filters.ChoiceFilter(field_name="state", choices=Slot.State.choices)

    class Meta:
        model = Slot
        fields = ["date", "state"]

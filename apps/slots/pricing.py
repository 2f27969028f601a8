"""Resolve slot prices to payment provider price identifiers."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from django.conf import settings  # type: ignore

from shared.domain.exceptions import ValidationError


def configured_price_refs() -> dict[Decimal, str]:
    refs: dict[Decimal, str] = {}
    for amount, ref in getattr(settings, "PAYMENT_PRICE_REFS", {}).items():
        try:
            refs[Decimal(str(amount))] = ref
        except InvalidOperation:
            continue
    return refs


def resolve_price_ref(amount: Decimal) -> str:
    """Return the provider price id configured for ``amount``.

    Amounts are compared numerically, so ``50``, ``50.0`` and ``50.00``
    resolve to the same entry.
    """
    ref = configured_price_refs().get(Decimal(amount))
    if not ref:
        raise ValidationError(f"No payment price configured for amount {amount}.")
    return ref

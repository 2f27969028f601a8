"""Caller identity passed into the slot domain.

The domain never touches ``request.user`` directly. Views build a
``CallerIdentity`` once per request and hand it to the engine.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Party:
    """A displayable identity that can hold a reservation."""

    id: int
    display_name: str = ""
    email: str = ""

    def __str__(self) -> str:
        return self.display_name or self.email or f"user #{self.id}"


@dataclass(frozen=True)
class CallerIdentity(Party):
    """An already-verified caller. ``is_admin`` gates administrative operations."""

    is_admin: bool = False

    @property
    def party(self) -> Party:
        return Party(id=self.id, display_name=self.display_name, email=self.email)


def party_from_user(user) -> Party:
    full_name = user.get_full_name() if hasattr(user, "get_full_name") else ""
    return Party(
        id=user.pk,
        display_name=full_name or getattr(user, "username", "") or "",
        email=getattr(user, "email", "") or "",
    )


def caller_from_user(user) -> CallerIdentity | None:
    """Build the identity for an authenticated user, or None for anonymous callers."""
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    party = party_from_user(user)
    return CallerIdentity(
        id=party.id,
        display_name=party.display_name,
        email=party.email,
        is_admin=bool(getattr(user, "is_staff", False) or getattr(user, "is_superuser", False)),
    )


def caller_from_request(request) -> CallerIdentity | None:
    return caller_from_user(getattr(request, "user", None))

"""
Slot Domain Events

Published by the unit of work after the transaction that produced them
commits.
"""

from dataclasses import dataclass
from uuid import UUID

from apps.users.identity import Party
from shared.domain.base import DomainEvent
from shared.domain.value_objects import Money, TimeRange


@dataclass(kw_only=True)
class SlotCreated(DomainEvent):
    """Event: an administrator added a bookable slot"""
    slot_id: UUID
    time_range: TimeRange
    price: Money


@dataclass(kw_only=True)
class SlotReserved(DomainEvent):
    """
    Event: a slot moved AVAILABLE -> PENDING

    The caller is expected to start checkout next.
    """
    slot_id: UUID
    party: Party
    external_price_ref: str


@dataclass(kw_only=True)
class SlotConfirmed(DomainEvent):
    """
    Event: payment settled, PENDING -> CONFIRMED

    Triggers:
    - Confirmation e-mail to the reserving party
    """
    slot_id: UUID
    party: Party
    time_range: TimeRange
    price: Money


@dataclass(kw_only=True)
class SlotReleased(DomainEvent):
    """
    Event: a pending reservation was dropped, PENDING -> AVAILABLE

    ``reason`` is one of ``cancelled``, ``payment_expired`` or ``timeout``.
    """
    slot_id: UUID
    party_id: int | None
    reason: str


@dataclass(kw_only=True)
class SlotDeleted(DomainEvent):
    """Event: an available slot was removed"""
    slot_id: UUID
    time_range: TimeRange

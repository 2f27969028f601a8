"""
Slot Domain Entities

- SlotState: the three states a slot can be in
- Slot: aggregate root snapshot handed out by the store and the engine
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum

from apps.users.identity import CallerIdentity, Party
from shared.domain.base import Aggregate
from shared.domain.exceptions import Conflict, DomainError, Forbidden
from shared.domain.value_objects import Money, TimeRange


REDACTED_PARTY = Party(id=0, display_name='Reserved')


class SlotState(str, Enum):
    """
    Slot lifecycle states

    State transitions:
    - AVAILABLE -> PENDING (reserve)
    - PENDING -> AVAILABLE (cancel by owner, payment expired, sweeper)
    - PENDING -> CONFIRMED (payment completed)

    Cancelled reservations go back to AVAILABLE; there is no separate
    cancelled state.
    """
    AVAILABLE = 'available'
    PENDING = 'pending'
    CONFIRMED = 'confirmed'

    @property
    def is_reserved(self) -> bool:
        return self is not SlotState.AVAILABLE


@dataclass(kw_only=True)
class Slot(Aggregate):
    """
    Slot Aggregate Root

    A bookable time range with a price. Instances are snapshots: the
    persisted row is only ever changed through a guarded transition in
    the store, never by saving a mutated entity.

    Key invariants:
    - time_range.start < time_range.end
    - reserving_party is set exactly when state is PENDING or CONFIRMED
    - reserved_at is set only while PENDING
    """

    time_range: TimeRange
    price: Money
    external_price_ref: str
    state: SlotState = SlotState.AVAILABLE
    reserving_party: Party | None = None
    reserved_at: datetime | None = None
    confirmed_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self):
        if self.state.is_reserved and self.reserving_party is None:
            raise ValueError(f"Slot in state {self.state.value} must have a reserving party")
        if self.state is SlotState.AVAILABLE and self.reserving_party is not None:
            raise ValueError("Available slot cannot have a reserving party")

    def is_owned_by(self, caller: Party | None) -> bool:
        return (
            caller is not None
            and self.reserving_party is not None
            and self.reserving_party.id == caller.id
        )

    def reservation_age(self, now: datetime):
        if self.reserved_at is None:
            return None
        return now - self.reserved_at

    def rejection_for(self, caller: Party | None, action: str) -> DomainError:
        """
        Explain why ``action`` cannot be applied to this slot right now

        Ownership is checked before state: someone else's reservation is
        Forbidden whatever its state, anything else is a Conflict naming
        the actual state.
        """
        if self.reserving_party is not None and caller is not None and not self.is_owned_by(caller):
            return Forbidden("Not your booking.", slot_id=str(self.id))
        article = "an" if self.state.value[0] in "aeiou" else "a"
        return Conflict(
            f"Cannot {action} {article} {self.state.value} booking.",
            slot_id=str(self.id),
            state=self.state.value,
        )

    def redacted_for(self, caller: CallerIdentity | None) -> 'Slot':
        """
        Copy of this slot safe to show to ``caller``

        State, time and price stay visible to everyone. The reserving
        party is only shown to its owner and to admins.
        """
        if self.reserving_party is None:
            return self
        if caller is not None and (caller.is_admin or self.is_owned_by(caller)):
            return self
        return replace(self, reserving_party=REDACTED_PARTY)

    def __str__(self):
        return f"Slot({self.time_range}, {self.state.value})"

"""
Slot State Machine

Every legal move of a slot is one row in ``TRANSITIONS``. The engine
never compares state strings ad hoc: it looks up the rule for the named
transition and asks the store to apply it as a guarded update
("set state to target where state = source").
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from types import MappingProxyType

from apps.slots.domain.entities import Slot, SlotState
from shared.domain.exceptions import DomainError


class Transition(Enum):
    RESERVE = 'reserve'
    CANCEL = 'cancel'
    CONFIRM = 'confirm'
    FORCE_RELEASE = 'force_release'


@dataclass(frozen=True)
class TransitionRule:
    """
    One edge of the state machine

    ``idempotent_in`` lists the states in which a repeated request is
    reported as a no-op success instead of a conflict.
    """
    source: SlotState
    target: SlotState
    requires_owner: bool = False
    idempotent_in: frozenset = frozenset()

    def changes(self, now: datetime, party_id=None) -> dict:
        """Column values written together with the new state"""
        values = {'state': self.target.value, 'updated_at': now}
        if self.target is SlotState.PENDING:
            values.update(reserving_party_id=party_id, reserved_at=now)
        elif self.target is SlotState.AVAILABLE:
            values.update(reserving_party_id=None, reserved_at=None)
        elif self.target is SlotState.CONFIRMED:
            values.update(confirmed_at=now, reserved_at=None)
        return values


TRANSITIONS = MappingProxyType({
    Transition.RESERVE: TransitionRule(SlotState.AVAILABLE, SlotState.PENDING),
    Transition.CANCEL: TransitionRule(SlotState.PENDING, SlotState.AVAILABLE, requires_owner=True),
    Transition.CONFIRM: TransitionRule(
        SlotState.PENDING,
        SlotState.CONFIRMED,
        idempotent_in=frozenset({SlotState.CONFIRMED}),
    ),
    Transition.FORCE_RELEASE: TransitionRule(SlotState.PENDING, SlotState.AVAILABLE),
})


class Outcome(Enum):
    APPLIED = 'applied'
    NOOP = 'noop'
    REJECTED = 'rejected'


@dataclass(frozen=True)
class TransitionResult:
    """
    Result of one transition attempt

    Expected failures come back here as ``error`` rather than being raised.
    ``slot`` is the snapshot after the attempt, or None when the slot
    does not exist.
    """
    transition: Transition
    outcome: Outcome
    slot: Slot | None = None
    error: DomainError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is not Outcome.REJECTED

    @property
    def applied(self) -> bool:
        return self.outcome is Outcome.APPLIED

    @classmethod
    def rejected(cls, transition: Transition, error: DomainError, slot: Slot | None = None):
        return cls(transition, Outcome.REJECTED, slot, error)

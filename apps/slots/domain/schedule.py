"""
Day Schedule Aggregate

All slot creations for one calendar date go through this aggregate.
It is the consistency boundary that keeps slot ranges on a date from
overlapping.

Strategy:
1. Lock the date row (SELECT FOR UPDATE on SlotDay)
2. Load the existing ranges for the date into a DaySchedule
3. ensure_can_place() rejects overlapping ranges with Conflict
4. Create the slot inside the same transaction
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List
from uuid import UUID

from shared.domain.base import Aggregate
from shared.domain.exceptions import Conflict
from shared.domain.value_objects import TimeRange


@dataclass
class Placement:
    """A range already taken on the date, with the slot holding it"""
    slot_id: UUID
    time_range: TimeRange


@dataclass(kw_only=True)
class DaySchedule(Aggregate):
    """
    DaySchedule Aggregate Root

    Usage:
        schedule = store.schedule_for(day, lock=True)
        schedule.ensure_can_place(time_range)
        slot = store.create(...)
    """

    day: date
    placements: List[Placement] = field(default_factory=list)

    def overlapping(self, time_range: TimeRange) -> List[Placement]:
        """Placements whose half-open range intersects ``time_range``"""
        return [p for p in self.placements if p.time_range.overlaps_with(time_range)]

    def can_place(self, time_range: TimeRange) -> bool:
        return not self.overlapping(time_range)

    def ensure_can_place(self, time_range: TimeRange) -> None:
        """
        Raise Conflict if ``time_range`` overlaps an existing slot

        Ranges on another date never conflict. Touching ranges
        (10:00-11:00 next to 09:00-10:00) are allowed.
        """
        if time_range.day != self.day:
            raise ValueError(f"Range {time_range} does not belong to schedule for {self.day}")

        clashes = self.overlapping(time_range)
        if clashes:
            first = clashes[0]
            raise Conflict(
                f"Time slot overlaps with an existing slot ({first.time_range}).",
                slot_id=str(first.slot_id),
            )

    def place(self, slot_id: UUID, time_range: TimeRange) -> Placement:
        self.ensure_can_place(time_range)
        placement = Placement(slot_id=slot_id, time_range=time_range)
        self.placements.append(placement)
        return placement

    def __str__(self):
        return f"DaySchedule({self.day}, slots={len(self.placements)})"

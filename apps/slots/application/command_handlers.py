"""
Slot Command Handlers

Administrative use cases that change the slot inventory:
- CreateSlotCommand: add a slot after the overlap check
- DeleteSlotCommand: remove a slot that was never reserved
"""

from dataclasses import dataclass
import logging

from django.conf import settings

from apps.slots.domain.entities import Slot
from apps.slots.domain.events import SlotCreated, SlotDeleted
from apps.slots.pricing import resolve_price_ref
from apps.slots.repository import SlotStore
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import ValidationError
from shared.domain.value_objects import Money, TimeRange, parse_amount, parse_date, parse_time

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CreateSlotCommand:
    """Raw input as received from the caller; parsed by the handler"""
    date: object
    start_time: object
    end_time: object
    price: object


@dataclass
class DeleteSlotCommand:
    slot_id: object


# ===== Command Handlers =====

class CreateSlotHandler:
    """
    Handler for CreateSlot command

    1. Parse and validate date, times and price (ValidationError)
    2. Resolve the payment price reference (ValidationError if missing)
    3. Open a transaction and lock the date (DaySchedule)
    4. Reject overlapping ranges (Conflict)
    5. Create the slot and publish SlotCreated after commit
    """

    def __init__(self, store: SlotStore | None = None):
        self.store = store or SlotStore()

    def parse(self, command: CreateSlotCommand) -> tuple[TimeRange, Money]:
        missing = [
            name for name in ('date', 'start_time', 'end_time', 'price')
            if getattr(command, name) in (None, '')
        ]
        if missing:
            raise ValidationError("Missing required fields.", fields=missing)

        time_range = TimeRange(
            parse_date(command.date),
            parse_time(command.start_time),
            parse_time(command.end_time),
        )
        amount = parse_amount(command.price)
        if amount < 0:
            raise ValidationError("Price must be a non-negative number.")
        return time_range, Money(amount, getattr(settings, 'SLOT_CURRENCY', 'EUR'))

    def handle(self, command: CreateSlotCommand) -> Slot:
        """
        Returns: the created Slot

        Raises:
            ValidationError: malformed input or no price reference configured
            Conflict: the range overlaps an existing slot on the same date
        """
        time_range, price = self.parse(command)
        price_ref = resolve_price_ref(price.amount)

        logger.info(f"Creating slot {time_range} at {price}")

        with DjangoUnitOfWork() as uow:
            schedule = self.store.schedule_for(time_range.day, lock=True)
            schedule.ensure_can_place(time_range)

            slot = self.store.create(time_range, price, price_ref)
            slot.add_event(SlotCreated(
                aggregate_id=slot.id,
                slot_id=slot.id,
                time_range=time_range,
                price=price,
            ))
            uow.collect_events(slot)

        return slot


class DeleteSlotHandler:
    """
    Handler for DeleteSlot command

    Only AVAILABLE slots can be deleted; anything with a reservation
    raises Conflict and is left untouched.
    """

    def __init__(self, store: SlotStore | None = None):
        self.store = store or SlotStore()

    def handle(self, command: DeleteSlotCommand) -> Slot:
        with DjangoUnitOfWork() as uow:
            slot = self.store.delete(command.slot_id)
            uow.add_event(SlotDeleted(
                aggregate_id=slot.id,
                slot_id=slot.id,
                time_range=slot.time_range,
            ))
        return slot

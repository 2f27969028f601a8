"""
Common Value Objects

- Money: Monetary amount with currency
- TimeRange: Half-open [start, end) time-of-day range on one calendar date
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation

from shared.domain.base import ValueObject
from shared.domain.exceptions import ValidationError

SUPPORTED_CURRENCIES = ('EUR', 'USD', 'GBP', 'KZT')

# Prices are stored as DECIMAL(10, 2)
MAX_AMOUNT = Decimal('100000000')


@dataclass(frozen=True)
class Money(ValueObject):
    """
    Money value object

    Immutable, never negative, always quantized to cents.
    """
    amount: Decimal
    currency: str = 'EUR'

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', parse_amount(self.amount))
        if self.amount < 0:
            raise ValidationError("Amount cannot be negative")
        if self.amount >= MAX_AMOUNT:
            raise ValidationError(f"Amount must be below {MAX_AMOUNT}")
        if self.currency not in SUPPORTED_CURRENCIES:
            raise ValidationError(f"Unsupported currency: {self.currency}")
        object.__setattr__(self, 'amount', self.amount.quantize(Decimal('0.01')))

    def __add__(self, other: 'Money') -> 'Money':
        if not isinstance(other, Money):
            raise TypeError("Can only add Money to Money")
        if self.currency != other.currency:
            raise ValueError(f"Cannot add different currencies: {self.currency} and {other.currency}")
        return Money(self.amount + other.amount, self.currency)

    def __str__(self):
        return f"{self.amount:,.2f} {self.currency}"

    def __repr__(self):
        return f"Money({self.amount}, '{self.currency}')"


@dataclass(frozen=True)
class TimeRange(ValueObject):
    """
    Time range value object

    Represents [start, end) on a single calendar date. Zero-length and
    inverted ranges are rejected on construction.
    """
    day: date
    start: time
    end: time

    def __post_init__(self):
        if self.start >= self.end:
            raise ValidationError(
                f"Start time ({self.start:%H:%M}) must be before end time ({self.end:%H:%M})"
            )

    def overlaps_with(self, other: 'TimeRange') -> bool:
        """
        Check if this range overlaps with another

        Ranges on different dates never overlap. End is exclusive, so
        touching ranges do not overlap.

        Examples:
            - 09:00-10:00 overlaps with 09:30-10:30 -> True
            - 09:00-10:00 overlaps with 10:00-11:00 -> False (adjacent)
        """
        if not isinstance(other, TimeRange):
            raise TypeError("Can only check overlap with another TimeRange")
        if self.day != other.day:
            return False

        # Overlap formula: start1 < end2 AND end1 > start2
        return self.start < other.end and self.end > other.start

    @property
    def minutes(self) -> int:
        """Length of the range in minutes"""
        return int((
            datetime.combine(self.day, self.end) - datetime.combine(self.day, self.start)
        ).total_seconds() // 60)

    def __str__(self):
        return f"{self.day.isoformat()} {self.start:%H:%M}-{self.end:%H:%M}"

    def __repr__(self):
        return f"TimeRange({self.day}, {self.start:%H:%M}, {self.end:%H:%M})"


def parse_date(value) -> date:
    """Parse a YYYY-MM-DD calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value), '%Y-%m-%d').date()
    except (TypeError, ValueError):
        raise ValidationError("Invalid date format. Use YYYY-MM-DD.")


def parse_time(value) -> time:
    """Parse an HH:MM time of day. Seconds are not allowed."""
    if isinstance(value, time):
        if value.second or value.microsecond:
            raise ValidationError("Times must be whole minutes (HH:MM).")
        return value
    raw = str(value)
    if len(raw) != 5:
        raise ValidationError("Invalid time format. Use HH:MM.")
    try:
        return datetime.strptime(raw, '%H:%M').time()
    except ValueError:
        raise ValidationError("Invalid time format. Use HH:MM.")


def parse_amount(value) -> Decimal:
    """Parse a decimal currency amount."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("Invalid or missing price.")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Invalid or missing price.")
    if not amount.is_finite():
        raise ValidationError("Invalid or missing price.")
    if amount >= MAX_AMOUNT:
        raise ValidationError(f"Price must be below {MAX_AMOUNT}.")
    return amount

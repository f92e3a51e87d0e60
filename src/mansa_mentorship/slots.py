"""
Availability slot rules.

Pure functions only: validation, default drafts, and expanding a slot set
onto calendar dates. Nothing here touches the network or the clock; the
caller passes `today`.
"""

from datetime import date, time, timedelta
from typing import Iterable, List

from .errors import INVALID_TIME_RANGE, PAST_DATE, ValidationException
from .models import AvailabilitySlot

DEFAULT_START = time(9, 0)
DEFAULT_END = time(10, 0)
DEFAULT_DAY_OF_WEEK = 1  # Monday


def day_of_week(day: date) -> int:
    """Sunday-based weekday index for `day`."""
    return (day.weekday() + 1) % 7


def slot_errors(slot: AvailabilitySlot, today: date) -> List[ValidationException]:
    """Every rule `slot` breaks; empty when valid."""
    errors = []
    if slot.start_time >= slot.end_time:
        errors.append(
            ValidationException(
                "End time must be after start time",
                code=INVALID_TIME_RANGE,
                details={
                    "start_time": slot.start_time.strftime("%H:%M"),
                    "end_time": slot.end_time.strftime("%H:%M"),
                },
            )
        )
    if not slot.is_recurring and slot.specific_date is not None and slot.specific_date < today:
        errors.append(
            ValidationException(
                "Date cannot be in the past",
                code=PAST_DATE,
                details={"specific_date": slot.specific_date.isoformat()},
            )
        )
    return errors


def validate_slot(slot: AvailabilitySlot, today: date) -> None:
    """Raise the first broken rule for `slot`, if any."""
    errors = slot_errors(slot, today)
    if errors:
        raise errors[0]


def is_valid_slot(slot: AvailabilitySlot, today: date) -> bool:
    return not slot_errors(slot, today)


def draft_recurring_slot() -> AvailabilitySlot:
    return AvailabilitySlot(
        is_recurring=True,
        day_of_week=DEFAULT_DAY_OF_WEEK,
        start_time=DEFAULT_START,
        end_time=DEFAULT_END,
    )


def draft_specific_slot(today: date) -> AvailabilitySlot:
    return AvailabilitySlot(
        is_recurring=False,
        specific_date=today + timedelta(days=1),
        start_time=DEFAULT_START,
        end_time=DEFAULT_END,
    )


def slots_for_date(slots: Iterable[AvailabilitySlot], day: date) -> List[AvailabilitySlot]:
    """Slots that apply on `day`, earliest first."""
    weekday = day_of_week(day)
    matching = [
        slot
        for slot in slots
        if (slot.is_recurring and slot.day_of_week == weekday)
        or (not slot.is_recurring and slot.specific_date == day)
    ]
    return sorted(matching, key=lambda s: (s.start_time, s.end_time))


def week_dates(anchor: date, weeks: int = 4) -> List[List[date]]:
    """`weeks` consecutive Sunday-started weeks, starting with `anchor`'s week."""
    week_start = anchor - timedelta(days=day_of_week(anchor))
    return [
        [week_start + timedelta(weeks=w, days=d) for d in range(7)] for w in range(weeks)
    ]

"""
Read-only projections over booking lists.

Filtering, search, ordering, pagination and export all happen after the
list has been fetched; none of this talks to the API.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import io
from typing import Generic, Iterable, List, Optional, TypeVar, Union

from .models import (
    CANCELLED_STATUSES,
    Actor,
    BookingStatus,
    MentorshipBooking,
)

T = TypeVar("T")

CSV_HEADERS = ["ID", "Mentor", "Mentee", "Date", "Topic", "Status", "Rating"]


class BookingFilter(str, Enum):
    """Status filters offered by the booking lists."""

    ALL = "all"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED_BY_MENTEE = "cancelled_by_mentee"
    CANCELLED_BY_MENTOR = "cancelled_by_mentor"
    UPCOMING = "upcoming"
    CANCELLED = "cancelled"


def matches_filter(
    booking: MentorshipBooking,
    status_filter: Union[BookingFilter, str],
    now: datetime,
) -> bool:
    status_filter = BookingFilter(status_filter)
    if status_filter == BookingFilter.ALL:
        return True
    if status_filter == BookingFilter.UPCOMING:
        return booking.is_upcoming(now)
    if status_filter == BookingFilter.CANCELLED:
        return booking.status in CANCELLED_STATUSES
    return booking.status == BookingStatus(status_filter.value)


def filter_bookings(
    bookings: Iterable[MentorshipBooking],
    status_filter: Union[BookingFilter, str],
    now: datetime,
) -> List[MentorshipBooking]:
    return [b for b in bookings if matches_filter(b, status_filter, now)]


def search_bookings(
    bookings: Iterable[MentorshipBooking],
    query: str,
    viewer: Optional[Actor] = None,
) -> List[MentorshipBooking]:
    """
    Case-insensitive substring search.

    A mentor or mentee searches the counterpart's name and the topic; an
    admin view (`viewer=None`) searches both names and the topic.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(bookings)

    def haystack(booking: MentorshipBooking) -> List[str]:
        if viewer is None:
            names = [booking.mentor.name, booking.mentee.name]
        else:
            names = [booking.counterpart(Actor(viewer)).name]
        return [*names, booking.topic]

    return [
        b for b in bookings if any(needle in (text or "").lower() for text in haystack(b))
    ]


def sort_bookings(bookings: Iterable[MentorshipBooking]) -> List[MentorshipBooking]:
    """Newest scheduled time first."""
    return sorted(bookings, key=lambda b: b.scheduled_at, reverse=True)


@dataclass
class Page(Generic[T]):
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    per_page: int = 10

    @property
    def pages(self) -> int:
        return max(1, -(-self.total // self.per_page))

    @property
    def has_next(self) -> bool:
        return self.page < self.pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


def paginate(items: List[T], page: int = 1, per_page: int = 10) -> Page[T]:
    if per_page < 1:
        raise ValueError("per_page must be at least 1")
    page = max(1, page)
    start = (page - 1) * per_page
    return Page(items=items[start : start + per_page], total=len(items), page=page, per_page=per_page)


def build_view(
    bookings: Iterable[MentorshipBooking],
    *,
    now: datetime,
    status_filter: Union[BookingFilter, str] = BookingFilter.ALL,
    search: str = "",
    viewer: Optional[Actor] = None,
    page: int = 1,
    per_page: int = 10,
) -> Page[MentorshipBooking]:
    """Filter, search, sort and paginate in one go."""
    filtered = filter_bookings(bookings, status_filter, now)
    filtered = search_bookings(filtered, search, viewer)
    return paginate(sort_bookings(filtered), page, per_page)


def status_counts(bookings: Iterable[MentorshipBooking]) -> dict[str, int]:
    counts = {status.value: 0 for status in BookingStatus}
    for booking in bookings:
        counts[booking.status.value] += 1
    return counts


def upcoming_count(bookings: Iterable[MentorshipBooking], now: datetime) -> int:
    return sum(1 for b in bookings if b.is_upcoming(now))


def bookings_to_csv(bookings: Iterable[MentorshipBooking]) -> str:
    """CSV export of a booking list, dates in UTC."""
    output = io.StringIO(newline="")
    writer = csv.writer(output)
    writer.writerow(CSV_HEADERS)
    for booking in bookings:
        writer.writerow(
            [
                booking.id,
                booking.mentor.name,
                booking.mentee.name,
                booking.scheduled_at.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M"),
                booking.topic,
                booking.status.value,
                booking.rating if booking.rating is not None else "N/A",
            ]
        )
    return output.getvalue()

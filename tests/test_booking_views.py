import csv
from datetime import datetime, timezone
import io

import pytest
from fakes import NOW, booking_payload
from mansa_mentorship.booking_views import (
    CSV_HEADERS,
    BookingFilter,
    bookings_to_csv,
    build_view,
    filter_bookings,
    paginate,
    search_bookings,
    sort_bookings,
    status_counts,
    upcoming_count,
)
from mansa_mentorship.models import Actor, MentorshipBooking


def _bookings():
    rows = [
        booking_payload(id=1, status="pending", scheduled_at="2026-03-02T09:00:00Z", topic="Resume review"),
        booking_payload(
            id=2,
            status="confirmed",
            scheduled_at="2026-03-08T09:00:00Z",
            mentee_name="Kofi Mensah",
            topic="System design",
        ),
        booking_payload(id=3, status="completed", scheduled_at="2026-02-10T09:00:00Z", rating=5),
        booking_payload(id=4, status="cancelled_by_mentee", scheduled_at="2026-03-09T09:00:00Z"),
        booking_payload(id=5, status="cancelled_by_mentor", scheduled_at="2026-02-01T09:00:00Z"),
        booking_payload(id=6, status="confirmed", scheduled_at="2026-02-25T09:00:00Z"),
    ]
    return [MentorshipBooking.model_validate(row) for row in rows]


def _ids(bookings):
    return [b.id for b in bookings]


def test_cancelled_filter_covers_both_sides():
    assert _ids(filter_bookings(_bookings(), BookingFilter.CANCELLED, NOW)) == ["4", "5"]


def test_upcoming_is_active_and_in_future():
    assert _ids(filter_bookings(_bookings(), "upcoming", NOW)) == ["1", "2"]
    assert upcoming_count(_bookings(), NOW) == 2


def test_exact_status_filter():
    assert _ids(filter_bookings(_bookings(), "confirmed", NOW)) == ["2", "6"]
    assert len(filter_bookings(_bookings(), "all", NOW)) == 6


def test_unknown_filter_is_rejected():
    with pytest.raises(ValueError):
        filter_bookings(_bookings(), "archived", NOW)


def test_search_matches_counterpart_and_topic():
    bookings = _bookings()
    assert _ids(search_bookings(bookings, "kofi", Actor.MENTOR)) == ["2"]
    assert _ids(search_bookings(bookings, "RESUME", Actor.MENTOR)) == ["1"]
    # A mentee sees the mentor as counterpart, not themselves.
    assert search_bookings(bookings, "kofi", Actor.MENTEE) == []
    assert len(search_bookings(bookings, "ada", Actor.MENTEE)) == 6
    assert len(search_bookings(bookings, "  ", Actor.MENTEE)) == 6


def test_admin_search_covers_both_names():
    bookings = _bookings()
    assert _ids(search_bookings(bookings, "kofi")) == ["2"]
    assert len(search_bookings(bookings, "ada")) == 6


def test_sort_newest_first():
    assert _ids(sort_bookings(_bookings())) == ["4", "2", "1", "6", "3", "5"]


def test_paginate():
    page = paginate(list(range(23)), page=3, per_page=10)
    assert page.items == [20, 21, 22]
    assert page.pages == 3
    assert page.has_prev
    assert not page.has_next

    empty = paginate([], page=0)
    assert empty.page == 1
    assert empty.pages == 1
    assert not empty.has_next

    with pytest.raises(ValueError):
        paginate([1], per_page=0)


def test_build_view_combines_steps():
    page = build_view(
        _bookings(),
        now=NOW,
        status_filter="cancelled",
        search="",
        viewer=Actor.MENTOR,
        page=1,
        per_page=1,
    )
    assert _ids(page.items) == ["4"]
    assert page.total == 2
    assert page.has_next


def test_status_counts_include_every_status():
    counts = status_counts(_bookings())
    assert counts == {
        "pending": 1,
        "confirmed": 2,
        "completed": 1,
        "cancelled_by_mentee": 1,
        "cancelled_by_mentor": 1,
    }


def test_csv_export():
    bookings = [
        MentorshipBooking.model_validate(
            booking_payload(id=3, status="completed", rating=5, scheduled_at="2026-02-10T09:30:00+01:00")
        ),
        MentorshipBooking.model_validate(booking_payload(id=1, topic="Pay, equity & offers")),
    ]

    rows = list(csv.reader(io.StringIO(bookings_to_csv(bookings))))

    assert rows[0] == CSV_HEADERS
    assert rows[1] == ["3", "Ada Mentor", "Sam Mentee", "2026-02-10 08:30", "Career planning", "completed", "5"]
    assert rows[2][4] == "Pay, equity & offers"
    assert rows[2][6] == "N/A"


def test_scheduled_times_compare_in_utc():
    late = MentorshipBooking.model_validate(
        booking_payload(status="confirmed", scheduled_at="2026-03-01T13:30:00+02:00")
    )
    # 11:30 UTC is before NOW (12:00 UTC).
    assert not late.is_upcoming(NOW)
    assert late.is_upcoming(datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc))

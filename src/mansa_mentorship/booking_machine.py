# src/mansa_mentorship/booking_machine.py
"""
Booking lifecycle.

The transition table below is the whole state machine: each row says which
side of the booking may take which action from which status, and where it
leads. `completed` is only ever set by the server.

BookingWorkflow performs the actions against the API. Every mutation sends
the booking_version the caller last read; if the server answers 409 the
change is not applied, the list is re-fetched, and ConflictException is
raised so the caller can tell the user to refresh. After a successful write
the list is re-fetched too; if only that re-fetch fails the write still
counts, and the action returns None instead of the fresh booking.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Union

from pydantic import HttpUrl, TypeAdapter, ValidationError

from .base import BaseService
from .booking_views import BookingFilter, Page, build_view
from .client import MentorshipClient
from .config import Settings
from .errors import (
    MISSING_FIELD,
    ConflictException,
    ForbiddenException,
    InvalidTransitionException,
    MentorshipException,
    ValidationException,
)
from .models import Actor, BookingStatus, MentorProfile, MentorshipBooking, as_utc
from .session import Session, utc_now

BOOKING_CONFLICT_MESSAGE = "This booking was modified elsewhere. Please refresh and try again."
MAX_TOPIC_LENGTH = 500
PROCESSING = "booking_action"

_URL_ADAPTER = TypeAdapter(HttpUrl)


class BookingAction(str, Enum):
    CONFIRM = "confirm"
    DECLINE = "decline"
    CANCEL = "cancel"
    ADD_MEETING_LINK = "add_meeting_link"
    ADD_FEEDBACK = "add_feedback"


@dataclass(frozen=True)
class Transition:
    source: BookingStatus
    action: BookingAction
    actor: Actor
    target: BookingStatus


TRANSITIONS: tuple[Transition, ...] = (
    Transition(BookingStatus.PENDING, BookingAction.CONFIRM, Actor.MENTOR, BookingStatus.CONFIRMED),
    Transition(
        BookingStatus.PENDING, BookingAction.DECLINE, Actor.MENTOR, BookingStatus.CANCELLED_BY_MENTOR
    ),
    Transition(
        BookingStatus.PENDING, BookingAction.CANCEL, Actor.MENTEE, BookingStatus.CANCELLED_BY_MENTEE
    ),
    Transition(
        BookingStatus.CONFIRMED, BookingAction.CANCEL, Actor.MENTOR, BookingStatus.CANCELLED_BY_MENTOR
    ),
    Transition(
        BookingStatus.CONFIRMED, BookingAction.CANCEL, Actor.MENTEE, BookingStatus.CANCELLED_BY_MENTEE
    ),
    Transition(
        BookingStatus.CONFIRMED,
        BookingAction.ADD_MEETING_LINK,
        Actor.MENTOR,
        BookingStatus.CONFIRMED,
    ),
    Transition(
        BookingStatus.COMPLETED, BookingAction.ADD_FEEDBACK, Actor.MENTEE, BookingStatus.COMPLETED
    ),
)

_TABLE: Dict[tuple[BookingStatus, BookingAction, Actor], BookingStatus] = {
    (t.source, t.action, t.actor): t.target for t in TRANSITIONS
}


def can_transition(
    status: Union[BookingStatus, str],
    action: Union[BookingAction, str],
    actor: Union[Actor, str],
) -> bool:
    return (BookingStatus(status), BookingAction(action), Actor(actor)) in _TABLE


def target_status(
    status: Union[BookingStatus, str],
    action: Union[BookingAction, str],
    actor: Union[Actor, str],
) -> BookingStatus:
    key = (BookingStatus(status), BookingAction(action), Actor(actor))
    if key not in _TABLE:
        raise InvalidTransitionException(
            f"A {key[2].value} cannot {key[1].value.replace('_', ' ')} a {key[0].value} booking",
            details={"status": key[0].value, "action": key[1].value, "actor": key[2].value},
        )
    return _TABLE[key]


def allowed_actions(booking: MentorshipBooking, actor: Union[Actor, str]) -> List[BookingAction]:
    """Actions `actor` may take on `booking` right now."""
    actions = [
        t.action for t in TRANSITIONS if t.source == booking.status and t.actor == Actor(actor)
    ]
    if booking.rating is not None and BookingAction.ADD_FEEDBACK in actions:
        actions.remove(BookingAction.ADD_FEEDBACK)
    return actions


def validate_meeting_link(link: Optional[str]) -> str:
    link = (link or "").strip()
    if not link:
        raise ValidationException("Meeting link is required", code=MISSING_FIELD)
    try:
        _URL_ADAPTER.validate_python(link)
    except ValidationError as exc:
        raise ValidationException(
            "Meeting link must be a valid URL", code="INVALID_URL", details={"meeting_link": link}
        ) from exc
    return link


def validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
        raise ValidationException(
            "Rating must be a whole number from 1 to 5",
            code="INVALID_RATING",
            details={"rating": rating},
        )
    return rating


def check_transition(
    booking: MentorshipBooking,
    action: Union[BookingAction, str],
    actor: Union[Actor, str],
    *,
    meeting_link: Optional[str] = None,
    rating: Optional[int] = None,
) -> BookingStatus:
    """
    Check the table row and its precondition; returns the target status.

    Raises:
        InvalidTransitionException: no row allows this
        ValidationException: the row's precondition is not met
    """
    action = BookingAction(action)
    target = target_status(booking.status, action, actor)
    if action == BookingAction.ADD_MEETING_LINK:
        validate_meeting_link(meeting_link)
    elif action == BookingAction.ADD_FEEDBACK:
        if booking.rating is not None:
            raise InvalidTransitionException(
                "Feedback has already been submitted for this booking",
                details={"booking_id": booking.id},
            )
        validate_rating(rating)
    return target


def validate_booking_request(
    mentor: MentorProfile, scheduled_at: datetime, topic: str, now: datetime
) -> None:
    errors: Dict[str, str] = {}
    if not mentor.is_approved or not mentor.is_accepting_requests:
        errors["mentor"] = "This mentor is not accepting booking requests"
    if not (topic or "").strip():
        errors["topic"] = "Please provide a session topic"
    elif len(topic) > MAX_TOPIC_LENGTH:
        errors["topic"] = f"Topic must be at most {MAX_TOPIC_LENGTH} characters"
    if as_utc(scheduled_at) <= as_utc(now):
        errors["scheduled_at"] = "Session time must be in the future"
    if errors:
        raise ValidationException(
            "Please fix the errors in your booking request",
            code="INVALID_BOOKING_REQUEST",
            details={"errors": errors},
        )


class BookingWorkflow(BaseService):
    """Lists bookings for one side of the relationship and acts on them."""

    def __init__(
        self,
        client: MentorshipClient,
        session: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, session, settings)
        self.clock = clock
        self.bookings: Dict[Actor, List[MentorshipBooking]] = {}

    def login_redirect_path(self) -> str:
        return "/community/mentorship/bookings"

    def _require_capability(self, actor: Actor) -> None:
        if not self.session.has_capability(actor):
            raise ForbiddenException(
                f"You are not signed in as a {actor.value}",
                redirect_to=self.settings.safe_default_path,
            )

    @BaseService.measure_operation("fetch_bookings")
    async def fetch(self, role: Union[Actor, str]) -> List[MentorshipBooking]:
        """Re-fetch `role`'s bookings from the server."""
        role = Actor(role)
        self._require_session()
        self._require_capability(role)
        bookings = await self._run(self.client.list_bookings(role))
        self.bookings[role] = bookings
        return bookings

    async def list_bookings(
        self,
        role: Union[Actor, str],
        status_filter: Union[BookingFilter, str] = BookingFilter.ALL,
        search: str = "",
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> Page[MentorshipBooking]:
        """Fetch, then filter/search/sort/paginate locally."""
        bookings = await self.fetch(role)
        return build_view(
            bookings,
            now=self.clock(),
            status_filter=status_filter,
            search=search,
            viewer=Actor(role),
            page=page,
            per_page=per_page or self.settings.page_size,
        )

    async def _mutate(
        self,
        booking: MentorshipBooking,
        action: BookingAction,
        actor: Actor,
        request: Callable,
        **payload,
    ) -> Optional[MentorshipBooking]:
        async with self.in_flight.guard(PROCESSING):
            self._require_session()
            self._require_capability(actor)
            check_transition(booking, action, actor, **payload)

            try:
                await self._run(request())
            except ConflictException as exc:
                self.logger.info(
                    "booking_version_conflict: booking=%s version=%s action=%s",
                    booking.id,
                    booking.booking_version,
                    action.value,
                )
                await self._refresh(actor)
                raise ConflictException(
                    BOOKING_CONFLICT_MESSAGE,
                    current_version=exc.current_version,
                    details={"booking_id": booking.id, "action": action.value},
                ) from exc

            self.logger.info("booking_%s: %s by %s", action.value, booking.id, actor.value)
            refreshed = await self._refresh(actor)
            return next((b for b in refreshed if b.id == booking.id), None)

    async def _refresh(self, actor: Actor) -> List[MentorshipBooking]:
        """
        Re-fetch after a write. The write has already been decided on the
        server, so a failed re-fetch is logged and never replaces its outcome.
        """
        try:
            return await self.fetch(actor)
        except MentorshipException as exc:
            self.logger.warning("booking_refresh_failed: %s %s", actor.value, exc.message)
            return []

    @BaseService.measure_operation("confirm_booking")
    async def confirm(self, booking: MentorshipBooking) -> Optional[MentorshipBooking]:
        return await self._mutate(
            booking,
            BookingAction.CONFIRM,
            Actor.MENTOR,
            lambda: self.client.update_booking_status(
                booking.id, BookingStatus.CONFIRMED, booking.booking_version
            ),
        )

    @BaseService.measure_operation("decline_booking")
    async def decline(
        self, booking: MentorshipBooking, reason: Optional[str] = None
    ) -> Optional[MentorshipBooking]:
        return await self._mutate(
            booking,
            BookingAction.DECLINE,
            Actor.MENTOR,
            lambda: self.client.update_booking_status(
                booking.id,
                BookingStatus.CANCELLED_BY_MENTOR,
                booking.booking_version,
                cancellation_reason=(reason or "").strip() or None,
            ),
        )

    @BaseService.measure_operation("cancel_booking")
    async def cancel(
        self,
        booking: MentorshipBooking,
        actor: Union[Actor, str],
        reason: Optional[str] = None,
    ) -> Optional[MentorshipBooking]:
        """Cancel as `actor`; only a mentor's reason is sent."""
        actor = Actor(actor)
        send_reason = ((reason or "").strip() or None) if actor == Actor.MENTOR else None
        return await self._mutate(
            booking,
            BookingAction.CANCEL,
            actor,
            lambda: self.client.update_booking_status(
                booking.id,
                target_status(booking.status, BookingAction.CANCEL, actor),
                booking.booking_version,
                cancellation_reason=send_reason,
            ),
        )

    @BaseService.measure_operation("add_meeting_link")
    async def add_meeting_link(
        self, booking: MentorshipBooking, meeting_link: str
    ) -> Optional[MentorshipBooking]:
        link = (meeting_link or "").strip()
        return await self._mutate(
            booking,
            BookingAction.ADD_MEETING_LINK,
            Actor.MENTOR,
            lambda: self.client.add_meeting_link(booking.id, link, booking.booking_version),
            meeting_link=link,
        )

    @BaseService.measure_operation("add_feedback")
    async def add_feedback(
        self,
        booking: MentorshipBooking,
        rating: int,
        feedback: Optional[str] = None,
    ) -> Optional[MentorshipBooking]:
        return await self._mutate(
            booking,
            BookingAction.ADD_FEEDBACK,
            Actor.MENTEE,
            lambda: self.client.add_feedback(
                booking.id,
                rating,
                booking.booking_version,
                feedback=(feedback or "").strip() or None,
            ),
            rating=rating,
        )

    @BaseService.measure_operation("request_booking")
    async def request_booking(
        self,
        mentor: MentorProfile,
        scheduled_at: datetime,
        topic: str,
        *,
        ends_at: Optional[datetime] = None,
        description: Optional[str] = None,
    ) -> MentorshipBooking:
        """Ask `mentor` for a session; new bookings start as pending."""
        async with self.in_flight.guard(PROCESSING):
            self._require_session()
            self._require_capability(Actor.MENTEE)
            validate_booking_request(mentor, scheduled_at, topic, self.clock())
            booking = await self._run(
                self.client.create_booking(
                    mentor.id,
                    scheduled_at,
                    topic.strip(),
                    ends_at=ends_at,
                    description=(description or "").strip() or None,
                )
            )
            self.logger.info("booking_requested: %s with mentor %s", booking.id, mentor.id)
            await self._refresh(Actor.MENTEE)
            return booking

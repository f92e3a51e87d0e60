"""
Admin moderation of mentor applications.

The role check here only decides what the admin screens show; the API
enforces authorization itself and answers 403 to non-admins.

Rejection has no state of its own on the server: it notifies the applicant
and the profile stays unapproved, so it keeps appearing under "pending".
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Union

from .base import BaseService
from .booking_views import (
    BookingFilter,
    Page,
    bookings_to_csv,
    build_view,
    filter_bookings,
    search_bookings,
    sort_bookings,
)
from .client import MentorshipClient
from .config import Settings
from .errors import ForbiddenException, MentorshipException
from .models import MentorProfile, MentorshipBooking
from .session import Session, utc_now

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class MentorFilter(str, Enum):
    ALL = "all"
    PENDING = "pending"
    APPROVED = "approved"
    INACTIVE = "inactive"


def require_admin(session: Session, redirect_to: str = "/community/mentorship") -> None:
    """Raise ForbiddenException unless the session is an admin or superadmin."""
    if not session.is_admin:
        raise ForbiddenException(
            "Admin access required",
            redirect_to=redirect_to,
            details={"role": session.role.value},
        )


def filter_mentors(
    mentors: List[MentorProfile],
    status_filter: Union[MentorFilter, str] = MentorFilter.ALL,
    search: str = "",
) -> List[MentorProfile]:
    """Filter, search and order newest application first."""
    status_filter = MentorFilter(status_filter)
    if status_filter == MentorFilter.PENDING:
        mentors = [m for m in mentors if not m.is_approved]
    elif status_filter == MentorFilter.APPROVED:
        mentors = [m for m in mentors if m.is_approved]
    elif status_filter == MentorFilter.INACTIVE:
        mentors = [m for m in mentors if not m.is_accepting_requests]

    needle = (search or "").strip().lower()
    if needle:
        mentors = [
            m
            for m in mentors
            if any(
                needle in (value or "").lower()
                for value in (m.user.name, m.user.email, m.job_title, m.company)
            )
        ]
    return sorted(mentors, key=lambda m: m.created_at or _EPOCH, reverse=True)


class AdminModeration(BaseService):
    """Approve or reject mentor applications; browse all bookings."""

    def __init__(
        self,
        client: MentorshipClient,
        session: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, session, settings)
        self.clock = clock
        self.mentors: List[MentorProfile] = []
        self.bookings: List[MentorshipBooking] = []

    def login_redirect_path(self) -> str:
        return "/admin/mentorship/mentors"

    def _guard(self) -> None:
        self._require_session()
        require_admin(self.session, self.settings.safe_default_path)

    def _find(self, mentor_id: str) -> Optional[MentorProfile]:
        return next((m for m in self.mentors if m.id == str(mentor_id)), None)

    async def _refreshed(self, mentor_id: str) -> Optional[MentorProfile]:
        """Re-fetch after a decision; a failed re-fetch does not undo it."""
        try:
            await self.fetch()
        except MentorshipException as exc:
            self.logger.warning("mentor_applications_refresh_failed: %s", exc.message)
            return None
        return self._find(mentor_id)

    @BaseService.measure_operation("fetch_mentor_applications")
    async def fetch(self) -> List[MentorProfile]:
        self._guard()
        self.mentors = await self._run(self.client.list_mentor_applications())
        return self.mentors

    async def list_applications(
        self,
        status_filter: Union[MentorFilter, str] = MentorFilter.ALL,
        search: str = "",
    ) -> List[MentorProfile]:
        return filter_mentors(await self.fetch(), status_filter, search)

    @BaseService.measure_operation("approve_mentor")
    async def approve(self, mentor_id: str) -> Optional[MentorProfile]:
        async with self.in_flight.guard("moderation"):
            self._guard()
            await self._run(self.client.approve_mentor(mentor_id))
            self.logger.info("mentor_approved: %s by %s", mentor_id, self.session.user_id)
            return await self._refreshed(mentor_id)

    @BaseService.measure_operation("reject_mentor")
    async def reject(
        self, mentor_id: str, reason: Optional[str] = None
    ) -> Optional[MentorProfile]:
        """Notify the applicant of rejection; the profile stays unapproved."""
        async with self.in_flight.guard("moderation"):
            self._guard()
            await self._run(self.client.reject_mentor(mentor_id, (reason or "").strip() or None))
            self.logger.info("mentor_rejected: %s by %s", mentor_id, self.session.user_id)
            return await self._refreshed(mentor_id)

    @BaseService.measure_operation("fetch_all_bookings")
    async def list_bookings(
        self,
        status_filter: Union[BookingFilter, str] = BookingFilter.ALL,
        search: str = "",
        page: int = 1,
        per_page: Optional[int] = None,
    ) -> Page[MentorshipBooking]:
        self._guard()
        self.bookings = await self._run(self.client.list_all_bookings())
        return build_view(
            self.bookings,
            now=self.clock(),
            status_filter=status_filter,
            search=search,
            viewer=None,
            page=page,
            per_page=per_page or self.settings.page_size,
        )

    def export_bookings_csv(
        self,
        status_filter: Union[BookingFilter, str] = BookingFilter.ALL,
        search: str = "",
    ) -> str:
        """CSV of the last fetched bookings, narrowed like the list view."""
        narrowed = search_bookings(filter_bookings(self.bookings, status_filter, self.clock()), search)
        return bookings_to_csv(sort_bookings(narrowed))

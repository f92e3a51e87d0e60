"""HTTP client for the Mansa mentorship API."""

from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Iterable, Optional
from urllib.parse import quote, urlencode
from uuid import uuid4

import httpx

from .config import Settings
from .errors import (
    BackendException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
    UnauthorizedException,
)
from .models import (
    Actor,
    AvailabilitySlot,
    BookingStatus,
    ExpertiseCategory,
    MentorApplication,
    MentorProfile,
    MentorshipBooking,
    Review,
)
from .session import Session

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or fallback
    if isinstance(body, dict):
        for key in ("detail", "message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
            if isinstance(value, dict) and value.get("message"):
                return str(value["message"])
    return fallback


def _unwrap_list(data: Any) -> list[Any]:
    """Accept both bare lists and paginated `{"results": [...]}` envelopes."""
    if isinstance(data, dict) and "results" in data:
        return list(data.get("results") or [])
    if isinstance(data, list):
        return data
    return []


class MentorshipClient:
    """HTTP client for the mentorship backend API."""

    def __init__(
        self,
        settings: Settings,
        session: Session,
        http: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.session = session
        self.http = http or httpx.AsyncClient(
            base_url=settings.mentorship_url,
            timeout=httpx.Timeout(
                connect=settings.connect_timeout,
                read=settings.read_timeout,
                write=10.0,
                pool=10.0,
            ),
        )

    async def __aenter__(self) -> "MentorshipClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http.aclose()

    def login_url(self, next_path: Optional[str] = None) -> str:
        if not next_path:
            return self.settings.login_path
        return f"{self.settings.login_path}?{urlencode({'redirect': next_path}, safe='/')}"

    def unauthorized(self, next_path: Optional[str] = None) -> UnauthorizedException:
        return UnauthorizedException(redirect_to=self.login_url(next_path))

    def forbidden(self, message: Optional[str] = None) -> ForbiddenException:
        if message:
            return ForbiddenException(message, redirect_to=self.settings.safe_default_path)
        return ForbiddenException(redirect_to=self.settings.safe_default_path)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        authenticated: bool = True,
    ) -> httpx.Response:
        request_headers = {"X-Request-Id": str(uuid4())}
        if authenticated or self.session.is_authenticated:
            if not self.session.is_authenticated:
                raise self.unauthorized()
            request_headers.update(self.session.get_headers())
        if headers:
            request_headers.update(headers)

        try:
            response = await self.http.request(
                method,
                path,
                params=params,
                json=json,
                headers=request_headers,
            )
        except httpx.TimeoutException as exc:
            logger.warning("mentorship_api_timeout: %s %s", method, path)
            raise BackendException(
                f"The request to {path} timed out. Please try again."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("mentorship_api_connection_failed: %s %s: %s", method, path, exc)
            raise BackendException(f"Network error: {exc}") from exc

        if response.status_code == 401:
            raise self.unauthorized()
        if response.status_code == 403:
            raise self.forbidden(_error_message(response, ""))
        if response.status_code == 404:
            raise NotFoundException(_error_message(response, "Not found"), code="NOT_FOUND")
        if response.status_code == 409:
            current_version = response.headers.get("ETag")
            try:
                body = response.json()
            except ValueError:
                body = {}
            if isinstance(body, dict):
                detail = body.get("detail") if isinstance(body.get("detail"), dict) else body
                current_version = current_version or detail.get("current_version")
            raise ConflictException(current_version=current_version, details={"path": path})
        if response.status_code >= 400:
            message = _error_message(response, "Request failed")
            logger.info(
                "mentorship_api_error: %s %s -> %s", method, path, response.status_code
            )
            raise BackendException(message, status_code=response.status_code)
        return response

    async def call(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self.request(method, path, **kwargs)
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {"status_code": response.status_code, "text": response.text}

    # Availability

    async def list_availability(self) -> tuple[list[AvailabilitySlot], Optional[str]]:
        """Current mentor's slots and the availability version, if reported."""
        response = await self.request("GET", "/availability/")
        try:
            data = response.json()
        except ValueError as exc:
            logger.warning("mentorship_api_invalid_json: GET /availability/")
            raise BackendException(
                "Unexpected response from the server", status_code=response.status_code
            ) from exc
        slots = [AvailabilitySlot.model_validate(item) for item in _unwrap_list(data)]
        return slots, response.headers.get("ETag")

    async def delete_availability(self, slot_id: str) -> None:
        await self.call("DELETE", f"/availability/{quote(str(slot_id), safe='')}/")

    async def bulk_replace_availability(
        self,
        slots: Iterable[AvailabilitySlot],
        version: Optional[str] = None,
    ) -> Optional[str]:
        """Replace the whole slot set; returns the new version, if reported."""
        headers = {"If-Match": version} if version else None
        payload: dict[str, Any] = {"slots": [slot.to_payload() for slot in slots]}
        if version:
            payload["base_version"] = version
        response = await self.request(
            "POST", "/availability/bulk/", json=payload, headers=headers
        )
        return response.headers.get("ETag")

    async def clear_availability(self) -> int:
        data = await self.call("DELETE", "/availability/clear/")
        return int(data.get("count", 0)) if isinstance(data, dict) else 0

    # Bookings

    async def list_bookings(
        self,
        role: Actor,
        status: Optional[BookingStatus] = None,
    ) -> list[MentorshipBooking]:
        params: dict[str, Any] = {"role": Actor(role).value}
        if status:
            params["status"] = BookingStatus(status).value
        data = await self.call("GET", "/bookings/", params=params)
        return [MentorshipBooking.model_validate(item) for item in _unwrap_list(data)]

    async def create_booking(
        self,
        mentor_id: str,
        scheduled_at: datetime,
        topic: str,
        *,
        ends_at: Optional[datetime] = None,
        description: Optional[str] = None,
    ) -> MentorshipBooking:
        payload: dict[str, Any] = {
            "mentor_id": mentor_id,
            "scheduled_at": scheduled_at.isoformat(),
            "topic": topic,
        }
        if ends_at:
            payload["ends_at"] = ends_at.isoformat()
        if description:
            payload["description"] = description
        data = await self.call("POST", "/bookings/", json=payload)
        return MentorshipBooking.model_validate(data)

    async def update_booking_status(
        self,
        booking_id: str,
        status: BookingStatus,
        version: int,
        cancellation_reason: Optional[str] = None,
    ) -> dict:
        payload: dict[str, Any] = {"status": BookingStatus(status).value, "version": version}
        if cancellation_reason:
            payload["cancellation_reason"] = cancellation_reason
        return await self.call(
            "PATCH",
            f"/bookings/{quote(str(booking_id), safe='')}/update_status/",
            json=payload,
        )

    async def add_meeting_link(self, booking_id: str, meeting_link: str, version: int) -> dict:
        return await self.call(
            "PATCH",
            f"/bookings/{quote(str(booking_id), safe='')}/add_meeting_link/",
            json={"meeting_link": meeting_link, "version": version},
        )

    async def add_feedback(
        self,
        booking_id: str,
        rating: int,
        version: int,
        feedback: Optional[str] = None,
    ) -> dict:
        payload: dict[str, Any] = {"rating": rating, "version": version}
        if feedback:
            payload["feedback"] = feedback
        return await self.call(
            "POST",
            f"/bookings/{quote(str(booking_id), safe='')}/add_feedback/",
            json=payload,
        )

    # Mentors

    async def list_mentors(
        self,
        page: Optional[int] = None,
        expertise: Optional[str] = None,
    ) -> list[MentorProfile]:
        params: dict[str, Any] = {}
        if page:
            params["page"] = page
        if expertise:
            params["expertise"] = expertise
        data = await self.call("GET", "/mentors/", params=params or None, authenticated=False)
        return [MentorProfile.model_validate(item) for item in _unwrap_list(data)]

    async def get_mentor(self, mentor_id: str) -> MentorProfile:
        data = await self.call(
            "GET", f"/mentors/{quote(str(mentor_id), safe='')}/", authenticated=False
        )
        return MentorProfile.model_validate(data)

    async def create_mentor_profile(self, application: MentorApplication) -> MentorProfile:
        data = await self.call("POST", "/mentors/", json=application.to_payload())
        return MentorProfile.model_validate(data)

    async def update_mentor_profile(self, application: MentorApplication) -> MentorProfile:
        data = await self.call("PATCH", "/mentors/update_my_profile/", json=application.to_payload())
        return MentorProfile.model_validate(data)

    async def list_mentor_reviews(self, mentor_id: str) -> list[Review]:
        data = await self.call(
            "GET", f"/mentors/{quote(str(mentor_id), safe='')}/reviews/", authenticated=False
        )
        return [Review.model_validate(item) for item in _unwrap_list(data)]

    async def list_expertise_categories(self) -> list[ExpertiseCategory]:
        data = await self.call("GET", "/expertise/", authenticated=False)
        return [ExpertiseCategory.model_validate(item) for item in _unwrap_list(data)]

    # Admin

    async def list_mentor_applications(self) -> list[MentorProfile]:
        data = await self.call("GET", "/admin/mentors/")
        return [MentorProfile.model_validate(item) for item in _unwrap_list(data)]

    async def approve_mentor(self, mentor_id: str) -> dict:
        return await self.call(
            "POST", f"/admin/mentors/{quote(str(mentor_id), safe='')}/approve/"
        )

    async def reject_mentor(self, mentor_id: str, reason: Optional[str] = None) -> dict:
        payload = {"reason": reason} if reason else {}
        return await self.call(
            "POST",
            f"/admin/mentors/{quote(str(mentor_id), safe='')}/reject/",
            json=payload,
        )

    async def list_all_bookings(self) -> list[MentorshipBooking]:
        data = await self.call("GET", "/admin/bookings/")
        return [MentorshipBooking.model_validate(item) for item in _unwrap_list(data)]

# src/mansa_mentorship/models.py
"""
Typed models for mentorship payloads.

The API is loose about shapes (bare ids vs nested objects, two schedule
representations, string vs object expertise). These models accept every
observed shape and normalise it, so the rest of the package only ever sees
one representation.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


class BookingStatus(str, Enum):
    """Booking lifecycle statuses."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"  # Set by the server only
    CANCELLED_BY_MENTEE = "cancelled_by_mentee"
    CANCELLED_BY_MENTOR = "cancelled_by_mentor"


CANCELLED_STATUSES = frozenset(
    {BookingStatus.CANCELLED_BY_MENTEE, BookingStatus.CANCELLED_BY_MENTOR}
)
ACTIVE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class Role(str, Enum):
    """Account role. Mentor/mentee are capabilities, not roles."""

    USER = "user"
    ADMIN = "admin"
    SUPERADMIN = "superadmin"


class Actor(str, Enum):
    """Which side of a booking is acting."""

    MENTOR = "mentor"
    MENTEE = "mentee"


class SlotKind(str, Enum):
    RECURRING = "recurring"
    SPECIFIC = "specific"


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Party(BaseModel):
    """One side of a booking."""

    model_config = ConfigDict(extra="ignore")

    id: str
    name: str = ""
    email: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @model_validator(mode="before")
    @classmethod
    def join_name_parts(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            user = data.get("user") if isinstance(data.get("user"), dict) else data
            parts = [user.get("first_name") or "", user.get("last_name") or ""]
            joined = " ".join(p for p in parts if p).strip()
            if joined:
                data = {**data, "name": joined}
            if not data.get("email") and user.get("email"):
                data = {**data, "email": user["email"]}
        return data


class MentorshipBooking(BaseModel):
    """
    A scheduled session between one mentor and one mentee.

    The schedule is held as a UTC start (`scheduled_at`) and optional end
    (`ends_at`). Payloads that only carry `session_date` + `start_time`
    (+ `end_time`) are folded into that representation when parsed.
    """

    model_config = ConfigDict(extra="ignore", use_enum_values=False)

    id: str
    mentor: Party
    mentee: Party
    scheduled_at: datetime
    ends_at: Optional[datetime] = None
    topic: str = ""
    description: Optional[str] = None
    status: BookingStatus
    meeting_link: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    booking_version: int = 0
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def normalise_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)

        for side in ("mentor", "mentee"):
            if isinstance(data.get(side), dict):
                continue
            party = dict(data.get(f"{side}_details") or {})
            party_id = data.get(f"{side}_id", data.get(side))
            if party_id is not None:
                party["id"] = party_id
            party.setdefault("id", "")
            if data.get(f"{side}_name"):
                party["name"] = data[f"{side}_name"]
            data[side] = party

        if not data.get("scheduled_at") and data.get("session_date"):
            session_date = date.fromisoformat(str(data["session_date"]))
            start = time.fromisoformat(str(data.get("start_time") or "00:00"))
            data["scheduled_at"] = datetime.combine(session_date, start, tzinfo=timezone.utc)
            if data.get("end_time") and not data.get("ends_at"):
                end = time.fromisoformat(str(data["end_time"]))
                data["ends_at"] = datetime.combine(session_date, end, tzinfo=timezone.utc)

        if data.get("booking_version") is None:
            data["booking_version"] = data.get("version") or 0
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("scheduled_at", "ends_at", "created_at", "updated_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return as_utc(v)

    @property
    def is_cancelled(self) -> bool:
        return self.status in CANCELLED_STATUSES

    def is_upcoming(self, now: datetime) -> bool:
        """Pending or confirmed, and scheduled strictly after `now`."""
        return self.status in ACTIVE_STATUSES and self.scheduled_at > as_utc(now)

    def counterpart(self, actor: Actor) -> Party:
        """The other side of the booking from `actor`'s point of view."""
        return self.mentee if actor == Actor.MENTOR else self.mentor


class AvailabilitySlot(BaseModel):
    """
    A mentor-defined availability window.

    Recurring slots repeat weekly on `day_of_week` (0 = Sunday); the
    others apply to a single `specific_date`. Times travel as HH:MM.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: Optional[str] = None
    is_recurring: bool
    day_of_week: Optional[int] = Field(default=None, ge=0, le=6)
    specific_date: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("specific_date", "date")
    )
    start_time: time
    end_time: time

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @model_validator(mode="after")
    def check_kind_fields(self) -> "AvailabilitySlot":
        if self.is_recurring and self.day_of_week is None:
            raise ValueError("Recurring slots need a day_of_week")
        if not self.is_recurring and self.specific_date is None:
            raise ValueError("Specific-date slots need a specific_date")
        return self

    @field_serializer("start_time", "end_time")
    def serialize_time(self, v: time) -> str:
        return v.strftime("%H:%M")

    @property
    def kind(self) -> SlotKind:
        return SlotKind.RECURRING if self.is_recurring else SlotKind.SPECIFIC

    @property
    def is_persisted(self) -> bool:
        return self.id is not None

    def to_payload(self) -> dict[str, Any]:
        """Wire shape for create/bulk requests."""
        payload: dict[str, Any] = {
            "is_recurring": self.is_recurring,
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
        }
        if self.is_recurring:
            payload["day_of_week"] = self.day_of_week
        else:
            payload["specific_date"] = self.specific_date.isoformat() if self.specific_date else None
        if self.id is not None:
            payload["id"] = self.id
        return payload


class AvailabilitySet(BaseModel):
    """A mentor's slots as loaded, plus the version the server reported."""

    recurring: list[AvailabilitySlot] = Field(default_factory=list)
    specific: list[AvailabilitySlot] = Field(default_factory=list)
    version: Optional[str] = None


class Expertise(BaseModel):
    category: str
    subcategories: list[str] = Field(default_factory=list)


class MentorUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: str = ""
    email: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @model_validator(mode="before")
    @classmethod
    def join_name_parts(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            parts = [data.get("first_name") or "", data.get("last_name") or ""]
            data = {**data, "name": " ".join(p for p in parts if p).strip()}
        return data


class MentorProfile(BaseModel):
    """A mentor's profile as the directory and admin screens see it."""

    model_config = ConfigDict(extra="ignore")

    id: str
    user: MentorUser = Field(default_factory=MentorUser)
    bio: str = ""
    expertise: list[Expertise] = Field(default_factory=list)
    job_title: str = ""
    company: Optional[str] = None
    years_of_experience: Optional[int] = None
    timezone: str = "UTC"
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None
    is_approved: bool = False
    is_accepting_requests: bool = True
    rating: Optional[float] = None
    total_sessions: int = 0
    created_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def normalise_payload(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        if "user" not in data and (data.get("name") or data.get("email")):
            data["user"] = {"name": data.get("name") or "", "email": data.get("email") or ""}
        if not data.get("job_title"):
            data["job_title"] = data.get("jobtitle") or data.get("occupation") or ""
        expertise = data.get("expertise") or []
        data["expertise"] = [
            {"category": e} if isinstance(e, str) else e for e in expertise
        ]
        return data

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return as_utc(v)

    @property
    def categories(self) -> list[str]:
        return [e.category for e in self.expertise]


class MentorApplication(BaseModel):
    """What a user submits to become a mentor."""

    bio: str = ""
    expertise: list[str] = Field(default_factory=list)
    timezone: str = "UTC"
    job_title: str = ""
    company: Optional[str] = None
    years_of_experience: Optional[int] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None
    twitter_url: Optional[str] = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "bio": self.bio.strip(),
            "expertise": [{"category": e} for e in self.expertise],
            "timezone": self.timezone,
            "job_title": self.job_title.strip(),
            "years_of_experience": self.years_of_experience,
        }
        for key in ("company", "linkedin_url", "github_url", "twitter_url"):
            value = getattr(self, key)
            if value:
                payload[key] = value
        return payload


class ExpertiseCategory(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    name: str
    description: str = ""

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        return str(v)


class Review(BaseModel):
    """A mentee's rating of a completed session, as listed on a mentor."""

    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    booking_id: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("comment", "feedback")
    )
    created_at: Optional[datetime] = None

    @field_validator("id", "booking_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return as_utc(v)

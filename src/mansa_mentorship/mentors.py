"""Mentee-facing mentor directory, reviews, and the mentor profile form."""

from datetime import datetime, timezone
from typing import Dict, List, Optional

import pytz

from .base import BaseService
from .errors import (
    BIO_TOO_SHORT,
    MISSING_FIELD,
    NO_EXPERTISE,
    ForbiddenException,
    ValidationException,
)
from .models import Actor, ExpertiseCategory, MentorApplication, MentorProfile, Review

MIN_BIO_LENGTH = 50
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def application_errors(application: MentorApplication) -> Dict[str, str]:
    """Field -> message for everything wrong with `application`."""
    errors: Dict[str, str] = {}
    if len(application.bio.strip()) < MIN_BIO_LENGTH:
        errors["bio"] = f"Bio must be at least {MIN_BIO_LENGTH} characters"
    if not [e for e in application.expertise if e.strip()]:
        errors["expertise"] = "Please select at least one expertise area"
    if not application.job_title.strip():
        errors["job_title"] = "Job title is required"
    if application.years_of_experience is None:
        errors["years_of_experience"] = "Years of experience is required"
    elif application.years_of_experience < 0:
        errors["years_of_experience"] = "Years of experience cannot be negative"
    if application.timezone not in pytz.all_timezones_set:
        errors["timezone"] = "Please choose a valid timezone"
    return errors


def validate_application(application: MentorApplication) -> None:
    errors = application_errors(application)
    if not errors:
        return
    if set(errors) == {"bio"}:
        code = BIO_TOO_SHORT
    elif set(errors) == {"expertise"}:
        code = NO_EXPERTISE
    else:
        code = MISSING_FIELD
    raise ValidationException(
        "Please fix the errors in your application",
        code=code,
        details={"errors": errors},
    )


def is_listed(mentor: MentorProfile) -> bool:
    """Only approved mentors are ever shown to mentees."""
    return mentor.is_approved


def mentor_matches(mentor: MentorProfile, query: str) -> bool:
    needle = (query or "").strip().lower()
    if not needle:
        return True
    fields = [mentor.user.name, mentor.job_title, mentor.company or "", *mentor.categories]
    return any(needle in value.lower() for value in fields if value)


class MentorDirectory(BaseService):
    """Browse approved mentors and apply to become one."""

    def login_redirect_path(self) -> str:
        return "/community/mentorship/mentor/apply"

    @BaseService.measure_operation("browse_mentors")
    async def browse(
        self,
        expertise: Optional[str] = None,
        search: str = "",
        page: Optional[int] = None,
    ) -> List[MentorProfile]:
        mentors = await self._run(self.client.list_mentors(page=page, expertise=expertise))
        hidden = [m.id for m in mentors if not is_listed(m)]
        if hidden:
            self.logger.warning("directory_unapproved_mentors_hidden: %s", hidden)
        return [m for m in mentors if is_listed(m) and mentor_matches(m, search)]

    @BaseService.measure_operation("get_mentor")
    async def get(self, mentor_id: str) -> MentorProfile:
        return await self._run(self.client.get_mentor(mentor_id))

    @BaseService.measure_operation("list_expertise_categories")
    async def expertise_categories(self) -> List[ExpertiseCategory]:
        return await self._run(self.client.list_expertise_categories())

    @BaseService.measure_operation("submit_mentor_application")
    async def apply(self, application: MentorApplication) -> MentorProfile:
        """Validate locally, then submit. New profiles start unapproved."""
        async with self.in_flight.guard("submit_application"):
            self._require_session()
            validate_application(application)
            profile = await self._run(self.client.create_mentor_profile(application))
            self.logger.info("mentor_application_submitted: %s", profile.id)
            return profile

    @BaseService.measure_operation("update_mentor_profile")
    async def update_profile(self, application: MentorApplication) -> MentorProfile:
        """Edit the signed-in mentor's own profile; same rules as applying."""
        async with self.in_flight.guard("update_profile"):
            self._require_session()
            if not self.session.has_capability(Actor.MENTOR):
                raise ForbiddenException(
                    "Only mentors can edit a mentor profile",
                    redirect_to=self.settings.safe_default_path,
                )
            validate_application(application)
            profile = await self._run(self.client.update_mentor_profile(application))
            self.logger.info("mentor_profile_updated: %s", profile.id)
            return profile

    @BaseService.measure_operation("list_mentor_reviews")
    async def reviews(self, mentor_id: str) -> List[Review]:
        """Reviews left on a mentor's completed sessions, newest first."""
        reviews = await self._run(self.client.list_mentor_reviews(mentor_id))
        return sorted(reviews, key=lambda r: r.created_at or _EPOCH, reverse=True)

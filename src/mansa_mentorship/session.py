"""Session value passed explicitly to every service that talks to the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
import logging
from typing import Callable, Optional

from pydantic import SecretStr
import pytz

from .errors import UnauthorizedException
from .models import Actor, Role

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPERADMIN})


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


@dataclass
class Session:
    """
    Who is acting, and with which token.

    Mentor-ness and mentee-ness are independent capabilities; a user may
    hold both. `role` only distinguishes admins from everyone else.
    """

    token: SecretStr = field(default_factory=lambda: SecretStr(""))
    user_id: Optional[str] = None
    role: Role = Role.USER
    is_mentor: bool = False
    is_mentee: bool = True
    timezone: str = "UTC"

    def __post_init__(self) -> None:
        if isinstance(self.token, str):
            self.token = SecretStr(self.token)
        if self.user_id is not None:
            self.user_id = str(self.user_id)
        self.role = Role(self.role)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token.get_secret_value().strip())

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    def has_capability(self, actor: Actor) -> bool:
        return self.is_mentor if actor == Actor.MENTOR else self.is_mentee

    def get_headers(self) -> dict[str, str]:
        """Authorization header for API requests."""
        if not self.is_authenticated:
            raise UnauthorizedException("Please log in to continue.")
        return {"Authorization": f"Bearer {self.token.get_secret_value().strip()}"}

    def today(self, clock: Callable[[], datetime] = utc_now) -> date:
        """Today's date in the session user's timezone."""
        try:
            tz = pytz.timezone(self.timezone)
        except pytz.UnknownTimeZoneError:
            logger.warning("session_unknown_timezone: %s", self.timezone)
            tz = pytz.UTC
        return clock().astimezone(tz).date()

    def clear(self) -> None:
        """Forget the token and identity (logout)."""
        self.token = SecretStr("")
        self.user_id = None
        self.role = Role.USER
        self.is_mentor = False
        self.is_mentee = False

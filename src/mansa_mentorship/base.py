# src/mansa_mentorship/base.py
"""
Base Service Pattern for the mentorship client

Provides common functionality for all service classes including:
- Logging
- Performance monitoring
- In-flight and cancellation handling
"""

import asyncio
from functools import wraps
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar, cast

from . import metrics
from .client import MentorshipClient
from .config import Settings
from .errors import UnauthorizedException
from .lifecycle import InFlight, OperationScope
from .session import Session

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
T = TypeVar("T")


class BaseService:
    """
    Base class for services that act on behalf of a session.

    Provides common patterns for:
    - Access to the API client and session
    - Logging
    - Performance monitoring
    - Duplicate-submission guarding and cancellation on close
    """

    def __init__(
        self,
        client: MentorshipClient,
        session: Session,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize base service.

        Args:
            client: API client
            session: The acting user's session
            settings: Optional settings; defaults to the client's
        """
        self.client = client
        self.session = session
        self.settings = settings or client.settings
        self.logger = logging.getLogger(self.__class__.__name__)
        self.in_flight = InFlight()
        self.scope = OperationScope()
        self._metrics: Dict[str, Dict[str, Any]] = {}

    @property
    def processing(self) -> bool:
        """True while any guarded operation is running."""
        return self.in_flight.is_active()

    async def aclose(self) -> None:
        """Abandon in-flight requests; late responses are dropped."""
        await self.scope.aclose()

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Decorator to measure async operation performance.

        Usage:
            @BaseService.measure_operation("confirm_booking")
            async def confirm(self, booking):
                ...
        """

        def decorator(func: F) -> F:
            if not asyncio.iscoroutinefunction(func):
                raise TypeError(f"{func.__name__} must be a coroutine function")

            @wraps(func)
            async def async_wrapper(self, *args, **kwargs):
                start_time = time.monotonic()
                success = False
                error_type = None

                try:
                    result = await func(self, *args, **kwargs)
                    success = True
                    return result
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.monotonic() - start_time
                    self._record_metric(operation_name, elapsed, success)

                    if elapsed > self.settings.slow_operation_seconds:
                        self.logger.warning(
                            "Slow operation detected: %s took %.2fs", operation_name, elapsed
                        )

                    metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="success" if success else "error",
                        error_type=error_type,
                    )

            return cast(F, async_wrapper)

        return decorator

    def _record_metric(self, operation: str, elapsed: float, success: bool) -> None:
        entry = self._metrics.setdefault(
            operation, {"count": 0, "total_time": 0.0, "success_count": 0, "failure_count": 0}
        )
        entry["count"] += 1
        entry["total_time"] += elapsed
        if success:
            entry["success_count"] += 1
        else:
            entry["failure_count"] += 1

    def get_metrics(self) -> Dict[str, Dict[str, Any]]:
        """Per-operation counters for this service instance."""
        result = {}
        for operation, data in self._metrics.items():
            count = data["count"]
            result[operation] = {
                **data,
                "avg_time": data["total_time"] / count if count else 0.0,
                "success_rate": data["success_count"] / count if count else 0.0,
            }
        return result

    async def _run(self, awaitable: Awaitable[T]) -> T:
        """Await an API call inside this service's scope."""
        try:
            return await self.scope.run(awaitable)
        except UnauthorizedException as exc:
            exc.redirect_to = self.client.login_url(self.login_redirect_path())
            raise

    def _require_session(self) -> None:
        if not self.session.is_authenticated:
            raise self.client.unauthorized(self.login_redirect_path())

    def login_redirect_path(self) -> str:
        """Page to come back to after logging in; overridden per service."""
        return self.settings.safe_default_path

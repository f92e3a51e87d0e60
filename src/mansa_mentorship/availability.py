# src/mansa_mentorship/availability.py
"""
Availability management for the signed-in mentor.

Keeps the mentor's recurring and specific-date slots in memory, lets the
caller edit them as drafts, and saves the whole set in one bulk request.
The server stays authoritative: every successful save is followed by a
reload so persisted ids and the availability version come from the server.

Saves carry the version seen on load (If-Match). A 409 means someone else
changed the set in the meantime; local edits are kept so they can be
re-applied after a refresh.
"""

from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from .base import BaseService
from .client import MentorshipClient
from .config import Settings
from .errors import (
    INVALID_TIME_RANGE,
    PAST_DATE,
    ConflictException,
    MentorshipException,
    NotFoundException,
    ValidationException,
)
from .models import AvailabilitySet, AvailabilitySlot, SlotKind
from .session import Session, utc_now
from .slots import draft_recurring_slot, draft_specific_slot, slot_errors

SAVE_OPERATION = "save_availability"


class AvailabilityManager(BaseService):
    """
    Edits one mentor's availability.

    Slots are addressed by kind ("recurring" / "specific") and their index
    in that kind's list, the way an editor renders them.
    """

    def __init__(
        self,
        client: MentorshipClient,
        session: Session,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        super().__init__(client, session, settings)
        self.clock = clock
        self.recurring: List[AvailabilitySlot] = []
        self.specific: List[AvailabilitySlot] = []
        self.version: Optional[str] = None
        self.errors: Dict[str, str] = {}
        self.delete_errors: Dict[str, str] = {}
        self.loaded = False

    def login_redirect_path(self) -> str:
        return "/community/mentorship/mentor/availability"

    @property
    def saving(self) -> bool:
        return self.in_flight.is_active(SAVE_OPERATION)

    def today(self) -> date:
        return self.session.today(self.clock)

    def snapshot(self) -> AvailabilitySet:
        return AvailabilitySet(
            recurring=list(self.recurring),
            specific=list(self.specific),
            version=self.version,
        )

    def _slots(self, kind: Union[SlotKind, str]) -> List[AvailabilitySlot]:
        return self.recurring if SlotKind(kind) == SlotKind.RECURRING else self.specific

    @BaseService.measure_operation("load_availability")
    async def load(self) -> AvailabilitySet:
        """Fetch the mentor's slots and split them by kind."""
        self._require_session()
        slots, version = await self._run(self.client.list_availability())

        self.recurring = [slot for slot in slots if slot.is_recurring]
        self.specific = [slot for slot in slots if not slot.is_recurring]
        self.version = version
        self.errors = {}
        self.delete_errors = {}
        self.loaded = True
        self.logger.debug(
            "Loaded %d recurring and %d specific slots",
            len(self.recurring),
            len(self.specific),
        )
        return self.snapshot()

    def add_draft(self, kind: Union[SlotKind, str]) -> AvailabilitySlot:
        """Append an unsaved slot with the default 09:00-10:00 window."""
        if SlotKind(kind) == SlotKind.RECURRING:
            slot = draft_recurring_slot()
        else:
            slot = draft_specific_slot(self.today())
        self._slots(kind).append(slot)
        return slot

    def update_slot(
        self, kind: Union[SlotKind, str], index: int, **changes: Any
    ) -> AvailabilitySlot:
        """Replace fields of one slot. Validation of the rules happens on save."""
        slots = self._slots(kind)
        current = slots[index]
        if "is_recurring" in changes and changes["is_recurring"] != current.is_recurring:
            raise ValidationException(
                "A slot cannot change between recurring and specific-date",
                code="SLOT_KIND_CHANGE",
            )
        updated = AvailabilitySlot.model_validate({**current.model_dump(), **changes})
        slots[index] = updated
        return updated

    @BaseService.measure_operation("remove_availability_slot")
    async def remove_slot(self, kind: Union[SlotKind, str], index: int) -> None:
        """
        Remove one slot.

        Drafts are dropped locally. Persisted slots are deleted on the server
        first and only dropped locally once that succeeded; on failure the
        slot stays, its id is recorded in `delete_errors`, and the error is
        raised.
        """
        slots = self._slots(kind)
        slot = slots[index]

        if slot.is_persisted:
            try:
                await self._run(self.client.delete_availability(slot.id))
            except NotFoundException:
                self.logger.info("availability_slot_already_deleted: %s", slot.id)
            except MentorshipException as exc:
                self.delete_errors[slot.id] = exc.message
                self.logger.warning("availability_delete_failed: %s: %s", slot.id, exc.message)
                raise
            self.delete_errors.pop(slot.id, None)

        # Index may have shifted while the delete was in flight.
        for position, candidate in enumerate(slots):
            if candidate is slot:
                del slots[position]
                break
        self.errors = {}

    def validate(self) -> Dict[str, str]:
        """Check every slot; returns (and stores) the per-slot error map."""
        today = self.today()
        errors: Dict[str, str] = {}
        for index, slot in enumerate(self.recurring):
            for error in slot_errors(slot, today):
                if error.code == INVALID_TIME_RANGE:
                    errors[f"recurring_{index}"] = error.message
        for index, slot in enumerate(self.specific):
            for error in slot_errors(slot, today):
                if error.code == INVALID_TIME_RANGE:
                    errors[f"specific_{index}"] = error.message
                elif error.code == PAST_DATE:
                    errors[f"specific_date_{index}"] = error.message
        self.errors = errors
        return errors

    @BaseService.measure_operation(SAVE_OPERATION)
    async def save(self) -> AvailabilitySet:
        """
        Validate everything, then replace the server's slot set in one request.

        Raises:
            ValidationException: some slot is invalid; nothing was sent
            ConflictException: the set changed on the server since load
            MentorshipException: any other failure; local edits are kept
        """
        async with self.in_flight.guard(SAVE_OPERATION):
            self._require_session()
            errors = self.validate()
            if errors:
                raise ValidationException(
                    "Please fix the errors before saving",
                    code="INVALID_AVAILABILITY",
                    details={"errors": errors},
                )

            slots = [*self.recurring, *self.specific]
            try:
                new_version = await self._run(
                    self.client.bulk_replace_availability(slots, version=self.version)
                )
            except ConflictException as exc:
                self.logger.info(
                    "availability_version_conflict: local=%s server=%s",
                    self.version,
                    exc.current_version,
                )
                raise ConflictException(
                    "Your availability was changed elsewhere. Please refresh and try again.",
                    current_version=exc.current_version,
                ) from exc

            self.logger.info("Saved %d availability slots", len(slots))
            return await self._reload_after_write(new_version)

    @BaseService.measure_operation("clear_availability")
    async def clear(self) -> int:
        """Delete every slot on the server, then reload."""
        self._require_session()
        count = await self._run(self.client.clear_availability())
        self.logger.info("Cleared %d availability slots", count)
        self.recurring = []
        self.specific = []
        await self._reload_after_write()
        return count

    async def _reload_after_write(self, written_version: Optional[str] = None) -> AvailabilitySet:
        """
        Reload once the server has accepted a write.

        If the reload fails the write still stands: the local set is kept and
        the version becomes whatever the write reported.
        """
        try:
            snapshot = await self.load()
        except MentorshipException as exc:
            self.logger.warning("availability_reload_failed: %s", exc.message)
            self.version = written_version
            return self.snapshot()
        if snapshot.version is None and written_version:
            self.version = written_version
            snapshot.version = written_version
        return snapshot

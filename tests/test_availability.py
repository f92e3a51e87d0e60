from datetime import date, time

import pytest
from fakes import fixed_clock
from mansa_mentorship.availability import AvailabilityManager
from mansa_mentorship.errors import (
    BackendException,
    ConflictException,
    NotFoundException,
    UnauthorizedException,
    ValidationException,
)
from mansa_mentorship.models import SlotKind
from mansa_mentorship.session import Session

RECURRING = {"id": "r1", "is_recurring": True, "day_of_week": 2, "start_time": "09:00", "end_time": "11:00"}
SPECIFIC = {
    "id": "s1",
    "is_recurring": False,
    "specific_date": "2026-03-10",
    "start_time": "13:00",
    "end_time": "14:00",
}


@pytest.fixture
def manager(fake_client, session):
    return AvailabilityManager(fake_client, session, clock=fixed_clock)


@pytest.mark.asyncio
async def test_load_partitions_by_kind(manager, fake_client):
    fake_client.slots = [dict(RECURRING), dict(SPECIFIC)]

    snapshot = await manager.load()

    assert [s.id for s in snapshot.recurring] == ["r1"]
    assert [s.id for s in snapshot.specific] == ["s1"]
    assert snapshot.version == "v1"
    assert manager.loaded


@pytest.mark.asyncio
async def test_new_recurring_draft_saves_with_defaults(manager, fake_client):
    await manager.load()
    manager.add_draft(SlotKind.RECURRING)

    snapshot = await manager.save()

    (bulk,) = fake_client.called("bulk_replace_availability")
    assert bulk["version"] == "v1"
    assert bulk["slots"] == [
        {"is_recurring": True, "day_of_week": 1, "start_time": "09:00", "end_time": "10:00"}
    ]
    # Reloaded from the server: ids and version are the server's.
    assert snapshot.recurring[0].id == "new-0"
    assert manager.version == "v1+1"
    assert not manager.saving


@pytest.mark.asyncio
async def test_specific_draft_defaults_to_tomorrow(manager):
    slot = manager.add_draft("specific")
    assert slot.specific_date == date(2026, 3, 2)
    assert manager.specific == [slot]


@pytest.mark.asyncio
async def test_invalid_slots_block_save(manager, fake_client):
    manager.add_draft("recurring")
    manager.update_slot("recurring", 0, start_time=time(11), end_time=time(10))
    manager.add_draft("specific")
    manager.update_slot("specific", 0, specific_date=date(2026, 2, 27))

    with pytest.raises(ValidationException) as exc_info:
        await manager.save()

    assert exc_info.value.errors == {
        "recurring_0": "End time must be after start time",
        "specific_date_0": "Date cannot be in the past",
    }
    assert manager.errors == exc_info.value.errors
    assert fake_client.called("bulk_replace_availability") == []


@pytest.mark.asyncio
async def test_past_date_uses_mentor_timezone(fake_client):
    # 12:00 UTC on 1 March is already 2 March in Auckland.
    session = Session(token="t", is_mentor=True, timezone="Pacific/Auckland")
    manager = AvailabilityManager(fake_client, session, clock=fixed_clock)
    manager.add_draft("specific")
    manager.update_slot("specific", 0, specific_date=date(2026, 3, 1))

    assert manager.validate() == {"specific_date_0": "Date cannot be in the past"}


def test_slot_kind_cannot_change(manager):
    manager.add_draft("recurring")
    with pytest.raises(ValidationException) as exc_info:
        manager.update_slot("recurring", 0, is_recurring=False)
    assert exc_info.value.code == "SLOT_KIND_CHANGE"


@pytest.mark.asyncio
async def test_removing_draft_stays_local(manager, fake_client):
    manager.add_draft("recurring")
    await manager.remove_slot("recurring", 0)
    assert manager.recurring == []
    assert fake_client.called("delete_availability") == []


@pytest.mark.asyncio
async def test_failed_delete_keeps_slot(manager, fake_client):
    fake_client.slots = [dict(RECURRING)]
    await manager.load()
    fake_client.fail["delete_availability"] = BackendException("Server exploded", status_code=500)

    with pytest.raises(BackendException):
        await manager.remove_slot("recurring", 0)

    assert [s.id for s in manager.recurring] == ["r1"]
    assert manager.delete_errors == {"r1": "Server exploded"}

    del fake_client.fail["delete_availability"]
    await manager.remove_slot("recurring", 0)

    assert manager.recurring == []
    assert manager.delete_errors == {}
    assert fake_client.slots == []


@pytest.mark.asyncio
async def test_delete_of_missing_slot_counts_as_removed(manager, fake_client):
    fake_client.slots = [dict(SPECIFIC)]
    await manager.load()
    fake_client.fail["delete_availability"] = NotFoundException("gone")

    await manager.remove_slot("specific", 0)

    assert manager.specific == []


@pytest.mark.asyncio
async def test_conflicting_save_keeps_local_edits(manager, fake_client):
    fake_client.slots = [dict(RECURRING)]
    await manager.load()
    manager.update_slot("recurring", 0, end_time=time(12))
    fake_client.fail["bulk_replace_availability"] = ConflictException(current_version="v5")

    with pytest.raises(ConflictException) as exc_info:
        await manager.save()

    assert exc_info.value.current_version == "v5"
    assert "changed elsewhere" in exc_info.value.message
    assert manager.recurring[0].end_time == time(12)
    assert manager.version == "v1"


@pytest.mark.asyncio
async def test_save_requires_login(fake_client):
    manager = AvailabilityManager(fake_client, Session(), clock=fixed_clock)

    with pytest.raises(UnauthorizedException) as exc_info:
        await manager.save()

    assert exc_info.value.redirect_to == "/login?redirect=/community/mentorship/mentor/availability"
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_clear_reloads(manager, fake_client):
    fake_client.slots = [dict(RECURRING), dict(SPECIFIC)]
    await manager.load()

    assert await manager.clear() == 2
    assert manager.recurring == []
    assert manager.specific == []


@pytest.mark.asyncio
async def test_saved_set_survives_failed_reload(manager, fake_client, caplog):
    fake_client.slots = [dict(RECURRING)]
    await manager.load()
    manager.add_draft("recurring")
    fake_client.fail["list_availability"] = BackendException("list down")

    snapshot = await manager.save()

    assert len(snapshot.recurring) == 2
    assert manager.version == "v1+1"
    assert len(fake_client.slots) == 2
    assert "availability_reload_failed" in caplog.text

    # The next save is checked against the version the write produced.
    await manager.save()
    assert [c["version"] for c in fake_client.called("bulk_replace_availability")] == ["v1", "v1+1"]


@pytest.mark.asyncio
async def test_clear_survives_failed_reload(manager, fake_client):
    fake_client.slots = [dict(RECURRING), dict(SPECIFIC)]
    await manager.load()
    fake_client.fail["list_availability"] = BackendException("list down")

    assert await manager.clear() == 2
    assert manager.recurring == []
    assert manager.specific == []
    assert manager.version is None

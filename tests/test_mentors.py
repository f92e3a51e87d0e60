import pytest
from fakes import mentor_payload
from mansa_mentorship.errors import ForbiddenException, UnauthorizedException, ValidationException
from mansa_mentorship.mentors import (
    MentorDirectory,
    application_errors,
    mentor_matches,
    validate_application,
)
from mansa_mentorship.models import MentorApplication, MentorProfile
from mansa_mentorship.session import Session

GOOD_BIO = "I have spent eight years building payment systems across West Africa."


def _application(**overrides):
    data = {
        "bio": GOOD_BIO,
        "expertise": ["Fintech"],
        "job_title": "Engineering Manager",
        "years_of_experience": 8,
        "timezone": "Africa/Lagos",
    }
    data.update(overrides)
    return MentorApplication(**data)


def test_valid_application_passes():
    assert application_errors(_application()) == {}
    validate_application(_application())


def test_short_bio_has_its_own_code():
    with pytest.raises(ValidationException) as exc_info:
        validate_application(_application(bio="Too short"))
    assert exc_info.value.code == "BIO_TOO_SHORT"
    assert set(exc_info.value.errors) == {"bio"}


def test_missing_expertise_has_its_own_code():
    with pytest.raises(ValidationException) as exc_info:
        validate_application(_application(expertise=["  "]))
    assert exc_info.value.code == "NO_EXPERTISE"


def test_several_problems_report_missing_field():
    with pytest.raises(ValidationException) as exc_info:
        validate_application(
            _application(bio="", job_title=" ", years_of_experience=-1, timezone="Atlantis/Main")
        )
    assert exc_info.value.code == "MISSING_FIELD"
    assert set(exc_info.value.errors) == {"bio", "job_title", "years_of_experience", "timezone"}


def test_mentor_matches_name_title_company_and_expertise():
    mentor = MentorProfile.model_validate(mentor_payload())
    for query in ("lovelace", "staff", "analytical", "data eng", ""):
        assert mentor_matches(mentor, query), query
    assert not mentor_matches(mentor, "marketing")


@pytest.fixture
def directory(fake_client, session):
    return MentorDirectory(fake_client, session)


@pytest.mark.asyncio
async def test_browse_hides_unapproved_mentors(directory, fake_client, caplog):
    fake_client.mentors = [
        mentor_payload(id=1),
        mentor_payload(id=2, is_approved=False),
        mentor_payload(id=3, job_title="Product Designer", expertise=["Design"]),
    ]

    mentors = await directory.browse(expertise="Design")

    assert [m.id for m in mentors] == ["1", "3"]
    assert fake_client.called("list_mentors") == [{"page": None, "expertise": "Design"}]
    assert "directory_unapproved_mentors_hidden" in caplog.text

    searched = await directory.browse(search="designer")
    assert [m.id for m in searched] == ["3"]


@pytest.mark.asyncio
async def test_get_and_categories(directory, fake_client):
    fake_client.mentors = [mentor_payload(id=4)]
    fake_client.categories = [{"id": 1, "name": "Fintech", "description": "Payments and banking"}]

    mentor = await directory.get("4")
    categories = await directory.expertise_categories()

    assert mentor.id == "4"
    assert [c.name for c in categories] == ["Fintech"]


@pytest.mark.asyncio
async def test_apply_submits_unapproved_profile(directory, fake_client, session):
    profile = await directory.apply(_application())

    (call,) = fake_client.called("create_mentor_profile")
    assert call["payload"]["expertise"] == [{"category": "Fintech"}]
    assert profile.is_approved is False
    assert session.is_mentor is True  # unchanged from the fixture


@pytest.mark.asyncio
async def test_apply_validates_before_sending(directory, fake_client):
    with pytest.raises(ValidationException):
        await directory.apply(_application(expertise=[]))
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_apply_requires_login(fake_client):
    directory = MentorDirectory(fake_client, Session())
    with pytest.raises(UnauthorizedException) as exc_info:
        await directory.apply(_application())
    assert exc_info.value.redirect_to == "/login?redirect=/community/mentorship/mentor/apply"


@pytest.mark.asyncio
async def test_reviews_newest_first(directory, fake_client):
    fake_client.reviews["7"] = [
        {"id": 1, "rating": 4, "comment": "Useful", "created_at": "2026-01-05T10:00:00Z"},
        {"id": 2, "rating": 5, "comment": "Excellent", "created_at": "2026-02-05T10:00:00Z"},
    ]

    reviews = await directory.reviews("7")

    assert [r.id for r in reviews] == ["2", "1"]
    assert fake_client.called("list_mentor_reviews") == [{"mentor_id": "7"}]


@pytest.mark.asyncio
async def test_update_profile_validates_like_apply(directory, fake_client):
    with pytest.raises(ValidationException) as exc_info:
        await directory.update_profile(_application(bio="short"))
    assert exc_info.value.code == "BIO_TOO_SHORT"
    assert fake_client.calls == []

    profile = await directory.update_profile(_application(job_title="Director"))

    (call,) = fake_client.called("update_mentor_profile")
    assert call["payload"]["job_title"] == "Director"
    assert profile.job_title == "Director"


@pytest.mark.asyncio
async def test_update_profile_requires_mentor(fake_client):
    directory = MentorDirectory(fake_client, Session(token="t", is_mentor=False))

    with pytest.raises(ForbiddenException):
        await directory.update_profile(_application())
    assert fake_client.calls == []

import pytest
from fakes import API_BASE, FakeClient
from mansa_mentorship.config import Settings
from mansa_mentorship.session import Session


@pytest.fixture
def settings() -> Settings:
    return Settings(api_base_url=API_BASE, _env_file=None)


@pytest.fixture
def session() -> Session:
    return Session(token="tok", user_id=20, is_mentor=True, is_mentee=True)


@pytest.fixture
def fake_client(settings: Settings, session: Session) -> FakeClient:
    return FakeClient(settings, session)

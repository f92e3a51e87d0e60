import pytest
from mansa_mentorship.config import Settings
from pydantic import ValidationError


def test_defaults():
    settings = Settings(_env_file=None)
    assert settings.api_prefix == "/api/v1/mentorship"
    assert settings.page_size == 10
    assert settings.login_path == "/login"
    assert settings.safe_default_path == "/community/mentorship"


def test_env_prefix(monkeypatch):
    monkeypatch.setenv("MANSA_MENTORSHIP_API_BASE_URL", "https://api.example.test/")
    monkeypatch.setenv("MANSA_MENTORSHIP_PAGE_SIZE", "25")

    settings = Settings(_env_file=None)

    assert settings.api_base_url == "https://api.example.test"
    assert settings.mentorship_url == "https://api.example.test/api/v1/mentorship"
    assert settings.page_size == 25


def test_rejects_empty_pages():
    with pytest.raises(ValidationError):
        Settings(page_size=0, _env_file=None)

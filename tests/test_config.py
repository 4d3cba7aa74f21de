"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from frontdesk.config import AppSettings, RelaySettings, StoreSettings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GOOGLE_SCRIPT_URL", "RELAY_UPSTREAM_URL", "PORT", "RELAY_PORT", "HOST", "RELAY_HOST"):
        monkeypatch.delenv(name, raising=False)


class TestRelaySettings:
    """Tests for relay settings."""

    def test_reads_deployment_variables(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_SCRIPT_URL", "https://script.google.test/exec")
        monkeypatch.setenv("PORT", "8080")

        settings = RelaySettings(_env_file=None)

        assert settings.upstream_url == "https://script.google.test/exec"
        assert settings.port == 8080
        assert settings.require_upstream() == "https://script.google.test/exec"

    def test_defaults(self):
        settings = RelaySettings(_env_file=None)

        assert settings.upstream_url is None
        assert settings.port == 3000
        assert settings.read_retries == 0
        assert settings.allowed_origin == "https://booking.hotelomshivshankar.com"

    def test_blank_url_is_missing(self, monkeypatch):
        monkeypatch.setenv("GOOGLE_SCRIPT_URL", "  ")
        assert RelaySettings(_env_file=None).upstream_url is None

    def test_negative_retries_rejected(self):
        with pytest.raises(ValidationError):
            RelaySettings(_env_file=None, read_retries=-1)


def test_store_and_app_defaults():
    assert StoreSettings(_env_file=None).api_url == "http://localhost:3000/api"
    app = AppSettings(_env_file=None)
    assert app.log_level == "INFO"
    assert app.log_format == "console"

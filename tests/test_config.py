"""
Tests for application settings.
"""
import pytest
from pydantic import ValidationError

from ehr_identity.config import Settings


@pytest.mark.parametrize("missing", ["SECRET_KEY", "REFRESH_SECRET_KEY"])
def test_signing_secrets_are_required(monkeypatch, missing):
    monkeypatch.delenv(missing, raising=False)

    with pytest.raises(ValidationError) as exc_info:
        Settings(_env_file=None)

    assert missing.lower() in str(exc_info.value)


def test_signing_secrets_read_from_environment(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "session-from-env")
    monkeypatch.setenv("REFRESH_SECRET_KEY", "refresh-from-env")

    config = Settings(_env_file=None)

    assert config.secret_key == "session-from-env"
    assert config.refresh_secret_key == "refresh-from-env"

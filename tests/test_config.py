"""
tests/test_config.py -- Tests for core/config.py Settings validation.

Each test builds Settings directly with _env_file=None so a developer's .env
never leaks in; environment variables are set through monkeypatch.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from core.config import SEVEN_DAYS, Settings

VALID_KEY = "k" * 32


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("DEBUG", "SECRET_KEY", "PASSWORD_SALT", "DATA_DIR", "TOKEN_EXPIRE_SECONDS", "CORS_ALLOW_ORIGINS"):
        monkeypatch.delenv(name, raising=False)


class TestProductionMode:
    def test_missing_secret_key_raises(self, monkeypatch) -> None:
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        with pytest.raises(ValidationError, match="SECRET_KEY is required"):
            Settings(_env_file=None)

    def test_missing_salt_raises(self, monkeypatch) -> None:
        monkeypatch.setenv("SECRET_KEY", VALID_KEY)
        with pytest.raises(ValidationError, match="PASSWORD_SALT is required"):
            Settings(_env_file=None)

    def test_short_secret_key_rejected(self, monkeypatch) -> None:
        monkeypatch.setenv("SECRET_KEY", "too-short")
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        with pytest.raises(ValidationError, match="at least 32 characters"):
            Settings(_env_file=None)

    def test_defaults(self, monkeypatch) -> None:
        monkeypatch.setenv("SECRET_KEY", VALID_KEY)
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        settings = Settings(_env_file=None)
        assert settings.debug is False
        assert settings.data_dir == "./data"
        assert settings.token_expire_seconds == SEVEN_DAYS == 604800
        assert settings.cors_allow_origins == ["*"]

    def test_environment_overrides(self, monkeypatch) -> None:
        monkeypatch.setenv("SECRET_KEY", VALID_KEY)
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        monkeypatch.setenv("DATA_DIR", "/srv/invitegate")
        monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", "3600")
        monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://app.example.com"]')
        settings = Settings(_env_file=None)
        assert settings.data_dir == "/srv/invitegate"
        assert settings.token_expire_seconds == 3600
        assert settings.cors_allow_origins == ["https://app.example.com"]

    @pytest.mark.parametrize("value", ["0", "-5"])
    def test_non_positive_expiry_rejected(self, monkeypatch, value: str) -> None:
        monkeypatch.setenv("SECRET_KEY", VALID_KEY)
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        monkeypatch.setenv("TOKEN_EXPIRE_SECONDS", value)
        with pytest.raises(ValidationError, match="TOKEN_EXPIRE_SECONDS"):
            Settings(_env_file=None)


class TestDebugMode:
    def test_generates_missing_secrets(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        settings = Settings(_env_file=None)
        assert len(settings.secret_key) >= 32
        assert settings.password_salt

    def test_generated_secrets_differ_per_instance(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        assert Settings(_env_file=None).secret_key != Settings(_env_file=None).secret_key

    def test_explicit_values_kept(self, monkeypatch) -> None:
        monkeypatch.setenv("DEBUG", "true")
        monkeypatch.setenv("SECRET_KEY", VALID_KEY)
        monkeypatch.setenv("PASSWORD_SALT", "salt")
        settings = Settings(_env_file=None)
        assert settings.secret_key == VALID_KEY
        assert settings.password_salt == "salt"

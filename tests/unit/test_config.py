"""Unit tests for application configuration.

Tests Settings validation and required fields.
"""

import pytest
from pydantic import ValidationError

from crmvault.config import (
    DEFAULT_DATABASE_URL,
    Settings,
    get_encryption_context,
    get_settings,
)
from crmvault.shared.exceptions import ConfigurationError

CIPHER_KEY = "settings-cipher-key-0123456789ab"
INDEX_KEY = "settings-index-key-0123"


def _settings(**overrides) -> Settings:
    values = {"cipher_key": CIPHER_KEY, "index_key": INDEX_KEY, **overrides}
    return Settings(_env_file=None, **values)


class TestKeyValidation:
    """Test CIPHER_KEY / INDEX_KEY handling."""

    def test_missing_cipher_key_raises(self, monkeypatch: pytest.MonkeyPatch):
        """Test that missing CIPHER_KEY raises validation error."""
        monkeypatch.delenv("CIPHER_KEY", raising=False)

        with pytest.raises(ValidationError) as exc_info:
            Settings(_env_file=None, index_key=INDEX_KEY)

        assert "cipher_key" in str(exc_info.value).lower()

    def test_identical_keys_rejected(self):
        with pytest.raises(ValidationError):
            _settings(index_key=CIPHER_KEY)

    def test_keys_from_files(self, monkeypatch: pytest.MonkeyPatch, tmp_path):
        """*_FILE variables override the plain environment variables."""
        cipher_file = tmp_path / "cipher_key"
        cipher_file.write_text(CIPHER_KEY + "\n", encoding="utf-8")
        monkeypatch.setenv("CIPHER_KEY", "replaced-by-the-file-contents")
        monkeypatch.setenv("CIPHER_KEY_FILE", str(cipher_file))
        monkeypatch.setenv("INDEX_KEY", INDEX_KEY)

        settings = get_settings()

        assert settings.cipher_key == CIPHER_KEY

    def test_empty_secret_file_rejected(self, monkeypatch: pytest.MonkeyPatch, tmp_path):
        empty = tmp_path / "empty"
        empty.write_text("", encoding="utf-8")
        monkeypatch.setenv("INDEX_KEY_FILE", str(empty))

        with pytest.raises(ValueError):
            get_settings()

    def test_encryption_context_built_from_settings(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CIPHER_KEY", CIPHER_KEY)
        monkeypatch.setenv("INDEX_KEY", INDEX_KEY)

        context = get_encryption_context()

        assert context.cipher_key == CIPHER_KEY.encode()
        assert context.index_key == INDEX_KEY.encode()
        assert get_encryption_context() is context

    def test_malformed_key_is_fatal(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CIPHER_KEY", "too-short")
        monkeypatch.setenv("INDEX_KEY", INDEX_KEY)

        with pytest.raises(ConfigurationError):
            get_encryption_context()


class TestSettingsDefaults:
    """Test Settings default values."""

    def test_default_app_env(self):
        """Test default app environment is development."""
        settings = _settings()

        assert settings.app_env == "development"
        assert settings.is_development is True
        assert settings.is_production is False

    def test_default_role_names(self):
        settings = _settings()

        assert settings.global_role_names == frozenset({"admin", "employee"})
        assert settings.superuser_role_names == frozenset({"admin"})

    def test_role_names_parsed_from_csv(self):
        settings = _settings(global_role_names=" admin , , auditor ")

        assert settings.global_role_names == frozenset({"admin", "auditor"})

    def test_limits(self):
        settings = _settings()

        assert settings.search_result_limit == 100
        assert settings.key_rotation_batch_size == 100


class TestProductionValidation:
    """Test production-only checks."""

    def test_debug_rejected_in_production(self):
        with pytest.raises(ValidationError):
            _settings(
                app_env="production",
                app_debug=True,
                database_url="postgresql+asyncpg://prod:secret@db/crmvault",
            )

    def test_default_database_rejected_in_production(self):
        with pytest.raises(ValidationError):
            _settings(app_env="production", database_url=DEFAULT_DATABASE_URL)

    def test_valid_production_settings(self):
        settings = _settings(
            app_env="production",
            database_url="postgresql+asyncpg://prod:secret@db/crmvault",
        )

        assert settings.is_production is True

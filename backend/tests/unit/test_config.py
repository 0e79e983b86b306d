"""Tests for configuration module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from app.core.config import AttachmentSettings, DatabaseSettings, Settings, get_settings


class TestSettings:
    """Test Settings configuration."""

    def test_default_settings(self):
        """Test default settings values."""
        settings = Settings()
        assert settings.app_name == "DentalDesk"
        assert settings.app_version == "1.0.0"
        assert settings.port == 4000

    def test_attachment_settings(self):
        """Test attachment storage defaults."""
        settings = Settings()
        assert settings.attachments.storage_mode == "reference"
        assert settings.attachments.storage_dir == Path("./uploads")
        assert settings.attachments.field_name == "file"
        assert settings.attachments.max_file_size_bytes == 10 * 1024 * 1024

    def test_attachment_settings_from_env(self, monkeypatch, tmp_path):
        """Test ATTACHMENT_ environment variables."""
        monkeypatch.setenv("ATTACHMENT_STORAGE_MODE", "inline")
        monkeypatch.setenv("ATTACHMENT_STORAGE_DIR", str(tmp_path))
        monkeypatch.setenv("ATTACHMENT_MAX_FILE_SIZE_MB", "2")

        attachments = AttachmentSettings()

        assert attachments.storage_mode == "inline"
        assert attachments.storage_dir == tmp_path
        assert attachments.max_file_size_bytes == 2 * 1024 * 1024

    def test_unknown_storage_mode_rejected(self):
        """Only reference and inline storage exist."""
        with pytest.raises(ValidationError):
            AttachmentSettings(storage_mode="memory")

    def test_sqlite_database_url(self):
        """Test SQLite URLs carry the file name only."""
        database = DatabaseSettings(driver="sqlite+aiosqlite", name="./dentaldesk.db")
        assert database.url == "sqlite+aiosqlite:///./dentaldesk.db"

    def test_postgres_database_url(self):
        """Test server database URLs."""
        database = DatabaseSettings(
            host="db", port=5432, user="clinic", password="secret", name="dentaldesk"
        )
        assert database.url == "postgresql+asyncpg://clinic:secret@db:5432/dentaldesk"

    def test_production_requires_secret_key(self, monkeypatch):
        """Test production refuses an insecure SECRET_KEY."""
        monkeypatch.setenv("SECRET_KEY", "changeme")
        with pytest.raises(ValidationError):
            Settings(environment="production")

    def test_production_rejects_demo_data(self, monkeypatch):
        """Test demo data cannot be enabled in production."""
        monkeypatch.setenv("SECRET_KEY", "9f1c" * 16)
        with pytest.raises(ValidationError):
            Settings(environment="production", enable_demo_data=True)

    def test_get_settings_cached(self):
        """Test settings are cached."""
        settings1 = get_settings()
        settings2 = get_settings()
        assert settings1 is settings2

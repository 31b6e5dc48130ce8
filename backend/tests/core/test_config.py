"""Tests for application configuration."""
import pytest
from pydantic import ValidationError

from core.config import Settings


class TestCorsOriginsParsing:
    """Tests for CORS origins parsing from environment variables."""

    def test_parse_multiple_origins_comma_separated(self) -> None:
        """Multiple comma-separated origins are parsed correctly."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://test",
            CORS_ORIGINS="http://localhost:5173,https://example.com",
        )
        assert settings.cors_origins == [
            "http://localhost:5173",
            "https://example.com",
        ]

    def test_parse_origins_with_whitespace_and_trailing_comma(self) -> None:
        """Whitespace is stripped and empty entries filtered."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://test",
            CORS_ORIGINS="  http://localhost:5173 , https://example.com,",
        )
        assert settings.cors_origins == [
            "http://localhost:5173",
            "https://example.com",
        ]

    def test_parse_empty_string(self) -> None:
        """Empty string results in empty list."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://test",
            CORS_ORIGINS="",
        )
        assert settings.cors_origins == []

    def test_default_cors_origins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Default CORS origins is localhost:5173."""
        monkeypatch.delenv("CORS_ORIGINS", raising=False)
        settings = Settings(_env_file=None, database_url="postgresql+asyncpg://test")
        assert settings.cors_origins == ["http://localhost:5173"]


class TestLogLevel:
    """Tests for LOG_LEVEL validation."""

    def test_log_level_is_normalized(self) -> None:
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://test",
            LOG_LEVEL=" debug ",
        )
        assert settings.log_level == "DEBUG"

    def test_unknown_log_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Unknown log level"):
            Settings(
                _env_file=None,
                database_url="postgresql+asyncpg://test",
                LOG_LEVEL="chatty",
            )


class TestSystemIdentity:
    """Tests for the scheduled-task identity settings."""

    def test_system_roles_default_to_admin(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("SYSTEM_ROLES", raising=False)
        monkeypatch.delenv("SYSTEM_USER_ID", raising=False)
        settings = Settings(_env_file=None, database_url="postgresql+asyncpg://test")
        assert settings.system_roles == frozenset({"Admin"})
        assert settings.system_user_id is None

    def test_system_roles_parsed_from_comma_list(self) -> None:
        settings = Settings(
            _env_file=None,
            database_url="postgresql+asyncpg://test",
            SYSTEM_ROLES="Editor, Admin,",
            SYSTEM_USER_ID="3",
        )
        assert settings.system_roles == frozenset({"Editor", "Admin"})
        assert settings.system_user_id == 3


class TestDatabaseUrl:
    """Tests for database URL handling."""

    def test_is_sqlite(self) -> None:
        assert Settings(_env_file=None, database_url="sqlite+aiosqlite:///:memory:").is_sqlite
        assert not Settings(_env_file=None, database_url="postgresql+asyncpg://db/cms").is_sqlite

    def test_database_url_required(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("DATABASE_URL", raising=False)
        with pytest.raises(ValidationError):
            Settings(_env_file=None)

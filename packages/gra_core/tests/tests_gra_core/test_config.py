import pytest
from gra_core import GraSettings, dialect_from_url, gra_settings
from pydantic import ValidationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GRA_DEBUG", "GRA_ENVIRONMENT", "GRA_DATABASE_URL", "GRA_DB_DIALECT"):
        monkeypatch.delenv(name, raising=False)


class TestGraSettings:
    def test_default_development_state(self):
        """Verify that by default, settings are in development mode."""
        settings = GraSettings(_env_file=None)
        assert settings.DEBUG is True
        assert settings.ENVIRONMENT == "development"
        assert settings.DB_DIALECT is None
        assert settings.DB_ECHO is False
        assert settings.is_development() is True

    def test_is_development_logic(self):
        """Test the different combinations of DEBUG and ENVIRONMENT."""
        assert GraSettings(DEBUG=True, _env_file=None).is_development() is True
        assert (
            GraSettings(
                DEBUG=False, ENVIRONMENT="development", _env_file=None
            ).is_development()
            is True
        )
        assert (
            GraSettings(
                DEBUG=False, ENVIRONMENT="production", _env_file=None
            ).is_development()
            is False
        )

    def test_environment_variables_use_prefix(self, monkeypatch):
        monkeypatch.setenv("GRA_DATABASE_URL", "postgresql://localhost/app")
        monkeypatch.setenv("GRA_DB_DIALECT", "postgresql")

        settings = GraSettings(_env_file=None)
        assert settings.DATABASE_URL == "postgresql://localhost/app"
        assert settings.DB_DIALECT == "postgresql"

    def test_dialect_must_match_url(self):
        """Ensures a dialect contradicting the URL scheme is rejected."""
        with pytest.raises(ValidationError, match="does not match"):
            GraSettings(
                DATABASE_URL="sqlite+aiosqlite:///app.db",
                DB_DIALECT="mysql",
                _env_file=None,
            )

    def test_dialect_with_unknown_scheme_is_accepted(self):
        settings = GraSettings(
            DATABASE_URL="custom://host/db", DB_DIALECT="mysql", _env_file=None
        )
        assert settings.DB_DIALECT == "mysql"

    def test_unknown_dialect_is_rejected(self):
        with pytest.raises(ValidationError):
            GraSettings(DB_DIALECT="oracle", _env_file=None)

    def test_singleton_instance(self):
        assert isinstance(gra_settings, GraSettings)


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("sqlite+aiosqlite:///:memory:", "sqlite"),
        ("postgresql+asyncpg://localhost/app", "postgresql"),
        ("postgres://localhost/app", "postgresql"),
        ("mysql+aiomysql://localhost/app", "mysql"),
        ("MariaDB://localhost/app", "mysql"),
        ("oracle://localhost/app", None),
    ],
)
def test_dialect_from_url(url, expected):
    assert dialect_from_url(url) == expected

"""
Foundation settings for the gra packages.
"""

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DialectName = Literal["sqlite", "postgresql", "mysql"]

# URL scheme prefix -> dialect name understood by gra_db
_URL_DIALECTS: dict[str, DialectName] = {
    "sqlite": "sqlite",
    "postgresql": "postgresql",
    "postgres": "postgresql",
    "mysql": "mysql",
    "mariadb": "mysql",
}


def dialect_from_url(url: str) -> Optional[DialectName]:
    """
    Guess the dialect name from a database URL scheme.

    >>> dialect_from_url("postgresql+asyncpg://localhost/app")
    'postgresql'
    """
    scheme = url.split("://", 1)[0].split("+", 1)[0].lower()
    return _URL_DIALECTS.get(scheme)


class GraSettings(BaseSettings):
    """
    Core settings shared by gra_db and the applications built on it.

    Every field can be overridden by a ``GRA_``-prefixed environment variable
    or an entry in ``.env``.
    """

    model_config = SettingsConfigDict(
        env_prefix="GRA_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Basic Environment ---
    DEBUG: bool = True
    ENVIRONMENT: Literal["development", "staging", "production"] = "development"
    LOG_LEVEL: str = "INFO"

    # --- Database Core ---
    DATABASE_URL: Optional[str] = None
    # Explicit dialect; when unset the context probes the connection.
    DB_DIALECT: Optional[DialectName] = None
    DB_ECHO: bool = False

    @model_validator(mode="after")
    def validate_dialect(self) -> "GraSettings":
        """Rejects a DB_DIALECT that contradicts the DATABASE_URL scheme."""
        if self.DB_DIALECT and self.DATABASE_URL:
            guessed = dialect_from_url(self.DATABASE_URL)
            if guessed is not None and guessed != self.DB_DIALECT:
                raise ValueError(
                    f"DB_DIALECT={self.DB_DIALECT!r} does not match "
                    f"DATABASE_URL scheme ({guessed!r})."
                )
        return self

    def is_development(self) -> bool:
        return self.DEBUG or self.ENVIRONMENT == "development"


# Singleton instance for core use
gra_settings = GraSettings()

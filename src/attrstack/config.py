"""Configuration management for attrstack using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="ATTRSTACK_",
        extra="ignore",
    )

    # Persistence
    data_dir: Path = Field(
        default=Path("./data/attributes"),
        description="Root directory for YAML attribute snapshots",
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/attrstack.db",
        description="Database connection URL for the SQL snapshot store",
    )
    debug: bool = Field(default=False, description="Echo SQL statements")

    # Computation
    drift_epsilon: float = Field(
        default=1e-9,
        description="Smallest default-final change propagated into current baselines",
    )
    modifier_namespace: str = Field(
        default="attrstack",
        description="Owner prefix for modifier keys generated by attrstack itself",
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="console", description="Log format (console or json)")

    @property
    def entity_dir(self) -> Path:
        """Get the per-entity snapshot directory path."""
        return self.data_dir / "entities"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

"""Configuration management for eostore.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Configuration is loaded once and is
immutable during runtime; product classes declared here are registered on
top of the built-in ones when the registry is created.
"""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ATTRIBUTE_TYPE_NAMES = frozenset(
    {
        "string",
        "integer",
        "float",
        "boolean",
        "timestamp",
        "string_array",
        "geometry",
        "json",
        "binary",
    }
)


class ProductClassAttributeConfig(BaseModel):
    """A single attribute declared by a configured product class."""

    name: str
    type: str = "string"

    @field_validator("type")
    @classmethod
    def validate_type(cls, v: str) -> str:
        """Ensure the attribute type is one the catalog can map."""
        value = v.lower()
        if value not in ATTRIBUTE_TYPE_NAMES:
            raise ValueError(
                f"Unknown attribute type '{v}'. Valid: {', '.join(sorted(ATTRIBUTE_TYPE_NAMES))}"
            )
        return value


class ProductClassConfig(BaseModel):
    """A product class loaded from configuration."""

    name: str
    prefix: str
    namespace: str
    attributes: list[ProductClassAttributeConfig] = Field(default_factory=list)


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="EOSTORE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "eostore"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Database Settings
    database_url: str = "sqlite+aiosqlite:///./eo_data/eostore.db"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 30
    db_pool_recycle: int = 3600
    db_echo: bool = False

    # Catalog Settings
    namespace: str = "http://www.eostore.org/eo"
    product_classes: list[ProductClassConfig] = Field(default_factory=list)
    query_batch_size: int = Field(default=500, ge=1)

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_sqlite(self) -> bool:
        """Check if the configured store is SQLite."""
        return self.database_url.startswith("sqlite")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()

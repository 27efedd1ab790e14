"""Configuration settings for the dualstore data-access layer."""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Used when the configured page size is missing or not positive
FALLBACK_ITEMS_PER_PAGE = 15


class Settings(BaseSettings):
    """Settings loaded from ``DUALSTORE_*`` environment variables."""

    # Repositories
    default_items_per_page: int = FALLBACK_ITEMS_PER_PAGE

    # Repository caching
    repository_cache_enabled: bool = True
    repository_cache_ttl: int = Field(default=3600, ge=0)  # seconds
    repository_cache_prefix: str = "arch_repo"
    cache_store: str = "memory"
    redis_url: Optional[str] = None

    # Relational backend
    database_url: str = "sqlite:///dualstore.db"
    database_echo: bool = False

    # Wide-column backend
    dynamodb_region: str = "us-east-1"
    dynamodb_endpoint_url: Optional[str] = None

    model_config = SettingsConfigDict(
        env_prefix="DUALSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def resolve_items_per_page(self, items_per_page: Optional[int] = None) -> int:
        """Pick the page size for a query.

        An explicit positive value wins, then the configured default, then
        the built-in fallback.
        """
        if items_per_page is not None and items_per_page > 0:
            return items_per_page
        if self.default_items_per_page > 0:
            return self.default_items_per_page
        return FALLBACK_ITEMS_PER_PAGE


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

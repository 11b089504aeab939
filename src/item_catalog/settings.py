"""
item_catalog.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., the Axiom ingest token).
- Resolve remote-logging fallbacks once, at process start.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATASET = "default"


class Settings(BaseSettings):
    """
    Single settings object, built once and passed into `create_app`.
    """

    model_config = SettingsConfigDict(env_prefix="ITEMS_", case_sensitive=False)

    # Stamped on every log record as `environment`; also toggles auto-init of DB tables.
    env: Literal["development", "test", "production"] = "development"
    service_name: str = "item-catalog"
    log_level: str = "DEBUG"

    api_host: str = "0.0.0.0"
    api_port: int = 8080

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./items.db"
    slow_query_ms: int = 1000

    # Remote log ingestion (Axiom)
    axiom_token: str | None = Field(default=None, repr=False)
    axiom_dataset: str | None = None
    axiom_url: str = "https://api.axiom.co"
    axiom_batch_size: int = 100
    axiom_flush_interval: float = 1.0

    @property
    def remote_logging_enabled(self) -> bool:
        return bool(self.axiom_token)

    @property
    def dataset_name(self) -> str:
        return self.axiom_dataset or DEFAULT_DATASET


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars when the entrypoint asks more than once.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Settings are injected explicitly (create_app(settings=...)); nothing below the
# composition root reads the environment on its own.

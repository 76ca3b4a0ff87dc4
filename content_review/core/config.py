from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CRP_", env_file=".env", extra="ignore")

    # Paths
    repo_root: str = "."
    logs_dir: str = "logs"

    # stores/
    sqlite_path: str = "artifacts/stores/review_store.sqlite"

    # Logging
    log_path: str = "logs/review_api.jsonl"

    # Thresholds (decision logic)
    bfs_pass_threshold: float = 0.8

    # Store access
    store_timeout_s: float = 5.0
    queue_limit: int = 200
    aggregator_max_brands: int = 50

    # Policy toggles
    auto_approve_enabled: bool = False
    allow_approve_failed_generation: bool = False

    # HTTP client (content_review.client)
    api_base: str = "http://localhost:8000"
    api_timeout_s: float = 10.0
    api_max_retries: int = 3
    api_backoff_s: float = 0.5

    # --- derived helpers ---
    def root_path(self) -> Path:
        return Path(self.repo_root).resolve()

    def logs_path(self) -> Path:
        return (self.root_path() / self.logs_dir).resolve()

    def abs_log_path(self) -> Path:
        return (self.root_path() / self.log_path).resolve()

    def abs_sqlite_path(self) -> Path:
        return (self.root_path() / self.sqlite_path).resolve()


@lru_cache
def get_settings() -> Settings:
    return Settings()

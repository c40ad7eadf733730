from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Target registry (absolute or relative to CWD)
    targets_file: str = "targets.yaml"

    # Probing
    probe_timeout_ms: int = 8_000

    # Freshness: the verdict lives one check interval, results several
    fresh_ttl_seconds: int = 300
    result_ttl_multiplier: int = 3

    # Scheduler
    check_interval_seconds: int = 300
    scheduler_enabled: bool = True
    run_on_start: bool = True

    # Key-value store
    store_backend: str = "sqlite"  # "sqlite" | "memory"
    store_path: str = "data/status.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_allow_origin: str = "*"  # set to the status page domain for stricter CORS
    status_cache_max_age: int = 20

    # Logging
    log_level: str = "INFO"

    @property
    def result_ttl_seconds(self) -> int:
        return self.fresh_ttl_seconds * self.result_ttl_multiplier


settings = Settings()

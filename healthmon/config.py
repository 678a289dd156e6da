from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Central configuration loaded from environment / .env file."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # Scheduling
    poll_interval_seconds: float = 60.0
    probe_timeout_ms: int = 20_000
    max_concurrent_probes: int = 16
    user_agent: str = "healthmon/0.1"

    # Targets registered at startup
    seed_urls: str = ""  # comma-separated
    seed_file: str = ""  # YAML: targets: [url, ...]

    # Storage
    database_url: str = "sqlite:///data/healthmon.db"

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    status_limit: int = 50  # rows returned by /api/status/{id}

    # Logging
    log_level: str = "INFO"

    @property
    def probe_timeout(self) -> float:
        return self.probe_timeout_ms / 1000


settings = Settings()

"""Application settings loaded from environment variables via pydantic-settings.

Values come from (highest priority first) environment variables, the
project-root ``.env`` file, then the defaults below.  Field names map to
upper-cased env vars: ``llm_limit_daily_free`` reads ``LLM_LIMIT_DAILY_FREE``.
"""

from __future__ import annotations

import re

from pydantic_settings import BaseSettings, SettingsConfigDict

from lectern.utils.errors import ConfigurationError

_WINDOW_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d)\s*$")
_WINDOW_UNIT_SECONDS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_window(window: str) -> float:
    """Convert a window string such as ``"60 s"`` or ``"10m"`` into seconds."""
    match = _WINDOW_RE.match(window)
    if match is None:
        raise ConfigurationError(f"Invalid rate limit window: {window!r}")
    amount, unit = match.groups()
    return int(amount) * _WINDOW_UNIT_SECONDS[unit]


class Settings(BaseSettings):
    """Lectern application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === LLM Providers ===
    # Empty string = "not configured"; main.py skips providers without keys.
    openai_api_key: str = ""
    openai_base_url: str = ""
    openai_text_model: str = ""
    openai_embedding_model: str = ""
    anthropic_api_key: str = ""
    anthropic_model: str = ""
    llm_timeout_seconds: float = 120.0

    # === Storage ===
    database_path: str = "data/lectern.db"
    # Empty = in-process counters (single worker only).
    redis_url: str = ""

    # === Quota ===
    enable_ratelimit: bool = False
    llm_limit_daily_free: int = 3
    llm_limit_daily_pro: int = 30
    rate_limit_llm_free_requests: int = 3
    rate_limit_llm_free_window: str = "60 s"
    rate_limit_llm_pro_requests: int = 60
    rate_limit_llm_pro_window: str = "60 s"
    max_file_size_mb: int = 10

    # === Cache ===
    cache_ttl_courses: int = 600
    cache_ttl_universities: int = 1800

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @property
    def quota_enforced(self) -> bool:
        """Quotas always apply in production; elsewhere only when opted in."""
        return self.app_env == "production" or self.enable_ratelimit

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.openai_api_key:
            providers.append("openai")
        if self.anthropic_api_key:
            providers.append("anthropic")
        return providers

"""YAML configuration loader with environment variable overrides.

Configuration is layered (later layers win):

  1. config/config.yaml  -- pipeline tunables checked into the repo
  2. .env file           -- local developer overrides
  3. Environment vars    -- deployment overrides

Secrets and quota limits live in :class:`Settings`; the YAML file carries
knobs that are not environment specific (batch size, stream buffer,
extraction token budget, cache size).
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from lectern.config.settings import Settings

_DEFAULTS: dict[str, Any] = {
    "pipeline": {
        "persist_batch_size": 3,
        "stream_buffer_size": 64,
    },
    "extraction": {
        "max_tokens": 8192,
    },
    "cache": {
        "max_size": 1000,
    },
}


def load_config(path: str = "config/config.yaml", settings: Settings | None = None) -> dict:
    """Load YAML config and merge with environment-based Settings.

    Args:
        path: Path to the YAML configuration file.  A missing file falls
              back to built-in defaults.
        settings: Pre-built settings; a fresh :class:`Settings` is read
                  from the environment when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config: dict[str, Any] = {}
    _deep_merge(config, _copy(_DEFAULTS))

    config_path = Path(path)
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
        _deep_merge(config, yaml_config)

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "llm": {
            "available_providers": settings.get_available_llm_providers(),
        },
        "quota": {
            "enforced": settings.quota_enforced,
            "backend": "redis" if settings.redis_url else "memory",
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(config, env_overrides)
    return config


def _copy(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _copy(v) for k, v in value.items()}
    return value


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

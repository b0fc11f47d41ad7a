"""Configuration module -- exports Settings, load_config and parse_window."""

from lectern.config.loader import load_config
from lectern.config.settings import Settings, parse_window

__all__ = ["Settings", "load_config", "parse_window"]

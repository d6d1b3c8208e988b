"""Utilities package for the juice production planning application."""

from .config import Config, get_config, get_message, reset_config, set_config
from .datetime_utils import parse_production_date, utc_now

__all__ = [
    "Config",
    "get_config",
    "get_message",
    "reset_config",
    "set_config",
    "parse_production_date",
    "utc_now",
]

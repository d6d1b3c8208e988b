"""
Runtime settings for the juice production planner.

Settings come from constructor arguments, then JUICEPLAN_* environment
variables, then defaults:

- JUICEPLAN_ENV: "production" (per-user data dir) or "development"
  (project data/ dir)
- JUICEPLAN_DATABASE_URL: overrides the SQLite file
- JUICEPLAN_LOCALE: "en" or "th" for operator-facing messages
- JUICEPLAN_STRICT_ALLOCATION: refuse executions inventory cannot cover
- JUICEPLAN_EXECUTION_RETRIES: attempts for an execution that hits a
  concurrent inventory change
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .constants import DATABASE_FILENAME, DEFAULT_LOCALE, MESSAGES

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


class Config:
    """Settings for one process: storage locations, locale and execution policy."""

    def __init__(
        self,
        environment: str = "production",
        base_dir: Optional[Path] = None,
        locale: Optional[str] = None,
        strict_material_allocation: Optional[bool] = None,
        execution_retry_attempts: Optional[int] = None,
    ):
        """
        Args:
            environment: 'production' or 'development'; picks the default
                data directory
            base_dir: Data directory override (database file and images)
            locale: Message locale; unsupported values fall back to English
            strict_material_allocation: Fail executions whose reported usage
                exceeds available inventory
            execution_retry_attempts: Attempts per execution, at least 1
        """
        self.environment = environment

        if base_dir is not None:
            self._base_dir = Path(base_dir)
        elif environment == "development":
            self._base_dir = Path(__file__).parent.parent.parent / "data"
        else:
            self._base_dir = Path.home() / ".juiceplan"

        self._database_path = self._base_dir / DATABASE_FILENAME
        self._image_dir = self._base_dir / "images"

        locale = locale or os.environ.get("JUICEPLAN_LOCALE", DEFAULT_LOCALE)
        if locale not in MESSAGES:
            logger.warning(f"No messages for locale '{locale}', using '{DEFAULT_LOCALE}'")
            locale = DEFAULT_LOCALE
        self.locale = locale

        if strict_material_allocation is None:
            strict_material_allocation = (
                os.environ.get("JUICEPLAN_STRICT_ALLOCATION", "").lower() in _TRUE_VALUES
            )
        self.strict_material_allocation = strict_material_allocation

        if execution_retry_attempts is None:
            execution_retry_attempts = int(os.environ.get("JUICEPLAN_EXECUTION_RETRIES", "3"))
        self.execution_retry_attempts = max(1, execution_retry_attempts)

    def ensure_directories(self) -> None:
        """Create the data and image directories."""
        self._base_dir.mkdir(parents=True, exist_ok=True)
        self._image_dir.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._database_path

    @property
    def database_url(self) -> str:
        override = os.environ.get("JUICEPLAN_DATABASE_URL")
        if override:
            return override
        return "sqlite:///" + self._database_path.as_posix()

    @property
    def image_dir(self) -> Path:
        """Root directory for uploaded quality-test photos."""
        return self._image_dir

    def database_exists(self) -> bool:
        return self._database_path.exists()

    def message(self, key: str, **params) -> str:
        """
        Operator-facing message in this configuration's locale.

        Missing translations fall back to English, unknown keys to the key.
        """
        catalog = MESSAGES.get(self.locale, MESSAGES[DEFAULT_LOCALE])
        template = catalog.get(key) or MESSAGES[DEFAULT_LOCALE].get(key, key)
        return template.format(**params)

    def __repr__(self) -> str:
        return (
            f"Config(environment={self.environment!r}, "
            f"database_path='{self._database_path}', locale={self.locale!r})"
        )


_config_instance: Optional[Config] = None


def get_config(environment: Optional[str] = None) -> Config:
    """
    Process-wide configuration, created on first call.

    The environment only matters for that first call. A later call asking
    for a different environment gets the existing instance and a warning,
    so the active database never changes underneath open sessions.
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = Config(environment or os.environ.get("JUICEPLAN_ENV", "production"))
    elif environment is not None and environment != _config_instance.environment:
        logger.warning(
            f"Ignoring environment={environment!r}; configuration already "
            f"initialized for {_config_instance.environment!r}"
        )
    return _config_instance


def set_config(config: Config) -> None:
    """Install a configuration instance (tests, embedding applications)."""
    global _config_instance
    _config_instance = config


def reset_config() -> None:
    """Forget the configuration; the next get_config() builds a new one."""
    global _config_instance
    _config_instance = None


def get_message(key: str, **params) -> str:
    """Localized message using the global configuration's locale."""
    return get_config().message(key, **params)

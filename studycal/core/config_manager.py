"""Configuration management for studycal."""

from __future__ import annotations

import logging
import os
from datetime import time
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from .datetime_utils import resolve_zone
from .exceptions import ConfigError

logger = logging.getLogger(__name__)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}

    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", str(path), exc_info=True)
        return result

    for raw_line in content.splitlines():
        line = raw_line.strip()

        if not line or line.startswith("#"):
            continue

        if "=" not in line:
            continue

        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip().strip('"').strip("'")

        if key:
            result[key] = val

    return result


class EngineSettings(BaseModel):
    """Settings for document generation and expansion limits."""

    calendar_name: str = Field(default="StudyCal Calendar", description="X-WR-CALNAME")
    prodid: str = Field(default="-//StudyCal//Calendar Export//EN", description="PRODID")
    timezone: str = Field(default="UTC", description="Export zone, IANA name")
    uid_domain: str = Field(default="studycal.app", description="Right-hand side of event UIDs")
    default_start_time: time = Field(default=time(9, 0), description="Class start when unset")
    default_end_time: time = Field(default=time(10, 0), description="Class end when unset")
    default_color: str = Field(default="#3b82f6", description="Color for imported entries")
    max_instances: int = Field(default=100, ge=1)
    max_instances_per_task: int = Field(default=50, ge=1)

    @field_validator("timezone")
    @classmethod
    def _known_zone(cls, value: str) -> str:
        if resolve_zone(value) is None:
            raise ValueError(f"Unknown timezone: {value!r}")
        return value


# Environment variable -> settings field
_ENV_KEYS: dict[str, str] = {
    "STUDYCAL_CALENDAR_NAME": "calendar_name",
    "STUDYCAL_PRODID": "prodid",
    "STUDYCAL_TIMEZONE": "timezone",
    "STUDYCAL_UID_DOMAIN": "uid_domain",
    "STUDYCAL_MAX_INSTANCES": "max_instances",
    "STUDYCAL_MAX_INSTANCES_PER_TASK": "max_instances_per_task",
}


class ConfigManager:
    """Manages engine configuration from environment variables and .env files."""

    def __init__(self, env_file_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Load .env file and set environment variables.

        Only sets variables that are not already in the environment.

        Returns:
            List of environment variable keys that were loaded from .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        parsed = parse_env_file(self.env_file_path)

        set_keys = []
        for key, val in parsed.items():
            if key not in os.environ:
                os.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))

        return set_keys

    def build_config_from_env(self) -> dict[str, Any]:
        """Build configuration dictionary from STUDYCAL_* environment variables.

        Values that fail validation are logged and ignored so one bad variable
        does not discard the rest.
        """
        cfg: dict[str, Any] = {}

        for env_key, field in _ENV_KEYS.items():
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                EngineSettings.model_validate({field: raw})
            except ValidationError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)
                continue
            cfg[field] = raw

        return cfg

    def load_settings(self) -> EngineSettings:
        """Load .env file and build settings from the environment.

        This is the main entry point for loading configuration.

        Raises:
            ConfigError: If the combined values do not form valid settings
        """
        self.load_env_file()
        cfg = self.build_config_from_env()
        try:
            return EngineSettings.model_validate(cfg)
        except ValidationError as e:
            raise ConfigError(f"Invalid studycal configuration: {e}") from e


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Get configuration value supporting both dict and attribute-style objects.

    Args:
        config: Configuration object (dict or object with attributes)
        key: Configuration key to retrieve
        default: Default value if key not found

    Returns:
        Configuration value or default
    """
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)

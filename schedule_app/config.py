"""
Configuration loader for the Schedule Import service.

Loads settings from schedule_config.yaml and provides typed access
to all configuration sections.
"""
import os
from pathlib import Path
from typing import Any, Optional
from functools import lru_cache

import yaml


# Default config path relative to project root
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "schedule_config.yaml"

DATABASE_URL_ENV = "SCHEDULE_DATABASE_URL"


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""
    pass


class ScheduleConfig:
    """
    Configuration manager for the Schedule Import service.

    Use get_config() to obtain the singleton instance.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
        self._config: dict = {}
        self._load()

    def _load(self) -> None:
        """Load configuration from YAML file."""
        if not self._config_path.exists():
            raise ConfigurationError(f"Config file not found: {self._config_path}")

        try:
            with open(self._config_path, 'r') as f:
                self._config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}")

        if not isinstance(self._config, dict):
            raise ConfigurationError("Config file must contain a YAML mapping")

    def reload(self) -> None:
        """Reload configuration from disk."""
        self._load()
        get_config.cache_clear()

    @property
    def version(self) -> str:
        return self._config.get("version", "unknown")

    # =========================================================================
    # Database
    # =========================================================================

    @property
    def database_url(self) -> str:
        """Database URL; the environment variable wins over the file."""
        env_url = os.environ.get(DATABASE_URL_ENV)
        if env_url:
            return env_url
        return self._config.get("database", {}).get("url", "sqlite:///./schedule.db")

    # =========================================================================
    # XER Reading
    # =========================================================================

    @property
    def xer(self) -> dict:
        return self._config.get("xer", {})

    @property
    def xer_encoding(self) -> str:
        return self.xer.get("encoding", "utf-8-sig")

    @property
    def xer_require_header(self) -> bool:
        return bool(self.xer.get("require_header", True))

    # =========================================================================
    # Calendars
    # =========================================================================

    @property
    def calendar(self) -> dict:
        return self._config.get("calendar", {})

    @property
    def default_working_weekdays(self) -> list[int]:
        """Python weekday numbers (0 = Monday) worked by the fallback calendar."""
        days = self.calendar.get("default_working_weekdays", [0, 1, 2, 3, 4])
        invalid = [d for d in days if not isinstance(d, int) or d < 0 or d > 6]
        if invalid or not days:
            raise ConfigurationError(f"Invalid default_working_weekdays: {days}")
        return list(days)

    @property
    def default_hours_per_day(self) -> float:
        return float(self.calendar.get("default_hours_per_day", 8))

    # =========================================================================
    # Critical Path
    # =========================================================================

    @property
    def cpm(self) -> dict:
        return self._config.get("cpm", {})

    @property
    def critical_float_threshold(self) -> int:
        return int(self.cpm.get("critical_float_threshold", 0))

    @property
    def honor_target_finish(self) -> bool:
        return bool(self.cpm.get("honor_target_finish", False))

    # =========================================================================
    # Import
    # =========================================================================

    @property
    def import_settings(self) -> dict:
        return self._config.get("import", {})

    @property
    def allowed_extensions(self) -> list[str]:
        return [ext.lower() for ext in self.import_settings.get("allowed_extensions", [".xer"])]

    @property
    def max_file_size_bytes(self) -> int:
        return int(float(self.import_settings.get("max_file_size_mb", 50)) * 1024 * 1024)

    @property
    def max_warnings(self) -> int:
        return int(self.import_settings.get("max_warnings", 100))

    # =========================================================================
    # Logging
    # =========================================================================

    @property
    def logging(self) -> dict:
        return self._config.get("logging", {})

    @property
    def log_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    @property
    def log_format(self) -> str:
        return self.logging.get("format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    # =========================================================================
    # Generic Access
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a config value by dot-separated key path.

        Args:
            key: Dot-separated path (e.g., 'cpm.critical_float_threshold')
            default: Default value if key not found
        """
        value = self._config
        for part in key.split("."):
            if isinstance(value, dict):
                value = value.get(part)
            else:
                return default
            if value is None:
                return default
        return value

    def __getitem__(self, key: str) -> Any:
        return self._config[key]

    def __contains__(self, key: str) -> bool:
        return key in self._config


@lru_cache(maxsize=1)
def get_config(config_path: Optional[str] = None) -> ScheduleConfig:
    """
    Get the singleton configuration instance.

    Args:
        config_path: Optional path to config file (only used on first call)

    Returns:
        ScheduleConfig instance
    """
    path = Path(config_path) if config_path else None
    return ScheduleConfig(path)


def reload_config() -> ScheduleConfig:
    """Force reload configuration from disk."""
    get_config.cache_clear()
    return get_config()

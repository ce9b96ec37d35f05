# ============================================================================
# MineSafe - Configuration Management
# ============================================================================
# Typed configuration with defaults, overridable through MINESAFE_<KEY>
# environment variables. All site times use the configured timezone
# (Africa/Johannesburg by default).
# ============================================================================

import json
import logging
import os
from datetime import date, datetime
from typing import Any, Dict, Optional, Union
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

SITE_TZ = ZoneInfo("Africa/Johannesburg")
ENV_PREFIX = "MINESAFE_"

TS_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"

# key -> (default, value_type, category)
DEFAULT_CONFIG = {
    # General
    "timezone": ("Africa/Johannesburg", "string", "general"),
    "log_level": ("INFO", "string", "general"),

    # Storage
    "db_path": ("minesafe.db", "string", "storage"),

    # Scheduler
    "scheduler_enabled": (False, "bool", "scheduler"),
    "sweep_minute": (0, "int", "scheduler"),
    "daily_report_time": ("06:00", "string", "scheduler"),
    "weekly_summary_day": ("mon", "string", "scheduler"),
    "weekly_summary_time": ("08:00", "string", "scheduler"),
    "misfire_grace_seconds": (300, "int", "scheduler"),

    # Analytics
    "safety_score_window_days": (30, "int", "analytics"),
    "list_default_limit": (20, "int", "analytics"),
}


class SafetyConfig:
    """
    Process-wide configuration manager.

    Values resolve in order: explicit set_config() override, MINESAFE_<KEY>
    environment variable, DEFAULT_CONFIG default.
    """

    _overrides: Dict[str, Any] = {}

    @classmethod
    def _cast_value(cls, value: str, value_type: str) -> Any:
        """Cast string value to appropriate type."""
        if value is None:
            return None
        if value_type == "bool":
            return value.lower() in ("true", "1", "yes", "on")
        if value_type == "int":
            try:
                return int(value)
            except ValueError:
                logger.warning(f"[Config] Ignoring non-integer value {value!r}")
                return None
        if value_type == "json":
            try:
                return json.loads(value)
            except ValueError:
                logger.warning(f"[Config] Ignoring invalid JSON value {value!r}")
                return None
        return value

    @classmethod
    def get(cls, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        if key in cls._overrides:
            return cls._overrides[key]

        entry = DEFAULT_CONFIG.get(key)
        raw = os.environ.get(ENV_PREFIX + key.upper())
        if raw is not None:
            value_type = entry[1] if entry else "string"
            value = cls._cast_value(raw, value_type)
            if value is not None:
                return value

        if entry is not None:
            return entry[0]
        return default

    @classmethod
    def set(cls, key: str, value: Any) -> bool:
        """Override a configuration value for this process."""
        old_value = cls.get(key)
        cls._overrides[key] = value
        if old_value != value:
            logger.info(f"[Config] {key} changed: {old_value!r} -> {value!r}")
        return True

    @classmethod
    def get_all(cls, category: str = None) -> Dict[str, Any]:
        """Get all configuration values, optionally filtered by category."""
        return {
            key: cls.get(key)
            for key, (_, _, cat) in DEFAULT_CONFIG.items()
            if category is None or cat == category
        }

    @classmethod
    def reset(cls):
        cls._overrides = {}


def get_config(key: str, default: Any = None) -> Any:
    """Get a configuration value."""
    return SafetyConfig.get(key, default)


def set_config(key: str, value: Any) -> bool:
    """Set a configuration value."""
    return SafetyConfig.set(key, value)


# ============================================================================
# Timezone Helpers
# ============================================================================

def get_timezone():
    """Get the configured timezone object."""
    tz_name = get_config("timezone", "Africa/Johannesburg")
    try:
        return ZoneInfo(tz_name)
    except (KeyError, ValueError):
        logger.warning(f"[Config] Unknown timezone {tz_name!r}, using {SITE_TZ.key}")
        return SITE_TZ


def get_local_now() -> datetime:
    """Current site-local wall-clock time (naive, second precision)."""
    return datetime.now(get_timezone()).replace(tzinfo=None, microsecond=0)


def format_ts(dt: datetime) -> str:
    """Format a datetime the way records store it."""
    if dt.tzinfo is not None:
        dt = dt.astimezone(get_timezone()).replace(tzinfo=None)
    return dt.strftime(TS_FORMAT)


def parse_ts(value: Union[str, datetime, date, None]) -> Optional[datetime]:
    """Parse a stored timestamp (or ISO-8601 input) into a naive site-local datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(get_timezone()).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return parse_ts(datetime.fromisoformat(text))
    except ValueError:
        raise ValueError(f"Unrecognised timestamp: {value!r}")


def to_ts(value: Union[str, datetime, date, None]) -> Optional[str]:
    """Normalise any accepted timestamp input to the stored string form."""
    dt = parse_ts(value)
    return format_ts(dt) if dt is not None else None


def format_date(value: Union[datetime, date]) -> str:
    return value.strftime(DATE_FORMAT)


def parse_time_input(time_str: str) -> tuple:
    """Parse a time string like '06:00' into (hour, minute)."""
    try:
        parts = time_str.split(":")
        return (int(parts[0]), int(parts[1]))
    except (AttributeError, IndexError, ValueError):
        logger.warning(f"[Config] Invalid time {time_str!r}, using 06:00")
        return (6, 0)

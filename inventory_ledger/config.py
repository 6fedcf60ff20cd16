"""
Configuration for the inventory ledger.

Responsibility:
    Provides the ONLY way to obtain runtime settings through
    ``load_settings()``.  Services receive a ``LedgerSettings`` instance by
    injection and never read files or environment variables themselves.

Sources, lowest precedence first:
    1. ``defaults.yaml`` shipped inside the package.
    2. An optional YAML file (argument, or ``INVENTORY_LEDGER_CONFIG``).
    3. Environment variables:
         INVENTORY_LEDGER_DATABASE_URL
         INVENTORY_LEDGER_LOG_LEVEL
         INVENTORY_LEDGER_LOCK_TIMEOUT

Failure modes:
    - ``ConfigurationError`` for unreadable YAML, unknown sections or
      out-of-range values.
    - ``FileNotFoundError`` propagates when an explicit file is missing.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from inventory_ledger.exceptions import ConfigurationError
from inventory_ledger.logging_config import get_logger

logger = get_logger("config")

_DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_CONFIG_PATH = "INVENTORY_LEDGER_CONFIG"
ENV_DATABASE_URL = "INVENTORY_LEDGER_DATABASE_URL"
ENV_LOG_LEVEL = "INVENTORY_LEDGER_LOG_LEVEL"
ENV_LOCK_TIMEOUT = "INVENTORY_LEDGER_LOCK_TIMEOUT"

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


@dataclass(frozen=True)
class LedgerSettings:
    """Resolved, validated settings. Immutable once loaded."""

    database_url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout_seconds: float = 30
    lock_timeout_seconds: float = 10
    sqlite_busy_timeout_seconds: float = 30

    facility_name: str = "Main Production Facility"
    facility_code: str = "MAIN-001"
    main_location_name: str = "Main Inventory"
    line_location_name: str = "Line Inventory"

    default_min_stock_level: int = 5
    recent_activity_limit: int = 10

    event_queue_size: int = 400
    event_history_size: int = 2000

    log_level: str = "INFO"

    def with_database_url(self, database_url: str) -> LedgerSettings:
        """Return a copy pointing at another database."""
        return replace(self, database_url=database_url)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        ConfigurationError: if the file is not valid YAML or not a mapping.
    """
    with open(path, encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def _merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigurationError(name, "section must be a mapping")
    return value


def _positive_number(key: str, value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ConfigurationError(key, f"must be a positive number, got {value!r}")
    return value


def _non_negative_int(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ConfigurationError(key, f"must be a non-negative integer, got {value!r}")
    return value


def _settings_from_dict(raw: dict[str, Any]) -> LedgerSettings:
    known = {"database", "locations", "inventory", "notifications", "logging"}
    unknown = set(raw) - known
    if unknown:
        raise ConfigurationError(", ".join(sorted(unknown)), "unknown section")

    database = _section(raw, "database")
    locations = _section(raw, "locations")
    inventory = _section(raw, "inventory")
    notifications = _section(raw, "notifications")
    logging_section = _section(raw, "logging")

    url = database.get("url")
    if not isinstance(url, str) or not url:
        raise ConfigurationError("database.url", "must be a non-empty string")

    main_name = locations.get("main", "Main Inventory")
    line_name = locations.get("line", "Line Inventory")
    if main_name == line_name:
        raise ConfigurationError(
            "locations", "main and line locations must have different names"
        )

    log_level = str(logging_section.get("level", "INFO")).upper()
    if log_level not in _VALID_LOG_LEVELS:
        raise ConfigurationError("logging.level", f"unknown level {log_level!r}")

    return LedgerSettings(
        database_url=url,
        echo=bool(database.get("echo", False)),
        pool_size=int(_positive_number("database.pool_size", database.get("pool_size", 20))),
        max_overflow=_non_negative_int(
            "database.max_overflow", database.get("max_overflow", 10)
        ),
        pool_timeout_seconds=_positive_number(
            "database.pool_timeout_seconds", database.get("pool_timeout_seconds", 30)
        ),
        lock_timeout_seconds=_positive_number(
            "database.lock_timeout_seconds", database.get("lock_timeout_seconds", 10)
        ),
        sqlite_busy_timeout_seconds=_positive_number(
            "database.sqlite_busy_timeout_seconds",
            database.get("sqlite_busy_timeout_seconds", 30),
        ),
        facility_name=locations.get("facility_name", "Main Production Facility"),
        facility_code=locations.get("facility_code", "MAIN-001"),
        main_location_name=main_name,
        line_location_name=line_name,
        default_min_stock_level=_non_negative_int(
            "inventory.default_min_stock_level",
            inventory.get("default_min_stock_level", 5),
        ),
        recent_activity_limit=int(_positive_number(
            "inventory.recent_activity_limit",
            inventory.get("recent_activity_limit", 10),
        )),
        event_queue_size=int(_positive_number(
            "notifications.queue_size", notifications.get("queue_size", 400)
        )),
        event_history_size=int(_positive_number(
            "notifications.history_size", notifications.get("history_size", 2000)
        )),
        log_level=log_level,
    )


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if env.get(ENV_DATABASE_URL):
        overrides.setdefault("database", {})["url"] = env[ENV_DATABASE_URL]
    if env.get(ENV_LOCK_TIMEOUT):
        try:
            timeout = float(env[ENV_LOCK_TIMEOUT])
        except ValueError as exc:
            raise ConfigurationError(ENV_LOCK_TIMEOUT, "must be a number") from exc
        overrides.setdefault("database", {})["lock_timeout_seconds"] = timeout
    if env.get(ENV_LOG_LEVEL):
        overrides.setdefault("logging", {})["level"] = env[ENV_LOG_LEVEL]
    return overrides


def load_settings(
    path: Path | str | None = None,
    env: Mapping[str, str] | None = None,
) -> LedgerSettings:
    """
    Load settings from the packaged defaults, an optional YAML file and
    the environment.

    Args:
        path: Optional YAML file overriding the defaults.  When omitted,
            ``INVENTORY_LEDGER_CONFIG`` is consulted.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated ``LedgerSettings``.
    """
    env = os.environ if env is None else env
    raw = load_yaml_file(_DEFAULTS_PATH)

    override_path = path if path is not None else env.get(ENV_CONFIG_PATH)
    if override_path:
        raw = _merge(raw, load_yaml_file(Path(override_path)))

    raw = _merge(raw, _env_overrides(env))
    settings = _settings_from_dict(raw)

    logger.debug(
        "settings_loaded",
        extra={
            "config_path": str(override_path) if override_path else None,
            "main_location": settings.main_location_name,
            "line_location": settings.line_location_name,
        },
    )
    return settings

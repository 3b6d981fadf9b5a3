"""
Configuration Loader (``ndis_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``ndis_config.schema`` types.  Runtime callers go through
``ndis_config.get_active_config()``.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required fields (``database.url``).
* ``compute_checksum`` is a deterministic SHA-256 over canonical JSON.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from ndis_config.schema import DatabaseConfig, LedgerConfig, LedgerSettings, LoggingConfig

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    """Parse the ``database`` section.  ``url`` is required."""
    url = url_override or data.get("url")
    if not url:
        raise KeyError("database.url is required (or set DATABASE_URL)")
    config = DatabaseConfig(
        url=str(url),
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
        pool_timeout=int(data.get("pool_timeout", 30)),
        pool_recycle=int(data.get("pool_recycle", 1800)),
        statement_timeout_ms=int(data.get("statement_timeout_ms", 30000)),
    )
    if config.pool_size < 1:
        raise ValueError(f"database.pool_size must be >= 1, got {config.pool_size}")
    if config.max_overflow < 0:
        raise ValueError(f"database.max_overflow must be >= 0, got {config.max_overflow}")
    if config.statement_timeout_ms <= 0:
        raise ValueError(
            f"database.statement_timeout_ms must be > 0, got {config.statement_timeout_ms}"
        )
    return config


def parse_ledger_settings(data: dict[str, Any]) -> LedgerSettings:
    """
    Parse the ``ledger`` section.

    Raises:
        ValueError: if max_shift_hours is not a positive number, the
            timezone is unknown, or system_actor_id is not a UUID.
    """
    raw_hours = data.get("max_shift_hours", "24")
    try:
        max_hours = Decimal(str(raw_hours))
    except InvalidOperation as exc:
        raise ValueError(f"ledger.max_shift_hours is not a number: {raw_hours!r}") from exc
    if not max_hours.is_finite() or max_hours <= 0:
        raise ValueError(f"ledger.max_shift_hours must be > 0, got {raw_hours!r}")

    timezone = str(data.get("default_timezone", "Australia/Sydney"))
    try:
        ZoneInfo(timezone)
    except ZoneInfoNotFoundError as exc:
        raise ValueError(f"ledger.default_timezone is unknown: {timezone!r}") from exc

    actor = str(data.get("system_actor_id", "00000000-0000-0000-0000-000000000001"))
    UUID(actor)

    return LedgerSettings(
        max_shift_hours=max_hours,
        default_ratio=str(data.get("default_ratio", "1:1")),
        default_timezone=timezone,
        system_actor_id=actor,
        derived_rate_enabled=bool(data.get("derived_rate_enabled", False)),
        default_company_id=str(data.get("default_company_id", "default-company")),
    )


def parse_logging(data: dict[str, Any]) -> LoggingConfig:
    level = str(data.get("level", "INFO")).upper()
    if level not in _LOG_LEVELS:
        raise ValueError(f"logging.level must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
    return LoggingConfig(level=level)


def parse_config(data: dict[str, Any], database_url: str | None = None) -> LedgerConfig:
    """Parse a whole configuration document into a ``LedgerConfig``."""
    return LedgerConfig(
        config_id=str(data.get("config_id", "unnamed")),
        version=int(data.get("version", 1)),
        database=parse_database(data.get("database") or {}, url_override=database_url),
        ledger=parse_ledger_settings(data.get("ledger") or {}),
        logging=parse_logging(data.get("logging") or {}),
        checksum=compute_checksum(data),
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

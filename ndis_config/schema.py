"""
LedgerConfig schema.

Typed, frozen view of a configuration set.  YAML is parsed into these
types by the loader; ``ndis_config.bridges`` turns them into kernel
inputs.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection and pool settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    statement_timeout_ms: int = 30000


# ---------------------------------------------------------------------------
# Ledger behaviour
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerSettings:
    max_shift_hours: Decimal = Decimal("24")
    default_ratio: str = "1:1"
    default_timezone: str = "Australia/Sydney"
    system_actor_id: str = "00000000-0000-0000-0000-000000000001"
    derived_rate_enabled: bool = False
    default_company_id: str = "default-company"


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LedgerConfig:
    """Root configuration artifact.

    ``checksum`` is the SHA-256 of the canonical source data and identifies
    the configuration version in logs.
    """

    config_id: str
    version: int
    database: DatabaseConfig
    ledger: LedgerSettings
    logging: LoggingConfig
    checksum: str = ""

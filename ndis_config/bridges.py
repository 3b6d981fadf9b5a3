"""
Config -> Kernel Bridges.

Functions that convert a LedgerConfig into kernel-compatible inputs.
These live in ndis_config (the producer) because the kernel must NEVER
import ndis_config.

Usage:
    from ndis_config.bridges import build_ledger_policy, init_engine_from_config

    config = get_active_config()
    init_engine_from_config(config)
    policy = build_ledger_policy(config)
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.engine import Engine

from ndis_config.schema import LedgerConfig
from ndis_kernel.db.engine import init_engine_from_url
from ndis_kernel.domain.policy import LedgerPolicy
from ndis_kernel.logging_config import configure_logging


def build_ledger_policy(config: LedgerConfig) -> LedgerPolicy:
    settings = config.ledger
    return LedgerPolicy(
        max_shift_hours=settings.max_shift_hours,
        default_ratio=settings.default_ratio,
        default_timezone=settings.default_timezone,
        system_actor_id=UUID(settings.system_actor_id),
        derived_rate_enabled=settings.derived_rate_enabled,
        default_company_id=settings.default_company_id,
    )


def init_engine_from_config(config: LedgerConfig) -> Engine:
    """Configure logging and the engine from the database section."""
    configure_logging(level=config.logging.level)
    db = config.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
        statement_timeout_ms=db.statement_timeout_ms,
    )

"""
ndis_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads configuration files
    or environment variables directly.

Architecture position:
    Configuration.  This package sits above ``ndis_kernel``.  The kernel
    MUST NEVER import from ``ndis_config``; ``ndis_config.bridges``
    translates the loaded config into kernel inputs (``LedgerPolicy``,
    engine settings).

Invariants enforced:
    - Single entrypoint: all runtime config flows through
      ``get_active_config()``.
    - Deterministic identity: the same YAML always yields the same
      checksum.  The ``DATABASE_URL`` override does not change it.

Failure modes:
    - ``FileNotFoundError`` -- the configuration file does not exist.
    - ``yaml.YAMLError`` -- the file is not valid YAML.
    - ``KeyError`` / ``ValueError`` -- missing or invalid settings.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from ndis_config.loader import load_yaml_file, parse_config
from ndis_config.schema import LedgerConfig

_logger = logging.getLogger("ndis_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(config_path: Path | str | None = None) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: Override path to a YAML configuration file.
            Defaults to ndis_config/sets/default.yaml.

    Returns:
        LedgerConfig -- frozen, with a SHA-256 checksum of the source.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    data = load_yaml_file(path)
    config = parse_config(data, database_url=os.environ.get(DATABASE_URL_ENV) or None)

    _logger.info(
        "config_loaded",
        extra={
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "path": str(path),
            "database_url_from_env": bool(os.environ.get(DATABASE_URL_ENV)),
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "LedgerConfig", "get_active_config"]

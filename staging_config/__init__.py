"""
staging_config -- single public entrypoint for service settings.

Responsibility:
    Provides the one way to obtain settings at runtime through
    ``get_active_settings()``.  The kernel never reads files or
    environment variables itself; ``staging_config.bridges`` turns the
    settings into kernel objects (pool, import procedure, facade).

Failure modes:
    - ``FileNotFoundError`` -- an explicit settings file does not exist.
    - ``ValueError`` -- malformed values, unknown keys, bad pool sizing.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import asdict
from pathlib import Path

from staging_config.loader import load_settings
from staging_config.schema import (
    DatabaseSettings,
    PoolSettings,
    ProcedureSettings,
    StagingDefaults,
    StagingSettings,
)

_logger = logging.getLogger("staging_kernel.config")


def get_active_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> StagingSettings:
    """The public settings entrypoint.

    Emits a ``staging_config_loaded`` log entry with the password redacted.
    """
    settings = load_settings(path, environ)
    _logger.info(
        "staging_config_loaded",
        extra={
            "source": str(path) if path else "defaults",
            "database": asdict(settings.database.redacted()),
            "pool": asdict(settings.pool),
            "procedure": settings.procedure.name,
        },
    )
    return settings


__all__ = [
    "DatabaseSettings",
    "PoolSettings",
    "ProcedureSettings",
    "StagingDefaults",
    "StagingSettings",
    "get_active_settings",
    "load_settings",
]

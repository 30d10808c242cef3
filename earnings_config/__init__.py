"""
earnings_config -- single public entrypoint for earnings configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  Engines never read configuration; services
    receive the frozen ``EarningsConfig`` (and the ``ChannelCatalog`` it
    builds) through their constructors.

Architecture position:
    Configuration -- sits above ``earnings_kernel`` and below
    ``earnings_services``.  The kernel MUST NEVER import from this package.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration file does not exist.
    - ``ConfigurationError`` -- malformed YAML or invalid values.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``EARNINGS_CONFIG_TRACE`` log entry with the config id, version and
    checksum, tying computed ledgers to the configuration that shaped them.
"""

from __future__ import annotations

import os
from pathlib import Path

from earnings_config.loader import load_config_file
from earnings_config.schema import EarningsConfig
from earnings_kernel.logging_config import get_logger

logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"
CONFIG_PATH_ENV = "EARNINGS_CONFIG_PATH"


def get_active_config(path: Path | str | None = None) -> EarningsConfig:
    """The ONLY public configuration entrypoint.

    Resolution order: explicit ``path``, then ``EARNINGS_CONFIG_PATH``,
    then the packaged ``defaults.yaml``.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    config = load_config_file(Path(path))

    logger.info(
        "EARNINGS_CONFIG_TRACE",
        extra={
            "trace_type": "EARNINGS_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "channel_count": len(config.channels),
        },
    )
    return config


__all__ = ["EarningsConfig", "get_active_config"]

"""
contracts_config -- single public entrypoint for service configuration.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_settings()``.  Service code receives plain values from the
    composition root (the CLI or an HTTP app factory); the kernel MUST
    NEVER import from ``contracts_config``.

Failure modes:
    - ``ValueError`` -- invalid settings values.
    - ``FileNotFoundError`` -- the settings file named by
      ``CONTRACTS_DATA_CONFIG`` does not exist.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache

from contracts_config.loader import load_settings
from contracts_config.schema import DatabaseSettings, ServiceSettings, Settings

__all__ = [
    "DatabaseSettings",
    "ServiceSettings",
    "Settings",
    "get_settings",
    "load_settings",
]

_logger = logging.getLogger("contracts_kernel.config")

ENV_CONFIG_PATH = "CONTRACTS_DATA_CONFIG"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache the active settings.

    Reads the file named by ``CONTRACTS_DATA_CONFIG`` when set, otherwise
    the shipped defaults.  Call ``get_settings.cache_clear()`` to reload.
    """
    path = os.environ.get(ENV_CONFIG_PATH) or None
    settings = load_settings(path)
    _logger.info(
        "settings_loaded",
        extra={
            "config_path": path or "defaults",
            "app_name": settings.service.app_name,
            "log_level": settings.log_level,
        },
    )
    return settings

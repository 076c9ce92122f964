"""
Configuration Loader (``contracts_config.loader``).

Responsibility
--------------
Loads a YAML settings file, applies environment overrides and parses the
result into the frozen ``contracts_config.schema`` dataclasses.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass from ``schema.py``.
* Invalid values raise ``ValueError`` at load time, never at first use.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing ``database.url``  -> ``KeyError`` propagates.
* Non-positive sizes, page size above the maximum, blank signers or an
  unknown log level  -> ``ValueError``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from contracts_config.schema import DatabaseSettings, ServiceSettings, Settings

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

ENV_DATABASE_URL = "CONTRACTS_DATA_DATABASE_URL"
ENV_BASE_URI = "CONTRACTS_DATA_BASE_URI"
ENV_LOG_LEVEL = "CONTRACTS_DATA_LOG_LEVEL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top of {path}")
    return data


def parse_database(data: dict[str, Any]) -> DatabaseSettings:
    settings = DatabaseSettings(
        url=data["url"],
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 20)),
        max_overflow=int(data.get("max_overflow", 10)),
    )
    if not settings.url:
        raise ValueError("database.url must not be empty")
    if settings.pool_size < 1:
        raise ValueError(f"database.pool_size must be positive: {settings.pool_size}")
    if settings.max_overflow < 0:
        raise ValueError(
            f"database.max_overflow must not be negative: {settings.max_overflow}"
        )
    return settings


def parse_service(data: dict[str, Any]) -> ServiceSettings:
    defaults = ServiceSettings()
    settings = ServiceSettings(
        app_name=str(data.get("app_name", defaults.app_name)),
        base_uri=str(data.get("base_uri", defaults.base_uri)),
        default_reminder_interval=int(
            data.get("default_reminder_interval", defaults.default_reminder_interval)
        ),
        default_page_size=int(data.get("default_page_size", defaults.default_page_size)),
        max_page_size=int(data.get("max_page_size", defaults.max_page_size)),
        system_signer=str(data.get("system_signer", defaults.system_signer)),
        manual_approval_signer=str(
            data.get("manual_approval_signer", defaults.manual_approval_signer)
        ),
        blob_root=str(data.get("blob_root", defaults.blob_root)),
    )

    if settings.default_reminder_interval < 0:
        raise ValueError(
            "service.default_reminder_interval must not be negative: "
            f"{settings.default_reminder_interval}"
        )
    if settings.default_page_size < 1 or settings.max_page_size < 1:
        raise ValueError("service page sizes must be positive")
    if settings.default_page_size > settings.max_page_size:
        raise ValueError(
            f"service.default_page_size ({settings.default_page_size}) exceeds "
            f"service.max_page_size ({settings.max_page_size})"
        )
    if not settings.system_signer.strip() or not settings.manual_approval_signer.strip():
        raise ValueError("service signers must not be blank")
    return settings


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Return a copy of ``data`` with environment overrides applied."""
    merged = dict(data)
    merged["database"] = dict(merged.get("database") or {})
    merged["service"] = dict(merged.get("service") or {})

    if environ.get(ENV_DATABASE_URL):
        merged["database"]["url"] = environ[ENV_DATABASE_URL]
    if environ.get(ENV_BASE_URI):
        merged["service"]["base_uri"] = environ[ENV_BASE_URI]
    if environ.get(ENV_LOG_LEVEL):
        merged["log_level"] = environ[ENV_LOG_LEVEL]
    return merged


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load settings from ``path`` (default: the shipped defaults.yaml).

    ``environ`` defaults to ``os.environ``.
    """
    data = load_yaml_file(Path(path) if path is not None else DEFAULTS_PATH)
    data = apply_env_overrides(data, os.environ if environ is None else environ)

    log_level = str(data.get("log_level", "INFO")).upper()
    if not isinstance(logging.getLevelName(log_level), int):
        raise ValueError(f"Unknown log level: {log_level}")

    return Settings(
        database=parse_database(data["database"]),
        service=parse_service(data["service"]),
        log_level=log_level,
    )

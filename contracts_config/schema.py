"""
Configuration schema (``contracts_config.schema``).

Frozen dataclasses describing the service settings.  Every instance is
produced by ``contracts_config.loader``; nothing else constructs them at
runtime.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class DatabaseSettings:
    """Connection settings passed to ``init_engine_from_url``."""

    url: str
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10


@dataclass(frozen=True)
class ServiceSettings:
    """Workflow and paging settings for ContractService."""

    app_name: str = "contracts-data"
    base_uri: str = "http://localhost"
    default_reminder_interval: int = 14
    default_page_size: int = 10
    max_page_size: int = 100
    system_signer: str = "System-ESFA"
    manual_approval_signer: str = "hand and approved by ESFA"
    blob_root: str = "./blobs"


@dataclass(frozen=True)
class Settings:
    database: DatabaseSettings
    service: ServiceSettings = field(default_factory=ServiceSettings)
    log_level: str = "INFO"

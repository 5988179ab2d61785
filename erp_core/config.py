"""
Centralized configuration for the sales order assistant.

Configuration is loaded from environment variables with sensible defaults.

Usage:
    from erp_core.config import config

    token = config.erp.token
    interval = config.sync.interval_seconds
"""

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name, "")
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class ERPConfig:
    """Upstream ERP API configuration."""

    api_url: str = field(default_factory=lambda: os.getenv(
        "ERP_API_URL", "http://gsuite.graphicstar.com.ph/api/get_sales_orders"
    ))
    token: str = field(default_factory=lambda: os.getenv("ERP_TOKEN", ""))
    location_pk: str = field(default_factory=lambda: os.getenv(
        "ERP_LOCATION_PK", "00a18fc0-051d-11ea-8e35-aba492d8cb65"
    ))
    empl_pk: str = field(default_factory=lambda: os.getenv(
        "ERP_EMPL_PK", "c3f05940-066b-11ee-98e7-b92ca15f504a"
    ))
    prepared_by: str = field(default_factory=lambda: os.getenv(
        "ERP_PREPARED_BY", "Josephus Abatayo"
    ))
    view_all: int = 1
    page_size: int = 500
    request_timeout: float = 30.0
    max_pages: int = 1000


@dataclass(frozen=True)
class SyncConfig:
    """Background refresh configuration."""

    start_year: int = field(default_factory=lambda: _env_int("ERP_SYNC_START_YEAR", 2020))
    interval_seconds: int = field(default_factory=lambda: _env_int("ERP_SYNC_INTERVAL_SECONDS", 60))
    snapshot_path: Path = field(default_factory=lambda: Path(
        os.getenv("SNAPSHOT_PATH", "data/sales_orders.json")
    ))
    timezone: str = "Asia/Manila"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class WebConfig:
    """Web service configuration."""

    host: str = "0.0.0.0"
    port: int = field(default_factory=lambda: _env_int("PORT", 3000))
    rate_limit_per_minute: int = 60


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""

    version: str = "0.1.0"
    erp: ERPConfig = field(default_factory=ERPConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    web: WebConfig = field(default_factory=WebConfig)


# Global config instance
config = AppConfig()

VERSION = config.version


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def validate_config(app_config: AppConfig = None, require_token: bool = True) -> None:
    """
    Validate that all required configuration is present.

    Call this on application startup to fail fast with clear error messages
    instead of an endless series of 401s from the ERP.

    Args:
        app_config: Config to validate (defaults to the global config)
        require_token: If True, validate the ERP bearer token

    Raises:
        ConfigurationError: If required configuration is missing
    """
    cfg = app_config or config
    errors = []

    if require_token and not cfg.erp.token:
        errors.append("ERP_TOKEN is required but not set")

    if not cfg.erp.api_url.startswith(("http://", "https://")):
        errors.append(f"ERP_API_URL must be an http(s) URL, got {cfg.erp.api_url!r}")

    current_year = datetime.now(cfg.sync.tz).year
    if cfg.sync.start_year > current_year:
        errors.append(
            f"ERP_SYNC_START_YEAR ({cfg.sync.start_year}) is after the current year ({current_year})"
        )

    if cfg.sync.interval_seconds <= 0:
        errors.append("ERP_SYNC_INTERVAL_SECONDS must be positive")

    if errors:
        error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
        raise ConfigurationError(error_msg)

"""
Tests for erp_core.config module.
"""
import pytest
from pathlib import Path

from erp_core.config import (
    AppConfig,
    ConfigurationError,
    ERPConfig,
    SyncConfig,
    validate_config,
)


def _app_config(**erp) -> AppConfig:
    erp.setdefault("token", "test-token")
    return AppConfig(erp=ERPConfig(**erp), sync=SyncConfig(start_year=2020, interval_seconds=60))


class TestDefaults:
    """Tests for config defaults."""

    def test_erp_defaults(self):
        cfg = ERPConfig(token="t")
        assert cfg.page_size == 500
        assert cfg.view_all == 1
        assert cfg.max_pages == 1000
        assert cfg.api_url.startswith("http")

    def test_sync_defaults(self, monkeypatch):
        monkeypatch.delenv("ERP_SYNC_START_YEAR", raising=False)
        monkeypatch.delenv("ERP_SYNC_INTERVAL_SECONDS", raising=False)
        monkeypatch.delenv("SNAPSHOT_PATH", raising=False)

        cfg = SyncConfig()

        assert cfg.start_year == 2020
        assert cfg.interval_seconds == 60
        assert cfg.snapshot_path == Path("data/sales_orders.json")
        assert cfg.tz.key == "Asia/Manila"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ERP_SYNC_START_YEAR", "2023")
        monkeypatch.setenv("ERP_SYNC_INTERVAL_SECONDS", "120")
        monkeypatch.setenv("ERP_TOKEN", "from-env")

        assert SyncConfig().start_year == 2023
        assert SyncConfig().interval_seconds == 120
        assert ERPConfig().token == "from-env"

    def test_bad_int_env_falls_back(self, monkeypatch):
        monkeypatch.setenv("ERP_SYNC_INTERVAL_SECONDS", "soon")
        assert SyncConfig().interval_seconds == 60

    def test_frozen(self):
        cfg = ERPConfig(token="t")
        with pytest.raises(AttributeError):
            cfg.token = "other"


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid(self):
        validate_config(_app_config())

    def test_missing_token(self):
        with pytest.raises(ConfigurationError, match="ERP_TOKEN"):
            validate_config(_app_config(token=""))

    def test_missing_token_allowed(self):
        validate_config(_app_config(token=""), require_token=False)

    def test_bad_url(self):
        with pytest.raises(ConfigurationError, match="ERP_API_URL"):
            validate_config(_app_config(api_url="ftp://erp"))

    def test_future_start_year(self):
        cfg = AppConfig(erp=ERPConfig(token="t"), sync=SyncConfig(start_year=9999))
        with pytest.raises(ConfigurationError, match="ERP_SYNC_START_YEAR"):
            validate_config(cfg)

    def test_non_positive_interval(self):
        cfg = AppConfig(erp=ERPConfig(token="t"), sync=SyncConfig(start_year=2020, interval_seconds=0))
        with pytest.raises(ConfigurationError, match="ERP_SYNC_INTERVAL_SECONDS"):
            validate_config(cfg)

    def test_collects_all_errors(self):
        cfg = AppConfig(
            erp=ERPConfig(token="", api_url="nope"),
            sync=SyncConfig(start_year=2020, interval_seconds=-5),
        )
        with pytest.raises(ConfigurationError) as exc_info:
            validate_config(cfg)

        message = str(exc_info.value)
        assert "ERP_TOKEN" in message
        assert "ERP_API_URL" in message
        assert "ERP_SYNC_INTERVAL_SECONDS" in message

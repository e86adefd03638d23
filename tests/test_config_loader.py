"""Tests for the unified configuration loader."""

from pathlib import Path

import pytest
import yaml

from config.config_loader import (
    get_full_config,
    get_gateway_config,
    get_ledger_config,
    get_ledger_defaults,
    get_logging_config,
    get_persistence_config,
    load_config,
    reload_config,
)
from core.exceptions import ConfigurationError
from core.models import LedgerConfig, Role

CONFIG_PATH = Path(__file__).parent.parent / "config" / "config.yaml"


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Reset the cache and pin the bundled config for every test."""
    monkeypatch.setenv("PRIVAMED_CONFIG", str(CONFIG_PATH))
    reload_config()
    yield
    reload_config()


class TestLoadConfig:
    """Test config file loading."""

    def test_load_config_finds_file(self):
        """Config file should be found and loaded."""
        cfg = load_config()
        assert isinstance(cfg, dict)
        assert "ledger" in cfg
        assert "persistence" in cfg
        assert "gateway" in cfg

    def test_load_config_explicit_path(self):
        cfg = load_config(str(CONFIG_PATH))
        assert cfg["ledger"]["admin"] == "admin"

    def test_load_config_missing_file(self):
        """Missing config should return empty dict."""
        cfg = load_config("/nonexistent/path/config.yaml")
        assert cfg == {}

    def test_load_config_invalid_yaml(self, tmp_path):
        bad = tmp_path / "config.yaml"
        bad.write_text("ledger: [unclosed\n")
        with pytest.raises(ConfigurationError):
            load_config(str(bad))

    def test_load_config_caching(self):
        """Repeated calls should return cached config."""
        cfg1 = load_config()
        cfg2 = load_config()
        assert cfg1 is cfg2

    def test_reload_config(self):
        """reload_config should clear cache."""
        cfg1 = load_config()
        reload_config()
        cfg2 = load_config()
        assert cfg1 is not cfg2
        assert cfg1 == cfg2

    def test_get_full_config(self):
        assert get_full_config() == load_config()


class TestLedgerDefaults:
    """Test ledger policy settings."""

    def test_yaml_values_loaded(self):
        defaults = get_ledger_defaults()
        assert defaults["admin"] == "admin"
        assert defaults["approval_validity_seconds"] == 30 * 24 * 3600
        assert defaults["approval_scope"] == "REQUEST"
        assert defaults["emergency_roles"] == ["provider", "responder"]
        assert defaults["emergency_max_duration_seconds"] is None
        assert defaults["record_creator_roles"] == ["patient", "auditor"]
        assert defaults["auto_register_owner"] is False

    def test_fallbacks_without_file(self):
        load_config("/nonexistent/config.yaml")
        defaults = get_ledger_defaults()
        assert defaults["admin"] == "admin"
        assert defaults["approval_scope"] == "REQUEST"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("PRIVAMED_ADMIN", "root")
        monkeypatch.setenv("PRIVAMED_APPROVAL_VALIDITY_SECONDS", "3600")
        monkeypatch.setenv("PRIVAMED_EMERGENCY_ROLES", "responder")
        monkeypatch.setenv("PRIVAMED_AUTO_REGISTER_OWNER", "true")

        defaults = get_ledger_defaults()
        assert defaults["admin"] == "root"
        assert defaults["approval_validity_seconds"] == 3600
        assert defaults["emergency_roles"] == ["responder"]
        assert defaults["auto_register_owner"] is True

    def test_unparsable_env_ignored(self, monkeypatch):
        monkeypatch.setenv("PRIVAMED_APPROVAL_VALIDITY_SECONDS", "a month")
        assert get_ledger_defaults()["approval_validity_seconds"] == 30 * 24 * 3600

    def test_unlimited_emergency_duration(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "ledger": {"emergency": {"max_duration_seconds": "unlimited"}},
        }))
        load_config(str(path))
        assert get_ledger_defaults()["emergency_max_duration_seconds"] is None

    def test_capped_emergency_duration(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({
            "ledger": {"emergency": {"max_duration_seconds": 3600}},
        }))
        load_config(str(path))
        assert get_ledger_defaults()["emergency_max_duration_seconds"] == 3600

        monkeypatch.setenv("PRIVAMED_EMERGENCY_MAX_DURATION_SECONDS", "600")
        assert get_ledger_config().emergency_max_duration_seconds == 600


class TestGetLedgerConfig:
    """Test LedgerConfig construction."""

    def test_builds_validated_model(self):
        config = get_ledger_config()
        assert isinstance(config, LedgerConfig)
        assert config.emergency_roles == [Role.PROVIDER, Role.RESPONDER]
        assert config.record_creator_roles == [Role.PATIENT, Role.AUDITOR]

    def test_overrides_win(self, monkeypatch):
        monkeypatch.setenv("PRIVAMED_ADMIN", "root")
        assert get_ledger_config(admin="superuser").admin == "superuser"

    def test_invalid_settings_raise(self):
        with pytest.raises(ConfigurationError) as exc_info:
            get_ledger_config(emergency_roles=["patient"])
        assert exc_info.value.error_code == "CONFIGURATION_ERROR"

    def test_empty_admin_rejected(self):
        with pytest.raises(ConfigurationError):
            get_ledger_config(admin="  ")


class TestOtherSections:
    """Test persistence, gateway and logging settings."""

    def test_persistence(self, monkeypatch):
        assert get_persistence_config() == {"enabled": False, "db_path": "data/ledger.db"}
        monkeypatch.setenv("PRIVAMED_PERSISTENCE_ENABLED", "yes")
        monkeypatch.setenv("PRIVAMED_DB_PATH", "/tmp/other.db")
        assert get_persistence_config() == {"enabled": True, "db_path": "/tmp/other.db"}

    def test_gateway(self, monkeypatch):
        cfg = get_gateway_config()
        assert cfg["content_store"] == "memory"
        assert cfg["service_principal"] == "gateway"
        assert cfg["ipfs_api_url"] == "http://127.0.0.1:5001"
        monkeypatch.setenv("IPFS_API_URL", "http://ipfs:5001")
        assert get_gateway_config()["ipfs_api_url"] == "http://ipfs:5001"

    def test_logging(self):
        cfg = get_logging_config()
        assert cfg["level"] == "INFO"
        assert cfg["log_format"] == "console"
        assert cfg["log_file"] is None

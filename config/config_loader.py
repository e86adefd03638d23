"""
Unified configuration loader for the PrivaMed ledger.

Loads config.yaml and turns it into the settings consumed by the ledger,
the persistence layer, the content gateway and logging setup.

Precedence (lowest to highest):
    1. Hardcoded Python fallbacks (always present)
    2. config.yaml sections (project-level settings)
    3. Environment variables PRIVAMED_* (container-level overrides)

Author: Fabio Liberti
"""

import os
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

import yaml
from pydantic import ValidationError

from core.exceptions import ConfigurationError
from core.models import LedgerConfig


_cached_config: Optional[Dict] = None


def _config_search_paths() -> list:
    """Search order for config file."""
    return [
        os.environ.get("PRIVAMED_CONFIG", ""),
        "config/config.yaml",
        str(Path(__file__).parent / "config.yaml"),
    ]


def _find_config_file() -> Optional[Path]:
    """Find config.yaml from search paths."""
    for path_str in _config_search_paths():
        if not path_str:
            continue
        p = Path(path_str)
        if p.is_file():
            return p
    return None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and cache the full config.yaml.

    Args:
        config_path: Optional explicit path. If None, uses search order.

    Returns:
        Full parsed YAML dict. Returns empty dict if no config found.
    """
    global _cached_config

    if _cached_config is not None and config_path is None:
        return _cached_config

    if config_path:
        p = Path(config_path)
    else:
        p = _find_config_file()

    if p is None or not p.is_file():
        _cached_config = {}
        return _cached_config

    with open(p, "r", encoding="utf-8") as f:
        try:
            _cached_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {p}: {e}") from e

    return _cached_config


def reload_config():
    """Force reload of config (clears cache)."""
    global _cached_config
    _cached_config = None


def get_full_config() -> Dict[str, Any]:
    """Return the complete parsed config.yaml as a nested dict."""
    return load_config()


def _as_bool(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def _as_list(value: str) -> list:
    return [item.strip() for item in value.split(",") if item.strip()]


def _apply_env(
    values: Dict[str, Any],
    env_mapping: Dict[str, Tuple[str, Callable[[str], Any]]],
) -> Dict[str, Any]:
    """Override keys from environment variables, ignoring unparsable values."""
    for env_var, (key, converter) in env_mapping.items():
        val = os.environ.get(env_var)
        if val is not None:
            try:
                values[key] = converter(val)
            except (ValueError, TypeError):
                pass
    return values


def get_ledger_defaults() -> Dict[str, Any]:
    """
    Return a flat dict of ledger policy settings.

    Keys match the fields of core.models.LedgerConfig.
    """
    cfg = load_config()
    ledger = cfg.get("ledger", {})
    approval = ledger.get("approval", {})
    emergency = ledger.get("emergency", {})
    records = ledger.get("records", {})

    defaults = {
        "admin": "admin",
        "approval_validity_seconds": 30 * 24 * 3600,
        "approval_scope": "REQUEST",
        "emergency_roles": ["provider", "responder"],
        "emergency_max_duration_seconds": None,
        "record_creator_roles": ["patient", "auditor"],
        "auto_register_owner": False,
    }

    yaml_mapping = {
        "admin": ledger.get("admin"),
        "approval_validity_seconds": approval.get("validity_seconds"),
        "approval_scope": approval.get("scope"),
        "emergency_roles": emergency.get("roles"),
        "emergency_max_duration_seconds": emergency.get("max_duration_seconds"),
        "record_creator_roles": records.get("creator_roles"),
        "auto_register_owner": records.get("auto_register_owner"),
    }

    for key, value in yaml_mapping.items():
        if value is not None:
            defaults[key] = value

    # An explicit "unlimited" in YAML disables the emergency cap
    if emergency.get("max_duration_seconds") == "unlimited":
        defaults["emergency_max_duration_seconds"] = None

    env_mapping = {
        "PRIVAMED_ADMIN": ("admin", str),
        "PRIVAMED_APPROVAL_VALIDITY_SECONDS": ("approval_validity_seconds", int),
        "PRIVAMED_APPROVAL_SCOPE": ("approval_scope", str),
        "PRIVAMED_EMERGENCY_ROLES": ("emergency_roles", _as_list),
        "PRIVAMED_EMERGENCY_MAX_DURATION_SECONDS": ("emergency_max_duration_seconds", int),
        "PRIVAMED_RECORD_CREATOR_ROLES": ("record_creator_roles", _as_list),
        "PRIVAMED_AUTO_REGISTER_OWNER": ("auto_register_owner", _as_bool),
    }

    return _apply_env(defaults, env_mapping)


def get_ledger_config(**overrides: Any) -> LedgerConfig:
    """
    Build a validated LedgerConfig.

    Args:
        **overrides: Values taking precedence over file and environment.

    Raises:
        ConfigurationError: If the merged settings fail validation.
    """
    values = get_ledger_defaults()
    values.update(overrides)
    try:
        return LedgerConfig(**values)
    except ValidationError as e:
        first = e.errors()[0]
        key = ".".join(str(part) for part in first.get("loc", ()))
        raise ConfigurationError(
            f"Invalid ledger configuration: {first.get('msg')}",
            config_key=key or None,
        ) from e


def get_logging_config() -> Dict[str, Any]:
    """Get logging configuration (level, format, optional file)."""
    cfg = load_config()
    logging_cfg = cfg.get("logging", {})
    values = {
        "level": logging_cfg.get("level", "INFO"),
        "log_format": logging_cfg.get("format", "console"),
        "log_file": logging_cfg.get("file"),
    }
    env_mapping = {
        "PRIVAMED_LOG_LEVEL": ("level", str),
        "PRIVAMED_LOG_FORMAT": ("log_format", str),
        "PRIVAMED_LOG_FILE": ("log_file", str),
    }
    return _apply_env(values, env_mapping)


def get_persistence_config() -> Dict[str, Any]:
    """Get SQLite persistence configuration."""
    cfg = load_config()
    persistence = cfg.get("persistence", {})
    values = {
        "enabled": persistence.get("enabled", False),
        "db_path": persistence.get("db_path", "data/ledger.db"),
    }
    env_mapping = {
        "PRIVAMED_PERSISTENCE_ENABLED": ("enabled", _as_bool),
        "PRIVAMED_DB_PATH": ("db_path", str),
    }
    return _apply_env(values, env_mapping)


def get_gateway_config() -> Dict[str, Any]:
    """Get content gateway configuration."""
    cfg = load_config()
    gateway = cfg.get("gateway", {})
    ipfs = gateway.get("ipfs", {})
    values = {
        "content_store": gateway.get("content_store", "memory"),
        "service_principal": gateway.get("service_principal", "gateway"),
        "ipfs_api_url": ipfs.get("api_url", "http://127.0.0.1:5001"),
        "ipfs_timeout": ipfs.get("timeout_seconds", 30),
    }
    env_mapping = {
        "PRIVAMED_CONTENT_STORE": ("content_store", str),
        "PRIVAMED_SERVICE_PRINCIPAL": ("service_principal", str),
        "IPFS_API_URL": ("ipfs_api_url", str),
        "PRIVAMED_IPFS_TIMEOUT": ("ipfs_timeout", float),
    }
    return _apply_env(values, env_mapping)

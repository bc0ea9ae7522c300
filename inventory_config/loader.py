"""
Configuration Loader (``inventory_config.loader``).

Responsibility
--------------
Loads YAML files, deep-merges overrides onto the packaged defaults and
parses the result into the frozen ``inventory_config.schema`` types.
Runtime callers use ``inventory_config.get_active_config()`` instead.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys or values of the wrong type  -> ``ConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from inventory_config.schema import (
    DatabaseConfig,
    ExpiryConfig,
    InventoryConfiguration,
    PagingConfig,
    ReasonsConfig,
    RetryConfig,
    SerialsConfig,
    StockConfig,
)


class ConfigError(ValueError):
    """Configuration could not be loaded or is invalid."""


_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "serials": SerialsConfig,
    "stock": StockConfig,
    "expiry": ExpiryConfig,
    "paging": PagingConfig,
    "reasons": ReasonsConfig,
    "retry": RetryConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` merged in; nested dicts merge, everything else replaces."""
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _coerce(section: str, name: str, expected: Any, value: Any) -> Any:
    default = expected
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{section}.{name} must be a boolean, got {value!r}")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{section}.{name} must be an integer, got {value!r}")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{section}.{name} must be a number, got {value!r}")
        return float(value)
    if isinstance(default, tuple):
        if value is None:
            return ()
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{section}.{name} must be a list of strings")
        return tuple(v.strip() for v in value if v.strip())
    if not isinstance(value, str) or not value.strip():
        raise ConfigError(f"{section}.{name} must be a non-empty string, got {value!r}")
    return value.strip()


def parse_section(section: str, data: Any) -> Any:
    """Parse one top-level section into its dataclass, filling defaults."""
    cls = _SECTIONS[section]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"{section} must be a mapping")

    defaults = cls()
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{section}: unknown keys {unknown}")

    values = {
        name: _coerce(section, name, getattr(defaults, name), value)
        for name, value in data.items()
    }
    return cls(**values)


def parse_configuration(
    data: dict[str, Any],
    source_files: tuple[str, ...] = (),
) -> InventoryConfiguration:
    """
    Parse a merged configuration dict.

    Raises:
        ConfigError: on unknown sections, unknown keys, wrong types, or
            values the kernel would refuse (e.g. non-positive limits).
    """
    unknown = sorted(set(data) - set(_SECTIONS))
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {unknown}")

    config = InventoryConfiguration(
        **{name: parse_section(name, data.get(name)) for name in _SECTIONS},
        source_files=source_files,
    )
    _validate(config)
    return config


def _validate(config: InventoryConfiguration) -> None:
    if config.serials.width < 1:
        raise ConfigError("serials.width must be >= 1")
    if config.serials.donation_prefix == config.serials.disbursement_prefix:
        raise ConfigError("serials prefixes must differ between donation and disbursement")
    if not 1 <= config.stock.max_quantity <= 2_147_483_647:
        raise ConfigError("stock.max_quantity must be between 1 and 2147483647")
    if config.stock.max_batch_adjustments < 1:
        raise ConfigError("stock.max_batch_adjustments must be >= 1")
    if config.expiry.warning_days < 0:
        raise ConfigError("expiry.warning_days must be >= 0")
    if not 1 <= config.paging.default_page_size <= config.paging.max_page_size:
        raise ConfigError("paging.default_page_size must be between 1 and max_page_size")
    if config.retry.max_attempts < 1:
        raise ConfigError("retry.max_attempts must be >= 1")
    if config.retry.base_delay_seconds < 0 or config.retry.max_delay_seconds < 0:
        raise ConfigError("retry delays must be >= 0")
    if config.database.pool_size < 1:
        raise ConfigError("database.pool_size must be >= 1")


def compute_checksum(data: dict[str, Any]) -> str:
    """Deterministic SHA-256 of a configuration dict, for change detection."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

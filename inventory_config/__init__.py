"""
inventory_config -- single public entrypoint for inventory configuration.

Responsibility:
    Provides the one way to obtain configuration at runtime through
    ``get_active_config()``: the packaged ``defaults.yaml``, an optional
    override file, and the ``DATABASE_URL`` environment variable, merged
    and validated into a frozen ``InventoryConfiguration``.

Architecture position:
    Configuration -- sits above ``inventory_kernel``.  The kernel never
    imports from ``inventory_config``; ``inventory_config.bridges``
    translates configuration into kernel inputs.

Failure modes:
    - ``FileNotFoundError`` -- the override file does not exist.
    - ``yaml.YAMLError`` -- an input file is not valid YAML.
    - ``ConfigError`` -- unknown keys, wrong types or invalid values.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path

from inventory_config.loader import (
    ConfigError,
    compute_checksum,
    deep_merge,
    load_yaml_file,
    parse_configuration,
)
from inventory_config.schema import InventoryConfiguration

_logger = logging.getLogger("inventory_kernel.config")

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_PATH_ENV = "INVENTORY_CONFIG"
DATABASE_URL_ENV = "DATABASE_URL"


def get_active_config(path: Path | str | None = None) -> InventoryConfiguration:
    """The public configuration entrypoint.

    Resolution order (later wins):
        1. ``defaults.yaml`` shipped with this package.
        2. The override file: ``path`` if given, else ``$INVENTORY_CONFIG``.
        3. ``$DATABASE_URL`` replaces ``database.url``.

    Raises:
        FileNotFoundError: If the override file does not exist.
        ConfigError: If the merged configuration is invalid.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    sources = [str(DEFAULTS_PATH)]

    override = path if path is not None else os.environ.get(CONFIG_PATH_ENV)
    if override:
        override_path = Path(override)
        data = deep_merge(data, load_yaml_file(override_path))
        sources.append(str(override_path))

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        data = deep_merge(data, {"database": {"url": database_url}})

    checksum = compute_checksum(data)
    config = parse_configuration(data, source_files=tuple(sources))
    config = replace(config, checksum=checksum)

    _logger.info(
        "inventory_config_loaded",
        extra={
            "checksum": checksum,
            "source_files": list(sources),
            "database_dialect": config.database.url.split(":", 1)[0],
        },
    )
    return config


__all__ = [
    "ConfigError",
    "InventoryConfiguration",
    "get_active_config",
]

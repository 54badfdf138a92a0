"""
charge_config -- runtime settings and plugin configuration seeds.

Responsibility:
    Reads the YAML files that configure a charge kernel deployment and
    returns frozen dataclasses.  ``get_runtime_settings()`` is the entry
    point used by the bootstrap and the operator scripts.

Architecture position:
    Configuration.  Sits beside ``charge_kernel``; the kernel never imports
    from this package.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- missing or malformed values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from charge_config.loader import (
    DATABASE_URL_ENV,
    compute_checksum,
    load_plugin_config_seeds,
    load_runtime_settings,
    parse_runtime_settings,
)
from charge_config.schema import DatabaseSettings, PluginConfigSeed, RuntimeSettings

_logger = logging.getLogger("charge_kernel.config")

CONFIG_PATH_ENV = "CHARGE_CONFIG_PATH"

# Default configuration directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_SETTINGS_PATH = _DEFAULT_CONFIG_DIR / "charge.yaml"
DEFAULT_SEEDS_PATH = _DEFAULT_CONFIG_DIR / "plugin_configs.yaml"


def get_runtime_settings(path: Path | None = None) -> RuntimeSettings:
    """
    Load runtime settings from ``path``, ``$CHARGE_CONFIG_PATH`` or the
    bundled default, in that order.
    """
    settings_path = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_SETTINGS_PATH)
    settings = load_runtime_settings(settings_path)
    _logger.info(
        "charge_config_loaded",
        extra={
            "path": str(settings_path),
            "log_level": settings.log_level,
            "enabled_components": sorted(settings.enabled_components),
        },
    )
    return settings


__all__ = [
    "CONFIG_PATH_ENV",
    "DATABASE_URL_ENV",
    "DEFAULT_SEEDS_PATH",
    "DEFAULT_SETTINGS_PATH",
    "DatabaseSettings",
    "PluginConfigSeed",
    "RuntimeSettings",
    "compute_checksum",
    "get_runtime_settings",
    "load_plugin_config_seeds",
    "load_runtime_settings",
    "parse_runtime_settings",
]

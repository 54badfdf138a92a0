"""
Configuration Loader (``charge_config.loader``).

Responsibility
--------------
Loads YAML files and parses them into the frozen dataclasses of
``charge_config.schema``: runtime settings and plugin configuration seeds.

Architecture position
---------------------
**Config layer**.  No dependency on ``charge_kernel`` beyond nothing at
all: the kernel receives plain values from here through the bootstrap.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with descriptive messages; no silent
  defaults for required fields.
* ``CHARGE_DATABASE_URL`` in the environment overrides the file's
  ``database.url``.
* ``compute_checksum`` is deterministic for a given list of seeds.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing or invalid values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from charge_config.schema import (
    DEFAULT_SYSTEM_ACTOR_ID,
    DatabaseSettings,
    PluginConfigSeed,
    RuntimeSettings,
)

DATABASE_URL_ENV = "CHARGE_DATABASE_URL"

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_SCOPES = frozenset({"global", "employer"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")
    return data


def _parse_int(data: Mapping[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"database.{key} must be a non-negative integer, got {value!r}")
    return value


def parse_database(data: Mapping[str, Any], env: Mapping[str, str] | None = None) -> DatabaseSettings:
    env = os.environ if env is None else env
    url = env.get(DATABASE_URL_ENV) or data.get("url")
    if not url or not isinstance(url, str):
        raise ValueError(f"database.url is required (or set {DATABASE_URL_ENV})")
    return DatabaseSettings(
        url=url,
        echo=bool(data.get("echo", False)),
        pool_size=_parse_int(data, "pool_size", 5),
        max_overflow=_parse_int(data, "max_overflow", 10),
        pool_timeout=_parse_int(data, "pool_timeout", 30),
    )


def parse_runtime_settings(
    data: Mapping[str, Any],
    env: Mapping[str, str] | None = None,
) -> RuntimeSettings:
    """
    Parse ``RuntimeSettings`` from a dict.

    Raises:
        ValueError: on an unknown log level, a non-list
            ``enabled_components`` or a malformed ``system_actor_id``.
    """
    log_level = str(data.get("log_level", "INFO")).upper()
    if log_level not in _LOG_LEVELS:
        raise ValueError(f"log_level must be one of {sorted(_LOG_LEVELS)}, got {log_level!r}")

    components = data.get("enabled_components") or []
    if not isinstance(components, list) or not all(isinstance(c, str) for c in components):
        raise ValueError("enabled_components must be a list of strings")

    actor_raw = data.get("system_actor_id")
    try:
        actor_id = UUID(str(actor_raw)) if actor_raw else DEFAULT_SYSTEM_ACTOR_ID
    except ValueError:
        raise ValueError(f"system_actor_id is not a UUID: {actor_raw!r}") from None

    return RuntimeSettings(
        database=parse_database(data.get("database") or {}, env),
        log_level=log_level,
        enabled_components=frozenset(components),
        system_actor_id=actor_id,
    )


def load_runtime_settings(path: Path, env: Mapping[str, str] | None = None) -> RuntimeSettings:
    return parse_runtime_settings(load_yaml_file(Path(path)), env)


def parse_seed(data: Mapping[str, Any]) -> PluginConfigSeed:
    """
    Parse one ``PluginConfigSeed``.

    Scope rules are checked here as well as in the kernel so that a bad
    seed file fails before touching the database.
    """
    if not isinstance(data, Mapping):
        raise ValueError(f"Plugin config entry must be a mapping, got {data!r}")
    plugin_id = data.get("plugin_id")
    if not plugin_id:
        raise ValueError("Plugin config entry is missing plugin_id")

    scope = str(data.get("scope", "global")).lower()
    if scope not in _SCOPES:
        raise ValueError(f"{plugin_id}: scope must be 'global' or 'employer', got {scope!r}")
    employer_id = data.get("employer_id")
    if scope == "employer" and not employer_id:
        raise ValueError(f"{plugin_id}: employer scope requires employer_id")
    if scope == "global" and employer_id:
        raise ValueError(f"{plugin_id}: global scope must not set employer_id")

    settings = data.get("settings") or {}
    if not isinstance(settings, Mapping):
        raise ValueError(f"{plugin_id}: settings must be a mapping")

    return PluginConfigSeed(
        plugin_id=str(plugin_id),
        scope=scope,
        employer_id=str(employer_id) if employer_id else None,
        enabled=bool(data.get("enabled", True)),
        settings=_jsonable(dict(settings)),
    )


def load_plugin_config_seeds(path: Path) -> tuple[PluginConfigSeed, ...]:
    """Load the ``plugin_configs`` list of a seed file."""
    data = load_yaml_file(Path(path))
    entries = data.get("plugin_configs") or []
    if not isinstance(entries, list):
        raise ValueError(f"{path}: plugin_configs must be a list")
    return tuple(parse_seed(entry) for entry in entries)


def _jsonable(value: Any) -> Any:
    """YAML dates and numbers become the strings the settings validator expects."""
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, bool) or value is None or isinstance(value, str):
        return value
    if isinstance(value, (int, float)):
        return str(value)
    return value.isoformat() if hasattr(value, "isoformat") else str(value)


def compute_checksum(seeds: tuple[PluginConfigSeed, ...]) -> str:
    """Deterministic SHA-256 over the seeds, for change detection."""
    payload = [
        {
            "plugin_id": s.plugin_id,
            "scope": s.scope,
            "employer_id": s.employer_id,
            "enabled": s.enabled,
            "settings": s.settings,
        }
        for s in seeds
    ]
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()

"""
Settings Loader (``staging_config.loader``).

Responsibility
--------------
Reads the packaged ``defaults.yaml``, merges an optional operator YAML
file over it, applies environment-variable overrides, and parses the
result into the frozen dataclasses of ``staging_config.schema``.

Failure modes
-------------
* Missing operator file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown section key or badly typed value  -> ``ValueError`` naming the key.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from staging_config.schema import (
    DatabaseSettings,
    PoolSettings,
    ProcedureSettings,
    StagingDefaults,
    StagingSettings,
)

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

# env var -> (section, key)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "STAGING_DATABASE_URL": ("database", "url"),
    "ORACLE_USER": ("database", "user"),
    "ORACLE_PASSWORD": ("database", "password"),
    "ORACLE_CONNECTION_STRING": ("database", "connect_string"),
    "ORACLE_CLIENT_PATH": ("database", "oracle_client_lib_dir"),
    "STAGING_POOL_MIN": ("pool", "pool_min"),
    "STAGING_POOL_MAX": ("pool", "pool_max"),
    "STAGING_POOL_INCREMENT": ("pool", "pool_increment"),
    "STAGING_POOL_TIMEOUT": ("pool", "pool_timeout"),
    "STAGING_PROCEDURE_NAME": ("procedure", "name"),
}

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "pool": PoolSettings,
    "procedure": ProcedureSettings,
    "defaults": StagingDefaults,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping of sections.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"{path}: expected a mapping of sections, got {type(data).__name__}")
    return data


def merge_sections(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Shallow-merge per section: keys in ``override`` replace keys in ``base``."""
    merged = {name: dict(values or {}) for name, values in base.items()}
    for name, values in override.items():
        if not isinstance(values, Mapping):
            raise ValueError(f"Section '{name}' must be a mapping, got {type(values).__name__}")
        merged.setdefault(name, {}).update(values)
    return merged


def apply_env_overrides(
    data: dict[str, Any], environ: Mapping[str, str]
) -> dict[str, Any]:
    """Overlay the ENV_OVERRIDES variables that are set (and non-empty)."""
    result = {name: dict(values or {}) for name, values in data.items()}
    for var, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            result.setdefault(section, {})[key] = value
    return result


def _coerce(section: str, key: str, value: Any, annotation: Any) -> Any:
    """Coerce a raw YAML/env value to the declared field type."""
    if value is None:
        return None
    type_name = annotation if isinstance(annotation, str) else getattr(annotation, "__name__", "")
    try:
        if type_name.startswith("bool"):
            if isinstance(value, bool):
                return value
            lowered = str(value).strip().lower()
            if lowered in ("1", "true", "yes", "on"):
                return True
            if lowered in ("0", "false", "no", "off"):
                return False
            raise ValueError(value)
        if type_name.startswith("int"):
            if isinstance(value, bool):
                raise ValueError(value)
            return int(value)
        if type_name.startswith("str"):
            return str(value)
    except (TypeError, ValueError):
        raise ValueError(
            f"Invalid value for {section}.{key}: {value!r} (expected {type_name})"
        ) from None
    return value


def parse_section(section: str, data: Mapping[str, Any]) -> Any:
    """Parse one settings section into its dataclass."""
    cls = _SECTIONS[section]
    known = {f.name: f.type for f in fields(cls)}
    unknown = set(data) - set(known)
    if unknown:
        raise ValueError(f"Unknown key(s) in section '{section}': {sorted(unknown)}")
    kwargs = {
        key: _coerce(section, key, value, known[key])
        for key, value in data.items()
    }
    return cls(**kwargs)


def parse_settings(data: Mapping[str, Any]) -> StagingSettings:
    """Parse a merged settings dict into ``StagingSettings``."""
    unknown = set(data) - set(_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown settings section(s): {sorted(unknown)}")
    parsed = {
        name: parse_section(name, data.get(name) or {})
        for name in _SECTIONS
    }
    return StagingSettings(**parsed)


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> StagingSettings:
    """
    Build ``StagingSettings`` from defaults, an optional file, and the environment.

    Args:
        path: Operator YAML file merged over the packaged defaults.
        environ: Environment mapping (``os.environ`` when omitted).
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_sections(data, load_yaml_file(Path(path)))
    data = apply_env_overrides(data, os.environ if environ is None else environ)
    return parse_settings(data)

# SPDX-License-Identifier: GPL-3.0-or-later
# Copyright (C) 2024-2026 closurecal Team <dev@closurecal.org>

"""
Factory methods for creating closurecal configurations.

Loading precedence (highest to lowest):
1. Programmatic overrides
2. Environment variables (CLOSURECAL_*)
3. Config file (YAML)
4. Defaults from the nested Pydantic models

Both nested files (``eki: {ensemble_size: 20}``) and flat files with upper
case keys (``ENSEMBLE_SIZE: 20``) are accepted; flat keys are routed to their
section by alias.
"""

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import yaml
from pydantic import BaseModel, ValidationError

from closurecal.core.exceptions import ConfigurationError

from .models.inversion import EKIConfig, ResamplerConfig

if TYPE_CHECKING:
    from .models.inversion import CalibrationConfig

ENV_PREFIX = 'CLOSURECAL_'

SECTION_MODELS = {
    'eki': EKIConfig,
    'resampler': ResamplerConfig,
}


def _alias_table() -> Dict[str, tuple]:
    """Map every upper-case alias to its ``(section, field_name)``."""
    table = {}
    for section, model in SECTION_MODELS.items():
        for field_name, info in model.model_fields.items():
            if info.alias:
                table[info.alias.upper()] = (section, field_name)
    return table


def _normalize_section_keys(section: str, values: Dict[str, Any], aliases: Dict[str, tuple]) -> Dict[str, Any]:
    """Rename alias keys inside a section to their field names."""
    normalized = {}
    for key, value in values.items():
        target = aliases.get(str(key).upper())
        if target is not None and target[0] == section:
            normalized[target[1]] = value
        else:
            normalized[key] = value
    return normalized


def _nest_flat_keys(config: Dict[str, Any]) -> Dict[str, Any]:
    """Move flat alias keys into their sections, normalizing section names."""
    aliases = _alias_table()
    nested: Dict[str, Any] = {}

    for key, value in config.items():
        key_upper = str(key).upper()
        if key_upper in aliases:
            section, field_name = aliases[key_upper]
            nested.setdefault(section, {})[field_name] = value
        elif key_upper in ('EKI', 'RESAMPLER', 'PARAMETERS'):
            section = key_upper.lower()
            if isinstance(value, dict):
                value = _normalize_section_keys(section, value, aliases)
            if isinstance(value, dict) and isinstance(nested.get(section), dict):
                nested[section] = _deep_merge(nested[section], value)
            else:
                nested[section] = value
        else:
            nested[key] = value

    return nested


def _load_env_overrides() -> Dict[str, Any]:
    """Collect ``CLOSURECAL_<ALIAS>`` environment variables.

    Values are parsed as YAML scalars so that ``"20"`` becomes an int and
    ``"true"`` a bool.
    """
    aliases = _alias_table()
    overrides = {}
    for name, raw in os.environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        key = name[len(ENV_PREFIX):].upper()
        if key in aliases:
            overrides[key] = yaml.safe_load(raw)
    return overrides


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with override taking precedence.

    For nested dictionaries, recursively merge. For other values, override wins.
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _filter_none_values(d: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively filter out None values from a nested dictionary.

    This allows Pydantic to use field defaults when config explicitly sets null.
    """
    result = {}
    for key, value in d.items():
        if value is None:
            continue
        if isinstance(value, dict):
            filtered = _filter_none_values(value)
            if filtered:
                result[key] = filtered
        else:
            result[key] = value
    return result


def _format_validation_error(error: ValidationError) -> str:
    """Render a pydantic ValidationError as one line per failing field."""
    lines = ["Invalid calibration configuration:"]
    for item in error.errors():
        location = '.'.join(str(part) for part in item.get('loc', ())) or '<root>'
        lines.append(f"  {location}: {item.get('msg', 'invalid value')}")
    return '\n'.join(lines)


def _validate(cls: type, config: Dict[str, Any]) -> BaseModel:
    try:
        return cls(**config)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e)) from e


def from_dict_factory(cls: type, config: Dict[str, Any]) -> 'CalibrationConfig':
    """
    Create a configuration from an in-memory dictionary.

    Raises:
        ConfigurationError: If the configuration is invalid
    """
    return _validate(cls, _filter_none_values(_nest_flat_keys(config)))


def from_file_factory(
    cls: type,
    path: Path,
    overrides: Optional[Dict[str, Any]] = None,
    *,
    use_env: bool = True,
) -> 'CalibrationConfig':
    """
    Load configuration from YAML file with the layered hierarchy.

    Args:
        cls: CalibrationConfig class
        path: Path to configuration YAML file
        overrides: Dictionary of programmatic overrides (flat or nested)
        use_env: Whether to load environment variables (default: True)

    Returns:
        Validated CalibrationConfig instance

    Raises:
        ConfigurationError: If configuration is invalid or cannot be parsed
        FileNotFoundError: If config file is missing
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            file_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Could not parse {path}: {e}") from e

    if not isinstance(file_config, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")

    nested_config = _nest_flat_keys(file_config)

    if use_env:
        env_overrides = _load_env_overrides()
        if env_overrides:
            nested_config = _deep_merge(nested_config, _nest_flat_keys(env_overrides))

    if overrides:
        nested_config = _deep_merge(nested_config, _nest_flat_keys(overrides))

    return _validate(cls, _filter_none_values(nested_config))

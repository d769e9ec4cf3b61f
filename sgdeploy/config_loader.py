# sgdeploy/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the installer.

Handles loading settings from Pydantic model defaults, environment variables,
a YAML file and command-line overrides, applying a specific order of
precedence:
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings initialization)
3. YAML Configuration File
4. Command-Line Overrides
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .config_models import AppSettings

module_logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "/etc/sourcegraph/deploy.yaml"


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates a dictionary `source` with values from another dictionary
    `overrides`. Nested dictionaries are merged key by key; any other value
    replaces the one in `source`. `None` values in `overrides` never replace an
    existing value.

    Parameters:
        source: Dict[str, Any]
            The dictionary to be updated. This dictionary gets modified in place.
        overrides: Dict[str, Any]
            The dictionary containing values to update or add to the `source`.

    Returns:
        Dict[str, Any]:
            The updated dictionary after applying all `overrides` to the input `source`.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_yaml_config(
    yaml_config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not (yaml_config_path.exists() and yaml_config_path.is_file()):
        logger_to_use.info(
            f"Configuration file '{yaml_config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(yaml_config_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{yaml_config_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{yaml_config_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {yaml_config_path}")
    return yaml_data


def load_app_settings(
    config_file_path: Union[str, Path, None] = DEFAULT_CONFIG_FILE,
    cli_overrides: Optional[Dict[str, Any]] = None,
    current_logger: Optional[logging.Logger] = None,
) -> AppSettings:
    """
    Loads installer settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment Variables (``SG_DEPLOY_*``, nested keys joined with ``__``).
    3. Values from the YAML configuration file.
    4. Command-line overrides (highest precedence, overrides all else).

    Args:
        config_file_path: Path to the YAML configuration file. ``None`` skips it.
        cli_overrides: Nested dictionary of values supplied on the command line.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of AppSettings with the fully resolved configuration.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Model Defaults < Environment Variables
    current_values_dict = AppSettings().model_dump(exclude_defaults=False)

    if config_file_path is not None:
        yaml_data = _read_yaml_config(Path(config_file_path), logger_to_use)
        current_values_dict = _deep_update(current_values_dict, yaml_data)

    if cli_overrides:
        current_values_dict = _deep_update(current_values_dict, cli_overrides)

    return AppSettings(**current_values_dict)

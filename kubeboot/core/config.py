"""Centralized configuration loading for kubeboot.

This module provides utilities for loading and accessing configuration from
kubeboot.json with support for environment variable fallbacks and default values.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "kubeboot.json"
ENV_PREFIX = "KUBEBOOT"

DEFAULTS: Dict[str, Any] = {
    "kubectl": {
        "binary": "kubectl",
        "timeout_seconds": 30.0,
    },
    "generate": {
        "clean": True,
    },
    "validate": {
        "schema": False,
        "kubernetes_version": "1.28",
    },
}


def default_config_path() -> str:
    """Return the config path, honouring KUBEBOOT_CONFIG."""
    return os.environ.get(f"{ENV_PREFIX}_CONFIG", DEFAULT_CONFIG_PATH)


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from JSON file.

    Returns empty dict if file doesn't exist or is invalid.

    Args:
        config_path: Path to config file (default: $KUBEBOOT_CONFIG or "kubeboot.json")

    Returns:
        Configuration dictionary, or empty dict if file not found/invalid
    """
    path = Path(config_path or default_config_path())

    if not path.exists():
        return {}

    try:
        with open(path, "r") as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as e:
        # Fall back to defaults so a broken config never blocks generation
        logger.warning(f"Ignoring unreadable config {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring config {path}: top level must be an object")
        return {}
    return data


def _lookup(tree: Dict[str, Any], keys: List[str]) -> Any:
    value: Any = tree
    for key in keys:
        if not isinstance(value, dict):
            return None
        value = value.get(key)
        if value is None:
            return None
    return value


def get_config_value(
    keys: List[str], default: Any = None, config: Optional[Dict[str, Any]] = None
) -> Any:
    """Get nested configuration value with fallback to environment variable.

    Supports nested keys like ["kubectl", "binary"]. Checks environment
    variables as fallback (e.g., KUBEBOOT_KUBECTL_BINARY for kubectl.binary),
    then the built-in defaults, then ``default``.

    Args:
        keys: List of keys to traverse (e.g., ["kubectl", "timeout_seconds"])
        default: Default value if key not found anywhere
        config: Optional config dict (uses load_config() if not provided)

    Returns:
        Configuration value, or default if not found
    """
    if config is None:
        config = load_config()

    value = _lookup(config, keys)
    if value is not None:
        return value

    env_key = "_".join([ENV_PREFIX] + [k.upper() for k in keys])
    env_value = os.environ.get(env_key)
    if env_value is not None:
        return env_value

    if default is not None:
        return default

    return _lookup(DEFAULTS, keys)


def as_bool(value: Any) -> bool:
    """Interpret config values that may arrive as strings from the environment."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)

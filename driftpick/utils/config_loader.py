"""
Configuration loader utility
"""

import logging
import yaml
from typing import Dict, Any, Optional
from pathlib import Path


def load_config(config_path: str = 'config/config.yaml') -> Dict[str, Any]:
    """
    Load configuration from YAML file

    Args:
        config_path: Path to configuration file

    Returns:
        Dictionary with configuration values (empty dict for an empty file)
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_file, 'r') as f:
        config = yaml.safe_load(f)

    if config is None:
        return {}
    if not isinstance(config, dict):
        raise ValueError(f"Configuration root must be a mapping: {config_path}")
    return config


def load_config_or_default(
    config_path: str,
    logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """Load configuration, falling back to built-in defaults when the file is missing."""
    try:
        return load_config(config_path)
    except FileNotFoundError:
        (logger or logging.getLogger(__name__)).warning(
            f"Config file not found at {config_path}, using defaults"
        )
        return {}


def get_section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return a config section, treating a missing or null section as empty."""
    return config.get(name) or {}

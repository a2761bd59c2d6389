"""Layered configuration manager (defaults + user + project + explicit file)."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from .paths import get_defaults_path, get_user_config_path, get_project_config_path, get_explicit_config_path
from ..utils.errors import ConfigError
from ..utils.logging import get_logger

logger = get_logger("config.manager")


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load full config tree with overrides applied.
    
    Later layers override earlier ones: packaged defaults, user config,
    project config, explicit config file.
    
    Args:
        config_path: Optional explicit config file
        
    Returns:
        Merged configuration dictionary
        
    Raises:
        ConfigError: If a required file is missing or any file is invalid
    """
    config = _read_yaml(get_defaults_path())
    
    user_config_path = get_user_config_path()
    if user_config_path.exists():
        _deep_merge(config, _read_yaml(user_config_path))
        logger.debug(f"Loaded user config from {user_config_path}")
    
    project_config_path = get_project_config_path()
    if project_config_path:
        _deep_merge(config, _read_yaml(project_config_path))
        logger.info(f"Loaded project config from {project_config_path}")
    
    explicit_path = get_explicit_config_path(config_path)
    if explicit_path:
        if not explicit_path.exists():
            raise ConfigError(f"Config file not found: {explicit_path}")
        _deep_merge(config, _read_yaml(explicit_path))
        logger.info(f"Loaded config from {explicit_path}")
    
    return config


def _read_yaml(path: Path) -> Dict[str, Any]:
    """Read one YAML layer; an empty file is an empty layer."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config file {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Error reading config file {path}: {e}")
    
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a dictionary: {path}")
    return data


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> None:
    """Deep merge override into base (in-place)."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value

"""Config path resolution for layered config system."""

import os
from pathlib import Path
from typing import Optional


def get_defaults_path() -> Path:
    """Get packaged defaults: stackapply/config/defaults.yaml"""
    return Path(__file__).parent / "defaults.yaml"


def get_user_config_path() -> Path:
    """Get user config path: ~/.stackapply/config.yaml"""
    home = Path.home()
    return home / ".stackapply" / "config.yaml"


def get_project_config_path() -> Optional[Path]:
    """Get project config path: .stackapply/config.yaml (from current working directory)"""
    cwd = Path.cwd()
    project_config = cwd / ".stackapply" / "config.yaml"
    if project_config.exists():
        return project_config
    return None


def get_explicit_config_path(config_path: Optional[str] = None) -> Optional[Path]:
    """
    Resolve an explicitly requested config file.
    
    Priority:
    1. Path passed on the command line
    2. STACKAPPLY_CONFIG environment variable
    
    Returns:
        Path or None when no explicit config was requested
    """
    if config_path:
        return Path(config_path)
    env_path = os.getenv("STACKAPPLY_CONFIG")
    if env_path:
        return Path(env_path)
    return None

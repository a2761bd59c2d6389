"""Configuration module: load and validate layered settings."""

from typing import Optional
from pydantic import ValidationError as PydanticValidationError
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .manager import load_config
from .paths import get_user_config_path, get_project_config_path
from .settings import Settings, TemplateSettings, EngineSettings

logger = get_logger("config")

__all__ = [
    "load_settings",
    "load_config",
    "Settings",
    "TemplateSettings",
    "EngineSettings",
    "get_user_config_path",
    "get_project_config_path",
]


def load_settings(config_path: Optional[str] = None) -> Settings:
    """
    Load layered configuration and validate it.
    
    Args:
        config_path: Optional explicit config file
        
    Returns:
        Validated Settings
        
    Raises:
        ConfigError: If config cannot be loaded or fails validation
    """
    config = load_config(config_path)
    try:
        settings = Settings(**config)
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}")
    
    logger.debug(
        f"Settings loaded (provider: {settings.engine.provider}, "
        f"state: {settings.engine.state_path})"
    )
    return settings

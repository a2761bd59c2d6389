"""Provider clients - the cloud API surface the executor drives."""

import importlib
from ..config.settings import Settings
from ..utils.errors import ConfigError
from ..utils.logging import get_logger
from .base import ProviderClient, bucket_access_policy
from .local import LocalProvider
from .registry import SUPPORTED_PROVIDERS

logger = get_logger("provider")

__all__ = ["ProviderClient", "LocalProvider", "SUPPORTED_PROVIDERS", "create_provider", "bucket_access_policy"]


def create_provider(settings: Settings) -> ProviderClient:
    """
    Build the provider client named in settings from the registry entry.

    Args:
        settings: Validated settings

    Returns:
        ProviderClient instance

    Raises:
        ConfigError: If the provider is not supported or cannot be loaded
    """
    name = settings.engine.provider
    entry = SUPPORTED_PROVIDERS.get(name)
    if entry is None:
        raise ConfigError(f"Unsupported provider: {name} (supported: {', '.join(SUPPORTED_PROVIDERS)})")

    try:
        module = importlib.import_module(entry["module"])
    except ImportError as e:
        hint = f" Install with: pip install 'stackapply[{entry['extra']}]'" if entry["extra"] else ""
        raise ConfigError(f"Provider '{name}' could not be loaded: {e}.{hint}")

    provider_class = getattr(module, entry["class"], None)
    if provider_class is None:
        raise ConfigError(f"Provider '{name}': {entry['module']} has no class {entry['class']}")

    provider = provider_class.from_settings(settings)
    logger.debug(f"Using provider: {name} ({entry['description']})")
    return provider

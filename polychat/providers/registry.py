import logging
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, Mapping, Optional

from .base import ProviderAdapter
from .config import PROVIDER_CONFIGS
from .gemini_provider import GeminiProvider
from .openai_provider import OpenAIProvider
from ..core.config import Settings

logger = logging.getLogger(__name__)

# Adapter variant per provider config "type"
PROVIDER_TYPES: Dict[str, Callable[..., ProviderAdapter]] = {
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
}


class ProviderRegistry:
    """Read-only mapping of provider name to a live adapter.

    Built once at startup and handed to the request handlers; it is never
    mutated afterwards, so later credential changes have no effect.
    """

    def __init__(self, providers: Mapping[str, ProviderAdapter]):
        self._providers = MappingProxyType(dict(providers))

    def __contains__(self, name: object) -> bool:
        return name in self._providers

    def __iter__(self) -> Iterator[str]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, name: str) -> Optional[ProviderAdapter]:
        """Return the adapter for ``name`` if it is registered and available"""
        provider = self._providers.get(name)
        if provider is None or not provider.is_available():
            return None
        return provider

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """Public view of the registered providers"""
        return {
            name: {
                "name": provider.name,
                "displayName": provider.display_name,
                "models": list(provider.models),
            }
            for name, provider in self._providers.items()
        }


def build_registry(
    settings: Settings, configs: Optional[Mapping[str, Dict[str, Any]]] = None
) -> ProviderRegistry:
    """Instantiate every configured provider whose credential is present"""
    providers: Dict[str, ProviderAdapter] = {}
    for name, config in (configs or PROVIDER_CONFIGS).items():
        provider_type = config.get("type", name)
        if provider_type not in PROVIDER_TYPES:
            raise ValueError(f"Unsupported provider type: {provider_type}")

        api_key = getattr(settings, config["credential"], None)
        if not api_key:
            logger.info(f"Skipping provider {name}: {config['credential']} not set")
            continue

        provider = PROVIDER_TYPES[provider_type](api_key=api_key, config=config)
        if provider.is_available():
            providers[name] = provider
            logger.info(f"Registered provider: {name}")

    return ProviderRegistry(providers)

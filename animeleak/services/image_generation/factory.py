"""
Builds the configured image provider from settings.
"""
import logging
from typing import Any

from animeleak.services.image_generation.base import ImageGenerationProvider
from animeleak.services.image_generation.providers.gemini import GeminiImageProvider

logger = logging.getLogger(__name__)


def _gemini_config(settings) -> dict[str, Any]:
    return {
        "api_key": settings.gemini_api_key,
        "api_endpoint": settings.gemini_api_endpoint,
        "timeout": settings.gemini_timeout,
        "model": settings.gemini_image_model,
    }


class ImageProviderFactory:
    # name -> (provider class, settings -> provider config)
    PROVIDERS = {
        "gemini": (GeminiImageProvider, _gemini_config),
    }

    @classmethod
    def create(cls, provider_name: str, config: dict) -> ImageGenerationProvider:
        """Raises ValueError for an unknown provider name."""
        entry = cls.PROVIDERS.get((provider_name or "").strip().lower())
        if entry is None:
            raise ValueError(
                f"Unknown provider: {provider_name}. Available providers: {', '.join(cls.PROVIDERS)}"
            )
        provider = entry[0](config)
        if not provider.is_available():
            # Still returned: the first generation fails as a configuration error.
            logger.warning("image_provider_not_configured", extra={"provider": provider_name})
        return provider

    @classmethod
    def create_from_settings(cls, settings) -> ImageGenerationProvider:
        name = (settings.image_provider or "gemini").strip().lower()
        entry = cls.PROVIDERS.get(name)
        if entry is None:
            raise ValueError(f"Provider {name} not supported in settings")
        return cls.create(name, entry[1](settings))

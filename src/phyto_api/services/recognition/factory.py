"""
Factory for creating recognition provider instances.

Reads configuration from settings and returns every enabled provider, in the
configured order. Providers without credentials are still returned: they
report ``auth_error`` so the provider report always has one entry each.
"""

import logging

from phyto_api.core.config import Settings, get_settings

from .base import RecognitionProvider, RecognitionProviderError
from .huggingface_provider import HuggingFaceDiseaseRecognition
from .openai_vision_provider import OpenAIVisionRecognition
from .plant_id_provider import PlantIdRecognition
from .plantnet_provider import PlantNetRecognition

logger = logging.getLogger(__name__)


# Supported providers
PROVIDERS: dict[str, type[RecognitionProvider]] = {
    "plant_id": PlantIdRecognition,
    "plantnet": PlantNetRecognition,
    "openai_vision": OpenAIVisionRecognition,
    "huggingface": HuggingFaceDiseaseRecognition,
}


def create_provider(provider_id: str, settings: Settings) -> RecognitionProvider:
    """
    Create one provider from settings.

    Raises:
        RecognitionProviderError: If the provider id is not supported
    """
    if provider_id not in PROVIDERS:
        raise RecognitionProviderError(
            message=f"Unknown recognition provider: {provider_id}",
            provider=provider_id,
            details={"supported_providers": list(PROVIDERS.keys())},
        )

    timeout = settings.provider_timeout_seconds
    api_key = settings.provider_api_key(provider_id)

    if provider_id == "plant_id":
        return PlantIdRecognition(
            api_key=api_key, base_url=settings.plant_id_base_url, timeout=timeout
        )
    if provider_id == "plantnet":
        return PlantNetRecognition(
            api_key=api_key,
            base_url=settings.plantnet_base_url,
            timeout=timeout,
            project=settings.plantnet_project,
        )
    if provider_id == "openai_vision":
        return OpenAIVisionRecognition(
            api_key=api_key,
            base_url=settings.openai_base_url,
            timeout=timeout,
            model=settings.openai_model,
        )
    return HuggingFaceDiseaseRecognition(
        api_key=api_key,
        base_url=settings.huggingface_base_url,
        timeout=timeout,
        model=settings.huggingface_model,
    )


def build_providers(settings: Settings | None = None) -> list[RecognitionProvider]:
    """
    Build all enabled providers.

    Configuration is read from settings:
    - enabled_providers: provider ids, in report order
    - PLANT_ID_API_KEY, PLANTNET_API_KEY, OPENAI_API_KEY,
      HUGGINGFACE_ACCESS_TOKEN: credentials (absent = auth_error)

    Returns:
        Provider instances, one per enabled id
    """
    settings = settings or get_settings()

    providers = []
    for provider_id in settings.enabled_providers:
        provider = create_provider(provider_id, settings)
        if not provider.is_configured:
            logger.warning(f"Recognition provider {provider_id} has no API key; it will report auth_error")
        providers.append(provider)

    logger.info(f"Initialized recognition providers: {[p.provider_id for p in providers]}")
    return providers

"""
Plant Recognition Providers - one adapter per external recognition API.

Each adapter normalizes its provider's response into the common
ProviderResult schema and classifies its own failures.
"""

from .base import RecognitionProvider, RecognitionProviderError
from .factory import PROVIDERS, build_providers, create_provider
from .huggingface_provider import HuggingFaceDiseaseRecognition
from .openai_vision_provider import OpenAIVisionRecognition
from .plant_id_provider import PlantIdRecognition
from .plantnet_provider import PlantNetRecognition

__all__ = [
    "PROVIDERS",
    "HuggingFaceDiseaseRecognition",
    "OpenAIVisionRecognition",
    "PlantIdRecognition",
    "PlantNetRecognition",
    "RecognitionProvider",
    "RecognitionProviderError",
    "build_providers",
    "create_provider",
]

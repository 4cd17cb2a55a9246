"""Application configuration using Pydantic Settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Provider credentials (absent key = provider reports auth_error)
    plant_id_api_key: str = ""
    plantnet_api_key: str = ""
    openai_api_key: str = ""
    huggingface_access_token: str = ""

    # Provider endpoints
    plant_id_base_url: str = "https://plant.id/api/v3"
    plantnet_base_url: str = "https://my-api.plantnet.org/v2"
    plantnet_project: str = "all"
    openai_base_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    huggingface_base_url: str = "https://api-inference.huggingface.co/models"
    huggingface_model: str = "linkanjarad/mobilenet_v2_1.0_224-plant-disease-identification"

    # Taxonomy lookups used by the fallback chain
    gbif_base_url: str = "https://api.gbif.org/v1"
    inaturalist_base_url: str = "https://api.inaturalist.org/v1"
    taxonomy_timeout_seconds: float = 10.0

    # Orchestration policy
    enabled_providers: list[str] = ["plant_id", "plantnet", "openai_vision", "huggingface"]
    provider_priority: list[str] = ["plant_id", "plantnet", "openai_vision", "huggingface"]
    provider_timeout_seconds: float = 15.0
    provider_max_retries: int = 2
    retry_backoff_base_seconds: float = 1.0  # 1s, 2s, 4s...

    # Circuit breaker (process-wide)
    breaker_failure_threshold: int = 3
    breaker_cooldown_seconds: float = 60.0

    # Fusion / fallback
    fallback_confidence_floor: float = 30.0
    fallback_lookup_confidence: float = 40.0
    fallback_max_hints: int = 3
    regulated_extra_keywords: list[str] = []

    # Image precheck
    precheck_min_dimension: int = 224
    precheck_min_brightness: float = 40.0
    precheck_max_brightness: float = 220.0
    precheck_min_plant_ratio: float = 0.15
    precheck_min_sharpness: float = 15.0
    max_image_bytes: int = 15 * 1024 * 1024  # 15 MB

    # App
    debug: bool = False
    log_level: str = "INFO"
    app_name: str = "Phyto Fusion API"
    api_version: str = "1.0.0"

    def provider_api_key(self, provider_id: str) -> str:
        """Return the credential configured for a provider id ("" if none)."""
        return {
            "plant_id": self.plant_id_api_key,
            "plantnet": self.plantnet_api_key,
            "openai_vision": self.openai_api_key,
            "huggingface": self.huggingface_access_token,
        }.get(provider_id, "")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()

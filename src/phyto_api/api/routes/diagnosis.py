"""Diagnosis API routes.

Endpoints for plant identification and diagnosis from a single photo.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, File, Form, UploadFile
from pydantic import BaseModel, Field

from phyto_api.api.dependencies import DiagnosisEngineDep, SettingsDep
from phyto_api.core.exceptions import PayloadTooLargeError
from phyto_api.models.diagnosis import AggregatedResult, PlantContext, PrecheckResult

router = APIRouter()
logger = logging.getLogger(__name__)


# =============================================================================
# Response Models
# =============================================================================


class ProviderInfo(BaseModel):
    """Configuration and breaker state of one recognition provider."""

    provider_id: str
    configured: bool = Field(..., description="Whether credentials are present")
    breaker_state: str = "closed"
    consecutive_failures: int = 0


class ProvidersResponse(BaseModel):
    """Response for GET /diagnosis/providers."""

    providers: list[ProviderInfo]


# =============================================================================
# Helpers
# =============================================================================


async def read_image(image: UploadFile, max_size: int) -> bytes:
    """Read an uploaded image, enforcing the size limit."""
    content = await image.read()
    if len(content) > max_size:
        raise PayloadTooLargeError(size=len(content), max_size=max_size)
    return content


def parse_symptoms(symptoms: str | None) -> list[str]:
    """Split a comma-separated symptom field."""
    if not symptoms:
        return []
    return [s.strip() for s in symptoms.split(",") if s.strip()]


# =============================================================================
# Endpoints
# =============================================================================


@router.post("", response_model=AggregatedResult)
async def diagnose(
    engine: DiagnosisEngineDep,
    settings: SettingsDep,
    image: Annotated[UploadFile, File(description="Plant photo (JPEG/PNG)")],
    plant_name: Annotated[str | None, Form()] = None,
    scientific_name: Annotated[str | None, Form()] = None,
    symptoms: Annotated[str | None, Form(description="Comma-separated symptoms")] = None,
    location: Annotated[str | None, Form()] = None,
) -> AggregatedResult:
    """
    Identify a plant and diagnose visible problems.

    Returns 422 with issues and suggestions when the photo fails the
    precheck, 400 when it exceeds the upload limit. Provider outages never
    fail the request; the result is marked ``is_fallback`` instead.
    """
    image_data = await read_image(image, settings.max_image_bytes)
    context = PlantContext(
        plant_name=plant_name,
        scientific_name=scientific_name,
        symptoms=parse_symptoms(symptoms),
        location=location,
    )

    logger.info(f"Diagnosis request: {len(image_data)} bytes, plant_name={plant_name!r}")
    return await engine.identify_and_diagnose(image_data, context)


@router.post("/precheck", response_model=PrecheckResult)
async def precheck(
    engine: DiagnosisEngineDep,
    settings: SettingsDep,
    image: Annotated[UploadFile, File(description="Plant photo (JPEG/PNG)")],
) -> PrecheckResult:
    """Validate a photo locally without calling any provider."""
    image_data = await read_image(image, settings.max_image_bytes)
    return engine.precheck(image_data)


@router.get("/providers", response_model=ProvidersResponse)
async def list_providers(engine: DiagnosisEngineDep) -> ProvidersResponse:
    """List configured providers with their circuit breaker state."""
    snapshot = engine.orchestrator.breaker.snapshot()

    providers = []
    for provider in engine.orchestrator.providers:
        breaker = snapshot.get(provider.provider_id, {})
        providers.append(
            ProviderInfo(
                provider_id=provider.provider_id,
                configured=provider.is_configured,
                breaker_state=breaker.get("state", "closed"),
                consecutive_failures=breaker.get("consecutive_failures", 0),
            )
        )
    return ProvidersResponse(providers=providers)

"""Pydantic models."""

from .diagnosis import (
    AggregatedResult,
    DiseaseCandidate,
    FallbackTier,
    IdentificationCandidate,
    PlantContext,
    PrecheckResult,
    ProviderResult,
    ProviderStatus,
    RegulatedAdvisory,
    Severity,
    clamp_confidence,
    normalize_name,
)

__all__ = [
    "AggregatedResult",
    "DiseaseCandidate",
    "FallbackTier",
    "IdentificationCandidate",
    "PlantContext",
    "PrecheckResult",
    "ProviderResult",
    "ProviderStatus",
    "RegulatedAdvisory",
    "Severity",
    "clamp_confidence",
    "normalize_name",
]

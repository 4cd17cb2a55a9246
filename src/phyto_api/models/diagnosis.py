"""Pydantic models for the identification and diagnosis contract.

Every model is created fresh per request and frozen after construction.
Confidences are expressed on a 0-100 scale and clamped rather than
rejected, since provider payloads routinely drift out of range.
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# =============================================================================
# Helpers
# =============================================================================

_WHITESPACE = re.compile(r"\s+")


def normalize_name(value: str | None) -> str:
    """Trim, collapse internal whitespace and lower-case a name for comparison."""
    if not value:
        return ""
    return _WHITESPACE.sub(" ", value).strip().lower()


def clamp_confidence(value: float | int | None) -> float:
    """Clamp a confidence to [0, 100]. Non-numeric input becomes 0."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(100.0, number))


# =============================================================================
# Enums
# =============================================================================


class ProviderStatus(str, Enum):
    """Outcome of one provider call (after retries)."""

    OK = "ok"
    TIMEOUT = "timeout"
    RATE_LIMITED = "rate_limited"
    INVALID_RESPONSE = "invalid_response"
    AUTH_ERROR = "auth_error"
    UNKNOWN_ERROR = "unknown_error"
    BREAKER_OPEN = "breaker_open"  # Skipped, circuit breaker open


class Severity(str, Enum):
    """Disease severity, derived from cluster confidence."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_confidence(cls, confidence: float) -> "Severity":
        if confidence > 70:
            return cls.HIGH
        if confidence > 40:
            return cls.MEDIUM
        return cls.LOW


class FallbackTier(str, Enum):
    """Which fallback tier produced a degraded result."""

    GBIF = "gbif"
    INATURALIST = "inaturalist"
    CURATED = "curated"
    NONE = "none"  # Total failure, nothing could be produced


# =============================================================================
# Candidates
# =============================================================================


class IdentificationCandidate(BaseModel):
    """A species guess, either from one provider or a merged cluster."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Common / display name")
    scientific_name: str = Field("", description="Scientific name, display casing")
    confidence: float = Field(0.0, description="Confidence 0-100")
    source: str = Field(..., description="Provider id of the representative guess")
    sources: list[str] = Field(
        default_factory=list,
        description="All providers that contributed to this candidate",
    )
    family: str | None = None
    genus: str | None = None
    is_regulated: bool = False

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)

    @field_validator("name", "scientific_name", mode="before")
    @classmethod
    def _strip(cls, value):
        return _WHITESPACE.sub(" ", value).strip() if isinstance(value, str) else value

    @model_validator(mode="before")
    @classmethod
    def _default_sources(cls, data):
        if isinstance(data, dict) and not data.get("sources") and data.get("source"):
            data = {**data, "sources": [data["source"]]}
        return data

    @property
    def normalized_key(self) -> str:
        """Exact-match clustering key."""
        scientific = normalize_name(self.scientific_name)
        if scientific:
            return scientific
        return f"name:{normalize_name(self.name)}"


class DiseaseCandidate(BaseModel):
    """A disease / pest guess, either from one provider or a merged cluster."""

    model_config = ConfigDict(frozen=True)

    name: str
    confidence: float = Field(0.0, description="Confidence 0-100")
    symptoms: list[str] = Field(default_factory=list)
    treatments: list[str] = Field(default_factory=list)
    cause: str | None = None
    severity: Severity = Severity.LOW
    source: str
    sources: list[str] = Field(default_factory=list)
    is_regulated: bool = False
    regulated_code: str | None = Field(
        None, description="EPPO code of the matched regulated organism"
    )

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp(cls, value):
        return clamp_confidence(value)

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, value):
        return _WHITESPACE.sub(" ", value).strip() if isinstance(value, str) else value

    @model_validator(mode="before")
    @classmethod
    def _derive(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        # Severity always follows confidence, whatever the provider said
        data["severity"] = Severity.from_confidence(clamp_confidence(data.get("confidence", 0)))
        if not data.get("sources") and data.get("source"):
            data["sources"] = [data["source"]]
        return data

    @property
    def normalized_key(self) -> str:
        return normalize_name(self.name)


# =============================================================================
# Provider / aggregate results
# =============================================================================


class ProviderResult(BaseModel):
    """Normalized outcome of one provider for one request."""

    model_config = ConfigDict(frozen=True)

    provider_id: str
    status: ProviderStatus
    candidates: list[IdentificationCandidate] = Field(default_factory=list)
    diseases: list[DiseaseCandidate] = Field(default_factory=list)
    latency_ms: int = Field(0, ge=0)
    attempts: int = Field(0, ge=0, description="Calls actually issued")
    error: str | None = Field(None, description="Short error description")

    @property
    def is_ok(self) -> bool:
        return self.status == ProviderStatus.OK


class RegulatedAdvisory(BaseModel):
    """Urgency notice raised when a regulated organism was matched."""

    model_config = ConfigDict(frozen=True)

    organisms: list[str] = Field(default_factory=list)
    codes: list[str] = Field(default_factory=list)
    message: str


class AggregatedResult(BaseModel):
    """Final, caller-facing result of identify_and_diagnose."""

    model_config = ConfigDict(frozen=True)

    plant_candidates: list[IdentificationCandidate] = Field(
        default_factory=list,
        description=(
            "Provider clusters ranked by confidence, followed by any fallback "
            "suggestions in their own confidence order. On fallback results the "
            "list as a whole is not sorted by confidence."
        ),
    )
    disease_candidates: list[DiseaseCandidate] = Field(default_factory=list)
    best_provider: str | None = None
    agreement_score: float = Field(0.0, ge=0.0, le=100.0)
    is_fallback: bool = False
    fallback_message: str | None = None
    fallback_tier: FallbackTier | None = None
    provider_report: list[ProviderResult] = Field(default_factory=list)
    advisory: RegulatedAdvisory | None = None
    is_healthy: bool = True
    image_quality: float | None = Field(None, ge=0.0, le=1.0)

    @property
    def top_candidate(self) -> IdentificationCandidate | None:
        return self.plant_candidates[0] if self.plant_candidates else None


# =============================================================================
# Precheck / request context
# =============================================================================


class PrecheckResult(BaseModel):
    """Outcome of local image validation."""

    model_config = ConfigDict(frozen=True)

    is_valid: bool
    has_plant_content: bool
    quality: float = Field(ge=0.0, le=1.0)
    issues: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    width: int | None = None
    height: int | None = None
    brightness: float | None = None
    plant_color_ratio: float | None = None


class PlantContext(BaseModel):
    """Optional user-provided hints accompanying the image."""

    model_config = ConfigDict(frozen=True)

    plant_name: str | None = None
    scientific_name: str | None = None
    symptoms: list[str] = Field(default_factory=list)
    location: str | None = None

    @property
    def name_hints(self) -> list[str]:
        return [n.strip() for n in (self.scientific_name, self.plant_name) if n and n.strip()]

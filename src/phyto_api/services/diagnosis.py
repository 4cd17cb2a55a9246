"""
Diagnosis engine.

The single entry point for plant identification and diagnosis:

    precheck -> orchestrator -> consensus + disease aggregation
             -> regulated matching -> fallback (when needed)

Only an invalid image is raised to the caller (ImagePrecheckError). Every
other recognized failure mode degrades to a result marked ``is_fallback``.
"""

import asyncio
import logging

from phyto_api.core.config import Settings, get_settings
from phyto_api.core.exceptions import ImagePrecheckError
from phyto_api.models.diagnosis import (
    AggregatedResult,
    FallbackTier,
    IdentificationCandidate,
    PlantContext,
    PrecheckResult,
    ProviderResult,
)

from .circuit_breaker import CircuitBreakerRegistry
from .consensus import IdentificationConsensusEngine
from .disease_aggregator import DiseaseAggregator
from .fallback import FallbackChain
from .orchestrator import ProviderOrchestrator
from .precheck import ImagePrecheck
from .recognition import build_providers
from .regulated import RegulatedOrganismMatcher

logger = logging.getLogger(__name__)


TOTAL_FAILURE_MESSAGE = (
    "Identification is temporarily unavailable. Please try again later or "
    "ask an expert to review your photo."
)


class DiagnosisEngine:
    """Fuses multi-provider recognition into one AggregatedResult."""

    def __init__(
        self,
        settings: Settings | None = None,
        precheck: ImagePrecheck | None = None,
        orchestrator: ProviderOrchestrator | None = None,
        consensus: IdentificationConsensusEngine | None = None,
        disease_aggregator: DiseaseAggregator | None = None,
        matcher: RegulatedOrganismMatcher | None = None,
        fallback: FallbackChain | None = None,
    ) -> None:
        """
        Initialize the engine. Every collaborator is injectable; defaults
        are built from settings.
        """
        settings = settings or get_settings()
        self.settings = settings
        self.precheck_service = precheck or ImagePrecheck(settings)
        self.orchestrator = orchestrator or ProviderOrchestrator(
            providers=build_providers(settings),
            breaker=CircuitBreakerRegistry(
                failure_threshold=settings.breaker_failure_threshold,
                cooldown_seconds=settings.breaker_cooldown_seconds,
            ),
            settings=settings,
        )
        self.consensus = consensus or IdentificationConsensusEngine(settings)
        self.disease_aggregator = disease_aggregator or DiseaseAggregator(settings)
        self.matcher = matcher or RegulatedOrganismMatcher(settings=settings)
        self.fallback = fallback or FallbackChain(settings=settings)
        self.confidence_floor = settings.fallback_confidence_floor

    def precheck(self, image_data: bytes) -> PrecheckResult:
        """Validate an image without calling any provider."""
        return self.precheck_service.validate(image_data)

    async def identify_and_diagnose(
        self,
        image_data: bytes,
        context: PlantContext | None = None,
    ) -> AggregatedResult:
        """
        Identify the plant and diagnose visible problems.

        Args:
            image_data: Raw image bytes
            context: Optional user hints (names, symptoms, location)

        Returns:
            AggregatedResult; ``is_fallback`` marks degraded results

        Raises:
            ImagePrecheckError: If the image fails local validation
        """
        check = self.precheck(image_data)
        if not check.is_valid:
            logger.info(f"Image rejected by precheck (quality {check.quality:.2f}): {check.issues}")
            raise ImagePrecheckError(
                issues=check.issues,
                suggestions=check.suggestions,
                quality=check.quality,
            )

        results = await self.orchestrator.identify(image_data, context)

        try:
            return await self._fuse(results, context, check.quality)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Fusion failed, serving curated suggestions")

        try:
            curated = self.fallback.curated()
            return AggregatedResult(
                plant_candidates=curated.candidates,
                disease_candidates=curated.diseases,
                is_fallback=True,
                fallback_tier=curated.tier,
                fallback_message=curated.message,
                provider_report=results,
                image_quality=check.quality,
            )
        except Exception:
            logger.exception("Curated fallback failed, returning total-failure result")
            return AggregatedResult(
                plant_candidates=[],
                is_fallback=True,
                fallback_tier=FallbackTier.NONE,
                fallback_message=TOTAL_FAILURE_MESSAGE,
                provider_report=results,
                image_quality=check.quality,
            )

    async def _fuse(
        self,
        results: list[ProviderResult],
        context: PlantContext | None,
        image_quality: float,
    ) -> AggregatedResult:
        outcome = self.consensus.merge(results)
        plants = outcome.candidates
        diseases = self.disease_aggregator.merge(results)
        is_healthy = self.disease_aggregator.is_healthy(diseases)

        is_fallback = False
        fallback_tier = None
        fallback_message = None
        best_provider = outcome.best_provider
        agreement = outcome.agreement_score

        if self._needs_fallback(plants):
            hints = self.fallback.collect_hints(context, results)
            logger.info(f"Running fallback chain with hints {hints}")
            fallback = await self.fallback.run(hints)

            plants = self._append_unique(plants, fallback.candidates)
            if not diseases:
                diseases = fallback.diseases

            is_fallback = True
            fallback_tier = fallback.tier
            fallback_message = fallback.message
            if not outcome.candidates:
                best_provider = None
                agreement = 0.0

        plants = self.matcher.annotate(plants)
        diseases = self.matcher.annotate(diseases)
        advisory = self.matcher.build_advisory(plants, diseases)

        result = AggregatedResult(
            plant_candidates=plants,
            disease_candidates=diseases,
            best_provider=best_provider,
            agreement_score=agreement,
            is_fallback=is_fallback,
            fallback_message=fallback_message,
            fallback_tier=fallback_tier,
            provider_report=results,
            advisory=advisory,
            is_healthy=is_healthy,
            image_quality=image_quality,
        )

        top = result.top_candidate
        logger.info(
            f"Diagnosis complete: top={top.name if top else None}, "
            f"diseases={len(diseases)}, fallback={is_fallback}, regulated={advisory is not None}"
        )
        return result

    def _needs_fallback(self, plants: list[IdentificationCandidate]) -> bool:
        return not plants or plants[0].confidence < self.confidence_floor

    @staticmethod
    def _append_unique(
        existing: list[IdentificationCandidate],
        extra: list[IdentificationCandidate],
    ) -> list[IdentificationCandidate]:
        """Keep existing candidates first; add new ones without duplicate keys."""
        keys = {c.normalized_key for c in existing}
        merged = list(existing)
        for candidate in extra:
            if candidate.normalized_key not in keys:
                keys.add(candidate.normalized_key)
                merged.append(candidate)
        return merged

    async def aclose(self) -> None:
        """Release HTTP clients held by providers and lookups."""
        await self.orchestrator.close()
        await self.fallback.close()


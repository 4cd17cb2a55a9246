"""
Fallback chain.

Used when recognition providers produced nothing usable or nothing
confident. Escalates through taxonomy lookups (GBIF, then iNaturalist) and
finally a static curated list of common plants and issues, which always
succeeds. Every outcome is explicitly marked as degraded.
"""

import logging
from dataclasses import dataclass, field

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import (
    DiseaseCandidate,
    FallbackTier,
    IdentificationCandidate,
    PlantContext,
    ProviderResult,
    normalize_name,
)

from .taxonomy import GBIFLookup, INaturalistLookup, TaxonomyLookup, TaxonomyLookupError

logger = logging.getLogger(__name__)


CURATED_SOURCE = "fallback"


# =============================================================================
# Curated suggestions
# =============================================================================

COMMON_PLANTS: list[dict] = [
    {"name": "Basil", "scientific_name": "Ocimum basilicum", "confidence": 50, "family": "Lamiaceae"},
    {"name": "Mint", "scientific_name": "Mentha spicata", "confidence": 48, "family": "Lamiaceae"},
    {"name": "Rosemary", "scientific_name": "Rosmarinus officinalis", "confidence": 46, "family": "Lamiaceae"},
    {"name": "Pothos", "scientific_name": "Epipremnum aureum", "confidence": 45, "family": "Araceae"},
    {"name": "Aloe vera", "scientific_name": "Aloe barbadensis", "confidence": 44, "family": "Asphodelaceae"},
    {"name": "Monstera", "scientific_name": "Monstera deliciosa", "confidence": 43, "family": "Araceae"},
    {"name": "Echeveria", "scientific_name": "Echeveria elegans", "confidence": 42, "family": "Crassulaceae"},
    {"name": "Philodendron", "scientific_name": "Philodendron hederaceum", "confidence": 40, "family": "Araceae"},
    {"name": "Snake plant", "scientific_name": "Sansevieria trifasciata", "confidence": 38, "family": "Asparagaceae"},
    {"name": "Rubber plant", "scientific_name": "Ficus elastica", "confidence": 35, "family": "Moraceae"},
]

COMMON_ISSUES: list[dict] = [
    {
        "name": "Leaf yellowing",
        "confidence": 50,
        "symptoms": ["Yellow leaves", "Dry leaf edges", "Leaf drop"],
        "treatments": ["Reduce watering", "Check pot drainage", "Apply a balanced fertilizer"],
        "cause": "Overwatering or nutrient deficiency",
    },
    {
        "name": "Brown spots",
        "confidence": 45,
        "symptoms": ["Dark spots on leaves", "Dry leaf edges", "Wilted leaves"],
        "treatments": ["Improve air circulation", "Apply an organic fungicide", "Remove damaged leaves"],
        "cause": "Possible fungal infection or water stress",
    },
    {
        "name": "Wilting leaves",
        "confidence": 40,
        "symptoms": ["Soft, limp leaves", "Loss of turgor", "Slowed growth"],
        "treatments": ["Check soil moisture", "Adjust the watering schedule", "Inspect the roots"],
        "cause": "Water stress or root problems",
    },
]

FALLBACK_MESSAGES = {
    FallbackTier.GBIF: (
        "We could not identify your plant with confidence. These suggestions come "
        "from a GBIF name search and are unverified; please confirm with an expert."
    ),
    FallbackTier.INATURALIST: (
        "We could not identify your plant with confidence. These suggestions come "
        "from an iNaturalist name search and are unverified; please confirm with an expert."
    ),
    FallbackTier.CURATED: (
        "We could not identify your plant with confidence. Here are some suggestions "
        "based on the most common plants and problems."
    ),
}


@dataclass(frozen=True)
class FallbackOutcome:
    """Result of one fallback run."""

    tier: FallbackTier
    candidates: list[IdentificationCandidate] = field(default_factory=list)
    diseases: list[DiseaseCandidate] = field(default_factory=list)
    message: str = ""


class FallbackChain:
    """Terminating chain of increasingly generic identification strategies."""

    def __init__(
        self,
        lookups: list[TaxonomyLookup] | None = None,
        settings: Settings | None = None,
    ) -> None:
        """
        Initialize the chain.

        Args:
            lookups: Taxonomy lookups in tier order (default GBIF, iNaturalist)
            settings: Lookup endpoints and confidence policy
        """
        settings = settings or get_settings()
        if lookups is None:
            lookups = [
                GBIFLookup(settings.gbif_base_url, timeout=settings.taxonomy_timeout_seconds),
                INaturalistLookup(settings.inaturalist_base_url, timeout=settings.taxonomy_timeout_seconds),
            ]
        self.lookups = lookups
        self.lookup_confidence = settings.fallback_lookup_confidence
        self.max_hints = settings.fallback_max_hints

    def collect_hints(
        self,
        context: PlantContext | None,
        results: list[ProviderResult],
    ) -> list[str]:
        """
        Build lookup hints: user-supplied names first, then provider guesses
        by descending confidence, then their genera. De-duplicated and capped.
        """
        names: list[str] = list(context.name_hints) if context else []

        provider_candidates = sorted(
            (c for r in results if r.is_ok for c in r.candidates),
            key=lambda c: -c.confidence,
        )
        names.extend(c.scientific_name or c.name for c in provider_candidates)
        names.extend(c.genus for c in provider_candidates if c.genus)

        hints: list[str] = []
        seen: set[str] = set()
        for name in names:
            key = normalize_name(name)
            if key and key not in seen:
                seen.add(key)
                hints.append(name.strip())
            if len(hints) >= self.max_hints:
                break
        return hints

    async def run(self, hints: list[str]) -> FallbackOutcome:
        """Run the tiers in order; the curated tier always succeeds."""
        tiers = {"gbif": FallbackTier.GBIF, "inaturalist": FallbackTier.INATURALIST}

        if hints:
            for lookup in self.lookups:
                candidates = await self._lookup_tier(lookup, hints)
                if candidates:
                    tier = tiers.get(lookup.source_name, FallbackTier.GBIF)
                    logger.info(f"Fallback resolved at tier {tier.value} with {len(candidates)} candidates")
                    return FallbackOutcome(
                        tier=tier,
                        candidates=candidates,
                        message=FALLBACK_MESSAGES[tier],
                    )
                logger.info(f"Fallback tier {lookup.source_name} produced nothing, escalating")
        else:
            logger.info("No name hints available, using curated suggestions")

        return self.curated()

    async def _lookup_tier(self, lookup: TaxonomyLookup, hints: list[str]) -> list[IdentificationCandidate]:
        candidates: list[IdentificationCandidate] = []
        seen: set[str] = set()

        for hint in hints:
            try:
                matches = await lookup.search(hint)
            except TaxonomyLookupError as e:
                logger.warning(f"{lookup.source_name} lookup failed for '{hint}': {e.message}")
                continue

            for match in matches:
                key = normalize_name(match.scientific_name)
                if key in seen:
                    continue
                seen.add(key)
                candidates.append(
                    IdentificationCandidate(
                        name=match.common_name or match.scientific_name,
                        scientific_name=match.scientific_name,
                        confidence=max(1.0, self.lookup_confidence - 3 * len(candidates)),
                        source=lookup.source_name,
                        family=match.family,
                        genus=match.genus,
                    )
                )
        return candidates

    def curated(self) -> FallbackOutcome:
        """Static suggestions of common plants and problems."""
        plants = [
            IdentificationCandidate(source=CURATED_SOURCE, **plant)
            for plant in sorted(COMMON_PLANTS, key=lambda p: -p["confidence"])
        ]
        diseases = [DiseaseCandidate(source=CURATED_SOURCE, **issue) for issue in COMMON_ISSUES]
        return FallbackOutcome(
            tier=FallbackTier.CURATED,
            candidates=plants,
            diseases=diseases,
            message=FALLBACK_MESSAGES[FallbackTier.CURATED],
        )

    async def close(self) -> None:
        for lookup in self.lookups:
            await lookup.close()

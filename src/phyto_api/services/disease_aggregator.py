"""
Disease and health aggregation.

Same exact-key clustering as species consensus, applied to disease and pest
names. Different providers often supply complementary advice, so symptom
and treatment lists are unioned instead of replaced.
"""

import logging

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import DiseaseCandidate, ProviderResult

from .consensus import ProviderPriority

logger = logging.getLogger(__name__)


# A cluster at or above this confidence marks the plant as unhealthy
UNHEALTHY_CONFIDENCE = 50.0


def _union(lists: list[list[str]]) -> list[str]:
    """Concatenate, dropping case-insensitive duplicates, first-seen order."""
    seen: set[str] = set()
    merged = []
    for items in lists:
        for item in items:
            key = item.strip().lower()
            if key and key not in seen:
                seen.add(key)
                merged.append(item.strip())
    return merged


class DiseaseAggregator:
    """Cluster and rank disease candidates across providers."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.priority = ProviderPriority(settings.provider_priority)

    def merge(self, results: list[ProviderResult]) -> list[DiseaseCandidate]:
        """
        Merge disease candidates from ``ok`` results.

        Providers are visited in report order, which fixes the first-seen
        order of unioned symptoms and treatments.
        """
        clusters: dict[str, list[DiseaseCandidate]] = {}
        for result in results:
            if not result.is_ok:
                continue
            for disease in result.diseases:
                clusters.setdefault(disease.normalized_key, []).append(disease)

        merged = {key: self._merge_cluster(members) for key, members in clusters.items()}
        ranked = sorted(
            merged,
            key=lambda k: (
                -merged[k].confidence,
                min(self.priority.rank(s) for s in merged[k].sources),
                k,
            ),
        )

        if ranked:
            total = sum(len(m) for m in clusters.values())
            logger.info(f"Disease aggregation: {len(ranked)} clusters from {total} candidates")
        return [merged[k] for k in ranked]

    def _merge_cluster(self, members: list[DiseaseCandidate]) -> DiseaseCandidate:
        representative = min(
            members, key=lambda d: (-d.confidence, self.priority.rank(d.source))
        )
        return DiseaseCandidate(
            name=representative.name,
            confidence=representative.confidence,
            symptoms=_union([m.symptoms for m in members]),
            treatments=_union([m.treatments for m in members]),
            cause=next((m.cause for m in members if m.cause), None),
            source=representative.source,
            sources=self.priority.sort(s for m in members for s in m.sources),
            is_regulated=any(m.is_regulated for m in members),
            regulated_code=next((m.regulated_code for m in members if m.regulated_code), None),
        )

    @staticmethod
    def is_healthy(diseases: list[DiseaseCandidate]) -> bool:
        """False when any disease cluster reaches the unhealthy threshold."""
        return not any(d.confidence >= UNHEALTHY_CONFIDENCE for d in diseases)

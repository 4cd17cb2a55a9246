"""
Identification consensus.

Merges species candidates from every successful provider into one ranked,
de-duplicated list. Clustering is exact-key only (normalized scientific
name, or common name when the scientific name is missing); similar but
different names are never merged.
"""

import logging
from dataclasses import dataclass, field

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import IdentificationCandidate, ProviderResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConsensusOutcome:
    """Ranked clusters plus cross-provider agreement."""

    candidates: list[IdentificationCandidate] = field(default_factory=list)
    agreement_score: float = 0.0
    best_provider: str | None = None


class ProviderPriority:
    """Fixed provider trust order, most-trusted first."""

    def __init__(self, order: list[str]):
        self._rank = {provider_id: i for i, provider_id in enumerate(order)}

    def rank(self, provider_id: str) -> int:
        # Unlisted providers sort after every listed one
        return self._rank.get(provider_id, len(self._rank))

    def sort(self, provider_ids) -> list[str]:
        unique = dict.fromkeys(provider_ids)
        return sorted(unique, key=lambda p: (self.rank(p), p))


class IdentificationConsensusEngine:
    """Cluster, rank and score species candidates across providers."""

    def __init__(self, settings: Settings | None = None) -> None:
        settings = settings or get_settings()
        self.priority = ProviderPriority(settings.provider_priority)

    def merge(self, results: list[ProviderResult]) -> ConsensusOutcome:
        """
        Merge provider results.

        Only ``ok`` results contribute. The same input always yields the
        same output.

        Returns:
            ConsensusOutcome with candidates sorted by confidence desc, then
            provider priority, then key
        """
        clusters: dict[str, list[IdentificationCandidate]] = {}
        for result in results:
            if not result.is_ok:
                continue
            for candidate in result.candidates:
                clusters.setdefault(candidate.normalized_key, []).append(candidate)

        if not clusters:
            return ConsensusOutcome()

        merged = {key: self._merge_cluster(members) for key, members in clusters.items()}
        ranked_keys = sorted(
            merged,
            key=lambda k: (
                -merged[k].confidence,
                min(self.priority.rank(s) for s in merged[k].sources),
                k,
            ),
        )
        candidates = [merged[k] for k in ranked_keys]
        top_key = ranked_keys[0]

        agreement = self._agreement_score(results, top_key)
        best_provider = candidates[0].source

        logger.info(
            f"Consensus: {len(candidates)} clusters, top '{candidates[0].scientific_name or candidates[0].name}' "
            f"({candidates[0].confidence:.0f}%), agreement {agreement:.0f}%"
        )
        return ConsensusOutcome(
            candidates=candidates,
            agreement_score=agreement,
            best_provider=best_provider,
        )

    def _merge_cluster(self, members: list[IdentificationCandidate]) -> IdentificationCandidate:
        """Collapse one cluster into its representative."""
        representative = min(
            members, key=lambda c: (-c.confidence, self.priority.rank(c.source))
        )
        sources = self.priority.sort(s for member in members for s in member.sources)

        update: dict = {"sources": sources}
        if not representative.family:
            update["family"] = next((m.family for m in members if m.family), None)
        if not representative.genus:
            update["genus"] = next((m.genus for m in members if m.genus), None)

        return representative.model_copy(update=update)

    def _agreement_score(self, results: list[ProviderResult], top_key: str) -> float:
        """Percent of contributing providers whose own top pick is in the top cluster."""
        contributors = [r for r in results if r.is_ok and r.candidates]
        if len(contributors) <= 1:
            return 0.0

        agreeing = 0
        for result in contributors:
            own_top = max(result.candidates, key=lambda c: c.confidence)
            if own_top.normalized_key == top_key:
                agreeing += 1

        return round(agreeing / len(contributors) * 100, 1)

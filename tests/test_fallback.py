"""Unit tests for the fallback chain."""

import pytest

from phyto_api.models.diagnosis import FallbackTier, PlantContext, ProviderResult, ProviderStatus
from phyto_api.services.fallback import CURATED_SOURCE, FallbackChain
from phyto_api.services.taxonomy import TaxonMatch, TaxonomyLookup, TaxonomyLookupError


class StubLookup(TaxonomyLookup):
    """Lookup answering from a fixed table; ``None`` entries raise."""

    def __init__(self, name: str, answers: dict[str, list[TaxonMatch] | None]):
        super().__init__(base_url="https://example.invalid")
        self._name = name
        self.answers = answers
        self.queries: list[str] = []

    @property
    def source_name(self) -> str:
        return self._name

    async def search(self, hint: str, limit: int = 5) -> list[TaxonMatch]:
        self.queries.append(hint)
        answer = self.answers.get(hint, [])
        if answer is None:
            raise TaxonomyLookupError("service unavailable", source=self._name)
        return answer


class TestFallbackChain:
    """Tests for FallbackChain.run and hint collection."""

    @pytest.mark.asyncio
    async def test_gbif_tier(self, settings):
        """Test the first tier wins when it finds plant taxa."""
        gbif = StubLookup("gbif", {
            "Monstera": [
                TaxonMatch("Monstera deliciosa", "Swiss cheese plant", "Araceae", "Monstera"),
                TaxonMatch("Monstera adansonii", None, "Araceae", "Monstera"),
            ]
        })
        inat = StubLookup("inaturalist", {})
        chain = FallbackChain(lookups=[gbif, inat], settings=settings)

        outcome = await chain.run(["Monstera"])

        assert outcome.tier == FallbackTier.GBIF
        assert [c.name for c in outcome.candidates] == ["Swiss cheese plant", "Monstera adansonii"]
        assert [c.confidence for c in outcome.candidates] == [40, 37]
        assert all(c.source == "gbif" for c in outcome.candidates)
        assert outcome.diseases == []
        assert "GBIF" in outcome.message
        assert inat.queries == []

    @pytest.mark.asyncio
    async def test_escalates_to_inaturalist(self, settings):
        """Test lookup failures are logged and the chain escalates."""
        gbif = StubLookup("gbif", {"Ocimum": None, "basil": None})
        inat = StubLookup("inaturalist", {"basil": [TaxonMatch("Ocimum basilicum", "sweet basil")]})
        chain = FallbackChain(lookups=[gbif, inat], settings=settings)

        outcome = await chain.run(["Ocimum", "basil"])

        assert outcome.tier == FallbackTier.INATURALIST
        assert outcome.candidates[0].scientific_name == "Ocimum basilicum"
        assert gbif.queries == ["Ocimum", "basil"]

    @pytest.mark.asyncio
    async def test_curated_when_lookups_find_nothing(self, settings):
        """Test the curated tier always produces plants and issues."""
        chain = FallbackChain(
            lookups=[StubLookup("gbif", {}), StubLookup("inaturalist", {})],
            settings=settings,
        )

        outcome = await chain.run(["Zzyzx"])

        assert outcome.tier == FallbackTier.CURATED
        assert len(outcome.candidates) == 10
        assert outcome.candidates[0].name == "Basil"
        confidences = [c.confidence for c in outcome.candidates]
        assert confidences == sorted(confidences, reverse=True)
        assert all(c.source == CURATED_SOURCE for c in outcome.candidates)
        assert [d.name for d in outcome.diseases] == ["Leaf yellowing", "Brown spots", "Wilting leaves"]
        assert outcome.message

    @pytest.mark.asyncio
    async def test_no_hints_skips_lookups(self, settings):
        gbif = StubLookup("gbif", {})
        chain = FallbackChain(lookups=[gbif], settings=settings)

        outcome = await chain.run([])

        assert outcome.tier == FallbackTier.CURATED
        assert gbif.queries == []

    def test_collect_hints(self, settings, make_candidate):
        """Test context names come first, then provider guesses by confidence."""
        chain = FallbackChain(lookups=[], settings=settings)
        context = PlantContext(plant_name="Lemon tree", scientific_name="Citrus limon")
        results = [
            ProviderResult(
                provider_id="plantnet",
                status=ProviderStatus.OK,
                candidates=[make_candidate("Lime", "Citrus aurantiifolia", 12, "plantnet")],
            ),
            ProviderResult(
                provider_id="plant_id",
                status=ProviderStatus.OK,
                candidates=[make_candidate("Lemon", "citrus  limon", 20, "plant_id")],
            ),
        ]

        hints = chain.collect_hints(context, results)

        assert hints == ["Citrus limon", "Lemon tree", "Citrus aurantiifolia"]

    def test_collect_hints_includes_genus(self, settings, make_candidate):
        chain = FallbackChain(lookups=[], settings=settings)
        results = [
            ProviderResult(
                provider_id="plant_id",
                status=ProviderStatus.OK,
                candidates=[make_candidate("Fig", "Ficus carica", 15, "plant_id", genus="Ficus")],
            ),
        ]

        assert chain.collect_hints(None, results) == ["Ficus carica", "Ficus"]

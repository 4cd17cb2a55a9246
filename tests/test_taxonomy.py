"""Unit tests for the GBIF and iNaturalist taxonomy lookups."""

import httpx
import pytest

from phyto_api.services.taxonomy import GBIFLookup, INaturalistLookup, TaxonomyLookupError


def mock_client(handler, requests: list | None = None) -> httpx.AsyncClient:
    def _record(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(_record))


class TestGBIFLookup:
    """Tests for GBIFLookup.search."""

    @pytest.mark.asyncio
    async def test_returns_plant_taxa_only(self):
        """Test non-plant results are filtered out and names de-duplicated."""
        payload = {
            "results": [
                {
                    "canonicalName": "Monstera deliciosa",
                    "kingdom": "Plantae",
                    "family": "Araceae",
                    "genus": "Monstera",
                    "rank": "SPECIES",
                    "vernacularNames": [
                        {"vernacularName": "Costilla de Adán", "language": "spa"},
                        {"vernacularName": "Swiss cheese plant", "language": "eng"},
                    ],
                },
                {"canonicalName": "Monstera deliciosa", "kingdom": "Plantae"},
                {"canonicalName": "Monstera", "kingdom": "Animalia"},
            ]
        }
        requests: list[httpx.Request] = []
        lookup = GBIFLookup(
            "https://api.gbif.org/v1",
            client=mock_client(lambda r: httpx.Response(200, json=payload), requests),
        )

        matches = await lookup.search("monstera")

        assert len(matches) == 1
        match = matches[0]
        assert match.scientific_name == "Monstera deliciosa"
        assert match.common_name == "Swiss cheese plant"
        assert match.family == "Araceae"
        assert match.rank == "species"
        assert requests[0].url.path == "/v1/species/search"
        assert requests[0].url.params["q"] == "monstera"

    @pytest.mark.asyncio
    async def test_http_error_raises_lookup_error(self):
        lookup = GBIFLookup(
            "https://api.gbif.org/v1",
            client=mock_client(lambda r: httpx.Response(503)),
        )

        with pytest.raises(TaxonomyLookupError) as exc_info:
            await lookup.search("monstera")

        assert exc_info.value.source == "gbif"

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_lookup_error(self):
        lookup = GBIFLookup(
            "https://api.gbif.org/v1",
            client=mock_client(lambda r: httpx.Response(200, json=["not", "a", "dict"])),
        )

        with pytest.raises(TaxonomyLookupError):
            await lookup.search("monstera")


class TestINaturalistLookup:
    """Tests for INaturalistLookup.search."""

    @pytest.mark.asyncio
    async def test_returns_plant_taxa_only(self):
        payload = {
            "results": [
                {
                    "name": "Ocimum basilicum",
                    "rank": "species",
                    "preferred_common_name": "sweet basil",
                    "iconic_taxon_name": "Plantae",
                },
                {"name": "Basilia", "rank": "genus", "iconic_taxon_name": "Insecta"},
            ]
        }
        requests: list[httpx.Request] = []
        lookup = INaturalistLookup(
            "https://api.inaturalist.org/v1",
            client=mock_client(lambda r: httpx.Response(200, json=payload), requests),
        )

        matches = await lookup.search("basil")

        assert [m.scientific_name for m in matches] == ["Ocimum basilicum"]
        assert matches[0].genus == "Ocimum"
        assert matches[0].common_name == "sweet basil"
        assert requests[0].url.params["rank"] == "species,genus"

    @pytest.mark.asyncio
    async def test_connection_error_raises_lookup_error(self):
        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        lookup = INaturalistLookup("https://api.inaturalist.org/v1", client=mock_client(handler))

        with pytest.raises(TaxonomyLookupError) as exc_info:
            await lookup.search("basil")

        assert exc_info.value.source == "inaturalist"

"""iNaturalist taxa search."""

import logging

from .base import TaxonMatch, TaxonomyLookup, TaxonomyLookupError

logger = logging.getLogger(__name__)


class INaturalistLookup(TaxonomyLookup):
    """Name search against the iNaturalist taxa API."""

    @property
    def source_name(self) -> str:
        return "inaturalist"

    async def search(self, hint: str, limit: int = 5) -> list[TaxonMatch]:
        logger.info(f"iNaturalist: searching taxa for '{hint}'")

        data = await self._get_json(
            "/taxa",
            params={
                "q": hint,
                "rank": "species,genus",
                "is_active": "true",
                "per_page": limit * 4,
            },
        )
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise TaxonomyLookupError(message="Unexpected iNaturalist response shape", source=self.source_name)

        matches = []
        for item in data["results"]:
            if item.get("iconic_taxon_name") != "Plantae" or not item.get("name"):
                continue
            name = item["name"]
            rank = item.get("rank")
            matches.append(
                TaxonMatch(
                    scientific_name=name,
                    common_name=item.get("preferred_common_name"),
                    genus=name.split()[0] if rank in ("species", "genus") else None,
                    rank=rank,
                )
            )
            if len(matches) >= limit:
                break

        logger.info(f"iNaturalist: {len(matches)} plant taxa for '{hint}'")
        return matches

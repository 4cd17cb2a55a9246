"""GBIF species search."""

import logging

from .base import TaxonMatch, TaxonomyLookup, TaxonomyLookupError

logger = logging.getLogger(__name__)


class GBIFLookup(TaxonomyLookup):
    """Name search against the GBIF backbone taxonomy."""

    @property
    def source_name(self) -> str:
        return "gbif"

    async def search(self, hint: str, limit: int = 5) -> list[TaxonMatch]:
        logger.info(f"GBIF: searching species for '{hint}'")

        data = await self._get_json(
            "/species/search",
            params={"q": hint, "limit": limit * 4},
        )
        if not isinstance(data, dict) or not isinstance(data.get("results"), list):
            raise TaxonomyLookupError(message="Unexpected GBIF response shape", source=self.source_name)

        matches = []
        seen = set()
        for item in data["results"]:
            if item.get("kingdom") != "Plantae":
                continue
            name = item.get("canonicalName") or item.get("scientificName")
            if not name or name.lower() in seen:
                continue
            seen.add(name.lower())
            matches.append(
                TaxonMatch(
                    scientific_name=name,
                    common_name=self._english_name(item.get("vernacularNames")),
                    family=item.get("family"),
                    genus=item.get("genus"),
                    rank=(item.get("rank") or "").lower() or None,
                )
            )
            if len(matches) >= limit:
                break

        logger.info(f"GBIF: {len(matches)} plant taxa for '{hint}'")
        return matches

    @staticmethod
    def _english_name(vernacular_names) -> str | None:
        for entry in vernacular_names or []:
            if entry.get("language") in ("eng", "en") and entry.get("vernacularName"):
                return entry["vernacularName"]
        return None

"""
Pl@ntNet provider.

Multipart upload to the v2 identify endpoint. Species only, no health data.
API Documentation: https://my.plantnet.org/doc
"""

import logging
from typing import Any

from phyto_api.models.diagnosis import DiseaseCandidate, IdentificationCandidate, PlantContext

from .base import RecognitionProvider

logger = logging.getLogger(__name__)


MAX_RESULTS = 5
MIN_SCORE = 0.01


class PlantNetRecognition(RecognitionProvider):
    """Species identification via Pl@ntNet."""

    def __init__(self, *args, project: str = "all", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.project = project

    @property
    def provider_id(self) -> str:
        return "plantnet"

    async def _recognize(
        self,
        image_data: bytes,
        context: PlantContext | None,
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        client = await self._get_client()

        logger.info(f"Sending identification request to PlantNet (project={self.project})")

        response = await client.post(
            f"{self.base_url}/identify/{self.project}",
            params={"api-key": self.api_key, "nb-results": MAX_RESULTS},
            files={"images": ("plant.jpg", image_data, "image/jpeg")},
            data={"organs": "auto"},
        )

        # PlantNet answers 404 "Species not found" when it ran but found nothing
        if response.status_code == 404:
            logger.info("PlantNet found no matching species")
            return [], []

        data = self._parse_json(response)
        return self._parse_results(data["results"]), []

    def _parse_results(self, results: list[dict[str, Any]]) -> list[IdentificationCandidate]:
        candidates = []
        for item in results[:MAX_RESULTS]:
            score = float(item.get("score") or 0)
            if score < MIN_SCORE:
                continue

            species = item.get("species") or {}
            scientific_name = species.get("scientificNameWithoutAuthor") or ""
            common_names = species.get("commonNames") or []
            name = common_names[0] if common_names else scientific_name
            if not name:
                continue

            candidates.append(
                IdentificationCandidate(
                    name=name,
                    scientific_name=scientific_name,
                    confidence=self.to_percent(score),
                    source=self.provider_id,
                    family=(species.get("family") or {}).get("scientificNameWithoutAuthor"),
                    genus=(species.get("genus") or {}).get("scientificNameWithoutAuthor"),
                )
            )
        return candidates

"""
Plant.id provider.

One v3 identification call with ``health=all`` returns both species
suggestions and a disease assessment.
API Documentation: https://plant.id/docs
"""

import base64
import logging
from typing import Any

from phyto_api.models.diagnosis import DiseaseCandidate, IdentificationCandidate, PlantContext

from .base import RecognitionProvider

logger = logging.getLogger(__name__)


# Disease suggestions below this probability are noise
MIN_DISEASE_PROBABILITY = 0.1
MAX_SUGGESTIONS = 5


class PlantIdRecognition(RecognitionProvider):
    """Species identification and health assessment via Plant.id."""

    @property
    def provider_id(self) -> str:
        return "plant_id"

    async def _recognize(
        self,
        image_data: bytes,
        context: PlantContext | None,
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        client = await self._get_client()

        request_body = {
            "images": [base64.b64encode(image_data).decode("utf-8")],
            "similar_images": False,
            "health": "all",
        }

        logger.info("Sending identification request to Plant.id")

        response = await client.post(
            f"{self.base_url}/identification",
            params={"details": "common_names,taxonomy,description,treatment,cause"},
            headers={"Api-Key": self.api_key, "Content-Type": "application/json"},
            json=request_body,
        )
        data = self._parse_json(response)

        result = data["result"]
        return self._parse_species(result), self._parse_diseases(result)

    def _parse_species(self, result: dict[str, Any]) -> list[IdentificationCandidate]:
        suggestions = (result.get("classification") or {}).get("suggestions") or []

        candidates = []
        for suggestion in suggestions[:MAX_SUGGESTIONS]:
            details = suggestion.get("details") or {}
            taxonomy = details.get("taxonomy") or {}
            common_names = details.get("common_names") or []
            scientific_name = suggestion.get("name") or ""
            name = common_names[0] if common_names else scientific_name
            if not name:
                continue

            candidates.append(
                IdentificationCandidate(
                    name=name,
                    scientific_name=scientific_name,
                    confidence=self.to_percent(suggestion.get("probability")),
                    source=self.provider_id,
                    family=taxonomy.get("family"),
                    genus=taxonomy.get("genus"),
                )
            )
        return candidates

    def _parse_diseases(self, result: dict[str, Any]) -> list[DiseaseCandidate]:
        is_healthy = result.get("is_healthy") or {}
        if is_healthy.get("binary") is True:
            return []

        suggestions = (result.get("disease") or {}).get("suggestions") or []

        diseases = []
        for suggestion in suggestions[:MAX_SUGGESTIONS]:
            probability = float(suggestion.get("probability") or 0)
            if probability < MIN_DISEASE_PROBABILITY:
                continue

            details = suggestion.get("details") or {}
            local_name = details.get("local_name") or suggestion.get("name")
            if not local_name:
                continue
            description = details.get("description")

            diseases.append(
                DiseaseCandidate(
                    name=local_name,
                    confidence=self.to_percent(probability),
                    symptoms=self.string_list(description),
                    treatments=self.string_list(details.get("treatment")),
                    cause=details.get("cause"),
                    source=self.provider_id,
                )
            )
        return diseases

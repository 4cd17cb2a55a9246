"""
Hugging Face inference provider.

Runs a hosted plant-disease image classifier. Labels look like
``Tomato___Late_blight`` or ``Tomato with Late Blight``; the host crop part
is dropped and "healthy" labels produce no disease.
"""

import logging
import re
from typing import Any

from phyto_api.models.diagnosis import DiseaseCandidate, IdentificationCandidate, PlantContext

from .base import RecognitionProvider

logger = logging.getLogger(__name__)


MIN_SCORE = 0.1
MAX_LABELS = 3

_SEPARATOR = re.compile(r"_{2,}|\s+with\s+", re.IGNORECASE)


class HuggingFaceDiseaseRecognition(RecognitionProvider):
    """Disease classification via the Hugging Face inference API."""

    def __init__(self, *args, model: str = "", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.model = model

    @property
    def provider_id(self) -> str:
        return "huggingface"

    async def _recognize(
        self,
        image_data: bytes,
        context: PlantContext | None,
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        client = await self._get_client()

        logger.info(f"Sending classification request to Hugging Face ({self.model})")

        response = await client.post(
            f"{self.base_url}/{self.model}",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/octet-stream",
            },
            content=image_data,
        )
        data = self._parse_json(response)

        if not isinstance(data, list):
            raise ValueError(f"Expected a list of labels, got {type(data).__name__}")

        return [], self._parse_labels(data)

    def _parse_labels(self, labels: list[dict[str, Any]]) -> list[DiseaseCandidate]:
        diseases = []
        for item in labels[:MAX_LABELS]:
            score = float(item["score"])
            label = str(item["label"])
            if score < MIN_SCORE or "healthy" in label.lower():
                continue

            host, disease = self._split_label(label)
            symptoms = [f"Classified as {label.replace('_', ' ')}"]
            if host:
                symptoms.append(f"Host crop: {host}")

            diseases.append(
                DiseaseCandidate(
                    name=disease,
                    confidence=self.to_percent(score),
                    symptoms=symptoms,
                    source=self.provider_id,
                )
            )
        return diseases

    @staticmethod
    def _split_label(label: str) -> tuple[str | None, str]:
        """Split ``Host___Disease`` / ``Host with Disease`` into its parts."""
        parts = _SEPARATOR.split(label, maxsplit=1)
        if len(parts) == 2:
            host, disease = parts
            return host.replace("_", " ").strip(), disease.replace("_", " ").strip()
        return None, label.replace("_", " ").strip()

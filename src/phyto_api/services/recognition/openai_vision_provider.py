"""
OpenAI vision provider.

Sends the photo to a vision-capable chat model with a strict JSON prompt and
parses species and disease guesses out of the reply.
"""

import base64
import json
import logging
from typing import Any

from phyto_api.models.diagnosis import (
    DiseaseCandidate,
    IdentificationCandidate,
    PlantContext,
    ProviderStatus,
)

from .base import RecognitionProvider, RecognitionProviderError

logger = logging.getLogger(__name__)


PLANT_DIAGNOSIS_PROMPT = """You are an expert botanist and plant pathologist. Analyze this specific image.

CRITICAL: Only report what is ACTUALLY VISIBLE in this image. Do not copy examples.

Respond ONLY with valid JSON in this format:
{
  "plant": {
    "common_name": "<common name>",
    "scientific_name": "<binomial scientific name>",
    "family": "<botanical family or null>",
    "genus": "<genus or null>",
    "confidence": <0-100>
  },
  "alternatives": [
    {"common_name": "<name>", "scientific_name": "<name>", "confidence": <0-100>}
  ],
  "diseases": [
    {
      "name": "<disease, pest or disorder name>",
      "confidence": <0-100>,
      "symptoms": ["<visible symptom>"],
      "treatments": ["<short actionable treatment>"],
      "cause": "<likely cause or null>"
    }
  ]
}

RULES:
- Use an empty "diseases" list if the plant looks healthy
- Return at most 2 alternatives and 3 diseases
- Use conservative confidence values when the image is unclear

Do not include any text outside the JSON."""


class OpenAIVisionRecognition(RecognitionProvider):
    """Species and disease recognition using an OpenAI vision model."""

    def __init__(self, *args, model: str = "gpt-4o-mini", **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.model = model

    @property
    def provider_id(self) -> str:
        return "openai_vision"

    async def _recognize(
        self,
        image_data: bytes,
        context: PlantContext | None,
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        client = await self._get_client()

        image_b64 = base64.b64encode(image_data).decode("utf-8")
        user_text = "Identify this plant and any visible disease or pest."
        if context and context.plant_name:
            user_text += f" The owner believes it is: {context.plant_name}."
        if context and context.symptoms:
            user_text += f" Reported symptoms: {', '.join(context.symptoms)}."

        request_body = {
            "model": self.model,
            "temperature": 0.2,
            "max_tokens": 1200,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": PLANT_DIAGNOSIS_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": user_text},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"},
                        },
                    ],
                },
            ],
        }

        logger.info(f"Sending vision diagnosis request to OpenAI ({self.model})")

        response = await client.post(
            f"{self.base_url}/chat/completions",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json=request_body,
        )
        data = self._parse_json(response)

        raw_response = data["choices"][0]["message"]["content"] or ""
        logger.debug(f"Raw OpenAI response: {raw_response[:500]}...")

        return self._parse_response(raw_response)

    def _parse_response(
        self, raw_response: str
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        """Parse the model reply into candidates."""
        json_str = self._extract_json(raw_response)
        if not json_str:
            raise RecognitionProviderError(
                message="Could not extract JSON from model reply",
                status=ProviderStatus.INVALID_RESPONSE,
                provider=self.provider_id,
            )

        data = json.loads(json_str)

        candidates = []
        plant = data.get("plant")
        if isinstance(plant, dict) and (plant.get("scientific_name") or plant.get("common_name")):
            candidates.append(self._to_candidate(plant))
        for alternative in data.get("alternatives") or []:
            if isinstance(alternative, dict) and (
                alternative.get("scientific_name") or alternative.get("common_name")
            ):
                candidates.append(self._to_candidate(alternative))

        diseases = []
        for item in data.get("diseases") or []:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            diseases.append(
                DiseaseCandidate(
                    name=item["name"],
                    confidence=self._confidence(item.get("confidence")),
                    symptoms=self.string_list(item.get("symptoms")),
                    treatments=self.string_list(item.get("treatments")),
                    cause=item.get("cause"),
                    source=self.provider_id,
                )
            )

        return candidates, diseases

    def _to_candidate(self, item: dict[str, Any]) -> IdentificationCandidate:
        scientific_name = item.get("scientific_name") or ""
        return IdentificationCandidate(
            name=item.get("common_name") or scientific_name,
            scientific_name=scientific_name,
            confidence=self._confidence(item.get("confidence")),
            source=self.provider_id,
            family=item.get("family"),
            genus=item.get("genus"),
        )

    def _extract_json(self, text: str) -> str | None:
        """Extract the first balanced JSON object from a text reply."""
        text = text.strip()

        start = text.find("{")
        if start == -1:
            return None

        brace_count = 0
        for i in range(start, len(text)):
            if text[i] == "{":
                brace_count += 1
            elif text[i] == "}":
                brace_count -= 1
                if brace_count == 0:
                    return text[start : i + 1]

        return None

    @staticmethod
    def _confidence(value: Any) -> float:
        """The prompt asks for 0-100; tolerate fractional 0-1 replies."""
        if value is None:
            return 0.0
        number = float(value)
        return number * 100 if 0 < number < 1 else number

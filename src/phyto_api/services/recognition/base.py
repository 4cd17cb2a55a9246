"""
Base classes for plant recognition providers.

Defines the abstract interface every provider adapter implements. Adapters
translate a provider's own JSON shape into IdentificationCandidate /
DiseaseCandidate lists and classify every failure into a ProviderStatus;
nothing provider-specific (and no exception) leaks past ``analyze``.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from phyto_api.models.diagnosis import (
    DiseaseCandidate,
    IdentificationCandidate,
    PlantContext,
    ProviderResult,
    ProviderStatus,
)

logger = logging.getLogger(__name__)


class RecognitionProviderError(Exception):
    """Error during a provider call, already classified."""

    def __init__(
        self,
        message: str,
        status: ProviderStatus = ProviderStatus.UNKNOWN_ERROR,
        provider: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.provider = provider
        self.details = details or {}


class RecognitionProvider(ABC):
    """
    Abstract base class for plant recognition providers.

    Subclasses implement ``provider_id`` and ``_recognize``; the public
    ``analyze`` wraps them with timing and error classification.
    """

    def __init__(
        self,
        api_key: str = "",
        base_url: str = "",
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize a provider.

        Args:
            api_key: Provider credential; empty disables the provider
            base_url: API base URL
            timeout: HTTP timeout in seconds
            client: Optional pre-built HTTP client (tests, shared pools)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    @abstractmethod
    def provider_id(self) -> str:
        """Return the stable id of this provider."""
        ...

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present."""
        return bool(self.api_key)

    @abstractmethod
    async def _recognize(
        self,
        image_data: bytes,
        context: PlantContext | None,
    ) -> tuple[list[IdentificationCandidate], list[DiseaseCandidate]]:
        """
        Call the provider and normalize its response.

        Raises:
            RecognitionProviderError, httpx.HTTPError, ValueError, KeyError,
            TypeError: classified by ``analyze``
        """
        ...

    async def analyze(
        self,
        image_data: bytes,
        context: PlantContext | None = None,
    ) -> ProviderResult:
        """
        Run one recognition call and return a normalized ProviderResult.

        Never raises for provider failures; cancellation still propagates.
        """
        start_time = time.monotonic()

        if not self.is_configured:
            return ProviderResult(
                provider_id=self.provider_id,
                status=ProviderStatus.AUTH_ERROR,
                error="No API key configured",
            )

        status = ProviderStatus.OK
        error: str | None = None
        candidates: list[IdentificationCandidate] = []
        diseases: list[DiseaseCandidate] = []

        try:
            candidates, diseases = await self._recognize(image_data, context)
        except RecognitionProviderError as e:
            status, error = e.status, e.message
        except httpx.TimeoutException as e:
            status, error = ProviderStatus.TIMEOUT, f"Request timed out: {e}"
        except httpx.HTTPStatusError as e:
            status = self.classify_status_code(e.response.status_code)
            error = f"HTTP {e.response.status_code}"
        except httpx.RequestError as e:
            status, error = ProviderStatus.UNKNOWN_ERROR, f"Connection failed: {e}"
        except (json.JSONDecodeError, LookupError, TypeError, ValueError, AttributeError) as e:
            status, error = ProviderStatus.INVALID_RESPONSE, f"Unexpected response: {e}"
        except Exception as e:
            logger.exception(f"Unexpected error in provider {self.provider_id}")
            status, error = ProviderStatus.UNKNOWN_ERROR, f"Unexpected error: {e}"

        latency_ms = int((time.monotonic() - start_time) * 1000)

        if status == ProviderStatus.OK:
            logger.info(
                f"{self.provider_id}: {len(candidates)} candidates, "
                f"{len(diseases)} diseases in {latency_ms}ms"
            )
        else:
            logger.warning(f"{self.provider_id}: {status.value} ({error})")

        return ProviderResult(
            provider_id=self.provider_id,
            status=status,
            candidates=candidates if status == ProviderStatus.OK else [],
            diseases=diseases if status == ProviderStatus.OK else [],
            latency_ms=latency_ms,
            attempts=1,
            error=error,
        )

    @staticmethod
    def classify_status_code(status_code: int) -> ProviderStatus:
        """Map an HTTP error status to a ProviderStatus."""
        if status_code == 429:
            return ProviderStatus.RATE_LIMITED
        if status_code in (401, 403):
            return ProviderStatus.AUTH_ERROR
        if status_code in (408, 504):
            return ProviderStatus.TIMEOUT
        if status_code in (400, 413, 415, 422):
            return ProviderStatus.INVALID_RESPONSE
        return ProviderStatus.UNKNOWN_ERROR

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout))
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _parse_json(self, response: httpx.Response) -> Any:
        """Raise for HTTP errors, then decode the JSON body."""
        response.raise_for_status()
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise RecognitionProviderError(
                message=f"Body is not JSON: {e}",
                status=ProviderStatus.INVALID_RESPONSE,
                provider=self.provider_id,
            ) from e

    @staticmethod
    def to_percent(value: Any) -> float:
        """Providers report 0-1 probabilities; scale to 0-100."""
        if value is None:
            return 0.0
        number = float(value)
        return number * 100 if number <= 1.0 else number

    @staticmethod
    def string_list(value: Any) -> list[str]:
        """Coerce a provider field into a clean list of strings."""
        if value is None:
            return []
        if isinstance(value, str):
            return [value.strip()] if value.strip() else []
        if isinstance(value, dict):
            items: list[str] = []
            for nested in value.values():
                items.extend(RecognitionProvider.string_list(nested))
            return items
        if isinstance(value, (list, tuple)):
            return [str(v).strip() for v in value if v is not None and str(v).strip()]
        return [str(value)]

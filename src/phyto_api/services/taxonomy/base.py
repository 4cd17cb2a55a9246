"""
Base classes for taxonomy lookup services.

Taxonomy lookups resolve a partial plant name (a "hint") to accepted taxa.
They back the fallback chain when recognition providers fail or are unsure.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaxonMatch:
    """One plant taxon returned by a lookup."""

    scientific_name: str
    common_name: str | None = None
    family: str | None = None
    genus: str | None = None
    rank: str | None = None


class TaxonomyLookupError(Exception):
    """Error during a taxonomy lookup."""

    def __init__(
        self,
        message: str,
        source: str = "unknown",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.source = source
        self.details = details or {}


class TaxonomyLookup(ABC):
    """Abstract base class for taxonomy lookups."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Return the name of this lookup source."""
        ...

    @abstractmethod
    async def search(self, hint: str, limit: int = 5) -> list[TaxonMatch]:
        """
        Search plant taxa matching a name hint.

        Args:
            hint: Partial scientific or common name
            limit: Maximum matches to return

        Returns:
            Plant taxa only (kingdom Plantae), best match first

        Raises:
            TaxonomyLookupError: If the lookup fails
        """
        ...

    async def _get_json(self, path: str, params: dict[str, Any]) -> Any:
        """GET a JSON document, wrapping transport and HTTP failures."""
        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}{path}", params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise TaxonomyLookupError(
                message=f"HTTP {e.response.status_code}",
                source=self.source_name,
            ) from e
        except httpx.HTTPError as e:
            raise TaxonomyLookupError(
                message=f"Request failed: {e}",
                source=self.source_name,
            ) from e
        except ValueError as e:
            raise TaxonomyLookupError(
                message=f"Body is not JSON: {e}",
                source=self.source_name,
            ) from e

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

"""
Provider orchestration.

Fans one image out to every configured recognition provider in parallel,
applies the per-call deadline, retries transient failures with exponential
backoff and consults the circuit breaker. Always returns exactly one
ProviderResult per provider, in configured order.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

from phyto_api.core.config import Settings, get_settings
from phyto_api.models.diagnosis import PlantContext, ProviderResult, ProviderStatus

from .circuit_breaker import CircuitBreakerRegistry
from .recognition import RecognitionProvider

logger = logging.getLogger(__name__)


RETRYABLE_STATUSES = frozenset({ProviderStatus.TIMEOUT, ProviderStatus.UNKNOWN_ERROR})


class ProviderOrchestrator:
    """Runs all recognition providers concurrently for one request."""

    def __init__(
        self,
        providers: list[RecognitionProvider],
        breaker: CircuitBreakerRegistry | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            providers: Adapters, in report order
            breaker: Shared circuit breaker registry
            settings: Timeouts and retry policy
            sleep: Backoff sleep (injectable for tests)
        """
        settings = settings or get_settings()
        self.providers = providers
        self.breaker = breaker or CircuitBreakerRegistry(
            failure_threshold=settings.breaker_failure_threshold,
            cooldown_seconds=settings.breaker_cooldown_seconds,
        )
        self.timeout = settings.provider_timeout_seconds
        self.max_retries = max(0, settings.provider_max_retries)
        self.backoff_base = settings.retry_backoff_base_seconds
        self._sleep = sleep

    @property
    def provider_ids(self) -> list[str]:
        return [p.provider_id for p in self.providers]

    async def identify(
        self,
        image_data: bytes,
        context: PlantContext | None = None,
    ) -> list[ProviderResult]:
        """
        Query all providers and collect their normalized results.

        Cancelling the caller cancels every in-flight provider call.
        """
        logger.info(f"Querying {len(self.providers)} recognition providers")
        results = await asyncio.gather(
            *(self._run_provider(p, image_data, context) for p in self.providers)
        )
        ok_count = sum(1 for r in results if r.is_ok)
        logger.info(f"Providers settled: {ok_count}/{len(results)} ok")
        return list(results)

    async def _run_provider(
        self,
        provider: RecognitionProvider,
        image_data: bytes,
        context: PlantContext | None,
    ) -> ProviderResult:
        provider_id = provider.provider_id

        if not self.breaker.allow_request(provider_id):
            logger.warning(f"Skipping {provider_id}: circuit breaker open")
            return ProviderResult(
                provider_id=provider_id,
                status=ProviderStatus.BREAKER_OPEN,
                error="Circuit breaker open",
            )

        start_time = time.monotonic()
        attempts = 0
        result: ProviderResult | None = None

        while True:
            attempts += 1
            result = await self._attempt(provider, image_data, context)

            if result.status not in RETRYABLE_STATUSES or attempts > self.max_retries:
                break

            delay = self.backoff_base * (2 ** (attempts - 1))
            logger.info(
                f"{provider_id} returned {result.status.value}, "
                f"retry {attempts}/{self.max_retries} in {delay:.1f}s"
            )
            await self._sleep(delay)

        self.breaker.record(provider_id, result.status)

        return result.model_copy(
            update={
                "attempts": attempts,
                "latency_ms": int((time.monotonic() - start_time) * 1000),
            }
        )

    async def _attempt(
        self,
        provider: RecognitionProvider,
        image_data: bytes,
        context: PlantContext | None,
    ) -> ProviderResult:
        """One call to the provider under the per-call deadline."""
        try:
            return await asyncio.wait_for(
                provider.analyze(image_data, context), timeout=self.timeout
            )
        except asyncio.TimeoutError:
            return ProviderResult(
                provider_id=provider.provider_id,
                status=ProviderStatus.TIMEOUT,
                error=f"No response within {self.timeout:.0f}s",
            )

    async def close(self) -> None:
        """Close every provider's HTTP client."""
        for provider in self.providers:
            await provider.close()

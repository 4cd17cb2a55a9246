"""Unit tests for the provider orchestrator."""

import asyncio

import httpx
import pytest

from phyto_api.models.diagnosis import ProviderStatus
from phyto_api.services.circuit_breaker import CircuitBreakerRegistry
from phyto_api.services.orchestrator import ProviderOrchestrator
from phyto_api.services.recognition import RecognitionProviderError


IMAGE = b"image"


def timeout_error() -> httpx.ReadTimeout:
    return httpx.ReadTimeout("read timed out")


class TestProviderOrchestrator:
    """Tests for ProviderOrchestrator.identify."""

    @pytest.fixture
    def breaker(self, clock):
        return CircuitBreakerRegistry(failure_threshold=3, cooldown_seconds=60, clock=clock)

    @pytest.fixture
    def build(self, settings, breaker, recorded_sleep):
        def _build(providers, **overrides):
            effective = settings.model_copy(update=overrides) if overrides else settings
            return ProviderOrchestrator(
                providers=providers,
                breaker=breaker,
                settings=effective,
                sleep=recorded_sleep,
            )

        return _build

    @pytest.mark.asyncio
    async def test_results_in_configured_order(self, build, fake_provider, make_candidate):
        """Test one result per provider, in configured order, whatever finishes first."""
        slow = fake_provider("plant_id", [([make_candidate("Basil", "Ocimum basilicum", 80, "plant_id")], [])], delay=0.05)
        fast = fake_provider("plantnet", [([], [])])
        failing = fake_provider("openai_vision", [RecognitionProviderError("bad", status=ProviderStatus.AUTH_ERROR)])

        results = await build([slow, fast, failing]).identify(IMAGE)

        assert [r.provider_id for r in results] == ["plant_id", "plantnet", "openai_vision"]
        assert [r.status for r in results] == [
            ProviderStatus.OK,
            ProviderStatus.OK,
            ProviderStatus.AUTH_ERROR,
        ]
        assert results[0].candidates[0].name == "Basil"

    @pytest.mark.asyncio
    async def test_retries_transient_failures_with_backoff(self, build, fake_provider, recorded_sleep):
        """Test timeouts are retried with exponential backoff until success."""
        provider = fake_provider("plant_id", [timeout_error(), timeout_error(), ([], [])])

        results = await build([provider]).identify(IMAGE)

        assert results[0].status == ProviderStatus.OK
        assert results[0].attempts == 3
        assert provider.calls == 3
        assert recorded_sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self, build, fake_provider, recorded_sleep):
        """Test the final status is reported once retries are exhausted."""
        provider = fake_provider("plant_id", [RecognitionProviderError("boom")])

        results = await build([provider]).identify(IMAGE)

        assert results[0].status == ProviderStatus.UNKNOWN_ERROR
        assert results[0].attempts == 3
        assert len(recorded_sleep.delays) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [ProviderStatus.RATE_LIMITED, ProviderStatus.AUTH_ERROR, ProviderStatus.INVALID_RESPONSE],
    )
    async def test_no_retry_on_permanent_failures(self, build, fake_provider, recorded_sleep, status):
        """Test rate limits, auth and shape errors are not retried."""
        provider = fake_provider("plant_id", [RecognitionProviderError("no", status=status)])

        results = await build([provider]).identify(IMAGE)

        assert results[0].status == status
        assert results[0].attempts == 1
        assert recorded_sleep.delays == []

    @pytest.mark.asyncio
    async def test_per_call_deadline(self, build, fake_provider):
        """Test a provider slower than the deadline is reported as timeout."""
        provider = fake_provider("plant_id", [([], [])], delay=1.0)

        results = await build([provider], provider_timeout_seconds=0.05, provider_max_retries=0).identify(IMAGE)

        assert results[0].status == ProviderStatus.TIMEOUT
        assert results[0].attempts == 1

    @pytest.mark.asyncio
    async def test_breaker_skips_provider_until_cooldown(self, build, fake_provider, clock, make_candidate):
        """Test N consecutive timeouts open the breaker and the provider is skipped."""
        flaky = fake_provider("plantnet", [timeout_error()])
        healthy = fake_provider("plant_id", [([make_candidate("Basil", "Ocimum basilicum", 80, "plant_id")], [])])
        orchestrator = build([healthy, flaky], provider_max_retries=0)

        for _ in range(3):
            results = await orchestrator.identify(IMAGE)
            assert results[1].status == ProviderStatus.TIMEOUT

        results = await orchestrator.identify(IMAGE)

        assert results[1].status == ProviderStatus.BREAKER_OPEN
        assert results[1].attempts == 0
        assert flaky.calls == 3
        assert results[0].status == ProviderStatus.OK

        # Cool-down elapsed: one trial request goes through and succeeds
        clock.advance(60)
        flaky.outcomes = [([], [])]
        results = await orchestrator.identify(IMAGE)

        assert results[1].status == ProviderStatus.OK
        assert flaky.calls == 4

    @pytest.mark.asyncio
    async def test_breaker_records_once_per_request(self, build, fake_provider, breaker):
        """Test retries within one request count as a single breaker failure."""
        provider = fake_provider("plant_id", [timeout_error()])

        await build([provider]).identify(IMAGE)

        assert provider.calls == 3
        assert breaker.snapshot()["plant_id"]["consecutive_failures"] == 1

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, build, fake_provider):
        """Test cancelling the caller cancels in-flight provider calls."""
        provider = fake_provider("plant_id", [([], [])], delay=10)
        orchestrator = build([provider])

        task = asyncio.create_task(orchestrator.identify(IMAGE))
        await asyncio.sleep(0.01)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

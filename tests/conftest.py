"""Pytest configuration and fixtures."""

import asyncio
import io
from typing import Any, Callable

import numpy as np
import pytest
from PIL import Image

from phyto_api.core.config import Settings
from phyto_api.models.diagnosis import (
    DiseaseCandidate,
    IdentificationCandidate,
    PlantContext,
    ProviderResult,
    ProviderStatus,
)
from phyto_api.services.recognition import RecognitionProvider


PRIORITY = ["plant_id", "plantnet", "openai_vision", "huggingface"]


def encode_png(rgb: np.ndarray) -> bytes:
    """Encode an RGB array as PNG bytes."""
    buffer = io.BytesIO()
    Image.fromarray(rgb.astype(np.uint8)).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeProvider(RecognitionProvider):
    """
    Scripted recognition provider.

    Each call consumes the next outcome (the last one repeats). An outcome is
    either a (candidates, diseases) tuple or an exception to raise; the real
    ``analyze`` classifies it.
    """

    def __init__(self, provider_id: str, outcomes: list[Any], delay: float = 0.0, api_key: str = "test-key"):
        super().__init__(api_key=api_key)
        self._provider_id = provider_id
        self.outcomes = outcomes
        self.delay = delay
        self.calls = 0

    @property
    def provider_id(self) -> str:
        return self._provider_id

    async def _recognize(self, image_data: bytes, context: PlantContext | None):
        self.calls += 1
        outcome = self.outcomes[min(self.calls - 1, len(self.outcomes) - 1)]
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        plant_id_api_key="pid-key",
        plantnet_api_key="pnet-key",
        openai_api_key="oai-key",
        huggingface_access_token="hf-token",
        enabled_providers=PRIORITY,
        provider_priority=PRIORITY,
        provider_timeout_seconds=5.0,
        provider_max_retries=2,
        retry_backoff_base_seconds=1.0,
        breaker_failure_threshold=3,
        breaker_cooldown_seconds=60.0,
        fallback_confidence_floor=30.0,
        fallback_lookup_confidence=40.0,
        fallback_max_hints=3,
        regulated_extra_keywords=[],
        max_image_bytes=1024 * 1024,
    )


@pytest.fixture
def leaf_image() -> bytes:
    """A 256x256 textured green image that passes the precheck."""
    rng = np.random.default_rng(42)
    rgb = np.zeros((256, 256, 3), dtype=np.uint8)
    rgb[..., 0] = rng.integers(20, 80, size=(256, 256))
    rgb[..., 1] = rng.integers(120, 200, size=(256, 256))
    rgb[..., 2] = rng.integers(20, 80, size=(256, 256))
    return encode_png(rgb)


@pytest.fixture
def gray_image() -> bytes:
    """A uniformly gray 10x10 image."""
    return encode_png(np.full((10, 10, 3), 128, dtype=np.uint8))


@pytest.fixture
def make_candidate() -> Callable[..., IdentificationCandidate]:
    def _make(name: str, scientific_name: str, confidence: float, source: str, **kwargs) -> IdentificationCandidate:
        return IdentificationCandidate(
            name=name,
            scientific_name=scientific_name,
            confidence=confidence,
            source=source,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_disease() -> Callable[..., DiseaseCandidate]:
    def _make(name: str, confidence: float, source: str, **kwargs) -> DiseaseCandidate:
        return DiseaseCandidate(name=name, confidence=confidence, source=source, **kwargs)

    return _make


@pytest.fixture
def ok_result() -> Callable[..., ProviderResult]:
    def _make(provider_id: str, candidates=None, diseases=None) -> ProviderResult:
        return ProviderResult(
            provider_id=provider_id,
            status=ProviderStatus.OK,
            candidates=candidates or [],
            diseases=diseases or [],
            attempts=1,
        )

    return _make


@pytest.fixture
def fake_provider() -> type[FakeProvider]:
    return FakeProvider


@pytest.fixture
def recorded_sleep():
    """Backoff sleep that records delays instead of waiting."""
    delays: list[float] = []

    async def _sleep(delay: float) -> None:
        delays.append(delay)

    _sleep.delays = delays
    return _sleep


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()

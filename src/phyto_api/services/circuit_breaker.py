"""
Per-provider circuit breaker state.

A single process-wide registry, injected into the orchestrator. Each
provider id has its own consecutive-failure counter; once it reaches the
threshold the breaker opens and the provider is skipped until the cool-down
has elapsed. After the cool-down one trial request is let through
(half-open): success closes the breaker, another failure re-opens it.

Counters are updated under a lock; critical sections never await.
"""

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from phyto_api.models.diagnosis import ProviderStatus

logger = logging.getLogger(__name__)


# Statuses that count toward opening the breaker
FAILURE_STATUSES = frozenset({ProviderStatus.TIMEOUT, ProviderStatus.UNKNOWN_ERROR})


class BreakerState(str, Enum):
    """Circuit breaker state for one provider."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class _ProviderCircuit:
    consecutive_failures: int = 0
    opened_at: float | None = None
    trial_started_at: float | None = None


class CircuitBreakerRegistry:
    """Process-wide breaker counters keyed by provider id."""

    def __init__(
        self,
        failure_threshold: int = 3,
        cooldown_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize the registry.

        Args:
            failure_threshold: Consecutive failures that open a breaker
            cooldown_seconds: How long an open breaker skips the provider
            clock: Monotonic time source (injectable for tests)
        """
        self.failure_threshold = max(1, failure_threshold)
        self.cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._circuits: dict[str, _ProviderCircuit] = {}

    def _circuit(self, provider_id: str) -> _ProviderCircuit:
        circuit = self._circuits.get(provider_id)
        if circuit is None:
            circuit = self._circuits[provider_id] = _ProviderCircuit()
        return circuit

    def _state_of(self, circuit: _ProviderCircuit) -> BreakerState:
        if circuit.opened_at is None:
            return BreakerState.CLOSED
        if self._clock() - circuit.opened_at >= self.cooldown_seconds:
            return BreakerState.HALF_OPEN
        return BreakerState.OPEN

    def state(self, provider_id: str) -> BreakerState:
        """Current breaker state for a provider."""
        with self._lock:
            return self._state_of(self._circuit(provider_id))

    def allow_request(self, provider_id: str) -> bool:
        """
        Whether the provider may be called now.

        In half-open state only one trial request is let through; a trial
        that never reports back expires after another cool-down.
        """
        with self._lock:
            circuit = self._circuit(provider_id)
            state = self._state_of(circuit)
            if state == BreakerState.CLOSED:
                return True
            if state == BreakerState.OPEN:
                return False

            now = self._clock()
            if circuit.trial_started_at is not None and now - circuit.trial_started_at < self.cooldown_seconds:
                return False
            circuit.trial_started_at = now
            logger.info(f"Circuit breaker for {provider_id} half-open, allowing trial request")
            return True

    def record(self, provider_id: str, status: ProviderStatus) -> None:
        """
        Record the settled status of one request to a provider.

        ``ok`` resets the counter; timeouts and unknown errors count as
        failures; other statuses (rate limits, auth) leave it untouched.
        """
        with self._lock:
            circuit = self._circuit(provider_id)
            state = self._state_of(circuit)

            if status == ProviderStatus.OK:
                if state != BreakerState.CLOSED:
                    logger.info(f"Circuit breaker for {provider_id} closed")
                circuit.consecutive_failures = 0
                circuit.opened_at = None
                circuit.trial_started_at = None
                return

            # Any settled status ends a half-open trial
            circuit.trial_started_at = None
            if status not in FAILURE_STATUSES:
                return

            circuit.consecutive_failures += 1
            if state == BreakerState.HALF_OPEN or (
                circuit.consecutive_failures >= self.failure_threshold
                and state == BreakerState.CLOSED
            ):
                circuit.opened_at = self._clock()
                circuit.trial_started_at = None
                logger.warning(
                    f"Circuit breaker for {provider_id} opened after "
                    f"{circuit.consecutive_failures} consecutive failures "
                    f"(cool-down {self.cooldown_seconds:.0f}s)"
                )

    def reset(self, provider_id: str | None = None) -> None:
        """Reset one provider's breaker, or all of them."""
        with self._lock:
            if provider_id is None:
                self._circuits.clear()
            else:
                self._circuits.pop(provider_id, None)

    def snapshot(self) -> dict[str, dict]:
        """Breaker state per provider, for the providers endpoint."""
        with self._lock:
            return {
                provider_id: {
                    "state": self._state_of(circuit).value,
                    "consecutive_failures": circuit.consecutive_failures,
                }
                for provider_id, circuit in self._circuits.items()
            }

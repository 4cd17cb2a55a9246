"""Identification and diagnosis services."""

from .circuit_breaker import BreakerState, CircuitBreakerRegistry
from .consensus import ConsensusOutcome, IdentificationConsensusEngine
from .diagnosis import DiagnosisEngine
from .disease_aggregator import DiseaseAggregator
from .fallback import FallbackChain, FallbackOutcome
from .orchestrator import ProviderOrchestrator
from .precheck import ImagePrecheck
from .regulated import RegulatedOrganismMatcher

__all__ = [
    "BreakerState",
    "CircuitBreakerRegistry",
    "ConsensusOutcome",
    "DiagnosisEngine",
    "DiseaseAggregator",
    "FallbackChain",
    "FallbackOutcome",
    "IdentificationConsensusEngine",
    "ImagePrecheck",
    "ProviderOrchestrator",
    "RegulatedOrganismMatcher",
]

"""FastAPI dependency injection factories."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends

from phyto_api.core.config import Settings, get_settings
from phyto_api.services.diagnosis import DiagnosisEngine


# Type aliases for cleaner route signatures
SettingsDep = Annotated[Settings, Depends(get_settings)]


@lru_cache(maxsize=1)
def get_diagnosis_engine() -> DiagnosisEngine:
    """
    Get the process-wide DiagnosisEngine.

    One instance per process so the circuit breaker state and HTTP clients
    are shared across requests.
    """
    return DiagnosisEngine(get_settings())


DiagnosisEngineDep = Annotated[DiagnosisEngine, Depends(get_diagnosis_engine)]

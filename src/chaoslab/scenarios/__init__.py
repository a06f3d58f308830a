"""Scenario runners, one per fault type, and the dispatch table."""

from typing import Dict, Optional, Type

from chaoslab.config import Settings
from chaoslab.models import ScenarioKind
from chaoslab.transport import HttpTransport

from .auth_failure import AuthFailureScenarioRunner
from .base import ScenarioRunner
from .latency import LatencyScenarioRunner
from .payload_corruption import PayloadCorruptionScenarioRunner
from .rate_limit import RateLimitScenarioRunner

SCENARIO_RUNNERS: Dict[ScenarioKind, Type[ScenarioRunner]] = {
    ScenarioKind.LATENCY: LatencyScenarioRunner,
    ScenarioKind.PAYLOAD_CORRUPTION: PayloadCorruptionScenarioRunner,
    ScenarioKind.AUTH_FAILURE: AuthFailureScenarioRunner,
    ScenarioKind.RATE_LIMIT: RateLimitScenarioRunner,
}


def build_runner(
    kind: ScenarioKind,
    transport: Optional[HttpTransport] = None,
    *,
    config: Optional[Settings] = None,
) -> ScenarioRunner:
    """Instantiate the runner registered for ``kind``."""
    return SCENARIO_RUNNERS[ScenarioKind(kind)](transport, config=config)


__all__ = [
    "SCENARIO_RUNNERS",
    "ScenarioRunner",
    "LatencyScenarioRunner",
    "PayloadCorruptionScenarioRunner",
    "AuthFailureScenarioRunner",
    "RateLimitScenarioRunner",
    "build_runner",
]

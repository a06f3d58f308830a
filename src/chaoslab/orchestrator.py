"""Sequence scenario runners against a target, isolating their failures."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Sequence

from chaoslab.config import Settings
from chaoslab.models import ScenarioKind, ScenarioResult, Target
from chaoslab.scenarios import ScenarioRunner, build_runner
from chaoslab.transport import HttpTransport

logger = logging.getLogger(__name__)

RunnerFactory = Callable[[ScenarioKind], ScenarioRunner]


def failed_scenario_result(kind: ScenarioKind, message: str) -> ScenarioResult:
    """Placeholder result for a scenario whose runner raised."""
    return ScenarioResult(
        kind=ScenarioKind(kind),
        total_requests=0,
        success_count=0,
        error_count=1,
        status_code_counts={},
        errors=[message],
    )


class ChaosOrchestrator:
    """Run the requested scenarios one after another.

    A runner that raises does not stop the remaining scenarios; it is
    represented by a zero-request result carrying the error message.

    A transport passed in belongs to the caller. One the orchestrator builds
    itself is closed at the end of every ``run_all`` and by ``close``.
    """

    def __init__(
        self,
        runner_factory: Optional[RunnerFactory] = None,
        *,
        transport: Optional[HttpTransport] = None,
        config: Optional[Settings] = None,
    ) -> None:
        self._transport = transport
        self._owned_transport: Optional[HttpTransport] = None
        self._config = config
        self._runner_factory = runner_factory or self._default_factory

    def _default_factory(self, kind: ScenarioKind) -> ScenarioRunner:
        transport = self._transport
        if transport is None:
            if self._owned_transport is None:
                self._owned_transport = HttpTransport()
            transport = self._owned_transport
        return build_runner(kind, transport, config=self._config)

    def run_scenario(self, kind: ScenarioKind, target: Target) -> ScenarioResult:
        runner = self._runner_factory(ScenarioKind(kind))
        return runner.run(target)

    def run_all(self, scenario_kinds: Sequence[ScenarioKind], target: Target) -> List[ScenarioResult]:
        results: List[ScenarioResult] = []
        try:
            for kind in scenario_kinds:
                kind = ScenarioKind(kind)
                try:
                    result = self.run_scenario(kind, target)
                    logger.info("Completed %s scenario", kind.value)
                except Exception as exc:  # noqa: BLE001 - one broken scenario must not abort the rest
                    logger.exception("Scenario %s failed: %s", kind.value, exc)
                    result = failed_scenario_result(kind, str(exc) or exc.__class__.__name__)
                results.append(result)
        finally:
            self.close()
        return results

    def close(self) -> None:
        """Release the HTTP client the orchestrator created, if any."""
        if self._owned_transport is not None:
            self._owned_transport.close()
            self._owned_transport = None

    def __enter__(self) -> "ChaosOrchestrator":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

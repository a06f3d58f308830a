"""Latency scenario: sequential requests separated by random jitter."""

from __future__ import annotations

import random
import time
from typing import Callable, List, Optional

from chaoslab.config import Settings
from chaoslab.metrics import LOAD_PROFILE
from chaoslab.models import RequestObservation, ScenarioKind, Target
from chaoslab.scenarios.base import ScenarioRunner
from chaoslab.transport import HttpTransport, TransportError


class LatencyScenarioRunner(ScenarioRunner):
    kind = ScenarioKind.LATENCY
    profile = LOAD_PROFILE

    def __init__(
        self,
        transport: Optional[HttpTransport] = None,
        *,
        config: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        super().__init__(transport, config=config)
        self._rng = rng or random.Random()
        self._sleep = sleep

    def _execute(self, target: Target) -> List[RequestObservation]:
        count = self._config.latency_request_count
        max_jitter_ms = self._config.latency_max_jitter_ms
        body = self._default_body(target)

        observations: List[RequestObservation] = []
        for _ in range(count):
            delay_ms = self._rng.randrange(max_jitter_ms) if max_jitter_ms > 0 else 0
            self._sleep(delay_ms / 1000)
            observations.append(
                self._observe(target, body=body, timeout=self._config.latency_timeout_seconds)
            )
        return observations

    def _failure_message(self, exc: TransportError, label: Optional[str]) -> str:
        if exc.is_timeout:
            return "Request timeout"
        return super()._failure_message(exc, label)

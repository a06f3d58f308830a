"""Rate limit scenario: a concurrent burst of identical requests."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional

from chaoslab.metrics import LOAD_PROFILE
from chaoslab.models import RequestObservation, ScenarioKind, Target
from chaoslab.scenarios.base import ScenarioRunner
from chaoslab.transport import TransportError

logger = logging.getLogger(__name__)


class RateLimitScenarioRunner(ScenarioRunner):
    """Fire every request at once and wait for all of them.

    The burst is intentionally unbounded: one thread per request, no
    backpressure. Observations come back in completion order.
    """

    kind = ScenarioKind.RATE_LIMIT
    profile = LOAD_PROFILE

    def _execute(self, target: Target) -> List[RequestObservation]:
        count = self._config.rate_limit_request_count
        if count <= 0:
            return []
        body = self._default_body(target)
        timeout = self._config.rate_limit_timeout_seconds

        observations: List[RequestObservation] = []
        with ThreadPoolExecutor(max_workers=count, thread_name_prefix="burst") as executor:
            futures = [
                executor.submit(self._observe, target, body=body, timeout=timeout)
                for _ in range(count)
            ]
            for future in as_completed(futures):
                observations.append(future.result())
        return observations

    def _status_message(self, status_code: int, label: Optional[str]) -> str:
        if status_code == 429:
            return "Rate limit detected (429)"
        return f"HTTP {status_code} under load"

    def _failure_message(self, exc: TransportError, label: Optional[str]) -> str:
        if exc.is_timeout:
            return "Request timeout under load"
        return str(exc) or "Unknown error under load"

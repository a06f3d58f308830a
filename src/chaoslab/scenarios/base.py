"""Shared plumbing for scenario runners."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from chaoslab.config import Settings, settings
from chaoslab.metrics import PROBE_PROFILE, MetricsProfile, aggregate
from chaoslab.models import HttpMethod, RequestObservation, ScenarioKind, ScenarioResult, Target
from chaoslab.transport import NO_BODY, HttpTransport, TransportError

logger = logging.getLogger(__name__)


class ScenarioRunner(ABC):
    """Issue fault-injecting requests against a target and summarize them.

    ``run`` never raises for per-request failures: timeouts, connection
    errors and non-2xx responses all become observations flagged as errors.
    """

    kind: ScenarioKind
    profile: MetricsProfile = PROBE_PROFILE

    def __init__(self, transport: Optional[HttpTransport] = None, *, config: Optional[Settings] = None) -> None:
        self._transport = transport or HttpTransport()
        self._config = config or settings

    def run(self, target: Target) -> ScenarioResult:
        logger.info("Running %s scenario for %s %s", self.kind.value, target.method.value, target.url)
        start = time.perf_counter()
        observations = self._execute(target)
        result = aggregate(self.kind, observations, self.profile)
        logger.info(
            "Scenario %s finished in %.2fs: %s/%s succeeded",
            self.kind.value,
            time.perf_counter() - start,
            result.success_count,
            result.total_requests,
        )
        return result

    @abstractmethod
    def _execute(self, target: Target) -> List[RequestObservation]:
        """Issue this scenario's requests and return one observation each."""

    def _observe(
        self,
        target: Target,
        *,
        headers: Optional[Dict[str, str]] = None,
        body: Any = NO_BODY,
        timeout: float,
        label: Optional[str] = None,
    ) -> RequestObservation:
        request_headers = dict(target.headers) if headers is None else headers
        started = time.time()
        try:
            response = self._transport.send(
                target.method.value,
                target.url,
                headers=request_headers,
                body=body,
                timeout=timeout,
            )
        except TransportError as exc:
            finished = time.time()
            logger.debug("%s request failed (%s): %s", self.kind.value, exc.kind.value, exc)
            return RequestObservation(
                started_at=started,
                finished_at=finished,
                latency_ms=_elapsed_ms(started, finished),
                is_timeout=exc.is_timeout,
                is_error=True,
                error_message=self._failure_message(exc, label),
            )
        except Exception as exc:  # noqa: BLE001 - unclassified outcomes are recorded as errors
            finished = time.time()
            logger.warning("%s request raised unexpectedly: %s", self.kind.value, exc)
            return RequestObservation(
                started_at=started,
                finished_at=finished,
                latency_ms=_elapsed_ms(started, finished),
                is_error=True,
                error_message=_labelled(label, str(exc) or "Unknown error"),
            )

        finished = time.time()
        if response.ok:
            return RequestObservation(
                started_at=started,
                finished_at=finished,
                latency_ms=_elapsed_ms(started, finished),
                status_code=response.status_code,
            )
        return RequestObservation(
            started_at=started,
            finished_at=finished,
            latency_ms=_elapsed_ms(started, finished),
            status_code=response.status_code,
            is_error=True,
            error_message=self._status_message(response.status_code, label),
        )

    def _status_message(self, status_code: int, label: Optional[str]) -> str:
        return _labelled(label, f"HTTP {status_code}")

    def _failure_message(self, exc: TransportError, label: Optional[str]) -> str:
        return _labelled(label, str(exc) or "Unknown error")

    @staticmethod
    def _default_body(target: Target) -> Any:
        if target.method is HttpMethod.GET or target.base_payload is None:
            return NO_BODY
        return target.base_payload


def _elapsed_ms(started: float, finished: float) -> float:
    return round((finished - started) * 1000, 3)


def _labelled(label: Optional[str], message: str) -> str:
    return f"{label}: {message}" if label else message

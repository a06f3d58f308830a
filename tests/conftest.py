"""Shared fixtures: in-memory storage and mock HTTP targets."""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Callable, Dict, Iterable, List, Optional

import httpx
import pytest

from chaoslab.config import Settings
from chaoslab.errors import InvalidTransitionError, TestRunNotFoundError
from chaoslab.models import Report, Target, TestRun, TestStatus
from chaoslab.transport import HttpTransport

Handler = Callable[[httpx.Request], httpx.Response]


class InMemoryStore:
    """Dictionary-backed stand-in for ``ChaosRepository``."""

    def __init__(self) -> None:
        self.targets: Dict[str, Target] = {}
        self.test_runs: Dict[str, TestRun] = {}
        self.reports: Dict[str, Report] = {}
        self.status_history: Dict[str, List[TestStatus]] = {}
        self._lock = threading.Lock()

    def create_target(self, target: Target) -> Target:
        self.targets[target.id] = target
        return target

    def get_target(self, target_id: str) -> Optional[Target]:
        return self.targets.get(target_id)

    def list_targets(self, limit: int = 100) -> List[Target]:
        return list(self.targets.values())[:limit]

    def create_test_run(self, test_run: TestRun) -> TestRun:
        self.test_runs[test_run.id] = test_run
        self.status_history[test_run.id] = [test_run.status]
        return test_run

    def get_test_run(self, test_id: str) -> Optional[TestRun]:
        return self.test_runs.get(test_id)

    def list_test_runs(self, limit: int = 100) -> List[TestRun]:
        return list(self.test_runs.values())[:limit]

    def transition_test_run(
        self,
        test_id: str,
        expected: Iterable[TestStatus],
        status: TestStatus,
        **fields: Any,
    ) -> TestRun:
        with self._lock:
            current = self.test_runs.get(test_id)
            if current is None:
                raise TestRunNotFoundError(test_id)
            if current.status not in set(expected):
                raise InvalidTransitionError(test_id, current.status.value, status.value)
            updated = replace(current, status=status, **fields)
            self.test_runs[test_id] = updated
            self.status_history[test_id].append(status)
            return updated

    def save_report(self, report: Report) -> Report:
        self.reports[report.id] = report
        return report

    def get_report(self, report_id: str) -> Optional[Report]:
        return self.reports.get(report_id)

    def get_report_for_test(self, test_id: str) -> Optional[Report]:
        for report in self.reports.values():
            if report.test_id == test_id:
                return report
        return None


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def fast_config() -> Settings:
    """Settings with jitter disabled so latency runs do not sleep."""
    return Settings(latency_max_jitter_ms=0)


@pytest.fixture
def make_transport() -> Callable[[Handler], HttpTransport]:
    transports: List[HttpTransport] = []

    def _factory(handler: Handler) -> HttpTransport:
        transport = HttpTransport(httpx.Client(transport=httpx.MockTransport(handler)))
        transports.append(transport)
        return transport

    yield _factory
    for transport in transports:
        transport._client.close()


def status_handler(status_code: int) -> Handler:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"ok": 200 <= status_code < 300})

    return _handler


@pytest.fixture
def get_target() -> Target:
    return Target(url="https://api.example.test/items", method="GET", name="items")


@pytest.fixture
def post_target() -> Target:
    return Target(
        url="https://api.example.test/orders",
        method="POST",
        name="orders",
        base_payload={"customer": "alice", "quantity": 3, "express": True, "tags": ["a"]},
        headers={"Authorization": "Bearer good-token", "X-Trace": "1"},
    )

"""Core data models shared by the chaos engine, the worker and storage."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence
from uuid import uuid4

from chaoslab.errors import UnknownScenarioError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class ScenarioKind(str, Enum):
    """Fault injection strategies the engine knows how to run."""

    LATENCY = "latency"
    PAYLOAD_CORRUPTION = "payload_corruption"
    AUTH_FAILURE = "auth_failure"
    RATE_LIMIT = "rate_limit"

    @classmethod
    def values(cls) -> List[str]:
        return [kind.value for kind in cls]


def parse_scenario_kinds(values: Iterable[Any]) -> List[ScenarioKind]:
    """Validate raw scenario names, preserving order.

    Raises ``UnknownScenarioError`` when the list is empty or names a kind
    outside ``ScenarioKind``.
    """
    raw = list(values)
    valid = ScenarioKind.values()
    invalid = [str(value) for value in raw if str(getattr(value, "value", value)) not in valid]
    if invalid or not raw:
        raise UnknownScenarioError(invalid, valid)
    return [ScenarioKind(getattr(value, "value", value)) for value in raw]


class TestStatus(str, Enum):
    """Lifecycle states of a test run."""

    __test__ = False

    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TestStatus.COMPLETED, TestStatus.FAILED)

    def can_transition_to(self, target: "TestStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]


# failed -> running only happens when the broker redelivers a failed job.
_ALLOWED_TRANSITIONS: Dict[TestStatus, frozenset] = {
    TestStatus.QUEUED: frozenset({TestStatus.RUNNING, TestStatus.FAILED}),
    TestStatus.RUNNING: frozenset({TestStatus.COMPLETED, TestStatus.FAILED}),
    TestStatus.COMPLETED: frozenset(),
    TestStatus.FAILED: frozenset({TestStatus.RUNNING}),
}


@dataclass(frozen=True)
class Target:
    """HTTP endpoint under chaos test."""

    url: str
    method: HttpMethod = HttpMethod.GET
    name: str = ""
    base_payload: Any = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not isinstance(self.method, HttpMethod):
            object.__setattr__(self, "method", HttpMethod(str(self.method).upper()))


@dataclass(frozen=True)
class RequestObservation:
    """Outcome of a single HTTP attempt."""

    started_at: float
    finished_at: float
    latency_ms: float
    status_code: Optional[int] = None
    is_timeout: bool = False
    is_error: bool = False
    error_message: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return not self.is_error and self.status_code is not None and 200 <= self.status_code < 300

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class ScenarioResult:
    """Aggregated statistics for one scenario run."""

    kind: ScenarioKind
    total_requests: int = 0
    success_count: int = 0
    error_count: int = 0
    status_code_counts: Dict[str, int] = field(default_factory=dict)
    avg_latency_ms: Optional[int] = None
    p95_latency_ms: Optional[int] = None
    p99_latency_ms: Optional[int] = None
    timeout_count: Optional[int] = None
    errors: List[str] = field(default_factory=list)
    observations: List[RequestObservation] = field(default_factory=list)

    @property
    def success_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.success_count / self.total_requests * 100

    @property
    def error_rate(self) -> float:
        if not self.total_requests:
            return 0.0
        return self.error_count / self.total_requests * 100

    def to_metrics(self) -> Dict[str, Any]:
        """Persisted form of the result, without raw observations."""
        return {
            "name": self.kind.value,
            "total_requests": self.total_requests,
            "success_count": self.success_count,
            "error_count": self.error_count,
            "status_code_counts": dict(self.status_code_counts),
            "avg_latency_ms": self.avg_latency_ms,
            "p95_latency_ms": self.p95_latency_ms,
            "p99_latency_ms": self.p99_latency_ms,
            "timeout_count": self.timeout_count,
            "errors": list(self.errors),
        }

    def to_dict(self) -> Dict[str, Any]:
        payload = self.to_metrics()
        payload["observations"] = [observation.to_dict() for observation in self.observations]
        return payload

    @classmethod
    def from_metrics(cls, payload: Dict[str, Any]) -> "ScenarioResult":
        return cls(
            kind=ScenarioKind(payload["name"]),
            total_requests=int(payload.get("total_requests", 0)),
            success_count=int(payload.get("success_count", 0)),
            error_count=int(payload.get("error_count", 0)),
            status_code_counts={str(k): int(v) for k, v in (payload.get("status_code_counts") or {}).items()},
            avg_latency_ms=payload.get("avg_latency_ms"),
            p95_latency_ms=payload.get("p95_latency_ms"),
            p99_latency_ms=payload.get("p99_latency_ms"),
            timeout_count=payload.get("timeout_count"),
            errors=list(payload.get("errors") or []),
        )


@dataclass
class TestRun:
    """One execution of a set of scenarios against one target."""

    __test__ = False

    target_id: str
    scenarios: List[ScenarioKind]
    status: TestStatus = TestStatus.QUEUED
    metrics: List[Dict[str, Any]] = field(default_factory=list)
    report_id: Optional[str] = None
    error_message: Optional[str] = None
    attempts: int = 0
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def results(self) -> List[ScenarioResult]:
        return [ScenarioResult.from_metrics(item) for item in self.metrics]


@dataclass(frozen=True)
class ReportContent:
    """Title, summary, timeline and recommendations of a post-mortem."""

    title: str
    summary: str
    timeline: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    source: str = "heuristic"


@dataclass
class Report:
    """Persisted post-mortem analysis of a test run."""

    test_id: str
    title: str
    summary: str
    timeline: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    source: str = "heuristic"
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_content(cls, test_id: str, content: ReportContent) -> "Report":
        return cls(
            test_id=test_id,
            title=content.title,
            summary=content.summary,
            timeline=list(content.timeline),
            recommendations=list(content.recommendations),
            source=content.source,
        )


@dataclass(frozen=True)
class ChaosJob:
    """Payload delivered by the broker to a worker."""

    test_id: str
    target_id: str
    scenarios: Sequence[ScenarioKind]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_id": self.test_id,
            "target_id": self.target_id,
            "scenarios": [ScenarioKind(kind).value for kind in self.scenarios],
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ChaosJob":
        return cls(
            test_id=str(payload["test_id"]),
            target_id=str(payload["target_id"]),
            scenarios=tuple(parse_scenario_kinds(payload.get("scenarios") or [])),
        )

"""Reduce per-request observations into a scenario result."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

from chaoslab.models import RequestObservation, ScenarioKind, ScenarioResult


@dataclass(frozen=True)
class MetricsProfile:
    """Which statistics a scenario reports and over which observations.

    Latency-oriented scenarios drop timeouts from the latency sample and
    report percentiles; the others average over every observation,
    including failed ones.
    """

    exclude_timeouts: bool = False
    percentiles: bool = False
    track_timeouts: bool = False


LOAD_PROFILE = MetricsProfile(exclude_timeouts=True, percentiles=True, track_timeouts=True)
PROBE_PROFILE = MetricsProfile()


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentile(sorted_values: Sequence[float], fraction: float) -> float:
    """Nearest-rank percentile with a floored index, 0 when out of range."""
    if not 0 <= fraction <= 1:
        raise ValueError("Percentile must be between 0 and 1")
    index = math.floor(len(sorted_values) * fraction)
    if index >= len(sorted_values):
        return 0
    return sorted_values[index]


def dedupe(messages: Iterable[str]) -> List[str]:
    seen = set()
    unique: List[str] = []
    for message in messages:
        if message in seen:
            continue
        seen.add(message)
        unique.append(message)
    return unique


def status_histogram(observations: Iterable[RequestObservation]) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for observation in observations:
        if observation.status_code is None:
            continue
        key = str(observation.status_code)
        counts[key] = counts.get(key, 0) + 1
    return counts


def aggregate(
    kind: ScenarioKind,
    observations: Sequence[RequestObservation],
    profile: MetricsProfile = PROBE_PROFILE,
    *,
    errors: Optional[Sequence[str]] = None,
) -> ScenarioResult:
    """Build a ``ScenarioResult`` from observations.

    Pure and deterministic: the same observation sequence always produces an
    equal result. ``errors`` seeds the error list ahead of the messages
    carried by the observations.
    """
    observations = list(observations)
    success_count = sum(1 for observation in observations if observation.is_success)

    result = ScenarioResult(
        kind=ScenarioKind(kind),
        total_requests=len(observations),
        success_count=success_count,
        error_count=len(observations) - success_count,
        status_code_counts=status_histogram(observations),
        errors=dedupe(
            list(errors or [])
            + [observation.error_message for observation in observations if observation.error_message]
        ),
        observations=observations,
    )

    if not observations:
        return result

    if profile.track_timeouts:
        result.timeout_count = sum(1 for observation in observations if observation.is_timeout)

    sample = sorted(
        observation.latency_ms
        for observation in observations
        if not (profile.exclude_timeouts and observation.is_timeout)
    )
    result.avg_latency_ms = round_half_up(sum(sample) / len(sample)) if sample else 0
    if profile.percentiles:
        result.p95_latency_ms = round_half_up(percentile(sample, 0.95))
        result.p99_latency_ms = round_half_up(percentile(sample, 0.99))
    return result

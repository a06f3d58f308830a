"""Deterministic rule engine turning scenario metrics into a post-mortem."""

from __future__ import annotations

import json
from typing import List, Sequence

from chaoslab.models import ReportContent, ScenarioKind, ScenarioResult, Target

MAX_RECOMMENDATIONS = 8
LATENCY_P95_THRESHOLD_MS = 1000
RATE_LIMIT_ERROR_SHARE = 0.3
GLOBAL_ERROR_SHARE = 0.2
GOOD_RESILIENCE_ERROR_RATE = 5.0

GENERAL_RECOMMENDATIONS = (
    "Monitoring: Set up APM tools (New Relic, Datadog, or Prometheus) to track real-time performance and error rates.",
    "Implement circuit breakers and fallback mechanisms for external dependencies.",
    "Consider implementing a comprehensive API testing strategy including integration and load tests in CI/CD pipeline.",
)


def format_status_counts(result: ScenarioResult) -> str:
    return json.dumps(result.status_code_counts, separators=(",", ":"))


def timeline_entry(kind: ScenarioKind, result: ScenarioResult) -> str:
    return (
        f"{kind.value.upper()}: Executed {result.total_requests} requests with "
        f"{result.success_rate:.1f}% success rate. Status codes: {format_status_counts(result)}."
    )


def scenario_recommendations(kind: ScenarioKind, result: ScenarioResult) -> List[str]:
    """Recommendations triggered by a single scenario's metrics."""
    recommendations: List[str] = []
    counts = result.status_code_counts

    if kind is ScenarioKind.LATENCY:
        if result.p95_latency_ms and result.p95_latency_ms > LATENCY_P95_THRESHOLD_MS:
            recommendations.append(
                f"Latency optimization: P95 latency is {result.p95_latency_ms}ms. Consider implementing caching, "
                "database query optimization, or CDN for static assets."
            )

    elif kind is ScenarioKind.PAYLOAD_CORRUPTION:
        if any(code.startswith("5") for code in counts):
            recommendations.append(
                "Input validation: API returns 5xx errors for invalid payloads. Implement robust input validation "
                "and return proper 4xx errors with clear messages."
            )
        else:
            recommendations.append(
                "Good input validation: API properly handles malformed payloads with 4xx responses. "
                "Consider adding more detailed error messages."
            )

    elif kind is ScenarioKind.AUTH_FAILURE:
        if not (counts.get("401") or counts.get("403")):
            recommendations.append(
                "Authentication handling: API does not return proper 401/403 for auth failures. "
                "Implement proper authentication middleware."
            )
        else:
            recommendations.append(
                "Authentication is properly configured. Consider adding rate limiting for failed auth attempts "
                "to prevent brute force attacks."
            )

    elif kind is ScenarioKind.RATE_LIMIT:
        if not counts.get("429") and result.error_count > result.total_requests * RATE_LIMIT_ERROR_SHARE:
            recommendations.append(
                "Rate limiting: API shows degraded performance under load without proper rate limiting. "
                "Implement rate limiting with 429 responses."
            )
        if result.timeout_count:
            recommendations.append(
                f"Timeout handling: {result.timeout_count} requests timed out under load. Consider implementing "
                "request queuing, auto-scaling, or circuit breakers."
            )

    return recommendations


def synthesize_report(
    target: Target,
    scenario_kinds: Sequence[ScenarioKind],
    results: Sequence[ScenarioResult],
) -> ReportContent:
    """Build a report from scenario results without any external service.

    ``scenario_kinds`` and ``results`` are paired by position; a kind with
    no matching result is left out of the timeline.
    """
    total_requests = sum(result.total_requests for result in results)
    total_errors = sum(result.error_count for result in results)

    timeline: List[str] = []
    recommendations: List[str] = []
    for kind, result in zip(scenario_kinds, results):
        kind = ScenarioKind(kind)
        timeline.append(timeline_entry(kind, result))
        recommendations.extend(scenario_recommendations(kind, result))

    if total_errors > total_requests * GLOBAL_ERROR_SHARE:
        recommendations.append(
            "High error rate detected. Implement comprehensive error handling, logging, and monitoring "
            "to identify root causes."
        )
    recommendations.extend(GENERAL_RECOMMENDATIONS)

    if total_requests > 0:
        error_rate_text = f"{total_errors / total_requests * 100:.1f}"
        resilient = float(error_rate_text) < GOOD_RESILIENCE_ERROR_RATE
    else:
        error_rate_text = "0"
        resilient = True

    verdict = (
        "API shows good resilience under chaos conditions."
        if resilient
        else "API shows areas for improvement in error handling and resilience."
    )
    summary = (
        f"Executed {len(scenario_kinds)} chaos scenarios with {total_requests} total requests. "
        f"Overall error rate: {error_rate_text}%. {verdict}"
    )

    return ReportContent(
        title=f"Chaos Test Report: {target.method.value} {target.url}",
        summary=summary,
        timeline=timeline,
        recommendations=recommendations[:MAX_RECOMMENDATIONS],
        source="heuristic",
    )

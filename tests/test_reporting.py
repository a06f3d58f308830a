from __future__ import annotations

import json

import pytest

from chaoslab.errors import ReportParseError
from chaoslab.llm import LLMGenerationError
from chaoslab.models import ScenarioKind, ScenarioResult, Target
from chaoslab.reporting import ReportGenerator, synthesize_report
from chaoslab.reporting.heuristic import (
    GENERAL_RECOMMENDATIONS,
    MAX_RECOMMENDATIONS,
    scenario_recommendations,
    timeline_entry,
)
from chaoslab.reporting.llm_report import DEFAULT_TITLE, LLMReportWriter, build_prompt, parse_report_response

TARGET = Target(url="https://api.example.test/orders", method="POST")


def _result(kind: ScenarioKind, total: int, success: int, codes: dict, **extra) -> ScenarioResult:
    return ScenarioResult(
        kind=kind,
        total_requests=total,
        success_count=success,
        error_count=total - success,
        status_code_counts=codes,
        **extra,
    )


# ---------------------------------------------------------------------------
# heuristic rules
# ---------------------------------------------------------------------------


def test_timeline_entry_format() -> None:
    result = _result(ScenarioKind.LATENCY, 20, 19, {"200": 19, "503": 1})

    assert timeline_entry(ScenarioKind.LATENCY, result) == (
        'LATENCY: Executed 20 requests with 95.0% success rate. Status codes: {"200":19,"503":1}.'
    )


def test_slow_latency_is_flagged() -> None:
    slow = _result(ScenarioKind.LATENCY, 20, 20, {"200": 20}, p95_latency_ms=1500)
    fast = _result(ScenarioKind.LATENCY, 20, 20, {"200": 20}, p95_latency_ms=1000)

    assert scenario_recommendations(ScenarioKind.LATENCY, slow)[0].startswith(
        "Latency optimization: P95 latency is 1500ms."
    )
    assert scenario_recommendations(ScenarioKind.LATENCY, fast) == []


def test_payload_server_errors_versus_clean_rejections() -> None:
    crashing = _result(ScenarioKind.PAYLOAD_CORRUPTION, 6, 0, {"400": 5, "500": 1})
    validating = _result(ScenarioKind.PAYLOAD_CORRUPTION, 6, 0, {"400": 6})

    assert scenario_recommendations(ScenarioKind.PAYLOAD_CORRUPTION, crashing)[0].startswith("Input validation:")
    assert scenario_recommendations(ScenarioKind.PAYLOAD_CORRUPTION, validating)[0].startswith(
        "Good input validation:"
    )


def test_auth_without_401_or_403_is_flagged() -> None:
    open_endpoint = _result(ScenarioKind.AUTH_FAILURE, 4, 4, {"200": 4})
    guarded = _result(ScenarioKind.AUTH_FAILURE, 4, 0, {"403": 4})

    assert scenario_recommendations(ScenarioKind.AUTH_FAILURE, open_endpoint)[0].startswith(
        "Authentication handling:"
    )
    assert scenario_recommendations(ScenarioKind.AUTH_FAILURE, guarded)[0].startswith(
        "Authentication is properly configured."
    )


def test_rate_limit_rules() -> None:
    degraded = _result(ScenarioKind.RATE_LIMIT, 50, 20, {"200": 20, "503": 28}, timeout_count=2)
    limited = _result(ScenarioKind.RATE_LIMIT, 50, 10, {"200": 10, "429": 40}, timeout_count=0)

    degraded_recs = scenario_recommendations(ScenarioKind.RATE_LIMIT, degraded)
    assert degraded_recs[0].startswith("Rate limiting:")
    assert degraded_recs[1].startswith("Timeout handling: 2 requests timed out under load.")
    assert scenario_recommendations(ScenarioKind.RATE_LIMIT, limited) == []


def test_healthy_report() -> None:
    kinds = [ScenarioKind.LATENCY, ScenarioKind.AUTH_FAILURE]
    results = [
        _result(ScenarioKind.LATENCY, 20, 20, {"200": 20}, p95_latency_ms=40),
        _result(ScenarioKind.AUTH_FAILURE, 4, 0, {"401": 4}),
    ]

    report = synthesize_report(TARGET, kinds, results)

    assert report.title == "Chaos Test Report: POST https://api.example.test/orders"
    assert report.source == "heuristic"
    assert len(report.timeline) == 2
    assert report.timeline[0].startswith("LATENCY:")
    assert report.timeline[1].startswith("AUTH_FAILURE:")
    assert report.summary == (
        "Executed 2 chaos scenarios with 24 total requests. Overall error rate: 16.7%. "
        "API shows areas for improvement in error handling and resilience."
    )
    assert report.recommendations[0].startswith("Authentication is properly configured.")
    assert report.recommendations[-3:] == list(GENERAL_RECOMMENDATIONS)


def test_good_resilience_summary() -> None:
    results = [_result(ScenarioKind.LATENCY, 20, 20, {"200": 20}, p95_latency_ms=40)]

    report = synthesize_report(TARGET, [ScenarioKind.LATENCY], results)

    assert "Overall error rate: 0.0%." in report.summary
    assert report.summary.endswith("API shows good resilience under chaos conditions.")
    assert report.recommendations == list(GENERAL_RECOMMENDATIONS)


def test_zero_requests_counts_as_resilient() -> None:
    results = [_result(ScenarioKind.PAYLOAD_CORRUPTION, 0, 0, {}, errors=["not applicable"])]

    report = synthesize_report(TARGET, [ScenarioKind.PAYLOAD_CORRUPTION], results)

    assert "0 total requests. Overall error rate: 0%." in report.summary
    assert report.summary.endswith("good resilience under chaos conditions.")
    assert "0.0% success rate" in report.timeline[0]


def test_recommendations_are_capped() -> None:
    kinds = list(ScenarioKind)
    results = [
        _result(ScenarioKind.LATENCY, 20, 5, {"200": 5, "503": 15}, p95_latency_ms=2400),
        _result(ScenarioKind.PAYLOAD_CORRUPTION, 6, 0, {"500": 6}),
        _result(ScenarioKind.AUTH_FAILURE, 4, 0, {"500": 4}),
        _result(ScenarioKind.RATE_LIMIT, 50, 0, {"503": 45}, timeout_count=5),
    ]

    report = synthesize_report(TARGET, kinds, results)

    assert len(report.recommendations) == MAX_RECOMMENDATIONS
    assert report.recommendations[5].startswith("High error rate detected.")
    assert report.recommendations[6:] == list(GENERAL_RECOMMENDATIONS[:2])


@pytest.mark.parametrize(
    ("success", "flagged"),
    [(10, False), (8, False), (7, True)],
)
def test_high_error_rate_triggers_global_recommendation(success: int, flagged: bool) -> None:
    results = [_result(ScenarioKind.LATENCY, 10, success, {"200": success})]

    report = synthesize_report(TARGET, [ScenarioKind.LATENCY], results)

    assert any(r.startswith("High error rate") for r in report.recommendations) is flagged


# ---------------------------------------------------------------------------
# LLM adapter
# ---------------------------------------------------------------------------


def test_parse_report_response_extracts_embedded_json() -> None:
    text = (
        "Here is the report:\n"
        + json.dumps(
            {
                "title": "Orders API post-mortem",
                "summary": "Mostly fine.",
                "timeline": ["latency ok"],
                "recommendations": ["add caching", 42],
            }
        )
        + "\nThanks!"
    )

    report = parse_report_response(text)

    assert report.title == "Orders API post-mortem"
    assert report.summary == "Mostly fine."
    assert report.timeline == ["latency ok"]
    assert report.recommendations == ["add caching", "42"]
    assert report.source == "llm"


def test_parse_report_response_fills_defaults() -> None:
    report = parse_report_response('{"title": "", "timeline": "not a list"}')

    assert report.title == DEFAULT_TITLE
    assert report.summary == ""
    assert report.timeline == []
    assert report.recommendations == []


@pytest.mark.parametrize("text", ["no json here", "{not: valid}", "[1, 2]"])
def test_parse_report_response_rejects_garbage(text: str) -> None:
    with pytest.raises(ReportParseError):
        parse_report_response(text)


def test_build_prompt_lists_each_result() -> None:
    results = [
        _result(ScenarioKind.LATENCY, 20, 18, {"200": 18}, avg_latency_ms=80, p95_latency_ms=150, timeout_count=2,
                errors=["Request timeout"]),
    ]

    prompt = build_prompt(TARGET, [ScenarioKind.LATENCY], results)

    assert "Target: POST https://api.example.test/orders" in prompt
    assert "Scenarios tested: latency" in prompt
    assert "- Success rate: 90.0%" in prompt
    assert "- Timeouts: 2" in prompt
    assert "- Notable errors: Request timeout" in prompt


class FakeTextClient:
    available = True

    def __init__(self, answer: str) -> None:
        self.answer = answer
        self.prompts: list[str] = []

    def generate(self, prompt: str, **kwargs) -> str:
        self.prompts.append(prompt)
        return self.answer


class FailingWriter:
    available = True

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    def generate(self, target, scenario_kinds, results):
        raise self.exc


def test_llm_writer_returns_parsed_report() -> None:
    client = FakeTextClient('{"title": "LLM title", "summary": "s", "timeline": [], "recommendations": ["r"]}')
    writer = LLMReportWriter(client)
    results = [_result(ScenarioKind.LATENCY, 20, 20, {"200": 20})]

    report = ReportGenerator(writer, use_llm=True).generate(TARGET, [ScenarioKind.LATENCY], results)

    assert report.title == "LLM title"
    assert report.source == "llm"
    assert len(client.prompts) == 1


@pytest.mark.parametrize(
    "exc",
    [LLMGenerationError("ollama down"), ReportParseError("bad json"), RuntimeError("unexpected")],
)
def test_generator_falls_back_to_heuristic(exc: Exception) -> None:
    results = [_result(ScenarioKind.LATENCY, 20, 20, {"200": 20})]

    report = ReportGenerator(FailingWriter(exc), use_llm=True).generate(TARGET, [ScenarioKind.LATENCY], results)

    assert report.source == "heuristic"
    assert report == synthesize_report(TARGET, [ScenarioKind.LATENCY], results)


def test_generator_skips_llm_when_disabled() -> None:
    results = [_result(ScenarioKind.LATENCY, 20, 20, {"200": 20})]
    writer = FailingWriter(AssertionError("LLM must not be called"))

    report = ReportGenerator(writer, use_llm=False).generate(TARGET, [ScenarioKind.LATENCY], results)

    assert report.source == "heuristic"


def test_generator_skips_unavailable_llm_client() -> None:
    client = FakeTextClient("{}")
    client.available = False
    results = [_result(ScenarioKind.LATENCY, 20, 20, {"200": 20})]

    report = ReportGenerator(LLMReportWriter(client), use_llm=True).generate(TARGET, [ScenarioKind.LATENCY], results)

    assert report.source == "heuristic"
    assert client.prompts == []

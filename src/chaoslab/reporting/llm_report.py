"""Language-model adapter producing the same report shape as the heuristic."""

from __future__ import annotations

import json
import logging
from typing import Any, List, Optional, Sequence

from pydantic import BaseModel, ValidationError, field_validator

from chaoslab.config import Settings, settings
from chaoslab.errors import ReportParseError
from chaoslab.llm import TextLLMClient, text_llm_client
from chaoslab.models import ReportContent, ScenarioKind, ScenarioResult, Target

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert API reliability engineer analyzing chaos test results. "
    "Provide detailed, actionable insights."
)
DEFAULT_TITLE = "Chaos Test Post-Mortem Report"
MAX_PROMPT_ERRORS = 5


class LLMReportPayload(BaseModel):
    """Shape expected from the model's JSON answer."""

    title: str = DEFAULT_TITLE
    summary: str = ""
    timeline: List[str] = []
    recommendations: List[str] = []

    @field_validator("title", mode="before")
    @classmethod
    def _default_title(cls, value: Any) -> Any:
        return value or DEFAULT_TITLE

    @field_validator("summary", mode="before")
    @classmethod
    def _default_summary(cls, value: Any) -> Any:
        return value or ""

    @field_validator("timeline", "recommendations", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]


def build_prompt(target: Target, scenario_kinds: Sequence[ScenarioKind], results: Sequence[ScenarioResult]) -> str:
    lines = [
        "Analyze the following chaos test results for API endpoint:",
        "",
        f"Target: {target.method.value} {target.url}",
        f"Scenarios tested: {', '.join(ScenarioKind(kind).value for kind in scenario_kinds)}",
        "",
        "Results:",
    ]
    for result in results:
        lines.append("")
        lines.append(f"{result.kind.value.upper()} Scenario:")
        lines.append(f"- Total requests: {result.total_requests}")
        lines.append(f"- Success rate: {result.success_rate:.1f}%")
        lines.append(f"- Error rate: {result.error_rate:.1f}%")
        if result.avg_latency_ms:
            lines.append(f"- Average latency: {result.avg_latency_ms}ms")
        if result.p95_latency_ms:
            lines.append(f"- P95 latency: {result.p95_latency_ms}ms")
        if result.timeout_count:
            lines.append(f"- Timeouts: {result.timeout_count}")
        lines.append(f"- Status codes: {json.dumps(result.status_code_counts, separators=(',', ':'))}")
        if result.errors:
            lines.append(f"- Notable errors: {'; '.join(result.errors[:MAX_PROMPT_ERRORS])}")

    lines.extend(
        [
            "",
            "Provide a comprehensive post-mortem report with:",
            "1. A concise title",
            "2. Executive summary (2-3 sentences)",
            "3. Timeline of what happened in each test phase",
            "4. Concrete recommendations to improve API resilience",
            "",
            "Format your response as JSON with keys: title, summary, timeline (array), recommendations (array)",
        ]
    )
    return "\n".join(lines)


def parse_report_response(text: str) -> ReportContent:
    """Extract the JSON report object embedded in free model text."""
    stripped = text.strip()
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end <= start:
        raise ReportParseError("no JSON object in model response")

    try:
        raw = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError as exc:
        raise ReportParseError(f"invalid JSON in model response: {exc}") from exc
    if not isinstance(raw, dict):
        raise ReportParseError("model response JSON is not an object")

    try:
        payload = LLMReportPayload.model_validate(raw)
    except ValidationError as exc:
        raise ReportParseError(f"model response failed validation: {exc}") from exc

    return ReportContent(
        title=payload.title,
        summary=payload.summary,
        timeline=payload.timeline,
        recommendations=payload.recommendations,
        source="llm",
    )


class LLMReportWriter:
    """Ask the text LLM for a post-mortem and parse its answer."""

    def __init__(self, client: Optional[TextLLMClient] = None, *, config: Optional[Settings] = None) -> None:
        self._client = client or text_llm_client
        self._config = config or settings

    @property
    def available(self) -> bool:
        return self._client.available

    def generate(
        self,
        target: Target,
        scenario_kinds: Sequence[ScenarioKind],
        results: Sequence[ScenarioResult],
    ) -> ReportContent:
        prompt = build_prompt(target, scenario_kinds, results)
        logger.info("Generating LLM report for %s %s", target.method.value, target.url)
        response = self._client.generate(
            prompt,
            system=SYSTEM_PROMPT,
            temperature=self._config.report_llm_temperature,
            max_tokens=self._config.report_llm_max_tokens,
        )
        return parse_report_response(response)

"""Report synthesis: deterministic heuristics with an optional LLM override."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from chaoslab.config import settings
from chaoslab.errors import ReportParseError
from chaoslab.llm import LLMGenerationError
from chaoslab.models import ReportContent, ScenarioKind, ScenarioResult, Target

from .heuristic import synthesize_report
from .llm_report import LLMReportWriter, build_prompt, parse_report_response

logger = logging.getLogger(__name__)


class ReportGenerator:
    """Produce a report, preferring the LLM when enabled and usable.

    The heuristic path is always the fallback: a disabled, unreachable or
    misbehaving model never prevents a report from being produced.
    """

    def __init__(self, llm_writer: Optional[LLMReportWriter] = None, *, use_llm: Optional[bool] = None) -> None:
        self._use_llm = settings.report_llm_enabled if use_llm is None else use_llm
        self._llm_writer = llm_writer

    def generate(
        self,
        target: Target,
        scenario_kinds: Sequence[ScenarioKind],
        results: Sequence[ScenarioResult],
    ) -> ReportContent:
        if self._use_llm:
            writer = self._llm_writer or LLMReportWriter()
            if not writer.available:
                logger.info("LLM client unavailable; using heuristic report")
                return synthesize_report(target, scenario_kinds, results)
            try:
                return writer.generate(target, scenario_kinds, results)
            except (LLMGenerationError, ReportParseError) as exc:
                logger.warning("LLM report unavailable (%s); falling back to heuristic report", exc)
            except Exception as exc:  # noqa: BLE001 - report enrichment must never fail the test
                logger.exception("Unexpected error generating LLM report: %s", exc)
        return synthesize_report(target, scenario_kinds, results)


def generate_report(
    target: Target,
    scenario_kinds: Sequence[ScenarioKind],
    results: Sequence[ScenarioResult],
    *,
    use_llm: Optional[bool] = None,
) -> ReportContent:
    return ReportGenerator(use_llm=use_llm).generate(target, scenario_kinds, results)


__all__ = [
    "ReportGenerator",
    "LLMReportWriter",
    "build_prompt",
    "generate_report",
    "parse_report_response",
    "synthesize_report",
]

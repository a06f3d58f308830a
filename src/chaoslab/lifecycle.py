"""Drive one chaos test job from ``queued`` to a terminal state."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from chaoslab.errors import InvalidTransitionError, TargetNotFoundError, TestRunNotFoundError
from chaoslab.models import ChaosJob, Report, ScenarioResult, TestRun, TestStatus, utcnow
from chaoslab.orchestrator import ChaosOrchestrator
from chaoslab.reporting import ReportGenerator
from chaoslab.repository import ChaosStore

logger = logging.getLogger(__name__)


@dataclass
class LifecycleOutcome:
    test_id: str
    status: TestStatus
    report_id: Optional[str] = None
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "test_id": self.test_id,
            "status": self.status.value,
            "report_id": self.report_id,
            "skipped": self.skipped,
        }


class TestLifecycleManager:
    """Own a test run while its job is being processed.

    Redelivery policy: a ``completed`` run is left untouched; a ``failed``
    or ``running`` run (a previous attempt crashed or raised) is executed
    again as a fresh attempt.
    """

    __test__ = False

    def __init__(
        self,
        repository: ChaosStore,
        orchestrator: Optional[ChaosOrchestrator] = None,
        report_generator: Optional[ReportGenerator] = None,
    ) -> None:
        self._repository = repository
        self._orchestrator = orchestrator or ChaosOrchestrator()
        self._report_generator = report_generator or ReportGenerator()

    def process(self, job: ChaosJob) -> LifecycleOutcome:
        test_run = self._repository.get_test_run(job.test_id)
        if test_run is None:
            raise TestRunNotFoundError(job.test_id)

        if test_run.status is TestStatus.COMPLETED:
            logger.info("Test %s already completed; ignoring redelivered job", test_run.id)
            return LifecycleOutcome(test_run.id, test_run.status, test_run.report_id, skipped=True)

        logger.info("Processing chaos test %s; scenarios=%s", job.test_id, [kind.value for kind in job.scenarios])

        target = self._repository.get_target(job.target_id)
        if target is None:
            error = TargetNotFoundError(job.target_id)
            logger.error("Chaos test %s failed: %s", job.test_id, error)
            self._mark_failed(test_run, str(error))
            raise error

        test_run = self._mark_running(test_run)
        try:
            results = self._orchestrator.run_all(job.scenarios, target)
            content = self._report_generator.generate(target, job.scenarios, results)
            report = self._repository.save_report(Report.from_content(test_run.id, content))
            completed = self._mark_completed(test_run, results, report)
        except Exception as exc:
            logger.exception("Chaos test %s failed: %s", test_run.id, exc)
            self._mark_failed(test_run, str(exc) or exc.__class__.__name__)
            raise

        logger.info("Chaos test %s completed; report=%s", completed.id, completed.report_id)
        return LifecycleOutcome(completed.id, completed.status, completed.report_id)

    def _transition(self, test_run: TestRun, status: TestStatus, **fields) -> TestRun:
        if not test_run.status.can_transition_to(status):
            raise InvalidTransitionError(test_run.id, test_run.status.value, status.value)
        return self._repository.transition_test_run(test_run.id, [test_run.status], status, **fields)

    def _mark_running(self, test_run: TestRun) -> TestRun:
        if test_run.status is TestStatus.RUNNING:
            # A worker died mid-run; the broker redelivered the job.
            logger.warning("Test %s was left running by a previous attempt; restarting", test_run.id)
            test_run = self._transition(
                test_run,
                TestStatus.FAILED,
                error_message="Worker stopped before the test finished",
                completed_at=utcnow(),
            )
        return self._transition(
            test_run,
            TestStatus.RUNNING,
            started_at=utcnow(),
            completed_at=None,
            error_message=None,
            attempts=test_run.attempts + 1,
        )

    def _mark_completed(self, test_run: TestRun, results: List[ScenarioResult], report: Report) -> TestRun:
        return self._transition(
            test_run,
            TestStatus.COMPLETED,
            metrics=[result.to_metrics() for result in results],
            report_id=report.id,
            completed_at=utcnow(),
        )

    def _mark_failed(self, test_run: TestRun, message: str) -> None:
        try:
            self._transition(test_run, TestStatus.FAILED, error_message=message, completed_at=utcnow())
        except Exception as exc:  # noqa: BLE001 - keep the original failure as the one re-raised
            logger.error("Unable to mark test %s as failed: %s", test_run.id, exc)

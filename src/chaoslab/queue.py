"""Redis-backed broker for chaos test jobs."""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from redis import Redis
from rq import Queue, Retry
from rq.job import Job

from chaoslab.config import Settings, settings
from chaoslab.errors import TargetNotFoundError
from chaoslab.models import ChaosJob, ScenarioKind, TestRun, parse_scenario_kinds
from chaoslab.repository import ChaosStore

logger = logging.getLogger(__name__)

TASK_PATH = "chaoslab.tasks.run_chaos_test_task"


def backoff_intervals(retries: int, base_seconds: int) -> List[int]:
    """Exponential backoff schedule: base, 2*base, 4*base, ..."""
    return [base_seconds * (2 ** attempt) for attempt in range(retries)]


class ChaosQueue:
    """Enqueue chaos test jobs with retry and exponential backoff."""

    def __init__(self, connection: Optional[Redis] = None, *, config: Optional[Settings] = None) -> None:
        self._config = config or settings
        self._connection = connection
        self._queue: Optional[Queue] = None

    @property
    def queue(self) -> Queue:
        if self._queue is None:
            connection = self._connection or Redis.from_url(self._config.redis_url)
            self._queue = Queue(self._config.redis_queue_chaos, connection=connection)
        return self._queue

    def enqueue(self, job: ChaosJob) -> Job:
        retry = None
        if self._config.job_max_retries > 0:
            retry = Retry(
                max=self._config.job_max_retries,
                interval=backoff_intervals(self._config.job_max_retries, self._config.job_backoff_seconds),
            )
        rq_job = self.queue.enqueue(
            TASK_PATH,
            job.to_dict(),
            job_id=f"chaos-test-{job.test_id}",
            retry=retry,
            job_timeout=self._config.job_timeout_seconds,
            result_ttl=self._config.job_result_ttl_seconds,
            failure_ttl=self._config.job_result_ttl_seconds,
            description=f"chaos test {job.test_id}",
        )
        logger.info("Queued chaos test %s as job %s", job.test_id, rq_job.id)
        return rq_job


def submit_test(
    repository: ChaosStore,
    broker: ChaosQueue,
    target_id: str,
    scenarios: Iterable[object],
) -> TestRun:
    """Validate a test request, persist it as ``queued`` and enqueue it.

    Unknown scenario kinds are rejected here, before anything is written.
    """
    kinds: List[ScenarioKind] = parse_scenario_kinds(scenarios)
    if repository.get_target(target_id) is None:
        raise TargetNotFoundError(target_id)

    test_run = repository.create_test_run(TestRun(target_id=target_id, scenarios=kinds))
    broker.enqueue(ChaosJob(test_id=test_run.id, target_id=target_id, scenarios=tuple(kinds)))
    return test_run

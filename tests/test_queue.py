from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from chaoslab.config import Settings
from chaoslab.errors import TargetNotFoundError, UnknownScenarioError
from chaoslab.models import ChaosJob, ScenarioKind, TestStatus
from chaoslab.queue import TASK_PATH, ChaosQueue, backoff_intervals, submit_test
from chaoslab.tasks import run_chaos_test_task


class RecordingBroker:
    def __init__(self) -> None:
        self.jobs: list[ChaosJob] = []

    def enqueue(self, job: ChaosJob) -> None:
        self.jobs.append(job)


def test_backoff_intervals_double() -> None:
    assert backoff_intervals(3, 2) == [2, 4, 8]
    assert backoff_intervals(0, 2) == []


def test_submit_test_persists_and_enqueues(store, get_target) -> None:
    store.create_target(get_target)
    broker = RecordingBroker()

    test_run = submit_test(store, broker, get_target.id, ["rate_limit", "latency"])

    assert test_run.status is TestStatus.QUEUED
    assert test_run.scenarios == [ScenarioKind.RATE_LIMIT, ScenarioKind.LATENCY]
    assert store.get_test_run(test_run.id) is test_run
    assert broker.jobs == [
        ChaosJob(
            test_id=test_run.id,
            target_id=get_target.id,
            scenarios=(ScenarioKind.RATE_LIMIT, ScenarioKind.LATENCY),
        )
    ]


@pytest.mark.parametrize("scenarios", [[], ["latency", "meteor_strike"]])
def test_submit_test_rejects_bad_scenarios_before_writing(store, get_target, scenarios) -> None:
    store.create_target(get_target)
    broker = RecordingBroker()

    with pytest.raises(UnknownScenarioError):
        submit_test(store, broker, get_target.id, scenarios)

    assert store.test_runs == {}
    assert broker.jobs == []


def test_submit_test_requires_existing_target(store) -> None:
    broker = RecordingBroker()

    with pytest.raises(TargetNotFoundError):
        submit_test(store, broker, "unknown-target", ["latency"])

    assert store.test_runs == {}
    assert broker.jobs == []


def test_chaos_queue_enqueues_with_retry_policy() -> None:
    config = Settings(job_max_retries=3, job_backoff_seconds=2, job_timeout_seconds=600)
    broker = ChaosQueue(config=config)
    broker._queue = MagicMock()
    broker._queue.enqueue.return_value.id = "chaos-test-abc"
    job = ChaosJob(test_id="abc", target_id="t-1", scenarios=(ScenarioKind.LATENCY,))

    broker.enqueue(job)

    args, kwargs = broker._queue.enqueue.call_args
    assert args == (TASK_PATH, {"test_id": "abc", "target_id": "t-1", "scenarios": ["latency"]})
    assert kwargs["job_id"] == "chaos-test-abc"
    assert kwargs["job_timeout"] == 600
    assert kwargs["retry"].max == 3
    assert kwargs["retry"].intervals == [2, 4, 8]


def test_chaos_queue_without_retries() -> None:
    broker = ChaosQueue(config=Settings(job_max_retries=0))
    broker._queue = MagicMock()

    broker.enqueue(ChaosJob(test_id="abc", target_id="t-1", scenarios=(ScenarioKind.LATENCY,)))

    assert broker._queue.enqueue.call_args.kwargs["retry"] is None


def test_task_runs_lifecycle_with_repository(monkeypatch) -> None:
    calls = []

    class FakeManager:
        def __init__(self, repository) -> None:
            calls.append(repository)

        def process(self, job):
            calls.append(job)
            outcome = MagicMock()
            outcome.to_dict.return_value = {"test_id": job.test_id, "status": "completed"}
            return outcome

    monkeypatch.setattr("chaoslab.tasks.TestLifecycleManager", FakeManager)
    monkeypatch.setattr("chaoslab.tasks.ChaosRepository", lambda: "repo")

    result = run_chaos_test_task({"test_id": "abc", "target_id": "t-1", "scenarios": ["auth_failure"]})

    assert result == {"test_id": "abc", "status": "completed"}
    assert calls[0] == "repo"
    assert calls[1] == ChaosJob(test_id="abc", target_id="t-1", scenarios=(ScenarioKind.AUTH_FAILURE,))

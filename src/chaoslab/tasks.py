"""Background chaos test tasks executed by Redis workers."""

from __future__ import annotations

import logging
from typing import Any, Dict

from chaoslab.lifecycle import TestLifecycleManager
from chaoslab.models import ChaosJob
from chaoslab.repository import ChaosRepository

logger = logging.getLogger(__name__)


def run_chaos_test_task(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Execute one chaos test job delivered by the broker.

    Exceptions propagate so RQ can apply the job's retry policy.
    """
    job = ChaosJob.from_dict(payload)
    manager = TestLifecycleManager(ChaosRepository())
    outcome = manager.process(job)
    return outcome.to_dict()

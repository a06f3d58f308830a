"""Exception hierarchy for chaos-lab."""

from __future__ import annotations

from typing import Iterable


class ChaosLabError(RuntimeError):
    """Base class for errors raised by the chaos engine."""


class UnknownScenarioError(ChaosLabError, ValueError):
    """Raised when a scenario list names kinds the engine cannot run."""

    def __init__(self, invalid: Iterable[str], valid: Iterable[str]) -> None:
        self.invalid = list(invalid)
        self.valid = list(valid)
        if self.invalid:
            message = f"Invalid scenarios: {', '.join(self.invalid)} (valid: {', '.join(self.valid)})"
        else:
            message = "At least one scenario must be selected"
        super().__init__(message)


class TargetNotFoundError(ChaosLabError, LookupError):
    """Raised when a test references a target that no longer exists."""

    def __init__(self, target_id: str) -> None:
        self.target_id = target_id
        super().__init__(f"Target not found: {target_id}")


class TestRunNotFoundError(ChaosLabError, LookupError):
    """Raised when a job references an unknown test run."""

    __test__ = False

    def __init__(self, test_id: str) -> None:
        self.test_id = test_id
        super().__init__(f"Test run not found: {test_id}")


class InvalidTransitionError(ChaosLabError):
    """Raised when a test run status change would break the lifecycle."""

    def __init__(self, test_id: str, current: str, requested: str) -> None:
        self.test_id = test_id
        self.current = current
        self.requested = requested
        super().__init__(f"Test run {test_id} cannot move from {current} to {requested}")


class ReportParseError(ChaosLabError):
    """Raised when language-model output cannot be turned into a report."""

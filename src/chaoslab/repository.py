"""PostgreSQL persistence for targets, test runs and reports."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Protocol

from psycopg import sql
from psycopg.types.json import Json

from chaoslab.db import get_db_connection
from chaoslab.errors import InvalidTransitionError, TestRunNotFoundError
from chaoslab.models import HttpMethod, Report, ScenarioKind, Target, TestRun, TestStatus

logger = logging.getLogger(__name__)

_TRANSITION_FIELDS = frozenset({"metrics", "report_id", "error_message", "started_at", "completed_at", "attempts"})
_JSON_FIELDS = frozenset({"metrics"})


class ChaosStore(Protocol):
    """Storage operations the lifecycle manager and the CLI depend on."""

    def create_target(self, target: Target) -> Target: ...

    def get_target(self, target_id: str) -> Optional[Target]: ...

    def list_targets(self, limit: int = 100) -> List[Target]: ...

    def create_test_run(self, test_run: TestRun) -> TestRun: ...

    def get_test_run(self, test_id: str) -> Optional[TestRun]: ...

    def list_test_runs(self, limit: int = 100) -> List[TestRun]: ...

    def transition_test_run(
        self,
        test_id: str,
        expected: Iterable[TestStatus],
        status: TestStatus,
        **fields: Any,
    ) -> TestRun: ...

    def save_report(self, report: Report) -> Report: ...

    def get_report(self, report_id: str) -> Optional[Report]: ...

    def get_report_for_test(self, test_id: str) -> Optional[Report]: ...


class ChaosRepository:
    """``ChaosStore`` implementation backed by the pooled PostgreSQL connection."""

    # ------------------------------------------------------------------
    # Targets
    # ------------------------------------------------------------------
    def create_target(self, target: Target) -> Target:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO targets (id, name, method, url, base_payload, headers, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        target.id,
                        target.name,
                        target.method.value,
                        target.url,
                        Json(target.base_payload),
                        Json(dict(target.headers)),
                        target.created_at,
                    ),
                )
                conn.commit()
        logger.info("Created target %s (%s %s)", target.id, target.method.value, target.url)
        return target

    def get_target(self, target_id: str) -> Optional[Target]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM targets WHERE id = %s", (target_id,))
                row = cur.fetchone()
        return _target_from_row(row) if row else None

    def list_targets(self, limit: int = 100) -> List[Target]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM targets ORDER BY created_at DESC LIMIT %s", (limit,))
                rows = cur.fetchall()
        return [_target_from_row(row) for row in rows]

    # ------------------------------------------------------------------
    # Test runs
    # ------------------------------------------------------------------
    def create_test_run(self, test_run: TestRun) -> TestRun:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO chaos_tests (id, target_id, scenarios, status, metrics, attempts, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s)
                    """,
                    (
                        test_run.id,
                        test_run.target_id,
                        [kind.value for kind in test_run.scenarios],
                        test_run.status.value,
                        Json(test_run.metrics),
                        test_run.attempts,
                        test_run.created_at,
                    ),
                )
                conn.commit()
        logger.info("Created test run %s for target %s", test_run.id, test_run.target_id)
        return test_run

    def get_test_run(self, test_id: str) -> Optional[TestRun]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM chaos_tests WHERE id = %s", (test_id,))
                row = cur.fetchone()
        return _test_run_from_row(row) if row else None

    def list_test_runs(self, limit: int = 100) -> List[TestRun]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM chaos_tests ORDER BY created_at DESC LIMIT %s", (limit,))
                rows = cur.fetchall()
        return [_test_run_from_row(row) for row in rows]

    def transition_test_run(
        self,
        test_id: str,
        expected: Iterable[TestStatus],
        status: TestStatus,
        **fields: Any,
    ) -> TestRun:
        """Atomically move a test run to ``status`` if it is in ``expected``.

        The status and every extra field are written by one UPDATE guarded on
        the current status, so a concurrent writer cannot interleave.
        """
        unknown = set(fields) - _TRANSITION_FIELDS
        if unknown:
            raise ValueError(f"Unsupported test run fields: {', '.join(sorted(unknown))}")

        expected_values = [TestStatus(value).value for value in expected]
        assignments = [sql.SQL("status = %s")]
        params: List[Any] = [TestStatus(status).value]
        for name, value in fields.items():
            assignments.append(sql.SQL("{} = %s").format(sql.Identifier(name)))
            params.append(Json(value) if name in _JSON_FIELDS else value)

        query = sql.SQL("UPDATE chaos_tests SET {} WHERE id = %s AND status = ANY(%s) RETURNING *").format(
            sql.SQL(", ").join(assignments)
        )
        params.extend([test_id, expected_values])

        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, params)
                row = cur.fetchone()
                conn.commit()

        if row is None:
            current = self.get_test_run(test_id)
            if current is None:
                raise TestRunNotFoundError(test_id)
            raise InvalidTransitionError(test_id, current.status.value, TestStatus(status).value)
        return _test_run_from_row(row)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def save_report(self, report: Report) -> Report:
        """Insert the report, replacing any earlier one for the same test."""
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO chaos_reports (id, test_id, title, summary, timeline, recommendations, source, created_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (test_id) DO UPDATE SET
                        title = EXCLUDED.title,
                        summary = EXCLUDED.summary,
                        timeline = EXCLUDED.timeline,
                        recommendations = EXCLUDED.recommendations,
                        source = EXCLUDED.source,
                        created_at = EXCLUDED.created_at
                    RETURNING *
                    """,
                    (
                        report.id,
                        report.test_id,
                        report.title,
                        report.summary,
                        Json(report.timeline),
                        Json(report.recommendations),
                        report.source,
                        report.created_at,
                    ),
                )
                row = cur.fetchone()
                conn.commit()
        saved = _report_from_row(row)
        logger.info("Saved report %s for test %s", saved.id, saved.test_id)
        return saved

    def get_report(self, report_id: str) -> Optional[Report]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM chaos_reports WHERE id = %s", (report_id,))
                row = cur.fetchone()
        return _report_from_row(row) if row else None

    def get_report_for_test(self, test_id: str) -> Optional[Report]:
        with get_db_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT * FROM chaos_reports WHERE test_id = %s", (test_id,))
                row = cur.fetchone()
        return _report_from_row(row) if row else None


def _target_from_row(row: Dict[str, Any]) -> Target:
    return Target(
        id=str(row["id"]),
        name=row["name"],
        method=HttpMethod(row["method"]),
        url=row["url"],
        base_payload=row["base_payload"],
        headers=dict(row["headers"] or {}),
        created_at=row["created_at"],
    )


def _test_run_from_row(row: Dict[str, Any]) -> TestRun:
    return TestRun(
        id=str(row["id"]),
        target_id=str(row["target_id"]),
        scenarios=[ScenarioKind(value) for value in row["scenarios"]],
        status=TestStatus(row["status"]),
        metrics=list(row["metrics"] or []),
        report_id=str(row["report_id"]) if row["report_id"] else None,
        error_message=row["error_message"],
        attempts=row["attempts"],
        created_at=row["created_at"],
        started_at=row["started_at"],
        completed_at=row["completed_at"],
    )


def _report_from_row(row: Dict[str, Any]) -> Report:
    return Report(
        id=str(row["id"]),
        test_id=str(row["test_id"]),
        title=row["title"],
        summary=row["summary"],
        timeline=list(row["timeline"] or []),
        recommendations=list(row["recommendations"] or []),
        source=row["source"],
        created_at=row["created_at"],
    )

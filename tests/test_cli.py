from __future__ import annotations

from unittest.mock import patch

from typer.testing import CliRunner

from chaoslab.cli import app
from chaoslab.models import ScenarioKind, ScenarioResult, TestRun, TestStatus
from chaoslab.orchestrator import ChaosOrchestrator

from conftest import status_handler

runner = CliRunner()


def test_run_prints_metrics_and_report(make_transport, fast_config) -> None:
    orchestrator = ChaosOrchestrator(transport=make_transport(status_handler(401)), config=fast_config)

    with patch("chaoslab.cli.ChaosOrchestrator", return_value=orchestrator):
        result = runner.invoke(
            app,
            ["run", "https://api.example.test/items", "-s", "auth_failure", "-H", "Authorization=Bearer x"],
        )

    assert result.exit_code == 0, result.output
    assert "Chaos Test Report: GET https://api.example.test/items" in result.output
    assert "Authentication is properly configured." in result.output


def test_run_rejects_malformed_header() -> None:
    with patch("chaoslab.cli.ChaosOrchestrator") as orchestrator:
        result = runner.invoke(app, ["run", "https://api.example.test/items", "-H", "no-separator"])

    assert result.exit_code != 0
    orchestrator.assert_not_called()


def test_run_rejects_unknown_scenario() -> None:
    with patch("chaoslab.cli.ChaosOrchestrator") as orchestrator:
        result = runner.invoke(app, ["run", "https://api.example.test/items", "-s", "earthquake"])

    assert result.exit_code != 0
    orchestrator.assert_not_called()


def test_status_shows_stored_metrics(store) -> None:
    test_run = store.create_test_run(
        TestRun(
            target_id="target-1",
            scenarios=[ScenarioKind.LATENCY],
            status=TestStatus.COMPLETED,
            metrics=[
                ScenarioResult(
                    kind=ScenarioKind.LATENCY,
                    total_requests=20,
                    success_count=20,
                    status_code_counts={"200": 20},
                ).to_metrics()
            ],
        )
    )

    with patch("chaoslab.cli._repository", return_value=store):
        result = runner.invoke(app, ["status", test_run.id])

    assert result.exit_code == 0, result.output
    assert "completed" in result.output
    assert "latency" in result.output


def test_status_unknown_test_exits_nonzero(store) -> None:
    with patch("chaoslab.cli._repository", return_value=store):
        result = runner.invoke(app, ["status", "nope"])

    assert result.exit_code == 1
    assert "Test not found" in result.output


def test_add_target_and_list(store) -> None:
    with patch("chaoslab.cli._repository", return_value=store):
        created = runner.invoke(
            app,
            ["add-target", "orders", "https://api.example.test/orders", "-m", "POST", "-d", '{"sku": "A1"}'],
        )
        listed = runner.invoke(app, ["targets"])

    assert created.exit_code == 0, created.output
    (target,) = store.targets.values()
    assert target.base_payload == {"sku": "A1"}
    assert target.method.value == "POST"
    assert "orders" in listed.output


def test_runs_lists_test_runs(store) -> None:
    store.create_test_run(TestRun(target_id="target-1", scenarios=[ScenarioKind.RATE_LIMIT]))

    with patch("chaoslab.cli._repository", return_value=store):
        result = runner.invoke(app, ["runs"])

    assert result.exit_code == 0, result.output
    assert "queued" in result.output


def test_runs_empty(store) -> None:
    with patch("chaoslab.cli._repository", return_value=store):
        result = runner.invoke(app, ["runs"])

    assert result.exit_code == 0
    assert "No chaos tests found" in result.output

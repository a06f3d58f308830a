"""CLI interface for chaos-lab."""

import json
import logging
import sys
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from chaoslab.config import settings
from chaoslab.errors import ChaosLabError
from chaoslab.models import HttpMethod, ReportContent, ScenarioKind, ScenarioResult, Target, parse_scenario_kinds
from chaoslab.orchestrator import ChaosOrchestrator
from chaoslab.reporting import ReportGenerator

# Configure logging with Rich
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True)]
)

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="chaos-lab",
    help="Inject controlled faults into HTTP endpoints and report on their resilience"
)

console = Console()

STATUS_STYLES = {
    "queued": "yellow",
    "running": "cyan",
    "completed": "green",
    "failed": "red",
}


def _parse_headers(values: Optional[List[str]]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for raw in values or []:
        if "=" not in raw:
            raise typer.BadParameter(f"Header must look like NAME=VALUE: {raw}", param_hint="--header")
        key, value = raw.split("=", 1)
        headers[key.strip()] = value.strip()
    return headers


def _parse_payload(raw: Optional[str]) -> object:
    if raw is None:
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Payload is not valid JSON: {exc}", param_hint="--payload") from exc


def _parse_kinds(values: Optional[List[str]]) -> List[ScenarioKind]:
    try:
        return parse_scenario_kinds(values or ScenarioKind.values())
    except ChaosLabError as exc:
        raise typer.BadParameter(str(exc), param_hint="--scenario") from exc


def _repository():
    from chaoslab.repository import ChaosRepository

    return ChaosRepository()


def _metrics_table(results: List[ScenarioResult]) -> Table:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Scenario", style="cyan")
    table.add_column("Requests", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Avg ms", justify="right")
    table.add_column("P95 ms", justify="right")
    table.add_column("P99 ms", justify="right")
    table.add_column("Timeouts", justify="right")
    table.add_column("Status codes", overflow="fold")

    def _fmt(value: Optional[int]) -> str:
        return "-" if value is None else str(value)

    for result in results:
        table.add_row(
            result.kind.value,
            str(result.total_requests),
            str(result.success_count),
            str(result.error_count),
            _fmt(result.avg_latency_ms),
            _fmt(result.p95_latency_ms),
            _fmt(result.p99_latency_ms),
            _fmt(result.timeout_count),
            json.dumps(result.status_code_counts, separators=(",", ":")),
        )
    return table


def _print_report(title: str, summary: str, timeline: List[str], recommendations: List[str]) -> None:
    console.print(f"\n[bold magenta]{title}[/bold magenta]\n")
    console.print(summary)
    if timeline:
        console.print("\n[bold]Timeline[/bold]")
        for entry in timeline:
            console.print(f"  • {entry}")
    if recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for idx, entry in enumerate(recommendations, start=1):
            console.print(f"  {idx}. {entry}")
    console.print()


@app.command()
def run(
    url: str = typer.Argument(..., help="Endpoint URL under test"),
    method: HttpMethod = typer.Option(HttpMethod.GET, "--method", "-m", help="HTTP method"),
    scenario: Optional[List[str]] = typer.Option(
        None,
        "--scenario",
        "-s",
        help="Scenario to run (repeatable); defaults to all scenarios"
    ),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Header as NAME=VALUE (repeatable)"),
    payload: Optional[str] = typer.Option(None, "--payload", "-d", help="Base JSON payload"),
    llm: bool = typer.Option(False, "--llm", help="Ask the LLM for the report, falling back to heuristics"),
):
    """
    Run chaos scenarios locally against URL and print metrics and a report.

    Does not need the database or the broker.
    """
    kinds = _parse_kinds(scenario)
    target = Target(
        url=url,
        method=method,
        headers=_parse_headers(header),
        base_payload=_parse_payload(payload),
    )

    console.print(f"\n[bold blue]Chaos run[/bold blue] {target.method.value} [cyan]{target.url}[/cyan]\n")
    with ChaosOrchestrator() as orchestrator:
        results = orchestrator.run_all(kinds, target)
    console.print(_metrics_table(results))

    content: ReportContent = ReportGenerator(use_llm=llm).generate(target, kinds, results)
    _print_report(content.title, content.summary, content.timeline, content.recommendations)


@app.command("add-target")
def add_target(
    name: str = typer.Argument(..., help="Display name"),
    url: str = typer.Argument(..., help="Endpoint URL"),
    method: HttpMethod = typer.Option(HttpMethod.GET, "--method", "-m", help="HTTP method"),
    header: Optional[List[str]] = typer.Option(None, "--header", "-H", help="Header as NAME=VALUE (repeatable)"),
    payload: Optional[str] = typer.Option(None, "--payload", "-d", help="Base JSON payload"),
):
    """Register a target endpoint."""
    target = Target(
        name=name,
        url=url,
        method=method,
        headers=_parse_headers(header),
        base_payload=_parse_payload(payload),
    )
    _repository().create_target(target)
    console.print(f"  ✓ Target created → [green]{target.id}[/green]")


@app.command()
def targets(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of targets to show")
):
    """List registered targets."""
    items = _repository().list_targets(limit=limit)
    if not items:
        console.print("[yellow]No targets found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=36)
    table.add_column("Name", style="cyan")
    table.add_column("Method", width=7)
    table.add_column("URL", overflow="fold")
    for target in items:
        table.add_row(target.id, target.name or "-", target.method.value, target.url)
    console.print(table)


@app.command()
def submit(
    target_id: str = typer.Argument(..., help="Target ID (UUID)"),
    scenario: Optional[List[str]] = typer.Option(
        None,
        "--scenario",
        "-s",
        help="Scenario to run (repeatable); defaults to all scenarios"
    ),
):
    """Queue a chaos test for a registered target."""
    from chaoslab.queue import ChaosQueue, submit_test

    kinds = _parse_kinds(scenario)
    try:
        test_run = submit_test(_repository(), ChaosQueue(), target_id, kinds)
    except ChaosLabError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    console.print(f"  ↻ Queued test → [cyan]{test_run.id}[/cyan]")


@app.command()
def runs(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of test runs to show")
):
    """List recent chaos tests."""
    items = _repository().list_test_runs(limit=limit)
    if not items:
        console.print("[yellow]No chaos tests found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("ID", style="dim", width=36)
    table.add_column("Status")
    table.add_column("Scenarios", overflow="fold")
    table.add_column("Attempts", justify="right")
    for test_run in items:
        style = STATUS_STYLES.get(test_run.status.value, "white")
        table.add_row(
            test_run.id,
            f"[{style}]{test_run.status.value}[/{style}]",
            ", ".join(kind.value for kind in test_run.scenarios),
            str(test_run.attempts),
        )
    console.print(table)


@app.command()
def status(
    test_id: str = typer.Argument(..., help="Test ID (UUID)")
):
    """Show the status and metrics of a chaos test."""
    test_run = _repository().get_test_run(test_id)
    if test_run is None:
        console.print(f"[red]Test not found: {test_id}[/red]")
        raise typer.Exit(1)

    style = STATUS_STYLES.get(test_run.status.value, "white")
    console.print("\n[bold blue]Chaos Test[/bold blue]\n")
    console.print(f"  [cyan]{'id':12}[/cyan]: {test_run.id}")
    console.print(f"  [cyan]{'target':12}[/cyan]: {test_run.target_id}")
    console.print(f"  [cyan]{'scenarios':12}[/cyan]: {', '.join(kind.value for kind in test_run.scenarios)}")
    console.print(f"  [cyan]{'status':12}[/cyan]: [{style}]{test_run.status.value}[/{style}]")
    console.print(f"  [cyan]{'attempts':12}[/cyan]: {test_run.attempts}")
    if test_run.error_message:
        console.print(f"  [cyan]{'error':12}[/cyan]: [red]{test_run.error_message}[/red]")
    if test_run.metrics:
        console.print()
        console.print(_metrics_table(test_run.results()))
    console.print()


@app.command()
def report(
    test_id: str = typer.Argument(..., help="Test ID (UUID)")
):
    """Show the post-mortem report of a completed chaos test."""
    saved = _repository().get_report_for_test(test_id)
    if saved is None:
        console.print(f"[yellow]No report for test {test_id}[/yellow]")
        raise typer.Exit(1)
    _print_report(saved.title, saved.summary, saved.timeline, saved.recommendations)


@app.command()
def worker(
    concurrency: Optional[int] = typer.Option(
        None,
        "--concurrency",
        "-c",
        min=1,
        help="Number of worker processes (defaults to WORKER_CONCURRENCY)"
    )
):
    """Start the chaos test worker pool."""
    from chaoslab.worker import run_workers

    run_workers(concurrency)


@app.command()
def version():
    """Show version information."""
    console.print("[cyan]chaos-lab[/cyan] v0.1.0")


def main():
    """Main CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"\n[red]Error: {e}[/red]")
        logger.exception("Unhandled exception")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Issue Solver CLI: Typer + Rich terminal interface.

Commands: run, apply, validate, config show.
Configuration comes from environment variables (and a local .env).
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from issuesolver import __version__
from issuesolver.apply.errors import (
    ExecutionError,
    IssueSolverError,
    SchemaError,
    TransactionValidationError,
)
from issuesolver.apply.schema import SolutionSchemaValidator
from issuesolver.apply.transaction import TransactionCoordinator
from issuesolver.apply.validator import FileValidator
from issuesolver.github.client import GitHubClient
from issuesolver.keys import load_env_files, mask
from issuesolver.pipeline import IssueSolverPipeline
from issuesolver.schemas.config import SafetyMode, SafetyPolicy, SolverConfig
from issuesolver.schemas.report import PipelineResult
from issuesolver.schemas.solution import DryRunEntry, ExecutionRecord, RecordAction

console = Console()
err_console = Console(stderr=True)

# ── App and sub-apps ─────────────────────────────────────────────

app = typer.Typer(
    name="issue-solver",
    help="Solve GitHub issues with an LLM and apply the changes safely.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(
    name="config",
    help="Show solver configuration.",
    no_args_is_help=True,
)
app.add_typer(config_app, name="config")


# ── Version callback ───────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"issue-solver {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Issue Solver: LLM-authored fixes applied with validation, backup, and rollback."""
    _setup_logging(verbose)


# ── Helpers ──────────────────────────────────────────────────────


def _setup_logging(verbose: bool) -> None:
    root = logging.getLogger()
    if any(isinstance(h, RichHandler) for h in root.handlers):
        return
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.addHandler(RichHandler(console=err_console, show_path=False, rich_tracebacks=True))
    # LiteLLM is chatty at INFO
    logging.getLogger("LiteLLM").setLevel(logging.WARNING)


def _load_config() -> SolverConfig:
    """Load configuration from the environment, exit on error."""
    load_env_files()
    try:
        return SolverConfig.from_env()
    except (ValueError, ValidationError) as e:
        err_console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(1) from None


def _load_solution(path: Path) -> object:
    """Read a Solution JSON document, exit on error."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        err_console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(1) from None
    except json.JSONDecodeError as e:
        err_console.print(f"[red]{path} is not valid JSON:[/red] {e}")
        raise typer.Exit(1) from None


def _record_style(action: RecordAction) -> Text:
    styles = {
        RecordAction.CREATED: ("+ NEW", "bold green"),
        RecordAction.MODIFIED: ("* MOD", "bold yellow"),
        RecordAction.DELETED: ("- DEL", "bold red"),
        RecordAction.SKIPPED: ("  SKIP", "dim"),
    }
    label, style = styles[action]
    return Text(label, style=style)


def _display_records(records: list[ExecutionRecord]) -> None:
    if not records:
        console.print("[dim]No file operations.[/dim]")
        return
    table = Table(title="Applied Files")
    table.add_column("Action", width=8)
    table.add_column("File", style="cyan")
    table.add_column("Note", style="dim")
    for record in records:
        note = f"coerced from {record.requested}" if record.coerced else ""
        table.add_row(_record_style(record.action), record.path, note)
    console.print(table)


def _display_dry_run(entries: list[DryRunEntry]) -> None:
    table = Table(title="Dry Run")
    table.add_column("Valid", width=6)
    table.add_column("Action", width=8)
    table.add_column("File", style="cyan")
    table.add_column("Detail", style="dim")
    for entry in entries:
        valid = Text("ok", style="green") if entry.valid else Text("no", style="red")
        detail = entry.reason
        if not detail and entry.would_apply != entry.requested:
            detail = f"requested {entry.requested}"
        if not detail and entry.current_size is not None:
            detail = f"{entry.current_size} bytes"
        table.add_row(valid, str(entry.would_apply), entry.path, detail)
    console.print(table)


def _display_result(result: PipelineResult) -> None:
    if result.dry_run:
        _display_dry_run(result.dry_run)
    else:
        _display_records(result.records)
    if result.test_passed is True:
        console.print(f"  [green]Tests: PASSED[/green] ({result.test_attempts} run(s))")
    elif result.test_passed is False:
        console.print(f"  [red]Tests: FAILED[/red] ({result.test_attempts} run(s))")
    if result.commit_sha:
        console.print(f"  [green]Commit:[/green] {result.commit_sha[:12]} on {result.branch}")
    if result.pr_url:
        console.print(f"  [green]Pull request:[/green] {result.pr_url}")
    if result.report_path:
        console.print(f"  [dim]Report: {result.report_path}[/dim]")


# ── issue-solver run ─────────────────────────────────────────────


@app.command()
def run(
    repo_dir: Path = typer.Option(
        Path("."), "--repo-dir", "-C",
        help="Repository checkout to modify",
    ),
    dry_run: bool | None = typer.Option(
        None, "--dry-run/--no-dry-run",
        help="Override DRY_RUN",
    ),
    output_dir: Path | None = typer.Option(
        None, "--output-dir", "-o",
        help="Where reports are written (default: the repository)",
    ),
) -> None:
    """Solve the issue named by ISSUE_NUMBER end to end."""
    config = _load_config()
    if dry_run is not None:
        config.dry_run = dry_run
    # The API key is checked once the issue text has picked the provider
    if config.issue_number <= 0:
        err_console.print("[red]Error:[/red] ISSUE_NUMBER is required")
        raise typer.Exit(1)

    client = None
    if config.github_token and config.repository:
        client = GitHubClient(config.github_token, config.repository, config.api_url)

    pipeline = IssueSolverPipeline(config, repo_dir, client=client, output_dir=output_dir)
    try:
        result = asyncio.run(pipeline.run())
    except IssueSolverError as e:
        err_console.print(f"[red]Failed:[/red] {e}")
        if isinstance(e, ExecutionError) and e.rollback_failures:
            err_console.print(
                "[yellow]Could not roll back:[/yellow] " + ", ".join(e.rollback_failures)
            )
        raise typer.Exit(1) from None
    except (ValueError, RuntimeError, TimeoutError, OSError) as e:
        err_console.print(f"[red]Failed:[/red] {e}")
        raise typer.Exit(1) from None

    _display_result(result)


# ── issue-solver apply ───────────────────────────────────────────


@app.command()
def apply(
    solution_file: Path = typer.Argument(..., help="Solution JSON document"),
    repo_dir: Path = typer.Option(Path("."), "--repo-dir", "-C", help="Repository to modify"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Report what would change"),
    safety: SafetyMode = typer.Option(SafetyMode.NORMAL, "--safety", help="Content check strictness"),
    keep_backups: bool = typer.Option(False, "--keep-backups", help="Keep backups after success"),
    coerce: bool = typer.Option(
        True, "--coerce/--no-coerce",
        help="Reinterpret create/modify based on whether the target exists",
    ),
) -> None:
    """Apply a Solution document's file operations transactionally."""
    raw = _load_solution(solution_file)
    try:
        solution = SolutionSchemaValidator().to_solution(raw)
    except SchemaError as e:
        err_console.print("[red]Invalid solution:[/red]")
        for error in e.errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1) from None

    policy = SafetyPolicy(mode=safety, keep_backups=keep_backups, coerce_actions=coerce)
    coordinator = TransactionCoordinator(repo_dir, policy)
    if dry_run:
        _display_dry_run(coordinator.dry_run(solution.files))
        return

    try:
        records = coordinator.run(solution.files)
    except TransactionValidationError as e:
        err_console.print("[red]Rejected, nothing was written:[/red]")
        for path, reason in e.failures:
            err_console.print(f"  - {path}: {reason}")
        raise typer.Exit(1) from None
    except ExecutionError as e:
        err_console.print(f"[red]Failed and rolled back:[/red] {e}")
        if e.rollback_failures:
            err_console.print(
                "[yellow]Could not roll back:[/yellow] " + ", ".join(e.rollback_failures)
            )
        raise typer.Exit(1) from None

    _display_records(records)


# ── issue-solver validate ────────────────────────────────────────


@app.command()
def validate(
    solution_file: Path = typer.Argument(..., help="Solution JSON document"),
    repo_dir: Path = typer.Option(Path("."), "--repo-dir", "-C", help="Repository to check against"),
    safety: SafetyMode = typer.Option(SafetyMode.NORMAL, "--safety", help="Content check strictness"),
) -> None:
    """Check a Solution document without touching the filesystem."""
    raw = _load_solution(solution_file)
    report = SolutionSchemaValidator().validate(raw)
    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    if not report.valid:
        err_console.print("[red]Schema errors:[/red]")
        for error in report.errors:
            err_console.print(f"  - {error}")
        raise typer.Exit(1)

    try:
        solution = SolutionSchemaValidator().to_solution(raw)
    except SchemaError as e:
        err_console.print(f"[red]Invalid solution:[/red] {e}")
        raise typer.Exit(1) from None

    validator = FileValidator(repo_dir, SafetyPolicy(mode=safety))
    failed = False
    for action in solution.files:
        result = validator.validate(action)
        if result.valid:
            console.print(f"  [green]ok[/green]   {action.action} {action.path}")
        else:
            failed = True
            console.print(f"  [red]fail[/red] {action.action} {action.path}: {result.reason}")

    if failed:
        raise typer.Exit(1)
    console.print(f"[green]Valid:[/green] {len(solution.files)} file operation(s)")


# ── issue-solver config ──────────────────────────────────────────


@config_app.command("show")
def config_show() -> None:
    """Show the configuration read from the environment."""
    config = _load_config()

    table = Table(title="Solver Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Issue", str(config.issue_number or "(unset)"))
    table.add_row("Repository", config.repository or "(unset)")
    table.add_row("GitHub Token", mask(config.github_token) or "(unset)")
    table.add_row("Provider", config.provider.value)
    table.add_row("Model", config.litellm_model)
    table.add_row(config.api_key_env, mask(config.api_key) or "(unset)")
    table.add_row("Max Retries", str(config.max_retries))
    table.add_row("Retry Delay", f"{config.retry_delay:g}s")
    table.add_row("Timeout", f"{config.timeout:g}s")
    table.add_row("Execution Mode", config.execution_mode.value)
    table.add_row("Safety Mode", config.safety.mode.value)
    table.add_row("Keep Backups", str(config.safety.keep_backups))
    table.add_row("Coerce Actions", str(config.safety.coerce_actions))
    table.add_row("Dry Run", str(config.dry_run))
    table.add_row("Target Files", ", ".join(config.target_files) or "(none)")
    table.add_row("Generate Report", str(config.generate_report))
    table.add_row("Run Tests", str(config.run_tests))
    table.add_row("Test Command", config.test_command)
    table.add_row("Test Max Retries", str(config.test_max_retries))
    table.add_row("Test Timeout", f"{config.test_timeout}s")
    table.add_row("Base Branch", config.base_branch)

    console.print(table)

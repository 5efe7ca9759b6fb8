# cli.py
from __future__ import annotations

import signal
import sys
import threading
from contextlib import contextmanager, nullcontext
from pathlib import Path
from typing import Callable, Iterator, TypeVar

import click

from stepflow.config import RunConfig
from stepflow.dag import CycleError, execution_levels
from stepflow.errors import (
    AdmissionError,
    Cancelled,
    ConfigError,
    StepError,
    WorkflowValidationError,
)
from stepflow.events import ConsoleNotifier, FanoutNotifier, JsonLinesNotifier, Notifier
from stepflow.loader import load_document, load_workflow
from stepflow.model import StepStatus
from stepflow.schema import find_problems
from stepflow.sink import Sink
from stepflow.ui.console import Console, get_console, set_console
from stepflow.workflow import Workflow

DEFAULT_WORKFLOW_FILES = ("stepflow.yml", "stepflow.yaml")

T = TypeVar("T")


def find_workflow_files() -> list[Path]:
    """
    Find all workflow files in the current directory.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    current_dir = Path(".")

    for name in DEFAULT_WORKFLOW_FILES:
        candidate = current_dir / name
        if candidate.exists():
            workflow_files.append(candidate)

    for path in current_dir.glob("*_workflow.py"):
        workflow_files.append(path)

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Create a workflow file or specify a different path:\n  stepflow run --workflow stepflow.yml",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                *(f"  {name}" for name in DEFAULT_WORKFLOW_FILES),
                "  *_workflow.py",
            ],
            suggestion="Create a workflow file:\n  stepflow.yml\n\nOr specify a workflow explicitly:\n  stepflow run --workflow my_workflow.py",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion="Specify a workflow explicitly:\n  stepflow run --workflow stepflow.yml",
        )
        sys.exit(1)

    return workflow_files[0]


def _load_or_exit(load: Callable[[Path], T], path: str | Path) -> T:
    """Run a loader, turning every load failure into a console error and exit 1."""
    console = get_console()
    try:
        return load(Path(path))
    except WorkflowValidationError as e:
        details = e.problems
    except (FileNotFoundError, ValueError, TypeError) as e:
        # unsupported suffix, missing file, or a workflow() that could not be called
        details = [str(e)]

    console.print_error(
        "Failed to load workflow",
        f"Could not load workflow from {path}",
        details=details,
    )
    sys.exit(1)


@contextmanager
def _cancel_on_sigint(workflow: Workflow) -> Iterator[threading.Event]:
    """
    First Ctrl-C stops dispatch and cancels admission; running steps finish.
    Signal handlers can only be installed from the main thread.
    """
    cancel = threading.Event()
    if threading.current_thread() is not threading.main_thread():
        yield cancel
        return

    def _handler(signum, frame):
        get_console().print_info(f"\nReceived signal {signum}, waiting for running steps...")
        cancel.set()
        workflow.stop()

    previous = signal.signal(signal.SIGINT, _handler)
    try:
        yield cancel
    finally:
        signal.signal(signal.SIGINT, previous)


def _display_status(workflow: Workflow) -> dict[str, str]:
    blocked = set(workflow.blocked())
    out: dict[str, str] = {}
    for name, status in workflow.statuses().items():
        if status is StepStatus.IDLE:
            out[name] = "blocked" if name in blocked else "not run"
        else:
            out[name] = status.value
    return out


def _print_failures(workflow: Workflow) -> None:
    console = get_console()
    for name, err in workflow.failures.items():
        hint = err.details.get("hint") if isinstance(err, StepError) else None
        console.print_failure(name, str(err), hint=hint if isinstance(hint, str) else None)
    for name, result in workflow.results.items():
        if not result.ok:
            console.print_failure(name, f"exited with status {result.exit_code}", exit_code=result.exit_code)


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """stepflow: dependency-aware, concurrency-bounded command runner."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@click.option(
    "--workflow",
    default=None,
    help="Workflow file path (defaults to stepflow.yml if present)",
)
@click.option("--workers", default=None, type=int, help="Maximum number of steps running at once")
@click.option("--timeout", default=None, type=float, help="Per-step timeout in seconds")
@click.option("--fail-fast/--no-fail-fast", default=None, help="Stop scheduling new steps after first failure")
@click.option("--log-dir", default=None, type=click.Path(file_okay=False), help="Write step stdout/stderr under this directory")
@click.option("--events-file", default=None, type=click.Path(dir_okay=False), help="Append lifecycle events as JSON lines")
@click.option("--quiet", is_flag=True, default=False, help="Only print the results summary")
@click.pass_context
def run(ctx, workflow, workers, timeout, fail_fast, log_dir, events_file, quiet):
    """Run a stepflow workflow."""
    console = get_console()
    console.quiet = quiet

    workflow_path = discover_workflow(workflow)

    try:
        config = RunConfig.from_env().override(
            concurrency=workers,
            timeout=timeout,
            fail_fast=fail_fast,
        ).validate()
    except ConfigError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)

    wf = _load_or_exit(load_workflow, workflow_path)

    notifiers: list[Notifier] = [ConsoleNotifier()]
    if events_file:
        notifiers.append(JsonLinesNotifier(events_file))

    console.print_run_started(
        workflow=workflow_path.name,
        step_count=len(wf.steps),
        workers=config.concurrency,
        timeout=config.timeout,
    )

    hard_error = None
    cancelled = False
    try:
        sink_cm = Sink.to_directory(log_dir) if log_dir else nullcontext(Sink.inherit())
        with sink_cm as sink, _cancel_on_sigint(wf) as cancel:
            try:
                wf.run(
                    config.concurrency,
                    config.timeout,
                    notifier=FanoutNotifier(*notifiers),
                    sink=sink,
                    cancel=cancel,
                    admission_timeout=config.admission_timeout,
                    fail_fast=config.fail_fast,
                )
            except (StepError, AdmissionError) as e:
                hard_error = e
            cancelled = cancel.is_set()
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    _print_failures(wf)
    console.print_results(_display_status(wf))

    if cancelled or isinstance(hard_error, Cancelled):
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    if hard_error is not None and not isinstance(hard_error, StepError):
        console.print_exception(hard_error)
    if hard_error is not None or not wf.succeeded():
        sys.exit(1)


@cli.command()
@click.argument("workflow", type=click.Path(exists=True, dir_okay=False))
def validate(workflow):
    """Check a workflow file and list every problem found."""
    console = get_console()
    doc = _load_or_exit(load_document, workflow)

    problems = find_problems(doc)
    if problems:
        console.print_error("Invalid workflow", str(workflow), details=problems)
        sys.exit(1)
    console.print_info(f"OK: {len(doc.steps)} step(s), version {doc.version}")


@cli.command()
@click.argument("workflow", type=click.Path(exists=True, dir_okay=False))
def plan(workflow):
    """Print the stages a workflow would run in."""
    console = get_console()
    wf = _load_or_exit(load_workflow, workflow)

    try:
        levels = execution_levels(wf.steps)
    except CycleError as e:
        console.print_error(
            "Dependency cycle",
            "Some steps can never run because they depend on each other.",
            details=e.stuck,
        )
        sys.exit(1)

    for i, names in enumerate(levels, start=1):
        console.print_plan_stage(i, names)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()

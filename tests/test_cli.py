"""End-to-end tests for the stepflow command line."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from stepflow.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.chdir(tmp_path)
    for key in ("STEPFLOW_WORKERS", "STEPFLOW_TIMEOUT", "STEPFLOW_FAIL_FAST", "STEPFLOW_ADMISSION_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)
    return tmp_path


def write_workflow(path: Path, steps: list[dict]) -> Path:
    path.write_text(yaml.safe_dump({"version": "1", "steps": steps}), encoding="utf-8")
    return path


def test_run_success(runner, project, cmd) -> None:
    write_workflow(
        project / "stepflow.yml",
        [
            {"name": "build", "command": cmd(0)},
            {"name": "test", "command": cmd(0), "depends_on": ["build"]},
        ],
    )

    result = runner.invoke(cli, ["run", "--workers", "2", "--log-dir", "logs"])

    assert result.exit_code == 0, result.output
    assert "RUN STARTED" in result.output
    assert "[build] started" in result.output
    assert "RESULTS" in result.output
    assert "test: SUCCESS" in result.output
    assert (project / "logs" / "stdout.log").exists()


def test_run_failure_reports_step_and_blocked_dependents(runner, project, cmd) -> None:
    write_workflow(
        project / "stepflow.yml",
        [
            {"name": "bad", "command": cmd(4)},
            {"name": "after", "command": cmd(0), "depends_on": ["bad"]},
        ],
    )

    result = runner.invoke(cli, ["run", "--log-dir", "logs"])

    assert result.exit_code == 1
    assert "STEP FAILED: bad" in result.output
    assert "Exit code: 4" in result.output
    assert "bad: FAILED" in result.output
    assert "after: BLOCKED" in result.output


def test_run_timeout_exits_non_zero(runner, project, cmd) -> None:
    write_workflow(project / "stepflow.yml", [{"name": "slow", "command": cmd(0, sleep=30)}])

    result = runner.invoke(cli, ["run", "--timeout", "0.5", "--log-dir", "logs"])

    assert result.exit_code == 1
    assert "[slow] timed out" in result.output
    assert "slow: FAILED" in result.output


def test_run_writes_events_file(runner, project, cmd) -> None:
    write_workflow(project / "stepflow.yml", [{"name": "only", "command": cmd(0)}])

    result = runner.invoke(
        cli, ["run", "--quiet", "--log-dir", "logs", "--events-file", "events.jsonl"]
    )

    assert result.exit_code == 0, result.output
    assert "[only]" not in result.output
    kinds = [json.loads(line)["kind"] for line in (project / "events.jsonl").read_text().splitlines()]
    assert kinds == ["RunRequested", "RunStarted", "RunSuccess"]


def test_run_with_explicit_python_workflow(runner, project, cmd) -> None:
    (project / "ci_workflow.py").write_text(
        "from stepflow.dsl import step, wf\n"
        f"WORKFLOW = wf(step('one', {cmd(0)!r}))\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli, ["run", "--workflow", "ci_workflow.py", "--log-dir", "logs"])

    assert result.exit_code == 0, result.output
    assert "one: SUCCESS" in result.output


def test_run_without_workflow_file(runner, project) -> None:
    result = runner.invoke(cli, ["run"])
    assert result.exit_code == 1
    assert "No workflow file found" in result.output


def test_run_with_several_workflow_files(runner, project) -> None:
    write_workflow(project / "stepflow.yml", [])
    write_workflow(project / "stepflow.yaml", [])

    result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1
    assert "Multiple workflow files found" in result.output


def test_run_rejects_bad_environment(runner, project, monkeypatch) -> None:
    write_workflow(project / "stepflow.yml", [{"name": "a", "command": "true"}])
    monkeypatch.setenv("STEPFLOW_WORKERS", "lots")

    result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1
    assert "Invalid configuration" in result.output


def test_run_rejects_invalid_document(runner, project) -> None:
    write_workflow(project / "stepflow.yml", [{"name": "a", "command": "true", "depends_on": ["ghost"]}])

    result = runner.invoke(cli, ["run"])

    assert result.exit_code == 1
    assert "unknown step 'ghost'" in result.output


def test_validate(runner, project) -> None:
    good = write_workflow(
        project / "good.yml",
        [{"name": "a", "command": "true"}, {"name": "b", "command": "true", "depends_on": ["a"]}],
    )
    bad = write_workflow(
        project / "bad.yml",
        [{"name": "a", "command": ""}, {"name": "a", "command": "true"}],
    )

    ok = runner.invoke(cli, ["validate", str(good)])
    assert ok.exit_code == 0
    assert "OK: 2 step(s), version 1" in ok.output

    failed = runner.invoke(cli, ["validate", str(bad)])
    assert failed.exit_code == 1
    assert "duplicate step name 'a'" in failed.output
    assert "empty command" in failed.output


def test_plan_prints_stages(runner, project) -> None:
    path = write_workflow(
        project / "flow.yml",
        [
            {"name": "build", "command": "make"},
            {"name": "lint", "command": "ruff check ."},
            {"name": "test", "command": "pytest", "depends_on": ["build"]},
        ],
    )

    result = runner.invoke(cli, ["plan", str(path)])

    assert result.exit_code == 0
    assert "=== Stage 1: build, lint ===" in result.output
    assert "=== Stage 2: test ===" in result.output


def test_plan_reports_cycles(runner, project) -> None:
    path = write_workflow(
        project / "flow.yml",
        [
            {"name": "a", "command": "true", "depends_on": ["b"]},
            {"name": "b", "command": "true", "depends_on": ["a"]},
        ],
    )

    result = runner.invoke(cli, ["plan", str(path)])

    assert result.exit_code == 1
    assert "Dependency cycle" in result.output


def test_unsupported_workflow_suffix_is_reported(runner, project) -> None:
    (project / "flow.json").write_text("{}", encoding="utf-8")

    for args in (["run", "--workflow", "flow.json"], ["validate", "flow.json"], ["plan", "flow.json"]):
        result = runner.invoke(cli, args)
        assert result.exit_code == 1
        assert "Failed to load workflow" in result.output
        assert ".yml, .yaml or .py" in result.output
        assert not isinstance(result.exception, ValueError)


def test_python_workflow_called_with_arguments_is_reported(runner, project) -> None:
    (project / "bad_workflow.py").write_text(
        "def workflow(*steps):\n"
        "    raise TypeError('workflow() takes 0 positional arguments but 1 was given')\n",
        encoding="utf-8",
    )

    result = runner.invoke(cli, ["run", "--workflow", "bad_workflow.py"])

    assert result.exit_code == 1
    assert "Use the 'wf' helper" in result.output

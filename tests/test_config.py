from __future__ import annotations

import pytest

from stepflow.config import RunConfig, default_workers
from stepflow.dsl import step, wf
from stepflow.errors import ConfigError
from stepflow.loader import load_workflow_from_mapping
from stepflow.schema import SUPPORTED_VERSION


def test_defaults_without_environment() -> None:
    cfg = RunConfig.from_env({})
    assert cfg.concurrency == default_workers() >= 1
    assert cfg.timeout is None
    assert cfg.fail_fast is True
    assert cfg.admission_timeout is None


def test_environment_values_are_parsed() -> None:
    cfg = RunConfig.from_env(
        {
            "STEPFLOW_WORKERS": "3",
            "STEPFLOW_TIMEOUT": "2.5",
            "STEPFLOW_FAIL_FAST": "no",
            "STEPFLOW_ADMISSION_TIMEOUT": "10",
        }
    )
    assert cfg == RunConfig(concurrency=3, timeout=2.5, fail_fast=False, admission_timeout=10.0)


@pytest.mark.parametrize(
    "env",
    [
        {"STEPFLOW_WORKERS": "many"},
        {"STEPFLOW_TIMEOUT": "soon"},
        {"STEPFLOW_FAIL_FAST": "maybe"},
    ],
)
def test_bad_environment_values_raise_config_error(env) -> None:
    with pytest.raises(ConfigError):
        RunConfig.from_env(env)


def test_override_ignores_unset_values() -> None:
    base = RunConfig.from_env({"STEPFLOW_WORKERS": "4", "STEPFLOW_TIMEOUT": "9"})
    cfg = base.override(concurrency=1, timeout=None, fail_fast=None)
    assert cfg.concurrency == 1
    assert cfg.timeout == 9.0
    assert cfg.fail_fast is True


@pytest.mark.parametrize(
    "cfg",
    [
        RunConfig(concurrency=0),
        RunConfig(concurrency=1, timeout=0),
        RunConfig(concurrency=1, admission_timeout=-1),
    ],
)
def test_validate_rejects_non_positive_values(cfg: RunConfig) -> None:
    with pytest.raises(ConfigError):
        cfg.validate()


def test_dsl_builds_a_loadable_document() -> None:
    doc = wf(
        step("build", "make build"),
        step("test", "make test", needs=["build"]),
        metadata={"owner": "ci"},
    )
    assert doc.version == SUPPORTED_VERSION
    assert doc.steps[1].depends_on == ["build"]

    loaded = load_workflow_from_mapping(doc)
    assert loaded.step("test").depends_on == (0,)
    assert loaded.metadata == {"owner": "ci"}

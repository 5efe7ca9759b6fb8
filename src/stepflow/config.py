# config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional

from .errors import ConfigError

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def default_workers() -> int:
    c = os.cpu_count() or 2
    return max(1, c - 1)


def _env_int(env: Mapping[str, str], key: str) -> Optional[int]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got {raw!r}") from None


def _env_float(env: Mapping[str, str], key: str) -> Optional[float]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number of seconds, got {raw!r}") from None


def _env_bool(env: Mapping[str, str], key: str) -> Optional[bool]:
    raw = env.get(key)
    if raw is None or raw.strip() == "":
        return None
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{key} must be a boolean, got {raw!r}")


@dataclass(frozen=True)
class RunConfig:
    """
    How a workflow is run. Not part of the workflow document.

    Environment variables (all optional):
      STEPFLOW_WORKERS            concurrency limit
      STEPFLOW_TIMEOUT            per-step timeout, seconds
      STEPFLOW_FAIL_FAST          stop dispatching after a failure (true/false)
      STEPFLOW_ADMISSION_TIMEOUT  give up waiting for a free worker, seconds
    """
    concurrency: int = field(default_factory=default_workers)
    timeout: Optional[float] = None
    fail_fast: bool = True
    admission_timeout: Optional[float] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> RunConfig:
        env = os.environ if env is None else env
        cfg = cls()
        workers = _env_int(env, "STEPFLOW_WORKERS")
        timeout = _env_float(env, "STEPFLOW_TIMEOUT")
        fail_fast = _env_bool(env, "STEPFLOW_FAIL_FAST")
        admission = _env_float(env, "STEPFLOW_ADMISSION_TIMEOUT")
        return cfg.override(
            concurrency=workers,
            timeout=timeout,
            fail_fast=fail_fast,
            admission_timeout=admission,
        )

    def override(self, **values: object) -> RunConfig:
        """Replace fields whose value is not None (e.g. CLI flags over env)."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})

    def validate(self) -> RunConfig:
        if self.concurrency < 1:
            raise ConfigError(f"concurrency must be a positive integer, got {self.concurrency}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.admission_timeout is not None and self.admission_timeout <= 0:
            raise ConfigError(f"admission timeout must be positive, got {self.admission_timeout}")
        return self

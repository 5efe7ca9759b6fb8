# sink.py
from __future__ import annotations

import subprocess
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Iterator, Optional, Union

# What Popen accepts for stdout/stderr: None (inherit), DEVNULL, or a real file.
Stream = Optional[Union[int, IO]]


@dataclass(frozen=True)
class Sink:
    """
    Where a step's standard output and error go.

    The runner hands these straight to the child process. Opening and closing
    them is the sink's job, never the runner's.
    """
    stdout: Stream = None
    stderr: Stream = None

    @classmethod
    def inherit(cls) -> Sink:
        return cls()

    @classmethod
    def devnull(cls) -> Sink:
        return cls(stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)

    @classmethod
    @contextmanager
    def to_directory(cls, path: str | Path) -> Iterator[Sink]:
        """Write stdout.log / stderr.log under `path` for the duration of the block."""
        root = Path(path)
        root.mkdir(parents=True, exist_ok=True)
        with (root / "stdout.log").open("ab") as out, (root / "stderr.log").open("ab") as err:
            yield cls(stdout=out, stderr=err)

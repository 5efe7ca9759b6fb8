"""Test configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import pytest

from stepflow.ui.console import Console, set_console

TOOL_SOURCE = """\
import sys
import time

# usage: tool.py EXIT_CODE [SLEEP_SECONDS] [MESSAGE]
code = int(sys.argv[1])
if len(sys.argv) > 2:
    time.sleep(float(sys.argv[2]))
if len(sys.argv) > 3:
    print(sys.argv[3])
    print("err:" + sys.argv[3], file=sys.stderr)
sys.exit(code)
"""


@pytest.fixture(autouse=True)
def fresh_console() -> Console:
    """Each test starts with a default, non-debug console."""
    console = Console()
    set_console(console)
    return console


@pytest.fixture
def tool(tmp_path: Path) -> Path:
    """A tiny script that sleeps, prints and exits with a chosen status."""
    path = tmp_path / "tool.py"
    path.write_text(TOOL_SOURCE, encoding="utf-8")
    return path


@pytest.fixture
def cmd(tool: Path) -> Callable[..., str]:
    """Build a whitespace-separated command line for the helper script."""

    def _cmd(exit_code: int = 0, sleep: float = 0.0, message: str | None = None) -> str:
        parts = [sys.executable, str(tool), str(exit_code), str(sleep)]
        if message is not None:
            parts.append(message)
        return " ".join(parts)

    return _cmd

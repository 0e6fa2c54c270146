"""
airlift.push.runner — External command execution.

Everything that shells out (the container engine) goes through a
CommandRunner, so tests can swap in a fake that records commands.
"""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import Sequence


@dataclass
class CommandResult:
    success: bool
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0

    @property
    def output(self) -> str:
        """stderr if present, else stdout (for error messages)."""
        return (self.stderr or self.stdout).strip()


class CommandRunner:
    """Runs a command and captures its result."""

    def __init__(self, timeout: float | None = None):
        self.timeout = timeout

    def run(self, cmd: Sequence[str], *, input: str | None = None) -> CommandResult:
        """Run cmd; a missing binary or a timeout is a failed result."""
        try:
            result = subprocess.run(
                list(cmd),
                input=input,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as e:
            return CommandResult(success=False, stderr=str(e), returncode=127)
        except subprocess.TimeoutExpired:
            return CommandResult(
                success=False,
                stderr=f"{cmd[0]} timed out after {self.timeout}s",
                returncode=124,
            )
        return CommandResult(
            success=result.returncode == 0,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
            returncode=result.returncode,
        )

"""Blocking external-tool invocation that honours a cancellation token."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass

from chanindex.cancel import NEVER, CancellationToken, OperationCancelled

logger = logging.getLogger(__name__)

_POLL_SECONDS = 0.2


class ToolError(RuntimeError):
    """Raised when an OCR or video tool fails for one unit of work."""


@dataclass(frozen=True)
class ToolResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_tool(
    args: Sequence[str],
    token: CancellationToken = NEVER,
    timeout: float | None = None,
) -> ToolResult:
    """Run *args* to completion and capture its output.

    A tool that cannot be started is reported as returncode -1. The process
    is killed when *token* fires (raising OperationCancelled) or when
    *timeout* seconds elapse (returncode -1).
    """
    try:
        proc = subprocess.Popen(
            list(args),
            shell=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as exc:
        return ToolResult(-1, "", f"Failed to start {args[0]}: {exc}")

    waited = 0.0
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=_POLL_SECONDS)
            return ToolResult(proc.returncode, stdout, stderr)
        except subprocess.TimeoutExpired:
            waited += _POLL_SECONDS
            if token.cancelled:
                _kill(proc)
                raise OperationCancelled() from None
            if timeout is not None and waited >= timeout:
                _kill(proc)
                return ToolResult(-1, "", f"{args[0]} timed out after {timeout:.0f}s")


def _kill(proc: subprocess.Popen) -> None:
    proc.kill()
    proc.communicate()

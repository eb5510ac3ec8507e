"""Synchronous execution of external commands (adb and friends)."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from apc_harness.errors import ProcessError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessOutput:
    args: list[str]
    stdout: bytes
    stderr: bytes
    returncode: int

    def ok(self) -> bool:
        return self.returncode == 0

    def text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    def lines(self) -> list[str]:
        return self.text().splitlines()


class ProcessRunner:
    """Run a command, wait for it, and hand back its standard output.

    A non-zero exit status raises `ProcessError` carrying the captured
    standard error; callers never see partial stdout of a failed command.
    """

    def __init__(self, *, timeout_s: Optional[float] = None) -> None:
        self._timeout_s = timeout_s

    def run(
        self,
        tokens: Sequence[str],
        *,
        timeout_s: Optional[float] = None,
        unbounded: bool = False,
    ) -> ProcessOutput:
        cmd = [str(t) for t in tokens]
        logger.debug("%s", shlex.join(cmd))
        timeout = self._timeout_s if timeout_s is None else float(timeout_s)
        if unbounded:
            timeout = None
        try:
            proc = subprocess.run(cmd, capture_output=True, timeout=timeout, check=False)
        except FileNotFoundError as e:
            raise ProcessError(None, str(e), args=cmd) from e
        except subprocess.TimeoutExpired as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace")
            msg = f"timed out after {timeout}s\n{stderr}".strip()
            raise ProcessError(None, msg, args=cmd) from e

        result = ProcessOutput(
            args=cmd,
            stdout=proc.stdout or b"",
            stderr=proc.stderr or b"",
            returncode=proc.returncode,
        )
        if not result.ok():
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            logger.debug("rc=%s stderr: %s", result.returncode, stderr)
            raise ProcessError(result.returncode, stderr, args=cmd)
        return result

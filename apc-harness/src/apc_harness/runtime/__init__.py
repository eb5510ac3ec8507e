"""Device-side orchestration: adb channel, package management, run session."""

from __future__ import annotations

from apc_harness.runtime.outcome import Severity, StepResult, first_fatal

__all__ = [
    "Severity",
    "StepResult",
    "first_fatal",
]

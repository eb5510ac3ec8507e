from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable


class Severity(Enum):
    OK = "ok"
    # Logged; the run carries on.
    RECOVERABLE = "recoverable"
    # Aborts the run (cleanup still happens).
    FATAL = "fatal"


@dataclass(frozen=True)
class StepResult:
    step: str
    severity: Severity = Severity.OK
    detail: str = ""
    value: Any = None

    def ok(self) -> bool:
        return self.severity is Severity.OK

    @property
    def fatal(self) -> bool:
        return self.severity is Severity.FATAL

    @classmethod
    def success(cls, step: str, value: Any = None, detail: str = "") -> "StepResult":
        return cls(step=step, severity=Severity.OK, detail=detail, value=value)

    @classmethod
    def recoverable(cls, step: str, error: BaseException | str) -> "StepResult":
        return cls(step=step, severity=Severity.RECOVERABLE, detail=str(error))

    @classmethod
    def failure(cls, step: str, error: BaseException | str) -> "StepResult":
        return cls(step=step, severity=Severity.FATAL, detail=str(error))


def first_fatal(results: Iterable[StepResult]) -> StepResult | None:
    for res in results:
        if res.fatal:
            return res
    return None

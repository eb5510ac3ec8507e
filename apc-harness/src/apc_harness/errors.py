from __future__ import annotations

from typing import Optional, Sequence


class HarnessError(RuntimeError):
    """Base class for errors raised by the extraction harness."""


class ProcessError(HarnessError):
    """Raised when an external command exits non-zero (or cannot run at all)."""

    def __init__(
        self,
        exit_code: Optional[int],
        stderr_text: str,
        *,
        args: Sequence[str] = (),
    ) -> None:
        self.exit_code = exit_code
        self.stderr_text = stderr_text
        self.command = list(args)
        cmd = " ".join(self.command)
        super().__init__(f"command failed (rc={exit_code}): {cmd}\nstderr: {stderr_text}")


class TransferError(ProcessError):
    """Raised when pushing a file to the device fails."""


class NoDeviceError(HarnessError):
    """Raised when no Android device is attached and ready."""


class SettingsError(HarnessError):
    pass


class ProtocolViolation(HarnessError):
    """Malformed or out-of-order data on the result stream."""


class CollectorTimeout(ProtocolViolation):
    """The result collector gave up waiting for a connection or data."""


class OutputWriteError(OSError):
    """A result file could not be written for one identifier."""

    def __init__(self, identifier: str, message: str) -> None:
        self.identifier = identifier
        super().__init__(f"{identifier}: {message}")

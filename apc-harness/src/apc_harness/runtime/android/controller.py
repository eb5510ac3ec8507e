"""Device enumeration and the per-device adb channel.

Every device command in the harness goes through a `DeviceChannel`, which
prefixes `adb -s <serial>` so that nothing is ever sent to an unselected
device when several are attached.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Optional

from apc_harness.config import Config
from apc_harness.errors import NoDeviceError, ProcessError, TransferError
from apc_harness.runtime.android.process import ProcessOutput, ProcessRunner

logger = logging.getLogger(__name__)

READY_TOKEN = "device"


def parse_device_list(lines: Iterable[str]) -> list[str]:
    """Parse `adb devices` output into serials.

    ```
    List of devices attached
    FA6ATYJ00045	device
    emulator-5554	device
    ```
    becomes `["FA6ATYJ00045", "emulator-5554"]`. The header is always skipped;
    only lines containing the ready token are kept.
    """

    out: list[str] = []
    for idx, line in enumerate(lines):
        if idx == 0:
            continue
        if READY_TOKEN not in line:
            continue
        out.append(line.split("\t", 1)[0])
    return out


class DeviceRegistry:
    """Attached devices, listed once and cached for the registry's lifetime."""

    def __init__(self, *, runner: ProcessRunner, adb_path: str = "adb") -> None:
        self._runner = runner
        self._adb_path = adb_path
        self._devices: Optional[list[str]] = None

    def list_devices(self) -> list[str]:
        if self._devices is None:
            out = self._runner.run([self._adb_path, "devices"])
            self._devices = parse_device_list(out.lines())
        return list(self._devices)

    def resolve(self, requested: Optional[str] = None) -> str:
        """Pick `requested` if attached, otherwise the first attached device."""

        devices = self.list_devices()
        if not devices:
            raise NoDeviceError("No Android device attached")
        if requested is None or not requested.strip():
            return devices[0]
        wanted = requested.strip()
        if wanted in devices:
            return wanted
        logger.warning("Device %s not attached, using %s", wanted, devices[0])
        return devices[0]


class DeviceChannel:
    """Send adb commands to the single device named by `config.device`."""

    def __init__(
        self,
        config: Config,
        *,
        runner: ProcessRunner,
        adb_path: str = "adb",
    ) -> None:
        self.config = config
        self._runner = runner
        self._adb_path = adb_path

    @property
    def serial(self) -> str:
        return self.config.device

    def _base_cmd(self) -> list[str]:
        return [self._adb_path, "-s", self.config.device]

    def run_on_device(
        self, *tokens: str, timeout_s: Optional[float] = None, unbounded: bool = False
    ) -> ProcessOutput:
        return self._runner.run(
            self._base_cmd() + list(tokens), timeout_s=timeout_s, unbounded=unbounded
        )

    def shell(self, *tokens: str, timeout_s: Optional[float] = None) -> ProcessOutput:
        return self.run_on_device("shell", *tokens, timeout_s=timeout_s)

    def push(self, src: str | Path, dst: str) -> ProcessOutput:
        src_path = Path(src)
        try:
            return self.run_on_device("push", str(src_path), str(dst))
        except ProcessError as e:
            raise TransferError(e.exit_code, e.stderr_text, args=e.command) from e

"""Background launch of the on-device extraction harness.

`am instrument -w` stays attached until the harness has processed every
identifier, while results stream over the collector socket in the meantime.
The launch therefore runs on its own thread and the caller goes straight on
to accept the result connection.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Optional

from apc_harness.config import Config, HarnessSettings
from apc_harness.errors import ProcessError
from apc_harness.runtime.android.controller import DeviceChannel
from apc_harness.runtime.outcome import StepResult

logger = logging.getLogger(__name__)


def instrument_args(config: Config, settings: HarnessSettings) -> list[str]:
    return [
        "shell",
        "am",
        "instrument",
        "-w",
        "-r",
        "--no-window-animation",
        "-e",
        "file",
        settings.remote_id_file,
        "-e",
        "mode",
        config.mode.value,
        "-e",
        "algorithm",
        config.algorithm.value,
        "-e",
        "debug",
        "false",
        "-e",
        "class",
        settings.test_class,
        settings.instrumentation,
    ]


class LaunchHandle:
    """Handle on the launcher thread; only used for logging and tests."""

    def __init__(self, thread: threading.Thread) -> None:
        self._thread = thread
        self.result: Optional[StepResult] = None

    def join(self, timeout: float | None = None) -> Optional[StepResult]:
        self._thread.join(timeout=timeout)
        return self.result

    def is_alive(self) -> bool:
        return self._thread.is_alive()


class ExtractionRunner:
    def __init__(self, channel: DeviceChannel, settings: HarnessSettings) -> None:
        self._channel = channel
        self._settings = settings

    def start(self, id_file: str | Path, config: Config) -> LaunchHandle:
        """Push the identifier file and dispatch the instrumentation run.

        The push happens synchronously and raises `TransferError` on failure.
        Whatever the instrumentation itself does afterwards is only logged.
        """

        self._channel.push(id_file, self._settings.remote_id_file)
        args = instrument_args(config, self._settings)

        handle: LaunchHandle

        def _run() -> None:
            try:
                out = self._channel.run_on_device(*args, unbounded=True)
            except ProcessError as e:
                logger.error("Instrumentation failed: %s", e)
                handle.result = StepResult.recoverable("instrument", e)
                return
            logger.debug("%s", out.text())
            handle.result = StepResult.success("instrument", value=out.text())

        thread = threading.Thread(target=_run, name="apc-instrument", daemon=True)
        handle = LaunchHandle(thread)
        thread.start()
        logger.info("Running tests...")
        return handle

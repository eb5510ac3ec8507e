"""Install and remove the extraction harness APKs."""

from __future__ import annotations

import logging

from apc_harness.config import HarnessSettings
from apc_harness.errors import ProcessError
from apc_harness.runtime.android.controller import DeviceChannel
from apc_harness.runtime.outcome import StepResult

logger = logging.getLogger(__name__)


class PackageInstaller:
    def __init__(self, channel: DeviceChannel, settings: HarnessSettings) -> None:
        self._channel = channel
        self._settings = settings

    def install_apk(self) -> None:
        """Push both APKs to the device's temp dir and install them.

        `pm install -t -r` replaces an existing install, so running this twice
        leaves the device in the same state as running it once.
        """

        s = self._settings
        self._channel.push(s.debug_apk, s.remote_debug_apk)
        self._channel.push(s.test_apk, s.remote_test_apk)
        self._channel.shell("pm", "install", "-t", "-r", s.remote_debug_apk)
        self._channel.shell("pm", "install", "-t", "-r", s.remote_test_apk)
        logger.info("Installed APK on device %s", self._channel.serial)


class PackageUninstaller:
    def __init__(self, channel: DeviceChannel, settings: HarnessSettings) -> None:
        self._channel = channel
        self._settings = settings

    def _best_effort(self, step: str, *tokens: str) -> StepResult:
        try:
            self._channel.shell(*tokens)
        except ProcessError as e:
            logger.warning("%s failed: %s", step, e.stderr_text or e)
            return StepResult.recoverable(step, e)
        return StepResult.success(step)

    def remove_apk(self) -> list[StepResult]:
        """Stop and uninstall the harness; never raises."""

        s = self._settings
        results = [
            self._best_effort("force-stop", "am", "force-stop", s.package),
            self._best_effort("uninstall", "pm", "uninstall", s.package),
            self._best_effort("uninstall-test", "pm", "uninstall", s.test_package),
            self._best_effort(
                "clean-tmp",
                "rm",
                "-f",
                s.remote_debug_apk,
                s.remote_test_apk,
                s.remote_id_file,
            ),
        ]
        if all(r.ok() for r in results):
            logger.info("Removed all APC files from device")
        else:
            logger.warning("Cleanup on device %s was incomplete", self._channel.serial)
        return results

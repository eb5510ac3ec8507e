"""One extraction run against one device.

install -> push ids + launch (background) -> collect (blocking) -> remove
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from apc_harness.collector.output import OutputWriter
from apc_harness.collector.server import CollectionReport, ResultCollector
from apc_harness.config import Config, HarnessSettings
from apc_harness.errors import HarnessError
from apc_harness.runtime.android.controller import DeviceChannel
from apc_harness.runtime.android.instrumentation import ExtractionRunner, LaunchHandle
from apc_harness.runtime.android.packages import PackageInstaller, PackageUninstaller
from apc_harness.runtime.android.process import ProcessRunner
from apc_harness.runtime.outcome import StepResult, first_fatal

logger = logging.getLogger(__name__)


@dataclass
class SessionResult:
    steps: list[StepResult] = field(default_factory=list)
    report: Optional[CollectionReport] = None
    launch: Optional[LaunchHandle] = None

    def ok(self) -> bool:
        return first_fatal(self.steps) is None

    @property
    def recoverable(self) -> list[StepResult]:
        out = [s for s in self.steps if not s.ok() and not s.fatal]
        if self.report is not None:
            out.extend(self.report.failures)
        return out


class ExtractionSession:
    def __init__(
        self,
        config: Config,
        settings: HarnessSettings,
        *,
        runner: Optional[ProcessRunner] = None,
        channel: Optional[DeviceChannel] = None,
        collector: Optional[ResultCollector] = None,
    ) -> None:
        self.config = config
        self.settings = settings
        runner = runner or ProcessRunner(timeout_s=settings.command_timeout_s)
        self.channel = channel or DeviceChannel(config, runner=runner, adb_path=settings.adb_path)
        self.collector = collector or ResultCollector(
            OutputWriter(settings.output_dir),
            config.mode,
            host=settings.server_host,
            port=settings.server_port,
            accept_timeout_s=settings.accept_timeout_s,
            read_timeout_s=settings.read_timeout_s,
        )

    def run(self, id_file: str | Path, *, keep_installed: bool = False) -> SessionResult:
        result = SessionResult()
        # Listen before launching so the device never finds the port closed.
        try:
            self.collector.open()
        except OSError as e:
            logger.error("Could not open result server on %s: %s", self.collector.address, e)
            result.steps.append(StepResult.failure("listen", e))
            return result

        try:
            self._run_steps(Path(id_file), result)
        finally:
            self.collector.close()
            if keep_installed:
                logger.info("Leaving harness installed on %s", self.channel.serial)
            else:
                result.steps.extend(PackageUninstaller(self.channel, self.settings).remove_apk())
        return result

    def _run_steps(self, id_file: Path, result: SessionResult) -> None:
        try:
            PackageInstaller(self.channel, self.settings).install_apk()
        except HarnessError as e:
            logger.error("Install failed: %s", e)
            result.steps.append(StepResult.failure("install", e))
            return
        result.steps.append(StepResult.success("install"))

        try:
            result.launch = ExtractionRunner(self.channel, self.settings).start(
                id_file, self.config
            )
        except HarnessError as e:
            logger.error("Launch failed: %s", e)
            result.steps.append(StepResult.failure("launch", e))
            return
        result.steps.append(StepResult.success("launch"))

        try:
            report = self.collector.collect()
        except (HarnessError, OSError) as e:
            logger.error("Result collection failed: %s", e)
            result.steps.append(StepResult.failure("collect", e))
            return
        result.report = report
        if report.sentinel_seen:
            result.steps.append(StepResult.success("collect", value=len(report.written)))
        else:
            result.steps.append(
                StepResult.recoverable("collect", "; ".join(report.violations))
            )
        logger.info(
            "Collected %d result(s), %d failed", len(report.written), len(report.failures)
        )

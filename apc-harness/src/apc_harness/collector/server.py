"""TCP server receiving extraction results from the device.

One session = one listening socket and exactly one accepted connection. The
session ends when the device sends the sentinel (or closes the stream), at
which point both sockets are closed.
"""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from apc_harness.collector.output import OutputWriter
from apc_harness.collector.protocol import Frame, FrameAssembler, LineFramer
from apc_harness.config import Mode
from apc_harness.errors import CollectorTimeout, OutputWriteError
from apc_harness.runtime.outcome import StepResult

logger = logging.getLogger(__name__)


@dataclass
class CollectionReport:
    written: dict[str, Path] = field(default_factory=dict)
    failures: list[StepResult] = field(default_factory=list)
    violations: list[str] = field(default_factory=list)
    sentinel_seen: bool = False

    @property
    def frames(self) -> int:
        return len(self.written) + len(self.failures)


class ResultCollector:
    def __init__(
        self,
        writer: OutputWriter,
        mode: Mode,
        *,
        host: str = "",
        port: int = 2000,
        accept_timeout_s: Optional[float] = None,
        read_timeout_s: Optional[float] = None,
        recv_bytes: int = 4096,
    ) -> None:
        self._writer = writer
        self._mode = mode
        self._host = host
        self._port = int(port)
        self._accept_timeout_s = accept_timeout_s
        self._read_timeout_s = read_timeout_s
        self._recv_bytes = int(recv_bytes)
        self._server: Optional[socket.socket] = None
        self._conn: Optional[socket.socket] = None

    @property
    def address(self) -> tuple[str, int]:
        server = self._server
        if server is None:
            return (self._host, self._port)
        host, port = server.getsockname()[:2]
        return (str(host), int(port))

    @property
    def is_open(self) -> bool:
        return self._server is not None

    def open(self) -> tuple[str, int]:
        if self._server is not None:
            return self.address
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            server.bind((self._host, self._port))
            server.listen(1)
        except OSError:
            server.close()
            raise
        self._server = server
        logger.debug("collector listening on %s:%s", *self.address)
        return self.address

    def close(self) -> None:
        conn = self._conn
        self._conn = None
        if conn is not None:
            conn.close()
        server = self._server
        self._server = None
        if server is not None:
            server.close()

    def __enter__(self) -> "ResultCollector":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # type: ignore[no-untyped-def]
        self.close()

    def _write_frame(self, frame: Frame, report: CollectionReport) -> None:
        try:
            path = self._writer.write(frame.identifier, frame.body, self._mode)
        except OutputWriteError as e:
            logger.error("Could not write output for %s: %s", frame.identifier, e)
            report.failures.append(StepResult.recoverable(f"write:{frame.identifier}", e))
            return
        report.written[frame.identifier] = path

    def collect(self) -> CollectionReport:
        """Accept one connection and write results until the sentinel arrives.

        Blocks. The device-side launch must already be running, otherwise
        nobody will ever connect.
        """

        self.open()
        assert self._server is not None
        report = CollectionReport()
        assembler = FrameAssembler(lambda frame: self._write_frame(frame, report))
        framer = LineFramer()
        try:
            self._server.settimeout(self._accept_timeout_s)
            try:
                conn, peer = self._server.accept()
            except socket.timeout as e:
                raise CollectorTimeout(
                    f"no connection within {self._accept_timeout_s}s on port {self.address[1]}"
                ) from e
            self._conn = conn
            logger.debug("collector accepted connection from %s:%s", *peer[:2])
            conn.settimeout(self._read_timeout_s)

            while not assembler.done:
                try:
                    data = conn.recv(self._recv_bytes)
                except socket.timeout as e:
                    raise CollectorTimeout(
                        f"no data within {self._read_timeout_s}s "
                        f"after {assembler.frames} result(s)"
                    ) from e
                lines = framer.feed(data) if data else framer.close()
                for line in lines:
                    if assembler.feed_line(line):
                        break
                if not data:
                    assembler.finish()
        finally:
            self.close()

        report.sentinel_seen = assembler.sentinel_seen
        report.violations = list(assembler.violations)
        return report

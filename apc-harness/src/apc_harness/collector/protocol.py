"""Line protocol spoken by the on-device harness.

Per identifier the device sends::

    <identifier>\\n<body>\\n---

and once at the very end::

    \\nOK

Nothing follows `---` before the next frame, so the boundary marker usually
arrives glued to the next identifier (`---com.b`). `LineFramer` undoes that
and reassembles lines across arbitrary `recv()` chunks; `FrameAssembler`
turns the classified lines into complete frames.
"""

from __future__ import annotations

import codecs
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)

SENTINEL = "OK"
BOUNDARY = "---"

# Same shape as `package` in schemas/settings.schema.json.
APP_ID_RE = re.compile(r"[A-Za-z]\w*(?:\.[A-Za-z]\w*)+")


class LineKind(Enum):
    IDENTIFIER = "identifier"
    BODY = "body"
    BOUNDARY = "boundary"
    SENTINEL = "sentinel"
    BLANK = "blank"


@dataclass(frozen=True)
class ProtocolLine:
    kind: LineKind
    text: str = ""


def classify_line(line: str, *, in_frame: bool) -> ProtocolLine:
    stripped = line.strip()
    if stripped == SENTINEL:
        return ProtocolLine(LineKind.SENTINEL)
    if stripped == BOUNDARY:
        return ProtocolLine(LineKind.BOUNDARY)
    if in_frame:
        return ProtocolLine(LineKind.BODY, line)
    if not stripped:
        return ProtocolLine(LineKind.BLANK)
    return ProtocolLine(LineKind.IDENTIFIER, stripped)


def split_glued_boundary(line: str) -> list[str]:
    """`---com.b` -> `["---", "com.b"]`.

    Only splits when the remainder is an application id. Body text such as
    `---Contact us` or a dash rule like `-----` is returned unchanged.
    """

    if not line.startswith(BOUNDARY):
        return [line]
    rest = line[len(BOUNDARY) :].strip()
    if APP_ID_RE.fullmatch(rest):
        return [BOUNDARY, rest]
    return [line]


class LineFramer:
    """Incremental bytes -> lines decoder.

    Lines are returned as sent, `\\r` included; `classify_line` trims control
    and identifier lines, body lines keep their bytes.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._pending = ""

    def feed(self, data: bytes) -> list[str]:
        self._pending += self._decoder.decode(data)
        *complete, self._pending = self._pending.split("\n")
        return self._expand(complete)

    def close(self) -> list[str]:
        self._pending += self._decoder.decode(b"", final=True)
        parts = self._pending.split("\n")
        self._pending = ""
        if parts and parts[-1] == "":
            parts.pop()
        return self._expand(parts)

    @staticmethod
    def _expand(raw_lines: list[str]) -> list[str]:
        out: list[str] = []
        for raw in raw_lines:
            out.extend(split_glued_boundary(raw))
        return out


class FrameState(Enum):
    AWAITING_IDENTIFIER = "awaiting_identifier"
    ACCUMULATING_BODY = "accumulating_body"
    DONE = "done"


@dataclass
class Frame:
    identifier: str
    body: list[str] = field(default_factory=list)


FrameSink = Callable[[Frame], None]


class FrameAssembler:
    """State machine over classified protocol lines.

    Calls `sink` for every completed frame. Anomalies never raise; they are
    logged and kept in `violations` so the caller can report them.
    """

    def __init__(self, sink: FrameSink) -> None:
        self._sink = sink
        self._frame: Optional[Frame] = None
        self.state = FrameState.AWAITING_IDENTIFIER
        self.violations: list[str] = []
        self.frames = 0
        self.sentinel_seen = False

    @property
    def done(self) -> bool:
        return self.state is FrameState.DONE

    def _violation(self, msg: str) -> None:
        logger.warning("protocol violation: %s", msg)
        self.violations.append(msg)

    def feed_line(self, line: str) -> bool:
        """Consume one line; returns True once the sentinel has been seen."""

        if self.done:
            return True
        event = classify_line(line, in_frame=self._frame is not None)

        if event.kind is LineKind.SENTINEL:
            if self._frame is not None:
                self._violation(f"sentinel inside unterminated frame {self._frame.identifier!r}")
                self._frame = None
            self.sentinel_seen = True
            self.state = FrameState.DONE
            return True

        if event.kind is LineKind.BOUNDARY:
            frame = self._frame
            if frame is None:
                self._violation("boundary marker without identifier")
                return False
            self._frame = None
            self.state = FrameState.AWAITING_IDENTIFIER
            self.frames += 1
            self._sink(frame)
            return False

        if event.kind is LineKind.BLANK:
            return False

        if event.kind is LineKind.IDENTIFIER:
            self._frame = Frame(identifier=event.text)
            self.state = FrameState.ACCUMULATING_BODY
            return False

        assert self._frame is not None
        self._frame.body.append(event.text)
        return False

    def finish(self) -> None:
        """Called when the stream ends; records what was left hanging."""

        if self.done:
            return
        if self._frame is not None:
            self._violation(f"stream ended inside frame {self._frame.identifier!r}")
            self._frame = None
        self._violation("stream ended before sentinel")
        self.state = FrameState.DONE

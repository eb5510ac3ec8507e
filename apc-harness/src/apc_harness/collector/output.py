from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Sequence

from apc_harness.config import Mode
from apc_harness.errors import OutputWriteError

logger = logging.getLogger(__name__)

_FORBIDDEN_CHARS = {"/", "\\", "\x00"}


def extension_for(mode: Mode) -> str:
    return "xml" if mode is Mode.MODEL else "txt"


def _check_identifier(identifier: str) -> None:
    if not identifier or identifier in {".", ".."}:
        raise OutputWriteError(identifier, "not usable as a file name")
    seps = set(_FORBIDDEN_CHARS)
    seps.add(os.sep)
    if os.altsep:
        seps.add(os.altsep)
    if any(ch in identifier for ch in seps):
        raise OutputWriteError(identifier, "contains path separators")


class OutputWriter:
    """Write one result file per identifier under `output_dir`."""

    def __init__(self, output_dir: str | Path) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, identifier: str, mode: Mode) -> Path:
        return self.output_dir / f"{identifier}.{extension_for(mode)}"

    def write(self, identifier: str, body_lines: Sequence[str], mode: Mode) -> Path:
        _check_identifier(identifier)
        path = self.path_for(identifier, mode)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes("\n".join(body_lines).encode("utf-8"))
        except OSError as e:
            raise OutputWriteError(identifier, str(e)) from e
        logger.info("Output was written to %s", path)
        return path

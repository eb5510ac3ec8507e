"""Extraction configuration and harness settings.

`Config` is the per-run choice of mode, algorithm and device. `HarnessSettings`
holds the fixed paths, package names and network parameters; the defaults
mirror the layout produced by the `droid` Gradle build and can be overridden
by a YAML file.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, fields, replace
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping, Optional

import jsonschema
import yaml

from apc_harness.errors import SettingsError

logger = logging.getLogger(__name__)

ADB_ENV_VAR = "APC_ADB"


class Mode(Enum):
    """Look for a privacy policy and extract its text, or extract a model of the app."""

    POLICY = "POLICY"
    MODEL = "MODEL"


class Algorithm(Enum):
    """Search strategy run by the on-device harness (model extraction is always BFS)."""

    DFS = "DFS"
    BFS = "BFS"
    RS = "RS"
    OS = "OS"


DEFAULT_ALGORITHM = Algorithm.OS


@dataclass(frozen=True)
class Config:
    mode: Mode
    algorithm: Algorithm
    device: str


def resolve_algorithm(label: Optional[str]) -> Algorithm:
    """Map a command-line label to an `Algorithm`, falling back to optimized search."""

    if label is None or not str(label).strip():
        return DEFAULT_ALGORITHM
    try:
        return Algorithm[str(label).strip().upper()]
    except KeyError:
        logger.warning("Algorithm label %s incorrect, using %s", label, DEFAULT_ALGORITHM.value)
        return DEFAULT_ALGORITHM


@dataclass(frozen=True)
class HarnessSettings:
    adb_path: str = "adb"
    server_host: str = ""
    server_port: int = 2000
    output_dir: str = "out"
    id_file: str = "ids.txt"
    remote_id_file: str = "/data/local/tmp/ids.txt"
    apk_dir: str = "droid/build/outputs/apk"
    remote_tmp_dir: str = "/data/local/tmp"
    package: str = "com.github.cheapmon.apc.droid"
    test_runner: str = "android.support.test.runner.AndroidJUnitRunner"
    test_entry_point: str = "DroidMain#main"
    command_timeout_s: Optional[float] = 120.0
    # None blocks until the device connects / sends data.
    accept_timeout_s: Optional[float] = None
    read_timeout_s: Optional[float] = None
    catalog_url: str = "https://play.google.com/store/apps/details?id={id}"
    catalog_timeout_s: float = 10.0
    validate_ids: bool = True

    @property
    def test_package(self) -> str:
        return f"{self.package}.test"

    @property
    def debug_apk(self) -> Path:
        return Path(self.apk_dir) / "debug" / "droid-debug.apk"

    @property
    def test_apk(self) -> Path:
        return Path(self.apk_dir) / "androidTest" / "debug" / "droid-debug-androidTest.apk"

    @property
    def remote_debug_apk(self) -> str:
        return f"{self.remote_tmp_dir}/{self.package}"

    @property
    def remote_test_apk(self) -> str:
        return f"{self.remote_tmp_dir}/{self.test_package}"

    @property
    def test_class(self) -> str:
        return f"{self.package}.{self.test_entry_point}"

    @property
    def instrumentation(self) -> str:
        return f"{self.test_package}/{self.test_runner}"


def _schema_path() -> Path:
    return Path(__file__).resolve().parent / "schemas" / "settings.schema.json"


@lru_cache(maxsize=1)
def _load_schema() -> dict[str, Any]:
    schema_path = _schema_path()
    data = json.loads(schema_path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise SettingsError(f"schema must be an object: {schema_path}")
    jsonschema.Draft202012Validator.check_schema(data)
    return data


def validate_settings(data: Mapping[str, Any], *, where: str) -> None:
    validator = jsonschema.Draft202012Validator(_load_schema())
    errors = sorted(validator.iter_errors(dict(data)), key=lambda e: list(e.path))
    if not errors:
        return
    msgs = []
    for e in errors[:20]:
        loc = "/".join(str(p) for p in e.path)
        suffix = f":{loc}" if loc else ""
        msgs.append(f"- {where}{suffix}: {e.message}")
    if len(errors) > 20:
        msgs.append(f"... ({len(errors)-20} more)")
    raise SettingsError("settings validation failed:\n" + "\n".join(msgs))


def settings_from_mapping(
    data: Mapping[str, Any], *, base: HarnessSettings | None = None, where: str = "<settings>"
) -> HarnessSettings:
    validate_settings(data, where=where)
    known = {f.name for f in fields(HarnessSettings)}
    return replace(base or HarnessSettings(), **{k: v for k, v in data.items() if k in known})


def load_settings(
    path: Optional[Path] = None, *, environ: Mapping[str, str] | None = None
) -> HarnessSettings:
    """Build settings from defaults, an optional YAML file and the environment.

    The `APC_ADB` environment variable wins over the file for the adb path.
    """

    settings = HarnessSettings()
    if path is not None:
        if not path.exists():
            raise FileNotFoundError(path)
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsError(f"settings file must be a mapping: {path}")
        settings = settings_from_mapping(data, base=settings, where=str(path))

    env = os.environ if environ is None else environ
    adb = (env.get(ADB_ENV_VAR) or "").strip()
    if adb:
        settings = replace(settings, adb_path=adb)
    return settings

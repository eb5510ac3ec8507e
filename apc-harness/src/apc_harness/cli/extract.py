from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from apc_harness.config import Config, Mode, load_settings, resolve_algorithm
from apc_harness.errors import NoDeviceError, ProcessError, SettingsError
from apc_harness.ids import CatalogValidator, collect_ids, write_id_file
from apc_harness.runtime.android.controller import DeviceRegistry
from apc_harness.runtime.android.process import ProcessRunner
from apc_harness.runtime.session import ExtractionSession

logger = logging.getLogger("apc_harness")

LOG_FORMAT = "[%(levelname)s] %(name)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="apc-extract",
        description="Extract privacy policies (or app models) from Android apps on a device.",
        add_help=False,
    )
    # Help is a usage exit like any other, status 1.
    parser.add_argument("-h", "--help", action="store_true", help="this help message")
    parser.add_argument("-i", "--ids", nargs="+", default=None, help="app ids")
    parser.add_argument("-f", "--file", type=Path, default=None, help="file containing app ids")
    parser.add_argument("-d", "--device", default=None, help="device to run extraction on")
    parser.add_argument("-a", "--algorithm", default=None, help="search algorithm (DFS/BFS/RS/OS)")
    parser.add_argument("-m", "--model", action="store_true", help="extract model of app")
    parser.add_argument(
        "--config", type=Path, default=None, help="Optional YAML settings file."
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory for result files (default: out).",
    )
    parser.add_argument(
        "--no-validate",
        action="store_true",
        help="Skip checking ids against the app store.",
    )
    parser.add_argument(
        "--keep-installed",
        action="store_true",
        help="Do not uninstall the harness after the run.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log adb commands.")
    return parser


def _usage_error(parser: argparse.ArgumentParser, message: str) -> int:
    print(message)
    parser.print_help()
    return 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.help:
        parser.print_help()
        return 1

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format=LOG_FORMAT)

    try:
        settings = load_settings(args.config)
    except (FileNotFoundError, SettingsError) as e:
        return _usage_error(parser, f"Invalid settings: {e}")
    if args.output_dir is not None:
        settings = replace(settings, output_dir=str(args.output_dir))
    if args.no_validate:
        settings = replace(settings, validate_ids=False)

    validate = None
    if settings.validate_ids:
        validate = CatalogValidator(
            url_template=settings.catalog_url, timeout_s=settings.catalog_timeout_s
        ).is_valid
    ids = collect_ids(args.ids, args.file, validate=validate)
    if not ids:
        return _usage_error(parser, "ID list empty or invalid")
    id_file = write_id_file(settings.id_file, ids)

    runner = ProcessRunner(timeout_s=settings.command_timeout_s)
    registry = DeviceRegistry(runner=runner, adb_path=settings.adb_path)
    try:
        device = registry.resolve(args.device)
    except NoDeviceError as e:
        return _usage_error(parser, str(e))
    except ProcessError as e:
        return _usage_error(parser, f"Could not list devices: {e}")

    config = Config(
        mode=Mode.MODEL if args.model else Mode.POLICY,
        algorithm=resolve_algorithm(args.algorithm),
        device=device,
    )
    logger.info("=" * 40)
    logger.info("| Found %d application ids", len(ids))
    logger.info("| Extraction mode is %s", config.mode.value)
    logger.info("| Using device %s", config.device)
    logger.info("| Using %s", config.algorithm.value)
    logger.info("=" * 40)

    session = ExtractionSession(config, settings, runner=runner)
    result = session.run(id_file, keep_installed=args.keep_installed)

    for step in result.recoverable:
        logger.warning("%s: %s", step.step, step.detail)
    if not result.ok():
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

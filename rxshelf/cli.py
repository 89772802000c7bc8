"""
Command-line interface for rxshelf.

Notes
-----
The CLI is intentionally thin. It parses arguments and delegates to the engine
controller; every filesystem operation still runs on the controller's worker.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from uuid import UUID

from medication_engine.controller import MedicationsController
from medication_engine.data_models import Medication
from medication_engine.errors import RxShelfError
from medication_engine.notifier import PollingDirectoryWatcher
from medication_engine.paths import DEFAULT_FILE_EXTENSION, StoreConfig
from medication_engine.scheduler import QueuedDelivery


def build_parser() -> argparse.ArgumentParser:
    """
    Build and return the top-level argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured parser.
    """
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--directory",
        type=Path,
        default=None,
        help="Medication directory. Defaults to $RXSHELF_DIRECTORY or ~/Documents.",
    )
    common.add_argument(
        "--extension",
        default=DEFAULT_FILE_EXTENSION,
        help=f"Record file extension (default: {DEFAULT_FILE_EXTENSION}).",
    )
    common.add_argument("--verbose", action="store_true", help="Enable debug logging.")

    parser = argparse.ArgumentParser(
        prog="rxshelf",
        description="Directory-backed medication list",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("list", parents=[common], help="List stored medications")

    add_p = sub.add_parser("add", parents=[common], help="Save a new medication")
    add_p.add_argument("--name", required=True, help="Medication name")
    add_p.add_argument("--strength", default=None, help="Strength, e.g. '81 mg'")
    add_p.add_argument("--dosage", default=None, help="Dosage, e.g. '1 tablet'")
    add_p.add_argument(
        "--time",
        dest="times",
        action="append",
        default=[],
        help="Reminder time as HH:MM. Repeatable.",
    )
    add_p.add_argument("--note", default=None, help="Free-form note")

    show_p = sub.add_parser("show", parents=[common], help="Print one medication as JSON")
    show_p.add_argument("uuid", type=UUID, help="Medication UUID")

    remove_p = sub.add_parser("remove", parents=[common], help="Delete a medication")
    remove_p.add_argument("uuid", type=UUID, help="Medication UUID")

    watch_p = sub.add_parser("watch", parents=[common], help="Print the list each time the directory changes")
    watch_p.add_argument(
        "--interval",
        type=float,
        default=1.0,
        help="Polling interval in seconds (default: 1.0).",
    )
    watch_p.add_argument(
        "--max-updates",
        type=int,
        default=None,
        help="Exit after this many updates (default: run until interrupted).",
    )

    sub.add_parser("gui", parents=[common], help="Open the medication window")

    return parser


def _config_from_args(args: argparse.Namespace) -> StoreConfig:
    if args.directory is None:
        return StoreConfig.default(file_extension=args.extension)
    return StoreConfig(directory=args.directory, file_extension=args.extension)


def _print_medications(medications: list[Medication]) -> None:
    for medication in medications:
        print(f"{medication.uuid}  {medication.name or ''}")


def _run_watch(args: argparse.Namespace, config: StoreConfig) -> int:
    delivery = QueuedDelivery()
    notifier = PollingDirectoryWatcher(config.directory, interval=args.interval)
    updates = 0
    failure: list[BaseException] = []

    def on_next(medications: list[Medication]) -> None:
        nonlocal updates
        updates += 1
        print(f"-- {len(medications)} medication(s)")
        _print_medications(medications)
        sys.stdout.flush()

    with MedicationsController(config, notifier=notifier, delivery=delivery) as controller:
        subscription = controller.records().subscribe(on_next, failure.append)
        try:
            while not failure and (args.max_updates is None or updates < args.max_updates):
                delivery.run_pending(timeout=0.25)
        except KeyboardInterrupt:
            pass
        finally:
            subscription.cancel()

    if failure:
        print(f"ERROR: {failure[0]}")
        return 2
    return 0


def main(argv: list[str] | None = None) -> int:
    """
    CLI entry point.

    Parameters
    ----------
    argv:
        Optional argument vector. If None, argparse uses sys.argv.

    Returns
    -------
    int
        Process exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    try:
        config = _config_from_args(args)

        if args.command == "gui":
            from gui.app import main as gui_main

            return gui_main(config.directory, config.file_extension)

        if args.command == "watch":
            return _run_watch(args, config)

        with MedicationsController(config) as controller:
            if args.command == "list":
                _print_medications(controller.list_once().result())
                return 0

            if args.command == "add":
                if not args.name.strip():
                    print("ERROR: --name must not be blank.")
                    return 2
                medication = Medication(
                    name=args.name,
                    strength=args.strength,
                    dosage=args.dosage,
                    times=list(args.times),
                    note=args.note,
                )
                controller.save(medication).result()
                print(medication.uuid)
                return 0

            if args.command == "show":
                medication = controller.load(args.uuid).result()
                payload = {"uuid": str(medication.uuid), **medication.to_dict()}
                print(json.dumps(payload, indent=2, sort_keys=True, ensure_ascii=False))
                return 0

            if args.command == "remove":
                medication = controller.load(args.uuid).result()
                if not (medication.name or "").strip():
                    print(f"ERROR: medication {args.uuid} has no name and cannot be removed.")
                    return 2
                controller.delete(medication).result()
                return 0
    except (RxShelfError, ValueError) as exc:
        print(f"ERROR: {exc}")
        return 2

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

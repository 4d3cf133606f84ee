"""Command-line entry for studycal.

Thin host around the engine: reads files, calls one operation and prints the
result. The engine modules themselves never touch the filesystem.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from .core.config_manager import ConfigManager, EngineSettings
from .core.exceptions import CalendarParseError, StudyCalError
from .core.logging_config import configure_logging

logger = logging.getLogger("studycal.cli")


def _create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the studycal CLI.

    Returns:
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        prog="studycal",
        description="StudyCal - recurring schedule and calendar interchange engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m studycal validate calendar.ics
  python -m studycal import calendar.ics > drafts.json
  python -m studycal export data.json -o studycal.ics
  python -m studycal expand data.json --start 2025-01-01 --end 2025-01-31
  python -m studycal describe "FREQ=WEEKLY;INTERVAL=1;BYDAY=MO,WE;COUNT=4"
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--env-file",
        type=Path,
        metavar="PATH",
        help="Path to .env file with STUDYCAL_* settings (default: ./.env)",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    validate = sub.add_parser("validate", help="Check the structure of a calendar document")
    validate.add_argument("file", type=Path)

    imp = sub.add_parser("import", help="Parse a calendar document into draft JSON")
    imp.add_argument("file", type=Path)
    imp.add_argument("--validate", action="store_true", help="Refuse documents that fail validation")

    export = sub.add_parser("export", help="Encode tasks and timetable entries from JSON")
    export.add_argument("file", type=Path)
    export.add_argument("-o", "--output", type=Path, help="Write to file instead of stdout")

    expand = sub.add_parser("expand", help="Expand recurring tasks from JSON over a window")
    expand.add_argument("file", type=Path)
    expand.add_argument("--start", type=date.fromisoformat, required=True, metavar="YYYY-MM-DD")
    expand.add_argument("--end", type=date.fromisoformat, required=True, metavar="YYYY-MM-DD")
    expand.add_argument("--max-instances", type=int, metavar="N", help="Per-task occurrence cap")

    describe = sub.add_parser("describe", help="Describe a recurrence rule in words")
    describe.add_argument("rule")

    return parser


def _read_text(path: Path) -> str:
    # newline="" keeps CRLF terminators intact for the line splitter
    with path.open(encoding="utf-8", newline="") as f:
        return f.read()


def _load_export_data(path: Path) -> Any:
    from .models import ExportData

    raw = json.loads(_read_text(path))
    for task in raw.get("tasks", []):
        if isinstance(task, dict):
            task.setdefault("kind", "instance" if "master_id" in task else "task")
    return ExportData.model_validate(raw)


def _cmd_validate(args: argparse.Namespace, settings: EngineSettings) -> int:
    from .calendar.ics_validator import validate_calendar

    result = validate_calendar(_read_text(args.file))
    for error in result.errors:
        print(f"error: {error}")
    print(f"{args.file}: {result.event_count} event(s), {'valid' if result.is_valid else 'invalid'}")
    return 0 if result.is_valid else 1


def _cmd_import(args: argparse.Namespace, settings: EngineSettings) -> int:
    from .calendar.ics_parser import parse_calendar
    from .calendar.ics_validator import validate_calendar
    from .calendar.import_mapper import map_import

    text = _read_text(args.file)
    if args.validate:
        validation = validate_calendar(text)
        if not validation.is_valid:
            for error in validation.errors:
                logger.error("%s", error)
            return 1

    parsed = parse_calendar(text)
    if not parsed.success:
        raise CalendarParseError(f"Could not parse {args.file}: {parsed.error_message}")

    bundle = map_import(parsed.events, settings)
    print(bundle.model_dump_json(indent=2))
    return 0


def _cmd_export(args: argparse.Namespace, settings: EngineSettings) -> int:
    from .calendar.ics_encoder import export_calendar

    document = export_calendar(_load_export_data(args.file), settings)
    if args.output:
        with args.output.open("w", encoding="utf-8", newline="") as f:
            f.write(document)
        logger.info("Wrote %s", args.output)
    else:
        sys.stdout.write(document)
    return 0


def _cmd_expand(args: argparse.Namespace, settings: EngineSettings) -> int:
    from .recurrence.rrule_expander import TaskExpander

    data = _load_export_data(args.file)
    expander = TaskExpander(settings)
    tasks = expander.expand_tasks(data.tasks, args.start, args.end, args.max_instances)
    print(json.dumps([task.model_dump(mode="json") for task in tasks], indent=2))
    return 0


def _cmd_describe(args: argparse.Namespace, settings: EngineSettings) -> int:
    from .recurrence.rrule_codec import describe_rule

    print(describe_rule(args.rule))
    return 0


_COMMANDS = {
    "validate": _cmd_validate,
    "import": _cmd_import,
    "export": _cmd_export,
    "expand": _cmd_expand,
    "describe": _cmd_describe,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Run the studycal CLI.

    Returns:
        Process exit status: 0 on success, 1 on invalid documents or unreadable input
    """
    parser = _create_parser()
    args = parser.parse_args(argv)
    configure_logging(debug_mode=args.debug)

    try:
        settings = ConfigManager(args.env_file).load_settings()
        return _COMMANDS[args.command](args, settings)
    except (OSError, json.JSONDecodeError, ValidationError, StudyCalError) as e:
        logger.error("%s failed: %s", args.command, e)
        return 1


if __name__ == "__main__":
    sys.exit(main())

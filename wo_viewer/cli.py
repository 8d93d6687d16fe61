from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

import pandas as pd

from wo_viewer import __version__ as TOOL_VERSION
from wo_viewer.config import CONFIG_ENV, DEFAULT_CONFIG_NAME, ConfigError, ViewerConfig, load_config, starter_config_text
from wo_viewer.contracts import TOOL_NAME, build_envelope
from wo_viewer.dates import coerce_iso_date
from wo_viewer.fields import DATE_FIELDS, FIELD_NAMES, FIELDS, field_spec
from wo_viewer.filters import FilterSpec
from wo_viewer.headers import build_header_map
from wo_viewer.loader import LoadError, load_table
from wo_viewer.models import WorkOrder
from wo_viewer.pivot import NO_DATED_ROWS, format_meta
from wo_viewer.session import WorkOrderSession
from wo_viewer.sorting import ASC, DESC

ROW_OUTPUT_FORMATS = {".csv", ".xlsx"}

EXIT_SUCCESS = 0
EXIT_COMMAND_ERROR = 1
EXIT_PARSE_FAILED = 2

# CLI flag -> categorical field
EQUALITY_FLAGS = {
    "status": "status",
    "type": "type",
    "department": "department",
    "assignee": "assigned_to",
}


class CliError(Exception):
    def __init__(self, message: str, code: int = EXIT_COMMAND_ERROR) -> None:
        super().__init__(message)
        self.code = code


class WoViewerArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:
        raise CliError(message, EXIT_COMMAND_ERROR)


def eprint(message: str) -> None:
    print(message, file=sys.stderr)


def emit_human(message: str, *, quiet: bool = False) -> None:
    if not quiet:
        eprint(message)


def json_dumps(payload: Any) -> str:
    return json.dumps(payload, indent=2, ensure_ascii=False, sort_keys=True)


def ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def write_text(path: Path, payload: str) -> None:
    ensure_parent(path)
    path.write_text(payload, encoding="utf-8")


def safe_output_path(path: Path) -> Path:
    if path.exists():
        raise CliError(f"Refusing to overwrite existing output: {path}", EXIT_COMMAND_ERROR)
    return path


def configure_logging(args: argparse.Namespace) -> None:
    if getattr(args, "verbose", False):
        level = logging.DEBUG
    elif getattr(args, "quiet", False):
        level = logging.ERROR
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, stream=sys.stderr, format="%(levelname)s %(name)s: %(message)s")


def classify_exception(exc: Exception) -> int:
    if isinstance(exc, CliError):
        return exc.code
    if isinstance(exc, (LoadError, ImportError, UnicodeDecodeError)):
        return EXIT_PARSE_FAILED
    return EXIT_COMMAND_ERROR


# ══════════════════════════════════════════════════════════════════════════════
# ARGUMENTS
# ══════════════════════════════════════════════════════════════════════════════

def add_common_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Work-order export (.csv/.tsv/.txt/.xlsx/.xlsm/.xls)")
    parser.add_argument("--sheet", dest="sheet_name", help="Workbook sheet name (default: first sheet)")
    parser.add_argument("--config", help=f"Config path (default: ${CONFIG_ENV} or ./{DEFAULT_CONFIG_NAME})")
    parser.add_argument("--json", action="store_true", help="Write machine JSON to stdout")
    parser.add_argument("-q", "--quiet", action="store_true", help="Minimal human logs")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")


def add_filter_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--search", default="", help="Keyword search across all text fields and dates")
    parser.add_argument("--status", help="Exact status")
    parser.add_argument("--type", help="Exact work type")
    parser.add_argument("--department", help="Exact department")
    parser.add_argument("--assignee", help="Exact assignee")
    parser.add_argument(
        "--column",
        action="append",
        default=[],
        metavar="FIELD=TEXT",
        help="Per-column substring filter; repeatable",
    )
    parser.add_argument("--date-field", dest="date_field", choices=list(DATE_FIELDS), help="Date field for the range and counts")
    parser.add_argument("--from", dest="date_from", help="Inclusive start date (MM/DD/YYYY or YYYY-MM-DD)")
    parser.add_argument("--to", dest="date_to", help="Inclusive end date (MM/DD/YYYY or YYYY-MM-DD)")
    parser.add_argument("--output", help="Write the table to a .csv or .xlsx file")


def build_parser() -> argparse.ArgumentParser:
    parser = WoViewerArgumentParser(prog=TOOL_NAME, description="Normalize, filter and count work-order exports.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    headers = subparsers.add_parser("headers", help="Show how the export's headers map to work-order fields.")
    add_common_arguments(headers)

    rows = subparsers.add_parser("rows", help="List normalized rows after filtering and sorting.")
    add_common_arguments(rows)
    add_filter_arguments(rows)
    rows.add_argument("--sort", dest="sort_field", choices=list(FIELD_NAMES), help="Sort field")
    rows.add_argument("--desc", action="store_true", help="Sort descending")

    pivot = subparsers.add_parser("pivot", help="Count work orders per assignee per date.")
    add_common_arguments(pivot)
    add_filter_arguments(pivot)

    config = subparsers.add_parser("config", help="Generate configuration.")
    config_subparsers = config.add_subparsers(dest="config_command", required=True)
    config_init = config_subparsers.add_parser("init", help="Write a starter config file.")
    config_init.add_argument("--path", default=DEFAULT_CONFIG_NAME, help="Config output path")

    subparsers.add_parser("version", help="Print version")
    return parser


def parse_column_filters(values: list[str]) -> dict[str, str]:
    columns: dict[str, str] = {}
    for item in values:
        name, sep, text = item.partition("=")
        name = name.strip()
        if not sep or not name:
            raise CliError(f"--column expects FIELD=TEXT, got '{item}'", EXIT_COMMAND_ERROR)
        try:
            field_spec(name)
        except ValueError as exc:
            raise CliError(str(exc), EXIT_COMMAND_ERROR) from None
        columns[name] = text
    return columns


def build_filter_spec(args: argparse.Namespace, config: ViewerConfig) -> FilterSpec:
    equals = {
        field_name: getattr(args, flag)
        for flag, field_name in EQUALITY_FLAGS.items()
        if getattr(args, flag)
    }
    try:
        return FilterSpec(
            keyword=args.search,
            equals=equals,
            columns=parse_column_filters(args.column),
            date_field=args.date_field or config.default_date_field,
            date_from=coerce_iso_date(args.date_from, config.date_order),
            date_to=coerce_iso_date(args.date_to, config.date_order),
        )
    except ValueError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from None


def load_cli_config(args: argparse.Namespace) -> ViewerConfig:
    try:
        return load_config(getattr(args, "config", None))
    except ConfigError as exc:
        raise CliError(str(exc), EXIT_COMMAND_ERROR) from None


def open_session(args: argparse.Namespace) -> WorkOrderSession:
    input_path = Path(args.input)
    if not input_path.exists():
        raise CliError(f"File not found: {input_path}", EXIT_COMMAND_ERROR)
    session = WorkOrderSession(load_cli_config(args))
    outcome = session.load_path(input_path, sheet_name=args.sheet_name)
    if not outcome.ok:
        raise CliError(outcome.message, EXIT_PARSE_FAILED)
    for warning in outcome.warnings:
        emit_human(f"Warning: {warning}", quiet=args.quiet)
    emit_human(outcome.message, quiet=args.quiet)
    return session


def output_path_for(args: argparse.Namespace) -> Path | None:
    if not getattr(args, "output", None):
        return None
    path = Path(args.output)
    if path.suffix.lower() not in ROW_OUTPUT_FORMATS:
        raise CliError("--output must end in .csv or .xlsx", EXIT_COMMAND_ERROR)
    return safe_output_path(path)


def write_frame(frame: pd.DataFrame, path: Path, *, index: bool) -> None:
    ensure_parent(path)
    if path.suffix.lower() == ".xlsx":
        frame.to_excel(path, index=index, engine="openpyxl")
    else:
        frame.to_csv(path, index=index)


# ══════════════════════════════════════════════════════════════════════════════
# RENDERING
# ══════════════════════════════════════════════════════════════════════════════

def rows_frame(records: list[WorkOrder]) -> pd.DataFrame:
    columns = [spec.title for spec in FIELDS]
    data = [[row[spec.name] for spec in FIELDS] for row in (record.display_dict() for record in records)]
    return pd.DataFrame(data, columns=columns)


def render_headers_text(table_format: str, resolution_payload: dict[str, Any]) -> str:
    lines = [f"{TOOL_NAME} headers", f"Format: {table_format}"]
    for match in resolution_payload["matches"]:
        if match["field"] is None:
            lines.append(f"  {match['header']!r} -> (unmapped)")
        else:
            lines.append(f"  {match['header']!r} -> {match['field']} [{match['strategy']}]")
    if resolution_payload["duplicates"]:
        lines.append("Ignored duplicates: " + ", ".join(resolution_payload["duplicates"]))
    if resolution_payload["missing_fields"]:
        lines.append("Missing fields: " + ", ".join(resolution_payload["missing_fields"]))
    return "\n".join(lines) + "\n"


def metrics_for(session: WorkOrderSession, shown: int) -> dict[str, Any]:
    return {
        "rows_loaded": len(session.dataset),
        "rows_dropped": session.dataset.dropped,
        "rows_shown": shown,
    }


# ══════════════════════════════════════════════════════════════════════════════
# COMMANDS
# ══════════════════════════════════════════════════════════════════════════════

def run_headers(args: argparse.Namespace) -> int:
    input_path = Path(args.input)
    if not input_path.exists():
        eprint(f"File not found: {input_path}")
        return EXIT_COMMAND_ERROR
    try:
        table = load_table(input_path, sheet_name=args.sheet_name)
        resolution = build_header_map(table.headers)
        payload = resolution.as_dict()
        if args.json:
            print(
                json_dumps(
                    {
                        **build_envelope(
                            "headers",
                            input_path,
                            metrics={
                                "columns": len(table.headers),
                                "mapped": len(resolution.mapping),
                                "unmapped": len(resolution.unmapped),
                            },
                            warnings=table.warnings,
                        ),
                        "headers": payload,
                    }
                )
            )
        else:
            print(render_headers_text(table.detected_format, payload).rstrip())
        if not resolution.recognized:
            emit_human("No recognizable headers found.", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_rows(args: argparse.Namespace) -> int:
    try:
        session = open_session(args)
        session.set_filters(build_filter_spec(args, session.config))
        session.set_sort(args.sort_field, DESC if args.desc else ASC)
        output_path = output_path_for(args)
        records = session.visible_rows()

        if output_path is not None:
            write_frame(rows_frame(records), output_path, index=False)
            emit_human(f"Rows written: {output_path}", quiet=args.quiet)
        if args.json:
            print(
                json_dumps(
                    {
                        **build_envelope(
                            "rows",
                            Path(args.input),
                            output_path=output_path,
                            metrics=metrics_for(session, len(records)),
                            warnings=list(session.dataset.warnings),
                        ),
                        "filters": session.filters.as_dict(),
                        "sort": {"field": session.sort_field, "direction": session.sort_direction},
                        "rows": [record.as_dict() for record in records],
                    }
                )
            )
        elif output_path is None:
            if records:
                print(rows_frame(records).to_string(index=False))
            emit_human(f"Rows shown: {len(records)}", quiet=args.quiet)
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_pivot(args: argparse.Namespace) -> int:
    try:
        session = open_session(args)
        session.set_filters(build_filter_spec(args, session.config))
        output_path = output_path_for(args)
        result = session.pivot()
        meta = session.pivot_meta()

        if output_path is not None:
            write_frame(result.to_frame(), output_path, index=True)
            emit_human(f"Counts written: {output_path}", quiet=args.quiet)
        if args.json:
            print(
                json_dumps(
                    {
                        **build_envelope(
                            "pivot",
                            Path(args.input),
                            output_path=output_path,
                            metrics=metrics_for(session, result.rows_in),
                            warnings=list(session.dataset.warnings),
                        ),
                        "filters": session.filters.as_dict(),
                        "meta": meta,
                        "pivot": result.as_dict(),
                    }
                )
            )
        elif output_path is None:
            print(format_meta(meta))
            print("")
            if result.is_empty:
                print(NO_DATED_ROWS)
            else:
                print(result.to_frame().to_string())
        return EXIT_SUCCESS
    except Exception as exc:
        eprint(str(exc))
        return classify_exception(exc)


def run_config_init(args: argparse.Namespace) -> int:
    config_path = Path(args.path)
    if config_path.exists():
        eprint(f"Refusing to overwrite existing config: {config_path}")
        return EXIT_COMMAND_ERROR
    if config_path.suffix.lower() != ".json":
        eprint("Config path must end in .json")
        return EXIT_COMMAND_ERROR
    write_text(config_path, starter_config_text())
    emit_human(f"Config written: {config_path}")
    return EXIT_SUCCESS


def run_version() -> int:
    print(TOOL_VERSION)
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    try:
        parser = build_parser()
        args = parser.parse_args(argv)
        configure_logging(args)
        if args.command == "headers":
            return run_headers(args)
        if args.command == "rows":
            return run_rows(args)
        if args.command == "pivot":
            return run_pivot(args)
        if args.command == "config":
            if args.config_command == "init":
                return run_config_init(args)
        if args.command == "version":
            return run_version()
        raise CliError(f"Unknown command: {args.command}", EXIT_COMMAND_ERROR)
    except CliError as exc:
        eprint(str(exc))
        return exc.code


if __name__ == "__main__":
    raise SystemExit(main())

"""CLI entry point for Workbook Summary.

Orchestrates the full pipeline: workbook loading, sheet selection,
normalization, aggregation, executive evaluation, export QA and writing.

Usage::

    # List the sheets of a workbook
    python -m workbook_summary.cli sheets --input data/outreach.xlsx

    # Per-client summary (plus executive block when an AM sheet exists)
    python -m workbook_summary.cli generate \\
        --input data/outreach.xlsx \\
        --sheets "Week 1" "Week 2" \\
        --view summary --date 2026-10-14 \\
        --output output/workbook_summary.csv

    # Detail rows for one client, each client followed by its summary row
    python -m workbook_summary.cli generate \\
        --input data/outreach.xlsx --view detail \\
        --client "Acme" --client-summaries

    # Check an existing export
    python -m workbook_summary.cli validate --csv output/workbook_summary.csv

    # List clients found in the selected sheets
    python -m workbook_summary.cli clients --input data/outreach.xlsx
"""

import argparse
import datetime
import sys
from pathlib import Path

from workbook_summary.processor.aggregator import client_names
from workbook_summary.processor.exporter import write_export
from workbook_summary.processor.ingestion import (
    SelectionError,
    WorkbookError,
    data_sheet_names,
    find_am_sheet,
    load_workbook,
)
from workbook_summary.processor.pipeline import AnalysisContext, SummaryPipeline
from workbook_summary.qa.validator import ExportValidator, validate_export_file
from workbook_summary.schema.design_system import (
    METRIC_DESCRIPTIONS,
    format_column_name,
    format_metric,
)
from workbook_summary.schema.loader import load_config
from workbook_summary.schema.models import BASE_METRICS, DERIVED_METRICS, Flag


# ---------------------------------------------------------------------------
# Config and workbook loading
# ---------------------------------------------------------------------------

def _load_config(args):
    """Load a PipelineConfig from --config (defaults when omitted)."""
    path = getattr(args, "config", None)
    if path:
        p = Path(path)
        if not p.exists():
            _error(f"Config file not found: {p}")
        return load_config(p)
    return load_config(None)


def _load_workbook(args, config):
    """Load the --input workbook, exiting on a missing or corrupt file."""
    path = Path(args.input)
    if not path.exists():
        _error(f"Input file not found: {path}")
    _info(f"Reading {path}")
    try:
        return load_workbook(path, max_rows=config.max_rows)
    except WorkbookError as exc:
        _error(str(exc))


def _selected_sheets(args, workbook, config):
    """Sheets from --sheets, or every sheet except the AM sheet."""
    if getattr(args, "sheets", None):
        return list(args.sheets)
    return data_sheet_names(workbook, config)


def _parse_date(value):
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(
            f"Invalid date {value!r}; expected YYYY-MM-DD")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_sheets(args):
    """List the sheets in a workbook."""
    config = _load_config(args)
    workbook = _load_workbook(args, config)
    am = find_am_sheet(workbook, config)
    for name in workbook.sheet_names:
        rows = len(workbook.sheets[name])
        marker = " (targets)" if name == am else ""
        print(f"  {name}{marker}: {rows} row(s)")


def cmd_clients(args):
    """List distinct clients in the selected sheets."""
    config = _load_config(args)
    workbook = _load_workbook(args, config)
    pipeline = SummaryPipeline(config)
    try:
        result = pipeline.run(workbook, _selected_sheets(args, workbook, config))
    except SelectionError as exc:
        _error(str(exc))
    for name in client_names(result.rows):
        print(f"  {name}")


def cmd_generate(args):
    """Run the pipeline and write the export."""
    config = _load_config(args)
    workbook = _load_workbook(args, config)
    sheets = _selected_sheets(args, workbook, config)
    _info(f"Sheets: {', '.join(sheets) if sheets else '(none)'}")

    context = AnalysisContext(
        reference_date=args.date,
        selected_client=args.client,
        view=args.view,
        include_client_summaries=args.client_summaries,
    )

    pipeline = SummaryPipeline(config)
    try:
        result = pipeline.run(workbook, sheets, context)
    except SelectionError as exc:
        _error(str(exc))

    for w in result.warnings:
        _warn(w)

    _info(f"Rows: {len(result.rows)} normalized, "
          f"{len(result.filtered_rows)} after client filter, "
          f"{len(result.client_summaries)} client group(s)")
    if result.roles.client_field:
        _info(f"Client column: {result.roles.client_field}")

    _print_cards(result.totals)
    if result.has_executive:
        _print_executive(result.executive_rows)

    # QA validation
    if not args.skip_qa:
        _info("Running export QA...")
        qa_result = ExportValidator(config).validate(result.export_blocks)
        if qa_result.passed:
            _info(qa_result.summary())
        else:
            _warn(qa_result.summary())
            if args.verbose:
                print(qa_result.report(), file=sys.stderr)
            if not args.force:
                _error("Export QA failed. Use --force to write anyway, "
                       "or --skip-qa to skip validation.")
    else:
        _info("Export QA skipped (--skip-qa)")

    rows = result.export_rows
    if not rows:
        _warn("Nothing to export")
        return
    output = write_export(rows, args.output, config)
    _info(f"Written: {output} ({len(rows)} row(s))")


def cmd_validate(args):
    """Validate an existing export file."""
    config = _load_config(args)
    path = Path(args.csv)
    if not path.exists():
        _error(f"Export file not found: {path}")
    _info(f"Validating {path}")
    try:
        qa_result = validate_export_file(path, config)
    except WorkbookError as exc:
        _error(str(exc))
    print(qa_result.report())
    sys.exit(0 if qa_result.passed else 1)


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------

def _print_cards(totals):
    """Print the summary cards for the filtered data."""
    if totals is None:
        _warn("No rows to summarize")
        return
    print("Summary of filtered data")
    for key in (*BASE_METRICS, *DERIVED_METRICS):
        label = format_column_name(key)
        value = format_metric(key, getattr(totals, key))
        desc = METRIC_DESCRIPTIONS.get(key)
        line = f"  {label:<24} {value:>14}"
        if desc:
            line += f"   ({desc})"
        print(line)


def _print_executive(rows):
    """Print the executive table with target flags."""
    print()
    print("Executive summary")
    for row in rows:
        marker = {Flag.RED: "!!", Flag.GREEN: "ok"}.get(row.flag, "  ")
        target_pct = row.target_percent_display or "-"
        print(f"  [{marker}] {row.client_name:<30} "
              f"unique sent {format_metric('unique_sent_count', row.unique_sent_count):>10}  "
              f"target % {target_pct:>8}  AM {row.account_manager or '-'}")


def _info(msg):
    print(f"  {msg}", file=sys.stderr)


def _warn(msg):
    print(f"  WARNING: {msg}", file=sys.stderr)


def _error(msg):
    print(f"  ERROR: {msg}", file=sys.stderr)
    sys.exit(1)


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def build_parser():
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="workbook-summary",
        description="Summarize outreach workbooks into per-client metrics.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # ---- sheets ----
    sh = subparsers.add_parser(
        "sheets",
        help="List the sheets in a workbook.",
    )
    _add_input_args(sh, with_sheets=False)
    sh.set_defaults(func=cmd_sheets)

    # ---- clients ----
    cl = subparsers.add_parser(
        "clients",
        help="List distinct clients in the selected sheets.",
    )
    _add_input_args(cl)
    cl.set_defaults(func=cmd_clients)

    # ---- generate ----
    gen = subparsers.add_parser(
        "generate",
        help="Aggregate the selected sheets and write the export.",
    )
    _add_input_args(gen)
    gen.add_argument(
        "--view",
        choices=["detail", "summary", "executive"],
        default="summary",
        help="Which rows to export (default: summary).",
    )
    gen.add_argument(
        "--client",
        help="Restrict the view to a single client.",
    )
    gen.add_argument(
        "--date",
        type=_parse_date,
        default=datetime.date.today(),
        help="Reference date for the target rules (default: today).",
    )
    gen.add_argument(
        "--client-summaries",
        dest="client_summaries",
        action="store_true",
        default=False,
        help="Follow each client's detail rows with a '<Client> - Summary' row.",
    )
    gen.add_argument(
        "-o", "--output",
        default=None,
        help="Output file (.csv or .xlsx; default: workbook_summary.csv).",
    )
    gen.add_argument(
        "--skip-qa",
        action="store_true",
        default=False,
        help="Skip export QA before writing.",
    )
    gen.add_argument(
        "--force",
        action="store_true",
        default=False,
        help="Write output even if export QA fails.",
    )
    gen.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Show detailed output (full QA report on failure).",
    )
    gen.set_defaults(func=cmd_generate)

    # ---- validate ----
    val = subparsers.add_parser(
        "validate",
        help="Validate an existing export file.",
    )
    val.add_argument(
        "--csv",
        required=True,
        help="Path to the export (.csv or .xlsx) to validate.",
    )
    _add_config_arg(val)
    val.set_defaults(func=cmd_validate)

    return parser


def _add_config_arg(parser):
    parser.add_argument(
        "--config",
        help="Path to a YAML pipeline config.",
    )


def _add_input_args(parser, with_sheets=True):
    """Add --input / --sheets / --config args to a subparser."""
    parser.add_argument(
        "-i", "--input",
        required=True,
        help="Source workbook (.csv, .xlsx, .xlsm, .xls).",
    )
    if with_sheets:
        parser.add_argument(
            "--sheets",
            nargs="+",
            help="Sheets to read (default: all except the AM sheet).",
        )
    _add_config_arg(parser)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None):
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()

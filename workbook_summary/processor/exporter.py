"""Export row building and file writing.

``build_export_blocks`` decides exactly which rows a view exports, grouped
into named blocks (detail, summary, executive). ``build_export_rows``
flattens the blocks into the row list that ``write_export`` serializes to
``workbook_summary.csv`` or to a single-sheet ``Summary`` workbook.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import pandas as pd

from workbook_summary.schema.models import (
    AM_COLUMNS,
    ColumnRoles,
    MetricRow,
    PipelineConfig,
    ViewKind,
)

from .aggregator import GROUP_BY_CLIENT, aggregate, client_key
from .executive import evaluate_executive


EXPORT_SHEET_NAME = "Summary"

BLOCK_DETAIL = "detail"
BLOCK_SUMMARY = "summary"
BLOCK_EXECUTIVE = "executive"


@dataclass
class ExportBlock:
    """A contiguous run of exported rows at one aggregation level."""
    name: str
    rows: list[dict[str, Any]] = field(default_factory=list)
    client_field: str | None = None
    summary_labels: bool = False   # Block contains synthesized "<Client> - Summary" rows


def summary_label(client: str | None, config: PipelineConfig | None = None) -> str:
    """Label for a synthesized client summary row, e.g. ``"Acme - Summary"``."""
    config = config or PipelineConfig()
    return f"{client or config.unknown_client}{config.summary_suffix}"


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------

def _detail_block(filtered_rows, roles: ColumnRoles, config: PipelineConfig,
                  include_client_summaries: bool) -> ExportBlock:
    kept = [
        r for r in filtered_rows
        if not r.is_summary and r.unique_sent_count > config.detail_min_unique_sent
    ]
    kept.sort(key=lambda r: client_key(r, config).lower())  # stable within a client

    block = ExportBlock(BLOCK_DETAIL, client_field=roles.client_field,
                        summary_labels=include_client_summaries)
    if not include_client_summaries or not roles.has_client:
        block.rows = [r.to_record(roles) for r in kept]
        return block

    groups: dict[str, list[MetricRow]] = {}
    for row in kept:
        groups.setdefault(client_key(row, config), []).append(row)
    for key, members in groups.items():
        block.rows.extend(r.to_record(roles) for r in members)
        summary = aggregate(members, roles, GROUP_BY_CLIENT, config)[0]
        block.rows.append(summary.to_record(roles, client_label=summary_label(key, config)))
    return block


def _summary_block(filtered_rows, roles: ColumnRoles,
                   config: PipelineConfig) -> ExportBlock:
    summaries = aggregate(filtered_rows, roles, GROUP_BY_CLIENT, config, sort=True)
    return ExportBlock(
        BLOCK_SUMMARY,
        rows=[s.to_record(roles) for s in summaries],
        client_field=roles.client_field,
    )


def _executive_block(full_dataset, roles: ColumnRoles, targets, reference_date,
                     config: PipelineConfig) -> ExportBlock:
    client_field = roles.client_field or "client_name"
    aggregates = aggregate(full_dataset, roles, GROUP_BY_CLIENT, config)
    rows = evaluate_executive(aggregates, targets, reference_date, config)
    return ExportBlock(
        BLOCK_EXECUTIVE,
        rows=[r.to_record(client_field) for r in rows],
        client_field=client_field,
    )


def build_export_blocks(view, filtered_rows, full_dataset, roles: ColumnRoles,
                        selected_client: str | None = None, targets=None,
                        reference_date=None, include_client_summaries: bool = False,
                        config: PipelineConfig | None = None) -> list[ExportBlock]:
    """Build the export blocks for *view*.

    Args:
        view: ``ViewKind`` (or its string value).
        filtered_rows: Normalized rows after the client filter.
        full_dataset: All normalized rows (used for the executive block).
        roles: Column roles for the dataset.
        selected_client: The client filter, if any.
        targets: Target records from the AM sheet, or None when there is
            no AM sheet.
        reference_date: Date used for the weekday threshold rules.
        include_client_summaries: Follow each client's detail rows with a
            synthesized ``"<Client> - Summary"`` row.

    Raises:
        ValueError: If the executive view is requested without targets or a
            reference date, or if *view* is not recognized.
    """
    config = config or PipelineConfig()
    view = ViewKind(view)
    filtered_rows = list(filtered_rows)
    full_dataset = list(full_dataset)

    if view is ViewKind.DETAIL:
        blocks = [_detail_block(filtered_rows, roles, config, include_client_summaries)]
    elif view is ViewKind.SUMMARY:
        blocks = [_summary_block(filtered_rows, roles, config)]
        if targets and roles.has_client and selected_client is None and reference_date is not None:
            blocks.append(_executive_block(full_dataset, roles, targets,
                                           reference_date, config))
    else:
        if targets is None or reference_date is None:
            raise ValueError("Executive view needs AM targets and a reference date")
        if not roles.has_client:
            raise ValueError("Executive view needs a client column")
        blocks = [_executive_block(full_dataset, roles, targets, reference_date, config)]

    _apply_am_column_rule(blocks)
    return blocks


def _apply_am_column_rule(blocks: list[ExportBlock]) -> None:
    """Strip AM columns from every row unless some exported row carries ``AM``."""
    has_am = any("AM" in row for block in blocks for row in block.rows)
    if has_am:
        return
    for block in blocks:
        block.rows = [{k: v for k, v in row.items() if k not in AM_COLUMNS}
                      for row in block.rows]


def build_export_rows(view, filtered_rows, full_dataset, roles: ColumnRoles,
                      selected_client: str | None = None, targets=None,
                      reference_date=None, include_client_summaries: bool = False,
                      config: PipelineConfig | None = None) -> list[dict[str, Any]]:
    """Exactly the rows to serialize for *view* (see :func:`build_export_blocks`)."""
    blocks = build_export_blocks(
        view, filtered_rows, full_dataset, roles,
        selected_client=selected_client, targets=targets,
        reference_date=reference_date,
        include_client_summaries=include_client_summaries, config=config,
    )
    return [row for block in blocks for row in block.rows]


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def export_columns(rows) -> list[str]:
    """Union of row keys in order of first appearance."""
    columns: dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)


def rows_to_frame(rows) -> pd.DataFrame:
    """Rows as a DataFrame; keys missing from a row become empty cells."""
    columns = export_columns(rows)
    return pd.DataFrame([{c: row.get(c, "") for c in columns} for row in rows],
                        columns=columns)


def write_export(rows, path: str | Path | None = None,
                 config: PipelineConfig | None = None) -> Path:
    """Write export rows to CSV (default) or to an Excel ``Summary`` sheet.

    Returns the path written.
    """
    config = config or PipelineConfig()
    path = Path(path) if path is not None else Path(config.export_filename)
    if path.is_dir():
        path = path / config.export_filename
    path.parent.mkdir(parents=True, exist_ok=True)

    df = rows_to_frame(rows)
    if path.suffix.lower() in (".xlsx", ".xlsm"):
        df.to_excel(path, sheet_name=EXPORT_SHEET_NAME, index=False, engine="openpyxl")
    else:
        df.to_csv(path, index=False)
    return path

"""Pipeline orchestration for Workbook Summary.

Runs the stages in order for one analysis session:

    workbook sheets -> extract rows -> sniff columns -> normalize + derive
        -> low-volume filter -> client filter -> aggregate
        -> executive (optional) -> export rows

Usage::

    from workbook_summary.processor.ingestion import load_workbook
    from workbook_summary.processor.pipeline import AnalysisContext, SummaryPipeline

    workbook = load_workbook("outreach.xlsx")
    pipeline = SummaryPipeline()
    result = pipeline.run(workbook, ["Week 1", "Week 2"],
                          AnalysisContext(reference_date=date(2026, 10, 14)))
    print(result.warnings)
    rows = result.export_rows
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from workbook_summary.schema.models import (
    ColumnRoles,
    ExecutiveRow,
    MetricRow,
    PipelineConfig,
    TargetRecord,
    ViewKind,
)

from .aggregator import GROUP_BY_CLIENT, aggregate, filter_by_client, summary_totals
from .executive import evaluate_executive
from .exporter import ExportBlock, build_export_blocks
from .ingestion import Workbook, extract_sheet_rows, find_am_sheet, load_targets
from .normalizer import drop_low_volume, normalize_rows


# ---------------------------------------------------------------------------
# Context and result
# ---------------------------------------------------------------------------

@dataclass
class AnalysisContext:
    """User choices for one run."""
    reference_date: Any = field(default_factory=date.today)
    selected_client: str | None = None
    view: ViewKind = ViewKind.SUMMARY
    include_client_summaries: bool = False

    def __post_init__(self):
        self.view = ViewKind(self.view)


@dataclass
class PipelineResult:
    """Output of :meth:`SummaryPipeline.run`."""
    roles: ColumnRoles
    rows: list[MetricRow]                  # normalized rows above the volume floor
    filtered_rows: list[MetricRow]         # after the client filter
    client_summaries: list[MetricRow]      # one per client, alphabetical
    totals: MetricRow | None               # summary card totals of filtered rows
    targets: list[TargetRecord] | None     # None when there is no AM sheet
    executive_rows: list[ExecutiveRow]
    export_blocks: list[ExportBlock]
    warnings: list[str] = field(default_factory=list)

    @property
    def export_rows(self) -> list[dict[str, Any]]:
        return [row for block in self.export_blocks for row in block.rows]

    @property
    def has_executive(self) -> bool:
        return bool(self.executive_rows)


# ---------------------------------------------------------------------------
# SummaryPipeline
# ---------------------------------------------------------------------------

class SummaryPipeline:
    """Run the aggregation pipeline over a loaded workbook.

    Args:
        config: Pipeline configuration (defaults when omitted).
    """

    def __init__(self, config: PipelineConfig | None = None):
        self.config = config or PipelineConfig()

    def run(self, workbook: Workbook | None, selected_sheets,
            context: AnalysisContext | None = None) -> PipelineResult:
        """Process *selected_sheets* of *workbook*.

        Raises:
            SelectionError: If no workbook is loaded or no sheet is selected.
        """
        context = context or AnalysisContext()
        config = self.config
        warnings: list[str] = []

        extraction = extract_sheet_rows(workbook, selected_sheets, config)
        warnings.extend(extraction.warnings)

        normalized = normalize_rows(extraction.rows, config=config)
        warnings.extend(normalized.warnings)
        roles = normalized.roles
        rows, dropped = drop_low_volume(normalized.rows, roles, config)
        if dropped:
            warnings.append(
                f"Skipped {dropped} row(s) with unique_sent_count below "
                f"{config.min_unique_sent:g}"
            )

        if not roles.has_client:
            warnings.append("No client column found; summarizing all rows as one group")

        filtered = filter_by_client(rows, context.selected_client)
        client_summaries = aggregate(rows, roles, GROUP_BY_CLIENT, config, sort=True)

        targets = load_targets(workbook, config)
        if targets is None:
            warnings.append(
                f'No "{config.am_sheet_name}" sheet found; executive view disabled'
            )
        elif find_am_sheet(workbook, config) in selected_sheets:
            warnings.append(
                f'Sheet "{find_am_sheet(workbook, config)}" holds targets and was '
                f'also read as data'
            )

        executive_rows: list[ExecutiveRow] = []
        if targets and roles.has_client and context.selected_client is None:
            executive_rows = evaluate_executive(
                client_summaries, targets, context.reference_date, config)

        if context.view is ViewKind.EXECUTIVE and not executive_rows:
            warnings.append("Executive view has no rows; exporting the summary view")
            view = ViewKind.SUMMARY
        else:
            view = context.view

        blocks = build_export_blocks(
            view, filtered, rows, roles,
            selected_client=context.selected_client,
            targets=targets,
            reference_date=context.reference_date,
            include_client_summaries=context.include_client_summaries,
            config=config,
        )

        return PipelineResult(
            roles=roles,
            rows=rows,
            filtered_rows=filtered,
            client_summaries=client_summaries,
            totals=summary_totals(filtered, roles, config),
            targets=targets,
            executive_rows=executive_rows,
            export_blocks=blocks,
            warnings=warnings,
        )

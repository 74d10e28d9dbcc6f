"""QA validator - checks export rows before (or after) they are written.

Validates that an export honours its contract: derived metrics agree with
the base counts they were computed from, the no-positive-reply sentinel
appears exactly when there are no positive replies, no client appears
twice inside an aggregate block, and source summary rows have not leaked
into the export.

Usage::

    from workbook_summary.qa.validator import ExportValidator

    validator = ExportValidator(config)
    result = validator.validate(pipeline_result.export_blocks)
    assert result.passed, result.summary()
"""

import math
from dataclasses import dataclass, field
from typing import Any

from workbook_summary.processor.exporter import (
    BLOCK_EXECUTIVE,
    BLOCK_SUMMARY,
    ExportBlock,
)
from workbook_summary.processor.ingestion import load_workbook, parse_numeric
from workbook_summary.processor.metrics import compute_derived
from workbook_summary.processor.normalizer import find_client_field
from workbook_summary.schema.models import (
    AM_COLUMNS,
    PERCENT_METRICS,
    PipelineConfig,
)


TOLERANCE = 0.01


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass
class Issue:
    """A single QA issue found during validation."""
    severity: str       # "error" or "warning"
    block: str          # block name, "" for export-level issues
    row_index: int      # -1 for block-level issues
    category: str       # e.g. "derived_mismatch", "duplicate_client"
    message: str

    def __str__(self) -> str:
        loc = self.block or "export"
        if self.row_index >= 0:
            loc += f" row {self.row_index}"
        return f"[{self.severity.upper()}] {loc}: {self.message}"


@dataclass
class QAResult:
    """Aggregated result of QA validation."""
    issues: list[Issue] = field(default_factory=list)

    @property
    def errors(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "error"]

    @property
    def warnings(self) -> list[Issue]:
        return [i for i in self.issues if i.severity == "warning"]

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def warning_count(self) -> int:
        return len(self.warnings)

    def summary(self) -> str:
        """One-line summary string."""
        status = "PASS" if self.passed else "FAIL"
        return (
            f"QA {status}: {self.error_count} error(s), "
            f"{self.warning_count} warning(s)"
        )

    def report(self) -> str:
        """Multi-line report of all issues."""
        lines = [self.summary()]
        for issue in self.issues:
            lines.append(f"  {issue}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def _close(a: float, b: float) -> bool:
    return abs(a - b) <= TOLERANCE


# ---------------------------------------------------------------------------
# ExportValidator
# ---------------------------------------------------------------------------

class ExportValidator:
    """Validates export blocks against the export contract.

    Parameters
    ----------
    config : PipelineConfig
        The configuration the export was built with.
    """

    def __init__(self, config: PipelineConfig | None = None) -> None:
        self.config = config or PipelineConfig()

    def validate(self, blocks: list[ExportBlock]) -> QAResult:
        """Run all checks over *blocks*."""
        result = QAResult()
        for block in blocks:
            for idx, row in enumerate(block.rows):
                self._check_derived(block.name, idx, row, result)
            self._check_summary_leak(block, result)
            if block.name in (BLOCK_SUMMARY, BLOCK_EXECUTIVE):
                self._check_duplicates(block, result)
        self._check_am_columns(blocks, result)
        return result

    # ---- checks ----

    def _check_derived(self, block: str, idx: int, row: dict,
                       result: QAResult) -> None:
        """Derived metrics must match the base counts on the same row."""
        if "rr" not in row:
            return
        expected = compute_derived({str(k).lower(): v for k, v in row.items()},
                                   self.config)
        sentinel = self.config.no_positive_sentinel

        for key in PERCENT_METRICS:
            if key not in row:
                continue
            actual = parse_numeric(row[key])
            if math.isnan(actual):
                result.issues.append(Issue(
                    "error", block, idx, "derived_invalid",
                    f"{key} is not numeric: {row[key]!r}",
                ))
            elif not _close(actual, expected[key]):
                result.issues.append(Issue(
                    "error", block, idx, "derived_mismatch",
                    f"{key} is {actual:.4f}, base counts give {expected[key]:.4f}",
                ))

        leads = row.get("unique_leads_per_positive")
        if leads is None:
            return
        if expected["unique_leads_per_positive"] == sentinel:
            if leads != sentinel:
                result.issues.append(Issue(
                    "error", block, idx, "sentinel",
                    f"unique_leads_per_positive should be {sentinel!r} "
                    f"with no positive replies, got {leads!r}",
                ))
        else:
            actual = parse_numeric(leads)
            if math.isnan(actual) or not _close(actual, expected["unique_leads_per_positive"]):
                result.issues.append(Issue(
                    "error", block, idx, "derived_mismatch",
                    f"unique_leads_per_positive is {leads!r}, base counts give "
                    f"{expected['unique_leads_per_positive']:.4f}",
                ))

    def _check_summary_leak(self, block: ExportBlock, result: QAResult) -> None:
        """Summary-labelled rows only belong in blocks that synthesize them."""
        if block.summary_labels or not block.client_field:
            return
        suffix = self.config.summary_suffix
        for idx, row in enumerate(block.rows):
            value = row.get(block.client_field)
            if isinstance(value, str) and value.endswith(suffix):
                result.issues.append(Issue(
                    "error", block.name, idx, "summary_leak",
                    f"Row labelled {value!r} is a summary row",
                ))

    def _check_duplicates(self, block: ExportBlock, result: QAResult) -> None:
        """No client may appear twice within an aggregate block."""
        if not block.client_field:
            return
        seen: dict[str, int] = {}
        for idx, row in enumerate(block.rows):
            client = str(row.get(block.client_field, ""))
            if client in seen:
                result.issues.append(Issue(
                    "error", block.name, idx, "duplicate_client",
                    f"Client {client!r} already appears at row {seen[client]}",
                ))
            else:
                seen[client] = idx

    def _check_am_columns(self, blocks: list[ExportBlock],
                          result: QAResult) -> None:
        """AM columns without any AM value are noise."""
        rows = [row for block in blocks for row in block.rows]
        if not any(col in row for row in rows for col in AM_COLUMNS):
            return
        if all(_is_blank(row.get("AM")) for row in rows):
            result.issues.append(Issue(
                "warning", "", -1, "am_columns",
                "AM columns are present but no row has an account manager",
            ))


def validate_export_file(path, config: PipelineConfig | None = None) -> QAResult:
    """Re-import an exported CSV/workbook and run the per-row checks."""
    config = config or PipelineConfig()
    workbook = load_workbook(path)
    validator = ExportValidator(config)
    result = QAResult()
    for name, df in workbook.sheets.items():
        rows = df.to_dict(orient="records")
        client_field = find_client_field([str(c) for c in df.columns])
        block = ExportBlock(name, rows=rows, client_field=client_field,
                            summary_labels=True)
        result.issues.extend(validator.validate([block]).issues)
    return result

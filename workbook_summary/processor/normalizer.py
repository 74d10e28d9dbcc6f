"""Row normalization for Workbook Summary.

Turns raw sheet rows (field -> string/number) into typed :class:`MetricRow`
records. Column roles are resolved once per dataset by
:func:`sniff_columns` and handed to every downstream stage, so the
"which column is the client" question is never re-answered ad hoc.
"""

import math
from dataclasses import dataclass, field

from workbook_summary.schema.models import (
    AM_COLUMNS,
    BASE_METRICS,
    DERIVED_METRICS,
    ColumnRoles,
    MetricRow,
    PipelineConfig,
)

from .ingestion import coerce_count, is_empty, parse_numeric
from .metrics import derive_metrics


# ---------------------------------------------------------------------------
# Schema sniffing
# ---------------------------------------------------------------------------

def ordered_columns(raw_rows) -> list[str]:
    """Union of row keys in order of first appearance."""
    seen: dict[str, None] = {}
    for row in raw_rows:
        for key in row:
            seen.setdefault(key, None)
    return list(seen)


def find_client_field(columns) -> str | None:
    """First column whose name contains "client" (case-insensitive)."""
    for col in columns:
        if "client" in col.lower():
            return col
    return None


def _is_numeric_value(value) -> bool:
    if isinstance(value, bool):
        return False
    return not math.isnan(parse_numeric(value))


def find_numeric_columns(raw_rows, columns, config: PipelineConfig | None = None) -> list[str]:
    """Passthrough columns that hold numbers.

    A column qualifies when it is listed in ``numeric_fields`` or when every
    non-empty value it has parses as a number. Client, base metric, derived
    metric and AM sheet columns never qualify.
    """
    config = config or PipelineConfig()
    skip = {*BASE_METRICS, *DERIVED_METRICS, *(c.lower() for c in AM_COLUMNS)}
    client_field = find_client_field(columns)

    numeric = []
    for col in columns:
        if col == client_field or col.lower() in skip:
            continue
        if config.is_numeric_field(col):
            numeric.append(col)
            continue
        values = [row[col] for row in raw_rows if col in row and not is_empty(row[col])]
        if values and all(_is_numeric_value(v) for v in values):
            numeric.append(col)
    return numeric


def sniff_columns(raw_rows, config: PipelineConfig | None = None) -> ColumnRoles:
    """Resolve the column-role mapping for a dataset.

    Excluded columns are dropped from the column list. Base metrics are
    matched to source columns case-insensitively (first match wins).
    """
    config = config or PipelineConfig()
    raw_rows = list(raw_rows)
    columns = [c for c in ordered_columns(raw_rows) if not config.is_excluded_field(c)]

    metric_columns: dict[str, str] = {}
    for col in columns:
        name = col.lower()
        if name in BASE_METRICS and name not in metric_columns:
            metric_columns[name] = col

    return ColumnRoles(
        columns=tuple(columns),
        client_field=find_client_field(columns),
        metric_columns=metric_columns,
        numeric_columns=tuple(find_numeric_columns(raw_rows, columns, config)),
    )


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

@dataclass
class NormalizationResult:
    """Normalized rows plus the roles they were normalized against."""
    rows: list[MetricRow]
    roles: ColumnRoles
    dropped_empty: int = 0
    dropped_summary: int = 0
    warnings: list[str] = field(default_factory=list)


def is_summary_label(value, config: PipelineConfig | None = None) -> bool:
    """True for client values like ``"Acme - Summary"``."""
    config = config or PipelineConfig()
    return isinstance(value, str) and value.endswith(config.summary_suffix)


def normalize_row(raw: dict, roles: ColumnRoles,
                  config: PipelineConfig | None = None) -> MetricRow:
    """Build a :class:`MetricRow` from one raw row (no filtering, no derivation).

    Derived metric columns already present in the source are dropped; they
    are always recomputed from the base counts.
    """
    config = config or PipelineConfig()
    metric_by_column = {col: name for name, col in roles.metric_columns.items()}

    client = None
    values: dict[str, float] = {}
    extras: dict = {}
    for key, value in raw.items():
        if config.is_excluded_field(key) or key.lower() in DERIVED_METRICS:
            continue
        if key == roles.client_field:
            client = None if is_empty(value) else str(value)
        elif key in metric_by_column:
            values[metric_by_column[key]] = coerce_count(value)
        elif key in roles.numeric_columns:
            extras[key] = coerce_count(value)
        else:
            extras[key] = value

    return MetricRow(client=client, extras=extras, **values)


def normalize_rows(raw_rows, roles: ColumnRoles | None = None,
                   config: PipelineConfig | None = None,
                   derive: bool = True) -> NormalizationResult:
    """Normalize raw rows into typed, metric-derived rows.

    - Rows with every value empty are discarded.
    - Rows whose client value ends with the summary suffix are discarded
      (they are summaries already present in the source sheet).
    - Numeric fields are coerced; unparsable values become 0.
    - Excluded fields are dropped.
    - Input order is preserved.
    """
    config = config or PipelineConfig()
    raw_rows = list(raw_rows)
    if roles is None:
        roles = sniff_columns(raw_rows, config)

    result = NormalizationResult(rows=[], roles=roles)
    for raw in raw_rows:
        if all(is_empty(v) for v in raw.values()):
            result.dropped_empty += 1
            continue
        if roles.client_field and is_summary_label(raw.get(roles.client_field), config):
            result.dropped_summary += 1
            continue
        row = normalize_row(raw, roles, config)
        result.rows.append(derive_metrics(row, config) if derive else row)

    if result.dropped_summary:
        result.warnings.append(
            f"Skipped {result.dropped_summary} pre-existing summary row(s)"
        )
    return result


def drop_low_volume(rows, roles: ColumnRoles,
                    config: PipelineConfig | None = None) -> tuple[list[MetricRow], int]:
    """Drop rows whose ``unique_sent_count`` is below ``min_unique_sent``.

    Returns the kept rows and the number dropped. Datasets without a
    unique sent column are returned unchanged.
    """
    config = config or PipelineConfig()
    rows = list(rows)
    if "unique_sent_count" not in roles.metric_columns:
        return rows, 0
    kept = [r for r in rows if r.unique_sent_count >= config.min_unique_sent]
    return kept, len(rows) - len(kept)

"""Client aggregation.

Groups normalized rows by client (or into one overall group), sums the
base counts and every other numeric column except the non-summed ones,
and re-derives the ratio metrics from the sums. Ratios are
never summed or averaged across rows: averaging per-row percentages
weights a 10-send row the same as a 10,000-send row.
"""

from workbook_summary.schema.models import (
    BASE_METRICS,
    ColumnRoles,
    MetricRow,
    PipelineConfig,
)

from .metrics import derive_metrics


GROUP_BY_CLIENT = "client"
GROUP_BY_ALL = "all"


def _as_number(value) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return value
    return 0


def client_key(row: MetricRow, config: PipelineConfig | None = None) -> str:
    """Group key for a row: its client value, or the unknown-client label."""
    config = config or PipelineConfig()
    return row.client if row.client else config.unknown_client


def _sum_rows(rows: list[MetricRow], client: str | None, roles: ColumnRoles,
              config: PipelineConfig) -> MetricRow:
    totals = {name: 0 for name in BASE_METRICS}
    extras: dict[str, float] = {}
    for row in rows:
        for name in BASE_METRICS:
            totals[name] += _as_number(getattr(row, name))
        for key, value in row.extras.items():
            if key in roles.numeric_columns and not config.is_non_summed_field(key):
                extras[key] = extras.get(key, 0) + _as_number(value)

    summary = MetricRow(client=client, extras=extras, is_summary=True, **totals)
    return derive_metrics(summary, config)


def aggregate(rows, roles: ColumnRoles, group_by: str = GROUP_BY_CLIENT,
              config: PipelineConfig | None = None,
              sort: bool = False) -> list[MetricRow]:
    """Aggregate rows into one summary row per client (or one overall row).

    Args:
        rows: Normalized rows. Rows already tagged ``is_summary`` are skipped.
        roles: Column roles for the dataset.
        group_by: ``"client"`` or ``"all"``.
        sort: Order groups alphabetically (case-insensitive) instead of by
            first appearance.

    Returns:
        Summary rows. Empty input produces an empty list.

    Raises:
        ValueError: If *group_by* is not recognized.
    """
    config = config or PipelineConfig()
    if group_by not in (GROUP_BY_CLIENT, GROUP_BY_ALL):
        raise ValueError(
            f"Unknown grouping '{group_by}'. "
            f"Valid values: {GROUP_BY_ALL}, {GROUP_BY_CLIENT}"
        )

    members = [r for r in rows if not r.is_summary]
    if not members:
        return []

    if group_by == GROUP_BY_ALL or not roles.has_client:
        return [_sum_rows(members, None, roles, config)]

    groups: dict[str, list[MetricRow]] = {}
    for row in members:
        groups.setdefault(client_key(row, config), []).append(row)

    keys = list(groups)
    if sort:
        keys.sort(key=str.lower)
    return [_sum_rows(groups[key], key, roles, config) for key in keys]


# ---------------------------------------------------------------------------
# Helpers used by the views
# ---------------------------------------------------------------------------

def filter_by_client(rows, client: str | None) -> list[MetricRow]:
    """Rows for exactly *client*; all rows when *client* is None."""
    if client is None:
        return list(rows)
    return [r for r in rows if r.client == client]


def client_names(rows) -> list[str]:
    """Distinct non-empty client values, sorted case-insensitively."""
    names = {r.client for r in rows if r.client and not r.is_summary}
    return sorted(names, key=str.lower)


def summary_totals(rows, roles: ColumnRoles,
                   config: PipelineConfig | None = None) -> MetricRow | None:
    """Overall totals for the summary cards (None when there are no rows)."""
    overall = aggregate(rows, roles, group_by=GROUP_BY_ALL, config=config)
    return overall[0] if overall else None

"""Executive (target attainment) evaluation.

Joins per-client aggregates against the AM sheet targets and flags each
client red or green using the weekday threshold table in
:class:`PipelineConfig`. The weekday is taken from the reference date in
the configured reference timezone.
"""

from datetime import date, datetime

import pandas as pd

from workbook_summary.schema.design_system import format_target_percent
from workbook_summary.schema.models import (
    WEEKDAYS,
    ExecutiveRow,
    Flag,
    MetricRow,
    PipelineConfig,
    TargetRecord,
)

from .metrics import compute_derived


def reference_weekday(reference_date, timezone: str = "UTC") -> str:
    """Lowercase weekday name of *reference_date* in *timezone*.

    Plain dates are taken as-is. Naive datetimes (and strings) are
    interpreted as UTC and converted; aware datetimes are converted.
    """
    if isinstance(reference_date, date) and not isinstance(reference_date, datetime):
        return WEEKDAYS[reference_date.weekday()]
    ts = pd.Timestamp(reference_date)
    if ts.tzinfo is None:
        ts = ts.tz_localize("UTC")
    return WEEKDAYS[ts.tz_convert(timezone).weekday()]


def target_percent(unique_sent: float, target: float) -> float:
    """Unique sent as a percentage of target; 0 when there is no target."""
    if not target or target <= 0:
        return 0.0
    return unique_sent / target * 100


def flag_for(tp: float, weekend: str, weekday: str,
             config: PipelineConfig | None = None) -> Flag:
    """Apply the threshold rule for *weekday* to a target percentage.

    A client without a target has a percentage of 0 and is judged like any
    other row, so it is red on every day whose rule has a lower cutoff.
    """
    config = config or PipelineConfig()
    rule = config.rule_for(weekday)
    return Flag.RED if rule.is_red(tp, weekend) else Flag.GREEN


def index_targets(targets) -> dict[str, TargetRecord]:
    """Targets keyed by trimmed client name (first entry wins)."""
    index: dict[str, TargetRecord] = {}
    for record in targets or []:
        index.setdefault(record.client_name.strip(), record)
    return index


def evaluate_executive(client_aggregates, targets, reference_date,
                       config: PipelineConfig | None = None) -> list[ExecutiveRow]:
    """Build executive rows for per-client aggregates.

    Clients whose summed ``sent_count`` is below ``executive_min_sent`` are
    left out. A client without a matching target still appears, with a zero
    target and a blank ``Target %``. Output is sorted by client name
    (case-insensitive).
    """
    config = config or PipelineConfig()
    weekday = reference_weekday(reference_date, config.timezone)
    by_client = index_targets(targets)

    rows: list[ExecutiveRow] = []
    for agg in client_aggregates:
        if agg.client is None:
            continue
        if agg.sent_count < config.executive_min_sent:
            continue
        rows.append(_executive_row(agg, by_client.get(agg.client.strip()),
                                   weekday, config))

    rows.sort(key=lambda r: r.client_name.lower())
    return rows


def _executive_row(agg: MetricRow, record: TargetRecord | None, weekday: str,
                   config: PipelineConfig) -> ExecutiveRow:
    target = record.target if record else 0.0
    weekend = record.weekend_flag if record else ""
    tp = target_percent(agg.unique_sent_count, target)

    derived = compute_derived(agg.base_metrics(), config)

    return ExecutiveRow(
        client_name=agg.client,
        sent_count=agg.sent_count,
        unique_sent_count=agg.unique_sent_count,
        target=target,
        target_percent=tp,
        target_percent_display=format_target_percent(tp, target),
        account_manager=record.account_manager if record else "",
        weekend_sendout=record.weekend_sendout if record else "",
        positive_reply_count=agg.positive_reply_count,
        unique_leads_per_positive=derived["unique_leads_per_positive"],
        prr_vs_rr=derived["prr_vs_rr"],
        reply_count=agg.reply_count,
        rr=derived["rr"],
        bounce_count=agg.bounce_count,
        bounce_rate=derived["bounce_rate"],
        flag=flag_for(tp, weekend, weekday, config),
    )

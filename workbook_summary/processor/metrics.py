"""Derived metric calculation.

Every ratio is recomputed from base counts, never from previously derived
values, so deriving twice gives the same answer and aggregates can be
re-derived after summing.

    prr_vs_rr                  = positive_reply_count / reply_count * 100
    rr                         = reply_count / unique_sent_count * 100
    bounce_rate                = bounce_count / unique_sent_count * 100
    unique_leads_per_positive  = unique_sent_count / positive_reply_count
                                 (or "no positive reply")
"""

import math
from typing import Any, Mapping

from workbook_summary.schema.models import MetricRow, PipelineConfig

from .ingestion import coerce_count


def safe_div(numerator, denominator, default=0.0):
    """Divide safely, returning *default* on a zero/NaN/missing denominator."""
    if denominator is None or denominator == 0:
        return default
    if isinstance(denominator, float) and math.isnan(denominator):
        return default
    if isinstance(numerator, float) and math.isnan(numerator):
        return default
    return numerator / denominator


def safe_pct(numerator, denominator) -> float:
    """``numerator / denominator * 100``, or 0 when the denominator is 0."""
    return safe_div(numerator, denominator, default=0.0) * 100


def compute_derived(base: Mapping[str, Any],
                    config: PipelineConfig | None = None) -> dict[str, Any]:
    """Compute the four derived metrics from a mapping of base counts.

    Missing or unparsable counts are treated as 0.
    """
    config = config or PipelineConfig()
    unique_sent = coerce_count(base.get("unique_sent_count"))
    positive = coerce_count(base.get("positive_reply_count"))
    replies = coerce_count(base.get("reply_count"))
    bounces = coerce_count(base.get("bounce_count"))

    if positive > 0:
        leads_per_positive = unique_sent / positive
    else:
        leads_per_positive = config.no_positive_sentinel

    return {
        "prr_vs_rr": safe_pct(positive, replies),
        "rr": safe_pct(replies, unique_sent),
        "bounce_rate": safe_pct(bounces, unique_sent),
        "unique_leads_per_positive": leads_per_positive,
    }


def derive_metrics(row: MetricRow, config: PipelineConfig | None = None) -> MetricRow:
    """Return *row* extended with its derived metrics."""
    return row.with_values(**compute_derived(row.base_metrics(), config))

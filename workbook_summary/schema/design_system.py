"""Design system utilities - value formatting for tables and cards.

Formatting rules used by the summary tables and cards:
- Column names: special metric labels, otherwise underscores -> spaces, title case
- Ratio percentages: X.XX%
- Leads per positive: X.XX (or "No positive reply")
- Plain numbers: thousands separators, at most 2 decimals
- Target %: NN.NN% (blank when there is no target)
"""

import math
import re

from .models import NO_POSITIVE_REPLY, PERCENT_METRICS


SPECIAL_COLUMN_NAMES = {
    "prr_vs_rr": "PRR vs RR",
    "rr": "RR",
    "bounce_rate": "Bounce",
    "unique_leads_per_positive": "Unique Leads/Positive",
}

METRIC_DESCRIPTIONS = {
    "prr_vs_rr": "Positive Reply Count / Reply Count",
    "rr": "Reply Count / Unique Sent Count",
    "bounce_rate": "Bounce Count / Unique Sent Count",
    "unique_leads_per_positive": "Unique Sent Count / Positive Reply Count",
}


def _is_missing(value) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def format_column_name(column: str) -> str:
    """Human-readable header for a column name."""
    if column in SPECIAL_COLUMN_NAMES:
        return SPECIAL_COLUMN_NAMES[column]
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), column.replace("_", " "))


def format_number(value: float | int | None) -> str:
    """Format a number with comma separators and at most 2 decimals."""
    if _is_missing(value):
        return ""
    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}".rstrip("0").rstrip(".")


def format_percentage(value: float | int | None) -> str:
    """Format a ratio metric as X.XX%."""
    if _is_missing(value):
        return ""
    return f"{value:.2f}%"


def format_ratio(value: float | int | None) -> str:
    """Format a plain ratio as X.XX."""
    if _is_missing(value):
        return ""
    return f"{value:.2f}"


def format_cell_value(value) -> str:
    """Format an arbitrary table cell."""
    if _is_missing(value):
        return ""
    if value == NO_POSITIVE_REPLY:
        return "No positive reply"
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return format_number(value)
    return str(value)


def format_metric(key: str, value) -> str:
    """Format a value for *key*, applying the derived-metric rules."""
    if value == NO_POSITIVE_REPLY:
        return "No positive reply"
    if key in PERCENT_METRICS:
        return format_percentage(value) if isinstance(value, (int, float)) else format_cell_value(value)
    if key == "unique_leads_per_positive" and isinstance(value, (int, float)):
        return format_ratio(value)
    return format_cell_value(value)


def format_target_percent(target_percent: float, target: float) -> str:
    """Target attainment display string; blank when no target is set."""
    if not target or target <= 0:
        return ""
    return f"{target_percent:.2f}%"


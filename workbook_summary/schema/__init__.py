"""Schema package - typed models, configuration and formatting.

Provides the contract between ingestion, the processor stages and the
exporter:

- models.py: Core dataclasses (MetricRow, ColumnRoles, TargetRecord, PipelineConfig, ...)
- design_system.py: Value formatting
- loader.py: YAML serialization/deserialization of PipelineConfig
"""

from .design_system import (
    METRIC_DESCRIPTIONS,
    format_cell_value,
    format_column_name,
    format_metric,
    format_number,
    format_percentage,
    format_target_percent,
)
from .loader import load_config, save_config
from .models import (
    AM_COLUMNS,
    BASE_METRICS,
    DERIVED_METRICS,
    NO_POSITIVE_REPLY,
    SUMMARY_SUFFIX,
    UNKNOWN_CLIENT,
    ColumnRoles,
    ExecutiveRow,
    Flag,
    MetricRow,
    PipelineConfig,
    TargetRecord,
    ThresholdRule,
    ViewKind,
    default_threshold_rules,
)

__all__ = [
    # Constants
    "AM_COLUMNS",
    "BASE_METRICS",
    "DERIVED_METRICS",
    "NO_POSITIVE_REPLY",
    "SUMMARY_SUFFIX",
    "UNKNOWN_CLIENT",
    # Models
    "ColumnRoles",
    "ExecutiveRow",
    "Flag",
    "MetricRow",
    "PipelineConfig",
    "TargetRecord",
    "ThresholdRule",
    "ViewKind",
    "default_threshold_rules",
    # Loader
    "load_config",
    "save_config",
    # Formatting
    "METRIC_DESCRIPTIONS",
    "format_cell_value",
    "format_column_name",
    "format_metric",
    "format_number",
    "format_percentage",
    "format_target_percent",
]

"""Data processor module for Workbook Summary."""

from .ingestion import (
    SelectionError,
    Workbook,
    WorkbookError,
    clean_columns,
    coerce_count,
    data_sheet_names,
    detect_encoding,
    extract_sheet_rows,
    find_am_sheet,
    ingest_targets,
    load_targets,
    load_workbook,
    parse_numeric,
    read_csv_auto,
)
from .normalizer import (
    NormalizationResult,
    drop_low_volume,
    normalize_rows,
    sniff_columns,
)
from .metrics import (
    compute_derived,
    derive_metrics,
)
from .aggregator import (
    aggregate,
    client_names,
    filter_by_client,
    summary_totals,
)
from .executive import (
    evaluate_executive,
    flag_for,
    reference_weekday,
)
from .exporter import (
    ExportBlock,
    build_export_blocks,
    build_export_rows,
    write_export,
)
from .pipeline import (
    AnalysisContext,
    PipelineResult,
    SummaryPipeline,
)

"""Data ingestion module for Workbook Summary.

Handles reading a source workbook and turning the selected sheets into
plain field -> value rows:
- CSV (UTF-8 or UTF-16 LE with BOM, comma- or tab-delimited) as one sheet
- Excel workbooks (.xlsx, .xlsm, .xls), one DataFrame per sheet
- The auxiliary "AM" sheet of per-client targets

Empty cells default to ``""`` so downstream stages see the same shape
regardless of the source format.
"""

import math
from dataclasses import dataclass, field
from pathlib import Path

import pandas as pd

from workbook_summary.schema.models import PipelineConfig, TargetRecord


CSV_SHEET_NAME = "Sheet1"
EXCEL_SUFFIXES = (".xlsx", ".xlsm", ".xls")
PARSE_FAILURE_MESSAGE = "Failed to process the file. Please check the file format."


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class WorkbookError(Exception):
    """The source file could not be parsed. Fatal for the whole run."""


class SelectionError(ValueError):
    """Aggregation was requested without a workbook or without sheets."""


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------

def parse_numeric(value):
    """Parse a numeric value that may contain commas or float artifacts.

    Examples:
        "63,571" -> 63571.0
        "49,156.000000000" -> 49156.0
        42 -> 42.0
        "" -> NaN
        "n/a" -> NaN
    """
    if value is None:
        return float("nan")
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        return float(value)
    try:
        if pd.isna(value):
            return float("nan")
    except (TypeError, ValueError):
        pass
    s = str(value).strip().replace(",", "")
    if not s:
        return float("nan")
    try:
        return float(s)
    except ValueError:
        return float("nan")


def coerce_count(value):
    """Coerce a count cell to a number; unparsable values become 0.

    Integral results are returned as ``int`` so exports read ``150`` rather
    than ``150.0``.
    """
    parsed = parse_numeric(value)
    if math.isnan(parsed) or math.isinf(parsed):
        return 0
    if parsed.is_integer():
        return int(parsed)
    return parsed


def is_empty(value) -> bool:
    """True for ``""``, whitespace-only strings, None and NaN."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, float) and math.isnan(value):
        return True
    return False


# ---------------------------------------------------------------------------
# Column cleaning
# ---------------------------------------------------------------------------

def clean_columns(df):
    """Strip whitespace from column names."""
    df.columns = [c.strip() if isinstance(c, str) else str(c) for c in df.columns]
    return df


# ---------------------------------------------------------------------------
# Encoding detection and CSV reading
# ---------------------------------------------------------------------------

def detect_encoding(path):
    """Detect whether a file is UTF-16 LE (with BOM) or UTF-8, and its delimiter.

    Returns (encoding, delimiter) tuple.
    """
    with open(path, "rb") as f:
        raw = f.read(4096)
    if raw[:2] == b"\xff\xfe":
        return "utf-16-le", "\t"
    first_line = raw.split(b"\n", 1)[0]
    if first_line.count(b"\t") > first_line.count(b","):
        return "utf-8-sig", "\t"
    return "utf-8-sig", ","


def read_csv_auto(path, max_rows=None):
    """Read a CSV file with automatic encoding and delimiter detection.

    Every cell is read as a string; empty cells become ``""``.
    """
    encoding, sep = detect_encoding(path)
    df = pd.read_csv(path, encoding=encoding, sep=sep, dtype=str,
                     keep_default_na=False, nrows=max_rows)
    if encoding == "utf-16-le" and len(df.columns):
        # The BOM survives a utf-16-le decode on the first header
        df.columns = [str(df.columns[0]).lstrip("\ufeff"), *df.columns[1:]]
    return clean_columns(df)


# ---------------------------------------------------------------------------
# Workbook
# ---------------------------------------------------------------------------

@dataclass
class Workbook:
    """An in-memory workbook: named sheets in their original order."""
    path: Path
    sheets: dict[str, pd.DataFrame] = field(default_factory=dict)

    @property
    def sheet_names(self) -> list[str]:
        return list(self.sheets)

    def sheet(self, name: str) -> pd.DataFrame | None:
        return self.sheets.get(name)


def _read_excel_sheets(path: Path, max_rows=None) -> dict[str, pd.DataFrame]:
    engine = "openpyxl" if path.suffix.lower() in (".xlsx", ".xlsm") else None
    xl = pd.ExcelFile(path, engine=engine)
    try:
        sheets = {}
        for name in xl.sheet_names:
            df = xl.parse(name, dtype=object, nrows=max_rows)
            df = df.astype(object).where(df.notna(), "")
            sheets[str(name)] = clean_columns(df)
    finally:
        xl.close()
    return sheets


def load_workbook(path, max_rows=None) -> Workbook:
    """Read a CSV or Excel file into a :class:`Workbook`.

    Raises:
        WorkbookError: If the file cannot be parsed. No partial data is
            returned.
    """
    path = Path(path)
    try:
        if path.suffix.lower() in EXCEL_SUFFIXES:
            sheets = _read_excel_sheets(path, max_rows=max_rows)
        else:
            sheets = {CSV_SHEET_NAME: read_csv_auto(path, max_rows=max_rows)}
    except Exception as exc:
        raise WorkbookError(PARSE_FAILURE_MESSAGE) from exc
    return Workbook(path=path, sheets=sheets)


# ---------------------------------------------------------------------------
# Sheet extraction
# ---------------------------------------------------------------------------

@dataclass
class SheetExtraction:
    """Raw rows pulled from the selected sheets."""
    rows: list[dict]
    warnings: list[str] = field(default_factory=list)
    rows_per_sheet: dict[str, int] = field(default_factory=dict)


def frame_to_rows(df: pd.DataFrame) -> list[dict]:
    """Convert a sheet DataFrame into field -> value dicts (empty cell = "")."""
    rows = []
    for record in df.to_dict(orient="records"):
        row = {}
        for key, value in record.items():
            if hasattr(value, "item"):  # numpy scalar -> native Python
                value = value.item()
            row[str(key)] = "" if is_empty(value) and not isinstance(value, str) else value
        rows.append(row)
    return rows


def extract_sheet_rows(workbook: Workbook | None, selected_sheets,
                       config: PipelineConfig | None = None) -> SheetExtraction:
    """Collect raw rows from *selected_sheets*, in selection order.

    Missing sheets and sheets without any non-empty row are reported as
    warnings. Rows beyond ``config.max_rows`` are not read.

    Raises:
        SelectionError: If no workbook is loaded or no sheet is selected.
    """
    config = config or PipelineConfig()
    if workbook is None:
        raise SelectionError("No file has been loaded")
    if not selected_sheets:
        raise SelectionError("Please select at least one sheet")

    result = SheetExtraction(rows=[])
    for name in selected_sheets:
        df = workbook.sheet(name)
        if df is None:
            result.warnings.append(f'Sheet "{name}" not found in workbook')
            continue

        rows = [r for r in frame_to_rows(df)
                if any(not is_empty(v) for v in r.values())]
        if not rows:
            result.warnings.append(f'No valid data found in sheet "{name}"')
            continue

        remaining = config.max_rows - len(result.rows)
        if len(rows) > remaining:
            result.warnings.append(
                f'Row limit of {config.max_rows:,} reached; '
                f'{len(rows) - max(remaining, 0):,} row(s) from sheet "{name}" skipped'
            )
            rows = rows[:max(remaining, 0)]
        result.rows_per_sheet[name] = len(rows)
        result.rows.extend(rows)
    return result


# ---------------------------------------------------------------------------
# AM (targets) sheet
# ---------------------------------------------------------------------------

def _sheet_key(name: str) -> str:
    return "".join(str(name).split()).lower()


def find_am_sheet(workbook: Workbook, config: PipelineConfig | None = None) -> str | None:
    """Return the name of the AM sheet (case/whitespace-insensitive), if any."""
    config = config or PipelineConfig()
    wanted = _sheet_key(config.am_sheet_name)
    for name in workbook.sheet_names:
        if _sheet_key(name) == wanted:
            return name
    return None


def ingest_targets(df: pd.DataFrame, config: PipelineConfig | None = None) -> list[TargetRecord]:
    """Parse the AM sheet into :class:`TargetRecord` entries.

    Rows missing any of client name, target or account manager are
    discarded. An unparsable target counts as 0 (no target).
    """
    config = config or PipelineConfig()
    df = clean_columns(df.copy())
    required = [config.am_client_column, config.am_target_column, config.am_manager_column]
    if any(col not in df.columns for col in required):
        return []

    records = []
    for row in frame_to_rows(df):
        if any(is_empty(row.get(col)) for col in required):
            continue
        weekend = row.get(config.am_weekend_column, "")
        records.append(TargetRecord(
            client_name=str(row[config.am_client_column]).strip(),
            target=coerce_count(row[config.am_target_column]),
            account_manager=str(row[config.am_manager_column]).strip(),
            weekend_sendout="" if is_empty(weekend) else str(weekend).strip(),
        ))
    return records


def load_targets(workbook: Workbook, config: PipelineConfig | None = None) -> list[TargetRecord] | None:
    """Targets from the workbook's AM sheet, or ``None`` when there is no AM sheet."""
    name = find_am_sheet(workbook, config)
    if name is None:
        return None
    return ingest_targets(workbook.sheets[name], config)


def data_sheet_names(workbook: Workbook, config: PipelineConfig | None = None) -> list[str]:
    """All sheet names except the AM sheet."""
    am = find_am_sheet(workbook, config)
    return [name for name in workbook.sheet_names if name != am]

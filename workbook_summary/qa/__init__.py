"""QA validation package for Workbook Summary.

Validates export rows against the export contract - derived metric
consistency, the no-positive-reply sentinel, duplicate clients within an
aggregate block and summary-row leakage.
"""

from .validator import (
    ExportValidator,
    Issue,
    QAResult,
    validate_export_file,
)

__all__ = [
    "ExportValidator",
    "Issue",
    "QAResult",
    "validate_export_file",
]

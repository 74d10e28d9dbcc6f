"""Workbook summary models - the contract between ingestion, processor, and exporter.

Defines the typed records that flow through the pipeline: the column-role
mapping produced by schema sniffing, the per-row metric record, target
records from the AM sheet, executive rows, and the pipeline configuration
(including the weekday threshold table).
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any


# ---------------------------------------------------------------------------
# Field name constants
# ---------------------------------------------------------------------------

BASE_METRICS = (
    "sent_count",
    "unique_sent_count",
    "positive_reply_count",
    "reply_count",
    "bounce_count",
)

DERIVED_METRICS = (
    "prr_vs_rr",
    "rr",
    "bounce_rate",
    "unique_leads_per_positive",
)

PERCENT_METRICS = ("prr_vs_rr", "rr", "bounce_rate")

AM_COLUMNS = ("AM", "Target", "Target %", "Weekend sendout")

NO_POSITIVE_REPLY = "no positive reply"
SUMMARY_SUFFIX = " - Summary"
UNKNOWN_CLIENT = "Unknown"

WEEKDAYS = (
    "monday", "tuesday", "wednesday", "thursday",
    "friday", "saturday", "sunday",
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ViewKind(Enum):
    """Which row set is being rendered or exported."""
    DETAIL = "detail"
    SUMMARY = "summary"
    EXECUTIVE = "executive"


class Flag(Enum):
    """Target-attainment flag for an executive row."""
    RED = "red"
    GREEN = "green"
    NONE = "none"      # Not evaluated yet


# ---------------------------------------------------------------------------
# Column roles (schema sniffing output)
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ColumnRoles:
    """Typed column-role mapping resolved once per dataset.

    ``columns`` keeps the dataset column order (first appearance across all
    rows). ``metric_columns`` maps each base metric name to the source
    column that carries it, for metrics the dataset actually has.
    ``numeric_columns`` lists the other columns whose values are numbers;
    they are coerced on normalization and summed on aggregation.
    """
    columns: tuple[str, ...] = ()
    client_field: str | None = None
    metric_columns: dict[str, str] = field(default_factory=dict)
    numeric_columns: tuple[str, ...] = ()

    @property
    def has_client(self) -> bool:
        return self.client_field is not None


# ---------------------------------------------------------------------------
# MetricRow - one sheet record or one aggregate
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricRow:
    """A normalized sheet row with named base metrics.

    ``client`` is ``None`` when the row has no (or an empty) client value.
    Derived metrics are ``None`` until :func:`derive_metrics` has run.
    Columns the pipeline has no role for are carried in ``extras`` in their
    original order.
    """
    client: str | None = None
    sent_count: float = 0
    unique_sent_count: float = 0
    positive_reply_count: float = 0
    reply_count: float = 0
    bounce_count: float = 0

    prr_vs_rr: float | None = None
    rr: float | None = None
    bounce_rate: float | None = None
    unique_leads_per_positive: float | str | None = None

    extras: dict[str, Any] = field(default_factory=dict)
    is_summary: bool = False

    def base_metrics(self) -> dict[str, float]:
        return {name: getattr(self, name) for name in BASE_METRICS}

    def derived_metrics(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in DERIVED_METRICS}

    @property
    def is_derived(self) -> bool:
        return self.rr is not None

    def with_values(self, **changes) -> "MetricRow":
        return replace(self, **changes)

    def to_record(self, roles: ColumnRoles, client_label: str | None = None) -> dict[str, Any]:
        """Flatten back into a field -> value mapping in dataset column order.

        Base metrics are written under their source column names. Derived
        metrics are appended after the source columns.
        """
        record: dict[str, Any] = {}
        metric_by_column = {col: name for name, col in roles.metric_columns.items()}
        client_value = client_label if client_label is not None else self.client

        for col in roles.columns:
            if col == roles.client_field:
                record[col] = "" if client_value is None else client_value
            elif col in metric_by_column:
                record[col] = getattr(self, metric_by_column[col])
            elif col in self.extras:
                record[col] = self.extras[col]

        # Columns that only exist on this row (not part of the sniffed set)
        for col, value in self.extras.items():
            if col not in record:
                record[col] = value

        if self.is_derived:
            record.update(self.derived_metrics())
        return record


# ---------------------------------------------------------------------------
# AM sheet records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetRecord:
    """Per-client target entry from the AM sheet."""
    client_name: str
    target: float
    account_manager: str
    weekend_sendout: str = ""

    @property
    def weekend_flag(self) -> str:
        """Normalized weekend flag: ``"Y"``, ``"N"`` or ``""``."""
        value = self.weekend_sendout.strip().upper()
        return value[:1] if value[:1] in ("Y", "N") else ""


@dataclass
class ExecutiveRow:
    """One client line in the executive (target attainment) view."""
    client_name: str
    sent_count: float
    unique_sent_count: float
    target: float
    target_percent: float
    target_percent_display: str
    account_manager: str
    weekend_sendout: str
    positive_reply_count: float
    unique_leads_per_positive: float | str
    prr_vs_rr: float
    reply_count: float
    rr: float
    bounce_count: float
    bounce_rate: float
    flag: Flag = Flag.NONE

    def to_record(self, client_field: str = "client_name") -> dict[str, Any]:
        return {
            client_field: self.client_name,
            "sent_count": self.sent_count,
            "unique_sent_count": self.unique_sent_count,
            "Target": self.target if self.target > 0 else "",
            "Target %": self.target_percent_display,
            "AM": self.account_manager,
            "Weekend sendout": self.weekend_sendout,
            "positive_reply_count": self.positive_reply_count,
            "unique_leads_per_positive": self.unique_leads_per_positive,
            "prr_vs_rr": self.prr_vs_rr,
            "reply_count": self.reply_count,
            "rr": self.rr,
            "bounce_count": self.bounce_count,
            "bounce_rate": self.bounce_rate,
        }


# ---------------------------------------------------------------------------
# Threshold rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ThresholdRule:
    """Red-flag cutoffs for one weekday.

    A target percentage is flagged red when it is strictly below ``below``
    (or the weekend-specific cutoff in ``below_by_weekend``) or strictly
    above ``above``. With ``require_positive`` a percentage of zero is never
    flagged.
    """
    below: float | None = None
    above: float | None = None
    below_by_weekend: dict[str, float] = field(default_factory=dict)
    require_positive: bool = False

    def is_red(self, target_percent: float, weekend: str = "") -> bool:
        if self.require_positive and target_percent <= 0:
            return False
        if self.below_by_weekend:
            cutoff = self.below_by_weekend.get(weekend)
            if cutoff is not None and target_percent < cutoff:
                return True
        if self.below is not None and target_percent < self.below:
            return True
        if self.above is not None and target_percent > self.above:
            return True
        return False

    def to_dict(self) -> dict:
        d: dict[str, Any] = {}
        if self.below is not None:
            d["below"] = self.below
        if self.above is not None:
            d["above"] = self.above
        if self.below_by_weekend:
            d["below_by_weekend"] = dict(self.below_by_weekend)
        if self.require_positive:
            d["require_positive"] = True
        return d

    @classmethod
    def from_dict(cls, d: dict) -> "ThresholdRule":
        return cls(
            below=d.get("below"),
            above=d.get("above"),
            below_by_weekend={str(k).upper(): float(v)
                              for k, v in (d.get("below_by_weekend") or {}).items()},
            require_positive=bool(d.get("require_positive", False)),
        )


def default_threshold_rules() -> dict[str, ThresholdRule]:
    """Weekday -> rule table. Days not listed use the ``default`` rule."""
    return {
        "monday": ThresholdRule(below_by_weekend={"Y": 30.0, "N": 15.0},
                                require_positive=True),
        "tuesday": ThresholdRule(below=50.0),
        "friday": ThresholdRule(below=95.0),
        "default": ThresholdRule(below=80.0, above=130.0),
    }


# ---------------------------------------------------------------------------
# PipelineConfig - every policy constant in one place
# ---------------------------------------------------------------------------

def _default_numeric_fields() -> list[str]:
    return [
        "sent_count", "unique_sent_count", "positive_reply_count",
        "reply_count", "bounce_count", "open_count", "unique_open_count",
        "click_count",
    ]


def _default_excluded_fields() -> list[str]:
    return [
        "record_count", "id", "user_id",
        "ln_connection_req_pending_count",
        "ln_connection_req_accepted_count",
        "ln_connection_req_skipped_sent_msg_count",
    ]


@dataclass
class PipelineConfig:
    """Configuration for a pipeline run. Serializable to YAML."""
    numeric_fields: list[str] = field(default_factory=_default_numeric_fields)
    excluded_fields: list[str] = field(default_factory=_default_excluded_fields)
    non_summed_fields: list[str] = field(
        default_factory=lambda: ["total_count", "drafted_count"])
    summary_suffix: str = SUMMARY_SUFFIX
    unknown_client: str = UNKNOWN_CLIENT
    no_positive_sentinel: str = NO_POSITIVE_REPLY
    am_sheet_name: str = "AM"
    am_client_column: str = "client_name"
    am_target_column: str = "Target"
    am_manager_column: str = "Account Manager"
    am_weekend_column: str = "Weekend sendout"
    timezone: str = "UTC"
    threshold_rules: dict[str, ThresholdRule] = field(
        default_factory=default_threshold_rules)
    min_unique_sent: float = 1              # Rows below this are dropped before any view
    detail_min_unique_sent: float = 1       # Detail export keeps rows strictly above
    executive_min_sent: float = 1           # Executive view keeps rows at or above
    export_filename: str = "workbook_summary.csv"
    max_rows: int = 1_000_000

    def __post_init__(self):
        for day in self.threshold_rules:
            if day != "default" and day not in WEEKDAYS:
                raise ValueError(
                    f"Unknown weekday '{day}' in threshold rules. "
                    f"Valid keys: default, {', '.join(WEEKDAYS)}"
                )
        if "default" not in self.threshold_rules:
            self.threshold_rules["default"] = default_threshold_rules()["default"]

    def rule_for(self, weekday: str) -> ThresholdRule:
        """Return the threshold rule for a lowercase weekday name."""
        return self.threshold_rules.get(weekday, self.threshold_rules["default"])

    def is_numeric_field(self, name: str) -> bool:
        return name.lower() in {f.lower() for f in self.numeric_fields}

    def is_excluded_field(self, name: str) -> bool:
        return name.lower() in {f.lower() for f in self.excluded_fields}

    def is_non_summed_field(self, name: str) -> bool:
        return name.lower() in {f.lower() for f in self.non_summed_fields}

    def to_dict(self) -> dict:
        return {
            "numeric_fields": list(self.numeric_fields),
            "excluded_fields": list(self.excluded_fields),
            "non_summed_fields": list(self.non_summed_fields),
            "summary_suffix": self.summary_suffix,
            "unknown_client": self.unknown_client,
            "no_positive_sentinel": self.no_positive_sentinel,
            "am_sheet": {
                "name": self.am_sheet_name,
                "client_column": self.am_client_column,
                "target_column": self.am_target_column,
                "manager_column": self.am_manager_column,
                "weekend_column": self.am_weekend_column,
            },
            "timezone": self.timezone,
            "threshold_rules": {day: rule.to_dict()
                                for day, rule in self.threshold_rules.items()},
            "min_unique_sent": self.min_unique_sent,
            "detail_min_unique_sent": self.detail_min_unique_sent,
            "executive_min_sent": self.executive_min_sent,
            "export_filename": self.export_filename,
            "max_rows": self.max_rows,
        }

    @classmethod
    def from_dict(cls, d: dict | None) -> "PipelineConfig":
        d = d or {}
        am = d.get("am_sheet") or {}
        rules = default_threshold_rules()
        for day, rule in (d.get("threshold_rules") or {}).items():
            rules[str(day).lower()] = ThresholdRule.from_dict(rule or {})
        return cls(
            numeric_fields=list(d.get("numeric_fields", _default_numeric_fields())),
            excluded_fields=list(d.get("excluded_fields", _default_excluded_fields())),
            non_summed_fields=list(d.get("non_summed_fields",
                                         ["total_count", "drafted_count"])),
            summary_suffix=d.get("summary_suffix", SUMMARY_SUFFIX),
            unknown_client=d.get("unknown_client", UNKNOWN_CLIENT),
            no_positive_sentinel=d.get("no_positive_sentinel", NO_POSITIVE_REPLY),
            am_sheet_name=am.get("name", "AM"),
            am_client_column=am.get("client_column", "client_name"),
            am_target_column=am.get("target_column", "Target"),
            am_manager_column=am.get("manager_column", "Account Manager"),
            am_weekend_column=am.get("weekend_column", "Weekend sendout"),
            timezone=d.get("timezone", "UTC"),
            threshold_rules=rules,
            min_unique_sent=d.get("min_unique_sent", 1),
            detail_min_unique_sent=d.get("detail_min_unique_sent", 1),
            executive_min_sent=d.get("executive_min_sent", 1),
            export_filename=d.get("export_filename", "workbook_summary.csv"),
            max_rows=int(d.get("max_rows", 1_000_000)),
        )

"""Tests for row normalization and column-role sniffing."""

import pytest

from workbook_summary.processor.normalizer import (
    drop_low_volume,
    find_client_field,
    is_summary_label,
    normalize_row,
    normalize_rows,
    ordered_columns,
    sniff_columns,
)
from workbook_summary.schema.models import NO_POSITIVE_REPLY, PipelineConfig


@pytest.fixture
def raw_rows():
    return [
        {"client_name": "Acme", "sent_count": "100", "unique_sent_count": "80",
         "positive_reply_count": "2", "reply_count": "8", "bounce_count": "1",
         "campaign": "Q4 push"},
        {"client_name": "Beta", "sent_count": "1,200", "unique_sent_count": "1,000",
         "positive_reply_count": "0", "reply_count": "0", "bounce_count": "",
         "campaign": "Warmup"},
    ]


# ---------------------------------------------------------------------------
# Schema sniffing
# ---------------------------------------------------------------------------

class TestSniffColumns:
    def test_ordered_columns_first_appearance(self):
        rows = [{"a": 1, "b": 2}, {"c": 3, "a": 4}]
        assert ordered_columns(rows) == ["a", "b", "c"]

    def test_client_field_first_match(self):
        assert find_client_field(["id", "Client Name", "client_id"]) == "Client Name"

    def test_client_field_case_insensitive(self):
        assert find_client_field(["CLIENT"]) == "CLIENT"

    def test_no_client_field(self):
        assert find_client_field(["sent_count", "reply_count"]) is None

    def test_metric_columns(self, raw_rows):
        roles = sniff_columns(raw_rows)
        assert roles.client_field == "client_name"
        assert roles.metric_columns["sent_count"] == "sent_count"
        assert roles.has_client

    def test_metric_columns_case_insensitive(self):
        roles = sniff_columns([{"Sent_Count": "5", "Reply_Count": "1"}])
        assert roles.metric_columns == {"sent_count": "Sent_Count",
                                        "reply_count": "Reply_Count"}

    def test_excluded_columns_dropped(self):
        roles = sniff_columns([{"id": "1", "client_id": "9", "sent_count": "5"}])
        assert "id" not in roles.columns
        # client_id is not excluded by default and contains "client"
        assert roles.client_field == "client_id"

    def test_excluded_client_like_column_not_chosen(self):
        config = PipelineConfig(excluded_fields=["client_id"])
        roles = sniff_columns([{"client_id": "9", "client": "Acme"}], config)
        assert roles.client_field == "client"

    def test_numeric_columns_sniffed(self):
        rows = [
            {"client_name": "Acme", "unsubscribed_count": "2", "campaign": "Q4",
             "sent_count": "5", "Target": "100"},
            {"client_name": "Beta", "unsubscribed_count": "1,003", "campaign": "7",
             "sent_count": "x"},
        ]
        roles = sniff_columns(rows)
        # Base metrics and AM sheet columns keep their own handling
        assert roles.numeric_columns == ("unsubscribed_count",)

    def test_numeric_column_allows_blanks(self):
        roles = sniff_columns([{"block_count": "4"}, {"block_count": ""},
                               {"block_count": None}])
        assert roles.numeric_columns == ("block_count",)

    def test_all_blank_column_not_numeric(self):
        roles = sniff_columns([{"client_name": "Acme", "notes": ""}])
        assert roles.numeric_columns == ()

    def test_configured_numeric_field_always_numeric(self):
        roles = sniff_columns([{"open_count": "n/a"}])
        assert roles.numeric_columns == ("open_count",)


# ---------------------------------------------------------------------------
# normalize_row
# ---------------------------------------------------------------------------

class TestNormalizeRow:
    def test_metrics_coerced(self, raw_rows):
        roles = sniff_columns(raw_rows)
        row = normalize_row(raw_rows[1], roles)
        assert row.sent_count == 1200
        assert row.unique_sent_count == 1000
        assert row.bounce_count == 0

    def test_extras_passthrough(self, raw_rows):
        roles = sniff_columns(raw_rows)
        row = normalize_row(raw_rows[0], roles)
        assert row.extras == {"campaign": "Q4 push"}

    def test_numeric_extra_coerced(self):
        raw = {"client_name": "Acme", "open_count": "1,234"}
        row = normalize_row(raw, sniff_columns([raw]))
        assert row.extras["open_count"] == 1234

    def test_unconfigured_numeric_extra_coerced(self):
        rows = [{"client_name": "Acme", "unsubscribed_count": "2"},
                {"client_name": "Acme", "unsubscribed_count": ""}]
        roles = sniff_columns(rows)
        assert normalize_row(rows[0], roles).extras == {"unsubscribed_count": 2}
        assert normalize_row(rows[1], roles).extras == {"unsubscribed_count": 0}

    def test_excluded_field_removed(self):
        raw = {"client_name": "Acme", "record_count": "3", "sent_count": "5"}
        row = normalize_row(raw, sniff_columns([raw]))
        assert "record_count" not in row.extras

    def test_empty_client_is_none(self):
        raw = {"client_name": "  ", "sent_count": "5"}
        row = normalize_row(raw, sniff_columns([raw]))
        assert row.client is None

    def test_missing_client_key_is_none(self):
        rows = [{"client_name": "Acme", "sent_count": "5"}, {"sent_count": "3"}]
        row = normalize_row(rows[1], sniff_columns(rows))
        assert row.client is None
        assert row.sent_count == 3

    def test_not_derived(self, raw_rows):
        row = normalize_row(raw_rows[0], sniff_columns(raw_rows))
        assert not row.is_derived


# ---------------------------------------------------------------------------
# normalize_rows
# ---------------------------------------------------------------------------

class TestNormalizeRows:
    def test_order_preserved(self, raw_rows):
        result = normalize_rows(raw_rows)
        assert [r.client for r in result.rows] == ["Acme", "Beta"]

    def test_derived_metrics_attached(self, raw_rows):
        result = normalize_rows(raw_rows)
        acme, beta = result.rows
        assert acme.rr == pytest.approx(10.0)
        assert acme.prr_vs_rr == pytest.approx(25.0)
        assert acme.unique_leads_per_positive == pytest.approx(40.0)
        assert beta.prr_vs_rr == 0
        assert beta.unique_leads_per_positive == NO_POSITIVE_REPLY

    def test_derive_false(self, raw_rows):
        result = normalize_rows(raw_rows, derive=False)
        assert all(not r.is_derived for r in result.rows)

    def test_empty_rows_dropped(self):
        rows = [{"client_name": "", "sent_count": ""},
                {"client_name": "Acme", "sent_count": "5"}]
        result = normalize_rows(rows)
        assert len(result.rows) == 1
        assert result.dropped_empty == 1

    def test_summary_rows_dropped(self):
        rows = [
            {"client_name": "Acme", "sent_count": "100"},
            {"client_name": "Acme - Summary", "sent_count": "100"},
        ]
        result = normalize_rows(rows)
        assert [r.client for r in result.rows] == ["Acme"]
        assert result.dropped_summary == 1
        assert any("summary row" in w for w in result.warnings)

    def test_unparsable_metric_is_zero(self):
        rows = [{"client_name": "Acme", "sent_count": "abc", "unique_sent_count": "10"}]
        row = normalize_rows(rows).rows[0]
        assert row.sent_count == 0
        assert row.unique_sent_count == 10

    def test_explicit_roles_reused(self, raw_rows):
        roles = sniff_columns(raw_rows)
        result = normalize_rows(raw_rows[:1], roles=roles)
        assert result.roles is roles

    def test_is_summary_label(self):
        assert is_summary_label("Acme - Summary")
        assert not is_summary_label("Acme Summary")
        assert not is_summary_label(None)

    def test_source_derived_columns_recomputed(self):
        rows = [{"client_name": "Acme", "unique_sent_count": "100",
                 "reply_count": "10", "rr": "99.0", "RR": "1"}]
        row = normalize_rows(rows).rows[0]
        assert row.rr == pytest.approx(10.0)
        assert row.extras == {}


# ---------------------------------------------------------------------------
# drop_low_volume
# ---------------------------------------------------------------------------

class TestDropLowVolume:
    def test_rows_below_floor_dropped(self):
        result = normalize_rows([
            {"client_name": "A", "sent_count": "10", "unique_sent_count": "10"},
            {"client_name": "A", "sent_count": "7", "unique_sent_count": "0"},
            {"client_name": "B", "sent_count": "3", "unique_sent_count": ""},
        ])
        kept, dropped = drop_low_volume(result.rows, result.roles)
        assert [r.sent_count for r in kept] == [10]
        assert dropped == 2

    def test_floor_is_inclusive(self):
        result = normalize_rows([
            {"client_name": "A", "unique_sent_count": "1"},
            {"client_name": "A", "unique_sent_count": "4"},
        ])
        config = PipelineConfig(min_unique_sent=4)
        kept, dropped = drop_low_volume(result.rows, result.roles, config)
        assert [r.unique_sent_count for r in kept] == [4]
        assert dropped == 1

    def test_no_unique_sent_column_kept(self):
        result = normalize_rows([{"client_name": "A", "sent_count": "5"}])
        kept, dropped = drop_low_volume(result.rows, result.roles)
        assert len(kept) == 1
        assert dropped == 0

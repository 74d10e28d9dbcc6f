"""End-to-end tests: workbook file -> pipeline -> export file -> re-import."""

from datetime import date

import pandas as pd
import pytest

from workbook_summary.processor.exporter import write_export
from workbook_summary.processor.ingestion import (
    data_sheet_names,
    extract_sheet_rows,
    load_workbook,
)
from workbook_summary.processor.normalizer import normalize_rows
from workbook_summary.processor.pipeline import AnalysisContext, SummaryPipeline
from workbook_summary.qa.validator import ExportValidator, validate_export_file
from workbook_summary.schema.models import NO_POSITIVE_REPLY, Flag

WEDNESDAY = date(2026, 10, 14)


@pytest.fixture
def outreach_xlsx(tmp_path):
    path = tmp_path / "outreach.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame({
            "client_name": ["A", "A", "Acme - Summary", None],
            "sent_count": [100, 50, 150, 20],
            "unique_sent_count": [100, 50, 150, 20],
            "reply_count": [10, 5, 15, 1],
            "positive_reply_count": [2, 0, 2, 0],
            "bounce_count": [1, 0, 1, 0],
            "record_count": [1, 1, 1, 1],
        }).to_excel(writer, sheet_name="Week 1", index=False)
        pd.DataFrame({
            "client_name": ["Acme"],
            "sent_count": [300],
            "unique_sent_count": [300],
            "reply_count": [6],
            "positive_reply_count": [3],
            "bounce_count": [2],
        }).to_excel(writer, sheet_name="Week 2", index=False)
        pd.DataFrame({
            "client_name": ["Acme", "A"],
            "Target": [1000, 150],
            "Account Manager": ["Dana", "Lee"],
            "Weekend sendout": ["N", "Y"],
        }).to_excel(writer, sheet_name="AM", index=False)
    return path


@pytest.fixture
def result(outreach_xlsx):
    workbook = load_workbook(outreach_xlsx)
    return SummaryPipeline().run(workbook, data_sheet_names(workbook),
                                 AnalysisContext(reference_date=WEDNESDAY))


class TestEndToEnd:
    def test_client_a_aggregate(self, result):
        summaries = {s.client: s for s in result.client_summaries}
        a = summaries["A"]
        assert a.unique_sent_count == 150
        assert a.reply_count == 15
        assert a.positive_reply_count == 2
        assert a.bounce_count == 1
        assert a.rr == pytest.approx(10.0)
        assert a.prr_vs_rr == pytest.approx(13.33, abs=0.01)
        assert a.bounce_rate == pytest.approx(0.67, abs=0.01)

    def test_summary_row_never_a_group(self, result):
        clients = [s.client for s in result.client_summaries]
        assert "Acme - Summary" not in clients
        exported = [r["client_name"] for r in result.export_rows]
        assert "Acme - Summary" not in exported

    def test_missing_client_is_unknown(self, result):
        summaries = {s.client: s for s in result.client_summaries}
        assert summaries["Unknown"].unique_leads_per_positive == NO_POSITIVE_REPLY

    def test_excluded_field_dropped(self, result):
        assert all("record_count" not in row for row in result.export_rows)

    def test_target_flags(self, result):
        flags = {r.client_name: r for r in result.executive_rows}
        # 300 of 1000 on a Wednesday is below the default cutoff of 80%
        assert flags["Acme"].target_percent == pytest.approx(30.0)
        assert flags["Acme"].flag == Flag.RED
        assert flags["A"].flag == Flag.GREEN
        # No AM entry: 0% on a Wednesday is red
        assert flags["Unknown"].flag == Flag.RED

    def test_export_passes_qa(self, result):
        assert ExportValidator().validate(result.export_blocks).passed

    def test_export_round_trip(self, result, tmp_path):
        path = write_export(result.export_rows, tmp_path / "summary.csv")
        assert validate_export_file(path).passed

        workbook = load_workbook(path)
        rows = extract_sheet_rows(workbook, workbook.sheet_names).rows
        # The summary block is the first three rows (A, Acme, Unknown)
        reimported = normalize_rows(rows[:3]).rows
        for before, after in zip(result.client_summaries, reimported):
            assert after.client == before.client
            assert after.base_metrics() == before.base_metrics()
            assert after.rr == pytest.approx(before.rr)

    def test_detail_view_round_trip(self, outreach_xlsx, tmp_path):
        workbook = load_workbook(outreach_xlsx)
        result = SummaryPipeline().run(
            workbook, ["Week 1"],
            AnalysisContext(view="detail", include_client_summaries=True),
        )
        path = write_export(result.export_rows, tmp_path / "detail.xlsx")
        reimported = load_workbook(path)
        normalized = normalize_rows(
            extract_sheet_rows(reimported, reimported.sheet_names).rows)
        # "<Client> - Summary" rows are skipped on re-import
        assert normalized.dropped_summary == 2
        assert [r.client for r in normalized.rows] == ["A", "A", None]

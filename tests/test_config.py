"""Tests for PipelineConfig, the threshold table and YAML round-tripping."""

import pytest
import yaml

from workbook_summary.schema.loader import load_config, save_config
from workbook_summary.schema.models import (
    ColumnRoles,
    MetricRow,
    PipelineConfig,
    TargetRecord,
    ThresholdRule,
    ViewKind,
    default_threshold_rules,
)


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------

class TestModels:
    def test_weekend_flag(self):
        assert TargetRecord("Acme", 10, "Dana", " yes ").weekend_flag == "Y"
        assert TargetRecord("Acme", 10, "Dana", "n").weekend_flag == "N"
        assert TargetRecord("Acme", 10, "Dana", "maybe").weekend_flag == ""

    def test_view_kind_from_string(self):
        assert ViewKind("executive") is ViewKind.EXECUTIVE

    def test_metric_row_to_record_client_label(self):
        roles = ColumnRoles(columns=("client", "sent_count"), client_field="client",
                            metric_columns={"sent_count": "sent_count"})
        row = MetricRow(client="Acme", sent_count=5)
        assert row.to_record(roles) == {"client": "Acme", "sent_count": 5}
        assert row.to_record(roles, client_label="Acme - Summary")["client"] == \
            "Acme - Summary"

    def test_metric_row_to_record_source_names(self):
        roles = ColumnRoles(columns=("Client", "Sent_Count"), client_field="Client",
                            metric_columns={"sent_count": "Sent_Count"})
        record = MetricRow(client=None, sent_count=3).to_record(roles)
        assert record == {"Client": "", "Sent_Count": 3}

    def test_threshold_rule_dict_round_trip(self):
        rule = ThresholdRule(below_by_weekend={"Y": 30.0, "N": 15.0},
                             require_positive=True)
        assert ThresholdRule.from_dict(rule.to_dict()) == rule

    def test_default_rule_filled_in(self):
        config = PipelineConfig(threshold_rules={"friday": ThresholdRule(below=90)})
        assert config.rule_for("monday") == default_threshold_rules()["default"]
        assert config.rule_for("friday").below == 90

    def test_field_checks_case_insensitive(self):
        config = PipelineConfig()
        assert config.is_numeric_field("Open_Count")
        assert config.is_excluded_field("ID")
        assert config.is_non_summed_field("Total_Count")


# ---------------------------------------------------------------------------
# from_dict / to_dict
# ---------------------------------------------------------------------------

class TestConfigDict:
    def test_defaults_from_none(self):
        config = PipelineConfig.from_dict(None)
        assert config.timezone == "UTC"
        assert config.am_sheet_name == "AM"
        assert config.max_rows == 1_000_000
        assert config.min_unique_sent == 1

    def test_rule_override_merges(self):
        config = PipelineConfig.from_dict({
            "threshold_rules": {"Tuesday": {"below": 40}},
        })
        assert config.rule_for("tuesday").below == 40
        # Untouched days keep their defaults
        assert config.rule_for("friday").below == 95

    def test_am_sheet_section(self):
        config = PipelineConfig.from_dict({
            "am_sheet": {"name": "Targets", "target_column": "Goal"},
        })
        assert config.am_sheet_name == "Targets"
        assert config.am_target_column == "Goal"
        assert config.am_client_column == "client_name"

    def test_round_trip(self):
        config = PipelineConfig(timezone="Europe/London", max_rows=500,
                                summary_suffix=" (total)", min_unique_sent=5)
        restored = PipelineConfig.from_dict(config.to_dict())
        assert restored == config


# ---------------------------------------------------------------------------
# YAML loader
# ---------------------------------------------------------------------------

class TestLoader:
    def test_load_none_gives_defaults(self):
        assert load_config(None) == PipelineConfig()

    def test_save_load_round_trip(self, tmp_path):
        config = PipelineConfig(
            timezone="America/New_York",
            threshold_rules={"wednesday": ThresholdRule(below=70, above=120)},
        )
        path = tmp_path / "cfg" / "pipeline.yaml"
        save_config(config, path)
        loaded = load_config(path)
        assert loaded.timezone == "America/New_York"
        assert loaded.rule_for("wednesday") == ThresholdRule(below=70, above=120)

    def test_saved_yaml_is_readable(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        save_config(PipelineConfig(), path)
        data = yaml.safe_load(path.read_text())
        assert data["am_sheet"]["name"] == "AM"
        assert data["threshold_rules"]["monday"]["below_by_weekend"] == {
            "Y": 30.0, "N": 15.0,
        }

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("timezone: Asia/Tokyo\n")
        config = load_config(path)
        assert config.timezone == "Asia/Tokyo"
        assert config.summary_suffix == " - Summary"

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("")
        assert load_config(path) == PipelineConfig()

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ValueError, match="must contain a mapping"):
            load_config(path)

    def test_bad_weekday_rejected(self, tmp_path):
        path = tmp_path / "pipeline.yaml"
        path.write_text("threshold_rules:\n  someday:\n    below: 10\n")
        with pytest.raises(ValueError, match="Unknown weekday"):
            load_config(path)

"""Planning YAML loading and validation."""

from datetime import date
from decimal import Decimal

import pytest
import yaml

from mfg_config import (
    DEFAULT_CONFIG_PATH,
    HorizonSettings,
    compute_checksum,
    load_planning_config,
    load_yaml_file,
    parse_date,
    parse_planning_config,
)
from mfg_engines.lot_sizing import LotSizingStrategy
from mfg_kernel.domain.horizon import BucketSize


@pytest.fixture
def write_yaml(tmp_path):
    def _write(document: dict, name: str = "plant.yaml"):
        path = tmp_path / name
        path.write_text(yaml.safe_dump(document))
        return path
    return _write


class TestShippedDefaults:

    def test_defaults_load(self):
        config = load_planning_config()

        assert config.bom.max_explosion_depth == 99
        assert config.mrp.default_lot_sizing == LotSizingStrategy.LOT_FOR_LOT
        assert config.mrp.eoq_ordering_cost == Decimal("100")
        assert config.capacity.overtime_cost_per_hour == Decimal("75")
        assert config.capacity.bottleneck_threshold == Decimal("0.9")
        assert config.forecast.fallback_periods == 12
        assert config.horizon.bucket_size == BucketSize.WEEK
        assert config.effective_from is None

    def test_defaults_match_dataclass_defaults(self):
        config = load_planning_config(DEFAULT_CONFIG_PATH)

        assert config.horizon == HorizonSettings()
        assert config.capacity.max_overtime_hours == Decimal("24")
        assert config.mrp.luc_holding_cost_rate == Decimal("0.25")

    def test_load_is_logged_with_checksum(self, captured_logs):
        config = load_planning_config()

        (record,) = [r for r in captured_logs() if r["message"] == "planning_config_loaded"]
        assert record["checksum"] == config.checksum
        assert record["path"].endswith("planning.yaml")


class TestPlantOverrides:

    def test_partial_document_keeps_other_defaults(self, write_yaml):
        path = write_yaml({
            "mrp": {"default_lot_sizing": "fixed_order_quantity", "default_lead_time_days": 3},
            "effective_from": "2024-07-01",
        })

        config = load_planning_config(path)

        assert config.mrp.default_lot_sizing == LotSizingStrategy.FIXED_ORDER_QUANTITY
        assert config.mrp.default_lead_time_days == 3
        assert config.mrp.max_explosion_level == 10
        assert config.capacity.overtime_cost_per_hour == Decimal("75")
        assert config.effective_from == date(2024, 7, 1)

    def test_string_path_accepted(self, write_yaml):
        path = write_yaml({"bom": {"default_uom": "KG"}})

        assert load_planning_config(str(path)).bom.default_uom == "KG"

    def test_empty_file_is_all_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        config = load_planning_config(path)
        assert config.mrp.default_lead_time_days == 1
        assert config.horizon.days == 90

    def test_horizon_settings_build_a_horizon(self, write_yaml):
        path = write_yaml({"horizon": {"days": 28, "bucket_size": "day", "frozen_days": 7}})

        horizon = load_planning_config(path).horizon.horizon_from(date(2024, 1, 1))

        assert horizon.total_days == 28
        assert horizon.bucket_size == BucketSize.DAY
        assert horizon.frozen_days == 7


class TestValidation:

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration sections"):
            parse_planning_config({"scheduling": {}})

    @pytest.mark.parametrize(
        "section, message",
        [
            ("bom", "Unknown BOM config keys"),
            ("mrp", "Unknown MRP config keys"),
            ("capacity", "Unknown capacity config keys"),
            ("forecast", "Unknown forecast config keys"),
            ("horizon", "Unknown horizon keys"),
        ],
    )
    def test_unknown_key_rejected(self, section, message):
        with pytest.raises(ValueError, match=message):
            parse_planning_config({section: {"colour": "blue"}})

    def test_invalid_value_rejected(self):
        with pytest.raises(ValueError, match="max_explosion_level"):
            parse_planning_config({"mrp": {"max_explosion_level": 0}})

    def test_unknown_lot_sizing_rejected(self):
        with pytest.raises(ValueError):
            parse_planning_config({"mrp": {"default_lot_sizing": "whatever"}})

    def test_horizon_must_span_a_day(self):
        with pytest.raises(ValueError, match="at least one day"):
            parse_planning_config({"horizon": {"days": 0}})

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_yaml_file(tmp_path / "absent.yaml")

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "broken.yaml"
        path.write_text("mrp: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_planning_config(path)


class TestHelpers:

    def test_parse_date(self):
        assert parse_date("2024-03-01") == date(2024, 3, 1)
        assert parse_date(date(2024, 3, 1)) == date(2024, 3, 1)
        with pytest.raises(ValueError, match="Cannot parse date"):
            parse_date(20240301)

    def test_checksum_ignores_key_order(self):
        a = {"mrp": {"default_lead_time_days": 2}, "bom": {"default_uom": "EA"}}
        b = {"bom": {"default_uom": "EA"}, "mrp": {"default_lead_time_days": 2}}

        assert compute_checksum(a) == compute_checksum(b)
        assert len(compute_checksum(a)) == 64

    def test_checksum_changes_with_content(self):
        assert compute_checksum({"mrp": {"default_lead_time_days": 2}}) != compute_checksum(
            {"mrp": {"default_lead_time_days": 3}}
        )

    def test_parsed_config_carries_checksum(self):
        document = {"bom": {"line_number_increment": 5}}
        config = parse_planning_config(document)

        assert config.checksum == compute_checksum(document)
        assert config.bom.line_number_increment == 5

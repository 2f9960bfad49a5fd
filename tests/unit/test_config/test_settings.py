"""Unit tests for configuration loading, validation and persistence."""
import json

import pytest

from vision_qc.config.defaults import DEFAULT_CONFIG
from vision_qc.config.settings import InspectionConfig, load_config, save_config
from vision_qc.config.validation import SettingsValidator, validate_config
from vision_qc.core.exceptions import ConfigError

pytestmark = pytest.mark.unit


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(str(tmp_path / "absent.json"), environ={})

        assert cfg.match_strategy == DEFAULT_CONFIG["match_strategy"]
        assert cfg.fingerprint_tolerance == 0.5
        assert cfg.extra == {}

    def test_invalid_json_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json", encoding="utf-8")

        assert load_config(str(path), environ={}) == InspectionConfig()

    def test_non_object_json_gives_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2, 3]", encoding="utf-8")

        assert load_config(str(path), environ={}) == InspectionConfig()

    def test_file_values_and_extra_keys(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "match_strategy": "coordinate",
            "match_distance_threshold": 150,
            "coordinate_assignment": "optimal",
            "station": "line-3",
        }), encoding="utf-8")

        cfg = load_config(str(path), environ={})

        assert cfg.match_strategy == "COORDINATE"
        assert cfg.match_distance_threshold == 150.0
        assert cfg.coordinate_assignment == "optimal"
        assert cfg.extra == {"station": "line-3"}
        assert cfg.get("station") == "line-3"
        assert cfg.get("fingerprint_tolerance") == 0.5

    def test_environment_overrides_file(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"fingerprint_tolerance": 0.8}), encoding="utf-8")
        environ = {
            "VISION_QC_FINGERPRINT_TOLERANCE": "0.3",
            "VISION_QC_TREAT_EXTRA_AS_ERROR": "false",
            "VISION_QC_MATCH_STRATEGY": "TOPOLOGY",
        }

        cfg = load_config(str(path), environ=environ)

        assert cfg.fingerprint_tolerance == 0.3
        assert cfg.treat_extra_as_error is False
        assert cfg.match_strategy == "TOPOLOGY"

    def test_invalid_value_falls_back_to_defaults(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"match_strategy": "FUZZY"}), encoding="utf-8")

        assert load_config(str(path), environ={}) == InspectionConfig()

    def test_invalid_value_raises_when_strict(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"fingerprint_tolerance": "high"}), encoding="utf-8")

        with pytest.raises(ConfigError):
            load_config(str(path), environ={}, strict=True)


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        path = tmp_path / "config.json"
        cfg = InspectionConfig(match_strategy="COORDINATE", angle_weight=0.25, extra={"station": "line-3"})

        save_config(cfg, str(path))
        saved = json.loads(path.read_text(encoding="utf-8"))

        assert saved["station"] == "line-3"
        assert "extra" not in saved
        assert load_config(str(path), environ={}) == cfg

    def test_unwritable_path_raises(self, tmp_path):
        with pytest.raises(ConfigError):
            save_config(InspectionConfig(), str(tmp_path / "no" / "such" / "dir" / "config.json"))


class TestValidation:
    def test_out_of_range_is_corrected(self):
        result = SettingsValidator.validate_float_range(150.0, 0.0, 100.0, "angle_weight")

        assert result.is_valid
        assert result.corrected_value == 100.0

    def test_boolean_strings(self):
        assert SettingsValidator.validate_boolean("yes").corrected_value is True
        assert not SettingsValidator.validate_boolean("maybe").is_valid

    def test_choice_is_case_corrected(self):
        result = SettingsValidator.validate_choice("Greedy", SettingsValidator.VALID_ASSIGNMENTS,
                                                   case_insensitive=True)
        assert result.corrected_value == "greedy"

    def test_validate_config_collects_errors(self):
        with pytest.raises(ConfigError) as excinfo:
            validate_config({"fingerprint_tolerance": 0, "topology_error_frame": "world"})

        assert "fingerprint_tolerance" in str(excinfo.value)
        assert "topology_error_frame" in str(excinfo.value)

    def test_validate_config_keeps_unknown_keys(self):
        corrected = validate_config({"log_level": "debug", "custom": 1})
        assert corrected == {"log_level": "DEBUG", "custom": 1}

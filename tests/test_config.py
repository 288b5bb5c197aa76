"""
Tests for configuration loading.
"""
import json

import pytest

from config import AppConfig, ChartDefaults, get_config, load_config, to_json


class TestLoadConfig:
    def test_builtin_defaults_without_file(self):
        config, config_path = load_config()
        assert config_path is None
        assert config == AppConfig()
        assert config.defaults.creator == "Unknown Creator"
        assert config.stepmania.sample_length_seconds == 12.0
        assert config.web_server.port == 5178

    def test_file_values(self, tmp_path):
        config_path = tmp_path / "rhythmconv_config.json"
        config_path.write_text(
            json.dumps({"defaults": {"creator": "File Creator", "key_count": 7}, "web_server": {"port": 9000}}),
            encoding="utf-8",
        )
        config, resolved_path = load_config(config_path)

        assert resolved_path == config_path
        assert config.defaults.creator == "File Creator"
        assert config.defaults.key_count == 7
        assert config.web_server.port == 9000

    def test_explicit_path_from_environment(self, tmp_path, monkeypatch):
        config_path = tmp_path / "custom.json"
        config_path.write_text(json.dumps({"stepmania": {"sample_length_seconds": 15}}), encoding="utf-8")
        monkeypatch.setenv("RHYTHMCONV_CONFIG_PATH", str(config_path))

        config, resolved_path = load_config()

        assert resolved_path == config_path
        assert config.stepmania.sample_length_seconds == 15.0

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("RHYTHMCONV_WEB_HOST", "0.0.0.0")
        monkeypatch.setenv("RHYTHMCONV_WEB_PORT", "8123")
        monkeypatch.setenv("RHYTHMCONV_DEFAULT_CREATOR", "Env Creator")
        monkeypatch.setenv("RHYTHMCONV_SM_SAMPLE_LENGTH", "9.5")

        config, _config_path = load_config()

        assert config.web_server.host == "0.0.0.0"
        assert config.web_server.port == 8123
        assert config.defaults.creator == "Env Creator"
        assert config.stepmania.sample_length_seconds == 9.5

    def test_unparsable_env_number_is_ignored(self, monkeypatch):
        monkeypatch.setenv("RHYTHMCONV_WEB_PORT", "not a port")
        config, _config_path = load_config()
        assert config.web_server.port == 5178

    def test_invalid_json(self, tmp_path):
        config_path = tmp_path / "broken.json"
        config_path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(config_path)

    def test_validation_error(self, tmp_path):
        config_path = tmp_path / "invalid.json"
        config_path.write_text(json.dumps({"defaults": {"key_count": 0}}), encoding="utf-8")
        with pytest.raises(ValueError, match="validation failed"):
            load_config(config_path)

    def test_get_config_is_cached(self):
        assert get_config() is get_config()


class TestChartDefaults:
    def test_frozen(self):
        defaults = ChartDefaults()
        with pytest.raises(Exception):
            defaults.title = "Changed"

    def test_to_json_round_trip(self):
        config = AppConfig(defaults=ChartDefaults(genre="Json Genre"))
        assert AppConfig.model_validate(json.loads(to_json(config))) == config

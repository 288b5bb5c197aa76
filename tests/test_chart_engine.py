"""
Tests for the format registry and file conversion.
"""
from pathlib import Path

import pytest

from chart_engine import (
    ChartEngine,
    ChartLoadError,
    chart_summary,
    convert_text,
    detect_format,
    normalize_format_name,
    parse_chart,
    supported_formats,
    write_chart,
)
from chart_errors import InvalidModeError, UnsupportedFormatError
from config import AppConfig, ChartDefaults, StepManiaConfig


class TestFormatLookup:
    def test_supported_formats(self):
        assert [chart_format.name for chart_format in supported_formats()] == ["osu", "sm", "qua"]

    @pytest.mark.parametrize("name, expected", [("osu", "osu"), (".SM", "sm"), (" Qua ", "qua")])
    def test_normalize_format_name(self, name, expected):
        assert normalize_format_name(name) == expected

    def test_unknown_format_name(self):
        with pytest.raises(UnsupportedFormatError):
            normalize_format_name("bms")

    @pytest.mark.parametrize("path, expected", [("a.osu", "osu"), ("dir/b.SM", "sm"), ("c.qua", "qua")])
    def test_detect_format(self, path, expected):
        assert detect_format(Path(path)) == expected

    def test_detect_unknown_suffix(self):
        with pytest.raises(UnsupportedFormatError):
            detect_format(Path("chart.ssc"))


class TestTextConversion:
    @pytest.mark.parametrize("target", ["osu", "sm", "qua"])
    def test_osu_to_every_format(self, osu_chart_text, target):
        output_text = convert_text(osu_chart_text, "osu", target)
        chart = parse_chart(output_text, target)

        assert chart.chartinfo.key_count == 4
        assert chart.hitobjects.object_count() == 3
        assert chart.hitobjects.times == [1000, 1500, 2000, 3000]

    def test_defaults_fill_missing_metadata(self, osu_chart_text):
        defaults = ChartDefaults(genre="Test Genre")
        chart = parse_chart(osu_chart_text, "osu", defaults=defaults)
        assert chart.metadata.genre == "Test Genre"

    def test_write_chart_uses_stepmania_config(self, osu_chart_text):
        chart = parse_chart(osu_chart_text, "osu")
        text = write_chart(chart, "sm", stepmania=StepManiaConfig(sample_length_seconds=30.0))
        assert "#SAMPLELENGTH:30.000;" in text

    def test_parse_errors_propagate(self, osu_chart_text):
        with pytest.raises(InvalidModeError):
            convert_text(osu_chart_text.replace("Mode: 3", "Mode: 1"), "osu", "qua")

    def test_chart_summary(self, osu_chart_text):
        summary = chart_summary(parse_chart(osu_chart_text, "osu"))
        assert summary["title"] == "Engine Song"
        assert summary["key_count"] == 4
        assert summary["object_count"] == 3
        assert summary["row_count"] == 4
        assert summary["bpms"] == [120.0]
        assert summary["stop_count"] == 0


class TestChartEngine:
    def test_convert_file_default_output_path(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text, encoding="utf-8")

        result = ChartEngine().convert_file(input_path, "sm")

        assert result.output_path == tmp_path / "song.sm"
        assert result.source_format == "osu"
        assert result.target_format == "sm"
        assert result.output_path.read_text(encoding="utf-8") == result.output_text

    def test_convert_file_explicit_output(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text, encoding="utf-8")
        output_path = tmp_path / "out" / "converted.qua"

        result = ChartEngine().convert_file(input_path, "qua", output_path)

        assert result.output_path == output_path
        assert output_path.exists()

    def test_same_format_does_not_overwrite_input(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text, encoding="utf-8")

        result = ChartEngine().convert_file(input_path, "osu")

        assert result.output_path == tmp_path / "song.converted.osu"
        assert input_path.read_text(encoding="utf-8") == osu_chart_text

    def test_source_format_override(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "chart.txt"
        input_path.write_text(osu_chart_text, encoding="utf-8")

        result = ChartEngine().convert_file(input_path, "qua", source_format="osu")

        assert result.output_path == tmp_path / "chart.qua"

    def test_utf8_bom_is_accepted(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "bom.osu"
        input_path.write_bytes(b"\xef\xbb\xbf" + osu_chart_text.encode("utf-8"))

        chart = ChartEngine().load_chart(input_path)

        assert chart.metadata.title == "Engine Song"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ChartLoadError):
            ChartEngine().load_chart(tmp_path / "missing.osu")

    def test_invalid_utf8(self, tmp_path):
        input_path = tmp_path / "binary.osu"
        input_path.write_bytes(b"\xff\xfe\x00garbage")
        with pytest.raises(ChartLoadError):
            ChartEngine().load_chart(input_path)

    def test_engine_config_defaults(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text, encoding="utf-8")
        engine = ChartEngine(AppConfig(defaults=ChartDefaults(source="Config Source")))

        chart = engine.load_chart(input_path)

        assert chart.metadata.source == "Config Source"

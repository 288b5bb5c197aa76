"""
Tests for the rhythmconv command line entrypoint.
"""
import json

import rhythmconv


class TestConvertCommand:
    def test_converts_file(self, tmp_path, osu_chart_text, capsys):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text, encoding="utf-8")

        exit_code = rhythmconv.main([str(input_path), "--to", "sm"])

        assert exit_code == 0
        assert (tmp_path / "song.sm").exists()
        assert capsys.readouterr().out.strip() == str(tmp_path / "song.sm")

    def test_explicit_output_and_source(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "chart.txt"
        input_path.write_text(osu_chart_text, encoding="utf-8")
        output_path = tmp_path / "result.qua"

        exit_code = rhythmconv.main([str(input_path), "--from", "osu", "--to", "qua", "-o", str(output_path)])

        assert exit_code == 0
        assert "Mode: Keys4" in output_path.read_text(encoding="utf-8")

    def test_chart_error_exits_2(self, tmp_path, osu_chart_text):
        input_path = tmp_path / "song.osu"
        input_path.write_text(osu_chart_text.replace("CircleSize:4", "CircleSize:5"), encoding="utf-8")

        assert rhythmconv.main([str(input_path), "--to", "qua"]) == 2

    def test_missing_file_exits_2(self, tmp_path):
        assert rhythmconv.main([str(tmp_path / "missing.osu"), "--to", "sm"]) == 2

    def test_missing_target_exits_2(self, tmp_path):
        assert rhythmconv.main([str(tmp_path / "song.osu")]) == 2


class TestShowConfig:
    def test_prints_config(self, capsys):
        assert rhythmconv.main(["--show-config"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["ok"] is True
        assert payload["config_path"] is None
        assert payload["config"]["web_server"]["port"] == 5178


class TestServe:
    def test_serve_uses_config_and_overrides(self, monkeypatch):
        import web_server

        captured = {}

        def fake_run_server(options, config=None):
            captured["options"] = options
            return 0

        monkeypatch.setattr(web_server, "run_server", fake_run_server)

        assert rhythmconv.main(["--serve", "--port", "6000"]) == 0
        assert captured["options"].port == 6000
        assert captured["options"].host == "127.0.0.1"

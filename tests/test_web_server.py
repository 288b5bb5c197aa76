"""
Tests for the conversion HTTP API.
"""
import pytest

from config import AppConfig, ChartDefaults
from qua_store import from_qua
from web_server import create_flask_app


@pytest.fixture
def client():
    flask_app = create_flask_app(AppConfig())
    flask_app.config["TESTING"] = True
    return flask_app.test_client()


class TestStatusEndpoints:
    def test_status(self, client):
        response = client.get("/api/status")
        assert response.status_code == 200
        assert response.get_json() == {"ok": True, "formats": ["osu", "sm", "qua"]}
        assert response.headers["Cache-Control"] == "no-store"

    def test_formats(self, client):
        payload = client.get("/api/formats").get_json()
        assert payload["ok"] is True
        assert payload["formats"][0] == {"name": "osu", "label": "osu!mania", "suffix": ".osu"}

    def test_unknown_route(self, client):
        response = client.get("/api/nothing")
        assert response.status_code == 404
        assert response.get_json()["ok"] is False

    def test_wrong_method(self, client):
        response = client.get("/api/convert")
        assert response.status_code == 405


class TestConvert:
    def test_convert_osu_to_qua(self, client, osu_chart_text):
        response = client.post(
            "/api/convert",
            json={"source_format": "osu", "target_format": "qua", "chart": osu_chart_text},
        )
        payload = response.get_json()

        assert response.status_code == 200
        assert payload["ok"] is True
        chart = from_qua(payload["chart"])
        assert chart.metadata.title == "Engine Song"
        assert chart.hitobjects.object_count() == 3

    def test_missing_fields(self, client):
        response = client.post("/api/convert", json={"source_format": "osu"})
        assert response.status_code == 400
        assert "target_format" in response.get_json()["error"]

    def test_non_json_body(self, client):
        response = client.post("/api/convert", data="not json", content_type="text/plain")
        assert response.status_code == 400

    def test_chart_error_maps_to_400(self, client, osu_chart_text):
        response = client.post(
            "/api/convert",
            json={"source_format": "osu", "target_format": "sm", "chart": osu_chart_text.replace("CircleSize:4", "CircleSize:7")},
        )
        payload = response.get_json()
        assert response.status_code == 400
        assert payload["ok"] is False
        assert "StepMania" in payload["error"]

    def test_unsupported_format(self, client, osu_chart_text):
        response = client.post(
            "/api/convert",
            json={"source_format": "bms", "target_format": "sm", "chart": osu_chart_text},
        )
        assert response.status_code == 400

    def test_app_config_defaults_are_used(self, osu_chart_text):
        flask_app = create_flask_app(AppConfig(defaults=ChartDefaults(genre="Server Genre")))
        response = flask_app.test_client().post(
            "/api/convert",
            json={"source_format": "osu", "target_format": "qua", "chart": osu_chart_text},
        )
        assert "Genre: Server Genre" in response.get_json()["chart"]


class TestInspect:
    def test_inspect(self, client, osu_chart_text):
        response = client.post("/api/inspect", json={"source_format": "osu", "chart": osu_chart_text})
        summary = response.get_json()["summary"]

        assert response.status_code == 200
        assert summary["title"] == "Engine Song"
        assert summary["key_count"] == 4
        assert summary["bpms"] == [120.0]

    def test_inspect_parse_error(self, client):
        response = client.post("/api/inspect", json={"source_format": "osu", "chart": "[General]\nMode: 0\n"})
        assert response.status_code == 400
        assert response.get_json()["ok"] is False

# -*- coding: utf-8 -*-
from __future__ import annotations

########################
# web_server.py
########################
# Purpose:
# - Local Flask web server exposing chart conversion over HTTP.
# - Stateless: every request parses and writes its own chart.
#
# Design notes:
# - Chart text travels in JSON bodies as plain strings.
# - chart_errors.ChartError maps to 400 with {"ok": false, "error": ...}.
#
########################
# Interfaces:
# Public dataclasses:
# - ServerRunOptions(host: str, port: int, debug: bool)
#
# Public functions:
# - create_flask_app(config: Optional[config.AppConfig] = None) -> flask.Flask
# - run_server(options: ServerRunOptions, config: Optional[config.AppConfig] = None) -> int
# - main(argv: Optional[list[str]] = None) -> int
#
# Inputs:
# - HTTP requests:
#   - /api/status (GET)
#   - /api/formats (GET)
#   - /api/convert (POST) {"source_format", "target_format", "chart"}
#   - /api/inspect (POST) {"source_format", "chart"}
#
# Outputs:
# - JSON responses.
#
########################
# Tests:
#   - python web_server.py --host 127.0.0.1 --port 5178
########################

import argparse
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Optional

from flask import Flask, Response, jsonify, request

from chart_engine import chart_summary, parse_chart, supported_formats, write_chart
from chart_errors import ChartError
import config as app_config_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerRunOptions:
    host: str
    port: int
    debug: bool = False


def _serialize_dataclass(value: Any) -> Any:
    if dataclasses.is_dataclass(value):
        result: dict[str, Any] = {}
        for field in dataclasses.fields(value):
            if callable(getattr(value, field.name)):
                continue
            result[field.name] = _serialize_dataclass(getattr(value, field.name))
        return result
    if isinstance(value, (list, tuple)):
        return [_serialize_dataclass(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _serialize_dataclass(subvalue) for key, subvalue in value.items()}
    return value


def _error_response(message: str, status_code: int) -> tuple[Response, int]:
    return jsonify({"ok": False, "error": message}), status_code


def _required_text(payload: dict[str, Any], key_name: str) -> str:
    value = payload.get(key_name)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Missing or empty '{key_name}'")
    return value


def create_flask_app(config: Optional[app_config_module.AppConfig] = None) -> Flask:
    flask_app = Flask(__name__, static_folder=None)
    app_config = config or app_config_module.AppConfig()
    flask_app.extensions["rhythmconv_config"] = app_config

    @flask_app.after_request
    def add_no_cache_headers(response: Response) -> Response:
        response.headers["Cache-Control"] = "no-store"
        return response

    @flask_app.errorhandler(404)
    def not_found(_error: Any) -> tuple[Response, int]:
        return _error_response("Not found", 404)

    @flask_app.errorhandler(405)
    def method_not_allowed(_error: Any) -> tuple[Response, int]:
        return _error_response("Method not allowed", 405)

    # API

    @flask_app.get("/api/status")
    def api_status() -> Response:
        return jsonify({"ok": True, "formats": [chart_format.name for chart_format in supported_formats()]})

    @flask_app.get("/api/formats")
    def api_formats() -> Response:
        return jsonify({"ok": True, "formats": _serialize_dataclass(supported_formats())})

    @flask_app.post("/api/convert")
    def api_convert() -> Any:
        payload = request.get_json(silent=True) or {}
        try:
            source_format = _required_text(payload, "source_format")
            target_format = _required_text(payload, "target_format")
            chart_text = _required_text(payload, "chart")
        except ValueError as exception:
            return _error_response(str(exception), 400)

        try:
            chart = parse_chart(chart_text, source_format, defaults=app_config.defaults)
            output_text = write_chart(chart, target_format, stepmania=app_config.stepmania)
        except ChartError as exception:
            logger.debug("Conversion %s -> %s failed: %s", source_format, target_format, exception)
            return _error_response(str(exception), 400)

        return jsonify({"ok": True, "chart": output_text})

    @flask_app.post("/api/inspect")
    def api_inspect() -> Any:
        payload = request.get_json(silent=True) or {}
        try:
            source_format = _required_text(payload, "source_format")
            chart_text = _required_text(payload, "chart")
        except ValueError as exception:
            return _error_response(str(exception), 400)

        try:
            chart = parse_chart(chart_text, source_format, defaults=app_config.defaults)
        except ChartError as exception:
            return _error_response(str(exception), 400)

        return jsonify({"ok": True, "summary": chart_summary(chart)})

    return flask_app


def _parse_args(argv: Optional[list[str]] = None) -> ServerRunOptions:
    app_config, _config_path = app_config_module.get_config()

    argument_parser = argparse.ArgumentParser(description="rhythmconv local conversion server")
    argument_parser.add_argument("--host", default=app_config.web_server.host, help="Bind host, 0.0.0.0 for LAN access")
    argument_parser.add_argument("--port", type=int, default=app_config.web_server.port, help="Bind port")
    argument_parser.add_argument("--debug", action="store_true", help="Enable Flask debug mode")
    parsed = argument_parser.parse_args(argv)

    return ServerRunOptions(host=str(parsed.host), port=int(parsed.port), debug=bool(parsed.debug))


def run_server(options: ServerRunOptions, config: Optional[app_config_module.AppConfig] = None) -> int:
    flask_app = create_flask_app(config)
    logger.info("Serving chart conversion on http://%s:%d", options.host, options.port)
    flask_app.run(host=options.host, port=options.port, debug=options.debug, use_reloader=False)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    options = _parse_args(argv)
    app_config, _config_path = app_config_module.get_config()
    return run_server(options, app_config)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    raise SystemExit(main())

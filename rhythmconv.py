"""
rhythmconv.py

Command line entrypoint for converting rhythm game charts.

Usage
- rhythmconv song.osu --to sm
- rhythmconv song.sm --to qua -o out/song.qua
- rhythmconv chart.txt --from osu --to qua
- rhythmconv --serve [--host 127.0.0.1] [--port 5178]
- rhythmconv --show-config

Exit codes
- 0 on success
- 2 on any chart, file or config error
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from chart_engine import FORMATS, ChartEngine, ChartLoadError
from chart_errors import ChartError
from config import get_config, to_json

logger = logging.getLogger("rhythmconv")


def _build_parser() -> argparse.ArgumentParser:
    format_names = sorted(FORMATS)
    argument_parser = argparse.ArgumentParser(
        prog="rhythmconv",
        description="Convert charts between osu!mania (.osu), StepMania (.sm) and Quaver (.qua).",
    )
    argument_parser.add_argument("input", nargs="?", help="Chart file to convert.")
    argument_parser.add_argument("--to", dest="target_format", choices=format_names, help="Output format.")
    argument_parser.add_argument("-o", "--output", help="Output file. Defaults to the input path with the target suffix.")
    argument_parser.add_argument("--from", dest="source_format", choices=format_names, help="Input format, if the suffix is not enough.")
    argument_parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    argument_parser.add_argument("--serve", action="store_true", help="Run the local conversion web server.")
    argument_parser.add_argument("--host", help="Web server bind host.")
    argument_parser.add_argument("--port", type=int, help="Web server bind port.")
    argument_parser.add_argument("--show-config", action="store_true", help="Print the resolved configuration and exit.")
    return argument_parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _show_config() -> int:
    app_config, config_path = get_config()
    output_payload = {
        "ok": True,
        "config_path": str(config_path) if config_path is not None else None,
        "config": json.loads(to_json(app_config)),
    }
    print(json.dumps(output_payload, ensure_ascii=False, indent=2))
    return 0


def _serve(parsed_args: argparse.Namespace) -> int:
    import web_server

    app_config, _config_path = get_config()
    options = web_server.ServerRunOptions(
        host=str(parsed_args.host or app_config.web_server.host),
        port=int(parsed_args.port or app_config.web_server.port),
    )
    return web_server.run_server(options, app_config)


def main(argv: Optional[List[str]] = None) -> int:
    argument_parser = _build_parser()
    parsed_args = argument_parser.parse_args(argv)
    _configure_logging(bool(parsed_args.verbose))

    try:
        if parsed_args.show_config:
            return _show_config()
        if parsed_args.serve:
            return _serve(parsed_args)

        if not parsed_args.input or not parsed_args.target_format:
            argument_parser.print_usage(sys.stderr)
            print("rhythmconv: error: INPUT and --to are required unless --serve or --show-config is given", file=sys.stderr)
            return 2

        app_config, _config_path = get_config()
        engine = ChartEngine(app_config)
        result = engine.convert_file(
            Path(parsed_args.input),
            parsed_args.target_format,
            Path(parsed_args.output) if parsed_args.output else None,
            source_format=parsed_args.source_format,
        )
    except (ChartError, ChartLoadError, ValueError, OSError) as exception:
        logger.error("%s", exception)
        return 2

    print(str(result.output_path))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

# -*- coding: utf-8 -*-
########################
# chart_engine.py
########################
# Purpose:
# - Format registry and the single entry point for converting charts between formats.
# - File level conversion: read, detect format by suffix, convert, write.
#
########################
# Key Logic:
# - Formats are looked up by name ("osu", "sm", "qua"), case-insensitive, leading '.' allowed.
# - Strict contract:
#   - Parse and write errors (chart_errors.ChartError) propagate unchanged.
#   - File system and encoding failures are wrapped in ChartLoadError.
#   - Never overwrite the input file: same-format output gets a ".converted" suffix.
#
########################
# Interfaces:
# Public exceptions:
# - class ChartLoadError(Exception)
#
# Public dataclasses:
# - @dataclass(frozen=True) class ChartFormat(name, label, suffix, parse, write)
# - @dataclass(frozen=True) class ConversionResult(chart, source_format, target_format, output_text, output_path)
#
# Public functions:
# - supported_formats() -> list[ChartFormat]
# - normalize_format_name(name: str) -> str
# - detect_format(path: pathlib.Path) -> str
# - parse_chart(text: str, format_name: str, *, defaults: Optional[ChartDefaults] = None) -> Chart
# - write_chart(chart: Chart, format_name: str, *, stepmania: Optional[StepManiaConfig] = None) -> str
# - convert_text(text: str, source_format: str, target_format: str, *, config: Optional[AppConfig] = None) -> str
# - chart_summary(chart: Chart) -> dict[str, Any]
#
# Public classes:
# - class ChartEngine
#   - load_chart(input_path, *, source_format=None) -> Chart
#   - convert_file(input_path, target_format, output_path=None, *, source_format=None) -> ConversionResult
#
########################
# Smoke Tests:
#   - python chart_engine.py
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
import tempfile
from typing import Any, Callable, Dict, List, Optional

from chart_errors import UnsupportedFormatError
from chart_models import Chart
from config import AppConfig, ChartDefaults, StepManiaConfig
import osu_store
import qua_store
import sm_store

logger = logging.getLogger(__name__)


class ChartLoadError(Exception):
    """Raised when a chart file cannot be read or written."""


@dataclass(frozen=True)
class ChartFormat:
    name: str
    label: str
    suffix: str
    parse: Callable[[str, Optional[ChartDefaults]], Chart]
    write: Callable[..., str]


@dataclass(frozen=True)
class ConversionResult:
    chart: Chart
    source_format: str
    target_format: str
    output_text: str
    output_path: Optional[Path] = None


FORMATS: Dict[str, ChartFormat] = {
    "osu": ChartFormat("osu", "osu!mania", ".osu", osu_store.from_osu, osu_store.to_osu),
    "sm": ChartFormat("sm", "StepMania", ".sm", sm_store.from_sm, sm_store.to_sm),
    "qua": ChartFormat("qua", "Quaver", ".qua", qua_store.from_qua, qua_store.to_qua),
}


def supported_formats() -> List[ChartFormat]:
    return list(FORMATS.values())


def normalize_format_name(name: str) -> str:
    format_name = str(name or "").strip().lower().lstrip(".")
    if format_name not in FORMATS:
        raise UnsupportedFormatError(str(name or ""))
    return format_name


def detect_format(path: Path) -> str:
    suffix = Path(path).suffix.lower()
    for chart_format in FORMATS.values():
        if chart_format.suffix == suffix:
            return chart_format.name
    raise UnsupportedFormatError(suffix or Path(path).name)


def parse_chart(text: str, format_name: str, *, defaults: Optional[ChartDefaults] = None) -> Chart:
    chart_format = FORMATS[normalize_format_name(format_name)]
    return chart_format.parse(text, defaults)


def write_chart(chart: Chart, format_name: str, *, stepmania: Optional[StepManiaConfig] = None) -> str:
    chart_format = FORMATS[normalize_format_name(format_name)]
    if chart_format.name == "sm":
        stepmania_config = stepmania or StepManiaConfig()
        return chart_format.write(chart, sample_length_seconds=stepmania_config.sample_length_seconds)
    return chart_format.write(chart)


def convert_text(text: str, source_format: str, target_format: str, *, config: Optional[AppConfig] = None) -> str:
    app_config = config or AppConfig()
    chart = parse_chart(text, source_format, defaults=app_config.defaults)
    return write_chart(chart, target_format, stepmania=app_config.stepmania)


def chart_summary(chart: Chart) -> Dict[str, Any]:
    timing_points = chart.timing_points
    soundbank = chart.soundbank
    return {
        "title": chart.metadata.title,
        "artist": chart.metadata.artist,
        "creator": chart.metadata.creator,
        "difficulty_name": chart.chartinfo.difficulty_name,
        "key_count": chart.chartinfo.key_count,
        "row_count": chart.chartinfo.row_count,
        "object_count": chart.chartinfo.object_count,
        "audio_offset": chart.chartinfo.audio_offset,
        "bpms": timing_points.bpms(),
        "sv_count": len(timing_points.sv()),
        "stop_count": sum(1 for _entry in timing_points.stop_changes_zipped()),
        "sample_count": soundbank.sample_count() if soundbank is not None else 0,
    }


def _read_text_utf8(file_path: Path) -> str:
    try:
        # utf-8-sig: osu! and Quaver editors may write a BOM.
        return file_path.read_text(encoding="utf-8-sig")
    except UnicodeDecodeError as exc:
        raise ChartLoadError(f"Chart file is not valid UTF-8: {file_path}") from exc
    except OSError as exc:
        raise ChartLoadError(f"Failed to read chart file: {file_path}") from exc


def _write_text_utf8(file_path: Path, text: str) -> None:
    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_path.write_text(text, encoding="utf-8")
    except OSError as exc:
        raise ChartLoadError(f"Failed to write chart file: {file_path}") from exc


def _default_output_path(input_path: Path, target_suffix: str) -> Path:
    output_path = input_path.with_suffix(target_suffix)
    if output_path == input_path:
        output_path = input_path.with_name(f"{input_path.stem}.converted{target_suffix}")
    return output_path


class ChartEngine:
    def __init__(self, config: Optional[AppConfig] = None) -> None:
        self.config = config or AppConfig()

    def load_chart(self, input_path: Path, *, source_format: Optional[str] = None) -> Chart:
        chart_path = Path(input_path)
        format_name = normalize_format_name(source_format) if source_format else detect_format(chart_path)
        text = _read_text_utf8(chart_path)
        logger.debug("Parsing %s as %s", chart_path, format_name)
        return parse_chart(text, format_name, defaults=self.config.defaults)

    def convert_file(
        self,
        input_path: Path,
        target_format: str,
        output_path: Optional[Path] = None,
        *,
        source_format: Optional[str] = None,
    ) -> ConversionResult:
        chart_path = Path(input_path)
        source_name = normalize_format_name(source_format) if source_format else detect_format(chart_path)
        target_name = normalize_format_name(target_format)

        chart = self.load_chart(chart_path, source_format=source_name)
        output_text = write_chart(chart, target_name, stepmania=self.config.stepmania)

        destination = Path(output_path) if output_path is not None else _default_output_path(chart_path, FORMATS[target_name].suffix)
        _write_text_utf8(destination, output_text)
        logger.info("Converted %s (%s) to %s (%s)", chart_path, source_name, destination, target_name)

        return ConversionResult(
            chart=chart,
            source_format=source_name,
            target_format=target_name,
            output_text=output_text,
            output_path=destination,
        )


_SMOKE_OSU_CHART = """osu file format v14

[General]
AudioFilename: audio.mp3
Mode: 3

[Metadata]
Title:Smoke
Version:Normal

[Difficulty]
CircleSize:4

[TimingPoints]
0,500,4,1,0,100,1,0

[HitObjects]
64,192,1000,1,0,0:0:0:0:
192,192,1500,128,0,2000:0:0:0:0:
"""


def _assert(condition: bool, message: str) -> None:
    if not condition:
        raise AssertionError(message)


def _run_chunk_tests() -> None:
    for target_name in FORMATS:
        output_text = convert_text(_SMOKE_OSU_CHART, "osu", target_name)
        reparsed = parse_chart(output_text, target_name)
        _assert(reparsed.chartinfo.key_count == 4, f"Expected 4 keys after osu -> {target_name}")
        _assert(reparsed.hitobjects.object_count() == 2, f"Expected 2 objects after osu -> {target_name}")

    with tempfile.TemporaryDirectory() as temp_dir:
        input_path = Path(temp_dir) / "smoke.osu"
        input_path.write_text(_SMOKE_OSU_CHART, encoding="utf-8")
        result = ChartEngine().convert_file(input_path, "qua")
        _assert(result.output_path is not None and result.output_path.suffix == ".qua", "Expected .qua output")

        same_format = ChartEngine().convert_file(input_path, "osu")
        _assert(same_format.output_path != input_path, "Input file must never be overwritten")

    try:
        detect_format(Path("chart.bms"))
    except UnsupportedFormatError:
        pass
    else:
        raise AssertionError("Expected UnsupportedFormatError for .bms")

    try:
        ChartEngine().load_chart(Path("missing_chart.osu"))
    except ChartLoadError:
        pass
    else:
        raise AssertionError("Expected ChartLoadError for a missing file")


def main() -> int:
    """Chunk test entrypoint."""
    try:
        _run_chunk_tests()
    except Exception as exc:
        print("Chart conversion chunk tests: FAIL")
        print(str(exc))
        return 2

    print("Chart conversion chunk tests: PASS")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

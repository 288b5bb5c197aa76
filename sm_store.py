# -*- coding: utf-8 -*-
########################
# sm_store.py
########################
# Purpose:
# - Parse StepMania .sm text into Chart objects (one per #NOTES block).
# - Write a Chart as StepMania .sm text.
#
# Design notes:
# - Tags are '#TAG:value;' fields split on the first colon only; tag names are case-insensitive.
# - #BPMS is required. #BPMS and #STOPS are merged (stable, by beat) before any beat/time conversion.
# - Stops stay in TimingPoints as Stop(seconds) entries placed at the time the pause begins.
# - Row beat = measure_index * 4 + row_index * 4 / rows_in_measure. Row width is the key count.
# - The writer delegates grid layout to measure_padding.py.
#
########################
# Interfaces:
# Public dataclasses:
# - StepChartBlock(step_type: str, description: str, difficulty: str, meter: str, radar_values: str, notes_text: str)
#
# Public functions:
# - from_sm(text: str, defaults: Optional[ChartDefaults] = None) -> Chart
# - from_sm_all(text: str, defaults: Optional[ChartDefaults] = None) -> list[Chart]
# - to_sm(chart: Chart, *, sample_length_seconds: float = 12.0) -> str
# - step_type_for_key_count(key_count: int) -> str
# - canonical_difficulty(difficulty: str) -> Optional[str]
#
########################

from __future__ import annotations

import copy
from dataclasses import dataclass
import logging
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from chart_errors import EmptyChartDataError, InvalidChartError, InvalidKeyCountError, WriteError
from chart_models import (
    Chart,
    ChartInfo,
    HitObjects,
    Key,
    KeyType,
    Metadata,
    Row,
    TimingChange,
    TimingPoints,
)
from config import DEFAULT_CHART_DEFAULTS, ChartDefaults
from measure_padding import build_measures
from rhythm import INVALID_RESULT, beat_to_time, merge_bpm_and_stops, to_millis, to_seconds
from section_scanner import scan_hash_tags
from sound_bank import KeySoundRow, SoundBank
from text_utils import or_default_empty, or_default_empty_as, remove_comments

logger = logging.getLogger(__name__)

BEATS_PER_MEASURE = 4.0

_DIFFICULTY_CANONICAL_LABEL = {
    "beginner": "Beginner",
    "easy": "Easy",
    "medium": "Medium",
    "hard": "Hard",
    "challenge": "Challenge",
    "edit": "Edit",
}

_STEP_TYPE_BY_KEY_COUNT = {
    4: "dance-single",
    5: "pump-single",
    6: "dance-solo",
    8: "dance-double",
    10: "pump-double",
}

_SYMBOL_TO_KEY: Dict[str, Callable[[], Key]] = {
    "0": Key.empty,
    "1": Key.normal,
    "2": Key.slider_start,
    "3": Key.slider_end,
    "4": Key.slider_start,
    "M": Key.mine,
    "F": Key.fake,
}

_KEY_TYPE_TO_SYMBOL = {
    KeyType.EMPTY: "0",
    KeyType.NORMAL: "1",
    KeyType.SLIDER_START: "2",
    KeyType.SLIDER_END: "3",
    KeyType.MINE: "M",
    KeyType.FAKE: "F",
    KeyType.UNKNOWN: "0",
}


@dataclass(frozen=True)
class StepChartBlock:
    step_type: str
    description: str
    difficulty: str
    meter: str
    radar_values: str
    notes_text: str


def canonical_difficulty(difficulty: str) -> Optional[str]:
    return _DIFFICULTY_CANONICAL_LABEL.get(str(difficulty or "").strip().lower())


def step_type_for_key_count(key_count: int) -> str:
    step_type = _STEP_TYPE_BY_KEY_COUNT.get(int(key_count))
    if step_type is None:
        supported = ", ".join(f"{count}k" for count in sorted(_STEP_TYPE_BY_KEY_COUNT))
        raise InvalidKeyCountError(int(key_count), supported, "StepMania")
    return step_type


def _parse_notes_block(block_body: str) -> StepChartBlock:
    parts = block_body.split(":", 5)
    if len(parts) != 6:
        raise InvalidChartError(
            f"#NOTES block must have 6 colon-separated fields, found {len(parts)}: '{block_body.strip()[:80]}'"
        )
    return StepChartBlock(
        step_type=parts[0].strip(),
        description=parts[1].strip(),
        difficulty=parts[2].strip(),
        meter=parts[3].strip(),
        radar_values=parts[4].strip(),
        notes_text=parts[5],
    )


def _parse_beat_pairs(raw_text: str, tag_name: str, *, require_positive: bool) -> Tuple[List[float], List[float]]:
    beats: List[float] = []
    values: List[float] = []
    for item in raw_text.split(","):
        item_text = item.strip()
        if not item_text:
            continue
        beat_text, separator, value_text = item_text.partition("=")
        if not separator:
            raise InvalidChartError(f"Invalid #{tag_name} entry, expected beat=value: '{item_text}'")
        try:
            beat_value = float(beat_text.strip())
            value = float(value_text.strip())
        except ValueError as exc:
            raise InvalidChartError(f"Invalid #{tag_name} numeric values: '{item_text}'") from exc
        if require_positive and value <= 0.0:
            raise InvalidChartError(f"BPM must be positive in #{tag_name}: '{item_text}'")
        beats.append(beat_value)
        values.append(value)

    order = sorted(range(len(beats)), key=lambda index: beats[index])
    return [beats[index] for index in order], [values[index] for index in order]


class _TempoMap:
    """Merged BPM/Stop list anchored at the chart's audio offset."""

    def __init__(self, bpm_pairs: Tuple[List[float], List[float]], stop_pairs: Tuple[List[float], List[float]], start_time: int) -> None:
        self.start_time = int(start_time)
        self.beats, self.values, self.change_types = merge_bpm_and_stops(
            bpm_pairs[0], bpm_pairs[1], stop_pairs[0], stop_pairs[1]
        )

    def time_at(self, beat: float) -> int:
        time_value = beat_to_time(beat, self.start_time, self.beats, self.values, self.change_types)
        if time_value == INVALID_RESULT:
            raise InvalidChartError(f"Cannot compute time for beat {beat}: tempo list is malformed")
        return int(round(time_value))

    def change_start_time(self, index: int) -> int:
        """Time a change takes effect, ignoring itself and everything after it."""
        if index == 0:
            return self.start_time
        time_value = beat_to_time(
            self.beats[index],
            self.start_time,
            self.beats[:index],
            self.values[:index],
            self.change_types[:index],
        )
        if time_value == INVALID_RESULT:
            return self.start_time
        return int(round(time_value))

    def timing_points(self) -> TimingPoints:
        timing_points = TimingPoints()
        for index, (beat, value, change_type) in enumerate(zip(self.beats, self.values, self.change_types)):
            timing_points.add(self.change_start_time(index), beat, TimingChange(change_type=change_type, value=value))
        return timing_points


def _parse_row(row_text: str) -> Row:
    return [_SYMBOL_TO_KEY.get(symbol, Key.unknown)() for symbol in row_text]


def _split_measures(notes_text: str) -> List[List[str]]:
    measures: List[List[str]] = []
    for measure_text in notes_text.split(","):
        rows = ["".join(line.split()) for line in measure_text.splitlines()]
        measures.append([row for row in rows if row])
    if measures and not measures[-1] and len(measures) > 1:
        measures.pop()
    return measures


def _build_hitobjects(block: StepChartBlock, tempo_map: _TempoMap, default_key_count: int) -> Tuple[HitObjects, int]:
    hitobjects = HitObjects()
    measures = _split_measures(block.notes_text)
    key_count: Optional[int] = None

    for measure_index, rows in enumerate(measures):
        if not rows:
            continue
        beats_per_row = BEATS_PER_MEASURE / len(rows)
        for row_index, row_text in enumerate(rows):
            if key_count is None:
                key_count = len(row_text)
            elif len(row_text) != key_count:
                raise InvalidChartError(
                    f"Row width {len(row_text)} does not match key count {key_count} in measure {measure_index + 1}: '{row_text}'"
                )
            row_beat = measure_index * BEATS_PER_MEASURE + row_index * beats_per_row
            hitobjects.add_hitobject(tempo_map.time_at(row_beat), row_beat, KeySoundRow.empty(), _parse_row(row_text))

    if key_count is None:
        step_type_counts = {step_type: count for count, step_type in _STEP_TYPE_BY_KEY_COUNT.items()}
        key_count = step_type_counts.get(block.step_type.lower(), default_key_count)

    hitobjects.resolve_slider_end_times()
    return hitobjects, key_count


class _SmHeader:
    """Simfile-wide tags shared by every #NOTES block."""

    def __init__(self, defaults: ChartDefaults) -> None:
        self.defaults = defaults
        self.metadata = Metadata.empty(defaults)
        self.chartinfo = ChartInfo.empty(defaults)
        self.raw_bpms = ""
        self.raw_stops = ""
        self.notes_blocks: List[str] = []

    def tag_handlers(self) -> Dict[str, Callable[[str], None]]:
        metadata = self.metadata
        chartinfo = self.chartinfo
        defaults = self.defaults

        def set_metadata(attribute: str, default: str) -> Callable[[str], None]:
            return lambda value: setattr(metadata, attribute, or_default_empty(value, default))

        def set_chartinfo(attribute: str, default: str) -> Callable[[str], None]:
            return lambda value: setattr(chartinfo, attribute, or_default_empty(value, default))

        def set_offset(value: str) -> None:
            offset_seconds = or_default_empty_as(value, to_seconds(defaults.audio_offset), float)
            chartinfo.audio_offset = -int(round(to_millis(offset_seconds)))

        def set_sample_start(value: str) -> None:
            sample_start = or_default_empty_as(value, to_seconds(defaults.preview_time), float)
            chartinfo.preview_time = int(round(to_millis(sample_start)))

        def set_bpms(value: str) -> None:
            self.raw_bpms = value

        def set_stops(value: str) -> None:
            self.raw_stops = value

        def add_notes(value: str) -> None:
            self.notes_blocks.append(value)

        return {
            "TITLE": set_metadata("title", defaults.title),
            "SUBTITLE": set_metadata("source", defaults.source),
            "ARTIST": set_metadata("artist", defaults.artist),
            "TITLETRANSLIT": set_metadata("alt_title", defaults.alt_title),
            "ARTISTTRANSLIT": set_metadata("alt_artist", defaults.alt_artist),
            "GENRE": set_metadata("genre", defaults.genre),
            "CREDIT": set_metadata("creator", defaults.creator),
            "BACKGROUND": set_chartinfo("bg_path", defaults.bg_path),
            "MUSIC": set_chartinfo("song_path", defaults.song_path),
            "OFFSET": set_offset,
            "SAMPLESTART": set_sample_start,
            "BPMS": set_bpms,
            "STOPS": set_stops,
            "NOTES": add_notes,
        }


def _read_header(text: str, defaults: ChartDefaults) -> _SmHeader:
    uncommented = remove_comments(text, "//")
    if not uncommented.strip():
        raise EmptyChartDataError()

    header = _SmHeader(defaults)
    handlers = header.tag_handlers()
    for tag_name, value in scan_hash_tags(uncommented):
        handler = handlers.get(tag_name)
        if handler is None:
            logger.debug("sm: ignoring tag #%s", tag_name)
            continue
        handler(value)

    if not header.raw_bpms.strip():
        raise InvalidChartError("No BPM data provided in the chart (#BPMS is missing or empty)")
    if not header.notes_blocks:
        raise InvalidChartError("No #NOTES block found")
    return header


def _chart_for_block(header: _SmHeader, block: StepChartBlock, tempo_map: _TempoMap) -> Chart:
    chartinfo = copy.copy(header.chartinfo)
    difficulty_label = block.difficulty
    if canonical_difficulty(block.difficulty) == "Edit" and block.description:
        difficulty_label = block.description
    chartinfo.difficulty_name = or_default_empty(difficulty_label, header.defaults.difficulty_name)

    hitobjects, key_count = _build_hitobjects(block, tempo_map, header.defaults.key_count)
    chartinfo.key_count = key_count
    chartinfo.row_count = len(hitobjects)
    chartinfo.object_count = hitobjects.object_count()

    soundbank = SoundBank()
    if chartinfo.song_path:
        soundbank.audio_tracks.append(chartinfo.song_path)

    return Chart(
        metadata=copy.deepcopy(header.metadata),
        chartinfo=chartinfo,
        timing_points=tempo_map.timing_points(),
        hitobjects=hitobjects,
        soundbank=soundbank,
    )


def _tempo_map_for(header: _SmHeader) -> _TempoMap:
    return _TempoMap(
        _parse_beat_pairs(header.raw_bpms, "BPMS", require_positive=True),
        _parse_beat_pairs(header.raw_stops, "STOPS", require_positive=False),
        header.chartinfo.audio_offset,
    )


def from_sm_all(text: str, defaults: Optional[ChartDefaults] = None) -> List[Chart]:
    header = _read_header(text, defaults or DEFAULT_CHART_DEFAULTS)
    tempo_map = _tempo_map_for(header)
    return [_chart_for_block(header, _parse_notes_block(block), tempo_map) for block in header.notes_blocks]


def from_sm(text: str, defaults: Optional[ChartDefaults] = None) -> Chart:
    """Parse the first #NOTES block of a simfile."""
    header = _read_header(text, defaults or DEFAULT_CHART_DEFAULTS)
    tempo_map = _tempo_map_for(header)
    return _chart_for_block(header, _parse_notes_block(header.notes_blocks[0]), tempo_map)


def _sm_decimal(value: float) -> str:
    return f"{float(value):.3f}"


def _beat_value_list(entries: Sequence[Tuple[float, float]]) -> str:
    return ",\n".join(f"{_sm_decimal(beat)}={_sm_decimal(value)}" for beat, value in entries)


def _row_text(row: Row) -> str:
    return "".join(_KEY_TYPE_TO_SYMBOL[key.key_type] for key in row)


def _notes_text(chart: Chart, key_count: int) -> str:
    measures = build_measures(chart.hitobjects, key_count)
    lines: List[str] = []
    for measure_index, measure in enumerate(measures):
        lines.append(f"// Measure {measure_index + 1}")
        lines.extend(_row_text(row) for row in measure)
        if measure_index != len(measures) - 1:
            lines.append(",")
    return "\n".join(lines)


def to_sm(chart: Chart, *, sample_length_seconds: float = 12.0) -> str:
    metadata = chart.metadata
    chartinfo = chart.chartinfo
    key_count = int(chartinfo.key_count)
    step_type = step_type_for_key_count(key_count)

    bpm_entries = [(beat, change.value) for _time, beat, change in chart.timing_points.bpm_changes_zipped()]
    if not bpm_entries:
        raise WriteError("Cannot write StepMania chart without at least one BPM timing point")
    stop_entries = [(beat, change.value) for _time, beat, change in chart.timing_points.stop_changes_zipped()]
    if not chart.timing_points.is_sv_empty():
        logger.warning("sm: scroll velocity changes have no StepMania equivalent and were dropped")

    difficulty_label = canonical_difficulty(chartinfo.difficulty_name) or "Edit"
    description = chartinfo.difficulty_name if difficulty_label == "Edit" else metadata.creator
    subtitle = "" if metadata.source == DEFAULT_CHART_DEFAULTS.source else metadata.source

    lines: List[str] = [
        f"#TITLE:{metadata.title};",
        f"#SUBTITLE:{subtitle};",
        f"#ARTIST:{metadata.artist};",
        f"#TITLETRANSLIT:{metadata.alt_title};",
        "#SUBTITLETRANSLIT:;",
        f"#ARTISTTRANSLIT:{metadata.alt_artist};",
        f"#GENRE:{metadata.genre};",
        f"#CREDIT:{metadata.creator};",
        f"#BANNER:{chartinfo.bg_path};",
        f"#BACKGROUND:{chartinfo.bg_path};",
        "#LYRICSPATH:;",
        "#CDTITLE:;",
        f"#MUSIC:{chartinfo.song_path};",
        f"#OFFSET:{_sm_decimal(to_seconds(-chartinfo.audio_offset))};",
        f"#SAMPLESTART:{_sm_decimal(to_seconds(chartinfo.preview_time))};",
        f"#SAMPLELENGTH:{_sm_decimal(sample_length_seconds)};",
        "#SELECTABLE:YES;",
        f"#BPMS:{_beat_value_list(bpm_entries)};",
        f"#STOPS:{_beat_value_list(stop_entries)};",
        "#BGCHANGES:;",
        "#KEYSOUNDS:;",
        "",
        f"//---------------{step_type} - {description}----------------",
        "#NOTES:",
        f"     {step_type}:",
        f"     {description}:",
        f"     {difficulty_label}:",
        "     1:",
        "     0.000,0.000,0.000,0.000,0.000:",
        _notes_text(chart, key_count),
        ";",
    ]
    return "\n".join(lines) + "\n"

# -*- coding: utf-8 -*-
########################
# qua_store.py
########################
# Purpose:
# - Parse Quaver .qua text into a Chart.
# - Write a Chart as Quaver .qua text.
#
# Design notes:
# - .qua is a YAML document: top-level scalars plus lists of mappings. It is loaded with
#   yaml.safe_load and written with yaml.safe_dump in block style, keys in Quaver's order.
# - Quaver omits fields that hold their default value, so a missing StartTime means 0 and a missing
#   SV Multiplier means 0.
# - Lanes and sample indices are 1-based in the file and 0-based in the Chart.
# - Any lane past the 7th widens the key count to that lane number (Keys7 charts with an 8th lane).
#   Lanes 5-7 in a Keys4 chart do not widen it and are dropped.
#
########################
# Interfaces:
# Public functions:
# - from_qua(text: str, defaults: Optional[ChartDefaults] = None) -> Chart
# - to_qua(chart: Chart) -> str
#
########################

from __future__ import annotations

import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import yaml

from chart_errors import EmptyChartDataError, InvalidChartError, InvalidKeyCountError
from chart_models import Chart, ChartInfo, HitObjects, Key, KeyType, Metadata, TimingChangeType, TimingPoints
from config import DEFAULT_CHART_DEFAULTS, ChartDefaults
from section_scanner import dispatch_sections
from sound_bank import HitSoundType, KeySound, SoundBank, SoundEffect, clamp_volume
from text_utils import or_default_empty, or_default_empty_as
from timeline import HitObjectTimeline, TimelineHitObject, TimelineTimingPoint, TimingPointTimeline

logger = logging.getLogger(__name__)

_MODE_KEY_COUNTS = {"Keys4": 4, "Keys7": 7}
_MODE_FOR_KEY_COUNT = {4: "Keys4", 7: "Keys7", 8: "Keys7"}
_LAST_KEYS7_COLUMN = 6

_HITSOUND_NAMES = {
    "clap": HitSoundType.CLAP,
    "whistle": HitSoundType.WHISTLE,
    "finish": HitSoundType.FINISH,
}
_HITSOUND_LABELS = {hitsound_type: name.capitalize() for name, hitsound_type in _HITSOUND_NAMES.items()}

_TAG_SEPARATOR = re.compile(r"[,\s]+")

Item = Mapping[str, Any]


def _scalar_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).strip()


def _list_items(value: Any, context: str) -> List[Item]:
    """Mappings of a YAML list field. A missing or null list is empty; a bare '-' item has no fields."""
    if value is None:
        return []
    if not isinstance(value, list):
        raise InvalidChartError(f"{context} must be a list, got {value!r}")
    items: List[Item] = []
    for item in value:
        if item is None:
            item = {}
        if not isinstance(item, dict):
            raise InvalidChartError(f"{context} entries must be mappings, got {item!r}")
        items.append(item)
    return items


def _number(fields: Item, key: str, default: Optional[float], context: str) -> float:
    value = fields.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise InvalidChartError(f"Missing {key} in {context}: {dict(fields)!r}")
        return default
    if isinstance(value, bool):
        raise InvalidChartError(f"Couldn't parse {key} in {context}: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidChartError(f"Couldn't parse {key} in {context}: {value!r}") from exc


def _parse_keysound(fields: Item, hitsound_type: HitSoundType) -> Optional[KeySound]:
    samples = _list_items(fields.get("KeySounds"), "KeySounds")
    if not samples:
        return None
    sample_number = int(_number(samples[0], "Sample", None, "KeySounds"))
    if sample_number < 1:
        raise InvalidChartError(f"KeySounds sample index must be 1 or greater: {dict(fields)!r}")
    volume = int(_number(samples[0], "Volume", 100.0, "KeySounds"))
    return KeySound.with_custom(clamp_volume(volume), sample_number - 1, hitsound_type)


def _parse_hitsound(value: Any) -> HitSoundType:
    for name in _scalar_text(value).replace(",", " ").lower().split():
        hitsound_type = _HITSOUND_NAMES.get(name)
        if hitsound_type is not None:
            return hitsound_type
    return HitSoundType.NORMAL


class _QuaChartBuilder:
    def __init__(self, defaults: ChartDefaults) -> None:
        self.defaults = defaults
        self.metadata = Metadata.empty(defaults)
        self.chartinfo = ChartInfo.empty(defaults)
        self.timing_points = TimingPoints()
        self.hitobjects = HitObjects()
        self.soundbank = SoundBank()
        self.raw_timing_points: Any = None
        self.raw_slider_velocities: Any = None
        self.raw_hit_objects: Any = None

    def section_handlers(self) -> Dict[str, Callable[[Any], None]]:
        metadata = self.metadata
        chartinfo = self.chartinfo
        defaults = self.defaults

        def set_metadata(attribute: str, default: str) -> Callable[[Any], None]:
            return lambda value: setattr(metadata, attribute, or_default_empty(_scalar_text(value), default))

        def set_chartinfo(attribute: str, default: str) -> Callable[[Any], None]:
            return lambda value: setattr(chartinfo, attribute, or_default_empty(_scalar_text(value), default))

        def set_audio(value: Any) -> None:
            chartinfo.song_path = or_default_empty(_scalar_text(value), defaults.song_path)
            self.soundbank.audio_tracks.append(chartinfo.song_path)

        def set_preview(value: Any) -> None:
            preview_time = or_default_empty_as(_scalar_text(value), float(defaults.preview_time), float)
            chartinfo.preview_time = int(preview_time)

        def set_tags(value: Any) -> None:
            metadata.tags = [tag for tag in _TAG_SEPARATOR.split(_scalar_text(value)) if tag]

        def set_timing_points(value: Any) -> None:
            self.raw_timing_points = value

        def set_slider_velocities(value: Any) -> None:
            self.raw_slider_velocities = value

        def set_hit_objects(value: Any) -> None:
            self.raw_hit_objects = value

        return {
            "AudioFile": set_audio,
            "SongPreviewTime": set_preview,
            "BackgroundFile": set_chartinfo("bg_path", defaults.bg_path),
            "Mode": self.set_mode,
            "Title": set_metadata("title", defaults.title),
            "Artist": set_metadata("artist", defaults.artist),
            "Source": set_metadata("source", defaults.source),
            "Genre": set_metadata("genre", defaults.genre),
            "Tags": set_tags,
            "Creator": set_metadata("creator", defaults.creator),
            "DifficultyName": set_chartinfo("difficulty_name", defaults.difficulty_name),
            "CustomAudioSamples": self.add_samples,
            "SoundEffects": self.add_sound_effects,
            "TimingPoints": set_timing_points,
            "SliderVelocities": set_slider_velocities,
            "HitObjects": set_hit_objects,
        }

    def set_mode(self, value: Any) -> None:
        mode_text = _scalar_text(value)
        key_count = _MODE_KEY_COUNTS.get(mode_text)
        if key_count is None:
            raise InvalidChartError(f"Quaver only supports Keys4 and Keys7 for Mode, got '{mode_text}'")
        self.chartinfo.key_count = key_count

    def add_samples(self, value: Any) -> None:
        for fields in _list_items(value, "CustomAudioSamples"):
            sample_path = _scalar_text(fields.get("Path"))
            if not sample_path:
                raise InvalidChartError(f"Missing Path in CustomAudioSamples: {dict(fields)!r}")
            self.soundbank.add_sound_sample_with_index(len(self.soundbank.sample_paths()), sample_path)

    def add_sound_effects(self, value: Any) -> None:
        for fields in _list_items(value, "SoundEffects"):
            start_time = int(_number(fields, "StartTime", 0.0, "SoundEffects"))
            sample_number = int(_number(fields, "Sample", None, "SoundEffects"))
            if sample_number < 1:
                raise InvalidChartError(f"SoundEffects sample index must be 1 or greater: {dict(fields)!r}")
            volume = int(_number(fields, "Volume", 100.0, "SoundEffects"))
            self.soundbank.add_sound_effect(SoundEffect(start_time, clamp_volume(volume), sample_number - 1))

    def build_timing_points(self) -> None:
        bpm_items = _list_items(self.raw_timing_points, "TimingPoints")
        if not bpm_items:
            raise InvalidChartError("No BPM data provided in the chart")

        timeline = TimingPointTimeline()
        for fields in bpm_items:
            start_time = int(_number(fields, "StartTime", 0.0, "TimingPoints"))
            bpm = _number(fields, "Bpm", None, "TimingPoints")
            if bpm <= 0.0:
                raise InvalidChartError(f"BPM must be positive: {dict(fields)!r}")
            timeline.add(TimelineTimingPoint(start_time, bpm, TimingChangeType.BPM))

        for fields in _list_items(self.raw_slider_velocities, "SliderVelocities"):
            start_time = int(_number(fields, "StartTime", 0.0, "SliderVelocities"))
            multiplier = _number(fields, "Multiplier", 0.0, "SliderVelocities")
            timeline.add(TimelineTimingPoint(start_time, multiplier, TimingChangeType.SV))

        timeline.sort()
        self.chartinfo.audio_offset = next(
            item.time for item in timeline if item.change_type is TimingChangeType.BPM
        )
        timeline.materialize_into_timing_points(self.timing_points, self.chartinfo.audio_offset)

    def build_hit_objects(self) -> None:
        key_count = self.chartinfo.key_count
        timeline = HitObjectTimeline()

        for fields in _list_items(self.raw_hit_objects, "HitObjects"):
            start_time = int(_number(fields, "StartTime", 0.0, "HitObjects"))
            lane_number = int(_number(fields, "Lane", None, "HitObjects"))
            if lane_number < 1:
                raise InvalidChartError(f"Lane must be 1 or greater: {dict(fields)!r}")
            end_time = int(_number(fields, "EndTime", 0.0, "HitObjects"))
            hitsound_type = _parse_hitsound(fields.get("HitSound"))

            keysound = _parse_keysound(fields, hitsound_type)
            if keysound is None and hitsound_type is not HitSoundType.NORMAL:
                keysound = KeySound.of_type(100, hitsound_type)

            column = lane_number - 1
            if column > _LAST_KEYS7_COLUMN and column + 1 > key_count:
                logger.debug("qua: lane %d sets key count to %d (was %d)", lane_number, column + 1, key_count)
                key_count = column + 1

            if end_time > 0:
                timeline.add_sorted(TimelineHitObject(start_time, column, Key.slider_start(end_time), keysound))
                timeline.add_sorted(TimelineHitObject(end_time, column, Key.slider_end()))
            else:
                timeline.add_sorted(TimelineHitObject(start_time, column, Key.normal(), keysound))

        self.chartinfo.key_count = key_count
        timeline.materialize_into_rows(
            self.hitobjects,
            self.chartinfo.audio_offset,
            key_count,
            self.timing_points.bpm_times(),
            self.timing_points.bpms(),
        )

    def build(self) -> Chart:
        self.build_timing_points()
        self.build_hit_objects()
        self.chartinfo.row_count = len(self.hitobjects)
        self.chartinfo.object_count = self.hitobjects.object_count()
        return Chart(self.metadata, self.chartinfo, self.timing_points, self.hitobjects, self.soundbank)


def _load_document(text: str) -> Dict[str, Any]:
    try:
        document = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise InvalidChartError(f"Couldn't read .qua YAML: {exc}") from exc
    if document is None:
        raise EmptyChartDataError()
    if not isinstance(document, dict):
        raise InvalidChartError(f"A .qua file must be a mapping of fields, got {type(document).__name__}")
    return document


def from_qua(text: str, defaults: Optional[ChartDefaults] = None) -> Chart:
    document = _load_document(text)
    builder = _QuaChartBuilder(defaults or DEFAULT_CHART_DEFAULTS)
    dispatch_sections(
        ((str(key), value) for key, value in document.items()),
        builder.section_handlers(),
        format_name="qua",
    )
    return builder.build()


def _yaml_number(value: float) -> Union[int, float]:
    number = float(value)
    return int(number) if number.is_integer() else number


def _slider_velocity_items(timing_points: TimingPoints) -> List[Dict[str, Any]]:
    entries: List[Tuple[int, float]] = []
    for time, _beat, change in timing_points.iter_zipped():
        if change.change_type is TimingChangeType.SV:
            entries.append((time, change.value))
        elif change.change_type is TimingChangeType.STOP:
            entries.append((time, 0.0))
            entries.append((time + int(round(change.value * 1000.0)), 1.0))
    entries.sort(key=lambda entry: entry[0])
    return [{"StartTime": int(time), "Multiplier": _yaml_number(multiplier)} for time, multiplier in entries]


def _hit_object_item(
    time: int,
    lane: int,
    end_time: Optional[int],
    keysound: Optional[KeySound],
) -> Dict[str, Any]:
    item: Dict[str, Any] = {"StartTime": int(time), "Lane": lane + 1}
    if end_time is not None:
        item["EndTime"] = int(end_time)
    if keysound is not None and keysound.hitsound_type is not HitSoundType.NORMAL:
        item["HitSound"] = _HITSOUND_LABELS[keysound.hitsound_type]
    if keysound is not None and keysound.has_custom and keysound.sample is not None:
        item["KeySounds"] = [{"Sample": keysound.sample + 1, "Volume": int(keysound.volume)}]
    else:
        item["KeySounds"] = []
    return item


def _hit_object_items(chart: Chart) -> List[Dict[str, Any]]:
    hitobjects = chart.hitobjects
    items: List[Dict[str, Any]] = []
    for row_index, (time, _beat, keysounds, row) in enumerate(hitobjects.iter_zipped()):
        for lane, key in enumerate(row):
            if key.key_type is KeyType.NORMAL:
                items.append(_hit_object_item(time, lane, None, keysounds.get(lane)))
            elif key.key_type is KeyType.SLIDER_START:
                end_time = key.slider_end_time
                if end_time is None:
                    end_time = hitobjects.find_slider_end_time(row_index, lane)
                items.append(_hit_object_item(time, lane, end_time, keysounds.get(lane)))
    return items


def to_qua(chart: Chart) -> str:
    metadata = chart.metadata
    chartinfo = chart.chartinfo
    key_count = int(chartinfo.key_count)
    mode_text = _MODE_FOR_KEY_COUNT.get(key_count)
    if mode_text is None:
        raise InvalidKeyCountError(key_count, "4k, 7k and 7k+1", "Quaver")

    soundbank = chart.soundbank if chart.soundbank is not None else SoundBank()
    document: Dict[str, Any] = {
        "AudioFile": str(chartinfo.song_path),
        "SongPreviewTime": int(chartinfo.preview_time),
        "BackgroundFile": str(chartinfo.bg_path),
        "Mode": mode_text,
        "Title": str(metadata.title),
        "Artist": str(metadata.artist),
        "Source": str(metadata.source),
        "Genre": str(metadata.genre),
        "Tags": ",".join(metadata.tags),
        "Creator": str(metadata.creator),
        "DifficultyName": str(chartinfo.difficulty_name),
        "BPMDoesNotAffectScrollVelocity": True,
        "InitialScrollVelocity": 1,
        "EditorLayers": [],
        "CustomAudioSamples": [
            {"Path": path, "UnaffectedByRate": False} for path in soundbank.sample_paths()
        ],
        "SoundEffects": [
            {"StartTime": int(effect.time), "Sample": effect.sample + 1, "Volume": int(effect.volume)}
            for effect in soundbank.sound_effects
        ],
        "TimingPoints": [
            {"StartTime": int(time), "Bpm": _yaml_number(change.value)}
            for time, _beat, change in chart.timing_points.bpm_changes_zipped()
        ],
        "SliderVelocities": _slider_velocity_items(chart.timing_points),
        "HitObjects": _hit_object_items(chart),
    }
    return yaml.safe_dump(
        document,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=4096,
    )

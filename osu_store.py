# -*- coding: utf-8 -*-
########################
# osu_store.py
########################
# Purpose:
# - Parse osu!mania .osu text into a Chart.
# - Write a Chart as osu!mania .osu text (file format v14).
#
# Design notes:
# - Only mania charts (Mode: 3) are accepted. Anything else is a hard parse error.
# - Timing points and hit objects are collected first and processed after all sections are read,
#   so hit objects always see the final key count and tempo map.
# - Lanes map to x with floor(x * key_count / 512); the writer places each lane at its center.
# - Stops have no osu equivalent and are written as an SV 0 / SV 1 pair.
#
########################
# Interfaces:
# Public constants:
# - MAX_KEY_COUNT = 18
#
# Public dataclasses:
# - OsuTimingPoint(time, beat_length, meter, sample_set, sample_index, volume, uninherited, effects)
# - OsuHitSample(normal_set, addition_set, index, volume, filename)
# - OsuHitObject(x, y, time, object_type, hit_sound, end_time, hit_sample)
#
# Public functions:
# - from_osu(text: str, defaults: Optional[ChartDefaults] = None) -> Chart
# - to_osu(chart: Chart) -> str
# - lane_to_x(lane: int, key_count: int) -> int
# - x_to_lane(x: int, key_count: int) -> int
#
########################

from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from typing import Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from chart_errors import EmptyChartDataError, InvalidChartError, InvalidKeyCountError, InvalidModeError
from chart_models import Chart, ChartInfo, HitObjects, Key, KeyType, Metadata, TimingChangeType, TimingPoints
from config import DEFAULT_CHART_DEFAULTS, ChartDefaults
from section_scanner import dispatch_key_values, dispatch_sections, scan_bracket_sections
from sound_bank import HitSoundType, KeySound, SoundBank, SoundEffect, clamp_volume
from text_utils import format_number, or_default_empty, or_default_empty_as, remove_comments
from timeline import HitObjectTimeline, TimelineHitObject, TimelineTimingPoint, TimingPointTimeline

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_KEY_COUNT = 18
PLAYFIELD_WIDTH = 512
MANIA_MODE = "3"
HOLD_NOTE_FLAG = 128
NORMAL_NOTE_FLAG = 1
EXTREME_SV_MULTIPLIER = 10.0
ZERO_SV_BEAT_LENGTH = -10000.0

_MODE_NAMES = {"0": "Standard", "1": "Taiko", "2": "Catch", "3": "Mania"}

# hitSound bit -> type; the first set bit in this order wins.
_HITSOUND_FLAGS: Tuple[Tuple[int, HitSoundType], ...] = (
    (2, HitSoundType.WHISTLE),
    (4, HitSoundType.FINISH),
    (8, HitSoundType.CLAP),
)
_HITSOUND_BITS = {hitsound_type: bit for bit, hitsound_type in _HITSOUND_FLAGS}

_REQUIRED = object()


@dataclass(frozen=True)
class OsuTimingPoint:
    time: int
    beat_length: float
    meter: int = 4
    sample_set: int = 0
    sample_index: int = 0
    volume: int = 100
    uninherited: bool = True
    effects: int = 0


@dataclass(frozen=True)
class OsuHitSample:
    normal_set: int = 0
    addition_set: int = 0
    index: int = 0
    volume: int = 0
    filename: str = ""


@dataclass(frozen=True)
class OsuHitObject:
    x: int
    y: int
    time: int
    object_type: int
    hit_sound: int
    end_time: int
    hit_sample: OsuHitSample


def lane_to_x(lane: int, key_count: int) -> int:
    return int(math.floor((int(lane) + 0.5) * PLAYFIELD_WIDTH / int(key_count)))


def x_to_lane(x: int, key_count: int) -> int:
    lane = int(math.floor(int(x) * int(key_count) / PLAYFIELD_WIDTH))
    # x at or past the playfield edges maps to the outer columns.
    return min(max(lane, 0), max(int(key_count) - 1, 0))


def _osu_int(text: str) -> int:
    # Older charts store times as decimals.
    return int(float(text))


def _field(
    components: Sequence[str],
    index: int,
    field_name: str,
    raw_line: str,
    convert: Callable[[str], T],
    default: object = _REQUIRED,
) -> T:
    if index >= len(components) or not components[index].strip():
        if default is _REQUIRED:
            raise InvalidChartError(f"Missing {field_name}: '{raw_line}'")
        return default  # type: ignore[return-value]
    value_text = components[index].strip()
    try:
        return convert(value_text)
    except ValueError as exc:
        raise InvalidChartError(f"Failed to parse {field_name} '{value_text}' in '{raw_line}'") from exc


def _parse_uninherited(text: str) -> bool:
    if text == "1":
        return True
    if text == "0":
        return False
    raise ValueError(f"uninherited flag should be 0 or 1, got {text!r}")


def parse_timing_point(raw_line: str) -> OsuTimingPoint:
    components = raw_line.split(",")
    return OsuTimingPoint(
        time=_field(components, 0, "time", raw_line, _osu_int),
        beat_length=_field(components, 1, "beat length", raw_line, float),
        meter=_field(components, 2, "meter", raw_line, _osu_int, 4),
        sample_set=_field(components, 3, "sample set", raw_line, _osu_int, 0),
        sample_index=_field(components, 4, "sample index", raw_line, _osu_int, 0),
        volume=_field(components, 5, "volume", raw_line, _osu_int, 100),
        uninherited=_field(components, 6, "uninherited", raw_line, _parse_uninherited, True),
        effects=_field(components, 7, "effects", raw_line, _osu_int, 0),
    )


def parse_hit_sample(raw_sample: str, raw_line: str) -> OsuHitSample:
    if not raw_sample.strip():
        return OsuHitSample()
    components = raw_sample.split(":")
    filename = ":".join(components[4:]).strip() if len(components) > 4 else ""
    return OsuHitSample(
        normal_set=_field(components, 0, "normalSet", raw_line, int, 0),
        addition_set=_field(components, 1, "additionSet", raw_line, int, 0),
        index=_field(components, 2, "index", raw_line, int, 0),
        volume=_field(components, 3, "volume", raw_line, int, 0),
        filename=filename,
    )


def parse_hit_object(raw_line: str) -> OsuHitObject:
    components = raw_line.split(",", 5)
    x = _field(components, 0, "x coordinate", raw_line, _osu_int)
    y = _field(components, 1, "y coordinate", raw_line, _osu_int)
    time = _field(components, 2, "time", raw_line, _osu_int)
    object_type = _field(components, 3, "note type", raw_line, int)
    hit_sound = _field(components, 4, "hit sound", raw_line, int, 0)
    remainder = components[5] if len(components) > 5 else ""

    end_time = 0
    if object_type & HOLD_NOTE_FLAG:
        end_text, _separator, sample_text = remainder.partition(":")
        end_time = _field([end_text], 0, "hold end time", raw_line, _osu_int)
    else:
        sample_text = remainder

    return OsuHitObject(
        x=x,
        y=y,
        time=time,
        object_type=object_type,
        hit_sound=hit_sound,
        end_time=end_time,
        hit_sample=parse_hit_sample(sample_text, raw_line),
    )


def _hitsound_type_from_flags(hit_sound: int) -> HitSoundType:
    for bit, hitsound_type in _HITSOUND_FLAGS:
        if hit_sound & bit:
            return hitsound_type
    return HitSoundType.NORMAL


def _keysound_for(hit_object: OsuHitObject, soundbank: SoundBank) -> Optional[KeySound]:
    hitsound_type = _hitsound_type_from_flags(hit_object.hit_sound)
    # Volume 0 means "use the timing point volume".
    volume = clamp_volume(hit_object.hit_sample.volume) or 100
    filename = hit_object.hit_sample.filename
    if filename:
        sample_index = soundbank.add_sound_sample(filename)
        return KeySound.with_custom(volume, sample_index, hitsound_type)
    if hitsound_type is HitSoundType.NORMAL:
        return None
    return KeySound.of_type(volume, hitsound_type)


def _strip_quotes(text: str) -> str:
    return text.strip().strip('"')


class _OsuChartBuilder:
    """Accumulates section content; hit objects are resolved last."""

    def __init__(self, defaults: ChartDefaults) -> None:
        self.defaults = defaults
        self.metadata = Metadata.empty(defaults)
        self.chartinfo = ChartInfo.empty(defaults)
        self.timing_points = TimingPoints()
        self.hitobjects = HitObjects()
        self.soundbank = SoundBank()
        self.mode_text: Optional[str] = None
        self.raw_timing_points = ""
        self.raw_hit_objects = ""

    def section_handlers(self) -> Dict[str, Callable[[str], None]]:
        return {
            "General": self.handle_general,
            "Metadata": self.handle_metadata,
            "Difficulty": self.handle_difficulty,
            "Events": self.handle_events,
            "TimingPoints": self.store_timing_points,
            "HitObjects": self.store_hit_objects,
        }

    def handle_general(self, content: str) -> None:
        def set_audio(value: str) -> None:
            self.chartinfo.song_path = or_default_empty(value, self.defaults.song_path)
            self.soundbank.audio_tracks.append(self.chartinfo.song_path)

        def set_preview(value: str) -> None:
            self.chartinfo.preview_time = or_default_empty_as(value, int(self.defaults.preview_time), _osu_int)

        def set_mode(value: str) -> None:
            self.mode_text = value.strip()
            _validate_mania_mode(self.mode_text)

        dispatch_key_values(
            content,
            {"AudioFilename": set_audio, "PreviewTime": set_preview, "Mode": set_mode},
            format_name="osu",
        )

    def handle_metadata(self, content: str) -> None:
        metadata = self.metadata
        defaults = self.defaults

        def setter(attribute: str, default: str) -> Callable[[str], None]:
            return lambda value: setattr(metadata, attribute, or_default_empty(value, default))

        def set_tags(value: str) -> None:
            metadata.tags = value.split()

        def set_version(value: str) -> None:
            self.chartinfo.difficulty_name = or_default_empty(value, defaults.difficulty_name)

        dispatch_key_values(
            content,
            {
                "Title": setter("title", defaults.title),
                "TitleUnicode": setter("alt_title", defaults.alt_title),
                "Artist": setter("artist", defaults.artist),
                "ArtistUnicode": setter("alt_artist", defaults.alt_artist),
                "Creator": setter("creator", defaults.creator),
                "Source": setter("source", defaults.source),
                "Tags": set_tags,
                "Version": set_version,
            },
            format_name="osu",
        )

    def handle_difficulty(self, content: str) -> None:
        def set_key_count(value: str) -> None:
            key_count = int(or_default_empty_as(value, float(self.defaults.key_count), float))
            if key_count < 1:
                raise InvalidChartError(f"CircleSize must be at least 1 for mania charts: '{value}'")
            self.chartinfo.key_count = key_count

        dispatch_key_values(content, {"CircleSize": set_key_count}, format_name="osu")

    def handle_events(self, content: str) -> None:
        for line_text in content.splitlines():
            components = line_text.split(",")
            event_type = components[0].strip()
            if event_type in ("0", "Background"):
                if not self.chartinfo.bg_path and len(components) > 2:
                    self.chartinfo.bg_path = _strip_quotes(components[2])
            elif event_type in ("Sample", "5"):
                start_time = _field(components, 1, "sample start time", line_text, _osu_int)
                sample_path = _strip_quotes(components[3]) if len(components) > 3 else ""
                if not sample_path:
                    raise InvalidChartError(f"Missing sample filename: '{line_text}'")
                volume = _field(components, 4, "sample volume", line_text, _osu_int, 100)
                sample_index = self.soundbank.add_sound_sample(sample_path)
                self.soundbank.add_sound_effect(SoundEffect(start_time, clamp_volume(volume), sample_index))
            elif event_type in ("1", "Video", "2", "Break"):
                continue
            else:
                logger.debug("osu: ignoring event line %r", line_text)

    def store_timing_points(self, content: str) -> None:
        self.raw_timing_points = content

    def store_hit_objects(self, content: str) -> None:
        self.raw_hit_objects = content

    def build_timing_points(self) -> None:
        timeline = TimingPointTimeline()
        for line_text in self.raw_timing_points.splitlines():
            if not line_text.strip():
                continue
            timing_point = parse_timing_point(line_text)
            if timing_point.uninherited:
                if timing_point.beat_length <= 0.0:
                    raise InvalidChartError(f"BPM must be positive: '{line_text}'")
                change_type = TimingChangeType.BPM
                value = 60000.0 / timing_point.beat_length
            else:
                change_type = TimingChangeType.SV
                if timing_point.beat_length == 0.0:
                    value = EXTREME_SV_MULTIPLIER
                else:
                    value = -100.0 / timing_point.beat_length
            timeline.add(TimelineTimingPoint(time=timing_point.time, value=value, change_type=change_type))

        timeline.sort()
        self.chartinfo.audio_offset = timeline[0].time if len(timeline) else 0
        timeline.materialize_into_timing_points(self.timing_points, self.chartinfo.audio_offset)

    def build_hit_objects(self) -> None:
        key_count = self.chartinfo.key_count
        timeline = HitObjectTimeline()

        for line_text in self.raw_hit_objects.splitlines():
            if not line_text.strip():
                continue
            hit_object = parse_hit_object(line_text)
            column = x_to_lane(hit_object.x, key_count)
            keysound = _keysound_for(hit_object, self.soundbank)

            if hit_object.object_type & HOLD_NOTE_FLAG:
                timeline.add_sorted(
                    TimelineHitObject(hit_object.time, column, Key.slider_start(hit_object.end_time), keysound)
                )
                timeline.add_sorted(TimelineHitObject(hit_object.end_time, column, Key.slider_end()))
            elif hit_object.object_type & NORMAL_NOTE_FLAG:
                timeline.add_sorted(TimelineHitObject(hit_object.time, column, Key.normal(), keysound))
            else:
                logger.debug("osu: ignoring non-mania object %r", line_text)

        timeline.materialize_into_rows(
            self.hitobjects,
            self.chartinfo.audio_offset,
            key_count,
            self.timing_points.bpm_times(),
            self.timing_points.bpms(),
        )

    def build(self) -> Chart:
        if self.mode_text is None:
            # osu! treats a missing Mode as Standard.
            raise InvalidModeError(_MODE_NAMES["0"], "mania")
        self.build_timing_points()
        self.build_hit_objects()
        self.chartinfo.row_count = len(self.hitobjects)
        self.chartinfo.object_count = self.hitobjects.object_count()
        return Chart(self.metadata, self.chartinfo, self.timing_points, self.hitobjects, self.soundbank)


def _validate_mania_mode(mode_text: str) -> None:
    if mode_text != MANIA_MODE:
        raise InvalidModeError(_MODE_NAMES.get(mode_text, "Unknown"), "mania")


def from_osu(text: str, defaults: Optional[ChartDefaults] = None) -> Chart:
    uncommented = remove_comments(text, "//")
    if not uncommented.strip():
        raise EmptyChartDataError()

    builder = _OsuChartBuilder(defaults or DEFAULT_CHART_DEFAULTS)
    dispatch_sections(scan_bracket_sections(uncommented), builder.section_handlers(), format_name="osu")
    return builder.build()


def _single_line(text: str) -> str:
    return str(text).replace("\r", "").replace("\n", "")


def _bpm_to_beat_length(bpm: float) -> float:
    return 60000.0 / float(bpm)


def _multiplier_to_beat_length(multiplier: float) -> float:
    if float(multiplier) == 0.0:
        return ZERO_SV_BEAT_LENGTH
    return -100.0 / float(multiplier)


def _timing_point_line(time: int, beat_length: float, uninherited: bool) -> str:
    return f"{int(time)},{format_number(beat_length)},4,1,0,100,{1 if uninherited else 0},0"


def _timing_point_lines(timing_points: TimingPoints) -> List[str]:
    entries: List[Tuple[int, str]] = []
    for time, _beat, change in timing_points.iter_zipped():
        if change.change_type is TimingChangeType.BPM:
            entries.append((time, _timing_point_line(time, _bpm_to_beat_length(change.value), True)))
        elif change.change_type is TimingChangeType.SV:
            entries.append((time, _timing_point_line(time, _multiplier_to_beat_length(change.value), False)))
        else:
            stop_end_time = time + int(round(change.value * 1000.0))
            entries.append((time, _timing_point_line(time, ZERO_SV_BEAT_LENGTH, False)))
            entries.append((stop_end_time, _timing_point_line(stop_end_time, -100.0, False)))
    entries.sort(key=lambda entry: entry[0])
    return [line for _time, line in entries]


def _hit_sample_text(keysound: Optional[KeySound], soundbank: Optional[SoundBank]) -> Tuple[int, str]:
    """hitSound flags and the 'normalSet:additionSet:index:volume:filename' tail."""
    if keysound is None:
        return 0, "0:0:0:0:"
    hit_sound = _HITSOUND_BITS.get(keysound.hitsound_type, 0)
    filename = ""
    if keysound.has_custom and keysound.sample is not None and soundbank is not None:
        filename = soundbank.get_sound_sample(keysound.sample) or ""
    return hit_sound, f"0:0:0:{keysound.volume}:{filename}"


def _hit_object_lines(chart: Chart) -> List[str]:
    hitobjects = chart.hitobjects
    key_count = chart.chartinfo.key_count
    lines: List[str] = []
    skipped = 0

    for row_index, (time, _beat, keysounds, row) in enumerate(hitobjects.iter_zipped()):
        for lane, key in enumerate(row):
            if key.key_type not in (KeyType.NORMAL, KeyType.SLIDER_START):
                if key.key_type in (KeyType.MINE, KeyType.FAKE, KeyType.UNKNOWN):
                    skipped += 1
                continue
            x = lane_to_x(lane, key_count)
            hit_sound, sample_text = _hit_sample_text(keysounds.get(lane), chart.soundbank)
            if key.key_type is KeyType.NORMAL:
                lines.append(f"{x},192,{time},{NORMAL_NOTE_FLAG},{hit_sound},{sample_text}")
            else:
                end_time = key.slider_end_time
                if end_time is None:
                    end_time = hitobjects.find_slider_end_time(row_index, lane)
                lines.append(f"{x},192,{time},{HOLD_NOTE_FLAG},{hit_sound},{end_time}:{sample_text}")

    if skipped:
        logger.warning("osu: %d mine/fake/unknown notes have no osu!mania equivalent and were dropped", skipped)
    return lines


def _sample_event_lines(soundbank: Optional[SoundBank]) -> List[str]:
    if soundbank is None:
        return []
    lines: List[str] = []
    for sound_effect in soundbank.sound_effects:
        sample_path = soundbank.get_sound_sample(sound_effect.sample)
        if sample_path is None:
            logger.warning("osu: sound effect at %d ms refers to unknown sample %d", sound_effect.time, sound_effect.sample)
            continue
        lines.append(f'Sample,{sound_effect.time},0,"{sample_path}",{sound_effect.volume}')
    return lines


def to_osu(chart: Chart) -> str:
    metadata = chart.metadata
    chartinfo = chart.chartinfo
    key_count = int(chartinfo.key_count)
    if not 1 <= key_count <= MAX_KEY_COUNT:
        raise InvalidKeyCountError(key_count, f"1k to {MAX_KEY_COUNT}k", "osu!mania")

    lines: List[str] = ["osu file format v14", ""]

    lines.append("[General]")
    lines.append(f"AudioFilename: {chartinfo.song_path}")
    lines.append("AudioLeadIn: 0")
    lines.append(f"PreviewTime: {chartinfo.preview_time}")
    lines.extend([
        "Countdown: 0",
        "SampleSet: Soft",
        "StackLeniency: 0.7",
        f"Mode: {MANIA_MODE}",
        "LetterboxInBreaks: 0",
        "SpecialStyle: 0",
        "WidescreenStoryboard: 1",
        "",
    ])

    lines.extend(["[Editor]", "DistanceSpacing: 1", "BeatDivisor: 4", "GridSize: 4", "TimelineZoom: 1", ""])

    lines.append("[Metadata]")
    lines.append(f"Title:{_single_line(metadata.title)}")
    lines.append(f"TitleUnicode:{_single_line(metadata.alt_title)}")
    lines.append(f"Artist:{_single_line(metadata.artist)}")
    lines.append(f"ArtistUnicode:{_single_line(metadata.alt_artist)}")
    lines.append(f"Creator:{_single_line(metadata.creator)}")
    lines.append(f"Version:{_single_line(chartinfo.difficulty_name)}")
    lines.append(f"Source:{_single_line(metadata.source)}")
    lines.append(f"Tags:{' '.join(metadata.tags)}")
    lines.append("BeatmapID:0")
    lines.append("BeatmapSetID:-1")
    lines.append("")

    lines.append("[Difficulty]")
    lines.extend([
        "HPDrainRate:8.5",
        f"CircleSize:{key_count}",
        "OverallDifficulty:8",
        "ApproachRate:5",
        "SliderMultiplier:1.4",
        "SliderTickRate:1",
        "",
    ])

    lines.append("[Events]")
    lines.append("//Background and Video events")
    lines.append(f'0,0,"{chartinfo.bg_path}",0,0')
    lines.append("//Break Periods")
    lines.append("//Storyboard Sound Samples")
    lines.extend(_sample_event_lines(chart.soundbank))
    lines.append("")

    lines.append("[TimingPoints]")
    lines.extend(_timing_point_lines(chart.timing_points))
    lines.append("")

    lines.append("[HitObjects]")
    lines.extend(_hit_object_lines(chart))

    return "\n".join(lines) + "\n"

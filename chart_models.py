# -*- coding: utf-8 -*-
########################
# chart_models.py
########################
# Purpose:
# - Format-neutral chart model shared by every parser and writer.
# - Defines the Chart aggregate and its parts: Metadata, ChartInfo, TimingPoints, HitObjects.
#
# Design notes:
# - Times are integer milliseconds. Beats are floats (quarter note = 1.0).
# - TimingPoints and HitObjects are parallel lists kept in ascending time order.
# - HitObjects never stores a row whose cells are all Empty.
# - Chart owns everything beneath it. Parsers build it once; writers only read it.
#
########################
# Interfaces:
# Public enums:
# - class KeyType(enum.Enum): EMPTY | NORMAL | SLIDER_START | SLIDER_END | MINE | FAKE | UNKNOWN
# - class TimingChangeType(enum.Enum): BPM | SV | STOP
#
# Public dataclasses:
# - Key(key_type: KeyType, slider_end_time: Optional[int])
# - TimingChange(change_type: TimingChangeType, value: float)
# - Metadata(title, alt_title, artist, alt_artist, creator, genre, source, tags)
# - ChartInfo(difficulty_name, bg_path, song_path, audio_offset, preview_time, key_count, row_count, object_count)
# - TimingPoints(times, beats, changes)
# - HitObjects(times, beats, rows, keysounds)
# - Chart(metadata, chartinfo, timing_points, hitobjects, soundbank)
#
# Inputs/Outputs:
# - Built by osu_store, sm_store and qua_store parsers; consumed by their writers.
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Iterator, List, Optional, Tuple

from config import DEFAULT_CHART_DEFAULTS, ChartDefaults
from sound_bank import KeySoundRow, SoundBank


class KeyType(enum.Enum):
    EMPTY = "empty"
    NORMAL = "normal"
    SLIDER_START = "slider_start"
    SLIDER_END = "slider_end"
    MINE = "mine"
    FAKE = "fake"
    UNKNOWN = "unknown"


class TimingChangeType(enum.Enum):
    BPM = "bpm"
    SV = "sv"
    STOP = "stop"


# Key types that begin a playable (or visible) object. SliderEnd only closes one.
_OBJECT_KEY_TYPES = {KeyType.NORMAL, KeyType.SLIDER_START, KeyType.MINE, KeyType.FAKE}


@dataclass(frozen=True)
class Key:
    key_type: KeyType = KeyType.EMPTY
    slider_end_time: Optional[int] = None

    @classmethod
    def empty(cls) -> "Key":
        return cls(KeyType.EMPTY)

    @classmethod
    def normal(cls) -> "Key":
        return cls(KeyType.NORMAL)

    @classmethod
    def slider_start(cls, slider_end_time: Optional[int] = None) -> "Key":
        return cls(KeyType.SLIDER_START, slider_end_time)

    @classmethod
    def slider_end(cls) -> "Key":
        return cls(KeyType.SLIDER_END)

    @classmethod
    def mine(cls) -> "Key":
        return cls(KeyType.MINE)

    @classmethod
    def fake(cls) -> "Key":
        return cls(KeyType.FAKE)

    @classmethod
    def unknown(cls) -> "Key":
        return cls(KeyType.UNKNOWN)

    @property
    def is_empty(self) -> bool:
        return self.key_type is KeyType.EMPTY


Row = List[Key]


def empty_row(key_count: int) -> Row:
    return [Key.empty() for _ in range(int(key_count))]


@dataclass(frozen=True)
class TimingChange:
    change_type: TimingChangeType
    value: float


@dataclass
class Metadata:
    title: str
    alt_title: str
    artist: str
    alt_artist: str
    creator: str
    genre: str
    source: str
    tags: List[str] = field(default_factory=list)

    @classmethod
    def empty(cls, defaults: Optional[ChartDefaults] = None) -> "Metadata":
        chart_defaults = defaults or DEFAULT_CHART_DEFAULTS
        return cls(
            title=chart_defaults.title,
            alt_title=chart_defaults.alt_title,
            artist=chart_defaults.artist,
            alt_artist=chart_defaults.alt_artist,
            creator=chart_defaults.creator,
            genre=chart_defaults.genre,
            source=chart_defaults.source,
            tags=[],
        )


@dataclass
class ChartInfo:
    difficulty_name: str
    bg_path: str
    song_path: str
    audio_offset: int
    preview_time: int
    key_count: int
    row_count: int = 0
    object_count: int = 0

    @classmethod
    def empty(cls, defaults: Optional[ChartDefaults] = None) -> "ChartInfo":
        chart_defaults = defaults or DEFAULT_CHART_DEFAULTS
        return cls(
            difficulty_name=chart_defaults.difficulty_name,
            bg_path="",
            song_path="",
            audio_offset=int(chart_defaults.audio_offset),
            preview_time=int(chart_defaults.preview_time),
            key_count=int(chart_defaults.key_count),
        )


@dataclass
class TimingPoints:
    times: List[int] = field(default_factory=list)
    beats: List[float] = field(default_factory=list)
    changes: List[TimingChange] = field(default_factory=list)

    def add(self, time: int, beat: float, change: TimingChange) -> None:
        self.times.append(int(time))
        self.beats.append(float(beat))
        self.changes.append(change)

    def __len__(self) -> int:
        return len(self.times)

    def iter_zipped(self) -> Iterator[Tuple[int, float, TimingChange]]:
        """time, beat, change"""
        return zip(self.times, self.beats, self.changes)

    def _iter_of_type(self, change_type: TimingChangeType) -> Iterator[Tuple[int, float, TimingChange]]:
        return ((time, beat, change) for time, beat, change in self.iter_zipped() if change.change_type is change_type)

    def bpm_changes_zipped(self) -> Iterator[Tuple[int, float, TimingChange]]:
        return self._iter_of_type(TimingChangeType.BPM)

    def sv_changes_zipped(self) -> Iterator[Tuple[int, float, TimingChange]]:
        return self._iter_of_type(TimingChangeType.SV)

    def stop_changes_zipped(self) -> Iterator[Tuple[int, float, TimingChange]]:
        return self._iter_of_type(TimingChangeType.STOP)

    def is_bpms_empty(self) -> bool:
        return not any(change.change_type is TimingChangeType.BPM for change in self.changes)

    def is_sv_empty(self) -> bool:
        return not any(change.change_type is TimingChangeType.SV for change in self.changes)

    def bpm_times(self) -> List[int]:
        return [time for time, _beat, _change in self.bpm_changes_zipped()]

    def bpms(self) -> List[float]:
        return [change.value for _time, _beat, change in self.bpm_changes_zipped()]

    def sv(self) -> List[float]:
        return [change.value for _time, _beat, change in self.sv_changes_zipped()]


@dataclass
class HitObjects:
    times: List[int] = field(default_factory=list)
    beats: List[float] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)
    keysounds: List[KeySoundRow] = field(default_factory=list)

    def add_hitobject(self, time: int, beat: float, keysound: KeySoundRow, row: Row) -> bool:
        """Append a row. All-Empty rows are elided; returns False when nothing was stored."""
        if all(key.is_empty for key in row):
            return False
        self.times.append(int(time))
        self.beats.append(float(beat))
        self.keysounds.append(keysound)
        self.rows.append(list(row))
        return True

    def __len__(self) -> int:
        return len(self.rows)

    def iter_zipped(self) -> Iterator[Tuple[int, float, KeySoundRow, Row]]:
        """time, beat, keysounds, row"""
        return zip(self.times, self.beats, self.keysounds, self.rows)

    def object_count(self) -> int:
        return sum(1 for row in self.rows for key in row if key.key_type in _OBJECT_KEY_TYPES)

    def find_slider_end_time(self, row_index: int, lane: int) -> int:
        """Time of the first SliderEnd after row_index in lane, or the row's own time if none follows."""
        if row_index >= len(self.rows):
            return 0
        for time, row in zip(self.times[row_index + 1:], self.rows[row_index + 1:]):
            if lane < len(row) and row[lane].key_type is KeyType.SLIDER_END:
                return time
        return self.times[row_index]

    def resolve_slider_end_times(self) -> None:
        """Fill slider_end_time on SliderStart keys that do not carry one."""
        for row_index, row in enumerate(self.rows):
            for lane, key in enumerate(row):
                if key.key_type is KeyType.SLIDER_START and key.slider_end_time is None:
                    row[lane] = Key.slider_start(self.find_slider_end_time(row_index, lane))


@dataclass(frozen=True)
class Chart:
    metadata: Metadata
    chartinfo: ChartInfo
    timing_points: TimingPoints
    hitobjects: HitObjects
    soundbank: Optional[SoundBank] = None

# -*- coding: utf-8 -*-
########################
# timeline.py
########################
# Purpose:
# - Transient, time-ordered event buffers used while parsing.
# - Folds hit-object endpoints into dense HitObjects rows and timing changes into TimingPoints.
#
# Design notes:
# - Time is integer milliseconds, so events are grouped into a row by exact time equality.
# - add() tracks whether insertions stayed in order so sort() can be skipped.
# - add_sorted() keeps strict order at all times; equal times keep insertion order.
# - Row merge precedence: SliderStart is never overwritten in the same row.
#
########################
# Interfaces:
# Public dataclasses:
# - TimelineHitObject(time: int, column: int, key: Key, keysound: Optional[KeySound])
# - TimelineTimingPoint(time: int, value: float, change_type: TimingChangeType)
#
# Public classes:
# - class Timeline(Generic[T])
#   - add(item) -> None
#   - add_sorted(item) -> None
#   - sort() -> None
# - class HitObjectTimeline(Timeline[TimelineHitObject])
#   - materialize_into_rows(hitobjects, offset, key_count, bpm_times, bpms) -> None
# - class TimingPointTimeline(Timeline[TimelineTimingPoint])
#   - materialize_into_timing_points(timing_points, offset) -> None
#
########################
# Smoke Tests:
#   - python timeline.py
########################

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass
import logging
from typing import Generic, Iterator, List, Optional, Sequence, TypeVar

from chart_errors import InvalidChartError
from chart_models import HitObjects, Key, KeyType, TimingChange, TimingChangeType, TimingPoints, empty_row
from rhythm import INVALID_RESULT, time_to_beat
from sound_bank import KeySound, KeySoundRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimelineHitObject:
    time: int
    column: int
    key: Key
    keysound: Optional[KeySound] = None


@dataclass(frozen=True)
class TimelineTimingPoint:
    time: int
    value: float
    change_type: TimingChangeType


T = TypeVar("T", TimelineHitObject, TimelineTimingPoint)


class Timeline(Generic[T]):
    def __init__(self) -> None:
        self._items: List[T] = []
        self._is_sorted = True

    def add(self, item: T) -> None:
        if self._is_sorted and self._items:
            self._is_sorted = item.time >= self._items[-1].time
        self._items.append(item)

    def add_sorted(self, item: T) -> None:
        if not self._items or item.time >= self._items[-1].time:
            self._items.append(item)
            return
        position = bisect_right(self._items, item.time, key=lambda entry: entry.time)
        self._items.insert(position, item)

    def sort(self) -> None:
        if not self._is_sorted:
            self._items.sort(key=lambda entry: entry.time)
            self._is_sorted = True

    def is_sorted(self) -> bool:
        return self._is_sorted

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[index]


def _merge_key(current: Key, incoming: Key) -> Key:
    incoming_type = incoming.key_type
    if incoming_type is KeyType.SLIDER_START:
        return incoming
    if current.key_type is KeyType.SLIDER_START:
        return current
    if incoming_type in (KeyType.NORMAL, KeyType.SLIDER_END):
        return incoming
    return current


class HitObjectTimeline(Timeline[TimelineHitObject]):
    def materialize_into_rows(
        self,
        hitobjects: HitObjects,
        offset: int,
        key_count: int,
        bpm_times: Sequence[int],
        bpms: Sequence[float],
    ) -> None:
        """Group events sharing a time into rows and append them to hitobjects."""
        if not self._items:
            return

        self.sort()
        key_count = int(key_count)
        item_count = len(self._items)
        index = 0

        while index < item_count:
            current_time = self._items[index].time
            row = empty_row(key_count)
            row_sounds: List[Optional[KeySound]] = [None] * key_count

            while index < item_count and self._items[index].time == current_time:
                item = self._items[index]
                index += 1
                if not 0 <= item.column < key_count:
                    logger.debug("Dropping event at %d ms in column %d (key count %d)", item.time, item.column, key_count)
                    continue
                row[item.column] = _merge_key(row[item.column], item.key)
                if item.keysound is not None:
                    row_sounds[item.column] = item.keysound

            row_beat = time_to_beat(current_time, offset, bpm_times, bpms)
            if row_beat == INVALID_RESULT:
                raise InvalidChartError(
                    f"Cannot compute beat for hit objects at {current_time} ms: no usable BPM timing points"
                )
            hitobjects.add_hitobject(current_time, row_beat, KeySoundRow.with_unwrap(row_sounds), row)


class TimingPointTimeline(Timeline[TimelineTimingPoint]):
    def materialize_into_timing_points(self, timing_points: TimingPoints, offset: int) -> None:
        if not self._items:
            return

        self.sort()

        bpm_times = [item.time for item in self._items if item.change_type is TimingChangeType.BPM]
        bpms = [item.value for item in self._items if item.change_type is TimingChangeType.BPM]

        for item in self._items:
            beat = time_to_beat(item.time, offset, bpm_times, bpms)
            timing_points.add(item.time, beat, TimingChange(change_type=item.change_type, value=item.value))


def _run_unit_tests() -> None:
    timeline = HitObjectTimeline()
    timeline.add_sorted(TimelineHitObject(time=1000, column=0, key=Key.slider_start(1500)))
    timeline.add_sorted(TimelineHitObject(time=1500, column=0, key=Key.slider_end()))
    timeline.add_sorted(TimelineHitObject(time=1000, column=0, key=Key.normal()))
    timeline.add_sorted(TimelineHitObject(time=500, column=3, key=Key.normal()))
    assert [item.time for item in timeline] == [500, 1000, 1000, 1500]

    hitobjects = HitObjects()
    timeline.materialize_into_rows(hitobjects, 0, 4, [0], [120.0])
    assert hitobjects.times == [500, 1000, 1500]
    assert hitobjects.beats == [1.0, 2.0, 3.0]
    assert hitobjects.rows[1][0].key_type is KeyType.SLIDER_START
    assert hitobjects.rows[2][0].key_type is KeyType.SLIDER_END

    unsorted = TimingPointTimeline()
    unsorted.add(TimelineTimingPoint(time=1000, value=0.5, change_type=TimingChangeType.SV))
    unsorted.add(TimelineTimingPoint(time=0, value=120.0, change_type=TimingChangeType.BPM))
    assert not unsorted.is_sorted()
    timing_points = TimingPoints()
    unsorted.materialize_into_timing_points(timing_points, 0)
    assert timing_points.times == [0, 1000]
    assert timing_points.beats == [0.0, 2.0]


if __name__ == "__main__":
    _run_unit_tests()
    print("timeline.py: ok")

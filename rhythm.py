# -*- coding: utf-8 -*-
########################
# rhythm.py
########################
# Purpose:
# - Convert between absolute time (ms) and musical beat position under a piecewise tempo map.
# - Merge StepMania BPM and STOP lists into one chronological change list.
# - Canonical note subdivisions used by StepMania measure padding.
#
# Design notes:
# - Pure functions. No chart model state.
# - Segment lists must already be sorted ascending; lookups use bisect.
# - Malformed segment input returns INVALID_RESULT (-1.0). Callers treat it as "cannot compute".
# - time_to_beat applies thresholded_ceil(0.95). These thresholds were tuned against real charts; keep them.
#
########################
# Interfaces:
# Public constants:
# - BEAT_ROUNDING_THRESHOLD = 0.95
# - INVALID_RESULT = -1.0
# - BEAT_DENOMS: tuple[int, ...] (4, 8, 12, 16, 24, 32, 48, 64, 192)
# - NOTE_TYPES: tuple[float, ...] (beats per row for each denominator)
#
# Public functions:
# - time_to_beat(time, start_time, bpm_times, bpms) -> float
# - beat_to_time(beat, start_time, change_beats, values, change_types) -> float
# - merge_bpm_and_stops(bpm_beats, bpm_values, stop_beats, stop_values) -> tuple[list, list, list]
# - thresholded_ceil(value, threshold) -> float
# - snap_to_nearest_note_type(beat_gap) -> float
# - approx_eq(a, b, margin) -> bool
# - to_millis(seconds) -> float, to_seconds(millis) -> float
#
########################
# Smoke Tests:
#   - python rhythm.py
########################

from __future__ import annotations

from bisect import bisect_right
import math
from typing import List, Sequence, Tuple

from chart_models import TimingChangeType

BEAT_ROUNDING_THRESHOLD = 0.95
INVALID_RESULT = -1.0

BEAT_DENOMS: Tuple[int, ...] = (4, 8, 12, 16, 24, 32, 48, 64, 192)
NOTE_TYPES: Tuple[float, ...] = tuple(4.0 / denom for denom in BEAT_DENOMS)


def to_millis(seconds: float) -> float:
    return float(seconds) * 1000.0


def to_seconds(millis: float) -> float:
    return float(millis) / 1000.0


def approx_eq(a: float, b: float, margin: float) -> bool:
    return abs(float(a) - float(b)) <= float(margin)


def thresholded_ceil(value: float, threshold: float = BEAT_ROUNDING_THRESHOLD) -> float:
    """Round up when the fractional part reaches threshold; otherwise return value untouched."""
    fractional, _whole = math.modf(float(value))
    if fractional >= threshold:
        return math.floor(value) + 1.0
    return float(value)


def snap_to_nearest_note_type(beat_gap: float) -> float:
    nearest_note_type = NOTE_TYPES[0]
    min_diff = math.inf
    for note_type in NOTE_TYPES:
        diff = abs(note_type - float(beat_gap))
        if diff < min_diff:
            min_diff = diff
            nearest_note_type = note_type
    return nearest_note_type


def time_to_beat(
    time: float,
    start_time: float,
    bpm_times: Sequence[float],
    bpms: Sequence[float],
) -> float:
    if not bpm_times or not bpms or len(bpm_times) != len(bpms):
        return INVALID_RESULT

    if time < start_time:
        return 0.0

    start_idx = bisect_right(bpm_times, start_time)
    end_idx = bisect_right(bpm_times, time)

    # Tempo in effect at start_time; 0 when the first BPM change comes later.
    current_bpm = float(bpms[start_idx - 1]) if start_idx > 0 else 0.0

    total_beats = 0.0
    prev_time = float(start_time)
    for index in range(start_idx, end_idx):
        change_time = float(bpm_times[index])
        total_beats += (change_time - prev_time) * current_bpm / 60000.0
        prev_time = change_time
        current_bpm = float(bpms[index])

    total_beats += (float(time) - prev_time) * current_bpm / 60000.0
    return thresholded_ceil(total_beats, BEAT_ROUNDING_THRESHOLD)


def beat_to_time(
    beat: float,
    start_time: float,
    change_beats: Sequence[float],
    values: Sequence[float],
    change_types: Sequence[TimingChangeType],
) -> float:
    """Inverse of time_to_beat over a merged BPM/Stop list.

    Stop values are pause durations in seconds and add real time without advancing the beat.
    """
    if (
        not change_beats
        or not values
        or len(change_beats) != len(values)
        or len(change_beats) != len(change_types)
    ):
        return INVALID_RESULT

    if beat < 0.0:
        return float(start_time)

    start_idx = bisect_right(change_beats, 0.0)
    end_idx = bisect_right(change_beats, beat)

    current_bpm = 0.0
    for index in range(start_idx):
        if change_types[index] is TimingChangeType.BPM:
            current_bpm = float(values[index])

    total_time = float(start_time)
    prev_beat = 0.0
    for index in range(start_idx, end_idx):
        change_beat = float(change_beats[index])
        if current_bpm != 0.0:
            total_time += (change_beat - prev_beat) * (60000.0 / current_bpm)
        prev_beat = change_beat

        change_type = change_types[index]
        if change_type is TimingChangeType.BPM:
            current_bpm = float(values[index])
        elif change_type is TimingChangeType.STOP:
            total_time += to_millis(values[index])

    if current_bpm != 0.0:
        total_time += (float(beat) - prev_beat) * (60000.0 / current_bpm)

    return total_time


def merge_bpm_and_stops(
    bpm_beats: Sequence[float],
    bpm_values: Sequence[float],
    stop_beats: Sequence[float],
    stop_values: Sequence[float],
) -> Tuple[List[float], List[float], List[TimingChangeType]]:
    merged = [(float(beat), float(value), TimingChangeType.BPM) for beat, value in zip(bpm_beats, bpm_values)]
    merged.extend((float(beat), float(value), TimingChangeType.STOP) for beat, value in zip(stop_beats, stop_values))
    if bpm_beats and stop_beats:
        # Stable: entries sharing a beat keep BPM-before-Stop order.
        merged.sort(key=lambda entry: entry[0])

    beats = [entry[0] for entry in merged]
    values = [entry[1] for entry in merged]
    change_types = [entry[2] for entry in merged]
    return beats, values, change_types


def _run_unit_tests() -> None:
    assert thresholded_ceil(1.96) == 2.0
    assert thresholded_ceil(1.5) == 1.5
    assert time_to_beat(1000, 0, [0], [120.0]) == 2.0
    assert time_to_beat(-5, 0, [0], [120.0]) == 0.0
    assert time_to_beat(1000, 0, [], []) == INVALID_RESULT

    # 120 BPM for 2 beats (1000 ms), then 60 BPM.
    assert time_to_beat(2000, 0, [0, 1000], [120.0, 60.0]) == 3.0
    assert beat_to_time(3.0, 0, [0.0, 2.0], [120.0, 60.0], [TimingChangeType.BPM, TimingChangeType.BPM]) == 2000.0

    # Stop at beat 4 pauses 0.5 seconds.
    beats, values, change_types = merge_bpm_and_stops([0.0], [120.0], [4.0], [0.5])
    assert change_types == [TimingChangeType.BPM, TimingChangeType.STOP]
    assert beat_to_time(4.0, 0, beats, values, change_types) == 2500.0
    assert beat_to_time(-1.0, 250, beats, values, change_types) == 250.0

    assert snap_to_nearest_note_type(0.26) == 0.25
    assert snap_to_nearest_note_type(4.0) == 1.0


if __name__ == "__main__":
    _run_unit_tests()
    print("rhythm.py: ok")

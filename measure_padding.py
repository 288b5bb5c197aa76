# -*- coding: utf-8 -*-
########################
# measure_padding.py
########################
# Purpose:
# - Turn sparse HitObjects rows into StepMania's fixed-grid measures.
#
# Design notes:
# - A measure is 4 beats. A row belongs to measure round(beat * 24) // 96, so rows a hair
#   before a barline (float drift) land in the next measure.
# - Each measure picks one subdivision: the minimum positive gap between consecutive rows
#   (and from the barline to the first row), snapped to the nearest canonical note type.
# - A row fills the slot nearest its beat when it lies within SLOT_EPSILON of it.
#   Rows that are off-grid or collide move the whole measure to the next finer subdivision;
#   on the 192nd grid colliding rows are merged lane by lane.
# - Escalating past the snapped subdivision is a deliberate departure from a single nearest snap; no row is dropped.
# - Skipped measure indices become empty 4-row measures so every barline stays on a multiple of 4 beats.
#
########################
# Interfaces:
# Public constants:
# - BEATS_PER_MEASURE = 4.0
# - SLOT_EPSILON = 0.15
# - EMPTY_MEASURE_ROWS = 4
#
# Public functions:
# - measure_index_for_beat(beat: float) -> int
# - pad_measure(beats, rows, measure_index, key_count) -> list[Row]
# - build_measures(hitobjects: HitObjects, key_count: int) -> list[list[Row]]
#
########################

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from chart_models import HitObjects, Key, Row, empty_row
from rhythm import NOTE_TYPES, snap_to_nearest_note_type

logger = logging.getLogger(__name__)

BEATS_PER_MEASURE = 4.0
SLOT_EPSILON = 0.15
EMPTY_MEASURE_ROWS = 4
MIN_BEAT_GAP = 1e-5
_BEAT_SCALE = 24.0


def measure_index_for_beat(beat: float) -> int:
    return int(round(float(beat) * _BEAT_SCALE)) // int(_BEAT_SCALE * BEATS_PER_MEASURE)


def _empty_measure(key_count: int) -> List[Row]:
    return [empty_row(key_count) for _ in range(EMPTY_MEASURE_ROWS)]


def _minimum_gap(offsets: Sequence[float]) -> float:
    minimum_gap = BEATS_PER_MEASURE
    previous = 0.0
    for offset in offsets:
        gap = offset - previous
        if MIN_BEAT_GAP < gap < minimum_gap:
            minimum_gap = gap
        previous = offset
    return minimum_gap


def _merge_rows(current: Row, incoming: Row) -> Row:
    return [incoming_key if not incoming_key.is_empty else current_key for current_key, incoming_key in zip(current, incoming)]


def _place_on_grid(
    offsets: Sequence[float],
    rows: Sequence[Row],
    subdivision: float,
    key_count: int,
    *,
    merge_collisions: bool,
) -> Optional[List[Row]]:
    """Rows laid out on the subdivision grid, or None if any row is off-grid or collides."""
    row_count = int(round(BEATS_PER_MEASURE / subdivision))
    slots: List[Optional[Row]] = [None] * row_count

    for offset, row in zip(offsets, rows):
        slot_index = int(round(offset / subdivision))
        off_grid = abs(offset - slot_index * subdivision) > SLOT_EPSILON or not 0 <= slot_index < row_count
        slot_index = min(max(slot_index, 0), row_count - 1)
        if not merge_collisions and (off_grid or slots[slot_index] is not None):
            return None
        existing = slots[slot_index]
        slots[slot_index] = list(row) if existing is None else _merge_rows(existing, row)

    return [slot if slot is not None else empty_row(key_count) for slot in slots]


def pad_measure(beats: Sequence[float], rows: Sequence[Row], measure_index: int, key_count: int) -> List[Row]:
    if not rows:
        return _empty_measure(key_count)

    measure_start_beat = measure_index * BEATS_PER_MEASURE
    offsets = [float(beat) - measure_start_beat for beat in beats]

    snapped = snap_to_nearest_note_type(_minimum_gap(offsets))
    first_candidate = NOTE_TYPES.index(snapped)
    finest = len(NOTE_TYPES) - 1

    for candidate_index in range(first_candidate, finest + 1):
        subdivision = NOTE_TYPES[candidate_index]
        placed = _place_on_grid(
            offsets, rows, subdivision, key_count, merge_collisions=candidate_index == finest
        )
        if placed is not None:
            if candidate_index != first_candidate:
                logger.debug(
                    "Measure %d: rows did not fit 1/%d notes, using %d rows",
                    measure_index + 1,
                    int(round(BEATS_PER_MEASURE / snapped)),
                    len(placed),
                )
            return placed

    raise AssertionError("finest subdivision always places every row")


def build_measures(hitobjects: HitObjects, key_count: int) -> List[List[Row]]:
    """Every measure from index 0 to the last occupied one, padded to a uniform grid."""
    if not len(hitobjects):
        return [_empty_measure(key_count)]

    measures: List[List[Row]] = []
    group_beats: List[float] = []
    group_rows: List[Row] = []
    group_index = measure_index_for_beat(hitobjects.beats[0])

    def flush() -> None:
        while len(measures) < group_index:
            measures.append(_empty_measure(key_count))
        measures.append(pad_measure(group_beats, group_rows, group_index, key_count))

    for beat, row in zip(hitobjects.beats, hitobjects.rows):
        row_measure = measure_index_for_beat(beat)
        if row_measure != group_index:
            flush()
            group_index = row_measure
            group_beats = []
            group_rows = []
        group_beats.append(beat)
        group_rows.append(_fit_width(row, key_count))
    flush()

    return measures


def _fit_width(row: Row, key_count: int) -> Row:
    if len(row) == key_count:
        return row
    fitted = list(row[:key_count])
    fitted.extend(Key.empty() for _ in range(key_count - len(fitted)))
    return fitted

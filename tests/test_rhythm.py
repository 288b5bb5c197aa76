"""
Tests for the beat/time converter.

Covers time_to_beat, beat_to_time, the BPM/Stop merge and note-type snapping.
"""
import pytest

from chart_models import TimingChangeType
from rhythm import (
    INVALID_RESULT,
    NOTE_TYPES,
    beat_to_time,
    merge_bpm_and_stops,
    snap_to_nearest_note_type,
    thresholded_ceil,
    time_to_beat,
)

BPM = TimingChangeType.BPM
STOP = TimingChangeType.STOP


# =============================================================================
# thresholded_ceil
# =============================================================================

class TestThresholdedCeil:
    def test_rounds_up_near_next_integer(self):
        assert thresholded_ceil(2.97) == 3.0

    def test_leaves_value_below_threshold_untouched(self):
        assert thresholded_ceil(2.5) == 2.5
        assert thresholded_ceil(2.94) == 2.94

    def test_integer_is_unchanged(self):
        assert thresholded_ceil(4.0) == 4.0


# =============================================================================
# time_to_beat
# =============================================================================

class TestTimeToBeat:
    def test_single_bpm(self):
        assert time_to_beat(1000, 0, [0], [120.0]) == 2.0

    def test_before_start_is_zero(self):
        assert time_to_beat(-10, 0, [0], [120.0]) == 0.0

    def test_offset_start_time(self):
        assert time_to_beat(1500, 500, [500], [60.0]) == 1.0

    def test_piecewise_tempo(self):
        # 2 beats at 120 BPM, then 1 beat at 60 BPM.
        assert time_to_beat(2000, 0, [0, 1000], [120.0, 60.0]) == 3.0

    def test_empty_segments_are_invalid(self):
        assert time_to_beat(1000, 0, [], []) == INVALID_RESULT

    def test_mismatched_segments_are_invalid(self):
        assert time_to_beat(1000, 0, [0, 500], [120.0]) == INVALID_RESULT

    def test_monotonic(self):
        bpm_times = [0, 700, 1900]
        bpms = [150.0, 90.0, 200.0]
        beats = [time_to_beat(time, 0, bpm_times, bpms) for time in range(0, 5000, 37)]
        assert beats == sorted(beats)


# =============================================================================
# beat_to_time
# =============================================================================

class TestBeatToTime:
    def test_single_bpm(self):
        assert beat_to_time(2.0, 0, [0.0], [120.0], [BPM]) == 1000.0

    def test_negative_beat_returns_start(self):
        assert beat_to_time(-1.0, 250, [0.0], [120.0], [BPM]) == 250.0

    def test_empty_is_invalid(self):
        assert beat_to_time(1.0, 0, [], [], []) == INVALID_RESULT

    def test_stop_adds_pause(self):
        beats, values, types = merge_bpm_and_stops([0.0], [120.0], [2.0], [0.5])
        assert beat_to_time(1.0, 0, beats, values, types) == 500.0
        assert beat_to_time(2.0, 0, beats, values, types) == 1500.0
        assert beat_to_time(3.0, 0, beats, values, types) == 2000.0

    @pytest.mark.parametrize("time", [0, 250, 1000, 1750, 3000])
    def test_round_trip_with_time_to_beat(self, time):
        bpm_times = [0, 1000]
        bpms = [120.0, 60.0]
        beat = time_to_beat(time, 0, bpm_times, bpms)
        bpm_beats = [time_to_beat(change_time, 0, bpm_times, bpms) for change_time in bpm_times]
        assert beat_to_time(beat, 0, bpm_beats, bpms, [BPM, BPM]) == pytest.approx(time, abs=1.0)


# =============================================================================
# merge_bpm_and_stops
# =============================================================================

class TestMergeBpmAndStops:
    def test_interleaves_by_beat(self):
        beats, values, types = merge_bpm_and_stops([0.0, 8.0], [120.0, 140.0], [4.0], [0.25])
        assert beats == [0.0, 4.0, 8.0]
        assert values == [120.0, 0.25, 140.0]
        assert types == [BPM, STOP, BPM]

    def test_bpm_before_stop_on_same_beat(self):
        _beats, _values, types = merge_bpm_and_stops([0.0, 4.0], [120.0, 60.0], [4.0], [1.0])
        assert types == [BPM, BPM, STOP]

    def test_no_stops(self):
        beats, values, types = merge_bpm_and_stops([0.0], [100.0], [], [])
        assert (beats, values, types) == ([0.0], [100.0], [BPM])


# =============================================================================
# Note types
# =============================================================================

class TestSnapToNearestNoteType:
    def test_exact_note_types(self):
        for note_type in NOTE_TYPES:
            assert snap_to_nearest_note_type(note_type) == note_type

    def test_large_gap_snaps_to_quarter(self):
        assert snap_to_nearest_note_type(4.0) == 1.0

    def test_slightly_off_sixteenth(self):
        assert snap_to_nearest_note_type(0.26) == 0.25

"""
Tests for osu!mania parsing and writing.
"""
import logging

import pytest

from chart_errors import EmptyChartDataError, InvalidChartError, InvalidKeyCountError, InvalidModeError
from chart_models import Chart, ChartInfo, HitObjects, Key, KeyType, Metadata, TimingChange, TimingChangeType, TimingPoints
from osu_store import from_osu, lane_to_x, parse_hit_object, to_osu, x_to_lane
from sound_bank import HitSoundType, KeySoundRow


def _osu_text(hit_objects, timing_points="0,500,4,1,0,100,1,0", key_count=4, mode="3", events=""):
    return (
        "osu file format v14\n"
        "\n"
        "[General]\n"
        "AudioFilename: song.mp3\n"
        "PreviewTime: 1234\n"
        f"Mode: {mode}\n"
        "\n"
        "[Metadata]\n"
        "Title:Song\n"
        "TitleUnicode:Song Unicode\n"
        "Artist:Artist\n"
        "Creator:Mapper\n"
        "Version:Hard\n"
        "Tags:one two\n"
        "\n"
        "[Difficulty]\n"
        f"CircleSize:{key_count}\n"
        "\n"
        "[Events]\n"
        '0,0,"bg.jpg",0,0\n'
        f"{events}\n"
        "\n"
        "[TimingPoints]\n"
        f"{timing_points}\n"
        "\n"
        "[HitObjects]\n"
        f"{hit_objects}\n"
    )


# =============================================================================
# Parsing
# =============================================================================

class TestFromOsu:
    def test_single_note_scenario(self):
        chart = from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:"))

        assert chart.chartinfo.key_count == 4
        assert chart.timing_points.bpms() == [120.0]
        assert chart.hitobjects.times == [1000]
        assert chart.hitobjects.beats == [2.0]
        assert chart.hitobjects.rows[0][0].key_type is KeyType.NORMAL
        assert all(key.is_empty for key in chart.hitobjects.rows[0][1:])

    def test_metadata_and_chartinfo(self):
        chart = from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:"))

        assert chart.metadata.title == "Song"
        assert chart.metadata.alt_title == "Song Unicode"
        assert chart.metadata.creator == "Mapper"
        assert chart.metadata.tags == ["one", "two"]
        assert chart.metadata.genre == "Unknown Genre"
        assert chart.chartinfo.difficulty_name == "Hard"
        assert chart.chartinfo.song_path == "song.mp3"
        assert chart.chartinfo.bg_path == "bg.jpg"
        assert chart.chartinfo.preview_time == 1234
        assert chart.soundbank.audio_tracks == ["song.mp3"]

    def test_hold_note(self):
        chart = from_osu(_osu_text("192,192,1000,128,0,2000:0:0:0:0:"))

        assert chart.hitobjects.times == [1000, 2000]
        assert chart.hitobjects.rows[0][1] == Key.slider_start(2000)
        assert chart.hitobjects.rows[1][1].key_type is KeyType.SLIDER_END
        assert chart.chartinfo.object_count == 1
        assert chart.chartinfo.row_count == 2

    def test_chord_shares_one_row(self):
        chart = from_osu(_osu_text("64,192,500,1,0,0:0:0:0:\n448,192,500,1,0,0:0:0:0:"))
        assert len(chart.hitobjects) == 1
        assert [key.key_type for key in chart.hitobjects.rows[0]] == [
            KeyType.NORMAL, KeyType.EMPTY, KeyType.EMPTY, KeyType.NORMAL
        ]

    def test_inherited_point_is_scroll_velocity(self):
        chart = from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:", "0,500,4,1,0,100,1,0\n1000,-50,4,1,0,100,0,0"))
        assert chart.timing_points.sv() == [2.0]
        assert chart.timing_points.beats == [0.0, 2.0]

    def test_hitsound_and_custom_sample(self):
        chart = from_osu(_osu_text("64,192,1000,1,8,0:0:0:70:clap.wav"))
        keysound = chart.hitobjects.keysounds[0].get(0)

        assert keysound.hitsound_type is HitSoundType.CLAP
        assert keysound.volume == 70
        assert keysound.has_custom
        assert chart.soundbank.get_sound_sample(keysound.sample) == "clap.wav"

    def test_sample_event(self):
        chart = from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:", events='Sample,500,0,"drum.wav",60'))
        effect = chart.soundbank.sound_effects[0]
        assert (effect.time, effect.volume) == (500, 60)
        assert chart.soundbank.get_sound_sample(effect.sample) == "drum.wav"

    def test_non_mania_mode_is_rejected(self):
        with pytest.raises(InvalidModeError):
            from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:", mode="0"))

    def test_missing_mode_is_rejected(self):
        text = _osu_text("64,192,1000,1,0,0:0:0:0:").replace("Mode: 3\n", "")
        with pytest.raises(InvalidModeError):
            from_osu(text)

    @pytest.mark.parametrize("text", ["", "   \n", "// only a comment\n"])
    def test_empty_input(self, text):
        with pytest.raises(EmptyChartDataError):
            from_osu(text)

    def test_malformed_hit_object(self):
        with pytest.raises(InvalidChartError):
            from_osu(_osu_text("64,192,abc,1,0,0:0:0:0:"))

    def test_non_positive_bpm(self):
        with pytest.raises(InvalidChartError):
            from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:", "0,-500,4,1,0,100,1,0"))

    def test_hold_end_time_before_sample(self):
        hit_object = parse_hit_object("64,192,1000,128,2,1500:1:2:0:40:kick.wav")
        assert hit_object.end_time == 1500
        assert hit_object.hit_sample.volume == 40
        assert hit_object.hit_sample.filename == "kick.wav"


# =============================================================================
# Lane mapping
# =============================================================================

class TestLaneMapping:
    @pytest.mark.parametrize("key_count", [1, 4, 7, 10, 18])
    def test_lane_round_trip(self, key_count):
        for lane in range(key_count):
            assert x_to_lane(lane_to_x(lane, key_count), key_count) == lane

    def test_right_edge_maps_to_last_column(self):
        assert x_to_lane(512, 4) == 3
        assert x_to_lane(600, 7) == 6

    def test_negative_x_maps_to_first_column(self):
        assert x_to_lane(-20, 4) == 0

    def test_note_on_right_edge_is_kept(self):
        chart = from_osu(_osu_text("512,192,1000,1,0,0:0:0:0:"))
        assert chart.hitobjects.times == [1000]
        assert chart.hitobjects.rows[0][3].key_type is KeyType.NORMAL


# =============================================================================
# Writing
# =============================================================================

def _chart(rows, times, changes, key_count=4):
    timing_points = TimingPoints()
    for time, change in changes:
        timing_points.add(time, time / 500.0, change)
    hitobjects = HitObjects()
    for time, row in zip(times, rows):
        hitobjects.add_hitobject(time, time / 500.0, KeySoundRow.empty(), row)
    metadata = Metadata.empty()
    chartinfo = ChartInfo.empty()
    chartinfo.key_count = key_count
    return Chart(metadata, chartinfo, timing_points, hitobjects)


class TestToOsu:
    def test_writes_expected_lines(self):
        text = to_osu(from_osu(_osu_text("64,192,1000,1,0,0:0:0:0:\n192,192,1500,128,0,2000:0:0:0:0:")))

        assert "Mode: 3" in text
        assert "CircleSize:4" in text
        assert "0,500,4,1,0,100,1,0" in text
        assert "64,192,1000,1,0,0:0:0:0:" in text
        assert "192,192,1500,128,0,2000:0:0:0:0:" in text

    def test_round_trip_is_idempotent(self):
        original = _osu_text(
            "64,192,1000,1,2,0:0:0:0:\n192,192,1500,128,0,2000:0:0:0:0:\n448,192,2500,1,0,0:0:0:80:hat.wav",
            "0,500,4,1,0,100,1,0\n1000,-50,4,1,0,100,0,0\n2000,400,4,1,0,100,1,0",
        )
        first = to_osu(from_osu(original))
        second = to_osu(from_osu(first))
        assert first == second

    def test_stop_becomes_sv_pair(self):
        chart = _chart(
            [[Key.normal(), Key.empty(), Key.empty(), Key.empty()]],
            [0],
            [(0, TimingChange(TimingChangeType.BPM, 120.0)), (1000, TimingChange(TimingChangeType.STOP, 0.5))],
        )
        text = to_osu(chart)
        assert "1000,-10000,4,1,0,100,0,0" in text
        assert "1500,-100,4,1,0,100,0,0" in text

    def test_mines_are_dropped_with_warning(self, caplog):
        chart = _chart(
            [[Key.mine(), Key.normal(), Key.empty(), Key.empty()]],
            [500],
            [(0, TimingChange(TimingChangeType.BPM, 120.0))],
        )
        with caplog.at_level(logging.WARNING, logger="osu_store"):
            text = to_osu(chart)
        hit_object_lines = text.split("[HitObjects]\n", 1)[1].strip().splitlines()
        assert hit_object_lines == ["192,192,500,1,0,0:0:0:0:"]
        assert "dropped" in caplog.text

    @pytest.mark.parametrize("key_count", [0, 19])
    def test_unsupported_key_count(self, key_count):
        chart = _chart([], [], [(0, TimingChange(TimingChangeType.BPM, 120.0))], key_count=key_count)
        with pytest.raises(InvalidKeyCountError):
            to_osu(chart)

"""
Tests for SoundBank bookkeeping and keysound helpers.
"""
from sound_bank import HitSoundType, KeySound, KeySoundRow, SoundBank, SoundEffect, clamp_volume


class TestKeySound:
    def test_volume_is_clamped(self):
        assert clamp_volume(150) == 100
        assert clamp_volume(-5) == 0
        assert KeySound.of_type(120, HitSoundType.CLAP).volume == 100

    def test_custom_sample(self):
        sound = KeySound.with_custom(70, 2)
        assert sound.has_custom
        assert sound.sample == 2
        assert sound.hitsound_type is HitSoundType.NORMAL


class TestKeySoundRow:
    def test_all_none_is_empty(self):
        row = KeySoundRow.with_unwrap([None, None])
        assert row.is_empty
        assert row.get(0) is None

    def test_missing_lanes_get_normal_sound(self):
        row = KeySoundRow.with_unwrap([None, KeySound.of_type(50, HitSoundType.FINISH)])
        assert row.get(0) == KeySound.normal()
        assert row.get(1).hitsound_type is HitSoundType.FINISH
        assert row.get(5) is None


class TestSoundBank:
    def test_samples_are_deduplicated(self):
        bank = SoundBank()
        assert bank.add_sound_sample("kick.wav") == 0
        assert bank.add_sound_sample("snare.wav") == 1
        assert bank.add_sound_sample("kick.wav") == 0
        assert bank.sample_paths() == ["kick.wav", "snare.wav"]
        assert bank.get_index_sample("snare.wav") == 1

    def test_sample_with_index_keeps_position(self):
        bank = SoundBank()
        bank.add_sound_sample_with_index(2, "hat.wav")
        assert bank.get_sound_sample(2) == "hat.wav"
        assert bank.get_sound_sample(0) is None
        assert bank.sample_count() == 1
        assert bank.contains_path("hat.wav")

    def test_sound_effects_and_empty(self):
        bank = SoundBank()
        assert bank.is_empty()
        bank.add_sound_effect(SoundEffect(time=100, volume=80, sample=0))
        assert bank.sound_effects == [SoundEffect(100, 80, 0)]

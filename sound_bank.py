# -*- coding: utf-8 -*-
########################
# sound_bank.py
########################
# Purpose:
# - Custom audio sample bookkeeping for charts that reference their own samples.
# - Per-row keysounds attached to HitObjects.
#
# Design notes:
# - Sample indices are 0-based here. Formats with 1-based indices convert at their boundary.
# - Sample paths are deduplicated: adding a known path returns its existing index.
#
########################
# Interfaces:
# Public enums:
# - class HitSoundType(enum.Enum): NORMAL | CLAP | WHISTLE | FINISH
#
# Public dataclasses:
# - SoundEffect(time: int, volume: int, sample: int)
# - KeySound(volume: int, hitsound_type: HitSoundType, sample: Optional[int], has_custom: bool)
# - KeySoundRow(sounds: list[KeySound], is_empty: bool)
#
# Public classes:
# - class SoundBank
#
########################

from __future__ import annotations

from dataclasses import dataclass, field
import enum
from typing import Dict, List, Optional, Sequence


class HitSoundType(enum.Enum):
    NORMAL = "normal"
    CLAP = "clap"
    WHISTLE = "whistle"
    FINISH = "finish"


def clamp_volume(volume: int) -> int:
    return max(0, min(100, int(volume)))


@dataclass(frozen=True)
class SoundEffect:
    time: int
    volume: int
    sample: int


@dataclass(frozen=True)
class KeySound:
    volume: int = 100
    hitsound_type: HitSoundType = HitSoundType.NORMAL
    sample: Optional[int] = None
    has_custom: bool = False

    @classmethod
    def of_type(cls, volume: int, hitsound_type: HitSoundType) -> "KeySound":
        return cls(volume=clamp_volume(volume), hitsound_type=hitsound_type)

    @classmethod
    def normal(cls, volume: int = 100) -> "KeySound":
        return cls(volume=clamp_volume(volume))

    @classmethod
    def with_custom(cls, volume: int, sample_index: int, hitsound_type: Optional[HitSoundType] = None) -> "KeySound":
        return cls(
            volume=clamp_volume(volume),
            hitsound_type=hitsound_type or HitSoundType.NORMAL,
            sample=int(sample_index),
            has_custom=True,
        )


@dataclass(frozen=True)
class KeySoundRow:
    sounds: List[KeySound] = field(default_factory=list)
    is_empty: bool = True

    @classmethod
    def empty(cls) -> "KeySoundRow":
        return cls([], True)

    @classmethod
    def with_unwrap(cls, sounds: Sequence[Optional[KeySound]]) -> "KeySoundRow":
        """One sound per lane; lanes without a sound get a plain normal hitsound."""
        if all(sound is None for sound in sounds):
            return cls.empty()
        return cls([sound if sound is not None else KeySound.normal() for sound in sounds], False)

    def get(self, lane: int) -> Optional[KeySound]:
        if self.is_empty or lane >= len(self.sounds):
            return None
        return self.sounds[lane]

    def __len__(self) -> int:
        return len(self.sounds)


class SoundBank:
    def __init__(self) -> None:
        self.audio_tracks: List[str] = []
        self.sound_effects: List[SoundEffect] = []
        self._sample_paths: List[str] = []
        self._sample_map: Dict[str, int] = {}

    def add_sound_sample(self, path: str) -> int:
        path_text = str(path)
        existing_index = self._sample_map.get(path_text)
        if existing_index is not None:
            return existing_index
        index = len(self._sample_paths)
        self._sample_paths.append(path_text)
        self._sample_map[path_text] = index
        return index

    def add_sound_sample_with_index(self, index: int, path: str) -> None:
        path_text = str(path)
        if not path_text:
            return
        if index >= len(self._sample_paths):
            self._sample_paths.extend([""] * (index + 1 - len(self._sample_paths)))
        previous_path = self._sample_paths[index]
        if previous_path:
            self._sample_map.pop(previous_path, None)
        self._sample_paths[index] = path_text
        self._sample_map[path_text] = index

    def add_sound_effect(self, sound_effect: SoundEffect) -> None:
        self.sound_effects.append(sound_effect)

    def get_sound_sample(self, index: int) -> Optional[str]:
        if 0 <= index < len(self._sample_paths) and self._sample_paths[index]:
            return self._sample_paths[index]
        return None

    def get_index_sample(self, sample_path: str) -> Optional[int]:
        return self._sample_map.get(str(sample_path))

    def sample_paths(self) -> List[str]:
        return list(self._sample_paths)

    def contains_path(self, path: str) -> bool:
        return str(path) in self._sample_map

    def sample_count(self) -> int:
        return sum(1 for path in self._sample_paths if path)

    def is_empty(self) -> bool:
        return not self._sample_map

    def __repr__(self) -> str:
        return (
            f"SoundBank(audio_tracks={self.audio_tracks!r}, samples={self._sample_paths!r}, "
            f"sound_effects={len(self.sound_effects)})"
        )

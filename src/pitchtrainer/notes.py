from __future__ import annotations

import random
from typing import Dict, List, Optional

from .config import RangeConfig

PITCH_CLASSES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
ROOT_LABELS = ["C", "C#/Db", "D", "D#/Eb", "E", "F", "F#/Gb", "G", "G#/Ab", "A", "A#/Bb", "B"]
TONAL_INTERVAL_LABELS = ["1", "b2", "2", "b3", "3", "4", "T", "5", "b6", "6", "b7", "7"]

# Single sharp or flat spellings, including Cb/Fb/E#/B#.
ENHARMONICS: Dict[int, List[str]] = {
    0: ["C", "B#"],
    1: ["C#", "Db"],
    2: ["D"],
    3: ["D#", "Eb"],
    4: ["E", "Fb"],
    5: ["F", "E#"],
    6: ["F#", "Gb"],
    7: ["G"],
    8: ["G#", "Ab"],
    9: ["A"],
    10: ["A#", "Bb"],
    11: ["B", "Cb"],
}

HIT_MARK = "✔"


def display_midi(concert_midi: int, transpose: int = 0) -> int:
    # Bb instruments use transpose=-2: written = concert - transpose.
    return concert_midi - transpose


def note_name(concert_midi: int, transpose: int = 0) -> str:
    midi = display_midi(concert_midi, transpose)
    return f"{PITCH_CLASSES[midi % 12]}{midi // 12 - 1}"


def random_enharmonic_name(concert_midi: int, rng: random.Random, transpose: int = 0) -> str:
    midi = display_midi(concert_midi, transpose)
    options = ENHARMONICS[midi % 12]
    return f"{rng.choice(options)}{midi // 12 - 1}"


def tonal_interval_label(concert_midi: int, root_pc: int) -> str:
    return TONAL_INTERVAL_LABELS[(concert_midi - root_pc) % 12]


def root_label(concert_pc: int, transpose: int = 0) -> str:
    return ROOT_LABELS[(concert_pc - transpose) % 12]


def hit_label(note: Optional[int], config: RangeConfig, rng: random.Random) -> str:
    if config.mode == "continuous" or note is None:
        return HIT_MARK
    if config.mode == "tonal":
        return tonal_interval_label(note, config.root_pc)
    return random_enharmonic_name(note, rng, config.transpose)


def target_label(note: Optional[int], config: RangeConfig) -> str:
    """What the screen shows while a target is active; the pitch itself is only heard."""
    if note is None:
        return "-"
    if config.mode == "tonal":
        return f"Tonica {root_label(config.root_pc, config.transpose)}"
    return "?"


def tonic_notes(config: RangeConfig) -> List[int]:
    return [
        note
        for note in range(config.low_note, config.high_note + 1)
        if note % 12 == config.root_pc % 12
    ]

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import List, Optional

from .config import RangeConfig
from .dsp import midi_to_hz, nearest_midi

CONTINUOUS_ATTEMPTS = 24


@dataclass(frozen=True)
class Target:
    note: Optional[int]
    hz: float


def target_for_note(note: int, config: RangeConfig) -> Target:
    return Target(note=note, hz=midi_to_hz(note, config.a4))


def random_note(config: RangeConfig, rng: random.Random) -> int:
    return rng.randint(config.low_note, config.high_note)


def in_range(note: int, config: RangeConfig) -> bool:
    return config.low_note <= note <= config.high_note


def legal_jumps_minmax(current: int, config: RangeConfig) -> List[int]:
    cap = config.jump_cap
    min_eff = 0 if config.jump_min is None else config.jump_min
    max_eff = cap if config.jump_max is None else config.jump_max
    lo_j = min(min_eff, max_eff)
    hi_j = min(cap, max(min_eff, max_eff))

    legal: List[int] = []
    for j in range(lo_j, hi_j + 1):
        if j == 0:
            if in_range(current, config):
                legal.append(0)
            continue
        if in_range(current + j, config):
            legal.append(j)
        if in_range(current - j, config):
            legal.append(-j)
    return legal


def legal_jumps_lists(current: int, config: RangeConfig) -> List[int]:
    cap = config.jump_cap
    up = [min(cap, j) for j in config.up_intervals]
    down = up if config.symmetric else [min(cap, j) for j in config.down_intervals]

    legal: List[int] = []
    if (0 in up or 0 in down) and in_range(current, config):
        legal.append(0)
    for j in up:
        if j > 0 and in_range(current + j, config) and j not in legal:
            legal.append(j)
    for j in down:
        if j > 0 and in_range(current - j, config) and -j not in legal:
            legal.append(-j)
    return legal


def tonal_candidates(config: RangeConfig) -> List[int]:
    degrees = config.degree_set
    return [
        note
        for note in range(config.low_note, config.high_note + 1)
        if (note - config.root_pc) % 12 in degrees
    ]


def next_note(previous: Optional[int], config: RangeConfig, rng: random.Random) -> int:
    if config.mode == "tonal":
        return _next_tonal_note(previous, config, rng)

    if previous is None:
        return random_note(config, rng)

    if config.mode == "lists":
        legal = legal_jumps_lists(previous, config)
    else:
        legal = legal_jumps_minmax(previous, config)

    if not legal or legal == [0]:
        return random_note(config, rng)
    return previous + rng.choice(legal)


def _next_tonal_note(previous: Optional[int], config: RangeConfig, rng: random.Random) -> int:
    candidates = tonal_candidates(config)
    if not candidates:
        return random_note(config, rng)
    if previous is None:
        return rng.choice(candidates)

    allowed = set(candidates)
    legal = [previous + j for j in legal_jumps_minmax(previous, config) if previous + j in allowed]
    if legal:
        return rng.choice(legal)
    return rng.choice(candidates)


def next_continuous_hz(previous_hz: float, config: RangeConfig, rng: random.Random) -> float:
    """Move a random cents distance from the previous frequency, staying inside the range."""
    f_lo = midi_to_hz(config.low_note, config.a4)
    f_hi = midi_to_hz(config.high_note, config.a4)

    if not previous_hz > 0:
        return midi_to_hz(random_note(config, rng), config.a4)

    cents_min, cents_max = config.cents_min, config.cents_max
    for _ in range(CONTINUOUS_ATTEMPTS):
        cents = cents_min + rng.random() * (cents_max - cents_min)
        direction = -1 if rng.random() < 0.5 else 1

        candidate = previous_hz * 2.0 ** (direction * cents / 1200.0)
        if f_lo <= candidate <= f_hi:
            return candidate

        candidate = previous_hz * 2.0 ** (-direction * cents / 1200.0)
        if f_lo <= candidate <= f_hi:
            return candidate

    return midi_to_hz(random_note(config, rng), config.a4)


def continuous_display_note(hz: float, config: RangeConfig) -> int:
    note = nearest_midi(hz, config.a4)
    if note is None:
        return config.low_note
    return min(config.high_note, max(config.low_note, note))


def next_target(previous: Optional[Target], config: RangeConfig, rng: random.Random) -> Target:
    previous_note = previous.note if previous is not None else None

    if config.mode == "continuous":
        if previous is None or previous_note is None or not previous.hz > 0:
            return target_for_note(random_note(config, rng), config)
        hz = next_continuous_hz(previous.hz, config, rng)
        return Target(note=continuous_display_note(hz, config), hz=hz)

    return target_for_note(next_note(previous_note, config, rng), config)

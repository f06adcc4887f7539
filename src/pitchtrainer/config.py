from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Union

MIN_NOTE = 36
MAX_NOTE = 96
JUMP_CAP = 36
SHIFT_CAP = 48
DEGREE_SHIFT_CAP = 28

MODES = ("minmax", "continuous", "lists", "tonal")
DEFAULT_INTERVALS = list(range(12))


@dataclass
class AudioConfig:
    sample_rate: int = 44100
    block_size: int = 4096
    channels: int = 1
    input_device: Optional[Union[int, str]] = None
    output_device: Optional[Union[int, str]] = None
    output_sample_rate: int = 44100


@dataclass
class EstimatorConfig:
    threshold: float = 0.1
    interpolate: bool = True
    lowpass_hz: float = 0.0
    adaptive_threshold: bool = False
    smoothing_window: int = 1


@dataclass
class MatchConfig:
    min_db: float = -73.0
    min_clarity: float = 0.46
    hold_s: float = 0.1
    tuner_hold_s: float = 0.5
    tuner_smoothing: float = 0.18
    tuner_max_cents: float = 50.0
    confirm_s: float = 0.45
    confirm_gap_s: float = 0.12


@dataclass
class RangeConfig:
    low_note: int = 45
    high_note: int = 67
    mode: str = "minmax"
    jump_min: Optional[int] = 1
    jump_max: Optional[int] = 12
    up_intervals: List[int] = field(default_factory=lambda: list(DEFAULT_INTERVALS))
    down_intervals: List[int] = field(default_factory=lambda: list(DEFAULT_INTERVALS))
    symmetric: bool = True
    root_pc: int = 0
    degrees: List[int] = field(default_factory=lambda: [0])
    cents_min: int = 20
    cents_max: int = 1200
    tolerance_cents: int = 25
    a4: float = 440.0
    shift_semitones: int = 0
    shift_by_degree: bool = False
    degree_shift: int = 1
    transpose: int = 0
    sound_ms: float = 1000.0
    repeat_gap_ms: float = 2000.0
    replay: bool = False

    @property
    def span(self) -> int:
        return max(0, self.high_note - self.low_note)

    @property
    def jump_cap(self) -> int:
        return min(JUMP_CAP, self.span)

    @property
    def degree_set(self) -> frozenset:
        return frozenset(self.degrees) if self.degrees else frozenset([0])

    @property
    def tonal_degree_shift(self) -> bool:
        return self.mode == "tonal" and self.shift_by_degree

    def sanitized(self) -> "RangeConfig":
        low = clamp_int(self.low_note, MIN_NOTE, MAX_NOTE, 45)
        high = clamp_int(self.high_note, MIN_NOTE, MAX_NOTE, 67)
        if low > high:
            low, high = high, low

        jump_min = _jump_or_none(self.jump_min)
        jump_max = _jump_or_none(self.jump_max)
        if jump_min is not None and jump_max is not None and jump_min > jump_max:
            jump_min, jump_max = jump_max, jump_min

        cents_min = clamp_int(self.cents_min, 0, 1200, 20)
        cents_max = max(cents_min, clamp_int(self.cents_max, 0, 1200, 1200))

        return replace(
            self,
            low_note=low,
            high_note=high,
            mode=self.mode if self.mode in MODES else "minmax",
            jump_min=jump_min,
            jump_max=jump_max,
            up_intervals=parse_intervals(self.up_intervals),
            down_intervals=parse_intervals(self.down_intervals),
            symmetric=bool(self.symmetric),
            root_pc=clamp_int(self.root_pc, 0, 11, 0),
            degrees=parse_degrees(self.degrees),
            cents_min=cents_min,
            cents_max=cents_max,
            tolerance_cents=clamp_int(self.tolerance_cents, 1, 200, 25),
            a4=clamp_float(self.a4, 50.0, 2000.0, 440.0),
            shift_semitones=clamp_int(self.shift_semitones, -SHIFT_CAP, SHIFT_CAP, 0),
            shift_by_degree=bool(self.shift_by_degree),
            degree_shift=clamp_int(self.degree_shift, -DEGREE_SHIFT_CAP, DEGREE_SHIFT_CAP, 1),
            transpose=clamp_int(self.transpose, -SHIFT_CAP, SHIFT_CAP, 0),
            sound_ms=_finite_or(self.sound_ms, 1000.0),
            repeat_gap_ms=_finite_or(self.repeat_gap_ms, 2000.0),
            replay=bool(self.replay),
        )


def clamp_int(value, lo: int, hi: int, fallback: int) -> int:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return min(hi, max(lo, int(math.floor(number))))


def clamp_float(value, lo: float, hi: float, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(number):
        return fallback
    return min(hi, max(lo, number))


def _finite_or(value, fallback: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def _jump_or_none(value) -> Optional[int]:
    if value is None or value == "none":
        return None
    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None
    return min(JUMP_CAP, max(0, number))


def parse_intervals(raw: Union[str, Iterable, None]) -> List[int]:
    """Unsigned integers from free text or an iterable, de-duplicated in order."""
    if raw is None:
        return []
    if isinstance(raw, str):
        values = [int(match) for match in re.findall(r"\d+", raw)]
    else:
        values = []
        for item in raw:
            try:
                number = int(item)
            except (TypeError, ValueError, OverflowError):
                continue
            if number >= 0:
                values.append(number)
    seen = set()
    out: List[int] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            out.append(value)
    return out


def parse_degrees(raw: Union[str, Iterable, None]) -> List[int]:
    return [value for value in parse_intervals(raw) if value <= 11]


def degree_shift_steps(value: int) -> int:
    # 1 (and the dead zone -1..1) is unison, 2 is one degree up, -2 one degree down.
    if -1 <= value <= 1:
        return 0
    if value > 1:
        return value - 1
    return value + 1


def required_span(config: RangeConfig) -> int:
    """Smallest low/high spacing the current mode needs to have any legal jump."""
    if config.mode == "lists":
        up = parse_intervals(config.up_intervals)
        down = up if config.symmetric else parse_intervals(config.down_intervals)
        capped = [min(JUMP_CAP, value) for value in up + down]
        return max(capped) if capped else 0

    if config.mode == "continuous":
        cents_max = clamp_int(config.cents_max, 0, 1200, 1200)
        return min(JUMP_CAP, math.ceil(cents_max / 100))

    return min(JUMP_CAP, max(config.jump_min or 0, config.jump_max or 0))


def widen_to_required_span(config: RangeConfig) -> RangeConfig:
    need = required_span(config)
    if config.high_note - config.low_note >= need:
        return config
    high = min(MAX_NOTE, config.low_note + need)
    low = max(MIN_NOTE, high - need)
    return replace(config, low_note=low, high_note=high)

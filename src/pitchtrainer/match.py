from __future__ import annotations

import math
from dataclasses import dataclass
from typing import FrozenSet, Optional

from .config import MatchConfig, RangeConfig, degree_shift_steps
from .dsp import cents_between, midi_to_hz
from .pitch import PitchEstimate
from .scheduler import Target


def shift_by_degrees(note: int, steps: int, root_pc: int, degrees: FrozenSet[int]) -> int:
    if steps == 0 or not any(0 <= degree < 12 for degree in degrees):
        return note
    step = 1 if steps > 0 else -1
    for _ in range(abs(steps)):
        note += step
        while (note - root_pc) % 12 not in degrees:
            note += step
    return note


def goal_hz(target: Optional[Target], config: RangeConfig) -> float:
    """Frequency the performer has to sing: the target moved by the configured shift."""
    if target is None or not target.hz > 0:
        return 0.0
    if config.tonal_degree_shift and target.note is not None:
        steps = degree_shift_steps(config.degree_shift)
        goal_note = shift_by_degrees(target.note, steps, config.root_pc, config.degree_set)
        return midi_to_hz(goal_note, config.a4)
    return target.hz * 2.0 ** (config.shift_semitones / 12.0)


@dataclass
class MatchState:
    locked: bool = False
    in_tolerance_since: Optional[float] = None
    last_input_at: Optional[float] = None
    smoothed_cents: float = 0.0


@dataclass
class TunerReading:
    cents: float
    in_tune: bool


@dataclass
class Telemetry:
    hz: float
    goal_hz: float
    deviation_cents: Optional[float]
    clarity: float
    loudness_db: float
    loud: bool
    clear: bool
    has_input: bool
    mode: str
    tolerance: float
    tuner: Optional[TunerReading]
    hit: bool = False


class MatchEngine:
    def __init__(self, config: Optional[MatchConfig] = None):
        self.config = config or MatchConfig()
        self.state = MatchState()
        self.tuner: Optional[TunerReading] = None

    def reset(self) -> None:
        self.state = MatchState()
        self.tuner = None

    def install_target(self) -> None:
        self.state.locked = False
        self.state.in_tolerance_since = None

    @property
    def locked(self) -> bool:
        return self.state.locked

    def process(
        self,
        now: float,
        estimate: PitchEstimate,
        target: Optional[Target],
        range_cfg: RangeConfig,
        loudness_db: float,
    ) -> Telemetry:
        cfg = self.config
        state = self.state
        goal = goal_hz(target, range_cfg)
        tolerance = float(range_cfg.tolerance_cents)

        loud = loudness_db >= cfg.min_db
        clear = estimate.clarity >= cfg.min_clarity
        has_input = not state.locked and goal > 0 and loud and clear and estimate.detected

        deviation: Optional[float] = None
        hit = False
        if has_input:
            state.last_input_at = now
            deviation = cents_between(estimate.hz, goal)
            alpha = cfg.tuner_smoothing
            state.smoothed_cents = (1.0 - alpha) * state.smoothed_cents + alpha * deviation
            self.tuner = self._reading(state.smoothed_cents, tolerance)

            if abs(deviation) < tolerance:
                if state.in_tolerance_since is None:
                    state.in_tolerance_since = now
                if now - state.in_tolerance_since >= cfg.hold_s:
                    state.locked = True
                    state.in_tolerance_since = None
                    hit = True
            else:
                state.in_tolerance_since = None
        else:
            state.in_tolerance_since = None
            if state.last_input_at is None or now - state.last_input_at > cfg.tuner_hold_s:
                self.tuner = None

        return Telemetry(
            hz=estimate.hz,
            goal_hz=goal,
            deviation_cents=deviation,
            clarity=estimate.clarity,
            loudness_db=loudness_db,
            loud=loud,
            clear=clear,
            has_input=has_input,
            mode=range_cfg.mode,
            tolerance=tolerance,
            tuner=self.tuner,
            hit=hit,
        )

    def _reading(self, cents: float, tolerance: float) -> TunerReading:
        limit = self.config.tuner_max_cents
        shown = max(-limit, min(limit, cents)) if math.isfinite(cents) else 0.0
        return TunerReading(cents=shown, in_tune=abs(cents) < tolerance)

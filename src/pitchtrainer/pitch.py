from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Optional

import numpy as np

from .config import EstimatorConfig


@dataclass
class PitchEstimate:
    hz: float
    clarity: float

    @property
    def detected(self) -> bool:
        return self.hz > 0


NO_PITCH = PitchEstimate(0.0, 0.0)


@dataclass
class PitchHistory:
    """Recent accepted frequencies for median smoothing, owned by one tracking session."""

    values: Deque[float] = field(default_factory=deque)

    def push(self, hz: float, window: int) -> float:
        self.values.append(hz)
        while len(self.values) > window:
            self.values.popleft()
        ordered = sorted(self.values)
        return ordered[len(ordered) // 2]

    def clear(self) -> None:
        self.values.clear()


class PitchEstimator:
    def __init__(self, sample_rate: int, config: Optional[EstimatorConfig] = None):
        self.sample_rate = sample_rate
        self.config = config or EstimatorConfig()

    def estimate(self, frame: np.ndarray, history: Optional[PitchHistory] = None) -> PitchEstimate:
        cfg = self.config
        x = np.array(frame, dtype=np.float64).ravel()
        n = x.size
        half = n // 2
        if half < 3 or self.sample_rate <= 0:
            return NO_PITCH

        if cfg.lowpass_hz > 0:
            _lowpass_in_place(x, self.sample_rate, cfg.lowpass_hz)

        threshold = cfg.threshold
        if cfg.adaptive_threshold:
            frame_rms = float(np.sqrt(np.mean(x * x)))
            threshold = min(0.2, max(0.05, threshold + (0.05 - frame_rms)))

        cmnd = _cumulative_mean_normalized_difference(x, half)

        below = np.flatnonzero(cmnd[1:] < threshold)
        if below.size == 0:
            return NO_PITCH
        tau = int(below[0]) + 1

        while tau + 1 < half and cmnd[tau + 1] < cmnd[tau]:
            tau += 1

        clarity = min(1.0, max(0.0, 1.0 - float(cmnd[tau])))

        better_tau = float(tau)
        if cfg.interpolate and 1 < tau < half - 1:
            y0, y1, y2 = cmnd[tau - 1], cmnd[tau], cmnd[tau + 1]
            a = (y2 + y0 - 2.0 * y1) / 2.0
            b = (y2 - y0) / 2.0
            if a != 0:
                better_tau = tau - b / (2.0 * a)

        if better_tau <= 0 or not math.isfinite(better_tau):
            better_tau = float(tau)
        hz = self.sample_rate / better_tau

        if history is not None:
            if cfg.smoothing_window > 1:
                hz = history.push(hz, cfg.smoothing_window)
            else:
                history.clear()

        return PitchEstimate(hz, clarity)


def _lowpass_in_place(x: np.ndarray, sample_rate: int, cutoff_hz: float) -> None:
    rc = 1.0 / (2.0 * math.pi * cutoff_hz)
    dt = 1.0 / sample_rate
    alpha = dt / (rc + dt)
    for i in range(1, x.size):
        x[i] = x[i - 1] + alpha * (x[i] - x[i - 1])


def _cumulative_mean_normalized_difference(x: np.ndarray, half: int) -> np.ndarray:
    head = x[:half]
    diff = np.zeros(half, dtype=np.float64)
    for tau in range(1, half):
        delta = head - x[tau : tau + half]
        diff[tau] = np.dot(delta, delta)

    running = np.cumsum(diff)
    taus = np.arange(half, dtype=np.float64)
    cmnd = np.ones(half, dtype=np.float64)
    voiced = running > 0
    cmnd[voiced] = diff[voiced] * taus[voiced] / running[voiced]
    cmnd[0] = 1.0
    return cmnd

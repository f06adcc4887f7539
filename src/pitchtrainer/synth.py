from __future__ import annotations

import numpy as np

PEAK_GAIN = 0.18
MAX_PARTIALS = 14
PARTIAL_EXPONENT = 2.6

ATTACK_S = 0.01
DECAY_S = 0.05
SUSTAIN = 0.75
RELEASE_S = 0.04
MIN_DURATION_S = 0.05
FLOOR_GAIN = 0.0001


def partial_weights(hz: float, sample_rate: int) -> list[tuple[int, float]]:
    nyquist = sample_rate / 2.0
    partials: list[tuple[int, float]] = []
    for n in range(1, MAX_PARTIALS + 1):
        if hz * n >= nyquist:
            break
        partials.append((n, 1.0 / n**PARTIAL_EXPONENT))
    total = sum(weight for _, weight in partials)
    if total <= 0:
        return []
    return [(n, weight / total) for n, weight in partials]


def envelope(num_samples: int, sample_rate: int) -> np.ndarray:
    """Exponential attack/decay/sustain/release curve scaled to the peak gain."""
    t = np.arange(num_samples) / sample_rate
    duration = num_samples / sample_rate
    peak = PEAK_GAIN
    sustain = PEAK_GAIN * SUSTAIN
    release_start = max(ATTACK_S + DECAY_S, duration - RELEASE_S)

    env = np.empty(num_samples, dtype=np.float64)
    attack = t < ATTACK_S
    env[attack] = FLOOR_GAIN * (peak / FLOOR_GAIN) ** (t[attack] / ATTACK_S)

    decay = (t >= ATTACK_S) & (t < ATTACK_S + DECAY_S)
    env[decay] = peak * (sustain / peak) ** ((t[decay] - ATTACK_S) / DECAY_S)

    hold = (t >= ATTACK_S + DECAY_S) & (t < release_start)
    env[hold] = sustain

    release = t >= release_start
    span = max(duration - release_start, 1.0 / sample_rate)
    progress = np.clip((t[release] - release_start) / span, 0.0, 1.0)
    env[release] = sustain * (FLOOR_GAIN / sustain) ** progress
    return env


def render_tone(hz: float, duration_ms: float, sample_rate: int) -> np.ndarray:
    duration = max(MIN_DURATION_S, duration_ms / 1000.0)
    num_samples = int(round(duration * sample_rate))
    if hz <= 0 or num_samples <= 0:
        return np.zeros(max(num_samples, 0), dtype=np.float32)

    t = np.arange(num_samples) / sample_rate
    signal = np.zeros(num_samples, dtype=np.float64)
    for n, weight in partial_weights(hz, sample_rate):
        signal += weight * np.sin(2.0 * np.pi * hz * n * t)
    return (signal * envelope(num_samples, sample_rate)).astype(np.float32)


def fade_ramp(num_samples: int, start_gain: float = 1.0) -> np.ndarray:
    if num_samples <= 0:
        return np.zeros(0, dtype=np.float32)
    start = max(start_gain, FLOOR_GAIN)
    progress = np.arange(num_samples) / num_samples
    return (start * (FLOOR_GAIN / start) ** progress).astype(np.float32)

import math
from typing import Optional

import numpy as np


def rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(frame.astype(np.float64) ** 2)))


def rms_to_dbfs(value: float) -> float:
    return 20.0 * math.log10(max(value, 1e-9))


def hz_to_midi(hz: float, a4: float = 440.0) -> Optional[float]:
    if hz <= 0:
        return None
    return 69.0 + 12.0 * math.log2(hz / a4)


def midi_to_hz(midi: float, a4: float = 440.0) -> float:
    return a4 * (2.0 ** ((midi - 69.0) / 12.0))


def cents_between(hz: float, reference_hz: float) -> float:
    return 1200.0 * math.log2(hz / reference_hz)


def nearest_midi(hz: float, a4: float = 440.0) -> Optional[int]:
    midi = hz_to_midi(hz, a4)
    if midi is None:
        return None
    return int(math.floor(midi + 0.5))

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import sounddevice as sd

from .config import AudioConfig
from .errors import CaptureError
from .synth import fade_ramp, render_tone

logger = logging.getLogger(__name__)

FADE_S = 0.012


class MicrophoneCapture:
    def __init__(self, config: AudioConfig):
        self.config = config
        self.sample_rate = config.sample_rate
        self._queue: "queue.Queue[np.ndarray]" = queue.Queue()
        self._window = np.zeros(config.block_size, dtype=np.float32)
        self._stream: Optional[sd.InputStream] = None

    def start(self) -> None:
        if self._stream is not None:
            return
        try:
            stream = sd.InputStream(
                channels=self.config.channels,
                samplerate=self.config.sample_rate,
                device=self.config.input_device,
                dtype="float32",
                callback=self._callback,
            )
            stream.start()
        except (sd.PortAudioError, ValueError) as exc:
            logger.error("Falha ao abrir o microfone: %s", exc)
            raise CaptureError(f"Nao consegui abrir o microfone: {exc}") from exc
        self._window[:] = 0.0
        self._stream = stream
        logger.info("Captura iniciada (%d Hz, janela de %d amostras)", self.sample_rate, self.config.block_size)

    def _callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
        if status:
            return
        self._queue.put(indata[:, 0].copy())

    def read(self) -> np.ndarray:
        blocks: List[np.ndarray] = [self._window]
        while True:
            try:
                blocks.append(self._queue.get_nowait())
            except queue.Empty:
                break
        if len(blocks) > 1:
            self._window = np.concatenate(blocks)[-self.config.block_size :]
        return self._window.copy()

    def stop(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        stream.stop()
        stream.close()
        while not self._queue.empty():
            self._queue.get_nowait()
        logger.info("Captura encerrada")


@dataclass
class _Voice:
    samples: np.ndarray
    position: int = 0
    fade: Optional[np.ndarray] = None
    fade_position: int = 0

    @property
    def finished(self) -> bool:
        if self.position >= self.samples.size:
            return True
        return self.fade is not None and self.fade_position >= self.fade.size


class TonePlayer:
    def __init__(self, config: AudioConfig):
        self.sample_rate = config.output_sample_rate
        self.device = config.output_device
        self._voices: List[_Voice] = []
        self._lock = threading.Lock()
        self._stream: Optional[sd.OutputStream] = None

    def start(self) -> None:
        if self._stream is not None:
            return
        self._stream = sd.OutputStream(
            channels=1,
            samplerate=self.sample_rate,
            device=self.device,
            dtype="float32",
            callback=self._callback,
        )
        self._stream.start()

    def play(self, hz: float, duration_ms: float, stop_existing: bool = True) -> None:
        samples = render_tone(hz, duration_ms, self.sample_rate)
        with self._lock:
            if stop_existing:
                self._fade_all()
            self._voices.append(_Voice(samples))
        logger.debug("Tocando %.2f Hz por %.0f ms", hz, duration_ms)

    def fade_out(self) -> None:
        with self._lock:
            self._fade_all()

    def close(self) -> None:
        self.fade_out()
        stream = self._stream
        self._stream = None
        if stream is None:
            return
        sd.sleep(int((FADE_S + 0.03) * 1000))
        stream.stop()
        stream.close()

    def _fade_all(self) -> None:
        length = max(1, int(FADE_S * self.sample_rate))
        for voice in self._voices:
            if voice.fade is None:
                voice.fade = fade_ramp(length)

    def _callback(self, outdata: np.ndarray, frames: int, time_info, status) -> None:
        mix = np.zeros(frames, dtype=np.float32)
        with self._lock:
            for voice in self._voices:
                chunk = voice.samples[voice.position : voice.position + frames]
                if voice.fade is not None:
                    ramp = voice.fade[voice.fade_position : voice.fade_position + chunk.size]
                    chunk = chunk[: ramp.size] * ramp
                    voice.fade_position += chunk.size
                mix[: chunk.size] += chunk
                voice.position += chunk.size
            self._voices = [voice for voice in self._voices if not voice.finished]
        outdata[:, 0] = mix

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable, List, Optional

import numpy as np

from .config import EstimatorConfig, MatchConfig, RangeConfig
from .dsp import midi_to_hz, rms, rms_to_dbfs
from .errors import CaptureError, SessionStartError
from .match import MatchEngine, Telemetry
from .notes import hit_label, tonic_notes
from .pitch import PitchEstimator, PitchHistory
from .scheduler import Target, next_target

logger = logging.getLogger(__name__)


@dataclass
class _Deferred:
    due: float
    generation: int
    action: Callable[[float, RangeConfig], None]


class TrainerSession:
    """One practice run: target, matching state and the timers tied to them.

    ``capture`` needs ``sample_rate``, ``start()``, ``read()`` and ``stop()``;
    ``player`` needs ``play(hz, duration_ms, stop_existing)`` and ``fade_out()``.
    ``config_source`` is called on every tick so edits apply immediately.
    """

    def __init__(
        self,
        capture,
        player,
        config_source: Callable[[], RangeConfig],
        estimator_config: Optional[EstimatorConfig] = None,
        match_config: Optional[MatchConfig] = None,
        rng: Optional[random.Random] = None,
    ):
        self.capture = capture
        self.player = player
        self.config_source = config_source
        self.estimator = PitchEstimator(capture.sample_rate, estimator_config)
        self.engine = MatchEngine(match_config)
        self.history = PitchHistory()
        self.rng = rng or random.Random()

        self.running = False
        self.target: Optional[Target] = None
        self.generation = 0
        self.correct = 0
        self.last_label = ""
        self._deferred: List[_Deferred] = []

    @property
    def locked(self) -> bool:
        return self.engine.locked

    @property
    def pending(self) -> int:
        return len(self._deferred)

    def current_config(self) -> RangeConfig:
        return self.config_source().sanitized()

    def start(self, now: float) -> None:
        if self.running:
            return
        try:
            self.capture.start()
        except (CaptureError, OSError) as exc:
            self.capture.stop()
            raise SessionStartError(str(exc)) from exc

        self.running = True
        self.correct = 0
        self.last_label = ""
        self.target = None
        self._deferred.clear()
        self.engine.reset()
        self.history.clear()
        logger.info("Sessao iniciada")
        self._advance(now, self.current_config())

    def stop(self) -> None:
        self.generation += 1
        self._deferred.clear()
        if not self.running:
            return
        self.running = False
        self.engine.reset()
        self.player.fade_out()
        self.capture.stop()
        logger.info("Sessao encerrada: %d acertos", self.correct)

    def tick(self, now: float) -> Optional[Telemetry]:
        if not self.running:
            return None
        config = self.current_config()
        self._run_due(now, config)
        if not self.running:
            return None

        frame = np.asarray(self.capture.read(), dtype=np.float64)
        loudness_db = rms_to_dbfs(rms(frame))
        estimate = self.estimator.estimate(frame, self.history)
        telemetry = self.engine.process(now, estimate, self.target, config, loudness_db)
        if telemetry.hit:
            self._on_hit(now, config)
        return telemetry

    def replay_target(self) -> None:
        if not self.running or self.target is None:
            return
        config = self.current_config()
        self.player.play(self.target.hz, config.sound_ms, stop_existing=True)

    def play_tonic(self) -> Optional[int]:
        config = self.current_config()
        if config.mode != "tonal":
            return None
        roots = tonic_notes(config)
        if not roots:
            return None
        note = self.rng.choice(roots)
        self.player.play(midi_to_hz(note, config.a4), config.sound_ms, stop_existing=False)
        return note

    def _on_hit(self, now: float, config: RangeConfig) -> None:
        target = self.target
        self.correct += 1
        self.last_label = hit_label(target.note if target else None, config, self.rng)
        logger.info("Acerto #%d: %s", self.correct, self.last_label)

        if config.replay and target is not None:
            match_cfg = self.engine.config
            self.player.play(target.hz, match_cfg.confirm_s * 1000.0, stop_existing=True)
            self._schedule(now + match_cfg.confirm_s + match_cfg.confirm_gap_s, self._advance)
        else:
            self._advance(now, config)

    def _advance(self, now: float, config: RangeConfig) -> None:
        self.generation += 1
        self.target = next_target(self.target, config, self.rng)
        self.engine.install_target()
        logger.debug("Novo alvo: nota %s, %.2f Hz", self.target.note, self.target.hz)

        self.player.play(self.target.hz, config.sound_ms, stop_existing=True)
        self._schedule(now + self._repeat_period(config), self._repeat)

    def _repeat(self, now: float, config: RangeConfig) -> None:
        if not self.engine.locked and self.target is not None and self.target.hz > 0:
            self.player.play(self.target.hz, config.sound_ms, stop_existing=True)
        self._schedule(now + self._repeat_period(config), self._repeat)

    @staticmethod
    def _repeat_period(config: RangeConfig) -> float:
        return max(0.05, (config.sound_ms + config.repeat_gap_ms) / 1000.0)

    def _schedule(self, due: float, action: Callable[[float, RangeConfig], None]) -> None:
        self._deferred.append(_Deferred(due=due, generation=self.generation, action=action))

    def _run_due(self, now: float, config: RangeConfig) -> None:
        due = [entry for entry in self._deferred if entry.due <= now]
        if not due:
            return
        self._deferred = [entry for entry in self._deferred if entry.due > now]
        for entry in sorted(due, key=lambda item: item.due):
            if not self.running or entry.generation != self.generation:
                continue
            entry.action(now, config)

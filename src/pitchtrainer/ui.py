from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import pygame

from .match import Telemetry, TunerReading

KEY_COMMANDS = {
    pygame.K_SPACE: "toggle",
    pygame.K_t: "tonic",
    pygame.K_r: "replay",
    pygame.K_d: "debug",
}


@dataclass
class UIState:
    running: bool
    mode: str
    target_label: str
    last_label: str
    correct: int
    tolerance: float
    tuner: Optional[TunerReading]
    tuner_max_cents: float = 50.0
    telemetry: Optional[Telemetry] = None
    message: str = ""


class PygameUI:
    def __init__(self, fullscreen: bool = False, size: tuple[int, int] | None = (960, 540)):
        pygame.init()
        flags = pygame.FULLSCREEN if fullscreen else 0
        if size is None or fullscreen:
            self.screen = pygame.display.set_mode((0, 0), flags)
        else:
            self.screen = pygame.display.set_mode(size, flags)
        pygame.display.set_caption("Treino de Afinacao")

        self.clock = pygame.time.Clock()
        self.width, self.height = self.screen.get_size()
        self.font_title = pygame.font.SysFont("DejaVu Sans", 40, bold=True)
        self.font_big = pygame.font.SysFont("DejaVu Sans", 96, bold=True)
        self.font_meta = pygame.font.SysFont("DejaVu Sans", 26)
        self.font_debug = pygame.font.SysFont("DejaVu Sans Mono", 20)
        self.show_debug = False
        self._commands: List[str] = []

    def update(self, state: UIState) -> bool:
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                return False
            if event.type == pygame.KEYDOWN:
                if event.key in (pygame.K_ESCAPE, pygame.K_q):
                    return False
                command = KEY_COMMANDS.get(event.key)
                if command == "debug":
                    self.show_debug = not self.show_debug
                elif command:
                    self._commands.append(command)

        self.screen.fill((10, 12, 18))
        self._draw_header(state)
        self._draw_target(state)
        self._draw_tuner(state)
        self._draw_footer(state)
        if self.show_debug and state.telemetry is not None:
            self._draw_debug(state.telemetry)

        pygame.display.flip()
        self.clock.tick(30)
        return True

    def take_commands(self) -> List[str]:
        commands, self._commands = self._commands, []
        return commands

    def _draw_header(self, state: UIState) -> None:
        status = "Ouvindo" if state.running else "Parado"
        text = self.font_title.render(f"{status}  |  modo: {state.mode}", True, (240, 240, 240))
        self.screen.blit(text, (40, 24))

    def _draw_target(self, state: UIState) -> None:
        target = self.font_meta.render(f"Alvo: {state.target_label}", True, (190, 190, 190))
        self.screen.blit(target, (40, 90))

        last = self.font_big.render(state.last_label or "-", True, (255, 236, 156))
        rect = last.get_rect(center=(self.width // 2, self.height // 2 - 40))
        self.screen.blit(last, rect)

    def _draw_tuner(self, state: UIState) -> None:
        bar_w = int(self.width * 0.7)
        left = (self.width - bar_w) // 2
        y = int(self.height * 0.68)
        pygame.draw.line(self.screen, (90, 90, 110), (left, y), (left + bar_w, y), 3)
        pygame.draw.line(self.screen, (150, 150, 170), (self.width // 2, y - 18), (self.width // 2, y + 18), 2)

        reading = state.tuner
        if reading is None:
            text = self.font_meta.render("—", True, (120, 120, 120))
            self.screen.blit(text, text.get_rect(center=(self.width // 2, y + 40)))
            return

        ratio = reading.cents / state.tuner_max_cents if state.tuner_max_cents > 0 else 0.0
        x = self.width // 2 + int(ratio * bar_w / 2)
        color = (90, 220, 120) if reading.in_tune else (230, 120, 90)
        pygame.draw.line(self.screen, color, (x, y - 26), (x, y + 26), 5)

        sign = "+" if reading.cents > 0 else ""
        text = self.font_meta.render(f"{sign}{round(reading.cents)}¢", True, color)
        self.screen.blit(text, text.get_rect(center=(self.width // 2, y + 48)))

    def _draw_footer(self, state: UIState) -> None:
        score = self.font_meta.render(
            f"Acertos: {state.correct}  |  Tolerancia: {state.tolerance:.0f}¢", True, (180, 220, 255)
        )
        keys = self.font_meta.render(
            "ESPACO iniciar/parar  T tonica  R repetir  D debug  Q sair", True, (150, 150, 150)
        )
        self.screen.blit(score, (40, self.height - 80))
        self.screen.blit(keys, (40, self.height - 45))
        if state.message:
            msg = self.font_meta.render(state.message, True, (255, 140, 140))
            self.screen.blit(msg, (40, 130))

    def _draw_debug(self, telemetry: Telemetry) -> None:
        def fmt(value: Optional[float], digits: int = 2) -> str:
            return "—" if value is None else f"{value:.{digits}f}"

        lines = [
            f"freq    {fmt(telemetry.hz)}",
            f"goal    {fmt(telemetry.goal_hz)}",
            f"diff    {fmt(telemetry.deviation_cents, 1)}",
            f"clarity {fmt(telemetry.clarity, 3)}",
            f"dB      {fmt(telemetry.loudness_db, 1)}",
            f"loud    {'Sim' if telemetry.loud else 'Nao'}",
            f"clear   {'Sim' if telemetry.clear else 'Nao'}",
            f"input   {'Sim' if telemetry.has_input else 'Nao'}",
        ]
        x = self.width - 260
        for i, line in enumerate(lines):
            surf = self.font_debug.render(line, True, (170, 170, 190))
            self.screen.blit(surf, (x, 90 + i * 24))

    def close(self) -> None:
        pygame.quit()

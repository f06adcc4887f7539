from __future__ import annotations

import argparse
import logging
import time
from typing import Optional

import sounddevice as sd

from .audio import MicrophoneCapture, TonePlayer
from .config import (
    MODES,
    AudioConfig,
    EstimatorConfig,
    MatchConfig,
    RangeConfig,
    parse_degrees,
    parse_intervals,
    widen_to_required_span,
)
from .errors import SessionStartError
from .match import Telemetry
from .notes import note_name, target_label
from .session import TrainerSession

logger = logging.getLogger(__name__)


def _jump_arg(value: str) -> Optional[int]:
    if value.lower() == "none":
        return None
    return int(value)


def _device_arg(value: Optional[str]):
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Treino de ouvido: ouve a nota, canta de volta")
    parser.add_argument("--low", type=int, default=45, help="Nota MIDI mais grave (36-96)")
    parser.add_argument("--high", type=int, default=67, help="Nota MIDI mais aguda (36-96)")
    parser.add_argument("--mode", choices=MODES, default="minmax", help="Modo de escolha do alvo")
    parser.add_argument("--jump-min", type=_jump_arg, default=1, help="Salto minimo em semitons ou 'none'")
    parser.add_argument("--jump-max", type=_jump_arg, default=12, help="Salto maximo em semitons ou 'none'")
    parser.add_argument("--up", default="0 1 2 3 4 5 6 7 8 9 10 11", help="Intervalos para cima (modo lists)")
    parser.add_argument("--down", help="Intervalos para baixo (modo lists, assimetrico)")
    parser.add_argument("--root", type=int, default=0, help="Classe de altura da tonica (0=C)")
    parser.add_argument("--degrees", default="0", help="Graus validos relativos a tonica (modo tonal)")
    parser.add_argument("--cents-min", type=int, default=20, help="Distancia minima em cents (modo continuous)")
    parser.add_argument("--cents-max", type=int, default=1200, help="Distancia maxima em cents (modo continuous)")
    parser.add_argument("--tolerance", type=int, default=25, help="Tolerancia em cents")
    parser.add_argument("--a4", type=float, default=440.0, help="Frequencia de referencia do A4")
    parser.add_argument("--transpose", type=int, default=0, help="Transposicao so de exibicao (Bb = -2)")
    parser.add_argument("--shift", type=int, default=0, help="Deslocamento do alvo em semitons")
    parser.add_argument("--degree-shift", type=int, help="Deslocamento em graus da escala (modo tonal)")
    parser.add_argument("--sound-ms", type=float, default=1000.0, help="Duracao do som do alvo")
    parser.add_argument("--gap-ms", type=float, default=2000.0, help="Pausa antes de repetir o alvo")
    parser.add_argument("--replay", action="store_true", help="Repete o alvo depois de um acerto")
    parser.add_argument("--input-device", help="Dispositivo de entrada de audio (indice ou nome)")
    parser.add_argument("--output-device", help="Dispositivo de saida de audio (indice ou nome)")
    parser.add_argument("--samplerate", type=int, default=44100, help="Sample rate")
    parser.add_argument("--blocksize", type=int, default=4096, help="Tamanho da janela de analise")
    parser.add_argument("--fullscreen", action="store_true", help="Tela cheia")
    parser.add_argument("--headless", action="store_true", help="Sem UI, telemetria no terminal")
    parser.add_argument("--log-level", default="INFO", help="Nivel de log (default: INFO)")
    return parser.parse_args(argv)


def build_range_config(args: argparse.Namespace) -> RangeConfig:
    up = parse_intervals(args.up)
    requested = RangeConfig(
        low_note=args.low,
        high_note=args.high,
        mode=args.mode,
        jump_min=args.jump_min,
        jump_max=args.jump_max,
        up_intervals=up,
        down_intervals=parse_intervals(args.down) if args.down is not None else list(up),
        symmetric=args.down is None,
        root_pc=args.root,
        degrees=parse_degrees(args.degrees),
        cents_min=args.cents_min,
        cents_max=args.cents_max,
        tolerance_cents=args.tolerance,
        a4=args.a4,
        shift_semitones=args.shift,
        shift_by_degree=args.degree_shift is not None,
        degree_shift=args.degree_shift if args.degree_shift is not None else 1,
        transpose=args.transpose,
        sound_ms=args.sound_ms,
        repeat_gap_ms=args.gap_ms,
        replay=args.replay,
    ).sanitized()
    config = widen_to_required_span(requested)
    if config != requested:
        logger.warning(
            "Faixa %s-%s curta demais para os saltos do modo %s, usando %s-%s",
            note_name(requested.low_note, requested.transpose),
            note_name(requested.high_note, requested.transpose),
            config.mode,
            note_name(config.low_note, config.transpose),
            note_name(config.high_note, config.transpose),
        )
    return config


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    audio_cfg = AudioConfig(
        sample_rate=args.samplerate,
        block_size=args.blocksize,
        input_device=_device_arg(args.input_device),
        output_device=_device_arg(args.output_device),
        output_sample_rate=args.samplerate,
    )
    match_cfg = MatchConfig()
    range_cfg = build_range_config(args)
    logger.info(
        "Faixa %s-%s, modo %s",
        note_name(range_cfg.low_note, range_cfg.transpose),
        note_name(range_cfg.high_note, range_cfg.transpose),
        range_cfg.mode,
    )

    player = TonePlayer(audio_cfg)
    try:
        player.start()
    except sd.PortAudioError as exc:
        logger.error("Nao consegui abrir a saida de audio: %s", exc)
        return 1

    capture = MicrophoneCapture(audio_cfg)
    session = TrainerSession(
        capture,
        player,
        config_source=lambda: range_cfg,
        estimator_config=EstimatorConfig(),
        match_config=match_cfg,
    )

    try:
        if args.headless:
            status = _run_headless(session)
        else:
            status = _run_ui(session, range_cfg, match_cfg, args.fullscreen)
    finally:
        session.stop()
        player.close()

    _print_final(session)
    return status


def _run_headless(session: TrainerSession) -> int:
    try:
        session.start(time.perf_counter())
    except SessionStartError as exc:
        logger.error("Falha ao iniciar a sessao: %s", exc)
        return 1

    last_print = 0.0
    try:
        while session.running:
            now = time.perf_counter()
            telemetry = session.tick(now)
            if telemetry is not None and now - last_print >= 0.25:
                print(_status_line(session, telemetry), end="\r", flush=True)
                last_print = now
            time.sleep(0.01)
    except KeyboardInterrupt:
        pass
    print("")
    return 0


def _run_ui(session: TrainerSession, range_cfg: RangeConfig, match_cfg: MatchConfig, fullscreen: bool) -> int:
    from .ui import PygameUI, UIState

    ui = PygameUI(fullscreen=fullscreen)
    telemetry: Optional[Telemetry] = None
    message = ""
    running = True
    try:
        while running:
            now = time.perf_counter()
            for command in ui.take_commands():
                if command == "toggle":
                    if session.running:
                        session.stop()
                        telemetry = None
                    else:
                        try:
                            session.start(now)
                            message = ""
                        except SessionStartError as exc:
                            message = f"Microfone indisponivel: {exc}"
                elif command == "tonic":
                    session.play_tonic()
                elif command == "replay":
                    session.replay_target()

            if session.running:
                telemetry = session.tick(now)

            target = session.target
            state = UIState(
                running=session.running,
                mode=range_cfg.mode,
                target_label=target_label(target.note if target else None, range_cfg) if session.running else "-",
                last_label=session.last_label,
                correct=session.correct,
                tolerance=float(range_cfg.tolerance_cents),
                tuner=telemetry.tuner if telemetry else None,
                tuner_max_cents=match_cfg.tuner_max_cents,
                telemetry=telemetry,
                message=message,
            )
            running = ui.update(state)
    finally:
        ui.close()
    return 0


def _status_line(session: TrainerSession, telemetry: Telemetry) -> str:
    if telemetry.tuner is None:
        tuner = "   —  "
    else:
        tuner = f"{telemetry.tuner.cents:+5.0f}¢"
    return (
        f"Acertos: {session.correct:3d}  |  Ultima: {session.last_label or '-':>4}  |  "
        f"Afinacao: {tuner}  |  {telemetry.hz:7.2f} Hz  clareza {telemetry.clarity:4.2f}"
    )


def _print_final(session: TrainerSession) -> None:
    print("")
    print("Resultado final:")
    print(f"  Acertos: {session.correct}")


if __name__ == "__main__":
    raise SystemExit(main())

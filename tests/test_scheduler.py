import math
import random

import pytest

from pitchtrainer.config import RangeConfig
from pitchtrainer.dsp import midi_to_hz
from pitchtrainer.scheduler import (
    CONTINUOUS_ATTEMPTS,
    Target,
    continuous_display_note,
    legal_jumps_lists,
    legal_jumps_minmax,
    next_continuous_hz,
    next_target,
    target_for_note,
    tonal_candidates,
)


class ScriptedRandom:
    def __init__(self):
        self.random_calls = 0
        self.randint_calls = []

    def random(self):
        self.random_calls += 1
        return 0.5

    def randint(self, a, b):
        self.randint_calls.append((a, b))
        return a


def walk(config, steps=300, seed=0):
    rng = random.Random(seed)
    targets = []
    previous = None
    for _ in range(steps):
        previous = next_target(previous, config, rng)
        targets.append(previous)
    return targets


@pytest.mark.parametrize("mode", ["minmax", "lists", "tonal", "continuous"])
@pytest.mark.parametrize("low,high", [(45, 67), (60, 60), (36, 96), (50, 53)])
def test_targets_stay_in_range(mode, low, high):
    config = RangeConfig(low_note=low, high_note=high, mode=mode, degrees=[0, 4, 7]).sanitized()
    f_lo = midi_to_hz(low, config.a4)
    f_hi = midi_to_hz(high, config.a4)

    for target in walk(config):
        assert low <= target.note <= high
        assert f_lo * (1 - 1e-12) <= target.hz <= f_hi * (1 + 1e-12)
        if mode != "continuous":
            assert target.hz == midi_to_hz(target.note, config.a4)


def test_legal_minmax_offsets():
    config = RangeConfig(low_note=55, high_note=65, jump_min=1, jump_max=3)
    assert sorted(legal_jumps_minmax(60, config)) == [-3, -2, -1, 1, 2, 3]
    assert sorted(legal_jumps_minmax(64, config)) == [-3, -2, -1, 1]


def test_zero_jump_only_when_bracketed_and_in_range():
    config = RangeConfig(low_note=55, high_note=65, jump_min=None, jump_max=1)
    assert sorted(legal_jumps_minmax(60, config)) == [-1, 0, 1]
    assert 0 not in legal_jumps_minmax(70, config)


def test_none_bounds_collapse_to_zero_and_cap():
    config = RangeConfig(low_note=36, high_note=96, jump_min=None, jump_max=None)
    legal = legal_jumps_minmax(66, config)
    assert max(abs(j) for j in legal) == 30
    legal = legal_jumps_minmax(36, config)
    assert max(legal) == 36


def test_previous_outside_range_never_leaves_range():
    config = RangeConfig(low_note=60, high_note=64, jump_min=1, jump_max=12)
    for j in legal_jumps_minmax(50, config):
        assert 60 <= 50 + j <= 64


def test_minmax_offsets_are_legal_or_fallback():
    config = RangeConfig(low_note=48, high_note=72, jump_min=2, jump_max=5).sanitized()
    rng = random.Random(11)
    previous = next_target(None, config, rng)
    for _ in range(300):
        legal = legal_jumps_minmax(previous.note, config)
        current = next_target(previous, config, rng)
        if legal and legal != [0]:
            assert current.note - previous.note in legal
        previous = current


def test_jump_never_exceeds_range_cap():
    config = RangeConfig(low_note=36, high_note=96, jump_min=None, jump_max=None).sanitized()
    targets = walk(config, steps=500, seed=5)
    for before, after in zip(targets, targets[1:]):
        assert abs(after.note - before.note) <= min(36, config.high_note - config.low_note)


def test_only_zero_jump_falls_back_to_random_note():
    config = RangeConfig(low_note=50, high_note=70, jump_min=0, jump_max=0).sanitized()
    assert legal_jumps_minmax(60, config) == [0]
    notes = {target.note for target in walk(config, steps=200)}
    assert len(notes) > 1


def test_lists_asymmetric_offsets():
    config = RangeConfig(
        low_note=40, high_note=80, mode="lists", up_intervals=[2], down_intervals=[5], symmetric=False
    ).sanitized()
    assert sorted(legal_jumps_lists(60, config)) == [-5, 2]

    rng = random.Random(2)
    previous = target_for_note(60, config)
    for _ in range(200):
        legal = legal_jumps_lists(previous.note, config)
        current = next_target(previous, config, rng)
        if legal and legal != [0]:
            assert current.note - previous.note in legal
        previous = current


def test_lists_symmetric_reuses_up_set():
    config = RangeConfig(low_note=40, high_note=80, mode="lists", up_intervals=[3, 7], down_intervals=[1])
    assert sorted(legal_jumps_lists(60, config)) == [-7, -3, 3, 7]


def test_lists_magnitudes_are_capped_to_span():
    config = RangeConfig(low_note=60, high_note=64, mode="lists", up_intervals=[12])
    assert sorted(legal_jumps_lists(60, config)) == [4]
    assert sorted(legal_jumps_lists(64, config)) == [-4]


def test_lists_zero_only_when_listed():
    config = RangeConfig(low_note=40, high_note=80, mode="lists", up_intervals=[4])
    assert 0 not in legal_jumps_lists(60, config)
    config = RangeConfig(low_note=40, high_note=80, mode="lists", up_intervals=[0, 4])
    assert 0 in legal_jumps_lists(60, config)


def test_tonal_targets_belong_to_degree_set():
    config = RangeConfig(
        low_note=45, high_note=75, mode="tonal", root_pc=2, degrees=[0, 4, 7], jump_min=1, jump_max=5
    ).sanitized()
    for target in walk(config, steps=300, seed=9):
        assert (target.note - 2) % 12 in {0, 4, 7}


def test_tonal_empty_degrees_default_to_root():
    config = RangeConfig(low_note=45, high_note=75, mode="tonal", root_pc=9, degrees=[]).sanitized()
    assert tonal_candidates(config) == [45, 57, 69]
    for target in walk(config, steps=50):
        assert target.note % 12 == 9


def test_tonal_falls_back_to_any_candidate_when_jumps_cannot_reach():
    config = RangeConfig(
        low_note=48, high_note=72, mode="tonal", root_pc=0, degrees=[0], jump_min=1, jump_max=2
    ).sanitized()
    targets = walk(config, steps=30)
    assert {target.note for target in targets} <= {48, 60, 72}


def test_tonal_without_candidates_picks_any_note_in_range():
    config = RangeConfig(low_note=61, high_note=63, mode="tonal", root_pc=0, degrees=[0]).sanitized()
    assert tonal_candidates(config) == []
    for target in walk(config, steps=20):
        assert 61 <= target.note <= 63


def test_continuous_steps_respect_cents_bounds():
    config = RangeConfig(low_note=45, high_note=80, mode="continuous", cents_min=20, cents_max=300).sanitized()
    targets = walk(config, steps=300, seed=4)
    for before, after in zip(targets, targets[1:]):
        cents = abs(1200 * math.log2(after.hz / before.hz))
        assert 20 - 1e-6 <= cents <= 300 + 1e-6


def test_continuous_first_target_is_a_note():
    config = RangeConfig(low_note=45, high_note=67, mode="continuous").sanitized()
    target = next_target(None, config, random.Random(0))
    assert target.hz == midi_to_hz(target.note, config.a4)


def test_continuous_is_reproducible_for_a_seed():
    config = RangeConfig(low_note=45, high_note=67, mode="continuous", cents_min=50, cents_max=900).sanitized()
    first = [next_continuous_hz(220.0, config, random.Random(seed)) for seed in range(20)]
    second = [next_continuous_hz(220.0, config, random.Random(seed)) for seed in range(20)]
    assert first == second


def test_continuous_falls_back_after_all_attempts():
    config = RangeConfig(low_note=60, high_note=61, mode="continuous", cents_min=1000, cents_max=1200).sanitized()

    rng = ScriptedRandom()
    hz = next_continuous_hz(midi_to_hz(60), config, rng)

    assert rng.random_calls == 2 * CONTINUOUS_ATTEMPTS
    assert rng.randint_calls == [(60, 61)]
    assert hz == midi_to_hz(60)


def test_continuous_display_note_is_rounded_and_clamped():
    config = RangeConfig(low_note=60, high_note=64)
    assert continuous_display_note(midi_to_hz(62.4), config) == 62
    assert continuous_display_note(midi_to_hz(62.6), config) == 63
    assert continuous_display_note(midi_to_hz(70), config) == 64
    assert continuous_display_note(midi_to_hz(50), config) == 60


def test_same_seed_gives_same_sequence():
    config = RangeConfig(mode="minmax").sanitized()
    assert walk(config, seed=42) == walk(config, seed=42)


def test_target_is_immutable():
    target = Target(note=60, hz=261.6)
    with pytest.raises(AttributeError):
        target.note = 61


def test_a4_reference_sets_target_frequency():
    config = RangeConfig(a4=440.0)
    assert target_for_note(69, config).hz == 440.0
    assert target_for_note(69, RangeConfig(a4=442.0)).hz == 442.0

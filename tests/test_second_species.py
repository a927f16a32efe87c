"""Tests for second species generation (two half notes per cantus note)."""

import importlib
import random
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

species = importlib.import_module("counterpoint_generator.species")
rules = importlib.import_module("counterpoint_generator.rules")
cg = importlib.import_module("counterpoint_generator")
nu = importlib.import_module("counterpoint_generator.note_utils")

FUX_DORIAN = ["D4", "F4", "E4", "D4", "G4", "F4", "A4", "G4", "F4", "E4", "D4"]


def test_two_half_notes_per_measure():
    result = species.generate_second_species(FUX_DORIAN, True, rng=random.Random(2))

    assert result.success
    assert len(result.notes) == 2 * len(FUX_DORIAN)
    assert all(n.duration is nu.Duration.HALF for n in result.notes)
    # The final measure holds its downbeat.
    assert result.notes[-1] == result.notes[-2]


def test_downbeats_are_consonant_and_cadence_is_perfect():
    for seed in range(5):
        result = species.generate_second_species(FUX_DORIAN, True, rng=random.Random(seed))
        downbeats = result.notes[::2]
        for cf, note in zip(FUX_DORIAN, downbeats):
            assert rules.check_consonance(cf, note.pitch).passed
        assert abs(nu.parse_pitch("D4") - downbeats[-1].number) in (0, 12)


def test_dissonant_upbeats_are_passing_tones():
    for seed in range(5):
        result = species.generate_second_species(
            FUX_DORIAN, True, mode="dorian", finalis="D", rng=random.Random(seed)
        )
        pitches = [n.pitch for n in result.notes]
        for m in range(len(FUX_DORIAN) - 1):
            check = rules.check_passing_tone(
                FUX_DORIAN[m], pitches[2 * m], pitches[2 * m + 1], pitches[2 * m + 2]
            )
            assert check.passed, (m, pitches)


def test_upbeat_falls_back_to_repeating_downbeat():
    """With no usable neighbour the downbeat is simply repeated."""

    catalog = rules.get_rules_for_species(2)
    upbeat = species._choose_upbeat(
        "C4", "C4", "C4", ["C4"], True, frozenset({60}), catalog, random.Random(0)
    )
    assert upbeat == "C4"


def test_empty_cantus():
    result = species.generate_second_species([])
    assert result.error == "Cantus firmus is empty"


def test_upbeat_never_strands_the_next_downbeat():
    """A descending octave into a repeated note is not a recovery."""

    catalog = rules.get_rules_for_species(2)
    upbeat = species._choose_upbeat(
        "C5", "C6", "C5", ["C6"], False, frozenset({72, 84}), catalog, random.Random(0)
    )
    # C5 would leave an unrecovered octave; the only other option is the repeat.
    assert upbeat == "C6"


def test_downbeats_keep_hard_melodic_rules():
    watched = (rules.RuleId.LEAP_RECOVERY, rules.RuleId.NO_EXPOSED_TRITONE)
    for above in (True, False):
        for seed in range(30):
            exercise = cg.generate_exercise(2, seed=seed, above=above)
            assert exercise.result.success
            for entry in exercise.result.analysis.note_analyses:
                if entry.beat != 1:
                    continue
                for result in entry.rule_results:
                    if result.rule_id in watched:
                        assert result.passed, (seed, above, entry.note_index, result.message)

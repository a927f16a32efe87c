"""Tests for species dispatch and the one-call ``generate_exercise`` helper."""

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

cg = importlib.import_module("counterpoint_generator")
species = importlib.import_module("counterpoint_generator.species")

CF = ["D4", "F4", "E4", "D4", "G4", "F4", "A4", "G4", "F4", "E4", "D4"]


def test_fifth_species_is_unsupported():
    result = species.generate_counterpoint(5, CF)
    assert not result.success
    assert result.error == "5th species (free counterpoint) is not yet implemented"
    assert result.failure is species.FailureKind.UNSUPPORTED


@pytest.mark.parametrize("number", [0, 6, 7])
def test_unknown_species_raise(number):
    with pytest.raises(ValueError):
        species.generate_counterpoint(number, CF)


@pytest.mark.parametrize("number, per_note", [(1, 1), (2, 2), (3, 4), (4, 2)])
def test_dispatch_selects_generator(number, per_note):
    result = species.generate_counterpoint(number, CF, True, rng=random.Random(0))
    assert result.success
    assert len(result.notes) == per_note * len(CF)
    assert result.analysis.species == number


def test_generate_exercise_builds_cantus_firmus():
    exercise = cg.generate_exercise(2, mode="aeolian", finalis="A", seed=4)
    assert exercise.species == 2
    assert cg.is_valid_cantus_firmus(exercise.cantus_firmus)
    assert exercise.cantus_firmus[0].pitch == "A4"
    assert exercise.result.success


def test_generate_exercise_is_reproducible_with_seed():
    assert cg.generate_exercise(3, seed=12) == cg.generate_exercise(3, seed=12)


def test_generate_exercise_applies_rule_weights():
    exercise = cg.generate_exercise(1, CF, rule_weights={"noDirectFifths": 0}, seed=1)
    names = {
        r.rule_id
        for a in exercise.result.analysis.note_analyses
        for r in a.rule_results
    }
    assert cg.RuleId.NO_DIRECT_FIFTHS not in names
    with pytest.raises(ValueError):
        cg.generate_exercise(1, CF, rule_weights={"bogus": 1})


def test_generate_exercise_species_five_and_unknown():
    exercise = cg.generate_exercise(5, CF)
    assert not exercise.result.success
    with pytest.raises(ValueError):
        cg.generate_exercise(9, CF)

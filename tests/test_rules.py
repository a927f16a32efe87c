"""Tests for voice-leading predicates, rule catalogs and candidate scoring."""

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

rules = importlib.import_module("counterpoint_generator.rules")
RuleId = rules.RuleId


def test_parallel_fifths_and_octaves_detected():
    """Similar motion into the same perfect interval fails."""

    fifths = rules.check_parallel_fifths("D4", "E4", "A4", "B4")
    assert not fifths.passed
    assert fifths.message == "Parallel fifths"

    octaves = rules.check_parallel_fifths("C4", "D4", "C5", "D5")
    assert octaves.message == "Parallel octaves"

    assert rules.check_parallel_fifths("D4", "E4", "A4", "G4").passed


def test_direct_fifth_by_leap():
    check = rules.check_direct_fifths("C4", "D4", "E4", "A4")
    assert not check.passed
    assert check.message == "Direct fifth by leap"
    # Reached by step the same fifth is acceptable.
    assert rules.check_direct_fifths("C4", "D4", "G4", "A4").passed


def test_contrary_motion():
    assert rules.check_contrary_motion("C4", "D4", "G4", "F4").passed
    assert rules.check_contrary_motion("C4", "D4", "G4", "G4").message == "Oblique motion"
    assert not rules.check_contrary_motion("C4", "D4", "E4", "F4").passed


@pytest.mark.parametrize(
    "prev, curr, ok",
    [
        ("C4", "F#4", False),
        ("C4", "Bb4", False),
        ("C4", "B4", False),
        ("C4", "D5", False),
        ("C4", "A4", False),
        ("A4", "C4", False),
        ("Ab4", "C4", False),
        ("C4", "Ab4", True),
        ("C4", "C5", True),
        ("C4", "D4", True),
        ("C4", "G4", True),
    ],
)
def test_forbidden_intervals(prev, curr, ok):
    assert rules.check_forbidden_interval(prev, curr).passed is ok


def test_leap_recovery():
    """Ascending m6/octave and descending octave need a step back."""

    assert rules.check_leap_recovery(None, "C4", "C5").passed
    assert rules.check_leap_recovery("C4", "C5", "B4").passed
    failed = rules.check_leap_recovery("C4", "C5", "D5")
    assert not failed.passed
    assert failed.needs_recovery
    assert not rules.check_leap_recovery("C5", "C4", "B3").passed
    assert rules.check_leap_recovery("C4", "G4", "C5").passed


def test_exposed_tritone():
    assert not rules.check_exposed_tritone(["F4", "G4", "A4"], "B4").passed
    assert rules.check_exposed_tritone(["C4", "D4", "E4"], "F4").passed
    assert rules.check_exposed_tritone(["G4", "A4", "G4"], "C#5").passed


def test_consecutive_leaps_same_direction():
    check = rules.check_consecutive_leaps_same_direction(["C4", "E4"], "G4")
    assert not check.passed
    assert "2 consecutive" in check.message
    assert rules.check_consecutive_leaps_same_direction(["C4", "E4"], "C4").passed
    assert rules.check_consecutive_leaps_same_direction(["C4"], "E4").passed


def test_simple_melodic_and_harmonic_checks():
    assert rules.check_stepwise_motion("C4", "D4").passed
    assert not rules.check_stepwise_motion("C4", "E4").passed
    assert rules.check_consonance("C4", "E4").message == "Consonant (M3)"
    assert not rules.check_consonance("C4", "D4").passed
    assert not rules.check_repetition("C4", "C4").passed
    assert rules.check_final_cadence("D4", "D5").passed
    assert not rules.check_final_cadence("D4", "A4").passed
    assert rules.check_opening("D4", "A4").passed
    assert not rules.check_opening("D4", "F4").passed


def test_passing_tone():
    """A dissonance is valid only when approached and left by step."""

    assert rules.check_passing_tone("C4", "E4", "F4", "G4").passed
    assert rules.check_passing_tone("C4", "E4", "F4").passed
    assert not rules.check_passing_tone("C4", "C5", "F4", "G4").passed
    assert not rules.check_passing_tone("C4", "E4", "F4", "A4").passed


def test_suspension_resolution():
    assert rules.check_suspension_resolution("C4", "D4", "C4").passed
    assert not rules.check_suspension_resolution("C4", "D4", "E4").passed
    assert rules.check_suspension_resolution("C4", "E4", "G4").message == "Consonant tie (M3)"


def test_cambiata_figure():
    assert rules.check_cambiata("C3", "C4", "B3", "G3", "A3").passed
    assert rules.check_cambiata("C3", "C4", "A3", "F3", "G3").message == "Beat 2 is consonant"
    assert not rules.check_cambiata("C3", "C4", "B3", "A3", "G3").passed


def test_penultimate_approach():
    assert rules.check_penultimate_approach("D4", "B4").passed
    assert rules.check_penultimate_approach("D4", "B3").passed
    assert not rules.check_penultimate_approach("D4", "C5").passed


def test_species_catalogs():
    ids = [r.id for r in rules.get_rules_for_species(1)]
    assert len(ids) == 11
    assert ids[0] is RuleId.NO_PARALLEL_FIFTHS
    assert RuleId.ALLOW_PASSING_TONES in [r.id for r in rules.get_rules_for_species(3)]
    fourth = {r.id: r.weight for r in rules.get_rules_for_species(4)}
    assert fourth[RuleId.AVOID_REPETITIONS] == 50
    assert fourth[RuleId.SUSPENSION_RESOLUTION] == 100
    with pytest.raises(ValueError):
        rules.get_rules_for_species(5)


def test_apply_rule_weights_overrides_and_validates():
    updated = rules.apply_rule_weights(1, {"noDirectFifths": 40})
    assert rules.rule_weight(updated, RuleId.NO_DIRECT_FIFTHS) == 40
    assert rules.rule_weight(updated, RuleId.NO_PARALLEL_FIFTHS) == 100
    assert [r.id for r in updated] == [r.id for r in rules.get_rules_for_species(1)]

    with pytest.raises(ValueError):
        rules.apply_rule_weights(1, {"noSuchRule": 10})
    with pytest.raises(ValueError):
        rules.apply_rule_weights(1, {"allowCambiata": 10})
    with pytest.raises(ValueError):
        rules.apply_rule_weights(1, {"noDirectFifths": 101})
    with pytest.raises(ValueError):
        rules.apply_rule_weights(1, {"noDirectFifths": "50"})


def test_unlisted_rules_count_as_hard():
    assert rules.rule_weight((), RuleId.LEAP_RECOVERY) == rules.HARD_WEIGHT


def test_hard_rules_filter_and_soft_rules_score():
    """Weight-100 failures filter; soft failures subtract damped weights."""

    catalog = rules.get_rules_for_species(1)
    parallel = rules.Transition("E4", "B4", "D4", "A4")
    assert rules.violates_hard_rules(parallel, catalog, [RuleId.NO_PARALLEL_FIFTHS])

    clean = rules.Transition("E4", "G4", "D4", "A4")
    ids = [RuleId.PREFER_CONTRARY_MOTION, RuleId.PREFER_STEPWISE_MOTION, RuleId.NO_DIRECT_FIFTHS]
    assert rules.score_candidate(clean, catalog, ids) == 100.0

    similar_leap = rules.Transition("E4", "C5", "D4", "A4")
    # contrary 60 * 0.5 + stepwise 50 * 0.3
    assert rules.score_candidate(similar_leap, catalog, ids) == pytest.approx(55.0)


def test_disabled_rules_are_not_scored():
    catalog = rules.apply_rule_weights(1, {"preferContraryMotion": 0})
    similar = rules.Transition("E4", "F4", "D4", "E4")
    assert rules.score_candidate(similar, catalog, [RuleId.PREFER_CONTRARY_MOTION]) == 100.0


def test_order_candidates_sorts_by_score():
    ordered = rules.order_candidates([("a", 10.0), ("b", 20.0), ("c", 10.0)], random.Random(0))
    assert ordered[0] == "b"
    assert set(ordered[1:]) == {"a", "c"}


def test_evaluate_rule_skips_first_note():
    assert rules.evaluate_rule(RuleId.NO_PARALLEL_FIFTHS, rules.Transition("D4", "D5")) is None
    assert rules.evaluate_rule(RuleId.BEAT_THREE_CONSONANCE, rules.Transition("D4", "D5")) is None

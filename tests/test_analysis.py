"""Tests for the rule-by-rule analysis of finished counterpoint."""

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

analysis = importlib.import_module("counterpoint_generator.analysis")
rules = importlib.import_module("counterpoint_generator.rules")
species = importlib.import_module("counterpoint_generator.species")

RuleId = rules.RuleId
FUX_DORIAN = ["D4", "F4", "E4", "D4", "G4", "F4", "A4", "G4", "F4", "E4", "D4"]


def _ids(note_analysis):
    return [r.rule_id for r in note_analysis.rule_results]


def test_first_species_reports_one_entry_per_note():
    cf = ["D4", "F4", "E4", "D4"]
    cp = ["D5", "C5", "C5", "D5"]
    result = analysis.analyze_first_species(cf, cp)

    assert [a.note_index for a in result.note_analyses] == [0, 1, 2, 3]
    first = result.note_analyses[0]
    assert first.interval == "P8"
    assert RuleId.FINAL_CADENCE in _ids(first)
    # Motion rules need a previous note.
    assert RuleId.NO_PARALLEL_FIFTHS not in _ids(first)
    assert RuleId.NO_PARALLEL_FIFTHS in _ids(result.note_analyses[1])


def test_violations_are_counted_in_summary():
    result = analysis.analyze_first_species(["D4", "E4"], ["A4", "B4"])
    failed = [r.rule_id for a in result.note_analyses for r in a.rule_results if not r.passed]

    assert RuleId.NO_PARALLEL_FIFTHS in failed
    assert RuleId.FINAL_CADENCE in failed
    assert result.violations == len(failed)
    assert result.summary == f"{len(failed)} rule violations (1st species)"


def test_summary_wording():
    assert analysis.GenerationAnalysis(1).summary == "All rules followed (1st species)"
    single = analysis.GenerationAnalysis(
        2,
        (
            analysis.NoteAnalysis(
                0,
                "D4",
                "C5",
                "m7",
                1,
                (analysis.RuleResult(RuleId.DOWNBEAT_CONSONANCE, "Downbeat Consonance", False, "Dissonant (m7)"),),
            ),
        ),
    )
    assert single.summary == "1 rule violation (2nd species)"


def test_disabled_rules_are_not_reported():
    catalog = rules.apply_rule_weights(1, {"preferStepwiseMotion": 0})
    result = analysis.analyze_first_species(["D4", "F4", "E4", "D4"], ["D5", "A4", "C5", "D5"], catalog)
    for note in result.note_analyses:
        assert RuleId.PREFER_STEPWISE_MOTION not in _ids(note)


def test_rule_names_follow_configuration():
    result = analysis.analyze_first_species(["D4", "E4"], ["D5", "C5"])
    names = {r.rule_id: r.rule_name for r in result.note_analyses[1].rule_results}
    assert names[RuleId.NO_PARALLEL_FIFTHS] == "No Parallel 5ths/8ves"


@pytest.mark.parametrize("number", [1, 2, 3, 4])
def test_analysis_is_idempotent(number):
    """Analysing the same generated line twice yields equal reports."""

    result = species.generate_counterpoint(number, FUX_DORIAN, True, rng=random.Random(8))
    first = analysis.analyze_counterpoint(number, FUX_DORIAN, result.notes)
    second = analysis.analyze_counterpoint(number, FUX_DORIAN, result.notes)
    assert first == second == result.analysis
    assert first.species == number
    assert len(first.note_analyses) == len(result.notes)


def test_second_species_beats():
    cf = ["D4", "E4", "D4"]
    cp = ["A4", "G4", "G4", "C5", "D5", "D5"]
    result = analysis.analyze_second_species(cf, cp)
    assert [a.beat for a in result.note_analyses] == [1, 2, 1, 2, 1, 2]
    upbeat = result.note_analyses[1]
    assert RuleId.ALLOW_PASSING_TONES in _ids(upbeat)


def test_fourth_species_first_downbeat_has_no_checks():
    cf = ["D4", "E4", "D4"]
    cp = ["A4", "A4", "A4", "G4", "G4", "D5"]
    result = analysis.analyze_fourth_species(cf, cp)
    assert result.note_analyses[0].rule_results == ()
    tied = result.note_analyses[2]
    assert _ids(tied) == [RuleId.SUSPENSION_RESOLUTION]


def test_third_species_penultimate_check():
    cf = ["D4", "E4", "D4"]
    cp = ["D5", "C5", "B4", "A4", "B4", "A4", "B4", "C#5", "D5", "D5", "D5", "D5"]
    result = analysis.analyze_third_species(cf, cp)
    penultimate = result.note_analyses[4]
    assert penultimate.beat == 1
    assert RuleId.PENULTIMATE_CADENCE in _ids(penultimate)
    # Held notes of the final measure carry no checks.
    assert all(a.rule_results == () for a in result.note_analyses[9:])


def test_unknown_species_rejected():
    with pytest.raises(ValueError):
        analysis.analyze_counterpoint(5, ["D4"], ["D5"])

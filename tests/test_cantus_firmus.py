"""Tests for cantus firmus synthesis and validation."""

import importlib
import random
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

cfg = importlib.import_module("counterpoint_generator.cantus_firmus")
modes = importlib.import_module("counterpoint_generator.modes")


def test_generated_melodies_are_valid():
    """Fifty seeded Dorian runs all satisfy the cantus firmus invariants."""

    for seed in range(50):
        melody = cfg.generate_cantus_firmus(mode="dorian", finalis="D", rng=random.Random(seed))
        pitches = [n.pitch for n in melody]
        assert cfg.is_valid_cantus_firmus(melody), pitches
        assert pitches[0] == pitches[-1] == "D4"
        assert cfg.MIN_MEASURES <= len(melody) <= cfg.MAX_MEASURES
        assert all(n.duration.value == "w" for n in melody)


@pytest.mark.parametrize("mode", list(modes.Mode))
def test_every_mode_produces_in_mode_melodies(mode):
    melody = cfg.generate_cantus_firmus(10, mode, "G", rng=random.Random(11))
    allowed = modes.scale_pitches("G", mode, 0, 127)
    assert cfg.is_valid_cantus_firmus(melody)
    assert all(n.number in allowed for n in melody)


@pytest.mark.parametrize("measures", [7, 15, 0])
def test_invalid_measures_raise(measures):
    with pytest.raises(ValueError):
        cfg.generate_cantus_firmus(measures)


def test_skeleton_is_valid_for_all_modes():
    """The fallback melody must itself satisfy the invariants."""

    for mode in modes.Mode:
        tonic = modes.finalis_number("D")
        skeleton = [tonic + modes.MODE_INTERVALS[mode][d] for d in cfg.SKELETON_DEGREES]
        assert cfg.is_valid_cantus_firmus(skeleton)


def test_fallback_used_when_search_fails(monkeypatch, caplog):
    monkeypatch.setattr(cfg, "_attempt", lambda *a, **k: None)
    melody = cfg.generate_cantus_firmus(8, "dorian", "D", rng=random.Random(0))
    assert [n.pitch for n in melody] == [
        "D4", "E4", "F4", "E4", "F4", "G4", "A4", "G4", "F4", "E4", "D4",
    ]
    assert "skeleton" in caplog.text


def test_is_valid_cantus_firmus_rejects_bad_lines():
    good = ["D4", "F4", "E4", "D4", "G4", "F4", "A4", "G4", "E4", "D4"]
    assert cfg.is_valid_cantus_firmus(good)
    # Too short.
    assert not cfg.is_valid_cantus_firmus(["D4", "E4", "F4", "E4", "D4"])
    # Ends away from the final.
    assert not cfg.is_valid_cantus_firmus(good[:-1] + ["E4"])
    # Climax repeated.
    assert not cfg.is_valid_cantus_firmus(["D4", "F4", "A4", "G4", "A4", "G4", "F4", "E4", "D4"])
    # Climax too early.
    assert not cfg.is_valid_cantus_firmus(["D4", "A4", "G4", "F4", "E4", "F4", "E4", "F4", "E4", "D4"])
    # Tritone leap.
    assert not cfg.is_valid_cantus_firmus(["D4", "F4", "E4", "F4", "B4", "C5", "A4", "F4", "E4", "D4"])


def test_climax_index_and_tritone_outline():
    assert cfg.climax_index_for(10) == 7
    assert cfg.climax_index_for(8) == 5
    assert cfg.outlines_tritone([65, 67], 71)
    assert not cfg.outlines_tritone([62], 68)
    assert not cfg.outlines_tritone([62, 64], 65)

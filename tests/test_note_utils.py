"""Tests for pitch parsing and interval classification helpers."""

import importlib
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

nu = importlib.import_module("counterpoint_generator.note_utils")


def test_parse_pitch_uses_midi_numbering():
    """Middle C is 60 and accidentals/case are handled."""

    assert nu.parse_pitch("C4") == 60
    assert nu.parse_pitch("Bb3") == 58
    assert nu.parse_pitch("c#4") == 61
    assert nu.parse_pitch("B#3") == 60


@pytest.mark.parametrize("bad", ["H2", "C", "4C", "", "C##4"])
def test_parse_pitch_rejects_malformed_input(bad):
    with pytest.raises(ValueError):
        nu.parse_pitch(bad)


def test_pitch_to_number_falls_back_to_middle_c(caplog):
    """Malformed pitches map to the default and log a warning."""

    with caplog.at_level(logging.WARNING):
        assert nu.pitch_to_number("Q9") == nu.DEFAULT_PITCH
    assert "Malformed pitch" in caplog.text


def test_number_to_pitch_spells_sharps():
    assert nu.number_to_pitch(61) == "C#4"
    assert nu.number_to_pitch(62) == "D4"
    assert nu.number_to_pitch(nu.parse_pitch("Eb4")) == "D#4"


def test_natural_notes_round_trip():
    """Numbers spelled without accidentals convert back unchanged."""

    for number in range(36, 97):
        pitch = nu.number_to_pitch(number)
        if "#" not in pitch:
            assert nu.pitch_to_number(pitch) == number


def test_interval_classification():
    """Consonance is judged modulo the octave."""

    assert nu.get_interval("D4", "A4") == 7
    assert nu.get_interval("A4", "D4") == 7
    assert nu.is_consonant(16)
    assert nu.is_perfect_consonance(19)
    assert not nu.is_consonant(5)
    assert nu.is_dissonant(6)
    assert nu.interval_name(9) == "M6"
    assert nu.interval_name(19) == "19st"


def test_note_accepts_duration_strings():
    note = nu.Note("D4", "h")
    assert note.duration is nu.Duration.HALF
    assert note.number == 62
    assert nu.Duration.DOTTED_HALF.is_dotted
    assert not nu.Duration.WHOLE.is_dotted


def test_direction():
    assert nu.direction(60, 62) == 1
    assert nu.direction(62, 60) == -1
    assert nu.direction(60, 60) == 0

"""Pitch and interval helpers shared by every generator.

This module converts between note names such as ``"C#4"`` and absolute
semitone numbers (MIDI numbering, ``C4 == 60``) and classifies the
intervals those numbers form. All arithmetic in the engine is done on the
integer form; note names only appear at the edges where notes are created
or reported.

Example
-------
>>> from counterpoint_generator.note_utils import pitch_to_number, interval_name
>>> pitch_to_number("D4")
62
>>> interval_name(get_interval("D4", "A4"))
'P5'

Design Notes
------------
- :func:`pitch_to_number` fails soft. Malformed input resolves to
  :data:`DEFAULT_PITCH` (middle C) and a warning is logged. Callers that need
  to know about bad input use :func:`parse_pitch`, which raises
  ``ValueError`` instead.
- :func:`number_to_pitch` always spells accidentals as sharps, so only
  natural notes are guaranteed to round-trip to their original spelling.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from typing import Dict, List

__all__ = [
    "NOTE_TO_SEMITONE",
    "NOTES",
    "DEFAULT_PITCH",
    "PERFECT_CONSONANCES",
    "IMPERFECT_CONSONANCES",
    "Duration",
    "Note",
    "parse_pitch",
    "pitch_to_number",
    "number_to_pitch",
    "get_interval",
    "is_consonant",
    "is_perfect_consonance",
    "is_dissonant",
    "interval_name",
    "direction",
]

# NOTE_TO_SEMITONE maps both sharp and flat spellings to the correct
# semitone offset within an octave so enharmonic input (``Db`` and ``C#``)
# resolves to the same number.
NOTE_TO_SEMITONE: Dict[str, int] = {
    "C": 0,
    "B#": 0,
    "C#": 1,
    "Db": 1,
    "D": 2,
    "D#": 3,
    "Eb": 3,
    "E": 4,
    "Fb": 4,
    "E#": 5,
    "F": 5,
    "F#": 6,
    "Gb": 6,
    "G": 7,
    "G#": 8,
    "Ab": 8,
    "A": 9,
    "A#": 10,
    "Bb": 10,
    "B": 11,
    "Cb": 11,
}

# Pitch class names used when spelling numbers back into note names.
NOTES: List[str] = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]

# Middle C. Used whenever a pitch string cannot be parsed.
DEFAULT_PITCH = 60

# Interval classes measured modulo the octave.
PERFECT_CONSONANCES = frozenset({0, 7})
IMPERFECT_CONSONANCES = frozenset({3, 4, 8, 9})

_INTERVAL_NAMES: Dict[int, str] = {
    0: "P1",
    1: "m2",
    2: "M2",
    3: "m3",
    4: "M3",
    5: "P4",
    6: "TT",
    7: "P5",
    8: "m6",
    9: "M6",
    10: "m7",
    11: "M7",
    12: "P8",
}

_PITCH_RE = re.compile(r"([A-Ga-g])([#b]?)(-?\d+)")


class Duration(str, Enum):
    """Closed set of symbolic note values."""

    WHOLE = "w"
    HALF = "h"
    QUARTER = "q"
    EIGHTH = "8"
    SIXTEENTH = "16"
    DOTTED_HALF = "hd"
    DOTTED_QUARTER = "qd"

    @property
    def is_dotted(self) -> bool:
        return self.value.endswith("d")


@dataclass(frozen=True)
class Note:
    """Immutable pairing of a pitch name and a :class:`Duration`."""

    pitch: str
    duration: Duration = Duration.WHOLE

    def __post_init__(self) -> None:
        # Accept plain strings such as ``"h"`` for convenience while still
        # storing the enum member.
        if not isinstance(self.duration, Duration):
            object.__setattr__(self, "duration", Duration(self.duration))

    @property
    def number(self) -> int:
        """Semitone number of :attr:`pitch`."""

        return pitch_to_number(self.pitch)


@lru_cache(maxsize=None)
def parse_pitch(pitch: str) -> int:
    """Convert ``pitch`` into a semitone number, raising on bad input.

    Parameters
    ----------
    pitch:
        Letter name, optional ``#``/``b`` accidental and octave, e.g.
        ``"F#3"`` or ``"Bb4"``. The letter is case-insensitive.

    Returns
    -------
    int
        Semitone number using MIDI numbering (``C4 == 60``).

    Raises
    ------
    ValueError
        If ``pitch`` is not properly formatted.
    """

    match = _PITCH_RE.fullmatch(pitch.strip()) if isinstance(pitch, str) else None
    if not match:
        raise ValueError(f"Invalid pitch format: {pitch!r}")

    letter, accidental, octave_str = match.groups()
    name = letter.upper() + accidental
    # MIDI octave numbers are offset by one relative to scientific pitch
    # notation, hence the ``+ 1``.
    return NOTE_TO_SEMITONE[name] + (int(octave_str) + 1) * 12


def pitch_to_number(pitch: str) -> int:
    """Return the semitone number for ``pitch`` or :data:`DEFAULT_PITCH`.

    Unlike :func:`parse_pitch` this never raises. A malformed pitch string
    is logged and mapped to middle C so a single bad note cannot abort a
    generation run; the cost is that caller mistakes may go unnoticed.
    """

    try:
        return parse_pitch(pitch)
    except ValueError:
        logging.warning("Malformed pitch %r; using default %d", pitch, DEFAULT_PITCH)
        return DEFAULT_PITCH


def number_to_pitch(number: int) -> str:
    """Spell ``number`` as a note name using sharps for accidentals.

    >>> number_to_pitch(61)
    'C#4'
    """

    octave = number // 12 - 1
    return f"{NOTES[number % 12]}{octave}"


def get_interval(pitch1: str, pitch2: str) -> int:
    """Return the unsigned distance between two pitches in semitones."""

    return abs(pitch_to_number(pitch1) - pitch_to_number(pitch2))


def is_consonant(interval: int) -> bool:
    """Return ``True`` for perfect or imperfect consonances (any octave)."""

    normalized = abs(interval) % 12
    return normalized in PERFECT_CONSONANCES or normalized in IMPERFECT_CONSONANCES


def is_perfect_consonance(interval: int) -> bool:
    """Return ``True`` for unisons, fifths and octaves (any octave)."""

    return abs(interval) % 12 in PERFECT_CONSONANCES


def is_dissonant(interval: int) -> bool:
    return not is_consonant(interval)


def interval_name(interval: int) -> str:
    """Return a short label such as ``"m3"`` or ``"P8"``.

    Intervals up to an octave use their conventional names. Anything larger
    is reported as a raw semitone count, e.g. ``"19st"``.
    """

    interval = abs(interval)
    if interval in _INTERVAL_NAMES:
        return _INTERVAL_NAMES[interval]
    return f"{interval}st"


def direction(start: int, end: int) -> int:
    """Return ``1`` for upward, ``-1`` for downward and ``0`` for repeated notes."""

    if end > start:
        return 1
    if end < start:
        return -1
    return 0

"""Utility helpers shared across Counterpoint Generator components.

This module collects lightweight functions that do not fit in more specific
modules: time signature parsing, duration arithmetic, grouping notes into
measures and validating a user supplied cantus firmus. The CLI and the
generators reuse the same validation logic through these helpers.

Usage Example
-------------
>>> from counterpoint_generator.utils import validate_time_signature
>>> validate_time_signature("C|")
(2, 2)
>>> duration_to_beats("hd", 4)
3.0
"""

from __future__ import annotations

from typing import Dict, List, Sequence, Tuple, Union

from .note_utils import Duration, Note, parse_pitch

__all__ = [
    "validate_time_signature",
    "duration_to_beats",
    "organize_notes_into_measures",
    "is_note_in_range",
    "validate_cantus_firmus_notes",
    "INPUT_MIN_PITCH",
    "INPUT_MAX_PITCH",
]

# Range accepted for a hand-entered cantus firmus.
INPUT_MIN_PITCH = "E2"
INPUT_MAX_PITCH = "F#5"

# Common-time shorthands used in mensural notation.
_TIME_SYMBOLS: Dict[str, Tuple[int, int]] = {"C": (4, 4), "C|": (2, 2)}

# Length of each undotted value measured in whole notes.
_WHOLE_FRACTIONS: Dict[Duration, float] = {
    Duration.WHOLE: 1.0,
    Duration.HALF: 0.5,
    Duration.QUARTER: 0.25,
    Duration.EIGHTH: 0.125,
    Duration.SIXTEENTH: 0.0625,
}


def validate_time_signature(ts: str) -> Tuple[int, int]:
    """Parse and validate a time signature string.

    Parameters
    ----------
    ts:
        Time signature in ``"NUM/DEN"`` form, or one of the symbols ``"C"``
        (common time, 4/4) and ``"C|"`` (cut time, 2/2). Whitespace around
        the separator is ignored.

    Returns
    -------
    Tuple[int, int]
        ``(numerator, denominator)`` when ``ts`` is valid.

    Raises
    ------
    ValueError
        If ``ts`` is malformed or uses an unsupported denominator.
    """

    symbol = ts.strip()
    if symbol in _TIME_SYMBOLS:
        return _TIME_SYMBOLS[symbol]

    parts = symbol.split("/")
    if len(parts) != 2:
        raise ValueError(
            "Time signature must be 'C', 'C|' or in the form 'numerator/denominator'."
        )

    try:
        numerator = int(parts[0])
        denominator = int(parts[1])
    except ValueError as exc:  # non-integer values
        raise ValueError(
            "Time signature must contain integer numerator and denominator."
        ) from exc

    valid_denominators = {1, 2, 4, 8, 16}
    if numerator <= 0 or denominator not in valid_denominators:
        raise ValueError(
            "Time signature numerator must be > 0 and denominator one of 1, 2, 4, 8 or 16."
        )

    return numerator, denominator


def duration_to_beats(duration: Union[Duration, str], beat_unit: int = 4) -> float:
    """Return how many ``beat_unit`` beats ``duration`` lasts.

    Dotted values last one and a half times their base value.

    >>> duration_to_beats("w", 2)
    2.0
    >>> duration_to_beats("qd", 8)
    3.0
    """

    value = Duration(duration)
    base = Duration(value.value.rstrip("d")) if value.is_dotted else value
    beats = _WHOLE_FRACTIONS[base] * beat_unit
    return beats * 1.5 if value.is_dotted else beats


def organize_notes_into_measures(
    notes: Sequence[Note],
    time_signature: str = "C",
) -> List[List[Note]]:
    """Group ``notes`` into measures according to ``time_signature``.

    A note that would overflow the current measure starts a new one; notes
    are never split across the barline.
    """

    beats_per_measure, beat_unit = validate_time_signature(time_signature)
    measures: List[List[Note]] = []
    current: List[Note] = []
    filled = 0.0

    for note in notes:
        beats = duration_to_beats(note.duration, beat_unit)
        if current and filled + beats > beats_per_measure:
            measures.append(current)
            current, filled = [], 0.0
        current.append(note)
        filled += beats

    if current:
        measures.append(current)
    return measures


def is_note_in_range(
    pitch: str,
    min_pitch: str = INPUT_MIN_PITCH,
    max_pitch: str = INPUT_MAX_PITCH,
) -> bool:
    """Return ``True`` if ``pitch`` lies within ``min_pitch``..``max_pitch``.

    Raises
    ------
    ValueError
        If any argument is not a valid pitch name.
    """

    return parse_pitch(min_pitch) <= parse_pitch(pitch) <= parse_pitch(max_pitch)


def validate_cantus_firmus_notes(notes: Sequence[Union[Note, str]]) -> Tuple[bool, List[str]]:
    """Check a user entered cantus firmus before generation.

    Returns ``(is_valid, errors)``; ``errors`` lists every problem found so
    the CLI can report them all at once.
    """

    errors: List[str] = []
    pitches = [n.pitch if isinstance(n, Note) else str(n) for n in notes]

    if not pitches:
        errors.append("Cantus firmus must contain at least one note.")

    for position, pitch in enumerate(pitches, start=1):
        try:
            in_range = is_note_in_range(pitch)
        except ValueError:
            errors.append(f"Note {pitch!r} at position {position} is not a valid pitch.")
            continue
        if not in_range:
            errors.append(
                f"Note {pitch} at position {position} is outside the valid range "
                f"({INPUT_MIN_PITCH}-{INPUT_MAX_PITCH})."
            )

    if len(pitches) > 1 and pitches[0] != pitches[-1]:
        errors.append("Cantus firmus should begin and end on the same note.")

    return not errors, errors

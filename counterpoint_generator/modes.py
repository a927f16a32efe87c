"""Church modes and the pitch collections they produce.

Each mode is a fixed seven-entry pattern of semitone offsets from its final.
:func:`scale_pitches` expands that pattern across several octaves around the
final and keeps only the pitches inside a requested range, which is how the
generators confine candidate notes to the chosen mode.

Example
-------
>>> sorted(scale_pitches("D", Mode.DORIAN, 60, 72))
[60, 62, 64, 65, 67, 69, 71, 72]
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Dict, FrozenSet, Optional, Tuple, Union

from .note_utils import NOTE_TO_SEMITONE

__all__ = [
    "Mode",
    "MODE_INTERVALS",
    "MODE_NAMES",
    "FINALIS_OPTIONS",
    "DEFAULT_MODE",
    "DEFAULT_FINALIS",
    "canonical_mode",
    "canonical_finalis",
    "finalis_number",
    "scale_pitches",
    "mode_pitch_set",
]


class Mode(str, Enum):
    IONIAN = "ionian"
    DORIAN = "dorian"
    PHRYGIAN = "phrygian"
    LYDIAN = "lydian"
    MIXOLYDIAN = "mixolydian"
    AEOLIAN = "aeolian"


# Semitone offsets from the final for each mode.
MODE_INTERVALS: Dict[Mode, Tuple[int, ...]] = {
    Mode.IONIAN: (0, 2, 4, 5, 7, 9, 11),
    Mode.DORIAN: (0, 2, 3, 5, 7, 9, 10),
    Mode.PHRYGIAN: (0, 1, 3, 5, 7, 8, 10),
    Mode.LYDIAN: (0, 2, 4, 6, 7, 9, 11),
    Mode.MIXOLYDIAN: (0, 2, 4, 5, 7, 9, 10),
    Mode.AEOLIAN: (0, 2, 3, 5, 7, 8, 10),
}

MODE_NAMES: Dict[Mode, str] = {
    Mode.IONIAN: "Ionian (Major)",
    Mode.DORIAN: "Dorian",
    Mode.PHRYGIAN: "Phrygian",
    Mode.LYDIAN: "Lydian",
    Mode.MIXOLYDIAN: "Mixolydian",
    Mode.AEOLIAN: "Aeolian (Minor)",
}

# The modal final is always one of the seven natural letter names.
FINALIS_OPTIONS: Tuple[str, ...] = ("C", "D", "E", "F", "G", "A", "B")

DEFAULT_MODE = Mode.DORIAN
DEFAULT_FINALIS = "D"

# Number of octaves scanned on either side of the final's middle octave.
_OCTAVE_SPAN = 3


def canonical_mode(mode: Union[Mode, str]) -> Mode:
    """Return the :class:`Mode` for ``mode`` (case-insensitive).

    Raises
    ------
    ValueError
        If ``mode`` does not name one of the six church modes.
    """

    if isinstance(mode, Mode):
        return mode
    try:
        return Mode(str(mode).strip().lower())
    except ValueError:
        raise ValueError(f"Unknown mode: {mode}") from None


def canonical_finalis(finalis: str) -> str:
    """Return ``finalis`` as an upper-case natural letter name.

    Raises
    ------
    ValueError
        If ``finalis`` is not one of :data:`FINALIS_OPTIONS`.
    """

    name = str(finalis).strip().upper()
    if name not in FINALIS_OPTIONS:
        raise ValueError(f"Unknown finalis: {finalis}")
    return name


def finalis_number(finalis: str, octave: int = 4) -> int:
    """Return the semitone number of ``finalis`` in ``octave``."""

    return NOTE_TO_SEMITONE[canonical_finalis(finalis)] + (octave + 1) * 12


@lru_cache(maxsize=None)
def scale_pitches(
    finalis: str,
    mode: Union[Mode, str],
    min_bound: int,
    max_bound: int,
) -> FrozenSet[int]:
    """Return every pitch of ``mode`` on ``finalis`` within the bounds.

    The seven-note pattern is laid out across three octaves either side of
    the final in octave 4; pitches outside ``min_bound``..``max_bound``
    (inclusive) are dropped.
    """

    root = finalis_number(finalis)
    intervals = MODE_INTERVALS[canonical_mode(mode)]
    return frozenset(
        root + interval + offset * 12
        for offset in range(-_OCTAVE_SPAN, _OCTAVE_SPAN + 1)
        for interval in intervals
        if min_bound <= root + interval + offset * 12 <= max_bound
    )


def mode_pitch_set(
    mode: Optional[Union[Mode, str]],
    finalis: Optional[str],
    min_bound: int,
    max_bound: int,
) -> Optional[FrozenSet[int]]:
    """Return the mode's pitch set, or ``None`` when no mode is selected.

    Mode filtering is optional: both ``mode`` and ``finalis`` must be given
    for the candidate pool to be restricted.
    """

    if not mode or not finalis:
        return None
    return scale_pitches(canonical_finalis(finalis), canonical_mode(mode), min_bound, max_bound)

"""Cantus firmus synthesis.

:func:`generate_cantus_firmus` writes a modal melody of 8-14 whole notes that
starts and ends on the final, rises to a single climax roughly 70% of the way
through and avoids forbidden melodic intervals. Each attempt builds the line
note by note with a small depth-first search; up to
:data:`MAX_CF_ATTEMPTS` attempts are made before a fixed scale-degree
skeleton is returned instead, so the function always yields a valid line.

Example
-------
>>> import random
>>> cf = generate_cantus_firmus(10, "dorian", "D", rng=random.Random(3))
>>> cf[0].pitch == cf[-1].pitch == "D4"
True
"""

from __future__ import annotations

import logging
import random
from typing import List, Optional, Sequence, Tuple, Union

from .modes import (
    DEFAULT_FINALIS,
    DEFAULT_MODE,
    MODE_INTERVALS,
    Mode,
    canonical_finalis,
    canonical_mode,
    finalis_number,
    scale_pitches,
)
from .note_utils import Duration, Note, direction, number_to_pitch
from .rules import check_forbidden_interval, check_leap_recovery

__all__ = [
    "MIN_MEASURES",
    "MAX_MEASURES",
    "MAX_CF_ATTEMPTS",
    "SKELETON_DEGREES",
    "generate_cantus_firmus",
    "is_valid_cantus_firmus",
    "outlines_tritone",
    "climax_index_for",
]

MIN_MEASURES = 8
MAX_MEASURES = 14
MAX_CF_ATTEMPTS = 100

# Node budget for the depth-first search inside a single attempt.
_ATTEMPT_STEPS = 2000

# Range relative to the final: a fourth below up to an octave above.
_LOW_OFFSET = -5
_HIGH_OFFSET = 12

# Climax must lie more than a major third and at most a major sixth above
# the final.
_CLIMAX_MIN_OFFSET = 4
_CLIMAX_MAX_OFFSET = 9

# Scale degrees (0 = final) of the fallback melody: 1-2-3-2-3-4-5-4-3-2-1.
SKELETON_DEGREES: Tuple[int, ...] = (0, 1, 2, 1, 2, 3, 4, 3, 2, 1, 0)


def climax_index_for(length: int) -> int:
    """Return the climax position: about 70% through, never in the last two notes."""

    return min(int(length * 0.7), length - 3)


def _pitch(note: Union[Note, str, int]) -> int:
    if isinstance(note, int):
        return note
    if isinstance(note, Note):
        return note.number
    return Note(note).number


def outlines_tritone(recent: Sequence[int], new_pitch: int) -> bool:
    """Return ``True`` if any two of the last three notes plus ``new_pitch`` form a tritone."""

    if len(recent) < 2:
        return False
    window = list(recent[-3:]) + [new_pitch]
    return any(
        abs(window[i] - window[j]) == 6
        for i in range(len(window) - 1)
        for j in range(i + 1, len(window))
    )


def _forbidden(a: int, b: int) -> bool:
    return not check_forbidden_interval(number_to_pitch(a), number_to_pitch(b)).passed


def is_valid_cantus_firmus(notes: Sequence[Union[Note, str, int]]) -> bool:
    """Return ``True`` if ``notes`` satisfies the cantus firmus invariants.

    The melody must have at least :data:`MIN_MEASURES` notes, begin and end
    on the same pitch, contain exactly one highest note placed after the
    midpoint and at least two notes before the end, and contain no forbidden
    melodic interval between neighbours.
    """

    pitches = [_pitch(n) for n in notes]
    if len(pitches) < MIN_MEASURES:
        return False
    if pitches[0] != pitches[-1]:
        return False

    highest = max(pitches)
    if pitches.count(highest) > 1:
        return False
    climax = pitches.index(highest)
    if climax < len(pitches) / 2 or climax >= len(pitches) - 2:
        return False

    return not any(_forbidden(a, b) for a, b in zip(pitches, pitches[1:]))


def _same_direction_run(melody: Sequence[int]) -> int:
    """Return how many moves before the last one continue in its direction."""

    if len(melody) < 2:
        return 0
    last_dir = direction(melody[-2], melody[-1])
    count = 0
    for i in range(len(melody) - 2, 0, -1):
        if last_dir != 0 and direction(melody[i - 1], melody[i]) == last_dir:
            count += 1
        else:
            break
    return count


def _valid_next(
    melody: Sequence[int],
    scale: Sequence[int],
    climax: int,
    climax_index: int,
    index: int,
    length: int,
    tonic: int,
) -> List[int]:
    last = melody[-1]
    prev_prev = number_to_pitch(melody[-2]) if len(melody) >= 2 else None
    result = []
    for pitch in scale:
        if pitch == last:
            continue
        if _forbidden(last, pitch):
            continue
        if outlines_tritone(melody, pitch):
            continue
        if not check_leap_recovery(prev_prev, number_to_pitch(last), number_to_pitch(pitch)).passed:
            continue
        if index == climax_index:
            if pitch != climax:
                continue
        elif pitch >= climax:
            continue
        if index == length - 2 and abs(pitch - tonic) not in (1, 2):
            continue
        result.append(pitch)
    return result


def _score(
    pitch: int,
    melody: Sequence[int],
    index: int,
    climax_index: int,
    rng: random.Random,
) -> float:
    last = melody[-1]
    interval = abs(pitch - last)
    move = direction(last, pitch)
    score = 100.0

    if interval <= 2:
        score += 30
    elif interval <= 4:
        score += 15
    elif interval <= 7:
        score += 5

    if len(melody) >= 2:
        prev_dir = direction(melody[-2], last)
        if move != prev_dir and move != 0:
            score += 20 if _same_direction_run(melody) >= 2 else 10

    if index < climax_index and move == 1:
        score += 5
    elif index > climax_index and move == -1:
        score += 5

    return score + rng.random() * 20


def _attempt(
    length: int,
    scale: Sequence[int],
    climax: int,
    climax_index: int,
    tonic: int,
    rng: random.Random,
) -> Optional[List[int]]:
    melody = [tonic]
    steps = 0

    def search(index: int) -> bool:
        nonlocal steps
        if index == length - 1:
            # The final note is fixed; the penultimate filter guarantees a step.
            melody.append(tonic)
            return True
        steps += 1
        if steps > _ATTEMPT_STEPS:
            return False

        candidates = _valid_next(melody, scale, climax, climax_index, index, length, tonic)
        scored = sorted(
            candidates,
            key=lambda p: _score(p, melody, index, climax_index, rng),
            reverse=True,
        )
        # Sample the first choice from the top three, keep the rest for backtracking.
        top = scored[:3]
        rng.shuffle(top)
        for pitch in top + scored[3:]:
            melody.append(pitch)
            if search(index + 1):
                return True
            melody.pop()
        return False

    return melody if search(1) else None


def _skeleton(tonic: int, mode: Mode) -> List[int]:
    intervals = MODE_INTERVALS[mode]
    return [tonic + intervals[degree] for degree in SKELETON_DEGREES]


def _to_notes(pitches: Sequence[int]) -> Tuple[Note, ...]:
    return tuple(Note(number_to_pitch(p), Duration.WHOLE) for p in pitches)


def generate_cantus_firmus(
    measures: Optional[int] = None,
    mode: Union[Mode, str] = DEFAULT_MODE,
    finalis: str = DEFAULT_FINALIS,
    *,
    rng: Optional[random.Random] = None,
) -> Tuple[Note, ...]:
    """Return a new cantus firmus as a tuple of whole notes.

    Parameters
    ----------
    measures:
        Number of notes, ``8``-``14``. A random length in that range is
        chosen when ``None``.
    mode:
        Church mode of the melody. Defaults to Dorian.
    finalis:
        Natural letter name of the final, placed in octave 4.
    rng:
        Optional random source. Defaults to the global :mod:`random` module.

    Returns
    -------
    Tuple[Note, ...]
        A melody satisfying :func:`is_valid_cantus_firmus`. If no attempt
        succeeds the 11-note scale-degree skeleton is returned regardless of
        ``measures``.

    Raises
    ------
    ValueError
        If ``measures`` is outside ``8``-``14`` or the mode/finalis is unknown.
    """

    rng = rng or random
    mode = canonical_mode(mode)
    finalis = canonical_finalis(finalis)
    if measures is not None and not MIN_MEASURES <= measures <= MAX_MEASURES:
        raise ValueError(f"measures must be between {MIN_MEASURES} and {MAX_MEASURES}")

    length = measures if measures is not None else rng.randint(MIN_MEASURES, MAX_MEASURES)
    tonic = finalis_number(finalis)
    scale = sorted(scale_pitches(finalis, mode, tonic + _LOW_OFFSET, tonic + _HIGH_OFFSET))
    climax_index = climax_index_for(length)
    climax_choices = [
        p for p in scale if tonic + _CLIMAX_MIN_OFFSET < p <= tonic + _CLIMAX_MAX_OFFSET
    ]

    for attempt in range(MAX_CF_ATTEMPTS):
        climax = rng.choice(climax_choices)
        melody = _attempt(length, scale, climax, climax_index, tonic, rng)
        if melody is not None and is_valid_cantus_firmus(melody):
            logging.debug("Cantus firmus found on attempt %d", attempt + 1)
            return _to_notes(melody)

    logging.warning(
        "No cantus firmus found after %d attempts; using scale skeleton",
        MAX_CF_ATTEMPTS,
    )
    return _to_notes(_skeleton(tonic, mode))

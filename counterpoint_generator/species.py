"""Counterpoint generators for species 1-4.

Every generator takes a cantus firmus and returns a :class:`GenerationResult`
rather than raising. The search is shared: :func:`_backtrack` walks one
structural note per cantus firmus note depth first, asking a species specific
callback for the ordered candidates at each position and undoing its choice
(``line.pop()``) when a branch dead-ends.

- **First species** searches one note per cantus note.
- **Second species** searches the downbeats first and then connects each
  pair of downbeats with an upbeat.
- **Third species** searches beat 1 of every measure and fills beats 2-4
  with the best scoring three-note path.
- **Fourth species** searches the syncopated upbeats; each downbeat is the
  previous upbeat tied over the barline.

Hard rules (weight 100) remove candidates before scoring. Soft rules lower
their score; candidates with equal score are shuffled with ``rng`` which is
the only source of variety. Passing a seeded ``random.Random`` makes a run
reproducible.

Example
-------
>>> import random
>>> result = generate_first_species(["D4", "F4", "E4", "D4"], True, rng=random.Random(1))
>>> result.success, len(result.notes)
(True, 4)
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import (
    Callable,
    FrozenSet,
    List,
    Optional,
    Sequence,
    Tuple,
    Union,
)

from .analysis import (
    GenerationAnalysis,
    analyze_first_species,
    analyze_fourth_species,
    analyze_second_species,
    analyze_third_species,
    species_label,
)
from .modes import Mode, mode_pitch_set
from .note_utils import (
    Duration,
    Note,
    direction,
    is_consonant,
    number_to_pitch,
    pitch_to_number,
)
from .rules import (
    HARD_WEIGHT,
    RuleConfig,
    RuleId,
    Transition,
    check_cambiata,
    check_final_cadence,
    check_forbidden_interval,
    check_penultimate_approach,
    check_repetition,
    check_suspension_resolution,
    get_rules_for_species,
    order_candidates,
    rule_weight,
    score_candidate,
    violates_hard_rules,
)

__all__ = [
    "MIN_PITCH",
    "MAX_PITCH",
    "MAX_SEARCH_STEPS",
    "FailureKind",
    "GenerationResult",
    "get_consonant_pitches",
    "get_all_pitches_in_range",
    "fill_third_species_measure",
    "generate_first_species",
    "generate_second_species",
    "generate_third_species",
    "generate_fourth_species",
    "generate_counterpoint",
]

MIN_PITCH = 48  # C3
MAX_PITCH = 84  # C6

# Node budget for one backtracking pass.
MAX_SEARCH_STEPS = 200_000

# Largest move between consecutive third species downbeats that three
# quarter notes of up to a minor third can still bridge.
_THIRD_SPECIES_SPAN = 7

# Bonus for a fourth species upbeat that becomes a resolvable suspension.
_SUSPENSION_BONUS = 25

CantusInput = Sequence[Union[Note, str]]


class FailureKind(str, Enum):
    INPUT = "input"
    EXHAUSTED = "exhausted"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a generation call.

    Successful results carry the counterpoint ``notes`` and their
    ``analysis``; failed results carry an ``error`` message, a
    :class:`FailureKind` and no notes.
    """

    success: bool
    notes: Tuple[Note, ...] = ()
    analysis: Optional[GenerationAnalysis] = None
    error: Optional[str] = None
    failure: Optional[FailureKind] = None

    @classmethod
    def ok(cls, notes: Sequence[Note], analysis: GenerationAnalysis) -> "GenerationResult":
        return cls(True, tuple(notes), analysis)

    @classmethod
    def fail(cls, error: str, failure: FailureKind) -> "GenerationResult":
        return cls(False, (), None, error, failure)


class _SearchExhausted(Exception):
    """Raised internally when a pass exceeds :data:`MAX_SEARCH_STEPS`."""


# Rules scored on every note of a first species line.
_LINE_RULES = (
    RuleId.NO_PARALLEL_FIFTHS,
    RuleId.NO_DIRECT_FIFTHS,
    RuleId.PREFER_CONTRARY_MOTION,
    RuleId.PREFER_STEPWISE_MOTION,
    RuleId.NO_FORBIDDEN_INTERVALS,
    RuleId.LEAP_RECOVERY,
    RuleId.NO_EXPOSED_TRITONE,
    RuleId.AVOID_CONSECUTIVE_LEAPS,
    RuleId.AVOID_REPETITIONS,
)

# Downbeat to downbeat rules when other notes sit in between.
_FRAME_RULES = (
    RuleId.NO_PARALLEL_FIFTHS,
    RuleId.NO_DIRECT_FIFTHS,
    RuleId.PREFER_CONTRARY_MOTION,
    RuleId.NO_FORBIDDEN_INTERVALS,
)

# Melodic rules applied to second species upbeats.
_UPBEAT_RULES = (
    RuleId.NO_FORBIDDEN_INTERVALS,
    RuleId.LEAP_RECOVERY,
    RuleId.NO_EXPOSED_TRITONE,
    RuleId.AVOID_CONSECUTIVE_LEAPS,
)

# Rules the fixed next downbeat is judged by once an upbeat is chosen.
_ARRIVAL_RULES = (
    RuleId.LEAP_RECOVERY,
    RuleId.NO_EXPOSED_TRITONE,
)


# ---------------------------------------------------------------------------
# Candidate pools
# ---------------------------------------------------------------------------


def _voice_range(cf_number: int, above: bool) -> range:
    low, high = (cf_number, MAX_PITCH) if above else (MIN_PITCH, cf_number)
    return range(max(low, MIN_PITCH), min(high, MAX_PITCH) + 1)


def get_consonant_pitches(
    cf_pitch: str,
    above: bool,
    allowed: Optional[FrozenSet[int]] = None,
) -> List[str]:
    """Return in-range pitches consonant with ``cf_pitch`` on the requested side.

    ``allowed`` restricts the result to a mode's pitch set.
    """

    cf_number = pitch_to_number(cf_pitch)
    return [
        number_to_pitch(n)
        for n in _voice_range(cf_number, above)
        if is_consonant(n - cf_number) and (allowed is None or n in allowed)
    ]


def get_all_pitches_in_range(
    cf_pitch: str,
    above: bool,
    allowed: Optional[FrozenSet[int]] = None,
) -> List[str]:
    cf_number = pitch_to_number(cf_pitch)
    return [
        number_to_pitch(n)
        for n in _voice_range(cf_number, above)
        if allowed is None or n in allowed
    ]


def _pool(
    cf_pitch: str,
    above: bool,
    allowed: Optional[FrozenSet[int]],
    rules: Sequence[RuleConfig],
    consonance_rule: RuleId,
) -> List[str]:
    if rule_weight(rules, consonance_rule) >= HARD_WEIGHT:
        return get_consonant_pitches(cf_pitch, above, allowed)
    return get_all_pitches_in_range(cf_pitch, above, allowed)


def _interval(a: str, b: str) -> int:
    return abs(pitch_to_number(a) - pitch_to_number(b))


def _opening_candidates(cf_pitch: str, pool: List[str], rules: Sequence[RuleConfig]) -> List[str]:
    """Prefer unison/octave, then any perfect consonance, for the first note."""

    if rule_weight(rules, RuleId.FINAL_CADENCE) <= 0:
        return pool
    octaves = [p for p in pool if _interval(cf_pitch, p) % 12 == 0]
    if octaves:
        return octaves
    perfect = [p for p in pool if _interval(cf_pitch, p) % 12 == 7]
    return perfect or pool


def _cadence_adjust(
    index: int,
    last: int,
    cf_pitch: str,
    pool: List[str],
    rules: Sequence[RuleConfig],
) -> Tuple[List[str], Callable[[str], float]]:
    """Apply the closing unison/octave requirement.

    Returns the possibly filtered pool and a penalty function for the soft
    case.
    """

    weight = rule_weight(rules, RuleId.FINAL_CADENCE)
    if index != last or weight <= 0:
        return pool, lambda pitch: 0.0
    if weight >= HARD_WEIGHT:
        return [p for p in pool if check_final_cadence(cf_pitch, p).passed], lambda pitch: 0.0
    return pool, lambda pitch: 0.0 if check_final_cadence(cf_pitch, pitch).passed else float(weight)


def _transition(
    cf_pitches: Sequence[str],
    index: int,
    candidate: str,
    line: Sequence[str],
) -> Transition:
    return Transition(
        cf=cf_pitches[index],
        cp=candidate,
        prev_cf=cf_pitches[index - 1] if index > 0 else None,
        prev_cp=line[-1] if line else None,
        history=tuple(line[-3:]),
    )


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


def _backtrack(
    length: int,
    ordered_candidates: Callable[[int, List[str]], List[str]],
    max_steps: int = MAX_SEARCH_STEPS,
) -> Optional[List[str]]:
    """Depth-first search over ``length`` positions.

    ``ordered_candidates(index, line)`` receives the partial line chosen so
    far and returns the pitches to try at ``index`` in order. Returns the
    first complete line or ``None`` when the tree or the node budget is
    exhausted.
    """

    line: List[str] = []
    steps = 0

    def descend(index: int) -> bool:
        nonlocal steps
        if index == length:
            return True
        steps += 1
        if steps > max_steps:
            raise _SearchExhausted
        for pitch in ordered_candidates(index, line):
            line.append(pitch)
            if descend(index + 1):
                return True
            line.pop()
        return False

    try:
        found = descend(0)
    except _SearchExhausted:
        logging.info("Search abandoned after %d steps", max_steps)
        return None
    return line if found else None


def _structural_candidates(
    cf_pitches: Sequence[str],
    above: bool,
    allowed: Optional[FrozenSet[int]],
    rules: Sequence[RuleConfig],
    consonance_rule: RuleId,
    rule_ids: Sequence[RuleId],
    rng: random.Random,
    *,
    max_span: Optional[int] = None,
    cadential_approach: bool = False,
) -> Callable[[int, List[str]], List[str]]:
    """Build the candidate callback used for first species style passes.

    ``cadential_approach`` enables the third species preference for a major
    sixth (above) or minor third (below) on the penultimate downbeat.
    """

    checked = (consonance_rule,) + tuple(rule_ids)
    last = len(cf_pitches) - 1

    def ordered(index: int, line: List[str]) -> List[str]:
        cf = cf_pitches[index]
        pool = _pool(cf, above, allowed, rules, consonance_rule)
        if index == 0:
            pool = _opening_candidates(cf, pool, rules)
        pool, cadence_penalty = _cadence_adjust(index, last, cf, pool, rules)
        if max_span is not None and line:
            prev = pitch_to_number(line[-1])
            pool = [p for p in pool if abs(pitch_to_number(p) - prev) <= max_span]

        approach_weight = 0
        if cadential_approach and index == last - 1:
            approach_weight = rule_weight(rules, RuleId.PENULTIMATE_CADENCE)
            matching = [p for p in pool if check_penultimate_approach(cf, p).passed]
            if approach_weight >= HARD_WEIGHT and matching:
                pool = matching

        scored = []
        for pitch in pool:
            t = _transition(cf_pitches, index, pitch, line)
            if violates_hard_rules(t, rules, checked):
                continue
            score = score_candidate(t, rules, checked) - cadence_penalty(pitch)
            if approach_weight and not check_penultimate_approach(cf, pitch).passed:
                score -= approach_weight
            scored.append((pitch, score))
        return order_candidates(scored, rng)

    return ordered


# ---------------------------------------------------------------------------
# Shared entry point helpers
# ---------------------------------------------------------------------------


def _cf_pitches(cantus_firmus: CantusInput) -> List[str]:
    return [n.pitch if isinstance(n, Note) else str(n) for n in cantus_firmus]


def _empty_result() -> GenerationResult:
    return GenerationResult.fail("Cantus firmus is empty", FailureKind.INPUT)


def _exhausted(species: int, what: str) -> GenerationResult:
    message = f"Could not generate valid {what} ({species_label(species)} species)"
    logging.info(message)
    return GenerationResult.fail(message, FailureKind.EXHAUSTED)


def _prepare(
    species: int,
    rules: Optional[Sequence[RuleConfig]],
    mode: Optional[Union[Mode, str]],
    finalis: Optional[str],
) -> Tuple[Tuple[RuleConfig, ...], Optional[FrozenSet[int]]]:
    effective = tuple(rules) if rules is not None else get_rules_for_species(species)
    return effective, mode_pitch_set(mode, finalis, MIN_PITCH, MAX_PITCH)


# ---------------------------------------------------------------------------
# First species
# ---------------------------------------------------------------------------


def generate_first_species(
    cantus_firmus: CantusInput,
    is_counterpoint_above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    mode: Optional[Union[Mode, str]] = None,
    finalis: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Generate one whole note of counterpoint per cantus firmus note.

    Parameters
    ----------
    cantus_firmus:
        Notes or pitch names of the fixed line.
    is_counterpoint_above:
        Draw candidates from above (``True``) or below the cantus firmus.
    rules:
        Rule configuration; defaults to the first species catalog.
    mode, finalis:
        When both are given, candidates are restricted to that mode.
    rng:
        Random source for tie-breaking.

    Returns
    -------
    GenerationResult
        Never raises for an empty cantus firmus or an exhausted search.
    """

    if not cantus_firmus:
        return _empty_result()
    rng = rng or random
    rules, allowed = _prepare(1, rules, mode, finalis)
    cf = _cf_pitches(cantus_firmus)

    line = _backtrack(
        len(cf),
        _structural_candidates(
            cf,
            is_counterpoint_above,
            allowed,
            rules,
            RuleId.CONSONANT_INTERVALS_ONLY,
            _LINE_RULES,
            rng,
        ),
    )
    if line is None:
        return _exhausted(1, "counterpoint")

    notes = tuple(Note(p, Duration.WHOLE) for p in line)
    return GenerationResult.ok(notes, analyze_first_species(cf, notes, rules))


# ---------------------------------------------------------------------------
# Second species
# ---------------------------------------------------------------------------


def _choose_upbeat(
    cf_pitch: str,
    downbeat: str,
    next_downbeat: str,
    history: Sequence[str],
    above: bool,
    allowed: Optional[FrozenSet[int]],
    rules: Sequence[RuleConfig],
    rng: random.Random,
) -> str:
    """Pick the upbeat joining ``downbeat`` to ``next_downbeat``.

    ``history`` is the line so far, ending with ``downbeat``.

    Steps of one or two semitones are preferred, dissonant only when they
    also step into the next downbeat. Consonant leaps are accepted when they
    step into the next downbeat. Options that leave the next downbeat with an
    unrecovered leap or an exposed tritone are dropped when those rules are
    hard and penalised otherwise. Falls back to repeating ``downbeat``.
    """

    cf_number = pitch_to_number(cf_pitch)
    current = pitch_to_number(downbeat)
    target = pitch_to_number(next_downbeat)
    toward = direction(current, target)
    passing_allowed = rule_weight(rules, RuleId.ALLOW_PASSING_TONES) > 0

    options: List[Tuple[str, float]] = []
    for step in (-2, -1, 1, 2):
        number = current + step
        if not MIN_PITCH <= number <= MAX_PITCH:
            continue
        if allowed is not None and number not in allowed:
            continue
        consonant = is_consonant(number - cf_number)
        to_next = abs(target - number)
        if not consonant and (not passing_allowed or to_next > 2):
            continue
        score = 100.0
        if toward and direction(current, number) == toward:
            score += 30
        score -= to_next * 5
        if consonant:
            score += 10
        options.append((number_to_pitch(number), score + rng.random() * 15))

    for pitch in get_consonant_pitches(cf_pitch, above, allowed):
        number = pitch_to_number(pitch)
        if abs(number - current) <= 2 or abs(target - number) > 2:
            continue
        score = 70.0
        if toward and direction(current, number) == toward:
            score += 15
        options.append((pitch, score + rng.random() * 10))

    repetition_weight = rule_weight(rules, RuleId.AVOID_REPETITIONS)
    best: Optional[Tuple[str, float]] = None
    for pitch, score in options:
        if not check_forbidden_interval(pitch, next_downbeat).passed:
            continue
        t = Transition(cf_pitch, pitch, cf_pitch, downbeat, tuple(history[-3:]))
        if violates_hard_rules(t, rules, _UPBEAT_RULES):
            continue
        score += score_candidate(t, rules, _UPBEAT_RULES) - 100

        # Only melodic rules are evaluated here, so the cantus pitch is unused.
        arrival = Transition(cf_pitch, next_downbeat, cf_pitch, pitch, tuple(history[-2:]) + (pitch,))
        if violates_hard_rules(arrival, rules, _ARRIVAL_RULES):
            continue
        score += score_candidate(arrival, rules, _ARRIVAL_RULES) - 100
        if not check_repetition(pitch, next_downbeat).passed:
            score -= repetition_weight * 0.5
        if best is None or score > best[1]:
            best = (pitch, score)

    if best is None:
        logging.debug("No upbeat joins %s to %s; repeating downbeat", downbeat, next_downbeat)
        return downbeat
    return best[0]


def generate_second_species(
    cantus_firmus: CantusInput,
    is_counterpoint_above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    mode: Optional[Union[Mode, str]] = None,
    finalis: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Generate two half notes per cantus firmus note (downbeat, upbeat)."""

    if not cantus_firmus:
        return _empty_result()
    rng = rng or random
    rules, allowed = _prepare(2, rules, mode, finalis)
    cf = _cf_pitches(cantus_firmus)

    downbeats = _backtrack(
        len(cf),
        _structural_candidates(
            cf,
            is_counterpoint_above,
            allowed,
            rules,
            RuleId.DOWNBEAT_CONSONANCE,
            _FRAME_RULES,
            rng,
        ),
    )
    if downbeats is None:
        return _exhausted(2, "downbeats")

    line: List[str] = []
    for i, downbeat in enumerate(downbeats):
        line.append(downbeat)
        if i == len(downbeats) - 1:
            line.append(downbeat)
            break
        line.append(
            _choose_upbeat(
                cf[i],
                downbeat,
                downbeats[i + 1],
                line,
                is_counterpoint_above,
                allowed,
                rules,
                rng,
            )
        )

    notes = tuple(Note(p, Duration.HALF) for p in line)
    return GenerationResult.ok(notes, analyze_second_species(cf, notes, rules))


# ---------------------------------------------------------------------------
# Third species
# ---------------------------------------------------------------------------


def _step_run(
    start: int,
    target: int,
    allowed: Optional[FrozenSet[int]],
) -> Tuple[int, int, int]:
    """Walk three in-mode steps from ``start`` toward ``target``.

    A beat holds the previous pitch when no in-mode step of one or two
    semitones exists in that direction or the target has been reached.
    """

    path = []
    current = start
    for _ in range(3):
        move = direction(current, target)
        if move == 0:
            path.append(current)
            continue
        step = next(
            (
                current + move * size
                for size in (2, 1)
                if MIN_PITCH <= current + move * size <= MAX_PITCH
                and (allowed is None or current + move * size in allowed)
                and abs(target - (current + move * size)) < abs(target - current)
            ),
            current,
        )
        path.append(step)
        current = step
    return path[0], path[1], path[2]


def fill_third_species_measure(
    cf_pitch: str,
    beat_one: str,
    next_beat_one: str,
    above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    allowed: Optional[FrozenSet[int]] = None,
    rng: Optional[random.Random] = None,
) -> Tuple[str, str, str]:
    """Return beats 2-4 leading from ``beat_one`` toward ``next_beat_one``.

    Every three-note path built from moves of one to three semitones is
    scored; beat 4 must lie within a whole step of the next downbeat and
    dissonant beats must move by step unless they form a cambiata. When no
    path qualifies an in-mode step run toward the next downbeat is returned
    and a warning is logged; that run may break voice-leading rules, which the
    analysis then reports.
    """

    rng = rng or random
    rules = tuple(rules) if rules is not None else get_rules_for_species(3)
    cf_number = pitch_to_number(cf_pitch)
    start = pitch_to_number(beat_one)
    target = pitch_to_number(next_beat_one)
    toward = direction(start, target)

    passing_allowed = rule_weight(rules, RuleId.ALLOW_PASSING_TONES) > 0
    cambiata_weight = rule_weight(rules, RuleId.ALLOW_CAMBIATA)
    beat_three_weight = rule_weight(rules, RuleId.BEAT_THREE_CONSONANCE)
    repetition_weight = rule_weight(rules, RuleId.AVOID_REPETITIONS)

    def moves(origin: int) -> List[int]:
        return [
            origin + delta
            for delta in (-3, -2, -1, 1, 2, 3)
            if MIN_PITCH <= origin + delta <= MAX_PITCH
            and (allowed is None or origin + delta in allowed)
        ]

    def consonant(number: int) -> bool:
        return is_consonant(number - cf_number)

    best: Optional[Tuple[Tuple[int, int, int], float]] = None
    for b2 in moves(start):
        for b3 in moves(b2):
            for b4 in moves(b3):
                if abs(target - b4) > 2:
                    continue

                cambiata = (
                    cambiata_weight > 0
                    and not consonant(b2)
                    and check_cambiata(
                        cf_pitch,
                        beat_one,
                        number_to_pitch(b2),
                        number_to_pitch(b3),
                        number_to_pitch(b4),
                    ).passed
                )
                if not consonant(b2) and not cambiata:
                    if not passing_allowed or abs(b2 - start) > 2 or abs(b3 - b2) > 2:
                        continue
                if not consonant(b3):
                    if beat_three_weight >= HARD_WEIGHT:
                        continue
                    if not passing_allowed or abs(b3 - b2) > 2 or abs(b4 - b3) > 2:
                        continue
                if not consonant(b4) and (not passing_allowed or abs(b4 - b3) > 2):
                    continue

                score = 100.0
                for a, b in ((start, b2), (b2, b3), (b3, b4)):
                    if abs(b - a) <= 2:
                        score += 10
                if consonant(b2):
                    score += 5
                if consonant(b3):
                    score += 15
                else:
                    score -= beat_three_weight * 0.4
                if consonant(b4):
                    score += 5
                if toward and direction(start, b2) == toward:
                    score += 10
                if cambiata:
                    score += 20 * cambiata_weight / 100
                if b4 == target:
                    score -= repetition_weight * 0.5
                if any((n < cf_number) if above else (n > cf_number) for n in (b2, b3, b4)):
                    score -= 25
                score += rng.random() * 15

                if best is None or score > best[1]:
                    best = ((b2, b3, b4), score)

    if best is None:
        logging.warning(
            "No third species path from %s to %s; using step run",
            beat_one,
            next_beat_one,
        )
        path = _step_run(start, target, allowed)
    else:
        path = best[0]
    b2, b3, b4 = path
    return number_to_pitch(b2), number_to_pitch(b3), number_to_pitch(b4)


def generate_third_species(
    cantus_firmus: CantusInput,
    is_counterpoint_above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    mode: Optional[Union[Mode, str]] = None,
    finalis: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Generate four quarter notes per cantus firmus note.

    The final measure holds its first beat across all four beats.
    """

    if not cantus_firmus:
        return _empty_result()
    rng = rng or random
    rules, allowed = _prepare(3, rules, mode, finalis)
    cf = _cf_pitches(cantus_firmus)

    beat_ones = _backtrack(
        len(cf),
        _structural_candidates(
            cf,
            is_counterpoint_above,
            allowed,
            rules,
            RuleId.BEAT_ONE_CONSONANCE,
            _FRAME_RULES,
            rng,
            max_span=_THIRD_SPECIES_SPAN,
            cadential_approach=True,
        ),
    )
    if beat_ones is None:
        return _exhausted(3, "first beats")

    line: List[str] = []
    for i, beat_one in enumerate(beat_ones):
        if i == len(beat_ones) - 1:
            line.extend([beat_one] * 4)
            break
        line.append(beat_one)
        line.extend(
            fill_third_species_measure(
                cf[i],
                beat_one,
                beat_ones[i + 1],
                is_counterpoint_above,
                rules,
                allowed,
                rng,
            )
        )

    notes = tuple(Note(p, Duration.QUARTER) for p in line)
    return GenerationResult.ok(notes, analyze_third_species(cf, notes, rules))


# ---------------------------------------------------------------------------
# Fourth species
# ---------------------------------------------------------------------------


def _prepares_suspension(
    pitch: str,
    next_cf: str,
    allowed: Optional[FrozenSet[int]],
) -> bool:
    """Return ``True`` if ``pitch`` tied over ``next_cf`` is a resolvable dissonance."""

    number = pitch_to_number(pitch)
    cf_number = pitch_to_number(next_cf)
    if is_consonant(number - cf_number):
        return False
    return any(
        MIN_PITCH <= number - drop
        and (allowed is None or number - drop in allowed)
        and is_consonant(number - drop - cf_number)
        for drop in (1, 2)
    )


def generate_fourth_species(
    cantus_firmus: CantusInput,
    is_counterpoint_above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    mode: Optional[Union[Mode, str]] = None,
    finalis: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Generate syncopated half notes: each upbeat is tied into the next downbeat.

    Only the upbeats are searched. When the upbeat tied over the barline is
    dissonant against the new cantus note, the next upbeat must resolve it
    down by one or two semitones. With the rule at full weight, upbeats that
    leave the tie unresolved are tried only once every resolving branch has
    failed; such ties are reported by the analysis. The penultimate upbeat
    is chosen so the final measure can still close on a unison or octave.
    The first measure's downbeat simply sounds the first upbeat.
    """

    if not cantus_firmus:
        return _empty_result()
    rng = rng or random
    rules, allowed = _prepare(4, rules, mode, finalis)
    cf = _cf_pitches(cantus_firmus)
    last = len(cf) - 1
    checked = (RuleId.UPBEAT_CONSONANCE,) + _LINE_RULES
    suspension_weight = rule_weight(rules, RuleId.SUSPENSION_RESOLUTION)

    def viable(index: int, line: List[str]) -> List[Tuple[str, float, bool]]:
        cf_pitch = cf[index]
        pool = _pool(cf_pitch, is_counterpoint_above, allowed, rules, RuleId.UPBEAT_CONSONANCE)
        if index == 0:
            pool = _opening_candidates(cf_pitch, pool, rules)
        pool, cadence_penalty = _cadence_adjust(index, last, cf_pitch, pool, rules)

        scored = []
        for pitch in pool:
            t = _transition(cf, index, pitch, line)
            if violates_hard_rules(t, rules, checked):
                continue
            score = score_candidate(t, rules, checked) - cadence_penalty(pitch)
            resolves = not line or check_suspension_resolution(cf_pitch, line[-1], pitch).passed
            if not resolves:
                score -= suspension_weight
            if index < last and _prepares_suspension(pitch, cf[index + 1], allowed):
                score += _SUSPENSION_BONUS
            scored.append((pitch, score, resolves))

        if scored and not any(resolves for _, _, resolves in scored):
            logging.debug("No resolution for %s over %s", line[-1], cf_pitch)
        return scored

    def closes(line: List[str]) -> Optional[bool]:
        """Whether the final measure can follow ``line``; ``False`` if only unresolved."""

        finals = viable(last, line)
        if not finals:
            return None
        return any(resolves for _, _, resolves in finals)

    def ordered(index: int, line: List[str]) -> List[str]:
        # Unresolved ties are tried only after every resolving option when
        # the rule is hard; the analysis reports any that remain.
        hard = suspension_weight >= HARD_WEIGHT
        tiers: List[List[Tuple[str, float]]] = [[], [], []]
        for pitch, score, resolves in viable(index, line):
            tier = 0 if resolves or not hard else 1
            if index == last - 1:
                # The penultimate upbeat is tied over the final cantus note.
                reach = closes(line + [pitch])
                if reach is None:
                    continue
                if not reach and hard:
                    tier += 1
            tiers[tier].append((pitch, score))
        return [pitch for tier in tiers for pitch in order_candidates(tier, rng)]

    upbeats = _backtrack(len(cf), ordered)
    if upbeats is None:
        return _exhausted(4, "suspensions")

    line: List[str] = []
    for i, upbeat in enumerate(upbeats):
        line.append(upbeats[i - 1] if i > 0 else upbeat)
        line.append(upbeat)

    notes = tuple(Note(p, Duration.HALF) for p in line)
    return GenerationResult.ok(notes, analyze_fourth_species(cf, notes, rules))


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------

_GENERATORS = {
    1: generate_first_species,
    2: generate_second_species,
    3: generate_third_species,
    4: generate_fourth_species,
}


def generate_counterpoint(
    species: int,
    cantus_firmus: CantusInput,
    is_counterpoint_above: bool = True,
    rules: Optional[Sequence[RuleConfig]] = None,
    mode: Optional[Union[Mode, str]] = None,
    finalis: Optional[str] = None,
    *,
    rng: Optional[random.Random] = None,
) -> GenerationResult:
    """Run the generator for ``species``.

    Species 5 (free counterpoint) is recognised but not implemented and
    yields a failed result.

    Raises
    ------
    ValueError
        If ``species`` is not between 1 and 5.
    """

    if species == 5:
        return GenerationResult.fail(
            "5th species (free counterpoint) is not yet implemented",
            FailureKind.UNSUPPORTED,
        )
    try:
        generator = _GENERATORS[species]
    except KeyError:
        raise ValueError(f"Unknown species: {species}") from None
    return generator(
        cantus_firmus,
        is_counterpoint_above,
        rules,
        mode,
        finalis,
        rng=rng,
    )

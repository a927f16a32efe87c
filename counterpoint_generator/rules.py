"""Voice-leading rules, the per-species rule catalog and candidate scoring.

Every ``check_*`` function is a pure predicate over note names returning a
:class:`RuleCheck` (``passed`` plus a human readable ``message``). The same
predicates drive candidate selection during generation and the diagnostic
trail produced by :mod:`counterpoint_generator.analysis`.

Which rules apply to a species, under what name and with what default weight,
is data rather than code: :data:`RULE_CATALOG` maps each :class:`RuleId` to a
:class:`RuleSpec` listing its per-species wording and weight together with
the predicate used to evaluate it on a :class:`Transition`.

Weights run from ``0`` to ``100``. A weight of ``100`` makes the rule a hard
constraint: candidates failing it are removed before scoring (see
:func:`violates_hard_rules`). Lower weights subtract
``weight * penalty_scale`` from a baseline score of ``100``.

Example
-------
>>> check_parallel_fifths("D4", "E4", "A4", "B4")
RuleCheck(passed=False, message='Parallel fifths', needs_recovery=False)
>>> rules = get_rules_for_species(1)
>>> rule_weight(rules, RuleId.NO_DIRECT_FIFTHS)
80
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import (
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Sequence,
    Tuple,
)

from .note_utils import (
    direction,
    interval_name,
    is_consonant,
    is_perfect_consonance,
    pitch_to_number,
)

__all__ = [
    "RuleId",
    "RuleConfig",
    "RuleCheck",
    "RuleSpec",
    "Transition",
    "RULE_CATALOG",
    "SPECIES_RULE_ORDER",
    "SUPPORTED_SPECIES",
    "BASELINE_SCORE",
    "check_parallel_fifths",
    "check_direct_fifths",
    "check_contrary_motion",
    "check_forbidden_interval",
    "check_leap_recovery",
    "check_exposed_tritone",
    "check_consecutive_leaps_same_direction",
    "check_stepwise_motion",
    "check_consonance",
    "check_repetition",
    "check_passing_tone",
    "check_suspension_resolution",
    "check_cambiata",
    "check_penultimate_approach",
    "check_final_cadence",
    "check_opening",
    "get_rules_for_species",
    "apply_rule_weights",
    "rule_weight",
    "rule_name",
    "evaluate_rule",
    "violates_hard_rules",
    "score_candidate",
    "order_candidates",
]

BASELINE_SCORE = 100.0
HARD_WEIGHT = 100
SUPPORTED_SPECIES = (1, 2, 3, 4)


class RuleId(str, Enum):
    NO_PARALLEL_FIFTHS = "noParallelFifths"
    NO_DIRECT_FIFTHS = "noDirectFifths"
    PREFER_CONTRARY_MOTION = "preferContraryMotion"
    PREFER_STEPWISE_MOTION = "preferStepwiseMotion"
    CONSONANT_INTERVALS_ONLY = "consonantIntervalsOnly"
    NO_FORBIDDEN_INTERVALS = "noForbiddenIntervals"
    LEAP_RECOVERY = "leapRecovery"
    NO_EXPOSED_TRITONE = "noExposedTritone"
    AVOID_CONSECUTIVE_LEAPS = "avoidConsecutiveLeaps"
    AVOID_REPETITIONS = "avoidRepetitions"
    FINAL_CADENCE = "finalCadence"
    # 2nd species
    DOWNBEAT_CONSONANCE = "downbeatConsonance"
    ALLOW_PASSING_TONES = "allowPassingTones"
    # 3rd species
    BEAT_ONE_CONSONANCE = "beatOneConsonance"
    BEAT_THREE_CONSONANCE = "beatThreeConsonance"
    ALLOW_CAMBIATA = "allowCambiata"
    PENULTIMATE_CADENCE = "penultimateCadence"
    # 4th species
    UPBEAT_CONSONANCE = "upbeatConsonance"
    SUSPENSION_RESOLUTION = "suspensionResolution"


@dataclass(frozen=True)
class RuleConfig:
    """A rule as presented to callers: id, wording and a 0-100 weight."""

    id: RuleId
    name: str
    description: str
    weight: int


class RuleCheck(NamedTuple):
    passed: bool
    message: str
    needs_recovery: bool = False


@dataclass(frozen=True)
class Transition:
    """Local window a rule is evaluated on.

    ``cf``/``cp`` are the current cantus firmus and counterpoint pitches,
    ``prev_cf``/``prev_cp`` the pair before them (``None`` at the start).
    ``history`` holds up to three counterpoint pitches preceding ``cp``,
    oldest first, for the melodic rules.
    """

    cf: str
    cp: str
    prev_cf: Optional[str] = None
    prev_cp: Optional[str] = None
    history: Tuple[str, ...] = ()


# ---------------------------------------------------------------------------
# Rule predicates
# ---------------------------------------------------------------------------


def _similar_motion(cf_motion: int, cp_motion: int) -> bool:
    return (cf_motion > 0 and cp_motion > 0) or (cf_motion < 0 and cp_motion < 0)


def check_parallel_fifths(prev_cf: str, curr_cf: str, prev_cp: str, curr_cp: str) -> RuleCheck:
    """Fail when two perfect consonances of the same kind follow by similar motion."""

    prev_interval = abs(pitch_to_number(prev_cf) - pitch_to_number(prev_cp))
    curr_interval = abs(pitch_to_number(curr_cf) - pitch_to_number(curr_cp))

    if not is_perfect_consonance(prev_interval) or not is_perfect_consonance(curr_interval):
        return RuleCheck(True, "No parallel perfect intervals")
    if prev_interval % 12 != curr_interval % 12:
        return RuleCheck(True, "Different interval types")

    cf_motion = pitch_to_number(curr_cf) - pitch_to_number(prev_cf)
    cp_motion = pitch_to_number(curr_cp) - pitch_to_number(prev_cp)
    if _similar_motion(cf_motion, cp_motion):
        kind = "octaves" if curr_interval % 12 == 0 else "fifths"
        return RuleCheck(False, f"Parallel {kind}")
    return RuleCheck(True, "No parallel motion")


def check_direct_fifths(prev_cf: str, curr_cf: str, prev_cp: str, curr_cp: str) -> RuleCheck:
    """Fail when a perfect consonance is reached by similar motion with a leap."""

    curr_interval = abs(pitch_to_number(curr_cf) - pitch_to_number(curr_cp))
    if not is_perfect_consonance(curr_interval):
        return RuleCheck(True, "Not a perfect interval")

    cf_motion = pitch_to_number(curr_cf) - pitch_to_number(prev_cf)
    cp_motion = pitch_to_number(curr_cp) - pitch_to_number(prev_cp)
    if _similar_motion(cf_motion, cp_motion) and abs(cp_motion) > 2:
        kind = "octave" if curr_interval % 12 == 0 else "fifth"
        return RuleCheck(False, f"Direct {kind} by leap")
    return RuleCheck(True, "No direct fifths/octaves")


def check_contrary_motion(prev_cf: str, curr_cf: str, prev_cp: str, curr_cp: str) -> RuleCheck:
    """Pass for contrary or oblique motion, fail for similar or parallel motion."""

    cf_motion = pitch_to_number(curr_cf) - pitch_to_number(prev_cf)
    cp_motion = pitch_to_number(curr_cp) - pitch_to_number(prev_cp)

    if cf_motion == 0 or cp_motion == 0:
        return RuleCheck(True, "Oblique motion")
    if (cf_motion > 0) != (cp_motion > 0):
        return RuleCheck(True, "Contrary motion")
    return RuleCheck(False, "Similar motion")


def check_forbidden_interval(prev_cp: str, curr_cp: str) -> RuleCheck:
    """Reject melodic tritones, sevenths, leaps beyond an octave and bad sixths.

    Descending sixths (minor and major) and the ascending major sixth are
    forbidden; the ascending minor sixth is allowed but must be recovered
    (see :func:`check_leap_recovery`).
    """

    prev_num = pitch_to_number(prev_cp)
    curr_num = pitch_to_number(curr_cp)
    interval = abs(curr_num - prev_num)
    ascending = curr_num > prev_num

    if interval == 6:
        return RuleCheck(False, "Forbidden: tritone leap")
    if interval == 10:
        return RuleCheck(False, "Forbidden: minor 7th leap")
    if interval == 11:
        return RuleCheck(False, "Forbidden: major 7th leap")
    if interval > 12:
        return RuleCheck(False, f"Forbidden: leap greater than octave ({interval} semitones)")
    if not ascending and interval in (8, 9):
        kind = "minor" if interval == 8 else "major"
        return RuleCheck(False, f"Forbidden: descending {kind} 6th")
    if ascending and interval == 9:
        return RuleCheck(False, "Forbidden: ascending major 6th")

    if interval <= 2:
        return RuleCheck(True, "Stepwise motion")
    return RuleCheck(True, f"Leap of {interval_name(interval)}")


def check_leap_recovery(prev_prev_cp: Optional[str], prev_cp: str, curr_cp: str) -> RuleCheck:
    """Require a step back after an ascending m6/octave or a descending octave."""

    if not prev_prev_cp:
        return RuleCheck(True, "No previous leap to recover")

    prev_prev_num = pitch_to_number(prev_prev_cp)
    prev_num = pitch_to_number(prev_cp)
    curr_num = pitch_to_number(curr_cp)

    prev_interval = abs(prev_num - prev_prev_num)
    prev_dir = 1 if prev_num > prev_prev_num else -1
    recover_up = prev_dir == 1 and prev_interval in (8, 12)
    recover_down = prev_dir == -1 and prev_interval == 12

    if not recover_up and not recover_down:
        return RuleCheck(True, "No recovery needed")

    curr_dir = 1 if curr_num > prev_num else -1
    if abs(curr_num - prev_num) <= 2 and curr_dir != prev_dir:
        return RuleCheck(True, "Leap properly recovered by step")

    if recover_up:
        leap = "ascending minor 6th" if prev_interval == 8 else "ascending octave"
    else:
        leap = "descending octave"
    return RuleCheck(
        False,
        f"Leap recovery needed: {leap} must be followed by step in opposite direction",
        needs_recovery=True,
    )


def check_exposed_tritone(recent_pitches: Sequence[str], new_pitch: str) -> RuleCheck:
    """Fail when the last 3-4 notes run in one direction and span a tritone.

    Repeated notes inside the run are ignored when judging direction.
    """

    numbers = [pitch_to_number(p) for p in recent_pitches[-3:]]
    numbers.append(pitch_to_number(new_pitch))

    for size in range(3, min(len(numbers), 4) + 1):
        window = numbers[-size:]
        moves = {direction(a, b) for a, b in zip(window, window[1:])} - {0}
        if len(moves) == 1 and abs(window[-1] - window[0]) == 6:
            return RuleCheck(False, "Exposed tritone: notes outline augmented 4th")
    return RuleCheck(True, "No tritone outline")


def check_consecutive_leaps_same_direction(recent_pitches: Sequence[str], new_pitch: str) -> RuleCheck:
    """Fail for two or more leaps in a row in the same direction."""

    numbers = [pitch_to_number(p) for p in recent_pitches[-3:]]
    numbers.append(pitch_to_number(new_pitch))
    if len(numbers) < 3:
        return RuleCheck(True, "Melodic variety")

    run = 0
    last_dir: Optional[int] = None
    for a, b in zip(numbers, numbers[1:]):
        if abs(b - a) > 2:
            leap_dir = 1 if b > a else -1
            run = run + 1 if leap_dir == last_dir else 1
            last_dir = leap_dir
        else:
            run = 0
            last_dir = None

    if run >= 2:
        return RuleCheck(False, f"Multiple leaps in same direction ({run} consecutive)")
    return RuleCheck(True, "Melodic variety")


def check_stepwise_motion(prev_cp: str, curr_cp: str) -> RuleCheck:
    interval = abs(pitch_to_number(curr_cp) - pitch_to_number(prev_cp))
    if interval <= 2:
        return RuleCheck(True, "Stepwise motion")
    return RuleCheck(False, f"Leap of {interval_name(interval)}")


def check_consonance(cf_pitch: str, cp_pitch: str) -> RuleCheck:
    interval = abs(pitch_to_number(cf_pitch) - pitch_to_number(cp_pitch))
    if is_consonant(interval):
        return RuleCheck(True, f"Consonant ({interval_name(interval)})")
    return RuleCheck(False, f"Dissonant ({interval_name(interval)})")


def check_repetition(prev_cp: str, curr_cp: str) -> RuleCheck:
    if pitch_to_number(prev_cp) == pitch_to_number(curr_cp):
        return RuleCheck(False, "Repeated note")
    return RuleCheck(True, "No repetition")


def check_passing_tone(
    cf_pitch: str,
    prev_pitch: str,
    pitch: str,
    next_pitch: Optional[str] = None,
) -> RuleCheck:
    """Pass consonances; a dissonance must be approached and left by step.

    When ``next_pitch`` is ``None`` only the approach is checked.
    """

    interval = abs(pitch_to_number(cf_pitch) - pitch_to_number(pitch))
    label = interval_name(interval)
    if is_consonant(interval):
        return RuleCheck(True, f"Consonant ({label})")

    num = pitch_to_number(pitch)
    stepwise_in = abs(num - pitch_to_number(prev_pitch)) <= 2
    stepwise_out = next_pitch is None or abs(pitch_to_number(next_pitch) - num) <= 2
    if stepwise_in and stepwise_out:
        return RuleCheck(True, f"Valid passing tone ({label})")
    return RuleCheck(False, f"Dissonance must move by step ({label})")


def check_suspension_resolution(cf_pitch: str, suspended: str, resolution: str) -> RuleCheck:
    """A note tied into dissonance must fall by a step on the next beat."""

    interval = abs(pitch_to_number(cf_pitch) - pitch_to_number(suspended))
    label = interval_name(interval)
    if is_consonant(interval):
        return RuleCheck(True, f"Consonant tie ({label})")

    drop = pitch_to_number(suspended) - pitch_to_number(resolution)
    if 1 <= drop <= 2:
        return RuleCheck(True, f"Valid suspension ({label} → resolves down)")
    return RuleCheck(False, f"Invalid suspension ({label} - must resolve down by step)")


def check_cambiata(
    cf_pitch: str,
    beat_one: str,
    beat_two: str,
    beat_three: str,
    beat_four: str,
) -> RuleCheck:
    """Recognise the cambiata figure on beats 1-4 of a third species measure.

    A dissonant beat 2 reached by step, left by a leap of a third in the same
    direction to a consonant beat 3, which then steps back against the leap.
    """

    cf_num = pitch_to_number(cf_pitch)
    one, two, three, four = (pitch_to_number(p) for p in (beat_one, beat_two, beat_three, beat_four))
    if is_consonant(two - cf_num):
        return RuleCheck(False, "Beat 2 is consonant")

    leap = direction(two, three)
    if (
        abs(two - one) <= 2
        and abs(three - two) in (3, 4)
        and direction(one, two) == leap
        and is_consonant(three - cf_num)
        and 0 < abs(four - three) <= 2
        and direction(three, four) == -leap
    ):
        return RuleCheck(True, f"Cambiata ({interval_name(abs(two - cf_num))})")
    return RuleCheck(False, "Not a cambiata figure")


def check_penultimate_approach(cf_pitch: str, cp_pitch: str) -> RuleCheck:
    """Expect a major sixth above or a minor third below the cantus firmus."""

    cf_num = pitch_to_number(cf_pitch)
    cp_num = pitch_to_number(cp_pitch)
    expected = 9 if cp_num >= cf_num else 3
    interval = abs(cp_num - cf_num)
    if interval % 12 == expected:
        return RuleCheck(True, f"Cadential {interval_name(expected)}")
    return RuleCheck(
        False,
        f"Penultimate measure should form a {interval_name(expected)} ({interval_name(interval)})",
    )


def check_final_cadence(cf_pitch: str, cp_pitch: str) -> RuleCheck:
    interval = abs(pitch_to_number(cf_pitch) - pitch_to_number(cp_pitch))
    if interval in (0, 12):
        return RuleCheck(True, f"Ends on {interval_name(interval)}")
    return RuleCheck(False, f"Final note must be a unison or octave ({interval_name(interval)})")


def check_opening(cf_pitch: str, cp_pitch: str) -> RuleCheck:
    interval = abs(pitch_to_number(cf_pitch) - pitch_to_number(cp_pitch))
    if is_perfect_consonance(interval):
        return RuleCheck(True, f"Opens on {interval_name(interval)}")
    return RuleCheck(False, f"Opening should be a perfect consonance ({interval_name(interval)})")


# ---------------------------------------------------------------------------
# Transition evaluators used by the catalog
# ---------------------------------------------------------------------------


def _with_previous(fn: Callable[[str, str, str, str], RuleCheck]) -> Callable[[Transition], Optional[RuleCheck]]:
    def evaluate(t: Transition) -> Optional[RuleCheck]:
        if t.prev_cf is None or t.prev_cp is None:
            return None
        return fn(t.prev_cf, t.cf, t.prev_cp, t.cp)

    return evaluate


def _melodic(fn: Callable[[str, str], RuleCheck]) -> Callable[[Transition], Optional[RuleCheck]]:
    def evaluate(t: Transition) -> Optional[RuleCheck]:
        if t.prev_cp is None:
            return None
        return fn(t.prev_cp, t.cp)

    return evaluate


def _leap_recovery(t: Transition) -> Optional[RuleCheck]:
    if t.prev_cp is None or len(t.history) < 2:
        return None
    return check_leap_recovery(t.history[-2], t.prev_cp, t.cp)


def _exposed_tritone(t: Transition) -> Optional[RuleCheck]:
    if not t.history:
        return None
    return check_exposed_tritone(t.history, t.cp)


def _consecutive_leaps(t: Transition) -> Optional[RuleCheck]:
    if len(t.history) < 2:
        return None
    return check_consecutive_leaps_same_direction(t.history, t.cp)


def _consonance(t: Transition) -> Optional[RuleCheck]:
    return check_consonance(t.cf, t.cp)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class _Wording(NamedTuple):
    name: str
    description: str
    weight: int


@dataclass(frozen=True)
class RuleSpec:
    """Catalog entry: per-species wording/weight plus the predicate reference.

    ``evaluate`` is ``None`` for rules that depend on the beat position
    within a measure; the species generators and the analysis evaluate those
    directly.
    """

    id: RuleId
    species: Mapping[int, _Wording]
    evaluate: Optional[Callable[[Transition], Optional[RuleCheck]]] = None
    penalty_scale: float = 1.0


def _all(name: str, description: str, weight: int, *species: int) -> Dict[int, _Wording]:
    return {s: _Wording(name, description, weight) for s in (species or SUPPORTED_SPECIES)}


_PARALLEL_DESC = "Avoid parallel perfect intervals on consecutive downbeats"

RULE_CATALOG: Dict[RuleId, RuleSpec] = {
    spec.id: spec
    for spec in (
        RuleSpec(
            RuleId.NO_PARALLEL_FIFTHS,
            {
                1: _Wording("No Parallel 5ths/8ves", "Avoid consecutive perfect fifths or octaves", 100),
                2: _Wording("No Parallel 5ths/8ves on Downbeats", _PARALLEL_DESC, 100),
                3: _Wording("No Parallel 5ths/8ves on Beat 1", _PARALLEL_DESC, 100),
                4: _Wording(
                    "No Parallel 5ths/8ves",
                    "Avoid parallel perfect intervals on consecutive upbeats",
                    100,
                ),
            },
            _with_previous(check_parallel_fifths),
        ),
        RuleSpec(
            RuleId.NO_DIRECT_FIFTHS,
            _all("No Direct 5ths/8ves", "Avoid approaching perfect intervals by similar motion", 80),
            _with_previous(check_direct_fifths),
        ),
        RuleSpec(
            RuleId.PREFER_CONTRARY_MOTION,
            _all("Prefer Contrary Motion", "Voices should move in opposite directions", 60),
            _with_previous(check_contrary_motion),
            penalty_scale=0.5,
        ),
        RuleSpec(
            RuleId.PREFER_STEPWISE_MOTION,
            {
                1: _Wording("Prefer Stepwise Motion", "Counterpoint should move by step when possible", 50),
                2: _Wording("Prefer Stepwise Motion", "Counterpoint should move by step when possible", 50),
                3: _Wording("Prefer Stepwise Motion", "Counterpoint should move by step when possible", 70),
                4: _Wording("Prefer Stepwise Motion", "Counterpoint should move by step when possible", 70),
            },
            _melodic(check_stepwise_motion),
            penalty_scale=0.3,
        ),
        RuleSpec(
            RuleId.CONSONANT_INTERVALS_ONLY,
            _all(
                "Consonant Intervals",
                "Use only consonant intervals (3rds, 5ths, 6ths, 8ves)",
                100,
                1,
            ),
            _consonance,
        ),
        RuleSpec(
            RuleId.NO_FORBIDDEN_INTERVALS,
            _all(
                "No Forbidden Leaps",
                "No tritones, sevenths, leaps over an octave, descending 6ths or ascending major 6ths",
                100,
            ),
            _melodic(check_forbidden_interval),
        ),
        RuleSpec(
            RuleId.LEAP_RECOVERY,
            _all(
                "Leap Recovery",
                "After an ascending m6/octave or descending octave, step back the other way",
                100,
            ),
            _leap_recovery,
            penalty_scale=0.8,
        ),
        RuleSpec(
            RuleId.NO_EXPOSED_TRITONE,
            _all("No Exposed Tritone", "Do not outline a tritone with a run in one direction", 100),
            _exposed_tritone,
            penalty_scale=0.8,
        ),
        RuleSpec(
            RuleId.AVOID_CONSECUTIVE_LEAPS,
            _all("Avoid Consecutive Leaps", "Avoid two or more leaps in the same direction", 60),
            _consecutive_leaps,
            penalty_scale=0.5,
        ),
        RuleSpec(
            RuleId.AVOID_REPETITIONS,
            {
                1: _Wording("Avoid Repetitions", "Avoid repeating the same pitch", 70),
                2: _Wording("Avoid Repetitions", "Avoid repeating the same pitch", 70),
                3: _Wording("Avoid Repetitions", "Avoid repeating the same pitch", 70),
                4: _Wording("Avoid Repetitions", "Avoid repeating the same pitch pattern", 50),
            },
            _melodic(check_repetition),
        ),
        RuleSpec(
            RuleId.FINAL_CADENCE,
            _all(
                "Perfect Opening and Close",
                "Begin on a perfect consonance and end on a unison or octave",
                100,
            ),
        ),
        RuleSpec(
            RuleId.DOWNBEAT_CONSONANCE,
            _all("Downbeat Consonance", "Downbeats must be consonant with the cantus firmus", 100, 2),
            _consonance,
        ),
        RuleSpec(
            RuleId.ALLOW_PASSING_TONES,
            {
                2: _Wording(
                    "Allow Passing Tones",
                    "Upbeats may be dissonant if moving by step (filling in the third)",
                    100,
                ),
                3: _Wording("Allow Passing Tones", "Beats 2 and 4 may be dissonant if moving by step", 100),
            },
        ),
        RuleSpec(
            RuleId.BEAT_ONE_CONSONANCE,
            _all("Beat 1 Consonance", "First beat of each measure must be consonant", 100, 3),
            _consonance,
        ),
        RuleSpec(
            RuleId.BEAT_THREE_CONSONANCE,
            _all(
                "Beat 3 Consonance",
                "Third beat should be consonant (can be dissonant if others are consonant)",
                80,
                3,
            ),
        ),
        RuleSpec(
            RuleId.ALLOW_CAMBIATA,
            _all(
                "Allow Cambiata",
                "Permit dissonant 2nd beat followed by leap to consonant, resolving opposite",
                100,
                3,
            ),
        ),
        RuleSpec(
            RuleId.PENULTIMATE_CADENCE,
            _all(
                "Penultimate Cadence",
                "Second-to-last measure: M6→P8 (CF below) or m3→P1 (CF above)",
                90,
                3,
            ),
        ),
        RuleSpec(
            RuleId.UPBEAT_CONSONANCE,
            _all("Upbeat Consonance", "Upbeats (beat 3) must always be consonant", 100, 4),
            _consonance,
        ),
        RuleSpec(
            RuleId.SUSPENSION_RESOLUTION,
            _all("Suspension Resolution", "Dissonances on downbeat must resolve down by step", 100, 4),
        ),
    )
}

# Display order of each species' catalog.
SPECIES_RULE_ORDER: Dict[int, Tuple[RuleId, ...]] = {
    1: (
        RuleId.NO_PARALLEL_FIFTHS,
        RuleId.NO_DIRECT_FIFTHS,
        RuleId.PREFER_CONTRARY_MOTION,
        RuleId.PREFER_STEPWISE_MOTION,
        RuleId.CONSONANT_INTERVALS_ONLY,
        RuleId.NO_FORBIDDEN_INTERVALS,
        RuleId.LEAP_RECOVERY,
        RuleId.NO_EXPOSED_TRITONE,
        RuleId.AVOID_CONSECUTIVE_LEAPS,
        RuleId.AVOID_REPETITIONS,
        RuleId.FINAL_CADENCE,
    ),
    2: (
        RuleId.NO_PARALLEL_FIFTHS,
        RuleId.NO_DIRECT_FIFTHS,
        RuleId.PREFER_CONTRARY_MOTION,
        RuleId.PREFER_STEPWISE_MOTION,
        RuleId.DOWNBEAT_CONSONANCE,
        RuleId.ALLOW_PASSING_TONES,
        RuleId.NO_FORBIDDEN_INTERVALS,
        RuleId.LEAP_RECOVERY,
        RuleId.NO_EXPOSED_TRITONE,
        RuleId.AVOID_CONSECUTIVE_LEAPS,
        RuleId.AVOID_REPETITIONS,
        RuleId.FINAL_CADENCE,
    ),
    3: (
        RuleId.NO_PARALLEL_FIFTHS,
        RuleId.NO_DIRECT_FIFTHS,
        RuleId.PREFER_CONTRARY_MOTION,
        RuleId.PREFER_STEPWISE_MOTION,
        RuleId.BEAT_ONE_CONSONANCE,
        RuleId.BEAT_THREE_CONSONANCE,
        RuleId.ALLOW_PASSING_TONES,
        RuleId.ALLOW_CAMBIATA,
        RuleId.PENULTIMATE_CADENCE,
        RuleId.NO_FORBIDDEN_INTERVALS,
        RuleId.LEAP_RECOVERY,
        RuleId.NO_EXPOSED_TRITONE,
        RuleId.AVOID_CONSECUTIVE_LEAPS,
        RuleId.AVOID_REPETITIONS,
        RuleId.FINAL_CADENCE,
    ),
    4: (
        RuleId.NO_PARALLEL_FIFTHS,
        RuleId.NO_DIRECT_FIFTHS,
        RuleId.PREFER_CONTRARY_MOTION,
        RuleId.PREFER_STEPWISE_MOTION,
        RuleId.UPBEAT_CONSONANCE,
        RuleId.SUSPENSION_RESOLUTION,
        RuleId.NO_FORBIDDEN_INTERVALS,
        RuleId.LEAP_RECOVERY,
        RuleId.NO_EXPOSED_TRITONE,
        RuleId.AVOID_CONSECUTIVE_LEAPS,
        RuleId.AVOID_REPETITIONS,
        RuleId.FINAL_CADENCE,
    ),
}


def _check_species(species: int) -> None:
    if species not in SUPPORTED_SPECIES:
        raise ValueError(f"No rule catalog for species {species}")


def get_rules_for_species(species: int) -> Tuple[RuleConfig, ...]:
    """Return the default rule configuration for ``species`` (1-4)."""

    _check_species(species)
    configs = []
    for rule_id in SPECIES_RULE_ORDER[species]:
        wording = RULE_CATALOG[rule_id].species[species]
        configs.append(RuleConfig(rule_id, wording.name, wording.description, wording.weight))
    return tuple(configs)


def apply_rule_weights(
    species: int,
    overrides: Optional[Mapping[str, int]] = None,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> Tuple[RuleConfig, ...]:
    """Return ``rules`` (default: the species catalog) with weights replaced.

    Parameters
    ----------
    species:
        Species number whose catalog is used when ``rules`` is ``None``.
    overrides:
        Mapping of rule id (``"noDirectFifths"`` or :class:`RuleId`) to a new
        weight. Ids not present in the rule list are rejected.

    Raises
    ------
    ValueError
        For unknown rule ids or weights outside ``0-100``.
    """

    base = tuple(rules) if rules is not None else get_rules_for_species(species)
    if not overrides:
        return base

    by_id = {rule.id: rule for rule in base}
    updated: Dict[RuleId, RuleConfig] = {}
    for raw_id, weight in overrides.items():
        try:
            rule_id = RuleId(raw_id)
        except ValueError:
            raise ValueError(f"Unknown rule id: {raw_id}") from None
        if rule_id not in by_id:
            raise ValueError(f"Rule {rule_id.value} does not apply to species {species}")
        if not isinstance(weight, int) or isinstance(weight, bool) or not 0 <= weight <= 100:
            raise ValueError(f"Weight for {rule_id.value} must be an integer between 0 and 100")
        updated[rule_id] = replace(by_id[rule_id], weight=weight)
    return tuple(updated.get(rule.id, rule) for rule in base)


def rule_weight(rules: Iterable[RuleConfig], rule_id: RuleId) -> int:
    """Return the weight of ``rule_id``; rules not listed count as hard (100)."""

    for rule in rules:
        if rule.id == rule_id:
            return rule.weight
    return HARD_WEIGHT


def rule_name(rules: Iterable[RuleConfig], rule_id: RuleId, default: str) -> str:
    for rule in rules:
        if rule.id == rule_id:
            return rule.name
    return default


def evaluate_rule(rule_id: RuleId, transition: Transition) -> Optional[RuleCheck]:
    """Evaluate a catalog rule on ``transition``.

    Returns ``None`` when the rule has no transition predicate or does not
    apply yet (for example parallel motion on the very first note).
    """

    evaluate = RULE_CATALOG[rule_id].evaluate
    if evaluate is None:
        return None
    return evaluate(transition)


def violates_hard_rules(
    transition: Transition,
    rules: Sequence[RuleConfig],
    rule_ids: Iterable[RuleId],
) -> bool:
    """Return ``True`` if a weight-100 rule among ``rule_ids`` fails."""

    for rule_id in rule_ids:
        if rule_weight(rules, rule_id) < HARD_WEIGHT:
            continue
        check = evaluate_rule(rule_id, transition)
        if check is not None and not check.passed:
            return True
    return False


def score_candidate(
    transition: Transition,
    rules: Sequence[RuleConfig],
    rule_ids: Iterable[RuleId],
    baseline: float = BASELINE_SCORE,
) -> float:
    """Return ``baseline`` minus the damped weight of every failing rule.

    Hard rules are expected to have been filtered already, but a failing
    weight-100 rule is still penalised in full so the function is safe to
    call on unfiltered candidates.
    """

    score = baseline
    for rule_id in rule_ids:
        weight = rule_weight(rules, rule_id)
        if weight <= 0:
            continue
        check = evaluate_rule(rule_id, transition)
        if check is not None and not check.passed:
            scale = 1.0 if weight >= HARD_WEIGHT else RULE_CATALOG[rule_id].penalty_scale
            score -= weight * scale
    return score


def order_candidates(
    scored: Iterable[Tuple[str, float]],
    rng: Optional[random.Random] = None,
) -> List[str]:
    """Return pitches by descending score, shuffled within equal scores.

    The shuffle is the only source of variety in the backtracking
    generators; pass a seeded ``rng`` for reproducible output.
    """

    rng = rng or random
    groups: Dict[float, List[str]] = {}
    for pitch, score in scored:
        groups.setdefault(score, []).append(pitch)

    ordered: List[str] = []
    for score in sorted(groups, reverse=True):
        group = groups[score]
        rng.shuffle(group)
        ordered.extend(group)
    return ordered

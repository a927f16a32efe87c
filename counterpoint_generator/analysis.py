"""Read-only diagnostics for finished counterpoint.

The analyzers walk a (cantus firmus, counterpoint) pairing and re-run the
rule predicates from :mod:`counterpoint_generator.rules` on every note,
soft rules included, producing one :class:`NoteAnalysis` per note. Rules
whose weight is ``0`` are treated as switched off and not reported.

Nothing here feeds back into generation; calling an analyzer twice on the
same input yields equal results.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from .note_utils import Note, get_interval, interval_name
from .rules import (
    RULE_CATALOG,
    RuleCheck,
    RuleConfig,
    RuleId,
    check_cambiata,
    check_consecutive_leaps_same_direction,
    check_consonance,
    check_contrary_motion,
    check_direct_fifths,
    check_exposed_tritone,
    check_final_cadence,
    check_forbidden_interval,
    check_leap_recovery,
    check_opening,
    check_parallel_fifths,
    check_passing_tone,
    check_penultimate_approach,
    check_repetition,
    check_stepwise_motion,
    check_suspension_resolution,
    get_rules_for_species,
    rule_name,
    rule_weight,
)

__all__ = [
    "RuleResult",
    "NoteAnalysis",
    "GenerationAnalysis",
    "species_label",
    "analyze_first_species",
    "analyze_second_species",
    "analyze_third_species",
    "analyze_fourth_species",
    "analyze_counterpoint",
]

_ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th"}

LineInput = Sequence[Union[Note, str]]


def species_label(species: int) -> str:
    """Return ``"1st"``, ``"2nd"`` ... for ``species``."""

    return _ORDINALS.get(species, f"{species}th")


@dataclass(frozen=True)
class RuleResult:
    rule_id: RuleId
    rule_name: str
    passed: bool
    message: str


@dataclass(frozen=True)
class NoteAnalysis:
    """Diagnostics for one counterpoint note.

    ``beat`` is the position inside the measure, starting at ``1``.
    """

    note_index: int
    cf_pitch: str
    cp_pitch: str
    interval: str
    beat: int = 1
    rule_results: Tuple[RuleResult, ...] = ()

    @property
    def violations(self) -> int:
        return sum(1 for r in self.rule_results if not r.passed)


@dataclass(frozen=True)
class GenerationAnalysis:
    species: int
    note_analyses: Tuple[NoteAnalysis, ...] = ()

    @property
    def violations(self) -> int:
        return sum(a.violations for a in self.note_analyses)

    @property
    def summary(self) -> str:
        label = species_label(self.species)
        count = self.violations
        if count == 0:
            return f"All rules followed ({label} species)"
        return f"{count} rule violation{'' if count == 1 else 's'} ({label} species)"


class _Collector:
    """Accumulate rule results for a single note."""

    def __init__(self, rules: Sequence[RuleConfig]) -> None:
        self.rules = rules
        self.results: List[RuleResult] = []

    def add(self, rule_id: RuleId, check: Optional[RuleCheck]) -> None:
        if check is None or rule_weight(self.rules, rule_id) <= 0:
            return
        self.results.append(RuleResult(rule_id, self._name(rule_id), check.passed, check.message))

    def _name(self, rule_id: RuleId) -> str:
        fallback = next(iter(RULE_CATALOG[rule_id].species.values())).name
        return rule_name(self.rules, rule_id, fallback)

    def frame(self, prev_cf: str, cf: str, prev_cp: str, cp: str) -> None:
        """Two-voice motion between consecutive structural notes."""

        self.add(RuleId.NO_PARALLEL_FIFTHS, check_parallel_fifths(prev_cf, cf, prev_cp, cp))
        self.add(RuleId.NO_DIRECT_FIFTHS, check_direct_fifths(prev_cf, cf, prev_cp, cp))
        self.add(RuleId.PREFER_CONTRARY_MOTION, check_contrary_motion(prev_cf, cf, prev_cp, cp))

    def melodic(self, line: Sequence[str], index: int) -> None:
        """Melodic rules for ``line[index]`` against the notes before it."""

        if index == 0:
            return
        prev, pitch = line[index - 1], line[index]
        recent = line[max(0, index - 3):index]
        self.add(RuleId.NO_FORBIDDEN_INTERVALS, check_forbidden_interval(prev, pitch))
        self.add(RuleId.PREFER_STEPWISE_MOTION, check_stepwise_motion(prev, pitch))
        self.add(RuleId.AVOID_REPETITIONS, check_repetition(prev, pitch))
        if index >= 2:
            self.add(RuleId.LEAP_RECOVERY, check_leap_recovery(line[index - 2], prev, pitch))
            self.add(RuleId.NO_EXPOSED_TRITONE, check_exposed_tritone(recent, pitch))
            self.add(
                RuleId.AVOID_CONSECUTIVE_LEAPS,
                check_consecutive_leaps_same_direction(recent, pitch),
            )

    def cadence(self, measure: int, last: int, cf: str, cp: str) -> None:
        if measure == 0:
            self.add(RuleId.FINAL_CADENCE, check_opening(cf, cp))
        if measure == last:
            self.add(RuleId.FINAL_CADENCE, check_final_cadence(cf, cp))

    def build(self, index: int, cf: str, cp: str, beat: int = 1) -> NoteAnalysis:
        return NoteAnalysis(
            index,
            cf,
            cp,
            interval_name(get_interval(cf, cp)),
            beat,
            tuple(self.results),
        )


def _pitches(notes: LineInput) -> List[str]:
    return [n.pitch if isinstance(n, Note) else str(n) for n in notes]


def _resolve_rules(species: int, rules: Optional[Sequence[RuleConfig]]) -> Sequence[RuleConfig]:
    return tuple(rules) if rules is not None else get_rules_for_species(species)


def analyze_first_species(
    cantus_firmus: LineInput,
    counterpoint: LineInput,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> GenerationAnalysis:
    cf = _pitches(cantus_firmus)
    cp = _pitches(counterpoint)
    rules = _resolve_rules(1, rules)
    last = min(len(cf), len(cp)) - 1

    analyses = []
    for i in range(last + 1):
        col = _Collector(rules)
        col.add(RuleId.CONSONANT_INTERVALS_ONLY, check_consonance(cf[i], cp[i]))
        if i > 0:
            col.frame(cf[i - 1], cf[i], cp[i - 1], cp[i])
        col.melodic(cp, i)
        col.cadence(i, last, cf[i], cp[i])
        analyses.append(col.build(i, cf[i], cp[i]))
    return GenerationAnalysis(1, tuple(analyses))


def analyze_second_species(
    cantus_firmus: LineInput,
    counterpoint: LineInput,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> GenerationAnalysis:
    """Analyse a downbeat/upbeat line; the final upbeat is a held note."""

    cf = _pitches(cantus_firmus)
    cp = _pitches(counterpoint)
    rules = _resolve_rules(2, rules)
    last = min(len(cf), len(cp) // 2) - 1

    analyses = []
    for m in range(last + 1):
        d_index, u_index = 2 * m, 2 * m + 1
        downbeat, upbeat = cp[d_index], cp[u_index]

        col = _Collector(rules)
        col.add(RuleId.DOWNBEAT_CONSONANCE, check_consonance(cf[m], downbeat))
        if m > 0:
            col.frame(cf[m - 1], cf[m], cp[d_index - 2], downbeat)
        col.melodic(cp, d_index)
        col.cadence(m, last, cf[m], downbeat)
        analyses.append(col.build(d_index, cf[m], downbeat, beat=1))

        col = _Collector(rules)
        if m == last:
            col.add(RuleId.DOWNBEAT_CONSONANCE, check_consonance(cf[m], upbeat))
        else:
            following = cp[u_index + 1]
            col.add(RuleId.ALLOW_PASSING_TONES, check_passing_tone(cf[m], downbeat, upbeat, following))
            col.melodic(cp, u_index)
        analyses.append(col.build(u_index, cf[m], upbeat, beat=2))
    return GenerationAnalysis(2, tuple(analyses))


def analyze_third_species(
    cantus_firmus: LineInput,
    counterpoint: LineInput,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> GenerationAnalysis:
    """Analyse four notes per measure; the final measure holds beat 1."""

    cf = _pitches(cantus_firmus)
    cp = _pitches(counterpoint)
    rules = _resolve_rules(3, rules)
    last = min(len(cf), len(cp) // 4) - 1

    analyses = []
    for m in range(last + 1):
        base = 4 * m
        beats = cp[base:base + 4]

        col = _Collector(rules)
        col.add(RuleId.BEAT_ONE_CONSONANCE, check_consonance(cf[m], beats[0]))
        if m > 0:
            col.frame(cf[m - 1], cf[m], cp[base - 4], beats[0])
        col.melodic(cp, base)
        col.cadence(m, last, cf[m], beats[0])
        if m == last - 1:
            col.add(RuleId.PENULTIMATE_CADENCE, check_penultimate_approach(cf[m], beats[0]))
        analyses.append(col.build(base, cf[m], beats[0], beat=1))

        for offset in (1, 2, 3):
            index = base + offset
            pitch = cp[index]
            col = _Collector(rules)
            if m == last:
                analyses.append(col.build(index, cf[m], pitch, beat=offset + 1))
                continue

            following = cp[index + 1]
            if offset == 2:
                col.add(RuleId.BEAT_THREE_CONSONANCE, check_consonance(cf[m], pitch))
            else:
                passing = check_passing_tone(cf[m], cp[index - 1], pitch, following)
                if offset == 1 and not passing.passed:
                    cambiata = check_cambiata(cf[m], *beats)
                    if cambiata.passed:
                        col.add(RuleId.ALLOW_CAMBIATA, cambiata)
                        col.melodic(cp, index)
                        analyses.append(col.build(index, cf[m], pitch, beat=offset + 1))
                        continue
                col.add(RuleId.ALLOW_PASSING_TONES, passing)
            col.melodic(cp, index)
            analyses.append(col.build(index, cf[m], pitch, beat=offset + 1))
    return GenerationAnalysis(3, tuple(analyses))


def analyze_fourth_species(
    cantus_firmus: LineInput,
    counterpoint: LineInput,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> GenerationAnalysis:
    """Analyse a syncopated line.

    Each downbeat is the previous upbeat tied over and is judged only as a
    suspension; the first downbeat carries no checks. Upbeats are judged as
    a first species line of their own.
    """

    cf = _pitches(cantus_firmus)
    cp = _pitches(counterpoint)
    rules = _resolve_rules(4, rules)
    last = min(len(cf), len(cp) // 2) - 1
    upbeats = cp[1::2]

    analyses = []
    for m in range(last + 1):
        d_index, u_index = 2 * m, 2 * m + 1
        tied, upbeat = cp[d_index], cp[u_index]

        col = _Collector(rules)
        if m > 0:
            col.add(RuleId.SUSPENSION_RESOLUTION, check_suspension_resolution(cf[m], tied, upbeat))
        analyses.append(col.build(d_index, cf[m], tied, beat=1))

        col = _Collector(rules)
        col.add(RuleId.UPBEAT_CONSONANCE, check_consonance(cf[m], upbeat))
        if m > 0:
            col.frame(cf[m - 1], cf[m], upbeats[m - 1], upbeat)
        col.melodic(upbeats, m)
        col.cadence(m, last, cf[m], upbeat)
        analyses.append(col.build(u_index, cf[m], upbeat, beat=2))
    return GenerationAnalysis(4, tuple(analyses))


_ANALYZERS = {
    1: analyze_first_species,
    2: analyze_second_species,
    3: analyze_third_species,
    4: analyze_fourth_species,
}


def analyze_counterpoint(
    species: int,
    cantus_firmus: LineInput,
    counterpoint: LineInput,
    rules: Optional[Sequence[RuleConfig]] = None,
) -> GenerationAnalysis:
    """Dispatch to the analyzer for ``species``.

    Raises
    ------
    ValueError
        If ``species`` is not between 1 and 4.
    """

    try:
        analyzer = _ANALYZERS[species]
    except KeyError:
        raise ValueError(f"No analyzer for species {species}") from None
    return analyzer(cantus_firmus, counterpoint, rules)

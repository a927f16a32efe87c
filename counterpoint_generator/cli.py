"""Command line helpers for Counterpoint Generator.

This module implements the console entry point. :func:`run_cli` parses the
arguments, generates (or reads) a cantus firmus, writes counterpoint against
it and prints the note-by-note analysis. Defaults for species, mode, finalis,
voice placement, tempo and rule weights are read from the JSON settings file
so frequently used options need not be repeated.

Example
-------
Running ``python -m counterpoint_generator --species 2 --mode dorian \
    --finalis D --seed 7 --output exercise.mid`` generates a Dorian cantus
firmus, adds second species counterpoint above it and saves both voices to
``exercise.mid``.

Every failure (bad option, invalid cantus firmus, unsupported species or an
exhausted search) is logged with ``logging.error`` and ends the process with
exit status ``1``.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, NoReturn, Optional

from .modes import FINALIS_OPTIONS, MODE_NAMES, Mode, canonical_finalis, canonical_mode
from .utils import validate_cantus_firmus_notes

__all__ = ["build_parser", "parse_rule_overrides", "run_cli", "main"]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Generate species counterpoint against a cantus firmus."
    )
    parser.add_argument("--species", type=int, choices=[1, 2, 3, 4, 5], help="Species to write (1-4; 5 is not implemented).")
    parser.add_argument("--cantus", type=str, help="Comma-separated cantus firmus (e.g. D4,F4,E4,D4). Generated when omitted.")
    parser.add_argument("--measures", type=int, help="Length of a generated cantus firmus (8-14, random when omitted).")
    parser.add_argument("--mode", type=str, help="Church mode (e.g. dorian).")
    parser.add_argument("--finalis", type=str, help=f"Modal final, one of {', '.join(FINALIS_OPTIONS)}.")
    parser.add_argument("--below", action="store_true", help="Write the counterpoint below the cantus firmus.")
    parser.add_argument(
        "--rule",
        action="append",
        default=[],
        metavar="ID=WEIGHT",
        help="Override a rule weight (0-100); may be repeated.",
    )
    parser.add_argument("--seed", type=int, help="Random seed for reproducible output")
    parser.add_argument("--output", type=str, help="Write both voices to this MIDI file.")
    parser.add_argument("--bpm", type=int, help="Tempo in half-note beats per minute (default: 60).")
    parser.add_argument("--settings-file", type=str, help="Path to the JSON settings file")
    parser.add_argument("--list-rules", action="store_true", help="List the rules of the selected species and exit")
    parser.add_argument("--list-modes", action="store_true", help="List all supported modes and exit")
    return parser


def parse_rule_overrides(entries: List[str]) -> Dict[str, int]:
    """Turn ``["noDirectFifths=40"]`` into ``{"noDirectFifths": 40}``.

    Raises
    ------
    ValueError
        If an entry is not of the form ``ID=WEIGHT`` with an integer weight.
    """

    overrides: Dict[str, int] = {}
    for entry in entries:
        rule_id, sep, weight = entry.partition("=")
        if not sep or not rule_id.strip():
            raise ValueError(f"Rule override must look like ID=WEIGHT: {entry}")
        try:
            overrides[rule_id.strip()] = int(weight)
        except ValueError:
            raise ValueError(f"Rule weight must be an integer: {entry}") from None
    return overrides


def _fail(message: str) -> NoReturn:
    logging.error(message)
    sys.exit(1)


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Parse CLI arguments, generate an exercise and report the analysis."""

    from . import (
        DEFAULT_FINALIS,
        DEFAULT_MODE,
        DEFAULT_SETTINGS_FILE,
        apply_rule_weights,
        create_midi_file,
        generate_exercise,
        get_rules_for_species,
        load_settings,
        rule_weights_from_settings,
    )

    args = build_parser().parse_args(argv)

    settings_path = Path(args.settings_file).expanduser() if args.settings_file else DEFAULT_SETTINGS_FILE
    settings = load_settings(settings_path)

    if args.list_modes:
        print("\n".join(f"{mode.value}\t{MODE_NAMES[mode]}" for mode in Mode))
        return

    species = args.species if args.species is not None else settings.get("species", 1)

    if args.list_rules:
        if species == 5:
            _fail("5th species (free counterpoint) has no rule catalog.")
        for rule in get_rules_for_species(species):
            print(f"{rule.id.value}\t{rule.weight}\t{rule.name}")
        return

    try:
        mode = canonical_mode(args.mode or settings.get("mode", DEFAULT_MODE))
        finalis = canonical_finalis(args.finalis or settings.get("finalis", DEFAULT_FINALIS))
    except ValueError as exc:
        _fail(str(exc))

    bpm = args.bpm if args.bpm is not None else settings.get("bpm", 60)
    if bpm <= 0:
        _fail("BPM must be a positive integer.")
    if args.measures is not None and not 8 <= args.measures <= 14:
        _fail("Number of measures must be between 8 and 14.")

    above = not args.below if args.below else settings.get("above", True)

    overrides: Dict[str, int] = {}
    if species != 5:
        try:
            overrides = rule_weights_from_settings(settings, species)
            overrides.update(parse_rule_overrides(args.rule))
            apply_rule_weights(species, overrides)
        except ValueError as exc:
            _fail(str(exc))

    cantus = None
    if args.cantus:
        cantus = [p.strip() for p in args.cantus.split(",") if p.strip()]
        valid, errors = validate_cantus_firmus_notes(cantus)
        if not valid:
            for error in errors:
                logging.error(error)
            sys.exit(1)

    try:
        exercise = generate_exercise(
            species,
            cantus,
            measures=args.measures,
            mode=mode,
            finalis=finalis,
            above=above,
            rule_weights=overrides,
            seed=args.seed,
        )
    except ValueError as exc:
        _fail(str(exc))

    print("Cantus firmus: " + " ".join(n.pitch for n in exercise.cantus_firmus))
    result = exercise.result
    if not result.success:
        _fail(result.error or "Generation failed")

    print("Counterpoint:  " + " ".join(n.pitch for n in result.notes))
    for entry in result.analysis.note_analyses:
        checks = "; ".join(
            f"{'ok' if r.passed else 'FAIL'} {r.rule_name}: {r.message}"
            for r in entry.rule_results
        )
        print(f"{entry.note_index + 1:>3} {entry.cf_pitch:<4} {entry.cp_pitch:<4} {entry.interval:<4} {checks}")
    print(result.analysis.summary)

    if args.output:
        try:
            create_midi_file(exercise.cantus_firmus, result.notes, args.output, bpm)
        except OSError as exc:
            _fail(f"Could not write MIDI file: {exc}")
    logging.info("Counterpoint generation complete.")


def main() -> None:
    """Console script entry point."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    run_cli()

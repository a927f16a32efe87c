"""Counterpoint Generator library.

This package writes and checks two-voice species counterpoint. A typical
workflow is to call :func:`generate_cantus_firmus` for a modal melody (or
supply one), pass it to :func:`generate_counterpoint` together with a species
number and read the notes and diagnostics from the returned
:class:`GenerationResult`. :func:`create_midi_file` renders both voices to
MIDI.

Underlying Algorithm
--------------------
Every species generator runs a depth-first backtracking search over the
structural notes of the counterpoint (one per cantus firmus note). At each
position the candidate pitches are filtered by the hard rules (weight 100),
scored by the soft rules and tried best first; candidates with the same score
are shuffled so repeated runs differ. Species 2 and 3 then fill the notes
between downbeats measure by measure::

    for index in range(len(cantus_firmus)):
        candidates = consonant_pitches(cf[index]) - hard_rule_failures
        for pitch in sorted_by_score_with_shuffled_ties(candidates):
            line.append(pitch)
            if search(index + 1):
                return line
            line.pop()

The analysis pass afterwards re-runs every rule on the finished line and
never changes it.

Features include:
- Cantus firmus synthesis in six church modes with a single climax.
- First to fourth species generation above or below the cantus firmus.
- Rule weights from 0 to 100 that turn rules into hard or soft constraints.
- Per-note rule diagnostics with a one line summary.
- MIDI import/export, batch generation and a command line interface.
"""

__version__ = "0.1.0"

# ---------------------------------------------------------------
# Modification Summary
# ---------------------------------------------------------------
# * Settings persist as JSON at ``~/.counterpoint_generator_settings.json``
#   unless ``COUNTERPOINT_SETTINGS_FILE`` points elsewhere.
# * ``generate_exercise`` builds a cantus firmus when none is supplied and
#   applies per-rule weight overrides before generating counterpoint.
# * Species 5 is accepted by ``generate_counterpoint`` and
#   ``generate_exercise`` but returns a failed result.
# ---------------------------------------------------------------

import json
import logging
import os
import random
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple, Union

from .note_utils import (  # noqa: F401
    DEFAULT_PITCH,
    Duration,
    Note,
    get_interval,
    interval_name,
    is_consonant,
    is_dissonant,
    is_perfect_consonance,
    number_to_pitch,
    parse_pitch,
    pitch_to_number,
)
from .modes import (  # noqa: F401
    DEFAULT_FINALIS,
    DEFAULT_MODE,
    FINALIS_OPTIONS,
    MODE_NAMES,
    Mode,
    canonical_finalis,
    canonical_mode,
    scale_pitches,
)
from .rules import (  # noqa: F401
    RuleConfig,
    RuleId,
    apply_rule_weights,
    get_rules_for_species,
)
from .analysis import GenerationAnalysis, NoteAnalysis, RuleResult, analyze_counterpoint  # noqa: F401
from .cantus_firmus import MAX_CF_ATTEMPTS, generate_cantus_firmus, is_valid_cantus_firmus  # noqa: F401
from .species import (  # noqa: F401
    MAX_PITCH,
    MAX_SEARCH_STEPS,
    MIN_PITCH,
    FailureKind,
    GenerationResult,
    generate_counterpoint,
    generate_first_species,
    generate_fourth_species,
    generate_second_species,
    generate_third_species,
)

# Default path for storing user preferences. The file lives in the user's
# home directory so settings persist between runs.
env_path = os.environ.get("COUNTERPOINT_SETTINGS_FILE")
if env_path:
    DEFAULT_SETTINGS_FILE = Path(env_path).expanduser()
else:
    DEFAULT_SETTINGS_FILE = Path.home() / ".counterpoint_generator_settings.json"

SUPPORTED_SPECIES = (1, 2, 3, 4, 5)


def load_settings(path: Path = DEFAULT_SETTINGS_FILE) -> dict:
    """Load saved user settings from ``path`` if it exists.

    Returns an empty dictionary when the file is missing or unreadable.
    """

    if path.is_file():
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except (OSError, ValueError) as exc:
            logging.error(f"Could not load settings: {exc}")
    return {}


def save_settings(settings: dict, path: Path = DEFAULT_SETTINGS_FILE) -> None:
    """Save user ``settings`` to ``path`` as JSON.

    Failures are logged and ignored so saving preferences never prevents
    generation.
    """

    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, indent=2)
    except (OSError, TypeError) as exc:
        logging.error(f"Could not save settings: {exc}")


def rule_weights_from_settings(settings: Mapping, species: int) -> dict:
    """Return the ``{rule_id: weight}`` overrides stored for ``species``."""

    stored = settings.get("rule_weights") or {}
    return dict(stored.get(str(species)) or {})


@dataclass(frozen=True)
class Exercise:
    """A cantus firmus together with the counterpoint generated against it."""

    species: int
    cantus_firmus: Tuple[Note, ...]
    result: GenerationResult


def generate_exercise(
    species: int = 1,
    cantus_firmus: Optional[Sequence[Union[Note, str]]] = None,
    *,
    measures: Optional[int] = None,
    mode: Union[Mode, str] = DEFAULT_MODE,
    finalis: str = DEFAULT_FINALIS,
    above: bool = True,
    rule_weights: Optional[Mapping[str, int]] = None,
    seed: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> Exercise:
    """Generate a complete exercise in one call.

    Parameters
    ----------
    species:
        Species number ``1``-``5``. Species 5 yields a failed result.
    cantus_firmus:
        Existing cantus firmus. When ``None`` one is generated from
        ``measures``, ``mode`` and ``finalis``.
    above:
        Place the counterpoint above (``True``) or below the cantus firmus.
    rule_weights:
        Optional ``{rule_id: weight}`` overrides applied to the species'
        default catalog.
    seed, rng:
        ``seed`` creates a private ``random.Random``; otherwise ``rng`` (or
        the global :mod:`random` module) is used.

    Raises
    ------
    ValueError
        For unknown species, modes, finales, measure counts or rule ids.
    """

    if species not in SUPPORTED_SPECIES:
        raise ValueError(f"Unknown species: {species}")
    if seed is not None:
        rng = random.Random(seed)

    if cantus_firmus is None:
        cf = generate_cantus_firmus(measures, mode, finalis, rng=rng)
    else:
        cf = tuple(n if isinstance(n, Note) else Note(str(n)) for n in cantus_firmus)

    rules = apply_rule_weights(species, rule_weights) if species != 5 else None
    result = generate_counterpoint(species, cf, above, rules, mode, finalis, rng=rng)
    return Exercise(species, cf, result)


from . import midi_io  # noqa: E402,F401
from .midi_io import create_midi_file, parse_midi_file  # noqa: E402,F401


def run_cli():
    from .cli import run_cli as _run_cli
    _run_cli()


def main():
    from .cli import main as _main
    _main()


if __name__ == "__main__":
    main()

"""Utilities for writing and reading two-voice exercises as MIDI files.

Modification summary
--------------------
* ``create_midi_file`` writes one track per voice ("Cantus Firmus" and
  "Counterpoint") and treats the half note as the beat, so at 60 BPM a whole
  note lasts two seconds and a half note one second.
* ``create_midi_file`` creates the destination directory automatically and
  validates ``bpm`` so invalid tempos are caught before any events are built.
* ``parse_midi_file`` reports problems through its returned error list
  instead of raising, so an unreadable upload never interrupts the caller.
* Imports from ``mido`` are deferred inside each function so the module can
  load even when the dependency is missing.

The generators themselves know nothing about MIDI; this module sits at the
edge and converts plain note sequences to and from ``mido`` objects.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, List, Sequence, Tuple, Union

if TYPE_CHECKING:
    from mido import MidiFile

from .note_utils import Duration, Note, number_to_pitch, pitch_to_number
from .utils import duration_to_beats

__all__ = [
    "create_midi_file",
    "parse_midi_file",
    "TRACK_NAMES",
    "TICKS_PER_BEAT",
    "VELOCITY",
]

TICKS_PER_BEAT = 480

# Roughly 80% of the maximum MIDI velocity.
VELOCITY = 100

TRACK_NAMES = ("Cantus Firmus", "Counterpoint")

# Beat unit passed to ``duration_to_beats``: the half note carries the beat.
_HALF_NOTE_BEAT = 2


def _import_mido():
    try:
        import mido
    except ModuleNotFoundError as exc:
        raise ImportError(
            "mido is required for MIDI import/export; install it with 'pip install mido'"
        ) from exc
    return mido


def _note_ticks(duration: Duration) -> int:
    return int(round(duration_to_beats(duration, _HALF_NOTE_BEAT) * TICKS_PER_BEAT))


def _voice_track(mido, name: str, notes: Sequence[Note], channel: int):
    track = mido.MidiTrack()
    track.append(mido.MetaMessage("track_name", name=name, time=0))
    for note in notes:
        number = pitch_to_number(note.pitch)
        track.append(mido.Message("note_on", note=number, velocity=VELOCITY, channel=channel, time=0))
        track.append(
            mido.Message(
                "note_off",
                note=number,
                velocity=0,
                channel=channel,
                time=_note_ticks(note.duration),
            )
        )
    return track


def create_midi_file(
    cantus_firmus: Sequence[Note],
    counterpoint: Sequence[Note],
    output_file: Union[str, Path],
    bpm: int = 60,
) -> "MidiFile":
    """Write both voices to ``output_file`` and return the ``MidiFile``.

    Parameters
    ----------
    cantus_firmus, counterpoint:
        Note sequences for the two voices. Either may be empty, in which
        case its track only carries the name.
    output_file:
        Destination path. Missing parent directories are created.
    bpm:
        Tempo in half-note beats per minute.

    Raises
    ------
    ValueError
        If ``bpm`` is not positive.
    ImportError
        If ``mido`` is not installed.
    """

    mido = _import_mido()
    if bpm <= 0:
        raise ValueError("bpm must be a positive integer")

    mid = mido.MidiFile(type=1, ticks_per_beat=TICKS_PER_BEAT)
    cf_track = _voice_track(mido, TRACK_NAMES[0], cantus_firmus, channel=0)
    cf_track.insert(1, mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(bpm), time=0))
    mid.tracks.append(cf_track)
    mid.tracks.append(_voice_track(mido, TRACK_NAMES[1], counterpoint, channel=1))

    path = Path(output_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    mid.save(str(path))
    logging.debug("Wrote %s", path)
    return mid


def parse_midi_file(path: Union[str, Path]) -> Tuple[List[Note], List[str]]:
    """Read a cantus firmus from the first track of ``path`` that has notes.

    Every note is returned as a whole note. Problems are reported in the
    second element of the returned tuple instead of being raised.
    """

    mido = _import_mido()
    try:
        mid = mido.MidiFile(str(path))
    except (OSError, EOFError, ValueError) as exc:
        logging.error("Could not read MIDI file %s: %s", path, exc)
        return [], [f"Failed to parse MIDI file: {exc}"]

    if not mid.tracks:
        return [], ["No tracks found in MIDI file"]

    for track in mid.tracks:
        numbers = [
            msg.note
            for msg in track
            if msg.type == "note_on" and msg.velocity > 0
        ]
        if numbers:
            return [Note(number_to_pitch(n), Duration.WHOLE) for n in numbers], []

    return [], ["No notes found in MIDI file"]

"""Command line interface tests.

``run_cli`` reads ``sys.argv`` so each test patches it with
``monkeypatch``. Every run points ``--settings-file`` at a temporary path so
the user's real settings never leak into the results. Failures must be
logged and end with ``SystemExit`` carrying a non-zero code.
"""

from __future__ import annotations

import importlib
import json
import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

pkg = importlib.import_module("counterpoint_generator")
cli = importlib.import_module("counterpoint_generator.cli")


def _argv(monkeypatch, tmp_path, *args):
    monkeypatch.setattr(
        sys,
        "argv",
        ["prog", "--settings-file", str(tmp_path / "settings.json"), *args],
    )


def test_first_species_run_prints_analysis(monkeypatch, tmp_path, capsys):
    out = tmp_path / "ex.mid"
    _argv(monkeypatch, tmp_path, "--cantus", "D4,F4,E4,D4", "--seed", "1", "--output", str(out))

    cli.run_cli()

    printed = capsys.readouterr().out
    assert "Cantus firmus: D4 F4 E4 D4" in printed
    assert "Counterpoint:" in printed
    assert "(1st species)" in printed
    assert out.exists()


def test_species_five_exits_with_error(monkeypatch, tmp_path, caplog):
    _argv(monkeypatch, tmp_path, "--species", "5", "--cantus", "D4,F4,E4,D4")

    with caplog.at_level(logging.ERROR):
        with pytest.raises(SystemExit) as exc:
            cli.run_cli()

    assert exc.value.code == 1
    assert "not yet implemented" in caplog.text


def test_list_modes(monkeypatch, tmp_path, capsys):
    _argv(monkeypatch, tmp_path, "--list-modes")
    cli.run_cli()
    printed = capsys.readouterr().out
    assert "dorian\tDorian" in printed
    assert len(printed.strip().splitlines()) == 6


def test_list_rules_for_species(monkeypatch, tmp_path, capsys):
    _argv(monkeypatch, tmp_path, "--species", "3", "--list-rules")
    cli.run_cli()
    printed = capsys.readouterr().out
    assert "allowCambiata\t100\tAllow Cambiata" in printed


def test_invalid_cantus_reports_every_error(monkeypatch, tmp_path, caplog):
    _argv(monkeypatch, tmp_path, "--cantus", "D4,X9,E4,C4")

    with pytest.raises(SystemExit):
        cli.run_cli()

    assert "not a valid pitch" in caplog.text
    assert "begin and end on the same note" in caplog.text


@pytest.mark.parametrize(
    "extra",
    [
        ["--rule", "noSuchRule=5"],
        ["--rule", "noDirectFifths"],
        ["--rule", "noDirectFifths=abc"],
        ["--mode", "locrian"],
        ["--finalis", "H"],
        ["--bpm", "0"],
        ["--measures", "30"],
    ],
)
def test_bad_options_exit(monkeypatch, tmp_path, extra):
    _argv(monkeypatch, tmp_path, *extra)
    with pytest.raises(SystemExit) as exc:
        cli.run_cli()
    assert exc.value.code == 1


def test_unwritable_output_exits(monkeypatch, tmp_path, caplog):
    """An ``OSError`` while saving is logged and ends the run."""

    def _write_file(*_a, **_k):
        raise OSError("permission denied")

    monkeypatch.setattr(pkg, "create_midi_file", _write_file)
    _argv(monkeypatch, tmp_path, "--cantus", "D4,F4,E4,D4", "--output", str(tmp_path / "x.mid"))

    with pytest.raises(SystemExit):
        cli.run_cli()
    assert "permission denied" in caplog.text


def test_settings_supply_defaults(monkeypatch, tmp_path, capsys):
    """Species and rule weights are read from the settings file."""

    settings = tmp_path / "settings.json"
    settings.write_text(
        json.dumps({"species": 2, "rule_weights": {"2": {"noDirectFifths": 0}}}),
        encoding="utf-8",
    )
    captured = {}

    def fake_generate(species, cantus, **kwargs):
        captured["species"] = species
        captured["weights"] = kwargs["rule_weights"]
        return pkg.Exercise(species, (), pkg.GenerationResult.fail("stop", pkg.FailureKind.INPUT))

    monkeypatch.setattr(pkg, "generate_exercise", fake_generate)
    _argv(monkeypatch, tmp_path)

    with pytest.raises(SystemExit):
        cli.run_cli()
    assert captured == {"species": 2, "weights": {"noDirectFifths": 0}}


def test_parse_rule_overrides():
    assert cli.parse_rule_overrides(["a=1", " b = 20"]) == {"a": 1, "b": 20}
    with pytest.raises(ValueError):
        cli.parse_rule_overrides(["=3"])

"""Tests for JSON settings persistence."""

import importlib
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

cg = importlib.import_module("counterpoint_generator")


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "prefs.json"
    settings = {"species": 3, "mode": "phrygian", "rule_weights": {"3": {"allowCambiata": 0}}}

    cg.save_settings(settings, path)

    assert cg.load_settings(path) == settings
    assert cg.rule_weights_from_settings(settings, 3) == {"allowCambiata": 0}
    assert cg.rule_weights_from_settings(settings, 1) == {}


def test_missing_file_yields_empty_settings(tmp_path):
    assert cg.load_settings(tmp_path / "absent.json") == {}


def test_corrupt_file_is_logged(tmp_path, caplog):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        assert cg.load_settings(path) == {}
    assert "Could not load settings" in caplog.text


def test_unserialisable_settings_are_logged(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        cg.save_settings({"bad": object()}, tmp_path / "out.json")
    assert "Could not save settings" in caplog.text


def test_default_settings_path_is_json():
    assert cg.DEFAULT_SETTINGS_FILE.suffix == ".json"

# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from nutriresolve.main import _build_parser, _overrides, _split, main


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # No .env from the working directory leaks into CLI runs
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------


class TestBuildParser:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            _build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_resolve_text(self):
        args = _build_parser().parse_args(
            ["resolve", "--text", "banana", "--diet", "vegan", "--diet", "keto", "--allergen", "nuts"]
        )
        assert args.command == "resolve"
        assert args.text == "banana"
        assert args.diet == ["vegan", "keto"]
        assert args.allergen == ["nuts"]

    def test_resolve_sources_exclusive(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["resolve", "--text", "a", "--barcode", "1"])
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["resolve"])

    def test_resolve_image_path(self):
        args = _build_parser().parse_args(["resolve", "--image", "plate.jpg"])
        assert args.image == Path("plate.jpg")

    def test_generate_defaults(self):
        args = _build_parser().parse_args(["generate"])
        assert (args.calories, args.protein, args.servings) == (500, 20, 2)
        assert args.seed is None

    def test_offline_overrides(self):
        args = _build_parser().parse_args(["--offline", "stats"])
        assert _overrides(args) == {
            "local_table_enabled": True,
            "usda_enabled": False,
            "off_enabled": False,
            "generative_enabled": False,
        }
        assert _overrides(_build_parser().parse_args(["stats"])) == {}

    def test_split(self):
        assert _split(" rice, ,beans ,") == ("rice", "beans")


# ---------------------------------------------------------------------------
# Commands (offline: local table only, no network)
# ---------------------------------------------------------------------------


class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_resolve_offline(self, capsys):
        assert main(["--offline", "resolve", "--text", "one banana"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["provenance"] == "structured-db"
        assert out["resolved_by"] == "local_table"
        assert out["totals"]["calories"] == 89

    def test_resolve_barcode_offline(self, capsys):
        assert main(["--offline", "resolve", "--barcode", "3017620422003"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["foods"][0]["name"] == "Nutella"
        assert out["confidence"] == 0.95

    def test_not_found_exit_code(self, capsys):
        assert main(["--offline", "resolve", "--text", "moon cheese"]) == 2
        assert json.loads(capsys.readouterr().out)["error"] == "not_found"

    def test_missing_image(self, tmp_path):
        assert main(["--offline", "resolve", "--image", str(tmp_path / "nope.jpg")]) == 1

    def test_generate_offline_falls_back(self, capsys):
        assert main(["--offline", "generate", "--diet", "keto", "--calories", "420"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["provider"] == "fallback"
        assert out["content"]["title"] == "Spinach and Herb Omelette"
        assert out["nutrition_summary"]["calories"] == 420
        assert len(out["fingerprint"]) == 64

    def test_stats(self, capsys):
        assert main(["--offline", "stats"]) == 0
        out = json.loads(capsys.readouterr().out)
        assert out["analysis"]["size"] == 0
        assert out["artifacts"]["name"] == "artifacts"

    def test_configuration_error(self, monkeypatch, capsys):
        monkeypatch.setenv("CACHE_BACKEND", "redis")
        assert main(["--offline", "stats"]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_invalid_setting_value(self, monkeypatch, capsys):
        monkeypatch.setenv("STRUCTURED_TIMEOUT_S", "-1")
        assert main(["--offline", "stats"]) == 1
        assert "Configuration error" in capsys.readouterr().err

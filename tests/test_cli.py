"""
Lumen — CLI Tests
Drives lumen.main() in-process; no subprocesses, no video files.

Run with: pytest tests/test_cli.py -v
"""

import json
import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import lumen
from core.video_io import load_frame, save_frame


@pytest.fixture
def run(tmp_path, capsys):
    """Run the CLI with an isolated settings directory; returns (code, out, err)."""
    settings = str(tmp_path / "settings")

    def _run(*argv):
        code = lumen.main(["--settings-dir", settings, *argv])
        captured = capsys.readouterr()
        return code, captured.out, captured.err

    return _run


@pytest.fixture
def image(tmp_path, frame):
    path = tmp_path / "in.png"
    save_frame(frame, path)
    return path


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------

class TestDiscovery:

    def test_no_command_prints_help(self, run):
        code, out, _ = run()
        assert code == 0
        assert "list-effects" in out

    def test_list_effects(self, run):
        code, out, _ = run("list-effects")
        assert code == 0
        assert "Total: 24 effects" in out
        assert "motion_blur" in out
        assert "Params:" in out

    def test_list_effects_by_category_compact(self, run):
        code, out, _ = run("list-effects", "--category", "lighting", "--compact")
        assert code == 0
        assert "vignette" in out
        assert "contrast" not in out
        assert "Params:" not in out

    def test_info(self, run):
        code, out, _ = run("info", "noise")
        assert code == 0
        assert "noise_type" in out
        assert "white | colored" in out

    def test_info_temporal(self, run):
        _, out, _ = run("info", "motion_blur")
        assert "Temporal" in out

    def test_unknown_effect_suggests(self, run):
        code, _, err = run("info", "blu")
        assert code == 1
        assert "Did you mean" in err
        assert "blur" in err

    def test_search(self, run):
        code, out, _ = run("search", "sepia")
        assert code == 0
        assert "sepia" in out
        _, out, _ = run("search", "zzzz")
        assert "No effects matching" in out

    def test_list_presets(self, run):
        code, out, _ = run("list-presets")
        assert code == 0
        assert "cinematic" in out
        assert "contrast > saturation > vignette > gamma" in out


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

class TestApply:

    def test_apply_effect_to_image(self, run, image, tmp_path, frame):
        out_path = tmp_path / "out.png"
        code, out, _ = run("apply", str(image), str(out_path),
                           "--effect", "invert", "--param", "intensity=100", "--backend", "cpu")
        assert code == 0, out
        assert "Rendered 64x48 on cpu" in out
        np.testing.assert_array_equal(load_frame(out_path), 255 - frame)

    def test_apply_preset_plus_effect(self, run, image, tmp_path):
        out_path = tmp_path / "out.png"
        code, out, _ = run("apply", str(image), str(out_path), "--preset", "blackwhite",
                           "--effect", "blur", "--param", "blur.radius=2", "--backend", "cpu")
        assert code == 0
        assert "1. grayscale" in out
        assert "4. blur" in out
        result = load_frame(out_path)
        assert np.array_equal(result[:, :, 0], result[:, :, 2])

    def test_apply_nothing(self, run, image, tmp_path):
        code, _, err = run("apply", str(image), str(tmp_path / "out.png"))
        assert code == 1
        assert "Nothing to apply" in err

    def test_apply_missing_input(self, run, tmp_path):
        code, _, err = run("apply", str(tmp_path / "nope.png"), str(tmp_path / "out.png"),
                           "--effect", "blur")
        assert code == 1
        assert "not found" in err

    def test_apply_bad_extension(self, run, tmp_path):
        bad = tmp_path / "notes.txt"
        bad.write_text("hello")
        code, _, err = run("apply", str(bad), str(tmp_path / "out.png"), "--effect", "blur")
        assert code == 1
        assert "not allowed" in err

    def test_apply_unknown_param(self, run, image, tmp_path):
        code, _, err = run("apply", str(image), str(tmp_path / "out.png"),
                           "--effect", "blur", "--param", "volume=3", "--backend", "cpu")
        assert code == 1
        assert "Error:" in err

    def test_param_before_effect(self, run, image, tmp_path):
        code, _, err = run("apply", str(image), str(tmp_path / "out.png"),
                           "--preset", "soft", "--param", "radius=3", "--backend", "cpu")
        assert code == 1
        assert "before any --effect" in err


class TestBench:

    def test_bench_cpu(self, run):
        code, out, _ = run("bench", "--backend", "cpu", "--frames", "3",
                           "--width", "32", "--height", "24", "--preset", "vintage")
        assert code == 0
        assert "3 frames at 32x24 on cpu" in out
        assert "delivered:      3" in out


# ---------------------------------------------------------------------------
# Preset files
# ---------------------------------------------------------------------------

class TestPresetFiles:

    def test_export_builtins(self, run, tmp_path):
        path = tmp_path / "all.json"
        code, out, _ = run("export-presets", str(path), "--all")
        assert code == 0
        doc = json.loads(path.read_text())
        assert doc["version"] == 1
        assert len(doc["presets"]) == 6

    def test_export_user_only_is_empty(self, run, tmp_path):
        path = tmp_path / "mine.json"
        run("export-presets", str(path))
        assert json.loads(path.read_text())["presets"] == []

    def test_import_then_list_and_export(self, run, tmp_path):
        library = tmp_path / "library.json"
        library.write_text(json.dumps({"version": 1, "presets": [
            {"name": "night", "description": "dark and cold",
             "effects": [{"effectId": "brightness", "parameters": {"intensity": -40}},
                         {"effectId": "hue", "parameters": {"rotation": 200}}]},
        ]}))
        code, out, _ = run("import-presets", str(library))
        assert code == 0
        assert "Imported 1 presets: night" in out

        _, out, _ = run("list-presets")
        assert "night" in out and "[user]" in out

        exported = tmp_path / "exported.json"
        run("export-presets", str(exported))
        assert json.loads(exported.read_text()) == json.loads(library.read_text())

    def test_import_duplicate_needs_overwrite(self, run, tmp_path):
        library = tmp_path / "library.json"
        library.write_text(json.dumps({"presets": [{"name": "cinematic", "effects": []}]}))
        code, _, err = run("import-presets", str(library))
        assert code == 1
        assert "Error:" in err
        code, _, _ = run("import-presets", str(library), "--overwrite")
        assert code == 0

    def test_import_unreadable(self, run, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{nope")
        code, _, err = run("import-presets", str(bad))
        assert code == 1
        assert "Can't read" in err

"""Tests for the command-line entry points."""

import json

import pytest

import image_encoder
import video_encoder
from image_io import write_png

from conftest import RED, solid_grid


class TestImageEncoderCli:
    """Tests for image_encoder.main."""

    def test_writes_outputs(self, tmp_path):
        """Each input yields a groups dump, a function and an optional rebuild."""
        image = write_png(solid_grid(3, 2, RED), tmp_path / "logo.png")
        out = tmp_path / "out"
        image_encoder.main([str(image), "--out", str(out), "--max-workers", "1", "--rebuild"])
        groups = json.loads((out / "logo_groups.json").read_text(encoding="utf-8"))
        assert groups[0]['area'] == 6
        assert "kill @e[tag=logo]" in (out / "logo.mcfunction").read_text(encoding="utf-8")
        assert (out / "logo_rebuilt.png").exists()

    def test_failures_exit(self, tmp_path):
        """Failed jobs end the run with SystemExit."""
        with pytest.raises(SystemExit):
            image_encoder.main([str(tmp_path / "missing.png"), "--out", str(tmp_path),
                                "--max-workers", "1"])


class TestVideoEncoderCli:
    """Tests for video_encoder.main."""

    def test_bad_configuration_exits(self, tmp_path):
        """Invalid thresholds are reported before any work starts."""
        with pytest.raises(SystemExit):
            video_encoder.main(["clip.mp4", "--out", str(tmp_path), "--diff-threshold", "3"])

"""Tests for encoding statistics."""

import json

import pytest

from video_encoder_stats import EncodingStats


class TestEncodingStats:
    """Tests for EncodingStats counters and reports."""

    def test_counters_and_rates(self):
        """Frame, block and coverage counters feed the derived rates."""
        stats = EncodingStats()
        stats.add_i_frame(10, is_forced=True)
        stats.add_i_frame(6, is_forced=False)
        stats.add_p_frame(4, 0.1)
        stats.add_p_frame(0, 0.3)
        stats.add_covered(5)
        assert stats.total_frames_processed == 4
        assert (stats.forced_i_frames, stats.threshold_i_frames) == (1, 1)
        assert stats.total_blocks == 20
        assert stats.average_diff_ratio == pytest.approx(0.2)
        assert stats.optimization_rate == pytest.approx(0.25)

    def test_empty_stats(self, capsys):
        """An empty run reports zero rates and prints without dividing by zero."""
        stats = EncodingStats()
        assert stats.average_diff_ratio == 0
        assert stats.optimization_rate == 0
        stats.print_summary()
        assert "没有处理任何帧" in capsys.readouterr().out

    def test_write_json(self, tmp_path):
        """to_dict keys are written to disk."""
        stats = EncodingStats()
        stats.add_i_frame(3)
        stats.add_timing("帧处理", 1.5)
        path = stats.write_json(tmp_path / "video_stats.json")
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data['iFrames'] == 1
        assert data['totalBlocks'] == 3
        assert data['timings'] == {"帧处理": 1.5}

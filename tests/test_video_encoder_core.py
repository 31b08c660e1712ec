"""End-to-end tests for the sequential video pipeline on synthetic frames."""

import json

import pytest

import video_encoder_core
from const_def import DIFF_MODE_PREVIOUS
from image_io import DecodeError
from video_encoder_core import VideoEncoderCore

from conftest import BLACK, RED, WHITE, solid_grid


def _core(**kwargs):
    kwargs.setdefault("resize_factor", 1.0)
    return VideoEncoderCore(**kwargs)


class TestEncodeVideo:
    """Tests for VideoEncoderCore.encode_video."""

    def test_identical_frames_produce_empty_deltas(self, tmp_path, write_frames):
        """Unchanged frames become delta frames with no blocks."""
        paths = write_frames([solid_grid(4, 3, WHITE)] * 3)
        infos = _core().encode_video(paths, tmp_path / "out")
        assert [i.frame_type for i in infos] == ["I", "P", "P"]
        assert [i.block_count for i in infos] == [1, 0, 0]
        assert infos[1].diff_ratio == 0

    def test_single_pixel_change(self, tmp_path, write_frames):
        """A one-pixel change yields a one-block delta drawn above the keyframe."""
        changed = solid_grid(4, 3, WHITE)
        changed.rgba[1, 2] = BLACK
        paths = write_frames([solid_grid(4, 3, WHITE), changed])
        infos = _core().encode_video(paths, tmp_path / "out")
        delta = infos[1]
        assert delta.frame_type == "P"
        assert delta.diff_ratio == pytest.approx(1 / 12)
        assert [b.pixels for b in delta.blocks] == [{(2, 1)}]
        assert delta.blocks[0].z_index > max(b.z_index for b in infos[0].blocks)

    def test_interval_forces_keyframes(self, tmp_path, write_frames):
        """Frames at interval multiples are keyframes even without change."""
        paths = write_frames([solid_grid(2, 2, WHITE)] * 5)
        infos = _core(i_frame_interval=2).encode_video(paths, tmp_path / "out")
        assert [i.frame_type for i in infos] == ["I", "P", "I", "P", "I"]

    def test_large_change_promotes(self, tmp_path, write_frames):
        """A change above the threshold is promoted to a keyframe."""
        paths = write_frames([solid_grid(4, 4, WHITE), solid_grid(4, 4, BLACK)])
        core = _core(diff_threshold=0.25)
        infos = core.encode_video(paths, tmp_path / "out")
        assert infos[1].frame_type == "I"
        assert not infos[1].forced
        assert core.encoding_stats.threshold_i_frames == 1
        text = (tmp_path / "out" / "frame_1.mcfunction").read_text(encoding="utf-8")
        assert "scores={frame_id=..0}" in text

    def test_covered_region_killed(self, tmp_path, write_frames):
        """A delta that repaints a keyframe region drops that region's tag."""
        first = solid_grid(4, 3, WHITE)
        first.rgba[0, 0] = RED
        paths = write_frames([first, solid_grid(4, 3, WHITE)])
        core = _core()
        infos = core.encode_video(paths, tmp_path / "out")
        assert infos[1].covered_tags == {"video_frame_0_1"}
        assert core.encoding_stats.total_covered_entities == 1
        text = (tmp_path / "out" / "frame_1.mcfunction").read_text(encoding="utf-8")
        assert "kill @e[type=text_display,tag=video_frame_0_1]" in text

    def test_previous_mode_diffs_against_last_frame(self, tmp_path, write_frames):
        """previous mode compares with the preceding frame, not the keyframe."""
        changed = solid_grid(4, 3, WHITE)
        changed.rgba[0, 0] = BLACK
        paths = write_frames([solid_grid(4, 3, WHITE), changed, changed])
        iframe_infos = _core().encode_video(paths, tmp_path / "a")
        previous_infos = _core(diff_mode=DIFF_MODE_PREVIOUS).encode_video(paths, tmp_path / "b")
        assert iframe_infos[2].block_count == 1
        assert previous_infos[2].block_count == 0

    def test_z_strictly_increases(self, tmp_path, write_frames):
        """Every frame's blocks sit above all earlier frames' blocks."""
        grids = []
        for i in range(4):
            grid = solid_grid(4, 4, WHITE)
            grid.rgba[i, i] = BLACK
            grids.append(grid)
        infos = _core().encode_video(write_frames(grids), tmp_path / "out")
        highest = -1
        for info in infos:
            if info.blocks:
                assert min(b.z_index for b in info.blocks) > highest
                highest = max(b.z_index for b in info.blocks)

    def test_outputs_and_cache_lifecycle(self, tmp_path, write_frames):
        """Scripts and diff images are written and the cache is cleared."""
        changed = solid_grid(2, 2, WHITE)
        changed.rgba[0, 0] = BLACK
        paths = write_frames([solid_grid(2, 2, WHITE), changed, changed])
        core = _core(keep_diff_images=True, diff_threshold=0.5)
        core.encode_video(paths, tmp_path / "out")
        out = tmp_path / "out"
        assert sorted(p.name for p in out.glob("*.mcfunction")) == [
            "frame_0.mcfunction", "frame_1.mcfunction", "frame_2.mcfunction"]
        assert (out / "frame_1_diff.png").exists()
        assert len(core.cache) == 0
        assert core.encoding_stats.cache_misses == 1
        assert core.encoding_stats.cache_hits == 1

    def test_back_to_back_keyframes_skip_cache(self, tmp_path, write_frames):
        """Keyframes never used as a diff reference are not cached."""
        paths = write_frames([solid_grid(2, 2, WHITE)] * 3)
        core = _core(i_frame_interval=1)
        core.encode_video(paths, tmp_path / "out")
        assert core.encoding_stats.cache_misses == 0
        assert core.encoding_stats.cache_hits == 0

    def test_promoted_keyframe_is_cached_reference(self, tmp_path, write_frames):
        """A promoted keyframe reuses its decoded pixels as the next reference."""
        changed = solid_grid(2, 2, BLACK)
        paths = write_frames([solid_grid(2, 2, WHITE), changed, changed])
        core = _core(diff_threshold=0.5)
        infos = core.encode_video(paths, tmp_path / "out")
        assert [info.is_keyframe for info in infos] == [True, True, False]
        assert core.encoding_stats.cache_misses == 1
        assert core.encoding_stats.cache_hits == 1

    def test_retain_blocks_off_evicts(self, tmp_path, write_frames):
        """Without retain_blocks the written frames drop their blocks."""
        paths = write_frames([solid_grid(2, 2, WHITE)] * 2)
        infos = _core(retain_blocks=False).encode_video(paths, tmp_path / "out")
        assert infos[0].blocks == []
        assert infos[0].block_count == 1

    def test_decode_error_keeps_earlier_groups(self, tmp_path, write_frames):
        """A bad frame aborts the run but earlier groups are already written."""
        paths = write_frames([solid_grid(2, 2, WHITE)])
        paths.append(tmp_path / "frames" / "missing.png")
        with pytest.raises(DecodeError):
            _core(i_frame_interval=1).encode_video(paths, tmp_path / "out")
        assert (tmp_path / "out" / "frame_0.mcfunction").exists()

    def test_invalid_configuration(self):
        """Bad scheduler settings fail at construction."""
        with pytest.raises(ValueError):
            _core(diff_threshold=2.0)


class TestGenerateVideoFromFile:
    """Tests for the full driver with frame extraction stubbed out."""

    def test_driver_writes_controls_and_stats(self, tmp_path, monkeypatch):
        """Control scripts, frame scripts and video_stats.json are produced."""
        from image_io import write_png

        def fake_extract(video_path, output_dir, frame_rate):
            return [write_png(solid_grid(2, 2, WHITE), output_dir / f"frame_{i:04d}.png")
                    for i in range(1, 5)]

        monkeypatch.setattr(video_encoder_core, "extract_frames_from_video", fake_extract)
        infos = _core().generate_video_from_file("clip.mp4", tmp_path / "video",
                                                 video_modify_factor=0.5)
        assert len(infos) == 2
        function_dir = tmp_path / "video" / "function"
        assert (function_dir / "setup_video.mcfunction").exists()
        assert (function_dir / "frames" / "frame_1.mcfunction").exists()
        assert not (tmp_path / "video" / "temp_frames").exists()
        stats = json.loads((tmp_path / "video" / "video_stats.json").read_text(encoding="utf-8"))
        assert stats['totalFrames'] == 2
        assert stats['iFrames'] == 1
        assert stats['pFrames'] == 1

    def test_modify_factor_validated(self, tmp_path):
        """video_modify_factor must lie in (0, 1]."""
        with pytest.raises(ValueError):
            _core().generate_video_from_file("clip.mp4", tmp_path, video_modify_factor=0)

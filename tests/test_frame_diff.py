"""Tests for per-pixel frame differencing and the reference cache."""

import numpy as np
import pytest

from frame_diff import DimensionMismatch, FrameDiffEngine, ReferenceCache
from image_io import PixelGrid

from conftest import BLACK, WHITE, solid_grid


def _gradient(width, height, seed=0):
    rng = np.random.default_rng(seed)
    data = rng.integers(0, 256, size=(height, width, 4), dtype=np.uint8)
    data[:, :, 3] = 255
    return PixelGrid(data)


class TestDiffGrids:
    """Tests for FrameDiffEngine.diff_grids."""

    @pytest.mark.parametrize("threshold", [0, 10, 255])
    def test_identical_frames(self, threshold):
        """Identical frames give ratio 0 and an empty diff for any threshold."""
        grid = _gradient(6, 4)
        result = FrameDiffEngine(color_threshold=threshold).diff_grids(grid, grid.copy())
        assert result.diff_ratio == 0
        assert result.diff_pixels == {}

    def test_single_pixel_white_to_black(self):
        """One changed pixel gives ratio 1/(w*h) and a one-entry diff."""
        reference = solid_grid(4, 3, WHITE)
        candidate = reference.copy()
        candidate.rgba[1, 2] = BLACK
        result = FrameDiffEngine(color_threshold=10).diff_grids(reference, candidate)
        assert result.diff_ratio == pytest.approx(1 / 12)
        assert result.diff_pixels == {(2, 1): BLACK}

    def test_threshold_is_strict(self):
        """A channel delta equal to the threshold is not a change."""
        reference = solid_grid(1, 1, (100, 100, 100, 255))
        candidate = solid_grid(1, 1, (110, 100, 100, 255))
        assert FrameDiffEngine(color_threshold=10).diff_grids(reference, candidate).changed_count == 0
        assert FrameDiffEngine(color_threshold=9).diff_grids(reference, candidate).changed_count == 1

    def test_alpha_ignored(self):
        """Only RGB channels take part in the comparison."""
        reference = solid_grid(1, 1, (5, 5, 5, 255))
        candidate = solid_grid(1, 1, (5, 5, 5, 0))
        assert FrameDiffEngine().diff_grids(reference, candidate).diff_ratio == 0

    def test_lower_threshold_never_decreases_ratio(self):
        """diff_ratio is monotone in the color threshold."""
        reference, candidate = _gradient(8, 8, 1), _gradient(8, 8, 2)
        ratios = [FrameDiffEngine(color_threshold=t).diff_grids(reference, candidate).diff_ratio
                  for t in (200, 100, 50, 10, 0)]
        assert ratios == sorted(ratios)

    def test_dimension_mismatch(self):
        """Frames of different size abort the diff."""
        with pytest.raises(DimensionMismatch):
            FrameDiffEngine().diff_grids(solid_grid(2, 2), solid_grid(3, 2))

    def test_empty_frames_have_zero_ratio(self):
        """Zero-sized frames have no pixels to change."""
        result = FrameDiffEngine().diff_grids(PixelGrid.blank(0, 0), PixelGrid.blank(0, 0))
        assert result.diff_ratio == 0

    def test_to_grid_keeps_only_changed_pixels(self):
        """The diff grid is transparent except for changed pixels."""
        reference = solid_grid(2, 2, WHITE)
        candidate = reference.copy()
        candidate.rgba[0, 1] = BLACK
        diff_grid = FrameDiffEngine().diff_grids(reference, candidate).to_grid()
        assert diff_grid.opaque_count() == 1
        assert tuple(diff_grid.rgba[0, 1]) == BLACK

    def test_negative_threshold_rejected(self):
        """A negative color threshold is invalid."""
        with pytest.raises(ValueError):
            FrameDiffEngine(color_threshold=-1)


class TestReferenceCache:
    """Tests for cached reference loading."""

    def test_cache_hit_avoids_second_decode(self, tmp_path):
        """The reference is decoded once while cached."""
        calls = []

        def decoder(path, resize_factor):
            calls.append(path)
            return solid_grid(2, 2, WHITE)

        cache = ReferenceCache()
        engine = FrameDiffEngine(resize_factor=1.0, cache=cache, decoder=decoder)
        engine.diff_paths("ref.png", "a.png", use_cache=True)
        engine.diff_paths("ref.png", "b.png", use_cache=True)
        assert calls.count("ref.png") == 1
        assert (cache.hits, cache.misses) == (1, 1)

    def test_return_candidate_only_with_cache(self):
        """The candidate grid is handed back only when caching is on."""
        engine = FrameDiffEngine(cache=ReferenceCache(),
                                 decoder=lambda path, factor: solid_grid(1, 1))
        assert engine.diff_paths("r", "c", use_cache=True).current_grid is not None
        assert engine.diff_paths("r", "c", use_cache=False).current_grid is None

    def test_promote_and_clear(self):
        """Promoted grids are stored as copies and clear() empties the cache."""
        cache = ReferenceCache()
        grid = solid_grid(1, 1, WHITE)
        FrameDiffEngine(cache=cache).promote("f.png", grid)
        grid.rgba[0, 0] = BLACK
        assert tuple(cache.get("f.png").rgba[0, 0]) == WHITE
        cache.clear()
        assert "f.png" not in cache
        assert len(cache) == 0

#!/usr/bin/env python3
"""
frame_diff.py - 帧间差分
逐像素比较参考帧与当前帧，RGB三通道最大差值超过阈值即视为变化
"""

import numpy as np
from numba import njit

from const_def import DEFAULT_COLOR_THRESHOLD, DEFAULT_RESIZE_FACTOR
from image_io import PixelGrid, decode_image


class DimensionMismatch(ValueError):
    """参考帧与当前帧尺寸不一致"""


class ReferenceCache:
    """参考帧像素缓存，生命周期为一次视频处理"""

    def __init__(self):
        self._entries = {}
        self.hits = 0
        self.misses = 0

    def get(self, key):
        grid = self._entries.get(key)
        if grid is None:
            self.misses += 1
        else:
            self.hits += 1
        return grid

    def put(self, key, grid: PixelGrid):
        self._entries[key] = grid.copy()

    def clear(self):
        self._entries.clear()

    def __contains__(self, key):
        return key in self._entries

    def __len__(self):
        return len(self._entries)


class DiffResult:
    """差分结果：变化像素 (x, y) -> (r, g, b, a)，以及变化比例"""

    def __init__(self, width: int, height: int, mask: np.ndarray,
                 candidate: PixelGrid, return_candidate: bool = False):
        self.width = width
        self.height = height
        self.mask = mask
        self.changed_count = int(np.count_nonzero(mask))
        total = width * height
        self.diff_ratio = self.changed_count / total if total > 0 else 0.0
        self._candidate = candidate
        self.current_grid = candidate if return_candidate else None
        self._diff_pixels = None

    @property
    def diff_pixels(self) -> dict:
        if self._diff_pixels is None:
            ys, xs = np.nonzero(self.mask)
            values = self._candidate.rgba[ys, xs]
            self._diff_pixels = {
                (int(x), int(y)): tuple(int(v) for v in value)
                for x, y, value in zip(xs, ys, values)
            }
        return self._diff_pixels

    def to_grid(self) -> PixelGrid:
        """差分图：未变化像素全透明，变化像素取当前帧的值"""
        rgba = np.zeros((self.height, self.width, 4), dtype=np.uint8)
        rgba[self.mask] = self._candidate.rgba[self.mask]
        return PixelGrid(rgba)


@njit(cache=True)
def compute_pixel_diff_mask_numba(prev_rgba, cur_rgba, color_threshold):
    """Numba加速的逐像素差异标记（忽略alpha）"""
    h, w = prev_rgba.shape[:2]
    mask = np.zeros((h, w), dtype=np.bool_)
    for y in range(h):
        for x in range(w):
            max_diff = 0
            for c in range(3):
                a = int(prev_rgba[y, x, c])
                b = int(cur_rgba[y, x, c])
                d = a - b if a >= b else b - a
                if d > max_diff:
                    max_diff = d
            if max_diff > color_threshold:
                mask[y, x] = True
    return mask


class FrameDiffEngine:
    """帧差分引擎，可选使用参考帧缓存避免重复解码"""

    def __init__(self, color_threshold: int = DEFAULT_COLOR_THRESHOLD,
                 resize_factor: float = DEFAULT_RESIZE_FACTOR,
                 cache: ReferenceCache = None, decoder=decode_image):
        if color_threshold < 0:
            raise ValueError(f"颜色阈值不能为负: {color_threshold}")
        self.color_threshold = color_threshold
        self.resize_factor = resize_factor
        self.cache = cache
        self.decoder = decoder

    def load_reference(self, reference_path, use_cache: bool = False) -> PixelGrid:
        if use_cache and self.cache is not None:
            grid = self.cache.get(reference_path)
            if grid is not None:
                return grid
            grid = self.decoder(reference_path, self.resize_factor)
            self.cache.put(reference_path, grid)
            return grid
        return self.decoder(reference_path, self.resize_factor)

    def diff_grids(self, reference: PixelGrid, candidate: PixelGrid,
                   return_candidate: bool = False) -> DiffResult:
        if reference.shape != candidate.shape:
            raise DimensionMismatch(
                f"参考帧尺寸 {reference.width}x{reference.height} 与当前帧 "
                f"{candidate.width}x{candidate.height} 不一致")
        mask = compute_pixel_diff_mask_numba(reference.rgba, candidate.rgba,
                                             self.color_threshold)
        return DiffResult(reference.width, reference.height, mask, candidate,
                          return_candidate)

    def diff_paths(self, reference_path, candidate_path, use_cache: bool = False) -> DiffResult:
        """比较两帧文件；启用缓存时同时返回当前帧像素供调用方提升为新参考"""
        reference = self.load_reference(reference_path, use_cache)
        candidate = self.decoder(candidate_path, self.resize_factor)
        return self.diff_grids(reference, candidate, return_candidate=use_cache)

    def promote(self, path, grid: PixelGrid):
        """把当前帧放入缓存，作为之后差分的参考"""
        if self.cache is not None:
            self.cache.put(path, grid)

#!/usr/bin/env python3
"""
occlusion_scanner.py - 遮挡扫描
在当前关键帧组的最近若干帧中，找出已被后绘制区块完全覆盖的区域标签
"""

from const_def import DEFAULT_OCCLUSION_WINDOW, DEFAULT_OCCLUSION_GRID_SIZE


def is_block_fully_covered(target, covering) -> bool:
    """covering 的zIndex更大且像素集合包含 target 的全部像素"""
    if covering.z_index <= target.z_index:
        return False
    if covering.area < target.area:
        return False
    if (covering.min_x > target.min_x or covering.min_y > target.min_y or
            covering.max_x < target.max_x or covering.max_y < target.max_y):
        return False
    return target.pixels <= covering.pixels


class OcclusionScanner:
    """基于均匀空间网格的遮挡扫描"""

    def __init__(self, window_size: int = DEFAULT_OCCLUSION_WINDOW,
                 grid_size: int = DEFAULT_OCCLUSION_GRID_SIZE):
        if window_size < 1:
            raise ValueError(f"扫描窗口必须 >= 1: {window_size}")
        if grid_size < 1:
            raise ValueError(f"网格大小必须 >= 1: {grid_size}")
        self.window_size = window_size
        self.grid_size = grid_size

    def frames_to_scan(self, frame_infos: list, group_start: int) -> list:
        group_frames = frame_infos[group_start:]
        if len(group_frames) > self.window_size:
            return group_frames[-self.window_size:]
        return group_frames

    def _cell(self, x: int, y: int) -> tuple:
        return (x // self.grid_size, y // self.grid_size)

    def scan(self, frame_infos: list, group_start: int = 0) -> set:
        """返回被完全覆盖的区域标签集合"""
        frames = self.frames_to_scan(frame_infos, group_start)
        if len(frames) < 2:
            return set()

        # (区块, 标签) 按zIndex由大到小存放，网格里只存下标
        entries = [(block, tag) for frame in frames for block, tag in frame.tagged_blocks()]
        entries.sort(key=lambda item: -item[0].z_index)

        spatial_grid = {}
        for index, (block, _) in enumerate(entries):
            spatial_grid.setdefault(self._cell(block.min_x, block.min_y), []).append(index)

        covered_tags = set()
        # 从最早绘制的区块开始检查
        for index in range(len(entries) - 1, -1, -1):
            target, tag = entries[index]
            min_gx, min_gy = self._cell(target.min_x, target.min_y)
            max_gx, max_gy = self._cell(target.max_x, target.max_y)
            if self._find_cover(entries, spatial_grid, target,
                                min_gx, max_gx, min_gy, max_gy):
                covered_tags.add(tag)

        return covered_tags

    def _find_cover(self, entries, spatial_grid, target, min_gx, max_gx, min_gy, max_gy) -> bool:
        for gx in range(min_gx, max_gx + 1):
            for gy in range(min_gy, max_gy + 1):
                for candidate_index in spatial_grid.get((gx, gy), ()):
                    covering = entries[candidate_index][0]
                    if covering.z_index <= target.z_index:
                        continue
                    if is_block_fully_covered(target, covering):
                        return True
        return False

#!/usr/bin/env python3
"""
block_segmenter.py - 连通区块分割
把同色不透明像素按四连通分组成最大区块
"""

import numpy as np
from numba import njit

from const_def import SORT_BY_AREA, SORT_BY_Y_X
from image_io import PixelGrid


def pack_color(r: int, g: int, b: int) -> int:
    return (r << 16) | (g << 8) | b


def unpack_color(color: int) -> tuple:
    return (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF


class Block:
    """代表一个连通区块：同色、四连通、带包围盒与绘制顺序"""

    __slots__ = ('color', 'pixels', 'min_x', 'min_y', 'max_x', 'max_y', 'z_index')

    def __init__(self, color: int, pixels, z_index: int = 0):
        if not pixels:
            raise ValueError("区块至少需要一个像素")
        self.color = color
        self.pixels = frozenset(pixels)
        xs = [x for x, _ in self.pixels]
        ys = [y for _, y in self.pixels]
        self.min_x, self.max_x = min(xs), max(xs)
        self.min_y, self.max_y = min(ys), max(ys)
        self.z_index = z_index

    @property
    def width(self) -> int:
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        return self.max_y - self.min_y + 1

    @property
    def area(self) -> int:
        return len(self.pixels)

    @property
    def rgb(self) -> tuple:
        return unpack_color(self.color)

    @property
    def color_hex(self) -> str:
        return f"#{self.color:06x}"

    @property
    def bbox(self) -> tuple:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def with_z_index(self, z_index: int) -> "Block":
        """返回更换了zIndex的新区块（像素集合共享）"""
        clone = Block.__new__(Block)
        clone.color = self.color
        clone.pixels = self.pixels
        clone.min_x, clone.min_y = self.min_x, self.min_y
        clone.max_x, clone.max_y = self.max_x, self.max_y
        clone.z_index = z_index
        return clone

    def to_dict(self) -> dict:
        return {
            'color': self.color_hex,
            'minX': self.min_x,
            'minY': self.min_y,
            'maxX': self.max_x,
            'maxY': self.max_y,
            'width': self.width,
            'height': self.height,
            'area': self.area,
            'pixels': sorted([x, y] for x, y in self.pixels),
            'zIndex': self.z_index,
        }

    def __repr__(self):
        return (f"Block(color={self.color_hex}, bbox=({self.min_x},{self.min_y})-"
                f"({self.max_x},{self.max_y}), area={self.area}, z={self.z_index})")


@njit(cache=True)
def label_components_numba(colors, opaque):
    """Numba加速的四连通标记，按行优先顺序选取种子"""
    h, w = colors.shape
    labels = np.full((h, w), -1, dtype=np.int64)
    queue = np.empty(h * w, dtype=np.int64)
    seeds = np.empty(h * w, dtype=np.int64)
    n_labels = 0

    for sy in range(h):
        for sx in range(w):
            if not opaque[sy, sx] or labels[sy, sx] >= 0:
                continue
            color = colors[sy, sx]
            labels[sy, sx] = n_labels
            seeds[n_labels] = sy * w + sx
            head = 0
            tail = 0
            queue[tail] = sy * w + sx
            tail += 1
            while head < tail:
                idx = queue[head]
                head += 1
                y = idx // w
                x = idx % w
                # 四向邻居
                for k in range(4):
                    nx = x
                    ny = y
                    if k == 0:
                        nx = x - 1
                    elif k == 1:
                        nx = x + 1
                    elif k == 2:
                        ny = y - 1
                    else:
                        ny = y + 1
                    if nx < 0 or nx >= w or ny < 0 or ny >= h:
                        continue
                    if labels[ny, nx] >= 0 or not opaque[ny, nx]:
                        continue
                    if colors[ny, nx] != color:
                        continue
                    labels[ny, nx] = n_labels
                    queue[tail] = ny * w + nx
                    tail += 1
            n_labels += 1

    return labels, seeds[:n_labels]


def segment_blocks(grid: PixelGrid) -> list:
    """对像素网格做同色四连通分群，返回未排序的区块列表（zIndex均为0）

    区块顺序与按颜色分桶后逐桶BFS的顺序一致：颜色按首次出现排列，
    同色区块按种子像素的行优先位置排列。
    """
    if grid.width == 0 or grid.height == 0:
        return []

    colors = grid.packed_colors()
    opaque = grid.opaque_mask()
    labels, seeds = label_components_numba(colors, opaque)
    n_labels = len(seeds)
    if n_labels == 0:
        return []

    w = grid.width
    flat_labels = labels.ravel()
    flat_idx = np.flatnonzero(flat_labels >= 0)
    order = np.argsort(flat_labels[flat_idx], kind='stable')
    sorted_idx = flat_idx[order]
    counts = np.bincount(flat_labels[flat_idx], minlength=n_labels)
    bounds = np.concatenate(([0], np.cumsum(counts)))

    # 按颜色首次出现的顺序分桶
    flat_colors = colors.ravel()
    buckets = {}
    for label, seed in enumerate(seeds):
        buckets.setdefault(int(flat_colors[seed]), []).append(label)

    blocks = []
    for color, bucket_labels in buckets.items():
        for label in bucket_labels:
            idx = sorted_idx[bounds[label]:bounds[label + 1]]
            xs = (idx % w).tolist()
            ys = (idx // w).tolist()
            blocks.append(Block(color, zip(xs, ys)))

    return blocks


def sort_blocks(blocks: list, sort_by: str = SORT_BY_AREA) -> list:
    """排序区块：面积由大到小（稳定），或先y后x"""
    if sort_by == SORT_BY_AREA:
        return sorted(blocks, key=lambda b: -b.area)
    if sort_by == SORT_BY_Y_X:
        return sorted(blocks, key=lambda b: (b.min_y, b.min_x))
    raise ValueError(f"未知的排序方式: {sort_by}")


def assign_z_indices(blocks: list, offset: int = 0) -> list:
    """按列表顺序分配zIndex（越后越上层）"""
    for index, block in enumerate(blocks):
        block.z_index = offset + index
    return blocks

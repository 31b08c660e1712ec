#!/usr/bin/env python3
"""
image_processor.py - 单张图像处理: 解码 → 分割 → 排序 → 合并优化
"""

import json
import pathlib

from block_optimizer import local_search_optimization
from block_segmenter import segment_blocks, sort_blocks, assign_z_indices
from const_def import (SORT_BY_AREA, DEFAULT_LOCAL_SEARCH_MAX_ITER,
                       OPTIMIZER_LOGGING_MIN_BLOCKS)
from image_io import PixelGrid, decode_image


def group_pixel_grid(grid: PixelGrid, sort_by: str = SORT_BY_AREA,
                     max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER,
                     enable_logging: bool = None) -> list:
    """对已解码的像素网格分群，返回按zIndex排好的区块"""
    blocks = sort_blocks(segment_blocks(grid), sort_by)
    assign_z_indices(blocks)

    if enable_logging is None:
        enable_logging = len(blocks) > OPTIMIZER_LOGGING_MIN_BLOCKS

    return local_search_optimization(blocks, max_iterations=max_iterations,
                                     enable_logging=enable_logging)


def write_blocks_json(blocks: list, path) -> pathlib.Path:
    path = pathlib.Path(path)
    with path.open("w", encoding="utf-8") as f:
        json.dump([block.to_dict() for block in blocks], f, indent=2)
    return path


def process_and_group_image(image_path, resize_factor: float = 1.0,
                            sort_by: str = SORT_BY_AREA, output_dir=None,
                            max_iterations: int = DEFAULT_LOCAL_SEARCH_MAX_ITER) -> list:
    """处理图像并产生连通区块分群，可选输出 groups.json"""
    grid = decode_image(image_path, resize_factor)
    blocks = group_pixel_grid(grid, sort_by, max_iterations)

    if output_dir is not None:
        json_path = write_blocks_json(blocks, pathlib.Path(output_dir) / "groups.json")
        print(f"✓ 已写入 {len(blocks)} 个区块到 {json_path}")

    return blocks

"""Shared fixtures: small RGBA grids and PNG frames written into tmp_path."""

import numpy as np
import pytest

from block_segmenter import Block, pack_color
from image_io import PixelGrid, write_png

RED = (255, 0, 0, 255)
WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)
BLUE = (0, 0, 255, 255)


def solid_grid(width, height, rgba=WHITE):
    data = np.zeros((height, width, 4), dtype=np.uint8)
    data[:, :] = rgba
    return PixelGrid(data)


def make_block(pixels, rgb=(255, 0, 0), z_index=0):
    return Block(pack_color(*rgb), pixels, z_index)


def rect_pixels(x0, y0, x1, y1):
    """Inclusive rectangle of pixel coordinates."""
    return {(x, y) for x in range(x0, x1 + 1) for y in range(y0, y1 + 1)}


@pytest.fixture
def red_2x2():
    return solid_grid(2, 2, RED)


@pytest.fixture
def write_frames(tmp_path):
    """Write a list of PixelGrids as frame_0001.png, frame_0002.png, ..."""
    def _write(grids):
        frames_dir = tmp_path / "frames"
        frames_dir.mkdir(exist_ok=True)
        paths = []
        for index, grid in enumerate(grids, start=1):
            paths.append(write_png(grid, frames_dir / f"frame_{index:04d}.png"))
        return paths
    return _write

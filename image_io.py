#!/usr/bin/env python3
"""
image_io.py - 图像解码/编码与像素网格
解码: 路径 -> (width, height, RGBA)；编码: RGBA -> PNG bytes
"""

import pathlib

import cv2
import numpy as np


class DecodeError(Exception):
    """图像解码失败"""


class PixelGrid:
    """解码后的RGBA像素缓冲区，形状为 (height, width, 4)"""

    def __init__(self, rgba: np.ndarray):
        if rgba.ndim != 3 or rgba.shape[2] != 4:
            raise ValueError(f"RGBA缓冲区形状错误: {rgba.shape}")
        self.rgba = np.ascontiguousarray(rgba, dtype=np.uint8)

    @classmethod
    def from_buffer(cls, width: int, height: int, buffer) -> "PixelGrid":
        """从扁平的RGBA字节序列构造"""
        data = np.frombuffer(bytes(buffer), dtype=np.uint8)
        if data.size != width * height * 4:
            raise ValueError(f"缓冲区大小 {data.size} 与 {width}x{height} 不符")
        return cls(data.reshape(height, width, 4).copy())

    @classmethod
    def blank(cls, width: int, height: int) -> "PixelGrid":
        """全透明网格"""
        return cls(np.zeros((height, width, 4), dtype=np.uint8))

    @property
    def width(self) -> int:
        return self.rgba.shape[1]

    @property
    def height(self) -> int:
        return self.rgba.shape[0]

    @property
    def shape(self) -> tuple:
        return (self.width, self.height)

    def packed_colors(self) -> np.ndarray:
        """每个像素打包成24位整数 0xRRGGBB"""
        rgb = self.rgba[:, :, :3].astype(np.int32)
        return (rgb[:, :, 0] << 16) | (rgb[:, :, 1] << 8) | rgb[:, :, 2]

    def opaque_mask(self) -> np.ndarray:
        """alpha为0的像素视为透明，其余视为不透明"""
        return self.rgba[:, :, 3] != 0

    def opaque_count(self) -> int:
        return int(np.count_nonzero(self.opaque_mask()))

    def copy(self) -> "PixelGrid":
        return PixelGrid(self.rgba.copy())


def decode_image(path, resize_factor: float = 1.0) -> PixelGrid:
    """读取图像并按比例缩放，返回RGBA像素网格"""
    if resize_factor <= 0:
        raise ValueError(f"缩放比例必须为正数: {resize_factor}")

    path = pathlib.Path(path)
    if not path.is_file():
        raise DecodeError(f"找不到图像文件: {path}")

    img = cv2.imread(str(path), cv2.IMREAD_UNCHANGED)
    if img is None:
        raise DecodeError(f"无法解码图像: {path}")

    if img.dtype != np.uint8:
        # 16位PNG等降到8位
        img = (img / 257).astype(np.uint8)

    if img.ndim == 2:
        rgba = cv2.cvtColor(img, cv2.COLOR_GRAY2RGBA)
    elif img.shape[2] == 3:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGR2RGBA)
    elif img.shape[2] == 4:
        rgba = cv2.cvtColor(img, cv2.COLOR_BGRA2RGBA)
    else:
        raise DecodeError(f"不支持的通道数 {img.shape[2]}: {path}")

    if resize_factor != 1.0:
        h, w = rgba.shape[:2]
        new_w = int(w * resize_factor)
        new_h = int(h * resize_factor)
        if new_w == 0 or new_h == 0:
            return PixelGrid.blank(new_w, new_h)
        rgba = cv2.resize(rgba, (new_w, new_h), interpolation=cv2.INTER_AREA)

    return PixelGrid(rgba)


def encode_png(grid: PixelGrid) -> bytes:
    """RGBA像素网格编码为PNG"""
    bgra = cv2.cvtColor(grid.rgba, cv2.COLOR_RGBA2BGRA)
    ok, buf = cv2.imencode(".png", bgra)
    if not ok:
        raise ValueError("PNG编码失败")
    return buf.tobytes()


def write_png(grid: PixelGrid, path) -> pathlib.Path:
    path = pathlib.Path(path)
    path.write_bytes(encode_png(grid))
    return path


def parse_hex_color(color: str) -> tuple:
    """'#rrggbb' -> (r, g, b)"""
    value = int(color.lstrip('#'), 16)
    return (value >> 16) & 0xFF, (value >> 8) & 0xFF, value & 0xFF


def rebuild_image(blocks, width: int, height: int, scale: int = 1,
                  background: str = None) -> PixelGrid:
    """按zIndex由小到大把区块重新绘制成图像，用于验证"""
    canvas = np.zeros((height * scale, width * scale, 4), dtype=np.uint8)
    if background is not None:
        r, g, b = parse_hex_color(background)
        canvas[:, :] = (r, g, b, 255)

    for block in sorted(blocks, key=lambda b: b.z_index):
        rgba = (*block.rgb, 255)
        for x, y in block.pixels:
            canvas[y * scale:(y + 1) * scale, x * scale:(x + 1) * scale] = rgba

    return PixelGrid(canvas)

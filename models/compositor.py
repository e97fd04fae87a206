# -*- coding: utf-8 -*-
"""
叠加合成（Model）。
先按窗口灰度绘制切片，再按上传顺序把各标签体以固定颜色、40% 不透明度混合到上方。
"""

from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError
from .plane import Dims, plane_layout
from .volume import Volume

DEFAULT_OVERLAY_OPACITY = 0.4


def overlay_color(index: int) -> Tuple[int, int, int]:
    """第 i 个叠加层的基色：通道 i mod 3 饱和，其余为 0（红、绿、蓝循环）。"""
    color = [0, 0, 0]
    color[index % 3] = 255
    return tuple(color)


@dataclass(frozen=True)
class DisplaySlice:
    """
    最终显示切片。
    pixels 为行优先 RGBA 字节，长度 width*height*4。
    """

    width: int
    height: int
    pixels: np.ndarray

    def as_rgba(self) -> np.ndarray:
        """(H, W, 4) 视图，便于按坐标取像素。"""
        return self.pixels.reshape(self.height, self.width, 4)

    def pixel(self, x: int, y: int) -> Tuple[int, int, int, int]:
        return tuple(int(c) for c in self.as_rgba()[y, x])

    def tobytes(self) -> bytes:
        return self.pixels.tobytes()


def check_overlay_dims(dims: Dims, overlays: Sequence[Volume]) -> None:
    """叠加层必须与主扫描共享同一网格。"""
    for i, overlay in enumerate(overlays):
        if tuple(overlay.dims) != tuple(dims):
            raise DimensionMismatchError(
                f"第 {i} 个叠加层尺寸 {overlay.dims} 与扫描尺寸 {tuple(dims)} 不一致"
            )


def composite(
    windowed_scan: np.ndarray,
    overlays: Sequence[Volume],
    dims: Dims,
    plane,
    slice_index: int,
    opacity: float = DEFAULT_OVERLAY_OPACITY,
) -> DisplaySlice:
    """
    合成一个 DisplaySlice。
    windowed_scan 为窗口变换后的 uint8 样本（长度 nx*ny*nz）。
    overlays 按上传顺序合成，后者覆盖前者；每一层混合后量化为 8 位。
    """
    nx, ny, nz = dims
    if windowed_scan.size != nx * ny * nz:
        raise DimensionMismatchError(
            f"扫描样本数 {windowed_scan.size} 与尺寸 {tuple(dims)} 不一致"
        )
    check_overlay_dims(dims, overlays)

    layout = plane_layout(dims, plane)
    idx = layout.index_grid(slice_index)

    gray = windowed_scan[idx]
    rgb = np.repeat(gray[:, :, np.newaxis], 3, axis=2).astype(np.uint8)

    for i, overlay in enumerate(overlays):
        hit = overlay.samples[idx] > 0
        if not hit.any():
            continue
        base = np.asarray(overlay_color(i), dtype=np.float64)
        # out = (1 - a) * dst + a * base，alpha 保持不透明
        blended = rgb[hit].astype(np.float64) * (1.0 - opacity) + base * opacity
        rgb[hit] = np.clip(np.floor(blended + 0.5), 0, 255).astype(np.uint8)

    rgba = np.empty((layout.height, layout.width, 4), dtype=np.uint8)
    rgba[:, :, :3] = rgb
    rgba[:, :, 3] = 255
    pixels = rgba.ravel()
    pixels.setflags(write=False)
    return DisplaySlice(layout.width, layout.height, pixels)

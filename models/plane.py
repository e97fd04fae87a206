# -*- coding: utf-8 -*-
"""
平面切片布局（Model）。
每个平面把网格的一个轴固定为层号 s，其余两轴作为显示坐标 (x, y)：
- axial:    W=nx, H=ny, idx = x + y*nx + s*nx*ny
- coronal:  W=nx, H=nz, idx = x + s*nx + y*nx*ny
- sagittal: W=ny, H=nz, idx = s + x*nx + y*nx*ny
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Tuple

import numpy as np

from .errors import SliceIndexOutOfRangeError


class Plane(str, Enum):
    """观察平面，取值与界面下拉框一致。"""

    AXIAL = "axial"
    CORONAL = "coronal"
    SAGITTAL = "sagittal"


Dims = Tuple[int, int, int]


@dataclass(frozen=True)
class PlaneLayout:
    """某平面的输出尺寸与下标映射。"""

    plane: Plane
    dims: Dims
    width: int
    height: int
    # 沿固定轴的层数，合法层号为 [0, extent)
    extent: int
    index_fn: Callable[[int, int, int], int]

    def check_slice(self, s: int) -> None:
        if not 0 <= s < self.extent:
            raise SliceIndexOutOfRangeError(
                f"{self.plane.value} 层号 {s} 超出范围 [0, {self.extent})"
            )

    def index_grid(self, s: int) -> np.ndarray:
        """返回 (H, W) 的线性下标网格，行优先，与逐点调用 index_fn 结果一致。"""
        self.check_slice(s)
        ys, xs = np.meshgrid(
            np.arange(self.height, dtype=np.int64),
            np.arange(self.width, dtype=np.int64),
            indexing="ij",
        )
        return self.index_fn(xs, ys, s)


def _axis_strides(dims: Dims) -> Tuple[int, int]:
    nx, ny, _ = dims
    return nx, nx * ny


def plane_layout(dims: Dims, plane) -> PlaneLayout:
    """根据网格尺寸与平面返回 (W, H, index_fn) 布局。"""
    plane = Plane(plane)
    nx, ny, nz = dims
    row, page = _axis_strides(dims)
    if plane is Plane.AXIAL:
        return PlaneLayout(plane, dims, nx, ny, nz, lambda x, y, s: x + y * row + s * page)
    if plane is Plane.CORONAL:
        return PlaneLayout(plane, dims, nx, nz, ny, lambda x, y, s: x + s * row + y * page)
    return PlaneLayout(plane, dims, ny, nz, nx, lambda x, y, s: s + x * row + y * page)


def slice_extent(dims: Dims, plane) -> int:
    """平面固定轴的长度：axial→nz，coronal→ny，sagittal→nx。"""
    return plane_layout(dims, plane).extent


def default_slice_index(dims: Dims, plane) -> int:
    """默认层号取固定轴中点 floor(extent / 2)。"""
    return slice_extent(dims, plane) // 2


def clamp_slice_index(dims: Dims, plane, s: int) -> int:
    return max(0, min(int(s), slice_extent(dims, plane) - 1))

# -*- coding: utf-8 -*-
"""
体数据封装（Model）。
Volume 为不可变的三维标量/标签场：
- dims 为 (nx, ny, nz)，x 变化最快
- samples 为一维数组，线性下标 = x + y*nx + z*nx*ny
- encoding 记录元素编码，未知编码按 8 位无符号回退
"""

from enum import Enum
from typing import Optional, Tuple

import numpy as np

from .errors import DecodeError


class Encoding(Enum):
    """样本编码。值为对应的 numpy dtype 名称。"""

    INT16 = "int16"
    UINT8 = "uint8"
    FLOAT32 = "float32"
    # 不支持的编码统一按 uint8 解释（有损但不报错）
    UINT8_FALLBACK = "uint8-fallback"

    @property
    def dtype(self) -> np.dtype:
        if self is Encoding.INT16:
            return np.dtype(np.int16)
        if self is Encoding.FLOAT32:
            return np.dtype(np.float32)
        return np.dtype(np.uint8)

    @classmethod
    def from_dtype(cls, dtype) -> "Encoding":
        """根据解码得到的元素类型选择编码；浮点一律收窄为 float32。"""
        dtype = np.dtype(dtype)
        if dtype == np.int16:
            return cls.INT16
        if dtype == np.uint8 or dtype == np.bool_:
            return cls.UINT8
        if dtype.kind == "f":
            return cls.FLOAT32
        return cls.UINT8_FALLBACK

    def coerce(self, values: np.ndarray) -> np.ndarray:
        """
        将任意数组转换为本编码的一维样本。
        回退编码对整数做模 256 截断，对浮点先把 NaN 置 0 再截断。
        """
        values = np.asarray(values)
        if self is not Encoding.UINT8_FALLBACK or values.dtype.kind in "biu":
            return values.astype(self.dtype).ravel()
        finite = np.nan_to_num(values.astype(np.float64), nan=0.0, posinf=0.0, neginf=0.0)
        return np.ascontiguousarray(finite.astype(np.int64).astype(np.uint8).ravel())


class Volume:
    """
    不可变体数据。
    - 由解码器一次性构造，之后只读
    - array 视图维度为 (Z, Y, X)，与 SimpleITK 的 GetArrayFromImage 一致
    """

    def __init__(self, dims: Tuple[int, int, int], encoding: Encoding, samples):
        if len(dims) != 3 or any(int(d) <= 0 for d in dims):
            raise DecodeError(f"体数据尺寸必须为三个正整数：{tuple(dims)}")
        self._dims: Tuple[int, int, int] = tuple(int(d) for d in dims)
        self._encoding = encoding
        data = encoding.coerce(samples)
        nx, ny, nz = self._dims
        if data.size != nx * ny * nz:
            raise DecodeError(
                f"样本数 {data.size} 与尺寸 {self._dims} 不符（应为 {nx * ny * nz}）"
            )
        data.setflags(write=False)
        self._samples = data

    @classmethod
    def from_array(cls, array: np.ndarray, encoding: Optional[Encoding] = None) -> "Volume":
        """从 (Z, Y, X) 数组构造；未指定编码时按 dtype 推断。"""
        array = np.asarray(array)
        if array.ndim != 3:
            raise DecodeError(f"需要三维数组，得到 {array.ndim} 维")
        nz, ny, nx = array.shape
        if encoding is None:
            encoding = Encoding.from_dtype(array.dtype)
        return cls((nx, ny, nz), encoding, array)

    @property
    def dims(self) -> Tuple[int, int, int]:
        """网格尺寸 (nx, ny, nz)。"""
        return self._dims

    @property
    def encoding(self) -> Encoding:
        return self._encoding

    @property
    def samples(self) -> np.ndarray:
        """只读一维样本数组。"""
        return self._samples

    @property
    def shape(self) -> Tuple[int, int, int]:
        """体数据形状 (Z, Y, X)。"""
        nx, ny, nz = self._dims
        return nz, ny, nx

    @property
    def array(self) -> np.ndarray:
        """样本的 (Z, Y, X) 只读视图。"""
        return self._samples.reshape(self.shape)

    def __len__(self) -> int:
        return self._samples.size

    def __repr__(self) -> str:
        return f"Volume(dims={self._dims}, encoding={self._encoding.name})"

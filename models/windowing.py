# -*- coding: utf-8 -*-
"""
窗口变换（Model）。
将原始标量（HU）线性映射到 0~255 显示灰度：
t = (raw - wmin) / (wmax - wmin) * 255，四舍五入后截断到 [0, 255]。
"""

import numpy as np

from .errors import InvalidWindowError
from .volume import Volume

# 参考显示窗口：HU 截断到 [-1000, 3000]
DEFAULT_WMIN = -1000.0
DEFAULT_WMAX = 3000.0


def _check_window(wmin: float, wmax: float) -> None:
    if wmax == wmin:
        raise InvalidWindowError(f"窗口上下界相等：wmin={wmin}, wmax={wmax}")


def window(raw: float, wmin: float = DEFAULT_WMIN, wmax: float = DEFAULT_WMAX) -> int:
    """单个样本的窗口变换，返回 0~255 的整数。"""
    return int(window_samples(np.asarray([raw]), wmin, wmax)[0])


def window_samples(
    samples: np.ndarray, wmin: float = DEFAULT_WMIN, wmax: float = DEFAULT_WMAX
) -> np.ndarray:
    """
    对整段样本逐元素做窗口变换，返回等长 uint8 数组。
    .5 向上取整；NaN 映射为 0。
    """
    _check_window(wmin, wmax)
    raw = np.asarray(samples, dtype=np.float64)
    t = (raw - wmin) / (wmax - wmin) * 255.0
    t = np.floor(t + 0.5)
    t = np.nan_to_num(t, nan=0.0)
    return np.clip(t, 0, 255).astype(np.uint8)


def window_volume(
    volume: Volume, wmin: float = DEFAULT_WMIN, wmax: float = DEFAULT_WMAX
) -> np.ndarray:
    """对 Volume 全部样本做窗口变换，结果只读，可在各次切片间复用。"""
    out = window_samples(volume.samples, wmin, wmax)
    out.setflags(write=False)
    return out

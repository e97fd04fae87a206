# -*- coding: utf-8 -*-
"""
Model 层：体数据与切片合成核心。
- Volume / Encoding：不可变体数据与元素编码
- decode：NIfTI / DICOM 字节流解码
- window_samples：HU 窗口变换
- plane_layout：平面切片下标映射
- composite：灰度切片 + 叠加层合成
- AppState：会话状态
"""

from .app_state import AppState, SessionPhase
from .compositor import DisplaySlice, composite, overlay_color
from .decoder import decode, decode_file
from .errors import (
    ContractViolationError,
    DecodeError,
    DimensionMismatchError,
    InvalidWindowError,
    SliceIndexOutOfRangeError,
    ViewerError,
)
from .plane import Plane, PlaneLayout, default_slice_index, plane_layout, slice_extent
from .volume import Encoding, Volume
from .windowing import window, window_samples, window_volume

__all__ = [
    "AppState",
    "SessionPhase",
    "DisplaySlice",
    "composite",
    "overlay_color",
    "decode",
    "decode_file",
    "ViewerError",
    "DecodeError",
    "ContractViolationError",
    "DimensionMismatchError",
    "InvalidWindowError",
    "SliceIndexOutOfRangeError",
    "Plane",
    "PlaneLayout",
    "default_slice_index",
    "plane_layout",
    "slice_extent",
    "Encoding",
    "Volume",
    "window",
    "window_samples",
    "window_volume",
]

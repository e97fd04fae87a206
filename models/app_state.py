# -*- coding: utf-8 -*-
"""
切片会话状态（Model）。
供 SliceSession 读写，View 通过 ViewModel 间接访问。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np

from .compositor import DisplaySlice
from .plane import Plane
from .volume import Volume
from .windowing import DEFAULT_WMAX, DEFAULT_WMIN


class SessionPhase(Enum):
    """会话阶段：Empty → ScanLoaded → Rendering。"""

    EMPTY = "empty"
    SCAN_LOADED = "scan_loaded"
    RENDERING = "rendering"


@dataclass
class AppState:
    """
    会话状态。
    - scan / overlays：主扫描与按上传顺序排列的叠加层，网格相同
    - windowed_scan：scan 的窗口灰度缓存，仅在 scan 或窗口变化时重算
    - display：最近一次合成结果，契约违例时为 None
    """

    phase: SessionPhase = SessionPhase.EMPTY
    scan: Optional[Volume] = None
    overlays: List[Volume] = field(default_factory=list)
    plane: Plane = Plane.AXIAL
    slice_index: int = 0
    # 显示窗口（HU），默认截断到 [-1000, 3000]
    window_min: float = DEFAULT_WMIN
    window_max: float = DEFAULT_WMAX
    windowed_scan: Optional[np.ndarray] = None
    display: Optional[DisplaySlice] = None
    # 异步解码的代号，结果代号过期即丢弃
    scan_generation: int = 0
    overlay_generation: int = 0

# -*- coding: utf-8 -*-
"""
全局配置。
窗口界限、叠加层透明度、契约违例处理策略与日志设置。
"""

import logging
import sys
from dataclasses import dataclass, field

from models.compositor import DEFAULT_OVERLAY_OPACITY
from models.windowing import DEFAULT_WMAX, DEFAULT_WMIN


@dataclass
class WindowConfig:
    """显示窗口（HU）。默认复现 [-1000, 3000] 截断。"""
    wmin: float = DEFAULT_WMIN
    wmax: float = DEFAULT_WMAX


@dataclass
class OverlayConfig:
    """叠加层混合参数；基色固定为红、绿、蓝循环。"""
    opacity: float = DEFAULT_OVERLAY_OPACITY


@dataclass
class ViewerConfig:
    window: WindowConfig = field(default_factory=WindowConfig)
    overlay: OverlayConfig = field(default_factory=OverlayConfig)
    # True：契约违例直接抛出（开发模式）；False：记录日志并进入无图状态
    strict: bool = __debug__
    log_level: str = "INFO"


DEFAULT_VIEWER = ViewerConfig()


def setup_logging(level: str = "INFO") -> None:
    """日志输出到 stdout。"""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

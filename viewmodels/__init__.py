# -*- coding: utf-8 -*-
"""
ViewModel 层：连接 Model 与宿主界面，暴露状态与命令，通过信号驱动刷新。
- SliceSession：扫描/叠加层/平面/层号状态机与切片合成
- DecodeWorker：后台解码线程
"""

from .decode_worker import DecodeWorker
from .slice_session import SliceSession

__all__ = ["DecodeWorker", "SliceSession"]

# -*- coding: utf-8 -*-
"""
后台解码线程。
在工作线程中把一个或多个字节流解码为 Volume，结果通过信号带回会话所在线程。
"""

import logging
import traceback
from typing import List, Sequence

from PySide6.QtCore import QThread, Signal

from models import DecodeError, decode


class DecodeWorker(QThread):
    """
    按顺序解码一组字节流。
    - decoded(generation, volumes)：全部成功，volumes 与输入顺序一致
    - failed(generation, message)：任一失败即整体失败，不返回部分结果
    被 requestInterruption 后不再发出任何结果信号。
    """

    decoded = Signal(int, object)
    failed = Signal(int, str)

    def __init__(self, generation: int, buffers: Sequence[bytes], kind: str = "scan", parent=None):
        super().__init__(parent)
        self.generation = generation
        self.kind = kind
        self._buffers: List[bytes] = list(buffers)

    def run(self):
        try:
            volumes = [decode(data) for data in self._buffers]
        except DecodeError as e:
            logging.error(f"{self.kind} 解码失败（第 {self.generation} 代）：{e}")
            if not self.isInterruptionRequested():
                self.failed.emit(self.generation, str(e))
            return
        except Exception as e:
            logging.error(f"{self.kind} 解码异常：{e}\n{traceback.format_exc()}")
            if not self.isInterruptionRequested():
                self.failed.emit(self.generation, str(e))
            return
        if self.isInterruptionRequested():
            logging.debug(f"{self.kind} 解码结果已被新请求取代（第 {self.generation} 代）")
            return
        self.decoded.emit(self.generation, volumes)

# -*- coding: utf-8 -*-
"""
切片会话 ViewModel（MVVM）。
负责：持有扫描与叠加层、平面与层号状态机、窗口灰度缓存、切片合成、异步解码。
View 通过信号接收刷新通知，通过方法获取展示数据与执行命令。
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np
from PySide6.QtCore import QCoreApplication, QObject, Signal
from PySide6.QtGui import QImage

from config import DEFAULT_VIEWER, ViewerConfig
from models import (
    AppState,
    ContractViolationError,
    DisplaySlice,
    Plane,
    SessionPhase,
    SliceIndexOutOfRangeError,
    Volume,
    composite,
    default_slice_index,
    plane_layout,
    window_volume,
)
from models.plane import clamp_slice_index
from viewmodels.decode_worker import DecodeWorker


class SliceSession(QObject):
    """
    切片会话状态机：Empty → ScanLoaded → Rendering。
    - 换扫描 / 换平面：层号重置为固定轴中点，并重新合成
    - 换层号：越界时截断到合法范围，不影响默认值
    - 换叠加层：复用窗口灰度缓存，只重做合成
    - 异步加载：每次请求递增代号，过期结果直接丢弃
    """

    # 主扫描替换完成（尺寸与默认层号已更新）
    scan_loaded = Signal()
    # 叠加层集合替换
    overlays_changed = Signal()
    plane_changed = Signal(str)
    slice_index_changed = Signal(int)
    # 当前平面的层号范围 (min, max)，供 View 设置滑条
    slice_range_changed = Signal(int, int)
    # 新的 DisplaySlice 可供绘制
    slice_rendered = Signal(object)
    render_failed = Signal(str)
    load_failed = Signal(str)
    # 状态栏文案
    status_message = Signal(str)

    def __init__(self, config: Optional[ViewerConfig] = None, parent=None):
        super().__init__(parent)
        self._config = config or DEFAULT_VIEWER
        self._app_state = AppState(
            window_min=self._config.window.wmin,
            window_max=self._config.window.wmax,
        )
        # 窗口灰度缓存对应的 (scan, wmin, wmax)
        self._windowed_key: Optional[Tuple[Volume, float, float]] = None
        self._workers: List[DecodeWorker] = []

    # ---------- 只读状态 ----------

    @property
    def app_state(self) -> AppState:
        return self._app_state

    @property
    def config(self) -> ViewerConfig:
        return self._config

    @property
    def phase(self) -> SessionPhase:
        return self._app_state.phase

    @property
    def scan(self) -> Optional[Volume]:
        return self._app_state.scan

    @property
    def overlays(self) -> List[Volume]:
        return list(self._app_state.overlays)

    @property
    def plane(self) -> Plane:
        return self._app_state.plane

    @property
    def slice_index(self) -> int:
        return self._app_state.slice_index

    @property
    def dims(self) -> Optional[Tuple[int, int, int]]:
        scan = self._app_state.scan
        return scan.dims if scan is not None else None

    @property
    def display_slice(self) -> Optional[DisplaySlice]:
        return self._app_state.display

    @property
    def windowed_scan(self) -> Optional[np.ndarray]:
        """扫描的窗口灰度（按 scan 身份与窗口界限缓存）。"""
        st = self._app_state
        if st.scan is None:
            return None
        key = (st.scan, st.window_min, st.window_max)
        if (
            self._windowed_key is None
            or self._windowed_key[0] is not key[0]
            or self._windowed_key[1:] != key[1:]
        ):
            st.windowed_scan = window_volume(st.scan, st.window_min, st.window_max)
            self._windowed_key = key
        return st.windowed_scan

    def slice_range(self) -> Tuple[int, int]:
        """当前平面的层号范围 (0, extent-1)，无数据时 (0, 0)。"""
        if self._app_state.scan is None:
            return 0, 0
        layout = plane_layout(self._app_state.scan.dims, self._app_state.plane)
        return 0, layout.extent - 1

    # ---------- 命令：同步状态转移 ----------

    def set_scan(self, volume: Volume) -> Optional[DisplaySlice]:
        """替换主扫描：取消进行中的扫描加载，重置默认层号并合成。"""
        self._app_state.scan_generation += 1
        self._cancel_workers("scan")
        return self._apply_scan(volume)

    def set_overlays(self, volumes: Sequence[Volume]) -> Optional[DisplaySlice]:
        """替换叠加层集合（保持上传顺序），层号与平面不变。"""
        self._app_state.overlay_generation += 1
        self._cancel_workers("overlays")
        return self._apply_overlays(volumes)

    def set_plane(self, plane) -> Optional[DisplaySlice]:
        """切换平面：按新平面的固定轴重新计算默认层号，不保留旧层号。"""
        plane = Plane(plane)
        st = self._app_state
        if plane is st.plane:
            return st.display
        st.plane = plane
        self.plane_changed.emit(plane.value)
        if st.scan is None:
            return None
        self._reset_slice_index()
        return self._render()

    def set_slice_index(self, index: int) -> Optional[DisplaySlice]:
        """设置层号；越界时截断到 [0, extent-1]。"""
        st = self._app_state
        if st.scan is None:
            return None
        layout = plane_layout(st.scan.dims, st.plane)
        index = int(index)
        try:
            layout.check_slice(index)
        except SliceIndexOutOfRangeError as e:
            logging.debug(f"层号截断：{e}")
            index = clamp_slice_index(st.scan.dims, st.plane, index)
        if index != st.slice_index:
            st.slice_index = index
            self.slice_index_changed.emit(index)
        return self._render()

    def clear(self) -> None:
        """回到 Empty：丢弃扫描、叠加层与进行中的加载。"""
        st = self._app_state
        st.scan_generation += 1
        st.overlay_generation += 1
        self._cancel_workers()
        st.scan = None
        st.overlays = []
        st.slice_index = 0
        st.windowed_scan = None
        st.display = None
        st.phase = SessionPhase.EMPTY
        self._windowed_key = None
        self.status_message.emit("已清空")

    # ---------- 命令：异步加载 ----------

    def load_scan_bytes(self, data: bytes) -> int:
        """后台解码主扫描，返回本次请求的代号。"""
        st = self._app_state
        st.scan_generation += 1
        self._cancel_workers("scan")
        worker = DecodeWorker(st.scan_generation, [data], kind="scan")
        worker.decoded.connect(self._on_scan_decoded)
        worker.failed.connect(self._on_scan_failed)
        self._start_worker(worker)
        self.status_message.emit("正在加载扫描…")
        return st.scan_generation

    def load_overlay_bytes(self, buffers: Sequence[bytes]) -> int:
        """后台解码一组叠加层（按给定顺序），返回本次请求的代号。"""
        st = self._app_state
        st.overlay_generation += 1
        self._cancel_workers("overlays")
        worker = DecodeWorker(st.overlay_generation, buffers, kind="overlays")
        worker.decoded.connect(self._on_overlays_decoded)
        worker.failed.connect(self._on_overlays_failed)
        self._start_worker(worker)
        self.status_message.emit(f"正在加载 {len(buffers)} 个叠加层…")
        return st.overlay_generation

    def wait_for_pending(self, timeout_ms: Optional[int] = None) -> bool:
        """阻塞等待所有解码线程结束并派发其结果，全部结束返回 True。"""
        done = True
        for worker in list(self._workers):
            finished = worker.wait() if timeout_ms is None else worker.wait(timeout_ms)
            done = done and finished
        QCoreApplication.processEvents()
        if done:
            self._prune_workers()
        return done

    def shutdown(self) -> None:
        """宿主界面卸载时调用：取消并等待所有后台线程。"""
        self._cancel_workers()
        for worker in list(self._workers):
            worker.wait()
        self._workers.clear()

    # ---------- 供 View 获取展示数据 ----------

    def get_display_image(self) -> Optional[QImage]:
        """当前 DisplaySlice 的 RGBA8888 QImage，无数据时返回 None。"""
        display = self._app_state.display
        if display is None:
            return None
        qimg = QImage(
            display.tobytes(),
            display.width,
            display.height,
            display.width * 4,
            QImage.Format_RGBA8888,
        )
        # 拷贝一份，脱离临时 bytes 的生命周期
        return qimg.copy()

    # ---------- 内部 ----------

    def _apply_scan(self, volume: Volume, raise_errors: Optional[bool] = None) -> Optional[DisplaySlice]:
        st = self._app_state
        st.scan = volume
        st.windowed_scan = None
        st.display = None
        self._windowed_key = None
        st.phase = SessionPhase.SCAN_LOADED
        self._reset_slice_index()
        logging.info(f"扫描已加载：{volume}")
        self.status_message.emit(f"已加载扫描，尺寸 {volume.dims}")
        self.scan_loaded.emit()
        return self._render(raise_errors)

    def _apply_overlays(
        self, volumes: Sequence[Volume], raise_errors: Optional[bool] = None
    ) -> Optional[DisplaySlice]:
        st = self._app_state
        st.overlays = list(volumes)
        logging.info(f"叠加层已更新：{len(st.overlays)} 个")
        self.overlays_changed.emit()
        if st.scan is None:
            return None
        return self._render(raise_errors)

    def _reset_slice_index(self) -> None:
        st = self._app_state
        st.slice_index = default_slice_index(st.scan.dims, st.plane)
        lo, hi = self.slice_range()
        self.slice_range_changed.emit(lo, hi)
        self.slice_index_changed.emit(st.slice_index)

    def _render(self, raise_errors: Optional[bool] = None) -> Optional[DisplaySlice]:
        """
        合成当前 (scan, overlays, plane, slice) 对应的 DisplaySlice。
        raise_errors 默认取 config.strict；异步结果的槽函数传 False，
        此时错误只经 render_failed 与日志报告。
        """
        if raise_errors is None:
            raise_errors = self._config.strict
        st = self._app_state
        if st.scan is None:
            return None
        try:
            display = composite(
                self.windowed_scan,
                st.overlays,
                st.scan.dims,
                st.plane,
                st.slice_index,
                opacity=self._config.overlay.opacity,
            )
        except ContractViolationError as e:
            st.display = None
            st.phase = SessionPhase.SCAN_LOADED
            logging.error(f"切片合成失败：{e}")
            self.render_failed.emit(str(e))
            if raise_errors:
                raise
            return None
        st.display = display
        st.phase = SessionPhase.RENDERING
        self.slice_rendered.emit(display)
        return display

    def _start_worker(self, worker: DecodeWorker) -> None:
        self._prune_workers()
        self._workers.append(worker)
        worker.start()

    def _prune_workers(self) -> None:
        """释放已结束的线程对象；运行中的线程必须保持引用。"""
        self._workers = [w for w in self._workers if not w.isFinished()]

    def _cancel_workers(self, kind: Optional[str] = None) -> None:
        for worker in self._workers:
            if kind is None or worker.kind == kind:
                worker.requestInterruption()

    def _on_scan_decoded(self, generation: int, volumes: list) -> None:
        if generation != self._app_state.scan_generation:
            logging.debug(f"丢弃过期的扫描结果（第 {generation} 代）")
            return
        self._apply_scan(volumes[0], raise_errors=False)

    def _on_overlays_decoded(self, generation: int, volumes: list) -> None:
        if generation != self._app_state.overlay_generation:
            logging.debug(f"丢弃过期的叠加层结果（第 {generation} 代）")
            return
        self._apply_overlays(volumes, raise_errors=False)

    def _on_scan_failed(self, generation: int, message: str) -> None:
        if generation == self._app_state.scan_generation:
            self._report_load_failure(message)

    def _on_overlays_failed(self, generation: int, message: str) -> None:
        if generation == self._app_state.overlay_generation:
            self._report_load_failure(message)

    def _report_load_failure(self, message: str) -> None:
        # 失败不改变会话状态
        self.load_failed.emit(f"could not load file: {message}")
        self.status_message.emit(f"加载失败：{message}")

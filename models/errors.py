# -*- coding: utf-8 -*-
"""
错误类型（Model）。
- DecodeError：解码器无法从字节流构造 Volume（头部损坏、数据截断、压缩格式不支持）
- ContractViolationError：编程契约违例，细分为窗口、尺寸、层号三类
"""


class ViewerError(Exception):
    """本项目所有错误的基类。"""


class DecodeError(ViewerError):
    """体数据解码失败，不会产生半成品 Volume。"""


class ContractViolationError(ViewerError):
    """调用方违反了切片/合成的前置条件。"""


class InvalidWindowError(ContractViolationError, ValueError):
    """窗口上下界相等（wmax == wmin），无法线性映射。"""


class DimensionMismatchError(ContractViolationError, ValueError):
    """叠加层网格尺寸与主扫描不一致。"""


class SliceIndexOutOfRangeError(ContractViolationError, IndexError):
    """层号超出当前平面的 [0, extent) 范围。"""

# -*- coding: utf-8 -*-
"""
体数据解码器（Model）。
将字节流解析为 Volume：
- NIfTI（.nii / .nii.gz）：nibabel 校验头部与数据长度，SimpleITK 读取体素，gzip 压缩自动解压
- DICOM（单帧或多帧）：交给 pydicom 读取，并按 RescaleSlope/Intercept 换算为 HU
任何底层读取异常统一转换为 DecodeError，不返回半成品。
"""

import gzip
import io
import logging
import os
import tempfile
import zlib
from pathlib import Path
from typing import Tuple, Union

import nibabel as nib
import numpy as np
import pydicom
import SimpleITK as sitk
from nibabel.spatialimages import HeaderDataError

from .errors import DecodeError
from .volume import Encoding, Volume

GZIP_MAGIC = b"\x1f\x8b"
# 可识别但不支持的压缩格式
UNSUPPORTED_MAGICS = {
    b"BZh": "bzip2",
    b"\xfd7zXZ\x00": "xz",
    b"\x28\xb5\x2f\xfd": "zstd",
}
DICOM_MAGIC_OFFSET = 128


def is_compressed(data: bytes) -> bool:
    """字节流是否为 gzip 压缩。"""
    return data[:2] == GZIP_MAGIC


def decompress(data: bytes) -> bytes:
    """解压 gzip 字节流；其他已知压缩格式直接报错。"""
    for magic, name in UNSUPPORTED_MAGICS.items():
        if data.startswith(magic):
            raise DecodeError(f"不支持的压缩格式：{name}")
    if not is_compressed(data):
        return data
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise DecodeError(f"gzip 数据损坏：{e}") from e


def is_dicom(data: bytes) -> bool:
    return data[DICOM_MAGIC_OFFSET:DICOM_MAGIC_OFFSET + 4] == b"DICM"


def nifti_header(data: bytes):
    """按 NIfTI-1 / NIfTI-2 依次尝试解析头部，均不匹配时返回 None。"""
    for header_class in (nib.Nifti1Header, nib.Nifti2Header):
        if len(data) < header_class.template_dtype.itemsize:
            continue
        try:
            return header_class.from_fileobj(io.BytesIO(data), check=True)
        except (HeaderDataError, ValueError):
            continue
    return None


def decode(data: bytes) -> Volume:
    """
    解码字节流为 Volume。
    支持可选 gzip 压缩；格式无法识别、头部损坏或数据截断时抛出 DecodeError。
    """
    if not data:
        raise DecodeError("空数据")
    data = decompress(bytes(data))
    if is_dicom(data):
        return _decode_dicom(data)
    header = nifti_header(data)
    if header is not None:
        if header["magic"].item() == header.pair_magic:
            raise DecodeError("不支持分离式 NIfTI（.hdr/.img），请使用单文件 .nii")
        return _decode_nifti(data, header)
    raise DecodeError("无法识别的文件格式（需要 NIfTI 或 DICOM）")


def decode_file(path: Union[str, Path]) -> Volume:
    """读取文件后解码，便于脚本与测试使用。"""
    try:
        data = Path(path).read_bytes()
    except OSError as e:
        raise DecodeError(f"无法读取文件 {path}：{e}") from e
    return decode(data)


def nifti_payload_size(header) -> Tuple[int, int]:
    """由头部得到 (数据偏移, 体素数据字节数)，用于提前发现截断。"""
    shape = header.get_data_shape()
    itemsize = header.get_data_dtype().itemsize
    count = int(np.prod(shape, dtype=np.int64))
    return int(header.get_data_offset()), count * itemsize


def _decode_nifti(data: bytes, header) -> Volume:
    """SimpleITK 只能按文件名读取，先写入临时文件。"""
    offset, payload = nifti_payload_size(header)
    if len(data) < offset + payload:
        raise DecodeError(
            f"NIfTI 数据被截断：需要 {offset + payload} 字节，实际 {len(data)} 字节"
        )
    fd, tmp_path = tempfile.mkstemp(suffix=".nii")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        reader = sitk.ImageFileReader()
        reader.SetImageIO("NiftiImageIO")
        reader.SetFileName(tmp_path)
        image = reader.Execute()
    except RuntimeError as e:
        raise DecodeError(f"NIfTI 解析失败：{e}") from e
    finally:
        os.remove(tmp_path)

    if image.GetNumberOfComponentsPerPixel() != 1:
        raise DecodeError("不支持多分量像素")
    size = list(image.GetSize())
    if len(size) > 3:
        if any(s != 1 for s in size[3:]):
            raise DecodeError(f"仅支持三维体数据，得到尺寸 {tuple(size)}")
        # 尺寸为 0 的维度会被 Extract 折叠
        image = sitk.Extract(image, size[:3] + [0] * (len(size) - 3), [0] * len(size))
    # SimpleITK 读入为 (Z,Y,X)，展平后 x 变化最快
    array = sitk.GetArrayFromImage(image)
    dims = tuple(image.GetSize()) + (1,) * (3 - image.GetDimension())
    encoding = Encoding.from_dtype(array.dtype)
    logging.info(f"NIfTI 解码完成：尺寸 {dims}，编码 {encoding.name}")
    return Volume(dims, encoding, array)


def _decode_dicom(data: bytes) -> Volume:
    """多帧 DICOM 的帧序作为 z 轴；存在换算参数时输出 float32。"""
    try:
        ds = pydicom.dcmread(io.BytesIO(data))
        pixels = ds.pixel_array
    except Exception as e:
        raise DecodeError(f"DICOM 解析失败：{e}") from e

    if getattr(ds, "SamplesPerPixel", 1) != 1:
        raise DecodeError("不支持多分量像素")
    frames = int(getattr(ds, "NumberOfFrames", 1) or 1)
    if pixels.ndim == 2:
        pixels = pixels[np.newaxis, :, :]
    if pixels.ndim != 3 or pixels.shape[0] != frames:
        raise DecodeError(f"DICOM 像素维度异常：{pixels.shape}")

    slope = float(getattr(ds, "RescaleSlope", 1) or 1)
    intercept = float(getattr(ds, "RescaleIntercept", 0) or 0)
    if slope != 1.0 or intercept != 0.0 or pixels.dtype not in (np.int16, np.uint8):
        pixels = pixels.astype(np.float32) * np.float32(slope) + np.float32(intercept)
    volume = Volume.from_array(pixels)
    logging.info(f"DICOM 解码完成：尺寸 {volume.dims}，编码 {volume.encoding.name}")
    return volume

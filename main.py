# -*- coding: utf-8 -*-
"""
程序入口（无界面宿主）。
读取扫描与若干叠加层文件，按指定平面与层号合成一张切片并保存为 PNG。

示例：
    python main.py ct.nii.gz --mask liver.nii.gz --mask kidney.nii.gz \
            --plane coronal --slice 120 --output coronal_120.png
"""

import argparse
import logging
import sys
from pathlib import Path

from config import ViewerConfig, setup_logging
from models import DecodeError, Plane, decode
from viewmodels import SliceSession


def _parse_args(argv=None):
    p = argparse.ArgumentParser(description="Render one slice of a CT scan with label overlays")
    p.add_argument("scan", help="Scan file (.nii, .nii.gz or DICOM)")
    p.add_argument(
        "--mask",
        action="append",
        default=[],
        help="Segmentation mask file; repeat for several masks (colored red, green, blue, ... in order)",
    )
    p.add_argument(
        "--plane",
        choices=[plane.value for plane in Plane],
        default=Plane.AXIAL.value,
        help="Viewing plane (default: axial)",
    )
    p.add_argument("--slice", type=int, help="Slice index; defaults to the middle slice, clamped to the valid range")
    p.add_argument("--output", "-o", default="slice.png", help="Output PNG path")
    p.add_argument("--log-level", default="INFO", help="Logging level")
    return p.parse_args(argv)


def main(argv=None) -> int:
    args = _parse_args(argv)
    config = ViewerConfig(strict=False, log_level=args.log_level)
    setup_logging(config.log_level)

    try:
        scan = decode(Path(args.scan).read_bytes())
        masks = [decode(Path(m).read_bytes()) for m in args.mask]
    except (OSError, DecodeError) as e:
        print(f"could not load file: {e}", file=sys.stderr)
        return 2

    session = SliceSession(config)
    session.set_scan(scan)
    session.set_plane(args.plane)
    session.set_overlays(masks)
    if args.slice is not None:
        session.set_slice_index(args.slice)

    image = session.get_display_image()
    if image is None:
        print("nothing to render (mask dimensions must match the scan)", file=sys.stderr)
        return 2
    if not image.save(args.output, "PNG"):
        print(f"Failed to save {args.output}", file=sys.stderr)
        return 3
    lo, hi = session.slice_range()
    logging.info(
        f"已保存 {session.plane.value} 第 {session.slice_index} 层（范围 {lo}-{hi}）到 {args.output}"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

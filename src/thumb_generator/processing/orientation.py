"""根据 EXIF 方向信息计算并应用旋转。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from thumb_generator.core.models import ImageAsset

LOGGER = logging.getLogger(__name__)

ORIENTATION_TAG = 0x0112

# EXIF Orientation -> 顺时针旋转角度
ROTATION_BY_ORIENTATION = {
    3: 180,
    6: 270,
    8: 90,
}

# 顺时针角度对应的 Pillow 转置操作（Pillow 的 ROTATE_* 为逆时针）
_TRANSPOSE_BY_DEGREES = {
    90: Image.Transpose.ROTATE_270,
    180: Image.Transpose.ROTATE_180,
    270: Image.Transpose.ROTATE_90,
}


def rotation_for(source_path: Path) -> int:
    """读取源文件的方向元数据，返回需要的顺时针旋转角度。"""

    try:
        with Image.open(source_path) as img:
            orientation = img.getexif().get(ORIENTATION_TAG)
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as exc:
        LOGGER.debug("无法读取方向信息 %s: %s", source_path, exc)
        return 0

    return ROTATION_BY_ORIENTATION.get(orientation, 0)


def apply_rotation(asset: ImageAsset, degrees: int) -> ImageAsset:
    """顺时针旋转图片；0 度时原样返回同一对象。"""

    if degrees % 360 == 0:
        return asset

    method = _TRANSPOSE_BY_DEGREES.get(degrees % 360)
    if method is None:
        raise ValueError(f"仅支持 90 度的整数倍旋转: {degrees}")
    return asset.with_raster(asset.raster.transpose(method))

"""按百分比缩放图片。"""

from __future__ import annotations

import logging

from PIL import Image

from thumb_generator.core.config import ResizeRatio
from thumb_generator.core.exceptions import ResizeFailure
from thumb_generator.core.models import ImageAsset

LOGGER = logging.getLogger(__name__)

# 面积平均插值，避免最近邻带来的锯齿
RESAMPLE_FILTER = Image.BOX


def target_size(width: int, height: int, width_percent: int, height_percent: int) -> tuple[int, int]:
    """根据百分比向下取整计算目标宽高。"""

    return width * width_percent // 100, height * height_percent // 100


def resize(asset: ImageAsset, width_percent: int, height_percent: int) -> ImageAsset:
    """返回缩放后的新资产，原资产保持不变。"""

    target_w, target_h = target_size(asset.width, asset.height, width_percent, height_percent)
    if target_w <= 0 or target_h <= 0:
        raise ResizeFailure(
            f"目标尺寸为空: {asset.width}x{asset.height} @ {width_percent}%/{height_percent}% -> {target_w}x{target_h}"
        )

    try:
        resized = asset.raster.resize((target_w, target_h), RESAMPLE_FILTER)
    except (MemoryError, ValueError) as exc:
        raise ResizeFailure(f"无法分配 {target_w}x{target_h} 的画布") from exc

    LOGGER.debug("缩放 %s: %dx%d -> %dx%d", asset.source_path, asset.width, asset.height, target_w, target_h)
    return asset.with_raster(resized)


def resize_by_ratio(asset: ImageAsset, ratio: ResizeRatio) -> ImageAsset:
    return resize(asset, ratio.width_percent, ratio.height_percent)

"""水印加载与叠加。

水印在一次运行内最多加载一次并只读共享；加载或叠加失败都只记录调试日志，
不会影响缩略图本身的生成。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

from thumb_generator.core.config import WatermarkConfig
from thumb_generator.core.exceptions import (
    ImageWriteError,
    NotAnImageError,
    UnsupportedFormatError,
    WatermarkLoadError,
)
from thumb_generator.core.models import ImageAsset
from thumb_generator.processing.codec import decode, encode

if TYPE_CHECKING:
    from PIL import Image

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class WatermarkSpec:
    """已解码的水印图片。"""

    file_path: Path
    raster: "Image.Image"


def load_watermark(path: Path) -> WatermarkSpec:
    """解码水印文件。"""

    if not path.is_file():
        raise WatermarkLoadError(f"水印文件不存在: {path}")
    try:
        asset = decode(path)
    except NotAnImageError as exc:
        raise WatermarkLoadError(f"无法加载水印: {path}") from exc
    return WatermarkSpec(file_path=path, raster=asset.raster)


def compute_position(
    target_size: Tuple[int, int],
    watermark_size: Tuple[int, int],
    margin_right: Optional[float] = None,
    margin_bottom: Optional[float] = None,
) -> Tuple[int, int]:
    """计算水印左上角坐标。

    缺省边距取 ``目标/2 - 水印/2``，与右、下边距公式组合后即为居中位置。
    """

    target_w, target_h = target_size
    mark_w, mark_h = watermark_size
    if margin_right is None:
        margin_right = target_w / 2 - mark_w / 2
    if margin_bottom is None:
        margin_bottom = target_h / 2 - mark_h / 2
    return int(target_w - mark_w - margin_right), int(target_h - mark_h - margin_bottom)


def composite(
    target: ImageAsset,
    watermark: Optional[WatermarkSpec],
    margin_right: Optional[int] = None,
    margin_bottom: Optional[int] = None,
) -> ImageAsset:
    """将水印像素直接覆盖到目标图上（不做透明混合），原地修改并返回目标。"""

    if watermark is None:
        return target

    position = compute_position(target.raster.size, watermark.raster.size, margin_right, margin_bottom)
    stamp = watermark.raster
    if stamp.mode != target.raster.mode:
        stamp = stamp.convert(target.raster.mode)
    target.raster.paste(stamp, position)
    if stamp is not watermark.raster:
        stamp.close()
    return target


def stamp_file(
    path: Path,
    watermark: Optional[WatermarkSpec],
    margin_right: Optional[int] = None,
    margin_bottom: Optional[int] = None,
) -> bool:
    """回读已写出的缩略图、叠加水印并覆盖写回，失败时静默返回 False。"""

    if watermark is None:
        return False

    try:
        asset = decode(path)
    except NotAnImageError as exc:
        LOGGER.debug("无法回读缩略图以添加水印 %s: %s", path, exc)
        return False

    try:
        composite(asset, watermark, margin_right, margin_bottom)
        encode(asset, path)
    except (UnsupportedFormatError, ImageWriteError, ValueError) as exc:
        LOGGER.debug("添加水印失败 %s: %s", path, exc)
        return False
    finally:
        asset.close()
    return True


class WatermarkCompositor:
    """持有一次运行的水印配置，首次使用时加载水印。"""

    def __init__(self, config: WatermarkConfig) -> None:
        self.config = config
        self._spec: Optional[WatermarkSpec] = None
        self._loaded = False

    @property
    def spec(self) -> Optional[WatermarkSpec]:
        if not self._loaded:
            self._loaded = True
            self._spec = self._load()
        return self._spec

    def close(self) -> None:
        if self._spec is not None:
            self._spec.raster.close()
            self._spec = None

    def _load(self) -> Optional[WatermarkSpec]:
        if self.config.path is None:
            return None
        try:
            spec = load_watermark(self.config.path)
        except WatermarkLoadError as exc:
            LOGGER.warning("水印已禁用：%s", exc)
            return None
        LOGGER.info("已加载水印 %s (%dx%d)", spec.file_path, spec.raster.width, spec.raster.height)
        return spec

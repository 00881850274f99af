"""图片解码与编码实现，格式由文件内容识别而非扩展名。"""

from __future__ import annotations

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from thumb_generator.core.exceptions import ImageWriteError, NotAnImageError, UnsupportedFormatError
from thumb_generator.core.models import ImageAsset

LOGGER = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("JPEG", "GIF", "PNG", "BMP")

# 各格式编码时可直接写入的模式，其余模式先转换为列表中的第一项。
_ENCODABLE_MODES = {
    "JPEG": ("RGB", "L"),
    "BMP": ("RGB", "L"),
    "PNG": ("RGBA", "RGB", "L"),
    "GIF": ("RGB", "RGBA", "L", "P"),
}

_WORKING_MODES = {"RGB", "RGBA", "L"}

_DECODE_ERRORS = (UnidentifiedImageError, OSError, Image.DecompressionBombError)


def probe_format(path: Path) -> str:
    """只读取文件头，返回识别出的图片格式。"""

    try:
        with Image.open(path) as img:
            image_format = img.format
    except _DECODE_ERRORS as exc:
        LOGGER.debug("无法识别图像文件 %s: %s", path, exc)
        raise NotAnImageError(f"无法识别图像: {path}") from exc

    if image_format not in SUPPORTED_FORMATS:
        raise NotAnImageError(f"不支持的图片格式 {image_format}: {path}")
    return image_format


def decode(path: Path) -> ImageAsset:
    """加载单张图片并归一化到可平滑重采样的模式。

    返回的 ImageAsset 由调用者负责关闭。
    """

    try:
        with Image.open(path) as img:
            image_format = img.format
            if image_format not in SUPPORTED_FORMATS:
                raise NotAnImageError(f"不支持的图片格式 {image_format}: {path}")
            img.load()
            raster = _to_working_mode(img)
    except _DECODE_ERRORS as exc:
        LOGGER.debug("无法解码图像文件 %s: %s", path, exc)
        raise NotAnImageError(f"无法加载图像: {path}") from exc

    return ImageAsset(source_path=path, format=image_format, raster=raster)


def encode(asset: ImageAsset, destination: Path) -> None:
    """按原始格式将图片写入磁盘。"""

    modes = _ENCODABLE_MODES.get(asset.format)
    if modes is None:
        raise UnsupportedFormatError(f"不支持的输出格式: {asset.format}")

    image_to_save = asset.raster
    if image_to_save.mode not in modes:
        image_to_save = image_to_save.convert(modes[0])

    save_params = {}
    if asset.format == "JPEG":
        save_params.update(quality=95, subsampling=1, optimize=True)
    elif asset.format == "PNG":
        save_params.update(optimize=True)

    try:
        image_to_save.save(destination, format=asset.format, **save_params)
    except OSError as exc:
        raise ImageWriteError(f"写入文件失败: {destination}") from exc
    finally:
        if image_to_save is not asset.raster:
            image_to_save.close()


def _to_working_mode(img: Image.Image) -> Image.Image:
    """将任意模式图像转换为 L/RGB/RGBA 之一。"""

    if img.mode in _WORKING_MODES:
        return img.copy()

    if img.mode in {"LA", "PA", "La", "RGBa"}:
        return img.convert("RGBA")

    if img.mode == "P":
        return img.convert("RGBA" if "transparency" in img.info else "RGB")

    # CMYK、YCbCr 等其他模式直接转换
    return img.convert("RGB")

"""单个缩略图的渲染单元，可在主进程或工作进程中执行。"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from thumb_generator.core.config import ResizeRatio
from thumb_generator.core.exceptions import ImageWriteError, NotAnImageError, ResizeFailure, UnsupportedFormatError
from thumb_generator.core.models import STATUS_PROCESSED, STATUS_SKIPPED, FileOutcome, ImageAsset, ThumbnailJob
from thumb_generator.processing.codec import decode, encode
from thumb_generator.processing.orientation import apply_rotation, rotation_for
from thumb_generator.processing.resize import resize_by_ratio
from thumb_generator.processing.watermark import WatermarkSpec, stamp_file


@dataclass(slots=True)
class RenderTask:
    """描述单个缩略图的渲染任务，输出文件名已在主进程中确定。"""

    job: ThumbnailJob
    ratio: ResizeRatio
    watermark: Optional[WatermarkSpec] = None
    margin_right: Optional[int] = None
    margin_bottom: Optional[int] = None


def not_an_image(source_path: Path) -> FileOutcome:
    return FileOutcome(source_path=source_path, status=STATUS_SKIPPED, message=f"Not an image {source_path}")


def run_task(task: RenderTask) -> FileOutcome:
    """在工作进程中执行：解码源文件后渲染。"""

    try:
        asset = decode(task.job.source_path)
    except NotAnImageError:
        return not_an_image(task.job.source_path)

    try:
        return render(asset, task)
    finally:
        asset.close()


def render(asset: ImageAsset, task: RenderTask) -> FileOutcome:
    """缩放、旋转、编码并按需添加水印。asset 由调用者关闭。"""

    job = task.job
    resized: Optional[ImageAsset] = None
    rotated: Optional[ImageAsset] = None

    try:
        resized = resize_by_ratio(asset, task.ratio)
    except ResizeFailure as exc:
        return FileOutcome(
            source_path=job.source_path,
            status=STATUS_SKIPPED,
            message=f"Could not resize {job.source_path.name}: {exc}",
        )

    try:
        rotated = apply_rotation(resized, rotation_for(job.source_path))
        encode(rotated, job.destination)
    except UnsupportedFormatError:
        return FileOutcome(
            source_path=job.source_path,
            status=STATUS_SKIPPED,
            message=f"Not a valid image format {job.source_path.name}",
        )
    except ImageWriteError:
        return FileOutcome(
            source_path=job.source_path,
            status=STATUS_SKIPPED,
            message=f"Could not write thumbnail {job.destination}",
        )
    finally:
        _close_if_needed(resized, rotated)

    if task.watermark is not None:
        stamp_file(job.destination, task.watermark, task.margin_right, task.margin_bottom)

    return FileOutcome(
        source_path=job.source_path,
        status=STATUS_PROCESSED,
        output_path=job.destination,
        message=f"Created thumbnail {job.destination}",
    )


def _close_if_needed(*assets: Optional[ImageAsset]) -> None:
    seen: set[int] = set()
    for asset in assets:
        if asset is not None and id(asset) not in seen:
            seen.add(id(asset))
            asset.close()

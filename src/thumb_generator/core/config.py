"""缩略图生成任务的配置模型。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from thumb_generator.core.exceptions import InvalidConfigurationError

DEFAULT_REDUCTION = 50
DEFAULT_OUTPUT_DIRNAME = "thumbs"


@dataclass(slots=True)
class ResizeRatio:
    """宽高缩放百分比，未指定高度时沿用宽度比例。"""

    width_percent: int = DEFAULT_REDUCTION
    height_percent: Optional[int] = None

    def __post_init__(self) -> None:
        if self.height_percent is None:
            self.height_percent = self.width_percent
        if self.width_percent <= 0 or self.height_percent <= 0:
            raise InvalidConfigurationError(
                f"缩放比例必须为正整数: {self.width_percent}/{self.height_percent}"
            )


@dataclass(slots=True)
class WatermarkConfig:
    """水印文件与定位配置，边距缺省时水印居中。"""

    path: Optional[Path] = None
    margin_right: Optional[int] = None
    margin_bottom: Optional[int] = None

    @property
    def enabled(self) -> bool:
        return self.path is not None


@dataclass(slots=True)
class RunConfig:
    """单次缩略图批处理的配置集合。"""

    working_dir: Path
    output_dir: Optional[Path] = None
    recursive: bool = True
    ratio: ResizeRatio = field(default_factory=ResizeRatio)
    watermark: WatermarkConfig = field(default_factory=WatermarkConfig)
    max_workers: int = 1
    enable_log_dump: bool = False
    log_dir: Optional[Path] = None

    def __post_init__(self) -> None:
        if self.output_dir is None:
            self.output_dir = self.working_dir / DEFAULT_OUTPUT_DIRNAME
        if self.max_workers < 1:
            raise InvalidConfigurationError(f"并发进程数量必须大于 0: {self.max_workers}")

    @property
    def dump_dir(self) -> Path:
        """日志转储目录，默认写入输出目录。"""

        return self.log_dir if self.log_dir is not None else self.output_dir

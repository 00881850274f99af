"""核心数据模型定义。"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, FrozenSet, Optional

if TYPE_CHECKING:
    from PIL import Image

    from thumb_generator.core.event_log import LogEvent

STATUS_PROCESSED = "processed"
STATUS_SKIPPED = "skipped"


@dataclass(slots=True)
class ImageAsset:
    """解码后的图片，由创建它的流水线阶段独占并负责关闭。"""

    source_path: Path
    format: str
    raster: "Image.Image"

    @property
    def width(self) -> int:
        return self.raster.width

    @property
    def height(self) -> int:
        return self.raster.height

    def with_raster(self, raster: "Image.Image") -> "ImageAsset":
        """以新画布派生资产，保留来源与格式。"""

        return ImageAsset(source_path=self.source_path, format=self.format, raster=raster)

    def close(self) -> None:
        self.raster.close()


@dataclass(slots=True)
class ThumbnailJob:
    """单个文件的输出计划。"""

    source_path: Path
    destination_dir: Path
    output_file_name: str

    @property
    def destination(self) -> Path:
        return self.destination_dir / self.output_file_name


@dataclass(slots=True)
class TraversalContext:
    """一次目录遍历调用的上下文，递归时为子目录派生新值而非修改原值。"""

    working_dir: Path
    output_dir: Path
    output_entries: FrozenSet[str] = frozenset()


@dataclass(slots=True)
class FileOutcome:
    """记录单个文件的处理结果。"""

    source_path: Path
    status: str
    output_path: Optional[Path] = None
    message: Optional[str] = None

    @property
    def processed(self) -> bool:
        return self.status == STATUS_PROCESSED


@dataclass(slots=True)
class RunResult:
    """一次批处理的汇总结果。"""

    processed: list[FileOutcome] = field(default_factory=list)
    skipped: list[FileOutcome] = field(default_factory=list)
    events: list["LogEvent"] = field(default_factory=list)
    refused: bool = False
    log_dump_path: Optional[Path] = None

    def record(self, outcome: FileOutcome) -> None:
        if outcome.processed:
            self.processed.append(outcome)
        else:
            self.skipped.append(outcome)

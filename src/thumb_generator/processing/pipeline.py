"""缩略图流水线：遍历目录、解码、缩放、旋转、编码与水印。"""

from __future__ import annotations

import logging
from concurrent.futures import ProcessPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Union

from thumb_generator.core.collisions import CollisionResolver
from thumb_generator.core.config import RunConfig
from thumb_generator.core.event_log import EventLog, write_log_dump
from thumb_generator.core.exceptions import NotAnImageError
from thumb_generator.core.models import STATUS_SKIPPED, FileOutcome, RunResult, ThumbnailJob, TraversalContext
from thumb_generator.core.progress import ProgressUpdate
from thumb_generator.core.walker import DirectoryWalker, ensure_directories, is_same_directory
from thumb_generator.processing.codec import decode, probe_format
from thumb_generator.processing.watermark import WatermarkCompositor
from thumb_generator.processing.worker import RenderTask, not_an_image, render, run_task

LOGGER = logging.getLogger(__name__)


ProgressCallback = Optional[Callable[[ProgressUpdate], None]]


class ThumbnailPipeline:
    """为单个文件生成缩略图，并维护本次运行各输出目录的冲突计数。"""

    def __init__(self, config: RunConfig, log: EventLog, watermark: WatermarkCompositor) -> None:
        self.config = config
        self.log = log
        self.watermark = watermark
        self._resolvers: dict[Path, CollisionResolver] = {}

    def process(self, source_path: Path, file_name: str, context: TraversalContext) -> FileOutcome:
        """完整处理一个文件，返回 processed 或 skipped 结果。"""

        try:
            asset = decode(source_path)
        except NotAnImageError:
            return self.record(not_an_image(source_path))

        try:
            task = self.task_for(self.plan(source_path, file_name, context))
            outcome = render(asset, task)
        finally:
            asset.close()
        return self.record(outcome)

    def prepare(
        self, source_path: Path, file_name: str, context: TraversalContext
    ) -> Union[RenderTask, FileOutcome]:
        """并发模式下只识别格式并确定输出文件名，渲染留给工作进程。"""

        try:
            probe_format(source_path)
        except NotAnImageError:
            return self.record(not_an_image(source_path))
        return self.task_for(self.plan(source_path, file_name, context))

    def plan(self, source_path: Path, file_name: str, context: TraversalContext) -> ThumbnailJob:
        resolver = self._resolver_for(context.output_dir)
        output_name = resolver.resolve(file_name, context.output_entries)
        return ThumbnailJob(source_path=source_path, destination_dir=context.output_dir, output_file_name=output_name)

    def task_for(self, job: ThumbnailJob) -> RenderTask:
        return RenderTask(
            job=job,
            ratio=self.config.ratio,
            watermark=self.watermark.spec,
            margin_right=self.config.watermark.margin_right,
            margin_bottom=self.config.watermark.margin_bottom,
        )

    def record(self, outcome: FileOutcome) -> FileOutcome:
        if outcome.message:
            self.log.append(outcome.message)
        return outcome

    def _resolver_for(self, output_dir: Path) -> CollisionResolver:
        resolver = self._resolvers.get(output_dir)
        if resolver is None:
            resolver = CollisionResolver(output_dir)
            self._resolvers[output_dir] = resolver
        return resolver


def generate_thumbnails(
    config: RunConfig,
    progress_callback: ProgressCallback = None,
    clock: Callable[[], datetime] = datetime.now,
) -> RunResult:
    """批量处理入口：准备目录、遍历工作目录并生成缩略图。"""

    started_at = clock()
    log = EventLog(clock=clock)
    result = RunResult()

    ensure_directories(config)

    if is_same_directory(config.working_dir, config.output_dir):
        LOGGER.warning("工作目录与输出目录相同，跳过处理：%s", config.working_dir)
        log.append(f"Working directory is the thumbnail directory {config.working_dir}")
        result.refused = True
        _finish(config, log, result, started_at)
        return result

    compositor = WatermarkCompositor(config.watermark)
    pipeline = ThumbnailPipeline(config, log, compositor)

    def collect(outcome: FileOutcome) -> None:
        result.record(outcome)
        _emit_progress(progress_callback, len(result.processed) + len(result.skipped), outcome)

    try:
        if config.max_workers <= 1:
            walker = DirectoryWalker(
                config, lambda path, name, context: collect(pipeline.process(path, name, context))
            )
            walker.walk()
        else:
            _run_parallel(config, pipeline, collect)
    finally:
        compositor.close()

    LOGGER.info("处理完成：成功 %d 个，跳过 %d 个", len(result.processed), len(result.skipped))
    _finish(config, log, result, started_at)
    return result


def _run_parallel(config: RunConfig, pipeline: ThumbnailPipeline, collect: Callable[[FileOutcome], None]) -> None:
    """按遍历顺序串行确定输出文件名，再交给进程池渲染。"""

    tasks: list[RenderTask] = []

    def enqueue(path: Path, name: str, context: TraversalContext) -> None:
        prepared = pipeline.prepare(path, name, context)
        if isinstance(prepared, FileOutcome):
            collect(prepared)
        else:
            tasks.append(prepared)

    DirectoryWalker(config, enqueue).walk()
    if not tasks:
        return

    with ProcessPoolExecutor(max_workers=config.max_workers) as executor:
        future_map = {executor.submit(run_task, task): task for task in tasks}
        for future in as_completed(future_map):
            task = future_map[future]
            try:
                outcome = future.result()
            except Exception as exc:  # noqa: BLE001
                LOGGER.exception("任务执行异常：%s", exc)
                outcome = FileOutcome(
                    source_path=task.job.source_path,
                    status=STATUS_SKIPPED,
                    message=f"Could not process {task.job.source_path}",
                )
            collect(pipeline.record(outcome))


def _emit_progress(callback: ProgressCallback, completed: int, outcome: FileOutcome) -> None:
    if not callback:
        return
    callback(ProgressUpdate(completed=completed, message=outcome.message, status=outcome.status))


def _finish(config: RunConfig, log: EventLog, result: RunResult, started_at: datetime) -> None:
    result.events = log.events
    if not config.enable_log_dump:
        return
    try:
        result.log_dump_path = write_log_dump(log, config.dump_dir, started_at)
    except OSError as exc:
        LOGGER.error("写入日志转储失败：%s", exc)

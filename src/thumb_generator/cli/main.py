"""命令行入口。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from thumb_generator.core.config import ResizeRatio, RunConfig, WatermarkConfig
from thumb_generator.core.exceptions import DirectoryAccessError, InvalidConfigurationError
from thumb_generator.core.progress import ProgressUpdate
from thumb_generator.processing.pipeline import generate_thumbnails
from thumb_generator.utils.logging import setup_logging

app = typer.Typer(help="批量生成图片缩略图，可选添加水印。")


def _build_progress_callback(progress: Progress):
    task_id: Optional[int] = None

    def callback(update: ProgressUpdate) -> None:
        nonlocal task_id
        if task_id is None:
            task_id = progress.add_task("生成缩略图", total=None)
        progress.update(task_id, completed=update.completed)
        if update.message and update.status != "processed":
            progress.log(update.message)

    return callback


@app.command("run")
def run_cli(  # noqa: PLR0913
    working_dir: Path = typer.Argument(..., help="源图片所在的工作目录"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="缩略图输出目录，默认 <工作目录>/thumbs"),
    recursive: bool = typer.Option(True, "--recursive/--no-recursive", help="是否递归处理子目录"),
    width: int = typer.Option(50, "--width", "-W", help="宽度缩放百分比"),
    height: Optional[int] = typer.Option(None, "--height", "-H", help="高度缩放百分比，默认与宽度相同"),
    watermark: Optional[Path] = typer.Option(None, "--watermark", help="水印图片文件"),
    margin_right: Optional[int] = typer.Option(None, "--margin-right", help="水印右边距，缺省时居中"),
    margin_bottom: Optional[int] = typer.Option(None, "--margin-bottom", help="水印下边距，缺省时居中"),
    max_workers: int = typer.Option(1, "--workers", "-w", help="并发渲染进程数量"),
    dump_log: bool = typer.Option(False, "--dump-log", help="将运行日志写入日志文件"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="日志文件目录，默认输出目录"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出调试日志"),
) -> None:
    """遍历工作目录并生成缩略图。"""

    setup_logging(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger(__name__).debug("CLI 参数解析完成")

    working = working_dir.expanduser().resolve()

    try:
        config = RunConfig(
            working_dir=working,
            output_dir=output.expanduser().resolve() if output else None,
            recursive=recursive,
            ratio=ResizeRatio(width, height),
            watermark=WatermarkConfig(
                path=watermark.expanduser().resolve() if watermark else None,
                margin_right=margin_right,
                margin_bottom=margin_bottom,
            ),
            max_workers=max_workers,
            enable_log_dump=dump_log,
            log_dir=log_dir.expanduser().resolve() if log_dir else None,
        )
    except InvalidConfigurationError as exc:
        typer.echo(f"配置错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    progress = Progress(
        SpinnerColumn(),
        TextColumn("[bold blue]{task.description}"),
        TextColumn("{task.completed} 个文件"),
        TimeElapsedColumn(),
    )

    try:
        with progress:
            result = generate_thumbnails(config, progress_callback=_build_progress_callback(progress))
    except DirectoryAccessError as exc:
        typer.echo(f"目录错误：{exc}", err=True)
        raise typer.Exit(code=1) from exc

    if result.refused:
        typer.echo("工作目录与输出目录相同，未执行任何处理。")
        return

    typer.echo(f"处理完成：生成 {len(result.processed)} 张缩略图，跳过 {len(result.skipped)} 个文件。")
    typer.echo(f"输出目录：{config.output_dir}")
    if result.log_dump_path:
        typer.echo(f"日志文件：{result.log_dump_path}")


if __name__ == "__main__":
    app()

"""目录遍历与目录准备逻辑。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, FrozenSet

from thumb_generator.core.config import RunConfig
from thumb_generator.core.exceptions import DirectoryAccessError
from thumb_generator.core.models import TraversalContext

LOGGER = logging.getLogger(__name__)

PSEUDO_ENTRIES = frozenset({".", ".."})

FileHandler = Callable[[Path, str, TraversalContext], None]


def ensure_directory(directory: Path) -> None:
    """目录不存在时尝试创建，失败则终止整个任务。"""

    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise DirectoryAccessError(f"无法创建目录: {directory}") from exc
    if not directory.is_dir():
        raise DirectoryAccessError(f"路径不是目录: {directory}")


def ensure_directories(config: RunConfig) -> None:
    ensure_directory(config.working_dir)
    ensure_directory(config.output_dir)


def is_same_directory(first: Path, second: Path) -> bool:
    return first.resolve().parts == second.resolve().parts


def is_within(child: Path, parent: Path) -> bool:
    """按路径分量判断 child 是否位于 parent 之下（含相等）。"""

    parent_parts = parent.resolve().parts
    return child.resolve().parts[: len(parent_parts)] == parent_parts


def is_pseudo_entry(name: str) -> bool:
    return name in PSEUDO_ENTRIES


def snapshot_entries(directory: Path) -> FrozenSet[str]:
    """记录输出目录当前的文件名，每次遍历调用只读取一次。"""

    try:
        return frozenset(child.name for child in directory.iterdir())
    except OSError as exc:
        raise DirectoryAccessError(f"无法读取目录: {directory}") from exc


class DirectoryWalker:
    """深度优先遍历工作目录，把每个文件交给 handle_file。

    递归时为子目录派生新的 TraversalContext，不修改共享状态；输出目录始终被排除。
    """

    def __init__(self, config: RunConfig, handle_file: FileHandler) -> None:
        self.recursive = config.recursive
        self.working_root = config.working_dir.resolve()
        self.output_root = config.output_dir.resolve()
        self._handle_file = handle_file

    def walk(self) -> bool:
        """遍历整个工作目录；工作目录与输出目录相同时拒绝执行并返回 False。"""

        return self.traverse(TraversalContext(working_dir=self.working_root, output_dir=self.output_root))

    def traverse(self, context: TraversalContext) -> bool:
        if is_same_directory(context.working_dir, self.output_root):
            LOGGER.info("跳过输出目录：%s", context.working_dir)
            return False

        entries = self._list_entries(context.working_dir)
        context = TraversalContext(
            working_dir=context.working_dir,
            output_dir=context.output_dir,
            output_entries=snapshot_entries(context.output_dir),
        )

        for entry in entries:
            if is_pseudo_entry(entry.name):
                continue

            if entry.is_dir():
                if self.recursive:
                    self._descend(context, entry)
                continue

            # 枚举后被删除的文件或非普通文件
            if not entry.is_file():
                continue

            self._handle_file(entry, entry.name, context)

        return True

    def _descend(self, context: TraversalContext, directory: Path) -> None:
        if is_same_directory(directory, self.output_root):
            return
        if directory.is_symlink():
            LOGGER.debug("跳过符号链接目录：%s", directory)
            return
        if not is_within(directory, context.working_dir):
            return

        child_output = context.output_dir / directory.name
        ensure_directory(child_output)
        self.traverse(TraversalContext(working_dir=directory, output_dir=child_output))

    @staticmethod
    def _list_entries(directory: Path) -> list[Path]:
        try:
            return sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as exc:
            raise DirectoryAccessError(f"无法读取目录: {directory}") from exc

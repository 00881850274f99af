"""输出文件名冲突处理。"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AbstractSet, Tuple

LOGGER = logging.getLogger(__name__)

EXTENSION_FAMILIES = {
    ".jpg": ".jpg",
    ".jpeg": ".jpg",
    ".jpe": ".jpg",
    ".tif": ".tif",
    ".tiff": ".tif",
}


def split_name(file_name: str) -> Tuple[str, str]:
    """在最后一个点处拆分为原始名与扩展名（含点）。"""

    index = file_name.rfind(".")
    if index < 0:
        return file_name, ""
    return file_name[:index], file_name[index:]


def extension_family(extension: str) -> str:
    lowered = extension.lower()
    return EXTENSION_FAMILIES.get(lowered, lowered)


def _is_indexed_variant(candidate_raw: str, raw_name: str) -> bool:
    """判断 candidate_raw 是否形如 raw_name(<数字>)。"""

    prefix = raw_name + "("
    if not (candidate_raw.startswith(prefix) and candidate_raw.endswith(")")):
        return False
    return candidate_raw[len(prefix) : -1].isdigit()


def count_matches(raw_name: str, extension: str, entries: AbstractSet[str]) -> int:
    """统计目录中同名或带序号的同类文件数量。"""

    family = extension_family(extension)
    total = 0
    for entry in entries:
        entry_raw, entry_ext = split_name(entry)
        if extension_family(entry_ext) != family:
            continue
        if entry_raw == raw_name or _is_indexed_variant(entry_raw, raw_name):
            total += 1
    return total


class CollisionResolver:
    """为单个输出目录生成不冲突的文件名。

    序号按 (原始名, 扩展名族) 在一次运行内单调递增：目录中已有 ``a.png`` 时，
    第一次冲突得到 ``a(0).png``，之后依次为 ``a(1).png``、``a(2).png``。
    """

    def __init__(self, output_dir: Path) -> None:
        self.output_dir = output_dir
        self._counters: dict[Tuple[str, str], int] = {}

    def resolve(self, candidate: str, existing_entries: AbstractSet[str]) -> str:
        if not self._exists(candidate, existing_entries):
            return candidate

        raw_name, extension = split_name(candidate)
        key = (raw_name, extension_family(extension))

        if key in self._counters:
            index = self._counters[key] + 1
        else:
            index = max(count_matches(raw_name, extension, existing_entries) - 1, 0)

        renamed = f"{raw_name}({index}){extension}"
        while self._exists(renamed, existing_entries):
            index += 1
            renamed = f"{raw_name}({index}){extension}"

        self._counters[key] = index
        LOGGER.debug("输出文件名冲突：%s -> %s", candidate, renamed)
        return renamed

    def _exists(self, name: str, existing_entries: AbstractSet[str]) -> bool:
        return name in existing_entries or (self.output_dir / name).exists()

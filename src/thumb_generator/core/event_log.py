"""运行日志与日志转储工具。"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

LOGGER = logging.getLogger(__name__)

LINE_TIMESTAMP_FORMAT = "%Y-%m-%d-%H:%M:%S"
DUMP_TIMESTAMP_FORMAT = "%Y-%m-%d-%H%M"
DUMP_PREFIX = "thumbgen_"


@dataclass(slots=True)
class LogEvent:
    """一条带时间戳的运行日志。"""

    timestamp: datetime
    message: str

    def format_line(self) -> str:
        return f"{self.timestamp.strftime(LINE_TIMESTAMP_FORMAT)}: {self.message}"


class EventLog:
    """按追加顺序保存本次运行的日志事件。"""

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._events: list[LogEvent] = []

    def append(self, message: str) -> LogEvent:
        event = LogEvent(timestamp=self._clock(), message=message)
        self._events.append(event)
        LOGGER.info(message)
        return event

    @property
    def events(self) -> list[LogEvent]:
        return list(self._events)

    def lines(self) -> list[str]:
        return [event.format_line() for event in self._events]


def dump_filename(started_at: datetime) -> str:
    """以运行开始时间（精确到分钟）命名日志文件。"""

    return f"{DUMP_PREFIX}{started_at.strftime(DUMP_TIMESTAMP_FORMAT)}.log"


def write_log_dump(log: EventLog, directory: Path, started_at: datetime) -> Path:
    """将整次运行的日志追加写入转储文件。"""

    directory.mkdir(parents=True, exist_ok=True)
    dump_path = directory / dump_filename(started_at)
    with dump_path.open("a", encoding="utf-8") as handle:
        for line in log.lines():
            handle.write(line + "\n")
    return dump_path

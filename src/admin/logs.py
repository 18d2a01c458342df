"""管理 API 的日志查询: 读取 loguru 文件日志的末尾若干行并按级别/关键字过滤"""

from __future__ import annotations

import re
from collections import deque
from pathlib import Path
from typing import Iterable

from logger import error_log_path

_LOG_LEVEL_RE = re.compile(r"\|\s*([A-Z]+)\s*\|")
_KNOWN_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


def resolve_stream(log_file: str | Path, stream: str) -> Path:
    """main 为主日志, error 为单独落盘的 ERROR 日志"""
    if stream == "error":
        return error_log_path(log_file)
    return Path(log_file)


def tail_lines(path: Path, lines: int) -> list[str]:
    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=lines)]


def parse_levels(raw: Iterable[str] | None) -> set[str]:
    """支持 ["info", "ERROR"] 或 ["info,error"], 未知级别直接忽略"""
    levels: set[str] = set()
    for item in raw or ():
        for part in str(item).split(","):
            lv = part.strip().upper()
            if lv in _KNOWN_LEVELS:
                levels.add(lv)
    return levels


def filter_logs(lines: list[str], levels: set[str] | None = None, keyword: str | None = None) -> list[str]:
    keyword = (keyword or "").strip().lower()
    if not levels and not keyword:
        return lines

    def keep(line: str) -> bool:
        if levels:
            match = _LOG_LEVEL_RE.search(line)
            if match is None or match.group(1) not in levels:
                return False
        return not keyword or keyword in line.lower()

    return [line for line in lines if keep(line)]

"""日期工具与截止日期校验

截止日期只精确到天, 文本格式为 "DD-MM-YYYY"; 发送标记的文本格式为 "YYYY-MM-DD"。
所有比较都在 datetime.date 上进行, 不经过字符串重排。
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, time
from zoneinfo import ZoneInfo

__all__ = ["InvalidDeadline", "validate_deadline", "is_leap_year", "days_in_month",
           "format_deadline", "format_marker_date", "parse_marker_date", "days_until",
           "parse_hhmm", "now_local"]

DEADLINE_FORMAT = "%d-%m-%Y"
MARKER_FORMAT = "%Y-%m-%d"

_DEADLINE_RE = re.compile(r"([0-9]{2})-([0-9]{2})-([0-9]{4})")
_HHMM_RE = re.compile(r"([01]?[0-9]|2[0-3]):([0-5][0-9])")

_DAYS_IN_MONTH = (31, 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)


@dataclass(frozen=True)
class InvalidDeadline:
    text: str
    reason: str


def is_leap_year(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def days_in_month(month: int, year: int) -> int:
    if month == 2 and is_leap_year(year):
        return 29
    return _DAYS_IN_MONTH[month - 1]


def validate_deadline(text: str) -> date | InvalidDeadline:
    """校验 "DD-MM-YYYY" 格式的截止日期

    失败时返回 InvalidDeadline 而不是抛出异常, 由调用方决定如何回复用户。
    """
    match = _DEADLINE_RE.fullmatch(text or "")
    if match is None:
        return InvalidDeadline(text, "格式不是 DD-MM-YYYY")

    day, month, year = (int(part) for part in match.groups())
    if year < 1:
        return InvalidDeadline(text, f"年份非法: {year}")
    if month < 1 or month > 12:
        return InvalidDeadline(text, f"月份非法: {month}")
    if day < 1 or day > days_in_month(month, year):
        return InvalidDeadline(text, f"{year} 年 {month} 月没有第 {day} 天")

    return date(year, month, day)


def format_deadline(value: date) -> str:
    return value.strftime(DEADLINE_FORMAT)


def format_marker_date(value: date) -> str:
    return value.isoformat()


def parse_marker_date(text: str) -> date:
    """解析 "YYYY-MM-DD" 格式的发送标记, 格式错误时抛出 ValueError"""
    return datetime.strptime(text, MARKER_FORMAT).date()


def days_until(deadline: date, today: date) -> int:
    """距离截止日期的整天数, 即 ceil((deadline - today) / 1 day), 两者都按午夜对齐"""
    return (deadline - today).days


def parse_hhmm(text: str) -> time:
    """解析 "HH:MM", 格式错误时抛出 ValueError"""
    match = _HHMM_RE.fullmatch((text or "").strip())
    if match is None:
        raise ValueError(f"时间格式非法: {text!r}, 预期格式为 HH:MM")
    return time(int(match.group(1)), int(match.group(2)))


def now_local(tz: str | None = None) -> datetime:
    """当前本地时间; tz 为空时使用进程所在时区, 返回 naive datetime"""
    if tz:
        return datetime.now(ZoneInfo(tz)).replace(tzinfo=None)
    return datetime.now()

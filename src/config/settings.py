import os
from dotenv import load_dotenv
from logger import logger
load_dotenv()

__all__ = [
    "ENABLE_TELEGRAM_BOT_POLLING", "TELEGRAM_BOT_TOKEN", "ADMIN_TELEGRAM_USER_ID",
    "ALLOWED_USER_IDS", "is_allowed_user",
    "DAILY_REMINDER_TIME", "PING_INTERVALS", "REMINDER_DB_FILE", "USER_TIMEZONE",
    "ENABLE_ADMIN_HTTP", "ADMIN_HTTP_HOST", "ADMIN_HTTP_PORT", "ADMIN_AUTH_TOKEN",
    "LOG_FILE", "validate_settings",
]


def _parse_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on", "y")


def _parse_id_list(raw: str | None) -> frozenset[str]:
    if not raw:
        return frozenset()
    return frozenset(part.strip() for part in raw.split(",") if part.strip())


def _parse_int_list(raw: str | None, default: list[int]) -> list[int]:
    if raw is None or raw.strip() == "":
        return list(default)
    try:
        values = [int(part) for part in raw.replace(" ", "").split(",") if part]
    except ValueError:
        logger.warning(f"整数列表非法: {raw!r}, 已回退到 {default}")
        return list(default)
    if any(v < 0 for v in values):
        logger.warning(f"整数列表不能包含负数: {raw!r}, 已回退到 {default}")
        return list(default)
    return values


# Telegram Bot
ENABLE_TELEGRAM_BOT_POLLING = _parse_bool("ENABLE_TELEGRAM_BOT_POLLING", True)
TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")

try:
    ADMIN_TELEGRAM_USER_ID = int(os.getenv("ADMIN_TELEGRAM_USER_ID", "0"))
except ValueError:
    ADMIN_TELEGRAM_USER_ID = 0
    logger.warning("ADMIN_TELEGRAM_USER_ID 非法, 已忽略")

# 白名单, 为空时拒绝所有人
ALLOWED_USER_IDS = _parse_id_list(os.getenv("ALLOWED_USER_IDS"))


def is_allowed_user(user_id: str) -> bool:
    return str(user_id) in ALLOWED_USER_IDS


# 提醒设置
DAILY_REMINDER_TIME = os.getenv("DAILY_REMINDER_TIME", "07:00").strip()
PING_INTERVALS = _parse_int_list(os.getenv("PING_INTERVALS"), [7, 3, 1])
REMINDER_DB_FILE = os.getenv("REMINDER_DB_FILE", "data/db.json")
USER_TIMEZONE = os.getenv("USER_TIMEZONE", "").strip() or None  # 为空时使用进程所在时区


# Admin API
ENABLE_ADMIN_HTTP = _parse_bool("ENABLE_ADMIN_HTTP", True)
ADMIN_HTTP_HOST = os.getenv("ADMIN_HTTP_HOST", "127.0.0.1")
try:
    ADMIN_HTTP_PORT = int(os.getenv("ADMIN_HTTP_PORT", "18080"))
except ValueError:
    ADMIN_HTTP_PORT = 18080
    logger.warning("ADMIN_HTTP_PORT 非法, 已回退到 18080")
ADMIN_AUTH_TOKEN = os.getenv("ADMIN_AUTH_TOKEN", "")

LOG_FILE = os.getenv("LOG_FILE", "logs/deadline_bot.log")


def validate_settings() -> bool:
    """启动前检查配置, 有致命问题时返回 False"""
    from utils import parse_hhmm

    ok = True
    if ENABLE_TELEGRAM_BOT_POLLING and TELEGRAM_BOT_TOKEN == "":
        logger.critical("已启用 Telegram Bot Polling, 但 TELEGRAM_BOT_TOKEN 未设置")
        ok = False

    try:
        parse_hhmm(DAILY_REMINDER_TIME)
    except ValueError as e:
        logger.critical(f"DAILY_REMINDER_TIME 非法: {e}")
        ok = False

    if USER_TIMEZONE is not None:
        from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

        try:
            ZoneInfo(USER_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            logger.critical(f"USER_TIMEZONE 非法: {USER_TIMEZONE}")
            ok = False

    if not ALLOWED_USER_IDS:
        logger.warning("ALLOWED_USER_IDS 为空, 所有用户的命令都会被拒绝")
    if not PING_INTERVALS:
        logger.warning("PING_INTERVALS 为空, 不会发送提前提醒")
    if ENABLE_ADMIN_HTTP and not ADMIN_AUTH_TOKEN:
        logger.warning("未配置 ADMIN_AUTH_TOKEN，管理 API 将不可访问")

    return ok

from logger import setup_logging, logger
from config.settings import *
setup_logging(
    log_level="TRACE",
    log_file=LOG_FILE,
    console_level="INFO",
)

import asyncio
import functools
import os
import signal
import sys
import time

import metrics  # noqa: F401  订阅事件总线
from admin.http_server import main_loop as admin_http_main
from admin.schemas import RuntimeControl
from channels.telegram_polling import TelegramGateway, main as telegram_main
from commands.reminder_cmd import build_command_registry
from core.dispatcher import Dispatcher
from core.errors import PersistenceError
from core.lifecycle import LifecycleManager
from storage.reminder import ReminderStore
from utils import now_local, parse_hhmm
from world.reminder import ReminderScheduler

shutdown_event = asyncio.Event()
restart_event = asyncio.Event()

def signal_handler(sig, frame):
    """处理 SIGINT (Ctrl+C) / SIGTERM 信号"""
    logger.info("收到中断信号,正在依次关闭组件...")
    shutdown_event.set()


async def main():
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    if not validate_settings():
        logger.critical("配置校验失败, 退出")
        return

    now_fn = functools.partial(now_local, USER_TIMEZONE)
    store = ReminderStore.load(REMINDER_DB_FILE)
    lifecycle = LifecycleManager(store, now_fn=now_fn)

    # 在接受任何命令、执行第一次 tick 之前清理过期提醒
    removed = await lifecycle.sweep_expired()
    logger.info(f"启动清理完成, 删除了 {removed} 个过期提醒")

    dispatcher = Dispatcher()
    gateway = TelegramGateway()
    scheduler = ReminderScheduler(
        store,
        gateway,
        daily_time=parse_hhmm(DAILY_REMINDER_TIME),
        ping_intervals=PING_INTERVALS,
        now_fn=now_fn,
    )
    registry = build_command_registry(lifecycle, is_allowed_user)
    control = RuntimeControl(
        shutdown_event=shutdown_event,
        restart_event=restart_event,
        started_at=time.time(),
    )

    try:
        tasks = [
            dispatcher.run_loop(shutdown_event),
            scheduler.main_loop(shutdown_event, run=dispatcher.submit),
        ]

        if ENABLE_TELEGRAM_BOT_POLLING:
            tasks.append(telegram_main(shutdown_event, registry, dispatcher, gateway))
        else:
            logger.warning("Telegram Bot Polling 已禁用, 通知将无法送达")

        if ENABLE_ADMIN_HTTP:
            tasks.append(admin_http_main(control, store, scheduler, dispatcher, now_fn))
        else:
            logger.warning("Admin HTTP 已禁用")

        await asyncio.gather(*tasks)
    finally:
        logger.info("关闭提醒机器人...")
        try:
            await store.save()
        except PersistenceError as e:
            logger.error(f"退出前写入提醒数据失败: {e}")
        if restart_event.is_set():
            logger.warning("检测到重启信号，正在重新拉起进程...")
            try:
                os.execv(sys.executable, [sys.executable, *sys.argv])
            except OSError as e:
                logger.error(f"重启失败: {e}")
        logger.info("提醒机器人已关闭")


if __name__ == "__main__":
    logger.info("启动提醒机器人...")
    asyncio.run(main())

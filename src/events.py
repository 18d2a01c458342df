"""事件总线模块，定义了事件总线类 Bus 及事件名集合 E

总线只用于"通知": 提醒的增删改、通知发送结果、存储写入失败等。
处理器不得修改 ReminderStore, 对 Store 的修改只发生在 LifecycleManager 与 ReminderScheduler 中。
"""

from __future__ import annotations
from pyee.asyncio import AsyncIOEventEmitter
from typing import Any, Callable

from logger import logger

Handler = Callable[..., Any]

# 事件名集中定义
class E:
    COMMAND_HANDLED = "command.handled"
    COMMAND_REJECTED = "command.rejected"
    REMINDER_CREATED = "reminder.created"
    REMINDER_UPDATED = "reminder.updated"
    REMINDER_DELETED = "reminder.deleted"
    REMINDER_EXPIRED = "reminder.expired"
    NOTIFICATION_SENT = "notification.sent"
    NOTIFICATION_FAILED = "notification.failed"
    STORE_SAVE_FAILED = "store.save_failed"
    SCHEDULER_TICK = "scheduler.tick"


class Bus(AsyncIOEventEmitter):
    def on(self, event: str) -> Callable[[Handler], Handler]:
        """注册事件处理器装饰器"""
        def decorator(handler: Handler) -> Handler:
            logger.debug(f"注册事件处理器: {event} -> {handler.__name__}")
            super(Bus, self).on(event, handler)
            return handler

        return decorator


bus = Bus()

__all__ = ["bus", "E", "Bus"]

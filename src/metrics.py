"""
一个简单的运行时指标收集类，订阅事件总线，统计命令、通知与写盘失败等信息，供管理 API 查询。
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from events import bus, E


@dataclass
class RuntimeMetrics:
    command_handled_count: int = 0
    command_rejected_count: int = 0
    reminder_created_count: int = 0
    reminder_updated_count: int = 0
    reminder_deleted_count: int = 0
    reminder_expired_count: int = 0
    notification_sent_count: int = 0
    notification_failed_count: int = 0
    store_save_failed_count: int = 0
    tick_count: int = 0
    last_tick_at: float | None = None

    def record_command(self, rejected: bool = False) -> None:
        if rejected:
            self.command_rejected_count += 1
        else:
            self.command_handled_count += 1

    def record_notification(self, failed: bool = False) -> None:
        if failed:
            self.notification_failed_count += 1
        else:
            self.notification_sent_count += 1

    def record_tick(self) -> None:
        self.tick_count += 1
        self.last_tick_at = time.time()

    def snapshot(self) -> dict:
        return {
            "command_handled_count": self.command_handled_count,
            "command_rejected_count": self.command_rejected_count,
            "reminder_created_count": self.reminder_created_count,
            "reminder_updated_count": self.reminder_updated_count,
            "reminder_deleted_count": self.reminder_deleted_count,
            "reminder_expired_count": self.reminder_expired_count,
            "notification_sent_count": self.notification_sent_count,
            "notification_failed_count": self.notification_failed_count,
            "store_save_failed_count": self.store_save_failed_count,
            "tick_count": self.tick_count,
            "last_tick_at_epoch": self.last_tick_at,
            "last_tick_at_utc": (
                time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(self.last_tick_at))
                if self.last_tick_at is not None
                else None
            ),
        }


runtime_metrics = RuntimeMetrics()


@bus.on(E.COMMAND_HANDLED)
def _on_command_handled(**_) -> None:
    runtime_metrics.record_command()


@bus.on(E.COMMAND_REJECTED)
def _on_command_rejected(**_) -> None:
    runtime_metrics.record_command(rejected=True)


@bus.on(E.REMINDER_CREATED)
def _on_reminder_created(**_) -> None:
    runtime_metrics.reminder_created_count += 1


@bus.on(E.REMINDER_UPDATED)
def _on_reminder_updated(**_) -> None:
    runtime_metrics.reminder_updated_count += 1


@bus.on(E.REMINDER_DELETED)
def _on_reminder_deleted(**_) -> None:
    runtime_metrics.reminder_deleted_count += 1


@bus.on(E.REMINDER_EXPIRED)
def _on_reminder_expired(**_) -> None:
    runtime_metrics.reminder_expired_count += 1


@bus.on(E.NOTIFICATION_SENT)
def _on_notification_sent(**_) -> None:
    runtime_metrics.record_notification()


@bus.on(E.NOTIFICATION_FAILED)
def _on_notification_failed(**_) -> None:
    runtime_metrics.record_notification(failed=True)


@bus.on(E.STORE_SAVE_FAILED)
def _on_store_save_failed(**_) -> None:
    runtime_metrics.store_save_failed_count += 1


@bus.on(E.SCHEDULER_TICK)
def _on_scheduler_tick(**_) -> None:
    runtime_metrics.record_tick()


__all__ = ["RuntimeMetrics", "runtime_metrics"]

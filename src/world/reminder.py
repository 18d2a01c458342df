"""
提醒调度器: 每分钟一次 tick, 每次 tick 依次执行

1. 每日到期汇总: 当前时间等于 DAILY_REMINDER_TIME 时, 把今天到期且今天尚未通知过的事件按用户合并成一条消息;
2. 提前提醒(ping): 每次 tick 都检查, 剩余整天数恰好等于 PING_INTERVALS 中某一项且今天尚未 ping 过时, 逐条发送;
3. 早间补发: 当前时间为 08:00 时再执行一次 1, 依靠同一个发送标记去重。

注意: 错过的 ping 不会补发(例如停机期间跨过了 7 天前那一天)。
每次 tick 结束后无论是否发送了通知都会保存 Store, 保证重启后每天至多通知一次。
"""

from __future__ import annotations

import asyncio
import time as _time
from datetime import date, datetime, time
from typing import Awaitable, Callable, Dict, List, Sequence

from channels.base import DeliveryGateway
from core.errors import DeliveryError, PersistenceError
from datamodel import TickReport
from events import bus, E
from logger import logger
from storage.reminder import ReminderStore
from utils import days_until, format_deadline, now_local

__all__ = ["ReminderScheduler", "MORNING_REMINDER_TIME", "TICK_INTERVAL_SECONDS"]

MORNING_REMINDER_TIME = time(8, 0)
TICK_INTERVAL_SECONDS = 60.0

TickRunner = Callable[[str, Callable[[], Awaitable[TickReport]]], Awaitable[TickReport]]


def _at_minute(now: datetime, anchor: time) -> bool:
    return now.hour == anchor.hour and now.minute == anchor.minute


class ReminderScheduler:
    def __init__(
        self,
        store: ReminderStore,
        gateway: DeliveryGateway,
        daily_time: time,
        ping_intervals: Sequence[int],
        morning_time: time = MORNING_REMINDER_TIME,
        now_fn: Callable[[], datetime] = now_local,
        tick_seconds: float = TICK_INTERVAL_SECONDS,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.daily_time = daily_time
        self.ping_intervals = frozenset(int(d) for d in ping_intervals)
        self.morning_time = morning_time
        self.tick_seconds = tick_seconds
        self._now_fn = now_fn

        self._running = False
        self._last_tick_at_epoch: float | None = None
        self._tick_count = 0

    def get_status(self) -> dict[str, object]:
        return {
            "running": self._running,
            "last_tick_at_epoch": self._last_tick_at_epoch,
            "tick_count": self._tick_count,
            "daily_time": self.daily_time.strftime("%H:%M"),
            "morning_time": self.morning_time.strftime("%H:%M"),
            "ping_intervals": sorted(self.ping_intervals, reverse=True),
        }

    async def _deliver(self, user_id: str, text: str, kind: str, report: TickReport) -> bool:
        try:
            ok = await self.gateway.send(user_id, text)
        except DeliveryError as e:
            logger.error(f"发送{kind}给用户 {user_id} 失败: {e}")
            ok = False
        except Exception as e:
            # 单个用户的发送异常不能中断整个 tick
            logger.exception(f"发送{kind}给用户 {user_id} 时发生预期外的错误: {e}")
            ok = False

        if ok:
            bus.emit(E.NOTIFICATION_SENT, user_id=user_id, kind=kind)
        else:
            report.delivery_failures += 1
            bus.emit(E.NOTIFICATION_FAILED, user_id=user_id, kind=kind)
        return ok

    async def send_daily_digests(self, today: date, report: TickReport) -> int:
        """今天到期的事件按用户合并成一条消息, 返回发送的消息数"""
        digests: Dict[str, List[str]] = {}
        for user_id, subject, event in self.store.iter_events():
            if event.deadline != today or subject.sent_markers.get(event.name) == today:
                continue
            digests.setdefault(user_id, []).append(f"📍 {subject.name}: {event.name} (Due Today!)")
            subject.sent_markers[event.name] = today

        sent = 0
        for user_id, lines in digests.items():
            text = "📅 Daily Reminder\n\n" + "\n".join(lines)
            if await self._deliver(user_id, text, "每日提醒", report):
                logger.info(f"已发送每日提醒给用户 {user_id}: {len(lines)} 项")
                sent += 1
        report.digests_sent += sent
        return sent

    async def send_lead_time_pings(self, today: date, report: TickReport) -> int:
        """剩余整天数恰好命中 ping_intervals 的事件逐条提醒, 返回发送的消息数"""
        sent = 0
        for user_id, subject, event in self.store.iter_events():
            remaining = days_until(event.deadline, today)
            if remaining not in self.ping_intervals or event.ping_sent_date == today:
                continue

            event.ping_sent_date = today
            text = f"‼️ {event.name} - Deadline: {format_deadline(event.deadline)} (H-{remaining}) ‼️"
            if await self._deliver(user_id, text, "提前提醒", report):
                logger.info(f"已发送提前提醒给用户 {user_id}: [{subject.name}] {event.name} (H-{remaining})")
                sent += 1
        report.pings_sent += sent
        return sent

    async def tick(self, now: datetime | None = None) -> TickReport:
        now = now or self._now_fn()
        today = now.date()
        report = TickReport()
        logger.trace(f"提醒调度 tick: {now:%Y-%m-%d %H:%M:%S}")

        if _at_minute(now, self.daily_time):
            report.daily_pass_ran = True
            await self.send_daily_digests(today, report)

        await self.send_lead_time_pings(today, report)

        if _at_minute(now, self.morning_time):
            report.morning_pass_ran = True
            await self.send_daily_digests(today, report)

        try:
            await self.store.save()
        except PersistenceError as e:
            report.saved = False
            bus.emit(E.STORE_SAVE_FAILED, error=e)
            logger.error(f"tick 结束后写入提醒数据失败: {e}")

        self._tick_count += 1
        self._last_tick_at_epoch = _time.time()
        bus.emit(E.SCHEDULER_TICK, report=report)
        return report

    async def main_loop(self, shutdown_event: asyncio.Event, run: TickRunner | None = None) -> None:
        """按固定周期触发 tick; run 用于把 tick 交给 Dispatcher 串行执行"""
        loop = asyncio.get_running_loop()
        self._running = True
        logger.info("Reminder 主循环已启动")

        next_at = loop.time()
        try:
            while not shutdown_event.is_set():
                try:
                    if run is None:
                        await self.tick()
                    else:
                        await run("reminder.tick", self.tick)
                except asyncio.CancelledError:
                    # Dispatcher 关闭时会取消排队中的 tick
                    if shutdown_event.is_set():
                        break
                    raise
                except Exception as e:
                    logger.exception(f"提醒调度 tick 失败: {e}")

                # 固定周期; tick 超时则在下一个周期点触发
                next_at += self.tick_seconds
                while next_at <= loop.time():
                    next_at += self.tick_seconds
                try:
                    await asyncio.wait_for(shutdown_event.wait(), timeout=next_at - loop.time())
                except asyncio.TimeoutError:
                    pass
        finally:
            self._running = False
            logger.info("Reminder 主循环已关闭")

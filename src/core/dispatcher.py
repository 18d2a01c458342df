"""串行调度器

收到的命令与提醒调度的 tick 都放进同一个队列, 由 run_loop 逐个执行。
一个工作单元的全部 await(写盘、发送通知)完成之前, 下一个单元不会开始,
因此 ReminderStore 不需要加锁。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from logger import logger

__all__ = ["Dispatcher"]

T = TypeVar("T")


@dataclass
class _WorkItem:
    name: str
    factory: Callable[[], Awaitable[Any]]
    future: asyncio.Future


class Dispatcher:
    def __init__(self) -> None:
        self._queue: asyncio.Queue[_WorkItem] = asyncio.Queue()
        self._current: str | None = None
        self._processed = 0

    def get_status(self) -> dict[str, object]:
        return {
            "queue_size": self._queue.qsize(),
            "current": self._current,
            "processed": self._processed,
        }

    async def submit(self, name: str, factory: Callable[[], Awaitable[T]]) -> T:
        """入队并等待执行结果; 工作单元抛出的异常会原样抛给提交者"""
        future = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_WorkItem(name=name, factory=factory, future=future))
        logger.trace(f"任务入队: {name}, queue_size={self._queue.qsize()}")
        return await future

    async def _run_item(self, item: _WorkItem) -> None:
        if item.future.cancelled():
            logger.debug(f"任务在执行前已被取消: {item.name}")
            return

        self._current = item.name
        try:
            result = await item.factory()
        except Exception as e:
            logger.exception(f"任务执行失败: {item.name}: {e}")
            if not item.future.done():
                item.future.set_exception(e)
        else:
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self._current = None
            self._processed += 1

    async def run_loop(self, shutdown_event: asyncio.Event) -> None:
        logger.info("Dispatcher 已启动")
        shutdown_waiter = asyncio.create_task(shutdown_event.wait())
        try:
            while not shutdown_event.is_set():
                getter = asyncio.create_task(self._queue.get())
                done, _ = await asyncio.wait({getter, shutdown_waiter}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    try:
                        await getter
                    except asyncio.CancelledError:
                        pass
                    else:
                        getter.result().future.cancel()
                        self._queue.task_done()
                    break
                item = getter.result()
                try:
                    await self._run_item(item)
                finally:
                    self._queue.task_done()
        finally:
            shutdown_waiter.cancel()
            # 关闭时丢弃未执行的任务
            while not self._queue.empty():
                item = self._queue.get_nowait()
                item.future.cancel()
                self._queue.task_done()
            logger.info("Dispatcher 已关闭")

"""提醒生命周期管理

每条命令对应一次完整的状态转换(add / schedule / delete / edit), 没有多轮对话,
每次调用都恰好返回一条 CommandReply。启动时的过期清理也在这里。
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Callable

from core.errors import EventNotFoundError, PersistenceError, SubjectNotFoundError
from datamodel import CommandReply
from events import bus, E
from logger import logger
from storage.reminder import ReminderStore
from utils import InvalidDeadline, format_deadline, now_local, validate_deadline

__all__ = ["LifecycleManager", "MSG_INVALID_DATE", "MSG_PAST_DATE", "MSG_SAVE_FAILED",
           "MSG_SUBJECT_NOT_FOUND", "MSG_EVENT_NOT_FOUND", "MSG_NO_REMINDERS"]

MSG_INVALID_DATE = "Invalid date. Please use a valid date in DD-MM-YYYY format."
MSG_PAST_DATE = "Cannot set a reminder for a past date."
MSG_SAVE_FAILED = "Error saving reminder. Please try again later."
MSG_SUBJECT_NOT_FOUND = "Reminder not found."
MSG_EVENT_NOT_FOUND = "Event not found under this subject."
MSG_NO_REMINDERS = "You have no reminders."


def _blank_to_none(value: str | None) -> str | None:
    if value is None or value.strip() == "":
        return None
    return value


class LifecycleManager:
    def __init__(self, store: ReminderStore, now_fn: Callable[[], datetime] = now_local) -> None:
        self.store = store
        self._now_fn = now_fn

    def today(self) -> date:
        return self._now_fn().date()

    def _check_deadline(self, text: str) -> date | str:
        """校验新截止日期, 返回 date 或给用户的错误提示"""
        deadline = validate_deadline(text)
        if isinstance(deadline, InvalidDeadline):
            logger.debug(f"截止日期非法: {deadline.text!r}, {deadline.reason}")
            return MSG_INVALID_DATE
        if deadline < self.today():
            return MSG_PAST_DATE
        return deadline

    async def _persist(self) -> bool:
        try:
            await self.store.save()
        except PersistenceError as e:
            bus.emit(E.STORE_SAVE_FAILED, error=e)
            return False
        return True

    def _reject(self, command: str, user_id: str, text: str) -> CommandReply:
        bus.emit(E.COMMAND_REJECTED, command=command, user_id=user_id, reason=text)
        return CommandReply(text=text, ok=False, ephemeral=True)

    def _done(self, command: str, user_id: str, text: str, ephemeral: bool = False) -> CommandReply:
        bus.emit(E.COMMAND_HANDLED, command=command, user_id=user_id)
        return CommandReply(text=text, ok=True, ephemeral=ephemeral)

    # ---------- 命令 ----------

    async def add(self, user_id: str, subject: str, event: str, deadline: str) -> CommandReply:
        checked = self._check_deadline(deadline)
        if isinstance(checked, str):
            logger.warning(f"拒绝添加提醒: user_id={user_id}, [{subject}] {event} ({deadline}): {checked}")
            return self._reject("add", user_id, checked)

        self.store.add_event(user_id, subject, event, checked)
        bus.emit(E.REMINDER_CREATED, user_id=user_id, subject=subject, event_name=event, deadline=checked)
        if not await self._persist():
            return self._reject("add", user_id, MSG_SAVE_FAILED)

        logger.info(f"添加提醒: user_id={user_id}, [{subject}] {event} ({format_deadline(checked)})")
        return self._done("add", user_id, f"Reminder added for {subject}: {event} (Deadline: {format_deadline(checked)})")

    async def schedule(self, user_id: str) -> CommandReply:
        subjects = self.store.list_subjects(user_id)
        if not subjects:
            logger.info(f"用户 {user_id} 查看日程, 但没有任何提醒")
            return self._done("schedule", user_id, MSG_NO_REMINDERS, ephemeral=True)

        lines = ["REMINDER", ""]
        for subject in subjects:
            lines.append(f"📍 {subject.name}")
            for index, event in enumerate(subject.events, start=1):
                lines.append(f"{index}. {event.name}")
                lines.append(f"   ({format_deadline(event.deadline)})")
            lines.append("")

        logger.info(f"用户 {user_id} 查看日程: {len(subjects)} 个科目")
        return self._done("schedule", user_id, "\n".join(lines).rstrip())

    async def delete(self, user_id: str, subject: str, event: str | None = None) -> CommandReply:
        event = _blank_to_none(event)
        try:
            self.store.delete_event(user_id, subject, event)
        except SubjectNotFoundError:
            logger.warning(f"尝试删除不存在的科目: user_id={user_id}, [{subject}]")
            return self._reject("delete", user_id, MSG_SUBJECT_NOT_FOUND)
        except EventNotFoundError:
            logger.warning(f"尝试删除不存在的事件: user_id={user_id}, [{subject}] {event}")
            return self._reject("delete", user_id, MSG_EVENT_NOT_FOUND)

        bus.emit(E.REMINDER_DELETED, user_id=user_id, subject=subject, event_name=event)
        if not await self._persist():
            return self._reject("delete", user_id, MSG_SAVE_FAILED)

        if event is None:
            logger.info(f"删除科目: user_id={user_id}, [{subject}]")
            return self._done("delete", user_id, f"Subject {subject} has been deleted.")
        logger.info(f"删除事件: user_id={user_id}, [{subject}] {event}")
        return self._done("delete", user_id, f"Event {event} under subject {subject} has been deleted.")

    async def edit(
        self,
        user_id: str,
        subject: str,
        event: str,
        new_event: str | None = None,
        new_deadline: str | None = None,
    ) -> CommandReply:
        new_event = _blank_to_none(new_event)
        new_deadline = _blank_to_none(new_deadline)

        # 先定位事件, 再校验新日期, 任何一步失败都不修改数据
        try:
            target = self.store.get_subject(user_id, subject)
        except SubjectNotFoundError:
            logger.warning(f"尝试编辑不存在的科目: user_id={user_id}, [{subject}]")
            return self._reject("edit", user_id, MSG_SUBJECT_NOT_FOUND)
        if target.find_event(event) is None:
            logger.warning(f"尝试编辑不存在的事件: user_id={user_id}, [{subject}] {event}")
            return self._reject("edit", user_id, MSG_EVENT_NOT_FOUND)

        checked_deadline: date | None = None
        if new_deadline is not None:
            checked = self._check_deadline(new_deadline)
            if isinstance(checked, str):
                logger.warning(f"拒绝编辑提醒: user_id={user_id}, [{subject}] {event} -> {new_deadline}: {checked}")
                return self._reject("edit", user_id, checked)
            checked_deadline = checked

        if new_event is None and checked_deadline is None:
            logger.info(f"编辑提醒未提供任何修改: user_id={user_id}, [{subject}] {event}")
            return self._done("edit", user_id, f"Event {event} under subject {subject} has been updated.")

        self.store.edit_event(user_id, subject, event, new_name=new_event, new_deadline=checked_deadline)
        bus.emit(E.REMINDER_UPDATED, user_id=user_id, subject=subject, event_name=event,
                 new_event=new_event, new_deadline=checked_deadline)
        if not await self._persist():
            return self._reject("edit", user_id, MSG_SAVE_FAILED)

        logger.info(f"编辑提醒: user_id={user_id}, [{subject}] {event} -> name={new_event}, deadline={new_deadline}")
        return self._done("edit", user_id, f"Event {event} under subject {subject} has been updated.")

    # ---------- 启动清理 ----------

    async def sweep_expired(self) -> int:
        """删除所有已过期的事件并保存一次, 只在启动时、接受任何命令之前调用"""
        today = self.today()
        removed = self.store.remove_expired(today)
        for user_id, subject, event in removed:
            logger.info(
                f"删除过期提醒: user_id={user_id}, [{subject}] {event.name} (Deadline: {format_deadline(event.deadline)})"
            )
            bus.emit(E.REMINDER_EXPIRED, user_id=user_id, subject=subject, event_name=event.name)

        if not await self._persist():
            logger.error("启动清理后写入提醒数据失败, 将在下一次修改时重试")
        return len(removed)

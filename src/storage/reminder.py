"""提醒数据的内存模型与 JSON 持久化

磁盘格式(一个 JSON 文档):
    {user_id: {subject: {"events": [{"event": str, "deadline": "DD-MM-YYYY", "reminderSentDate"?: "YYYY-MM-DD"}],
                         "reminderSentDate": {event: "YYYY-MM-DD"}}}}
事件上的 reminderSentDate 是提前提醒(ping)的标记, 科目上的 reminderSentDate 是"今天到期"的标记。

注意: Store 本身不加锁, 所有修改都必须经由 Dispatcher 串行执行。
"""

from __future__ import annotations

import asyncio
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Tuple

from core.errors import EventNotFoundError, PersistenceError, SubjectNotFoundError
from datamodel import Event, Subject
from logger import logger
from utils import InvalidDeadline, format_deadline, format_marker_date, parse_marker_date, validate_deadline

__all__ = ["ReminderStore"]


class ReminderStore:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._users: Dict[str, Dict[str, Subject]] = {}

    # ---------- 加载 / 保存 ----------

    @classmethod
    def load(cls, path: str | Path) -> "ReminderStore":
        """从磁盘加载; 文件不存在或已损坏时返回空 Store"""
        store = cls(path)
        if not store.path.exists():
            logger.info(f"提醒数据文件不存在, 使用空数据: {store.path}")
            return store

        try:
            document = json.loads(store.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"读取提醒数据失败, 使用空数据: {store.path}: {e}")
            return store

        if not isinstance(document, dict):
            logger.error(f"提醒数据格式错误(顶层不是对象), 使用空数据: {store.path}")
            return store

        store._users = cls._parse_document(document)
        logger.info(f"已加载提醒数据: {store.counts()}")
        return store

    @staticmethod
    def _parse_document(document: Dict[str, Any]) -> Dict[str, Dict[str, Subject]]:
        users: Dict[str, Dict[str, Subject]] = {}
        for user_id, subjects in document.items():
            if not isinstance(subjects, dict):
                logger.warning(f"跳过格式错误的用户数据: user_id={user_id}")
                continue
            for subject_name, raw_subject in subjects.items():
                subject = ReminderStore._parse_subject(str(user_id), subject_name, raw_subject)
                if subject is not None:
                    users.setdefault(str(user_id), {})[subject_name] = subject
        return users

    @staticmethod
    def _parse_subject(user_id: str, subject_name: str, raw: Any) -> Subject | None:
        if not isinstance(raw, dict) or not isinstance(raw.get("events"), list):
            logger.warning(f"跳过格式错误的科目: user_id={user_id}, subject={subject_name}")
            return None

        subject = Subject(name=subject_name)
        for raw_event in raw["events"]:
            try:
                name = raw_event["event"]
                deadline = validate_deadline(raw_event["deadline"])
                if isinstance(deadline, InvalidDeadline):
                    raise ValueError(deadline.reason)
                ping_raw = raw_event.get("reminderSentDate")
                ping_sent_date = parse_marker_date(ping_raw) if ping_raw else None
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"跳过格式错误的事件: user_id={user_id}, subject={subject_name}, event={raw_event!r}: {e}")
                continue
            subject.events.append(Event(name=name, deadline=deadline, ping_sent_date=ping_sent_date))

        markers = raw.get("reminderSentDate") or {}
        if isinstance(markers, dict):
            for event_name, marker in markers.items():
                try:
                    subject.sent_markers[event_name] = parse_marker_date(marker)
                except (TypeError, ValueError):
                    logger.warning(f"跳过格式错误的发送标记: user_id={user_id}, subject={subject_name}, event={event_name}")

        if not subject.events:
            logger.warning(f"科目没有有效事件, 已忽略: user_id={user_id}, subject={subject_name}")
            return None
        return subject

    def to_document(self) -> Dict[str, Any]:
        document: Dict[str, Any] = {}
        for user_id, subjects in self._users.items():
            document[user_id] = {}
            for subject_name, subject in subjects.items():
                events = []
                for event in subject.events:
                    raw_event: Dict[str, Any] = {"event": event.name, "deadline": format_deadline(event.deadline)}
                    if event.ping_sent_date is not None:
                        raw_event["reminderSentDate"] = format_marker_date(event.ping_sent_date)
                    events.append(raw_event)
                document[user_id][subject_name] = {
                    "events": events,
                    "reminderSentDate": {
                        name: format_marker_date(marker) for name, marker in subject.sent_markers.items()
                    },
                }
        return document

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(payload, encoding="utf-8")
        tmp_path.replace(self.path)

    async def save(self) -> None:
        """写入完整快照; 失败时抛出 PersistenceError, 内存中的数据不回滚"""
        payload = json.dumps(self.to_document(), ensure_ascii=False, indent=2)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as e:
            logger.error(f"写入提醒数据失败: {self.path}: {e}")
            raise PersistenceError(f"写入提醒数据失败: {e}") from e
        logger.trace(f"提醒数据已保存: {self.path}")

    # ---------- 查询 ----------

    def users(self) -> List[str]:
        return list(self._users.keys())

    def list_subjects(self, user_id: str) -> List[Subject]:
        return list(self._users.get(user_id, {}).values())

    def get_subject(self, user_id: str, subject: str) -> Subject:
        found = self._users.get(user_id, {}).get(subject)
        if found is None:
            raise SubjectNotFoundError(user_id, subject)
        return found

    def iter_subjects(self) -> Iterator[Tuple[str, Subject]]:
        for user_id, subjects in list(self._users.items()):
            for subject in list(subjects.values()):
                yield user_id, subject

    def iter_events(self) -> Iterator[Tuple[str, Subject, Event]]:
        for user_id, subject in self.iter_subjects():
            for event in list(subject.events):
                yield user_id, subject, event

    def counts(self) -> Dict[str, int]:
        subjects = sum(len(s) for s in self._users.values())
        events = sum(len(subject.events) for _, subject in self.iter_subjects())
        return {"users": len(self._users), "subjects": subjects, "events": events}

    # ---------- 修改 ----------

    def add_event(self, user_id: str, subject: str, event: str, deadline: date) -> Event:
        """追加事件, 科目不存在时自动创建; 同名事件直接覆盖其截止日期"""
        subjects = self._users.setdefault(user_id, {})
        target = subjects.get(subject)
        if target is None:
            target = subjects[subject] = Subject(name=subject)

        existing = target.find_event(event)
        if existing is not None:
            logger.debug(f"同名事件已存在, 覆盖截止日期: user_id={user_id}, subject={subject}, event={event}")
            existing.deadline = deadline
            existing.ping_sent_date = None
            target.sent_markers.pop(event, None)
            return existing

        new_event = Event(name=event, deadline=deadline)
        target.events.append(new_event)
        return new_event

    def delete_event(self, user_id: str, subject: str, event_name: str | None = None) -> Subject | Event:
        """删除单个事件; event_name 为空时删除整个科目。返回被删除的对象"""
        target = self.get_subject(user_id, subject)

        if event_name is None:
            self._remove_subject(user_id, subject)
            return target

        event = target.find_event(event_name)
        if event is None:
            raise EventNotFoundError(user_id, subject, event_name)
        self._remove_event(user_id, target, event)
        return event

    def edit_event(
        self,
        user_id: str,
        subject: str,
        event_name: str,
        new_name: str | None = None,
        new_deadline: date | None = None,
    ) -> Event:
        target = self.get_subject(user_id, subject)
        event = target.find_event(event_name)
        if event is None:
            raise EventNotFoundError(user_id, subject, event_name)

        if new_name is not None and new_name != event.name:
            duplicate = target.find_event(new_name)
            if duplicate is not None:
                target.events.remove(duplicate)
                target.sent_markers.pop(new_name, None)
            marker = target.sent_markers.pop(event.name, None)
            if marker is not None:
                target.sent_markers[new_name] = marker
            event.name = new_name

        if new_deadline is not None and new_deadline != event.deadline:
            event.deadline = new_deadline
            event.ping_sent_date = None
            target.sent_markers.pop(event.name, None)

        return event

    def remove_expired(self, today: date) -> List[Tuple[str, str, Event]]:
        """删除所有截止日期早于 today 的事件, 返回 (user_id, subject, event) 列表"""
        removed: List[Tuple[str, str, Event]] = []
        for user_id, subject, event in self.iter_events():
            if event.deadline < today:
                self._remove_event(user_id, subject, event)
                removed.append((user_id, subject.name, event))
        return removed

    def _remove_event(self, user_id: str, subject: Subject, event: Event) -> None:
        subject.events.remove(event)
        subject.sent_markers.pop(event.name, None)
        if not subject.events:
            self._remove_subject(user_id, subject.name)

    def _remove_subject(self, user_id: str, subject: str) -> None:
        subjects = self._users.get(user_id)
        if subjects is None:
            return
        subjects.pop(subject, None)
        if not subjects:
            del self._users[user_id]

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from enum import Enum
from datetime import date

__all__ = [
    "Event", "Subject",
    "ChannelType", "CommandCall", "CommandReply",
    "TickReport",
]

# ----------------- Reminder 数据模型 ----------------
@dataclass
class Event:
    name: str
    deadline: date
    ping_sent_date: Optional[date] = None  # 最近一次发送提前提醒(ping)的日期, 与每日"今天到期"标记相互独立


@dataclass
class Subject:
    name: str
    events: List[Event] = field(default_factory=list)  # 插入顺序即展示顺序, 为空时整个科目会被删除
    sent_markers: Dict[str, date] = field(default_factory=dict)  # 事件名 -> 最近一次发送"今天到期"通知的日期

    def find_event(self, name: str) -> Optional[Event]:
        for event in self.events:
            if event.name == name:
                return event
        return None


# ----------------- Channel 数据模型 ----------------
class ChannelType(str, Enum):
    TELEGRAM_BOT_POLLING = "telegram_bot_polling"


# ----------------- Command 数据模型 ----------------
@dataclass
class CommandCall:
    name: str
    user_id: str
    arguments: Dict[str, Any]  # 已按命令 schema 校验过的具名字符串参数


@dataclass
class CommandReply:
    text: str
    ok: bool = True
    ephemeral: bool = False  # 仅对发起者可见的回复(错误提示等)


# ----------------- Scheduler 数据模型 ----------------
@dataclass
class TickReport:
    digests_sent: int = 0
    pings_sent: int = 0
    delivery_failures: int = 0
    daily_pass_ran: bool = False
    morning_pass_ran: bool = False
    saved: bool = True

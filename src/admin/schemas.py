from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pydantic import BaseModel, Field


@dataclass
class RuntimeControl:
    shutdown_event: asyncio.Event
    restart_event: asyncio.Event
    started_at: float


class ShutdownRequest(BaseModel):
    reason: str = Field(default="manual")


class ReminderItem(BaseModel):
    user_id: str
    subject: str
    event: str
    deadline: str  # DD-MM-YYYY
    days_left: int
    ping_sent_date: str | None = None
    due_notice_sent_date: str | None = None

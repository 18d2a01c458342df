"""Shared fixtures for the reminder bot tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from channels.base import DeliveryGateway
from core.lifecycle import LifecycleManager
from storage.reminder import ReminderStore


class FakeGateway(DeliveryGateway):
    """Records every message; users listed in fail_for get a failed delivery."""

    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail_for = set(fail_for)

    async def send(self, user_id: str, text: str) -> bool:
        if user_id in self.fail_for:
            return False
        self.sent.append((user_id, text))
        return True


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2026, 10, 19, 10, 30))


@pytest.fixture
def store(tmp_path) -> ReminderStore:
    return ReminderStore(tmp_path / "db.json")


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def lifecycle(store: ReminderStore, clock: FixedClock) -> LifecycleManager:
    return LifecycleManager(store, now_fn=clock)

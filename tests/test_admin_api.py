from __future__ import annotations

import asyncio
import time
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient

from admin.app import create_app
from admin.schemas import RuntimeControl
from storage.reminder import ReminderStore

TOKEN = "secret-token"
AUTH = {"Authorization": f"Bearer {TOKEN}"}


@pytest.fixture
def control() -> RuntimeControl:
    return RuntimeControl(
        shutdown_event=asyncio.Event(),
        restart_event=asyncio.Event(),
        started_at=time.time(),
    )


@pytest.fixture
def client(tmp_path, control: RuntimeControl) -> TestClient:
    store = ReminderStore(tmp_path / "db.json")
    store.add_event("42", "Math", "HW1", date(2026, 10, 26))
    store.add_event("42", "Art", "Sketch", date(2026, 11, 2))
    store.add_event("7", "Bio", "Lab", date(2026, 10, 20))

    log_file = tmp_path / "bot.log"
    log_file.write_text(
        "2026-10-19 10:00:00.000 | INFO     | main:main:1 - 启动提醒机器人...\n"
        "2026-10-19 10:00:01.000 | ERROR    | storage.reminder:save:1 - 写入提醒数据失败\n",
        encoding="utf-8",
    )

    app = create_app(
        control,
        store,
        auth_token=TOKEN,
        log_file=str(log_file),
        now_fn=lambda: datetime(2026, 10, 19, 10, 30),
    )
    return TestClient(app)


def test_health_is_public(client: TestClient) -> None:
    assert client.get("/healthz").text == "ok"
    body = client.get("/api/v1/health").json()
    assert body["status"] == "ok"
    assert body["shutdown_requested"] is False


def test_requires_token(client: TestClient) -> None:
    assert client.get("/api/v1/overview").status_code == 401
    assert client.get("/api/v1/auth/check", headers={"X-Reminder-Token": TOKEN}).json() == {"ok": True}


def test_overview_counts(client: TestClient) -> None:
    assert client.get("/api/v1/overview", headers=AUTH).json() == {
        "counts": {"users": 2, "subjects": 3, "events": 3}
    }


def test_reminders_listing_filters(client: TestClient) -> None:
    body = client.get("/api/v1/reminders", headers=AUTH, params={"user_id": "42"}).json()
    assert body["total"] == 2
    assert body["items"][0] == {
        "user_id": "42",
        "subject": "Math",
        "event": "HW1",
        "deadline": "26-10-2026",
        "days_left": 7,
        "ping_sent_date": None,
        "due_notice_sent_date": None,
    }

    body = client.get("/api/v1/reminders", headers=AUTH, params={"q": "lab"}).json()
    assert [item["event"] for item in body["items"]] == ["Lab"]


def test_metrics_without_components(client: TestClient) -> None:
    body = client.get("/api/v1/metrics", headers=AUTH).json()
    assert "notification_sent_count" in body["runtime"]
    assert body["components"]["reminder"]["running"] is False


def test_logs_filter_by_level(client: TestClient) -> None:
    body = client.get("/api/v1/logs", headers=AUTH, params={"levels": "error"}).json()
    assert body["levels"] == ["ERROR"]
    assert len(body["lines"]) == 1
    assert "写入提醒数据失败" in body["lines"][0]


def test_shutdown_sets_event(client: TestClient, control: RuntimeControl) -> None:
    response = client.post("/api/v1/admin/shutdown", headers=AUTH, json={"reason": "test"})
    assert response.json() == {"ok": True, "action": "shutdown", "reason": "test"}
    assert control.shutdown_event.is_set()
    assert not control.restart_event.is_set()


def test_missing_token_configuration(tmp_path, control: RuntimeControl) -> None:
    app = create_app(control, ReminderStore(tmp_path / "db.json"), auth_token="", log_file=str(tmp_path / "x.log"))
    assert TestClient(app).get("/api/v1/overview", headers=AUTH).status_code == 503

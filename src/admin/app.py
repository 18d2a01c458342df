from __future__ import annotations

import asyncio
import time
from typing import Any, Callable

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, RedirectResponse

from core.dispatcher import Dispatcher
from logger import logger
from metrics import runtime_metrics
from storage.reminder import ReminderStore
from utils import days_until, format_deadline, format_marker_date, now_local
from world.reminder import ReminderScheduler

from .auth import make_admin_auth
from .logs import filter_logs, parse_levels, resolve_stream, tail_lines
from .schemas import ReminderItem, RuntimeControl, ShutdownRequest


def create_app(
    control: RuntimeControl,
    store: ReminderStore,
    *,
    auth_token: str,
    log_file: str,
    scheduler: ReminderScheduler | None = None,
    dispatcher: Dispatcher | None = None,
    now_fn: Callable[[], Any] = now_local,
) -> FastAPI:
    """管理 API 只读取 Store, 不做任何修改"""
    app = FastAPI(title="Deadline Reminder Admin API", version="1.0.0")
    require_admin_auth = make_admin_auth(auth_token)

    def health_payload() -> dict[str, Any]:
        return {
            "status": "ok",
            "now_utc": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "uptime_seconds": max(0.0, time.time() - control.started_at),
            "store_file": str(store.path),
            "shutdown_requested": control.shutdown_event.is_set(),
            "restart_requested": control.restart_event.is_set(),
        }

    @app.get("/", include_in_schema=False)
    async def home() -> RedirectResponse:
        return RedirectResponse(url="/api/v1/health")

    @app.get("/healthz", include_in_schema=False)
    async def healthz() -> PlainTextResponse:
        return PlainTextResponse("ok")

    @app.get("/api/v1/health")
    async def api_health() -> dict[str, Any]:
        return health_payload()

    @app.get("/api/v1/auth/check")
    async def auth_check(request: Request) -> dict[str, bool]:
        await require_admin_auth(request)
        return {"ok": True}

    @app.get("/api/v1/overview")
    async def get_overview(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)
        return {"counts": store.counts()}

    @app.get("/api/v1/metrics")
    async def get_metrics(request: Request) -> dict[str, Any]:
        await require_admin_auth(request)

        reminder_status: dict[str, Any] = {"running": False, "last_tick_at_epoch": None}
        if scheduler is not None:
            reminder_status.update(scheduler.get_status())

        dispatcher_status: dict[str, Any] = {"queue_size": 0, "current": None, "processed": 0}
        if dispatcher is not None:
            dispatcher_status.update(dispatcher.get_status())

        return {
            "runtime": runtime_metrics.snapshot(),
            "components": {
                "reminder": reminder_status,
                "dispatcher": dispatcher_status,
            },
            "active_tasks": len(asyncio.all_tasks()),
        }

    @app.get("/api/v1/reminders")
    async def get_reminders(
        request: Request,
        user_id: str | None = None,
        q: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        limit = max(1, min(limit, 500))
        offset = max(0, offset)
        keyword = (q or "").strip().lower()
        today = now_fn().date()

        items: list[ReminderItem] = []
        for owner, subject, event in store.iter_events():
            if user_id and owner != user_id:
                continue
            if keyword and keyword not in subject.name.lower() and keyword not in event.name.lower():
                continue
            marker = subject.sent_markers.get(event.name)
            items.append(ReminderItem(
                user_id=owner,
                subject=subject.name,
                event=event.name,
                deadline=format_deadline(event.deadline),
                days_left=days_until(event.deadline, today),
                ping_sent_date=format_marker_date(event.ping_sent_date) if event.ping_sent_date else None,
                due_notice_sent_date=format_marker_date(marker) if marker else None,
            ))

        return {
            "items": [item.model_dump() for item in items[offset:offset + limit]],
            "limit": limit,
            "offset": offset,
            "user_id": user_id,
            "q": q,
            "total": len(items),
        }

    @app.get("/api/v1/logs")
    async def get_logs(
        request: Request,
        lines: int = 200,
        levels: str | None = None,
        q: str | None = None,
        stream: str = "main",
    ) -> dict[str, Any]:
        await require_admin_auth(request)
        lines = max(1, min(lines, 5000))

        target_path = resolve_stream(log_file, stream)
        level_set = parse_levels([levels] if levels else None)
        raw_lines = await asyncio.to_thread(tail_lines, target_path, lines)
        return {
            "stream": stream,
            "levels": sorted(level_set),
            "q": q,
            "file": str(target_path),
            "lines": filter_logs(raw_lines, levels=level_set, keyword=q),
        }

    @app.post("/api/v1/admin/restart")
    async def admin_restart(payload: ShutdownRequest, request: Request) -> dict[str, Any]:
        auth_info = await require_admin_auth(request)
        logger.warning(f"收到远程重启请求: by={auth_info['user']}, reason={payload.reason}")
        control.restart_event.set()
        control.shutdown_event.set()
        return {"ok": True, "action": "restart", "reason": payload.reason}

    @app.post("/api/v1/admin/shutdown")
    async def admin_shutdown(payload: ShutdownRequest, request: Request) -> dict[str, Any]:
        auth_info = await require_admin_auth(request)
        logger.warning(f"收到远程关闭请求: by={auth_info['user']}, reason={payload.reason}")
        control.shutdown_event.set()
        return {"ok": True, "action": "shutdown", "reason": payload.reason}

    return app

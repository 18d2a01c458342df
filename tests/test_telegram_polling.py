from __future__ import annotations

import asyncio

from channels.telegram_polling import MSG_COMMAND_FAILED, TelegramGateway, _raw_arguments, run_command
from commands.reminder_cmd import build_command_registry
from core.dispatcher import Dispatcher


class RecordingBot:
    def __init__(self) -> None:
        self.messages: list[tuple[int, str]] = []

    async def send_message(self, chat_id: int, text: str) -> None:
        self.messages.append((chat_id, text))


class BrokenDispatcher:
    async def submit(self, name, factory):
        raise RuntimeError("queue closed")


def test_raw_arguments_strips_command() -> None:
    assert _raw_arguments("/add@deadline_bot Math HW1 01-11-2026") == "Math HW1 01-11-2026"
    assert _raw_arguments("/schedule") == ""
    assert _raw_arguments(None) == ""


async def test_gateway_rejects_non_numeric_chat_id() -> None:
    gateway = TelegramGateway()
    gateway.bot = RecordingBot()

    assert await gateway.send("not-a-number", "hi") is False
    assert await gateway.send("42", "hi") is True
    assert gateway.bot.messages == [(42, "hi")]


async def test_command_failure_still_produces_reply(lifecycle) -> None:
    registry = build_command_registry(lifecycle, lambda user_id: True)

    text = await run_command(registry, BrokenDispatcher(), "schedule", "42", "")

    assert text == MSG_COMMAND_FAILED


async def test_command_reply_through_dispatcher(lifecycle) -> None:
    registry = build_command_registry(lifecycle, lambda user_id: True)
    dispatcher = Dispatcher()
    shutdown = asyncio.Event()
    worker = asyncio.create_task(dispatcher.run_loop(shutdown))
    try:
        text = await run_command(registry, dispatcher, "add", "42", "Math HW1 01-11-2026")
    finally:
        shutdown.set()
        await worker

    assert text == "Reminder added for Math: HW1 (Deadline: 01-11-2026)"

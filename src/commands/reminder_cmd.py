from typing import Callable

from commands.base import *
from core.lifecycle import LifecycleManager
from datamodel import CommandReply


class _LifecycleCommand(BaseCommand):
    def __init__(self, lifecycle: LifecycleManager) -> None:
        self.lifecycle = lifecycle


class AddCommand(_LifecycleCommand):
    @property
    def command_schema(self) -> dict:
        return {
            "name": "add",
            "description": "Add a new reminder",
            "options": [
                {"name": "subject", "description": "Subject name", "required": True},
                {"name": "event", "description": "Event name", "required": True},
                {"name": "deadline", "description": "Deadline (DD-MM-YYYY)", "required": True},
            ],
        }

    async def execute(self, user_id: str, subject: str, event: str, deadline: str) -> CommandReply:
        return await self.lifecycle.add(user_id, subject, event, deadline)


class ScheduleCommand(_LifecycleCommand):
    @property
    def command_schema(self) -> dict:
        return {
            "name": "schedule",
            "description": "View your reminder schedule",
            "options": [],
        }

    async def execute(self, user_id: str) -> CommandReply:
        return await self.lifecycle.schedule(user_id)


class DeleteCommand(_LifecycleCommand):
    @property
    def command_schema(self) -> dict:
        return {
            "name": "delete",
            "description": "Delete a reminder",
            "options": [
                {"name": "subject", "description": "Subject name of the reminder to delete", "required": True},
                {"name": "event", "description": "Event name of the reminder to delete", "required": False},
            ],
        }

    async def execute(self, user_id: str, subject: str, event: str | None = None) -> CommandReply:
        return await self.lifecycle.delete(user_id, subject, event)


class EditCommand(_LifecycleCommand):
    @property
    def command_schema(self) -> dict:
        return {
            "name": "edit",
            "description": "Edit an existing reminder event",
            "options": [
                {"name": "subject", "description": "Subject name of the reminder to edit", "required": True},
                {"name": "event", "description": "Event name to edit", "required": True},
                {"name": "new_event", "description": "New event name", "required": False},
                {"name": "new_deadline", "description": "New deadline (DD-MM-YYYY)", "required": False},
            ],
        }

    async def execute(
        self,
        user_id: str,
        subject: str,
        event: str,
        new_event: str | None = None,
        new_deadline: str | None = None,
    ) -> CommandReply:
        return await self.lifecycle.edit(user_id, subject, event, new_event, new_deadline)


def build_command_registry(lifecycle: LifecycleManager, is_allowed: Callable[[str], bool]) -> CommandRegistry:
    registry = CommandRegistry(is_allowed)
    for command_cls in (AddCommand, ScheduleCommand, DeleteCommand, EditCommand):
        registry.register(command_cls(lifecycle))
    return registry


__all__ = ["AddCommand", "ScheduleCommand", "DeleteCommand", "EditCommand", "build_command_registry"]

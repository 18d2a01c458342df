from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List

from core.errors import CommandArgumentError
from datamodel import CommandCall, CommandReply
from logger import logger

MSG_UNAUTHORIZED = "You are not authorized to use this bot."
MSG_UNKNOWN_COMMAND = "Unknown command."


class BaseCommand(ABC):
    @property
    @abstractmethod
    def command_schema(self) -> dict:
        """{"name": str, "description": str, "options": [{"name", "description", "required"}]}"""
        pass

    @abstractmethod
    async def execute(self, user_id: str, **kwargs: Any) -> CommandReply:
        pass

    @property
    def name(self) -> str:
        return self.command_schema["name"]

    def usage(self) -> str:
        parts = [f"/{self.name}"]
        for option in self.command_schema.get("options", []):
            parts.append(f"<{option['name']}>" if option.get("required") else f"[{option['name']}=...]")
        return "Usage: " + " ".join(parts)


def split_arguments(text: str) -> List[str]:
    """按 shell 规则切分参数, 引号可以包含空格; 引号不匹配时抛出 CommandArgumentError"""
    try:
        return shlex.split(text or "")
    except ValueError as e:
        raise CommandArgumentError(f"参数解析失败: {e}") from e


def parse_arguments(schema: dict, tokens: Iterable[str]) -> Dict[str, str]:
    """把参数 token 映射到命令 schema 中的具名字符串参数

    `name=value` 形式按名称赋值, 其余 token 按 schema 中的声明顺序依次填入尚未赋值的参数。
    """
    options = schema.get("options", [])
    known = {option["name"] for option in options}
    named: Dict[str, str] = {}
    positional: List[str] = []

    for token in tokens:
        key, sep, value = token.partition("=")
        if sep and key in known:
            if key in named:
                raise CommandArgumentError(f"参数重复: {key}")
            named[key] = value
        else:
            positional.append(token)

    arguments: Dict[str, str] = dict(named)
    for option in options:
        if not positional:
            break
        if option["name"] not in arguments:
            arguments[option["name"]] = positional.pop(0)

    if positional:
        raise CommandArgumentError(f"多余的参数: {positional}")

    missing = [o["name"] for o in options if o.get("required") and not arguments.get(o["name"], "").strip()]
    if missing:
        raise CommandArgumentError(f"缺少必填参数: {', '.join(missing)}")

    return arguments


class CommandRegistry:
    def __init__(self, is_allowed: Callable[[str], bool]) -> None:
        self._commands: Dict[str, BaseCommand] = {}
        self._is_allowed = is_allowed

    def register(self, command: BaseCommand) -> None:
        if command.name not in self._commands:
            logger.debug(f"注册命令: /{command.name} -> {command.__class__.__name__}")
            self._commands[command.name] = command

    def get(self, name: str) -> BaseCommand | None:
        return self._commands.get(name)

    def get_all_commands(self) -> Dict[str, BaseCommand]:
        return dict(self._commands)

    def get_command_schemas(self) -> List[dict]:
        return [command.command_schema for command in self._commands.values()]

    def is_allowed(self, user_id: str) -> bool:
        return self._is_allowed(user_id)

    def build_call(self, name: str, user_id: str, raw_arguments: str) -> CommandCall:
        """解析原始参数文本; 命令不存在或参数不合法时抛出 CommandArgumentError"""
        command = self._commands.get(name)
        if command is None:
            raise CommandArgumentError(f"未注册的命令: {name}")
        arguments = parse_arguments(command.command_schema, split_arguments(raw_arguments))
        return CommandCall(name=name, user_id=user_id, arguments=arguments)

    async def execute(self, call: CommandCall) -> CommandReply:
        if not self.is_allowed(call.user_id):
            logger.warning(f"用户 {call.user_id} 未经允许调用命令 /{call.name}")
            return CommandReply(text=MSG_UNAUTHORIZED, ok=False, ephemeral=True)

        command = self._commands.get(call.name)
        if command is None:
            logger.error(f"调用了未注册的命令: /{call.name}")
            return CommandReply(text=MSG_UNKNOWN_COMMAND, ok=False, ephemeral=True)

        logger.trace(f"执行命令: /{call.name}, user_id={call.user_id}, 参数: {call.arguments}")
        return await command.execute(call.user_id, **call.arguments)

    async def handle_text(self, name: str, user_id: str, raw_arguments: str) -> CommandReply:
        """鉴权、解析并执行一条命令, 参数错误时回复用法说明"""
        if not self.is_allowed(user_id):
            logger.warning(f"用户 {user_id} 未经允许调用命令 /{name}")
            return CommandReply(text=MSG_UNAUTHORIZED, ok=False, ephemeral=True)

        try:
            call = self.build_call(name, user_id, raw_arguments)
        except CommandArgumentError as e:
            logger.warning(f"命令 /{name} 参数错误, user_id={user_id}: {e}")
            command = self._commands.get(name)
            text = command.usage() if command is not None else MSG_UNKNOWN_COMMAND
            return CommandReply(text=text, ok=False, ephemeral=True)

        return await self.execute(call)


__all__ = ["BaseCommand", "CommandRegistry", "split_arguments", "parse_arguments",
           "MSG_UNAUTHORIZED", "MSG_UNKNOWN_COMMAND"]

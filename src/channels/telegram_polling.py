from logger import logger
from channels.base import ChannelType, DeliveryGateway
from commands.base import CommandRegistry
from core.dispatcher import Dispatcher
from core.errors import DeliveryError
import datetime
import asyncio

from config.settings import *
import telegram
from telegram.ext import ApplicationBuilder, CommandHandler, ContextTypes


class TelegramGateway(DeliveryGateway):
    channel_type = ChannelType.TELEGRAM_BOT_POLLING

    def __init__(self) -> None:
        self.bot: telegram.Bot | None = None

    async def send(self, user_id: str, text: str) -> bool:
        if self.bot is None:
            raise DeliveryError("Telegram Bot 尚未启动")
        try:
            chat_id = int(user_id)
        except ValueError:
            logger.error(f"Telegram 用户 ID 非法: {user_id!r}")
            return False
        try:
            await self.bot.send_message(chat_id=chat_id, text=text)
        except telegram.error.TelegramError as e:
            logger.error(f"向 Telegram 用户 {user_id} 发送消息失败: {e}")
            return False
        logger.info(f"发送消息给用户 {user_id}: {text!r}")
        return True


def _raw_arguments(text: str | None) -> str:
    """去掉开头的 /command(@botname), 返回其余参数文本"""
    parts = (text or "").split(maxsplit=1)
    return parts[1] if len(parts) > 1 else ""


MSG_COMMAND_FAILED = "Something went wrong while handling your command. Please try again later."


async def run_command(registry: CommandRegistry, dispatcher: Dispatcher, name: str, user_id: str, raw: str) -> str:
    """经 Dispatcher 串行执行一条命令, 保证每次调用都有一条回复文本"""
    try:
        reply = await dispatcher.submit(f"command.{name}", lambda: registry.handle_text(name, user_id, raw))
    except Exception as e:
        logger.exception(f"处理 /{name} 命令失败: user_id={user_id}: {e}")
        return MSG_COMMAND_FAILED
    return reply.text


def _make_command_handler(name: str, registry: CommandRegistry, dispatcher: Dispatcher):
    async def handle(update: telegram.Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.effective_user is None or update.message is None:
            return
        user_id = str(update.effective_user.id)
        raw = _raw_arguments(update.message.text)
        logger.info(f"收到 /{name} 命令来自 Telegram ID: {user_id}, 参数: {raw!r}")

        await update.message.reply_text(await run_command(registry, dispatcher, name, user_id, raw))

    handle.__name__ = f"cmd_{name}"
    return handle


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """处理 telegram 库中发生的错误"""
    logger.opt(exception=context.error).error(f"Telegram 错误: {context.error}")
    if ADMIN_TELEGRAM_USER_ID != 0:
        try:
            await context.bot.send_message(chat_id=ADMIN_TELEGRAM_USER_ID, text=f"Warning! 处理命令时发生错误: {context.error}")
        except telegram.error.TelegramError as e:
            logger.error(f"向管理员发送错误消息失败: {e}")


def bot_error_callback(error: telegram.error.TelegramError) -> None:
    if isinstance(error, telegram.error.NetworkError):
        logger.warning(f"Telegram Bot 网络错误: {error}")
    else:
        logger.opt(exception=error).error(f"Telegram Bot 发生预期外的错误: {error}")


async def main(
    shutdown_event: asyncio.Event,
    registry: CommandRegistry,
    dispatcher: Dispatcher,
    gateway: TelegramGateway,
) -> None:
    app = ApplicationBuilder().token(TELEGRAM_BOT_TOKEN).build()

    for name in registry.get_all_commands():
        app.add_handler(CommandHandler(name, _make_command_handler(name, registry, dispatcher)))
    app.add_error_handler(error_handler)

    try:
        await app.initialize()
        gateway.bot = app.bot
        try:
            await app.bot.set_my_commands([
                telegram.BotCommand(schema["name"], schema["description"])
                for schema in registry.get_command_schemas()
            ])
            logger.info("命令菜单注册成功")
        except telegram.error.TelegramError as e:
            logger.error(f"命令菜单注册失败: {e}")

        await app.updater.start_polling(
            poll_interval=0.5,
            timeout=datetime.timedelta(seconds=15),
            bootstrap_retries=-1,
            drop_pending_updates=False,  # 保留下线期间的命令
            error_callback=bot_error_callback,
        )
        await app.start()
        logger.info("Telegram Bot Polling 已启动")

        await shutdown_event.wait()
    finally:
        logger.info("关闭 Telegram Bot Polling...")
        gateway.bot = None
        if app.updater.running:
            await app.updater.stop()
        if app.running:
            await app.stop()
        await app.shutdown()

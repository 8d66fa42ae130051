"""Telegram channel implementation using python-telegram-bot."""

import asyncio
import re

import telegram
from loguru import logger
from telegram import ReactionTypeEmoji, ReplyParameters, Update
from telegram.ext import Application, ContextTypes, MessageHandler, filters

from yuebot.bus.events import OutboundMessage
from yuebot.bus.queue import MessageBus
from yuebot.channels.base import BaseChannel, ChannelStartError
from yuebot.config.schema import TelegramConfig
from yuebot.utils.helpers import split_text

TELEGRAM_MAX_LENGTH = 4096


class TelegramChannel(BaseChannel):
    """
    Telegram channel using long polling.

    Simple and reliable - no webhook/public IP needed.
    """

    name = "telegram"

    def __init__(self, config: TelegramConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: TelegramConfig = config
        self._app: Application | None = None
        self._bot_id: int | None = None
        self._bot_username: str = ""
        self._typing_tasks: dict[int, asyncio.Task] = {}

    async def start(self) -> None:
        """Start the Telegram bot with long polling."""
        if not self.config.token:
            raise ChannelStartError("Telegram bot token not configured")

        self._running = True

        builder = Application.builder().token(self.config.token)
        if self.config.proxy:
            builder = builder.proxy(self.config.proxy).get_updates_proxy(self.config.proxy)
        self._app = builder.build()

        self._app.add_handler(
            MessageHandler(filters.TEXT & ~filters.COMMAND, self._on_message)
        )

        logger.info("Starting Telegram bot (polling mode)...")

        await self._app.initialize()
        await self._app.start()

        bot_info = await self._app.bot.get_me()
        self._bot_id = bot_info.id
        self._bot_username = bot_info.username or ""
        logger.info(f"Telegram bot @{self._bot_username} connected")

        await self._app.updater.start_polling(
            allowed_updates=["message"],
            drop_pending_updates=True,  # Ignore old messages on startup
        )

        # Keep running until stopped
        while self._running:
            await asyncio.sleep(1)

    async def stop(self) -> None:
        """Stop the Telegram bot."""
        self._running = False

        for chat_id in list(self._typing_tasks):
            self._stop_typing(chat_id)

        if self._app:
            logger.info("Stopping Telegram bot...")
            await self._app.updater.stop()
            await self._app.stop()
            await self._app.shutdown()
            self._app = None

    async def send(self, msg: OutboundMessage) -> None:
        """Send a reply, reaction or typing signal through Telegram."""
        if not self._app:
            logger.warning("Telegram bot not running")
            return

        try:
            chat_id = int(msg.chat_id)
        except ValueError:
            logger.error(f"Invalid chat_id: {msg.chat_id}")
            return

        if msg.metadata.get("chat_action") == "typing":
            if chat_id not in self._typing_tasks:
                self._typing_tasks[chat_id] = asyncio.create_task(self._typing_loop(chat_id))
            return

        # Bots get a single reaction per message, so removal clears it
        if msg.metadata.get("reaction") or msg.metadata.get("remove_reaction"):
            emoji = msg.metadata.get("reaction")
            try:
                await self._app.bot.set_message_reaction(
                    chat_id=chat_id,
                    message_id=int(msg.metadata["target_message_id"]),
                    reaction=[ReactionTypeEmoji(emoji=emoji)] if emoji else [],
                )
            except Exception as e:
                logger.error(f"Error setting reaction: {e}")
            return

        self._stop_typing(chat_id)

        reply_parameters = None
        if msg.reply_to:
            reply_parameters = ReplyParameters(
                message_id=int(msg.reply_to),
                allow_sending_without_reply=True,
            )

        try:
            for i, chunk in enumerate(split_text(msg.content, TELEGRAM_MAX_LENGTH)):
                await self._app.bot.send_message(
                    chat_id=chat_id,
                    text=chunk,
                    reply_parameters=reply_parameters if i == 0 else None,
                )
        except Exception as e:
            logger.error(f"Error sending Telegram message: {e}")

    async def _typing_loop(self, chat_id: int) -> None:
        """Send typing action every 4s until cancelled."""
        try:
            while True:
                await self._app.bot.send_chat_action(
                    chat_id=chat_id,
                    action=telegram.constants.ChatAction.TYPING,
                )
                await asyncio.sleep(4)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Typing loop for {chat_id} ended: {e}")

    def _stop_typing(self, chat_id: int) -> None:
        """Cancel the typing loop for a chat."""
        task = self._typing_tasks.pop(chat_id, None)
        if task:
            task.cancel()

    def _is_mention(self, message: telegram.Message) -> bool:
        """True for private chats, @-mentions and replies to the bot."""
        if message.chat.type == "private":
            return True
        if self._bot_username and f"@{self._bot_username.lower()}" in (message.text or "").lower():
            return True
        reply = message.reply_to_message
        return bool(reply and reply.from_user and reply.from_user.id == self._bot_id)

    def _strip_mention(self, text: str) -> str:
        if not self._bot_username:
            return text
        pattern = re.compile(rf"@{re.escape(self._bot_username)}\b", re.IGNORECASE)
        return pattern.sub("", text).strip()

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Handle incoming text messages."""
        if not update.message or not update.effective_user:
            return

        message = update.message
        user = update.effective_user
        if user.is_bot:
            return

        content = self._strip_mention(message.text or "")
        if not content:
            return

        logger.debug(f"Telegram message from {user.id}: {content[:50]}...")

        await self._handle_message(
            sender_id=str(user.id),
            chat_id=str(message.chat_id),
            content=content,
            metadata={
                "message_id": message.message_id,
                "display_name": user.full_name or user.username or str(user.id),
                "username": user.username,
                "mentioned": self._is_mention(message),
                "is_group": message.chat.type != "private",
            },
        )

"""Discord channel implementation using discord.py."""

import asyncio
import re

import discord
from loguru import logger

from yuebot.bus.events import OutboundMessage
from yuebot.bus.queue import MessageBus
from yuebot.channels.base import BaseChannel, ChannelStartError
from yuebot.config.schema import DiscordConfig
from yuebot.utils.helpers import split_text

DISCORD_MAX_LENGTH = 2000


class DiscordChannel(BaseChannel):
    """
    Discord channel over the gateway websocket.

    Needs the privileged message content intent to read messages that do
    not mention the bot.
    """

    name = "discord"

    def __init__(self, config: DiscordConfig, bus: MessageBus):
        super().__init__(config, bus)
        self.config: DiscordConfig = config
        self._client: discord.Client | None = None
        self._typing_tasks: dict[int, asyncio.Task] = {}

    async def start(self) -> None:
        """Connect to Discord and run until closed."""
        if not self.config.token:
            raise ChannelStartError("Discord bot token not configured")

        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True

        self._client = discord.Client(intents=intents)
        self._setup_event_handlers()
        self._running = True

        logger.info("Starting Discord bot...")
        try:
            await self._client.start(self.config.token)
        except discord.LoginFailure as e:
            raise ChannelStartError(f"Discord login failed, check the bot token: {e}") from e
        finally:
            self._running = False

    async def stop(self) -> None:
        """Close the Discord connection."""
        self._running = False

        for channel_id in list(self._typing_tasks):
            self._stop_typing(channel_id)

        if self._client and not self._client.is_closed():
            logger.info("Stopping Discord bot...")
            await self._client.close()
        self._client = None

    def _setup_event_handlers(self) -> None:
        client = self._client

        @client.event
        async def on_ready():
            logger.info(f"Discord bot {client.user} connected")

        @client.event
        async def on_message(message: discord.Message):
            await self._on_message(message)

    async def send(self, msg: OutboundMessage) -> None:
        """Send a reply, reaction or typing signal through Discord."""
        if not self._client or self._client.is_closed():
            logger.warning("Discord bot not running")
            return

        try:
            channel_id = int(msg.chat_id)
        except ValueError:
            logger.error(f"Invalid chat_id: {msg.chat_id}")
            return

        channel = self._client.get_channel(channel_id)
        if channel is None:
            try:
                channel = await self._client.fetch_channel(channel_id)
            except discord.DiscordException as e:
                logger.error(f"Cannot resolve Discord channel {channel_id}: {e}")
                return

        if msg.metadata.get("chat_action") == "typing":
            if channel_id not in self._typing_tasks:
                self._typing_tasks[channel_id] = asyncio.create_task(self._typing_loop(channel))
            return

        if msg.metadata.get("reaction") or msg.metadata.get("remove_reaction"):
            target = channel.get_partial_message(int(msg.metadata["target_message_id"]))
            try:
                if msg.metadata.get("reaction"):
                    await target.add_reaction(msg.metadata["reaction"])
                else:
                    await target.remove_reaction(msg.metadata["remove_reaction"], self._client.user)
            except discord.DiscordException as e:
                logger.error(f"Error setting reaction: {e}")
            return

        self._stop_typing(channel_id)

        try:
            for i, chunk in enumerate(split_text(msg.content, DISCORD_MAX_LENGTH)):
                if i == 0 and msg.reply_to:
                    target = channel.get_partial_message(int(msg.reply_to))
                    await target.reply(chunk, mention_author=False)
                else:
                    await channel.send(chunk)
        except discord.DiscordException as e:
            logger.error(f"Error sending Discord message: {e}")

    async def _typing_loop(self, channel) -> None:
        """Refresh the typing indicator every 8s until cancelled."""
        try:
            while True:
                await channel.typing()
                await asyncio.sleep(8)
        except asyncio.CancelledError:
            pass
        except discord.DiscordException as e:
            logger.debug(f"Typing loop for {channel.id} ended: {e}")

    def _stop_typing(self, channel_id: int) -> None:
        task = self._typing_tasks.pop(channel_id, None)
        if task:
            task.cancel()

    def _is_mention(self, message: discord.Message) -> bool:
        """True for DMs, direct mentions and replies to the bot."""
        me = self._client.user
        if isinstance(message.channel, discord.DMChannel):
            return True
        if me in message.mentions:
            return True
        ref = message.reference
        return bool(
            ref
            and isinstance(ref.resolved, discord.Message)
            and ref.resolved.author.id == me.id
        )

    def _strip_mention(self, text: str) -> str:
        me = self._client.user
        return re.sub(rf"<@!?{me.id}>", "", text).strip()

    async def _on_message(self, message: discord.Message) -> None:
        """Handle an incoming Discord message."""
        if message.author.bot:
            return

        content = self._strip_mention(message.content)
        if not content:
            return

        logger.debug(f"Discord message from {message.author.id}: {content[:50]}...")

        await self._handle_message(
            sender_id=str(message.author.id),
            chat_id=str(message.channel.id),
            content=content,
            metadata={
                "message_id": message.id,
                "display_name": message.author.display_name,
                "username": message.author.name,
                "mentioned": self._is_mention(message),
                "guild_id": message.guild.id if message.guild else None,
            },
        )

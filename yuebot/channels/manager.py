"""Channel manager: starts channels and routes outbound messages to them."""

import asyncio

from loguru import logger

from yuebot.audit import audit
from yuebot.bus.queue import MessageBus
from yuebot.channels.base import BaseChannel, ChannelStartError
from yuebot.config.schema import Config


class ChannelManager:
    """Owns the enabled channels and the outbound dispatch task."""

    def __init__(self, config: Config, bus: MessageBus, channels: dict[str, BaseChannel] | None = None):
        self.config = config
        self.bus = bus
        self.channels: dict[str, BaseChannel] = channels if channels is not None else {}
        self._dispatch_task: asyncio.Task | None = None
        if channels is None:
            self._init_channels()

    def _init_channels(self) -> None:
        """Instantiate every channel enabled in config."""
        discord_cfg = self.config.channels.discord
        if discord_cfg.enabled:
            from yuebot.channels.discord import DiscordChannel
            self.channels["discord"] = DiscordChannel(discord_cfg, self.bus)
            logger.info("Discord channel enabled")

        telegram_cfg = self.config.channels.telegram
        if telegram_cfg.enabled:
            from yuebot.channels.telegram import TelegramChannel
            self.channels["telegram"] = TelegramChannel(telegram_cfg, self.bus)
            logger.info("Telegram channel enabled")

    @property
    def enabled_channels(self) -> list[str]:
        return list(self.channels)

    def get_channel(self, name: str) -> BaseChannel | None:
        return self.channels.get(name)

    async def start_all(self) -> None:
        """Start outbound dispatch and run all channels until they stop.

        Raises ChannelStartError when no channel is enabled or every
        channel failed to start.
        """
        if not self.channels:
            raise ChannelStartError("No channels enabled")

        self._dispatch_task = asyncio.create_task(self._dispatch_outbound())

        tasks = [asyncio.create_task(self._start_channel(name, ch)) for name, ch in self.channels.items()]
        results = await asyncio.gather(*tasks)
        if not any(results):
            raise ChannelStartError("No channel could connect")

    async def _start_channel(self, name: str, channel: BaseChannel) -> bool:
        logger.info(f"Starting {name} channel...")
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Failed to start channel {name}: {e}")
            audit("error", type="login", channel=name, error=str(e))
            return False
        return True

    async def stop_all(self) -> None:
        """Stop dispatch and every channel. Errors are logged, not raised."""
        if self._dispatch_task:
            self._dispatch_task.cancel()
            try:
                await self._dispatch_task
            except asyncio.CancelledError:
                pass
            self._dispatch_task = None

        for name, channel in self.channels.items():
            try:
                await channel.stop()
                logger.info(f"Stopped {name} channel")
            except Exception as e:
                logger.error(f"Error stopping {name}: {e}")

    async def _dispatch_outbound(self) -> None:
        """Forward outbound messages to their channel."""
        while True:
            try:
                msg = await asyncio.wait_for(self.bus.consume_outbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            channel = self.channels.get(msg.channel)
            if channel is None:
                logger.warning(f"Unknown channel: {msg.channel}")
                continue

            try:
                await channel.send(msg)
            except Exception as e:
                logger.error(f"Error sending to {msg.channel}: {e}")

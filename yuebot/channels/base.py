"""Base class for chat channels."""

from abc import ABC, abstractmethod
from typing import Any

from loguru import logger

from yuebot.bus.events import InboundMessage, OutboundMessage
from yuebot.bus.queue import MessageBus


class ChannelStartError(Exception):
    """A channel could not connect to its platform."""


class BaseChannel(ABC):
    """
    A chat platform connection.

    Channels turn platform events into InboundMessages on the bus and
    deliver OutboundMessages (replies, reactions, typing) back to the
    platform.
    """

    name: str = "base"

    def __init__(self, config: Any, bus: MessageBus):
        self.config = config
        self.bus = bus
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """Connect and listen until stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """Disconnect and release resources."""

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """Deliver a reply, reaction or chat action."""

    @property
    def is_running(self) -> bool:
        return self._running

    def is_allowed(self, sender_id: str) -> bool:
        """Check the sender against ``allow_from``. An empty list allows everyone."""
        allow_list = getattr(self.config, "allow_from", [])
        if not allow_list:
            return True
        return str(sender_id) in allow_list

    async def _handle_message(
        self,
        sender_id: str,
        chat_id: str,
        content: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        """Publish a platform message to the bus if the sender is allowed."""
        if not self.is_allowed(sender_id):
            logger.debug(f"Ignoring message from {self.name}:{sender_id} (not in allow_from)")
            return

        await self.bus.publish_inbound(InboundMessage(
            channel=self.name,
            sender_id=str(sender_id),
            chat_id=str(chat_id),
            content=content,
            metadata=metadata or {},
        ))

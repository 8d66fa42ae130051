"""Message bus module."""

from yuebot.bus.events import InboundMessage, OutboundMessage
from yuebot.bus.queue import MessageBus

__all__ = ["MessageBus", "InboundMessage", "OutboundMessage"]

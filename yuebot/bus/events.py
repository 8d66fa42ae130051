"""Event types for the message bus."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class InboundMessage:
    """Message received from a chat channel."""

    channel: str  # "discord" | "telegram"
    sender_id: str  # User identifier
    chat_id: str  # Chat/channel identifier
    content: str  # Message text, mention tokens stripped
    metadata: dict[str, Any] = field(default_factory=dict)  # message_id, display_name, mentioned

    @property
    def display_name(self) -> str:
        """Human-readable label of the sender."""
        return self.metadata.get("display_name") or self.sender_id

    @property
    def message_id(self) -> str | None:
        mid = self.metadata.get("message_id")
        return str(mid) if mid is not None else None

    @property
    def mentioned(self) -> bool:
        """True if the bot was mentioned or its message was replied to."""
        return bool(self.metadata.get("mentioned"))


@dataclass
class OutboundMessage:
    """Reply, reaction or chat action to deliver to a chat channel."""

    channel: str
    chat_id: str
    content: str
    reply_to: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

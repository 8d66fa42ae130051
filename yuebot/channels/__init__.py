"""Chat channels module."""

from yuebot.channels.base import BaseChannel, ChannelStartError
from yuebot.channels.manager import ChannelManager

__all__ = ["BaseChannel", "ChannelManager", "ChannelStartError"]

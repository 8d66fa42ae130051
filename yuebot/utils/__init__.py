"""Utility functions for yuebot."""

from yuebot.utils.helpers import split_text

__all__ = ["split_text"]

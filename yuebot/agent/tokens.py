"""Approximate token estimation for context management."""

from typing import Any

CHARS_PER_TOKEN = 4  # Cross-model estimate (EN/ES chat text)
MESSAGE_OVERHEAD = 4  # Per-message overhead (role, separators)


def estimate_tokens(text: str) -> int:
    """Estimate token count from character count."""
    return len(text) // CHARS_PER_TOKEN


def estimate_message_tokens(message: dict[str, Any]) -> int:
    """Estimate tokens for a single chat message, overhead included."""
    content = message.get("content") or ""
    if not isinstance(content, str):
        content = str(content)
    return MESSAGE_OVERHEAD + estimate_tokens(content)


def estimate_messages_tokens(messages: list[dict[str, Any]]) -> int:
    """Estimate total tokens for a message list."""
    return sum(estimate_message_tokens(m) for m in messages)

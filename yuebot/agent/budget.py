"""Token-budget trimming of the outgoing message list."""

from typing import Any

from yuebot.agent.tokens import estimate_message_tokens


def fit_to_budget(messages: list[dict[str, Any]], ceiling: int) -> list[dict[str, Any]]:
    """Return the longest trailing run of *messages* that fits in *ceiling* tokens.

    Messages are scanned newest to oldest. The scan stops at the first
    message that would overflow, so the result is always a contiguous
    suffix of the input in its original order. The system prompt gets no
    special treatment: if it does not fit, it is dropped like any other
    message.
    """
    if ceiling <= 0:
        return []

    total = 0
    start = len(messages)
    for i in range(len(messages) - 1, -1, -1):
        cost = estimate_message_tokens(messages[i])
        if total + cost > ceiling:
            break
        total += cost
        start = i

    return messages[start:]

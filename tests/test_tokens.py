"""Tests for token estimation and context budgeting."""

from yuebot.agent.budget import fit_to_budget
from yuebot.agent.tokens import (
    CHARS_PER_TOKEN,
    MESSAGE_OVERHEAD,
    estimate_message_tokens,
    estimate_messages_tokens,
    estimate_tokens,
)


def _msg(content: str, role: str = "user") -> dict:
    return {"role": role, "content": content}


class TestEstimateTokens:
    def test_empty_string(self):
        assert estimate_tokens("") == 0

    def test_basic_text(self):
        text = "Hello, world!"
        assert estimate_tokens(text) == len(text) // CHARS_PER_TOKEN

    def test_longer_text(self):
        assert estimate_tokens("a" * 400) == 100

    def test_short_text_rounds_down(self):
        assert estimate_tokens("abc") == 0

    def test_monotonic(self):
        counts = [estimate_tokens("x" * n) for n in range(0, 50)]
        assert counts == sorted(counts)


class TestEstimateMessageTokens:
    def test_includes_overhead(self):
        assert estimate_message_tokens(_msg("a" * 40)) == MESSAGE_OVERHEAD + 10

    def test_none_content(self):
        assert estimate_message_tokens({"role": "assistant", "content": None}) == MESSAGE_OVERHEAD

    def test_list_sums(self):
        msgs = [_msg("a" * 40), _msg("b" * 80)]
        assert estimate_messages_tokens(msgs) == 2 * MESSAGE_OVERHEAD + 10 + 20


class TestFitToBudget:
    def test_everything_fits(self):
        msgs = [_msg("a" * 40), _msg("b" * 40)]
        assert fit_to_budget(msgs, 1000) == msgs

    def test_keeps_most_recent_suffix(self):
        # Each message costs 4 + 10 = 14 tokens
        msgs = [_msg(c * 40) for c in "abcde"]
        result = fit_to_budget(msgs, 30)
        assert result == msgs[-2:]

    def test_exact_fit_is_admitted(self):
        msgs = [_msg("a" * 40), _msg("b" * 40)]
        assert fit_to_budget(msgs, 28) == msgs

    def test_stops_at_first_overflow(self):
        # Middle message is huge; the small old one must not be skipped to
        msgs = [_msg("a" * 4), _msg("b" * 4000), _msg("c" * 4)]
        result = fit_to_budget(msgs, 100)
        assert result == [msgs[2]]

    def test_system_prompt_dropped_when_too_big(self):
        msgs = [_msg("s" * 4000, role="system"), _msg("hi"), _msg("there", role="assistant")]
        result = fit_to_budget(msgs, 50)
        assert result == msgs[1:]
        assert all(m["role"] != "system" for m in result)

    def test_zero_ceiling(self):
        assert fit_to_budget([_msg("hi")], 0) == []

    def test_negative_ceiling(self):
        assert fit_to_budget([_msg("hi")], -5) == []

    def test_empty_input(self):
        assert fit_to_budget([], 100) == []

    def test_preserves_order(self):
        msgs = [_msg(str(i)) for i in range(10)]
        result = fit_to_budget(msgs, 30)
        assert result == msgs[len(msgs) - len(result):]

"""Condensation engine: folds the oldest turns into long-term memory."""

import re

from loguru import logger

from yuebot.agent.memory import ScopeState, Turn
from yuebot.audit import audit
from yuebot.prompts.condensation import FACTS_SYSTEM_PROMPT, SUMMARY_SYSTEM_PROMPT
from yuebot.providers.base import LLMProvider

_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


def parse_facts(text: str) -> list[str]:
    """Split a newline-delimited fact list, dropping blanks and list markers."""
    facts = []
    for line in text.splitlines():
        fact = _LIST_MARKER.sub("", line).strip()
        if fact:
            facts.append(fact)
    return facts


class Condenser:
    """
    Compacts a scope's turn log once enough fresh turns accumulate.

    The last ``interval`` turns are summarized and mined for facts, then
    become the new turn log, flagged as condensed so the next cycle does
    not summarize them again.
    """

    SUMMARY_TEMPERATURE = 0.3
    FACTS_TEMPERATURE = 0.2

    def __init__(
        self,
        provider: LLMProvider,
        model: str,
        interval: int,
        max_summaries: int = 3,
        max_facts: int = 10,
        name: str = "Yue",
    ):
        self.provider = provider
        self.model = model
        self.interval = interval
        self.max_summaries = max_summaries
        self.max_facts = max_facts
        self.name = name

    def should_condense(self, scope: ScopeState) -> bool:
        """Check before appending a new turn whether condensation is due."""
        return scope.fresh_count >= self.interval

    async def condense(self, scope: ScopeState) -> bool:
        """Condense *scope* in place. Returns False and leaves it untouched on failure."""
        window = scope.turns[-self.interval:]
        if not window:
            return False
        transcript = self._format_window(window)
        previous = scope.memory.summaries[-1] if scope.memory.summaries else None

        try:
            summary = await self._ask(
                SUMMARY_SYSTEM_PROMPT, self._summary_input(transcript, previous),
                self.SUMMARY_TEMPERATURE,
            )
            facts_text = await self._ask(
                FACTS_SYSTEM_PROMPT, transcript, self.FACTS_TEMPERATURE,
            )
        except Exception as e:
            logger.warning(f"Condensation failed (LLM error): {e}")
            audit("error", type="condensation", error=str(e))
            return False

        if not summary.strip():
            logger.warning("Condensation skipped: empty summary from LLM")
            return False

        new_facts = parse_facts(facts_text)

        # Commit only after both calls succeeded
        scope.memory.add_summary(summary.strip(), self.max_summaries)
        scope.memory.merge_facts(new_facts, self.max_facts)
        scope.turns[:] = [
            t if t.condensed else t.model_copy(update={"condensed": True})
            for t in window
        ]

        logger.info(
            f"Condensed {len(window)} turns into summary "
            f"({len(summary)} chars) and {len(new_facts)} facts"
        )
        audit(
            "condensation",
            turns=len(window),
            summaries=len(scope.memory.summaries),
            facts=len(scope.memory.facts),
        )
        return True

    async def _ask(self, system_prompt: str, content: str, temperature: float) -> str:
        response = await self.provider.chat(
            messages=[
                {"role": "system", "content": system_prompt.format(name=self.name)},
                {"role": "user", "content": content},
            ],
            tools=None,
            model=self.model,
            temperature=temperature,
        )
        return response.content or ""

    def _format_window(self, turns: list[Turn]) -> str:
        lines = []
        for turn in turns:
            speaker = turn.speaker_label if turn.role == "user" else self.name
            lines.append(f"[{speaker or 'user'}] {turn.text}")
        return "\n".join(lines)

    @staticmethod
    def _summary_input(transcript: str, previous: str | None) -> str:
        parts = []
        if previous:
            parts.append(f"=== PREVIOUS SUMMARY ===\n{previous}\n")
        parts.append(f"=== CONVERSATION ===\n{transcript}")
        return "\n".join(parts)

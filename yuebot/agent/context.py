"""Context builder for assembling persona prompts."""

from datetime import datetime
from typing import Any, Callable

from yuebot.agent.memory import LongTermMemory, Turn


class ContextBuilder:
    """
    Builds the context (system prompt + messages) for a completion call.

    The persona block carries the persona text, the current time and the
    scope's long-term memory: summaries, facts and known participants.
    """

    def __init__(self, name: str, persona: str, now: Callable[[], datetime] = datetime.now):
        self.name = name
        self.persona = persona
        self.now = now

    def build_system_prompt(self, memory: LongTermMemory) -> str:
        """
        Build the persona block for one scope.

        Args:
            memory: The scope's long-term memory.

        Returns:
            Complete system prompt.
        """
        parts = [self._get_identity()]

        if memory.summaries:
            summaries = "\n\n".join(memory.summaries)
            parts.append(f"# Previous conversations\n\n{summaries}")

        if memory.facts:
            facts = "\n".join(f"- {f}" for f in memory.facts)
            parts.append(f"# What you remember\n\n{facts}")

        if memory.identities:
            parts.append(f"# People you know\n\n{self._render_identities(memory)}")

        return "\n\n---\n\n".join(parts)

    def _get_identity(self) -> str:
        now = self.now().strftime("%Y-%m-%d %H:%M (%A)")
        return f"""{self.persona}

## Current Time
{now}

Each user message starts with the speaker's name followed by a colon.
Reply as {self.name} with plain text, without prefixing your own name."""

    @staticmethod
    def _render_identities(memory: LongTermMemory) -> str:
        lines = []
        for identity_id, record in memory.identities.items():
            line = f"- {record.current_label} (id {identity_id})"
            if record.prior_labels:
                line += f", previously known as {', '.join(record.prior_labels)}"
            lines.append(line)
        return "\n".join(lines)

    def build_messages(self, memory: LongTermMemory, turns: list[Turn]) -> list[dict[str, Any]]:
        """Persona message followed by the turn log, oldest first."""
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(memory)},
        ]
        for turn in turns:
            if turn.role == "user" and turn.speaker_label:
                content = f"{turn.speaker_label}: {turn.text}"
            else:
                content = turn.text
            messages.append({"role": turn.role, "content": content})
        return messages

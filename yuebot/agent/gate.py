"""Response gate: decides whether an inbound message gets a reply."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable

from loguru import logger

from yuebot.agent.memory import ScopeState
from yuebot.audit import audit
from yuebot.bus.events import InboundMessage
from yuebot.config.schema import GateConfig
from yuebot.prompts.gate import CLASSIFIER_SYSTEM_PROMPT
from yuebot.providers.base import LLMProvider


class GateReason(str, Enum):
    """Why a message was admitted or suppressed."""

    COOLDOWN = "cooldown"
    MENTION = "mention"
    KEYWORD = "keyword"
    TOPIC = "topic"
    CONTINUITY = "continuity"
    CLASSIFIER = "classifier"
    NO_TRIGGER = "no_trigger"


@dataclass
class GateDecision:
    admitted: bool
    reason: GateReason
    raw: str | None = None  # Raw classifier output, when consulted


class ResponseGate:
    """
    Per-message admit/suppress decision.

    Cooldown is checked first and wins over every trigger. After that any
    one of mention, name keyword, topic keyword or continuity admits the
    message. Continuity is judged on stored turns only, so messages that
    were suppressed never extend a conversation.
    """

    CLASSIFIER_MAX_TOKENS = 3
    CLASSIFIER_TEMPERATURE = 0.1

    def __init__(
        self,
        config: GateConfig,
        name: str = "Yue",
        provider: LLMProvider | None = None,
        model: str | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.config = config
        self.name = name
        self.provider = provider
        self.model = model
        self.now = now
        self.name_keywords = [k.lower() for k in config.name_keywords]
        self.topic_keywords = [k.lower() for k in config.topic_keywords]
        self._last_reply: dict[str, datetime] = {}

    # ── cooldown ────────────────────────────────────────────────

    def check_cooldown(self, identity_id: str) -> bool:
        """True if *identity_id* got a generated reply within the cooldown window."""
        last = self._last_reply.get(identity_id)
        if last is None:
            return False
        return self.now() - last < timedelta(seconds=self.config.cooldown_seconds)

    def record_reply(self, identity_id: str) -> None:
        self._last_reply[identity_id] = self.now()

    # ── decision ────────────────────────────────────────────────

    async def decide(self, msg: InboundMessage, scope: ScopeState) -> GateDecision:
        """Decide whether *msg* should be answered, logging the outcome."""
        decision = await self._evaluate(msg, scope)
        logger.debug(
            f"Gate {'admitted' if decision.admitted else 'suppressed'} "
            f"{msg.channel}:{msg.sender_id} ({decision.reason.value})"
        )
        details = {
            "user": msg.sender_id,
            "message": msg.content,
            "decision": decision.admitted,
            "reason": decision.reason.value,
        }
        if decision.raw is not None:
            details["response"] = decision.raw
        audit("detection", **details)
        return decision

    async def _evaluate(self, msg: InboundMessage, scope: ScopeState) -> GateDecision:
        if self.check_cooldown(msg.sender_id):
            return GateDecision(False, GateReason.COOLDOWN)

        if msg.mentioned:
            return GateDecision(True, GateReason.MENTION)

        text = msg.content.lower()
        if any(k in text for k in self.name_keywords):
            return GateDecision(True, GateReason.KEYWORD)

        if any(k in text for k in self.topic_keywords):
            return GateDecision(True, GateReason.TOPIC)

        if self.config.use_classifier and self.provider is not None:
            return await self._classify(msg, scope)

        last = scope.last_turn
        window = timedelta(seconds=self.config.continuity_seconds)
        if last is not None and self.now() - last.created_at <= window:
            return GateDecision(True, GateReason.CONTINUITY)

        return GateDecision(False, GateReason.NO_TRIGGER)

    async def _classify(self, msg: InboundMessage, scope: ScopeState) -> GateDecision:
        """Ask the model whether *msg* continues the recent conversation."""
        cutoff = self.now() - timedelta(seconds=self.config.classifier_lookback_seconds)
        recent = [t for t in scope.turns if t.created_at >= cutoff]
        if not recent:
            return GateDecision(False, GateReason.NO_TRIGGER)

        history = "\n".join(
            f"{(t.speaker_label or 'user') if t.role == 'user' else self.name}: {t.text}"
            for t in recent
        )
        prompt = CLASSIFIER_SYSTEM_PROMPT.format(
            name=self.name,
            yes=self.config.classifier_yes,
            no=self.config.classifier_no,
            history=history,
            speaker=msg.display_name,
            message=msg.content,
        )

        try:
            response = await self.provider.chat(
                messages=[{"role": "system", "content": prompt}],
                tools=None,
                model=self.model,
                max_tokens=self.CLASSIFIER_MAX_TOKENS,
                temperature=self.CLASSIFIER_TEMPERATURE,
            )
        except Exception as e:
            logger.warning(f"Gate classifier failed, not replying: {e}")
            audit("error", type="detection_error", error=str(e))
            return GateDecision(False, GateReason.NO_TRIGGER)

        raw = response.content or ""
        admitted = raw.strip().upper() == self.config.classifier_yes.upper()
        return GateDecision(admitted, GateReason.CLASSIFIER if admitted else GateReason.NO_TRIGGER, raw)

"""Response generator: memory + budgeted history -> one completion call."""

from datetime import datetime
from typing import Callable

from loguru import logger

from yuebot.agent.actions import AdminActions
from yuebot.agent.budget import fit_to_budget
from yuebot.agent.condenser import Condenser
from yuebot.agent.context import ContextBuilder
from yuebot.agent.memory import MemoryStore, Turn
from yuebot.agent.tokens import estimate_messages_tokens
from yuebot.audit import audit
from yuebot.config.schema import AgentConfig
from yuebot.providers.base import CompletionError, LLMProvider, LLMResponse
from yuebot.providers.errors import ProviderErrorKind


class ResponseGenerator:
    """
    Produces the reply for an admitted message.

    The user's turn is stored before the completion call. On success the
    reply is stored as well; on any failure the fixed fallback text is
    returned and nothing else is stored.
    """

    def __init__(
        self,
        provider: LLMProvider,
        store: MemoryStore,
        condenser: Condenser,
        context: ContextBuilder,
        config: AgentConfig,
        actions: AdminActions | None = None,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.provider = provider
        self.store = store
        self.condenser = condenser
        self.context = context
        self.config = config
        self.actions = actions
        self.now = now

    async def generate(self, identity_id: str, label: str, text: str) -> str:
        """Generate a reply to *text* from *identity_id* and record the exchange."""
        scope_id = self.store.scope_id_for(identity_id)
        self.store.register_identity(scope_id, identity_id, label)

        scope = self.store.get_scope(scope_id)
        if self.condenser.should_condense(scope):
            await self.condenser.condense(scope)

        self.store.append_turn(
            scope_id,
            Turn(role="user", speaker_label=label, text=text, created_at=self.now()),
        )

        messages = self.context.build_messages(scope.memory, scope.turns)
        budgeted = fit_to_budget(messages, self.config.max_context_tokens)
        if len(budgeted) < len(messages):
            logger.debug(
                f"Budget dropped {len(messages) - len(budgeted)} of {len(messages)} messages "
                f"(~{estimate_messages_tokens(budgeted)} tokens kept)"
            )

        tools = self.actions.definitions() if self.actions else None
        try:
            response = await self.provider.chat(
                messages=budgeted,
                tools=tools,
                model=self.config.model,
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
            )
        except CompletionError as e:
            kind = ProviderErrorKind.from_status(e.status_code)
            logger.error(f"Completion failed ({kind.description}): {e.detail}")
            audit("error", type="generation", status=e.status_code, kind=kind.name, error=e.detail)
            return self.config.fallback_reply
        except Exception as e:
            logger.error(f"Completion failed: {e}")
            audit("error", type="generation", error=str(e))
            return self.config.fallback_reply

        try:
            reply = await self._resolve_reply(response, identity_id)
        except Exception as e:
            logger.error(f"Admin action failed: {e}")
            audit("error", type="action", error=str(e))
            return self.config.fallback_reply

        if not reply:
            logger.warning("Completion returned no usable content")
            audit("error", type="generation", error="empty reply")
            return self.config.fallback_reply

        self.store.append_turn(scope_id, Turn(role="assistant", text=reply, created_at=self.now()))
        self.store.trim(scope_id)
        audit("response", user=identity_id, length=len(reply), usage=response.usage)
        return reply

    async def _resolve_reply(self, response: LLMResponse, identity_id: str) -> str | None:
        """Turn a completion into reply text, running an admin action if one was requested."""
        if response.has_tool_calls and self.actions:
            call = response.tool_calls[0]
            result = await self.actions.dispatch(call.name, identity_id)
            if result is not None:
                return result
        content = (response.content or "").strip()
        return content or None

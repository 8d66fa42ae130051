"""Agent loop: gate, generate and reply for each inbound message."""

import asyncio

from loguru import logger

from yuebot.agent.gate import GateReason, ResponseGate
from yuebot.agent.generator import ResponseGenerator
from yuebot.agent.memory import MemoryStore
from yuebot.audit import audit
from yuebot.bus.events import InboundMessage, OutboundMessage
from yuebot.bus.queue import MessageBus

ACK_REACTION = "👀"
COOLDOWN_REACTION = "⌛"
ERROR_REACTION = "❌"
SLOW_REACTION = "🐢"


class AgentLoop:
    """
    The agent loop is the core processing engine.

    It:
    1. Receives messages from the bus
    2. Asks the gate whether to answer
    3. Generates the reply
    4. Sends it back and starts the sender's cooldown

    Messages are handled strictly one at a time, so memory is never
    mutated by two handlers at once.
    """

    def __init__(
        self,
        bus: MessageBus,
        store: MemoryStore,
        gate: ResponseGate,
        generator: ResponseGenerator,
        slow_reply_seconds: float = 15.0,
    ):
        self.bus = bus
        self.store = store
        self.gate = gate
        self.generator = generator
        self.slow_reply_seconds = slow_reply_seconds
        self._running = False

    async def run(self) -> None:
        """Run the agent loop, processing messages from the bus."""
        self._running = True
        logger.info("Agent loop started")

        while self._running:
            try:
                msg = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue

            try:
                await self.handle(msg)
            except Exception as e:
                logger.exception(f"Error processing message from {msg.channel}:{msg.sender_id}: {e}")
                audit("error", type="handler", user=msg.sender_id, error=str(e))
                await self._react(msg, ERROR_REACTION)

    def stop(self) -> None:
        """Stop the agent loop."""
        self._running = False
        logger.info("Agent loop stopping")

    async def handle(self, msg: InboundMessage) -> None:
        """Process a single inbound message end to end."""
        scope = self.store.get_scope(self.store.scope_id_for(msg.sender_id))
        decision = await self.gate.decide(msg, scope)

        if not decision.admitted:
            if decision.reason == GateReason.COOLDOWN:
                logger.info(f"Cooldown active for {msg.sender_id}, ignoring message")
                await self._react(msg, COOLDOWN_REACTION)
            return

        logger.info(f"Processing message from {msg.channel}:{msg.sender_id} ({decision.reason.value})")
        await self._react(msg, ACK_REACTION)
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content="",
            metadata={"chat_action": "typing"},
        ))

        reply = await self._generate_with_watchdog(msg)

        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content=reply,
            reply_to=msg.message_id,
        ))
        self.gate.record_reply(msg.sender_id)

    async def _generate_with_watchdog(self, msg: InboundMessage) -> str:
        """Generate the reply, flagging the message if it takes too long."""
        slow_task: asyncio.Task | None = None

        def mark_slow() -> None:
            nonlocal slow_task
            logger.warning(f"Reply to {msg.sender_id} is slow (>{self.slow_reply_seconds}s)")
            slow_task = asyncio.create_task(self._react(msg, SLOW_REACTION))

        handle = asyncio.get_running_loop().call_later(self.slow_reply_seconds, mark_slow)
        try:
            return await self.generator.generate(msg.sender_id, msg.display_name, msg.content)
        finally:
            handle.cancel()
            if slow_task is not None:
                # The indicator must be published before it is removed
                await slow_task
                await self._react(msg, SLOW_REACTION, remove=True)

    async def _react(self, msg: InboundMessage, emoji: str, remove: bool = False) -> None:
        if msg.message_id is None:
            return
        key = "remove_reaction" if remove else "reaction"
        await self.bus.publish_outbound(OutboundMessage(
            channel=msg.channel,
            chat_id=msg.chat_id,
            content="",
            metadata={key: emoji, "target_message_id": msg.message_id},
        ))

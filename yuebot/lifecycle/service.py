"""Lifecycle controller: periodic flushes, signals and graceful shutdown."""

import asyncio
import signal
from typing import Any, Callable

from loguru import logger

from yuebot.agent.loop import AgentLoop
from yuebot.agent.memory import MemoryStore
from yuebot.audit import audit
from yuebot.channels.base import ChannelStartError
from yuebot.channels.manager import ChannelManager

DEFAULT_HISTORY_INTERVAL_S = 60
DEFAULT_MEMORY_INTERVAL_S = 15 * 60


class LifecycleController:
    """
    Owns the two persistence timers and the shutdown sequence.

    Shutdown may be requested by a signal, an unhandled fault or a direct
    call; whichever comes first runs the sequence and later requests wait
    for the same result. Once shutdown starts, ``closing`` stays set for
    the rest of the process and periodic saves stop.
    """

    def __init__(
        self,
        store: MemoryStore,
        channels: ChannelManager | None = None,
        agent: AgentLoop | None = None,
        history_interval_s: float = DEFAULT_HISTORY_INTERVAL_S,
        memory_interval_s: float = DEFAULT_MEMORY_INTERVAL_S,
    ):
        self.store = store
        self.channels = channels
        self.agent = agent
        self.history_interval_s = history_interval_s
        self.memory_interval_s = memory_interval_s
        self.closing = False
        self.exit_code: int | None = None
        self._timers: list[asyncio.Task] = []
        self._shutdown_task: asyncio.Task | None = None
        self._stopped = asyncio.Event()

    async def start(self) -> None:
        """Start the history and memory flush timers."""
        self._timers = [
            asyncio.create_task(self._run_timer(self.history_interval_s, self.store.save_history, "history")),
            asyncio.create_task(self._run_timer(self.memory_interval_s, self.store.save_memory, "memory")),
        ]
        logger.info(
            f"Persistence timers started (history every {self.history_interval_s}s, "
            f"memory every {self.memory_interval_s}s)"
        )

    async def _run_timer(self, interval_s: float, flush: Callable[[], bool], label: str) -> None:
        """Flush on a fixed interval until cancelled or closing."""
        while not self.closing:
            try:
                await asyncio.sleep(interval_s)
                if not self.closing:
                    flush()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"{label.capitalize()} flush error: {e}")

    # ── shutdown ────────────────────────────────────────────────

    async def shutdown(self, reason: str = "requested") -> int:
        """Run the shutdown sequence once. Returns the process exit code."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self._shutdown_sequence(reason))
        return await asyncio.shield(self._shutdown_task)

    def request_shutdown(self, reason: str) -> None:
        """Schedule shutdown from synchronous callbacks (signals, fault handlers)."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.get_running_loop().create_task(self._shutdown_sequence(reason))

    async def wait_stopped(self) -> int:
        """Block until shutdown has completed and return the exit code."""
        await self._stopped.wait()
        return self.exit_code if self.exit_code is not None else 0

    async def _shutdown_sequence(self, reason: str, failed: bool = False) -> int:
        logger.info(f"Shutting down ({reason})...")
        audit("shutdown", reason=reason)
        self.closing = True
        self.store.closing = True

        for task in self._timers:
            task.cancel()
        await asyncio.gather(*self._timers, return_exceptions=True)
        self._timers = []

        if self.agent:
            self.agent.stop()

        code = 1 if failed else 0
        try:
            self.store.save(final=True)
            if self.channels:
                await self.channels.stop_all()
        except Exception as e:
            logger.exception(f"Error during shutdown: {e}")
            audit("error", type="shutdown", error=str(e))
            code = 1

        logger.info(f"Shutdown complete (exit code {code})")
        self.exit_code = code
        self._stopped.set()
        return code

    # ── signal and fault routing ────────────────────────────────

    def install_signal_handlers(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT and SIGTERM into the shutdown sequence."""
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                # Windows event loops
                logger.warning(f"Cannot install handler for {sig.name} on this platform")

    def handle_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        """asyncio exception handler: log the fault and shut down.

        A channel that could not connect exits with code 1.
        """
        exc = context.get("exception")
        message = context.get("message", "unhandled error")
        if isinstance(exc, ChannelStartError):
            logger.error(f"Gateway unavailable: {exc}")
            audit("error", type="login_error", error=str(exc))
            reason, failed = "startup", True
        else:
            logger.opt(exception=exc).error(f"Unhandled fault: {message}")
            audit("error", type="uncaught_exception", message=message, error=str(exc) if exc else None)
            reason, failed = "fault", False
        if self._shutdown_task is None:
            self._shutdown_task = loop.create_task(self._shutdown_sequence(reason, failed))

    def watch(self, task: asyncio.Task) -> None:
        """Treat an exception escaping *task* as an unhandled fault."""

        def _done(t: asyncio.Task) -> None:
            if t.cancelled() or t.exception() is None:
                return
            self.handle_exception(t.get_loop(), {
                "message": f"Task {t.get_name()} failed",
                "exception": t.exception(),
            })

        task.add_done_callback(_done)

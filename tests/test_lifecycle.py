"""Tests for persistence timers and graceful shutdown."""

import asyncio
import json
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from yuebot.agent.memory import MemoryStore, Turn
from yuebot.channels.base import ChannelStartError
from yuebot.lifecycle.service import LifecycleController


def _store(tmp_path) -> MemoryStore:
    store = MemoryStore(tmp_path / "h.json", tmp_path / "m.json")
    store.append_turn("1", Turn(role="user", speaker_label="Ana", text="hi"))
    return store


class TestTimers:
    @pytest.mark.asyncio
    async def test_history_timer_flushes(self, tmp_path):
        store = _store(tmp_path)
        lc = LifecycleController(store, history_interval_s=0.01, memory_interval_s=60)
        await lc.start()
        await asyncio.sleep(0.05)
        await lc.shutdown()

        assert (tmp_path / "h.json").exists()

    @pytest.mark.asyncio
    async def test_timers_skip_when_closing(self, tmp_path):
        store = MagicMock()
        store.save_history = MagicMock(return_value=True)
        lc = LifecycleController(store, history_interval_s=0.01, memory_interval_s=0.01)
        lc.closing = True
        await lc.start()
        await asyncio.sleep(0.05)

        store.save_history.assert_not_called()
        store.save_memory.assert_not_called()


class TestShutdown:
    @pytest.mark.asyncio
    async def test_final_flush_despite_closing(self, tmp_path):
        store = _store(tmp_path)
        channels = MagicMock()
        channels.stop_all = AsyncMock()
        lc = LifecycleController(store, channels)
        await lc.start()

        code = await lc.shutdown("test")

        assert code == 0
        assert store.closing is True
        history = json.loads((tmp_path / "h.json").read_text())
        assert history["1"][0]["text"] == "hi"
        assert (tmp_path / "m.json").exists()
        channels.stop_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_idempotent(self, tmp_path):
        store = MagicMock()
        channels = MagicMock()
        channels.stop_all = AsyncMock()
        lc = LifecycleController(store, channels)

        codes = await asyncio.gather(lc.shutdown("a"), lc.shutdown("b"))
        assert codes == [0, 0]
        assert await lc.shutdown("c") == 0
        store.save.assert_called_once_with(final=True)
        channels.stop_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failing_sequence_exits_one(self, tmp_path):
        store = MagicMock()
        channels = MagicMock()
        channels.stop_all = AsyncMock(side_effect=RuntimeError("gateway stuck"))
        lc = LifecycleController(store, channels)

        assert await lc.shutdown() == 1

    @pytest.mark.asyncio
    async def test_stops_agent(self, tmp_path):
        agent = MagicMock()
        lc = LifecycleController(MagicMock(), agent=agent)
        await lc.shutdown()
        agent.stop.assert_called_once()

    @pytest.mark.asyncio
    async def test_wait_stopped_returns_code(self, tmp_path):
        lc = LifecycleController(MagicMock())
        lc.request_shutdown("signal")
        assert await asyncio.wait_for(lc.wait_stopped(), timeout=1) == 0


class TestFaultRouting:
    @pytest.mark.asyncio
    async def test_exception_handler_triggers_shutdown(self, tmp_path):
        store = MagicMock()
        lc = LifecycleController(store)
        loop = asyncio.get_running_loop()

        lc.handle_exception(loop, {"message": "boom", "exception": RuntimeError("boom")})
        await asyncio.wait_for(lc.wait_stopped(), timeout=1)

        store.save.assert_called_once_with(final=True)

    @pytest.mark.asyncio
    async def test_watched_task_failure_triggers_shutdown(self, tmp_path):
        lc = LifecycleController(MagicMock())

        async def crash():
            raise RuntimeError("channel died")

        task = asyncio.create_task(crash())
        lc.watch(task)
        await asyncio.wait_for(lc.wait_stopped(), timeout=1)
        assert lc.closing is True

    @pytest.mark.asyncio
    async def test_generic_fault_exits_zero(self, tmp_path):
        lc = LifecycleController(MagicMock())

        async def crash():
            raise RuntimeError("boom")

        lc.watch(asyncio.create_task(crash()))
        assert await asyncio.wait_for(lc.wait_stopped(), timeout=1) == 0

    @pytest.mark.asyncio
    async def test_gateway_login_failure_exits_one(self, tmp_path):
        store = MagicMock()
        channels = MagicMock()
        channels.start_all = AsyncMock(side_effect=ChannelStartError("No channel could connect"))
        channels.stop_all = AsyncMock()
        lc = LifecycleController(store, channels)

        lc.watch(asyncio.create_task(channels.start_all(), name="channels"))
        code = await asyncio.wait_for(lc.wait_stopped(), timeout=1)

        assert code == 1
        store.save.assert_called_once_with(final=True)
        channels.stop_all.assert_awaited_once()

    def test_signal_handlers_installed(self):
        lc = LifecycleController(MagicMock())
        loop = MagicMock()
        lc.install_signal_handlers(loop)
        installed = {c.args[0] for c in loop.add_signal_handler.call_args_list}
        assert installed == {signal.SIGINT, signal.SIGTERM}

"""Tests for managed process control."""

import subprocess
import sys
from unittest.mock import MagicMock, patch

import pytest

from yuebot.config.schema import ManagedProcessConfig
from yuebot.managed import ManagedProcessError, ProcessStatus, get_manager
from yuebot.managed.command import CommandProcessManager
from yuebot.managed.systemd import SystemdProcessManager


class TestGetManager:
    def test_systemd(self):
        manager = get_manager(ManagedProcessConfig(kind="systemd", unit="mc.service", label="minecraft"))
        assert isinstance(manager, SystemdProcessManager)
        assert manager.label == "minecraft"

    def test_command(self):
        manager = get_manager(ManagedProcessConfig(kind="command", command=["true"]))
        assert isinstance(manager, CommandProcessManager)

    def test_unconfigured_systemd_raises(self):
        with pytest.raises(ManagedProcessError):
            get_manager(ManagedProcessConfig(kind="systemd", unit=""))

    def test_unconfigured_command_raises(self):
        with pytest.raises(ManagedProcessError):
            get_manager(ManagedProcessConfig(kind="command", command=[]))


class TestSystemdProcessManager:
    def test_status_running(self):
        active = MagicMock(stdout="active\n")
        pid = MagicMock(stdout="MainPID=4242\n")
        with patch("yuebot.managed.systemd.subprocess.run", side_effect=[active, pid]):
            info = SystemdProcessManager("mc.service").status()
        assert info.status == ProcessStatus.RUNNING
        assert info.pid == 4242

    def test_status_stopped(self):
        with patch("yuebot.managed.systemd.subprocess.run", return_value=MagicMock(stdout="inactive\n")):
            assert SystemdProcessManager("mc.service").is_running() is False

    def test_start_invokes_systemctl(self):
        with patch("yuebot.managed.systemd.subprocess.run") as run:
            SystemdProcessManager("mc.service").start()
        assert run.call_args.args[0] == ["systemctl", "--user", "start", "mc.service"]

    def test_failure_raises(self):
        err = subprocess.CalledProcessError(1, "systemctl", stderr="Unit not found.")
        with patch("yuebot.managed.systemd.subprocess.run", side_effect=err):
            with pytest.raises(ManagedProcessError, match="Unit not found"):
                SystemdProcessManager("mc.service").stop()


class TestCommandProcessManager:
    def test_start_stop(self):
        manager = CommandProcessManager([sys.executable, "-c", "import time; time.sleep(30)"])
        assert manager.is_running() is False

        manager.start()
        try:
            info = manager.status()
            assert info.status == ProcessStatus.RUNNING
            assert info.pid
        finally:
            manager.stop()

        assert manager.is_running() is False

    def test_stop_when_not_started(self):
        manager = CommandProcessManager(["true"])
        manager.stop()
        assert manager.is_running() is False

    def test_bad_executable(self):
        manager = CommandProcessManager(["/nonexistent/binary"])
        with pytest.raises(ManagedProcessError):
            manager.start()

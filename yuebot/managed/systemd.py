"""Managed process backed by a systemd --user unit."""

import subprocess

from yuebot.managed.base import ManagedProcessError, ProcessInfo, ProcessManager, ProcessStatus


class SystemdProcessManager(ProcessManager):

    def __init__(self, unit: str, label: str = "server"):
        super().__init__(label)
        if not unit:
            raise ManagedProcessError("No systemd unit configured")
        self.unit = unit

    def start(self) -> None:
        self._ctl("start", self.unit)

    def stop(self) -> None:
        self._ctl("stop", self.unit)

    def restart(self) -> None:
        self._ctl("restart", self.unit)

    def status(self) -> ProcessInfo:
        try:
            result = subprocess.run(
                ["systemctl", "--user", "is-active", self.unit],
                capture_output=True, text=True,
            )
        except FileNotFoundError as e:
            raise ManagedProcessError("systemctl not found") from e

        if result.stdout.strip() != "active":
            return ProcessInfo(status=ProcessStatus.STOPPED)
        return ProcessInfo(status=ProcessStatus.RUNNING, pid=self._get_pid())

    def _get_pid(self) -> int | None:
        try:
            result = subprocess.run(
                ["systemctl", "--user", "show", "-p", "MainPID", self.unit],
                capture_output=True, text=True,
            )
            # Output: MainPID=12345
            for line in result.stdout.splitlines():
                if line.startswith("MainPID="):
                    pid = int(line.split("=", 1)[1])
                    return pid if pid > 0 else None
        except (FileNotFoundError, ValueError):
            pass
        return None

    @staticmethod
    def _ctl(*args: str) -> None:
        try:
            subprocess.run(
                ["systemctl", "--user", *args],
                check=True, capture_output=True, text=True,
            )
        except FileNotFoundError as e:
            raise ManagedProcessError("systemctl not found") from e
        except subprocess.CalledProcessError as e:
            raise ManagedProcessError(
                f"systemctl --user {' '.join(args)} failed: {e.stderr.strip()}"
            ) from e

"""Managed process spawned directly as a child of the bot."""

import subprocess

from yuebot.managed.base import ManagedProcessError, ProcessInfo, ProcessManager, ProcessStatus


class CommandProcessManager(ProcessManager):
    """Runs an argv as a child process. State does not survive a bot restart."""

    STOP_TIMEOUT = 10

    def __init__(self, command: list[str], working_dir: str | None = None, label: str = "server"):
        super().__init__(label)
        if not command:
            raise ManagedProcessError("No command configured")
        self.command = command
        self.working_dir = working_dir
        self._proc: subprocess.Popen | None = None

    def start(self) -> None:
        try:
            self._proc = subprocess.Popen(
                self.command,
                cwd=self.working_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise ManagedProcessError(f"Failed to start {self.command[0]}: {e}") from e

    def stop(self) -> None:
        if self._proc is None:
            return
        self._proc.terminate()
        try:
            self._proc.wait(timeout=self.STOP_TIMEOUT)
        except subprocess.TimeoutExpired:
            self._proc.kill()
            self._proc.wait()
        self._proc = None

    def restart(self) -> None:
        self.stop()
        self.start()

    def status(self) -> ProcessInfo:
        if self._proc is None or self._proc.poll() is not None:
            return ProcessInfo(status=ProcessStatus.STOPPED)
        return ProcessInfo(status=ProcessStatus.RUNNING, pid=self._proc.pid)

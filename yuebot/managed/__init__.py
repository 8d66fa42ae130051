"""Managed process control: factory and re-exports."""

from yuebot.config.schema import ManagedProcessConfig
from yuebot.managed.base import ManagedProcessError, ProcessInfo, ProcessManager, ProcessStatus

__all__ = [
    "ManagedProcessError",
    "ProcessInfo",
    "ProcessManager",
    "ProcessStatus",
    "get_manager",
]


def get_manager(config: ManagedProcessConfig) -> ProcessManager:
    """Return the ProcessManager described by *config*."""
    if config.kind == "command":
        from yuebot.managed.command import CommandProcessManager
        return CommandProcessManager(config.command, config.working_dir, label=config.label)
    else:
        from yuebot.managed.systemd import SystemdProcessManager
        return SystemdProcessManager(config.unit, label=config.label)

"""Abstract managed-process interface and shared types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ProcessStatus(Enum):
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ProcessInfo:
    status: ProcessStatus
    pid: int | None = None


class ManagedProcessError(Exception):
    """Raised when a managed-process operation fails."""


class ProcessManager(ABC):
    """Controls one external process on behalf of admin actions."""

    def __init__(self, label: str = "server"):
        self.label = label

    @abstractmethod
    def start(self) -> None:
        """Start the process."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the process."""

    @abstractmethod
    def restart(self) -> None:
        """Stop and start the process."""

    @abstractmethod
    def status(self) -> ProcessInfo:
        """Get current process status."""

    def is_running(self) -> bool:
        return self.status().status == ProcessStatus.RUNNING

"""Admin actions over the managed process, offered to the model as tools."""

import asyncio
from enum import Enum
from typing import Any

from loguru import logger

from yuebot.audit import audit
from yuebot.managed.base import ManagedProcessError, ProcessManager, ProcessStatus
from yuebot.prompts.persona import ADMIN_REFUSAL


class AdminAction(str, Enum):
    START = "start_process"
    STOP = "stop_process"
    RESTART = "restart_process"
    STATUS = "process_status"

    @classmethod
    def parse(cls, name: str) -> "AdminAction | None":
        try:
            return cls(name)
        except ValueError:
            return None


_DESCRIPTIONS = {
    AdminAction.START: "Start the {label}. Use only when an admin explicitly asks to start it.",
    AdminAction.STOP: "Stop the {label}. Use only when an admin explicitly asks to stop it.",
    AdminAction.RESTART: "Restart the {label}. Use only when an admin explicitly asks to restart it.",
    AdminAction.STATUS: "Report whether the {label} is currently running.",
}


class AdminActions:
    """
    Fixed command set bound to one ProcessManager.

    Handlers check the current state first, so starting a running process
    or stopping a stopped one is a no-op that says so. Manager calls block,
    so they run in a worker thread.
    """

    def __init__(self, manager: ProcessManager, admin_ids: list[str]):
        self.manager = manager
        self.admin_ids = {str(i) for i in admin_ids}

    @property
    def label(self) -> str:
        return self.manager.label

    def is_admin(self, identity_id: str) -> bool:
        return identity_id in self.admin_ids

    def definitions(self) -> list[dict[str, Any]]:
        """Tool definitions in OpenAI function format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": action.value,
                    "description": _DESCRIPTIONS[action].format(label=self.label),
                    "parameters": {"type": "object", "properties": {}},
                },
            }
            for action in AdminAction
        ]

    async def dispatch(self, name: str, identity_id: str) -> str | None:
        """
        Run the action called *name* on behalf of *identity_id*.

        Returns the reply text, or None if *name* is not a known action.
        """
        action = AdminAction.parse(name)
        if action is None:
            logger.warning(f"Model requested unknown action: {name}")
            return None

        if not self.is_admin(identity_id):
            logger.info(f"Refused {action.value} for non-admin {identity_id}")
            audit("action", action=action.value, user=identity_id, result="refused")
            return ADMIN_REFUSAL

        handler = {
            AdminAction.START: self._start,
            AdminAction.STOP: self._stop,
            AdminAction.RESTART: self._restart,
            AdminAction.STATUS: self._status,
        }[action]

        try:
            result = await asyncio.to_thread(handler)
        except (ManagedProcessError, OSError) as e:
            logger.error(f"Action {action.value} failed: {e}")
            audit("error", type="action", action=action.value, error=str(e))
            verb = "check" if action is AdminAction.STATUS else action.value.split("_")[0]
            return f"Could not {verb} the {self.label}: {e}"

        logger.info(f"Action {action.value} by {identity_id}: {result}")
        audit("action", action=action.value, user=identity_id, result=result)
        return result

    def _start(self) -> str:
        if self.manager.is_running():
            return f"The {self.label} is already running."
        self.manager.start()
        return f"The {self.label} has been started."

    def _stop(self) -> str:
        if not self.manager.is_running():
            return f"The {self.label} is already stopped."
        self.manager.stop()
        return f"The {self.label} has been stopped."

    def _restart(self) -> str:
        self.manager.restart()
        return f"The {self.label} has been restarted."

    def _status(self) -> str:
        info = self.manager.status()
        if info.status == ProcessStatus.RUNNING:
            pid = f" (PID {info.pid})" if info.pid else ""
            return f"The {self.label} is running{pid}."
        return f"The {self.label} is stopped."

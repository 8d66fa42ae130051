"""Process lifecycle: persistence timers and graceful shutdown."""

from yuebot.lifecycle.service import LifecycleController

__all__ = ["LifecycleController"]

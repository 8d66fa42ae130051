"""yuebot - persona chat bot with condensed long-term memory."""

__version__ = "0.1.0"
__logo__ = "🌙"

"""CLI module for yuebot."""

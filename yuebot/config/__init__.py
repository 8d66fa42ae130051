"""Configuration module for yuebot."""

from yuebot.config.loader import get_config_path, load_config
from yuebot.config.schema import Config

__all__ = ["Config", "load_config", "get_config_path"]

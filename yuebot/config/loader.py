"""Configuration loading and saving (camelCase JSON on disk)."""

import json
import os
import re
from pathlib import Path
from typing import Any

from loguru import logger

from yuebot.config.schema import Config

# Environment names used by earlier deployments of the bot
LEGACY_ENV = {
    "DISCORD_TOKEN": ("channels", "discord", "token"),
    "TELEGRAM_TOKEN": ("channels", "telegram", "token"),
    "DEEPSEEK_API_KEY": ("provider", "api_key"),
}


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".yuebot" / "config.json"


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    first, *rest = name.split("_")
    return first + "".join(word.capitalize() for word in rest)


def convert_keys(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data


def _apply_legacy_env(data: dict) -> dict:
    """Fill empty secrets from the bare environment names, if set."""
    for env_name, path in LEGACY_ENV.items():
        value = os.environ.get(env_name)
        if not value:
            continue
        node = data
        for key in path[:-1]:
            node = node.setdefault(key, {})
        if not node.get(path[-1]):
            node[path[-1]] = value
    return data


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file, overlaying environment variables.

    A missing or unreadable file falls back to defaults plus environment.
    """
    path = config_path or get_config_path()
    data: dict = {}

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = convert_keys(json.load(f))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using defaults.")
            data = {}

    return Config(**_apply_legacy_env(data))


def save_config(config: Config, config_path: Path | None = None) -> None:
    """Save configuration to file in camelCase."""
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)

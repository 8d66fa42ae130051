"""Configuration schema using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from yuebot.prompts.persona import DEFAULT_FALLBACK, DEFAULT_PERSONA


class AgentConfig(BaseModel):
    """Persona, model and context sizing."""
    name: str = "Yue"
    persona: str = DEFAULT_PERSONA
    model: str = "deepseek/deepseek-chat"
    max_tokens: int = 1000
    temperature: float = 1.0
    max_context_tokens: int = 8000
    scope_mode: Literal["shared", "per_user"] = "per_user"
    max_history: int = 60  # Short-term turns kept per scope
    condense_interval: int = 30  # Fresh turns that trigger condensation
    max_summaries: int = Field(default=3, ge=1)
    max_facts: int = Field(default=10, ge=1)
    fallback_reply: str = DEFAULT_FALLBACK
    slow_reply_seconds: float = 15.0

    @model_validator(mode="after")
    def _check_history_fits_interval(self) -> "AgentConfig":
        if self.condense_interval < 1:
            raise ValueError("condense_interval must be at least 1")
        if self.max_history < self.condense_interval:
            raise ValueError(
                f"max_history ({self.max_history}) must be >= "
                f"condense_interval ({self.condense_interval})"
            )
        return self


class GateConfig(BaseModel):
    """Response gating configuration."""
    name_keywords: list[str] = Field(default_factory=lambda: ["yue"])
    topic_keywords: list[str] = Field(default_factory=list)  # Empty disables topic matching
    cooldown_seconds: float = 5.0
    continuity_seconds: float = 30.0
    use_classifier: bool = False  # Strict mode: ask the model instead of the recency heuristic
    classifier_lookback_seconds: float = 300.0
    classifier_yes: str = "YES"
    classifier_no: str = "NO"


class StorageConfig(BaseModel):
    """Persistence paths and flush intervals."""
    data_dir: str = "~/.yuebot/data"
    history_file: str = "chat_history.json"
    memory_file: str = "memory.json"
    audit_file: str = "log.txt"
    history_flush_seconds: int = 60
    memory_flush_seconds: int = 900

    @property
    def data_path(self) -> Path:
        return Path(self.data_dir).expanduser()

    @property
    def history_path(self) -> Path:
        return self.data_path / self.history_file

    @property
    def memory_path(self) -> Path:
        return self.data_path / self.memory_file

    @property
    def audit_path(self) -> Path:
        return self.data_path / self.audit_file


class ProviderConfig(BaseModel):
    """Completion API configuration."""
    api_key: str = ""
    api_base: str | None = None


class DiscordConfig(BaseModel):
    """Discord channel configuration."""
    enabled: bool = False
    token: str = ""
    allow_from: list[str] = Field(default_factory=list)  # Allowed user IDs (empty = everyone)


class TelegramConfig(BaseModel):
    """Telegram channel configuration."""
    enabled: bool = False
    token: str = ""  # Bot token from @BotFather
    allow_from: list[str] = Field(default_factory=list)
    proxy: str | None = None  # HTTP/SOCKS5 proxy URL


class ChannelsConfig(BaseModel):
    """Configuration for chat channels."""
    discord: DiscordConfig = Field(default_factory=DiscordConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)


class ManagedProcessConfig(BaseModel):
    """The external process that admin actions control."""
    kind: Literal["systemd", "command"] = "systemd"
    unit: str = ""  # systemd --user unit name
    command: list[str] = Field(default_factory=list)  # argv for kind="command"
    working_dir: str | None = None
    label: str = "server"


class AdminConfig(BaseModel):
    """Admin action dispatch configuration."""
    enabled: bool = False
    admin_ids: list[str] = Field(default_factory=list)
    process: ManagedProcessConfig = Field(default_factory=ManagedProcessConfig)


class Config(BaseSettings):
    """Root configuration for yuebot."""

    model_config = SettingsConfigDict(
        env_prefix="YUEBOT_",
        env_nested_delimiter="__",
        env_file=".env",
        extra="ignore",
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    channels: ChannelsConfig = Field(default_factory=ChannelsConfig)
    admin: AdminConfig = Field(default_factory=AdminConfig)

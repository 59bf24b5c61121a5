"""Configuration management for the settled invoice notifier.

Configuration is loaded from environment variables. Secrets (macaroons, bot
tokens) are held as SecretStr and never logged.
"""

from __future__ import annotations

import json
from enum import StrEnum
from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, BaseModel, Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppEnvironment(StrEnum):
    LOCAL = "local"
    TEST = "test"
    PROD = "prod"


class LogLevel(StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class TokensDisplay(StrEnum):
    """How token amounts are rendered in notifications."""

    BIG = "big"
    FULL = "full"


class AppConfig(BaseSettings):
    name: str = Field(default="settled-invoice-notifier")
    env: AppEnvironment = Field(default=AppEnvironment.LOCAL)
    version: str = Field(default="0.1.0")
    log_level: LogLevel = Field(default=LogLevel.INFO)

    model_config = SettingsConfigDict(env_prefix="APP_")

    @field_validator("env", mode="before")
    @classmethod
    def validate_env(cls, v: str | AppEnvironment) -> AppEnvironment:
        if isinstance(v, AppEnvironment):
            return v
        return AppEnvironment(v)

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str | LogLevel) -> LogLevel:
        if isinstance(v, LogLevel):
            return v
        return LogLevel(v.upper())


class ServerConfig(BaseSettings):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8010)

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class LndConfig(BaseSettings):
    """Connection details for the receiving LND node (REST interface)."""

    rest_url: str = Field(default="https://localhost:8080")
    macaroon_hex: SecretStr = Field(default=SecretStr(""))
    macaroon_path: str = Field(default="")
    tls_cert_path: str = Field(default="")
    timeout_seconds: float = Field(default=30.0)

    model_config = SettingsConfigDict(env_prefix="LND_")

    @model_validator(mode="after")
    def load_macaroon_file(self) -> LndConfig:
        """Read the macaroon from disk when only a path is configured."""
        if not self.macaroon_hex.get_secret_value() and self.macaroon_path:
            path = Path(self.macaroon_path).expanduser()
            if path.is_file():
                self.macaroon_hex = SecretStr(path.read_bytes().hex())
        return self


class RemoteNode(BaseModel):
    """Another node controlled by the operator."""

    label: str
    rest_url: str
    macaroon_hex: SecretStr = SecretStr("")
    tls_cert_path: str = ""


class NodesConfig(BaseSettings):
    """Additional controlled nodes, given as a JSON list in NODES_REMOTE."""

    remote: list[RemoteNode] = Field(default_factory=list)

    model_config = SettingsConfigDict(env_prefix="NODES_")

    @field_validator("remote", mode="before")
    @classmethod
    def parse_remote(cls, v: str | list) -> list:
        if isinstance(v, str):
            v = v.strip()
            return json.loads(v) if v else []
        return v


class TelegramConfig(BaseSettings):
    bot_token: SecretStr = Field(default=SecretStr(""))
    chat_id: int = Field(default=0)
    api_base: str = Field(default="https://api.telegram.org")
    timeout_seconds: float = Field(default=15.0)

    model_config = SettingsConfigDict(env_prefix="TELEGRAM_")


class NotifyConfig(BaseSettings):
    from_label: str = Field(default="")
    preferred_tokens_type: TokensDisplay = Field(default=TokensDisplay.BIG)
    pipeline_timeout_seconds: float = Field(default=300.0)

    model_config = SettingsConfigDict(env_prefix="NOTIFY_")

    @field_validator("preferred_tokens_type", mode="before")
    @classmethod
    def validate_tokens_type(cls, v: str | TokensDisplay) -> TokensDisplay:
        if isinstance(v, TokensDisplay):
            return v
        # Anything other than "full" keeps the big unit display
        return TokensDisplay.FULL if str(v).strip().lower() == "full" else TokensDisplay.BIG


class ObservabilityConfig(BaseSettings):
    service_name: str = Field(default="settled-invoice-notifier")
    otlp_endpoint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("exporter_otlp_endpoint", "otlp_endpoint"),
    )
    otlp_insecure: bool = Field(
        default=True,
        validation_alias=AliasChoices("exporter_otlp_insecure", "otlp_insecure"),
    )
    log_record_format: str = Field(default="json")

    model_config = SettingsConfigDict(env_prefix="OTEL_")


class Settings(BaseSettings):
    app: AppConfig = Field(default_factory=AppConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    lnd: LndConfig = Field(default_factory=LndConfig)
    nodes: NodesConfig = Field(default_factory=NodesConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    notify: NotifyConfig = Field(default_factory=NotifyConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)
    metrics_token: str | None = Field(default=None)

    @model_validator(mode="after")
    def validate_prod_settings(self) -> Settings:
        if self.app.env == AppEnvironment.PROD:
            if not self.telegram.bot_token.get_secret_value():
                raise ValueError("TELEGRAM_BOT_TOKEN is required in production environment")
            if not self.telegram.chat_id:
                raise ValueError("TELEGRAM_CHAT_ID is required in production environment")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()


def reload_settings() -> Settings:
    get_settings.cache_clear()
    return get_settings()

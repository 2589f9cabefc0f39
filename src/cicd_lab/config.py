"""環境変数ベースの設定（pydantic-settings）"""

from __future__ import annotations

import logging
import socket
from typing import Any, Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigError, ConfigErrorCodes
from .messages import BASE_MESSAGE, BETA_MESSAGE
from .models import FlagClientConfig, ReadinessStrategy


class Settings(BaseSettings):
    """Process settings, read from the environment and an optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    # HTTP
    host: str = "0.0.0.0"
    port: int = Field(default=3000, ge=1, le=65535)
    shutdown_timeout_seconds: int = Field(default=10, ge=0)

    # Flag provider
    unleash_url: str = "http://unleash-server:4242/api/"
    unleash_app_name: str = "cicd-lab-app"
    unleash_environment: str = "development"
    unleash_instance_id: str = ""
    unleash_api_token: str = "default-token"
    unleash_refresh_interval: float = Field(default=2.0, gt=0)
    unleash_timeout: float = Field(default=5.0, gt=0)
    flag_shutdown_timeout_seconds: float = Field(default=5.0, ge=0)

    # Content
    beta_flag_name: str = "show-beta-banner"
    beta_banner_fallback: bool = False
    flag_context_user_id: str = "ci-cd-lab"
    readiness_strategy: ReadinessStrategy = ReadinessStrategy.FALLBACK
    base_message: str = BASE_MESSAGE
    beta_message: str = BETA_MESSAGE

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "text"] = "json"

    @field_validator("readiness_strategy", mode="before")
    @classmethod
    def _normalize_strategy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {value}")
        return level

    def flag_client_config(self) -> FlagClientConfig:
        """FlagClient 用の設定を組み立てる。"""
        instance_id = self.unleash_instance_id or f"{self.unleash_app_name}-{socket.gethostname()}"
        return FlagClientConfig(
            url=self.unleash_url,
            app_name=self.unleash_app_name,
            environment=self.unleash_environment,
            instance_id=instance_id,
            auth_token=self.unleash_api_token,
            refresh_interval_seconds=self.unleash_refresh_interval,
            request_timeout_seconds=self.unleash_timeout,
            shutdown_timeout_seconds=self.flag_shutdown_timeout_seconds,
        )


def load_settings(**overrides: Any) -> Settings:
    """設定を読み込んで Settings を返す。

    Keyword overrides take precedence over the environment.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigError(
            code=ConfigErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e

"""フィーチャーフラグのデータモデル"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any


class FlagState(str, Enum):
    """Lifecycle state of the flag client."""

    UNINITIALIZED = "uninitialized"
    READY = "ready"
    ERROR = "error"


class ReadinessStrategy(str, Enum):
    """How the content route behaves before the first successful fetch."""

    BLOCK = "block"
    FALLBACK = "fallback"
    POLL = "poll"


class DecisionReason:
    """FlagDecision.reason の定数。"""

    NOT_READY: str = "NOT_READY"
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    FLAG_ENABLED: str = "FLAG_ENABLED"
    FLAG_DISABLED: str = "FLAG_DISABLED"
    EVALUATION_ERROR: str = "EVALUATION_ERROR"


@dataclass
class FlagClientConfig:
    """フラグクライアント設定。"""

    url: str = "http://unleash-server:4242/api/"
    app_name: str = "cicd-lab-app"
    environment: str = "development"
    instance_id: str = "cicd-lab-app"
    auth_token: str = ""
    refresh_interval_seconds: float = 15.0
    request_timeout_seconds: float = 5.0
    shutdown_timeout_seconds: float = 5.0
    max_backoff_multiplier: int = 10
    custom_headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.refresh_interval_seconds <= 0:
            raise ValueError("refresh_interval_seconds must be positive")
        if self.max_backoff_multiplier < 1:
            raise ValueError("max_backoff_multiplier must be at least 1")

    def headers(self) -> dict[str, str]:
        headers = {
            "UNLEASH-APPNAME": self.app_name,
            "UNLEASH-INSTANCEID": self.instance_id,
            "UNLEASH-ENVIRONMENT": self.environment,
        }
        if self.auth_token:
            headers["Authorization"] = self.auth_token
        headers.update(self.custom_headers)
        return headers


@dataclass(frozen=True)
class EvaluationContext:
    """フラグ評価コンテキスト。"""

    user_id: str | None = None
    session_id: str | None = None
    remote_address: str | None = None
    properties: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "properties", MappingProxyType(dict(self.properties))
        )


@dataclass(frozen=True)
class ActivationStrategy:
    """Activation strategy attached to a toggle."""

    name: str
    parameters: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "parameters", MappingProxyType(dict(self.parameters))
        )

    def matches(self, context: EvaluationContext) -> bool:
        if self.name == "default":
            return True
        if self.name == "userWithId":
            if context.user_id is None:
                return False
            user_ids = self.parameters.get("userIds", "")
            return context.user_id in {u.strip() for u in user_ids.split(",")}
        return False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ActivationStrategy:
        params = data.get("parameters") or {}
        return cls(
            name=str(data["name"]),
            parameters={str(k): str(v) for k, v in params.items()},
        )


@dataclass(frozen=True)
class FeatureToggle:
    """リモート管理のフィーチャーフラグ。"""

    name: str
    enabled: bool = False
    strategies: tuple[ActivationStrategy, ...] = ()

    def evaluate(self, context: EvaluationContext) -> bool:
        """Disabled toggles are false; enabled ones need one matching strategy."""
        if not self.enabled:
            return False
        if not self.strategies:
            return True
        return any(s.matches(context) for s in self.strategies)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> FeatureToggle:
        return cls(
            name=str(data["name"]),
            enabled=bool(data.get("enabled", False)),
            strategies=tuple(
                ActivationStrategy.from_dict(s) for s in data.get("strategies") or []
            ),
        )


@dataclass(frozen=True)
class FlagSnapshot:
    """An immutable, fully fetched toggle set."""

    toggles: Mapping[str, FeatureToggle] = field(default_factory=dict)
    etag: str | None = None
    fetched_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "toggles", MappingProxyType(dict(self.toggles)))

    @classmethod
    def from_toggles(
        cls, toggles: list[FeatureToggle], etag: str | None = None
    ) -> FlagSnapshot:
        return cls(toggles={t.name: t for t in toggles}, etag=etag)

    def get(self, name: str) -> FeatureToggle | None:
        return self.toggles.get(name)


@dataclass(frozen=True)
class FlagDecision:
    """フラグ評価結果。"""

    flag_name: str
    enabled: bool
    reason: str

    @property
    def ready(self) -> bool:
        return self.reason != DecisionReason.NOT_READY

"""cicd_lab テスト共通設定"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import pytest

from cicd_lab import FeatureToggle, FlagClient, FlagClientConfig, InMemoryFlagProvider
from cicd_lab.config import Settings

BETA_FLAG = "show-beta-banner"
BASE = "Welcome to the CI/CD Release Engineering Lab 🚀"
BETA_BODY = BASE + "\n🧪 Beta Feature: Releasing smarter, one flag at a time."


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "unleash_refresh_interval": 60.0,
        "flag_shutdown_timeout_seconds": 0.2,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_client(provider: InMemoryFlagProvider, **overrides: Any) -> FlagClient:
    values: dict[str, Any] = {
        "refresh_interval_seconds": 60.0,
        "shutdown_timeout_seconds": 0.5,
    }
    values.update(overrides)
    return FlagClient(FlagClientConfig(**values), provider)


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    """Poll `predicate` from a sync test until it holds or `timeout` passes."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def provider() -> InMemoryFlagProvider:
    return InMemoryFlagProvider([FeatureToggle(BETA_FLAG, enabled=True)])

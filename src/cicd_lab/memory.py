"""InMemoryFlagProvider 実装"""

from __future__ import annotations

import asyncio

from .exceptions import FlagClientError, FlagClientErrorCodes
from .models import FeatureToggle, FlagSnapshot
from .provider import FlagProvider


class InMemoryFlagProvider(FlagProvider):
    """テスト用インメモリフラグプロバイダー。

    Failures can be queued with `fail_next` and a fetch can be held open with
    `block()` / `release()` to simulate an in-flight refresh.
    """

    def __init__(self, toggles: list[FeatureToggle] | None = None) -> None:
        self._toggles: dict[str, FeatureToggle] = {t.name: t for t in toggles or []}
        self._failures: list[FlagClientError] = []
        self._gate: asyncio.Event | None = None
        self.fetch_count = 0
        self.closed = False

    def set_flag(self, toggle: FeatureToggle) -> None:
        """フラグを設定する。"""
        self._toggles[toggle.name] = toggle

    def remove_flag(self, name: str) -> None:
        self._toggles.pop(name, None)

    def fail_next(self, times: int = 1, code: str = FlagClientErrorCodes.CONNECTION_ERROR) -> None:
        """Make the next `times` fetches fail with the given code."""
        for _ in range(times):
            self._failures.append(FlagClientError(code, "simulated provider failure"))

    def block(self) -> None:
        """Hold subsequent fetches until `release()` is called."""
        self._gate = asyncio.Event()

    def release(self) -> None:
        if self._gate is not None:
            self._gate.set()
            self._gate = None

    async def fetch(self, current: FlagSnapshot | None) -> FlagSnapshot:
        self.fetch_count += 1
        if self._gate is not None:
            await self._gate.wait()
        if self._failures:
            raise self._failures.pop(0)
        return FlagSnapshot.from_toggles(list(self._toggles.values()))

    async def close(self) -> None:
        self.closed = True

"""FlagClient — asyncio Task ベースのフラグ更新ループ"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
from collections.abc import Callable
from typing import Any

import structlog

from .exceptions import FlagClientError, FlagClientErrorCodes
from .http_provider import HttpFlagProvider
from .models import (
    DecisionReason,
    EvaluationContext,
    FlagClientConfig,
    FlagDecision,
    FlagSnapshot,
    FlagState,
)
from .provider import FlagProvider

ReadyCallback = Callable[[], Any]
ErrorCallback = Callable[[FlagClientError], Any]

logger = structlog.stdlib.get_logger(__name__)


class FlagClient:
    """Keeps a live, periodically refreshed view of the remote toggle set.

    Fetches are serialized by a lock, so the snapshot committed last always
    comes from the fetch that started last. Each fetched toggle set is
    published as a new immutable FlagSnapshot with a single reference
    assignment, so readers always see one complete snapshot and never wait
    on the network.
    """

    def __init__(
        self,
        config: FlagClientConfig,
        provider: FlagProvider | None = None,
    ) -> None:
        self._config = config
        self._provider = provider or HttpFlagProvider(config)
        self._snapshot: FlagSnapshot | None = None
        self._state = FlagState.UNINITIALIZED
        self._ready = asyncio.Event()
        self._stop = asyncio.Event()
        self._wake = asyncio.Event()
        self._fetch_lock = asyncio.Lock()
        self._ready_callbacks: list[ReadyCallback] = []
        self._error_callbacks: list[ErrorCallback] = []
        self._callback_tasks: set[asyncio.Future[Any]] = set()
        self._task: asyncio.Task[None] | None = None
        self._closed = False
        self._failures = 0

    @property
    def config(self) -> FlagClientConfig:
        return self._config

    @property
    def state(self) -> FlagState:
        return self._state

    @property
    def snapshot(self) -> FlagSnapshot | None:
        return self._snapshot

    def is_closed(self) -> bool:
        return self._closed

    def is_ready(self) -> bool:
        """True once the first fetch has succeeded. Stays true afterwards."""
        return self._ready.is_set()

    def start(self) -> None:
        """更新ループを開始する。"""
        if self._closed:
            raise FlagClientError(
                FlagClientErrorCodes.CLIENT_CLOSED, "flag client has been shut down"
            )
        if self._task is not None:
            raise FlagClientError(
                FlagClientErrorCodes.ALREADY_STARTED, "flag client is already running"
            )
        self._task = asyncio.get_running_loop().create_task(
            self._refresh_loop(), name="flag-refresh"
        )
        logger.info(
            "flag client initializing",
            url=self._config.url,
            app_name=self._config.app_name,
            environment=self._config.environment,
        )

    def on_ready(self, callback: ReadyCallback) -> None:
        """Run `callback` once, on the first successful fetch.

        Registering after the client is already ready runs it right away.
        """
        if self._ready.is_set():
            self._fire(callback)
        else:
            self._ready_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback) -> None:
        """Run `callback` with the error after every failed fetch."""
        self._error_callbacks.append(callback)

    async def wait_until_ready(self, timeout: float | None = None) -> bool:
        if self._ready.is_set():
            return True
        try:
            await asyncio.wait_for(self._ready.wait(), timeout)
        except asyncio.TimeoutError:
            return False
        return True

    def evaluate(
        self, flag_name: str, context: EvaluationContext | None = None
    ) -> FlagDecision:
        """Evaluate one flag against the last committed snapshot. Never raises."""
        snapshot = self._snapshot
        if snapshot is None:
            return FlagDecision(flag_name, False, DecisionReason.NOT_READY)
        toggle = snapshot.get(flag_name)
        if toggle is None:
            logger.warning("unknown feature flag", flag=flag_name)
            return FlagDecision(flag_name, False, DecisionReason.FLAG_NOT_FOUND)
        try:
            enabled = toggle.evaluate(context or EvaluationContext())
        except Exception as e:
            logger.error("flag evaluation failed", flag=flag_name, error=str(e))
            return FlagDecision(flag_name, False, DecisionReason.EVALUATION_ERROR)
        reason = DecisionReason.FLAG_ENABLED if enabled else DecisionReason.FLAG_DISABLED
        return FlagDecision(flag_name, enabled, reason)

    def is_enabled(
        self,
        flag_name: str,
        context: EvaluationContext | None = None,
        default: bool = False,
    ) -> bool:
        decision = self.evaluate(flag_name, context)
        if not decision.ready:
            return default
        return decision.enabled

    def request_refresh(self) -> None:
        """Ask the refresh loop to fetch now instead of at the next interval."""
        self._wake.set()

    async def refresh(self) -> bool:
        """1回の取得を実行し、成功したかどうかを返す。"""
        async with self._fetch_lock:
            return await self._refresh_locked()

    async def _refresh_locked(self) -> bool:
        try:
            snapshot = await self._provider.fetch(self._snapshot)
        except FlagClientError as e:
            self._record_failure(e)
            return False
        except Exception as e:
            self._record_failure(
                FlagClientError(
                    code=FlagClientErrorCodes.FETCH_FAILED,
                    message=f"Unexpected provider failure: {e}",
                    cause=e,
                )
            )
            return False

        self._snapshot = snapshot
        self._failures = 0
        if self._state is not FlagState.READY:
            logger.info(
                "flag client ready",
                previous_state=self._state.value,
                toggles=len(snapshot.toggles),
            )
        self._state = FlagState.READY
        if not self._ready.is_set():
            self._ready.set()
            callbacks, self._ready_callbacks = self._ready_callbacks, []
            for callback in callbacks:
                self._fire(callback)
        return True

    async def shutdown(self, timeout: float | None = None) -> None:
        """更新ループを停止し、プロバイダーを閉じる。冪等。"""
        if self._closed:
            return
        self._closed = True
        self._stop.set()
        self._wake.set()
        grace = self._config.shutdown_timeout_seconds if timeout is None else timeout

        task, self._task = self._task, None
        if task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=grace)
            except asyncio.TimeoutError:
                logger.warning("flag refresh still running after grace period, cancelling", grace=grace)
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

        for pending in list(self._callback_tasks):
            pending.cancel()
        if self._callback_tasks:
            await asyncio.gather(*self._callback_tasks, return_exceptions=True)

        await self._provider.close()
        logger.info("flag client stopped")

    async def __aenter__(self) -> FlagClient:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.shutdown()

    def _record_failure(self, error: FlagClientError) -> None:
        self._failures += 1
        self._state = FlagState.ERROR
        logger.warning(
            "flag fetch failed",
            code=error.code,
            error=str(error),
            consecutive_failures=self._failures,
            serving_last_known=self._snapshot is not None,
        )
        for callback in self._error_callbacks:
            self._fire(callback, error)

    def _fire(self, callback: Callable[..., Any], *args: Any) -> None:
        try:
            result = callback(*args)
        except Exception:
            logger.exception("flag client callback failed")
            return
        if inspect.isawaitable(result):
            future = asyncio.ensure_future(result)
            self._callback_tasks.add(future)
            future.add_done_callback(self._callback_done)

    def _callback_done(self, future: asyncio.Future[Any]) -> None:
        self._callback_tasks.discard(future)
        if not future.cancelled() and future.exception() is not None:
            logger.error("flag client callback failed", error=str(future.exception()))

    def _next_delay(self) -> float:
        multiplier = min(1 + self._failures, self._config.max_backoff_multiplier)
        return self._config.refresh_interval_seconds * multiplier

    async def _refresh_loop(self) -> None:
        while not self._stop.is_set():
            await self.refresh()
            try:
                await asyncio.wait_for(self._wake.wait(), timeout=self._next_delay())
            except asyncio.TimeoutError:
                pass
            self._wake.clear()


def initialize(
    config: FlagClientConfig, provider: FlagProvider | None = None
) -> FlagClient:
    """Create a FlagClient and start its refresh loop without waiting for it."""
    client = FlagClient(config, provider)
    client.start()
    return client

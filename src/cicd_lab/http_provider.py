"""Unleash 互換 HTTP フラグプロバイダー実装"""

from __future__ import annotations

from typing import Any

import httpx

from .exceptions import FlagClientError, FlagClientErrorCodes
from .models import FeatureToggle, FlagClientConfig, FlagSnapshot
from .provider import FlagProvider

FEATURES_PATH = "client/features"


class HttpFlagProvider(FlagProvider):
    """httpx を使ったフラグ取得クライアント。

    One AsyncClient is kept for the provider's lifetime so the refresh loop
    reuses its connection pool; `close()` releases it.
    """

    def __init__(
        self,
        config: FlagClientConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.url,
            headers=config.headers(),
            timeout=config.request_timeout_seconds,
            transport=transport,
        )

    def _handle_error(self, resp: httpx.Response) -> None:
        if resp.status_code in (401, 403):
            raise FlagClientError(
                code=FlagClientErrorCodes.AUTH_REJECTED,
                message=f"fetch features: HTTP {resp.status_code}: credentials rejected",
            )
        if resp.status_code >= 400:
            raise FlagClientError(
                code=FlagClientErrorCodes.HTTP_ERROR,
                message=f"fetch features: HTTP {resp.status_code}: {resp.text}",
            )

    def _parse(self, resp: httpx.Response) -> FlagSnapshot:
        try:
            data: dict[str, Any] = resp.json()
            toggles = [FeatureToggle.from_dict(f) for f in data.get("features", [])]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise FlagClientError(
                code=FlagClientErrorCodes.INVALID_RESPONSE,
                message=f"Malformed features payload: {e}",
                cause=e,
            ) from e
        return FlagSnapshot.from_toggles(toggles, etag=resp.headers.get("ETag"))

    async def fetch(self, current: FlagSnapshot | None) -> FlagSnapshot:
        """トグル一覧を取得する。"""
        headers: dict[str, str] = {}
        if current is not None and current.etag:
            headers["If-None-Match"] = current.etag
        try:
            resp = await self._client.get(FEATURES_PATH, headers=headers)
        except httpx.HTTPError as e:
            raise FlagClientError(
                code=FlagClientErrorCodes.CONNECTION_ERROR,
                message=f"Failed to reach flag provider: {e}",
                cause=e,
            ) from e
        if resp.status_code == 304 and current is not None:
            return current
        self._handle_error(resp)
        return self._parse(resp)

    async def close(self) -> None:
        await self._client.aclose()

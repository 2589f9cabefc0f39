"""FastAPI アプリケーションの HTTP テスト"""

from __future__ import annotations

import httpx
import pytest
from conftest import BASE, BETA_BODY, make_client, make_settings, wait_for
from fastapi.testclient import TestClient

from cicd_lab import (
    FlagClient,
    FlagState,
    InMemoryFlagProvider,
    ReadinessStrategy,
)
from cicd_lab.app import INTERNAL_ERROR_BODY, create_app
from cicd_lab.http_provider import HttpFlagProvider
from cicd_lab.router import NOT_READY_BODY


def build(provider: InMemoryFlagProvider, **overrides: object) -> tuple[TestClient, FlagClient]:
    settings = make_settings(**overrides)
    client = make_client(provider)
    app = create_app(settings, client)
    return TestClient(app), client


def test_health_without_lifespan(provider: InMemoryFlagProvider) -> None:
    """フラグクライアント未起動でも /health が 200 を返すこと。"""
    http, client = build(provider)
    response = http.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"
    assert provider.fetch_count == 0
    assert client.state is FlagState.UNINITIALIZED


@pytest.mark.parametrize("state", ["uninitialized", "ready", "error"])
def test_health_in_every_state(provider: InMemoryFlagProvider, state: str) -> None:
    if state == "uninitialized":
        provider.block()
    elif state == "error":
        provider.fail_next(10)
    http, client = build(provider)
    with http:
        if state == "ready":
            assert wait_for(client.is_ready)
        elif state == "error":
            assert wait_for(lambda: client.state is FlagState.ERROR)
        for _ in range(3):
            response = http.get("/health")
            assert response.status_code == 200
            assert response.text == "OK"
        assert client.state.value == state


def test_content_when_ready(provider: InMemoryFlagProvider) -> None:
    http, client = build(provider)
    with http:
        assert wait_for(client.is_ready)
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == BETA_BODY
        assert response.headers["content-type"].startswith("text/plain")


def test_content_startup_failure_falls_back(provider: InMemoryFlagProvider) -> None:
    provider.fail_next(10)
    http, client = build(provider)
    with http:
        assert wait_for(lambda: client.state is FlagState.ERROR)
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == BASE


def test_block_strategy_before_ready(provider: InMemoryFlagProvider) -> None:
    provider.block()
    http, _ = build(provider, readiness_strategy=ReadinessStrategy.BLOCK)
    with http:
        response = http.get("/")
        assert response.status_code == 404
        assert http.get("/health").status_code == 200


def test_poll_strategy_before_ready(provider: InMemoryFlagProvider) -> None:
    provider.block()
    http, _ = build(provider, readiness_strategy=ReadinessStrategy.POLL)
    with http:
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == NOT_READY_BODY


def test_status_endpoint(provider: InMemoryFlagProvider) -> None:
    http, client = build(provider)
    with http:
        assert wait_for(client.is_ready)
        assert http.get("/status").json() == {
            "flags": "ready",
            "ready": True,
            "strategy": "fallback",
        }


def test_lifespan_exit_stops_client(provider: InMemoryFlagProvider) -> None:
    provider.block()
    http, client = build(provider)
    with http:
        http.get("/health")
    assert provider.closed is True
    assert client._task is None


def test_fetches_again_once_ready(provider: InMemoryFlagProvider) -> None:
    http, client = build(provider)
    with http:
        assert wait_for(lambda: provider.fetch_count >= 2)
        assert client.is_ready()


def test_unexpected_error_returns_generic_500(
    provider: InMemoryFlagProvider, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = make_settings()
    app = create_app(settings, make_client(provider))

    def explode() -> None:
        raise RuntimeError("unexpected")

    monkeypatch.setattr(app.state.request_router, "render_content", explode)
    http = TestClient(app, raise_server_exceptions=False)
    response = http.get("/")
    assert response.status_code == 500
    assert response.text == INTERNAL_ERROR_BODY
    assert http.get("/health").status_code == 200


def test_http_provider_end_to_end() -> None:
    """HTTP プロバイダー経由でフラグが反映されること。"""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200,
            json={
                "version": 1,
                "features": [
                    {"name": "show-beta-banner", "enabled": True, "strategies": [{"name": "default"}]}
                ],
            },
        )

    settings = make_settings(unleash_api_token="lab-token")
    config = settings.flag_client_config()
    client = FlagClient(config, HttpFlagProvider(config, transport=httpx.MockTransport(handler)))
    with TestClient(create_app(settings, client)) as http:
        assert wait_for(client.is_ready)
        assert http.get("/").text == BETA_BODY
    assert seen[0].url.path == "/api/client/features"
    assert seen[0].headers["Authorization"] == "lab-token"


def test_http_provider_unreachable_never_5xx() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    settings = make_settings()
    config = settings.flag_client_config()
    client = FlagClient(config, HttpFlagProvider(config, transport=httpx.MockTransport(handler)))
    with TestClient(create_app(settings, client)) as http:
        assert wait_for(lambda: client.state is FlagState.ERROR)
        response = http.get("/")
        assert response.status_code == 200
        assert response.text == BASE


def test_lifespan_can_run_twice() -> None:
    """停止後に再度起動でき、起動ごとに新しいフラグクライアントが使われること。"""
    settings = make_settings(unleash_url="http://127.0.0.1:1/api/")
    app = create_app(settings)
    seen: list[FlagClient] = []
    for _ in range(2):
        with TestClient(app) as http:
            assert http.get("/health").status_code == 200
            assert http.get("/").status_code == 200
            seen.append(app.state.flag_client)
            assert app.state.request_router.client is app.state.flag_client
        assert app.state.flag_client.is_closed()
    assert seen[0] is not seen[1]

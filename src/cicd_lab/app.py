"""FastAPI アプリケーションファクトリ"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from . import __version__
from .client import FlagClient
from .config import Settings, load_settings
from .router import RequestRouter, build_content_router, build_health_router

INTERNAL_ERROR_BODY = "Internal Server Error"

logger = structlog.stdlib.get_logger(__name__)


async def _unhandled_error(request: Request, exc: Exception) -> PlainTextResponse:
    logger.exception("unhandled error", path=request.url.path, exc_info=exc)
    return PlainTextResponse(INTERNAL_ERROR_BODY, status_code=500)


def create_app(
    settings: Settings | None = None,
    client: FlagClient | None = None,
) -> FastAPI:
    """アプリケーションを組み立てる。

    /health is bound first and never touches the flag client. The client is
    started by the lifespan, after every route is registered, and stopped on
    exit within `flag_shutdown_timeout_seconds`.

    Without an injected `client`, every lifespan entry builds a fresh
    FlagClient, so the app can be started again after a shutdown. An injected
    client is shut down with the first lifespan and cannot be restarted.
    """
    settings = settings or load_settings()
    request_router = RequestRouter(
        client or FlagClient(settings.flag_client_config()), settings
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        flag_client = request_router.client
        if client is None and flag_client.is_closed():
            flag_client = FlagClient(settings.flag_client_config())
            request_router.attach(flag_client)
            app.state.flag_client = flag_client

        def fetch_again() -> None:
            flag_client.request_refresh()
            logger.info("flags re-fetch requested on ready")

        flag_client.on_ready(fetch_again)
        flag_client.start()
        logger.info(
            "app started",
            port=settings.port,
            strategy=settings.readiness_strategy.value,
        )
        try:
            yield
        finally:
            await flag_client.shutdown(settings.flag_shutdown_timeout_seconds)

    app = FastAPI(title="CI/CD Lab App", version=__version__, lifespan=lifespan)
    app.include_router(build_health_router())
    app.include_router(build_content_router(request_router))
    app.add_exception_handler(Exception, _unhandled_error)

    app.state.settings = settings
    app.state.flag_client = request_router.client
    app.state.request_router = request_router
    return app

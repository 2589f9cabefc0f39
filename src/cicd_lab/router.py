"""HTTP ルーティングとフラグ準備状態の調停"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog
from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from .client import FlagClient
from .config import Settings
from .messages import ResponseMessage
from .models import EvaluationContext, ReadinessStrategy

HEALTH_BODY = "OK"
NOT_FOUND_BODY = "Not Found"
NOT_READY_BODY = "Feature flags are not ready yet. Please retry shortly."

logger = structlog.stdlib.get_logger(__name__)


@dataclass(frozen=True)
class RouteResult:
    """Status code and body of a content response."""

    status_code: int
    body: str


class RequestRouter:
    """Decides, per request, how the content route answers.

    One ReadinessStrategy is fixed at construction and applies to every
    request until the flag client has committed its first snapshot:

    - BLOCK: the content route answers 404 as if it were not registered yet.
    - FALLBACK: the configured fallback value stands in for the flag.
    - POLL: a fixed "not ready" body is returned with status 200.
    """

    def __init__(self, client: FlagClient, settings: Settings) -> None:
        self._client = client
        self._strategy = settings.readiness_strategy
        self._flag_name = settings.beta_flag_name
        self._fallback = settings.beta_banner_fallback
        self._context = EvaluationContext(user_id=settings.flag_context_user_id)
        self._message = ResponseMessage(
            base=settings.base_message, suffix=settings.beta_message
        )

    @property
    def client(self) -> FlagClient:
        return self._client

    def attach(self, client: FlagClient) -> None:
        """Route through `client` from now on."""
        self._client = client

    @property
    def strategy(self) -> ReadinessStrategy:
        return self._strategy

    @property
    def flag_name(self) -> str:
        return self._flag_name

    def build_context(self) -> EvaluationContext:
        # TODO: derive user_id from the request once per-user targeting is wanted.
        return self._context

    def resolve_flag(self) -> bool | None:
        """Return the beta flag value, or None when the strategy has no answer yet."""
        decision = self._client.evaluate(self._flag_name, self.build_context())
        if decision.ready:
            logger.info(
                "beta flag evaluated",
                flag=self._flag_name,
                enabled=decision.enabled,
                reason=decision.reason,
            )
            return decision.enabled
        if self._strategy is ReadinessStrategy.FALLBACK:
            logger.info(
                "flag client not ready, using fallback",
                flag=self._flag_name,
                enabled=self._fallback,
            )
            return self._fallback
        return None

    def render_content(self) -> RouteResult:
        enabled = self.resolve_flag()
        if enabled is None:
            if self._strategy is ReadinessStrategy.BLOCK:
                return RouteResult(404, NOT_FOUND_BODY)
            return RouteResult(200, NOT_READY_BODY)
        body = self._message.render(enabled)
        logger.debug("responding", body=body)
        return RouteResult(200, body)

    def status(self) -> dict[str, Any]:
        return {
            "flags": self._client.state.value,
            "ready": self._client.is_ready(),
            "strategy": self._strategy.value,
        }


def build_health_router() -> APIRouter:
    """Liveness route. Depends on nothing but the process being up."""
    router = APIRouter()

    @router.get("/health", response_class=PlainTextResponse)
    async def health() -> PlainTextResponse:
        return PlainTextResponse(HEALTH_BODY)

    return router


def build_content_router(request_router: RequestRouter) -> APIRouter:
    router = APIRouter()

    @router.get("/", response_class=PlainTextResponse)
    async def content() -> PlainTextResponse:
        result = request_router.render_content()
        return PlainTextResponse(result.body, status_code=result.status_code)

    @router.get("/status")
    async def status() -> dict[str, Any]:
        return request_router.status()

    return router

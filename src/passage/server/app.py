"""HTTP surface of the relay.

Routes:
    GET /                 sign-in page listing the configured providers
    GET /health           liveness probe
    GET /authorize  ?provider=NAME, redirects to the provider
    GET /callback   ?code=...&state=..., returns the identity as JSON
"""

from __future__ import annotations

import asyncio
import contextlib
import html
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any

import httpx
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.sessions import SessionMiddleware
from starlette.requests import Request
from starlette.responses import (
    HTMLResponse,
    JSONResponse,
    PlainTextResponse,
    RedirectResponse,
    Response,
)
from starlette.routing import Route

from passage.auth.models.errors import FlowError
from passage.auth.models.flow import AuthorizationResponse
from passage.auth.services.flow_store import InMemoryFlowStateStore
from passage.auth.services.orchestrator import FlowOrchestrator
from passage.auth.services.registry import ProviderRegistry
from passage.config import Settings
from passage.server.session import CookieSessionAdapter

logger = logging.getLogger(__name__)

SESSION_COOKIE = "passage_session"
NO_STORE = {"Cache-Control": "no-store"}

HOME_PAGE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>Sign in</title>
</head>
<body>
  <h1>Sign in</h1>
  <ul>
{links}
  </ul>
</body>
</html>
"""


class RelayServer:
    """Starlette application exposing the authorization endpoints."""

    def __init__(
        self,
        orchestrator: FlowOrchestrator,
        *,
        session_secret: str,
        https_only: bool = False,
        lifespan: Callable[[Starlette], Any] | None = None,
    ):
        self._orchestrator = orchestrator
        self._app = self._create_app(session_secret, https_only, lifespan)

    @property
    def app(self) -> Starlette:
        return self._app

    def _create_app(
        self,
        session_secret: str,
        https_only: bool,
        lifespan: Callable[[Starlette], Any] | None,
    ) -> Starlette:
        routes = [
            Route("/", self._handle_home, methods=["GET"]),
            Route("/health", self._handle_health, methods=["GET"]),
            Route("/authorize", self._handle_authorize, methods=["GET"]),
            Route("/callback", self._handle_callback, methods=["GET"]),
        ]
        middleware = [
            Middleware(
                SessionMiddleware,
                secret_key=session_secret,
                session_cookie=SESSION_COOKIE,
                same_site="lax",
                https_only=https_only,
            )
        ]
        return Starlette(routes=routes, middleware=middleware, lifespan=lifespan)

    async def _handle_home(self, request: Request) -> Response:
        links = "\n".join(
            f'    <li><a href="/authorize?provider={html.escape(name, quote=True)}">'
            f"Sign in with {html.escape(name.capitalize())}</a></li>"
            for name in self._orchestrator.registry.names()
        )
        return HTMLResponse(HOME_PAGE.format(links=links))

    async def _handle_health(self, request: Request) -> Response:
        return PlainTextResponse("OK")

    async def _handle_authorize(self, request: Request) -> Response:
        provider = request.query_params.get("provider")
        if not provider:
            return JSONResponse(
                {"error": "invalid_request", "message": "Missing provider parameter"},
                status_code=400,
            )

        try:
            authorization_url = await self._orchestrator.authorize(provider)
        except FlowError as e:
            return self._error_response(e)

        return RedirectResponse(authorization_url, status_code=303, headers=NO_STORE)

    async def _handle_callback(self, request: Request) -> Response:
        auth_response = AuthorizationResponse.from_query(request.query_params)

        try:
            identity = await self._orchestrator.handle_callback(
                auth_response, session=CookieSessionAdapter(request)
            )
        except FlowError as e:
            return self._error_response(e)

        return JSONResponse(identity.summary(), headers=NO_STORE)

    def _error_response(self, error: FlowError) -> JSONResponse:
        return JSONResponse(
            {"error": error.category.value, "message": str(error)},
            status_code=error.status_code,
            headers=NO_STORE,
        )


def create_app(settings: Settings) -> Starlette:
    """Wire the relay from settings.

    The HTTP client and the eviction task live for the lifetime of the app.
    """
    http_client = httpx.AsyncClient(
        timeout=settings.http_timeout_seconds, follow_redirects=False
    )
    registry = ProviderRegistry.from_descriptors(
        settings.provider_descriptors(),
        http_client,
        identity_retries=settings.identity_retries,
    )
    flow_store = InMemoryFlowStateStore(
        settings.flow_ttl_seconds, max_entries=settings.max_pending_flows
    )
    orchestrator = FlowOrchestrator(registry, flow_store)

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette) -> AsyncIterator[None]:
        eviction_task = asyncio.create_task(
            flow_store.run_eviction(settings.eviction_interval_seconds)
        )
        try:
            yield
        finally:
            eviction_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await eviction_task
            await http_client.aclose()
            logger.info("Relay shut down")

    server = RelayServer(
        orchestrator,
        session_secret=settings.session_secret.get_secret_value(),
        https_only=settings.session_https_only,
        lifespan=lifespan,
    )
    return server.app

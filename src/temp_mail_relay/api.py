# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""FastAPI application factory for the temp mail relay.

The relay exposes a fixed set of mail routes that are forwarded to the
upstream provisioning API through :class:`temp_mail_relay.relay.UpstreamRelay`:

- ``GET    /mail/domains``         -> ``GET    /domains``
- ``POST   /mail/accounts``        -> ``POST   /accounts``
- ``POST   /mail/token``           -> ``POST   /token``
- ``GET    /mail/messages``        -> ``GET    /messages``
- ``GET    /mail/messages/{id}``   -> ``GET    /messages/{id}``
- ``DELETE /mail/messages/{id}``   -> ``DELETE /messages/{id}``
- ``GET    /health``               (answered locally)

The whole route set is mounted under every configured prefix (``/api`` and
the root by default) so front ends that do or do not strip ``/api`` both work.
``GET /metrics`` is served once, at the root.

Example:
    Creating and running the application::

        from temp_mail_relay.api import create_app
        from temp_mail_relay.relay import UpstreamRelay

        app = create_app(UpstreamRelay("https://api.mail.tm"))
        uvicorn.run(app, host="0.0.0.0", port=8000)
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator, Callable, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any
from urllib.parse import quote

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from .logger import get_logger
from .prometheus import RelayMetrics
from .relay import BODY_METHODS, UpstreamRelay, UpstreamReply, UpstreamUnavailableError
from .settings import DEFAULT_SERVICE_NAME

logger = get_logger(__name__)

JSON_MEDIA_TYPE = "application/json"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"


class HealthResponse(BaseModel):
    """Payload returned by ``GET /health``."""
    status: str
    service: str


class UpstreamErrorResponse(BaseModel):
    """Payload returned when the upstream API cannot be reached."""
    error: str
    details: str


def reply_to_response(reply: UpstreamReply) -> Response:
    """Translate a normalized upstream reply into a FastAPI response.

    204 is answered without a body. Bodies keep the upstream status and are
    passed through byte for byte, labelled as JSON when they parsed as such.
    """
    if reply.status == 204 or reply.body.kind == "empty":
        return Response(status_code=reply.status)
    if reply.body.kind == "json":
        return Response(content=reply.body.raw, status_code=reply.status, media_type=JSON_MEDIA_TYPE)
    return Response(content=reply.body.raw, status_code=reply.status, media_type=TEXT_MEDIA_TYPE)


async def read_json_body(request: Request) -> Any:
    """Return the decoded JSON request body, or ``None`` when there is none.

    Raises:
        HTTPException: 400 if a body is present but is not valid JSON.
    """
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        raise HTTPException(400, "Invalid JSON body")


def create_app(
    relay: UpstreamRelay | None = None,
    *,
    service_name: str = DEFAULT_SERVICE_NAME,
    mount_prefixes: Sequence[str] = ("/api", ""),
    metrics: RelayMetrics | None = None,
    lifespan: Callable[[FastAPI], AbstractAsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the relay application.

    Parameters
    ----------
    relay:
        Forwarder used for every mail route. A relay towards the default
        upstream is created when omitted.
    service_name:
        Name reported by ``GET /health``.
    mount_prefixes:
        Prefixes the route set is mounted under. ``""`` mounts at the root.
    metrics:
        Optional metrics collector; a private one is created otherwise.
    lifespan:
        Optional lifespan context manager. The default one closes the relay
        session on shutdown.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    relay = relay or UpstreamRelay()
    metrics = metrics or RelayMetrics()

    if lifespan is None:
        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:
            yield
            await app.state.relay.close()

    api = FastAPI(title=service_name, lifespan=lifespan)
    api.state.relay = relay
    api.state.metrics = metrics
    api.state.service_name = service_name

    @api.exception_handler(UpstreamUnavailableError)
    async def upstream_unavailable_handler(request: Request, exc: UpstreamUnavailableError) -> JSONResponse:
        return JSONResponse(status_code=500, content=exc.to_payload())

    async def forward(request: Request, route: str, method: str, upstream_path: str) -> Response:
        body = await read_json_body(request) if method in BODY_METHODS else None
        try:
            reply = await request.app.state.relay.forward(
                method,
                upstream_path,
                body=body,
                authorization=request.headers.get("authorization"),
            )
        except UpstreamUnavailableError:
            request.app.state.metrics.inc_upstream_error(route)
            raise
        request.app.state.metrics.inc_forwarded(route, reply.status)
        return reply_to_response(reply)

    router = APIRouter(tags=["mail"])

    @router.get("/mail/domains", responses={500: {"model": UpstreamErrorResponse}})
    async def list_domains(request: Request):
        """List the domains new mailboxes can be created on."""
        return await forward(request, "domains", "GET", "/domains")

    @router.post("/mail/accounts", responses={500: {"model": UpstreamErrorResponse}})
    async def create_account(request: Request):
        """Create a mailbox from an ``{address, password}`` body."""
        return await forward(request, "accounts", "POST", "/accounts")

    @router.post("/mail/token", responses={500: {"model": UpstreamErrorResponse}})
    async def request_token(request: Request):
        """Exchange ``{address, password}`` for a bearer token."""
        return await forward(request, "token", "POST", "/token")

    @router.get("/mail/messages", responses={500: {"model": UpstreamErrorResponse}})
    async def list_messages(request: Request):
        return await forward(request, "messages", "GET", "/messages")

    @router.get("/mail/messages/{message_id}", responses={500: {"model": UpstreamErrorResponse}})
    async def get_message(request: Request, message_id: str):
        return await forward(request, "message", "GET", f"/messages/{quote(message_id, safe='')}")

    @router.delete("/mail/messages/{message_id}", responses={500: {"model": UpstreamErrorResponse}})
    async def delete_message(request: Request, message_id: str):
        return await forward(request, "message", "DELETE", f"/messages/{quote(message_id, safe='')}")

    @router.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        """Return a simple health status payload."""
        return HealthResponse(status="ok", service=request.app.state.service_name)

    @api.get("/metrics")
    async def export_metrics(request: Request):
        """Expose Prometheus metrics collected by the relay."""
        return Response(
            content=request.app.state.metrics.generate_latest(),
            media_type="text/plain; version=0.0.4",
        )

    for prefix in mount_prefixes:
        api.include_router(router, prefix=prefix)
    return api

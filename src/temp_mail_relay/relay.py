# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Upstream forwarding for the temp mail relay.

The relay owns a single :class:`aiohttp.ClientSession` and forwards a request
(method, path, optional JSON body, optional ``Authorization`` header) to the
configured mail provisioning API. Responses are reduced to an
:class:`UpstreamReply` whose body is tagged as JSON, raw text or empty, so the
HTTP layer never has to deal with parse errors.

Example:
    Forwarding a token request::

        relay = UpstreamRelay("https://api.mail.tm")
        reply = await relay.forward(
            "POST", "/token", body={"address": "a@b.dev", "password": "x"}
        )
        reply.status, reply.body.kind   # (200, "json")
        await relay.close()
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Literal

import aiohttp

from .logger import get_logger

logger = get_logger(__name__)

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})
DEFAULT_UPSTREAM_URL = "https://api.mail.tm"
UPSTREAM_ERROR_MESSAGE = "Failed to fetch from mail service"

BodyKind = Literal["json", "text", "empty"]


class UpstreamUnavailableError(RuntimeError):
    """Raised when the upstream API cannot be reached at all."""

    def __init__(self, path: str, detail: str):
        super().__init__(f"{UPSTREAM_ERROR_MESSAGE}: {detail}")
        self.path = path
        self.detail = detail

    def to_payload(self) -> dict[str, str]:
        return {"error": UPSTREAM_ERROR_MESSAGE, "details": self.detail}


@dataclass(frozen=True)
class NormalizedBody:
    """Response body tagged by how it could be interpreted.

    Attributes:
        kind: ``"json"`` when ``raw`` decoded to a JSON document, ``"text"``
            for any other non-empty payload and ``"empty"`` for no payload.
        raw: The bytes exactly as received.
        data: The decoded JSON value (only meaningful for ``kind == "json"``).
    """

    kind: BodyKind
    raw: bytes = b""
    data: Any = None

    @property
    def text(self) -> str:
        return self.raw.decode("utf-8", errors="replace")


EMPTY_BODY = NormalizedBody("empty")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not valid JSON")


def normalize_body(raw: bytes | str | None) -> NormalizedBody:
    """Interpret a response payload as JSON when possible, else keep it raw.

    Never raises: malformed JSON (including the ``NaN``/``Infinity`` literals
    Python would otherwise accept), undecodable bytes and empty payloads all
    come back as ``text``/``empty`` results carrying the original bytes.
    """
    if raw is None:
        return EMPTY_BODY
    if isinstance(raw, str):
        raw = raw.encode("utf-8")
    if not raw:
        return EMPTY_BODY
    try:
        data = json.loads(raw, parse_constant=_reject_constant)
    except (UnicodeDecodeError, ValueError):
        return NormalizedBody("text", raw)
    return NormalizedBody("json", raw, data)


@dataclass(frozen=True)
class UpstreamReply:
    """Status code and normalized body of one upstream response."""

    status: int
    body: NormalizedBody = EMPTY_BODY

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class UpstreamRelay:
    """Stateless forwarder towards one upstream base URL.

    Args:
        base_url: Root of the upstream API; paths are appended verbatim.
        timeout: Optional total timeout in seconds. ``None`` leaves upstream
            calls unbounded.
        session: Pre-built client session, mainly for tests. When omitted a
            session is created lazily on first use and owned by the relay.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_UPSTREAM_URL,
        *,
        timeout: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    @staticmethod
    def build_headers(authorization: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if authorization:
            headers["Authorization"] = authorization
        return headers

    async def forward(
        self,
        method: str,
        path: str,
        *,
        body: Any = None,
        authorization: str | None = None,
    ) -> UpstreamReply:
        """Issue ``method path`` upstream and normalize the reply.

        Args:
            method: HTTP verb, case-insensitive.
            path: Upstream path such as ``/messages/abc``.
            body: JSON-serialisable payload. Only sent for POST/PUT/PATCH.
            authorization: Value of the caller's ``Authorization`` header.

        Returns:
            UpstreamReply with the upstream status. A 204 reply is returned
            with an empty body without reading the payload.

        Raises:
            UpstreamUnavailableError: On any connection or transport failure.
        """
        method = method.upper()
        kwargs: dict[str, Any] = {"headers": self.build_headers(authorization)}
        if method in BODY_METHODS and body is not None:
            kwargs["data"] = json.dumps(body)

        session = self._get_session()
        try:
            async with session.request(method, self._url(path), **kwargs) as response:
                if response.status == 204:
                    return UpstreamReply(204)
                raw = await response.read()
                return UpstreamReply(response.status, normalize_body(raw))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            detail = str(exc) or exc.__class__.__name__
            logger.error(f"Proxy error for {path}: {detail}")
            raise UpstreamUnavailableError(path, detail) from exc

    async def close(self) -> None:
        """Close the underlying session if the relay created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Async HTTP client for the relay's mail routes.

:class:`RelayClient` is the transport used by
:class:`temp_mail_relay.session.MailSession`. It returns every reply as an
:class:`~temp_mail_relay.relay.UpstreamReply` (status plus normalized body),
whatever the status code, and leaves the interpretation to the caller.

Example:
    Listing domains through a running relay::

        async with RelayClient("http://localhost:8000/api/mail") as client:
            reply = await client.get_domains()
            reply.status, reply.body.data
"""

from __future__ import annotations

import asyncio
import secrets
import string
from typing import Any
from urllib.parse import quote

import aiohttp

from .models import Credential
from .relay import UpstreamReply, normalize_body
from .settings import DEFAULT_RELAY_URL

USERNAME_LENGTH = 10
PASSWORD_LENGTH = 12
USERNAME_ALPHABET = string.ascii_lowercase + string.digits
PASSWORD_ALPHABET = string.ascii_letters + string.digits


def generate_random_string(length: int, alphabet: str = USERNAME_ALPHABET) -> str:
    """Return ``length`` characters drawn from ``alphabet``."""
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_username() -> str:
    return generate_random_string(USERNAME_LENGTH)


def generate_password() -> str:
    return generate_random_string(PASSWORD_LENGTH, PASSWORD_ALPHABET)


class RelayConnectionError(RuntimeError):
    """Raised when the relay itself cannot be reached."""


class RelayClient:
    """Client for the relay's ``/mail`` route set.

    Args:
        base_url: URL of the mail routes, e.g. ``http://host:8000/api/mail``.
        timeout: Optional total timeout in seconds; ``None`` means no limit.
        session: Pre-built aiohttp session (tests). Created lazily otherwise.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_RELAY_URL,
        *,
        timeout: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> RelayClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
        credential: Credential | None = None,
    ) -> UpstreamReply:
        headers = {"Content-Type": "application/json"}
        if credential is not None:
            headers["Authorization"] = credential.authorization
        kwargs: dict[str, Any] = {"headers": headers}
        if json_data is not None:
            kwargs["json"] = json_data
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with self._get_session().request(method, url, **kwargs) as resp:
                if resp.status == 204:
                    return UpstreamReply(204)
                return UpstreamReply(resp.status, normalize_body(await resp.read()))
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as exc:
            raise RelayConnectionError(f"{method} {url} failed: {str(exc) or exc.__class__.__name__}") from exc

    async def get_domains(self) -> UpstreamReply:
        return await self._request("GET", "/domains")

    async def create_account(self, address: str, password: str) -> UpstreamReply:
        return await self._request("POST", "/accounts", json_data={"address": address, "password": password})

    async def request_token(self, address: str, password: str) -> UpstreamReply:
        return await self._request("POST", "/token", json_data={"address": address, "password": password})

    async def list_messages(self, credential: Credential) -> UpstreamReply:
        return await self._request("GET", "/messages", credential=credential)

    async def get_message(self, credential: Credential, message_id: str) -> UpstreamReply:
        return await self._request("GET", f"/messages/{quote(message_id, safe='')}", credential=credential)

    async def delete_message(self, credential: Credential, message_id: str) -> UpstreamReply:
        return await self._request("DELETE", f"/messages/{quote(message_id, safe='')}", credential=credential)

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

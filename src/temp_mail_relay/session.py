# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Client session controller for one disposable mailbox.

:class:`MailSession` holds the whole client-side state explicitly: the active
credential, the in-memory inbox, the selected message and the last
user-facing error. Front ends (the CLI, a TUI, tests) read those attributes
and call the mutation methods; nothing re-renders implicitly.

Lifecycle::

    absent --acquire--> creating --ok--> ready --acquire--> creating --> ...
                            \\--error--> previous state, error recorded

Example:
    Creating a mailbox and waiting for mail::

        session = MailSession(RelayClient(url), CredentialStore(LocalStorage()))
        await session.start()          # restore or acquire, then poll
        ...
        session.messages               # refreshed every poll_interval seconds
        await session.close()
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from enum import Enum
from typing import Any

from .client import RelayClient, RelayConnectionError, generate_password, generate_username
from .logger import get_logger
from .models import Credential, Domain, MessageDetail, MessageSummary, collection_members
from .relay import UpstreamReply
from .settings import DEFAULT_POLL_INTERVAL
from .storage import CredentialStore

logger = get_logger(__name__)

NO_DOMAINS_MESSAGE = "No email domains available at the moment. Please try again later."


class SessionState(str, Enum):
    ABSENT = "absent"
    CREATING = "creating"
    READY = "ready"


class SessionError(RuntimeError):
    """Base class for user-facing session failures."""


class CredentialError(SessionError):
    """Raised when a new mailbox could not be fully provisioned."""


def _reply_data(reply: UpstreamReply) -> dict[str, Any]:
    """Return the reply's JSON object, or an empty dict for anything else."""
    if reply.body.kind == "json" and isinstance(reply.body.data, dict):
        return reply.body.data
    return {}


def _error_message(reply: UpstreamReply, fallback: str) -> str:
    data = _reply_data(reply)
    return str(data.get("message") or data.get("error") or fallback)


class MailSession:
    """Credential lifecycle, inbox polling and message actions.

    Args:
        client: Transport towards the relay.
        store: Persistence for the active credential. ``None`` keeps the
            credential in memory only.
        poll_interval: Seconds between two inbox fetches.
        discard_stale_responses: When true, replies obtained with a
            credential that has since been replaced are dropped instead of
            being applied to the inbox.
    """

    def __init__(
        self,
        client: RelayClient,
        store: CredentialStore | None = None,
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        discard_stale_responses: bool = False,
    ):
        self.client = client
        self.store = store
        self.poll_interval = poll_interval
        self.discard_stale_responses = discard_stale_responses

        self.credential: Credential | None = None
        self.messages: list[MessageSummary] = []
        self.selected: MessageDetail | None = None
        self.error: str | None = None
        self.creating = False

        self._seen_ids: set[str] = set()
        self._fetches_in_flight = 0
        self._polling_enabled = False
        self._poll_task: asyncio.Task | None = None
        self._stop = asyncio.Event()
        self._wake_event = asyncio.Event()
        self._background: set[asyncio.Task] = set()

    # ------------------------------------------------------------------ state
    @property
    def state(self) -> SessionState:
        if self.creating:
            return SessionState.CREATING
        if self.credential is not None:
            return SessionState.READY
        return SessionState.ABSENT

    @property
    def fetching_messages(self) -> bool:
        return self._fetches_in_flight > 0

    @property
    def polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    def _is_stale(self, credential: Credential) -> bool:
        return self.discard_stale_responses and self.credential is not credential

    def _activate(self, credential: Credential) -> None:
        self.credential = credential
        self.messages = []
        self.selected = None
        self._seen_ids = set()
        if self._polling_enabled:
            self._restart_polling()

    # ------------------------------------------------------------ credentials
    async def start(self, *, poll: bool = True) -> Credential | None:
        """Restore the persisted credential or acquire a new one.

        Args:
            poll: Start background polling once a credential is active.

        Returns:
            The active credential, or ``None`` if acquisition failed (the
            reason is left in :attr:`error`).
        """
        self._polling_enabled = poll
        if self.restore_credential() is None:
            try:
                await self.acquire_credential()
            except CredentialError:
                return None
        return self.credential

    def restore_credential(self) -> Credential | None:
        """Adopt the persisted credential, if any, without revalidating it."""
        if self.store is None:
            return None
        credential = self.store.load()
        if credential is not None:
            logger.info(f"Restored mailbox {credential.address}")
            self._activate(credential)
        return credential

    async def acquire_credential(self) -> Credential:
        """Provision a new mailbox and make it the active credential.

        Runs domain lookup, account creation and token acquisition in order.
        The new credential is persisted and activated only when every step
        succeeded; on failure the previous credential stays in place.

        Raises:
            CredentialError: With the single message to show the user.
        """
        self.creating = True
        self.error = None
        try:
            credential = await self._provision()
            if self.store is not None:
                self.store.save(credential)
        except CredentialError as exc:
            self.error = str(exc)
            logger.error(f"Mailbox creation failed: {exc}")
            raise
        except (RelayConnectionError, OSError) as exc:
            self.error = str(exc) or "An error occurred"
            logger.error(f"Mailbox creation failed: {exc}")
            raise CredentialError(self.error) from exc
        finally:
            self.creating = False

        logger.info(f"Created mailbox {credential.address}")
        self._activate(credential)
        return credential

    async def _provision(self) -> Credential:
        reply = await self.client.get_domains()
        if not reply.ok:
            raise CredentialError(f"Domain fetch failed: {reply.status} {reply.body.text}".rstrip())
        data = reply.body.data if reply.body.kind == "json" else None
        if isinstance(data, dict) and data.get("error"):
            raise CredentialError(str(data["error"]))
        members = collection_members(data)
        if not members:
            raise CredentialError(NO_DOMAINS_MESSAGE)
        try:
            domain = Domain.from_dict(members[0]).domain
        except KeyError:
            domain = None
        if not domain:
            raise CredentialError("Malformed domain record received from server")

        address = f"{generate_username()}@{domain}"
        password = generate_password()

        reply = await self.client.create_account(address, password)
        if not reply.ok:
            raise CredentialError(_error_message(reply, "Failed to create account"))
        account = _reply_data(reply)

        reply = await self.client.request_token(address, password)
        if not reply.ok:
            raise CredentialError(_error_message(reply, "Failed to get token"))
        token = _reply_data(reply).get("token")
        if not token:
            raise CredentialError("Token not received from server")

        return Credential(id=account.get("id"), address=address, token=str(token))

    async def clear_credential(self) -> None:
        """Forget the active credential locally and stop polling."""
        await self.stop_polling(disable=False)
        self.credential = None
        self.messages = []
        self.selected = None
        self._seen_ids = set()
        if self.store is not None:
            self.store.clear()

    # ---------------------------------------------------------------- polling
    def start_polling(self) -> None:
        """Poll the inbox now and then every :attr:`poll_interval` seconds."""
        self._polling_enabled = True
        if self.credential is not None and not self.polling:
            self._restart_polling()

    def _restart_polling(self) -> None:
        if self._poll_task is not None:
            self._stop.set()
            self._wake_event.set()
        self._stop = asyncio.Event()
        self._wake_event = asyncio.Event()
        self._poll_task = asyncio.create_task(
            self._poll_loop(self.credential, self._stop, self._wake_event),
            name="inbox-poll-loop",
        )

    async def stop_polling(self, *, disable: bool = True) -> None:
        """Stop the polling loop. In-flight fetches are left to complete."""
        if disable:
            self._polling_enabled = False
        task, self._poll_task = self._poll_task, None
        self._stop.set()
        self._wake_event.set()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    def refresh(self) -> None:
        """Make the polling loop fetch immediately instead of waiting."""
        self._wake_event.set()

    async def _poll_loop(self, credential: Credential, stop: asyncio.Event, wake: asyncio.Event) -> None:
        logger.debug(f"Polling inbox of {credential.address} every {self.poll_interval}s")
        while not stop.is_set():
            # Each tick is independent: a slow fetch never delays the next one.
            self._spawn(self.fetch_messages(credential))
            try:
                await asyncio.wait_for(wake.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass
            wake.clear()
        logger.debug(f"Stopped polling inbox of {credential.address}")

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    # --------------------------------------------------------------- messages
    async def fetch_messages(self, credential: Credential | None = None) -> list[MessageSummary] | None:
        """Fetch the inbox and replace the in-memory list.

        Failures are logged and leave the list untouched. Messages already
        opened in this session keep ``seen=True`` whatever the server says.

        Returns:
            The new list, or ``None`` if nothing was applied.
        """
        credential = credential or self.credential
        if credential is None:
            return None
        self._fetches_in_flight += 1
        try:
            reply = await self.client.list_messages(credential)
        except RelayConnectionError as exc:
            logger.error(f"Failed to fetch messages: {exc}")
            return None
        finally:
            self._fetches_in_flight -= 1

        if not reply.ok:
            logger.error(f"Failed to fetch messages: HTTP {reply.status} {reply.body.text}")
            return None
        if self._is_stale(credential):
            logger.debug(f"Discarding inbox fetched for replaced mailbox {credential.address}")
            return None

        messages: list[MessageSummary] = []
        for record in collection_members(reply.body.data):
            try:
                summary = MessageSummary.from_dict(record)
            except KeyError:
                logger.warning(f"Skipping message record without id: {record!r}")
                continue
            if summary.id in self._seen_ids:
                summary.seen = True
            messages.append(summary)
        self.messages = messages
        return messages

    async def fetch_message_detail(self, message_id: str) -> MessageDetail | None:
        """Load the full message and mark it as seen locally.

        Returns:
            The detail, also kept in :attr:`selected`, or ``None`` on failure.
        """
        credential = self.credential
        if credential is None:
            return None
        try:
            reply = await self.client.get_message(credential, message_id)
        except RelayConnectionError as exc:
            logger.error(f"Failed to fetch message detail {message_id}: {exc}")
            return None
        data = _reply_data(reply)
        if not reply.ok or not data:
            logger.error(f"Failed to fetch message detail {message_id}: HTTP {reply.status}")
            return None
        if self._is_stale(credential):
            return None

        detail = MessageDetail.from_dict({**data, "id": data.get("id") or message_id})
        detail.seen = True
        self._seen_ids.add(message_id)
        for summary in self.messages:
            if summary.id == message_id:
                summary.seen = True
        self.selected = detail
        return detail

    async def delete_message(self, message_id: str) -> bool:
        """Delete a message upstream, then drop it from the local state.

        Returns:
            ``True`` when the server accepted the deletion.
        """
        credential = self.credential
        if credential is None:
            return False
        try:
            reply = await self.client.delete_message(credential, message_id)
        except RelayConnectionError as exc:
            logger.error(f"Failed to delete message {message_id}: {exc}")
            return False
        if not reply.ok:
            logger.error(f"Failed to delete message {message_id}: HTTP {reply.status} {reply.body.text}")
            return False

        self.messages = [m for m in self.messages if m.id != message_id]
        if self.selected is not None and self.selected.id == message_id:
            self.selected = None
        return True

    def get_message(self, message_id: str) -> MessageSummary | None:
        for summary in self.messages:
            if summary.id == message_id:
                return summary
        return None

    # --------------------------------------------------------------- teardown
    async def close(self) -> None:
        """Stop polling, cancel pending fetches and close the client."""
        await self.stop_polling()
        pending = list(self._background)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        await self.client.close()

"""Shared fixtures: fake aiohttp sessions and a scripted relay client."""

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from temp_mail_relay.relay import UpstreamReply, normalize_body


def json_reply(status, data):
    return UpstreamReply(status, normalize_body(json.dumps(data)))


def _response_cm(status, body):
    response = MagicMock()
    response.status = status
    response.read = AsyncMock(return_value=body)
    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=response)
    cm.__aexit__ = AsyncMock(return_value=None)
    return cm, response


@pytest.fixture
def fake_http():
    """Build a MagicMock aiohttp session answering every request the same way.

    Returns ``(session, response)``; ``session.request`` records the calls.
    Pass ``error=`` to make ``session.request`` raise instead.
    """

    def factory(status=200, body=b"", error=None):
        cm, response = _response_cm(status, body)
        session = MagicMock()
        session.closed = False
        session.close = AsyncMock()
        if error is not None:
            session.request = MagicMock(side_effect=error)
        else:
            session.request = MagicMock(return_value=cm)
        return session, response

    return factory


class DummyClient:
    """Scripted stand-in for RelayClient.

    Each ``*_reply`` attribute is returned by the matching call; set it to an
    exception instance to have the call raise it.
    """

    def __init__(self):
        self.calls = []
        self.closed = False
        self.domains_reply = json_reply(
            200, {"hydra:member": [{"id": "dom-1", "domain": "test.dev", "isActive": True}]}
        )
        self.account_reply = json_reply(201, {"id": "acc-1", "address": "ignored@test.dev"})
        self.token_reply = json_reply(200, {"id": "acc-1", "token": "tok-1"})
        self.messages_reply = json_reply(200, {"hydra:member": []})
        self.message_reply = json_reply(200, {})
        self.delete_reply = UpstreamReply(204)

    def _answer(self, reply):
        if isinstance(reply, BaseException):
            raise reply
        return reply

    async def get_domains(self):
        self.calls.append(("get_domains",))
        return self._answer(self.domains_reply)

    async def create_account(self, address, password):
        self.calls.append(("create_account", address, password))
        return self._answer(self.account_reply)

    async def request_token(self, address, password):
        self.calls.append(("request_token", address, password))
        return self._answer(self.token_reply)

    async def list_messages(self, credential):
        self.calls.append(("list_messages", credential.token))
        return self._answer(self.messages_reply)

    async def get_message(self, credential, message_id):
        self.calls.append(("get_message", credential.token, message_id))
        return self._answer(self.message_reply)

    async def delete_message(self, credential, message_id):
        self.calls.append(("delete_message", credential.token, message_id))
        return self._answer(self.delete_reply)

    async def close(self):
        self.closed = True

    def count(self, name):
        return sum(1 for call in self.calls if call[0] == name)


@pytest.fixture
def dummy_client():
    return DummyClient()


@pytest.fixture
def reply():
    """Expose the ``json_reply`` helper to tests."""
    return json_reply

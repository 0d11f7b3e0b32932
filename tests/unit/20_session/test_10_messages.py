"""Tests for inbox fetch, message detail, seen flag and deletion."""

import logging

import pytest

from temp_mail_relay.client import RelayConnectionError
from temp_mail_relay.models import Credential
from temp_mail_relay.relay import UpstreamReply, normalize_body
from temp_mail_relay.session import MailSession

CREDENTIAL = Credential(id="acc-1", address="abcdefghij@test.dev", token="tok-1")


def inbox(*ids, seen=False):
    return {
        "hydra:member": [
            {
                "id": message_id,
                "from": {"address": f"{message_id}@sender.dev", "name": message_id.upper()},
                "subject": f"Subject {message_id}",
                "intro": "preview",
                "createdAt": "2024-01-01T00:00:00+00:00",
                "seen": seen,
            }
            for message_id in ids
        ],
        "hydra:totalItems": len(ids),
    }


@pytest.fixture
def session(dummy_client):
    session = MailSession(dummy_client)
    session.credential = CREDENTIAL
    return session


class TestFetchMessages:

    @pytest.mark.asyncio
    async def test_replaces_list(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1", "m2"))

        messages = await session.fetch_messages()

        assert [m.id for m in messages] == ["m1", "m2"]
        assert session.messages == messages
        assert messages[0].sender.address == "m1@sender.dev"
        assert dummy_client.calls == [("list_messages", "tok-1")]

    @pytest.mark.asyncio
    async def test_bare_list_payload(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1")["hydra:member"])
        assert [m.id for m in await session.fetch_messages()] == ["m1"]

    @pytest.mark.asyncio
    async def test_no_credential_is_noop(self, dummy_client):
        session = MailSession(dummy_client)
        assert await session.fetch_messages() is None
        assert dummy_client.calls == []

    @pytest.mark.asyncio
    async def test_http_failure_is_logged_and_list_kept(self, session, dummy_client, reply, caplog):
        dummy_client.messages_reply = reply(200, inbox("m1"))
        await session.fetch_messages()
        dummy_client.messages_reply = reply(401, {"code": 401, "message": "Expired JWT Token"})

        with caplog.at_level(logging.ERROR):
            assert await session.fetch_messages() is None

        assert [m.id for m in session.messages] == ["m1"]
        assert session.error is None
        assert "Failed to fetch messages: HTTP 401" in caplog.text

    @pytest.mark.asyncio
    async def test_transport_failure_is_logged(self, session, dummy_client, caplog):
        dummy_client.messages_reply = RelayConnectionError("GET /messages failed: refused")

        with caplog.at_level(logging.ERROR):
            assert await session.fetch_messages() is None

        assert session.error is None
        assert "refused" in caplog.text
        assert session.fetching_messages is False

    @pytest.mark.asyncio
    async def test_record_without_id_is_skipped(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, [{"subject": "no id"}, {"id": "m1"}])
        assert [m.id for m in await session.fetch_messages()] == ["m1"]


class TestSeenFlag:

    @pytest.mark.asyncio
    async def test_detail_marks_summary_seen(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1", "m2"))
        dummy_client.message_reply = reply(200, {
            "id": "m1", "subject": "Subject m1", "text": "body", "html": ["<p>body</p>"], "seen": False,
        })
        await session.fetch_messages()

        detail = await session.fetch_message_detail("m1")

        assert detail.text == "body"
        assert detail.html == ["<p>body</p>"]
        assert detail.seen is True
        assert session.selected is detail
        assert session.get_message("m1").seen is True
        assert session.get_message("m2").seen is False
        assert ("get_message", "tok-1", "m1") in dummy_client.calls

    @pytest.mark.asyncio
    async def test_polling_never_reverts_seen(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1"))
        dummy_client.message_reply = reply(200, {"id": "m1", "text": "body"})
        await session.fetch_messages()
        await session.fetch_message_detail("m1")

        # Upstream never learns about the local read flag.
        await session.fetch_messages()
        await session.fetch_messages()

        assert session.get_message("m1").seen is True

    @pytest.mark.asyncio
    async def test_fetch_alone_does_not_set_seen(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1"))
        await session.fetch_messages()
        await session.fetch_messages()
        assert session.get_message("m1").seen is False

    @pytest.mark.asyncio
    async def test_failed_detail_leaves_flag(self, session, dummy_client, reply, caplog):
        dummy_client.messages_reply = reply(200, inbox("m1"))
        dummy_client.message_reply = reply(404, {"message": "not found"})
        await session.fetch_messages()

        with caplog.at_level(logging.ERROR):
            assert await session.fetch_message_detail("m1") is None

        assert session.get_message("m1").seen is False
        assert session.selected is None
        assert session.error is None
        assert "Failed to fetch message detail m1" in caplog.text

    @pytest.mark.asyncio
    async def test_detail_transport_failure(self, session, dummy_client):
        dummy_client.message_reply = RelayConnectionError("refused")
        assert await session.fetch_message_detail("m1") is None

    @pytest.mark.asyncio
    async def test_detail_without_id_uses_requested_id(self, session, dummy_client, reply):
        dummy_client.message_reply = reply(200, {"subject": "x"})
        detail = await session.fetch_message_detail("m9")
        assert detail.id == "m9"

    @pytest.mark.asyncio
    async def test_new_credential_resets_seen(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("m1"))
        dummy_client.message_reply = reply(200, {"id": "m1"})
        await session.fetch_messages()
        await session.fetch_message_detail("m1")

        await session.acquire_credential()
        await session.fetch_messages()

        assert session.get_message("m1").seen is False


class TestDeleteMessage:

    @pytest.mark.asyncio
    async def test_delete_selected_clears_detail(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("x", "y"))
        dummy_client.message_reply = reply(200, {"id": "x"})
        await session.fetch_messages()
        await session.fetch_message_detail("x")

        assert await session.delete_message("x") is True

        assert [m.id for m in session.messages] == ["y"]
        assert session.selected is None
        assert ("delete_message", "tok-1", "x") in dummy_client.calls

    @pytest.mark.asyncio
    async def test_delete_other_keeps_detail(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("x", "y"))
        dummy_client.message_reply = reply(200, {"id": "y"})
        await session.fetch_messages()
        selected = await session.fetch_message_detail("y")

        assert await session.delete_message("x") is True

        assert [m.id for m in session.messages] == ["y"]
        assert session.selected is selected

    @pytest.mark.asyncio
    async def test_failed_delete_keeps_message(self, session, dummy_client, reply, caplog):
        dummy_client.messages_reply = reply(200, inbox("x"))
        dummy_client.delete_reply = UpstreamReply(404, normalize_body(b'{"message":"not found"}'))
        await session.fetch_messages()

        with caplog.at_level(logging.ERROR):
            assert await session.delete_message("x") is False

        assert [m.id for m in session.messages] == ["x"]
        assert session.error is None
        assert "Failed to delete message x" in caplog.text

    @pytest.mark.asyncio
    async def test_delete_transport_failure(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("x"))
        dummy_client.delete_reply = RelayConnectionError("refused")
        await session.fetch_messages()

        assert await session.delete_message("x") is False
        assert [m.id for m in session.messages] == ["x"]

    @pytest.mark.asyncio
    async def test_delete_without_credential(self, dummy_client):
        assert await MailSession(dummy_client).delete_message("x") is False
        assert dummy_client.calls == []


class TestStaleResponses:

    @pytest.mark.asyncio
    async def test_stale_inbox_applied_by_default(self, session, dummy_client, reply):
        dummy_client.messages_reply = reply(200, inbox("old"))
        stale = session.credential
        session.credential = Credential(id="new", address="new@test.dev", token="tok-2")

        await session.fetch_messages(stale)

        assert [m.id for m in session.messages] == ["old"]

    @pytest.mark.asyncio
    async def test_stale_inbox_discarded_when_guarded(self, dummy_client, reply):
        session = MailSession(dummy_client, discard_stale_responses=True)
        stale = CREDENTIAL
        session.credential = Credential(id="new", address="new@test.dev", token="tok-2")
        dummy_client.messages_reply = reply(200, inbox("old"))

        assert await session.fetch_messages(stale) is None
        assert session.messages == []

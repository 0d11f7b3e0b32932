# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Client-side records for credentials, domains and mailbox messages."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

HYDRA_MEMBER = "hydra:member"


def collection_members(data: Any) -> list[dict[str, Any]]:
    """Return the items of an upstream collection.

    The provisioning API answers either with a JSON-LD object holding the
    items under ``hydra:member`` or with a bare list, depending on the
    negotiated format. Anything else yields an empty list.
    """
    if isinstance(data, dict):
        data = data.get(HYDRA_MEMBER)
    if not isinstance(data, list):
        return []
    return [item for item in data if isinstance(item, dict)]


@dataclass(frozen=True)
class Credential:
    """Mailbox id, address and bearer token of one disposable mailbox."""

    id: str | None
    address: str
    token: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        return cls(id=data.get("id"), address=data["address"], token=data["token"])

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def authorization(self) -> str:
        return f"Bearer {self.token}"

    def __repr__(self) -> str:
        return f"Credential(id='{self.id}', address='{self.address}')"


@dataclass(frozen=True)
class Domain:
    id: str | None
    domain: str
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Domain:
        return cls(
            id=data.get("id"),
            domain=data["domain"],
            is_active=bool(data.get("isActive", True)),
        )


@dataclass(frozen=True)
class Sender:
    address: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Any) -> Sender:
        if not isinstance(data, dict):
            return cls()
        return cls(address=data.get("address") or "", name=data.get("name") or "")

    def __str__(self) -> str:
        if self.name:
            return f"{self.name} <{self.address}>"
        return self.address


@dataclass
class MessageSummary:
    """Inbox entry as listed by ``GET /messages``.

    Attributes:
        id: Message identifier, unique within the mailbox.
        sender: ``from`` address and display name.
        subject: Subject line.
        intro: Short preview of the body.
        created_at: ISO timestamp from the provider.
        seen: Read flag. Set locally once the detail has been fetched.
    """

    id: str
    sender: Sender = field(default_factory=Sender)
    subject: str = ""
    intro: str = ""
    created_at: str | None = None
    seen: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageSummary:
        """Create a summary from an upstream message record.

        Missing optional fields fall back to empty values; only ``id`` is
        required.
        """
        return cls(
            id=str(data["id"]),
            sender=Sender.from_dict(data.get("from")),
            subject=data.get("subject") or "",
            intro=data.get("intro") or "",
            created_at=data.get("createdAt"),
            seen=bool(data.get("seen", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "from": {"address": self.sender.address, "name": self.sender.name},
            "subject": self.subject,
            "intro": self.intro,
            "createdAt": self.created_at,
            "seen": self.seen,
        }

    def __repr__(self) -> str:
        return f"MessageSummary(id='{self.id}', subject='{self.subject[:30]}', seen={self.seen})"


@dataclass
class MessageDetail(MessageSummary):
    """Full message: the summary fields plus text and HTML bodies."""

    text: str = ""
    html: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MessageDetail:
        summary = MessageSummary.from_dict(data)
        html = data.get("html") or []
        if isinstance(html, str):
            html = [html]
        return cls(
            id=summary.id,
            sender=summary.sender,
            subject=summary.subject,
            intro=summary.intro,
            created_at=summary.created_at,
            seen=summary.seen,
            text=data.get("text") or "",
            html=[part for part in html if isinstance(part, str)],
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["text"] = self.text
        data["html"] = list(self.html)
        return data

    def __repr__(self) -> str:
        return f"MessageDetail(id='{self.id}', subject='{self.subject[:30]}')"

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Client-local key/value storage backed by a JSON file.

The file holds one JSON object mapping storage keys to records, the same
shape a browser's local storage would give. Writes replace the record under a
key wholesale.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

from .logger import get_logger
from .models import Credential
from .settings import DEFAULT_STORAGE_PATH

logger = get_logger(__name__)

CREDENTIAL_KEY = "temp_mail_account"


class LocalStorage:
    """Small JSON-file key/value store.

    Args:
        path: Storage file; ``~`` is expanded. Parent directories are created
            on first write.
    """

    def __init__(self, path: str | os.PathLike[str] = DEFAULT_STORAGE_PATH):
        self.path = Path(os.path.expanduser(str(path)))

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable storage file {self.path}: {exc}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        os.replace(tmp, self.path)

    def get_item(self, key: str) -> Any:
        return self._read().get(key)

    def set_item(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if data.pop(key, None) is not None:
            self._write(data)


class CredentialStore:
    """Persist the active :class:`Credential` under a fixed storage key."""

    def __init__(self, storage: LocalStorage, key: str = CREDENTIAL_KEY):
        self.storage = storage
        self.key = key

    def load(self) -> Credential | None:
        """Return the persisted credential, or ``None`` if absent or malformed."""
        record = self.storage.get_item(self.key)
        if record is None:
            return None
        try:
            return Credential.from_dict(record)
        except (AttributeError, KeyError, TypeError) as exc:
            logger.warning(f"Ignoring malformed stored credential: {exc!r}")
            return None

    def save(self, credential: Credential) -> None:
        self.storage.set_item(self.key, credential.to_dict())

    def clear(self) -> None:
        self.storage.remove_item(self.key)

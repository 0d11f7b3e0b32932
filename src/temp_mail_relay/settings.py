# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Settings loader shared by the relay server and the CLI."""

from __future__ import annotations

import configparser
import os
from pathlib import Path

DEFAULT_SERVICE_NAME = "Temp Mail Relay"
DEFAULT_RELAY_URL = "http://localhost:8000/api/mail"
DEFAULT_STORAGE_PATH = "~/.temp-mail/storage.json"
DEFAULT_POLL_INTERVAL = 10.0


def parse_prefixes(value: str | None) -> list[str]:
    """Split a comma separated prefix list into normalized mount prefixes.

    ``"/api,"`` yields ``["/api", ""]``: an empty item mounts at the root.
    Duplicates are dropped, order is kept.
    """
    if value is None:
        return ["/api", ""]
    prefixes: list[str] = []
    for item in value.split(","):
        item = item.strip().rstrip("/")
        if item and not item.startswith("/"):
            item = f"/{item}"
        if item not in prefixes:
            prefixes.append(item)
    return prefixes


def load_settings() -> dict[str, object]:
    """
    Load configuration from an INI file (default: config.ini) with environment variables as fallbacks.

    Environment variables (all prefixed with TMR_):
      TMR_CONFIG - Path to config.ini file (default: config.ini)
      TMR_LOG_LEVEL - Logging level (default: INFO)
      TMR_HOST - Server host (default: 0.0.0.0)
      TMR_PORT - Server port (default: 8000)
      TMR_SERVICE_NAME - Name reported by /health
      TMR_MOUNT_PREFIXES - Comma separated route prefixes (default: "/api,")
      TMR_UPSTREAM_URL - Mail provisioning API (default: https://api.mail.tm)
      TMR_UPSTREAM_TIMEOUT - Upstream timeout in seconds (default: none)
      TMR_RELAY_URL - Relay mail routes as seen by the client
      TMR_POLL_INTERVAL - Client polling interval in seconds (default: 10)
      TMR_STORAGE_PATH - Client-local storage file

    Config file sections/keys:
      [server] host, port, service_name, mount_prefixes
      [upstream] url, timeout
      [client] relay_url, poll_interval, storage_path
      [logging] level
    """
    config_path = Path(os.getenv("TMR_CONFIG", "config.ini"))
    parser = configparser.ConfigParser()
    parser.read(config_path)

    def get(section: str, option: str, fallback: str | None = None) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option)
        return fallback

    def get_int(section: str, option: str, fallback: str | None = None, default: int | None = None) -> int | None:
        value = get(section, option, fallback)
        if value is None or not str(value).strip():
            return default
        return int(value)

    def get_float(section: str, option: str, fallback: str | None = None, default: float | None = None) -> float | None:
        value = get(section, option, fallback)
        if value is None or not str(value).strip():
            return default
        return float(value)

    settings = {
        "http_host": get("server", "host", os.getenv("TMR_HOST", "0.0.0.0")),
        "http_port": get_int("server", "port", os.getenv("TMR_PORT"), default=8000),
        "service_name": get("server", "service_name", os.getenv("TMR_SERVICE_NAME", DEFAULT_SERVICE_NAME)),
        "mount_prefixes": parse_prefixes(get("server", "mount_prefixes", os.getenv("TMR_MOUNT_PREFIXES"))),
        "upstream_url": get("upstream", "url", os.getenv("TMR_UPSTREAM_URL", "https://api.mail.tm")),
        "upstream_timeout": get_float("upstream", "timeout", os.getenv("TMR_UPSTREAM_TIMEOUT")),
        "relay_url": get("client", "relay_url", os.getenv("TMR_RELAY_URL", DEFAULT_RELAY_URL)),
        "poll_interval": get_float(
            "client",
            "poll_interval",
            os.getenv("TMR_POLL_INTERVAL"),
            default=DEFAULT_POLL_INTERVAL,
        ),
        "storage_path": get("client", "storage_path", os.getenv("TMR_STORAGE_PATH", DEFAULT_STORAGE_PATH)),
        "log_level": get("logging", "level", os.getenv("TMR_LOG_LEVEL", "INFO")),
    }

    storage_path = settings["storage_path"]
    if isinstance(storage_path, str):
        settings["storage_path"] = os.path.expanduser(storage_path)
    return settings

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""ASGI application entry point for uvicorn.

This module provides a pre-configured FastAPI application built from
:func:`temp_mail_relay.settings.load_settings`.

Usage:
    uvicorn temp_mail_relay.server:app --host 0.0.0.0 --port 8000

Environment variables:
    TMR_UPSTREAM_URL: Mail provisioning API (default: https://api.mail.tm).
    TMR_UPSTREAM_TIMEOUT: Optional upstream timeout in seconds.
    TMR_SERVICE_NAME: Name reported by /health.
    TMR_MOUNT_PREFIXES: Comma separated route prefixes (default: "/api,").
    TMR_LOG_LEVEL: Logging level (default: INFO).
"""

from __future__ import annotations

from fastapi import FastAPI

from .api import create_app
from .logger import configure_logging, get_logger
from .relay import UpstreamRelay
from .settings import load_settings

_logger = get_logger(__name__)


def build_app(settings: dict[str, object] | None = None) -> FastAPI:
    """Build the relay application from settings (loaded when omitted)."""
    settings = settings if settings is not None else load_settings()
    relay = UpstreamRelay(
        str(settings["upstream_url"]),
        timeout=settings.get("upstream_timeout"),
    )
    _logger.info(f"Relaying to {relay.base_url} under prefixes {settings['mount_prefixes']!r}")
    return create_app(
        relay,
        service_name=str(settings["service_name"]),
        mount_prefixes=settings["mount_prefixes"],
    )


_settings = load_settings()
configure_logging(str(_settings["log_level"]))
app = build_app(_settings)

# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Prometheus metrics for monitoring the relay.

All metrics use the ``tmr_`` prefix (temp-mail-relay).

Metrics exposed:
    - ``tmr_forwarded_total``: Counter of upstream replies per route and status.
    - ``tmr_upstream_errors_total``: Counter of transport failures per route.

Example:
    Accessing metrics via the REST API::

        GET /metrics
"""

from prometheus_client import CollectorRegistry, Counter, generate_latest


class RelayMetrics:
    """Prometheus metrics collector for the relay.

    Attributes:
        registry: The Prometheus CollectorRegistry holding all metrics.
        forwarded: Counter of upstream replies relayed back to callers.
        upstream_errors: Counter of calls that never got an upstream reply.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        """Initialize metrics with an optional custom registry.

        Args:
            registry: Optional Prometheus CollectorRegistry. If not provided,
                a new registry is created so several apps can coexist in one
                process (tests build many).
        """
        self.registry = registry or CollectorRegistry()
        self.forwarded = Counter(
            "tmr_forwarded_total",
            "Total upstream replies relayed",
            ["route", "status"],
            registry=self.registry,
        )
        self.upstream_errors = Counter(
            "tmr_upstream_errors_total",
            "Total upstream transport failures",
            ["route"],
            registry=self.registry,
        )

    def inc_forwarded(self, route: str, status: int) -> None:
        """Count one relayed reply for ``route`` with the upstream ``status``."""
        self.forwarded.labels(route=route, status=str(status)).inc()

    def inc_upstream_error(self, route: str) -> None:
        """Count one transport failure for ``route``."""
        self.upstream_errors.labels(route=route).inc()

    def generate_latest(self) -> bytes:
        """Export all metrics in Prometheus text exposition format."""
        return generate_latest(self.registry)

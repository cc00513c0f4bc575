# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain counters behind an injected sink.

Services depend on ``MetricsSink`` only. ``PrometheusMetricsSink`` owns a
private ``CollectorRegistry`` so several sinks (one per test, one per app)
never collide on metric names.
"""

from typing import Protocol, runtime_checkable

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


@runtime_checkable
class MetricsSink(Protocol):
    """Increment operations the issuance core emits."""

    def quote_created(self) -> None: ...

    def policy_issued(self) -> None: ...

    def notification_processed(self) -> None: ...

    def notification_failed(self, reason: str) -> None: ...

    def outbox_published(self, count: int = 1) -> None: ...


class NullMetricsSink:
    """Sink that drops every increment."""

    def quote_created(self) -> None:
        pass

    def policy_issued(self) -> None:
        pass

    def notification_processed(self) -> None:
        pass

    def notification_failed(self, reason: str) -> None:
        pass

    def outbox_published(self, count: int = 1) -> None:
        pass


class PrometheusMetricsSink:
    """Prometheus-backed counters plus HTTP request instrumentation."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self._quotes_created = Counter(
            "quotes_created_total",
            "Quotes priced and persisted in PENDING",
            registry=self.registry,
        )
        self._policies_issued = Counter(
            "policies_issued_total",
            "Policies issued from accepted quotes",
            registry=self.registry,
        )
        self._notifications_processed = Counter(
            "notifications_processed_total",
            "Issuance notifications delivered by the consumer",
            registry=self.registry,
        )
        self._notifications_failed = Counter(
            "notifications_failed_total",
            "Queue messages the consumer could not process",
            labelnames=["reason"],
            registry=self.registry,
        )
        self._outbox_published = Counter(
            "outbox_events_published_total",
            "Outbox rows acknowledged by the queue",
            registry=self.registry,
        )
        self.http_requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            labelnames=["method", "route", "status"],
            registry=self.registry,
        )
        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request latency in seconds",
            labelnames=["method", "route"],
            registry=self.registry,
        )

    def quote_created(self) -> None:
        self._quotes_created.inc()

    def policy_issued(self) -> None:
        self._policies_issued.inc()

    def notification_processed(self) -> None:
        self._notifications_processed.inc()

    def notification_failed(self, reason: str) -> None:
        self._notifications_failed.labels(reason=reason).inc()

    def outbox_published(self, count: int = 1) -> None:
        self._outbox_published.inc(count)

    def observe_request(
        self, method: str, route: str, status: int, duration_seconds: float
    ) -> None:
        """Record one finished HTTP request."""
        self.http_requests.labels(method=method, route=route, status=str(status)).inc()
        self.http_request_duration.labels(method=method, route=route).observe(
            duration_seconds
        )

    def render(self) -> tuple[bytes, str]:
        """Exposition payload and its content type."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST

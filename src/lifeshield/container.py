# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Wiring of stores, queue, metrics and services from ``Settings``.

The HTTP app and the standalone worker process build the same container,
so both run identical service instances against the same backends.
"""

import logging
import time
from collections.abc import Callable
from datetime import datetime, timedelta

import redis.asyncio as redis
from attrs import define, field
from beartype import beartype

from .core.config import Settings
from .core.database import Database, PoolConfig
from .core.metrics import PrometheusMetricsSink
from .messaging import MessageQueue, QueueConfig, RedisMessageQueue, create_redis_client
from .services.issuance_service import IssuanceService, utc_now
from .services.notification_consumer import NotificationConsumer
from .services.notifications import LoggingNotificationSender, NotificationSender
from .services.outbox_publisher import OutboxPublisher
from .store import (
    ConsumedMessageLedger,
    CustomerDirectory,
    InMemoryConsumedMessageLedger,
    InMemoryCustomerDirectory,
    InMemoryIssuanceStore,
    IssuanceStore,
    PostgresConsumedMessageLedger,
    PostgresCustomerDirectory,
    PostgresIssuanceStore,
)
from .workers.scheduling import PeriodicTask

logger = logging.getLogger(__name__)


@define
class ServiceContainer:
    """Everything a process needs, built once at startup."""

    settings: Settings
    store: IssuanceStore
    customers: CustomerDirectory
    ledger: ConsumedMessageLedger
    queue: MessageQueue
    sender: NotificationSender
    metrics: PrometheusMetricsSink
    issuance: IssuanceService
    publisher: OutboxPublisher
    consumer: NotificationConsumer
    database: Database | None = None
    redis_client: redis.Redis | None = None
    started_at: float = field(factory=time.monotonic)

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    async def startup(self) -> None:
        """Open backend connections."""
        if self.database is not None:
            await self.database.connect()
        logger.info(
            f"{self.settings.app_name} ready "
            f"(store={'memory' if self.database is None else 'postgres'}, "
            f"queue={self.settings.queue_name})"
        )

    async def shutdown(self) -> None:
        """Close backend connections."""
        if self.database is not None:
            await self.database.disconnect()
        if self.redis_client is not None:
            await self.redis_client.aclose()

    def build_workers(self) -> list[PeriodicTask]:
        """Outbox relay, notification consumer and expiry sweep loops."""
        backoff = self.settings.worker_failure_backoff_seconds
        return [
            PeriodicTask(
                "outbox-publisher",
                self.settings.publisher_interval_seconds,
                self.publisher.drain,
                failure_backoff_seconds=backoff,
            ),
            # receive() already waits up to queue_receive_wait_seconds
            PeriodicTask(
                "notification-consumer",
                0.0,
                self.consumer.poll_once,
                failure_backoff_seconds=backoff,
            ),
            PeriodicTask(
                "quote-expiry",
                self.settings.expiry_sweep_interval_seconds,
                self.issuance.expire_stale_quotes,
                failure_backoff_seconds=backoff,
            ),
        ]


@beartype
def build_container(
    settings: Settings,
    *,
    redis_client: redis.Redis | None = None,
    clock: Callable[[], datetime] = utc_now,
    queue_clock: Callable[[], float] = time.time,
) -> ServiceContainer:
    """Build a container; ``redis_client`` overrides the one from ``redis_url``."""
    database: Database | None = None
    store: IssuanceStore
    customers: CustomerDirectory
    ledger: ConsumedMessageLedger
    if settings.use_in_memory_store:
        store = InMemoryIssuanceStore()
        customers = InMemoryCustomerDirectory()
        ledger = InMemoryConsumedMessageLedger()
    else:
        database = Database(PoolConfig.from_settings(settings))
        store = PostgresIssuanceStore(database)
        customers = PostgresCustomerDirectory(database)
        ledger = PostgresConsumedMessageLedger(database)

    client = redis_client or create_redis_client(settings.redis_url)
    queue = RedisMessageQueue(client, QueueConfig.from_settings(settings), clock=queue_clock)
    metrics = PrometheusMetricsSink()
    sender = LoggingNotificationSender()

    issuance = IssuanceService(
        store,
        customers,
        metrics,
        base_rate=settings.pricing_base_rate,
        quote_ttl=timedelta(days=settings.quote_ttl_days),
        clock=clock,
    )
    publisher = OutboxPublisher(
        store, queue, metrics, batch_size=settings.outbox_batch_size, clock=clock
    )
    consumer = NotificationConsumer(
        queue,
        ledger,
        sender,
        metrics,
        batch_size=settings.consumer_batch_size,
        wait_seconds=settings.queue_receive_wait_seconds,
        concurrency=settings.consumer_concurrency,
        clock=clock,
    )
    return ServiceContainer(
        settings=settings,
        store=store,
        customers=customers,
        ledger=ledger,
        queue=queue,
        sender=sender,
        metrics=metrics,
        issuance=issuance,
        publisher=publisher,
        consumer=consumer,
        database=database,
        redis_client=client,
    )

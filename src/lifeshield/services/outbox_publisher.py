# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Relay from the outbox table to the message queue.

A row is flipped to PUBLISHED only after the queue acknowledged the send.
Any failure leaves it PENDING for the next cycle, so a row may be sent more
than once; consumers are idempotent on the business key.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from attrs import field, frozen
from beartype import beartype

from ..core.errors import DomainError, QueueError, StoreError, TransientInfrastructureFailure
from ..core.metrics import MetricsSink, NullMetricsSink
from ..core.result_types import Err, Ok, Result
from ..messaging.base import MessageQueue
from ..models.outbox import OutboxEvent
from ..store.base import IssuanceStore
from .issuance_service import utc_now

logger = logging.getLogger(__name__)


@frozen
class DrainReport:
    """Outcome of one drain cycle."""

    attempted: int = field(default=0)
    published: int = field(default=0)
    failed: int = field(default=0)


class OutboxPublisher:
    """Drains PENDING outbox rows to the queue in bounded batches."""

    def __init__(
        self,
        store: IssuanceStore,
        queue: MessageQueue,
        metrics: MetricsSink | None = None,
        *,
        batch_size: int = 50,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._store = store
        self._queue = queue
        self._metrics = metrics or NullMetricsSink()
        self._batch_size = batch_size
        self._clock = clock

    @beartype
    async def drain(self) -> Result[DrainReport, DomainError]:
        """Publish one batch of PENDING rows, oldest first.

        Only a failure to read the batch is reported as an error; per-row
        failures are counted and retried next cycle.
        """
        try:
            batch = await self._store.fetch_pending_outbox(self._batch_size)
        except StoreError as e:
            logger.warning(f"Could not read outbox: {e}")
            return Err(TransientInfrastructureFailure(f"Outbox read failed: {e}"))

        published = 0
        for event in batch:
            if await self._publish_one(event):
                published += 1

        report = DrainReport(
            attempted=len(batch), published=published, failed=len(batch) - published
        )
        if published:
            self._metrics.outbox_published(published)
        if batch:
            logger.info(
                f"Outbox drain: {report.published}/{report.attempted} published, "
                f"{report.failed} left pending"
            )
        return Ok(report)

    async def _publish_one(self, event: OutboxEvent) -> bool:
        try:
            body = event.to_message_body()
        except ValueError as e:
            # A row that cannot be serialized stays PENDING and visible in logs.
            logger.error(f"Outbox event {event.id} has an invalid payload: {e}")
            return False

        try:
            message_id = await self._queue.send(body)
        except QueueError as e:
            logger.warning(f"Publishing outbox event {event.id} failed: {e}")
            return False

        try:
            flipped = await self._store.mark_outbox_published(event.id, self._clock())
        except StoreError as e:
            logger.warning(
                f"Outbox event {event.id} sent as {message_id} but not marked "
                f"published; it will be sent again: {e}"
            )
            return False

        if not flipped:
            logger.debug(f"Outbox event {event.id} was already published by another relay")
        else:
            logger.info(
                f"Outbox event {event.id} ({event.event_type.value}) published as {message_id}"
            )
        return True

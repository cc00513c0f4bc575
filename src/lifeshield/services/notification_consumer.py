# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Idempotent consumer for policy events.

Per message:

1. Parse; an unparseable body is a poison message and goes to the
   dead-letter list.
2. Dispatch on ``type``; unknown types are acknowledged and dropped.
3. POLICY_ISSUED: if the ``policyId:type`` key is already in the ledger,
   acknowledge and stop.
4. Otherwise send the notification, record the key, then acknowledge.
5. Any failure in 3-4 leaves the message undeleted; the queue redelivers
   it after the visibility timeout and parks it once the receive bound is
   reached.

A message is never deleted before its side effect is durably recorded, so
cancelling an in-flight message on shutdown is always safe.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum
from uuid import uuid4

from beartype import beartype
from pydantic import ValidationError

from ..core.errors import DomainError, PoisonMessage, QueueError, TransientInfrastructureFailure
from ..core.metrics import MetricsSink, NullMetricsSink
from ..core.result_types import Err, Ok, Result
from ..messaging.base import MessageQueue, ReceivedMessage
from ..models.notification import ConsumedMessageRecord, Notification
from ..models.outbox import EventType, MessageEnvelope, PolicyIssuedMessage
from ..store.base import ConsumedMessageLedger
from .issuance_service import utc_now
from .notifications import NotificationSender

logger = logging.getLogger(__name__)


class ProcessingOutcome(str, Enum):
    """What happened to one delivered message."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    DEAD_LETTERED = "dead_lettered"
    RETRY = "retry"


Handler = Callable[[ReceivedMessage], Awaitable[ProcessingOutcome]]


class NotificationConsumer:
    """Polls the queue and processes each message at most once per business key."""

    def __init__(
        self,
        queue: MessageQueue,
        ledger: ConsumedMessageLedger,
        sender: NotificationSender,
        metrics: MetricsSink | None = None,
        *,
        batch_size: int = 10,
        wait_seconds: float = 5.0,
        concurrency: int = 1,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        if batch_size < 1 or concurrency < 1:
            raise ValueError("batch_size and concurrency must be >= 1")
        self._queue = queue
        self._ledger = ledger
        self._sender = sender
        self._metrics = metrics or NullMetricsSink()
        self._batch_size = batch_size
        self._wait_seconds = wait_seconds
        self._semaphore = asyncio.Semaphore(concurrency)
        self._clock = clock
        self._handlers: dict[str, Handler] = {
            EventType.POLICY_ISSUED.value: self._handle_policy_issued,
        }

    @beartype
    async def poll_once(self) -> Result[list[ProcessingOutcome], DomainError]:
        """Receive one bounded batch and process it."""
        try:
            messages = await self._queue.receive(
                max_messages=self._batch_size, wait_seconds=self._wait_seconds
            )
        except QueueError as e:
            logger.warning(f"Receive failed: {e}")
            return Err(TransientInfrastructureFailure(f"Queue receive failed: {e}"))

        if not messages:
            return Ok([])

        outcomes = await asyncio.gather(
            *(self._process_bounded(message) for message in messages)
        )
        return Ok(list(outcomes))

    async def _process_bounded(self, message: ReceivedMessage) -> ProcessingOutcome:
        async with self._semaphore:
            return await self.process_message(message)

    @beartype
    async def process_message(self, message: ReceivedMessage) -> ProcessingOutcome:
        """Process a single delivery; never raises except on cancellation."""
        try:
            envelope = MessageEnvelope.model_validate_json(message.body)
        except ValidationError as e:
            return await self._dead_letter(message, f"unparseable body: {e.error_count()} errors")

        handler = self._handlers.get(envelope.type)
        if handler is None:
            logger.info(
                f"Message {message.message_id} has unknown type {envelope.type!r}; acknowledging"
            )
            await self._acknowledge(message)
            return ProcessingOutcome.IGNORED

        try:
            return await handler(message)
        except Exception as e:
            # Left undeleted; the queue redelivers after the visibility timeout.
            self._metrics.notification_failed("transient")
            logger.warning(
                f"Message {message.message_id} ({envelope.type}) failed on delivery "
                f"{message.receive_count}; leaving for redelivery: {e}"
            )
            return ProcessingOutcome.RETRY

    async def _handle_policy_issued(self, message: ReceivedMessage) -> ProcessingOutcome:
        try:
            event = PolicyIssuedMessage.model_validate_json(message.body)
        except ValidationError as e:
            return await self._dead_letter(
                message, f"invalid POLICY_ISSUED payload: {e.error_count()} errors"
            )

        key = event.dedup_key
        if await self._ledger.is_processed(key):
            logger.info(f"Message {message.message_id} is a duplicate of {key}; acknowledging")
            await self._acknowledge(message)
            return ProcessingOutcome.DUPLICATE

        now = self._clock()
        notification = Notification(
            id=uuid4(),
            policy_id=event.policy_id,
            customer_id=event.customer_id,
            subject=f"Your LifeShield policy {event.policy_id} has been issued",
            sent_at=now,
        )
        await self._sender.send(notification)

        recorded = await self._ledger.record(
            ConsumedMessageRecord(
                key=key,
                message_id=message.message_id,
                event_type=event.type,
                processed_at=now,
            ),
            notification,
        )
        if not recorded:
            logger.info(f"Key {key} was recorded concurrently; acknowledging {message.message_id}")
            await self._acknowledge(message)
            return ProcessingOutcome.DUPLICATE

        self._metrics.notification_processed()
        logger.info(f"Notified customer {event.customer_id} of policy {event.policy_id}")
        await self._acknowledge(message)
        return ProcessingOutcome.PROCESSED

    async def _acknowledge(self, message: ReceivedMessage) -> None:
        try:
            await self._queue.delete(message)
        except QueueError as e:
            # Redelivery will short-circuit on the ledger.
            logger.warning(f"Could not delete message {message.message_id}: {e}")

    async def _dead_letter(self, message: ReceivedMessage, reason: str) -> ProcessingOutcome:
        poison = PoisonMessage(reason, message_id=message.message_id)
        self._metrics.notification_failed("poison")
        logger.error(f"Poison message {message.message_id}: {poison.message}")
        try:
            await self._queue.dead_letter(message, poison.message)
        except QueueError as e:
            logger.warning(
                f"Could not dead-letter {message.message_id}; the receive bound will park it: {e}"
            )
            return ProcessingOutcome.RETRY
        return ProcessingOutcome.DEAD_LETTERED

# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Queue contract: at-least-once delivery with visibility-timeout redelivery."""

from datetime import datetime
from typing import Protocol, runtime_checkable

from attrs import field, frozen


@frozen
class ReceivedMessage:
    """A message claimed by one receiver until its visibility timeout lapses."""

    message_id: str = field()
    body: str = field()
    receive_count: int = field(default=1)


@frozen
class DeadLetter:
    """A message parked on the dead-letter list."""

    message_id: str = field()
    body: str = field()
    reason: str = field()
    receive_count: int = field()
    dead_lettered_at: datetime = field()


@runtime_checkable
class MessageQueue(Protocol):
    """Operations the publisher and the consumer rely on.

    Every method raises ``QueueError`` when the broker is unreachable.
    """

    async def send(self, body: str) -> str:
        """Enqueue a body; returns once the broker has acknowledged it."""
        ...

    async def receive(
        self, max_messages: int = 1, wait_seconds: float = 0.0
    ) -> list[ReceivedMessage]:
        """Claim up to ``max_messages``, waiting at most ``wait_seconds``."""
        ...

    async def delete(self, message: ReceivedMessage) -> bool: ...

    async def dead_letter(self, message: ReceivedMessage, reason: str) -> None: ...

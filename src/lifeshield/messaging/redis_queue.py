# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Redis-backed queue with broker-style redelivery and dead-lettering.

Layout per queue name:

    lifeshield:queue:<name>:visible   ZSET  message_id -> epoch when visible
    lifeshield:queue:<name>:bodies    HASH  message_id -> body
    lifeshield:queue:<name>:receives  HASH  message_id -> receive count
    lifeshield:queue:<name>:dead      LIST  JSON dead-letter entries

A message stays in ``visible`` until deleted, so a receiver that dies
mid-processing simply lets the score lapse and the message is redelivered.
Claims are optimistic ``WATCH``/``MULTI`` transactions: two receivers can
never both claim the same visible message. A body that is not valid UTF-8
is dead-lettered at claim time instead of being handed to a receiver.
"""

import asyncio
import contextlib
import json
import logging
import time
from collections.abc import Callable, Iterator
from datetime import datetime, timezone
from uuid import uuid4

import redis.asyncio as redis
from attrs import field, frozen
from beartype import beartype
from redis.asyncio.client import Pipeline
from redis.exceptions import RedisError, WatchError

from ..core.config import Settings
from ..core.errors import QueueError
from .base import DeadLetter, ReceivedMessage

logger = logging.getLogger(__name__)

DEAD_LETTER_MAX_RECEIVES = "max receive count exceeded"
DEAD_LETTER_UNDECODABLE = "undecodable body"


@frozen
class QueueConfig:
    """Immutable queue configuration."""

    name: str = field()
    visibility_timeout_seconds: float = field(default=30.0)
    max_receive_count: int = field(default=5)
    poll_interval_seconds: float = field(default=0.1)
    key_prefix: str = field(default="lifeshield:queue")

    @classmethod
    def from_settings(cls, settings: Settings) -> "QueueConfig":
        return cls(
            name=settings.queue_name,
            visibility_timeout_seconds=settings.queue_visibility_timeout_seconds,
            max_receive_count=settings.queue_max_receive_count,
        )


@contextlib.contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (RedisError, OSError, asyncio.TimeoutError) as e:
        raise QueueError(f"Queue {operation} failed: {e}") from e


class RedisMessageQueue:
    """``MessageQueue`` implementation on a Redis client.

    The client must be created with ``decode_responses=True``.
    """

    def __init__(
        self,
        client: redis.Redis,
        config: QueueConfig,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._redis = client
        self._config = config
        self._clock = clock
        base = f"{config.key_prefix}:{config.name}"
        self._visible_key = f"{base}:visible"
        self._bodies_key = f"{base}:bodies"
        self._receives_key = f"{base}:receives"
        self._dead_key = f"{base}:dead"

    @property
    def name(self) -> str:
        return self._config.name

    @beartype
    async def send(self, body: str) -> str:
        """Enqueue ``body`` and return its message id."""
        message_id = uuid4().hex
        with _translate_errors("send"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.hset(self._bodies_key, message_id, body)
                pipe.hset(self._receives_key, message_id, 0)
                pipe.zadd(self._visible_key, {message_id: self._clock()})
                await pipe.execute()
        logger.debug(f"Enqueued message {message_id} on {self.name}")
        return message_id

    @beartype
    async def receive(
        self, max_messages: int = 1, wait_seconds: float = 0.0
    ) -> list[ReceivedMessage]:
        """Claim up to ``max_messages`` visible messages.

        Polls until at least one message is claimed or ``wait_seconds``
        elapses; never blocks longer than that.
        """
        if max_messages < 1:
            raise ValueError("max_messages must be >= 1")
        deadline = time.monotonic() + max(wait_seconds, 0.0)
        with _translate_errors("receive"):
            while True:
                claimed = await self._claim_visible(max_messages)
                remaining = deadline - time.monotonic()
                if claimed or remaining <= 0:
                    return claimed
                await asyncio.sleep(min(self._config.poll_interval_seconds, remaining))

    @beartype
    async def delete(self, message: ReceivedMessage) -> bool:
        """Acknowledge a message; False if it was already gone."""
        with _translate_errors("delete"):
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.zrem(self._visible_key, message.message_id)
                pipe.hdel(self._bodies_key, message.message_id)
                pipe.hdel(self._receives_key, message.message_id)
                removed, _, _ = await pipe.execute()
        return bool(removed)

    @beartype
    async def dead_letter(self, message: ReceivedMessage, reason: str) -> None:
        """Park a message on the dead-letter list and drop it from the queue."""
        with _translate_errors("dead_letter"):
            await self._move_to_dead_letter(
                message.message_id, message.body, reason, message.receive_count
            )

    async def dead_letters(self) -> list[DeadLetter]:
        """Everything currently parked, oldest first."""
        with _translate_errors("dead_letters"):
            raw = await self._redis.lrange(self._dead_key, 0, -1)
        entries = []
        for item in raw:
            data = json.loads(item)
            entries.append(
                DeadLetter(
                    message_id=data["message_id"],
                    body=data["body"],
                    reason=data["reason"],
                    receive_count=data["receive_count"],
                    dead_lettered_at=datetime.fromisoformat(data["dead_lettered_at"]),
                )
            )
        return entries

    async def depth(self) -> int:
        """Messages not yet deleted, visible or in flight."""
        with _translate_errors("depth"):
            return int(await self._redis.zcard(self._visible_key))

    async def _claim_visible(self, max_messages: int) -> list[ReceivedMessage]:
        now = self._clock()
        candidates = await self._redis.zrangebyscore(
            self._visible_key, "-inf", now, start=0, num=max_messages
        )
        claimed: list[ReceivedMessage] = []
        for message_id in candidates:
            message = await self._try_claim(message_id, now)
            if message is None:
                continue
            if message.receive_count > self._config.max_receive_count:
                logger.warning(
                    f"Message {message_id} exceeded {self._config.max_receive_count} "
                    f"receives on {self.name}; dead-lettering"
                )
                await self._move_to_dead_letter(
                    message_id,
                    message.body,
                    DEAD_LETTER_MAX_RECEIVES,
                    message.receive_count,
                )
                continue
            claimed.append(message)
        return claimed

    async def _try_claim(self, message_id: str, now: float) -> ReceivedMessage | None:
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(self._visible_key)
                score = await pipe.zscore(self._visible_key, message_id)
                if score is None or score > now:
                    return None
                try:
                    body = await pipe.hget(self._bodies_key, message_id)
                except UnicodeDecodeError as e:
                    await self._park_undecodable(pipe, message_id, bytes(e.object))
                    return None
                if body is None:
                    return None
                pipe.multi()
                pipe.zadd(
                    self._visible_key,
                    {message_id: now + self._config.visibility_timeout_seconds},
                )
                pipe.hincrby(self._receives_key, message_id, 1)
                _, receive_count = await pipe.execute()
            except WatchError:
                logger.debug(f"Lost claim race for message {message_id}")
                return None
        return ReceivedMessage(
            message_id=message_id, body=body, receive_count=int(receive_count)
        )

    async def _park_undecodable(
        self, pipe: Pipeline, message_id: str, raw: bytes
    ) -> None:
        # Runs under the caller's WATCH so only one receiver parks the message.
        receive_count = int(await pipe.hget(self._receives_key, message_id) or 0)
        logger.error(
            f"Message {message_id} on {self.name} is not valid UTF-8; dead-lettering"
        )
        pipe.multi()
        self._queue_dead_letter(
            pipe,
            message_id,
            raw.decode("utf-8", errors="backslashreplace"),
            DEAD_LETTER_UNDECODABLE,
            receive_count,
        )
        await pipe.execute()

    async def _move_to_dead_letter(
        self, message_id: str, body: str, reason: str, receive_count: int
    ) -> None:
        async with self._redis.pipeline(transaction=True) as pipe:
            self._queue_dead_letter(pipe, message_id, body, reason, receive_count)
            await pipe.execute()

    def _queue_dead_letter(
        self,
        pipe: Pipeline,
        message_id: str,
        body: str,
        reason: str,
        receive_count: int,
    ) -> None:
        entry = json.dumps(
            {
                "message_id": message_id,
                "body": body,
                "reason": reason,
                "receive_count": receive_count,
                "dead_lettered_at": datetime.now(timezone.utc).isoformat(),
            }
        )
        pipe.rpush(self._dead_key, entry)
        pipe.zrem(self._visible_key, message_id)
        pipe.hdel(self._bodies_key, message_id)
        pipe.hdel(self._receives_key, message_id)


@beartype
def create_redis_client(url: str) -> redis.Redis:
    """Redis client configured the way the queue expects."""
    return redis.from_url(url, decode_responses=True)

"""Unit tests for the Redis queue on fakeredis."""

import asyncio
import time

import fakeredis
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from lifeshield.core.errors import QueueError
from lifeshield.messaging import QueueConfig, RedisMessageQueue
from lifeshield.messaging.base import MessageQueue
from lifeshield.messaging.redis_queue import (
    DEAD_LETTER_MAX_RECEIVES,
    DEAD_LETTER_UNDECODABLE,
)
from tests.fixtures.test_data import QueueClock


class UnreachableRedis(fakeredis.FakeAsyncRedis):
    def pipeline(self, *args: object, **kwargs: object):  # type: ignore[override]
        raise RedisConnectionError("Connection refused")


class TestSendAndReceive:
    """Test basic delivery."""

    def test_satisfies_protocol(self, queue: RedisMessageQueue) -> None:
        assert isinstance(queue, MessageQueue)

    async def test_round_trip(self, queue: RedisMessageQueue) -> None:
        message_id = await queue.send('{"type": "POLICY_ISSUED"}')

        [message] = await queue.receive(max_messages=5)

        assert message.message_id == message_id
        assert message.body == '{"type": "POLICY_ISSUED"}'
        assert message.receive_count == 1

    async def test_receive_respects_max_messages(self, queue: RedisMessageQueue) -> None:
        for i in range(5):
            await queue.send(f"body-{i}")

        first = await queue.receive(max_messages=2)
        second = await queue.receive(max_messages=10)

        assert len(first) == 2
        assert len(second) == 3
        assert {m.body for m in first} | {m.body for m in second} == {
            f"body-{i}" for i in range(5)
        }

    async def test_rejects_non_positive_batch(self, queue: RedisMessageQueue) -> None:
        with pytest.raises(ValueError):
            await queue.receive(max_messages=0)

    async def test_empty_receive_is_bounded(self, queue: RedisMessageQueue) -> None:
        started = time.monotonic()

        assert await queue.receive(max_messages=1, wait_seconds=0.05) == []
        assert time.monotonic() - started < 1.0

    async def test_waiting_receive_sees_late_message(self, queue: RedisMessageQueue) -> None:
        async def send_later() -> None:
            await asyncio.sleep(0.02)
            await queue.send("late")

        sender = asyncio.create_task(send_later())
        messages = await queue.receive(max_messages=1, wait_seconds=1.0)
        await sender

        assert [m.body for m in messages] == ["late"]


class TestVisibility:
    """Test visibility timeout and acknowledgement."""

    async def test_claimed_message_is_hidden(self, queue: RedisMessageQueue) -> None:
        await queue.send("hello")
        await queue.receive()

        assert await queue.receive() == []
        assert await queue.depth() == 1

    async def test_redelivered_after_timeout(
        self, queue: RedisMessageQueue, queue_clock: QueueClock
    ) -> None:
        await queue.send("hello")
        [first] = await queue.receive()

        queue_clock.advance(29)
        assert await queue.receive() == []
        queue_clock.advance(2)
        [second] = await queue.receive()

        assert second.message_id == first.message_id
        assert second.receive_count == 2

    async def test_delete_acknowledges_once(
        self, queue: RedisMessageQueue, queue_clock: QueueClock
    ) -> None:
        await queue.send("hello")
        [message] = await queue.receive()

        assert await queue.delete(message) is True
        assert await queue.delete(message) is False

        queue_clock.advance(60)
        assert await queue.receive() == []
        assert await queue.depth() == 0


class TestDeadLetters:
    """Test explicit and bounded-receive dead-lettering."""

    async def test_explicit_dead_letter(self, queue: RedisMessageQueue) -> None:
        await queue.send("garbage")
        [message] = await queue.receive()

        await queue.dead_letter(message, "unparseable body")

        [dead] = await queue.dead_letters()
        assert dead.message_id == message.message_id
        assert dead.body == "garbage"
        assert dead.reason == "unparseable body"
        assert dead.receive_count == 1
        assert await queue.depth() == 0

    async def test_max_receive_count_parks_message(
        self, queue: RedisMessageQueue, queue_clock: QueueClock
    ) -> None:
        """max_receive_count=3 in the test config."""
        await queue.send("never acknowledged")

        for expected in (1, 2, 3):
            [message] = await queue.receive()
            assert message.receive_count == expected
            queue_clock.advance(31)

        assert await queue.receive() == []
        [dead] = await queue.dead_letters()
        assert dead.reason == DEAD_LETTER_MAX_RECEIVES
        assert dead.receive_count == 4
        assert await queue.depth() == 0

    async def test_other_messages_unaffected(
        self, queue: RedisMessageQueue, queue_clock: QueueClock
    ) -> None:
        await queue.send("poison")
        for _ in range(3):
            await queue.receive()
            queue_clock.advance(31)
        await queue.send("healthy")

        messages = await queue.receive(max_messages=5)

        assert [m.body for m in messages] == ["healthy"]

    async def test_undecodable_body_is_parked(
        self,
        queue: RedisMessageQueue,
        redis_client: fakeredis.FakeAsyncRedis,
        queue_config: QueueConfig,
    ) -> None:
        message_id = await queue.send("placeholder")
        bodies_key = f"lifeshield:queue:{queue_config.name}:bodies"
        await redis_client.hset(bodies_key, message_id, b"\xff\xfe{not utf8")
        await queue.send("healthy")

        messages = await queue.receive(max_messages=5)

        assert [m.body for m in messages] == ["healthy"]
        [dead] = await queue.dead_letters()
        assert dead.message_id == message_id
        assert dead.reason == DEAD_LETTER_UNDECODABLE
        assert dead.body == "\\xff\\xfe{not utf8"
        assert dead.receive_count == 0
        assert await queue.depth() == 1


class TestConcurrentReceivers:
    async def test_no_message_claimed_twice(
        self, redis_client: fakeredis.FakeAsyncRedis, queue_config: QueueConfig
    ) -> None:
        clock = QueueClock()
        queues = [RedisMessageQueue(redis_client, queue_config, clock=clock) for _ in range(4)]
        for i in range(20):
            await queues[0].send(f"m{i}")

        batches = await asyncio.gather(*(q.receive(max_messages=20) for q in queues))
        # Receivers that lost a WATCH race skip those ids; pick up the rest.
        leftovers = await queues[0].receive(max_messages=20)

        claimed = [m.message_id for batch in batches for m in batch]
        assert len(claimed) == len(set(claimed))
        remaining = [m.message_id for m in leftovers]
        assert not set(claimed) & set(remaining)
        assert len(claimed) + len(remaining) == 20

    async def test_separate_queue_names_are_isolated(
        self, redis_client: fakeredis.FakeAsyncRedis
    ) -> None:
        a = RedisMessageQueue(redis_client, QueueConfig(name="a"))
        b = RedisMessageQueue(redis_client, QueueConfig(name="b"))
        await a.send("for-a")

        assert await b.receive() == []
        assert [m.body for m in await a.receive()] == ["for-a"]


class TestBrokerFailures:
    async def test_send_raises_queue_error(self, queue_config: QueueConfig) -> None:
        client = UnreachableRedis(decode_responses=True)
        queue = RedisMessageQueue(client, queue_config)

        with pytest.raises(QueueError, match="send"):
            await queue.send("body")
        await client.aclose()

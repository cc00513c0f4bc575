"""Test configuration and fixtures.

Services run against the in-memory store and a fakeredis-backed queue.
Both clocks are frozen and advanced explicitly so expiry and visibility
timeouts are deterministic.
"""

from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

import fakeredis
import pytest
import pytest_asyncio

from lifeshield.core.config import clear_settings_cache
from lifeshield.core.metrics import PrometheusMetricsSink
from lifeshield.messaging import QueueConfig, RedisMessageQueue
from lifeshield.models import OccupationRisk, RiskProfile
from lifeshield.services import (
    IssuanceService,
    LoggingNotificationSender,
    NotificationConsumer,
    OutboxPublisher,
)
from lifeshield.store import (
    InMemoryConsumedMessageLedger,
    InMemoryCustomerDirectory,
    InMemoryIssuanceStore,
)
from tests.fixtures.test_data import CUSTOMER_ID, FrozenClock, QueueClock


@pytest.fixture(autouse=True)
def reset_settings() -> Any:
    """Settings are cached per process; isolate tests from each other."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def queue_clock() -> QueueClock:
    return QueueClock()


@pytest.fixture
def customer_profile() -> RiskProfile:
    """35-year-old non-smoker in a low-risk occupation."""
    return RiskProfile(age=35, smoker=False, occupation_risk=OccupationRisk.LOW)


@pytest.fixture
def store() -> InMemoryIssuanceStore:
    return InMemoryIssuanceStore()


@pytest.fixture
def customers(customer_profile: RiskProfile) -> InMemoryCustomerDirectory:
    return InMemoryCustomerDirectory({CUSTOMER_ID: customer_profile})


@pytest.fixture
def metrics() -> PrometheusMetricsSink:
    return PrometheusMetricsSink()


@pytest.fixture
def issuance_service(
    store: InMemoryIssuanceStore,
    customers: InMemoryCustomerDirectory,
    metrics: PrometheusMetricsSink,
    clock: FrozenClock,
) -> IssuanceService:
    return IssuanceService(
        store, customers, metrics, quote_ttl=timedelta(days=30), clock=clock
    )


@pytest_asyncio.fixture  # type: ignore[misc]
async def redis_client() -> AsyncGenerator[fakeredis.FakeAsyncRedis, None]:
    """Isolated fakeredis server per test."""
    client = fakeredis.FakeAsyncRedis(
        server=fakeredis.FakeServer(), decode_responses=True
    )
    yield client
    await client.aclose()


@pytest.fixture
def queue_config() -> QueueConfig:
    return QueueConfig(
        name="policy-events-test",
        visibility_timeout_seconds=30.0,
        max_receive_count=3,
        poll_interval_seconds=0.01,
    )


@pytest.fixture
def queue(
    redis_client: fakeredis.FakeAsyncRedis,
    queue_config: QueueConfig,
    queue_clock: QueueClock,
) -> RedisMessageQueue:
    return RedisMessageQueue(redis_client, queue_config, clock=queue_clock)


@pytest.fixture
def ledger() -> InMemoryConsumedMessageLedger:
    return InMemoryConsumedMessageLedger()


@pytest.fixture
def sender() -> LoggingNotificationSender:
    return LoggingNotificationSender()


@pytest.fixture
def publisher(
    store: InMemoryIssuanceStore,
    queue: RedisMessageQueue,
    metrics: PrometheusMetricsSink,
    clock: FrozenClock,
) -> OutboxPublisher:
    return OutboxPublisher(store, queue, metrics, batch_size=10, clock=clock)


@pytest.fixture
def consumer(
    queue: RedisMessageQueue,
    ledger: InMemoryConsumedMessageLedger,
    sender: LoggingNotificationSender,
    metrics: PrometheusMetricsSink,
    clock: FrozenClock,
) -> NotificationConsumer:
    return NotificationConsumer(
        queue, ledger, sender, metrics, batch_size=10, wait_seconds=0.0, clock=clock
    )

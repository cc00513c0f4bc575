"""Unit tests for quote creation, acceptance and expiry."""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import uuid4

import pytest

from lifeshield.core.errors import (
    InvalidInput,
    InvalidStateTransition,
    NotFound,
    StoreError,
    TransientInfrastructureFailure,
    UniqueViolation,
)
from lifeshield.core.metrics import PrometheusMetricsSink
from lifeshield.core.result_types import Err, Ok
from lifeshield.models import (
    EventType,
    OccupationRisk,
    PolicyStatus,
    PublishStatus,
    QuoteStatus,
    RiskProfile,
)
from lifeshield.services import IssuanceService, generate_policy_number
from lifeshield.store import (
    POLICY_NUMBER_CONSTRAINT,
    InMemoryCustomerDirectory,
    InMemoryIssuanceStore,
)
from tests.fixtures.test_data import FROZEN_NOW, FrozenClock, metric_value, quote_request


class FailingTransactionStore(InMemoryIssuanceStore):
    """In-memory store whose transactions can be made to fail mid-way."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_outbox_with: Exception | None = None
        self.fail_policy_with: Exception | None = None

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[Any]:
        async with super().transaction() as tx:
            if self.fail_outbox_with is not None:
                error = self.fail_outbox_with

                async def fail_outbox(event: Any) -> None:
                    raise error

                tx.insert_outbox_event = fail_outbox
            if self.fail_policy_with is not None:
                policy_error = self.fail_policy_with

                async def fail_policy(policy: Any) -> None:
                    raise policy_error

                tx.insert_policy = fail_policy
            yield tx


class UnavailableCustomers:
    async def get_risk_profile(self, customer_id: str) -> RiskProfile | None:
        raise StoreError("customers table unreachable")


class TestCreateQuote:
    """Test quote creation."""

    async def test_reference_scenario(
        self, issuance_service: IssuanceService, store: InMemoryIssuanceStore
    ) -> None:
        """Age 35 non-smoker, 10M over 20 years -> PENDING quote at 916.67."""
        result = await issuance_service.create_quote(quote_request())

        assert isinstance(result, Ok)
        quote = result.unwrap()
        assert quote.status == QuoteStatus.PENDING
        assert quote.monthly_premium == Decimal("916.67")
        assert quote.customer_id == "42"
        assert quote.term_years == 20
        assert quote.created_at == FROZEN_NOW
        assert quote.expires_at == FROZEN_NOW + timedelta(days=30)
        assert await store.get_quote(quote.id) == quote

    async def test_explicit_risk_profile_skips_lookup(
        self, issuance_service: IssuanceService
    ) -> None:
        smoker = RiskProfile(age=35, smoker=True, occupation_risk=OccupationRisk.LOW)

        result = await issuance_service.create_quote(
            quote_request(customer_id="walk-in"), smoker
        )

        # 10M * 0.001 * 1.6 / 12
        assert result.unwrap().monthly_premium == Decimal("1333.33")

    async def test_unknown_customer_is_not_found(
        self, issuance_service: IssuanceService
    ) -> None:
        result = await issuance_service.create_quote(quote_request(customer_id="nobody"))

        assert isinstance(result, Err)
        error = result.unwrap_err()
        assert isinstance(error, NotFound)
        assert error.resource == "customer"

    @pytest.mark.parametrize(
        "coverage,term",
        [("0", 20), ("-100", 20), ("100000", 0), ("100000", -1), ("100000.001", 20)],
    )
    async def test_invalid_input(
        self,
        issuance_service: IssuanceService,
        store: InMemoryIssuanceStore,
        coverage: str,
        term: int,
    ) -> None:
        result = await issuance_service.create_quote(quote_request(coverage, term))

        assert isinstance(result.unwrap_err(), InvalidInput)
        assert store.all_policies() == []

    @pytest.mark.parametrize("coverage", ["1000000000000.00", "1" + "0" * 40])
    async def test_coverage_above_storable_maximum_rejected(
        self,
        issuance_service: IssuanceService,
        store: InMemoryIssuanceStore,
        coverage: str,
    ) -> None:
        result = await issuance_service.create_quote(quote_request(coverage=coverage))

        assert isinstance(result.unwrap_err(), InvalidInput)
        assert store._quotes == {}

    async def test_maximum_coverage_accepted(
        self, issuance_service: IssuanceService
    ) -> None:
        result = await issuance_service.create_quote(
            quote_request(coverage="999999999999.99")
        )

        assert result.unwrap().monthly_premium == Decimal("91666666.67")

    async def test_term_above_limit_rejected(
        self, issuance_service: IssuanceService
    ) -> None:
        result = await issuance_service.create_quote(quote_request(term_years=101))

        assert isinstance(result.unwrap_err(), InvalidInput)

    async def test_directory_outage_is_transient(
        self, store: InMemoryIssuanceStore, clock: FrozenClock
    ) -> None:
        service = IssuanceService(store, UnavailableCustomers(), clock=clock)

        result = await service.create_quote(quote_request())

        assert isinstance(result.unwrap_err(), TransientInfrastructureFailure)

    async def test_counts_created_quotes(
        self, issuance_service: IssuanceService, metrics: PrometheusMetricsSink
    ) -> None:
        await issuance_service.create_quote(quote_request())
        await issuance_service.create_quote(quote_request(coverage="0"))

        assert metric_value(metrics, "quotes_created_total") == 1.0


class TestAcceptQuote:
    """Test the PENDING -> ACCEPTED transition and policy issuance."""

    async def test_issues_policy_with_outbox_event(
        self, issuance_service: IssuanceService, store: InMemoryIssuanceStore
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()

        result = await issuance_service.accept_quote(quote.id)

        assert isinstance(result, Ok)
        policy = result.unwrap()
        assert policy.status == PolicyStatus.ACTIVE
        assert policy.quote_id == quote.id
        assert policy.customer_id == quote.customer_id
        assert policy.coverage_amount == quote.coverage_amount
        assert policy.monthly_premium == quote.monthly_premium
        assert policy.start_date == date(2025, 7, 2)
        assert policy.end_date == date(2045, 7, 2)
        assert policy.policy_number == generate_policy_number(quote.id, FROZEN_NOW)

        stored_quote = await store.get_quote(quote.id)
        assert stored_quote is not None
        assert stored_quote.status == QuoteStatus.ACCEPTED
        assert stored_quote.accepted_at == FROZEN_NOW

        events = store.all_outbox_events()
        assert len(events) == 1
        assert events[0].event_type == EventType.POLICY_ISSUED
        assert events[0].publish_status == PublishStatus.PENDING
        assert events[0].payload == {
            "policyId": str(policy.id),
            "customerId": "42",
            "issuedAt": events[0].payload["issuedAt"],
        }

    async def test_second_accept_is_conflict(
        self, issuance_service: IssuanceService, store: InMemoryIssuanceStore
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        first = await issuance_service.accept_quote(quote.id)

        second = await issuance_service.accept_quote(quote.id)

        assert first.is_ok()
        error = second.unwrap_err()
        assert isinstance(error, InvalidStateTransition)
        assert error.current_status == "ACCEPTED"
        assert len(store.all_policies()) == 1
        assert len(store.all_outbox_events()) == 1

    async def test_concurrent_accepts_issue_exactly_one_policy(
        self, issuance_service: IssuanceService, store: InMemoryIssuanceStore
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()

        results = await asyncio.gather(
            *(issuance_service.accept_quote(quote.id) for _ in range(10))
        )

        successes = [r for r in results if r.is_ok()]
        conflicts = [r for r in results if r.is_err()]
        assert len(successes) == 1
        assert len(conflicts) == 9
        assert all(isinstance(r.unwrap_err(), InvalidStateTransition) for r in conflicts)
        assert len(store.all_policies()) == 1
        assert len(store.all_outbox_events()) == 1

    async def test_different_quotes_accept_independently(
        self, issuance_service: IssuanceService, store: InMemoryIssuanceStore
    ) -> None:
        quotes = [
            (await issuance_service.create_quote(quote_request())).unwrap()
            for _ in range(5)
        ]

        results = await asyncio.gather(
            *(issuance_service.accept_quote(q.id) for q in quotes)
        )

        assert all(r.is_ok() for r in results)
        assert len(store.all_policies()) == 5
        assert len({p.policy_number for p in store.all_policies()}) == 5

    async def test_unknown_quote_is_not_found(
        self, issuance_service: IssuanceService
    ) -> None:
        result = await issuance_service.accept_quote(uuid4())

        error = result.unwrap_err()
        assert isinstance(error, NotFound)
        assert error.resource == "quote"

    async def test_expired_quote_cannot_be_accepted(
        self, issuance_service: IssuanceService, clock: FrozenClock
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        clock.advance(days=31)
        await issuance_service.expire_quote(quote.id)

        result = await issuance_service.accept_quote(quote.id)

        error = result.unwrap_err()
        assert isinstance(error, InvalidStateTransition)
        assert error.current_status == "EXPIRED"

    async def test_outbox_failure_rolls_back_everything(
        self, customers: InMemoryCustomerDirectory, clock: FrozenClock
    ) -> None:
        store = FailingTransactionStore()
        service = IssuanceService(store, customers, clock=clock)
        quote = (await service.create_quote(quote_request())).unwrap()
        store.fail_outbox_with = StoreError("connection reset")

        result = await service.accept_quote(quote.id)

        assert isinstance(result.unwrap_err(), TransientInfrastructureFailure)
        stored = await store.get_quote(quote.id)
        assert stored is not None
        assert stored.status == QuoteStatus.PENDING
        assert store.all_policies() == []
        assert store.all_outbox_events() == []

        # Caller retries once the store recovers
        store.fail_outbox_with = None
        retried = await service.accept_quote(quote.id)
        assert retried.is_ok()
        assert len(store.all_policies()) == 1
        assert len(store.all_outbox_events()) == 1

    async def test_timeout_is_transient_not_success(
        self, customers: InMemoryCustomerDirectory, clock: FrozenClock
    ) -> None:
        store = FailingTransactionStore()
        service = IssuanceService(store, customers, clock=clock)
        quote = (await service.create_quote(quote_request())).unwrap()
        store.fail_policy_with = StoreError("Timed out acquiring a database connection")

        result = await service.accept_quote(quote.id)

        assert isinstance(result.unwrap_err(), TransientInfrastructureFailure)
        assert (await store.get_quote(quote.id)).status == QuoteStatus.PENDING

    async def test_policy_number_collision_is_transient(
        self, customers: InMemoryCustomerDirectory, clock: FrozenClock
    ) -> None:
        store = FailingTransactionStore()
        service = IssuanceService(store, customers, clock=clock)
        quote = (await service.create_quote(quote_request())).unwrap()
        store.fail_policy_with = UniqueViolation(POLICY_NUMBER_CONSTRAINT)

        result = await service.accept_quote(quote.id)

        assert isinstance(result.unwrap_err(), TransientInfrastructureFailure)
        assert (await store.get_quote(quote.id)).status == QuoteStatus.PENDING

    async def test_counts_issued_policies(
        self, issuance_service: IssuanceService, metrics: PrometheusMetricsSink
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        await issuance_service.accept_quote(quote.id)
        await issuance_service.accept_quote(quote.id)

        assert metric_value(metrics, "policies_issued_total") == 1.0


class TestReads:
    async def test_get_quote(self, issuance_service: IssuanceService) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()

        assert (await issuance_service.get_quote(quote.id)).unwrap() == quote
        assert isinstance(
            (await issuance_service.get_quote(uuid4())).unwrap_err(), NotFound
        )

    async def test_get_policy(self, issuance_service: IssuanceService) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        policy = (await issuance_service.accept_quote(quote.id)).unwrap()

        assert (await issuance_service.get_policy(policy.id)).unwrap() == policy
        error = (await issuance_service.get_policy(uuid4())).unwrap_err()
        assert isinstance(error, NotFound)
        assert error.resource == "policy"


class TestExpiry:
    """Test PENDING -> EXPIRED transitions."""

    async def test_fresh_quote_is_left_pending(
        self, issuance_service: IssuanceService
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()

        result = await issuance_service.expire_quote(quote.id)

        assert result.unwrap().status == QuoteStatus.PENDING

    async def test_stale_quote_expires(
        self,
        issuance_service: IssuanceService,
        store: InMemoryIssuanceStore,
        clock: FrozenClock,
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        clock.advance(days=30)

        result = await issuance_service.expire_quote(quote.id)

        expired = result.unwrap()
        assert expired.status == QuoteStatus.EXPIRED
        assert expired.expired_at == clock.now
        assert (await store.get_quote(quote.id)).status == QuoteStatus.EXPIRED

    async def test_terminal_quote_is_noop(
        self, issuance_service: IssuanceService, clock: FrozenClock
    ) -> None:
        quote = (await issuance_service.create_quote(quote_request())).unwrap()
        await issuance_service.accept_quote(quote.id)
        clock.advance(days=60)

        result = await issuance_service.expire_quote(quote.id)

        assert result.unwrap().status == QuoteStatus.ACCEPTED

    async def test_unknown_quote(self, issuance_service: IssuanceService) -> None:
        result = await issuance_service.expire_quote(uuid4())

        assert isinstance(result.unwrap_err(), NotFound)

    async def test_sweep_expires_only_stale_pending(
        self,
        issuance_service: IssuanceService,
        store: InMemoryIssuanceStore,
        clock: FrozenClock,
    ) -> None:
        old = (await issuance_service.create_quote(quote_request())).unwrap()
        accepted = (await issuance_service.create_quote(quote_request())).unwrap()
        await issuance_service.accept_quote(accepted.id)
        clock.advance(days=20)
        recent = (await issuance_service.create_quote(quote_request())).unwrap()
        clock.advance(days=11)

        result = await issuance_service.expire_stale_quotes()

        assert result.unwrap() == 1
        assert (await store.get_quote(old.id)).status == QuoteStatus.EXPIRED
        assert (await store.get_quote(accepted.id)).status == QuoteStatus.ACCEPTED
        assert (await store.get_quote(recent.id)).status == QuoteStatus.PENDING

        again = await issuance_service.expire_stale_quotes()
        assert again.unwrap() == 0

    async def test_sweep_respects_limit(
        self, issuance_service: IssuanceService, clock: FrozenClock
    ) -> None:
        for _ in range(4):
            await issuance_service.create_quote(quote_request())
        clock.advance(days=31)

        assert (await issuance_service.expire_stale_quotes(limit=3)).unwrap() == 3
        assert (await issuance_service.expire_stale_quotes(limit=3)).unwrap() == 1

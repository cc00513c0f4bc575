# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote and policy issuance.

Quote:  PENDING --accept--> ACCEPTED
        PENDING --expire--> EXPIRED
Policy: created ACTIVE in the same transaction that accepts its quote,
        together with a PENDING ``POLICY_ISSUED`` outbox row.

Acceptance is decided by a guarded update on the quote's status, so
concurrent accepts of one quote produce exactly one policy; every loser
gets ``InvalidStateTransition``.
"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from beartype import beartype

from ..core.errors import (
    DomainError,
    InvalidInput,
    InvalidStateTransition,
    NotFound,
    StoreError,
    TransientInfrastructureFailure,
    UniqueViolation,
)
from ..core.metrics import MetricsSink, NullMetricsSink
from ..core.result_types import Err, Ok, Result
from ..models.base import add_years
from ..models.customer import RiskProfile
from ..models.outbox import EventType, OutboxEvent, PolicyIssuedMessage
from ..models.policy import Policy, PolicyStatus
from ..models.quote import Quote, QuoteRequest, QuoteStatus
from ..store.base import POLICY_QUOTE_CONSTRAINT, CustomerDirectory, IssuanceStore
from .pricing import DEFAULT_BASE_RATE, MAX_COVERAGE_AMOUNT, compute_premium

logger = logging.getLogger(__name__)

MAX_TERM_YEARS = 100
STALE_SWEEP_LIMIT = 500


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_policy_number(quote_id: UUID, issued_at: datetime) -> str:
    """Time-derived prefix plus quote id; the store's unique index has the final say."""
    return f"LS-{issued_at:%Y%m%d%H%M%S}-{quote_id.hex[:12].upper()}"


class _QuoteNoLongerPending(Exception):
    """Raised inside the issuance transaction to roll it back."""


class IssuanceService:
    """Service for quoting customers and issuing policies from accepted quotes."""

    def __init__(
        self,
        store: IssuanceStore,
        customers: CustomerDirectory,
        metrics: MetricsSink | None = None,
        *,
        base_rate: Decimal = DEFAULT_BASE_RATE,
        quote_ttl: timedelta = timedelta(days=30),
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize issuance service."""
        self._store = store
        self._customers = customers
        self._metrics = metrics or NullMetricsSink()
        self._base_rate = base_rate
        self._quote_ttl = quote_ttl
        self._clock = clock

    @beartype
    async def create_quote(
        self,
        request: QuoteRequest,
        risk_profile: RiskProfile | None = None,
    ) -> Result[Quote, DomainError]:
        """Price a coverage request and persist it as a PENDING quote.

        When ``risk_profile`` is omitted it is looked up through the customer
        directory; an unknown customer yields ``NotFound``.
        """
        validation = self._validate_request(request)
        if isinstance(validation, Err):
            return validation

        try:
            if risk_profile is None:
                risk_profile = await self._customers.get_risk_profile(request.customer_id)
                if risk_profile is None:
                    return Err(
                        NotFound(
                            f"Customer {request.customer_id} not found",
                            resource="customer",
                        )
                    )

            now = self._clock()
            premium = compute_premium(
                risk_profile,
                request.coverage_amount,
                request.term_years,
                as_of=now.date(),
                base_rate=self._base_rate,
            )
            if isinstance(premium, Err):
                return premium

            quote = Quote(
                id=uuid4(),
                customer_id=request.customer_id,
                coverage_amount=request.coverage_amount,
                term_years=request.term_years,
                monthly_premium=premium.unwrap(),
                status=QuoteStatus.PENDING,
                created_at=now,
                expires_at=now + self._quote_ttl,
            )
            await self._store.insert_quote(quote)
        except StoreError as e:
            logger.warning(f"Quote creation for customer {request.customer_id} failed: {e}")
            return Err(TransientInfrastructureFailure(f"Could not create quote: {e}"))

        self._metrics.quote_created()
        logger.info(
            f"Quote {quote.id} created for customer {quote.customer_id}: "
            f"coverage={quote.coverage_amount} term={quote.term_years}y "
            f"premium={quote.monthly_premium}/month"
        )
        return Ok(quote)

    @beartype
    async def accept_quote(self, quote_id: UUID) -> Result[Policy, DomainError]:
        """Issue a policy for a PENDING quote.

        Quote flip, policy insert and outbox insert commit together or not at
        all. A failed attempt leaves the quote PENDING, so callers may retry.
        """
        try:
            quote = await self._store.get_quote(quote_id)
        except StoreError as e:
            logger.warning(f"Loading quote {quote_id} failed: {e}")
            return Err(TransientInfrastructureFailure(f"Could not load quote: {e}"))

        if quote is None:
            return Err(NotFound(f"Quote {quote_id} not found", resource="quote"))
        if quote.status is not QuoteStatus.PENDING:
            return Err(self._conflict(quote_id, quote.status))

        now = self._clock()
        policy = self._build_policy(quote, now)
        event = OutboxEvent(
            id=uuid4(),
            event_type=EventType.POLICY_ISSUED,
            payload=PolicyIssuedMessage(
                policy_id=policy.id,
                customer_id=policy.customer_id,
                issued_at=now,
            ).to_payload(),
            created_at=now,
        )

        try:
            async with self._store.transaction() as tx:
                if not await tx.accept_quote(quote_id, now):
                    raise _QuoteNoLongerPending()
                await tx.insert_policy(policy)
                await tx.insert_outbox_event(event)
        except _QuoteNoLongerPending:
            logger.info(f"Quote {quote_id} was accepted or expired concurrently")
            return Err(self._conflict(quote_id, None))
        except UniqueViolation as e:
            if e.constraint == POLICY_QUOTE_CONSTRAINT:
                return Err(self._conflict(quote_id, QuoteStatus.ACCEPTED))
            logger.warning(f"Policy number collision issuing quote {quote_id}: {e}")
            return Err(
                TransientInfrastructureFailure(
                    f"Policy number {policy.policy_number} already taken; retry"
                )
            )
        except StoreError as e:
            logger.warning(f"Issuance transaction for quote {quote_id} rolled back: {e}")
            return Err(TransientInfrastructureFailure(f"Could not issue policy: {e}"))

        self._metrics.policy_issued()
        logger.info(
            f"Policy {policy.policy_number} ({policy.id}) issued from quote {quote_id}; "
            f"outbox event {event.id} pending"
        )
        return Ok(policy)

    @beartype
    async def get_quote(self, quote_id: UUID) -> Result[Quote, DomainError]:
        """Get quote by ID."""
        try:
            quote = await self._store.get_quote(quote_id)
        except StoreError as e:
            return Err(TransientInfrastructureFailure(f"Could not load quote: {e}"))
        if quote is None:
            return Err(NotFound(f"Quote {quote_id} not found", resource="quote"))
        return Ok(quote)

    @beartype
    async def get_policy(self, policy_id: UUID) -> Result[Policy, DomainError]:
        """Get policy by ID."""
        try:
            policy = await self._store.get_policy(policy_id)
        except StoreError as e:
            return Err(TransientInfrastructureFailure(f"Could not load policy: {e}"))
        if policy is None:
            return Err(NotFound(f"Policy {policy_id} not found", resource="policy"))
        return Ok(policy)

    @beartype
    async def expire_quote(self, quote_id: UUID) -> Result[Quote, DomainError]:
        """Expire a PENDING quote that is past its age; otherwise a no-op.

        Returns the quote as it stands after the call.
        """
        try:
            quote = await self._store.get_quote(quote_id)
            if quote is None:
                return Err(NotFound(f"Quote {quote_id} not found", resource="quote"))

            now = self._clock()
            if not quote.is_stale(now):
                return Ok(quote)

            if await self._store.expire_quote(quote_id, now):
                logger.info(f"Quote {quote_id} expired")
                return Ok(quote.expired(now))

            # Lost a race with acceptance; report whatever won.
            current = await self._store.get_quote(quote_id)
        except StoreError as e:
            logger.warning(f"Expiring quote {quote_id} failed: {e}")
            return Err(TransientInfrastructureFailure(f"Could not expire quote: {e}"))
        return Ok(current or quote)

    @beartype
    async def expire_stale_quotes(
        self, limit: int = STALE_SWEEP_LIMIT
    ) -> Result[int, DomainError]:
        """Sweep PENDING quotes past their age to EXPIRED; returns how many flipped."""
        now = self._clock()
        expired = 0
        try:
            for quote_id in await self._store.list_stale_quote_ids(now, limit):
                if await self._store.expire_quote(quote_id, now):
                    expired += 1
        except StoreError as e:
            logger.warning(f"Expiry sweep stopped after {expired} quotes: {e}")
            return Err(TransientInfrastructureFailure(f"Expiry sweep failed: {e}"))

        if expired:
            logger.info(f"Expiry sweep expired {expired} stale quotes")
        return Ok(expired)

    @beartype
    def _validate_request(self, request: QuoteRequest) -> Result[None, DomainError]:
        """Validate quote request business rules."""
        coverage = request.coverage_amount
        if not coverage.is_finite() or coverage <= 0:
            return Err(InvalidInput("Coverage amount must be positive"))
        if coverage > MAX_COVERAGE_AMOUNT:
            return Err(
                InvalidInput(f"Coverage amount cannot exceed {MAX_COVERAGE_AMOUNT}")
            )
        exponent = coverage.as_tuple().exponent
        if isinstance(exponent, int) and exponent < -2:
            return Err(InvalidInput("Coverage amount cannot have more than 2 decimals"))
        if request.term_years <= 0:
            return Err(InvalidInput("Term years must be positive"))
        if request.term_years > MAX_TERM_YEARS:
            return Err(InvalidInput(f"Term years cannot exceed {MAX_TERM_YEARS}"))
        return Ok(None)

    def _build_policy(self, quote: Quote, now: datetime) -> Policy:
        start = now.date()
        return Policy(
            id=uuid4(),
            policy_number=generate_policy_number(quote.id, now),
            customer_id=quote.customer_id,
            quote_id=quote.id,
            coverage_amount=quote.coverage_amount,
            monthly_premium=quote.monthly_premium,
            term_years=quote.term_years,
            start_date=start,
            end_date=add_years(start, quote.term_years),
            status=PolicyStatus.ACTIVE,
            issued_at=now,
        )

    def _conflict(
        self, quote_id: UUID, status: QuoteStatus | None
    ) -> InvalidStateTransition:
        shown = status.value if status else "no longer PENDING"
        return InvalidStateTransition(
            f"Quote {quote_id} cannot be accepted: {shown}",
            current_status=status.value if status else None,
        )

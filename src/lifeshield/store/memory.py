# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""In-process store backends for tests and local demo runs.

``InMemoryIssuanceStore`` serializes transactions behind one lock and
stages writes until the scope exits cleanly, so rollback, guarded status
updates and uniqueness constraints behave like the PostgreSQL backend.
"""

import asyncio
import contextlib
from collections.abc import AsyncIterator
from datetime import datetime
from uuid import UUID

from ..core.errors import UniqueViolation
from ..models.customer import RiskProfile
from ..models.notification import ConsumedMessageRecord, Notification
from ..models.outbox import OutboxEvent, PublishStatus
from ..models.policy import Policy
from ..models.quote import Quote, QuoteStatus
from .base import POLICY_NUMBER_CONSTRAINT, POLICY_QUOTE_CONSTRAINT


class _StagedTransaction:
    """Unit of work collecting writes for one transaction."""

    def __init__(self, store: "InMemoryIssuanceStore") -> None:
        self._store = store
        self.quotes: dict[UUID, Quote] = {}
        self.policies: list[Policy] = []
        self.events: list[OutboxEvent] = []

    def _current_quote(self, quote_id: UUID) -> Quote | None:
        return self.quotes.get(quote_id) or self._store._quotes.get(quote_id)

    async def accept_quote(self, quote_id: UUID, accepted_at: datetime) -> bool:
        quote = self._current_quote(quote_id)
        if quote is None or quote.status is not QuoteStatus.PENDING:
            return False
        self.quotes[quote_id] = quote.accepted(accepted_at)
        return True

    async def insert_policy(self, policy: Policy) -> None:
        existing = list(self._store._policies.values()) + self.policies
        if any(p.policy_number == policy.policy_number for p in existing):
            raise UniqueViolation(POLICY_NUMBER_CONSTRAINT)
        if any(p.quote_id == policy.quote_id for p in existing):
            raise UniqueViolation(POLICY_QUOTE_CONSTRAINT)
        self.policies.append(policy)

    async def insert_outbox_event(self, event: OutboxEvent) -> None:
        self.events.append(event)

    def apply(self) -> None:
        self._store._quotes.update(self.quotes)
        for policy in self.policies:
            self._store._policies[policy.id] = policy
        for event in self.events:
            self._store._outbox[event.id] = event


class InMemoryIssuanceStore:
    """Dictionary-backed ``IssuanceStore``."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._quotes: dict[UUID, Quote] = {}
        self._policies: dict[UUID, Policy] = {}
        self._outbox: dict[UUID, OutboxEvent] = {}

    async def insert_quote(self, quote: Quote) -> None:
        async with self._lock:
            if quote.id in self._quotes:
                raise UniqueViolation("pk_quotes")
            self._quotes[quote.id] = quote

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        return self._quotes.get(quote_id)

    async def get_policy(self, policy_id: UUID) -> Policy | None:
        return self._policies.get(policy_id)

    async def get_policy_by_quote(self, quote_id: UUID) -> Policy | None:
        return next(
            (p for p in self._policies.values() if p.quote_id == quote_id), None
        )

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[_StagedTransaction]:
        async with self._lock:
            staged = _StagedTransaction(self)
            yield staged
            staged.apply()

    async def expire_quote(self, quote_id: UUID, expired_at: datetime) -> bool:
        async with self._lock:
            quote = self._quotes.get(quote_id)
            if quote is None or quote.status is not QuoteStatus.PENDING:
                return False
            self._quotes[quote_id] = quote.expired(expired_at)
            return True

    async def list_stale_quote_ids(self, now: datetime, limit: int) -> list[UUID]:
        stale = sorted(
            (q for q in self._quotes.values() if q.is_stale(now)),
            key=lambda q: q.expires_at,
        )
        return [q.id for q in stale[:limit]]

    async def fetch_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        pending = [
            e for e in self._outbox.values() if e.publish_status is PublishStatus.PENDING
        ]
        pending.sort(key=lambda e: e.created_at)
        return pending[:limit]

    async def mark_outbox_published(self, event_id: UUID, published_at: datetime) -> bool:
        async with self._lock:
            event = self._outbox.get(event_id)
            if event is None or event.publish_status is not PublishStatus.PENDING:
                return False
            self._outbox[event_id] = event.model_copy(
                update={
                    "publish_status": PublishStatus.PUBLISHED,
                    "published_at": published_at,
                }
            )
            return True

    # Inspection helpers used by tests and the demo runner

    def all_policies(self) -> list[Policy]:
        return list(self._policies.values())

    def all_outbox_events(self) -> list[OutboxEvent]:
        return sorted(self._outbox.values(), key=lambda e: e.created_at)


class InMemoryCustomerDirectory:
    """Seedable customer lookup."""

    def __init__(self, profiles: dict[str, RiskProfile] | None = None) -> None:
        self._profiles = dict(profiles or {})

    def add(self, customer_id: str, profile: RiskProfile) -> None:
        self._profiles[customer_id] = profile

    async def get_risk_profile(self, customer_id: str) -> RiskProfile | None:
        return self._profiles.get(customer_id)


class InMemoryConsumedMessageLedger:
    """Dedup ledger and notification log kept in process memory."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self.entries: dict[str, ConsumedMessageRecord] = {}
        self.notifications: list[Notification] = []

    async def is_processed(self, key: str) -> bool:
        return key in self.entries

    async def record(
        self, entry: ConsumedMessageRecord, notification: Notification | None = None
    ) -> bool:
        async with self._lock:
            if entry.key in self.entries:
                return False
            self.entries[entry.key] = entry
            if notification is not None:
                self.notifications.append(notification)
            return True

# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Store interfaces shared by the PostgreSQL and in-memory backends.

These protocols are ``runtime_checkable`` so beartype ``isinstance`` checks
accept any backend that provides the methods.

Implementations raise ``StoreError`` (or ``UniqueViolation``) for every
infrastructure failure; they never return partial results.
"""

from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from ..models.customer import RiskProfile
from ..models.notification import ConsumedMessageRecord, Notification
from ..models.outbox import OutboxEvent
from ..models.policy import Policy
from ..models.quote import Quote

POLICY_NUMBER_CONSTRAINT = "uq_policies_policy_number"
POLICY_QUOTE_CONSTRAINT = "uq_policies_quote_id"


@runtime_checkable
class IssuanceTransaction(Protocol):
    """Writes that must commit or roll back together."""

    async def accept_quote(self, quote_id: UUID, accepted_at: datetime) -> bool:
        """Flip PENDING -> ACCEPTED; False when the quote is no longer PENDING."""
        ...

    async def insert_policy(self, policy: Policy) -> None: ...

    async def insert_outbox_event(self, event: OutboxEvent) -> None: ...


@runtime_checkable
class IssuanceStore(Protocol):
    """Transactional store for quotes, policies and outbox rows."""

    async def insert_quote(self, quote: Quote) -> None: ...

    async def get_quote(self, quote_id: UUID) -> Quote | None: ...

    async def get_policy(self, policy_id: UUID) -> Policy | None: ...

    async def get_policy_by_quote(self, quote_id: UUID) -> Policy | None: ...

    def transaction(self) -> AbstractAsyncContextManager[IssuanceTransaction]:
        """Atomic scope; leaving it with an exception rolls everything back."""
        ...

    async def expire_quote(self, quote_id: UUID, expired_at: datetime) -> bool:
        """Flip PENDING -> EXPIRED; False when the quote is no longer PENDING."""
        ...

    async def list_stale_quote_ids(self, now: datetime, limit: int) -> list[UUID]:
        """PENDING quotes whose ``expires_at`` is at or before ``now``."""
        ...

    async def fetch_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        """Oldest PENDING outbox rows first."""
        ...

    async def mark_outbox_published(self, event_id: UUID, published_at: datetime) -> bool:
        """Flip PENDING -> PUBLISHED; False when another publisher got there first."""
        ...


@runtime_checkable
class CustomerDirectory(Protocol):
    """Customer risk profile lookup."""

    async def get_risk_profile(self, customer_id: str) -> RiskProfile | None: ...


@runtime_checkable
class ConsumedMessageLedger(Protocol):
    """Consumer dedup ledger plus the notification log it guards."""

    async def is_processed(self, key: str) -> bool: ...

    async def record(
        self, entry: ConsumedMessageRecord, notification: Notification | None = None
    ) -> bool:
        """Store the entry; False when the key was already recorded."""
        ...

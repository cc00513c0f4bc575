# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""PostgreSQL backends built on the asyncpg ``Database`` wrapper.

Status transitions are guarded updates (``... AND status = 'PENDING'``);
the command tag row count decides whether this caller won the race.
Uniqueness of ``policy_number`` and ``quote_id`` is enforced by the schema
(see ``alembic/versions/001_issuance_schema.py``).
"""

import asyncio
import contextlib
import json
from collections.abc import AsyncIterator, Iterator
from datetime import datetime
from typing import Any
from uuid import UUID

import asyncpg

from ..core.database import Database, affected_rows
from ..core.errors import StoreError, UniqueViolation
from ..models.customer import OccupationRisk, RiskProfile
from ..models.notification import ConsumedMessageRecord, Notification
from ..models.outbox import EventType, OutboxEvent, PublishStatus
from ..models.policy import Policy, PolicyStatus
from ..models.quote import Quote, QuoteStatus

QUOTE_COLUMNS = (
    "id, customer_id, coverage_amount, term_years, monthly_premium, status, "
    "created_at, expires_at, accepted_at, expired_at"
)
POLICY_COLUMNS = (
    "id, policy_number, customer_id, quote_id, coverage_amount, monthly_premium, "
    "term_years, start_date, end_date, status, issued_at"
)
OUTBOX_COLUMNS = "id, event_type, payload, publish_status, created_at, published_at"


@contextlib.contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise driver failures as ``StoreError`` / ``UniqueViolation``."""
    try:
        yield
    except asyncpg.UniqueViolationError as e:
        constraint = getattr(e, "constraint_name", None) or "unknown"
        raise UniqueViolation(constraint, str(e)) from e
    except (
        asyncpg.PostgresError,
        asyncpg.InterfaceError,
        OSError,
        asyncio.TimeoutError,
    ) as e:
        raise StoreError(f"Database error: {e}") from e


def _row_to_quote(row: Any) -> Quote:
    return Quote(
        id=row["id"],
        customer_id=row["customer_id"],
        coverage_amount=row["coverage_amount"],
        term_years=row["term_years"],
        monthly_premium=row["monthly_premium"],
        status=QuoteStatus(row["status"]),
        created_at=row["created_at"],
        expires_at=row["expires_at"],
        accepted_at=row["accepted_at"],
        expired_at=row["expired_at"],
    )


def _row_to_policy(row: Any) -> Policy:
    return Policy(
        id=row["id"],
        policy_number=row["policy_number"],
        customer_id=row["customer_id"],
        quote_id=row["quote_id"],
        coverage_amount=row["coverage_amount"],
        monthly_premium=row["monthly_premium"],
        term_years=row["term_years"],
        start_date=row["start_date"],
        end_date=row["end_date"],
        status=PolicyStatus(row["status"]),
        issued_at=row["issued_at"],
    )


def _row_to_outbox(row: Any) -> OutboxEvent:
    payload = row["payload"]
    if isinstance(payload, str):
        payload = json.loads(payload)
    return OutboxEvent(
        id=row["id"],
        event_type=EventType(row["event_type"]),
        payload=payload,
        publish_status=PublishStatus(row["publish_status"]),
        created_at=row["created_at"],
        published_at=row["published_at"],
    )


class PostgresIssuanceTransaction:
    """Writes issued on a single connection inside an open transaction."""

    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def accept_quote(self, quote_id: UUID, accepted_at: datetime) -> bool:
        with translate_errors():
            tag = await self._conn.execute(
                """
                UPDATE quotes
                SET status = 'ACCEPTED', accepted_at = $2
                WHERE id = $1 AND status = 'PENDING'
                """,
                quote_id,
                accepted_at,
            )
        return affected_rows(tag) == 1

    async def insert_policy(self, policy: Policy) -> None:
        with translate_errors():
            await self._conn.execute(
                f"""
                INSERT INTO policies ({POLICY_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11)
                """,
                policy.id,
                policy.policy_number,
                policy.customer_id,
                policy.quote_id,
                policy.coverage_amount,
                policy.monthly_premium,
                policy.term_years,
                policy.start_date,
                policy.end_date,
                policy.status.value,
                policy.issued_at,
            )

    async def insert_outbox_event(self, event: OutboxEvent) -> None:
        with translate_errors():
            await self._conn.execute(
                f"""
                INSERT INTO outbox_events ({OUTBOX_COLUMNS})
                VALUES ($1, $2, $3::jsonb, $4, $5, $6)
                """,
                event.id,
                event.event_type.value,
                json.dumps(event.payload),
                event.publish_status.value,
                event.created_at,
                event.published_at,
            )


class PostgresIssuanceStore:
    """``IssuanceStore`` backed by PostgreSQL."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def insert_quote(self, quote: Quote) -> None:
        with translate_errors():
            await self._db.execute(
                f"""
                INSERT INTO quotes ({QUOTE_COLUMNS})
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                """,
                quote.id,
                quote.customer_id,
                quote.coverage_amount,
                quote.term_years,
                quote.monthly_premium,
                quote.status.value,
                quote.created_at,
                quote.expires_at,
                quote.accepted_at,
                quote.expired_at,
            )

    async def get_quote(self, quote_id: UUID) -> Quote | None:
        with translate_errors():
            row = await self._db.fetchrow(
                f"SELECT {QUOTE_COLUMNS} FROM quotes WHERE id = $1", quote_id
            )
        return _row_to_quote(row) if row else None

    async def get_policy(self, policy_id: UUID) -> Policy | None:
        with translate_errors():
            row = await self._db.fetchrow(
                f"SELECT {POLICY_COLUMNS} FROM policies WHERE id = $1", policy_id
            )
        return _row_to_policy(row) if row else None

    async def get_policy_by_quote(self, quote_id: UUID) -> Policy | None:
        with translate_errors():
            row = await self._db.fetchrow(
                f"SELECT {POLICY_COLUMNS} FROM policies WHERE quote_id = $1", quote_id
            )
        return _row_to_policy(row) if row else None

    @contextlib.asynccontextmanager
    async def transaction(self) -> AsyncIterator[PostgresIssuanceTransaction]:
        with translate_errors():
            async with self._db.transaction() as conn:
                yield PostgresIssuanceTransaction(conn)

    async def expire_quote(self, quote_id: UUID, expired_at: datetime) -> bool:
        with translate_errors():
            tag = await self._db.execute(
                """
                UPDATE quotes
                SET status = 'EXPIRED', expired_at = $2
                WHERE id = $1 AND status = 'PENDING'
                """,
                quote_id,
                expired_at,
            )
        return affected_rows(tag) == 1

    async def list_stale_quote_ids(self, now: datetime, limit: int) -> list[UUID]:
        with translate_errors():
            rows = await self._db.fetch(
                """
                SELECT id FROM quotes
                WHERE status = 'PENDING' AND expires_at <= $1
                ORDER BY expires_at
                LIMIT $2
                """,
                now,
                limit,
            )
        return [row["id"] for row in rows]

    async def fetch_pending_outbox(self, limit: int) -> list[OutboxEvent]:
        with translate_errors():
            rows = await self._db.fetch(
                f"""
                SELECT {OUTBOX_COLUMNS} FROM outbox_events
                WHERE publish_status = 'PENDING'
                ORDER BY created_at
                LIMIT $1
                """,
                limit,
            )
        return [_row_to_outbox(row) for row in rows]

    async def mark_outbox_published(self, event_id: UUID, published_at: datetime) -> bool:
        with translate_errors():
            tag = await self._db.execute(
                """
                UPDATE outbox_events
                SET publish_status = 'PUBLISHED', published_at = $2
                WHERE id = $1 AND publish_status = 'PENDING'
                """,
                event_id,
                published_at,
            )
        return affected_rows(tag) == 1


class PostgresCustomerDirectory:
    """Reads risk inputs from the ``customers`` table."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def get_risk_profile(self, customer_id: str) -> RiskProfile | None:
        with translate_errors():
            row = await self._db.fetchrow(
                """
                SELECT date_of_birth, age, smoker, occupation_risk
                FROM customers WHERE id = $1
                """,
                customer_id,
            )
        if not row:
            return None
        return RiskProfile(
            date_of_birth=row["date_of_birth"],
            age=row["age"],
            smoker=row["smoker"],
            occupation_risk=OccupationRisk(row["occupation_risk"]),
        )


class PostgresConsumedMessageLedger:
    """Dedup ledger and notification log in one transaction."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def is_processed(self, key: str) -> bool:
        with translate_errors():
            found = await self._db.fetchval(
                "SELECT 1 FROM consumed_messages WHERE key = $1", key
            )
        return found is not None

    async def record(
        self, entry: ConsumedMessageRecord, notification: Notification | None = None
    ) -> bool:
        with translate_errors():
            async with self._db.transaction() as conn:
                tag = await conn.execute(
                    """
                    INSERT INTO consumed_messages (key, message_id, event_type, processed_at)
                    VALUES ($1, $2, $3, $4)
                    ON CONFLICT (key) DO NOTHING
                    """,
                    entry.key,
                    entry.message_id,
                    entry.event_type,
                    entry.processed_at,
                )
                if affected_rows(tag) == 0:
                    return False
                if notification is not None:
                    await conn.execute(
                        """
                        INSERT INTO notification_log
                            (id, policy_id, customer_id, channel, subject, sent_at)
                        VALUES ($1, $2, $3, $4, $5, $6)
                        """,
                        notification.id,
                        notification.policy_id,
                        notification.customer_id,
                        notification.channel,
                        notification.subject,
                        notification.sent_at,
                    )
        return True

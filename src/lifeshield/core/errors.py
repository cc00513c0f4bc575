# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Typed business outcomes and infrastructure exceptions.

Business outcomes are immutable values returned inside ``Err``. Adapters
(store, queue, customer directory) raise ``StoreError`` / ``QueueError``;
services catch those at their boundary and return
``TransientInfrastructureFailure`` so callers can retry the whole operation.
"""

from typing import ClassVar

from attrs import field, frozen


@frozen
class DomainError:
    """Base for every expected failure surfaced to callers."""

    code: ClassVar[str] = "DOMAIN_ERROR"

    message: str = field()

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


@frozen
class InvalidInput(DomainError):
    """Client-correctable input problem, e.g. non-positive coverage."""

    code: ClassVar[str] = "INVALID_INPUT"


@frozen
class NotFound(DomainError):
    """Quote, policy or customer does not exist."""

    code: ClassVar[str] = "NOT_FOUND"

    resource: str = field(default="resource")


@frozen
class InvalidStateTransition(DomainError):
    """Conflict: the quote is no longer PENDING."""

    code: ClassVar[str] = "INVALID_STATE_TRANSITION"

    current_status: str | None = field(default=None)


@frozen
class TransientInfrastructureFailure(DomainError):
    """Store or queue unreachable or timed out; safe to retry."""

    code: ClassVar[str] = "TRANSIENT_FAILURE"


@frozen
class PoisonMessage(DomainError):
    """Unparseable queue message; dead-lettered, never retried as-is."""

    code: ClassVar[str] = "POISON_MESSAGE"

    message_id: str | None = field(default=None)


class InfrastructureError(Exception):
    """Raised by adapters when a backing service misbehaves."""


class StoreError(InfrastructureError):
    """Transactional store failure (connection, timeout, constraint)."""


class UniqueViolation(StoreError):
    """A uniqueness constraint rejected the write."""

    def __init__(self, constraint: str, message: str | None = None) -> None:
        super().__init__(message or f"Unique constraint violated: {constraint}")
        self.constraint = constraint


class QueueError(InfrastructureError):
    """Message queue failure (connection, timeout)."""

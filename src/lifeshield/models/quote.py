# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote domain models.

A quote moves PENDING -> ACCEPTED or PENDING -> EXPIRED and never leaves a
terminal state. The premium is fixed when the quote is created.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from .base import BaseModelConfig


class QuoteStatus(str, Enum):
    """Enumeration of quote lifecycle states."""

    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"

    @property
    def is_terminal(self) -> bool:
        return self is not QuoteStatus.PENDING


class QuoteRequest(BaseModelConfig):
    """Input for quoting a customer.

    Positivity is checked by the issuance service rather than here so that
    non-positive values come back as an ``InvalidInput`` outcome.
    """

    customer_id: str = Field(..., min_length=1, max_length=64)
    coverage_amount: Decimal = Field(..., description="Death benefit requested")
    term_years: int = Field(..., description="Policy term in whole years")


class Quote(BaseModelConfig):
    """Priced, not-yet-binding offer."""

    id: UUID = Field(..., description="Quote identifier")
    customer_id: str = Field(..., min_length=1, max_length=64)
    coverage_amount: Decimal = Field(..., gt=0, decimal_places=2)
    term_years: int = Field(..., gt=0, le=100)
    monthly_premium: Decimal = Field(..., gt=0, decimal_places=2)
    status: QuoteStatus = Field(default=QuoteStatus.PENDING)
    created_at: datetime = Field(...)
    expires_at: datetime = Field(..., description="When the expiry sweep may expire it")
    accepted_at: datetime | None = Field(None)
    expired_at: datetime | None = Field(None)

    @model_validator(mode="after")
    def validate_transition_timestamps(self) -> "Quote":
        """Terminal timestamps must agree with the status."""
        if (self.accepted_at is not None) != (self.status is QuoteStatus.ACCEPTED):
            raise ValueError("accepted_at is set exactly when status is ACCEPTED")
        if (self.expired_at is not None) != (self.status is QuoteStatus.EXPIRED):
            raise ValueError("expired_at is set exactly when status is EXPIRED")
        if self.expires_at < self.created_at:
            raise ValueError("expires_at cannot precede created_at")
        return self

    def is_stale(self, now: datetime) -> bool:
        """PENDING and past its expiry age."""
        return self.status is QuoteStatus.PENDING and now >= self.expires_at

    def accepted(self, at: datetime) -> "Quote":
        return self.model_copy(update={"status": QuoteStatus.ACCEPTED, "accepted_at": at})

    def expired(self, at: datetime) -> "Quote":
        return self.model_copy(update={"status": QuoteStatus.EXPIRED, "expired_at": at})

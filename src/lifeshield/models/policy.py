# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy domain model."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from pydantic import Field, model_validator

from .base import BaseModelConfig, add_years


class PolicyStatus(str, Enum):
    """Enumeration of policy lifecycle states."""

    ACTIVE = "ACTIVE"
    LAPSED = "LAPSED"
    CANCELLED = "CANCELLED"


class Policy(BaseModelConfig):
    """Binding contract created when a quote is accepted."""

    id: UUID = Field(..., description="Policy identifier")
    policy_number: str = Field(
        ...,
        pattern=r"^LS-[0-9]{14}-[0-9A-F]{12}$",
        description="Unique policy number LS-<yyyymmddHHMMSS>-<quote hex>",
    )
    customer_id: str = Field(..., min_length=1, max_length=64)
    quote_id: UUID = Field(..., description="Source quote, one policy per quote")
    coverage_amount: Decimal = Field(..., gt=0)
    monthly_premium: Decimal = Field(..., gt=0)
    term_years: int = Field(..., gt=0, le=100)
    start_date: date = Field(..., description="Date coverage begins")
    end_date: date = Field(..., description="start_date plus term_years")
    status: PolicyStatus = Field(default=PolicyStatus.ACTIVE)
    issued_at: datetime = Field(...)

    @model_validator(mode="after")
    def validate_term(self) -> "Policy":
        """End date is always the start date plus the quoted term."""
        if self.end_date != add_years(self.start_date, self.term_years):
            raise ValueError("end_date must equal start_date plus term_years")
        return self

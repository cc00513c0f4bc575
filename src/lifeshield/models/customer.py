# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Customer risk inputs consumed by pricing."""

from datetime import date
from enum import Enum

from pydantic import Field, model_validator

from .base import BaseModelConfig


class OccupationRisk(str, Enum):
    """Occupation hazard tier."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class RiskProfile(BaseModelConfig):
    """Underwriting inputs for a customer.

    Either a date of birth or a fixed age must be supplied. When both are
    present the date of birth wins, since age is derived at evaluation time.
    """

    date_of_birth: date | None = Field(None, description="Customer date of birth")
    age: int | None = Field(None, ge=0, le=130, description="Age in whole years")
    smoker: bool = Field(..., description="Smoker flag")
    occupation_risk: OccupationRisk = Field(
        default=OccupationRisk.LOW, description="Occupation hazard tier"
    )

    @model_validator(mode="after")
    def validate_age_source(self) -> "RiskProfile":
        """Ensure there is a way to know the customer's age."""
        if self.date_of_birth is None and self.age is None:
            raise ValueError("Either date_of_birth or age is required")
        return self

    def age_on(self, as_of: date) -> int:
        """Age in whole years on ``as_of``."""
        dob = self.date_of_birth
        if dob is not None:
            years = as_of.year - dob.year
            if (as_of.month, as_of.day) < (dob.month, dob.day):
                years -= 1
            return years
        if self.age is None:
            raise ValueError("Either date_of_birth or age is required")
        return self.age

# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Deterministic monthly premium calculation.

    monthly = coverage * base_rate * multiplier / 12

The multiplier starts at 1.0 and adds one age bracket loading (highest
bracket only), a smoker loading and an occupation loading. The result is
quantized to cents with ROUND_HALF_UP; intermediate arithmetic runs in a
local 28-digit decimal context so large coverage amounts are exact.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext

from beartype import beartype

from ..core.errors import InvalidInput
from ..core.result_types import Err, Ok, Result
from ..models.customer import OccupationRisk, RiskProfile

DEFAULT_BASE_RATE = Decimal("0.001")
MONTHS_PER_YEAR = Decimal("12")
CENTS = Decimal("0.01")
# NUMERIC(14, 2) and NUMERIC(12, 2) in the quotes and policies tables
MAX_COVERAGE_AMOUNT = Decimal("999999999999.99")
MAX_MONTHLY_PREMIUM = Decimal("9999999999.99")

# (age strictly greater than, loading); first match wins
AGE_LOADINGS: tuple[tuple[int, Decimal], ...] = (
    (50, Decimal("0.3")),
    (40, Decimal("0.2")),
    (30, Decimal("0.1")),
)
SMOKER_LOADING = Decimal("0.5")
OCCUPATION_LOADINGS: dict[OccupationRisk, Decimal] = {
    OccupationRisk.LOW: Decimal("0"),
    OccupationRisk.MEDIUM: Decimal("0.1"),
    OccupationRisk.HIGH: Decimal("0.25"),
}


@beartype
def age_loading(age: int) -> Decimal:
    for threshold, loading in AGE_LOADINGS:
        if age > threshold:
            return loading
    return Decimal("0")


@beartype
def risk_multiplier(profile: RiskProfile, as_of: date) -> Decimal:
    """Additive risk multiplier for a profile evaluated on ``as_of``."""
    multiplier = Decimal("1.0")
    multiplier += age_loading(profile.age_on(as_of))
    if profile.smoker:
        multiplier += SMOKER_LOADING
    multiplier += OCCUPATION_LOADINGS[profile.occupation_risk]
    return multiplier


@beartype
def compute_premium(
    profile: RiskProfile,
    coverage_amount: Decimal,
    term_years: int,
    *,
    as_of: date,
    base_rate: Decimal = DEFAULT_BASE_RATE,
) -> Result[Decimal, InvalidInput]:
    """Calculate the monthly premium for a coverage request.

    Args:
        profile: Customer risk inputs
        coverage_amount: Requested death benefit, must be positive
        term_years: Policy term, must be positive
        as_of: Evaluation date used to derive age from date of birth
        base_rate: Annual rate per unit of coverage

    Returns:
        Result containing the premium in cents precision or an InvalidInput
    """
    if not coverage_amount.is_finite() or coverage_amount <= 0:
        return Err(InvalidInput("Coverage amount must be positive"))
    if coverage_amount > MAX_COVERAGE_AMOUNT:
        return Err(
            InvalidInput(f"Coverage amount cannot exceed {MAX_COVERAGE_AMOUNT}")
        )
    if term_years <= 0:
        return Err(InvalidInput("Term years must be positive"))
    if base_rate <= 0:
        return Err(InvalidInput("Base rate must be positive"))

    age = profile.age_on(as_of)
    if age < 0:
        return Err(InvalidInput("Date of birth is after the evaluation date"))

    try:
        with localcontext() as ctx:
            ctx.prec = 28
            annual = coverage_amount * base_rate * risk_multiplier(profile, as_of)
            monthly = (annual / MONTHS_PER_YEAR).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return Err(InvalidInput("Premium exceeds the representable range"))

    if monthly <= 0:
        return Err(InvalidInput("Coverage amount too small to price"))
    if monthly > MAX_MONTHLY_PREMIUM:
        return Err(
            InvalidInput(f"Monthly premium cannot exceed {MAX_MONTHLY_PREMIUM}")
        )
    return Ok(monthly)

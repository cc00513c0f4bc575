# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Quote endpoints: create, read, accept, expire."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field

from ...models.customer import RiskProfile
from ...models.policy import Policy
from ...models.quote import Quote, QuoteRequest
from ...services.issuance_service import STALE_SWEEP_LIMIT, IssuanceService
from ..dependencies import get_issuance_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter(prefix="/quotes")


class QuoteCreateRequest(QuoteRequest):
    """Quote request body; ``risk_profile`` skips the customer lookup."""

    risk_profile: RiskProfile | None = Field(
        default=None, description="Underwriting inputs supplied by the caller"
    )


class ExpirySweepResponse(BaseModel):
    """Result of an expiry sweep."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    expired: int = Field(..., ge=0, description="Quotes moved to EXPIRED")


@router.post("", status_code=status.HTTP_201_CREATED)
@beartype
async def create_quote(
    body: QuoteCreateRequest,
    response: Response,
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[Quote, ErrorResponse]:
    """Price coverage for a customer and store a PENDING quote."""
    request = QuoteRequest(
        customer_id=body.customer_id,
        coverage_amount=body.coverage_amount,
        term_years=body.term_years,
    )
    result = await service.create_quote(request, body.risk_profile)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.post("/expire-stale")
@beartype
async def expire_stale_quotes(
    response: Response,
    limit: int = Query(default=STALE_SWEEP_LIMIT, ge=1, le=10_000),
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[ExpirySweepResponse, ErrorResponse]:
    """Expire every PENDING quote past its age (bounded by ``limit``)."""
    result = await service.expire_stale_quotes(limit)
    return handle_result(
        result.map(lambda count: ExpirySweepResponse(expired=count)), response
    )


@router.get("/{quote_id}")
@beartype
async def get_quote(
    quote_id: UUID,
    response: Response,
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[Quote, ErrorResponse]:
    """Retrieve a quote by ID."""
    result = await service.get_quote(quote_id)
    return handle_result(result, response)


@router.post("/{quote_id}/accept", status_code=status.HTTP_201_CREATED)
@beartype
async def accept_quote(
    quote_id: UUID,
    response: Response,
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[Policy, ErrorResponse]:
    """Issue a policy from a PENDING quote.

    Returns 409 when the quote was already accepted or expired; retrying
    after a 503 is safe.
    """
    result = await service.accept_quote(quote_id)
    return handle_result(result, response, success_status=status.HTTP_201_CREATED)


@router.post("/{quote_id}/expire")
@beartype
async def expire_quote(
    quote_id: UUID,
    response: Response,
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[Quote, ErrorResponse]:
    """Expire one quote if it is PENDING and past its age."""
    result = await service.expire_quote(quote_id)
    return handle_result(result, response)

# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Policy read endpoints."""

from typing import Union
from uuid import UUID

from beartype import beartype
from fastapi import APIRouter, Depends, Response

from ...models.policy import Policy
from ...services.issuance_service import IssuanceService
from ..dependencies import get_issuance_service
from ..response_patterns import ErrorResponse, handle_result

router = APIRouter(prefix="/policies")


@router.get("/{policy_id}")
@beartype
async def get_policy(
    policy_id: UUID,
    response: Response,
    service: IssuanceService = Depends(get_issuance_service),
) -> Union[Policy, ErrorResponse]:
    """Retrieve a specific policy by ID."""
    result = await service.get_policy(policy_id)
    return handle_result(result, response)

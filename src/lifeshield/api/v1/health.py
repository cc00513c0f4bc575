# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Liveness and Prometheus exposition."""

from beartype import beartype
from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from ...container import ServiceContainer
from ..dependencies import get_container

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    status: str = Field(..., description="Overall health status")
    service: str = Field(..., description="Service name")
    uptime_seconds: float = Field(..., ge=0, description="Seconds since startup")


@router.get("/health")
@beartype
async def health_check(
    container: ServiceContainer = Depends(get_container),
) -> HealthResponse:
    """Basic liveness check."""
    return HealthResponse(
        status="OK",
        service=container.settings.app_name,
        uptime_seconds=round(container.uptime_seconds, 3),
    )


@router.get("/metrics")
async def metrics(container: ServiceContainer = Depends(get_container)) -> Response:
    """Prometheus text exposition of the container's registry."""
    payload, content_type = container.metrics.render()
    return Response(content=payload, media_type=content_type)

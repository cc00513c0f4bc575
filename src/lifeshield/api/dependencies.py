# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""FastAPI dependencies resolving services from the application container."""

from fastapi import Depends, Request

from ..container import ServiceContainer
from ..services.issuance_service import IssuanceService


def get_container(request: Request) -> ServiceContainer:
    """Container stored on ``app.state`` by ``create_app``."""
    container: ServiceContainer = request.app.state.container
    return container


def get_issuance_service(
    container: ServiceContainer = Depends(get_container),
) -> IssuanceService:
    return container.issuance

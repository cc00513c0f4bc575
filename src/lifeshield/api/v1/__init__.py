# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""API v1 router aggregation."""

from fastapi import APIRouter

from .policies import router as policies_router
from .quotes import router as quotes_router

router = APIRouter(prefix="/api/v1")

router.include_router(quotes_router, tags=["quotes"])
router.include_router(policies_router, tags=["policies"])

__all__ = ["router"]

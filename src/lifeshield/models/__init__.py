# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Domain models package for the issuance service.

All models are immutable Pydantic models; see ``base.BaseModelConfig``.
"""

from .base import BaseModelConfig, add_years
from .customer import OccupationRisk, RiskProfile
from .notification import ConsumedMessageRecord, Notification
from .outbox import (
    EventType,
    MessageEnvelope,
    OutboxEvent,
    PolicyIssuedMessage,
    PublishStatus,
)
from .policy import Policy, PolicyStatus
from .quote import Quote, QuoteRequest, QuoteStatus

__all__ = [
    # Base
    "BaseModelConfig",
    "add_years",
    # Customer
    "OccupationRisk",
    "RiskProfile",
    # Quote / Policy
    "Quote",
    "QuoteRequest",
    "QuoteStatus",
    "Policy",
    "PolicyStatus",
    # Outbox and wire messages
    "EventType",
    "MessageEnvelope",
    "OutboxEvent",
    "PolicyIssuedMessage",
    "PublishStatus",
    # Consumer records
    "ConsumedMessageRecord",
    "Notification",
]

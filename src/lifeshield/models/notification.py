# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Consumer-side records: dedup ledger entries and the notification log."""

from datetime import datetime
from uuid import UUID

from pydantic import Field

from .base import BaseModelConfig


class Notification(BaseModelConfig):
    """A customer notification produced for an issued policy."""

    id: UUID = Field(...)
    policy_id: UUID = Field(...)
    customer_id: str = Field(..., min_length=1)
    channel: str = Field(default="email")
    subject: str = Field(...)
    sent_at: datetime = Field(...)


class ConsumedMessageRecord(BaseModelConfig):
    """Proof that a business key's side effect already happened."""

    key: str = Field(..., min_length=1, description="policyId:eventType")
    message_id: str = Field(..., description="Broker message id of the first delivery")
    event_type: str = Field(...)
    processed_at: datetime = Field(...)

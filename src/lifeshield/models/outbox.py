# LifeShield - Life Insurance Issuance Service
# Copyright (C) 2025 Luiz Frias <luizf35@gmail.com>
# Form F[x] Labs
#
# This software is dual-licensed under AGPL-3.0 and Commercial License.
# For commercial licensing, contact: luizf35@gmail.com
# See LICENSE file for full terms.

"""Outbox rows and the queue message shapes they become."""

from datetime import datetime
from enum import Enum
from typing import Any, Literal
from uuid import UUID

from pydantic import ConfigDict, Field

from .base import BaseModelConfig


class EventType(str, Enum):
    """Event types this service emits."""

    POLICY_ISSUED = "POLICY_ISSUED"


class PublishStatus(str, Enum):
    """Outbox publication state; PUBLISHED is final."""

    PENDING = "PENDING"
    PUBLISHED = "PUBLISHED"


class OutboxEvent(BaseModelConfig):
    """Event recorded in the same transaction as the change it announces."""

    id: UUID = Field(...)
    event_type: EventType = Field(...)
    payload: dict[str, Any] = Field(..., description="JSON-ready event body")
    publish_status: PublishStatus = Field(default=PublishStatus.PENDING)
    created_at: datetime = Field(...)
    published_at: datetime | None = Field(None)

    def to_message_body(self) -> str:
        """Serialize into the queue wire shape ``{"type": ..., **payload}``."""
        if self.event_type is EventType.POLICY_ISSUED:
            return PolicyIssuedMessage.model_validate(self.payload).to_body()
        return MessageEnvelope.model_validate(
            {"type": self.event_type.value, **self.payload}
        ).model_dump_json()


class MessageEnvelope(BaseModelConfig):
    """Minimal shape every queue message shares; extra keys are allowed."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: str = Field(..., min_length=1)


class PolicyIssuedMessage(BaseModelConfig):
    """Wire shape of a POLICY_ISSUED notification."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    type: Literal["POLICY_ISSUED"] = Field(default="POLICY_ISSUED")
    policy_id: UUID = Field(..., alias="policyId")
    customer_id: str = Field(..., alias="customerId", min_length=1)
    issued_at: datetime = Field(..., alias="issuedAt")

    @property
    def dedup_key(self) -> str:
        """Business key guarding the consumer side effect."""
        return f"{self.policy_id}:{self.type}"

    def to_body(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_payload(self) -> dict[str, Any]:
        """Outbox payload form (wire form without the type key)."""
        data = self.model_dump(mode="json", by_alias=True)
        data.pop("type")
        return data
